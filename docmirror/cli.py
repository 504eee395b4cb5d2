"""docmirror CLI — the main entry point."""

from __future__ import annotations

import sys
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

import click
import httpx
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from docmirror import __version__
from docmirror.config import ENV_VARS, SyncConfig
from docmirror.errors import MirrorError
from docmirror.models import OutcomeStatus, SyncReport
from docmirror.utils.logging import setup_logging

if TYPE_CHECKING:
    from docmirror.sync.pipeline import SyncPipeline

console = Console()
err_console = Console(stderr=True)


def _config_options(func):
    """Options shared by every command that resolves a configuration."""
    func = click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False),
                        help="YAML configuration file")(func)
    func = click.option("--env-file", default=None, type=click.Path(dir_okay=False),
                        help="dotenv file to load (default: ./.env)")(func)
    func = click.option("--output-dir", "-o", default=None,
                        help="Directory the mirror is written to")(func)
    return func


def _load_config(config_path: str | None, env_file: str | None, **overrides) -> SyncConfig:
    return SyncConfig.from_env(
        config_path=config_path,
        env_file=env_file,
        overrides=overrides,
    ).validate()


@contextmanager
def _pipeline(config: SyncConfig, fail_fast: bool = False) -> Iterator["SyncPipeline"]:
    """Construct the pipeline and its clients, closing the clients afterwards."""
    from docmirror.llm.client import GenerativeClient
    from docmirror.remote.github import GitHubResolver, build_client
    from docmirror.sync.pipeline import SyncPipeline
    from docmirror.sync.store import FingerprintStore
    from docmirror.transform import ContentTransformer
    from docmirror.writer import OutputWriter

    with build_client(
        token=config.github_token,
        base_url=config.github_api_url,
        timeout=config.request_timeout,
    ) as github, httpx.Client(timeout=config.request_timeout, follow_redirects=True) as http:
        generator = GenerativeClient(
            project_id=config.project_id,
            location=config.location,
            model=config.model,
            timeout=config.request_timeout,
        )
        yield SyncPipeline(
            config=config,
            resolver=GitHubResolver(github),
            store=FingerprintStore(config.hash_file),
            transformer=ContentTransformer(
                http,
                generator,
                prompt_location=config.prompt_url,
                max_output_tokens=config.max_output_tokens,
            ),
            writer=OutputWriter(config.output_dir),
            fail_fast=fail_fast,
        )


def _fail(error: MirrorError) -> None:
    err_console.print(f"[bold red]Error:[/] {escape(str(error))}")
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--log-file", default=None, type=click.Path(dir_okay=False), help="Also log to this file")
def main(verbose: bool, log_file: str | None):
    """docmirror — keep a transformed local mirror of remote repository files.

    Only files whose content changed since the last run are sent through
    the generative service; the fingerprints of processed files are
    recorded for the next run.
    """
    setup_logging("DEBUG" if verbose else "INFO", log_file=log_file, console=err_console)


# ── Sync ─────────────────────────────────────────────────────────────


@main.command()
@_config_options
@click.option("--workers", "-w", default=None, type=click.IntRange(min=1),
              help="Number of files processed concurrently")
@click.option("--fail-fast", is_flag=True, help="Abort on the first file that fails to transform")
@click.option("--dry-run", is_flag=True, help="Only report what would be transformed")
def sync(config_path, env_file, output_dir, workers, fail_fast, dry_run):
    """Transform every changed file and record the new fingerprints."""
    try:
        config = _load_config(config_path, env_file, output_dir=output_dir, workers=workers)
        console.print(
            f"\n[bold blue]docmirror[/] — Syncing {config.owner}/{config.repo}:"
            f"{escape(config.target_path)}*{escape(config.extension)}\n"
        )
        with _pipeline(config, fail_fast=fail_fast) as pipeline:
            report = pipeline.run(dry_run=dry_run)
    except MirrorError as e:
        _fail(e)
        return

    _print_report(report)


# ── Status ───────────────────────────────────────────────────────────


@main.command()
@_config_options
def status(config_path, env_file, output_dir):
    """List the files that the next sync would transform."""
    try:
        config = _load_config(config_path, env_file, output_dir=output_dir)
        with _pipeline(config) as pipeline:
            report = pipeline.run(dry_run=True)
    except MirrorError as e:
        _fail(e)
        return

    _print_report(report)


# ── Config ───────────────────────────────────────────────────────────


@main.command(name="show-config")
@_config_options
def show_config(config_path, env_file, output_dir):
    """Print the resolved configuration (token masked)."""
    try:
        config = SyncConfig.from_env(
            config_path=config_path, env_file=env_file, overrides={"output_dir": output_dir}
        )
    except MirrorError as e:
        _fail(e)
        return

    table = Table(title="Resolved configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Env var", style="dim")
    table.add_column("Value")
    for name, value in config.redacted().items():
        table.add_row(name, ENV_VARS.get(name, ""), escape(str(value)) or "[red](unset)[/]")
    console.print(table)

    try:
        config.validate()
    except MirrorError as e:
        _fail(e)
        return
    console.print("[green]v[/] Configuration is complete")


# ── Rendering ────────────────────────────────────────────────────────


_STATUS_STYLE = {
    OutcomeStatus.WRITTEN: "[green]written[/]",
    OutcomeStatus.EMPTY: "[yellow]no result[/]",
    OutcomeStatus.FAILED: "[red]failed[/]",
}


def _print_report(report: SyncReport) -> None:
    if report.up_to_date:
        console.print(f"[green]Up to date.[/] {report.listed} file(s) checked on {report.branch}.")
        return

    table = Table(title=f"Changed files ({len(report.changed)})")
    table.add_column("#", style="dim", width=4)
    table.add_column("Path", style="cyan")
    table.add_column("Fingerprint", style="dim")
    table.add_column("Result")

    outcomes = {o.descriptor.path: o for o in report.outcomes}
    for i, d in enumerate(report.changed):
        outcome = outcomes.get(d.path)
        if outcome is None:
            result = "[dim]pending[/]"
        else:
            result = _STATUS_STYLE[outcome.status]
            if outcome.error:
                result += f" {escape(outcome.error)}"
        table.add_row(str(i + 1), escape(d.path), d.fingerprint[:12], result)

    console.print(table)

    if report.removed:
        console.print(f"[dim]{len(report.removed)} recorded file(s) no longer listed remotely.[/]")

    title = "Dry run" if report.dry_run else "Sync result"
    console.print(Panel(report.summary(), title=title))


if __name__ == "__main__":
    main()
