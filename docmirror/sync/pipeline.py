"""Sync pipeline — list, diff, transform, write and commit, in that order.

One run walks through ``Init -> Listing -> Diffing -> Processing -> Committing``.
Configuration, listing and persistence failures abort the run before the
fingerprint document is touched. Per-file transform problems are recorded
as outcomes and the run carries on.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol

from docmirror.config import SyncConfig
from docmirror.errors import ListingError, TransformError
from docmirror.models import FileDescriptor, FileOutcome, SyncReport
from docmirror.sync.detector import detect_changes, removed_paths

logger = logging.getLogger("docmirror.pipeline")


class Resolver(Protocol):
    def list_files(
        self, owner: str, repo: str, prefix: str, extension: str
    ) -> tuple[str, list[FileDescriptor]]: ...


class Store(Protocol):
    def load(self) -> dict[str, str]: ...

    def save(self, mapping: dict[str, str]) -> None: ...


class Transformer(Protocol):
    def prepare(self) -> None: ...

    def transform(self, descriptor: FileDescriptor) -> str | None: ...


class Writer(Protocol):
    def write(self, path: str, text: str): ...


class SyncPipeline:
    """Runs one incremental synchronization.

    Every collaborator is injected so the pipeline can run against fakes.

    Parameters
    ----------
    config : SyncConfig
        Run settings; validated at the start of :meth:`run`.
    resolver, store, transformer, writer
        The listing, fingerprint, transformation and output components.
    fail_fast : bool
        Abort the run on the first per-file transform failure instead of
        skipping the file.
    """

    def __init__(
        self,
        config: SyncConfig,
        resolver: Resolver,
        store: Store,
        transformer: Transformer,
        writer: Writer,
        fail_fast: bool = False,
    ) -> None:
        self.config = config
        self.resolver = resolver
        self.store = store
        self.transformer = transformer
        self.writer = writer
        self.fail_fast = fail_fast

    def run(self, dry_run: bool = False) -> SyncReport:
        """Execute the pipeline and return its report.

        Raises:
            ConfigError: Required settings are missing, or the generative
                service has no credentials.
            ListingError: The remote listing failed or matched nothing.
            PersistenceError: An output file or the fingerprint document
                could not be written.
            TransformError: A file failed while ``fail_fast`` is set, or the
                prompt could not be loaded.
        """
        cfg = self.config.validate()
        report = SyncReport(dry_run=dry_run)

        # Listing
        branch, listing = self.resolver.list_files(
            cfg.owner, cfg.repo, cfg.target_path, cfg.extension
        )
        if not listing:
            raise ListingError(
                f"No files matching {cfg.target_path}*{cfg.extension} in {cfg.owner}/{cfg.repo}"
            )
        report.branch = branch
        report.listed = len(listing)

        # Diffing
        stored = self.store.load()
        report.changed = detect_changes(listing, stored)
        report.removed = removed_paths(listing, stored)

        for path in report.removed:
            logger.info("No longer listed remotely: %s", path)

        if not report.changed:
            logger.info("No changes since the last run")
            return report

        logger.info("%d changed file(s):", len(report.changed))
        for d in report.changed:
            logger.info("  %s (%s)", d.path, d.fingerprint)

        if dry_run:
            return report

        # Processing
        self.transformer.prepare()
        report.outcomes = self._process_all(report.changed)

        # Committing
        written = {o.descriptor.path: o.descriptor.fingerprint for o in report.written}
        if written:
            committed = {**stored, **written}
            self.store.save(committed)
            report.committed = committed
            report.did_commit = True
        else:
            logger.warning("Nothing was written; fingerprint document left untouched")
            report.committed = dict(stored)

        logger.info(report.summary())
        return report

    # -- processing ----------------------------------------------------------

    def _process_all(self, changed: list[FileDescriptor]) -> list[FileOutcome]:
        workers = min(self.config.workers, len(changed))
        if workers <= 1:
            return [self._process(d) for d in changed]

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="docmirror") as pool:
            futures = [pool.submit(self._process, d) for d in changed]
            try:
                return [f.result() for f in futures]
            except BaseException:
                for f in futures:
                    f.cancel()
                raise

    def _process(self, descriptor: FileDescriptor) -> FileOutcome:
        """Transform and write one file.

        Decision table: text -> write and record; no candidates -> skip;
        ``TransformError`` -> skip (or re-raise under fail-fast).
        Writer and credential errors always propagate.
        """
        try:
            text = self.transformer.transform(descriptor)
        except TransformError as e:
            if self.fail_fast:
                raise
            logger.error("Skipping %s: %s", descriptor.path, e)
            return FileOutcome.failed(descriptor, str(e))

        if text is None:
            logger.warning("No candidates returned for %s, skipping", descriptor.path)
            return FileOutcome.empty(descriptor)

        self.writer.write(descriptor.path, text)
        return FileOutcome.written(descriptor, text)
