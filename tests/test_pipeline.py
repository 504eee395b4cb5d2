"""Tests for the sync pipeline, run against in-memory collaborators."""

import json
import tempfile
from pathlib import Path

import httpx
import pytest
from google.auth.exceptions import DefaultCredentialsError, RefreshError

from docmirror.config import SyncConfig
from docmirror.errors import ConfigError, ListingError, PersistenceError, TransformError
from docmirror.llm.client import GenerationResult
from docmirror.models import FileDescriptor, OutcomeStatus
from docmirror.sync.pipeline import SyncPipeline
from docmirror.sync.store import FingerprintStore
from docmirror.transform import ContentTransformer
from docmirror.writer import OutputWriter


def _fd(path: str, sha: str) -> FileDescriptor:
    return FileDescriptor(path=path, fingerprint=sha, content_ref=f"https://raw.example/{path}")


class FakeResolver:
    def __init__(self, files, branch="main"):
        self.files = list(files)
        self.branch = branch
        self.calls = 0

    def list_files(self, owner, repo, prefix, extension):
        self.calls += 1
        return self.branch, list(self.files)


class FakeTransformer:
    """Returns ``translated <path>`` unless told otherwise.

    ``results`` maps a path to the text (or *None*) to return; ``errors`` is
    a set of paths that raise ``TransformError``.
    """

    def __init__(self, results=None, errors=()):
        self.results = results or {}
        self.errors = set(errors)
        self.calls = []
        self.prepared = 0

    def prepare(self):
        self.prepared += 1

    def transform(self, descriptor):
        self.calls.append(descriptor.path)
        if descriptor.path in self.errors:
            raise TransformError(descriptor.path, "service unavailable")
        if descriptor.path in self.results:
            return self.results[descriptor.path]
        return f"translated {descriptor.path}"


class BrokenWriter:
    def write(self, path, text):
        raise PersistenceError(f"Cannot write {path}: read-only file system")


class _Env:
    """A temp directory holding the fingerprint document and the mirror."""

    def __init__(self, tmpdir: str):
        self.root = Path(tmpdir)
        self.hash_file = self.root / "state" / "hashes.json"
        self.out = self.root / "out"

    def config(self, **overrides) -> SyncConfig:
        values = dict(
            owner="acme",
            repo="docs",
            target_path="docs/",
            extension=".md",
            hash_file=str(self.hash_file),
            project_id="proj",
            location="us-east5",
            model="model-x",
            prompt_url="https://prompts.example/p.txt",
            output_dir=str(self.out),
        )
        values.update(overrides)
        return SyncConfig(**values)

    def pipeline(self, files, transformer=None, writer=None, fail_fast=False, **overrides):
        return SyncPipeline(
            config=self.config(**overrides),
            resolver=FakeResolver(files),
            store=FingerprintStore(self.hash_file),
            transformer=transformer or FakeTransformer(),
            writer=writer or OutputWriter(self.out),
            fail_fast=fail_fast,
        )

    def stored(self) -> dict:
        return json.loads(self.hash_file.read_text())


# --- Scenarios ---


def test_only_changed_file_is_processed_and_unchanged_entries_survive():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = _Env(tmpdir)
        FingerprintStore(env.hash_file).save({"a.md": "sha1"})
        transformer = FakeTransformer()

        report = env.pipeline([_fd("a.md", "sha1"), _fd("b.md", "sha2")], transformer).run()

        assert [d.path for d in report.changed] == ["b.md"]
        assert transformer.calls == ["b.md"]
        assert (env.out / "b.md").read_text() == "translated b.md"
        assert not (env.out / "a.md").exists()
        assert env.stored() == {"a.md": "sha1", "b.md": "sha2"}
        assert report.did_commit


def test_first_run_processes_every_listed_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = _Env(tmpdir)
        files = [_fd("a.md", "sha1"), _fd("guide/b.md", "sha2")]

        report = env.pipeline(files).run()

        assert report.changed == files
        assert env.stored() == {"a.md": "sha1", "guide/b.md": "sha2"}
        assert (env.out / "guide" / "b.md").read_text() == "translated guide/b.md"


def test_no_candidates_skips_file_without_fingerprint():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = _Env(tmpdir)
        transformer = FakeTransformer(results={"c.md": None})
        files = [_fd("a.md", "sha1"), _fd("c.md", "sha3")]

        report = env.pipeline(files, transformer).run()

        assert [o.descriptor.path for o in report.skipped] == ["c.md"]
        assert not (env.out / "c.md").exists()
        assert env.stored() == {"a.md": "sha1"}

        # c.md is still considered changed on the next run
        retry = FakeTransformer()
        second = env.pipeline(files, retry).run()
        assert retry.calls == ["c.md"]
        assert second.did_commit
        assert env.stored() == {"a.md": "sha1", "c.md": "sha3"}


# --- Properties ---


def test_second_run_without_remote_changes_is_a_no_op():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = _Env(tmpdir)
        files = [_fd("a.md", "sha1"), _fd("b.md", "sha2")]
        env.pipeline(files).run()
        before = env.hash_file.read_bytes()

        transformer = FakeTransformer()
        report = env.pipeline(files, transformer).run()

        assert report.up_to_date
        assert not report.did_commit
        assert transformer.calls == []
        assert transformer.prepared == 0
        assert env.hash_file.read_bytes() == before


def test_modified_file_is_reprocessed():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = _Env(tmpdir)
        env.pipeline([_fd("a.md", "sha1"), _fd("b.md", "sha2")]).run()

        transformer = FakeTransformer(results={"a.md": "v2"})
        env.pipeline([_fd("a.md", "sha1-new"), _fd("b.md", "sha2")], transformer).run()

        assert transformer.calls == ["a.md"]
        assert (env.out / "a.md").read_text() == "v2"
        assert env.stored() == {"a.md": "sha1-new", "b.md": "sha2"}


def test_removed_files_are_reported_and_kept():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = _Env(tmpdir)
        FingerprintStore(env.hash_file).save({"old.md": "x"})

        report = env.pipeline([_fd("a.md", "sha1")]).run()

        assert report.removed == ["old.md"]
        assert env.stored() == {"a.md": "sha1", "old.md": "x"}


def test_transform_failure_is_skipped_by_default():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = _Env(tmpdir)
        transformer = FakeTransformer(errors={"a.md"})

        report = env.pipeline([_fd("a.md", "sha1"), _fd("b.md", "sha2")], transformer).run()

        assert [o.status for o in report.outcomes] == [OutcomeStatus.FAILED, OutcomeStatus.WRITTEN]
        assert "service unavailable" in report.failed[0].error
        assert env.stored() == {"b.md": "sha2"}


def test_fail_fast_aborts_without_commit():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = _Env(tmpdir)
        transformer = FakeTransformer(errors={"b.md"})
        files = [_fd("a.md", "sha1"), _fd("b.md", "sha2"), _fd("c.md", "sha3")]

        with pytest.raises(TransformError):
            env.pipeline(files, transformer, fail_fast=True).run()

        assert transformer.calls == ["a.md", "b.md"]
        assert not env.hash_file.exists()


def test_write_failure_aborts_without_commit():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = _Env(tmpdir)
        FingerprintStore(env.hash_file).save({"a.md": "sha0"})
        before = env.hash_file.read_bytes()

        with pytest.raises(PersistenceError):
            env.pipeline([_fd("a.md", "sha1")], writer=BrokenWriter()).run()

        assert env.hash_file.read_bytes() == before


def test_commit_failure_propagates():
    class FailingStore(FingerprintStore):
        def save(self, mapping):
            raise PersistenceError("disk full")

    with tempfile.TemporaryDirectory() as tmpdir:
        env = _Env(tmpdir)
        pipeline = env.pipeline([_fd("a.md", "sha1")])
        pipeline.store = FailingStore(env.hash_file)

        with pytest.raises(PersistenceError):
            pipeline.run()
        assert FingerprintStore(env.hash_file).load() == {}


def test_nothing_written_leaves_document_untouched():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = _Env(tmpdir)
        transformer = FakeTransformer(results={"a.md": None})

        report = env.pipeline([_fd("a.md", "sha1")], transformer).run()

        assert not report.did_commit
        assert not env.hash_file.exists()


def test_missing_configuration_aborts_before_listing():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = _Env(tmpdir)
        pipeline = env.pipeline([_fd("a.md", "sha1")], prompt_url="")

        with pytest.raises(ConfigError):
            pipeline.run()
        assert pipeline.resolver.calls == 0


def test_empty_listing_is_fatal():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = _Env(tmpdir)
        with pytest.raises(ListingError):
            env.pipeline([]).run()
        assert not env.hash_file.exists()


def test_dry_run_reports_without_side_effects():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = _Env(tmpdir)
        transformer = FakeTransformer()

        report = env.pipeline([_fd("a.md", "sha1")], transformer).run(dry_run=True)

        assert [d.path for d in report.changed] == ["a.md"]
        assert report.outcomes == []
        assert transformer.calls == []
        assert not env.hash_file.exists()
        assert not env.out.exists()


def test_worker_pool_keeps_change_set_order():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = _Env(tmpdir)
        files = [_fd(f"doc{i}.md", f"sha{i}") for i in range(8)]
        transformer = FakeTransformer(results={"doc3.md": None}, errors={"doc5.md"})

        report = env.pipeline(files, transformer, workers=4).run()

        assert [o.descriptor.path for o in report.outcomes] == [f.path for f in files]
        assert sorted(transformer.calls) == sorted(f.path for f in files)
        expected = {f.path: f.fingerprint for f in files if f.path not in ("doc3.md", "doc5.md")}
        assert env.stored() == expected


def test_report_summary():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = _Env(tmpdir)
        transformer = FakeTransformer(results={"b.md": None})
        report = env.pipeline([_fd("a.md", "1"), _fd("b.md", "2")], transformer).run()

        assert report.branch == "main"
        assert report.listed == 2
        assert "1 written, 1 skipped, 0 failed" in report.summary()


# --- Generative service credentials ---


class AuthGenerator:
    """Generator whose calls fail with a google-auth error for chosen paths."""

    def __init__(self, errors=None, credentials_error=None):
        self.errors = errors or {}
        self.credentials_error = credentials_error
        self.calls = 0

    def check_credentials(self):
        if self.credentials_error:
            raise self.credentials_error

    def generate(self, prompt, max_output_tokens=8192):
        self.calls += 1
        for marker, error in self.errors.items():
            if marker in prompt:
                raise error
        return GenerationResult(candidates=[["translated"]])


def _content_transformer(generator):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "prompts.example":
            return httpx.Response(200, text="Translate:")
        return httpx.Response(200, text=f"content of {request.url.path.lstrip('/')}")

    http = httpx.Client(transport=httpx.MockTransport(handler))
    return ContentTransformer(http, generator, "https://prompts.example/p.txt")


def test_token_refresh_failure_skips_only_that_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = _Env(tmpdir)
        generator = AuthGenerator(errors={"content of a.md": RefreshError("refresh failed")})
        files = [_fd("a.md", "sha1"), _fd("b.md", "sha2")]

        report = env.pipeline(files, _content_transformer(generator)).run()

        assert [o.status for o in report.outcomes] == [OutcomeStatus.FAILED, OutcomeStatus.WRITTEN]
        assert env.stored() == {"b.md": "sha2"}


def test_missing_credentials_abort_before_processing():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = _Env(tmpdir)
        generator = AuthGenerator(credentials_error=ConfigError(["Google Cloud credentials not found"]))

        with pytest.raises(ConfigError):
            env.pipeline([_fd("a.md", "sha1")], _content_transformer(generator)).run()

        assert generator.calls == 0
        assert not env.hash_file.exists()
        assert not env.out.exists()


def test_credentials_lost_mid_run_abort_without_commit():
    with tempfile.TemporaryDirectory() as tmpdir:
        env = _Env(tmpdir)
        missing = DefaultCredentialsError("Your default credentials were not found")
        generator = AuthGenerator(errors={"content of b.md": missing})
        files = [_fd("a.md", "sha1"), _fd("b.md", "sha2")]

        with pytest.raises(ConfigError):
            env.pipeline(files, _content_transformer(generator)).run()

        assert not env.hash_file.exists()
