"""Data model for a synchronization run."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class FileDescriptor:
    """A remote file that matches the listing filter."""

    path: str
    """Repository-relative path, unique within a listing."""

    fingerprint: str
    """Opaque content revision token (the git blob SHA)."""

    content_ref: str
    """URL from which the raw file content can be fetched."""


class OutcomeStatus(str, Enum):
    WRITTEN = "written"
    EMPTY = "empty"  # service returned no candidates
    FAILED = "failed"


@dataclass
class FileOutcome:
    """Tagged result of processing one changed file."""

    descriptor: FileDescriptor
    status: OutcomeStatus
    text: str = ""
    error: str = ""

    @classmethod
    def written(cls, descriptor: FileDescriptor, text: str) -> "FileOutcome":
        return cls(descriptor=descriptor, status=OutcomeStatus.WRITTEN, text=text)

    @classmethod
    def empty(cls, descriptor: FileDescriptor) -> "FileOutcome":
        return cls(descriptor=descriptor, status=OutcomeStatus.EMPTY)

    @classmethod
    def failed(cls, descriptor: FileDescriptor, error: str) -> "FileOutcome":
        return cls(descriptor=descriptor, status=OutcomeStatus.FAILED, error=error)


@dataclass
class SyncReport:
    """Everything a caller needs to know about one pipeline run."""

    branch: str = ""
    listed: int = 0
    changed: list[FileDescriptor] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    outcomes: list[FileOutcome] = field(default_factory=list)
    committed: dict[str, str] = field(default_factory=dict)
    did_commit: bool = False
    dry_run: bool = False

    @property
    def written(self) -> list[FileOutcome]:
        return [o for o in self.outcomes if o.status == OutcomeStatus.WRITTEN]

    @property
    def skipped(self) -> list[FileOutcome]:
        return [o for o in self.outcomes if o.status == OutcomeStatus.EMPTY]

    @property
    def failed(self) -> list[FileOutcome]:
        return [o for o in self.outcomes if o.status == OutcomeStatus.FAILED]

    @property
    def up_to_date(self) -> bool:
        return not self.changed

    def summary(self) -> str:
        if self.up_to_date:
            return f"{self.listed} file(s) listed on {self.branch}: everything is up to date"
        if self.dry_run:
            return f"{self.listed} file(s) listed on {self.branch}: {len(self.changed)} changed (dry run)"
        return (
            f"{self.listed} file(s) listed on {self.branch}: "
            f"{len(self.written)} written, {len(self.skipped)} skipped, "
            f"{len(self.failed)} failed"
        )
