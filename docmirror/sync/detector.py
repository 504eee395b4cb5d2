"""Change detection between a remote listing and the stored fingerprints."""

from __future__ import annotations

from typing import Iterable, Mapping

from docmirror.models import FileDescriptor


def detect_changes(
    listing: Iterable[FileDescriptor],
    stored: Mapping[str, str],
) -> list[FileDescriptor]:
    """Return the files whose fingerprint is new or differs from the stored one.

    Order follows ``listing``.
    """
    return [d for d in listing if stored.get(d.path) != d.fingerprint]


def removed_paths(
    listing: Iterable[FileDescriptor],
    stored: Mapping[str, str],
) -> list[str]:
    """Return stored paths that are no longer present in the listing, sorted."""
    listed = {d.path for d in listing}
    return sorted(p for p in stored if p not in listed)
