"""Fingerprint store — the persisted record of what has been mirrored.

The document is a flat JSON object mapping repository-relative paths to the
fingerprint of the content that was last transformed for that path.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from docmirror.errors import PersistenceError

logger = logging.getLogger("docmirror.store")


class FingerprintStore:
    """Loads and atomically rewrites the fingerprint document."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> dict[str, str]:
        """Return the stored mapping, or an empty one on the first run.

        Raises:
            PersistenceError: If the document exists but cannot be read or
                is not an object of string values.
        """
        if not self.path.exists():
            logger.info("No fingerprint document at %s, treating every file as new", self.path)
            return {}

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Cannot read fingerprint document {self.path}: {e}") from e

        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in data.items()
        ):
            raise PersistenceError(
                f"Fingerprint document {self.path} must be an object of path -> fingerprint strings"
            )
        return data

    def save(self, mapping: dict[str, str]) -> None:
        """Write the mapping through a temp file and an atomic rename.

        The previous document stays intact if anything fails before the
        rename.

        Raises:
            PersistenceError: If the document could not be committed.
        """
        payload = json.dumps(mapping, indent=2, sort_keys=True, ensure_ascii=False) + "\n"
        directory = self.path.parent
        tmp_name = ""
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError(f"Cannot write fingerprint document {self.path}: {e}") from e

        logger.info("Saved %d fingerprint(s) to %s", len(mapping), self.path)
