"""Output writer — persist transformed text under the mirror directory."""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath

from docmirror.errors import PersistenceError

logger = logging.getLogger("docmirror.writer")


class OutputWriter:
    """Writes artifacts at the same relative path as their source file."""

    def __init__(self, output_dir: str | Path = "."):
        self.output_dir = Path(output_dir)

    def target_for(self, path: str) -> Path:
        """Map a repository-relative path to its local destination.

        Raises:
            PersistenceError: If the path is absolute or climbs out of the
                output directory.
        """
        rel = PurePosixPath(path)
        if rel.is_absolute() or ".." in rel.parts or not rel.parts:
            raise PersistenceError(f"Refusing to write outside the output directory: {path!r}")
        return self.output_dir.joinpath(*rel.parts)

    def write(self, path: str, text: str) -> Path:
        """Write ``text`` verbatim, creating parent directories as needed."""
        target = self.target_for(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "w", encoding="utf-8", newline="") as f:
                f.write(text)
        except OSError as e:
            raise PersistenceError(f"Cannot write {target}: {e}") from e

        logger.info("Wrote %s", target)
        return target
