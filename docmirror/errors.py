"""Exception hierarchy for docmirror.

Fatal conditions (configuration, listing, persistence) propagate out of the
pipeline and end the run. ``TransformError`` is per-file: the pipeline turns
it into a ``FAILED`` outcome and moves on unless fail-fast is enabled.
"""


class MirrorError(Exception):
    """Base class for every error raised by docmirror."""


class ConfigError(MirrorError):
    """A required setting is missing or invalid."""

    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        super().__init__("Invalid configuration: " + "; ".join(self.problems))


class ListingError(MirrorError):
    """The remote file listing could not be produced."""


class TransformError(MirrorError):
    """Fetching or transforming a single file failed."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")


class PersistenceError(MirrorError):
    """An output file or the fingerprint document could not be read or written."""
