"""docmirror — keep a local, machine-transformed mirror of remote repository files."""

__version__ = "0.1.0"
