"""Incremental synchronization — the core of docmirror.

This package provides:
- The fingerprint store: what was mirrored, at which content revision
- Change detection: which listed files need to be transformed again
- The pipeline: listing, diffing, processing and committing in order
"""
