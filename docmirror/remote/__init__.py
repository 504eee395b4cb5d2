"""Remote repository access."""

from docmirror.remote.github import GitHubResolver, raw_content_url

__all__ = ["GitHubResolver", "raw_content_url"]
