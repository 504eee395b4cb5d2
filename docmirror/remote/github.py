"""GitHub listing — enumerate candidate files on a repository's default branch."""

from __future__ import annotations

import logging
from urllib.parse import quote

import httpx

from docmirror.config import DEFAULT_GITHUB_API_URL, DEFAULT_REQUEST_TIMEOUT
from docmirror.errors import ListingError
from docmirror.models import FileDescriptor

logger = logging.getLogger("docmirror.remote.github")

RAW_CONTENT_BASE = "https://raw.githubusercontent.com"
API_VERSION = "2022-11-28"


def raw_content_url(owner: str, repo: str, branch: str, path: str) -> str:
    """Return the URL serving the raw bytes of ``path`` on ``branch``."""
    return f"{RAW_CONTENT_BASE}/{owner}/{repo}/{branch}/{quote(path)}"


def build_client(
    token: str = "",
    base_url: str = DEFAULT_GITHUB_API_URL,
    timeout: float = DEFAULT_REQUEST_TIMEOUT,
) -> httpx.Client:
    """Create an ``httpx.Client`` preconfigured for the GitHub REST API."""
    headers = {
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": API_VERSION,
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.Client(base_url=base_url, headers=headers, timeout=timeout)


class GitHubResolver:
    """Resolves a repository's default branch and lists matching files.

    Parameters
    ----------
    client : httpx.Client
        Client whose ``base_url`` points at the GitHub REST API. Build one
        with :func:`build_client`.
    """

    def __init__(self, client: httpx.Client) -> None:
        self.client = client

    # -- raw API calls -------------------------------------------------------

    def resolve_default_branch(self, owner: str, repo: str) -> str:
        data = self._get_json(f"/repos/{owner}/{repo}")
        branch = data.get("default_branch") if isinstance(data, dict) else None
        if not branch:
            raise ListingError(f"Repository {owner}/{repo} has no default branch")
        return branch

    def get_recursive_tree(self, owner: str, repo: str, branch: str) -> list[dict]:
        """Return every tree entry of ``branch`` in a single recursive listing."""
        data = self._get_json(
            f"/repos/{owner}/{repo}/git/trees/{quote(branch, safe='')}",
            params={"recursive": "1"},
        )
        if not isinstance(data, dict) or not isinstance(data.get("tree"), list):
            raise ListingError(f"Malformed tree response for {owner}/{repo}@{branch}")
        if data.get("truncated"):
            raise ListingError(
                f"Tree listing for {owner}/{repo}@{branch} was truncated by GitHub; "
                "nested files would be missed"
            )
        return data["tree"]

    # -- listing -------------------------------------------------------------

    def list_files(
        self,
        owner: str,
        repo: str,
        prefix: str,
        extension: str,
    ) -> tuple[str, list[FileDescriptor]]:
        """List blobs under ``prefix`` ending in ``extension`` on the default branch.

        Returns:
            The resolved branch name and the matching descriptors, in tree order.

        Raises:
            ListingError: If ``extension`` is empty or the repository cannot
                be listed.
        """
        if not extension:
            raise ListingError("File extension filter is not set")

        branch = self.resolve_default_branch(owner, repo)
        tree = self.get_recursive_tree(owner, repo, branch)

        files: list[FileDescriptor] = []
        for item in tree:
            path = item.get("path")
            sha = item.get("sha")
            if not path or not sha or item.get("type") != "blob":
                continue
            if not path.startswith(prefix) or not path.endswith(extension):
                continue
            files.append(
                FileDescriptor(
                    path=path,
                    fingerprint=sha,
                    content_ref=raw_content_url(owner, repo, branch, path),
                )
            )

        logger.info(
            "Listed %d matching file(s) of %d tree entries in %s/%s@%s",
            len(files), len(tree), owner, repo, branch,
        )
        return branch, files

    # -- helpers -------------------------------------------------------------

    def _get_json(self, url: str, params: dict | None = None):
        try:
            resp = self.client.get(url, params=params)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            raise ListingError(
                f"GitHub returned {e.response.status_code} for {e.request.url}"
            ) from e
        except httpx.HTTPError as e:
            raise ListingError(f"GitHub request failed: {e}") from e
        except ValueError as e:
            raise ListingError(f"GitHub returned invalid JSON for {url}: {e}") from e
