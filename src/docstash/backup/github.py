"""Backup of the scraped corpus to a GitHub repository as one commit per scrape.

Uses the git data API so that N files land in a single atomic commit:

  GET  /repos/{repo}                      default branch
  GET  /repos/{repo}/git/ref/heads/{b}    parent commit (404/409 → empty repo)
  GET  /repos/{repo}/git/commits/{sha}    base tree
  POST /repos/{repo}/git/blobs            one blob per file (base64)
  POST /repos/{repo}/git/trees            base tree + new blobs
  POST /repos/{repo}/git/commits          commit (no parent for an empty repo)
  PATCH/POST /repos/{repo}/git/refs       advance or create the branch ref

The token is sent in the Authorization header only; it never appears in
exceptions or log output.
"""

from __future__ import annotations

import base64
import json
import logging
import socket
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from docstash.errors import BackupError

logger = logging.getLogger(__name__)

API_URL = "https://api.github.com"
_USER_AGENT = "docstash/0.1"
_TIMEOUT = 30
_FILE_MODE = "100644"


@dataclass(frozen=True)
class BackupFile:
    path: str
    content: str


class BackupStore(ABC):
    """Remote version-controlled store receiving scrape snapshots."""

    @abstractmethod
    def commit_batch(self, files: list[BackupFile], message: str) -> str:
        """Publish *files* as one commit and return the commit id.

        All files land together or not at all; a partially written batch must
        never become visible.

        Raises:
            BackupError: On any remote or transport failure.
        """

    @abstractmethod
    def read_file(self, path: str) -> str | None:
        """Return the current content of *path*, or None if absent.

        Lookup failures are reported as None rather than raised.
        """

    def location(self, domain: str) -> str:
        """Return a human-readable location of *domain* in the backup store.

        Shown to the user after a successful commit; the default is the bare
        domain id.
        """
        return domain


class _HttpStatusError(Exception):
    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status


class GitHubBackup(BackupStore):
    """Commit batches to ``owner/repo`` on GitHub.

    Args:
        token: GitHub token with ``contents:write`` on the repository.
        repo: Full repository name, ``owner/repo``.
        branch: Target branch; defaults to the repository's default branch.
        api_url: API root (GitHub Enterprise installs differ).
    """

    def __init__(
        self,
        token: str,
        repo: str,
        branch: str | None = None,
        api_url: str = API_URL,
        timeout: float = _TIMEOUT,
    ) -> None:
        owner, sep, name = repo.partition("/")
        if not sep or not owner or not name or "/" in name:
            raise BackupError(f"GitHub repository must be 'owner/repo', got '{repo}'")
        self._token = token
        self.repo = repo
        self.branch = branch
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    def tree_url(self, domain: str) -> str:
        """Browser URL of *domain*'s folder on the target branch."""
        return f"https://github.com/{self.repo}/tree/{self.branch or 'main'}/{domain}"

    def location(self, domain: str) -> str:
        return self.tree_url(domain)

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def commit_batch(self, files: list[BackupFile], message: str) -> str:
        """Create blobs, a tree and a commit for *files*, then move the branch.

        An empty repository (no commits yet) gets a root commit and a new ref.

        Raises:
            BackupError: On any API failure.
        """
        try:
            branch = self.branch or self._default_branch()
            self.branch = branch
            parent_sha, base_tree_sha = self._head(branch)

            tree_items = [
                {
                    "path": f.path,
                    "mode": _FILE_MODE,
                    "type": "blob",
                    "sha": self._create_blob(f.content),
                }
                for f in files
            ]

            tree_body: dict[str, Any] = {"tree": tree_items}
            if base_tree_sha:
                tree_body["base_tree"] = base_tree_sha
            tree = self._api("POST", f"/repos/{self.repo}/git/trees", tree_body)

            commit = self._api(
                "POST",
                f"/repos/{self.repo}/git/commits",
                {
                    "message": message,
                    "tree": tree["sha"],
                    "parents": [parent_sha] if parent_sha else [],
                },
            )
            commit_sha = str(commit["sha"])

            if parent_sha:
                self._api(
                    "PATCH",
                    f"/repos/{self.repo}/git/refs/heads/{branch}",
                    {"sha": commit_sha},
                )
            else:
                self._api(
                    "POST",
                    f"/repos/{self.repo}/git/refs",
                    {"ref": f"refs/heads/{branch}", "sha": commit_sha},
                )
        except _HttpStatusError as exc:
            raise BackupError(
                f"GitHub API error ({exc.status}) for {self.repo}: {exc}", {"status": exc.status}
            ) from None
        except (KeyError, TypeError) as exc:
            raise BackupError(f"Unexpected GitHub API response for {self.repo}: {exc}") from exc

        logger.info("Committed %d files to %s@%s (%s)", len(files), self.repo, branch, commit_sha[:7])
        return commit_sha

    def _default_branch(self) -> str:
        data = self._api("GET", f"/repos/{self.repo}")
        return str(data.get("default_branch") or "main")

    def _head(self, branch: str) -> tuple[str | None, str | None]:
        """Return (parent commit sha, base tree sha), or (None, None) for an empty repo."""
        try:
            ref = self._api("GET", f"/repos/{self.repo}/git/ref/heads/{branch}")
        except _HttpStatusError as exc:
            if exc.status in (404, 409) or "empty" in str(exc).lower():
                logger.info("Repository %s has no %s branch yet; creating root commit", self.repo, branch)
                return None, None
            raise
        parent_sha = str(ref["object"]["sha"])
        commit = self._api("GET", f"/repos/{self.repo}/git/commits/{parent_sha}")
        return parent_sha, str(commit["tree"]["sha"])

    def _create_blob(self, content: str) -> str:
        blob = self._api(
            "POST",
            f"/repos/{self.repo}/git/blobs",
            {
                "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
                "encoding": "base64",
            },
        )
        return str(blob["sha"])

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def read_file(self, path: str) -> str | None:
        """Return the decoded content of *path* on the target branch, or None."""
        query = f"?ref={urllib.parse.quote(self.branch)}" if self.branch else ""
        try:
            data = self._api(
                "GET", f"/repos/{self.repo}/contents/{urllib.parse.quote(path)}{query}"
            )
        except (_HttpStatusError, BackupError) as exc:
            logger.debug("read_file(%s) failed: %s", path, exc)
            return None
        content = data.get("content")
        if not isinstance(content, str) or not content:
            return None
        try:
            return base64.b64decode(content).decode("utf-8")
        except ValueError:
            return None

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _api(self, method: str, path: str, body: dict[str, Any] | None = None) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": _USER_AGENT,
            "X-GitHub-Api-Version": "2022-11-28",
        }
        data = None
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"
        request = urllib.request.Request(
            f"{self.api_url}{path}", data=data, headers=headers, method=method
        )
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                raw = response.read()
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
            raise _HttpStatusError(exc.code, _error_message(detail) or str(exc.reason)) from None
        except urllib.error.URLError as exc:
            raise BackupError(f"Network error contacting GitHub: {exc.reason}") from exc
        except (socket.timeout, TimeoutError) as exc:
            raise BackupError(f"GitHub {method} {path} timed out after {self.timeout}s") from exc
        try:
            parsed = json.loads(raw.decode("utf-8")) if raw else {}
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise BackupError(f"Malformed GitHub response for {method} {path}") from exc
        return parsed if isinstance(parsed, dict) else {"items": parsed}


def _error_message(body: str) -> str:
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError:
        return body
    if isinstance(parsed, dict):
        return str(parsed.get("message") or body)
    return body
