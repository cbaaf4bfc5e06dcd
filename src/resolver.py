"""
Revision Resolver - looks up the head commit of a remote git repository.

Runs ``git ls-remote <remote> HEAD`` through GitPython, so only the ref
advertisement is fetched: no objects are transferred and nothing touches
the disk. HTTP(S) credentials are passed in the remote URL.
"""

import asyncio
import logging
from typing import Optional
from urllib.parse import quote, urlsplit, urlunsplit

import git
from git.exc import GitCommandError, GitCommandNotFound

from repository import Repository

logger = logging.getLogger(__name__)

REDACTED = "***"

# Never let git fall back to an interactive credential prompt
GIT_ENV = {"GIT_TERMINAL_PROMPT": "0", "GIT_ASKPASS": "true"}

AUTH_FAILURE_MARKERS = (
    "authentication failed",
    "could not read username",
    "could not read password",
    "invalid username or password",
    "returned error: 401",
    "returned error: 403",
)
NOT_FOUND_MARKERS = (
    "repository not found",
    "not found",
    "does not appear to be a git repository",
    "does not exist",
)


class ResolutionError(Exception):
    """Raised when the head commit of a remote cannot be resolved."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"failed to resolve latest commit of {url}: {reason}")


def authenticated_url(remote_url: str, username: str, token: str) -> str:
    """Embed basic-auth credentials into an HTTP(S) remote URL."""
    parts = urlsplit(remote_url)
    if parts.scheme not in ("http", "https") or not (username or token):
        return remote_url

    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    userinfo = f"{quote(username, safe='')}:{quote(token, safe='')}"
    return urlunsplit(parts._replace(netloc=f"{userinfo}@{host}"))


def scrub(text: str, repo: Repository) -> str:
    """Remove the repository's access token from ``text``."""
    token = repo.access_token
    if not token:
        return text
    for secret in {quote(token, safe=""), token}:
        text = text.replace(secret, REDACTED)
    return text


def stderr_text(error: GitCommandError) -> str:
    """Return git's stderr without GitPython's ``stderr: '...'`` wrapping."""
    text = error.stderr if isinstance(error.stderr, str) else ""
    text = text.strip()
    if text.startswith("stderr:"):
        text = text[len("stderr:") :].strip().strip("'").strip()
    return text


def classify_failure(stderr: str) -> str:
    """Turn git's stderr into a short failure reason."""
    lowered = stderr.lower()
    if "timeout" in lowered and "did not complete" in lowered:
        return "timed out"
    if any(marker in lowered for marker in AUTH_FAILURE_MARKERS):
        return "authentication failed"
    if any(marker in lowered for marker in NOT_FOUND_MARKERS):
        return "repository not found"
    return stderr.strip() or "git ls-remote failed"


def parse_head(output: str) -> Optional[str]:
    """Return the object id of HEAD from ``git ls-remote`` output."""
    for line in output.splitlines():
        parts = line.split()
        if len(parts) == 2 and parts[1] == "HEAD":
            return parts[0]
    return None


class RevisionResolver:
    """
    Resolves the latest commit of a repository's default branch.

    Each call runs its own git process; connections are never shared
    between repositories. Failures are not retried.
    """

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout

    def _ls_remote(self, repo: Repository) -> str:
        url = authenticated_url(repo.remote_url, repo.username, repo.access_token)
        return git.cmd.Git().ls_remote(
            url,
            "HEAD",
            env=GIT_ENV,
            kill_after_timeout=self.timeout,
        )

    async def resolve_latest(self, repo: Repository) -> str:
        """
        Resolve the commit id of the remote's HEAD.

        Args:
            repo: Repository to resolve, including its credentials.

        Returns:
            The head commit id as a hex string.

        Raises:
            ResolutionError: On authentication, network or lookup failure.
        """
        try:
            output = await asyncio.to_thread(self._ls_remote, repo)
        except GitCommandNotFound as e:
            raise ResolutionError(repo.remote_url, "git executable not found") from e
        except GitCommandError as e:
            reason = classify_failure(scrub(stderr_text(e), repo))
            raise ResolutionError(repo.remote_url, reason) from None

        commit = parse_head(output)
        if commit is None:
            raise ResolutionError(repo.remote_url, "remote has no HEAD")

        logger.debug(f"Resolved HEAD of {repo.remote_url} to {commit}")
        return commit
