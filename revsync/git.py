"""Local git operations used by the remote repository providers."""

import asyncio
import logging
import re
from dataclasses import dataclass
from pathlib import Path

from .config import GIT_BINARY
from .errors import RemoteUnavailableError, TransportError
from .review_types import RepoIdentifier

logger = logging.getLogger(__name__)

# https://github.com/owner/repo(.git) or git@github.com:owner/repo(.git)
_REMOTE_URL_PATTERN = re.compile(r"[:/]([^/:]+)/([^/]+?)(?:\.git)?/?$")


@dataclass
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


async def run_command(args: list[str], cwd: Path | None = None) -> CommandResult:
    """Run a command without a shell and capture its output.

    Raises:
        FileNotFoundError: If the executable does not exist
    """
    logger.debug("Executing: %s", " ".join(args))
    proc = await asyncio.create_subprocess_exec(
        *args,
        cwd=str(cwd) if cwd else None,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await proc.communicate()
    return CommandResult(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


async def run_git(*args: str, cwd: Path | None = None) -> CommandResult:
    try:
        return await run_command([GIT_BINARY, *args], cwd=cwd)
    except FileNotFoundError:
        raise RemoteUnavailableError("git is not installed", hint="Install git and retry")


async def _check_git(*args: str, cwd: Path | None = None) -> str:
    result = await run_git(*args, cwd=cwd)
    if not result.ok:
        raise TransportError(f"git {' '.join(args)} failed", diagnostic=result.stderr)
    return result.stdout.strip()


async def is_installed() -> bool:
    try:
        result = await run_command([GIT_BINARY, "--version"])
    except FileNotFoundError:
        return False
    return result.ok


async def get_user_name(cwd: Path) -> str | None:
    """Return ``git config user.name``, or None when unset."""
    try:
        result = await run_git("config", "user.name", cwd=cwd)
    except RemoteUnavailableError:
        return None
    name = result.stdout.strip()
    return name if result.ok and name else None


async def current_branch(cwd: Path | None) -> str | None:
    result = await run_git("rev-parse", "--abbrev-ref", "HEAD", cwd=cwd)
    branch = result.stdout.strip()
    if not result.ok or not branch or branch == "HEAD":
        return None
    return branch


async def branch_exists(branch: str, cwd: Path | None) -> bool:
    result = await run_git("rev-parse", "--verify", "--quiet", f"refs/heads/{branch}", cwd=cwd)
    return result.ok


async def checkout(branch: str, cwd: Path | None) -> None:
    await _check_git("checkout", branch, cwd=cwd)


async def pull_fast_forward(cwd: Path | None) -> None:
    await _check_git("pull", "--ff-only", cwd=cwd)


async def fetch_ref(remote_url: str, ref: str, cwd: Path | None, local_branch: str | None = None) -> None:
    """Fetch ``ref`` from ``remote_url``, into ``local_branch`` if given, else FETCH_HEAD."""
    refspec = f"{ref}:{local_branch}" if local_branch else ref
    await _check_git("fetch", remote_url, refspec, cwd=cwd)


async def merge_fast_forward(ref: str, cwd: Path | None) -> None:
    await _check_git("merge", "--ff-only", ref, cwd=cwd)


async def origin_repo(cwd: Path | None) -> RepoIdentifier:
    """Identify the repository behind the ``origin`` remote."""
    url = await _check_git("remote", "get-url", "origin", cwd=cwd)
    return parse_remote_url(url)


def parse_remote_url(url: str) -> RepoIdentifier:
    """Parse an HTTPS or SSH remote URL into (owner, name).

    Raises:
        TransportError: If the URL does not look like a hosted repository
    """
    match = _REMOTE_URL_PATTERN.search(url.strip())
    if not match:
        raise TransportError("Cannot determine repository from remote URL", diagnostic=url)
    return RepoIdentifier(owner=match.group(1), name=match.group(2))
