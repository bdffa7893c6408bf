"""PRMetadataService: normalized, fork-aware access to pull-request metadata."""

import asyncio
import logging
import re

from .config import DEFAULT_LOCALE, DOC_EXTENSIONS, SLUG_MAX_LENGTH
from .errors import NotFoundError, RemoteUnavailableError
from .providers.base import RemoteRepository
from .review_types import (
    FileStatus,
    PRCommit,
    PRDetails,
    PRFileChange,
    PRInfo,
    PRInfoWire,
    RemoteReviewComment,
    RepoIdentifier,
)

logger = logging.getLogger(__name__)

# Latin letters, digits and Hangul survive; everything else becomes a hyphen
_SLUG_STRIP = re.compile(r"[^a-z0-9가-힣]+")


def title_to_slug(title: str, max_length: int = SLUG_MAX_LENGTH) -> str:
    """Lowercase a title, collapse disallowed runs to hyphens and cap its length."""
    slug = _SLUG_STRIP.sub("-", title.lower()).strip("-")
    return slug[:max_length].rstrip("-")


def branch_name_for(number: int, title: str) -> str:
    """Local branch name for a PR: ``pr-<number>/<slug>``."""
    slug = title_to_slug(title)
    return f"pr-{number}/{slug}" if slug else f"pr-{number}"


def normalize_status(status: str) -> FileStatus:
    """Map a platform change type onto added/modified/removed/renamed."""
    lowered = status.lower()
    if "add" in lowered:
        return "added"
    if "modif" in lowered or "change" in lowered:
        return "modified"
    if "delet" in lowered or "remov" in lowered:
        return "removed"
    if "renam" in lowered:
        return "renamed"
    return "modified"


def is_locale_path(path: str, locale: str) -> bool:
    lowered = path.lower()
    locale = locale.lower()
    return (
        f"content/{locale}/" in lowered
        or f"i18n/{locale}/" in lowered
        or re.search(rf"(^|[/_]){re.escape(locale)}[/_]", lowered) is not None
    )


def is_doc_file(path: str) -> bool:
    lowered = path.lower()
    return any(lowered.endswith(ext.lower()) for ext in DOC_EXTENSIONS)


class PRMetadataService:
    """Reads PR metadata through a RemoteRepository.

    When the local repository is a fork, queries are redirected to the parent
    repository, where PRs against the upstream project live. Remote failures
    propagate unchanged; nothing is retried or cached.
    """

    def __init__(self, remote: RemoteRepository):
        self._remote = remote
        self._available = False

    @property
    def remote(self) -> RemoteRepository:
        return self._remote

    async def ensure_available(self) -> None:
        """Check that the remote client is installed and authenticated.

        Raises:
            RemoteUnavailableError: With install or login guidance
        """
        if self._available:
            return
        if not await self._remote.is_installed():
            raise RemoteUnavailableError(
                f"Remote client '{self._remote.name}' is not installed",
                hint=self._remote.install_hint,
            )
        if not await self._remote.is_authenticated():
            raise RemoteUnavailableError(
                f"Remote client '{self._remote.name}' is not authenticated",
                hint=self._remote.login_hint,
            )
        self._available = True

    async def resolve_target_repo(self) -> RepoIdentifier | None:
        """Return the fork parent, or None to query the local repository."""
        parent = await self._remote.get_repo_fork_parent()
        if parent is not None:
            logger.info("Detected fork, using parent repo: %s", parent)
        return parent

    async def _target(self, repo: RepoIdentifier | None) -> RepoIdentifier | None:
        await self.ensure_available()
        return repo if repo is not None else await self.resolve_target_repo()

    async def get_pr_info(self, number: int, repo: RepoIdentifier | None = None) -> PRInfo:
        """Fetch PR headline metadata.

        Raises:
            NotFoundError: If the PR does not exist
        """
        return await self._fetch_info(number, await self._target(repo))

    async def _fetch_info(self, number: int, target: RepoIdentifier | None) -> PRInfo:
        data = await self._remote.get_pr_info(number, target)
        if not data:
            raise NotFoundError(f"PR #{number} not found")
        return self._to_pr_info(data)

    async def get_pr_files(self, number: int, repo: RepoIdentifier | None = None) -> list[PRFileChange]:
        return await self._fetch_files(number, await self._target(repo))

    async def _fetch_files(self, number: int, target: RepoIdentifier | None) -> list[PRFileChange]:
        files = await self._remote.get_pr_files(number, target)
        return [
            PRFileChange(
                path=f["path"],
                status=normalize_status(f.get("changeType") or "modified"),
                additions=f.get("additions") or 0,
                deletions=f.get("deletions") or 0,
                previous_path=f.get("previousPath"),
            )
            for f in files
        ]

    async def get_pr_commits(self, number: int, repo: RepoIdentifier | None = None) -> list[PRCommit]:
        return await self._fetch_commits(number, await self._target(repo))

    async def _fetch_commits(self, number: int, target: RepoIdentifier | None) -> list[PRCommit]:
        commits = await self._remote.get_pr_commits(number, target)
        result = []
        for c in commits:
            authors = c.get("authors") or []
            author = "unknown"
            if authors:
                author = authors[0].get("login") or authors[0].get("name") or "unknown"
            result.append(
                PRCommit(
                    sha=c.get("oid", ""),
                    message=c.get("messageHeadline", ""),
                    author=author,
                    date=c.get("committedDate", ""),
                )
            )
        return result

    async def get_pr_details(self, number: int) -> PRDetails | None:
        """Fetch info, files and commits concurrently.

        Returns None if the PR does not exist. Failures fetching files or
        commits degrade to empty lists.
        """
        target = await self._target(None)
        info, files, commits = await asyncio.gather(
            self._fetch_info(number, target),
            self._fetch_files(number, target),
            self._fetch_commits(number, target),
            return_exceptions=True,
        )
        if isinstance(info, NotFoundError):
            logger.warning("PR #%d not found", number)
            return None
        if isinstance(info, BaseException):
            raise info
        if isinstance(files, BaseException):
            logger.warning("Failed to fetch files for PR #%d: %s", number, files)
            files = []
        if isinstance(commits, BaseException):
            logger.warning("Failed to fetch commits for PR #%d: %s", number, commits)
            commits = []
        return PRDetails(info=info, files=files, commits=commits)

    async def get_pr_comments(
        self, number: int, repo: RepoIdentifier | None = None
    ) -> list[RemoteReviewComment]:
        """Fetch the PR's review comments for reconciliation."""
        target = await self._target(repo)
        raw_comments = await self._remote.get_pr_review_comments(number, target)
        result = []
        for c in raw_comments:
            user = c.get("user") or {}
            result.append(
                RemoteReviewComment(
                    id=int(c["id"]),
                    path=c.get("path", ""),
                    line=c.get("line") or c.get("original_line") or 1,
                    body=c.get("body") or "",
                    author=user.get("login", "unknown"),
                    created_at=c.get("created_at", ""),
                    diff_hunk=c.get("diff_hunk") or "",
                    original_line=c.get("original_line"),
                    side="LEFT" if c.get("side") == "LEFT" else "RIGHT",
                    in_reply_to_id=c.get("in_reply_to_id"),
                    reactions=dict(c.get("reactions") or {}),
                )
            )
        return result

    async def get_current_pr_number(self) -> int | None:
        """Resolve the PR for the checked-out branch: local repo first, then fork parent."""
        await self.ensure_available()
        number = await self._remote.get_current_pr_number(None)
        if number is not None:
            return number
        parent = await self.resolve_target_repo()
        if parent is None:
            return None
        return await self._remote.get_current_pr_number(parent)

    async def checkout_pr(self, number: int, title: str) -> str:
        """Check out the PR as ``pr-<number>/<slug(title)>``.

        Returns:
            The local branch name
        """
        target = await self._target(None)
        branch = branch_name_for(number, title)
        await self._remote.checkout_branch(number, branch, target)
        logger.info("Checked out PR #%d as %s", number, branch)
        return branch

    async def list_recent_prs(self, limit: int = 10, state: str = "all") -> list[PRInfo]:
        target = await self._target(None)
        pulls = await self._remote.list_pull_requests(limit, state, target)
        return [self._to_pr_info(p) for p in pulls]

    def get_reviewable_files(
        self, files: list[PRFileChange], locale: str = DEFAULT_LOCALE
    ) -> list[PRFileChange]:
        """Files under the locale's directory that are documentation files."""
        return [f for f in files if is_locale_path(f.path, locale) and is_doc_file(f.path)]

    @staticmethod
    def _to_pr_info(data: PRInfoWire) -> PRInfo:
        author = data.get("author") or {}
        return PRInfo(
            number=int(data["number"]),
            title=data.get("title", ""),
            state=(data.get("state") or "open").lower(),
            author=author.get("login") or "unknown",
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
            base_branch=data.get("baseRefName", ""),
            head_branch=data.get("headRefName", ""),
            url=data.get("url", ""),
            body=data.get("body") or "",
        )
