"""Abstract contract for reaching the remote review platform."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import ClassVar

from ..review_types import (
    PRCommitWire,
    PRFileWire,
    PRInfoWire,
    RemoteReviewCommentWire,
    RepoIdentifier,
    ReviewVerdict,
)


class RemoteRepository(ABC):
    """Abstract base for remote repository backends (gh CLI, REST API, test doubles).

    Each backend implements:
    - Availability checks (is_installed, is_authenticated)
    - Fork detection (get_repo_fork_parent)
    - PR metadata reads returning the wire shapes of ``review_types``
    - Review writes (create_review_comment, submit_review)
    - Local branch materialization (checkout_branch)

    ``repo`` arguments select another repository than the local one (for
    example the fork parent); None means the repository of the workspace.

    Failures are raised as NotFoundError, RemoteUnavailableError or
    TransportError.
    """

    # Backend identifier (e.g., "gh", "github")
    name: ClassVar[str] = "unknown"

    # Guidance surfaced with RemoteUnavailableError
    install_hint: ClassVar[str] = ""
    login_hint: ClassVar[str] = ""

    def __init__(self, cwd: Path | None = None) -> None:
        self.cwd = cwd

    @abstractmethod
    async def is_installed(self) -> bool:
        """Return True if the backend's tooling is available."""

    @abstractmethod
    async def is_authenticated(self) -> bool:
        """Return True if the backend holds valid credentials."""

    @abstractmethod
    async def get_repo_fork_parent(self) -> RepoIdentifier | None:
        """Return the parent repository when the local repository is a fork."""

    @abstractmethod
    async def get_pr_info(self, number: int, repo: RepoIdentifier | None = None) -> PRInfoWire:
        """Fetch PR headline metadata."""

    @abstractmethod
    async def get_pr_files(self, number: int, repo: RepoIdentifier | None = None) -> list[PRFileWire]:
        """Fetch the files changed by a PR."""

    @abstractmethod
    async def get_pr_commits(self, number: int, repo: RepoIdentifier | None = None) -> list[PRCommitWire]:
        """Fetch the commits of a PR."""

    @abstractmethod
    async def get_pr_review_comments(
        self, number: int, repo: RepoIdentifier | None = None
    ) -> list[RemoteReviewCommentWire]:
        """Fetch line-anchored review comments of a PR."""

    @abstractmethod
    async def get_current_pr_number(self, repo: RepoIdentifier | None = None) -> int | None:
        """Return the PR whose head is the checked-out branch, or None."""

    @abstractmethod
    async def list_pull_requests(
        self, limit: int = 10, state: str = "all", repo: RepoIdentifier | None = None
    ) -> list[PRInfoWire]:
        """List recent PRs."""

    @abstractmethod
    async def create_review_comment(
        self,
        number: int,
        body: str,
        path: str | None = None,
        line: int | None = None,
        repo: RepoIdentifier | None = None,
    ) -> int | None:
        """Create a comment on a PR, anchored to ``path``/``line`` when given.

        Returns:
            The created remote comment id, or None if the backend cannot report it
        """

    @abstractmethod
    async def submit_review(
        self,
        number: int,
        verdict: ReviewVerdict,
        body: str | None = None,
        repo: RepoIdentifier | None = None,
    ) -> None:
        """Submit a review verdict for the whole PR."""

    @abstractmethod
    async def checkout_branch(
        self, number: int, local_branch: str, repo: RepoIdentifier | None = None
    ) -> None:
        """Materialize the PR head as ``local_branch``.

        An existing local branch is checked out and fast-forwarded; otherwise
        it is created from the remote PR head.
        """


REACTION_KEYS = ("+1", "-1", "laugh", "confused", "heart", "hooray", "rocket", "eyes")


def normalize_review_comment(raw: dict) -> RemoteReviewCommentWire:
    """Reduce a REST review-comment payload to the wire shape."""
    reactions = raw.get("reactions") or {}
    user = raw.get("user") or {}
    return RemoteReviewCommentWire(
        id=raw["id"],
        path=raw.get("path", ""),
        line=raw.get("line"),
        original_line=raw.get("original_line"),
        body=raw.get("body") or "",
        user={"login": user.get("login", "unknown")},
        created_at=raw.get("created_at", ""),
        diff_hunk=raw.get("diff_hunk") or "",
        side=raw.get("side") or "RIGHT",
        in_reply_to_id=raw.get("in_reply_to_id"),
        reactions={k: int(reactions[k]) for k in REACTION_KEYS if reactions.get(k)},
    )
