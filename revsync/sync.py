"""RemoteSyncAdapter: reconciliation between local and remote review comments.

Pull: remote review comments are mapped to local ``ReviewComment`` values
(id ``remote-<id>``) and handed back to the caller for merging.

Push: local comments without a remote id are created on the PR one by one,
and the created remote id is recorded on the local comment right away so a
later batch does not push it again. Alternatively a single review verdict is
submitted for the whole PR.
"""

import logging
import re

from .comments import CommentLifecycleManager
from .errors import NotFoundError, ReviewSyncError, TransportError, ValidationError
from .pr_service import PRMetadataService
from .review_types import (
    REVIEW_VERDICTS,
    RemoteReviewComment,
    RepoIdentifier,
    ReviewComment,
    ReviewCommentSuggestion,
    ReviewVerdict,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

_SUGGESTION_BLOCK = re.compile(r"```suggestion[^\n]*\n(.*?)```\n*", re.DOTALL)


def parse_suggestion_body(body: str) -> tuple[str | None, str]:
    """Split a remote body into (suggested text, remaining free text).

    The suggested text is None when the body has no fenced suggestion block.
    """
    body = body.replace("\r\n", "\n")
    match = _SUGGESTION_BLOCK.search(body)
    if not match:
        return None, body
    suggested = match.group(1)
    if suggested.endswith("\n"):
        suggested = suggested[:-1]
    remainder = (body[: match.start()] + body[match.end():]).strip()
    return suggested, remainder


def render_comment_body(comment: ReviewComment) -> str:
    """Render the remote body: a fenced suggestion block followed by the free text."""
    if comment.suggestion is None:
        return comment.body
    block = f"```suggestion\n{comment.suggestion.suggested}\n```"
    return f"{block}\n\n{comment.body}" if comment.body else block


def to_review_comment(remote: RemoteReviewComment) -> ReviewComment:
    suggested, body = parse_suggestion_body(remote.body)
    suggestion = None
    if suggested is not None:
        # The remote API does not expose the text being replaced
        suggestion = ReviewCommentSuggestion(original="", suggested=suggested)
    return ReviewComment(
        id=ReviewComment.remote_id(remote.id),
        file_path=remote.path,
        line_number=max(1, remote.line),
        author=remote.author,
        body=body,
        type="suggestion" if suggestion else "general",
        created_at=parse_timestamp(remote.created_at),
        suggestion=suggestion,
        remote_comment_id=remote.id,
    )


class RemoteSyncAdapter:
    """Pushes local comments to a PR and imports the PR's comments."""

    def __init__(self, comments: CommentLifecycleManager, pr_service: PRMetadataService):
        self._comments = comments
        self._pr_service = pr_service

    async def get_current_pr_number(self) -> int | None:
        return await self._pr_service.get_current_pr_number()

    async def import_remote_comments(self, number: int) -> list[ReviewComment]:
        """Fetch a PR's review comments as local comments.

        Replies whose parent is in the same batch are nested under it. No
        deduplication against local state happens here.
        """
        remote_comments = await self._pr_service.get_pr_comments(number)
        # remote id -> top-level comment of its thread
        thread_roots: dict[int, ReviewComment] = {}
        top_level: list[ReviewComment] = []
        for remote in remote_comments:
            local = to_review_comment(remote)
            root = thread_roots.get(remote.in_reply_to_id) if remote.in_reply_to_id else None
            if root is not None:
                root.replies.append(local)
            else:
                root = local
                top_level.append(local)
            thread_roots[remote.id] = root
        logger.info("Imported %d review comment(s) from PR #%d", len(remote_comments), number)
        return top_level

    async def push_comment(self, comment: ReviewComment, pr_number: int) -> int | None:
        """Create ``comment`` on the PR and record the remote id locally.

        Returns:
            The remote comment id, or None if the backend did not report one
        """
        await self._pr_service.ensure_available()
        target = await self._pr_service.resolve_target_repo()
        return await self._push(comment, pr_number, target)

    async def _push(self, comment: ReviewComment, pr_number: int, target: RepoIdentifier | None) -> int | None:
        remote = self._pr_service.remote
        body = render_comment_body(comment)
        try:
            remote_id = await remote.create_review_comment(
                pr_number, body, path=comment.file_path, line=comment.line_number, repo=target
            )
        except TransportError as e:
            # Lines outside the PR diff cannot carry an inline comment
            logger.warning(
                "Inline comment on %s:%d rejected (%s), posting on the PR instead",
                comment.file_path, comment.line_number, e,
            )
            located = f"**{comment.file_path}:{comment.line_number}**\n\n{body}"
            remote_id = await remote.create_review_comment(pr_number, located, repo=target)
        if remote_id is not None:
            await self._comments.mark_synced(comment.id, remote_id)
        return remote_id

    async def push_all_unsynced(
        self,
        pr_number: int | None = None,
        review_event: ReviewVerdict | None = None,
        body: str | None = None,
    ) -> int:
        """Push every unresolved comment that has no remote id.

        With ``review_event`` a single review verdict is submitted for the PR
        and the number of candidate comments is returned. Without it, each
        comment is pushed in turn; a failing push is logged and skipped, and
        the number of successful pushes is returned.
        """
        if review_event is not None and review_event not in REVIEW_VERDICTS:
            raise ValidationError(f"Unknown review verdict: {review_event!r}")
        if pr_number is None:
            pr_number = await self.get_current_pr_number()
            if pr_number is None:
                raise NotFoundError("No PR found for current branch")

        candidates = [c for c in self._comments.get_unresolved_comments() if c.remote_comment_id is None]

        await self._pr_service.ensure_available()
        target = await self._pr_service.resolve_target_repo()

        if review_event is not None:
            await self._pr_service.remote.submit_review(pr_number, review_event, body=body, repo=target)
            logger.info("Submitted %s review on PR #%d (%d pending comment(s))", review_event, pr_number, len(candidates))
            return len(candidates)

        success_count = 0
        for comment in candidates:
            try:
                await self._push(comment, pr_number, target)
            except ReviewSyncError as e:
                logger.warning("Failed to push comment %s: %s", comment.id, e)
                continue
            success_count += 1
        logger.info("Pushed %d of %d comment(s) to PR #%d", success_count, len(candidates), pr_number)
        return success_count
