"""CommentLifecycleManager: the single authority mutating comment state."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable

from .editor import Editor
from .errors import (
    CommentNotFoundError,
    DocumentEditError,
    NotFoundError,
    PersistenceError,
    StaleAnchorError,
    ValidationError,
)
from .review_types import (
    COMMENT_TYPES,
    CommentType,
    LineRange,
    ReviewComment,
    ReviewCommentSuggestion,
)
from .store import AnnotationStore, CommentMap
from .workspace import WorkspaceContext

logger = logging.getLogger(__name__)


class ThreadRegistry(ABC):
    """UI-side registry of live comment-thread handles, keyed by comment id."""

    @abstractmethod
    def open_thread(self, comment: ReviewComment) -> None:
        """Show a thread for an unresolved comment."""

    @abstractmethod
    def close_thread(self, comment_id: str) -> None:
        """Dispose the thread for a comment, if one is open."""


class NullThreadRegistry(ThreadRegistry):
    """Used when no UI is attached."""

    def open_thread(self, comment: ReviewComment) -> None:
        pass

    def close_thread(self, comment_id: str) -> None:
        pass


class CommentLifecycleManager:
    """Creates, resolves and applies review comments.

    Holds an in-memory mirror of the AnnotationStore mapping and flushes the
    whole mapping after every mutation. Not safe for concurrent callers.
    """

    def __init__(
        self,
        store: AnnotationStore,
        context: WorkspaceContext,
        editor: Editor,
        threads: ThreadRegistry | None = None,
    ):
        self._store = store
        self._context = context
        self._editor = editor
        self._threads = threads or NullThreadRegistry()
        self._comments: CommentMap = {}

    @classmethod
    async def open(
        cls,
        store: AnnotationStore,
        context: WorkspaceContext,
        editor: Editor,
        threads: ThreadRegistry | None = None,
    ) -> "CommentLifecycleManager":
        """Create a manager and load the persisted comments."""
        manager = cls(store, context, editor, threads)
        await manager.reload()
        return manager

    async def reload(self) -> None:
        """Replace the in-memory mirror with the store's contents and reopen threads."""
        for comment in self._iter_all():
            self._threads.close_thread(comment.id)
        self._comments = await self._store.load()
        for comment in self._iter_top_level():
            if not comment.resolved:
                self._threads.open_thread(comment)

    async def add_comment(
        self,
        file_path: str,
        line_range: LineRange,
        body: str,
        type: CommentType = "general",
    ) -> ReviewComment:
        if type not in COMMENT_TYPES:
            raise ValidationError(f"Unknown comment type: {type!r}")
        if type == "suggestion":
            raise ValidationError("Use add_suggestion to create suggestion comments")
        comment = ReviewComment(
            id=ReviewComment.new_id(),
            file_path=self._context.relative_path(file_path),
            line_number=line_range.start,
            author=self._context.current_user,
            body=body,
            type=type,
        )
        return await self._insert(comment)

    async def add_suggestion(
        self,
        file_path: str,
        line_range: LineRange,
        original: str,
        suggested: str,
        reason: str = "",
    ) -> ReviewComment:
        comment = ReviewComment(
            id=ReviewComment.new_id(),
            file_path=self._context.relative_path(file_path),
            line_number=line_range.start,
            author=self._context.current_user,
            body=reason,
            type="suggestion",
            suggestion=ReviewCommentSuggestion(original=original, suggested=suggested),
        )
        return await self._insert(comment)

    async def apply_suggestion(self, comment_id: str, force: bool = False) -> None:
        """Write the suggested text over the anchor line, then resolve.

        Before writing, the anchor line must still contain the suggestion's
        original text; otherwise the comment is flagged outdated and
        StaleAnchorError is raised. ``force`` skips that check.

        Raises:
            CommentNotFoundError: Unknown id
            NotFoundError: The comment carries no suggestion
            ValidationError: Already resolved, or not the active document
            StaleAnchorError: The anchor line has drifted
            DocumentEditError: The editor refused the replacement
            PersistenceError: Saving the resolved state failed; the line is restored
        """
        comment = self._find(comment_id)
        if comment.suggestion is None:
            raise NotFoundError(f"Comment {comment_id} has no suggestion")
        if comment.resolved:
            raise ValidationError(f"Comment {comment_id} is already resolved")

        active = self._context.get_active_document()
        if active is not None and active != comment.file_path:
            raise ValidationError(
                f"Comment {comment_id} belongs to {comment.file_path}, active document is {active}"
            )

        if not force and comment.suggestion.original:
            current = await self._editor.get_line_text(comment.file_path, comment.line_number)
            if comment.suggestion.original not in current:
                comment.outdated = True
                await self._persist()
                raise StaleAnchorError(comment_id, comment.suggestion.original, current)

        try:
            previous = await self._editor.get_line_text(comment.file_path, comment.line_number)
            applied = await self._editor.replace_line(
                comment.file_path, comment.line_number, comment.suggestion.suggested
            )
        except NotFoundError as e:
            raise DocumentEditError(str(e)) from e
        if not applied:
            raise DocumentEditError(
                f"Failed to apply suggestion to {comment.file_path}:{comment.line_number}"
            )

        comment.outdated = False
        try:
            await self.resolve_comment(comment_id)
        except PersistenceError:
            # Document and store stay in step: undo the edit
            await self._editor.replace_line(comment.file_path, comment.line_number, previous)
            raise
        logger.info("Applied suggestion %s to %s:%d", comment_id, comment.file_path, comment.line_number)

    async def reject_suggestion(self, comment_id: str) -> None:
        """Resolve a suggestion without touching the document."""
        comment = self._find(comment_id)
        if comment.suggestion is None:
            raise NotFoundError(f"Comment {comment_id} has no suggestion")
        await self.resolve_comment(comment_id)

    async def resolve_comment(self, comment_id: str) -> None:
        comment = self._find(comment_id)
        self._threads.close_thread(comment_id)
        if comment.resolved:
            return
        comment.resolved = True
        try:
            await self._persist()
        except PersistenceError:
            comment.resolved = False
            raise

    async def mark_synced(self, comment_id: str, remote_comment_id: int) -> None:
        """Record the remote id of a pushed comment."""
        comment = self._find(comment_id)
        comment.remote_comment_id = remote_comment_id
        await self._persist()

    async def import_comments(self, comments: Iterable[ReviewComment]) -> int:
        """Merge imported comments, skipping ones already known by id or remote id.

        Returns:
            Number of comments added
        """
        known_ids = {c.id for c in self._iter_all()}
        known_remote = {c.remote_comment_id for c in self._iter_all() if c.remote_comment_id is not None}
        added = 0
        for comment in comments:
            if comment.id in known_ids or (
                comment.remote_comment_id is not None and comment.remote_comment_id in known_remote
            ):
                continue
            self._comments.setdefault(comment.file_path, []).append(comment)
            known_ids.add(comment.id)
            if comment.remote_comment_id is not None:
                known_remote.add(comment.remote_comment_id)
            if not comment.resolved:
                self._threads.open_thread(comment)
            added += 1
        if added:
            await self._persist()
        return added

    def get_unresolved_comments(self) -> list[ReviewComment]:
        return [c for c in self._iter_top_level() if not c.resolved]

    def get_file_comments(self, file_path: str) -> list[ReviewComment]:
        return list(self._comments.get(self._context.relative_path(file_path), []))

    def get_all_comments(self) -> CommentMap:
        return {path: list(comments) for path, comments in self._comments.items()}

    def get_comment(self, comment_id: str) -> ReviewComment:
        return self._find(comment_id)

    async def _insert(self, comment: ReviewComment) -> ReviewComment:
        file_comments = self._comments.setdefault(comment.file_path, [])
        file_comments.append(comment)
        try:
            await self._persist()
        except PersistenceError:
            file_comments.remove(comment)
            raise
        self._threads.open_thread(comment)
        return comment

    async def _persist(self) -> None:
        await self._store.save(self._comments)

    def _iter_top_level(self):
        for file_comments in self._comments.values():
            yield from file_comments

    def _iter_all(self):
        for comment in self._iter_top_level():
            yield comment
            yield from comment.replies

    def _find(self, comment_id: str) -> ReviewComment:
        for comment in self._iter_all():
            if comment.id == comment_id:
                return comment
        raise CommentNotFoundError(comment_id)
