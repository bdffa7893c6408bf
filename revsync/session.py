"""Wiring of the review engine for one workspace."""

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from .comments import CommentLifecycleManager, ThreadRegistry
from .config import REMOTE_BACKEND, WORKSPACE_ROOT
from .editor import FileEditor
from .pr_service import PRMetadataService
from .providers import get_remote_repository
from .store import AnnotationStore
from .sync import RemoteSyncAdapter
from .workspace import WorkspaceContext


@dataclass
class ReviewSession:
    context: WorkspaceContext
    store: AnnotationStore
    comments: CommentLifecycleManager
    pr_service: PRMetadataService
    sync: RemoteSyncAdapter


async def open_session(
    root: Path | str | None = WORKSPACE_ROOT,
    backend: str = REMOTE_BACKEND,
    active_document: Callable[[], str | None] | None = None,
    threads: ThreadRegistry | None = None,
) -> ReviewSession:
    """Build every component for ``root`` and load the persisted comments."""
    context = await WorkspaceContext.discover(root, active_document)
    store = AnnotationStore(context)
    comments = await CommentLifecycleManager.open(store, context, FileEditor(context), threads)
    pr_service = PRMetadataService(get_remote_repository(backend, cwd=context.root))
    return ReviewSession(
        context=context,
        store=store,
        comments=comments,
        pr_service=pr_service,
        sync=RemoteSyncAdapter(comments, pr_service),
    )
