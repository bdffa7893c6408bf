"""Explicit workspace context passed to every component."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from .config import DEFAULT_AUTHOR, STORE_FILENAME
from . import git

logger = logging.getLogger(__name__)


@dataclass
class WorkspaceContext:
    """Where the workspace lives, who is reviewing, and which document is active.

    ``root`` may be None when no workspace could be resolved; components then
    degrade to no-ops instead of failing. ``active_document`` returns a
    workspace-relative path, or None when nothing is open.
    """
    root: Path | None
    current_user: str = DEFAULT_AUTHOR
    active_document: Callable[[], str | None] | None = None
    store_filename: str = STORE_FILENAME

    @classmethod
    async def discover(
        cls,
        root: Path | str | None,
        active_document: Callable[[], str | None] | None = None,
    ) -> "WorkspaceContext":
        """Build a context for ``root``, looking up the reviewer from git."""
        resolved = Path(root).resolve() if root else None
        if resolved is not None and not resolved.is_dir():
            logger.warning("Workspace root %s is not a directory", resolved)
            resolved = None
        user = DEFAULT_AUTHOR
        if resolved is not None:
            user = await git.get_user_name(resolved) or DEFAULT_AUTHOR
        return cls(root=resolved, current_user=user, active_document=active_document)

    @property
    def store_path(self) -> Path | None:
        if self.root is None:
            return None
        return self.root / self.store_filename

    def relative_path(self, path: str | Path) -> str:
        """Normalize ``path`` to a forward-slash, workspace-relative key."""
        candidate = Path(path)
        if candidate.is_absolute() and self.root is not None:
            try:
                candidate = candidate.resolve().relative_to(self.root)
            except ValueError:
                pass
        return candidate.as_posix()

    def absolute_path(self, path: str) -> Path:
        candidate = Path(path)
        if candidate.is_absolute() or self.root is None:
            return candidate
        return self.root / candidate

    def get_active_document(self) -> str | None:
        if self.active_document is None:
            return None
        document = self.active_document()
        return self.relative_path(document) if document else None

