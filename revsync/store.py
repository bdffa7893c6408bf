"""AnnotationStore: workspace-local JSON persistence of review comments.

Data format: a single JSON document (``.review-annotations.json`` at the
workspace root) holding a version tag and a mapping from file path to the
ordered list of top-level comments on that file. Replies live inside their
parent. Every save rewrites the whole document.
"""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path

from .config import STORE_VERSION
from .errors import PersistenceError, ValidationError
from .review_types import ReviewComment
from .workspace import WorkspaceContext

logger = logging.getLogger(__name__)

CommentMap = dict[str, list[ReviewComment]]


class AnnotationStore:
    """Loads and saves the comment mapping for one workspace.

    Without a workspace root every operation is a logged no-op: loads return
    empty results and saves return without writing.
    """

    def __init__(self, context: WorkspaceContext):
        self._context = context

    @property
    def path(self) -> Path | None:
        return self._context.store_path

    async def load(self) -> CommentMap:
        """Return the stored mapping, or an empty one if absent or unreadable."""
        path = self.path
        if path is None:
            logger.warning("No workspace root, starting with no comments")
            return {}
        try:
            raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning("Could not read %s (%s), starting clean", path, e)
            return {}
        try:
            return self._decode(json.loads(raw))
        except (json.JSONDecodeError, ValidationError, AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring unparsable annotation store %s: %s", path, e)
            return {}

    async def save(self, comments: CommentMap) -> None:
        """Serialize the entire mapping, replacing the previous document atomically.

        Raises:
            PersistenceError: If the filesystem rejects the write
        """
        path = self.path
        if path is None:
            logger.warning("No workspace root, cannot save comments")
            return
        content = json.dumps(self._encode(comments), indent=2, ensure_ascii=False)
        try:
            await asyncio.to_thread(self._write_atomic, path, content)
        except OSError as e:
            logger.error("Failed to save comments to %s: %s", path, e)
            raise PersistenceError(f"Failed to save comments to {path}: {e}") from e

    async def save_file_comments(self, file_path: str, comments: list[ReviewComment]) -> None:
        """Replace one file's comments (read-modify-write of the whole store)."""
        all_comments = await self.load()
        all_comments[file_path] = comments
        await self.save(all_comments)

    async def load_file_comments(self, file_path: str) -> list[ReviewComment]:
        all_comments = await self.load()
        return all_comments.get(file_path, [])

    async def exists(self) -> bool:
        path = self.path
        if path is None:
            return False
        return await asyncio.to_thread(path.is_file)

    async def clear(self) -> None:
        """Delete the store file. Failures are logged, not raised."""
        path = self.path
        if path is None:
            return
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            logger.error("Failed to clear comments storage %s: %s", path, e)

    @staticmethod
    def _write_atomic(path: Path, content: str) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    @staticmethod
    def _encode(comments: CommentMap) -> dict:
        return {
            "version": STORE_VERSION,
            "comments": {
                file_path: [c.to_dict() for c in file_comments]
                for file_path, file_comments in comments.items()
            },
        }

    @staticmethod
    def _decode(data) -> CommentMap:
        if not isinstance(data, dict):
            raise ValueError(f"expected an object, got {type(data).__name__}")
        version = data.get("version")
        if version != STORE_VERSION:
            logger.info("Reading annotation store version %s", version)
        comments = data.get("comments", {})
        if not isinstance(comments, dict):
            raise ValueError("'comments' must be an object")
        result: CommentMap = {}
        for file_path, file_comments in comments.items():
            if not isinstance(file_comments, list):
                raise ValueError(f"comments for {file_path} must be a list")
            result[file_path] = [ReviewComment.from_dict(c) for c in file_comments]
        return result
