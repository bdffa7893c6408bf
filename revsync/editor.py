"""Editor collaborator: line-level reads and replacements on documents."""

import asyncio
import logging
from abc import ABC, abstractmethod

from .errors import NotFoundError
from .workspace import WorkspaceContext

logger = logging.getLogger(__name__)


class Editor(ABC):
    """Line-addressed access to documents. Line numbers are 1-based."""

    @abstractmethod
    async def get_line_text(self, path: str, line_number: int) -> str:
        """Return the text of a line without its line terminator.

        Raises:
            NotFoundError: If the document or the line does not exist
        """

    @abstractmethod
    async def replace_line(self, path: str, line_number: int, text: str) -> bool:
        """Replace the full text of a line. Returns False if the edit was refused."""


class FileEditor(Editor):
    """Edits documents directly on disk inside the workspace."""

    def __init__(self, context: WorkspaceContext):
        self._context = context

    def _read_lines(self, path: str) -> list[str]:
        target = self._context.absolute_path(path)
        try:
            with open(target, encoding="utf-8", newline="") as f:
                return f.read().splitlines(keepends=True)
        except FileNotFoundError:
            raise NotFoundError(f"Document not found: {path}")

    async def get_line_text(self, path: str, line_number: int) -> str:
        lines = await asyncio.to_thread(self._read_lines, path)
        if line_number < 1 or line_number > len(lines):
            raise NotFoundError(f"{path} has no line {line_number}")
        return lines[line_number - 1].rstrip("\r\n")

    async def replace_line(self, path: str, line_number: int, text: str) -> bool:
        try:
            return await asyncio.to_thread(self._replace, path, line_number, text)
        except (NotFoundError, OSError) as e:
            logger.error("Failed to edit %s:%d: %s", path, line_number, e)
            return False

    def _replace(self, path: str, line_number: int, text: str) -> bool:
        lines = self._read_lines(path)
        if line_number < 1 or line_number > len(lines):
            logger.warning("%s has no line %d", path, line_number)
            return False
        current = lines[line_number - 1]
        ending = current[len(current.rstrip("\r\n")):]
        lines[line_number - 1] = text + ending
        target = self._context.absolute_path(path)
        with open(target, "w", encoding="utf-8", newline="") as f:
            f.write("".join(lines))
        return True
