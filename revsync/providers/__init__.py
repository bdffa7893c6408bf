"""Remote repository backends for revsync.

Supports the GitHub CLI (``gh``) and the GitHub REST API.
"""

from .base import RemoteRepository
from .registry import get_remote_repository, BACKENDS

__all__ = ["RemoteRepository", "get_remote_repository", "BACKENDS"]
