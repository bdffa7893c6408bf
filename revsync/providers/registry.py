"""Backend registry for selecting a RemoteRepository implementation."""

from pathlib import Path

from .base import RemoteRepository
from .gh_cli import GhCliRepository
from .github import GitHubApiRepository


BACKENDS: dict[str, type[RemoteRepository]] = {
    GhCliRepository.name: GhCliRepository,
    GitHubApiRepository.name: GitHubApiRepository,
}


def get_remote_repository(name: str, cwd: Path | None = None) -> RemoteRepository:
    """Return an instance of the named backend.

    Args:
        name: Backend identifier ("gh" or "github")
        cwd: Workspace directory the backend operates in

    Raises:
        ValueError: If no backend has that name
    """
    try:
        backend_cls = BACKENDS[name]
    except KeyError:
        raise ValueError(f"No remote backend named {name!r} (choose from {', '.join(BACKENDS)})")
    return backend_cls(cwd=cwd)
