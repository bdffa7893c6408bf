"""Shared test doubles."""

import pytest

from revsync.editor import Editor
from revsync.errors import NotFoundError, TransportError
from revsync.providers.base import RemoteRepository
from revsync.workspace import WorkspaceContext


class FakeRemoteRepository(RemoteRepository):
    """In-memory RemoteRepository that records every call.

    ``prs`` maps (repo full name or None, number) to a dict with ``info``,
    ``files``, ``commits`` and ``comments`` wire payloads.
    """

    name = "fake"
    install_hint = "install fake"
    login_hint = "login fake"

    def __init__(self, fork_parent=None, installed=True, authenticated=True):
        super().__init__(cwd=None)
        self.fork_parent = fork_parent
        self.installed = installed
        self.authenticated = authenticated
        self.prs: dict = {}
        self.current_pr: dict = {}
        self.calls: list[tuple] = []
        self.created: list[dict] = []
        self.reviews: list[dict] = []
        self.checkouts: list[tuple] = []
        self.fail_bodies: set[str] = set()
        self.reject_inline = False
        self.fail_files = False
        self.fail_commits = False
        self._next_id = 1000

    def add_pr(self, number, repo=None, info=None, files=None, commits=None, comments=None):
        self.prs[(repo, number)] = {
            "info": info if info is not None else make_pr_wire(number),
            "files": files or [],
            "commits": commits or [],
            "comments": comments or [],
        }

    def _pr(self, number, repo):
        key = (repo.full_name if repo else None, number)
        if key not in self.prs:
            raise NotFoundError(f"PR #{number} not found")
        return self.prs[key]

    async def is_installed(self):
        return self.installed

    async def is_authenticated(self):
        return self.authenticated

    async def get_repo_fork_parent(self):
        self.calls.append(("get_repo_fork_parent",))
        return self.fork_parent

    async def get_pr_info(self, number, repo=None):
        self.calls.append(("get_pr_info", number, repo))
        return self._pr(number, repo)["info"]

    async def get_pr_files(self, number, repo=None):
        self.calls.append(("get_pr_files", number, repo))
        if self.fail_files:
            raise TransportError("files failed")
        return self._pr(number, repo)["files"]

    async def get_pr_commits(self, number, repo=None):
        self.calls.append(("get_pr_commits", number, repo))
        if self.fail_commits:
            raise TransportError("commits failed")
        return self._pr(number, repo)["commits"]

    async def get_pr_review_comments(self, number, repo=None):
        self.calls.append(("get_pr_review_comments", number, repo))
        return self._pr(number, repo)["comments"]

    async def get_current_pr_number(self, repo=None):
        self.calls.append(("get_current_pr_number", repo))
        return self.current_pr.get(repo.full_name if repo else None)

    async def list_pull_requests(self, limit=10, state="all", repo=None):
        self.calls.append(("list_pull_requests", limit, state, repo))
        return [pr["info"] for (r, _), pr in self.prs.items() if r == (repo.full_name if repo else None)][:limit]

    async def create_review_comment(self, number, body, path=None, line=None, repo=None):
        self.calls.append(("create_review_comment", number, body, path, line, repo))
        if any(marker in body for marker in self.fail_bodies):
            raise TransportError("push rejected")
        if self.reject_inline and path is not None:
            raise TransportError("line is not part of the diff", diagnostic="HTTP 422")
        self._next_id += 1
        self.created.append({"id": self._next_id, "number": number, "body": body, "path": path, "line": line, "repo": repo})
        return self._next_id

    async def submit_review(self, number, verdict, body=None, repo=None):
        self.calls.append(("submit_review", number, verdict, body, repo))
        self.reviews.append({"number": number, "verdict": verdict, "body": body, "repo": repo})

    async def checkout_branch(self, number, local_branch, repo=None):
        self.calls.append(("checkout_branch", number, local_branch, repo))
        self.checkouts.append((number, local_branch, repo))


class FakeEditor(Editor):
    """Editor over an in-memory mapping of path -> list of lines."""

    def __init__(self, documents=None, refuse=False):
        self.documents: dict[str, list[str]] = documents or {}
        self.refuse = refuse

    async def get_line_text(self, path, line_number):
        lines = self.documents.get(path)
        if lines is None or not 1 <= line_number <= len(lines):
            raise NotFoundError(f"{path} has no line {line_number}")
        return lines[line_number - 1]

    async def replace_line(self, path, line_number, text):
        lines = self.documents.get(path)
        if self.refuse or lines is None or not 1 <= line_number <= len(lines):
            return False
        lines[line_number - 1] = text
        return True


def make_pr_wire(number, title="Translate docs", state="OPEN", author="alice", head="feature"):
    return {
        "number": number,
        "title": title,
        "state": state,
        "author": {"login": author},
        "createdAt": "2024-01-01T00:00:00Z",
        "updatedAt": "2024-01-02T00:00:00Z",
        "baseRefName": "main",
        "headRefName": head,
        "url": f"https://github.com/upstream/repo/pull/{number}",
        "body": "PR body",
    }


def make_remote_comment(comment_id, body, path="content/ko/docs/a.md", line=10, in_reply_to_id=None, author="bob"):
    return {
        "id": comment_id,
        "path": path,
        "line": line,
        "original_line": line,
        "body": body,
        "user": {"login": author},
        "created_at": "2024-01-03T10:00:00Z",
        "diff_hunk": "@@ -1,3 +1,3 @@",
        "side": "RIGHT",
        "in_reply_to_id": in_reply_to_id,
        "reactions": {"+1": 2},
    }


@pytest.fixture
def context(tmp_path):
    """Workspace context rooted at a temporary directory."""
    return WorkspaceContext(root=tmp_path.resolve(), current_user="tester")


@pytest.fixture
def fake_remote():
    return FakeRemoteRepository()


@pytest.fixture
def fake_editor():
    return FakeEditor()
