"""GitHub CLI backend.

Every call runs the ``gh`` binary with an argument vector (no shell), so
comment bodies are passed through verbatim without quoting or escaping.
"""

import json
import logging

from .. import git
from ..config import GH_BINARY, REVIEW_BODY
from ..errors import NotFoundError, RemoteUnavailableError, TransportError
from ..review_types import (
    PRCommitWire,
    PRFileWire,
    PRInfoWire,
    RemoteReviewCommentWire,
    RepoIdentifier,
    ReviewVerdict,
)
from .base import RemoteRepository, normalize_review_comment

logger = logging.getLogger(__name__)

_PR_FIELDS = "number,title,state,author,createdAt,updatedAt,baseRefName,headRefName,url,body"
_PR_LIST_FIELDS = "number,title,state,author,createdAt,updatedAt,baseRefName,headRefName,url"

_VERDICT_FLAGS = {
    "approve": "--approve",
    "comment": "--comment",
    "request-changes": "--request-changes",
}

_NOT_FOUND_MARKERS = (
    "could not resolve to a pullrequest",
    "no pull requests found",
    "http 404",
    "not found",
)
_AUTH_MARKERS = (
    "gh auth login",
    "not logged in",
    "authentication",
    "http 401",
    "bad credentials",
)


def _parse_json_stream(text: str) -> list:
    """Parse one or more concatenated JSON arrays (``gh api --paginate`` output)."""
    decoder = json.JSONDecoder()
    items: list = []
    pos = 0
    text = text.strip()
    while pos < len(text):
        value, pos = decoder.raw_decode(text, pos)
        if isinstance(value, list):
            items.extend(value)
        else:
            items.append(value)
        while pos < len(text) and text[pos].isspace():
            pos += 1
    return items


class GhCliRepository(RemoteRepository):
    """Remote repository reached through the GitHub CLI."""

    name = "gh"
    install_hint = "Install the GitHub CLI from https://cli.github.com/"
    login_hint = "Run `gh auth login` (https://cli.github.com/manual/gh_auth_login)"

    async def _gh(self, *args: str) -> str:
        try:
            result = await git.run_command([GH_BINARY, *args], cwd=self.cwd)
        except FileNotFoundError:
            raise RemoteUnavailableError("GitHub CLI (gh) is not installed", hint=self.install_hint)
        if not result.ok:
            raise self._classify_failure(args, result.stderr)
        return result.stdout

    async def _gh_json(self, *args: str):
        out = await self._gh(*args)
        try:
            return json.loads(out)
        except json.JSONDecodeError as e:
            raise TransportError(f"Malformed JSON from gh {args[0]}", diagnostic=out[:500]) from e

    def _classify_failure(self, args: tuple[str, ...], stderr: str) -> Exception:
        lowered = stderr.lower()
        command = " ".join(args[:2])
        if any(marker in lowered for marker in _AUTH_MARKERS):
            return RemoteUnavailableError(f"gh {command} is not authenticated", hint=self.login_hint)
        if any(marker in lowered for marker in _NOT_FOUND_MARKERS):
            return NotFoundError(f"gh {command}: {stderr.strip()}")
        return TransportError(f"gh {command} failed", diagnostic=stderr)

    @staticmethod
    def _repo_args(repo: RepoIdentifier | None) -> list[str]:
        return ["--repo", repo.full_name] if repo else []

    @staticmethod
    def _api_repo(repo: RepoIdentifier | None) -> str:
        # gh api expands the placeholders from the current directory's remote
        return repo.full_name if repo else "{owner}/{repo}"

    async def is_installed(self) -> bool:
        try:
            result = await git.run_command([GH_BINARY, "--version"])
        except FileNotFoundError:
            return False
        return result.ok

    async def is_authenticated(self) -> bool:
        try:
            result = await git.run_command([GH_BINARY, "auth", "status"], cwd=self.cwd)
        except FileNotFoundError:
            return False
        return result.ok

    async def get_repo_fork_parent(self) -> RepoIdentifier | None:
        data = await self._gh_json("repo", "view", "--json", "isFork,parent")
        parent = data.get("parent") if data.get("isFork") else None
        if not parent:
            return None
        return RepoIdentifier(owner=parent["owner"]["login"], name=parent["name"])

    async def get_pr_info(self, number: int, repo: RepoIdentifier | None = None) -> PRInfoWire:
        return await self._gh_json(
            "pr", "view", str(number), *self._repo_args(repo), "--json", _PR_FIELDS
        )

    async def get_pr_files(self, number: int, repo: RepoIdentifier | None = None) -> list[PRFileWire]:
        data = await self._gh_json("pr", "view", str(number), *self._repo_args(repo), "--json", "files")
        return data.get("files") or []

    async def get_pr_commits(self, number: int, repo: RepoIdentifier | None = None) -> list[PRCommitWire]:
        data = await self._gh_json("pr", "view", str(number), *self._repo_args(repo), "--json", "commits")
        return data.get("commits") or []

    async def get_pr_review_comments(
        self, number: int, repo: RepoIdentifier | None = None
    ) -> list[RemoteReviewCommentWire]:
        out = await self._gh(
            "api", "--paginate", f"repos/{self._api_repo(repo)}/pulls/{number}/comments?per_page=100"
        )
        try:
            raw_comments = _parse_json_stream(out)
        except json.JSONDecodeError as e:
            raise TransportError("Malformed JSON from gh api", diagnostic=out[:500]) from e
        return [normalize_review_comment(c) for c in raw_comments]

    async def get_current_pr_number(self, repo: RepoIdentifier | None = None) -> int | None:
        try:
            if repo is None:
                data = await self._gh_json("pr", "view", "--json", "number")
                return int(data["number"]) if data.get("number") else None
            branch = await git.current_branch(self.cwd)
            if branch is None:
                return None
            data = await self._gh_json(
                "pr", "list", "--repo", repo.full_name, "--head", branch,
                "--state", "open", "--limit", "1", "--json", "number",
            )
        except NotFoundError:
            return None
        return int(data[0]["number"]) if data else None

    async def list_pull_requests(
        self, limit: int = 10, state: str = "all", repo: RepoIdentifier | None = None
    ) -> list[PRInfoWire]:
        return await self._gh_json(
            "pr", "list", "--limit", str(limit), "--state", state,
            *self._repo_args(repo), "--json", _PR_LIST_FIELDS,
        )

    async def create_review_comment(
        self,
        number: int,
        body: str,
        path: str | None = None,
        line: int | None = None,
        repo: RepoIdentifier | None = None,
    ) -> int | None:
        api_repo = self._api_repo(repo)
        if path and line:
            head = await self._gh_json(
                "pr", "view", str(number), *self._repo_args(repo), "--json", "headRefOid"
            )
            data = await self._gh_json(
                "api", "--method", "POST", f"repos/{api_repo}/pulls/{number}/comments",
                "-f", f"body={body}",
                "-f", f"commit_id={head['headRefOid']}",
                "-f", f"path={path}",
                "-F", f"line={line}",
                "-f", "side=RIGHT",
            )
        else:
            data = await self._gh_json(
                "api", "--method", "POST", f"repos/{api_repo}/issues/{number}/comments",
                "-f", f"body={body}",
            )
        return data.get("id") if isinstance(data, dict) else None

    async def submit_review(
        self,
        number: int,
        verdict: ReviewVerdict,
        body: str | None = None,
        repo: RepoIdentifier | None = None,
    ) -> None:
        args = ["pr", "review", str(number), _VERDICT_FLAGS[verdict], *self._repo_args(repo)]
        # gh requires a body for --comment and --request-changes
        if body or verdict != "approve":
            args += ["--body", body or REVIEW_BODY]
        await self._gh(*args)

    async def checkout_branch(
        self, number: int, local_branch: str, repo: RepoIdentifier | None = None
    ) -> None:
        if await git.branch_exists(local_branch, self.cwd):
            logger.info("Branch %s already exists, checking out and pulling latest changes", local_branch)
            await git.checkout(local_branch, self.cwd)
            await git.pull_fast_forward(self.cwd)
            return
        await self._gh("pr", "checkout", str(number), *self._repo_args(repo), "-b", local_branch)
