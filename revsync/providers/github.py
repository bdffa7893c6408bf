"""GitHub REST API backend.

Supports GitHub.com and self-hosted GitHub Enterprise via GITHUB_API_BASE.
The local repository is identified from the ``origin`` remote.
"""

from pathlib import Path

import httpx

from .. import git
from ..config import (
    DEFAULT_PER_PAGE,
    DEFAULT_TIMEOUT,
    GITHUB_API_BASE,
    GITHUB_TOKEN,
    GITHUB_WEB_BASE,
    REVIEW_BODY,
)
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

USER_AGENT = "revsync"

_VERDICT_EVENTS = {
    "approve": "APPROVE",
    "comment": "COMMENT",
    "request-changes": "REQUEST_CHANGES",
}


class GitHubApiRepository(RemoteRepository):
    """Remote repository reached through the GitHub REST API."""

    name = "github"
    install_hint = "Install git and run inside a clone of the repository"
    login_hint = "Set GITHUB_TOKEN to a token with repo scope"

    def __init__(
        self,
        cwd: Path | None = None,
        token: str | None = GITHUB_TOKEN,
        api_base: str = GITHUB_API_BASE,
    ) -> None:
        super().__init__(cwd)
        self._token = token
        self._api_base = api_base.rstrip("/")
        self._own_repo: RepoIdentifier | None = None

    def _get_headers(self) -> dict[str, str]:
        """Get HTTP headers for GitHub API requests."""
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": USER_AGENT,
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._token:
            headers["Authorization"] = f"token {self._token}"
        return headers

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send one request and translate failures into the error taxonomy."""
        url = f"{self._api_base}{path}"
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.request(
                    method, url, headers=self._get_headers(), timeout=DEFAULT_TIMEOUT, **kwargs
                )
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed", diagnostic=str(e)) from e
        if resp.status_code == 404:
            raise NotFoundError(f"{method} {path} returned 404")
        if resp.status_code in (401, 403):
            raise RemoteUnavailableError(
                f"{method} {path} was rejected ({resp.status_code})", hint=self.login_hint
            )
        if resp.status_code >= 400:
            raise TransportError(f"{method} {path} returned {resp.status_code}", diagnostic=resp.text)
        return resp

    async def _get_json(self, path: str, params: dict | None = None):
        resp = await self._request("GET", path, params=params)
        try:
            return resp.json()
        except ValueError as e:
            raise TransportError(f"Malformed JSON from {path}", diagnostic=resp.text[:500]) from e

    async def _get_paginated(self, path: str, params: dict | None = None) -> list[dict]:
        items: list[dict] = []
        page = 1
        while True:
            batch = await self._get_json(path, {**(params or {}), "per_page": DEFAULT_PER_PAGE, "page": page})
            if not batch:
                break
            items.extend(batch)
            if len(batch) < DEFAULT_PER_PAGE:
                break
            page += 1
        return items

    async def _local_repo(self) -> RepoIdentifier:
        if self._own_repo is None:
            self._own_repo = await git.origin_repo(self.cwd)
        return self._own_repo

    async def _target(self, repo: RepoIdentifier | None) -> RepoIdentifier:
        return repo if repo is not None else await self._local_repo()

    async def is_installed(self) -> bool:
        return await git.is_installed()

    async def is_authenticated(self) -> bool:
        if not self._token:
            return False
        try:
            await self._request("GET", "/user")
        except (RemoteUnavailableError, NotFoundError, TransportError):
            return False
        return True

    async def get_repo_fork_parent(self) -> RepoIdentifier | None:
        own = await self._local_repo()
        data = await self._get_json(f"/repos/{own.full_name}")
        parent = data.get("parent") if data.get("fork") else None
        if not parent:
            return None
        return RepoIdentifier.parse(parent["full_name"])

    async def get_pr_info(self, number: int, repo: RepoIdentifier | None = None) -> PRInfoWire:
        target = await self._target(repo)
        pr = await self._get_json(f"/repos/{target.full_name}/pulls/{number}")
        return self._pr_to_wire(pr)

    async def get_pr_files(self, number: int, repo: RepoIdentifier | None = None) -> list[PRFileWire]:
        target = await self._target(repo)
        files = await self._get_paginated(f"/repos/{target.full_name}/pulls/{number}/files")
        return [
            PRFileWire(
                path=f["filename"],
                changeType=f.get("status", "modified"),
                additions=f.get("additions", 0),
                deletions=f.get("deletions", 0),
                previousPath=f.get("previous_filename"),
            )
            for f in files
        ]

    async def get_pr_commits(self, number: int, repo: RepoIdentifier | None = None) -> list[PRCommitWire]:
        target = await self._target(repo)
        commits = await self._get_paginated(f"/repos/{target.full_name}/pulls/{number}/commits")
        result: list[PRCommitWire] = []
        for c in commits:
            author = {"login": c["author"]["login"]} if c.get("author") else {"name": c["commit"]["author"]["name"]}
            result.append(
                PRCommitWire(
                    oid=c["sha"],
                    messageHeadline=c["commit"]["message"].split("\n", 1)[0],
                    authors=[author],
                    committedDate=c["commit"]["committer"]["date"],
                )
            )
        return result

    async def get_pr_review_comments(
        self, number: int, repo: RepoIdentifier | None = None
    ) -> list[RemoteReviewCommentWire]:
        target = await self._target(repo)
        comments = await self._get_paginated(f"/repos/{target.full_name}/pulls/{number}/comments")
        return [normalize_review_comment(c) for c in comments]

    async def get_current_pr_number(self, repo: RepoIdentifier | None = None) -> int | None:
        branch = await git.current_branch(self.cwd)
        if branch is None:
            return None
        own = await self._local_repo()
        target = await self._target(repo)
        pulls = await self._get_json(
            f"/repos/{target.full_name}/pulls",
            {"head": f"{own.owner}:{branch}", "state": "open", "per_page": 1},
        )
        return int(pulls[0]["number"]) if pulls else None

    async def list_pull_requests(
        self, limit: int = 10, state: str = "all", repo: RepoIdentifier | None = None
    ) -> list[PRInfoWire]:
        target = await self._target(repo)
        api_state = "closed" if state == "merged" else state
        pulls = await self._get_json(
            f"/repos/{target.full_name}/pulls",
            {"state": api_state, "per_page": min(limit, DEFAULT_PER_PAGE)},
        )
        if state == "merged":
            pulls = [p for p in pulls if p.get("merged_at")]
        return [self._pr_to_wire(p) for p in pulls[:limit]]

    async def create_review_comment(
        self,
        number: int,
        body: str,
        path: str | None = None,
        line: int | None = None,
        repo: RepoIdentifier | None = None,
    ) -> int | None:
        target = await self._target(repo)
        if path and line:
            pr = await self._get_json(f"/repos/{target.full_name}/pulls/{number}")
            resp = await self._request(
                "POST",
                f"/repos/{target.full_name}/pulls/{number}/comments",
                json={
                    "body": body,
                    "commit_id": pr["head"]["sha"],
                    "path": path,
                    "line": line,
                    "side": "RIGHT",
                },
            )
        else:
            resp = await self._request(
                "POST", f"/repos/{target.full_name}/issues/{number}/comments", json={"body": body}
            )
        return resp.json().get("id")

    async def submit_review(
        self,
        number: int,
        verdict: ReviewVerdict,
        body: str | None = None,
        repo: RepoIdentifier | None = None,
    ) -> None:
        target = await self._target(repo)
        payload = {"event": _VERDICT_EVENTS[verdict]}
        # COMMENT and REQUEST_CHANGES are rejected without a body
        if body or verdict != "approve":
            payload["body"] = body or REVIEW_BODY
        await self._request("POST", f"/repos/{target.full_name}/pulls/{number}/reviews", json=payload)

    async def checkout_branch(
        self, number: int, local_branch: str, repo: RepoIdentifier | None = None
    ) -> None:
        target = await self._target(repo)
        remote_url = f"{GITHUB_WEB_BASE.rstrip('/')}/{target.full_name}.git"
        pr_ref = f"pull/{number}/head"
        if await git.branch_exists(local_branch, self.cwd):
            await git.checkout(local_branch, self.cwd)
            await git.fetch_ref(remote_url, pr_ref, self.cwd)
            await git.merge_fast_forward("FETCH_HEAD", self.cwd)
            return
        await git.fetch_ref(remote_url, pr_ref, self.cwd, local_branch=local_branch)
        await git.checkout(local_branch, self.cwd)

    @staticmethod
    def _pr_to_wire(pr: dict) -> PRInfoWire:
        state = "MERGED" if pr.get("merged_at") else pr.get("state", "open")
        user = pr.get("user") or {}
        return PRInfoWire(
            number=pr["number"],
            title=pr.get("title", ""),
            state=state,
            author={"login": user.get("login", "unknown")},
            createdAt=pr.get("created_at", ""),
            updatedAt=pr.get("updated_at", ""),
            baseRefName=pr["base"]["ref"],
            headRefName=pr["head"]["ref"],
            url=pr.get("html_url", ""),
            body=pr.get("body") or "",
        )
