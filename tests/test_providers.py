"""Tests for remote repository backends."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from revsync.errors import NotFoundError, RemoteUnavailableError, TransportError
from revsync.git import CommandResult, parse_remote_url
from revsync.providers import get_remote_repository
from revsync.providers.base import normalize_review_comment
from revsync.providers.gh_cli import GhCliRepository, _parse_json_stream
from revsync.providers.github import GitHubApiRepository
from revsync.review_types import RepoIdentifier


def _ok(payload) -> CommandResult:
    stdout = payload if isinstance(payload, str) else json.dumps(payload)
    return CommandResult(returncode=0, stdout=stdout, stderr="")


def _fail(stderr: str) -> CommandResult:
    return CommandResult(returncode=1, stdout="", stderr=stderr)


def _response(status_code=200, payload=None, text="") -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    resp.text = text
    return resp


class TestRegistry:
    """Tests for backend selection."""

    def test_get_gh(self):
        provider = get_remote_repository("gh")
        assert isinstance(provider, GhCliRepository)
        assert provider.name == "gh"

    def test_get_github(self, tmp_path):
        provider = get_remote_repository("github", cwd=tmp_path)
        assert isinstance(provider, GitHubApiRepository)
        assert provider.cwd == tmp_path

    def test_unknown(self):
        with pytest.raises(ValueError, match="No remote backend"):
            get_remote_repository("bitbucket")


class TestRemoteUrlParsing:
    """Tests for identifying the origin repository."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://github.com/kubernetes/website.git",
            "https://github.com/kubernetes/website",
            "git@github.com:kubernetes/website.git",
            "ssh://git@github.com/kubernetes/website/",
        ],
    )
    def test_parse(self, url):
        assert parse_remote_url(url) == RepoIdentifier("kubernetes", "website")

    def test_parse_invalid(self):
        with pytest.raises(TransportError):
            parse_remote_url("not a url")


class TestNormalizeReviewComment:
    """Tests for the review comment wire shape."""

    def test_reactions_filtered(self):
        wire = normalize_review_comment({
            "id": 1,
            "path": "a.md",
            "line": 3,
            "body": "hi",
            "user": {"login": "bob", "id": 9},
            "created_at": "2024-01-01T00:00:00Z",
            "reactions": {"url": "x", "total_count": 3, "+1": 2, "heart": 1, "eyes": 0},
        })
        assert wire["user"] == {"login": "bob"}
        assert wire["reactions"] == {"+1": 2, "heart": 1}
        assert wire["side"] == "RIGHT"


class TestGhCliRepository:
    """Tests for the GitHub CLI backend with a patched subprocess runner."""

    def test_parse_paginated_output(self):
        assert _parse_json_stream('[{"id": 1}]\n[{"id": 2}, {"id": 3}]') == [{"id": 1}, {"id": 2}, {"id": 3}]
        assert _parse_json_stream("") == []

    @pytest.mark.asyncio
    async def test_fork_parent(self):
        provider = GhCliRepository()
        with patch("revsync.git.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.return_value = _ok({"isFork": True, "parent": {"name": "website", "owner": {"login": "kubernetes"}}})

            parent = await provider.get_repo_fork_parent()

            assert parent == RepoIdentifier("kubernetes", "website")
            args = mock_run.call_args[0][0]
            assert args[1:] == ["repo", "view", "--json", "isFork,parent"]

    @pytest.mark.asyncio
    async def test_not_a_fork(self):
        provider = GhCliRepository()
        with patch("revsync.git.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.return_value = _ok({"isFork": False, "parent": None})
            assert await provider.get_repo_fork_parent() is None

    @pytest.mark.asyncio
    async def test_pr_info_with_repo(self):
        provider = GhCliRepository()
        with patch("revsync.git.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.return_value = _ok({"number": 42, "title": "T"})

            data = await provider.get_pr_info(42, RepoIdentifier("upstream", "repo"))

            assert data["number"] == 42
            args = mock_run.call_args[0][0]
            assert args[1:5] == ["pr", "view", "42", "--repo"]
            assert args[5] == "upstream/repo"

    @pytest.mark.asyncio
    async def test_error_classification(self):
        provider = GhCliRepository()
        with patch("revsync.git.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.return_value = _fail("GraphQL: Could not resolve to a PullRequest with the number of 9.")
            with pytest.raises(NotFoundError):
                await provider.get_pr_info(9)

            mock_run.return_value = _fail("To get started with GitHub CLI, please run:  gh auth login")
            with pytest.raises(RemoteUnavailableError):
                await provider.get_pr_info(9)

            mock_run.return_value = _fail("connection reset by peer")
            with pytest.raises(TransportError) as exc_info:
                await provider.get_pr_info(9)
            assert "connection reset by peer" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_not_installed(self):
        provider = GhCliRepository()
        with patch("revsync.git.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.side_effect = FileNotFoundError("gh")
            assert await provider.is_installed() is False
            with pytest.raises(RemoteUnavailableError, match="cli.github.com"):
                await provider.get_pr_files(1)

    @pytest.mark.asyncio
    async def test_review_comments_paginated(self):
        provider = GhCliRepository()
        page_one = [{"id": 1, "path": "a.md", "line": 2, "body": "x", "user": {"login": "a"}}]
        page_two = [{"id": 2, "path": "a.md", "line": 3, "body": "y", "user": {"login": "b"}, "in_reply_to_id": 1}]
        with patch("revsync.git.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.return_value = _ok(json.dumps(page_one) + json.dumps(page_two))

            comments = await provider.get_pr_review_comments(5)

            assert [c["id"] for c in comments] == [1, 2]
            assert comments[1]["in_reply_to_id"] == 1
            args = mock_run.call_args[0][0]
            assert "repos/{owner}/{repo}/pulls/5/comments?per_page=100" in args

    @pytest.mark.asyncio
    async def test_create_line_comment_passes_body_verbatim(self):
        """Bodies go through as one argument, quotes and backticks included."""
        provider = GhCliRepository()
        body = '```suggestion\n"quoted" $HOME `tick`\n```'
        with patch("revsync.git.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.side_effect = [_ok({"headRefOid": "abc123"}), _ok({"id": 555})]

            remote_id = await provider.create_review_comment(5, body, path="a.md", line=10)

            assert remote_id == 555
            args = mock_run.call_args[0][0]
            assert f"body={body}" in args
            assert "commit_id=abc123" in args
            assert "line=10" in args

    @pytest.mark.asyncio
    async def test_create_pr_comment(self):
        provider = GhCliRepository()
        with patch("revsync.git.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.return_value = _ok({"id": 9})

            assert await provider.create_review_comment(5, "hello") == 9
            assert "repos/{owner}/{repo}/issues/5/comments" in mock_run.call_args[0][0]

    @pytest.mark.asyncio
    async def test_submit_review(self):
        provider = GhCliRepository()
        with patch("revsync.git.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.return_value = _ok("")

            await provider.submit_review(5, "request-changes", body="please fix")

            args = mock_run.call_args[0][0]
            assert args[1:5] == ["pr", "review", "5", "--request-changes"]
            assert args[-2:] == ["--body", "please fix"]

    @pytest.mark.asyncio
    async def test_approve_without_body(self):
        provider = GhCliRepository()
        with patch("revsync.git.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.return_value = _ok("")
            await provider.submit_review(5, "approve")
            assert "--body" not in mock_run.call_args[0][0]

    @pytest.mark.asyncio
    async def test_checkout_new_branch(self):
        provider = GhCliRepository()
        with patch("revsync.git.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.side_effect = [_fail(""), _ok("")]

            await provider.checkout_branch(7, "pr-7/fix")

            args = mock_run.call_args[0][0]
            assert args[1:] == ["pr", "checkout", "7", "-b", "pr-7/fix"]

    @pytest.mark.asyncio
    async def test_checkout_existing_branch(self):
        """An existing branch is checked out and fast-forwarded."""
        provider = GhCliRepository()
        with patch("revsync.git.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.side_effect = [_ok("sha"), _ok(""), _ok("")]

            await provider.checkout_branch(7, "pr-7/fix")

            commands = [call[0][0][1:] for call in mock_run.call_args_list]
            assert commands[1] == ["checkout", "pr-7/fix"]
            assert commands[2] == ["pull", "--ff-only"]

    @pytest.mark.asyncio
    async def test_current_pr_not_found(self):
        provider = GhCliRepository()
        with patch("revsync.git.run_command", new_callable=AsyncMock) as mock_run:
            mock_run.return_value = _fail('no pull requests found for branch "main"')
            assert await provider.get_current_pr_number() is None


class TestGitHubApiRepository:
    """Tests for the REST backend with a patched httpx client."""

    @pytest.fixture
    def provider(self):
        provider = GitHubApiRepository(token="test-token", api_base="https://api.github.com")
        return provider

    @pytest.fixture
    def mock_pr_response(self):
        return {
            "number": 42,
            "title": "Translate intro",
            "state": "closed",
            "merged_at": "2024-01-05T00:00:00Z",
            "user": {"login": "alice"},
            "created_at": "2024-01-01T00:00:00Z",
            "updated_at": "2024-01-05T00:00:00Z",
            "base": {"ref": "main"},
            "head": {"ref": "intro", "sha": "headsha"},
            "html_url": "https://github.com/upstream/repo/pull/42",
            "body": None,
        }

    @pytest.mark.asyncio
    async def test_get_pr_info(self, provider, mock_pr_response):
        with patch("revsync.providers.github.httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value.__aenter__.return_value = mock_client
            mock_client.request = AsyncMock(return_value=_response(payload=mock_pr_response))

            data = await provider.get_pr_info(42, RepoIdentifier("upstream", "repo"))

            assert data["state"] == "MERGED"
            assert data["author"] == {"login": "alice"}
            assert data["headRefName"] == "intro"
            assert data["body"] == ""
            method, url = mock_client.request.call_args[0]
            assert method == "GET"
            assert url == "https://api.github.com/repos/upstream/repo/pulls/42"
            headers = mock_client.request.call_args[1]["headers"]
            assert headers["Authorization"] == "token test-token"

    @pytest.mark.asyncio
    async def test_local_repo_from_origin(self, provider, mock_pr_response):
        with patch("revsync.providers.github.httpx.AsyncClient") as mock_client_class, \
                patch("revsync.git.origin_repo", new_callable=AsyncMock) as mock_origin:
            mock_origin.return_value = RepoIdentifier("me", "fork")
            mock_client = AsyncMock()
            mock_client_class.return_value.__aenter__.return_value = mock_client
            mock_client.request = AsyncMock(return_value=_response(payload=mock_pr_response))

            await provider.get_pr_info(42)
            await provider.get_pr_info(42)

            assert mock_client.request.call_args[0][1].endswith("/repos/me/fork/pulls/42")
            mock_origin.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_files_paginated(self, provider):
        page_one = [{"filename": f"f{i}.md", "status": "modified", "additions": 1, "deletions": 0} for i in range(100)]
        page_two = [{"filename": "new.md", "status": "renamed", "previous_filename": "old.md"}]
        with patch("revsync.providers.github.httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value.__aenter__.return_value = mock_client
            mock_client.request = AsyncMock(side_effect=[_response(payload=page_one), _response(payload=page_two)])

            files = await provider.get_pr_files(1, RepoIdentifier("o", "r"))

            assert len(files) == 101
            assert files[-1] == {
                "path": "new.md",
                "changeType": "renamed",
                "additions": 0,
                "deletions": 0,
                "previousPath": "old.md",
            }
            assert mock_client.request.call_args[1]["params"]["page"] == 2

    @pytest.mark.asyncio
    async def test_fork_parent(self, provider):
        provider._own_repo = RepoIdentifier("me", "website")
        with patch("revsync.providers.github.httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value.__aenter__.return_value = mock_client
            mock_client.request = AsyncMock(
                return_value=_response(payload={"fork": True, "parent": {"full_name": "kubernetes/website"}})
            )

            assert await provider.get_repo_fork_parent() == RepoIdentifier("kubernetes", "website")

    @pytest.mark.asyncio
    async def test_status_mapping(self, provider):
        repo = RepoIdentifier("o", "r")
        with patch("revsync.providers.github.httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value.__aenter__.return_value = mock_client

            mock_client.request = AsyncMock(return_value=_response(404))
            with pytest.raises(NotFoundError):
                await provider.get_pr_info(1, repo)

            mock_client.request = AsyncMock(return_value=_response(401))
            with pytest.raises(RemoteUnavailableError):
                await provider.get_pr_info(1, repo)

            mock_client.request = AsyncMock(return_value=_response(500, text="upstream exploded"))
            with pytest.raises(TransportError) as exc_info:
                await provider.get_pr_info(1, repo)
            assert exc_info.value.diagnostic == "upstream exploded"

            mock_client.request = AsyncMock(side_effect=httpx.ConnectError("refused"))
            with pytest.raises(TransportError):
                await provider.get_pr_info(1, repo)

    @pytest.mark.asyncio
    async def test_create_line_comment(self, provider, mock_pr_response):
        repo = RepoIdentifier("o", "r")
        with patch("revsync.providers.github.httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value.__aenter__.return_value = mock_client
            mock_client.request = AsyncMock(
                side_effect=[_response(payload=mock_pr_response), _response(201, payload={"id": 777})]
            )

            remote_id = await provider.create_review_comment(42, "text", path="a.md", line=3, repo=repo)

            assert remote_id == 777
            method, url = mock_client.request.call_args[0]
            assert method == "POST"
            assert url.endswith("/repos/o/r/pulls/42/comments")
            payload = mock_client.request.call_args[1]["json"]
            assert payload == {"body": "text", "commit_id": "headsha", "path": "a.md", "line": 3, "side": "RIGHT"}

    @pytest.mark.asyncio
    async def test_submit_review(self, provider):
        with patch("revsync.providers.github.httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value.__aenter__.return_value = mock_client
            mock_client.request = AsyncMock(return_value=_response(200, payload={}))

            await provider.submit_review(42, "approve", repo=RepoIdentifier("o", "r"))

            assert mock_client.request.call_args[1]["json"] == {"event": "APPROVE"}

    @pytest.mark.asyncio
    async def test_unauthenticated_without_token(self):
        provider = GitHubApiRepository(token=None)
        assert await provider.is_authenticated() is False
