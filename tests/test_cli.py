"""Tests for the command line interface."""

from unittest.mock import AsyncMock, patch

import pytest

from conftest import FakeEditor, FakeRemoteRepository, make_pr_wire

from revsync.cli import build_parser, main
from revsync.comments import CommentLifecycleManager
from revsync.pr_service import PRMetadataService
from revsync.session import ReviewSession
from revsync.store import AnnotationStore
from revsync.sync import RemoteSyncAdapter

DOC = "content/ko/docs/a.md"


@pytest.fixture
def remote():
    remote = FakeRemoteRepository()
    remote.add_pr(7, info=make_pr_wire(7, title="Fix: Korean/English mismatch!!"))
    return remote


@pytest.fixture
def session(context, remote):
    store = AnnotationStore(context)
    comments = CommentLifecycleManager(store, context, FakeEditor({DOC: ["foo"]}))
    pr_service = PRMetadataService(remote)
    session = ReviewSession(context, store, comments, pr_service, RemoteSyncAdapter(comments, pr_service))
    with patch("revsync.cli.open_session", new_callable=AsyncMock) as mock_open:
        mock_open.return_value = session
        yield session


class TestParser:
    """Tests for argument parsing."""

    def test_push_verdict_flags(self):
        parser = build_parser()
        assert parser.parse_args(["push", "5", "--request-changes"]).verdict == "request-changes"
        assert parser.parse_args(["push"]).verdict is None

    def test_push_verdicts_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["push", "--approve", "--comment"])

    def test_add_rejects_suggestion_type(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["add", DOC, "1", "x", "--type", "suggestion"])


class TestCommands:
    """Tests for running subcommands against a fake remote."""

    def test_suggest_then_apply(self, session):
        main(["suggest", DOC, "1", "--original", "foo", "--suggested", "bar"])
        comment = session.comments.get_unresolved_comments()[0]

        main(["apply", comment.id])

        assert session.comments.get_comment(comment.id).resolved is True

    def test_checkout(self, session, remote):
        main(["checkout", "7"])
        assert remote.checkouts == [(7, "pr-7/fix-korean-english-mismatch", None)]

    def test_error_exits_nonzero(self, session):
        with pytest.raises(SystemExit) as exc_info:
            main(["resolve", "missing"])
        assert exc_info.value.code == 1

    def test_push_without_current_pr(self, session):
        with pytest.raises(SystemExit) as exc_info:
            main(["push"])
        assert exc_info.value.code == 1

    def test_no_command(self):
        with pytest.raises(SystemExit):
            main([])
