"""Type definitions for review annotations and pull-request metadata."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal, TypedDict, get_args

from .errors import ValidationError

CommentType = Literal["general", "suggestion", "question", "terminology", "grammar", "style"]
COMMENT_TYPES: tuple[str, ...] = get_args(CommentType)

FileStatus = Literal["added", "modified", "removed", "renamed"]
PRState = Literal["open", "closed", "merged"]

ReviewVerdict = Literal["approve", "comment", "request-changes"]
REVIEW_VERDICTS: tuple[str, ...] = get_args(ReviewVerdict)

REMOTE_ID_PREFIX = "remote-"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | None) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing ``Z``."""
    if not value:
        return _utcnow()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class RepoIdentifier:
    """An ``owner/name`` pair on the hosting platform."""
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def parse(cls, value: str) -> "RepoIdentifier":
        owner, sep, name = value.strip().partition("/")
        if not sep or not owner or not name or "/" in name:
            raise ValidationError(f"Invalid repository identifier: {value!r}")
        return cls(owner=owner, name=name)

    def __str__(self) -> str:
        return self.full_name


@dataclass(frozen=True)
class LineRange:
    """A 1-based, inclusive line selection. The comment anchors on ``start``."""
    start: int
    end: int | None = None

    def __post_init__(self):
        if self.start < 1:
            raise ValidationError(f"Line numbers are 1-based, got {self.start}")
        if self.end is not None and self.end < self.start:
            raise ValidationError(f"Line range end {self.end} is before start {self.start}")


@dataclass
class ReviewCommentSuggestion:
    """A proposed literal replacement for the anchor line."""
    original: str
    suggested: str

    def to_dict(self) -> dict:
        return {"original": self.original, "suggested": self.suggested}


@dataclass
class ReviewComment:
    """A line-anchored review comment.

    ``remote_comment_id`` is None until the comment has been pushed (or when it
    was created locally and never synced). Replies share this shape but are
    never nested further.
    """
    id: str
    file_path: str
    line_number: int
    author: str
    body: str
    type: CommentType = "general"
    created_at: datetime = field(default_factory=_utcnow)
    resolved: bool = False
    replies: list["ReviewComment"] = field(default_factory=list)
    suggestion: ReviewCommentSuggestion | None = None
    remote_comment_id: int | None = None
    outdated: bool = False

    def __post_init__(self):
        if self.type not in COMMENT_TYPES:
            raise ValidationError(f"Unknown comment type: {self.type!r}")
        if self.line_number < 1:
            raise ValidationError(f"Line numbers are 1-based, got {self.line_number}")
        if self.suggestion is not None and self.type != "suggestion":
            raise ValidationError("Only suggestion comments may carry a suggestion")
        if self.type == "suggestion" and self.suggestion is None:
            raise ValidationError("Suggestion comments require a suggestion payload")

    @staticmethod
    def new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def remote_id(remote_comment_id: int) -> str:
        return f"{REMOTE_ID_PREFIX}{remote_comment_id}"

    @property
    def unsynced(self) -> bool:
        return not self.resolved and self.remote_comment_id is None

    def to_dict(self) -> dict:
        result = {
            "id": self.id,
            "filePath": self.file_path,
            "author": self.author,
            "body": self.body,
            "type": self.type,
            "lineNumber": self.line_number,
            "createdAt": format_timestamp(self.created_at),
            "resolved": self.resolved,
            "replies": [r.to_dict() for r in self.replies],
        }
        if self.suggestion is not None:
            result["suggestion"] = self.suggestion.to_dict()
        if self.remote_comment_id is not None:
            result["remoteCommentId"] = self.remote_comment_id
        if self.outdated:
            result["outdated"] = True
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "ReviewComment":
        if not isinstance(data, dict):
            raise ValueError(f"comment entry must be an object, got {type(data).__name__}")
        suggestion_data = data.get("suggestion")
        suggestion = None
        if isinstance(suggestion_data, dict):
            suggestion = ReviewCommentSuggestion(
                original=suggestion_data.get("original", ""),
                suggested=suggestion_data.get("suggested", ""),
            )
        comment_type = data.get("type", "general")
        # A suggestion type without its payload (or the reverse) is repaired
        # rather than rejected so one bad record does not empty the store.
        if suggestion is None and comment_type == "suggestion":
            comment_type = "general"
        elif suggestion is not None:
            comment_type = "suggestion"
        remote_id = data.get("remoteCommentId", data.get("prCommentId"))
        created_at = data.get("createdAt")
        return cls(
            id=data["id"],
            file_path=data["filePath"],
            line_number=int(data.get("lineNumber", 1)),
            author=data.get("author", ""),
            body=data.get("body", ""),
            type=comment_type,
            created_at=parse_timestamp(created_at if isinstance(created_at, str) else None),
            resolved=bool(data.get("resolved", False)),
            replies=[cls.from_dict(r) for r in data.get("replies", [])],
            suggestion=suggestion,
            remote_comment_id=int(remote_id) if remote_id is not None else None,
            outdated=bool(data.get("outdated", False)),
        )


@dataclass
class PRInfo:
    """Pull request identity and headline metadata."""
    number: int
    title: str
    state: PRState
    author: str
    created_at: str
    updated_at: str
    base_branch: str
    head_branch: str
    url: str
    body: str = ""

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "title": self.title,
            "state": self.state,
            "author": self.author,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "baseBranch": self.base_branch,
            "headBranch": self.head_branch,
            "url": self.url,
            "body": self.body,
        }


@dataclass
class PRFileChange:
    """A file touched by a pull request."""
    path: str
    status: FileStatus = "modified"
    additions: int = 0
    deletions: int = 0
    previous_path: str | None = None

    @property
    def changes(self) -> int:
        return self.additions + self.deletions

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "status": self.status,
            "additions": self.additions,
            "deletions": self.deletions,
            "changes": self.changes,
            "previousPath": self.previous_path,
        }


@dataclass
class PRCommit:
    sha: str
    message: str
    author: str
    date: str

    def to_dict(self) -> dict:
        return {"sha": self.sha, "message": self.message, "author": self.author, "date": self.date}


@dataclass
class PRDetails:
    """PR info plus its files and commits, with derived totals."""
    info: PRInfo
    files: list[PRFileChange] = field(default_factory=list)
    commits: list[PRCommit] = field(default_factory=list)

    @property
    def total_files(self) -> int:
        return len(self.files)

    @property
    def total_additions(self) -> int:
        return sum(f.additions for f in self.files)

    @property
    def total_deletions(self) -> int:
        return sum(f.deletions for f in self.files)

    @property
    def total_commits(self) -> int:
        return len(self.commits)

    def to_dict(self) -> dict:
        return {
            **self.info.to_dict(),
            "files": [f.to_dict() for f in self.files],
            "commits": [c.to_dict() for c in self.commits],
            "stats": {
                "totalFiles": self.total_files,
                "totalAdditions": self.total_additions,
                "totalDeletions": self.total_deletions,
                "totalCommits": self.total_commits,
            },
        }


@dataclass
class RemoteReviewComment:
    """A review comment as it exists on the hosting platform."""
    id: int
    path: str
    line: int
    body: str
    author: str
    created_at: str
    diff_hunk: str = ""
    original_line: int | None = None
    side: Literal["LEFT", "RIGHT"] = "RIGHT"
    in_reply_to_id: int | None = None
    reactions: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "path": self.path,
            "line": self.line,
            "body": self.body,
            "user": self.author,
            "createdAt": self.created_at,
            "diffHunk": self.diff_hunk,
            "originalLine": self.original_line,
            "side": self.side,
            "inReplyToId": self.in_reply_to_id,
            "reactions": self.reactions,
        }


# Wire shapes returned by RemoteRepository implementations.

class UserWire(TypedDict, total=False):
    login: str
    name: str


class PRInfoWire(TypedDict, total=False):
    number: int
    title: str
    state: str
    author: UserWire | None
    createdAt: str
    updatedAt: str
    baseRefName: str
    headRefName: str
    url: str
    body: str | None


class PRFileWire(TypedDict, total=False):
    path: str
    changeType: str
    additions: int
    deletions: int
    previousPath: str | None


class PRCommitWire(TypedDict, total=False):
    oid: str
    messageHeadline: str
    authors: list[UserWire]
    committedDate: str


class RemoteReviewCommentWire(TypedDict, total=False):
    id: int
    path: str
    line: int | None
    original_line: int | None
    body: str
    user: UserWire | None
    created_at: str
    diff_hunk: str
    side: str
    in_reply_to_id: int | None
    reactions: dict
