"""FastAPI server: HTTP surface of the review engine for the editor webview."""

import asyncio
from typing import Literal

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .config import API_HOST, API_PORT, DEFAULT_LOCALE
from .errors import (
    NotFoundError,
    PersistenceError,
    RemoteUnavailableError,
    ReviewSyncError,
    TransportError,
    ValidationError,
)
from .review_types import CommentType, LineRange, ReviewComment
from .session import ReviewSession, open_session

app = FastAPI(
    title="revsync API",
    description="Review comments synced with GitHub pull requests",
    version="0.1.0",
)

# CORS for the webview host
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_session: ReviewSession | None = None
_session_lock = asyncio.Lock()


async def get_session() -> ReviewSession:
    global _session
    async with _session_lock:
        if _session is None:
            _session = await open_session()
    return _session


def _http_error(e: ReviewSyncError) -> HTTPException:
    """Map an engine error onto an HTTP status."""
    # NotFound first: unknown comment ids are both NotFound and Validation
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, RemoteUnavailableError):
        return HTTPException(status_code=503, detail=str(e))
    if isinstance(e, TransportError):
        return HTTPException(status_code=502, detail=str(e))
    if isinstance(e, PersistenceError):
        return HTTPException(status_code=500, detail=f"Failed to save comments: {e}")
    return HTTPException(status_code=500, detail=str(e))


# Request/Response models
class AddCommentRequest(BaseModel):
    filePath: str
    lineNumber: int = Field(ge=1)
    endLine: int | None = None
    body: str
    type: CommentType = "general"


class AddSuggestionRequest(BaseModel):
    filePath: str
    lineNumber: int = Field(ge=1)
    endLine: int | None = None
    original: str
    suggested: str
    reason: str = ""


class PushRequest(BaseModel):
    verdict: Literal["approve", "comment", "request-changes"] | None = None
    body: str | None = None


class CommentResponse(BaseModel):
    comment: dict


class CommentsResponse(BaseModel):
    comments: list[dict]


class CurrentPRResponse(BaseModel):
    number: int | None


class FilesResponse(BaseModel):
    files: list[dict]


class CheckoutResponse(BaseModel):
    branch: str


class ImportResponse(BaseModel):
    fetched: int
    added: int


class PushResponse(BaseModel):
    count: int
    verdict: str | None = None


def _comment_response(comment: ReviewComment) -> CommentResponse:
    return CommentResponse(comment=comment.to_dict())


# Comment endpoints
@app.get("/api/comments", response_model=CommentsResponse)
async def api_list_comments(
    file: str | None = Query(None, description="Only comments on this file"),
    all: bool = Query(False, description="Include resolved comments"),
):
    """List unresolved comments, or every comment with ``all``."""
    session = await get_session()
    if file:
        comments = session.comments.get_file_comments(file)
        if not all:
            comments = [c for c in comments if not c.resolved]
    elif all:
        comments = [c for cs in session.comments.get_all_comments().values() for c in cs]
    else:
        comments = session.comments.get_unresolved_comments()
    return CommentsResponse(comments=[c.to_dict() for c in comments])


@app.post("/api/comments", response_model=CommentResponse)
async def api_add_comment(request: AddCommentRequest):
    try:
        session = await get_session()
        comment = await session.comments.add_comment(
            request.filePath,
            LineRange(request.lineNumber, request.endLine),
            request.body,
            type=request.type,
        )
        return _comment_response(comment)
    except ReviewSyncError as e:
        raise _http_error(e)


@app.post("/api/suggestions", response_model=CommentResponse)
async def api_add_suggestion(request: AddSuggestionRequest):
    try:
        session = await get_session()
        comment = await session.comments.add_suggestion(
            request.filePath,
            LineRange(request.lineNumber, request.endLine),
            request.original,
            request.suggested,
            reason=request.reason,
        )
        return _comment_response(comment)
    except ReviewSyncError as e:
        raise _http_error(e)


@app.post("/api/comments/{comment_id}/resolve", response_model=CommentResponse)
async def api_resolve_comment(comment_id: str):
    try:
        session = await get_session()
        await session.comments.resolve_comment(comment_id)
        return _comment_response(session.comments.get_comment(comment_id))
    except ReviewSyncError as e:
        raise _http_error(e)


@app.post("/api/comments/{comment_id}/apply", response_model=CommentResponse)
async def api_apply_suggestion(
    comment_id: str,
    force: bool = Query(False, description="Overwrite the line even if it has changed"),
):
    """Apply a suggestion to its anchor line and resolve it."""
    try:
        session = await get_session()
        await session.comments.apply_suggestion(comment_id, force=force)
        return _comment_response(session.comments.get_comment(comment_id))
    except ReviewSyncError as e:
        raise _http_error(e)


@app.post("/api/comments/{comment_id}/reject", response_model=CommentResponse)
async def api_reject_suggestion(comment_id: str):
    try:
        session = await get_session()
        await session.comments.reject_suggestion(comment_id)
        return _comment_response(session.comments.get_comment(comment_id))
    except ReviewSyncError as e:
        raise _http_error(e)


# PR endpoints
@app.get("/api/pr/current", response_model=CurrentPRResponse)
async def api_current_pr():
    """PR number for the checked-out branch, or null."""
    try:
        session = await get_session()
        return CurrentPRResponse(number=await session.sync.get_current_pr_number())
    except ReviewSyncError as e:
        raise _http_error(e)


@app.get("/api/pr/{number}")
async def api_get_pr(number: int):
    try:
        session = await get_session()
        details = await session.pr_service.get_pr_details(number)
    except ReviewSyncError as e:
        raise _http_error(e)
    if details is None:
        raise HTTPException(status_code=404, detail=f"PR #{number} not found")
    return details.to_dict()


@app.get("/api/pr/{number}/reviewable", response_model=FilesResponse)
async def api_reviewable_files(number: int, locale: str = Query(DEFAULT_LOCALE)):
    """Changed files of the PR that are documentation files in ``locale``."""
    try:
        session = await get_session()
        files = await session.pr_service.get_pr_files(number)
        reviewable = session.pr_service.get_reviewable_files(files, locale)
        return FilesResponse(files=[f.to_dict() for f in reviewable])
    except ReviewSyncError as e:
        raise _http_error(e)


@app.post("/api/pr/{number}/checkout", response_model=CheckoutResponse)
async def api_checkout_pr(number: int):
    try:
        session = await get_session()
        info = await session.pr_service.get_pr_info(number)
        branch = await session.pr_service.checkout_pr(info.number, info.title)
        return CheckoutResponse(branch=branch)
    except ReviewSyncError as e:
        raise _http_error(e)


@app.post("/api/pr/{number}/import", response_model=ImportResponse)
async def api_import_comments(number: int):
    """Import the PR's review comments, skipping ones already present."""
    try:
        session = await get_session()
        imported = await session.sync.import_remote_comments(number)
        added = await session.comments.import_comments(imported)
        return ImportResponse(fetched=len(imported), added=added)
    except ReviewSyncError as e:
        raise _http_error(e)


@app.post("/api/pr/{number}/push", response_model=PushResponse)
async def api_push_comments(number: int, request: PushRequest | None = None):
    """Push unsynced comments, or submit one review verdict."""
    request = request or PushRequest()
    try:
        session = await get_session()
        count = await session.sync.push_all_unsynced(number, review_event=request.verdict, body=request.body)
        return PushResponse(count=count, verdict=request.verdict)
    except ReviewSyncError as e:
        raise _http_error(e)


# Health check
@app.get("/health")
async def health():
    return {"status": "ok"}


def run_server(host: str | None = None, port: int | None = None):
    """Run the FastAPI server."""
    import uvicorn
    uvicorn.run(app, host=host or API_HOST, port=port or API_PORT)
