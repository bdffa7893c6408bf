"""Error taxonomy for the review-annotation engine."""


class ReviewSyncError(Exception):
    """Base class for all engine errors."""


class PersistenceError(ReviewSyncError):
    """The annotation store could not be written."""


class RemoteUnavailableError(ReviewSyncError):
    """The remote client is missing or not authenticated.

    ``hint`` carries the action the user should take (install, login).
    """

    def __init__(self, message: str, hint: str = ""):
        super().__init__(message)
        self.hint = hint

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base} ({self.hint})" if self.hint else base


class NotFoundError(ReviewSyncError):
    """A PR, comment or file does not exist locally or remotely."""


class TransportError(ReviewSyncError):
    """A remote call failed for a reason other than auth or a missing resource.

    ``diagnostic`` preserves the underlying output (stderr, response body).
    """

    def __init__(self, message: str, diagnostic: str = ""):
        super().__init__(message)
        self.diagnostic = diagnostic

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base}: {self.diagnostic.strip()}" if self.diagnostic.strip() else base


class ValidationError(ReviewSyncError):
    """Malformed input to a public operation."""


class CommentNotFoundError(NotFoundError, ValidationError):
    """No local comment has the requested id."""

    def __init__(self, comment_id: str):
        super().__init__(f"Comment not found: {comment_id}")
        self.comment_id = comment_id


class StaleAnchorError(ValidationError):
    """The anchor line no longer holds the text a suggestion was written against."""

    def __init__(self, comment_id: str, expected: str, actual: str):
        super().__init__(
            f"Line for comment {comment_id} has changed: expected {expected!r}, found {actual!r}"
        )
        self.comment_id = comment_id
        self.expected = expected
        self.actual = actual


class DocumentEditError(ReviewSyncError):
    """The editor refused to replace the anchor line."""
