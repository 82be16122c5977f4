"""Error taxonomy for pgshark.

Every error renders as a single human-readable line via ``str()`` so the
active view can show it as-is.
"""


class PgsharkError(Exception):
    """Base class for all pgshark errors."""


class ConnectError(PgsharkError):
    """The database could not be reached or rejected the credentials."""


class QueryError(PgsharkError):
    """Introspection failed or returned malformed metadata."""


class WriteError(PgsharkError):
    """A comment could not be written."""


class ReadError(PgsharkError):
    """A comment could not be read back."""


class StorageError(PgsharkError):
    """Credentials could not be persisted or loaded."""


class ClipboardError(PgsharkError):
    """Text could not be placed on the clipboard."""


class CommentError(PgsharkError):
    """Base class for comment validation and verification failures."""


class EmptyCommentError(CommentError):
    def __init__(self) -> None:
        super().__init__("comment cannot be empty")


class CommentTooLongError(CommentError):
    def __init__(self, length: int, limit: int) -> None:
        super().__init__(f"comment is too long ({length} characters, max {limit})")
        self.length = length
        self.limit = limit


class MaliciousContentError(CommentError):
    def __init__(self, token: str) -> None:
        super().__init__(f"comment contains a disallowed pattern: {token!r}")
        self.token = token


class VerificationFailedError(CommentError):
    """The stored comment differs from the one that was written."""

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(
            f"comment verification failed: expected {expected!r}, got {actual!r}"
        )
        self.expected = expected
        self.actual = actual
