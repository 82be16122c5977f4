"""Comment validation and the write-then-verify protocol.

The value written to the database is always passed as a bound parameter;
``sanitize_comment`` is input hygiene for the operator, not the SQL defence.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from pgshark.db.base import DatabaseClient
from pgshark.errors import (
    CommentTooLongError,
    EmptyCommentError,
    MaliciousContentError,
    VerificationFailedError,
)
from pgshark.tree import SchemaTree

logger = logging.getLogger(__name__)


MAX_COMMENT_LENGTH = 1000

# Matched case-insensitively against the raw and the cleaned text
DENYLIST = (
    "--;",
    "/*",
    "*/",
    "@@",
    "EXEC",
    "EXECUTE",
    "UNION",
    "SELECT",
    "DELETE",
    "DROP",
    "UPDATE",
    "INSERT",
)

ALLOWED_PUNCTUATION = ".,!?()-_:;'\""


def _allowed(ch: str) -> bool:
    return ch.isalpha() or ch.isnumeric() or ch.isspace() or ch in ALLOWED_PUNCTUATION


def _check_denylist(text: str) -> None:
    upper = text.upper()
    for token in DENYLIST:
        if token in upper:
            raise MaliciousContentError(token)


def sanitize_comment(comment: str) -> str:
    """Validate and clean a comment.

    Surrounding whitespace is trimmed and characters outside letters,
    digits, whitespace and ``.,!?()-_:;'"`` are dropped. Sanitizing an
    already-sanitized comment returns it unchanged.

    Raises:
        EmptyCommentError: nothing is left after trimming/cleaning.
        CommentTooLongError: more than MAX_COMMENT_LENGTH characters.
        MaliciousContentError: a denylisted SQL token is present.
    """
    comment = comment.strip()
    if not comment:
        raise EmptyCommentError()
    if len(comment) > MAX_COMMENT_LENGTH:
        raise CommentTooLongError(len(comment), MAX_COMMENT_LENGTH)
    _check_denylist(comment)

    cleaned = "".join(ch for ch in comment if _allowed(ch)).strip()
    if not cleaned:
        raise EmptyCommentError()
    # Dropping characters can join a token back together ("SEL#ECT")
    _check_denylist(cleaned)
    return cleaned


@dataclass(frozen=True)
class CommentTarget:
    """Address of a commentable node."""

    schema: str
    table: str
    column: Optional[str] = None

    @property
    def kind(self) -> str:
        return "column" if self.column else "table"

    def __str__(self) -> str:
        parts = [self.schema, self.table] + ([self.column] if self.column else [])
        return ".".join(parts)

    @classmethod
    def parse(cls, dotted: str) -> "CommentTarget":
        """Parse ``schema.table`` or ``schema.table.column``."""
        parts = dotted.strip().split(".")
        if len(parts) not in (2, 3) or not all(parts):
            raise ValueError("Target must be in the form `schema.table[.column]`.")
        return cls(*parts)


class CommentEditor:
    """Commit a comment, read it back and check it matches."""

    def __init__(self, client: DatabaseClient) -> None:
        self.client = client

    def commit(self, target: CommentTarget, text: str) -> str:
        """Run the full protocol and return the verified comment.

        Nothing outside the database is modified; callers update their own
        state only after this returns.
        """
        sanitized = sanitize_comment(text)

        self.client.set_comment(target.schema, target.table, target.column, sanitized)
        stored = self.client.get_comment(target.schema, target.table, target.column)

        if stored != sanitized:
            logger.warning("Comment on %s did not verify", target)
            raise VerificationFailedError(expected=sanitized, actual=stored)

        logger.info("Comment on %s %s updated and verified", target.kind, target)
        return sanitized

    def apply(self, tree: SchemaTree, text: str) -> str:
        """Commit a comment for the node under the tree's cursor.

        The in-memory description is updated only after verification.
        """
        schema, table, column = tree.address()
        if table is None:
            raise ValueError("select a table or column to comment")

        # Capture the node before the round trip; the cursor is not ours
        node = tree.current_column() if column else tree.current_table()
        verified = self.commit(CommentTarget(schema, table, column), text)
        node.description = verified
        return verified
