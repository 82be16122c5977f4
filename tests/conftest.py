"""Shared fixtures and in-memory collaborators for pgshark tests."""

from typing import Optional

import pytest

from pgshark.assembler import assemble_schemas
from pgshark.db.base import DatabaseClient
from pgshark.errors import StorageError
from pgshark.models import Credentials, SchemaFilter, SchemaRow
from pgshark.tree import SchemaTree


def row(
    schema: str,
    table: str,
    column: str,
    column_type: str = "integer",
    *,
    table_description: Optional[str] = None,
    column_description: Optional[str] = None,
    not_null: bool = False,
    has_default: bool = False,
    default_expr: Optional[str] = None,
    is_primary: bool = False,
    is_unique: bool = False,
    constraint_names: Optional[list[str]] = None,
) -> SchemaRow:
    """Build an introspection record with sensible defaults."""
    return SchemaRow(
        schema,
        table,
        table_description,
        column,
        column_type,
        column_description,
        not_null,
        has_default,
        default_expr,
        is_primary,
        is_unique,
        constraint_names,
    )


SAMPLE_ROWS = [
    row("public", "users", "id", not_null=True, is_primary=True,
        has_default=True, default_expr="nextval('users_id_seq'::regclass)",
        table_description="Registered users"),
    row("public", "users", "email", "character varying(255)", not_null=True,
        is_unique=True, column_description="Login address",
        table_description="Registered users"),
    row("public", "orders", "id", not_null=True, is_primary=True),
    row("public", "orders", "user_id", constraint_names=["orders_user_id_fkey"]),
    row("audit", "events", "id", "bigint", not_null=True, is_primary=True),
]


class FakeClient(DatabaseClient):
    """In-memory database client.

    ``write_through=False`` simulates a server that silently keeps the old
    comment, so verification fails.
    """

    def __init__(self, rows=None, comments=None, write_through: bool = True, error=None):
        self.rows = list(SAMPLE_ROWS if rows is None else rows)
        self.comments = dict(comments or {})
        self.write_through = write_through
        self.error = error
        self.writes = []
        self.filters = []
        self.closed = False

    def list_schema_rows(self, schema_filter: Optional[SchemaFilter] = None):
        self.filters.append(schema_filter)
        if self.error is not None:
            raise self.error
        return list(self.rows)

    def set_comment(self, schema, table, column, comment):
        self.writes.append((schema, table, column, comment))
        if self.write_through:
            self.comments[(schema, table, column)] = comment

    def get_comment(self, schema, table, column):
        return self.comments.get((schema, table, column), "")

    def close(self):
        self.closed = True


class FakeStore:
    """Credential store kept in memory."""

    def __init__(self, credentials: Optional[Credentials] = None, load_error=None, save_error=None):
        self.credentials = credentials
        self.load_error = load_error
        self.save_error = save_error
        self.saved = []

    def load(self) -> Optional[Credentials]:
        if self.load_error is not None:
            raise StorageError(self.load_error)
        return self.credentials

    def save(self, credentials: Credentials) -> None:
        if self.save_error is not None:
            raise StorageError(self.save_error)
        self.saved.append(credentials)
        self.credentials = credentials


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(host="db.local", port="5432", database="app", user="alice", password="s3cret")


@pytest.fixture
def schemas():
    return assemble_schemas(SAMPLE_ROWS)


@pytest.fixture
def tree(schemas) -> SchemaTree:
    return SchemaTree(schemas)


@pytest.fixture(autouse=True)
def pgshark_home(tmp_path, monkeypatch):
    """Keep config, credentials and logs inside the test's tmp dir."""
    home = tmp_path / "pgshark-home"
    monkeypatch.setenv("PGSHARK_HOME", str(home))
    return home
