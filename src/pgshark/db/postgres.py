"""PostgreSQL client built on a SQLModel/SQLAlchemy engine (psycopg2 driver)."""

import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, create_engine

from pgshark.db.base import DatabaseClient
from pgshark.errors import ConnectError, QueryError, ReadError, WriteError
from pgshark.models import Credentials, SchemaFilter, SchemaRow

logger = logging.getLogger(__name__)


DEFAULT_CONNECT_TIMEOUT = 5  # seconds
DEFAULT_QUERY_TIMEOUT = 30  # seconds

SCHEMA_ROWS_SQL = """
WITH schemas AS (
    SELECT n.nspname, n.oid
    FROM pg_namespace n
    WHERE n.nspname = ANY(CAST(:include AS text[]))
    OR (
        n.nspname != ALL(CAST(:exclude AS text[]))
        AND n.nspname NOT LIKE 'pg\\_%'
        AND n.nspname != 'information_schema'
        AND cardinality(CAST(:include AS text[])) = 0
    )
),
base_tables AS (
    SELECT
        s.nspname AS schema_name,
        c.relname AS table_name,
        c.oid AS table_oid,
        obj_description(c.oid, 'pg_class') AS table_description
    FROM schemas s
    JOIN pg_class c ON c.relnamespace = s.oid
    WHERE c.relkind IN ('r', 'p')
    AND NOT c.relispartition
)
SELECT
    t.schema_name,
    t.table_name,
    t.table_description,
    a.attname AS column_name,
    pg_catalog.format_type(a.atttypid, a.atttypmod) AS column_type,
    col_description(t.table_oid, a.attnum) AS column_description,
    a.attnotnull AS not_null,
    a.atthasdef AS has_default,
    pg_get_expr(d.adbin, d.adrelid) AS column_default,
    EXISTS (
        SELECT 1 FROM pg_constraint c
        WHERE c.conrelid = t.table_oid AND c.contype = 'p' AND a.attnum = ANY(c.conkey)
    ) AS is_primary,
    EXISTS (
        SELECT 1 FROM pg_constraint c
        WHERE c.conrelid = t.table_oid AND c.contype = 'u' AND a.attnum = ANY(c.conkey)
    ) AS is_unique,
    (
        SELECT array_agg(c.conname ORDER BY c.conname)
        FROM pg_constraint c
        WHERE c.conrelid = t.table_oid AND a.attnum = ANY(c.conkey)
    ) AS constraints
FROM base_tables t
JOIN pg_attribute a ON a.attrelid = t.table_oid
LEFT JOIN pg_attrdef d ON d.adrelid = t.table_oid AND d.adnum = a.attnum
WHERE a.attnum > 0
AND NOT a.attisdropped
ORDER BY t.schema_name, t.table_name, a.attnum
"""

TABLE_COMMENT_SQL = """
SELECT obj_description(
    CAST(quote_ident(:schema) || '.' || quote_ident(:table) AS regclass), 'pg_class'
)
"""

COLUMN_COMMENT_SQL = """
SELECT col_description(
    CAST(quote_ident(:schema) || '.' || quote_ident(:table) AS regclass),
    (
        SELECT attnum FROM pg_attribute
        WHERE attrelid = CAST(quote_ident(:schema) || '.' || quote_ident(:table) AS regclass)
        AND attname = :column AND NOT attisdropped
    )
)
"""


def _one_line(exc: BaseException) -> str:
    """First line of a driver error, without SQLAlchemy's statement dump."""
    orig = getattr(exc, "orig", None) or exc
    message = str(orig).strip().splitlines()
    return message[0] if message else exc.__class__.__name__


class PostgresClient(DatabaseClient):
    """Connection to a PostgreSQL server.

    Use ``PostgresClient.connect`` to create one; it verifies the server is
    reachable before returning.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    @classmethod
    def connect(
        cls,
        credentials: Credentials,
        connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
        query_timeout: int = DEFAULT_QUERY_TIMEOUT,
    ) -> "PostgresClient":
        """Open a small pool and ping the server.

        Raises:
            ConnectError: invalid settings, unreachable server or rejected login.
        """
        try:
            url = credentials.url()
        except ValueError as exc:
            raise ConnectError(f"invalid connection config: {exc}") from exc

        logger.info("Connecting to %s", credentials.display_name())
        engine = create_engine(
            url,
            echo=False,
            pool_size=1,
            max_overflow=3,
            pool_recycle=3600,
            pool_pre_ping=True,
            connect_args={
                "connect_timeout": connect_timeout,
                "options": f"-c statement_timeout={int(query_timeout * 1000)}",
                "application_name": "pgshark",
            },
        )
        client = cls(engine)
        try:
            with Session(engine) as session:
                session.exec(text("SELECT 1"))
        except SQLAlchemyError as exc:
            engine.dispose()
            logger.warning("Connection to %s failed: %s", credentials.display_name(), _one_line(exc))
            raise ConnectError(f"failed to connect: {_one_line(exc)}") from exc

        logger.info("Connected to %s", credentials.display_name())
        return client

    def quote(self, identifier: str) -> str:
        return self.engine.dialect.identifier_preparer.quote_identifier(identifier)

    def list_schema_rows(self, schema_filter: Optional[SchemaFilter] = None) -> list[SchemaRow]:
        schema_filter = schema_filter or SchemaFilter()
        params = {
            "include": list(schema_filter.include),
            "exclude": list(schema_filter.exclude),
        }
        try:
            with Session(self.engine) as session:
                result = session.exec(text(SCHEMA_ROWS_SQL), params=params)
                rows = [SchemaRow(*row) for row in result]
        except SQLAlchemyError as exc:
            raise QueryError(f"schema query failed: {_one_line(exc)}") from exc

        logger.info("Introspection returned %d column rows", len(rows))
        return rows

    def set_comment(self, schema: str, table: str, column: Optional[str], comment: str) -> None:
        target = f"{self.quote(schema)}.{self.quote(table)}"
        if column:
            statement = f"COMMENT ON COLUMN {target}.{self.quote(column)} IS :comment"
        else:
            statement = f"COMMENT ON TABLE {target} IS :comment"

        try:
            with Session(self.engine) as session:
                session.exec(text(statement), params={"comment": comment})
                session.commit()
        except SQLAlchemyError as exc:
            raise WriteError(f"failed to update comment: {_one_line(exc)}") from exc

    def get_comment(self, schema: str, table: str, column: Optional[str]) -> str:
        params = {"schema": schema, "table": table}
        if column:
            statement = COLUMN_COMMENT_SQL
            params["column"] = column
        else:
            statement = TABLE_COMMENT_SQL

        try:
            with Session(self.engine) as session:
                value = session.exec(text(statement), params=params).scalar()
        except SQLAlchemyError as exc:
            raise ReadError(f"failed to verify comment: {_one_line(exc)}") from exc
        return value or ""

    def close(self) -> None:
        self.engine.dispose()
