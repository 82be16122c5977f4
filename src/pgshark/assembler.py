"""Build the Schema -> Table -> Column tree from flat introspection rows."""

import logging
from typing import Iterable, Sequence

from pgshark.errors import QueryError
from pgshark.models import Column, Schema, SchemaRow, Table

logger = logging.getLogger(__name__)


def _coerce_row(index: int, raw: Sequence) -> SchemaRow:
    """Validate one record and return it as a SchemaRow."""
    try:
        row = raw if isinstance(raw, SchemaRow) else SchemaRow(*raw)
    except TypeError as exc:
        raise QueryError(
            f"malformed schema record #{index}: expected {len(SchemaRow._fields)} fields"
        ) from exc

    for field in ("schema_name", "table_name", "column_name"):
        value = getattr(row, field)
        if not isinstance(value, str) or not value:
            raise QueryError(f"malformed schema record #{index}: missing {field}")
    return row


def assemble_schemas(rows: Iterable[Sequence]) -> list[Schema]:
    """Group column records into schemas and tables.

    Rows are expected ordered by schema, table, then attribute number; column
    order within a table is preserved as given. Schemas and tables are sorted
    by name afterwards so identical input always yields the same tree.

    Raises QueryError on the first malformed record; no partial tree is
    returned in that case.
    """
    schemas: dict[str, Schema] = {}
    row_count = 0

    for index, raw in enumerate(rows):
        row = _coerce_row(index, raw)
        row_count += 1

        schema = schemas.get(row.schema_name)
        if schema is None:
            schema = Schema(name=row.schema_name)
            schemas[row.schema_name] = schema

        # Linear scan; tables per schema are few
        table = schema.find_table(row.table_name)
        if table is None:
            table = Table(name=row.table_name, description=row.table_description or "")
            schema.tables.append(table)

        table.columns.append(
            Column(
                name=row.column_name,
                type=row.column_type or "",
                description=row.column_description or "",
                is_nullable=not row.not_null,
                has_default=bool(row.has_default),
                default=row.default_expr or "",
                is_primary=bool(row.is_primary),
                is_unique=bool(row.is_unique),
                constraints=list(row.constraint_names or []),
            )
        )

    result = sorted(schemas.values(), key=lambda s: s.name)
    for schema in result:
        schema.tables.sort(key=lambda t: t.name)

    logger.info("Assembled %d schemas from %d column rows", len(result), row_count)
    return result
