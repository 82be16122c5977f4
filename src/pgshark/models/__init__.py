"""Data models for pgshark."""

from .schemas import (
    DEFAULT_EXCLUDED_SCHEMAS,
    Column,
    Credentials,
    Cursor,
    ItemLevel,
    Schema,
    SchemaFilter,
    SchemaRow,
    Table,
)

__all__ = [
    "DEFAULT_EXCLUDED_SCHEMAS",
    "Column",
    "Credentials",
    "Cursor",
    "ItemLevel",
    "Schema",
    "SchemaFilter",
    "SchemaRow",
    "Table",
]
