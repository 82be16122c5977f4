"""SQLModel schemas for the pgshark metadata tree."""

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional

from sqlalchemy.engine import URL
from sqlmodel import Field, SQLModel


DEFAULT_EXCLUDED_SCHEMAS = ["pg_catalog", "information_schema"]


class ItemLevel(str, Enum):
    """Levels of the schema tree a cursor can address."""

    SCHEMA = "schema"
    TABLE = "table"
    COLUMN = "column"


class Column(SQLModel):
    """A table column as reported by introspection."""

    name: str
    type: str = ""
    description: str = ""
    is_nullable: bool = True
    has_default: bool = False
    default: str = ""
    is_primary: bool = False
    is_unique: bool = False
    constraints: list[str] = Field(default_factory=list)  # Named constraints, catalog order

    selected: bool = False

    def constraint_labels(self) -> list[str]:
        """Human-readable constraint labels, in display order."""
        labels = []
        if self.is_primary:
            labels.append("PRIMARY KEY")
        if self.is_unique:
            labels.append("UNIQUE")
        if not self.is_nullable:
            labels.append("NOT NULL")
        if self.has_default:
            labels.append(f"DEFAULT {self.default}")
        labels.extend(self.constraints)
        return labels


class Table(SQLModel):
    """A table and its columns, in attribute order."""

    name: str
    description: str = ""
    columns: list[Column] = Field(default_factory=list)

    selected: bool = False
    expanded: bool = True

    def find_column(self, name: str) -> Optional[Column]:
        for column in self.columns:
            if column.name == name:
                return column
        return None


class Schema(SQLModel):
    """A database schema (namespace) and its tables."""

    name: str
    tables: list[Table] = Field(default_factory=list)

    selected: bool = False
    expanded: bool = True

    def find_table(self, name: str) -> Optional[Table]:
        for table in self.tables:
            if table.name == name:
                return table
        return None


class Credentials(SQLModel):
    """Connection details for a PostgreSQL server."""

    host: str = "localhost"
    port: str = "5432"
    database: str = ""
    user: str = ""
    password: str = ""

    def url(self) -> URL:
        """Build a SQLAlchemy URL for the psycopg2 driver.

        URL.create escapes special characters in the user and password.
        """
        return URL.create(
            "postgresql+psycopg2",
            username=self.user or None,
            password=self.password or None,
            host=self.host or None,
            port=int(self.port) if self.port else None,
            database=self.database or None,
        )

    def display_name(self) -> str:
        """Connection label without the password."""
        return f"{self.user}@{self.host}:{self.port}/{self.database}"


class SchemaFilter(SQLModel):
    """Which schemas to introspect.

    A non-empty include list is authoritative; otherwise every schema is
    listed except the excluded ones and the pg_* system namespaces.
    """

    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDED_SCHEMAS))


class SchemaRow(NamedTuple):
    """One column-describing record from the introspection query."""

    schema_name: str
    table_name: str
    table_description: Optional[str]
    column_name: str
    column_type: str
    column_description: Optional[str]
    not_null: bool
    has_default: bool
    default_expr: Optional[str]
    is_primary: bool
    is_unique: bool
    constraint_names: Optional[list[str]]


@dataclass(frozen=True)
class Cursor:
    """Address of a visible item as a (schema, table, column) index triple.

    table == -1 addresses the schema itself, column == -1 the table itself.
    """

    schema: int = 0
    table: int = -1
    column: int = -1

    @property
    def level(self) -> ItemLevel:
        if self.table == -1:
            return ItemLevel.SCHEMA
        if self.column == -1:
            return ItemLevel.TABLE
        return ItemLevel.COLUMN
