"""Database client interface used by the explorer."""

from abc import ABC, abstractmethod
from typing import Optional

from pgshark.models import SchemaFilter, SchemaRow


class DatabaseClient(ABC):
    """Abstract connection to a database that stores descriptive comments."""

    @abstractmethod
    def list_schema_rows(self, schema_filter: Optional[SchemaFilter] = None) -> list[SchemaRow]:
        """Return one row per column, ordered by schema, table, attribute number.

        Raises QueryError.
        """
        pass

    @abstractmethod
    def set_comment(self, schema: str, table: str, column: Optional[str], comment: str) -> None:
        """Set the comment on a table (column is None) or a column.

        Raises WriteError.
        """
        pass

    @abstractmethod
    def get_comment(self, schema: str, table: str, column: Optional[str]) -> str:
        """Read the comment on a table or column; a missing comment is "".

        Raises ReadError.
        """
        pass

    def close(self) -> None:
        """Release the connection."""
        pass

    def __enter__(self) -> "DatabaseClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()
