"""Database access for pgshark."""

from .base import DatabaseClient
from .postgres import PostgresClient

__all__ = [
    "DatabaseClient",
    "PostgresClient",
]
