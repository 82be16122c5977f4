"""pgshark - PostgreSQL schema explorer."""

__version__ = "0.1.0"
