"""Textual interface for pgshark."""

from pgshark.tui.app import PgsharkApp

__all__ = ["PgsharkApp"]
