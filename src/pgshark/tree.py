"""Selection and navigation over the schema tree.

``SchemaTree`` owns the assembled schemas and the cursor. Selection flags
are tri-state: a table with columns is selected exactly when all of its
columns are, a schema with tables exactly when all of its tables are.
"""

from typing import Iterator, Optional, Union

from pgshark.models import Column, Cursor, ItemLevel, Schema, Table


class SchemaTree:
    """The explorer's tree plus a cursor over its visible items."""

    def __init__(self, schemas: Optional[list[Schema]] = None) -> None:
        self.schemas: list[Schema] = schemas or []
        self.cursor = Cursor()

    # ------------------------------------------------------------------
    # Addressing
    # ------------------------------------------------------------------

    def _valid(self, cursor: Cursor) -> bool:
        if not 0 <= cursor.schema < len(self.schemas):
            return False
        schema = self.schemas[cursor.schema]
        if cursor.table == -1:
            return cursor.column == -1
        if not 0 <= cursor.table < len(schema.tables):
            return False
        if cursor.column == -1:
            return True
        return 0 <= cursor.column < len(schema.tables[cursor.table].columns)

    def current_schema(self) -> Optional[Schema]:
        if not self._valid(self.cursor):
            return None
        return self.schemas[self.cursor.schema]

    def current_table(self) -> Optional[Table]:
        if not self._valid(self.cursor) or self.cursor.table == -1:
            return None
        return self.schemas[self.cursor.schema].tables[self.cursor.table]

    def current_column(self) -> Optional[Column]:
        table = self.current_table()
        if table is None or self.cursor.column == -1:
            return None
        return table.columns[self.cursor.column]

    def current_node(self) -> Optional[Union[Schema, Table, Column]]:
        return self.current_column() or self.current_table() or self.current_schema()

    def address(self, cursor: Optional[Cursor] = None) -> tuple[str, Optional[str], Optional[str]]:
        """Return (schema, table, column) names for a cursor."""
        cursor = cursor or self.cursor
        if not self._valid(cursor):
            raise IndexError(f"cursor {cursor} does not address a node")
        schema = self.schemas[cursor.schema]
        if cursor.table == -1:
            return schema.name, None, None
        table = schema.tables[cursor.table]
        if cursor.column == -1:
            return schema.name, table.name, None
        return schema.name, table.name, table.columns[cursor.column].name

    def reset_cursor(self) -> None:
        """Put the cursor on the first visible item."""
        self.cursor = Cursor()

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def iter_visible(self) -> Iterator[Cursor]:
        """Yield visible items in depth-first pre-order.

        Descendants of a collapsed node are skipped entirely.
        """
        for si, schema in enumerate(self.schemas):
            yield Cursor(si, -1, -1)
            if not schema.expanded:
                continue
            for ti, table in enumerate(schema.tables):
                yield Cursor(si, ti, -1)
                if not table.expanded:
                    continue
                for ci in range(len(table.columns)):
                    yield Cursor(si, ti, ci)

    def visible_items(self) -> list[Cursor]:
        return list(self.iter_visible())

    def move_cursor(self, delta: int) -> None:
        """Move the cursor by ``delta`` visible items, clamped to the ends."""
        items = self.visible_items()
        if not items:
            return

        try:
            current = items.index(self.cursor)
        except ValueError:
            current = -1

        target = max(0, min(current + delta, len(items) - 1))
        self.cursor = items[target]

    def expand(self) -> None:
        """Expand the node under the cursor and step into its first child."""
        cursor = self.cursor
        if cursor.level is ItemLevel.SCHEMA:
            schema = self.current_schema()
            if schema is None:
                return
            schema.expanded = True
            if schema.tables:
                self.cursor = Cursor(cursor.schema, 0, -1)
        elif cursor.level is ItemLevel.TABLE:
            table = self.current_table()
            if table is None:
                return
            table.expanded = True
            if table.columns:
                self.cursor = Cursor(cursor.schema, cursor.table, 0)

    def collapse(self) -> None:
        """Collapse the node under the cursor, or step out to its parent."""
        cursor = self.cursor
        if self.current_schema() is None:
            return

        if cursor.level is ItemLevel.COLUMN:
            self.cursor = Cursor(cursor.schema, cursor.table, -1)
            return

        if cursor.level is ItemLevel.TABLE:
            table = self.current_table()
            if table.expanded:
                table.expanded = False
            else:
                self.cursor = Cursor(cursor.schema, -1, -1)
            return

        schema = self.current_schema()
        if schema.expanded:
            schema.expanded = False
            self.cursor = Cursor(cursor.schema, -1, -1)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    @staticmethod
    def _recompute_table(table: Table) -> None:
        if table.columns:
            table.selected = all(c.selected for c in table.columns)

    @staticmethod
    def _recompute_schema(schema: Schema) -> None:
        if schema.tables:
            schema.selected = all(t.selected for t in schema.tables)

    @staticmethod
    def _set_table(table: Table, value: bool) -> None:
        table.selected = value
        for column in table.columns:
            column.selected = value

    def toggle_selection(self) -> None:
        """Flip selection at the cursor and restore the AND invariant."""
        schema = self.current_schema()
        if schema is None:
            return

        level = self.cursor.level
        if level is ItemLevel.SCHEMA:
            schema.selected = not schema.selected
            for table in schema.tables:
                self._set_table(table, schema.selected)
            return

        table = self.current_table()
        if level is ItemLevel.TABLE:
            self._set_table(table, not table.selected)
            self._recompute_schema(schema)
            return

        column = self.current_column()
        column.selected = not column.selected
        self._recompute_table(table)
        self._recompute_schema(schema)

    def deselect_all(self) -> None:
        for schema in self.schemas:
            schema.selected = False
            for table in schema.tables:
                self._set_table(table, False)

    def has_selection(self) -> bool:
        return any(
            schema.selected
            or any(
                table.selected or any(c.selected for c in table.columns)
                for table in schema.tables
            )
            for schema in self.schemas
        )

    def select_path(self, schema_name: str, table_name: Optional[str] = None, column_name: Optional[str] = None) -> bool:
        """Select a node by name, keeping the invariant.

        Returns False when no such node exists. Used by non-interactive export.
        """
        for si, schema in enumerate(self.schemas):
            if schema.name != schema_name:
                continue
            if table_name is None:
                cursor = Cursor(si, -1, -1)
                selected = schema.selected
            else:
                ti = next((i for i, t in enumerate(schema.tables) if t.name == table_name), None)
                if ti is None:
                    return False
                table = schema.tables[ti]
                if column_name is None:
                    cursor = Cursor(si, ti, -1)
                    selected = table.selected
                else:
                    ci = next((i for i, c in enumerate(table.columns) if c.name == column_name), None)
                    if ci is None:
                        return False
                    cursor = Cursor(si, ti, ci)
                    selected = table.columns[ci].selected

            if not selected:
                saved, self.cursor = self.cursor, cursor
                self.toggle_selection()
                self.cursor = saved
            return True
        return False

    def select_all(self) -> None:
        for schema in self.schemas:
            schema.selected = True
            for table in schema.tables:
                self._set_table(table, True)
