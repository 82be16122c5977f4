"""Export the selected part of a schema tree as documentation.

Two formats are supported:

- Markdown, one section per schema and table with a column table;
- YAML, a nested document of the same selection::

    export:
      version: "1.0"
      generated_at: "2026-01-17T10:30:00+00:00"
    schemas:
      - name: public
        tables:
          - name: users
            description: "Registered users"
            columns:
              - name: id
                type: integer
                constraints: [PRIMARY KEY, NOT NULL]
                description: null

A node is exported when it is selected itself, when an ancestor is
selected, or when any descendant is selected (its header is then kept so
the partial selection has context).
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import yaml

from pgshark.models import Column, Schema, Table


EXPORT_VERSION = "1.0"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _schema_included(schema: Schema) -> bool:
    if schema.selected:
        return True
    return any(_table_included(schema, table) for table in schema.tables)


def _table_included(schema: Schema, table: Table) -> bool:
    if schema.selected or table.selected:
        return True
    return any(column.selected for column in table.columns)


def _column_included(schema: Schema, table: Table, column: Column) -> bool:
    return column.selected or table.selected or schema.selected


def _escape_cell(value: str) -> str:
    return value.replace("|", "\\|").replace("\n", " ")


def render_markdown(schemas: list[Schema], generated_at: Optional[datetime] = None) -> str:
    """Render the selection as Markdown."""
    generated_at = generated_at or datetime.now()
    lines = [
        "# Database Schema Documentation",
        "",
        f"Generated: {generated_at.strftime(TIMESTAMP_FORMAT)}",
        "",
    ]

    for schema in schemas:
        if not _schema_included(schema):
            continue

        lines += [f"## Schema: `{schema.name}`", ""]

        for table in schema.tables:
            if not _table_included(schema, table):
                continue

            lines += [f"### Table: `{table.name}`", ""]
            if table.description:
                lines += [table.description, ""]

            lines += [
                "#### Columns",
                "",
                "| Name | Type | Constraints | Description |",
                "|------|------|-------------|-------------|",
            ]
            for column in table.columns:
                if not _column_included(schema, table, column):
                    continue
                constraints = ", ".join(column.constraint_labels()) or "-"
                description = column.description or "-"
                lines.append(
                    f"| `{_escape_cell(column.name)}` | `{_escape_cell(column.type)}` "
                    f"| {_escape_cell(constraints)} | {_escape_cell(description)} |"
                )
            lines.append("")

    return "\n".join(lines) + "\n"


def generate_export(schemas: list[Schema]) -> dict:
    """Build the export document for the selection.

    Args:
        schemas: Assembled schema tree with selection flags

    Returns:
        Dictionary in export format
    """
    document = {
        "export": {
            "version": EXPORT_VERSION,
            "generated_at": datetime.now(timezone.utc).isoformat(),
        },
        "schemas": [],
    }

    for schema in schemas:
        if not _schema_included(schema):
            continue

        tables = []
        for table in schema.tables:
            if not _table_included(schema, table):
                continue
            tables.append({
                "name": table.name,
                "description": table.description or None,
                "columns": [
                    {
                        "name": column.name,
                        "type": column.type,
                        "nullable": column.is_nullable,
                        "default": column.default if column.has_default else None,
                        "constraints": column.constraint_labels(),
                        "description": column.description or None,
                    }
                    for column in table.columns
                    if _column_included(schema, table, column)
                ],
            })

        document["schemas"].append({"name": schema.name, "tables": tables})

    return document


class _ExportDumper(yaml.SafeDumper):
    """YAML dumper that writes multi-line strings as literal blocks."""


def _str_representer(dumper, data):
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


_ExportDumper.add_representer(str, _str_representer)


def render_yaml(schemas: list[Schema]) -> str:
    """Render the selection as YAML."""
    return yaml.dump(
        generate_export(schemas),
        Dumper=_ExportDumper,
        default_flow_style=False,
        allow_unicode=True,
        sort_keys=False,
        width=100,
    )


RENDERERS = {
    "markdown": render_markdown,
    "yaml": render_yaml,
}


def render(schemas: list[Schema], export_format: str = "markdown") -> str:
    """Render the selection in the given format."""
    try:
        renderer = RENDERERS[export_format]
    except KeyError:
        raise ValueError(f"unknown export format: {export_format}") from None
    return renderer(schemas)


def export_to_file(schemas: list[Schema], output_path: Path, export_format: str = "markdown") -> str:
    """Render the selection and write it to ``output_path``."""
    content = render(schemas, export_format)
    output_path.write_text(content, encoding="utf-8")
    return content
