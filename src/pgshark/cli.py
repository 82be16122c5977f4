"""Click CLI for pgshark."""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import click
from trogon import tui

from pgshark import __version__
from pgshark.assembler import assemble_schemas
from pgshark.comments import CommentEditor, CommentTarget
from pgshark.config import EXPORT_FORMAT_OPTIONS, PgsharkConfig
from pgshark.db import DatabaseClient, PostgresClient
from pgshark.errors import PgsharkError
from pgshark.export import export_to_file, render
from pgshark.logging_config import setup_logging
from pgshark.models import Credentials, SchemaFilter
from pgshark.storage import CredentialStore
from pgshark.tree import SchemaTree

logger = logging.getLogger(__name__)


def get_config() -> PgsharkConfig:
    """Load the persisted configuration."""
    return PgsharkConfig.load()


def get_store(config: PgsharkConfig) -> CredentialStore:
    """Credential store at the configured location."""
    return CredentialStore(config.credentials_path)


def connect_client(credentials: Credentials, config: PgsharkConfig) -> DatabaseClient:
    """Open a database client for the given credentials."""
    return PostgresClient.connect(
        credentials,
        connect_timeout=config.connect_timeout,
        query_timeout=config.query_timeout,
    )


def fail(message: str) -> None:
    logger.error(message)
    click.echo(f"Error: {message}", err=True)
    raise SystemExit(1)


@contextmanager
def open_session(config: PgsharkConfig) -> Iterator[DatabaseClient]:
    """Connect with the saved credentials, or exit with an error."""
    try:
        credentials = get_store(config).load()
    except PgsharkError as e:
        fail(str(e))
    if credentials is None:
        fail("No saved credentials. Run 'pgshark connect' first.")

    try:
        client = connect_client(credentials, config)
    except PgsharkError as e:
        fail(str(e))

    try:
        yield client
    finally:
        client.close()


def build_filter(config: PgsharkConfig, include: tuple[str, ...], exclude: tuple[str, ...]) -> SchemaFilter:
    schema_filter = config.schema_filter()
    if include:
        schema_filter.include = list(include)
    if exclude:
        schema_filter.exclude = list(exclude)
    return schema_filter


@tui()
@click.group()
@click.version_option(version=__version__, prog_name="pgshark")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """pgshark - PostgreSQL schema explorer.

    Browse schemas, export documentation and edit comments.

    Quick start:
        pgshark connect           Save connection details
        pgshark explore           Launch the interactive explorer
        pgshark export -o db.md   Export everything as Markdown
        pgshark tui               Launch command explorer (Trogon)
    """
    config = get_config()
    setup_logging(config.log_level, config.log_dir)
    ctx.obj = config


@cli.command()
@click.pass_obj
def explore(config: PgsharkConfig) -> None:
    """Launch the interactive schema explorer.

    Keyboard shortcuts:
        ↑/k ↓/j   - Move
        →/l ←/h   - Expand / collapse
        space     - Toggle selection
        d         - Deselect all
        m         - Export selection to clipboard
        c         - Comment on table or column
        e         - Edit connection details
        q         - Quit
    """
    from pgshark.tui import PgsharkApp

    app = PgsharkApp(
        config=config,
        store=get_store(config),
        connector=lambda credentials: connect_client(credentials, config),
    )
    app.run()


@cli.command()
@click.option("--host", prompt=True, default="localhost", help="Database host")
@click.option("--port", prompt=True, default="5432", help="Database port")
@click.option("--database", "-d", prompt=True, help="Database name")
@click.option("--user", "-u", prompt=True, help="Database user")
@click.option("--password", prompt=True, hide_input=True, default="", help="Database password")
@click.pass_obj
def connect(config: PgsharkConfig, host: str, port: str, database: str, user: str, password: str) -> None:
    """Test connection details and save them encrypted."""
    credentials = Credentials(host=host, port=port, database=database, user=user, password=password)

    try:
        client = connect_client(credentials, config)
    except PgsharkError as e:
        fail(str(e))
    client.close()

    try:
        get_store(config).save(credentials)
    except PgsharkError as e:
        fail(str(e))

    click.echo(f"✓ Connected to {credentials.display_name()}")
    click.echo(f"  Credentials saved to {config.credentials_path}")


@cli.command()
@click.option("--include", "-i", multiple=True, help="Only these schemas (repeatable)")
@click.option("--exclude", "-x", multiple=True, help="Skip these schemas (repeatable)")
@click.option("--verbose", "-v", is_flag=True, help="Show columns")
@click.pass_obj
def schemas(config: PgsharkConfig, include: tuple[str, ...], exclude: tuple[str, ...], verbose: bool) -> None:
    """List schemas and their tables."""
    with open_session(config) as client:
        try:
            result = assemble_schemas(client.list_schema_rows(build_filter(config, include, exclude)))
        except PgsharkError as e:
            fail(str(e))

    if not result:
        click.echo("No schemas found.")
        return

    for schema in result:
        click.echo(f"\n{schema.name}")
        for table in schema.tables:
            line = f"  {table.name} ({len(table.columns)} columns)"
            if table.description:
                line += f" - {table.description}"
            click.echo(line)
            if verbose:
                for column in table.columns:
                    labels = column.constraint_labels()
                    detail = f" ({', '.join(labels)})" if labels else ""
                    click.echo(f"      {column.name}: {column.type}{detail}")

    table_count = sum(len(s.tables) for s in result)
    click.echo(f"\nTotal: {len(result)} schemas, {table_count} tables")


@cli.command()
@click.option(
    "--select", "-s", "selections",
    multiple=True,
    help="schema[.table[.column]] to export (repeatable; default: everything)",
)
@click.option(
    "--format", "-f", "export_format",
    type=click.Choice([value for value, _ in EXPORT_FORMAT_OPTIONS]),
    default=None,
    help="Output format (default: from config)",
)
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Write to file instead of stdout")
@click.pass_obj
def export(config: PgsharkConfig, selections: tuple[str, ...], export_format: Optional[str], output: Optional[Path]) -> None:
    """Export schema documentation."""
    export_format = export_format or config.export_format

    with open_session(config) as client:
        try:
            tree = SchemaTree(assemble_schemas(client.list_schema_rows(config.schema_filter())))
        except PgsharkError as e:
            fail(str(e))

    if selections:
        for path in selections:
            parts = path.split(".")
            if len(parts) > 3 or not all(parts):
                fail(f"Invalid selection '{path}'. Use schema[.table[.column]].")
            if not tree.select_path(*parts):
                fail(f"'{path}' not found.")
    else:
        tree.select_all()

    if not tree.has_selection():
        fail("Nothing selected to export.")

    if output:
        export_to_file(tree.schemas, output, export_format)
        click.echo(f"✓ Exported to {output}")
    else:
        click.echo(render(tree.schemas, export_format), nl=False)


@cli.command()
@click.argument("target")
@click.argument("text")
@click.pass_obj
def comment(config: PgsharkConfig, target: str, text: str) -> None:
    """Set and verify the comment on a table or column.

    TARGET: schema.table or schema.table.column
    TEXT: The new comment
    """
    try:
        comment_target = CommentTarget.parse(target)
    except ValueError as e:
        fail(str(e))

    with open_session(config) as client:
        try:
            saved = CommentEditor(client).commit(comment_target, text)
        except PgsharkError as e:
            fail(str(e))

    click.echo(f"✓ Comment on {comment_target.kind} {comment_target} updated and verified")
    click.echo(f"  {saved}")


# =============================================================================
# Config Commands
# =============================================================================


@cli.group("config")
def config_group() -> None:
    """View and edit pgshark settings."""
    pass


@config_group.command("show")
@click.pass_obj
def config_show(config: PgsharkConfig) -> None:
    """Show current settings."""
    click.echo(f"Config file: {config.get_config_path()}")
    click.echo(f"  theme:           {config.theme}")
    click.echo(f"  export_format:   {config.export_format}")
    click.echo(f"  include_schemas: {', '.join(config.include_schemas) or '-'}")
    click.echo(f"  exclude_schemas: {', '.join(config.exclude_schemas) or '-'}")
    click.echo(f"  connect_timeout: {config.connect_timeout}")
    click.echo(f"  query_timeout:   {config.query_timeout}")
    click.echo(f"  log_level:       {config.log_level}")


@config_group.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_obj
def config_set(config: PgsharkConfig, key: str, value: str) -> None:
    """Set a configuration value.

    KEY: Setting name (see 'pgshark config show')
    VALUE: New value; lists are comma-separated
    """
    try:
        config.set_value(key, value)
    except KeyError:
        fail(f"Unknown setting '{key}'.")
    except ValueError as e:
        fail(str(e))
    config.save()
    click.echo(f"✓ {key} = {getattr(config, key)}")


@config_group.command("reset")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_obj
def config_reset(config: PgsharkConfig, yes: bool) -> None:
    """Reset all settings to defaults."""
    if not yes:
        click.confirm("Reset all settings to defaults?", abort=True)
    config.reset()
    config.save()
    click.echo("✓ Settings reset to defaults")


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
