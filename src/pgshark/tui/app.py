"""Main pgshark TUI application."""

import logging
from functools import partial
from typing import Callable, Optional

from rich.text import Text
from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Footer, Header, Input, Label, LoadingIndicator, Static

from pgshark.config import AVAILABLE_THEMES, PgsharkConfig
from pgshark.db import DatabaseClient, PostgresClient
from pgshark.errors import ClipboardError
from pgshark.models import Credentials, Schema
from pgshark.state import (
    FORM_STATES,
    AppState,
    Cancel,
    Collapse,
    ConfirmComment,
    DeselectAll,
    EditConnection,
    Effect,
    EffectRunner,
    Event,
    Exit,
    ExplorerMachine,
    Expand,
    ExportSelection,
    MoveCursor,
    OpenComment,
    Quit,
    SubmitCredentials,
    ToggleSelection,
)
from pgshark.storage import CredentialStore
from pgshark.tree import SchemaTree

logger = logging.getLogger(__name__)


HELP_TEXT = (
    "↑/↓: navigate • space: select • →/←: expand/collapse • d: deselect all • "
    "e: edit connection details • m: export • c: comment • q: quit"
)

# Styles for the schema view
STYLE_CURSOR = "bold magenta"
STYLE_NORMAL = ""
STYLE_DESCRIPTION = "cyan"
STYLE_MUTED = "dim"

INDENT_TABLE = "    "
INDENT_COLUMN = "        "


class TextualClipboard:
    """Clipboard sink that writes through the terminal (OSC 52)."""

    def __init__(self, app: App) -> None:
        self.app = app

    def write(self, text: str) -> None:
        try:
            self.app.copy_to_clipboard(text)
        except OSError as exc:
            raise ClipboardError(f"could not copy to clipboard: {exc}") from exc


def render_tree(tree: SchemaTree) -> Text:
    """Render the visible part of the tree with the cursor highlighted."""
    text = Text()
    cursor = tree.cursor

    for item in tree.iter_visible():
        schema = tree.schemas[item.schema]
        style = STYLE_CURSOR if item == cursor else STYLE_NORMAL

        if item.table == -1:
            marker = "▼" if schema.expanded else "▶"
            prefix = "* " if schema.selected else ""
            text.append(f"{prefix}{marker} {schema.name}", style=style)
            text.append("\n")
            continue

        table = schema.tables[item.table]
        if item.column == -1:
            marker = "▼" if table.expanded else "▶"
            prefix = "* " if table.selected else ""
            text.append(f"{INDENT_TABLE}{prefix}{marker} {table.name}", style=style)
            if table.description:
                text.append(f" - {table.description}", style=STYLE_DESCRIPTION)
            text.append("\n")
            continue

        column = table.columns[item.column]
        prefix = "* " if column.selected else "  "
        line = f"{INDENT_COLUMN}{prefix}{column.name}"
        if column.type:
            line += f": {column.type}"
            labels = column.constraint_labels()
            if labels:
                line += f" ({', '.join(labels)})"
        text.append(line, style=style)
        if column.description:
            text.append(f" - {column.description}", style=STYLE_DESCRIPTION)
        text.append("\n")

    return text


class SchemaScroll(VerticalScroll, can_focus=False):
    """Scroll area for the tree; keys go to the app bindings instead."""


class SchemaView(Static):
    """The explorer body: schemas, tables and columns."""

    def show_loading(self) -> None:
        self.update(Text("Loading...", style=STYLE_MUTED))

    def show_tree(self, tree: SchemaTree) -> None:
        if not tree.schemas:
            self.update(Text("No schemas found.", style=STYLE_MUTED))
            return
        self.update(render_tree(tree))


class CredentialsScreen(ModalScreen):
    """Connection details form."""

    CSS = """
    CredentialsScreen {
        align: center middle;
    }

    #credentials-dialog {
        width: 70;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: solid $primary;
    }

    #credentials-dialog Horizontal {
        height: auto;
    }

    #credentials-dialog .field-label {
        width: 12;
        padding: 1 0;
    }

    #credentials-dialog Input {
        width: 1fr;
    }

    #credentials-error {
        color: $error;
        text-style: bold;
        margin-top: 1;
    }

    #credentials-help {
        color: $text-muted;
        margin-top: 1;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    FIELDS = [
        ("host", "Host:"),
        ("port", "Port:"),
        ("database", "Database:"),
        ("user", "User:"),
        ("password", "Password:"),
    ]

    def __init__(self, form: Credentials, editing: bool = False, error: Optional[str] = None) -> None:
        super().__init__()
        self.form = form
        self.editing = editing
        self.error = error

    def compose(self) -> ComposeResult:
        with Vertical(id="credentials-dialog"):
            yield Label("PostgreSQL Connection Details", classes="title")
            for name, label in self.FIELDS:
                with Horizontal():
                    yield Label(label, classes="field-label")
                    yield Input(
                        value=getattr(self.form, name),
                        placeholder=label.rstrip(":"),
                        password=name == "password",
                        id=f"input-{name}",
                    )
            yield Label(self.error or "", id="credentials-error")
            help_text = "Press Enter to connect"
            if self.editing:
                help_text += ", Esc to cancel"
            yield Label(help_text, id="credentials-help")

    def on_mount(self) -> None:
        self.query_one("#input-host", Input).focus()

    def show_error(self, error: Optional[str]) -> None:
        self.query_one("#credentials-error", Label).update(error or "")

    def collect(self) -> Credentials:
        values = {
            name: self.query_one(f"#input-{name}", Input).value
            for name, _ in self.FIELDS
        }
        return Credentials(**values)

    @on(Input.Submitted)
    def on_submit(self) -> None:
        self.app.handle_event(SubmitCredentials(self.collect()))

    def action_cancel(self) -> None:
        self.app.handle_event(Cancel())


class CommentScreen(ModalScreen):
    """Edit the comment on a table or column."""

    CSS = """
    CommentScreen {
        align: center middle;
    }

    #comment-dialog {
        width: 80%;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: solid $primary;
    }

    #comment-current {
        color: $accent;
        margin: 1 0 0 0;
    }

    #comment-dialog Input {
        margin: 1 0;
    }

    #comment-error {
        color: $error;
        text-style: bold;
    }

    #comment-help {
        color: $text-muted;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    def __init__(self, kind: str, name: str, current: str, buffer: str) -> None:
        super().__init__()
        self.kind = kind
        self.item_name = name
        self.current = current
        self.buffer = buffer

    def compose(self) -> ComposeResult:
        with Vertical(id="comment-dialog"):
            yield Label(f"Adding comment to {self.kind}: {self.item_name}", classes="title")
            if self.current:
                yield Label(f"Current comment: {self.current}", id="comment-current")
            yield Input(value=self.buffer, placeholder="Enter comment", id="comment-input")
            yield Label("", id="comment-error")
            yield Label("Press Enter to save, Esc to cancel", id="comment-help")

    def on_mount(self) -> None:
        self.query_one("#comment-input", Input).focus()

    def show_error(self, error: Optional[str]) -> None:
        self.query_one("#comment-error", Label).update(error or "")

    @on(Input.Submitted, "#comment-input")
    def on_submit(self, event: Input.Submitted) -> None:
        self.app.handle_event(ConfirmComment(event.value))

    def action_cancel(self) -> None:
        self.app.handle_event(Cancel())


class PgsharkApp(App):
    """Interactive PostgreSQL schema explorer."""

    TITLE = "pgshark"
    SUB_TITLE = "PostgreSQL Schema Explorer"

    CSS = """
    Screen {
        layout: vertical;
    }

    #help-bar {
        height: auto;
        padding: 0 1;
        color: $text-muted;
    }

    #loading {
        height: 3;
    }

    #schema-scroll {
        height: 1fr;
        padding: 0 1;
    }

    #status-bar {
        dock: bottom;
        height: auto;
        padding: 0 1;
        background: $surface;
        border-top: solid $primary;
    }

    #status-message {
        color: $success;
    }

    #status-error {
        color: $error;
        text-style: bold;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit", show=True),
        Binding("ctrl+c", "quit", "Quit", show=False, priority=True),
        Binding("up,k", "move(-1)", "Up", show=False),
        Binding("down,j", "move(1)", "Down", show=False),
        Binding("left,h", "collapse", "Collapse", show=True),
        Binding("right,l,enter", "expand", "Expand", show=True),
        Binding("space", "toggle_select", "Select", show=True),
        Binding("d", "deselect_all", "Deselect All", show=True),
        Binding("m", "export", "Export", show=True),
        Binding("c", "comment", "Comment", show=True),
        Binding("e", "edit_connection", "Edit Connection", show=True),
    ]

    def __init__(
        self,
        config: Optional[PgsharkConfig] = None,
        store: Optional[CredentialStore] = None,
        connector: Optional[Callable[[Credentials], DatabaseClient]] = None,
        clipboard=None,
    ):
        super().__init__()
        self._config = config or PgsharkConfig.load()
        if self._config.theme in dict(AVAILABLE_THEMES):
            self.theme = self._config.theme
        else:
            logger.warning("Unknown theme %r, keeping the default", self._config.theme)

        store = store or CredentialStore(self._config.credentials_path)
        if connector is None:
            connector = partial(
                PostgresClient.connect,
                connect_timeout=self._config.connect_timeout,
                query_timeout=self._config.query_timeout,
            )

        self.machine = ExplorerMachine(
            store=store,
            clipboard=clipboard or TextualClipboard(self),
            export_format=self._config.export_format,
        )
        self.runner = EffectRunner(store, connector, self._config.schema_filter())
        self.schema_view = SchemaView(id="schema-view")
        self.loading_indicator = LoadingIndicator(id="loading")
        # Held directly: App.query_one only searches the active screen
        self.status_message = Label("", id="status-message")
        self.status_error = Label("", id="status-error")

    def compose(self) -> ComposeResult:
        yield Header()
        yield Label(HELP_TEXT, id="help-bar")
        yield self.loading_indicator
        with SchemaScroll(id="schema-scroll"):
            yield self.schema_view
        with Vertical(id="status-bar"):
            yield self.status_message
            yield self.status_error
        yield Footer()

    def on_mount(self) -> None:
        self._run_effects(self.machine.start())
        self.refresh_view()

    # ------------------------------------------------------------------
    # Event loop plumbing
    # ------------------------------------------------------------------

    def handle_event(self, event: Event) -> None:
        """Feed one event to the state machine and re-render."""
        effects = self.machine.handle(event)
        self._run_effects(effects)
        if self.machine.state is not AppState.TERMINATED:
            self.refresh_view()

    def _run_effects(self, effects: list[Effect]) -> None:
        for effect in effects:
            if isinstance(effect, Exit):
                self.exit()
            else:
                self.run_effect(effect)

    @work(thread=True)
    def run_effect(self, effect: Effect) -> None:
        """Run a blocking effect off the event loop and post its outcome."""
        logger.debug("Running %s", type(effect).__name__)
        event = self.runner.run(effect)
        self.call_from_thread(self.handle_event, event)

    def _pop_modals(self) -> None:
        while len(self.screen_stack) > 1:
            self.pop_screen()

    def refresh_view(self) -> None:
        """Bring screens and widgets in line with the machine's state."""
        machine = self.machine
        state = machine.state

        if state in FORM_STATES:
            if isinstance(self.screen, CredentialsScreen):
                self.screen.show_error(machine.error)
            else:
                self._pop_modals()
                self.push_screen(
                    CredentialsScreen(
                        machine.form,
                        editing=state is AppState.EDIT_CREDENTIALS,
                        error=machine.error,
                    )
                )
        elif state is AppState.COMMENT:
            if isinstance(self.screen, CommentScreen):
                self.screen.show_error(machine.error)
            else:
                self._pop_modals()
                self.push_screen(self._comment_screen())
        else:
            self._pop_modals()

        loading = state is AppState.LOADING
        self.loading_indicator.display = loading
        if loading:
            self.schema_view.show_loading()
        else:
            self.schema_view.show_tree(machine.tree)

        self.status_message.update(machine.message)
        self.status_error.update(machine.error or "")

    def _comment_screen(self) -> CommentScreen:
        tree = self.machine.tree
        schema, table, column = tree.address()
        kind = "column" if column else "table"
        name = ".".join(part for part in (schema, table, column) if part)
        return CommentScreen(kind, name, tree.current_node().description, self.machine.comment_buffer)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def action_quit(self) -> None:
        self.handle_event(Quit())

    def action_move(self, delta: int) -> None:
        self.handle_event(MoveCursor(delta))

    def action_expand(self) -> None:
        self.handle_event(Expand())

    def action_collapse(self) -> None:
        self.handle_event(Collapse())

    def action_toggle_select(self) -> None:
        self.handle_event(ToggleSelection())

    def action_deselect_all(self) -> None:
        self.handle_event(DeselectAll())

    def action_export(self) -> None:
        self.handle_event(ExportSelection())

    def action_comment(self) -> None:
        self.handle_event(OpenComment())

    def action_edit_connection(self) -> None:
        self.handle_event(EditConnection())

    @property
    def schemas(self) -> list[Schema]:
        return self.machine.tree.schemas
