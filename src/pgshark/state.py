"""The explorer's application state machine.

``ExplorerMachine.handle`` is a synchronous reducer: it takes one event,
mutates the machine's state and returns the effects the host should run.
Long-running effects (loading credentials, connecting and introspecting)
are executed elsewhere by ``EffectRunner`` and come back as completion
events; the runner never touches machine state.

Connect requests carry a generation number. Completions for anything but
the latest request are dropped and their connection closed.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Protocol

from pgshark.assembler import assemble_schemas
from pgshark.comments import CommentEditor
from pgshark.db.base import DatabaseClient
from pgshark.errors import PgsharkError
from pgshark.export import render
from pgshark.models import Credentials, ItemLevel, Schema, SchemaFilter
from pgshark.storage import CredentialStore
from pgshark.tree import SchemaTree

logger = logging.getLogger(__name__)


class AppState(str, Enum):
    """States of the explorer."""

    LOADING = "loading"
    CREDENTIALS = "credentials"
    EXPLORER = "explorer"
    COMMENT = "comment"
    EDIT_CREDENTIALS = "edit_credentials"
    TERMINATED = "terminated"


FORM_STATES = (AppState.CREDENTIALS, AppState.EDIT_CREDENTIALS)


class Clipboard(Protocol):
    def write(self, text: str) -> None:
        """Place text on the clipboard. Raises ClipboardError."""


# ----------------------------------------------------------------------
# Events
# ----------------------------------------------------------------------


class Event:
    """Base class for everything the reducer consumes."""


@dataclass(frozen=True)
class CredentialsLoaded(Event):
    credentials: Optional[Credentials]


@dataclass(frozen=True)
class CredentialsLoadFailed(Event):
    error: str


@dataclass(frozen=True)
class ConnectSucceeded(Event):
    generation: int
    client: DatabaseClient
    schemas: list[Schema]


@dataclass(frozen=True)
class ConnectFailed(Event):
    generation: int
    error: str


@dataclass(frozen=True)
class SubmitCredentials(Event):
    credentials: Credentials


@dataclass(frozen=True)
class Cancel(Event):
    pass


@dataclass(frozen=True)
class MoveCursor(Event):
    delta: int


@dataclass(frozen=True)
class Expand(Event):
    pass


@dataclass(frozen=True)
class Collapse(Event):
    pass


@dataclass(frozen=True)
class ToggleSelection(Event):
    pass


@dataclass(frozen=True)
class DeselectAll(Event):
    pass


@dataclass(frozen=True)
class ExportSelection(Event):
    pass


@dataclass(frozen=True)
class EditConnection(Event):
    pass


@dataclass(frozen=True)
class OpenComment(Event):
    pass


@dataclass(frozen=True)
class ConfirmComment(Event):
    text: str


@dataclass(frozen=True)
class Quit(Event):
    pass


# ----------------------------------------------------------------------
# Effects
# ----------------------------------------------------------------------


class Effect:
    """Base class for work the host runs on the reducer's behalf."""


@dataclass(frozen=True)
class LoadCredentials(Effect):
    pass


@dataclass(frozen=True)
class ConnectAndIntrospect(Effect):
    generation: int
    credentials: Credentials


@dataclass(frozen=True)
class Exit(Effect):
    pass


class EffectRunner:
    """Run blocking effects and turn their outcome into an event.

    Safe to call from a worker thread: it only touches the collaborators it
    was given.
    """

    def __init__(
        self,
        store: CredentialStore,
        connector: Callable[[Credentials], DatabaseClient],
        schema_filter: Optional[SchemaFilter] = None,
    ) -> None:
        self.store = store
        self.connector = connector
        self.schema_filter = schema_filter or SchemaFilter()

    def run(self, effect: Effect) -> Event:
        if isinstance(effect, LoadCredentials):
            return self._load_credentials()
        if isinstance(effect, ConnectAndIntrospect):
            return self._connect(effect)
        raise TypeError(f"not a background effect: {effect!r}")

    def _load_credentials(self) -> Event:
        try:
            return CredentialsLoaded(self.store.load())
        except PgsharkError as exc:
            logger.warning("Loading credentials failed: %s", exc)
            return CredentialsLoadFailed(str(exc))

    def _connect(self, effect: ConnectAndIntrospect) -> Event:
        try:
            client = self.connector(effect.credentials)
        except PgsharkError as exc:
            return ConnectFailed(effect.generation, str(exc))

        try:
            schemas = assemble_schemas(client.list_schema_rows(self.schema_filter))
        except PgsharkError as exc:
            client.close()
            return ConnectFailed(effect.generation, str(exc))

        return ConnectSucceeded(effect.generation, client, schemas)


@dataclass
class ExplorerMachine:
    """Top-level controller for the explorer."""

    store: CredentialStore
    clipboard: Optional[Clipboard] = None
    export_format: str = "markdown"

    state: AppState = AppState.LOADING
    tree: SchemaTree = field(default_factory=SchemaTree)
    client: Optional[DatabaseClient] = None
    credentials: Optional[Credentials] = None  # Last submitted or loaded
    form: Credentials = field(default_factory=Credentials)
    comment_buffer: str = ""
    message: str = ""
    error: Optional[str] = None
    generation: int = 0

    @property
    def has_session(self) -> bool:
        return self.client is not None

    def start(self) -> list[Effect]:
        """Effects to run when the host starts."""
        self.state = AppState.LOADING
        return [LoadCredentials()]

    def handle(self, event: Event) -> list[Effect]:
        """Apply one event; return the effects to run next."""
        handler = getattr(self, f"_on_{type(event).__name__}", None)
        if handler is None or self.state is AppState.TERMINATED:
            if isinstance(event, ConnectSucceeded):
                event.client.close()
            return []
        return handler(event) or []

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def _dispatch_connect(self, credentials: Credentials) -> list[Effect]:
        self.generation += 1
        self.state = AppState.LOADING
        return [ConnectAndIntrospect(self.generation, credentials)]

    def _discard_session(self) -> None:
        if self.client is not None:
            self.client.close()
        self.client = None
        self.tree = SchemaTree()

    def _on_CredentialsLoaded(self, event: CredentialsLoaded) -> list[Effect]:
        if self.state is not AppState.LOADING:
            return []
        if event.credentials is None:
            self.form = Credentials()
            self.state = AppState.CREDENTIALS
            return []
        self.credentials = event.credentials
        self.form = event.credentials
        return self._dispatch_connect(event.credentials)

    def _on_CredentialsLoadFailed(self, event: CredentialsLoadFailed) -> None:
        if self.state is not AppState.LOADING:
            return
        self.error = event.error
        self.state = AppState.CREDENTIALS

    def _on_ConnectSucceeded(self, event: ConnectSucceeded) -> None:
        if event.generation != self.generation:
            logger.info("Dropping stale connection (generation %d, current %d)", event.generation, self.generation)
            event.client.close()
            return
        self._discard_session()
        self.client = event.client
        self.tree = SchemaTree(event.schemas)
        self.tree.reset_cursor()
        self.error = None
        self.message = "Schema loaded successfully!"
        self.state = AppState.EXPLORER

    def _on_ConnectFailed(self, event: ConnectFailed) -> None:
        if event.generation != self.generation:
            logger.info("Dropping stale connection failure (generation %d)", event.generation)
            return
        self._discard_session()
        self.error = event.error
        self.state = AppState.CREDENTIALS

    def _on_SubmitCredentials(self, event: SubmitCredentials) -> list[Effect]:
        if self.state not in FORM_STATES:
            return []
        self.form = event.credentials
        try:
            self.store.save(event.credentials)
        except PgsharkError as exc:
            self.error = str(exc)
            return []

        self.error = None
        self.message = ""
        self.credentials = event.credentials
        self._discard_session()
        return self._dispatch_connect(event.credentials)

    def _on_Cancel(self, event: Cancel) -> None:
        if self.state in FORM_STATES:
            if not self.has_session:
                return
            self.form = self.credentials or Credentials()
            self.error = None
            self.state = AppState.EXPLORER
        elif self.state is AppState.COMMENT:
            self.comment_buffer = ""
            self.error = None
            self.message = "Comment update cancelled"
            self.state = AppState.EXPLORER

    def _on_Quit(self, event: Quit) -> list[Effect]:
        if self.state in (AppState.CREDENTIALS, AppState.LOADING):
            return []
        self._discard_session()
        self.state = AppState.TERMINATED
        return [Exit()]

    # ------------------------------------------------------------------
    # Explorer commands
    # ------------------------------------------------------------------

    def _explorer_command(self) -> bool:
        if self.state is not AppState.EXPLORER:
            return False
        self.error = None
        return True

    def _on_MoveCursor(self, event: MoveCursor) -> None:
        if self._explorer_command():
            self.tree.move_cursor(event.delta)

    def _on_Expand(self, event: Expand) -> None:
        if self._explorer_command():
            self.tree.expand()

    def _on_Collapse(self, event: Collapse) -> None:
        if self._explorer_command():
            self.tree.collapse()

    def _on_ToggleSelection(self, event: ToggleSelection) -> None:
        if self._explorer_command():
            self.tree.toggle_selection()

    def _on_DeselectAll(self, event: DeselectAll) -> None:
        if self._explorer_command():
            self.tree.deselect_all()
            self.message = "All items deselected!"

    def _on_ExportSelection(self, event: ExportSelection) -> None:
        if not self._explorer_command():
            return
        if not self.tree.has_selection():
            self.message = "Nothing selected to export"
            return
        if self.clipboard is None:
            self.error = "no clipboard available"
            return

        try:
            content = render(self.tree.schemas, self.export_format)
            self.clipboard.write(content)
        except (PgsharkError, ValueError) as exc:
            self.error = str(exc)
            return
        label = "YAML" if self.export_format == "yaml" else "Markdown"
        self.message = f"{label} copied to clipboard!"

    def _on_EditConnection(self, event: EditConnection) -> None:
        if not self._explorer_command():
            return
        self.form = self.credentials or Credentials()
        self.message = "Editing connection details..."
        self.state = AppState.EDIT_CREDENTIALS

    def _on_OpenComment(self, event: OpenComment) -> None:
        if not self._explorer_command():
            return
        if self.tree.cursor.level is ItemLevel.SCHEMA or self.tree.current_table() is None:
            self.message = "Select a table or column to comment"
            return
        node = self.tree.current_node()
        self.comment_buffer = node.description
        self.state = AppState.COMMENT

    def _on_ConfirmComment(self, event: ConfirmComment) -> None:
        if self.state is not AppState.COMMENT:
            return
        # Kept on failure so the operator can correct it
        self.comment_buffer = event.text
        try:
            CommentEditor(self.client).apply(self.tree, event.text)
        except PgsharkError as exc:
            self.error = str(exc)
            return

        self.comment_buffer = ""
        self.error = None
        self.message = "Comment updated and verified successfully!"
        self.state = AppState.EXPLORER
