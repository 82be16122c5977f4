"""Tests for the pgshark TUI application."""

import threading

import pytest
from textual.widgets import Input

from pgshark.config import PgsharkConfig
from pgshark.errors import ConnectError
from pgshark.models import Credentials, Cursor
from pgshark.state import AppState
from pgshark.tree import SchemaTree

from conftest import FakeClient, FakeStore


class RecordingClipboard:
    def __init__(self):
        self.texts = []

    def write(self, text: str) -> None:
        self.texts.append(text)


def make_app(store, connector=None, clipboard=None):
    from pgshark.tui import PgsharkApp

    return PgsharkApp(
        config=PgsharkConfig(),
        store=store,
        connector=connector or (lambda credentials: FakeClient()),
        clipboard=clipboard or RecordingClipboard(),
    )


async def settle(app, pilot) -> None:
    """Let background effects and their completion events run."""
    for _ in range(3):
        await app.workers.wait_for_complete()
        await pilot.pause()


class TestTUIModule:
    """Tests for TUI module imports."""

    def test_import_pgshark_app(self) -> None:
        """Test that PgsharkApp can be imported."""
        from pgshark.tui import PgsharkApp
        assert PgsharkApp is not None

    def test_app_class_attributes(self) -> None:
        """Test PgsharkApp has required attributes."""
        from pgshark.tui import PgsharkApp
        assert hasattr(PgsharkApp, "TITLE")
        assert hasattr(PgsharkApp, "BINDINGS")
        assert hasattr(PgsharkApp, "CSS")

    def test_app_bindings(self) -> None:
        """Test PgsharkApp has expected key bindings."""
        from pgshark.tui import PgsharkApp
        binding_keys = ",".join(b.key for b in PgsharkApp.BINDINGS).split(",")
        for key in ("q", "up", "k", "down", "j", "left", "h", "right", "l", "space", "d", "m", "c", "e"):
            assert key in binding_keys

    def test_screens_import(self) -> None:
        """Test modal screens can be imported."""
        from pgshark.tui.app import CommentScreen, CredentialsScreen, SchemaView
        assert CommentScreen is not None
        assert CredentialsScreen is not None
        assert SchemaView is not None


class TestRenderTree:
    """Tests for the text rendering of the tree."""

    def test_markers_and_cursor(self, tree: SchemaTree) -> None:
        """Test expand markers and the first line."""
        from pgshark.tui.app import render_tree

        lines = render_tree(tree).plain.splitlines()
        assert lines[0] == "▼ audit"
        assert lines[1] == "    ▼ events"
        assert "        " + "  id: bigint (PRIMARY KEY, NOT NULL)" == lines[2]

    def test_collapsed_and_selected(self, tree: SchemaTree) -> None:
        """Test collapsed markers and selection prefixes."""
        from pgshark.tui.app import render_tree

        tree.schemas[0].expanded = False
        tree.select_path("public", "users", "email")
        lines = render_tree(tree).plain.splitlines()
        assert lines[0] == "▶ audit"
        assert "    ▼ users - Registered users" in lines
        assert any(line.startswith("        * email") and line.endswith("- Login address") for line in lines)


class TestPgsharkApp:
    """Tests driving the app with a pilot."""

    @pytest.mark.asyncio
    async def test_stored_credentials_open_explorer(self, credentials: Credentials) -> None:
        """Test the app connects straight away with saved credentials."""
        app = make_app(FakeStore(credentials))
        async with app.run_test() as pilot:
            await settle(app, pilot)
            assert app.machine.state is AppState.EXPLORER
            assert [s.name for s in app.schemas] == ["audit", "public"]

            await pilot.press("down")
            assert app.machine.tree.cursor == Cursor(0, 0, -1)
            await pilot.press("space")
            assert app.machine.tree.schemas[0].selected

    @pytest.mark.asyncio
    async def test_first_run_shows_form(self) -> None:
        """Test a missing credential file shows the form, and submit connects."""
        from pgshark.tui.app import CredentialsScreen

        store = FakeStore()
        app = make_app(store)
        async with app.run_test() as pilot:
            await settle(app, pilot)
            assert app.machine.state is AppState.CREDENTIALS
            assert isinstance(app.screen, CredentialsScreen)

            app.screen.query_one("#input-database", Input).value = "app"
            app.screen.query_one("#input-user", Input).value = "alice"
            await pilot.press("enter")
            await settle(app, pilot)

            assert store.saved[0].database == "app"
            assert app.machine.state is AppState.EXPLORER
            assert not isinstance(app.screen, CredentialsScreen)

    @pytest.mark.asyncio
    async def test_connect_error_shown(self, credentials: Credentials) -> None:
        """Test a failed connect returns to the form with the error."""
        from pgshark.tui.app import CredentialsScreen

        def refuse(c):
            raise ConnectError("connection refused")

        app = make_app(FakeStore(credentials), connector=refuse)
        async with app.run_test() as pilot:
            await settle(app, pilot)
            assert app.machine.state is AppState.CREDENTIALS
            assert app.machine.error == "connection refused"
            assert isinstance(app.screen, CredentialsScreen)

    @pytest.mark.asyncio
    async def test_export_to_clipboard(self, credentials: Credentials) -> None:
        """Test m copies the selection."""
        clipboard = RecordingClipboard()
        app = make_app(FakeStore(credentials), clipboard=clipboard)
        async with app.run_test() as pilot:
            await settle(app, pilot)
            await pilot.press("space", "m")
            assert app.machine.message == "Markdown copied to clipboard!"
            assert "## Schema: `audit`" in clipboard.texts[0]

    @pytest.mark.asyncio
    async def test_comment_flow(self, credentials: Credentials) -> None:
        """Test commenting on a table through the modal."""
        from pgshark.tui.app import CommentScreen

        client = FakeClient()
        app = make_app(FakeStore(credentials), connector=lambda c: client)
        async with app.run_test() as pilot:
            await settle(app, pilot)
            await pilot.press("down", "c")
            assert app.machine.state is AppState.COMMENT
            assert isinstance(app.screen, CommentScreen)

            app.screen.query_one("#comment-input", Input).value = "Audit trail"
            await pilot.press("enter")
            await pilot.pause()

            assert app.machine.state is AppState.EXPLORER
            assert client.comments[("audit", "events", None)] == "Audit trail"
            assert app.machine.tree.current_table().description == "Audit trail"

    @pytest.mark.asyncio
    async def test_comment_cancel(self, credentials: Credentials) -> None:
        """Test escape leaves the comment modal."""
        app = make_app(FakeStore(credentials))
        async with app.run_test() as pilot:
            await settle(app, pilot)
            await pilot.press("down", "c")
            await pilot.press("escape")
            assert app.machine.state is AppState.EXPLORER
            assert app.machine.message == "Comment update cancelled"

    @pytest.mark.asyncio
    async def test_quit(self, credentials: Credentials) -> None:
        """Test q closes the session and exits."""
        client = FakeClient()
        app = make_app(FakeStore(credentials), connector=lambda c: client)
        async with app.run_test() as pilot:
            await settle(app, pilot)
            await pilot.press("q")
            assert app.machine.state is AppState.TERMINATED
            assert client.closed

    @pytest.mark.asyncio
    async def test_loading_indicator_while_connecting(self, credentials: Credentials) -> None:
        """Test the spinner shows while connecting and hides once connected."""
        release = threading.Event()

        def slow_connect(c):
            release.wait(5)
            return FakeClient()

        app = make_app(FakeStore(credentials), connector=slow_connect)
        async with app.run_test() as pilot:
            try:
                for _ in range(50):
                    if app.machine.state is AppState.LOADING:
                        break
                    await pilot.pause(0.01)
                assert app.machine.state is AppState.LOADING
                assert app.loading_indicator.display
            finally:
                release.set()
            await settle(app, pilot)
            assert app.machine.state is AppState.EXPLORER
            assert not app.loading_indicator.display

    def test_unknown_theme_keeps_default(self) -> None:
        """Test a theme Textual does not know is not applied."""
        from pgshark.tui import PgsharkApp

        app = PgsharkApp(config=PgsharkConfig(theme="neon"), store=FakeStore())
        assert app.theme != "neon"
