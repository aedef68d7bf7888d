"""Unit tests for Router class."""
from __future__ import annotations

import io
from unittest.mock import MagicMock

import pytest
from rich.console import Console

from dynaview.errors import FetchError
from dynaview.tui import router as router_module
from dynaview.tui.events import CollectionsFetched, FetchFailed, FetchKind, FetchStarted, RowsFetched
from dynaview.tui.router import Router, register_screen
from dynaview.tui.state import FetchState, UIState, ViewState


class _FakeOrchestrator:
    """Replays queued events instead of fetching."""

    def __init__(self, events=()):
        self.pending = list(events)

    def poll(self, timeout=0.0):
        out, self.pending = self.pending, []
        return out

    def wait_for(self, request_id, *, on_event=None, tick=0.1, on_tick=None):
        for event in self.poll():
            if on_event is not None:
                on_event(event)
            if getattr(event, "request_id", None) == request_id and not isinstance(event, FetchStarted):
                return event
        raise AssertionError(f"no completion for {request_id}")


@pytest.fixture
def screens():
    original = router_module.SCREENS.copy()
    router_module.SCREENS.clear()
    try:
        yield router_module.SCREENS
    finally:
        router_module.SCREENS.clear()
        router_module.SCREENS.update(original)


@pytest.fixture
def router_components():
    console = Console(file=io.StringIO(), force_terminal=False)
    state = UIState()
    orchestrator = _FakeOrchestrator()
    router = Router(console=console, settings=MagicMock(), state=state, orchestrator=orchestrator)
    return router, state, orchestrator


def test_router_initialization(router_components):
    router, state, orchestrator = router_components

    assert router.state is state
    assert router.orchestrator is orchestrator


def test_register_screen_decorator(screens):
    @register_screen(ViewState.HELP_OVERLAY)
    def _help(router):
        return "back"

    assert screens[ViewState.HELP_OVERLAY] is _help


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("back", "back"),
        ("← Back", "back"),
        ("  ESC ", "back"),
        ("?", "help"),
        ("Quit", "exit"),
        ("", None),
        (None, None),
        ("tables", None),
    ],
)
def test_router_normalize_nav_result_aliases(raw, expected):
    assert Router._normalize_nav_result(raw) == expected


def test_router_run_dispatches_by_view(router_components, screens):
    router, state, _ = router_components
    visits = []

    @register_screen(ViewState.BROWSING_COLLECTIONS)
    def _tables(r):
        visits.append("tables")
        return "help" if len(visits) == 1 else "exit"

    @register_screen(ViewState.HELP_OVERLAY)
    def _help(r):
        visits.append("help")
        return "back"

    router.run()

    assert visits == ["tables", "help", "tables"]
    assert state.session_history == ["browsing_collections", "help_overlay", "browsing_collections"]


def test_router_applies_events_before_dispatch(router_components, screens):
    router, state, orchestrator = router_components
    orchestrator.pending = [
        FetchStarted(kind=FetchKind.COLLECTIONS, request_id=1),
        CollectionsFetched(request_id=1, names=("Orders",)),
        FetchStarted(kind=FetchKind.ROWS, request_id=2, table="Orders"),
        RowsFetched(request_id=2, table="Orders", rows=('{"pk":"a"}',)),
    ]
    seen = []

    @register_screen(ViewState.BROWSING_TABLE_ROWS)
    def _rows(r):
        seen.append((r.state.selected_table, list(r.state.rows)))
        return "exit"

    router.run()

    assert seen == [("Orders", ['{"pk":"a"}'])]
    assert state.fetch_state == FetchState.ROWS_READY


def test_router_back_walks_views(router_components, screens):
    router, state, _ = router_components
    state.fetch_state = FetchState.ROWS_READY
    state.view = ViewState.INSPECTING_ROW
    state.selected_table = "Orders"
    state.rows = ["{}"]
    state.selected_row = 0
    trail = []

    def _record(result):
        def screen(r):
            trail.append(r.state.view)
            return result
        return screen

    screens[ViewState.INSPECTING_ROW] = _record("back")
    screens[ViewState.BROWSING_TABLE_ROWS] = _record("back")
    screens[ViewState.BROWSING_COLLECTIONS] = _record("exit")

    router.run()

    assert trail == [ViewState.INSPECTING_ROW, ViewState.BROWSING_TABLE_ROWS, ViewState.BROWSING_COLLECTIONS]


def test_router_unknown_screen_returns_to_tables(router_components, screens):
    router, state, _ = router_components
    state.view = ViewState.HELP_OVERLAY
    screens[ViewState.BROWSING_COLLECTIONS] = lambda r: "exit"

    router.run()

    assert state.view == ViewState.BROWSING_COLLECTIONS
    assert "No screen for 'help_overlay'" in router.console.file.getvalue()


def test_router_keyboard_interrupt_exits(router_components, screens):
    router, _, _ = router_components

    def _interrupt(r):
        raise KeyboardInterrupt

    screens[ViewState.BROWSING_COLLECTIONS] = _interrupt
    router.run()

    assert "Goodbye" in router.console.file.getvalue()


def test_await_fetch_returns_failure_event(router_components):
    router, state, orchestrator = router_components
    err = FetchError("Could not list tables")
    orchestrator.pending = [
        FetchStarted(kind=FetchKind.COLLECTIONS, request_id=7),
        FetchFailed(request_id=7, kind=FetchKind.COLLECTIONS, error=err),
    ]

    event = router.await_fetch(7, "Loading tables...")

    assert router.failed(event)
    assert state.last_error is err
    assert state.fetch_state == FetchState.FETCH_FAILED
