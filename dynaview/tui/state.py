"""Fetch and view state machines for the browser session."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ..errors import FetchError, InvalidTransitionError
from .events import (
    CollectionsFetched,
    FetchEvent,
    FetchFailed,
    FetchKind,
    FetchStarted,
    RowsFetched,
)


class FetchState(str, Enum):
    IDLE = "idle"
    FETCHING_COLLECTIONS = "fetching_collections"
    COLLECTIONS_READY = "collections_ready"
    FETCHING_ROWS = "fetching_rows"
    ROWS_READY = "rows_ready"
    FETCH_FAILED = "fetch_failed"


class FetchTrigger(str, Enum):
    START = "start"
    SELECT_TABLE = "select_table"
    SUCCESS = "success"
    ERROR = "error"


S, T = FetchState, FetchTrigger

TRANSITIONS: dict[tuple[FetchState, FetchTrigger], FetchState] = {
    (S.IDLE, T.START): S.FETCHING_COLLECTIONS,
    (S.FETCHING_COLLECTIONS, T.SUCCESS): S.COLLECTIONS_READY,
    (S.FETCHING_COLLECTIONS, T.ERROR): S.FETCH_FAILED,
    (S.COLLECTIONS_READY, T.SELECT_TABLE): S.FETCHING_ROWS,
    (S.FETCHING_ROWS, T.SUCCESS): S.ROWS_READY,
    (S.FETCHING_ROWS, T.ERROR): S.FETCH_FAILED,
    # A failed fetch is terminal for that operation; a fresh request re-enters.
    (S.FETCH_FAILED, T.START): S.FETCHING_COLLECTIONS,
    (S.FETCH_FAILED, T.SELECT_TABLE): S.FETCHING_ROWS,
    # Most recent selection wins.
    (S.FETCHING_ROWS, T.SELECT_TABLE): S.FETCHING_ROWS,
    (S.ROWS_READY, T.SELECT_TABLE): S.FETCHING_ROWS,
    # Manual reload of the table list.
    (S.COLLECTIONS_READY, T.START): S.FETCHING_COLLECTIONS,
}

# Each fetch kind runs its own copy of the machine from these states, so a
# table-list reload can overlap a row scan.
KIND_START_STATES = {
    FetchKind.COLLECTIONS: S.IDLE,
    FetchKind.ROWS: S.COLLECTIONS_READY,
}

_FETCHING = (S.FETCHING_COLLECTIONS, S.FETCHING_ROWS)


def next_state(state: FetchState, trigger: FetchTrigger) -> FetchState:
    try:
        return TRANSITIONS[(state, trigger)]
    except KeyError:
        raise InvalidTransitionError(state, trigger) from None


class ViewState(str, Enum):
    BROWSING_COLLECTIONS = "browsing_collections"
    BROWSING_TABLE_ROWS = "browsing_table_rows"
    INSPECTING_ROW = "inspecting_row"
    HELP_OVERLAY = "help_overlay"


class ViewAction(str, Enum):
    ROWS_LOADED = "rows_loaded"
    INSPECT_ROW = "inspect_row"
    SHOW_HELP = "show_help"
    BACK = "back"


V, A = ViewState, ViewAction

VIEW_TRANSITIONS: dict[tuple[ViewState, ViewAction], ViewState] = {
    # ROWS_LOADED is only ever applied for a RowsFetched event.
    (V.BROWSING_COLLECTIONS, A.ROWS_LOADED): V.BROWSING_TABLE_ROWS,
    (V.BROWSING_TABLE_ROWS, A.ROWS_LOADED): V.BROWSING_TABLE_ROWS,
    (V.INSPECTING_ROW, A.ROWS_LOADED): V.BROWSING_TABLE_ROWS,
    (V.BROWSING_TABLE_ROWS, A.INSPECT_ROW): V.INSPECTING_ROW,
    (V.INSPECTING_ROW, A.BACK): V.BROWSING_TABLE_ROWS,
    (V.BROWSING_TABLE_ROWS, A.BACK): V.BROWSING_COLLECTIONS,
    (V.BROWSING_COLLECTIONS, A.BACK): V.BROWSING_COLLECTIONS,
    (V.BROWSING_COLLECTIONS, A.SHOW_HELP): V.HELP_OVERLAY,
    (V.BROWSING_TABLE_ROWS, A.SHOW_HELP): V.HELP_OVERLAY,
    (V.INSPECTING_ROW, A.SHOW_HELP): V.HELP_OVERLAY,
}

VIEW_LABELS = {
    V.BROWSING_COLLECTIONS: "Tables",
    V.BROWSING_TABLE_ROWS: "Rows",
    V.INSPECTING_ROW: "Row",
    V.HELP_OVERLAY: "Help",
}


@dataclass
class UIState:
    """UI session state, owned by the UI loop.

    Background fetches never touch this object; their events are handed to
    `apply()` on the UI thread. Events from superseded requests are ignored.

    `kind_states` holds one fetch machine per kind. `fetch_state` is the
    combined status shown to the user: while either kind is in flight it is
    a fetching state.
    """

    fetch_state: FetchState = FetchState.IDLE
    kind_states: dict[FetchKind, FetchState] = field(default_factory=lambda: dict(KIND_START_STATES))
    view: ViewState = ViewState.BROWSING_COLLECTIONS

    collections: list[str] = field(default_factory=list)
    selected_table: str | None = None
    rows: list[str] = field(default_factory=list)
    selected_row: int | None = None
    last_error: FetchError | None = None

    # Latest request id issued per fetch kind
    latest_request: dict[FetchKind, int] = field(default_factory=dict)

    # Last filter texts (smart defaults)
    last_collection_filter: str | None = None
    last_row_filter: str | None = None

    # Session history for debugging
    session_history: list[str] = field(default_factory=list)

    _help_return: ViewState | None = field(default=None, repr=False)
    _error_kind: FetchKind | None = field(default=None, repr=False)

    @property
    def loading(self) -> bool:
        return self.fetch_state in _FETCHING

    def is_current(self, kind: FetchKind, request_id: int) -> bool:
        return self.latest_request.get(kind) == request_id

    def apply(self, event: FetchEvent) -> bool:
        """Apply a fetch event. Returns False when the event was ignored."""
        if isinstance(event, FetchStarted):
            if request_id_is_older(event.request_id, self.latest_request.get(event.kind)):
                return False
            trigger = FetchTrigger.START if event.kind == FetchKind.COLLECTIONS else FetchTrigger.SELECT_TABLE
            self._advance(event.kind, trigger)
            self.latest_request[event.kind] = event.request_id
            if self._error_kind == event.kind:
                self.last_error = None
                self._error_kind = None
            if event.kind == FetchKind.ROWS:
                self.selected_table = event.table
            return True

        if isinstance(event, CollectionsFetched):
            if not self.is_current(FetchKind.COLLECTIONS, event.request_id):
                return False
            self._advance(FetchKind.COLLECTIONS, FetchTrigger.SUCCESS)
            self.collections = list(event.names)
            return True

        if isinstance(event, RowsFetched):
            if not self.is_current(FetchKind.ROWS, event.request_id):
                return False
            self._advance(FetchKind.ROWS, FetchTrigger.SUCCESS)
            self.selected_table = event.table
            self.rows = list(event.rows)
            self.selected_row = None
            self._view_action(ViewAction.ROWS_LOADED)
            return True

        if isinstance(event, FetchFailed):
            if not self.is_current(event.kind, event.request_id):
                return False
            self._advance(event.kind, FetchTrigger.ERROR)
            self.last_error = event.error
            self._error_kind = event.kind
            return True

        raise TypeError(f"unknown fetch event: {event!r}")

    def _advance(self, kind: FetchKind, trigger: FetchTrigger) -> FetchState:
        state = next_state(self.kind_states.get(kind, KIND_START_STATES[kind]), trigger)
        self.kind_states[kind] = state
        # A finished fetch must not hide the other kind's in-flight one.
        other = FetchKind.ROWS if kind == FetchKind.COLLECTIONS else FetchKind.COLLECTIONS
        other_state = self.kind_states.get(other, KIND_START_STATES[other])
        if state not in _FETCHING and other_state in _FETCHING:
            self.fetch_state = other_state
        else:
            self.fetch_state = state
        return state

    def _view_action(self, action: ViewAction) -> ViewState:
        if self.view == ViewState.HELP_OVERLAY:
            if action == ViewAction.BACK:
                self.view = self._help_return or ViewState.BROWSING_COLLECTIONS
                self._help_return = None
            elif action == ViewAction.ROWS_LOADED:
                self._help_return = ViewState.BROWSING_TABLE_ROWS
            return self.view

        key = (self.view, action)
        if key not in VIEW_TRANSITIONS:
            raise InvalidTransitionError(self.view, action)
        if action == ViewAction.SHOW_HELP:
            self._help_return = self.view
        self.view = VIEW_TRANSITIONS[key]
        return self.view

    def inspect_row(self, index: int) -> ViewState:
        if not 0 <= index < len(self.rows):
            raise IndexError(f"row {index} out of range")
        self._view_action(ViewAction.INSPECT_ROW)
        self.selected_row = index
        return self.view

    def show_help(self) -> ViewState:
        return self._view_action(ViewAction.SHOW_HELP)

    def back(self) -> ViewState:
        return self._view_action(ViewAction.BACK)

    def remember(self, **kwargs) -> None:
        """Update remembered values (e.g. last_row_filter="abc").

        Unknown attributes are ignored.
        """
        for key, value in kwargs.items():
            if key.startswith("last_") and hasattr(self, key):
                setattr(self, key, value)

    def add_to_history(self, screen: str) -> None:
        self.session_history.append(screen)

    def breadcrumbs(self) -> str:
        """Breadcrumb path like "Tables > Orders > Row 3"."""
        parts = [VIEW_LABELS[ViewState.BROWSING_COLLECTIONS]]
        view = self._help_return if self.view == ViewState.HELP_OVERLAY else self.view
        if view in (ViewState.BROWSING_TABLE_ROWS, ViewState.INSPECTING_ROW) and self.selected_table:
            parts.append(self.selected_table)
        if view == ViewState.INSPECTING_ROW and self.selected_row is not None:
            parts.append(f"Row {self.selected_row + 1}")
        if self.view == ViewState.HELP_OVERLAY:
            parts.append(VIEW_LABELS[ViewState.HELP_OVERLAY])
        return " > ".join(parts)


def request_id_is_older(request_id: int, latest: int | None) -> bool:
    return latest is not None and request_id < latest
