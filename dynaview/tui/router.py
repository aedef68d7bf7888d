"""Main router and screen registry for the TUI."""
from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from .events import FetchEvent, FetchFailed
from .state import ViewState

if TYPE_CHECKING:
    from rich.console import Console

    from ..settings import Settings
    from .orchestrator import FetchOrchestrator
    from .state import UIState


class Router:
    """Main event loop with screen dispatch.

    The current screen is chosen by `state.view`. Screens return a
    navigation command ("back", "help", "exit") or None to stay put; view
    changes caused by fetches arrive through `state.apply()`.
    """

    def __init__(
        self,
        console: Console,
        settings: Settings,
        state: UIState,
        orchestrator: FetchOrchestrator,
    ):
        self.console = console
        self.settings = settings
        self.state = state
        self.orchestrator = orchestrator

    def run(self) -> None:
        """Dispatch to screen functions until "exit" is received."""
        while True:
            self.drain_events()
            current = self.state.view
            self.state.add_to_history(current.value)

            screen_fn = SCREENS.get(current)
            if screen_fn is None:
                self.console.print(
                    f"[yellow]Warning:[/yellow] No screen for '{current.value}', returning to tables"
                )
                self.state.view = ViewState.BROWSING_COLLECTIONS
                continue

            try:
                result = screen_fn(self)
            except KeyboardInterrupt:
                self.console.print("\n[dim]👋 Interrupted.[/]")
                result = "exit"

            result = self._normalize_nav_result(result)

            if result == "exit":
                self.console.print("\n[dim]👋 Goodbye![/]")
                break
            elif result == "back":
                self.state.back()
            elif result == "help":
                self.state.show_help()

    def drain_events(self) -> None:
        """Apply any events that arrived while a screen was waiting for input."""
        for event in self.orchestrator.poll():
            self.state.apply(event)

    def await_fetch(self, request_id: int, message: str) -> FetchEvent:
        """Show a spinner until `request_id` completes. Returns its completion event."""
        with self.console.status(f"[bold green]{message}", spinner="line"):
            return self.orchestrator.wait_for(request_id, on_event=self.state.apply)

    @staticmethod
    def failed(event: FetchEvent) -> bool:
        return isinstance(event, FetchFailed)

    @staticmethod
    def _normalize_nav_result(result: str | None) -> str | None:
        """Normalize common nav aliases/titles to canonical commands."""
        if result is None:
            return None
        s = str(result).strip().lower()
        if not s:
            return None
        if s in {"back", "← back", "< back", "go back", "b", "esc"}:
            return "back"
        if s in {"help", "?", "h"}:
            return "help"
        if s in {"exit", "quit", "q"}:
            return "exit"
        return None


# Screen registry - maps views to handler functions
SCREENS: dict[ViewState, Callable[[Router], str | None]] = {}


def register_screen(view: ViewState):
    """Decorator to register a screen function.

    Usage:
        @register_screen(ViewState.HELP_OVERLAY)
        def show_help(router: Router) -> str | None:
            ...
    """
    def decorator(fn: Callable[[Router], str | None]):
        SCREENS[view] = fn
        return fn
    return decorator
