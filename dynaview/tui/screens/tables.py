"""Table list screen, the entry point for the TUI."""
from __future__ import annotations

from typing import TYPE_CHECKING

import questionary
from questionary import Choice, Separator
from rich.prompt import Prompt

from ...filtering import fuzzy_filter
from ..components import (
    BRAND_STYLE,
    nav_choices,
    render_breadcrumbs,
    render_fetch_error,
    render_header,
    render_welcome_banner,
)
from ..router import register_screen
from ..state import FetchState, ViewState

if TYPE_CHECKING:
    from ..router import Router

# Keep the select list usable on accounts with many tables.
MAX_CHOICES = 200


def _load_collections(router: Router) -> bool:
    request_id = router.orchestrator.start()
    event = router.await_fetch(request_id, "Loading tables...")
    if router.failed(event):
        render_fetch_error(router.console, event.error)
        return False
    return True


@register_screen(ViewState.BROWSING_COLLECTIONS)
def show_collections(router: Router) -> str | None:
    """List tables, filter them, and open one."""
    state = router.state
    router.console.clear()
    render_welcome_banner(router.console)

    if state.fetch_state == FetchState.IDLE:
        _load_collections(router)

    render_header(router.console, router.settings, state)
    render_breadcrumbs(router)

    if state.fetch_state == FetchState.FETCH_FAILED and state.last_error is not None and not state.collections:
        render_fetch_error(router.console, state.last_error)

    filter_text = state.last_collection_filter or ""
    names = fuzzy_filter(state.collections, filter_text)
    if filter_text:
        router.console.print(f"[dim]Filter:[/dim] [cyan]{filter_text}[/cyan] [dim]({len(names)} of {len(state.collections)})[/dim]\n")
    elif not state.collections:
        router.console.print("[yellow]No tables found in this region.[/yellow]\n")

    choices: list = [Choice(title=name, value=("table", name)) for name in names[:MAX_CHOICES]]
    if len(names) > MAX_CHOICES:
        choices.append(Separator(f"… {len(names) - MAX_CHOICES} more, narrow the filter"))
    choices.extend([
        Separator(),
        Choice(title="Filter tables…", value="filter"),
        Choice(title="Reload table list", value="reload"),
        *nav_choices(include_separator=False, include_back=False),
    ])

    choice = questionary.select(
        "Select a table",
        choices=choices,
        style=BRAND_STYLE,
    ).ask()

    if choice is None or choice == "exit":
        return "exit"
    if choice == "help":
        return "help"
    if choice == "filter":
        text = Prompt.ask("Filter (fuzzy, empty to clear)", default=filter_text).strip()
        state.remember(last_collection_filter=text or None)
        return None
    if choice == "reload":
        _load_collections(router)
        return None

    _, table = choice
    request_id = router.orchestrator.select_table(table)
    event = router.await_fetch(request_id, f"Scanning {table}...")
    if router.failed(event):
        render_fetch_error(router.console, event.error)
        Prompt.ask("Press Enter to return", default="", show_default=False)
    return None
