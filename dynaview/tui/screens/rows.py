"""Table rows screen: search the scanned rows and pick one to inspect."""
from __future__ import annotations

from typing import TYPE_CHECKING

import questionary
from questionary import Choice, Separator
from rich.markup import escape
from rich.prompt import Prompt

from ..components import (
    BRAND_STYLE,
    nav_choices,
    render_breadcrumbs,
    render_fetch_error,
    render_header,
    render_rows_table,
    truncate,
)
from ..router import register_screen
from ..state import ViewState

if TYPE_CHECKING:
    from ..router import Router

PAGE_SIZE = 25


def matching_rows(rows: list[str], query: str | None) -> list[tuple[int, str]]:
    """Rows containing `query` (case-insensitive), with their original index."""
    needle = (query or "").lower()
    return [(i, row) for i, row in enumerate(rows) if needle in row.lower()]


@register_screen(ViewState.BROWSING_TABLE_ROWS)
def show_rows(router: Router) -> str | None:
    state = router.state
    router.console.clear()
    render_header(router.console, router.settings, state)
    render_breadcrumbs(router)

    query = state.last_row_filter or ""
    matches = matching_rows(state.rows, query)
    width = max(20, router.console.width - 12)

    title = f"{state.selected_table}"
    if query:
        title += f"  [dim]search: {escape(query)} ({len(matches)} of {len(state.rows)})[/dim]"
    render_rows_table(router.console, matches[:PAGE_SIZE], title, width=width)
    if len(matches) > PAGE_SIZE:
        router.console.print(f"[dim]Showing {PAGE_SIZE} of {len(matches)}; use search to narrow.[/dim]\n")

    choices: list = [
        Choice(title=f"{i + 1:>5}  {truncate(row, width - 8)}", value=("row", i))
        for i, row in matches[:PAGE_SIZE]
    ]
    choices.extend([
        Separator(),
        Choice(title="Search rows…", value="search"),
        Choice(title="Reload table", value="reload"),
        *nav_choices(include_separator=False),
    ])

    choice = questionary.select(
        "Select a row",
        choices=choices,
        style=BRAND_STYLE,
    ).ask()

    if choice is None:
        return "back"
    if choice in ("back", "help", "exit"):
        if choice == "back":
            state.remember(last_row_filter=None)
        return choice
    if choice == "search":
        text = Prompt.ask("Search (substring, empty to clear)", default=query).strip()
        state.remember(last_row_filter=text or None)
        return None
    if choice == "reload":
        if not state.selected_table:
            return "back"
        request_id = router.orchestrator.select_table(state.selected_table)
        event = router.await_fetch(request_id, f"Scanning {state.selected_table}...")
        if router.failed(event):
            render_fetch_error(router.console, event.error)
            Prompt.ask("Press Enter to continue", default="", show_default=False)
        return None

    _, index = choice
    state.inspect_row(index)
    return None
