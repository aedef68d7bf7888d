"""Row inspector screen."""
from __future__ import annotations

from typing import TYPE_CHECKING

import questionary
from rich.json import JSON
from rich.panel import Panel

from ...errors import SerializationError
from ...serializer import render_row
from ..components import BRAND_STYLE, nav_choices, render_breadcrumbs
from ..router import register_screen
from ..state import ViewState

if TYPE_CHECKING:
    from ..router import Router


@register_screen(ViewState.INSPECTING_ROW)
def show_row(router: Router) -> str | None:
    """Pretty-print the selected row as JSON."""
    state = router.state
    router.console.clear()
    render_breadcrumbs(router)

    if state.selected_row is None or not 0 <= state.selected_row < len(state.rows):
        return "back"

    raw = state.rows[state.selected_row]
    try:
        body = JSON(render_row(raw), indent=2)
    except SerializationError:
        body = "[red]Could not render row.[/red]"

    router.console.print(Panel(body, title=f"{state.selected_table} · row {state.selected_row + 1}", border_style="cyan"))
    router.console.print()

    action = questionary.select(
        "",
        choices=nav_choices(include_separator=False),
        style=BRAND_STYLE,
    ).ask()

    return action or "back"
