"""Help overlay screen."""
from __future__ import annotations

from typing import TYPE_CHECKING

import questionary
from rich.panel import Panel

from ..components import BRAND_STYLE, nav_choices, render_breadcrumbs
from ..router import register_screen
from ..state import ViewState

if TYPE_CHECKING:
    from ..router import Router


HELP_TEXT = """[bold]Navigation[/bold]
  ↑/↓       Navigate menus
  Enter     Select option
  Ctrl+C    Exit gracefully (from anywhere)

[bold]Browsing[/bold]
  Tables    Pick a table to scan all of its rows
  Filter    Fuzzy match table names (letters in order, e.g. "ordp" → "orders-prod")
  Search    Substring match over row JSON
  Row       Pretty-printed JSON of one item

[bold]Cache[/bold]
  Results are cached under DV_CACHE_DIR for DV_CACHE_TTL_HOURS.
  A cached result is shown immediately and refreshed in the background.

[bold]Command Line Usage[/bold]
  [cyan]dynaview[/cyan]                   Interactive TUI
  [cyan]dynaview tables[/cyan]            List tables
  [cyan]dynaview scan NAME[/cyan]         Dump rows as JSON lines
  [cyan]dynaview cache[/cyan]             Show cache entries
  [cyan]dynaview cache-clear --all[/cyan] Remove cached results
"""


@register_screen(ViewState.HELP_OVERLAY)
def show_help(router: Router) -> str | None:
    router.console.clear()
    render_breadcrumbs(router)

    router.console.print(Panel.fit(HELP_TEXT, title="Help", border_style="cyan"))
    router.console.print()

    action = questionary.select(
        "",
        choices=[c for c in nav_choices(include_separator=False) if getattr(c, "value", None) != "help"],
        style=BRAND_STYLE,
    ).ask()

    if action == "exit":
        return "exit"
    return "back"
