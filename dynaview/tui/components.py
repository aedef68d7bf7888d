"""Reusable UI components for the TUI."""
from __future__ import annotations

from typing import TYPE_CHECKING

import questionary
from questionary import Choice, Separator
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..errors import DescribeFailedError, FetchError, ScanTimeoutError, SegmentScanError

if TYPE_CHECKING:
    from rich.console import Console

    from ..settings import Settings
    from .router import Router
    from .state import UIState


# ═══════════════════════════════════════════════════════════════════════════════
# BRAND STYLING
# ═══════════════════════════════════════════════════════════════════════════════

BRAND_STYLE = questionary.Style([
    ("qmark", "fg:#00b4d8 bold"),         # Cyan accent
    ("question", "bold"),
    ("answer", "fg:#90e0ef bold"),         # Light cyan for answers
    ("highlighted", "fg:#00b4d8 bold"),    # Highlighted item
    ("pointer", "fg:#00b4d8 bold"),        # Arrow pointer
    ("selected", "fg:#90e0ef"),            # Selected item
])

ELLIPSIS = "..."


# ═══════════════════════════════════════════════════════════════════════════════
# NAVIGATION HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

def nav_choices(include_separator: bool = True, include_back: bool = True) -> list:
    """Standard Back/Help/Exit navigation choices."""
    choices: list = []
    if include_separator:
        choices.append(Separator())
    if include_back:
        choices.append(Choice(title="← Back", value="back"))
    choices.extend([
        Choice(title="Help", value="help"),
        Choice(title="Exit", value="exit"),
    ])
    return choices


def truncate(text: str, width: int) -> str:
    """Trim `text` to `width` characters, ending with an ellipsis when cut."""
    if width <= len(ELLIPSIS):
        return text[:max(0, width)]
    if len(text) <= width:
        return text
    return text[: width - len(ELLIPSIS)] + ELLIPSIS


# ═══════════════════════════════════════════════════════════════════════════════
# BANNER & HEADER
# ═══════════════════════════════════════════════════════════════════════════════

_BANNER_ART = """\
[bold cyan]╔═══════════════════════════════════════════════╗
║   [white]dynaview[/white] · DynamoDB table browser          ║
╚═══════════════════════════════════════════════╝[/bold cyan]"""


def render_welcome_banner(console: Console) -> None:
    console.print(_BANNER_ART)
    console.print()


def render_header(console: Console, settings: Settings, state: UIState) -> None:
    """Render a compact context bar: region, table count and status."""
    status = "[yellow]loading…[/yellow]" if state.loading else f"[dim]{state.fetch_state.value}[/dim]"
    content = (
        f"  [bold]Region[/bold] [cyan]{settings.DV_AWS_REGION}[/cyan]  "
        f"[bold]Tables[/bold] [cyan]{len(state.collections):,}[/cyan]  "
    )
    if state.selected_table:
        content += f"[bold]Table[/bold] [cyan]{state.selected_table}[/cyan] [dim]({len(state.rows):,} rows)[/dim]  "
    content += f"[bold]Status[/bold] {status}"
    console.print(Panel.fit(content, border_style="dim"))
    console.print()


def render_breadcrumbs(router: Router) -> None:
    router.console.print(f"[dim]{router.state.breadcrumbs()}[/dim]\n")


# ═══════════════════════════════════════════════════════════════════════════════
# ERRORS
# ═══════════════════════════════════════════════════════════════════════════════

def render_error(
    console: Console,
    title: str,
    cause: str,
    action: str | None = None,
) -> None:
    """Render a friendly error panel with 3-part structure."""
    content = f"[bold red]✗ {title}[/bold red]\n\n"
    content += f"[yellow]Cause:[/yellow] {escape(cause)}\n"

    if action:
        content += f"\n[dim]→ {action}[/dim]"

    console.print(Panel.fit(content, border_style="red", title="Error"))
    console.print()


def suggested_action(error: FetchError) -> str:
    if isinstance(error, ScanTimeoutError):
        return "Try again, or raise DV_SCAN_TIMEOUT_SEC for very large tables."
    if isinstance(error, DescribeFailedError):
        return "Check the table still exists and that your credentials can describe it."
    if isinstance(error, SegmentScanError):
        return "Check your credentials and throttling limits, then reload the table."
    return "Check your AWS credentials, region (DV_AWS_REGION) and network, then retry."


def render_fetch_error(console: Console, error: FetchError) -> None:
    cause = str(error.cause) if error.cause is not None else str(error)
    render_error(console, error.message, cause, suggested_action(error))


# ═══════════════════════════════════════════════════════════════════════════════
# ROW LISTING
# ═══════════════════════════════════════════════════════════════════════════════

def render_rows_table(
    console: Console,
    rows: list[tuple[int, str]],
    title: str,
    width: int = 100,
) -> None:
    """Render numbered single-line JSON rows."""
    table = Table(title=f"[bold]{title}[/bold]")
    table.add_column("#", style="cyan", justify="right", no_wrap=True)
    table.add_column("Row", no_wrap=True)

    for index, row in rows:
        table.add_row(str(index + 1), escape(truncate(row, width)))

    console.print(table)
    console.print()
