"""Screen modules for the TUI."""
from __future__ import annotations

# Import all screen modules to register them with the router
from . import (
    help,
    row,
    rows,
    tables,
)

__all__ = [
    "help",
    "row",
    "rows",
    "tables",
]
