"""TUI (Terminal User Interface) module for dynaview.

Screens are dispatched by view state; data arrives as fetch events.
"""
from .orchestrator import FetchOrchestrator
from .router import Router
from .state import UIState

__all__ = ["FetchOrchestrator", "Router", "UIState"]
