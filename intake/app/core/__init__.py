"""Core utilities for the intake service."""

from intake.app.core.config import Settings, settings
from intake.app.core.logging import get_log_context, get_logger, setup_logging

__all__ = [
    "Settings",
    "settings",
    "get_log_context",
    "get_logger",
    "setup_logging",
]
