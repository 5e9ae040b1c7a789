"""printf-style string formatting."""

from __future__ import annotations


def format_string(fmt: str, *args) -> str:
    """Format ``args`` with a printf-style format string."""
    return fmt % args