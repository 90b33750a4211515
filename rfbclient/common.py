"""Errors and user-interface settling shared across the client."""

from __future__ import annotations

import time

_settle_seconds = 0.025


class VNCError(Exception):
    """An error reported by the RFB client."""


def settle() -> float:
    """Return the UI settle duration in seconds."""
    return _settle_seconds


def set_settle(seconds: float) -> None:
    """Change the UI settle duration in seconds."""
    global _settle_seconds
    _settle_seconds = seconds


def settle_ui() -> None:
    """Let the remote UI settle before the next change is made."""
    time.sleep(_settle_seconds)