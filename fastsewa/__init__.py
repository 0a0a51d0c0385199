"""Core utilities for the FASTSEWA booking admin service."""

from __future__ import annotations

from typing import Any

from .config import Settings, load_settings
from .store import RecordStore


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the booking admin API application."""

    from .api import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "RecordStore",
    "Settings",
    "create_app",
    "load_settings",
]
