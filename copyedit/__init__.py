"""Copyedit: paragraph-level copyediting with located changes."""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = [
    "cli",
    "llm",
    "models",
    "rewrite",
    "service",
]
