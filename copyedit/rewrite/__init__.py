"""Rewrite pipeline: rule engine, LLM adapter, change location and reconciliation."""

from __future__ import annotations

from .diff_fallback import find_missing
from .locator import locate
from .markup import render_markup
from .pipeline import CopyeditPipeline
from .projector import project
from .rules import RuleEngine

__all__ = [
    "CopyeditPipeline",
    "RuleEngine",
    "find_missing",
    "locate",
    "project",
    "render_markup",
]
