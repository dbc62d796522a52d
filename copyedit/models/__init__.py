"""Public model exports for the project.

Tests and other modules should import ``from copyedit.models import Change, Span``.
"""

from __future__ import annotations

from .change import Change, RewriteResponse, RewriteResult, Span
from .enums import ChangeType, Severity

__all__ = [
    "Change",
    "ChangeType",
    "RewriteResponse",
    "RewriteResult",
    "Severity",
    "Span",
]
