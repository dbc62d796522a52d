"""Fixed-point orchestration of rule and LLM passes.

Each pass runs the rule engine and then the LLM over the current text.
Located changes are projected forward every time the tracked text mutates,
so every ``loc`` stays relative to the current text. The loop stops when the
LLM leaves the rule output untouched or after ``max_passes`` passes; the
accumulated changes are then completed with the diff fallback, reconciled and
renumbered.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Protocol

from copyedit.errors import InvalidInputError, PipelineTimeoutError
from copyedit.models import Change, ChangeType, RewriteResponse, RewriteResult, Span

from .diff_fallback import find_missing
from .locator import is_end_insertion, locate
from .projector import project_changes
from .rules import RuleEngine

logger = logging.getLogger(__name__)

DEFAULT_MAX_PASSES = 3
DEFAULT_MAX_TEXT_LENGTH = 4000


class TextRewriter(Protocol):
    """Anything that can run the LLM pass (the real adapter or a test stub)."""

    def rewrite(self, text: str) -> RewriteResult: ...


@dataclass
class PassRecord:
    index: int
    rule_changes: int
    llm_changes: int
    unlocated: int
    stable: bool


@dataclass
class PipelineRun:
    response: RewriteResponse
    passes: list[PassRecord] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return bool(self.passes) and self.passes[-1].stable


def finalize_changes(changes: Iterable[Change]) -> list[Change]:
    """Dedupe by span, drop spans overlapping an earlier change, sort and renumber.

    Earlier changes win. Unlocated changes are kept and sort last in their
    original order.
    """
    kept: list[Change] = []
    kept_spans: list[Span] = []
    unlocated: list[Change] = []
    for change in changes:
        if change.loc is None:
            unlocated.append(change)
            continue
        if any(change.loc.overlaps(span) for span in kept_spans):
            continue
        kept.append(change)
        kept_spans.append(change.loc)

    ordered = sorted(kept, key=lambda change: change.loc.start) + unlocated
    return [
        change.model_copy(update={"id": f"c{index}"})
        for index, change in enumerate(ordered, start=1)
    ]


class CopyeditPipeline:
    """Drive rule and LLM passes to a fixed point and reconcile their changes."""

    def __init__(
        self,
        rewriter: TextRewriter,
        *,
        rule_engine: RuleEngine | None = None,
        max_passes: int = DEFAULT_MAX_PASSES,
        max_text_length: int = DEFAULT_MAX_TEXT_LENGTH,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_passes < 1:
            raise ValueError("max_passes must be at least 1")
        self._rewriter = rewriter
        self._rules = rule_engine or RuleEngine()
        self._max_passes = max_passes
        self._max_text_length = max_text_length
        self._clock = clock

    @property
    def max_passes(self) -> int:
        return self._max_passes

    def validate_input(self, text: object) -> str:
        if not isinstance(text, str) or not text.strip():
            raise InvalidInputError("Text must be a non-empty string")
        if len(text) > self._max_text_length:
            raise InvalidInputError(
                f"Text exceeds the maximum length of {self._max_text_length} characters"
            )
        return text

    def process(self, text: str, *, deadline: float | None = None) -> RewriteResponse:
        """Copyedit ``text``; ``deadline`` is an absolute time on the pipeline clock."""
        return self.run(text, deadline=deadline).response

    def process_rules_only(self, text: str) -> RewriteResponse:
        self.validate_input(text)
        result = self._rules.apply(text)
        return RewriteResponse(
            revised_text=result.revised_text,
            changes=finalize_changes(result.changes),
        )

    def run(self, text: str, *, deadline: float | None = None) -> PipelineRun:
        original = self.validate_input(text)
        current = original
        accumulated: list[Change] = []
        passes: list[PassRecord] = []

        for index in range(self._max_passes):
            self._check_deadline(deadline)
            rule_result = self._rules.apply(current)
            after_rules = rule_result.revised_text
            project_changes(accumulated, current, after_rules)
            accumulated.extend(rule_result.changes)

            self._check_deadline(deadline)
            llm_result = self._rewriter.rewrite(after_rules)
            self._check_deadline(deadline)
            after_llm = llm_result.revised_text
            project_changes(accumulated, after_rules, after_llm)

            unlocated = 0
            for change in llm_result.changes:
                if is_end_insertion(after_rules, after_llm, change):
                    change.type = ChangeType.INSERT_AT_END
                change.loc = locate(after_llm, change, previous_text=after_rules)
                if change.loc is None:
                    unlocated += 1
                    logger.debug("Could not locate change %r -> %r", change.before, change.after)
                accumulated.append(change)

            stable = after_llm == after_rules
            current = after_llm
            passes.append(
                PassRecord(
                    index=index,
                    rule_changes=len(rule_result.changes),
                    llm_changes=len(llm_result.changes),
                    unlocated=unlocated,
                    stable=stable,
                )
            )
            logger.info(
                "Pass %d: %d rule change(s), %d LLM change(s), %d unlocated, stable=%s",
                index + 1,
                len(rule_result.changes),
                len(llm_result.changes),
                unlocated,
                stable,
            )
            if stable:
                break
        else:
            logger.info("Pass cap of %d reached without a fixed point", self._max_passes)

        accumulated.extend(find_missing(original, current, accumulated))
        response = RewriteResponse(
            revised_text=current, changes=finalize_changes(accumulated)
        )
        return PipelineRun(response=response, passes=passes)

    def _check_deadline(self, deadline: float | None) -> None:
        if deadline is not None and self._clock() >= deadline:
            raise PipelineTimeoutError("Deadline exceeded while processing text")
