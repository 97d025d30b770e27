"""Projection of edit scripts into annotated spans for the review UI."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from policy_review.core.exceptions import AlignmentTimeoutError
from policy_review.services.aligner import DiffOp, Granularity, OpKind, align, cleanup_semantic

logger = logging.getLogger(__name__)


class RenderMode(str, Enum):
    REMOVAL_ONLY = "removal_only"
    ADDITION_ONLY = "addition_only"
    COMBINED = "combined"


class SpanKind(str, Enum):
    UNCHANGED = "unchanged"
    REMOVED = "removed"
    ADDED = "added"


@dataclass(frozen=True)
class AnnotatedSpan:
    text: str
    kind: SpanKind


@dataclass(frozen=True)
class RenderedDiff:
    """Spans plus how they were produced."""

    spans: list[AnnotatedSpan] = field(default_factory=list)
    mode: RenderMode = RenderMode.COMBINED
    granularity: Granularity = Granularity.CHARACTER
    degraded: bool = False

    @property
    def stats(self) -> dict[str, int]:
        totals = {kind.value: 0 for kind in SpanKind}
        for span in self.spans:
            totals[span.kind.value] += len(span.text)
        return totals


_MODE_KINDS = {
    RenderMode.REMOVAL_ONLY: {OpKind.EQUAL: SpanKind.UNCHANGED, OpKind.DELETE: SpanKind.REMOVED},
    RenderMode.ADDITION_ONLY: {OpKind.EQUAL: SpanKind.UNCHANGED, OpKind.INSERT: SpanKind.ADDED},
    RenderMode.COMBINED: {
        OpKind.EQUAL: SpanKind.UNCHANGED,
        OpKind.DELETE: SpanKind.REMOVED,
        OpKind.INSERT: SpanKind.ADDED,
    },
}


def render(ops: Sequence[DiffOp], mode: RenderMode | str = RenderMode.COMBINED) -> list[AnnotatedSpan]:
    """Tag each operation for display, dropping the kind the mode suppresses."""
    kinds = _MODE_KINDS[RenderMode(mode)]
    spans: list[AnnotatedSpan] = []
    for op in ops:
        kind = kinds.get(op.kind)
        if kind is None or not op.text:
            continue
        if spans and spans[-1].kind is kind:
            # Suppressing inserts can leave two unchanged spans side by side.
            spans[-1] = AnnotatedSpan(spans[-1].text + op.text, kind)
        else:
            spans.append(AnnotatedSpan(op.text, kind))
    return spans


def diff(
    old_text: str,
    new_text: str,
    mode: RenderMode | str = RenderMode.COMBINED,
    *,
    granularity: Granularity | str = Granularity.CHARACTER,
    cleanup: bool = True,
    max_edit_distance: int | None = None,
    timeout: float | None = None,
) -> RenderedDiff:
    """
    Diff two texts and render the result.

    When the bounded alignment gives up, the texts are re-aligned line by
    line without bounds and the result is flagged as degraded.

    Args:
        old_text: Text before the change
        new_text: Text after the change
        mode: Which spans to keep
        granularity: Unit of comparison for the first attempt
        cleanup: Fold incidental one-character matches into the edits
        max_edit_distance: Ceiling handed to the aligner
        timeout: Time budget handed to the aligner

    Returns:
        RenderedDiff with annotated spans
    """
    mode = RenderMode(mode)
    granularity = Granularity(granularity)
    degraded = False
    try:
        ops = align(
            old_text,
            new_text,
            granularity,
            max_edit_distance=max_edit_distance,
            timeout=timeout,
        )
    except AlignmentTimeoutError as e:
        logger.warning(f"Falling back to line-level diff: {e}")
        granularity = Granularity.LINE
        degraded = True
        ops = align(old_text, new_text, granularity)

    if cleanup:
        ops = cleanup_semantic(ops)

    return RenderedDiff(spans=render(ops, mode), mode=mode, granularity=granularity, degraded=degraded)
