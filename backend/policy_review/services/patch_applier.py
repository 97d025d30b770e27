"""
Application of reviewed changes to a base document.

Every accepted or modified change is resolved to a span of the *frozen*
base text first and all spans are spliced in a single left-to-right sweep.
A replacement can therefore never create or destroy the match of a later
change, and the outcome depends only on the base text and the record set.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from policy_review.services.change_records import ChangeRecord, ChangeStatus

logger = logging.getLogger(__name__)

NOT_FOUND = "not_found"
CONSUMED = "consumed"


@dataclass(frozen=True)
class PatchSpan:
    start: int
    end: int
    replacement: str
    change_id: str


@dataclass(frozen=True)
class NoMatchWarning:
    """A selected change whose original text could not be placed."""

    change_id: str
    original_text: str
    reason: str

    @property
    def message(self) -> str:
        if self.reason == CONSUMED:
            return f"Change {self.change_id}: original text overlaps text already replaced by another change"
        return f"Change {self.change_id}: original text not found in the document"


@dataclass(frozen=True)
class AmbiguousMatchNote:
    """Original text occurs several times; only the claimed occurrence was replaced."""

    change_id: str
    occurrences: int
    offset: int


@dataclass(frozen=True)
class ApplyResult:
    text: str
    applied: tuple[str, ...] = ()
    spans: tuple[PatchSpan, ...] = ()
    skipped: tuple[NoMatchWarning, ...] = ()
    notes: tuple[AmbiguousMatchNote, ...] = ()

    @property
    def skipped_ids(self) -> tuple[str, ...]:
        return tuple(warning.change_id for warning in self.skipped)


def select_changes(records: Iterable[ChangeRecord]) -> list[ChangeRecord]:
    """Records that contribute to the next version, in input order."""
    return [r for r in records if r.status in (ChangeStatus.ACCEPTED, ChangeStatus.MODIFIED)]


def apply_changes(base_text: str, records: Iterable[ChangeRecord]) -> ApplyResult:
    """
    Produce the document that results from the accepted and modified records.

    Args:
        base_text: Text of the version under review
        records: All records of the review; pending and rejected ones are ignored

    Returns:
        ApplyResult with the new text and the records that could not be placed
    """
    base_text = base_text or ""
    selected = select_changes(records)
    skipped: list[NoMatchWarning] = []

    # Application order: first occurrence in the base text, ties keep input order.
    located: list[tuple[int, int, ChangeRecord]] = []
    for position, record in enumerate(selected):
        offset = base_text.find(record.original_text)
        if offset == -1:
            skipped.append(NoMatchWarning(record.id, record.original_text, NOT_FOUND))
            continue
        located.append((offset, position, record))
    located.sort(key=lambda item: (item[0], item[1]))

    claimed: list[PatchSpan] = []
    notes: list[AmbiguousMatchNote] = []
    for first_offset, _, record in located:
        start = _first_free_occurrence(base_text, record.original_text, first_offset, claimed)
        if start is None:
            skipped.append(NoMatchWarning(record.id, record.original_text, CONSUMED))
            continue
        span = PatchSpan(start, start + len(record.original_text), record.replacement_text or "", record.id)
        claimed.append(span)

        occurrences = base_text.count(record.original_text)
        if occurrences > 1:
            notes.append(AmbiguousMatchNote(record.id, occurrences, start))

    text = _splice(base_text, claimed)

    for warning in skipped:
        logger.warning(warning.message)
    for note in notes:
        logger.info(
            f"Change {note.change_id}: original text occurs {note.occurrences} times, replaced the one at {note.offset}"
        )
    logger.debug(f"Applied {len(claimed)} of {len(selected)} selected changes")

    return ApplyResult(
        text=text,
        applied=tuple(span.change_id for span in claimed),
        spans=tuple(sorted(claimed, key=lambda s: s.start)),
        skipped=tuple(skipped),
        notes=tuple(notes),
    )


def _first_free_occurrence(
    text: str,
    needle: str,
    offset: int,
    claimed: list[PatchSpan],
) -> int | None:
    while offset != -1:
        end = offset + len(needle)
        if not any(offset < span.end and span.start < end for span in claimed):
            return offset
        offset = text.find(needle, offset + 1)
    return None


def _splice(text: str, spans: list[PatchSpan]) -> str:
    parts: list[str] = []
    cursor = 0
    for span in sorted(spans, key=lambda s: s.start):
        parts.append(text[cursor:span.start])
        parts.append(span.replacement)
        cursor = span.end
    parts.append(text[cursor:])
    return "".join(parts)
