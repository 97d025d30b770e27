"""
Suggested changes and their review lifecycle.

A ``ChangeRecord`` is an immutable value. Every transition returns a new
record and leaves the original untouched; whoever owns the collection (the
pending review) swaps the old value for the new one.

    pending --accept--> accepted
    pending --reject--> rejected
    pending --modify--> modified
    any     --reopen--> pending
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Iterable, Mapping

from policy_review.core.exceptions import (
    EmptyReplacementError,
    InvalidChangeRecordError,
    InvalidTransitionError,
)
from policy_review.schemas.finding import Finding

logger = logging.getLogger(__name__)


class ChangeStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    MODIFIED = "modified"


class Severity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2, Severity.CRITICAL: 3}


class ReviewAction(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    MODIFY = "modify"
    REOPEN = "reopen"


@dataclass(frozen=True)
class ChangeRecord:
    """One proposed edit of a policy document."""

    id: str
    original_text: str
    suggested_text: str
    reason: str = ""
    severity: Severity = Severity.MEDIUM
    status: ChangeStatus = ChangeStatus.PENDING
    modified_text: str | None = None
    regulation: str | None = None
    policy_section: str | None = None

    def __post_init__(self) -> None:
        if not self.original_text:
            raise InvalidChangeRecordError(f"Change {self.id} has no original text")
        if (self.status is ChangeStatus.MODIFIED) != (self.modified_text is not None):
            raise InvalidChangeRecordError(
                f"Change {self.id}: modified text must be set exactly when status is modified"
            )

    @property
    def is_resolved(self) -> bool:
        return self.status is not ChangeStatus.PENDING

    @property
    def replacement_text(self) -> str | None:
        """Text that replaces ``original_text`` when the review is finalized."""
        if self.status is ChangeStatus.MODIFIED:
            return self.modified_text
        if self.status is ChangeStatus.ACCEPTED:
            return self.suggested_text
        return None

    def accept(self) -> "ChangeRecord":
        return replace(self, status=ChangeStatus.ACCEPTED, modified_text=None)

    def reject(self) -> "ChangeRecord":
        return replace(self, status=ChangeStatus.REJECTED, modified_text=None)

    def modify(self, new_text: str | None) -> "ChangeRecord":
        if not new_text or not new_text.strip():
            raise EmptyReplacementError(f"Change {self.id} cannot be modified to empty text")
        return replace(self, status=ChangeStatus.MODIFIED, modified_text=new_text)

    def reopen(self) -> "ChangeRecord":
        return replace(self, status=ChangeStatus.PENDING, modified_text=None)

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "original_text": self.original_text,
            "suggested_text": self.suggested_text,
            "reason": self.reason,
            "severity": self.severity.value,
            "status": self.status.value,
            "modified_text": self.modified_text,
            "regulation": self.regulation,
            "policy_section": self.policy_section,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ChangeRecord":
        return cls(
            id=payload["id"],
            original_text=payload["original_text"],
            suggested_text=payload.get("suggested_text", ""),
            reason=payload.get("reason", ""),
            severity=Severity(payload.get("severity", Severity.MEDIUM.value)),
            status=ChangeStatus(payload.get("status", ChangeStatus.PENDING.value)),
            modified_text=payload.get("modified_text"),
            regulation=payload.get("regulation"),
            policy_section=payload.get("policy_section"),
        )


def transition(
    record: ChangeRecord,
    action: ReviewAction | str,
    payload: str | None = None,
) -> ChangeRecord:
    """Apply a review action and return the resulting record."""
    try:
        action = ReviewAction(action)
    except ValueError:
        raise InvalidTransitionError(f"Unknown review action: {action!r}") from None

    if action is ReviewAction.ACCEPT:
        return record.accept()
    if action is ReviewAction.REJECT:
        return record.reject()
    if action is ReviewAction.MODIFY:
        return record.modify(payload)
    return record.reopen()


def parse_severity(value: str | None) -> Severity:
    if value:
        for severity in Severity:
            if severity.value.lower() == value.strip().lower():
                return severity
    logger.warning(f"Unknown severity {value!r}, defaulting to Medium")
    return Severity.MEDIUM


def records_from_findings(
    findings: Iterable[Finding | Mapping[str, Any]],
    id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
) -> list[ChangeRecord]:
    """
    Turn analysis findings into pending change records.

    Compliant findings and findings that do not quote any policy text carry
    nothing to patch and are dropped.
    """
    records: list[ChangeRecord] = []
    skipped = 0
    for raw in findings:
        finding = raw if isinstance(raw, Finding) else Finding.model_validate(raw)
        if finding.is_compliant or not finding.original_text:
            skipped += 1
            continue
        records.append(
            ChangeRecord(
                id=id_factory(),
                original_text=finding.original_text,
                suggested_text=finding.suggestion,
                reason=finding.analysis,
                severity=parse_severity(finding.severity),
                regulation=finding.regulation,
                policy_section=finding.policy_section,
            )
        )
    logger.info(f"Built {len(records)} change records from findings ({skipped} skipped)")
    return records
