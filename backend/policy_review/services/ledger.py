"""
Policy aggregate and its append-only version ledger.

A policy starts at version 1. Each finalized review appends exactly one
version; versions are never edited or removed. While a review is pending the
policy reports ``Review Required``, otherwise ``Active``.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

from policy_review.core.exceptions import (
    ChangeNotFoundError,
    LedgerIntegrityError,
    ReviewInProgressError,
)
from policy_review.schemas.finding import Finding
from policy_review.services.change_records import ChangeRecord, ChangeStatus, records_from_findings

logger = logging.getLogger(__name__)

INITIAL_ANALYSIS = "Initial Upload Analysis"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PolicyStatus(str, Enum):
    ACTIVE = "Active"
    REVIEW_REQUIRED = "Review Required"


@dataclass(frozen=True)
class DocumentVersion:
    version_number: int
    text: str
    created_at: datetime


@dataclass(frozen=True)
class ReviewCounts:
    pending: int = 0
    accepted: int = 0
    rejected: int = 0
    modified: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.accepted + self.rejected + self.modified


@dataclass
class PendingReview:
    """Change records attached to the version currently under review."""

    base_version_number: int
    changes: list[ChangeRecord]
    triggered_by: str = INITIAL_ANALYSIS
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utcnow)

    def get(self, change_id: str) -> ChangeRecord:
        for record in self.changes:
            if record.id == change_id:
                return record
        raise ChangeNotFoundError(f"Change {change_id} is not part of review {self.id}")

    def replace(self, record: ChangeRecord) -> None:
        for index, current in enumerate(self.changes):
            if current.id == record.id:
                self.changes[index] = record
                return
        raise ChangeNotFoundError(f"Change {record.id} is not part of review {self.id}")

    def counts(self) -> ReviewCounts:
        tally = {status: 0 for status in ChangeStatus}
        for record in self.changes:
            tally[record.status] += 1
        return ReviewCounts(
            pending=tally[ChangeStatus.PENDING],
            accepted=tally[ChangeStatus.ACCEPTED],
            rejected=tally[ChangeStatus.REJECTED],
            modified=tally[ChangeStatus.MODIFIED],
        )

    @property
    def is_resolved(self) -> bool:
        return all(record.is_resolved for record in self.changes)

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "base_version_number": self.base_version_number,
            "triggered_by": self.triggered_by,
            "created_at": self.created_at.isoformat(),
            "changes": [record.to_payload() for record in self.changes],
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "PendingReview":
        return cls(
            id=payload["id"],
            base_version_number=payload["base_version_number"],
            triggered_by=payload.get("triggered_by", INITIAL_ANALYSIS),
            created_at=datetime.fromisoformat(payload["created_at"]),
            changes=[ChangeRecord.from_payload(item) for item in payload.get("changes", [])],
        )


@dataclass(frozen=True)
class ReviewOutcome:
    """A finalized review, kept as history next to the version it produced."""

    review_id: str
    triggered_by: str
    base_version_number: int
    result_version_number: int
    created_at: datetime
    completed_at: datetime
    changes: tuple[ChangeRecord, ...]
    skipped_change_ids: tuple[str, ...] = ()


@dataclass
class Policy:
    """Aggregate root; callers serialize mutations of one instance.

    ``versions`` is a tuple that only ``commit()`` extends.
    """

    name: str
    tenant_id: str
    versions: tuple[DocumentVersion, ...]
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    pending_review: PendingReview | None = None
    review_history: list[ReviewOutcome] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.versions = tuple(self.versions)
        _check_sequence(self.versions)

    @property
    def current_version_number(self) -> int:
        return self.versions[-1].version_number

    @property
    def current_version(self) -> DocumentVersion:
        return self.versions[-1]

    @property
    def status(self) -> PolicyStatus:
        return PolicyStatus.REVIEW_REQUIRED if self.pending_review is not None else PolicyStatus.ACTIVE

    def version(self, version_number: int) -> DocumentVersion:
        if 1 <= version_number <= len(self.versions):
            return self.versions[version_number - 1]
        raise LookupError(f"Policy {self.id} has no version {version_number}")


def create_policy(
    name: str,
    tenant_id: str,
    text: str,
    findings: Iterable[Finding | Mapping[str, Any]] | None = None,
    *,
    triggered_by: str = INITIAL_ANALYSIS,
    now: datetime | None = None,
) -> Policy:
    """Create a policy at version 1, opening a review when findings call for changes."""
    created_at = now or utcnow()
    policy = Policy(
        name=name,
        tenant_id=tenant_id,
        versions=(DocumentVersion(version_number=1, text=text, created_at=created_at),),
    )
    if findings is not None:
        open_review(policy, records_from_findings(findings), triggered_by=triggered_by, now=created_at)
    logger.info(f"Created policy {policy.id} ({policy.status.value}) for tenant {tenant_id}")
    return policy


def open_review(
    policy: Policy,
    records: Sequence[ChangeRecord],
    *,
    triggered_by: str = INITIAL_ANALYSIS,
    now: datetime | None = None,
) -> PendingReview | None:
    """Attach a review to the current version; nothing is opened for zero records."""
    if policy.pending_review is not None:
        raise ReviewInProgressError(f"Policy {policy.id} already has review {policy.pending_review.id} pending")
    if not records:
        logger.info(f"No changes suggested for policy {policy.id}; no review opened")
        return None

    review = PendingReview(
        base_version_number=policy.current_version_number,
        changes=list(records),
        triggered_by=triggered_by,
        created_at=now or utcnow(),
    )
    policy.pending_review = review
    logger.info(f"Opened review {review.id} on policy {policy.id} v{review.base_version_number} with {len(records)} changes")
    return review


def commit(policy: Policy, result_text: str, *, now: datetime | None = None) -> DocumentVersion:
    """Append the next version, make it current and clear the pending review."""
    version = DocumentVersion(
        version_number=policy.current_version_number + 1,
        text=result_text,
        created_at=now or utcnow(),
    )
    policy.versions = policy.versions + (version,)
    policy.pending_review = None
    logger.info(f"Committed policy {policy.id} v{version.version_number} ({len(result_text)} chars)")
    return version


def history(policy: Policy) -> tuple[DocumentVersion, ...]:
    """All versions, oldest first."""
    return policy.versions


def _check_sequence(versions: Sequence[DocumentVersion]) -> None:
    if not versions:
        raise LedgerIntegrityError("A policy needs at least its first version")
    for expected, version in enumerate(versions, start=1):
        if version.version_number != expected:
            raise LedgerIntegrityError(
                f"Version numbers must run 1..N without gaps, found {version.version_number} at position {expected}"
            )
