"""Mapping between the policy aggregate and its persisted rows."""
from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from policy_review.core.exceptions import LedgerIntegrityError
from policy_review.models.policy import Policy as PolicyModel
from policy_review.models.policy import PolicyReview, PolicyVersion
from policy_review.services import ledger
from policy_review.services.change_records import ChangeRecord

logger = logging.getLogger(__name__)


def _policy_query():
    return select(PolicyModel).options(
        selectinload(PolicyModel.versions),
        selectinload(PolicyModel.reviews),
    )


def to_domain(row: PolicyModel) -> ledger.Policy:
    versions = [
        ledger.DocumentVersion(
            version_number=v.version_number,
            text=v.text,
            created_at=v.created_at,
        )
        for v in sorted(row.versions, key=lambda v: v.version_number)
    ]
    history = [
        ledger.ReviewOutcome(
            review_id=r.id,
            triggered_by=r.triggered_by,
            base_version_number=r.base_version_number,
            result_version_number=r.result_version_number,
            created_at=r.created_at,
            completed_at=r.completed_at,
            changes=tuple(ChangeRecord.from_payload(item) for item in r.changes),
            skipped_change_ids=tuple(r.skipped_change_ids or ()),
        )
        for r in sorted(row.reviews, key=lambda r: r.result_version_number)
    ]
    return ledger.Policy(
        id=row.id,
        name=row.name,
        tenant_id=row.tenant_id,
        versions=versions,
        pending_review=ledger.PendingReview.from_payload(row.pending_review) if row.pending_review else None,
        review_history=history,
    )


def load_policy(db: Session, policy_id: UUID) -> ledger.Policy | None:
    row = db.scalar(_policy_query().where(PolicyModel.id == policy_id))
    if row is None:
        return None
    return to_domain(row)


def list_policies(
    db: Session, *, tenant_id: str | None = None, limit: int = 50, offset: int = 0
) -> tuple[list[ledger.Policy], int]:
    stmt = _policy_query().order_by(PolicyModel.created_at.desc(), PolicyModel.name)
    count_stmt = select(func.count()).select_from(PolicyModel)
    if tenant_id is not None:
        stmt = stmt.where(PolicyModel.tenant_id == tenant_id)
        count_stmt = count_stmt.where(PolicyModel.tenant_id == tenant_id)
    rows = list(db.scalars(stmt.offset(offset).limit(limit)))
    total = db.scalar(count_stmt) or 0
    return [to_domain(row) for row in rows], total


def save_policy(db: Session, policy: ledger.Policy) -> PolicyModel:
    """
    Write the aggregate back within the caller's transaction.

    New versions and archived reviews are inserted; committed versions are
    compared but never updated.

    Raises:
        LedgerIntegrityError: If a stored version's text differs from the aggregate
    """
    row = db.scalar(_policy_query().where(PolicyModel.id == policy.id))
    if row is None:
        row = PolicyModel(id=policy.id, name=policy.name, tenant_id=policy.tenant_id)
        db.add(row)

    stored = {v.version_number: v for v in row.versions}
    for version in policy.versions:
        existing = stored.get(version.version_number)
        if existing is None:
            row.versions.append(
                PolicyVersion(
                    version_number=version.version_number,
                    text=version.text,
                    created_at=version.created_at,
                )
            )
        elif existing.text != version.text:
            raise LedgerIntegrityError(
                f"Policy {policy.id} v{version.version_number} is committed and cannot be rewritten"
            )

    archived = {r.id for r in row.reviews}
    for outcome in policy.review_history:
        if outcome.review_id in archived:
            continue
        row.reviews.append(
            PolicyReview(
                id=outcome.review_id,
                triggered_by=outcome.triggered_by,
                base_version_number=outcome.base_version_number,
                result_version_number=outcome.result_version_number,
                created_at=outcome.created_at,
                completed_at=outcome.completed_at,
                changes=[record.to_payload() for record in outcome.changes],
                skipped_change_ids=list(outcome.skipped_change_ids),
            )
        )

    row.name = policy.name
    row.status = policy.status.value
    row.current_version_number = policy.current_version_number
    row.pending_review = policy.pending_review.to_payload() if policy.pending_review else None

    db.flush()
    logger.debug(f"Saved policy {policy.id} at v{policy.current_version_number}")
    return row
