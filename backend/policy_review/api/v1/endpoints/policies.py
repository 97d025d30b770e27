from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from policy_review.api.v1.dependencies import get_app_settings, get_db
from policy_review.core.config import Settings
from policy_review.core.exceptions import (
    ChangeNotFoundError,
    EmptyReplacementError,
    InvalidTransitionError,
    NoActiveReviewError,
    ReviewInProgressError,
    UnresolvedReviewError,
)
from policy_review.crud import policy as policy_crud
from policy_review.schemas.diff import DiffRead
from policy_review.schemas.policy import DocumentVersionRead, PoliciesPage, PolicyCreate, PolicyRead
from policy_review.schemas.review import (
    AmbiguousMatchNoteRead,
    ChangeRead,
    ChangeTransitionRequest,
    FinalizeRead,
    NoMatchWarningRead,
    PreviewRead,
    ReviewCountsRead,
    ReviewCreate,
    ReviewOutcomeRead,
    ReviewRead,
)
from policy_review.services import ledger
from policy_review.services import review as review_service
from policy_review.services.change_records import ReviewAction, records_from_findings

logger = logging.getLogger(__name__)

router = APIRouter()


def _review_payload(review: ledger.PendingReview) -> ReviewRead:
    return ReviewRead(
        id=review.id,
        base_version_number=review.base_version_number,
        triggered_by=review.triggered_by,
        created_at=review.created_at,
        counts=ReviewCountsRead.model_validate(review.counts(), from_attributes=True),
        changes=[ChangeRead.model_validate(c, from_attributes=True) for c in review.changes],
    )


def _policy_payload(policy: ledger.Policy) -> PolicyRead:
    return PolicyRead(
        id=policy.id,
        name=policy.name,
        tenant_id=policy.tenant_id,
        status=policy.status,
        current_version_number=policy.current_version_number,
        current_version=DocumentVersionRead.model_validate(policy.current_version, from_attributes=True),
        pending_review=_review_payload(policy.pending_review) if policy.pending_review else None,
    )


def _get_policy_or_404(db: Session, policy_id: UUID) -> ledger.Policy:
    policy = policy_crud.load_policy(db, policy_id)
    if policy is None:
        raise HTTPException(status_code=404, detail="Policy not found")
    return policy


def _require_review_or_404(policy: ledger.Policy) -> ledger.PendingReview:
    try:
        return review_service.require_review(policy)
    except NoActiveReviewError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("", response_model=PolicyRead, status_code=201)
def create_policy(payload: PolicyCreate, db: Session = Depends(get_db)) -> PolicyRead:
    policy = ledger.create_policy(
        payload.name,
        payload.tenant_id,
        payload.text,
        payload.findings,
        triggered_by=payload.triggered_by,
    )
    policy_crud.save_policy(db, policy)
    db.commit()
    return _policy_payload(policy)


@router.get("", response_model=PoliciesPage)
def list_policies(
    tenant_id: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
) -> PoliciesPage:
    policies, total = policy_crud.list_policies(db, tenant_id=tenant_id, limit=limit, offset=offset)
    return PoliciesPage(
        items=[_policy_payload(p) for p in policies],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{policy_id}", response_model=PolicyRead)
def get_policy(policy_id: UUID, db: Session = Depends(get_db)) -> PolicyRead:
    return _policy_payload(_get_policy_or_404(db, policy_id))


@router.get("/{policy_id}/versions", response_model=list[DocumentVersionRead])
def list_versions(policy_id: UUID, db: Session = Depends(get_db)):
    policy = _get_policy_or_404(db, policy_id)
    return [DocumentVersionRead.model_validate(v, from_attributes=True) for v in ledger.history(policy)]


@router.get("/{policy_id}/versions/{version_number}", response_model=DocumentVersionRead)
def get_version(policy_id: UUID, version_number: int, db: Session = Depends(get_db)):
    policy = _get_policy_or_404(db, policy_id)
    try:
        version = policy.version(version_number)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return DocumentVersionRead.model_validate(version, from_attributes=True)


@router.post("/{policy_id}/reviews", response_model=ReviewRead, status_code=201)
def open_review(policy_id: UUID, payload: ReviewCreate, db: Session = Depends(get_db)) -> ReviewRead:
    policy = _get_policy_or_404(db, policy_id)
    try:
        review = ledger.open_review(
            policy,
            records_from_findings(payload.findings),
            triggered_by=payload.triggered_by,
        )
    except ReviewInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if review is None:
        raise HTTPException(status_code=422, detail="Findings contain no changes to review")

    policy_crud.save_policy(db, policy)
    db.commit()
    return _review_payload(review)


@router.get("/{policy_id}/reviews", response_model=list[ReviewOutcomeRead])
def list_review_history(policy_id: UUID, db: Session = Depends(get_db)):
    policy = _get_policy_or_404(db, policy_id)
    return [ReviewOutcomeRead.model_validate(o, from_attributes=True) for o in policy.review_history]


@router.get("/{policy_id}/review", response_model=ReviewRead)
def get_review(policy_id: UUID, db: Session = Depends(get_db)) -> ReviewRead:
    policy = _get_policy_or_404(db, policy_id)
    return _review_payload(_require_review_or_404(policy))


@router.delete("/{policy_id}/review", status_code=204)
def discard_review(policy_id: UUID, db: Session = Depends(get_db)) -> None:
    policy = _get_policy_or_404(db, policy_id)
    _require_review_or_404(policy)
    review_service.discard_review(policy)
    policy_crud.save_policy(db, policy)
    db.commit()


@router.get("/{policy_id}/review/changes", response_model=list[ChangeRead])
def list_changes(
    policy_id: UUID,
    order: str = Query(default="review", pattern="^(review|severity)$"),
    db: Session = Depends(get_db),
):
    review = _require_review_or_404(_get_policy_or_404(db, policy_id))
    changes = review_service.list_changes(review)
    if order == "severity":
        changes = review_service.sort_by_severity(changes)
    return [ChangeRead.model_validate(c, from_attributes=True) for c in changes]


@router.post("/{policy_id}/review/changes/{change_id}/{action}", response_model=ChangeRead)
def transition_change(
    policy_id: UUID,
    change_id: str,
    action: ReviewAction,
    payload: ChangeTransitionRequest | None = None,
    db: Session = Depends(get_db),
) -> ChangeRead:
    policy = _get_policy_or_404(db, policy_id)
    _require_review_or_404(policy)
    try:
        record = review_service.transition_change(
            policy,
            change_id,
            action,
            payload.modified_text if payload else None,
        )
    except ChangeNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (EmptyReplacementError, InvalidTransitionError) as e:
        raise HTTPException(status_code=422, detail=str(e))

    policy_crud.save_policy(db, policy)
    db.commit()
    return ChangeRead.model_validate(record, from_attributes=True)


@router.get("/{policy_id}/review/preview", response_model=PreviewRead)
def preview_review(
    policy_id: UUID,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> PreviewRead:
    policy = _get_policy_or_404(db, policy_id)
    _require_review_or_404(policy)
    result, rendered = review_service.preview_policy(
        policy,
        granularity=settings.DIFF_GRANULARITY,
        max_edit_distance=settings.DIFF_MAX_EDIT_DISTANCE,
        timeout=settings.DIFF_TIMEOUT_SECONDS,
    )
    return PreviewRead(
        text=result.text,
        applied=list(result.applied),
        skipped=[NoMatchWarningRead.model_validate(w, from_attributes=True) for w in result.skipped],
        notes=[AmbiguousMatchNoteRead.model_validate(n, from_attributes=True) for n in result.notes],
        diff=DiffRead.model_validate(rendered, from_attributes=True),
    )


@router.post("/{policy_id}/review/finalize", response_model=FinalizeRead)
def finalize_review(policy_id: UUID, db: Session = Depends(get_db)) -> FinalizeRead:
    policy = _get_policy_or_404(db, policy_id)
    _require_review_or_404(policy)
    try:
        result = review_service.finalize(policy)
    except UnresolvedReviewError as e:
        raise HTTPException(
            status_code=409,
            detail={"message": str(e), "pending_count": e.pending_count},
        )

    policy_crud.save_policy(db, policy)
    db.commit()
    logger.info(f"Policy {policy_id} finalized to v{result.version.version_number}")
    return FinalizeRead(
        version_number=result.version.version_number,
        created_at=result.version.created_at,
        skipped=[NoMatchWarningRead.model_validate(w, from_attributes=True) for w in result.skipped],
        notes=[AmbiguousMatchNoteRead.model_validate(n, from_attributes=True) for n in result.notes],
        outcome=ReviewOutcomeRead.model_validate(result.outcome, from_attributes=True),
    )
