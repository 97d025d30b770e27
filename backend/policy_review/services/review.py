"""
Review workflow operations exposed to the presentation layer.

Everything here runs synchronously on an in-memory ``Policy``; persisting the
aggregate before and after is the caller's job (see ``policy_review.crud``).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Sequence

from policy_review.core.exceptions import NoActiveReviewError, UnresolvedReviewError
from policy_review.services import ledger
from policy_review.services.aligner import Granularity
from policy_review.services.change_records import ChangeRecord, ReviewAction, transition
from policy_review.services.diff_renderer import RenderedDiff, RenderMode
from policy_review.services.diff_renderer import diff as render_diff
from policy_review.services.ledger import DocumentVersion, PendingReview, Policy, ReviewOutcome
from policy_review.services.patch_applier import AmbiguousMatchNote, ApplyResult, NoMatchWarning, apply_changes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinalizeResult:
    version: DocumentVersion
    outcome: ReviewOutcome
    skipped: tuple[NoMatchWarning, ...] = ()
    notes: tuple[AmbiguousMatchNote, ...] = ()


def diff(
    old_text: str,
    new_text: str,
    mode: RenderMode | str = RenderMode.COMBINED,
    **options,
) -> RenderedDiff:
    return render_diff(old_text, new_text, mode, **options)


def list_changes(review: PendingReview) -> list[ChangeRecord]:
    return list(review.changes)


def sort_by_severity(records: Iterable[ChangeRecord]) -> list[ChangeRecord]:
    """Most severe first; equal severities keep review order."""
    return sorted(records, key=lambda record: -record.severity.rank)


def require_review(policy: Policy) -> PendingReview:
    if policy.pending_review is None:
        raise NoActiveReviewError(f"Policy {policy.id} has no pending review")
    return policy.pending_review


def transition_change(
    policy: Policy,
    change_id: str,
    action: ReviewAction | str,
    payload: str | None = None,
) -> ChangeRecord:
    """Apply a review action to one change and store the new value in the review."""
    review = require_review(policy)
    updated = transition(review.get(change_id), action, payload)
    review.replace(updated)
    logger.debug(f"Change {change_id} on policy {policy.id} is now {updated.status.value}")
    return updated


def preview_result(base_text: str, records: Sequence[ChangeRecord]) -> ApplyResult:
    """Dry run of finalization; nothing is mutated."""
    return apply_changes(base_text, records)


def preview_policy(
    policy: Policy,
    *,
    granularity: Granularity | str = Granularity.CHARACTER,
    max_edit_distance: int | None = None,
    timeout: float | None = None,
) -> tuple[ApplyResult, RenderedDiff]:
    """What the next version would look like, with its diff against the current one."""
    review = require_review(policy)
    base_text = policy.version(review.base_version_number).text
    result = preview_result(base_text, review.changes)
    rendered = render_diff(
        base_text,
        result.text,
        RenderMode.COMBINED,
        granularity=granularity,
        max_edit_distance=max_edit_distance,
        timeout=timeout,
    )
    return result, rendered


def finalize(policy: Policy, *, now: datetime | None = None) -> FinalizeResult:
    """
    Commit the resolved review as a new version.

    Raises:
        NoActiveReviewError: If the policy has no pending review
        UnresolvedReviewError: If any change is still pending; nothing is mutated
    """
    review = require_review(policy)
    pending = review.counts().pending
    if pending:
        logger.info(f"Finalize of policy {policy.id} refused: {pending} change(s) pending")
        raise UnresolvedReviewError(pending)

    base_text = policy.version(review.base_version_number).text
    result = apply_changes(base_text, review.changes)
    completed_at = now or ledger.utcnow()
    version = ledger.commit(policy, result.text, now=completed_at)

    outcome = ReviewOutcome(
        review_id=review.id,
        triggered_by=review.triggered_by,
        base_version_number=review.base_version_number,
        result_version_number=version.version_number,
        created_at=review.created_at,
        completed_at=completed_at,
        changes=tuple(review.changes),
        skipped_change_ids=result.skipped_ids,
    )
    policy.review_history.append(outcome)

    if result.skipped:
        logger.warning(
            f"Finalized policy {policy.id} v{version.version_number} with {len(result.skipped)} skipped change(s)"
        )
    else:
        logger.info(f"Finalized policy {policy.id} v{version.version_number}")
    return FinalizeResult(version=version, outcome=outcome, skipped=result.skipped, notes=result.notes)


def discard_review(policy: Policy) -> PendingReview | None:
    """Drop the pending review without committing anything."""
    review = policy.pending_review
    policy.pending_review = None
    if review is not None:
        logger.info(f"Discarded review {review.id} on policy {policy.id}")
    return review
