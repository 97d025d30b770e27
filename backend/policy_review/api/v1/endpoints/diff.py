"""Stateless diff rendering for the review UI."""
import logging

from fastapi import APIRouter, Depends

from policy_review.api.v1.dependencies import get_app_settings
from policy_review.core.config import Settings
from policy_review.schemas.diff import DiffRead, DiffRequest
from policy_review.services import review as review_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=DiffRead)
def diff_texts(request: DiffRequest, settings: Settings = Depends(get_app_settings)) -> DiffRead:
    """Annotated spans between two texts in the requested render mode."""
    logger.debug(f"Diff request: old={len(request.old_text)} new={len(request.new_text)} mode={request.mode.value}")
    rendered = review_service.diff(
        request.old_text,
        request.new_text,
        request.mode,
        granularity=request.granularity or settings.DIFF_GRANULARITY,
        cleanup=request.cleanup,
        max_edit_distance=settings.DIFF_MAX_EDIT_DISTANCE,
        timeout=settings.DIFF_TIMEOUT_SECONDS,
    )
    return DiffRead.model_validate(rendered, from_attributes=True)
