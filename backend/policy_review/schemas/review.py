from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from policy_review.schemas.diff import DiffRead
from policy_review.schemas.finding import Finding
from policy_review.services.change_records import ChangeStatus, Severity


class ChangeRead(BaseModel):
    id: str
    original_text: str
    suggested_text: str
    reason: str
    severity: Severity
    status: ChangeStatus
    modified_text: str | None = None
    regulation: str | None = None
    policy_section: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ChangeTransitionRequest(BaseModel):
    modified_text: str | None = Field(default=None, description="Replacement text for the modify action")


class ReviewCountsRead(BaseModel):
    pending: int
    accepted: int
    rejected: int
    modified: int
    total: int

    model_config = ConfigDict(from_attributes=True)


class ReviewCreate(BaseModel):
    findings: list[Finding]
    triggered_by: str = Field(..., min_length=1, description="e.g. a regulation update")


class ReviewRead(BaseModel):
    id: str
    base_version_number: int
    triggered_by: str
    created_at: datetime
    counts: ReviewCountsRead
    changes: list[ChangeRead]


class NoMatchWarningRead(BaseModel):
    change_id: str
    reason: str
    message: str

    model_config = ConfigDict(from_attributes=True)


class AmbiguousMatchNoteRead(BaseModel):
    change_id: str
    occurrences: int
    offset: int

    model_config = ConfigDict(from_attributes=True)


class PreviewRead(BaseModel):
    text: str
    applied: list[str]
    skipped: list[NoMatchWarningRead]
    notes: list[AmbiguousMatchNoteRead]
    diff: DiffRead


class ReviewOutcomeRead(BaseModel):
    review_id: str
    triggered_by: str
    base_version_number: int
    result_version_number: int
    created_at: datetime
    completed_at: datetime
    changes: list[ChangeRead]
    skipped_change_ids: list[str]

    model_config = ConfigDict(from_attributes=True)


class FinalizeRead(BaseModel):
    version_number: int
    created_at: datetime
    skipped: list[NoMatchWarningRead]
    notes: list[AmbiguousMatchNoteRead]
    outcome: ReviewOutcomeRead
