from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from policy_review.schemas.finding import Finding
from policy_review.schemas.review import ReviewRead
from policy_review.services.ledger import INITIAL_ANALYSIS, PolicyStatus


class PolicyCreate(BaseModel):
    name: str = Field(..., min_length=1)
    tenant_id: str = Field(..., min_length=1)
    text: str
    findings: list[Finding] | None = Field(default=None, description="Analysis findings for the initial version")
    triggered_by: str = INITIAL_ANALYSIS


class DocumentVersionRead(BaseModel):
    version_number: int
    text: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PolicyRead(BaseModel):
    id: UUID
    name: str
    tenant_id: str
    status: PolicyStatus
    current_version_number: int
    current_version: DocumentVersionRead
    pending_review: ReviewRead | None = None


class PoliciesPage(BaseModel):
    items: list[PolicyRead]
    total: int
    limit: int
    offset: int
