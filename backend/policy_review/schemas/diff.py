from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from policy_review.services.aligner import Granularity
from policy_review.services.diff_renderer import RenderMode, SpanKind


class DiffRequest(BaseModel):
    old_text: str = Field(default="", description="Text before the change")
    new_text: str = Field(default="", description="Text after the change")
    mode: RenderMode = RenderMode.COMBINED
    granularity: Granularity | None = Field(default=None, description="Defaults to the configured granularity")
    cleanup: bool = True


class AnnotatedSpanRead(BaseModel):
    text: str
    kind: SpanKind

    model_config = ConfigDict(from_attributes=True)


class DiffRead(BaseModel):
    spans: list[AnnotatedSpanRead]
    mode: RenderMode
    granularity: Granularity
    degraded: bool
    stats: dict[str, int]

    model_config = ConfigDict(from_attributes=True)
