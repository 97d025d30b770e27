"""Findings delivered by the policy analysis service."""
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class Finding(BaseModel):
    """One regulation check; non-compliant findings seed change records."""

    regulation: str | None = Field(
        default=None, validation_alias=AliasChoices("regulation", "regulationRef")
    )
    policy_section: str | None = Field(default=None, alias="policySection")
    original_text: str = Field(default="", alias="originalText")
    analysis: str = ""
    suggestion: str = ""
    is_compliant: bool = Field(default=False, alias="isCompliant")
    severity: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class AnalysisResult(BaseModel):
    overall_score: int | None = Field(default=None, alias="overallScore")
    summary: str = ""
    findings: list[Finding] = []

    model_config = ConfigDict(populate_by_name=True)
