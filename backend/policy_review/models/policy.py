from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from policy_review.db.base_class import Base


class Policy(Base):
    """A tenant's policy document; the pending review travels with it as a JSON blob."""

    __tablename__ = "policies"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    tenant_id: Mapped[str] = mapped_column(String(length=64), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(length=32), nullable=False, server_default="Active")
    current_version_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    pending_review: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    versions: Mapped[list["PolicyVersion"]] = relationship(
        "PolicyVersion",
        back_populates="policy",
        cascade="all, delete-orphan",
        order_by="PolicyVersion.version_number",
    )
    reviews: Mapped[list["PolicyReview"]] = relationship(
        "PolicyReview",
        back_populates="policy",
        cascade="all, delete-orphan",
        order_by="PolicyReview.completed_at",
    )


class PolicyVersion(Base):
    """Committed snapshot of a policy; rows are only ever inserted."""

    __tablename__ = "policy_versions"
    __table_args__ = (
        UniqueConstraint(
            "policy_id",
            "version_number",
            name="uq_policy_version_number",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    policy_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("policies.id", ondelete="CASCADE"), nullable=False
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    policy: Mapped[Policy] = relationship("Policy", back_populates="versions")


class PolicyReview(Base):
    """Archived outcome of a finalized review."""

    __tablename__ = "policy_reviews"

    id: Mapped[str] = mapped_column(String(length=64), primary_key=True)
    policy_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("policies.id", ondelete="CASCADE"), nullable=False
    )
    triggered_by: Mapped[str] = mapped_column(Text, nullable=False)
    base_version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    result_version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    changes: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    skipped_change_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    policy: Mapped[Policy] = relationship("Policy", back_populates="reviews")
