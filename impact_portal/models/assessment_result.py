"""Assessment result model — written by the assessment engine."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from impact_portal.models.base import Base, utcnow

JSONType = JSON().with_variant(JSONB(), "postgresql")


class AssessmentResult(Base):
    """The single result generated for a completed request."""

    __tablename__ = "assessment_results"

    request_id: Mapped[str] = mapped_column(
        ForeignKey("assessment_requests.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
    )
    summary: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    api_changes: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONType, nullable=True)
    database_changes: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONType, nullable=True)
    raw_data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    request = relationship("AssessmentRequest", back_populates="result")

    def __repr__(self) -> str:
        return f"<AssessmentResult request={self.request_id[:8]}>"
