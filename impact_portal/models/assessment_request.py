"""Assessment request model — the central lifecycle entity."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from impact_portal.domain import DEFAULT_ENVIRONMENT, ENVIRONMENTS, REPORT_TYPES
from impact_portal.models.base import Base, TimestampMixin
from impact_portal.services.lifecycle import RequestStatus


def _in(column: str, values) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


class AssessmentRequest(TimestampMixin, Base):
    """A user's request to compare two releases."""

    __tablename__ = "assessment_requests"
    __table_args__ = (
        CheckConstraint(_in("report_type", REPORT_TYPES), name="ck_assessment_requests_report_type"),
        CheckConstraint(_in("environment", ENVIRONMENTS), name="ck_assessment_requests_environment"),
        CheckConstraint(_in("status", [s.value for s in RequestStatus]), name="ck_assessment_requests_status"),
    )

    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    report_type: Mapped[str] = mapped_column(String(20), nullable=False)
    current_release_id: Mapped[str] = mapped_column(ForeignKey("releases.id"), nullable=False)
    target_release_id: Mapped[str] = mapped_column(ForeignKey("releases.id"), nullable=False)
    environment: Mapped[str] = mapped_column(String(20), nullable=False, default=DEFAULT_ENVIRONMENT)
    title: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=RequestStatus.QUEUED.value, index=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    email_notification: Mapped[bool] = mapped_column(Boolean, default=True)
    inapp_notification: Mapped[bool] = mapped_column(Boolean, default=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    attachments = relationship("Attachment", back_populates="request", cascade="all, delete-orphan")
    result = relationship("AssessmentResult", back_populates="request", cascade="all, delete-orphan", uselist=False)

    def __repr__(self) -> str:
        return f"<AssessmentRequest {self.id[:8]} {self.status}>"
