"""Attachment model — files uploaded alongside a request."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from impact_portal.models.base import Base, utcnow


class Attachment(Base):
    """Metadata for one blob stored under ``{owner}/{request}/{filename}``."""

    __tablename__ = "attachments"

    request_id: Mapped[str] = mapped_column(
        ForeignKey("assessment_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    file_type: Mapped[str] = mapped_column(String(100), nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    request = relationship("AssessmentRequest", back_populates="attachments")

    def __repr__(self) -> str:
        return f"<Attachment {self.filename}>"
