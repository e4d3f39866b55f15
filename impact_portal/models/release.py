"""Release model — the versions a request compares."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from impact_portal.models.base import Base, utcnow


class Release(Base):
    """A software release. Seeded administratively, never edited by users."""

    __tablename__ = "releases"

    version: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    # Explicit sort key; version labels are display-only
    ordinal: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    release_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def __repr__(self) -> str:
        return f"<Release {self.version}>"
