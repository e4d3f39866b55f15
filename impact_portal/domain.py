"""Enumerations and fixed catalogues shared across the portal."""

from __future__ import annotations

from typing import Literal, get_args

ReportType = Literal["API", "Database", "API + Database"]
Environment = Literal["Development", "Test", "Staging", "Production", "Not Applicable"]
ChangeType = Literal["Added", "Modified", "Removed"]
RiskLevel = Literal["Low", "Medium", "High"]

REPORT_TYPES: tuple[str, ...] = get_args(ReportType)
ENVIRONMENTS: tuple[str, ...] = get_args(Environment)
CHANGE_TYPES: tuple[str, ...] = get_args(ChangeType)
RISK_LEVELS: tuple[str, ...] = get_args(RiskLevel)

DEFAULT_ENVIRONMENT = "Not Applicable"

# MIME types accepted as request attachments (PDF, TXT, MD, JSON, XML)
ALLOWED_ATTACHMENT_TYPES = frozenset({
    "application/pdf",
    "text/plain",
    "text/markdown",
    "application/json",
    "application/xml",
    "text/xml",
})

# Releases seeded into a fresh backend, oldest first. The position is the
# ordinal used for ordering; the label is display-only.
DEFAULT_RELEASES = ("EB20", "EB21", "EB22", "EB23", "EB24", "EB25.1")


def short_id(request_id: str) -> str:
    """Human-facing request reference, e.g. ``#3F2A9C1D``."""
    return f"#{request_id[:8].upper()}"
