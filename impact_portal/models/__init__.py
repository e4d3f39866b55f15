"""Database models for the Impact Assessment Portal."""

from impact_portal.models.base import Base
from impact_portal.models.release import Release
from impact_portal.models.assessment_request import AssessmentRequest
from impact_portal.models.attachment import Attachment
from impact_portal.models.assessment_result import AssessmentResult

__all__ = [
    "Base",
    "Release",
    "AssessmentRequest",
    "Attachment",
    "AssessmentResult",
]
