"""Schemas for releases, assessment requests and attachments."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from impact_portal.domain import DEFAULT_ENVIRONMENT, Environment, ReportType


class ReleaseResponse(BaseModel):
    """A release that can be assessed."""

    id: str
    version: str
    ordinal: int
    release_date: datetime
    is_active: bool


class SubmissionForm(BaseModel):
    """Raw field values from the new-assessment form.

    Fields are deliberately loose: they are checked by the submission
    validator so each problem is reported against its own field.
    """

    report_type: str = ""
    current_release_id: str = ""
    target_release_id: str = ""
    title: str = ""
    environment: str = DEFAULT_ENVIRONMENT
    description: str = ""
    email_notification: bool = True
    inapp_notification: bool = True


class ValidationResponse(BaseModel):
    valid: bool
    errors: dict[str, str] = Field(default_factory=dict)


class AssessmentRequestResponse(BaseModel):
    """An assessment request row."""

    id: str
    display_id: str
    user_id: str
    report_type: ReportType
    current_release_id: str
    target_release_id: str
    environment: Environment
    title: str | None = None
    description: str | None = None
    status: str
    error_message: str | None = None
    email_notification: bool
    inapp_notification: bool
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None


class AttachmentResponse(BaseModel):
    """Metadata for a file attached to a request."""

    id: str
    request_id: str
    filename: str
    file_path: str
    file_size: int
    file_type: str
    uploaded_at: datetime


class TimelineStep(BaseModel):
    name: str
    completed: bool
    current: bool


class StatusPresentation(BaseModel):
    """How a status is shown and which actions it allows."""

    status: str
    label: str
    colour: str
    steps: list[TimelineStep]
    can_cancel: bool
    results_available: bool
    in_progress: bool
    error_state: bool


class SubmissionResponse(BaseModel):
    request: AssessmentRequestResponse
    attachments: list[AttachmentResponse]
    message: str
    attachment_warning: str | None = None


class RequestListItem(AssessmentRequestResponse):
    """A row in the request listing, with release labels resolved."""

    current_release_version: str | None = None
    target_release_version: str | None = None
    presentation: StatusPresentation


class RequestListResponse(BaseModel):
    total: int
    shown: int
    requests: list[RequestListItem]
    summary: str


class RequestDetailResponse(BaseModel):
    """A single request with its releases, attachments and UI state."""

    request: AssessmentRequestResponse
    current_release: ReleaseResponse | None = None
    target_release: ReleaseResponse | None = None
    attachments: list[AttachmentResponse]
    presentation: StatusPresentation
    share_link: str


class CancelResponse(BaseModel):
    request: AssessmentRequestResponse
    message: str
