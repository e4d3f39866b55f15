"""New-assessment submission — form validation and request creation."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import Any

import structlog

from impact_portal.config import Settings
from impact_portal.domain import ALLOWED_ATTACHMENT_TYPES, ENVIRONMENTS, REPORT_TYPES
from impact_portal.errors import FetchError, NotFoundError, SubmissionError, ValidationError
from impact_portal.schemas.auth import Identity
from impact_portal.schemas.requests import SubmissionForm
from impact_portal.store import DataStore

logger = structlog.get_logger()

MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 1000

REJECTED_FILES_MESSAGE = (
    "Some files were rejected. Only PDF, TXT, MD, JSON, XML files up to 10MB are allowed."
)


@dataclass
class AttachmentUpload:
    """A file picked on the submission form."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def basename(self) -> str:
        return posixpath.basename(self.filename.replace("\\", "/"))


def screen_attachments(
    files: list[AttachmentUpload],
    settings: Settings,
) -> tuple[list[AttachmentUpload], str | None]:
    """Drop files with a disallowed type or size.

    Returns the accepted files and, when anything was dropped, a single
    message describing what is allowed.
    """
    accepted = [
        f for f in files
        if f.content_type in ALLOWED_ATTACHMENT_TYPES and f.size <= settings.max_attachment_bytes
    ]
    if len(accepted) < len(files):
        for f in files:
            if f not in accepted:
                logger.info("attachment_rejected", filename=f.basename, size=f.size, content_type=f.content_type)
        return accepted, REJECTED_FILES_MESSAGE
    return accepted, None


def release_index(releases: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    return {r["id"]: r for r in releases}


def validate_submission(
    form: SubmissionForm,
    releases: dict[str, dict[str, Any]],
    attachments: list[AttachmentUpload],
    settings: Settings,
) -> dict[str, str]:
    """Check the form and return field -> message for every problem found."""
    errors: dict[str, str] = {}

    if not form.report_type:
        errors["report_type"] = "Please select a report type"
    elif form.report_type not in REPORT_TYPES:
        errors["report_type"] = f"Report type must be one of: {', '.join(REPORT_TYPES)}"

    current = releases.get(form.current_release_id)
    target = releases.get(form.target_release_id)
    if not form.current_release_id:
        errors["current_release_id"] = "Please select your current release"
    elif current is None:
        errors["current_release_id"] = "Please select a valid current release"
    if not form.target_release_id:
        errors["target_release_id"] = "Please select a target release"
    elif target is None:
        errors["target_release_id"] = "Please select a valid target release"
    if current is not None and target is not None and current["ordinal"] >= target["ordinal"]:
        errors["target_release_id"] = "Target release must be newer than current release"

    if form.environment not in ENVIRONMENTS:
        errors["environment"] = f"Environment must be one of: {', '.join(ENVIRONMENTS)}"
    if form.title and len(form.title) > MAX_TITLE_LENGTH:
        errors["title"] = f"Title cannot exceed {MAX_TITLE_LENGTH} characters"
    if form.description and len(form.description) > MAX_DESCRIPTION_LENGTH:
        errors["description"] = f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters"

    names = [a.basename for a in attachments]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        errors["attachments"] = f"Duplicate file name: {duplicates[0]}"
    if len(attachments) > settings.max_attachment_count:
        errors["attachments"] = f"Maximum {settings.max_attachment_count} files allowed"
    if sum(a.size for a in attachments) > settings.max_total_attachment_bytes:
        limit_mb = settings.max_total_attachment_bytes // (1024 * 1024)
        errors["attachments"] = f"Total file size cannot exceed {limit_mb}MB"

    return errors


def attachment_path(owner_id: str, request_id: str, filename: str) -> str:
    """Blob location for an attachment: ``{owner}/{request}/{filename}``."""
    return f"{owner_id}/{request_id}/{filename}"


def _roll_back(
    store: DataStore,
    settings: Settings,
    identity: Identity,
    request_id: str,
    uploaded: list[str],
) -> None:
    for path in uploaded:
        store.remove_blob(settings.attachments_bucket, path)
    try:
        store.delete_request(identity.id, request_id)
    except NotFoundError:
        pass
    logger.warning("submission_rolled_back", request_id=request_id, blobs_removed=len(uploaded))


def submit_request(
    store: DataStore,
    settings: Settings,
    identity: Identity,
    form: SubmissionForm,
    attachments: list[AttachmentUpload] | None = None,
) -> dict[str, Any]:
    """Create a request and its attachments as one logical unit.

    The request row is inserted first, then each attachment is uploaded
    and recorded. If any attachment step fails every write made so far is
    undone and SubmissionError is raised, so no half-submitted request is
    left Queued.
    """
    attachments = attachments or []
    releases = release_index(store.list_releases(active_only=True))
    errors = validate_submission(form, releases, attachments, settings)
    if errors:
        raise ValidationError(errors)

    row = store.insert_request(identity.id, {
        "report_type": form.report_type,
        "current_release_id": form.current_release_id,
        "target_release_id": form.target_release_id,
        "environment": form.environment,
        "title": form.title or None,
        "description": form.description or None,
        "email_notification": form.email_notification,
        "inapp_notification": form.inapp_notification,
    })

    uploaded: list[str] = []
    records: list[dict[str, Any]] = []
    for upload in attachments:
        path = attachment_path(identity.id, row["id"], upload.basename)
        try:
            store.upload_blob(settings.attachments_bucket, path, upload.data, upload.content_type)
            uploaded.append(path)
            records.append(store.insert_attachment(
                identity.id,
                row["id"],
                filename=upload.basename,
                file_path=path,
                file_size=upload.size,
                file_type=upload.content_type,
            ))
        except (FetchError, NotFoundError) as exc:
            logger.error("attachment_upload_failed", request_id=row["id"], filename=upload.basename, error=exc.message)
            _roll_back(store, settings, identity, row["id"], uploaded)
            raise SubmissionError(
                f"Failed to upload '{upload.basename}': {exc.message}. The request was not submitted."
            ) from exc

    logger.info(
        "request_submitted",
        request_id=row["id"],
        user_id=identity.id,
        report_type=row["report_type"],
        attachments=len(records),
    )
    return {"request": row, "attachments": records}
