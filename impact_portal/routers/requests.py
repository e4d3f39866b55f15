"""Assessment request API endpoints — releases, submission, listing, detail."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile, status

from impact_portal.config import Settings
from impact_portal.deps import get_app_settings, get_current_identity, get_store
from impact_portal.domain import DEFAULT_ENVIRONMENT, short_id
from impact_portal.errors import (
    FetchError,
    InvalidTransitionError,
    NotFoundError,
    SubmissionError,
    ValidationError,
)
from impact_portal.schemas.auth import Identity
from impact_portal.schemas.requests import (
    CancelResponse,
    ReleaseResponse,
    RequestDetailResponse,
    RequestListResponse,
    SubmissionForm,
    SubmissionResponse,
    ValidationResponse,
)
from impact_portal.services import lifecycle
from impact_portal.services.request_views import (
    ALL_STATUSES,
    cancel_request,
    filter_requests,
    list_item,
    load_request_detail,
    request_payload,
    share_link,
)
from impact_portal.services.submission import (
    AttachmentUpload,
    release_index,
    screen_attachments,
    submit_request,
    validate_submission,
)
from impact_portal.store import DataStore

router = APIRouter(prefix="/api", tags=["requests"])


@router.get("/releases", response_model=list[ReleaseResponse])
async def list_releases(
    _: Identity = Depends(get_current_identity),
    store: DataStore = Depends(get_store),
) -> list[ReleaseResponse]:
    """Active releases, newest first, for the release pickers."""
    return [ReleaseResponse(**r) for r in store.list_releases(active_only=True)]


@router.post("/requests/validate", response_model=ValidationResponse)
async def validate_request(
    form: SubmissionForm,
    _: Identity = Depends(get_current_identity),
    store: DataStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> ValidationResponse:
    """Check a form before the confirmation step. Nothing is written."""
    releases = release_index(store.list_releases(active_only=True))
    errors = validate_submission(form, releases, [], settings)
    return ValidationResponse(valid=not errors, errors=errors)


@router.post("/requests", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
async def create_request(
    report_type: str = Form(default=""),
    current_release_id: str = Form(default=""),
    target_release_id: str = Form(default=""),
    title: str = Form(default=""),
    environment: str = Form(default=DEFAULT_ENVIRONMENT),
    description: str = Form(default=""),
    email_notification: bool = Form(default=True),
    inapp_notification: bool = Form(default=True),
    files: list[UploadFile] | None = File(default=None),
    identity: Identity = Depends(get_current_identity),
    store: DataStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> SubmissionResponse:
    """Submit a new assessment request with optional attachments."""
    form = SubmissionForm(
        report_type=report_type,
        current_release_id=current_release_id,
        target_release_id=target_release_id,
        title=title,
        environment=environment,
        description=description,
        email_notification=email_notification,
        inapp_notification=inapp_notification,
    )
    uploads = [
        AttachmentUpload(
            filename=f.filename or "attachment",
            content_type=f.content_type or "application/octet-stream",
            data=await f.read(),
        )
        for f in files or []
    ]
    accepted, warning = screen_attachments(uploads, settings)

    try:
        created = submit_request(store, settings, identity, form, accepted)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors)
    except SubmissionError as exc:
        raise HTTPException(status_code=502, detail=exc.message)
    except FetchError as exc:
        raise HTTPException(status_code=502, detail=exc.message)

    row = created["request"]
    return SubmissionResponse(
        request=request_payload(row),
        attachments=created["attachments"],
        message=f"Assessment request submitted successfully. Request {short_id(row['id'])}",
        attachment_warning=warning,
    )


@router.get("/requests", response_model=RequestListResponse)
async def list_requests(
    search: str = Query(default="", max_length=200),
    status_filter: str = Query(default=ALL_STATUSES, alias="status"),
    identity: Identity = Depends(get_current_identity),
    store: DataStore = Depends(get_store),
) -> RequestListResponse:
    """The caller's requests, filtered and newest first."""
    if status_filter != ALL_STATUSES and status_filter not in {s.value for s in lifecycle.RequestStatus}:
        raise HTTPException(status_code=422, detail={"status": f"Unknown status '{status_filter}'"})
    try:
        rows = store.list_requests(identity.id)
        releases = {r["id"]: r for r in store.list_releases(active_only=False)}
    except FetchError as exc:
        raise HTTPException(status_code=502, detail=exc.message)

    visible = filter_requests(rows, search, status_filter)
    summary = f"Showing {len(visible)} of {len(rows)} requests" if visible else "No requests found"
    return RequestListResponse(
        total=len(rows),
        shown=len(visible),
        requests=[list_item(r, releases) for r in visible],
        summary=summary,
    )


@router.get("/requests/{request_id}", response_model=RequestDetailResponse)
async def get_request_detail(
    request_id: str,
    identity: Identity = Depends(get_current_identity),
    store: DataStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> RequestDetailResponse:
    """One request with its releases, attachments and UI state."""
    try:
        detail = load_request_detail(store, identity.id, request_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message)
    except FetchError as exc:
        raise HTTPException(status_code=502, detail=exc.message)

    row = detail["request"]
    return RequestDetailResponse(
        request=request_payload(row),
        current_release=detail["current_release"],
        target_release=detail["target_release"],
        attachments=detail["attachments"],
        presentation=lifecycle.status_presentation(row["status"]),
        share_link=share_link(settings.public_base_url, request_id),
    )


@router.post("/requests/{request_id}/cancel", response_model=CancelResponse)
async def cancel(
    request_id: str,
    identity: Identity = Depends(get_current_identity),
    store: DataStore = Depends(get_store),
) -> CancelResponse:
    """Cancel a Queued or Running request."""
    try:
        row = cancel_request(store, identity.id, request_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message)
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=exc.message)
    except FetchError as exc:
        raise HTTPException(status_code=502, detail=exc.message)
    return CancelResponse(request=request_payload(row), message="Request canceled")


@router.get("/requests/{request_id}/attachments/{attachment_id}")
async def download_attachment(
    request_id: str,
    attachment_id: str,
    identity: Identity = Depends(get_current_identity),
    store: DataStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> Response:
    """Stream an attachment's bytes back to its owner."""
    try:
        attachment = store.get_attachment(identity.id, request_id, attachment_id)
        blob = store.download_blob(settings.attachments_bucket, attachment["file_path"])
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message)
    except FetchError as exc:
        raise HTTPException(status_code=502, detail=exc.message)
    return Response(
        content=blob["data"],
        media_type=attachment["file_type"],
        headers={"Content-Disposition": f'attachment; filename="{attachment["filename"]}"'},
    )
