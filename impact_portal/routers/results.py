"""Assessment results API endpoints — summary, change lists, raw data, export."""

from __future__ import annotations

from typing import Any

import pydantic
import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response

from impact_portal.deps import get_current_identity, get_store
from impact_portal.errors import FetchError, NotFoundError, ValidationError
from impact_portal.schemas.auth import Identity
from impact_portal.schemas.results import (
    ApiChangesResponse,
    AssessmentResults,
    DatabaseChangesResponse,
    ResultsOverview,
)
from impact_portal.services.report_renderer import ALL_CHANGES, export_report, filter_changes
from impact_portal.services.request_views import request_payload
from impact_portal.store import DataStore

logger = structlog.get_logger()

router = APIRouter(prefix="/api/requests/{request_id}/results", tags=["results"])


def _load(store: DataStore, user_id: str, request_id: str) -> tuple[dict[str, Any], AssessmentResults]:
    """Fetch the request and its result, converting failures to HTTP errors."""
    try:
        request = store.get_request(user_id, request_id)
        results = AssessmentResults.model_validate(store.get_result(user_id, request_id))
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message)
    except FetchError as exc:
        raise HTTPException(status_code=502, detail=exc.message)
    except pydantic.ValidationError:
        logger.warning("malformed_result_row", request_id=request_id)
        raise HTTPException(status_code=502, detail="Results could not be read")
    return request, results


@router.get("", response_model=ResultsOverview)
async def get_results_overview(
    request_id: str,
    identity: Identity = Depends(get_current_identity),
    store: DataStore = Depends(get_store),
) -> ResultsOverview:
    """The summary tab."""
    request, results = _load(store, identity.id, request_id)
    return ResultsOverview(
        request=request_payload(request),
        current_release=store.get_release(request["current_release_id"]),
        target_release=store.get_release(request["target_release_id"]),
        summary=results.summary,
        api_change_count=len(results.api_changes or []),
        database_change_count=len(results.database_changes or []),
        generated_at=results.generated_at,
    )


@router.get("/api-changes", response_model=ApiChangesResponse)
async def get_api_changes(
    request_id: str,
    change_type: str = Query(default=ALL_CHANGES),
    identity: Identity = Depends(get_current_identity),
    store: DataStore = Depends(get_store),
) -> ApiChangesResponse:
    """API changes, optionally limited to Added, Modified or Removed."""
    _, results = _load(store, identity.id, request_id)
    try:
        changes = filter_changes(results.api_changes, change_type)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors)
    return ApiChangesResponse(change_type=change_type, total=len(changes), changes=changes)


@router.get("/database-changes", response_model=DatabaseChangesResponse)
async def get_database_changes(
    request_id: str,
    change_type: str = Query(default=ALL_CHANGES),
    identity: Identity = Depends(get_current_identity),
    store: DataStore = Depends(get_store),
) -> DatabaseChangesResponse:
    """Database changes, optionally limited to Added, Modified or Removed."""
    _, results = _load(store, identity.id, request_id)
    try:
        changes = filter_changes(results.database_changes, change_type)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors)
    return DatabaseChangesResponse(change_type=change_type, total=len(changes), changes=changes)


@router.get("/raw")
async def get_raw_data(
    request_id: str,
    identity: Identity = Depends(get_current_identity),
    store: DataStore = Depends(get_store),
) -> dict[str, Any]:
    """The engine's raw payload, passed through untouched."""
    _, results = _load(store, identity.id, request_id)
    return results.raw_data


@router.get("/export")
async def export_results(
    request_id: str,
    fmt: str = Query(default="json", alias="format"),
    identity: Identity = Depends(get_current_identity),
    store: DataStore = Depends(get_store),
) -> Response:
    """Download the report as JSON or Markdown ("pdf" yields the JSON export)."""
    request, results = _load(store, identity.id, request_id)
    try:
        report = export_report(request, results, fmt)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors)
    return Response(
        content=report.content,
        media_type=report.media_type,
        headers={"Content-Disposition": f'attachment; filename="{report.filename}"'},
    )
