"""Schemas for assessment results and their views."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from impact_portal.domain import ChangeType, RiskLevel
from impact_portal.schemas.requests import AssessmentRequestResponse, ReleaseResponse


class AssessmentSummary(BaseModel):
    """Headline counts and findings for a release comparison."""

    api_endpoints_modified: int = Field(default=0, ge=0)
    api_endpoints_added: int = Field(default=0, ge=0)
    api_endpoints_removed: int = Field(default=0, ge=0)
    database_tables_modified: int = Field(default=0, ge=0)
    database_tables_added: int = Field(default=0, ge=0)
    database_tables_removed: int = Field(default=0, ge=0)
    risk_level: RiskLevel
    breaking_changes: bool
    key_findings: list[str] = Field(default_factory=list)


class ApiChangeDetails(BaseModel):
    parameters_changed: list[str] | None = None
    response_schema_changed: bool | None = None
    breaking_changes: list[str] | None = None


class ApiChange(BaseModel):
    endpoint: str
    method: str
    change_type: ChangeType
    summary: str
    details: ApiChangeDetails | None = None


class DatabaseChangeDetails(BaseModel):
    columns_added: list[str] | None = None
    columns_removed: list[str] | None = None
    columns_modified: list[str] | None = None
    indexes_changed: list[str] | None = None


class DatabaseChange(BaseModel):
    table_name: str
    change_type: ChangeType
    summary: str
    details: DatabaseChangeDetails | None = None


class AssessmentResults(BaseModel):
    """The result record the assessment engine writes for a request."""

    id: str
    request_id: str
    summary: AssessmentSummary
    api_changes: list[ApiChange] | None = None
    database_changes: list[DatabaseChange] | None = None
    raw_data: dict[str, Any] = Field(default_factory=dict)
    generated_at: datetime


class ResultsOverview(BaseModel):
    """The summary tab, with the request it belongs to."""

    request: AssessmentRequestResponse
    current_release: ReleaseResponse | None = None
    target_release: ReleaseResponse | None = None
    summary: AssessmentSummary
    api_change_count: int
    database_change_count: int
    generated_at: datetime


class ApiChangesResponse(BaseModel):
    change_type: str
    total: int
    changes: list[ApiChange]


class DatabaseChangesResponse(BaseModel):
    change_type: str
    total: int
    changes: list[DatabaseChange]
