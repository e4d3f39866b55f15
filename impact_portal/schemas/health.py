"""Schemas for the health and readiness probes."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

HealthStatus = Literal["healthy", "degraded", "unhealthy"]


class ServiceHealth(BaseModel):
    """Result of one dependency check (the app itself, the data store)."""

    service: str
    status: HealthStatus
    latency_ms: float | None = None
    details: str | None = None


class HealthResponse(BaseModel):
    status: HealthStatus
    version: str
    environment: str
    services: list[ServiceHealth]
