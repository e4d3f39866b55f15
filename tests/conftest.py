"""Shared test fixtures for the Impact Assessment Portal test suite."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from impact_portal.app import create_app
from impact_portal.config import Settings
from impact_portal.schemas.auth import Identity
from impact_portal.services.auth import AuthService
from impact_portal.services.session import SessionContext
from impact_portal.store import data_store

PASSWORD = "correct-horse-battery"


def _test_settings() -> Settings:
    """Return settings suitable for testing."""
    return Settings(
        environment="development",
        debug=True,
        log_format="console",
        rate_limit_default="1000/minute",
        allowed_origins="http://localhost:5173,http://localhost:3000",
        secret_key="test-secret-key",
        public_base_url="https://portal.example.com",
    )


@pytest.fixture
def settings():
    """Test settings."""
    return _test_settings()


@pytest.fixture
def app(settings):
    """Create a fresh FastAPI app for testing."""
    return create_app(settings)


@pytest.fixture
def client(app):
    """HTTP test client."""
    return TestClient(app)


@pytest.fixture(autouse=True)
def reset_store():
    """Reset the global data store before each test."""
    data_store.reset()
    yield
    data_store.reset()


@pytest.fixture
def auth_service(settings):
    return AuthService(data_store, settings)


@pytest.fixture
def user(auth_service) -> Identity:
    """A registered user."""
    return auth_service.sign_up("alice@example.com", PASSWORD)


@pytest.fixture
def other_user(auth_service) -> Identity:
    """A second registered user who owns nothing of the first user's."""
    return auth_service.sign_up("bob@example.com", PASSWORD)


@pytest.fixture
def token(auth_service, user) -> str:
    _, access_token = auth_service.sign_in(user.email, PASSWORD)
    return access_token


@pytest.fixture
def auth_headers(token) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_headers(auth_service, other_user) -> dict[str, str]:
    _, access_token = auth_service.sign_in(other_user.email, PASSWORD)
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def session(auth_service, user) -> SessionContext:
    """A signed-in session for the first user."""
    ctx = SessionContext(auth_service)
    ctx.sign_in(user.email, PASSWORD)
    return ctx


@pytest.fixture
def releases() -> dict[str, dict]:
    """Seeded releases keyed by version label."""
    return {r["version"]: r for r in data_store.list_releases(active_only=False)}


@pytest.fixture
def make_request(user, releases):
    """Insert a request for the first user straight into the store."""

    def _make(
        report_type: str = "API",
        current: str = "EB20",
        target: str = "EB21",
        title: str | None = None,
        owner: Identity | None = None,
        created_at: datetime | None = None,
    ) -> dict:
        data = {
            "report_type": report_type,
            "current_release_id": releases[current]["id"],
            "target_release_id": releases[target]["id"],
            "title": title,
        }
        if created_at is not None:
            data["created_at"] = created_at
        return data_store.insert_request((owner or user).id, data)

    return _make


@pytest.fixture
def results_payload() -> dict:
    """A result record as the assessment engine writes it."""
    api_changes = [
        {
            "endpoint": "/api/v2/users/{id}",
            "method": "GET",
            "change_type": "Modified",
            "summary": 'Added new query parameter "includeMetadata" for expanded user information',
            "details": {
                "parameters_changed": ["includeMetadata"],
                "response_schema_changed": True,
                "breaking_changes": [],
            },
        },
        {
            "endpoint": "/api/v2/users/{id}/permissions",
            "method": "GET",
            "change_type": "Added",
            "summary": "New endpoint to retrieve user permissions and role assignments",
        },
        {
            "endpoint": "/api/v1/auth/token",
            "method": "POST",
            "change_type": "Removed",
            "summary": "Deprecated in favor of /api/v2/auth/login.",
            "details": {"breaking_changes": ["Client must migrate to v2 endpoint"]},
        },
        {
            "endpoint": "/api/v2/webhooks",
            "method": "POST",
            "change_type": "Modified",
            "summary": 'New required field "event_type" in request body',
        },
    ]
    database_changes = [
        {
            "table_name": "users",
            "change_type": "Modified",
            "summary": 'Added column "last_login_at", removed "legacy_user_id" column',
            "details": {
                "columns_added": ["last_login_at (timestamptz)"],
                "columns_removed": ["legacy_user_id"],
            },
        },
        {
            "table_name": "audit_logs",
            "change_type": "Added",
            "summary": "New table for tracking all user actions for compliance",
        },
        {
            "table_name": "old_reports",
            "change_type": "Removed",
            "summary": 'Deprecated table removed. Data migrated to "reports" table.',
        },
    ]
    summary = {
        "api_endpoints_modified": 2,
        "api_endpoints_added": 1,
        "api_endpoints_removed": 1,
        "database_tables_modified": 1,
        "database_tables_added": 1,
        "database_tables_removed": 1,
        "risk_level": "Medium",
        "breaking_changes": True,
        "key_findings": [
            "Deprecated API endpoint /api/v1/auth/token has been removed.",
            'Column "legacy_user_id" removed from users table.',
        ],
    }
    return {
        "id": "12345678-1234-1234-1234-123456789012",
        "summary": summary,
        "api_changes": api_changes,
        "database_changes": database_changes,
        "raw_data": {"engine": "diff-v2", "tables_scanned": 42, "notes": ["full scan"]},
        "generated_at": datetime(2026, 1, 2, 9, 30, tzinfo=timezone.utc),
    }


@pytest.fixture
def completed_request(make_request, results_payload):
    """A request the assessment engine ran to completion, with its result."""
    row = make_request(report_type="API + Database", title="Quarterly upgrade")
    data_store.update_request(row["id"], {"status": "Running"})
    row = data_store.update_request(row["id"], {"status": "Completed"})
    data_store.insert_result(row["id"], results_payload)
    return row
