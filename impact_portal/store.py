"""In-memory data store for the Impact Assessment Portal.

Stands in for the managed backend during development and testing: the
relational tables, the attachments bucket, the auth user table and the
change feed. Row scoping mirrors the backend's ownership policies, so a
caller only ever sees requests it owns and the attachments and results
hanging off them. In production this would be the hosted backend.
"""

from __future__ import annotations

import copy
import threading
import uuid
from datetime import datetime, timezone
from typing import Any

import structlog

from impact_portal.domain import DEFAULT_ENVIRONMENT, DEFAULT_RELEASES, ENVIRONMENTS, REPORT_TYPES
from impact_portal.errors import AuthError, FetchError, NotFoundError
from impact_portal.services import lifecycle
from impact_portal.services.realtime import DELETE, INSERT, UPDATE, ChangeFeed

logger = structlog.get_logger()

REQUESTS_TABLE = "assessment_requests"

# Columns a client may never rewrite once the row exists
IMMUTABLE_REQUEST_FIELDS = frozenset({"id", "user_id", "created_at"})

UPDATABLE_REQUEST_FIELDS = frozenset({
    "status",
    "error_message",
    "title",
    "description",
    "email_notification",
    "inapp_notification",
    "completed_at",
})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class DataStore:
    """Thread-safe in-memory data store for development and testing."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.users: dict[str, dict[str, Any]] = {}
        self.revoked_tokens: set[str] = set()
        self.releases: dict[str, dict[str, Any]] = {}
        self.requests: dict[str, dict[str, Any]] = {}
        self.attachments: dict[str, dict[str, Any]] = {}
        self.results: dict[str, dict[str, Any]] = {}  # request_id -> result
        self.blobs: dict[str, dict[str, dict[str, Any]]] = {}  # bucket -> path -> blob
        if not hasattr(self, "feed"):
            self.feed = ChangeFeed()
        self.seed_releases()

    def reset(self) -> None:
        """Clear all data and reseed releases — used in tests."""
        self.feed.close_all()
        self.__init__()

    # ── Auth users ──────────────────────────────────────────────────────

    def create_user(self, email: str, password_hash: str) -> dict[str, Any]:
        """Register a user. Emails are unique case-insensitively."""
        normalised = email.strip().lower()
        with self._lock:
            if self.find_user_by_email(normalised) is not None:
                raise AuthError("User already registered")
            user = {
                "id": _new_id(),
                "email": normalised,
                "password_hash": password_hash,
                "created_at": _utcnow(),
            }
            self.users[user["id"]] = user
        return dict(user)

    def find_user_by_email(self, email: str) -> dict[str, Any] | None:
        normalised = email.strip().lower()
        for user in self.users.values():
            if user["email"] == normalised:
                return dict(user)
        return None

    def get_user(self, user_id: str) -> dict[str, Any] | None:
        user = self.users.get(user_id)
        return dict(user) if user else None

    def revoke_token(self, jti: str) -> None:
        self.revoked_tokens.add(jti)

    def is_token_revoked(self, jti: str) -> bool:
        return jti in self.revoked_tokens

    # ── Releases ────────────────────────────────────────────────────────

    def seed_releases(self) -> None:
        """Insert the default release catalogue if it is missing."""
        for ordinal, version in enumerate(DEFAULT_RELEASES, start=1):
            if self.find_release_by_version(version) is None:
                self.add_release(version, ordinal=ordinal)

    def add_release(
        self,
        version: str,
        ordinal: int | None = None,
        is_active: bool = True,
        release_date: datetime | None = None,
    ) -> dict[str, Any]:
        """Add a release. Without an explicit ordinal it sorts after every existing one."""
        with self._lock:
            if self.find_release_by_version(version) is not None:
                raise FetchError(f"Release '{version}' already exists")
            if ordinal is None:
                ordinal = max((r["ordinal"] for r in self.releases.values()), default=0) + 1
            now = _utcnow()
            release = {
                "id": _new_id(),
                "version": version,
                "ordinal": ordinal,
                "release_date": release_date or now,
                "is_active": is_active,
                "created_at": now,
            }
            self.releases[release["id"]] = release
        return dict(release)

    def find_release_by_version(self, version: str) -> dict[str, Any] | None:
        for release in self.releases.values():
            if release["version"] == version:
                return dict(release)
        return None

    def get_release(self, release_id: str) -> dict[str, Any] | None:
        release = self.releases.get(release_id)
        return dict(release) if release else None

    def list_releases(self, active_only: bool = True) -> list[dict[str, Any]]:
        """Releases newest first."""
        rows = [dict(r) for r in self.releases.values() if r["is_active"] or not active_only]
        return sorted(rows, key=lambda r: r["ordinal"], reverse=True)

    # ── Assessment requests ─────────────────────────────────────────────

    def insert_request(self, user_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a request owned by ``user_id``. Status always starts Queued."""
        report_type = data.get("report_type")
        if report_type not in REPORT_TYPES:
            raise FetchError(f"Invalid report_type '{report_type}'")
        environment = data.get("environment") or DEFAULT_ENVIRONMENT
        if environment not in ENVIRONMENTS:
            raise FetchError(f"Invalid environment '{environment}'")
        for key in ("current_release_id", "target_release_id"):
            if data.get(key) not in self.releases:
                raise FetchError(f"{key} does not reference a known release")

        now = data.get("created_at") or _utcnow()
        row = {
            "id": _new_id(),
            "user_id": user_id,
            "report_type": report_type,
            "current_release_id": data["current_release_id"],
            "target_release_id": data["target_release_id"],
            "environment": environment,
            "title": data.get("title") or None,
            "description": data.get("description") or None,
            "status": lifecycle.RequestStatus.QUEUED.value,
            "error_message": None,
            "email_notification": data.get("email_notification", True),
            "inapp_notification": data.get("inapp_notification", True),
            "created_at": now,
            "updated_at": now,
            "completed_at": None,
        }
        with self._lock:
            self.requests[row["id"]] = row
            snapshot = copy.deepcopy(row)
        self.feed.publish(REQUESTS_TABLE, INSERT, new=snapshot)
        return snapshot

    def list_requests(self, user_id: str) -> list[dict[str, Any]]:
        """Requests owned by ``user_id``, newest first."""
        with self._lock:
            rows = [copy.deepcopy(r) for r in self.requests.values() if r["user_id"] == user_id]
        # Reverse insertion order first so ties on created_at keep newest first
        return sorted(reversed(rows), key=lambda r: r["created_at"], reverse=True)

    def get_request(self, user_id: str, request_id: str) -> dict[str, Any]:
        row = self.requests.get(request_id)
        if row is None or row["user_id"] != user_id:
            raise NotFoundError("Request not found")
        return copy.deepcopy(row)

    def update_request(
        self,
        request_id: str,
        changes: dict[str, Any],
        user_id: str | None = None,
    ) -> dict[str, Any]:
        """Apply ``changes`` to a request.

        With ``user_id`` the update is scoped to that owner; without it the
        caller is the assessment engine. Status changes must follow the
        lifecycle, and entering Completed stamps ``completed_at``.
        """
        forbidden = set(changes) & IMMUTABLE_REQUEST_FIELDS
        if forbidden:
            raise FetchError(f"Cannot modify {', '.join(sorted(forbidden))}")
        unknown = set(changes) - UPDATABLE_REQUEST_FIELDS
        if unknown:
            raise FetchError(f"Unknown column(s): {', '.join(sorted(unknown))}")

        with self._lock:
            row = self.requests.get(request_id)
            if row is None or (user_id is not None and row["user_id"] != user_id):
                raise NotFoundError("Request not found")
            old = copy.deepcopy(row)
            updates = dict(changes)
            if "status" in updates:
                new_status = lifecycle.ensure_transition(row["status"], updates["status"])
                updates["status"] = new_status.value
                if new_status == lifecycle.RequestStatus.COMPLETED and not updates.get("completed_at"):
                    updates["completed_at"] = row["completed_at"] or _utcnow()
            row.update(updates)
            row["updated_at"] = _utcnow()
            snapshot = copy.deepcopy(row)

        logger.info(
            "request_updated",
            request_id=request_id,
            old_status=old["status"],
            new_status=snapshot["status"],
        )
        self.feed.publish(REQUESTS_TABLE, UPDATE, new=snapshot, old=old)
        return snapshot

    def delete_request(self, user_id: str, request_id: str) -> None:
        """Delete a request and cascade to its attachments and result."""
        with self._lock:
            row = self.requests.get(request_id)
            if row is None or row["user_id"] != user_id:
                raise NotFoundError("Request not found")
            del self.requests[request_id]
            for attachment_id in [a["id"] for a in self.attachments.values() if a["request_id"] == request_id]:
                del self.attachments[attachment_id]
            self.results.pop(request_id, None)
            old = copy.deepcopy(row)
        self.feed.publish(REQUESTS_TABLE, DELETE, old=old)

    # ── Attachments ─────────────────────────────────────────────────────

    def insert_attachment(
        self,
        user_id: str,
        request_id: str,
        filename: str,
        file_path: str,
        file_size: int,
        file_type: str,
    ) -> dict[str, Any]:
        self.get_request(user_id, request_id)
        row = {
            "id": _new_id(),
            "request_id": request_id,
            "filename": filename,
            "file_path": file_path,
            "file_size": file_size,
            "file_type": file_type,
            "uploaded_at": _utcnow(),
        }
        with self._lock:
            self.attachments[row["id"]] = row
        return dict(row)

    def list_attachments(self, user_id: str, request_id: str) -> list[dict[str, Any]]:
        self.get_request(user_id, request_id)
        return [dict(a) for a in self.attachments.values() if a["request_id"] == request_id]

    def get_attachment(self, user_id: str, request_id: str, attachment_id: str) -> dict[str, Any]:
        self.get_request(user_id, request_id)
        row = self.attachments.get(attachment_id)
        if row is None or row["request_id"] != request_id:
            raise NotFoundError("Attachment not found")
        return dict(row)

    def delete_attachment(self, user_id: str, request_id: str, attachment_id: str) -> None:
        self.get_attachment(user_id, request_id, attachment_id)
        with self._lock:
            self.attachments.pop(attachment_id, None)

    # ── Blob storage ────────────────────────────────────────────────────

    def upload_blob(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        """Store bytes at ``path``. Existing objects are never overwritten."""
        with self._lock:
            objects = self.blobs.setdefault(bucket, {})
            if path in objects:
                raise FetchError(f"The resource already exists: {path}")
            objects[path] = {"data": bytes(data), "content_type": content_type, "size": len(data)}
        return path

    def download_blob(self, bucket: str, path: str) -> dict[str, Any]:
        blob = self.blobs.get(bucket, {}).get(path)
        if blob is None:
            raise NotFoundError(f"Object not found: {path}")
        return dict(blob)

    def remove_blob(self, bucket: str, path: str) -> None:
        with self._lock:
            self.blobs.get(bucket, {}).pop(path, None)

    # ── Assessment results ──────────────────────────────────────────────

    def insert_result(self, request_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Store the result the assessment engine produced for a request."""
        with self._lock:
            if request_id not in self.requests:
                raise FetchError("Result references an unknown request")
            if request_id in self.results:
                raise FetchError("A result already exists for this request")
            row = {
                "id": data.get("id") or _new_id(),
                "request_id": request_id,
                "summary": copy.deepcopy(data["summary"]),
                "api_changes": copy.deepcopy(data.get("api_changes")),
                "database_changes": copy.deepcopy(data.get("database_changes")),
                "raw_data": copy.deepcopy(data.get("raw_data", {})),
                "generated_at": data.get("generated_at") or _utcnow(),
            }
            self.results[request_id] = row
        return copy.deepcopy(row)

    def get_result(self, user_id: str, request_id: str) -> dict[str, Any]:
        self.get_request(user_id, request_id)
        row = self.results.get(request_id)
        if row is None:
            raise NotFoundError("Results not available")
        return copy.deepcopy(row)


# Global singleton, reset between tests
data_store = DataStore()
