"""Request listing and detail views.

The views keep the state a page renders and stay current through the
change feed: the listing re-fetches on any change to the requests table,
the detail view applies updates for its one request in place.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog

from impact_portal.domain import short_id
from impact_portal.errors import FetchError, InvalidTransitionError, NotFoundError
from impact_portal.services import lifecycle
from impact_portal.services.realtime import DELETE, UPDATE, Channel, ChangeEvent, ChangeFeed
from impact_portal.services.session import SIGNED_OUT, SessionContext
from impact_portal.store import REQUESTS_TABLE, DataStore

logger = structlog.get_logger()

ALL_STATUSES = "all"


def filter_requests(
    requests: list[dict[str, Any]],
    search: str = "",
    status: str = ALL_STATUSES,
) -> list[dict[str, Any]]:
    """Filter requests by free text and status, newest first.

    ``search`` matches the start of the request id (a leading ``#`` is
    ignored) or any part of the title, case-insensitively.
    """
    term = (search or "").strip().lower()
    id_term = term.lstrip("#")
    status = status or ALL_STATUSES

    def _matches(row: dict[str, Any]) -> bool:
        if status != ALL_STATUSES and row["status"] != status:
            return False
        if not term:
            return True
        title = (row.get("title") or "").lower()
        return row["id"].lower().startswith(id_term) or term in title

    matched = [r for r in requests if _matches(r)]
    return sorted(matched, key=lambda r: r["created_at"], reverse=True)


def request_payload(row: dict[str, Any]) -> dict[str, Any]:
    return {**row, "display_id": short_id(row["id"])}


def list_item(row: dict[str, Any], releases: dict[str, dict[str, Any]]) -> dict[str, Any]:
    current = releases.get(row["current_release_id"])
    target = releases.get(row["target_release_id"])
    return {
        **request_payload(row),
        "current_release_version": current["version"] if current else None,
        "target_release_version": target["version"] if target else None,
        "presentation": lifecycle.status_presentation(row["status"]),
    }


def share_link(base_url: str, request_id: str) -> str:
    """Deep link to a request's detail page."""
    return f"{base_url.rstrip('/')}/request/{request_id}"


def load_request_detail(store: DataStore, user_id: str, request_id: str) -> dict[str, Any]:
    """Fetch a request together with its two releases and its attachments."""
    row = store.get_request(user_id, request_id)
    return {
        "request": row,
        "current_release": store.get_release(row["current_release_id"]),
        "target_release": store.get_release(row["target_release_id"]),
        "attachments": store.list_attachments(user_id, request_id),
    }


def cancel_request(store: DataStore, user_id: str, request_id: str) -> dict[str, Any]:
    """Cancel an in-flight request owned by ``user_id``."""
    row = store.get_request(user_id, request_id)
    changes = lifecycle.cancel_changes(row["status"])
    updated = store.update_request(request_id, changes, user_id=user_id)
    logger.info("request_canceled", request_id=request_id, user_id=user_id)
    return updated


ViewListener = Callable[["RequestListView | RequestDetailView"], None]


class RequestListView:
    """State behind the dashboard listing."""

    def __init__(self, store: DataStore, session: SessionContext, feed: ChangeFeed | None = None) -> None:
        self.store = store
        self.session = session
        self.feed = feed or store.feed
        self.requests: list[dict[str, Any]] = []
        self.releases: dict[str, dict[str, Any]] = {}
        self.search = ""
        self.status = ALL_STATUSES
        self.error: str | None = None
        self.loaded = False
        self.channel: Channel | None = None
        self.on_change: ViewListener | None = None
        self._unsubscribe_session: Callable[[], None] | None = None

    @property
    def mounted(self) -> bool:
        return self.channel is not None

    @property
    def visible(self) -> list[dict[str, Any]]:
        return filter_requests(self.requests, self.search, self.status)

    @property
    def summary(self) -> str:
        shown = len(self.visible)
        if shown == 0:
            return "No requests found"
        return f"Showing {shown} of {len(self.requests)} requests"

    def mount(self) -> RequestListView:
        """Load the listing and start listening for request changes."""
        self.session.require_identity()
        self.refresh()
        self.channel = self.feed.channel("assessment_requests", REQUESTS_TABLE).subscribe(self.handle_event)
        self._unsubscribe_session = self.session.subscribe(self._on_session)
        return self

    def unmount(self) -> None:
        if self.channel is not None:
            self.channel.close()
            self.channel = None
        if self._unsubscribe_session is not None:
            self._unsubscribe_session()
            self._unsubscribe_session = None

    def refresh(self) -> None:
        """Re-fetch the caller's requests. Failures are kept as ``error``."""
        try:
            identity = self.session.require_identity()
            self.releases = {r["id"]: r for r in self.store.list_releases(active_only=False)}
            self.requests = self.store.list_requests(identity.id)
            self.error = None
        except FetchError as exc:
            self.error = exc.message
            logger.warning("request_list_fetch_failed", error=exc.message)
        self.loaded = True

    def set_filter(self, search: str | None = None, status: str | None = None) -> None:
        if search is not None:
            self.search = search
        if status is not None:
            self.status = status

    def handle_event(self, event: ChangeEvent) -> None:
        if not self.session.is_authenticated:
            return
        self.refresh()
        if self.on_change is not None:
            self.on_change(self)

    def _on_session(self, event: str, identity: Any) -> None:
        if event == SIGNED_OUT:
            self.requests = []
            self.unmount()

    def snapshot(self) -> dict[str, Any]:
        rows = self.visible
        return {
            "total": len(self.requests),
            "shown": len(rows),
            "requests": [list_item(r, self.releases) for r in rows],
            "summary": self.summary,
            "error": self.error,
        }


class RequestDetailView:
    """State behind a single request's detail page."""

    def __init__(
        self,
        store: DataStore,
        session: SessionContext,
        request_id: str,
        base_url: str,
        feed: ChangeFeed | None = None,
    ) -> None:
        self.store = store
        self.session = session
        self.feed = feed or store.feed
        self.request_id = request_id
        self.base_url = base_url
        self.request: dict[str, Any] | None = None
        self.current_release: dict[str, Any] | None = None
        self.target_release: dict[str, Any] | None = None
        self.attachments: list[dict[str, Any]] = []
        self.error: str | None = None
        self.not_found = False
        self.channel: Channel | None = None
        self.on_change: ViewListener | None = None

    @property
    def mounted(self) -> bool:
        return self.channel is not None

    @property
    def can_cancel(self) -> bool:
        return self.request is not None and lifecycle.can_cancel(self.request["status"])

    @property
    def share_link(self) -> str:
        return share_link(self.base_url, self.request_id)

    def mount(self) -> RequestDetailView:
        """Load the request and subscribe to changes for this id only."""
        self.session.require_identity()
        self.load()
        self.channel = self.feed.channel(
            f"request_{self.request_id}",
            REQUESTS_TABLE,
            row_id=self.request_id,
            events=(UPDATE, DELETE),
        ).subscribe(self.handle_event)
        return self

    def unmount(self) -> None:
        if self.channel is not None:
            self.channel.close()
            self.channel = None

    def load(self) -> None:
        identity = self.session.require_identity()
        try:
            detail = load_request_detail(self.store, identity.id, self.request_id)
            self.request = detail["request"]
            self.current_release = detail["current_release"]
            self.target_release = detail["target_release"]
            self.attachments = detail["attachments"]
            self.error = None
            self.not_found = False
        except NotFoundError as exc:
            self.request = None
            self.not_found = True
            self.error = exc.message
        except FetchError as exc:
            self.error = exc.message
            logger.warning("request_detail_fetch_failed", request_id=self.request_id, error=exc.message)

    def handle_event(self, event: ChangeEvent) -> None:
        """Apply a pushed change without re-fetching."""
        if event.event_type == DELETE:
            self.request = None
            self.not_found = True
            self.error = "Request not found"
        elif event.new is not None:
            identity = self.session.identity
            if identity is None or event.new.get("user_id") != identity.id:
                return
            self.request = dict(event.new)
        if self.on_change is not None:
            self.on_change(self)

    def cancel(self) -> dict[str, Any]:
        """Cancel the request; refused once it reached a terminal status."""
        identity = self.session.require_identity()
        if self.request is None:
            raise NotFoundError("Request not found")
        if not self.can_cancel:
            raise InvalidTransitionError(
                f"A {self.request['status']} request can no longer be canceled"
            )
        self.request = cancel_request(self.store, identity.id, self.request_id)
        return self.request

    def snapshot(self) -> dict[str, Any]:
        if self.request is None:
            return {"request": None, "not_found": self.not_found, "error": self.error}
        return {
            "request": request_payload(self.request),
            "current_release": self.current_release,
            "target_release": self.target_release,
            "attachments": self.attachments,
            "presentation": lifecycle.status_presentation(self.request["status"]),
            "share_link": self.share_link,
            "not_found": False,
            "error": self.error,
        }
