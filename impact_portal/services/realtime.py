"""Change feed — push notifications for row changes, scoped per channel.

A view opens a channel when it mounts and closes it when it is torn down.
Each channel filters the feed by table, optionally by row id and by event
type, and hands matching ``ChangeEvent`` objects to its subscribers.
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

logger = structlog.get_logger()

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"
EVENT_TYPES = frozenset({INSERT, UPDATE, DELETE})


@dataclass(frozen=True)
class ChangeEvent:
    """A single committed row change."""

    table: str
    event_type: str
    new: dict[str, Any] | None = None
    old: dict[str, Any] | None = None
    commit_timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def row_id(self) -> str | None:
        row = self.new if self.new is not None else self.old
        return row.get("id") if row else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "table": self.table,
            "event_type": self.event_type,
            "new": self.new,
            "old": self.old,
            "commit_timestamp": self.commit_timestamp.isoformat(),
        }


Listener = Callable[[ChangeEvent], None]


class Channel:
    """A subscription scope on the change feed."""

    def __init__(
        self,
        feed: ChangeFeed,
        name: str,
        table: str,
        row_id: str | None = None,
        events: Iterable[str] | None = None,
    ) -> None:
        selected = frozenset(events) if events else EVENT_TYPES
        unknown = selected - EVENT_TYPES
        if unknown:
            raise ValueError(f"Unknown change event type(s): {', '.join(sorted(unknown))}")
        self.feed = feed
        self.name = name
        self.table = table
        self.row_id = row_id
        self.events = selected
        self.closed = False
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Channel:
        if self.closed:
            raise RuntimeError(f"Channel '{self.name}' is closed")
        self._listeners.append(listener)
        return self

    def matches(self, event: ChangeEvent) -> bool:
        if self.closed or event.table != self.table or event.event_type not in self.events:
            return False
        return self.row_id is None or event.row_id == self.row_id

    def deliver(self, event: ChangeEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    def close(self) -> None:
        """Release the channel. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        self._listeners.clear()
        self.feed._detach(self)
        logger.info("channel_closed", channel=self.name, open_channels=self.feed.open_channel_count)


class ChangeFeed:
    """Publish/subscribe hub for row changes."""

    def __init__(self) -> None:
        self._channels: list[Channel] = []
        self._lock = threading.RLock()

    @property
    def open_channel_count(self) -> int:
        with self._lock:
            return len(self._channels)

    def channel(
        self,
        name: str,
        table: str,
        row_id: str | None = None,
        events: Iterable[str] | None = None,
    ) -> Channel:
        """Open a channel on ``table``, optionally scoped to one row."""
        channel = Channel(self, name, table, row_id=row_id, events=events)
        with self._lock:
            self._channels.append(channel)
        logger.info("channel_opened", channel=name, table=table, row_id=row_id)
        return channel

    def _detach(self, channel: Channel) -> None:
        with self._lock:
            if channel in self._channels:
                self._channels.remove(channel)

    def publish(
        self,
        table: str,
        event_type: str,
        new: dict[str, Any] | None = None,
        old: dict[str, Any] | None = None,
    ) -> ChangeEvent:
        """Deliver a change to every matching open channel."""
        event = ChangeEvent(
            table=table,
            event_type=event_type,
            new=copy.deepcopy(new),
            old=copy.deepcopy(old),
        )
        with self._lock:
            targets = [c for c in self._channels if c.matches(event)]
        for channel in targets:
            try:
                channel.deliver(event)
            except Exception as exc:
                # One broken subscriber must not stop delivery to the rest
                logger.error(
                    "change_delivery_failed",
                    channel=channel.name,
                    event_type=event_type,
                    error=str(exc),
                )
        return event

    def close_all(self) -> None:
        with self._lock:
            channels = list(self._channels)
        for channel in channels:
            channel.close()
