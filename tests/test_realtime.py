"""Change feed and WebSocket streaming tests."""

from __future__ import annotations

import pytest
from starlette.websockets import WebSocketDisconnect

from impact_portal.routers.realtime import CLOSE_UNAUTHORIZED
from impact_portal.services.realtime import DELETE, INSERT, UPDATE, ChangeFeed
from impact_portal.store import REQUESTS_TABLE, data_store


# ─── Change feed ────────────────────────────────────────────────────────────

class TestChangeFeed:
    """Channels receive only the changes they are scoped to."""

    def test_table_scope(self):
        feed = ChangeFeed()
        seen = []
        feed.channel("all", "assessment_requests").subscribe(seen.append)
        feed.publish("assessment_requests", INSERT, new={"id": "r1"})
        feed.publish("attachments", INSERT, new={"id": "a1"})
        assert [e.row_id for e in seen] == ["r1"]

    def test_row_and_event_scope(self):
        feed = ChangeFeed()
        seen = []
        feed.channel("one", "t", row_id="r1", events=(UPDATE,)).subscribe(seen.append)
        feed.publish("t", INSERT, new={"id": "r1"})
        feed.publish("t", UPDATE, new={"id": "r2"})
        feed.publish("t", UPDATE, new={"id": "r1", "n": 1}, old={"id": "r1"})
        assert len(seen) == 1
        assert seen[0].new == {"id": "r1", "n": 1}
        assert seen[0].old == {"id": "r1"}

    def test_delete_matches_on_old_row(self):
        feed = ChangeFeed()
        seen = []
        feed.channel("one", "t", row_id="r1").subscribe(seen.append)
        feed.publish("t", DELETE, old={"id": "r1"})
        assert seen[0].event_type == DELETE
        assert seen[0].new is None

    def test_payload_is_a_copy(self):
        feed = ChangeFeed()
        seen = []
        feed.channel("c", "t").subscribe(seen.append)
        row = {"id": "r1", "tags": ["a"]}
        feed.publish("t", INSERT, new=row)
        row["tags"].append("b")
        assert seen[0].new["tags"] == ["a"]

    def test_close_is_idempotent(self):
        feed = ChangeFeed()
        seen = []
        channel = feed.channel("c", "t").subscribe(seen.append)
        assert feed.open_channel_count == 1
        channel.close()
        channel.close()
        assert feed.open_channel_count == 0
        feed.publish("t", INSERT, new={"id": "r1"})
        assert seen == []

    def test_closed_channel_rejects_subscribers(self):
        channel = ChangeFeed().channel("c", "t")
        channel.close()
        with pytest.raises(RuntimeError):
            channel.subscribe(lambda event: None)

    def test_unknown_event_type(self):
        with pytest.raises(ValueError):
            ChangeFeed().channel("c", "t", events=("TRUNCATE",))

    def test_failing_listener_does_not_block_others(self):
        feed = ChangeFeed()
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        feed.channel("bad", "t").subscribe(broken)
        feed.channel("good", "t").subscribe(seen.append)
        feed.publish("t", INSERT, new={"id": "r1"})
        assert len(seen) == 1

    def test_event_to_dict(self):
        event = ChangeFeed().publish("t", INSERT, new={"id": "r1"})
        payload = event.to_dict()
        assert payload["event_type"] == INSERT
        assert payload["table"] == "t"
        assert "commit_timestamp" in payload

    def test_close_all(self):
        feed = ChangeFeed()
        feed.channel("a", "t")
        feed.channel("b", "t")
        feed.close_all()
        assert feed.open_channel_count == 0

    def test_store_publishes_request_changes(self, make_request, user):
        seen = []
        channel = data_store.feed.channel("watch", REQUESTS_TABLE).subscribe(seen.append)
        row = make_request()
        data_store.update_request(row["id"], {"status": "Running"})
        data_store.delete_request(user.id, row["id"])
        channel.close()
        assert [e.event_type for e in seen] == [INSERT, UPDATE, DELETE]
        assert seen[1].old["status"] == "Queued"
        assert seen[1].new["status"] == "Running"


# ─── WebSocket streams ──────────────────────────────────────────────────────

class TestListingStream:
    """WS /api/realtime/requests."""

    def test_rejects_missing_token(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/api/realtime/requests") as ws:
                ws.receive_json()
        assert exc_info.value.code == CLOSE_UNAUTHORIZED

    def test_rejects_revoked_token(self, client, auth_service, token):
        auth_service.sign_out(token)
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(f"/api/realtime/requests?token={token}") as ws:
                ws.receive_json()
        assert exc_info.value.code == CLOSE_UNAUTHORIZED

    def test_initial_snapshot_and_live_update(self, client, token, make_request):
        make_request(title="existing")
        with client.websocket_connect(f"/api/realtime/requests?token={token}") as ws:
            first = ws.receive_json()
            assert first["type"] == "snapshot"
            assert first["data"]["total"] == 1
            assert data_store.feed.open_channel_count == 1

            make_request(title="fresh")
            update = ws.receive_json()
            assert update["type"] == "snapshot"
            assert update["data"]["total"] == 2
            assert update["data"]["requests"][0]["title"] == "fresh"

    def test_ping_pong(self, client, token):
        with client.websocket_connect(f"/api/realtime/requests?token={token}") as ws:
            ws.receive_json()
            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"

    def test_invalid_json(self, client, token):
        with client.websocket_connect(f"/api/realtime/requests?token={token}") as ws:
            ws.receive_json()
            ws.send_text("not json")
            message = ws.receive_json()
            assert message["type"] == "error"
            assert message["data"]["message"] == "Invalid JSON format"

    def test_non_object_message(self, client, token):
        """Valid JSON that is not an object gets an error frame and the stream stays open."""
        with client.websocket_connect(f"/api/realtime/requests?token={token}") as ws:
            ws.receive_json()
            for payload in ("[1, 2]", "5", '"ping"', "null"):
                ws.send_text(payload)
                message = ws.receive_json()
                assert message["type"] == "error", payload
                assert message["data"]["message"] == "Invalid message format"
            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"

    def test_channel_released_on_disconnect(self, client, token):
        with client.websocket_connect(f"/api/realtime/requests?token={token}") as ws:
            ws.receive_json()
        assert data_store.feed.open_channel_count == 0

    def test_disconnect_with_pending_update(self, client, token, make_request):
        """Leaving while a snapshot is queued still shuts the stream down cleanly."""
        with client.websocket_connect(f"/api/realtime/requests?token={token}") as ws:
            ws.receive_json()
            make_request(title="unread")
        assert data_store.feed.open_channel_count == 0


class TestDetailStream:
    """WS /api/realtime/requests/{id}."""

    def test_status_update_pushed(self, client, token, make_request):
        row = make_request()
        with client.websocket_connect(f"/api/realtime/requests/{row['id']}?token={token}") as ws:
            first = ws.receive_json()["data"]
            assert first["request"]["status"] == "Queued"
            assert first["presentation"]["can_cancel"] is True

            data_store.update_request(row["id"], {"status": "Running"})
            update = ws.receive_json()["data"]
            assert update["request"]["status"] == "Running"
            assert update["presentation"]["in_progress"] is True

    def test_delete_pushed_as_not_found(self, client, token, make_request, user):
        row = make_request()
        with client.websocket_connect(f"/api/realtime/requests/{row['id']}?token={token}") as ws:
            ws.receive_json()
            data_store.delete_request(user.id, row["id"])
            assert ws.receive_json()["data"] == {
                "request": None,
                "not_found": True,
                "error": "Request not found",
            }

    def test_other_users_request(self, client, other_headers, make_request):
        row = make_request()
        other_token = other_headers["Authorization"].removeprefix("Bearer ")
        with client.websocket_connect(f"/api/realtime/requests/{row['id']}?token={other_token}") as ws:
            assert ws.receive_json()["data"]["not_found"] is True
