"""WebSocket endpoints streaming live request listing and detail state."""

from __future__ import annotations

import asyncio
import contextlib
import json
from typing import Any

import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder

from impact_portal.errors import AuthError
from impact_portal.services.auth import AuthService
from impact_portal.services.request_views import RequestDetailView, RequestListView
from impact_portal.services.session import SessionContext

logger = structlog.get_logger()

router = APIRouter(prefix="/api/realtime", tags=["realtime"])

# Application-defined close code for a missing or rejected token
CLOSE_UNAUTHORIZED = 4401


def _message(event_type: str, data: Any) -> dict[str, Any]:
    return {"type": event_type, "data": jsonable_encoder(data)}


async def _stream(websocket: WebSocket, view: RequestListView | RequestDetailView) -> None:
    """Push the view's snapshot after every change until the client leaves."""
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    # Feed callbacks may run on another thread; hop back onto this loop
    view.on_change = lambda v: loop.call_soon_threadsafe(queue.put_nowait, v.snapshot())
    view.mount()

    async def pump() -> None:
        while True:
            snapshot = await queue.get()
            await websocket.send_json(_message("snapshot", snapshot))

    sender = asyncio.create_task(pump())
    try:
        await websocket.send_json(_message("snapshot", view.snapshot()))
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json(_message("error", {"message": "Invalid JSON format"}))
                continue
            if not isinstance(message, dict):
                await websocket.send_json(_message("error", {"message": "Invalid message format"}))
                continue
            if message.get("type") == "ping":
                await websocket.send_json(_message("pong", {}))
            else:
                logger.warning("unknown_websocket_message", message_type=message.get("type"))
    except WebSocketDisconnect:
        logger.info("websocket_disconnected", channel=view.channel.name if view.channel else None)
    finally:
        sender.cancel()
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await sender
        view.unmount()


async def _open_session(websocket: WebSocket, token: str) -> SessionContext | None:
    app = websocket.app
    session = SessionContext(AuthService(app.state.store, app.state.settings))
    if session.load(token) is None:
        await websocket.close(code=CLOSE_UNAUTHORIZED)
        return None
    await websocket.accept()
    return session


@router.websocket("/requests")
async def stream_request_list(websocket: WebSocket, token: str = Query(default="")) -> None:
    """Live listing of the caller's requests."""
    session = await _open_session(websocket, token)
    if session is None:
        return
    view = RequestListView(websocket.app.state.store, session)
    try:
        await _stream(websocket, view)
    except AuthError:
        await websocket.close(code=CLOSE_UNAUTHORIZED)


@router.websocket("/requests/{request_id}")
async def stream_request_detail(
    websocket: WebSocket,
    request_id: str,
    token: str = Query(default=""),
) -> None:
    """Live detail state for one request."""
    session = await _open_session(websocket, token)
    if session is None:
        return
    app = websocket.app
    view = RequestDetailView(app.state.store, session, request_id, app.state.settings.public_base_url)
    try:
        await _stream(websocket, view)
    except AuthError:
        await websocket.close(code=CLOSE_UNAUTHORIZED)
