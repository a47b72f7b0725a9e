"""
WebSocket endpoint for staff clients.

Frames are JSON objects ``{"event": <name>, "data": <payload>}`` in both
directions. Clients send ``join_room``, ``mark_notification_read`` and
``ping``; the server pushes ``room_joined``, ``unread_notifications``,
``new_notification``, ``notification_marked_read``, ``pong`` and ``error``.
"""
import json
import logging
import uuid
from typing import Any

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from salon_notify.core.dependencies import get_notification_hub
from salon_notify.core.exceptions import BaseAppException
from salon_notify.notifications.services.notification_service import NotificationHub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


async def _emit_error(hub: NotificationHub, connection_id: str, message: str, error: str):
    await hub.transport.emit(connection_id, "error", {"message": message, "error": error})


async def _handle_join_room(hub: NotificationHub, connection_id: str, data: Any):
    try:
        await hub.join(connection_id, data if isinstance(data, dict) else {})
    except BaseAppException as e:
        logger.warning(f"Join rejected for {connection_id}: {e.message}")
        await _emit_error(hub, connection_id, "Failed to join room", e.message)


async def _handle_mark_read(hub: NotificationHub, connection_id: str, data: Any):
    notification_id = data.get("notificationId") if isinstance(data, dict) else data
    if not isinstance(notification_id, str) or not notification_id.strip():
        await _emit_error(
            hub,
            connection_id,
            "Failed to mark notification as read",
            "Notification id is required",
        )
        return

    # Joined connections may only touch their own tenant's notifications
    connection = hub.registry.get(connection_id)
    tenant_id = connection.tenant_id if connection else None

    try:
        await hub.mark_read(notification_id.strip(), tenant_id)
    except BaseAppException as e:
        await _emit_error(
            hub, connection_id, "Failed to mark notification as read", e.message
        )
        return

    await hub.transport.emit(
        connection_id,
        "notification_marked_read",
        {"notificationId": notification_id.strip()},
    )


async def _handle_ping(hub: NotificationHub, connection_id: str, data: Any):
    hub.record_activity(connection_id)
    await hub.transport.emit(connection_id, "pong")


EVENT_HANDLERS = {
    "join_room": _handle_join_room,
    "mark_notification_read": _handle_mark_read,
    "ping": _handle_ping,
}


async def _dispatch(hub: NotificationHub, connection_id: str, raw: str):
    try:
        frame = json.loads(raw)
    except json.JSONDecodeError:
        await _emit_error(hub, connection_id, "Malformed frame", "Frame is not valid JSON")
        return

    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
        await _emit_error(
            hub, connection_id, "Malformed frame", "Frame must be an object with an event"
        )
        return

    event = frame["event"]
    handler = EVENT_HANDLERS.get(event)
    if handler is None:
        await _emit_error(hub, connection_id, "Unknown event", f"Unsupported event: {event}")
        return

    try:
        await handler(hub, connection_id, frame.get("data"))
    except Exception as e:
        logger.exception(f"Error handling '{event}' from {connection_id}")
        await _emit_error(hub, connection_id, f"Failed to handle {event}", str(e))


@router.websocket("/ws/notifications")
async def notifications_socket(
    websocket: WebSocket, hub: NotificationHub = Depends(get_notification_hub)
):
    await websocket.accept()
    connection_id = uuid.uuid4().hex
    hub.transport.attach(connection_id, websocket)
    logger.info(f"Client connected: {connection_id}")

    reason = "client disconnect"
    try:
        while True:
            raw = await websocket.receive_text()
            await _dispatch(hub, connection_id, raw)
    except WebSocketDisconnect:
        pass
    except Exception:
        reason = "server error"
        logger.exception(f"WebSocket loop failed for {connection_id}")
    finally:
        hub.disconnect(connection_id, reason)
