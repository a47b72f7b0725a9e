"""
Integration tests for the /ws/notifications WebSocket endpoint.

Uses Starlette's synchronous TestClient without running the lifespan; the hub
is wired with the real WebSocket transport and in-memory persistence.
"""

import pytest
from fastapi.testclient import TestClient

from salon_notify.core.dependencies import get_notification_hub
from salon_notify.main import app
from salon_notify.notifications.schemas.notifications import (
    NotificationData,
    NotificationPriority,
    NotificationType,
)
from salon_notify.notifications.services.notification_service import NotificationHub
from salon_notify.notifications.services.transport import WebSocketTransport

WS_PATH = "/ws/notifications"


@pytest.fixture
def socket_hub(gateway, staff_directory, push_sender, clock) -> NotificationHub:
    return NotificationHub(
        transport=WebSocketTransport(),
        gateway=gateway,
        staff_directory=staff_directory,
        push_sender=push_sender,
        clock=clock,
    )


@pytest.fixture
def ws_client(socket_hub):
    app.dependency_overrides[get_notification_hub] = lambda: socket_hub
    yield TestClient(app)
    app.dependency_overrides.clear()


def _store(gateway, clock, notification_id, staff_id=None, tenant_id="t1"):
    gateway.notifications[notification_id] = NotificationData(
        id=notification_id,
        type=NotificationType.NEW_MESSAGE,
        title="Stored",
        message="waiting",
        tenant_id=tenant_id,
        staff_id=staff_id,
        priority=NotificationPriority.HIGH,
        timestamp=clock(),
    )


@pytest.mark.integration
def test_join_room(ws_client, socket_hub):
    with ws_client.websocket_connect(WS_PATH) as websocket:
        websocket.send_json({"event": "join_room", "data": {"tenantId": "t1", "staffId": "s1"}})
        frame = websocket.receive_json()

        assert frame["event"] == "room_joined"
        assert frame["data"]["roomName"] == "tenant_t1"
        assert frame["data"]["staffId"] == "s1"
        assert socket_hub.registry.stats()["staff_connections"] == {"s1": 1}

    assert len(socket_hub.registry) == 0
    assert len(socket_hub.transport) == 0


@pytest.mark.integration
def test_join_room_delivers_unread_catchup(ws_client, gateway, clock):
    _store(gateway, clock, "notif_1_aaaaaaaaa", staff_id="s1")
    _store(gateway, clock, "notif_2_bbbbbbbbb", staff_id="s2")

    with ws_client.websocket_connect(WS_PATH) as websocket:
        websocket.send_json({"event": "join_room", "data": {"tenantId": "t1", "staffId": "s1"}})
        joined = websocket.receive_json()
        catchup = websocket.receive_json()

    assert joined["event"] == "room_joined"
    assert catchup["event"] == "unread_notifications"
    assert [n["id"] for n in catchup["data"]] == ["notif_1_aaaaaaaaa"]
    assert catchup["data"][0]["priority"] == "HIGH"


@pytest.mark.integration
def test_join_room_with_invalid_staff(ws_client, socket_hub):
    with ws_client.websocket_connect(WS_PATH) as websocket:
        websocket.send_json({"event": "join_room", "data": {"tenantId": "t1", "staffId": "ghost"}})
        frame = websocket.receive_json()

        assert frame == {
            "event": "error",
            "data": {"message": "Failed to join room", "error": "Invalid staff ID"},
        }
        assert len(socket_hub.registry) == 0


@pytest.mark.integration
def test_join_room_without_tenant(ws_client):
    with ws_client.websocket_connect(WS_PATH) as websocket:
        websocket.send_json({"event": "join_room", "data": {}})
        frame = websocket.receive_json()

    assert frame["event"] == "error"
    assert frame["data"]["message"] == "Failed to join room"


@pytest.mark.integration
def test_ping_refreshes_activity(ws_client, socket_hub, clock):
    with ws_client.websocket_connect(WS_PATH) as websocket:
        websocket.send_json({"event": "join_room", "data": {"tenantId": "t1"}})
        websocket.receive_json()
        later = clock.advance(120)

        websocket.send_json({"event": "ping"})
        frame = websocket.receive_json()

        assert frame == {"event": "pong", "data": None}
        [connection] = socket_hub.registry.snapshot()
        assert connection.last_activity_at == later


@pytest.mark.integration
def test_mark_notification_read(ws_client, gateway, clock):
    _store(gateway, clock, "notif_3_ccccccccc")

    with ws_client.websocket_connect(WS_PATH) as websocket:
        websocket.send_json({"event": "mark_notification_read", "data": "notif_3_ccccccccc"})
        frame = websocket.receive_json()

    assert frame == {
        "event": "notification_marked_read",
        "data": {"notificationId": "notif_3_ccccccccc"},
    }
    assert gateway.notifications["notif_3_ccccccccc"].is_read is True


@pytest.mark.integration
def test_mark_missing_notification_read(ws_client):
    with ws_client.websocket_connect(WS_PATH) as websocket:
        websocket.send_json({"event": "mark_notification_read", "data": "nonexistent-id"})
        frame = websocket.receive_json()

    assert frame["event"] == "error"
    assert frame["data"]["message"] == "Failed to mark notification as read"


@pytest.mark.integration
def test_joined_connection_cannot_read_other_tenant(ws_client, gateway, clock):
    _store(gateway, clock, "notif_4_ddddddddd", tenant_id="t2")

    with ws_client.websocket_connect(WS_PATH) as websocket:
        websocket.send_json({"event": "join_room", "data": {"tenantId": "t1"}})
        websocket.receive_json()
        websocket.send_json({"event": "mark_notification_read", "data": "notif_4_ddddddddd"})
        frame = websocket.receive_json()

    assert frame["event"] == "error"
    assert gateway.notifications["notif_4_ddddddddd"].is_read is False


@pytest.mark.integration
@pytest.mark.parametrize(
    "raw, message",
    [
        ("not json", "Malformed frame"),
        ("[1, 2]", "Malformed frame"),
        ('{"event": "dance"}', "Unknown event"),
    ],
)
def test_bad_frames_are_answered_with_error(ws_client, raw, message):
    with ws_client.websocket_connect(WS_PATH) as websocket:
        websocket.send_text(raw)
        frame = websocket.receive_json()

        assert frame["event"] == "error"
        assert frame["data"]["message"] == message

        # The connection stays usable
        websocket.send_json({"event": "ping"})
        assert websocket.receive_json()["event"] == "pong"
