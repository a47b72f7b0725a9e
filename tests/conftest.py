"""
Pytest configuration and fixtures for the notification service tests.

This module provides:
- A controllable clock shared by the hub, the registry and the reaper
- In-memory collaborators (transport, gateway, staff directory, push sender)
- A fully wired ``NotificationHub``
- An async HTTP client bound to the FastAPI app with the hub injected
"""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from salon_notify.core.dependencies import get_notification_hub
from salon_notify.core.limits import limiter
from salon_notify.core.logging_utils import error_tracker
from salon_notify.main import app
from salon_notify.notifications.services.liveness_reaper import LivenessReaper
from salon_notify.notifications.services.notification_service import NotificationHub
from tests.fakes import (
    FakeClock,
    FakePushSender,
    FakeStaffDirectory,
    FakeTransport,
    InMemoryNotificationGateway,
)

TENANT = "t1"
OTHER_TENANT = "t2"


@pytest.fixture(autouse=True)
def reset_process_state():
    """Rate limit counters and tracked errors are process-wide"""
    limiter.reset()
    error_tracker.reset_stats()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def gateway(clock) -> InMemoryNotificationGateway:
    return InMemoryNotificationGateway(clock=clock)


@pytest.fixture
def staff_directory() -> FakeStaffDirectory:
    return FakeStaffDirectory(
        active={(TENANT, "s1"), (TENANT, "s2"), (OTHER_TENANT, "s3")}
    )


@pytest.fixture
def push_sender() -> FakePushSender:
    return FakePushSender()


@pytest.fixture
def hub(transport, gateway, staff_directory, push_sender, clock) -> NotificationHub:
    return NotificationHub(
        transport=transport,
        gateway=gateway,
        staff_directory=staff_directory,
        push_sender=push_sender,
        clock=clock,
    )


@pytest.fixture
def reaper(hub, clock) -> LivenessReaper:
    return LivenessReaper(
        hub.registry, hub.transport, interval=30, timeout=300, clock=clock
    )


@pytest.fixture
async def client(hub) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client for the API endpoints.

    The lifespan is not run, so no database is touched: the hub dependency is
    overridden with the in-memory hub.

    Usage:
        async def test_endpoint(client: AsyncClient):
            response = await client.get("/api/v1/notifications")
            assert response.status_code == 200
    """
    app.dependency_overrides[get_notification_hub] = lambda: hub

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def tenant_headers() -> dict:
    return {"X-Tenant-ID": TENANT}
