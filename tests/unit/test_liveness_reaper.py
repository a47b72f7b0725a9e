"""
Unit tests for the liveness reaper.

Sweeps are driven manually with the shared fake clock; the background task is
only started and stopped to check its lifecycle.
"""

import asyncio
from datetime import timedelta

import pytest

from salon_notify.notifications.services.liveness_reaper import (
    INACTIVE_REASON,
    LivenessReaper,
)


@pytest.mark.unit
async def test_silent_connection_is_evicted_after_timeout(hub, reaper, transport, clock):
    """Joined at t=0, no ping, swept at t=301s with a 300s timeout."""
    await hub.join("c1", {"tenantId": "t1", "staffId": "s1"})

    clock.advance(301)
    evicted = await reaper.sweep()

    assert evicted == ["c1"]
    assert "c1" not in hub.registry
    assert hub.registry.connections_for_staff("s1") == set()
    assert transport.disconnected == [("c1", INACTIVE_REASON)]
    assert INACTIVE_REASON == "inactive"


@pytest.mark.unit
async def test_connection_within_timeout_is_kept(hub, reaper, transport, clock):
    await hub.join("c1", {"tenantId": "t1"})

    clock.advance(300)
    evicted = await reaper.sweep()

    assert evicted == []
    assert "c1" in hub.registry
    assert transport.disconnected == []


@pytest.mark.unit
async def test_ping_keeps_connection_alive(hub, reaper, clock):
    await hub.join("c1", {"tenantId": "t1"})
    await hub.join("c2", {"tenantId": "t1"})

    clock.advance(200)
    hub.record_activity("c1")
    clock.advance(200)
    evicted = await reaper.sweep()

    assert evicted == ["c2"]
    assert "c1" in hub.registry


@pytest.mark.unit
async def test_ping_during_sweep_spares_connection(hub, reaper, transport, clock):
    """c2 pings while c1 is being disconnected; only c1 is evicted."""
    await hub.join("c1", {"tenantId": "t1"})
    await hub.join("c2", {"tenantId": "t1"})
    clock.advance(301)

    async def disconnect_while_c2_pings(connection_id, reason):
        transport.disconnected.append((connection_id, reason))
        if connection_id == "c1":
            hub.record_activity("c2")
        return True

    transport.disconnect = disconnect_while_c2_pings
    evicted = await reaper.sweep()

    assert evicted == ["c1"]
    assert "c2" in hub.registry
    assert transport.disconnected == [("c1", INACTIVE_REASON)]


@pytest.mark.unit
async def test_second_sweep_does_not_evict_again(hub, reaper, transport, clock):
    await hub.join("c1", {"tenantId": "t1"})
    clock.advance(301)

    await reaper.sweep()
    evicted = await reaper.sweep()

    assert evicted == []
    assert transport.disconnected == [("c1", INACTIVE_REASON)]


@pytest.mark.unit
async def test_sweep_accepts_explicit_time(hub, reaper, clock):
    await hub.join("c1", {"tenantId": "t1"})

    assert await reaper.sweep(now=clock() + timedelta(seconds=299)) == []
    assert await reaper.sweep(now=clock() + timedelta(seconds=301)) == ["c1"]


@pytest.mark.unit
async def test_unjoined_connections_are_invisible_to_sweep(reaper, transport, clock):
    clock.advance(10_000)

    assert await reaper.sweep() == []
    assert transport.disconnected == []


@pytest.mark.unit
async def test_start_and_stop(hub, clock):
    reaper = LivenessReaper(
        hub.registry, hub.transport, interval=0.01, timeout=300, clock=clock
    )
    await hub.join("c1", {"tenantId": "t1"})
    clock.advance(301)

    reaper.start()
    assert reaper.running is True

    for _ in range(100):
        if "c1" not in hub.registry:
            break
        await asyncio.sleep(0.01)

    await reaper.stop()

    assert "c1" not in hub.registry
    assert reaper.running is False
    await reaper.stop()


@pytest.mark.unit
async def test_background_loop_survives_sweep_errors(hub, clock, monkeypatch):
    reaper = LivenessReaper(
        hub.registry, hub.transport, interval=0.01, timeout=300, clock=clock
    )
    calls = []

    async def failing_disconnect(connection_id, reason):
        calls.append(connection_id)
        raise RuntimeError("socket exploded")

    monkeypatch.setattr(hub.transport, "disconnect", failing_disconnect)
    await hub.join("c1", {"tenantId": "t1"})
    await hub.join("c2", {"tenantId": "t1"})
    clock.advance(301)

    reaper.start()
    for _ in range(100):
        if calls:
            break
        await asyncio.sleep(0.01)
    await asyncio.sleep(0.05)

    assert reaper.running is True
    await reaper.stop()
