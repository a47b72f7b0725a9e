import asyncio
import logging
from contextlib import suppress
from datetime import datetime, timedelta
from typing import List, Optional

from salon_notify.core.config import (
    NOTIFICATION_INACTIVITY_TIMEOUT_SECONDS,
    NOTIFICATION_SWEEP_INTERVAL_SECONDS,
)
from salon_notify.core.logging_utils import log_business_event
from salon_notify.notifications.services.connection_registry import (
    Clock,
    ConnectionRegistry,
    utcnow,
)

logger = logging.getLogger(__name__)

INACTIVE_REASON = "inactive"


class LivenessReaper:
    """Periodically evicts connections that stopped sending pings.

    A connection is stale once ``now - last_activity_at`` exceeds the timeout,
    so detection latency is bounded by one sweep interval.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        transport,
        interval: float = NOTIFICATION_SWEEP_INTERVAL_SECONDS,
        timeout: float = NOTIFICATION_INACTIVITY_TIMEOUT_SECONDS,
        clock: Clock = utcnow,
    ) -> None:
        self.registry = registry
        self.transport = transport
        self.interval = interval
        self.timeout = timedelta(seconds=timeout)
        self.clock = clock
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep(self, now: Optional[datetime] = None) -> List[str]:
        now = now or self.clock()
        candidates = [
            connection.connection_id
            for connection in self.registry.snapshot()
            if self._is_stale(connection, now)
        ]

        evicted = []
        for connection_id in candidates:
            # Re-read: a ping may have landed while an earlier disconnect awaited
            connection = self.registry.get(connection_id)
            if connection is None or not self._is_stale(connection, now):
                continue

            logger.info(f"Cleaning up inactive connection: {connection_id}")
            self.registry.leave(connection_id, INACTIVE_REASON)
            evicted.append(connection_id)
            await self.transport.disconnect(connection_id, INACTIVE_REASON)

        if evicted:
            log_business_event(
                "connections_reaped",
                "connection",
                ",".join(evicted),
                {"count": len(evicted), "remaining": len(self.registry)},
            )
        return evicted

    def _is_stale(self, connection, now: datetime) -> bool:
        return now - connection.last_activity_at > self.timeout

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Liveness sweep failed")

    def start(self) -> asyncio.Task:
        if not self.running:
            self._task = asyncio.create_task(self._run(), name="liveness-reaper")
            logger.info(
                f"Liveness reaper started (interval={self.interval}s, "
                f"timeout={self.timeout.total_seconds()}s)"
            )
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Liveness reaper stopped")
