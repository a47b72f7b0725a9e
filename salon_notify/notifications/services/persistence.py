"""
SQL-backed collaborators of the notification hub.

``NotificationGateway`` is the hub's only way to reach the notifications table
and ``StaffDirectory`` answers staff lookups for room joins. Each call opens its
own session, retries transient connection failures with backoff and reports
any remaining database failure as ``PersistenceError``.
"""
import logging
from typing import Callable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from salon_notify.core.database import async_session, db_retry
from salon_notify.core.exceptions import PersistenceError
from salon_notify.notifications.crud import notifications as crud_notifications
from salon_notify.notifications.crud import staff as crud_staff
from salon_notify.notifications.schemas.notifications import (
    DailyStat,
    NotificationData,
    NotificationFilter,
    NotificationStats,
    PriorityStat,
    TypeStat,
)

logger = logging.getLogger(__name__)


class _SessionScoped:
    def __init__(self, session_factory: Callable = async_session) -> None:
        self._session_factory = session_factory

    @db_retry()
    async def _run(self, operation: Callable, *args, **kwargs):
        async with self._session_factory() as session:
            return await operation(session, *args, **kwargs)

    async def _execute(self, action: str, operation: Callable, *args, **kwargs):
        try:
            return await self._run(operation, *args, **kwargs)
        except SQLAlchemyError as e:
            logger.error(
                f"Persistence failure during {action}: {e}",
                extra={"action": action, "exception_type": type(e).__name__},
            )
            raise PersistenceError(
                f"Database operation '{action}' failed",
                details={"action": action},
            ) from e


class NotificationGateway(_SessionScoped):
    async def create(self, notification: NotificationData) -> None:
        await self._execute(
            "create_notification", crud_notifications.create_notification, notification
        )

    async def mark_read(
        self, notification_id: str, tenant_id: Optional[str] = None
    ) -> NotificationData:
        record = await self._execute(
            "mark_read",
            crud_notifications.mark_notification_as_read,
            notification_id,
            tenant_id,
        )
        return NotificationData.from_record(record)

    async def count_unread(self, tenant_id: str, staff_id: Optional[str] = None) -> int:
        return await self._execute(
            "count_unread", crud_notifications.get_unread_count, tenant_id, staff_id
        )

    async def list_unread(
        self, tenant_id: str, staff_id: Optional[str] = None, limit: int = 50
    ) -> List[NotificationData]:
        records = await self._execute(
            "list_unread",
            crud_notifications.get_unread_notifications,
            tenant_id,
            staff_id,
            limit,
        )
        return [NotificationData.from_record(record) for record in records]

    async def list_paged(
        self, filters: NotificationFilter, page: int, page_size: int
    ) -> Tuple[List[NotificationData], int]:
        records, total = await self._execute(
            "list_paged",
            crud_notifications.get_notifications_paginated,
            filters,
            page,
            page_size,
        )
        return [NotificationData.from_record(record) for record in records], total

    async def mark_all_read(self, tenant_id: str, staff_id: Optional[str] = None) -> int:
        return await self._execute(
            "mark_all_read", crud_notifications.mark_all_as_read, tenant_id, staff_id
        )

    async def delete(self, notification_id: str, tenant_id: Optional[str] = None) -> None:
        await self._execute(
            "delete_notification",
            crud_notifications.delete_notification,
            notification_id,
            tenant_id,
        )

    async def stats(self, tenant_id: str, days: int) -> NotificationStats:
        raw = await self._execute(
            "notification_stats",
            crud_notifications.get_notification_stats,
            tenant_id,
            days,
        )
        return NotificationStats(
            period=f"{days} days",
            type_stats=[TypeStat(type=t, count=c) for t, c in raw["types"]],
            priority_stats=[
                PriorityStat(priority=p, count=c) for p, c in raw["priorities"]
            ],
            daily_stats=[
                DailyStat(date=d, total=total, read=read, unread=total - read)
                for d, total, read in raw["daily"]
            ],
        )


class StaffDirectory(_SessionScoped):
    async def is_active_staff(self, tenant_id: str, staff_id: str) -> bool:
        staff = await self._execute(
            "get_active_staff", crud_staff.get_active_staff, staff_id, tenant_id
        )
        return staff is not None
