from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from sqlalchemy import case, delete, desc, func, update
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon_notify.core.database import db_operation
from salon_notify.core.exceptions import NotFoundError, ValidationError
from salon_notify.notifications.models.notifications import Notification
from salon_notify.notifications.schemas.notifications import (
    NotificationData,
    NotificationFilter,
)


def _unread_clause(tenant_id: str, staff_id: Optional[str]):
    clauses = [Notification.tenant_id == tenant_id, Notification.is_read.is_(False)]
    if staff_id:
        clauses.append(Notification.staff_id == staff_id)
    return clauses


@db_operation
async def create_notification(
    session: AsyncSession, notification: NotificationData
) -> Notification:
    db_notification = Notification(
        id=notification.id,
        type=notification.type.value,
        title=notification.title,
        message=notification.message,
        tenant_id=notification.tenant_id,
        staff_id=notification.staff_id,
        customer_id=notification.customer_id,
        metadata_json=notification.metadata,
        priority=notification.priority.value,
        is_read=False,
        created_at=notification.timestamp,
    )
    session.add(db_notification)
    await session.commit()
    return db_notification


@db_operation
async def get_notification(
    session: AsyncSession, notification_id: str, tenant_id: Optional[str] = None
) -> Notification:
    query = select(Notification).where(Notification.id == notification_id)
    if tenant_id:
        query = query.where(Notification.tenant_id == tenant_id)

    result = await session.execute(query)
    notification = result.scalar_one_or_none()
    if not notification:
        raise NotFoundError("Notification", notification_id)
    return notification


@db_operation
async def mark_notification_as_read(
    session: AsyncSession, notification_id: str, tenant_id: Optional[str] = None
) -> Notification:
    """Mark one notification read. Already-read rows keep their first read_at."""
    notification = await get_notification(session, notification_id, tenant_id)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.now(timezone.utc)
        await session.commit()
    return notification


@db_operation
async def mark_all_as_read(
    session: AsyncSession, tenant_id: str, staff_id: Optional[str] = None
) -> int:
    query = (
        update(Notification)
        .where(*_unread_clause(tenant_id, staff_id))
        .values(is_read=True, read_at=datetime.now(timezone.utc))
    )
    result = await session.execute(query)
    await session.commit()
    return result.rowcount or 0


@db_operation
async def get_unread_count(
    session: AsyncSession, tenant_id: str, staff_id: Optional[str] = None
) -> int:
    query = select(func.count(Notification.id)).where(
        *_unread_clause(tenant_id, staff_id)
    )
    result = await session.execute(query)
    return result.scalar() or 0


@db_operation
async def get_unread_notifications(
    session: AsyncSession,
    tenant_id: str,
    staff_id: Optional[str] = None,
    limit: int = 50,
) -> List[Notification]:
    query = (
        select(Notification)
        .where(*_unread_clause(tenant_id, staff_id))
        .order_by(desc(Notification.created_at), desc(Notification.id))
        .limit(limit)
    )
    result = await session.execute(query)
    return result.scalars().all()


@db_operation
async def get_notifications_paginated(
    session: AsyncSession,
    filters: NotificationFilter,
    page: int = 1,
    page_size: int = 20,
) -> Tuple[List[Notification], int]:
    if page < 1:
        raise ValidationError("Page must be >= 1")

    if page_size <= 0 or page_size > 100:
        raise ValidationError("Limit must be between 1 and 100")

    clauses = [Notification.tenant_id == filters.tenant_id]
    if filters.staff_id:
        clauses.append(Notification.staff_id == filters.staff_id)
    if filters.is_read is not None:
        clauses.append(Notification.is_read.is_(filters.is_read))
    if filters.type:
        clauses.append(Notification.type == filters.type.value)
    if filters.priority:
        clauses.append(Notification.priority == filters.priority.value)

    query = (
        select(Notification)
        .where(*clauses)
        .order_by(desc(Notification.created_at), desc(Notification.id))
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await session.execute(query)
    notifications = result.scalars().all()

    count_result = await session.execute(
        select(func.count(Notification.id)).where(*clauses)
    )
    total = count_result.scalar() or 0

    return notifications, total


@db_operation
async def delete_notification(
    session: AsyncSession, notification_id: str, tenant_id: Optional[str] = None
) -> None:
    query = delete(Notification).where(Notification.id == notification_id)
    if tenant_id:
        query = query.where(Notification.tenant_id == tenant_id)

    result = await session.execute(query)
    if not result.rowcount:
        await session.rollback()
        raise NotFoundError("Notification", notification_id)
    await session.commit()


@db_operation
async def get_notification_stats(
    session: AsyncSession, tenant_id: str, days: int = 7
) -> dict:
    """Per-type, per-priority and per-day counts for the last ``days`` days"""
    since = datetime.now(timezone.utc) - timedelta(days=days)
    window = [Notification.tenant_id == tenant_id, Notification.created_at >= since]

    type_result = await session.execute(
        select(Notification.type, func.count(Notification.id))
        .where(*window)
        .group_by(Notification.type)
    )
    priority_result = await session.execute(
        select(Notification.priority, func.count(Notification.id))
        .where(*window)
        .group_by(Notification.priority)
    )

    day = func.date(Notification.created_at)
    daily_result = await session.execute(
        select(
            day.label("date"),
            func.count(Notification.id),
            func.sum(case((Notification.is_read.is_(True), 1), else_=0)),
        )
        .where(*window)
        .group_by(day)
        .order_by(desc(day))
    )

    return {
        "types": [(row[0], row[1]) for row in type_result.all()],
        "priorities": [(row[0], row[1]) for row in priority_result.all()],
        "daily": [
            (str(row[0]), int(row[1]), int(row[2] or 0)) for row in daily_result.all()
        ],
    }
