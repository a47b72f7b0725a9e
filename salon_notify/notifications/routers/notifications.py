import math
from typing import Optional

from fastapi import APIRouter, Body, Depends, Path, Query, Request, status

from salon_notify.core.dependencies import get_notification_hub, get_tenant_id
from salon_notify.core.limits import limiter
from salon_notify.notifications.schemas.notifications import (
    ApiResponse,
    ConnectionStatus,
    MarkAllReadRequest,
    NotificationCreate,
    NotificationFilter,
    NotificationListData,
    NotificationPriority,
    NotificationSendRequest,
    NotificationStats,
    NotificationType,
    Pagination,
    SentNotification,
    UnreadCount,
    UpdatedCount,
)
from salon_notify.notifications.services.notification_service import NotificationHub

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.post(
    "/send",
    response_model=ApiResponse[SentNotification],
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("120/minute")
async def send_notification(
    request: Request,
    payload: NotificationSendRequest,
    tenant_id: str = Depends(get_tenant_id),
    hub: NotificationHub = Depends(get_notification_hub),
):
    """
    Persist a notification and push it to the connected staff of the tenant.

    With ``staffId`` only that staff member's connections receive it; without it
    every connection of the tenant does. URGENT notifications are also escalated
    to the push service.
    """
    notification = await hub.send_notification(
        NotificationCreate(tenant_id=tenant_id, **payload.model_dump())
    )
    return ApiResponse(
        message="Notification sent successfully",
        data=SentNotification(id=notification.id),
    )


@router.get("", response_model=ApiResponse[NotificationListData])
@limiter.limit("300/minute")
async def list_notifications(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    staff_id: Optional[str] = Query(None, alias="staffId", max_length=64),
    is_read: Optional[bool] = Query(None, alias="isRead"),
    type: Optional[NotificationType] = Query(None),
    priority: Optional[NotificationPriority] = Query(None),
    tenant_id: str = Depends(get_tenant_id),
    hub: NotificationHub = Depends(get_notification_hub),
):
    """Notification history of the tenant, newest first"""
    filters = NotificationFilter(
        tenant_id=tenant_id,
        staff_id=staff_id,
        is_read=is_read,
        type=type,
        priority=priority,
    )
    notifications, total = await hub.list_notifications(filters, page, limit)
    total_pages = math.ceil(total / limit) if total else 0

    return ApiResponse(
        data=NotificationListData(
            notifications=notifications,
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                total_pages=total_pages,
                has_next=page < total_pages,
                has_prev=page > 1,
            ),
        )
    )


@router.get("/unread-count", response_model=ApiResponse[UnreadCount])
@limiter.limit("300/minute")
async def get_unread_count(
    request: Request,
    staff_id: Optional[str] = Query(None, alias="staffId", max_length=64),
    tenant_id: str = Depends(get_tenant_id),
    hub: NotificationHub = Depends(get_notification_hub),
):
    unread = await hub.count_unread(tenant_id, staff_id)
    return ApiResponse(data=UnreadCount(unread_count=unread))


@router.patch("/read-all", response_model=ApiResponse[UpdatedCount])
@limiter.limit("60/minute")
async def mark_all_as_read(
    request: Request,
    payload: Optional[MarkAllReadRequest] = Body(None),
    tenant_id: str = Depends(get_tenant_id),
    hub: NotificationHub = Depends(get_notification_hub),
):
    staff_id = payload.staff_id if payload else None
    updated = await hub.mark_all_read(tenant_id, staff_id)
    return ApiResponse(
        message=f"{updated} notifications marked as read",
        data=UpdatedCount(updated_count=updated),
    )


@router.patch("/{notification_id}/read", response_model=ApiResponse)
@limiter.limit("300/minute")
async def mark_as_read(
    request: Request,
    notification_id: str = Path(..., min_length=1, max_length=64),
    tenant_id: str = Depends(get_tenant_id),
    hub: NotificationHub = Depends(get_notification_hub),
):
    await hub.mark_read(notification_id, tenant_id)
    return ApiResponse(message="Notification marked as read")


@router.delete("/{notification_id}", response_model=ApiResponse)
@limiter.limit("60/minute")
async def delete_notification(
    request: Request,
    notification_id: str = Path(..., min_length=1, max_length=64),
    tenant_id: str = Depends(get_tenant_id),
    hub: NotificationHub = Depends(get_notification_hub),
):
    await hub.delete_notification(notification_id, tenant_id)
    return ApiResponse(message="Notification deleted successfully")


@router.get("/connections", response_model=ApiResponse[ConnectionStatus])
@limiter.limit("60/minute")
async def get_connection_status(
    request: Request,
    hub: NotificationHub = Depends(get_notification_hub),
):
    """Live WebSocket connections across all tenants"""
    return ApiResponse(data=hub.connection_status())


@router.get("/stats", response_model=ApiResponse[NotificationStats])
@limiter.limit("30/minute")
async def get_notification_stats(
    request: Request,
    days: int = Query(7, ge=1, le=365, description="Period in days"),
    tenant_id: str = Depends(get_tenant_id),
    hub: NotificationHub = Depends(get_notification_hub),
):
    """Counts by type, priority and day for the last ``days`` days"""
    stats = await hub.notification_stats(tenant_id, days)
    return ApiResponse(data=stats)
