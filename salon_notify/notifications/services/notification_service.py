"""
Notification Service - real-time delivery of salon notifications to staff.

The hub owns the connection registry and ties together the transport, the
persistence gateway, the staff directory and the push sender. Every
notification is persisted before any live delivery is attempted, so a
notification that nobody receives live is still available through the
catch-up push on the next join or through the history API.
"""
import logging
import time
import uuid
from typing import Any, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from salon_notify.core.config import UNREAD_CATCHUP_LIMIT
from salon_notify.core.exceptions import PersistenceError, ValidationError
from salon_notify.core.logging_utils import log_business_event
from salon_notify.notifications.schemas.notifications import (
    ConnectedUserRead,
    ConnectionStatus,
    JoinRoomPayload,
    NotificationCreate,
    NotificationData,
    NotificationFilter,
    NotificationPriority,
    NotificationStats,
    NotificationType,
    ReservationChangeType,
)
from salon_notify.notifications.services.connection_registry import (
    Clock,
    Connection,
    ConnectionRegistry,
    tenant_room,
    utcnow,
)

logger = logging.getLogger(__name__)

MESSAGE_PREVIEW_LENGTH = 50

RESERVATION_TEXTS = {
    ReservationChangeType.CREATED: ("New reservation", "A reservation was created"),
    ReservationChangeType.UPDATED: ("Reservation updated", "A reservation was updated"),
    ReservationChangeType.CANCELLED: (
        "Reservation cancelled",
        "A reservation was cancelled",
    ),
}


def generate_notification_id() -> str:
    """Time-based id with a random suffix: ``notif_<epoch ms>_<9 hex chars>``"""
    return f"notif_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _validation_error(message: str, exc: PydanticValidationError) -> ValidationError:
    fields = [
        {
            "field": " -> ".join(str(loc) for loc in error.get("loc", [])),
            "message": error.get("msg", "Validation error"),
            "type": error.get("type", "value_error"),
        }
        for error in exc.errors()
    ]
    summary = "; ".join(f"{item['field']}: {item['message']}" for item in fields)
    return ValidationError(f"{message}: {summary}", details={"fields": fields})


class NotificationHub:
    def __init__(
        self,
        transport,
        gateway,
        staff_directory,
        push_sender,
        registry: Optional[ConnectionRegistry] = None,
        clock: Clock = utcnow,
        catchup_limit: int = UNREAD_CATCHUP_LIMIT,
    ) -> None:
        self.transport = transport
        self.gateway = gateway
        self.staff_directory = staff_directory
        self.push_sender = push_sender
        self.clock = clock
        self.registry = registry or ConnectionRegistry(clock=clock)
        self.catchup_limit = catchup_limit

    # === Connection lifecycle ===

    async def join(
        self, connection_id: str, payload: Union[JoinRoomPayload, Mapping[str, Any]]
    ) -> Connection:
        """Validate a ``join_room`` request, register the connection and catch it up"""
        if not isinstance(payload, JoinRoomPayload):
            try:
                payload = JoinRoomPayload.model_validate(payload or {})
            except PydanticValidationError as e:
                raise _validation_error("Invalid join request", e) from e

        if payload.staff_id:
            is_active = await self.staff_directory.is_active_staff(
                payload.tenant_id, payload.staff_id
            )
            if not is_active:
                raise ValidationError(
                    "Invalid staff ID",
                    details={"tenant_id": payload.tenant_id, "staff_id": payload.staff_id},
                )

        connection = self.registry.register(
            connection_id,
            payload.tenant_id,
            staff_id=payload.staff_id,
            role=payload.role.value if payload.role else None,
        )
        room_name = tenant_room(payload.tenant_id)

        await self.transport.emit(
            connection_id,
            "room_joined",
            {
                "roomName": room_name,
                "tenantId": payload.tenant_id,
                "staffId": payload.staff_id,
                "timestamp": self.clock().isoformat(),
            },
        )

        # Anonymous connections get live tenant broadcasts only, no backlog
        if connection.staff_id:
            await self._send_unread(connection)

        logger.info(
            f"Connection {connection_id} joined room {room_name} (staff: {payload.staff_id})",
            extra={
                "connection_id": connection_id,
                "tenant_id": payload.tenant_id,
                "staff_id": payload.staff_id,
            },
        )
        return connection

    async def _send_unread(self, connection: Connection) -> None:
        try:
            unread = await self.gateway.list_unread(
                connection.tenant_id, connection.staff_id, self.catchup_limit
            )
        except PersistenceError as e:
            logger.warning(
                f"Unread catch-up skipped for {connection.connection_id}: {e.message}",
                extra={"connection_id": connection.connection_id},
            )
            return

        if unread:
            await self.transport.emit(
                connection.connection_id,
                "unread_notifications",
                [notification.to_wire() for notification in unread],
            )

    def record_activity(self, connection_id: str) -> bool:
        return self.registry.record_activity(connection_id)

    def disconnect(self, connection_id: str, reason: str) -> Optional[Connection]:
        """Forget a connection. Safe to call for unknown or already-removed ids."""
        self.transport.detach(connection_id)
        return self.registry.leave(connection_id, reason)

    # === Dispatch ===

    async def send_notification(
        self, notification: Union[NotificationCreate, Mapping[str, Any]]
    ) -> NotificationData:
        if not isinstance(notification, NotificationCreate):
            try:
                notification = NotificationCreate.model_validate(notification or {})
            except PydanticValidationError as e:
                raise _validation_error("Invalid notification", e) from e

        data = NotificationData(
            id=generate_notification_id(),
            type=notification.type,
            title=notification.title,
            message=notification.message,
            tenant_id=notification.tenant_id,
            staff_id=notification.staff_id,
            customer_id=notification.customer_id,
            metadata=notification.metadata,
            priority=notification.priority,
            timestamp=self.clock(),
            is_read=False,
        )

        try:
            await self.gateway.create(data)
        except PersistenceError:
            logger.error(
                f"Failed to persist {data.type.value} notification for tenant {data.tenant_id}",
                extra={
                    "notification_id": data.id,
                    "tenant_id": data.tenant_id,
                    "notification_type": data.type.value,
                },
            )
            raise

        delivered = await self._deliver(data)

        if data.priority == NotificationPriority.URGENT:
            await self._escalate(data)

        log_business_event(
            "notification_sent",
            "notification",
            data.id,
            {
                "tenant_id": data.tenant_id,
                "staff_id": data.staff_id,
                "type": data.type.value,
                "priority": data.priority.value,
                "delivered_to": delivered,
            },
        )
        return data

    async def _deliver(self, data: NotificationData) -> int:
        # Resolved after persistence; connections that left meanwhile are skipped
        if data.staff_id:
            targets = set()
            for connection_id in self.registry.connections_for_staff(data.staff_id):
                connection = self.registry.get(connection_id)
                if connection is not None and connection.tenant_id == data.tenant_id:
                    targets.add(connection_id)
            if not targets:
                logger.info(
                    f"Staff {data.staff_id} is offline, notification {data.id} saved to database"
                )
                return 0
        else:
            targets = self.registry.connections_for_tenant(data.tenant_id)

        payload = data.to_wire()
        delivered = 0
        for connection_id in sorted(targets):
            if await self.transport.emit(connection_id, "new_notification", payload):
                delivered += 1
        return delivered

    async def _escalate(self, data: NotificationData) -> None:
        try:
            await self.push_sender.send(data)
        except Exception:
            logger.exception(f"Push escalation failed for notification {data.id}")

    # === Business event helpers ===

    async def notify_new_message(
        self,
        tenant_id: str,
        thread_id: str,
        content: str,
        customer_id: Optional[str] = None,
    ) -> NotificationData:
        preview = content
        if len(content) > MESSAGE_PREVIEW_LENGTH:
            preview = content[:MESSAGE_PREVIEW_LENGTH] + "..."

        return await self.send_notification(
            {
                "type": NotificationType.NEW_MESSAGE,
                "title": "New message",
                "message": preview,
                "tenant_id": tenant_id,
                "customer_id": customer_id,
                "metadata": {"threadId": thread_id},
                "priority": NotificationPriority.HIGH,
            }
        )

    async def notify_reservation_change(
        self,
        tenant_id: str,
        reservation_id: str,
        change_type: Union[ReservationChangeType, str],
        customer_id: Optional[str] = None,
        staff_id: Optional[str] = None,
    ) -> NotificationData:
        try:
            change_type = ReservationChangeType(change_type)
        except ValueError as e:
            raise ValidationError(
                f"Unknown reservation change type: {change_type}",
                details={"change_type": str(change_type)},
            ) from e

        title, message = RESERVATION_TEXTS[change_type]
        priority = (
            NotificationPriority.HIGH
            if change_type == ReservationChangeType.CANCELLED
            else NotificationPriority.MEDIUM
        )

        return await self.send_notification(
            {
                "type": NotificationType.RESERVATION_CHANGE,
                "title": title,
                "message": message,
                "tenant_id": tenant_id,
                "staff_id": staff_id,
                "customer_id": customer_id,
                "metadata": {
                    "reservationId": reservation_id,
                    "changeType": change_type.value,
                },
                "priority": priority,
            }
        )

    async def notify_system_alert(
        self,
        tenant_id: str,
        title: str,
        message: str,
        priority: Union[NotificationPriority, str] = NotificationPriority.MEDIUM,
    ) -> NotificationData:
        return await self.send_notification(
            {
                "type": NotificationType.SYSTEM_NOTIFICATION,
                "title": title,
                "message": message,
                "tenant_id": tenant_id,
                "priority": priority,
            }
        )

    # === Read state and history ===

    async def mark_read(
        self, notification_id: str, tenant_id: Optional[str] = None
    ) -> NotificationData:
        return await self.gateway.mark_read(notification_id, tenant_id)

    async def mark_all_read(self, tenant_id: str, staff_id: Optional[str] = None) -> int:
        updated = await self.gateway.mark_all_read(tenant_id, staff_id)
        logger.info(
            f"Marked {updated} notifications read for tenant {tenant_id} (staff: {staff_id})"
        )
        return updated

    async def delete_notification(
        self, notification_id: str, tenant_id: Optional[str] = None
    ) -> None:
        await self.gateway.delete(notification_id, tenant_id)
        log_business_event(
            "notification_deleted", "notification", notification_id, {"tenant_id": tenant_id}
        )

    async def count_unread(self, tenant_id: str, staff_id: Optional[str] = None) -> int:
        return await self.gateway.count_unread(tenant_id, staff_id)

    async def list_notifications(
        self, filters: NotificationFilter, page: int = 1, page_size: int = 20
    ):
        return await self.gateway.list_paged(filters, page, page_size)

    async def notification_stats(self, tenant_id: str, days: int = 7) -> NotificationStats:
        return await self.gateway.stats(tenant_id, days)

    # === Administration ===

    def connected_users(self) -> List[Connection]:
        return self.registry.snapshot()

    def connection_status(self) -> ConnectionStatus:
        stats = self.registry.stats()
        return ConnectionStatus(
            total_connections=stats["total_connections"],
            tenant_connections=stats["tenant_connections"],
            staff_connections=stats["staff_connections"],
            connected_users=[
                ConnectedUserRead(
                    connection_id=connection.connection_id,
                    tenant_id=connection.tenant_id,
                    staff_id=connection.staff_id,
                    role=connection.role,
                    connected_at=connection.connected_at,
                    last_activity_at=connection.last_activity_at,
                )
                for connection in self.registry.snapshot()
            ],
        )
