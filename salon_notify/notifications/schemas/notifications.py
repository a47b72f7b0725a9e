from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class NotificationType(str, Enum):
    NEW_MESSAGE = "NEW_MESSAGE"
    RESERVATION_CHANGE = "RESERVATION_CHANGE"
    URGENT_ALERT = "URGENT_ALERT"
    SYSTEM_NOTIFICATION = "SYSTEM_NOTIFICATION"


class NotificationPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class StaffRole(str, Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    STAFF = "STAFF"


class ReservationChangeType(str, Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    CANCELLED = "CANCELLED"


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input, serializes camelCase"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class NotificationBase(CamelModel):
    type: NotificationType
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1, max_length=1024)
    staff_id: Optional[str] = Field(None, max_length=64)
    customer_id: Optional[str] = Field(None, max_length=64)
    metadata: Optional[Dict[str, Any]] = None
    priority: NotificationPriority = NotificationPriority.MEDIUM

    @field_validator("staff_id", "customer_id", mode="before")
    @classmethod
    def validate_optional_ids(cls, v):
        return _blank_to_none(v)


class NotificationSendRequest(NotificationBase):
    """HTTP body for sending a notification, tenant comes from the request"""


class NotificationCreate(NotificationBase):
    tenant_id: str = Field(..., min_length=1, max_length=64)


class NotificationData(CamelModel):
    """Notification as pushed over the wire and returned by the API"""

    id: str
    type: NotificationType
    title: str
    message: str
    tenant_id: str
    staff_id: Optional[str] = None
    customer_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    priority: NotificationPriority
    timestamp: datetime
    is_read: bool = False
    read_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record) -> "NotificationData":
        return cls(
            id=record.id,
            type=record.type,
            title=record.title,
            message=record.message,
            tenant_id=record.tenant_id,
            staff_id=record.staff_id,
            customer_id=record.customer_id,
            metadata=record.metadata_json,
            priority=record.priority,
            timestamp=record.created_at,
            is_read=record.is_read,
            read_at=record.read_at,
        )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class JoinRoomPayload(CamelModel):
    tenant_id: str = Field(..., min_length=1, max_length=64)
    staff_id: Optional[str] = Field(None, max_length=64)
    role: Optional[StaffRole] = None

    @field_validator("staff_id", mode="before")
    @classmethod
    def validate_staff_id(cls, v):
        return _blank_to_none(v)


class NotificationFilter(BaseModel):
    tenant_id: str
    staff_id: Optional[str] = None
    is_read: Optional[bool] = None
    type: Optional[NotificationType] = None
    priority: Optional[NotificationPriority] = None


class MarkAllReadRequest(CamelModel):
    staff_id: Optional[str] = Field(None, max_length=64)


# === Response payloads ===

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class SentNotification(CamelModel):
    id: str


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class NotificationListData(CamelModel):
    notifications: List[NotificationData]
    pagination: Pagination


class UnreadCount(CamelModel):
    unread_count: int


class UpdatedCount(CamelModel):
    updated_count: int


class ConnectedUserRead(CamelModel):
    connection_id: str
    tenant_id: str
    staff_id: Optional[str] = None
    role: Optional[StaffRole] = None
    connected_at: datetime
    last_activity_at: datetime


class ConnectionStatus(CamelModel):
    total_connections: int
    tenant_connections: Dict[str, int]
    staff_connections: Dict[str, int]
    connected_users: List[ConnectedUserRead]


class TypeStat(CamelModel):
    type: str
    count: int


class PriorityStat(CamelModel):
    priority: str
    count: int


class DailyStat(CamelModel):
    date: str
    total: int
    read: int
    unread: int


class NotificationStats(CamelModel):
    period: str
    type_stats: List[TypeStat]
    priority_stats: List[PriorityStat]
    daily_stats: List[DailyStat]
