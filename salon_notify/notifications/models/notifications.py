from sqlalchemy import Column, String, DateTime, Boolean, JSON, Index
from sqlalchemy.sql import func
from salon_notify.core.database import Base


class Notification(Base):
    __tablename__ = "notifications"

    # Assigned by the dispatcher, not by the database
    id = Column(String(64), primary_key=True)
    type = Column(String(32), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(String(1024), nullable=False)

    tenant_id = Column(String(64), nullable=False, index=True)
    staff_id = Column(String(64), nullable=True, index=True)
    customer_id = Column(String(64), nullable=True)

    metadata_json = Column(JSON, nullable=True)
    priority = Column(String(16), nullable=False, default="MEDIUM")

    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )

    __table_args__ = (
        Index("ix_notifications_tenant_read", "tenant_id", "is_read"),
        Index("ix_notifications_staff_read", "staff_id", "is_read"),
    )
