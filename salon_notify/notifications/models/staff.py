from sqlalchemy import Column, String, DateTime, Boolean, Index
from sqlalchemy.sql import func
from salon_notify.core.database import Base


class Staff(Base):
    """Salon staff member, only consulted to validate room joins"""

    __tablename__ = "staff"

    id = Column(String(64), primary_key=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    role = Column(String(16), nullable=False, default="STAFF")
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (Index("ix_staff_tenant_active", "tenant_id", "is_active"),)
