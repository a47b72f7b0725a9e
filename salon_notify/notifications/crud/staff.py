from typing import Optional

from sqlalchemy import and_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon_notify.core.database import db_operation
from salon_notify.notifications.models.staff import Staff


@db_operation
async def get_active_staff(
    session: AsyncSession, staff_id: str, tenant_id: str
) -> Optional[Staff]:
    """Get an active staff member scoped to a tenant"""
    result = await session.execute(
        select(Staff).where(
            and_(
                Staff.id == staff_id,
                Staff.tenant_id == tenant_id,
                Staff.is_active.is_(True),
            )
        )
    )
    return result.scalar_one_or_none()
