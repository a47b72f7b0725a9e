from salon_notify.core.database import Base
from .notifications import Notification
from .staff import Staff

__all__ = [
    "Base",
    "Notification",
    "Staff",
]
