from fastapi import Header
from starlette.requests import HTTPConnection

from salon_notify.core.config import DEFAULT_TENANT_ID
from salon_notify.core.exceptions import ConfigurationError, ValidationError


def get_notification_hub(connection: HTTPConnection):
    """Dependency returning the hub created in the application lifespan"""
    hub = getattr(connection.app.state, "notification_hub", None)
    if hub is None:
        raise ConfigurationError(
            "notification_hub", "Notification service is not initialized"
        )
    return hub


def get_tenant_id(x_tenant_id: str = Header(None)) -> str:
    """Tenant scope of an HTTP request, taken from the X-Tenant-ID header"""
    if x_tenant_id is None:
        return DEFAULT_TENANT_ID

    tenant_id = x_tenant_id.strip()
    if not tenant_id:
        raise ValidationError("X-Tenant-ID header cannot be empty")
    if len(tenant_id) > 64:
        raise ValidationError("X-Tenant-ID header must be 64 characters or less")
    return tenant_id
