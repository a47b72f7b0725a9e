import logging
from typing import Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from salon_notify.core.config import (
    PUSH_RETRY_ATTEMPTS,
    PUSH_TIMEOUT_SECONDS,
    PUSH_WEBHOOK_TOKEN,
    PUSH_WEBHOOK_URL,
)
from salon_notify.core.exceptions import ExternalServiceError
from salon_notify.notifications.schemas.notifications import NotificationData

logger = logging.getLogger(__name__)


class PushSender:
    """Escalates urgent notifications to an external push webhook.

    ``send`` never raises: a missing webhook, an HTTP error or a network error
    is logged and reported as ``False``.
    """

    def __init__(
        self,
        webhook_url: Optional[str] = PUSH_WEBHOOK_URL,
        token: Optional[str] = PUSH_WEBHOOK_TOKEN,
        max_attempts: int = PUSH_RETRY_ATTEMPTS,
        timeout: float = PUSH_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        backoff_multiplier: float = 0.5,
    ) -> None:
        self.webhook_url = webhook_url
        self.token = token
        self.max_attempts = max_attempts
        self.timeout = timeout
        self._transport = transport
        self._backoff_multiplier = backoff_multiplier

    def _build_payload(self, notification: NotificationData) -> dict:
        return {
            "title": notification.title,
            "body": notification.message,
            "tenantId": notification.tenant_id,
            "staffId": notification.staff_id,
            "priority": notification.priority.value,
            "data": {
                "notificationId": notification.id,
                "type": notification.type.value,
            },
        }

    async def _post(self, client: httpx.AsyncClient, payload: dict) -> bool:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        response = await client.post(self.webhook_url, json=payload, headers=headers)
        if response.status_code >= 500:
            raise ExternalServiceError(
                "push", f"Push webhook returned {response.status_code}"
            )
        if response.status_code >= 400:
            # Client errors will not improve on retry
            logger.error(f"Push webhook rejected notification: {response.text}")
            return False
        return True

    async def send(self, notification: NotificationData) -> bool:
        if not self.webhook_url:
            logger.info(
                f"Push webhook is not configured, push for '{notification.title}' skipped",
                extra={"notification_id": notification.id},
            )
            return False

        payload = self._build_payload(notification)
        delivered = False
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                async for attempt in AsyncRetrying(
                    stop=stop_after_attempt(self.max_attempts),
                    wait=wait_exponential(multiplier=self._backoff_multiplier, max=5),
                    retry=retry_if_exception_type(
                        (httpx.TransportError, ExternalServiceError)
                    ),
                ):
                    with attempt:
                        delivered = await self._post(client, payload)
        except RetryError as e:
            logger.warning(
                f"Push notification {notification.id} failed after {self.max_attempts} attempts: "
                f"{e.last_attempt.exception()}",
                extra={"notification_id": notification.id},
            )
            return False
        except httpx.HTTPError as e:
            logger.warning(f"Error sending push notification {notification.id}: {e}")
            return False

        if delivered:
            logger.info(
                f"Push notification sent: {notification.title}",
                extra={"notification_id": notification.id},
            )
        return delivered
