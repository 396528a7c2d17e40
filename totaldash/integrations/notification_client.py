"""Client for the external notification service.

The billing engine never renders email. It only asks the notification service
to send template X to recipient Y with variables Z.
"""

from enum import Enum
from typing import Any, Optional

import httpx

from totaldash.core.config import Settings, settings
from totaldash.core.exceptions import NotificationError
from totaldash.core.logging import ContextualLogger, logger


class NotificationTemplate(str, Enum):
    """Templates the billing engine requests."""

    TRIAL_WELCOME = "trial_welcome"
    TRIAL_ENDING_3_DAYS = "trial_ending_3days"
    TRIAL_ENDING_1_DAY = "trial_ending_1day"
    TRIAL_ENDED = "trial_ended"
    TRIAL_CONVERTED = "trial_converted"
    SUBSCRIPTION_CANCELED = "subscription_canceled"
    PAYMENT_FAILED = "payment_failed"


class NotificationClient:
    """Posts notification requests to NOTIFICATION_SERVICE_URL."""

    def __init__(
        self,
        config: Settings = settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            config: Settings holding the service URL, token and timeout.
            transport: Optional httpx transport, e.g. ``httpx.MockTransport`` in tests.
        """
        self.url = config.NOTIFICATION_SERVICE_URL
        self.token = config.NOTIFICATION_SERVICE_TOKEN
        self.timeout = config.NOTIFICATION_TIMEOUT_SECONDS
        self.transport = transport

    async def send(
        self,
        template: NotificationTemplate,
        recipient_email: str,
        variables: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Request one notification.

        Returns:
            True when the service accepted the request, False when no service
            is configured and the request was skipped.

        Raises:
            NotificationError: If the service is unreachable or rejects the request.
        """
        template_key = NotificationTemplate(template).value
        if not self.url:
            logger.info(
                f"Notification service not configured, skipping {template_key} "
                f"for {recipient_email}"
            )
            return False

        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        body = {
            "templateKey": template_key,
            "recipientEmail": recipient_email,
            "variables": variables or {},
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.url, json=body, headers=headers)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NotificationError(
                template_key,
                f"Notification service returned {e.response.status_code}: {e.response.text}",
            ) from e
        except httpx.HTTPError as e:
            raise NotificationError(template_key, f"Notification service unreachable: {e}") from e

        return True

    async def send_best_effort(
        self,
        template: NotificationTemplate,
        recipient_email: Optional[str],
        variables: Optional[dict[str, Any]] = None,
        log: Optional[ContextualLogger] = None,
    ) -> bool:
        """Request a notification without ever failing the caller.

        Returns:
            True only when the notification was accepted.
        """
        log = log or logger
        if not recipient_email:
            log.warning(f"No recipient for {NotificationTemplate(template).value}, skipping")
            return False

        try:
            return await self.send(template, recipient_email, variables)
        except NotificationError as e:
            log.error(f"Failed to send notification: {e}")
            return False
