"""
Delivery of workflow side effects.

Some steps require an action outside the system (the Overstay Appeal
submission email, lodging a section 8 appeal at a VFS centre). The workflow
engine only names the action; a Notifier hands it to whoever performs it.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from caseflow.config import settings
from caseflow.legal.models import LegalCase, utcnow

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """Side-effect request could not be delivered."""


class Notifier(ABC):
    """Hands required workflow actions to an external collaborator."""

    @abstractmethod
    async def notify(self, action: str, case: LegalCase) -> None:
        """
        Deliver a required action for a case.

        Raises:
            NotificationError: If delivery failed
        """
        pass

    async def close(self) -> None:
        """Clean up any resources."""
        pass


class LoggingNotifier(Notifier):
    """Default notifier: records the request in the application log."""

    async def notify(self, action: str, case: LegalCase) -> None:
        logger.info(
            f"Action required for case {case.case_reference}: {action} "
            f"(step {case.current_step}: {case.current_step_name})"
        )


class WebhookNotifier(Notifier):
    """Posts required actions as JSON to a webhook."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self._client = client or httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            timeout=timeout,
        )

    @staticmethod
    def build_payload(action: str, case: LegalCase) -> dict[str, Any]:
        return {
            "action": action,
            "requested_at": utcnow().isoformat(),
            "case_id": case.case_id,
            "case_reference": case.case_reference,
            "case_type": case.case_type.value,
            "case_title": case.case_title,
            "current_step": case.current_step,
            "current_step_name": case.current_step_name,
            "client_name": case.client_name,
            "client_email": case.client_email,
        }

    async def notify(self, action: str, case: LegalCase) -> None:
        try:
            response = await self._client.post(self.url, json=self.build_payload(action, case))
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NotificationError(
                f"Webhook rejected {action} for case {case.case_reference}: "
                f"HTTP {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise NotificationError(
                f"Webhook request failed for {action} on case {case.case_reference}: {e}"
            ) from e

        logger.debug(f"Delivered {action} for case {case.case_reference} to {self.url}")

    async def close(self) -> None:
        await self._client.aclose()


def build_notifier() -> Notifier:
    """Create the notifier configured in settings."""
    if settings.notification_webhook_url:
        return WebhookNotifier(
            settings.notification_webhook_url,
            timeout=settings.notification_timeout_seconds,
        )
    return LoggingNotifier()


async def dispatch_required_action(
    notifier: Notifier,
    action: Optional[str],
    case: LegalCase,
) -> bool:
    """
    Deliver a required action without affecting the transition.

    The case has already been persisted when this runs, so delivery failures
    are logged and reported, never raised.

    Returns:
        True if delivered (or nothing to deliver), False on failure
    """
    if not action:
        return True

    try:
        await notifier.notify(action, case)
    except NotificationError as e:
        logger.warning(f"Failed to deliver {action} for case {case.case_reference}: {e}")
        return False
    return True
