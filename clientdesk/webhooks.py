"""
Webhook notification for store change events.

Handles sending webhook notifications with retry logic and error handling.
A WebhookNotifier is subscribed to the store registry and posts every
change it sees.
"""
import json
import logging
import time
from typing import Dict, Any, Optional, Callable
from datetime import datetime
import hmac
import hashlib

import httpx

from clientdesk.storage.notifications import ChangeAction
from clientdesk.timeutils import format_timestamp, utcnow

logger = logging.getLogger(__name__)


def sign_payload(secret: str, payload_json: str) -> str:
    """HMAC-SHA256 hex digest of payload_json keyed by secret."""
    return hmac.new(
        secret.encode("utf-8"),
        payload_json.encode("utf-8"),
        hashlib.sha256
    ).hexdigest()


class WebhookNotifier:
    """Registry listener that POSTs change events to a single URL."""

    def __init__(
        self,
        url: str,
        secret: Optional[str] = None,
        timeout: float = 10.0,
        retry_count: int = 3,
        client_factory: Optional[Callable[[], httpx.Client]] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = utcnow
    ):
        """
        Initialize the notifier.

        Args:
            url: Target URL
            secret: Optional HMAC secret; adds an X-Webhook-Signature header
            timeout: Request timeout in seconds
            retry_count: Number of attempts per event
            client_factory: Builds the httpx.Client for each delivery
            sleep: Called with the backoff delay between attempts
            clock: Source of the event timestamp
        """
        self.url = url
        self.secret = secret
        self.timeout = timeout
        self.retry_count = max(1, retry_count)
        self._client_factory = client_factory or (lambda: httpx.Client(timeout=self.timeout))
        self._sleep = sleep
        self._clock = clock

    def __call__(self, action: ChangeAction, data: Any, store_name: str) -> None:
        self.send(store_name, action, data)

    def build_payload(self, store_name: str, action: ChangeAction, data: Any) -> Dict[str, Any]:
        action_value = action.value if isinstance(action, ChangeAction) else str(action)
        return {
            "event": f"{store_name}.{action_value}",
            "store": store_name,
            "action": action_value,
            "data": data,
            "timestamp": format_timestamp(self._clock()),
        }

    def send(self, store_name: str, action: ChangeAction, data: Any) -> bool:
        """
        Send one change event with retry logic.

        Args:
            store_name: Registry name of the store that changed
            action: Kind of change
            data: Record(s) affected by the change

        Returns:
            True if successful, False otherwise
        """
        payload = self.build_payload(store_name, action, data)
        event_type = payload["event"]
        payload_json = json.dumps(payload, ensure_ascii=False, default=str)

        headers = {
            "Content-Type": "application/json",
            "X-Webhook-Event": event_type,
            "X-Webhook-Timestamp": payload["timestamp"]
        }
        if self.secret:
            headers["X-Webhook-Signature"] = f"sha256={sign_payload(self.secret, payload_json)}"

        last_error = None
        for attempt in range(1, self.retry_count + 1):
            try:
                with self._client_factory() as client:
                    response = client.post(self.url, content=payload_json.encode("utf-8"), headers=headers)

                if response.status_code < 400:
                    logger.info(f"Webhook {event_type} delivered to {self.url} (attempt {attempt})")
                    return True
                logger.warning(
                    f"Webhook {event_type} returned status {response.status_code} "
                    f"(attempt {attempt}/{self.retry_count})"
                )
                last_error = f"HTTP {response.status_code}"

            except httpx.TimeoutException:
                logger.warning(f"Webhook {event_type} timed out (attempt {attempt}/{self.retry_count})")
                last_error = "Timeout"

            except httpx.RequestError as e:
                logger.warning(f"Webhook {event_type} request error: {str(e)} (attempt {attempt}/{self.retry_count})")
                last_error = str(e)

            # Exponential backoff: 1s, 2s, 4s... capped at 60 seconds
            if attempt < self.retry_count:
                self._sleep(min(2 ** (attempt - 1), 60))

        logger.error(f"Webhook {event_type} failed after {self.retry_count} attempts. Last error: {last_error}")
        return False
