"""
HTTP webhook channel for emergency alerts.

Posts the alert payload as JSON. Delivery is attempted once.
"""

import logging
from typing import Dict

import requests

from ..core.errors import NotificationDeliveryFailure

logger = logging.getLogger(__name__)


class WebhookNotificationChannel:
    """Delivers alerts by POSTing them to a URL."""
    
    def __init__(self, url: str, timeout: float = 10.0):
        if not url or not url.strip():
            raise ValueError("url is required and cannot be empty")
        self.url = url
        self.timeout = timeout
    
    def send(self, payload: Dict[str, str]) -> None:
        """POST payload to the webhook.
        
        Raises:
            NotificationDeliveryFailure: On a network error or non-2xx reply
        """
        try:
            resp = requests.post(
                self.url,
                json=payload,
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            )
        except requests.exceptions.RequestException as e:
            raise NotificationDeliveryFailure(f"Alert webhook unreachable: {e}") from e
        
        if not 200 <= resp.status_code < 300:
            raise NotificationDeliveryFailure(
                f"Alert webhook returned HTTP {resp.status_code}: {resp.text[:200]}"
            )
        logger.debug("Alert webhook accepted payload (HTTP %d)", resp.status_code)
