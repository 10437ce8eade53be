"""
Notification delivery service.

Posts license notices to the configured notification endpoint, signed
with HMAC-SHA256 so the receiver can verify the sender.
"""
import hashlib
import hmac
import json
import logging
from typing import Any, Dict

import requests
from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Notification-Signature"


class NotificationDeliveryError(Exception):
    """Raised when the notification endpoint cannot be reached or refuses a notice."""


class NotificationDeliveryService:
    """Service for delivering notices to the notification endpoint."""

    def __init__(self, url: str = None, secret: str = None, timeout_seconds: int = None):
        self.url = settings.NOTIFICATION_WEBHOOK_URL if url is None else url
        self.secret = settings.NOTIFICATION_WEBHOOK_SECRET if secret is None else secret
        self.timeout_seconds = timeout_seconds or settings.NOTIFICATION_TIMEOUT_SECONDS

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    @staticmethod
    def generate_signature(payload: str, secret: str) -> str:
        """
        Generate HMAC signature for a payload.

        Args:
            payload: JSON string payload
            secret: Shared secret

        Returns:
            HMAC SHA-256 signature (hex)
        """
        return hmac.new(secret.encode(), payload.encode(), hashlib.sha256).hexdigest()

    @staticmethod
    def verify_signature(payload: str, signature: str, secret: str) -> bool:
        """
        Verify a payload signature.

        Args:
            payload: JSON string payload
            signature: Signature received
            secret: Shared secret

        Returns:
            True if signature is valid
        """
        expected = NotificationDeliveryService.generate_signature(payload, secret)
        return hmac.compare_digest(expected, signature)

    def deliver(self, notice: Dict[str, Any]) -> bool:
        """
        POST one notice.

        Args:
            notice: JSON-compatible notice built by the event handler

        Returns:
            True if delivered, False if delivery is disabled

        Raises:
            NotificationDeliveryError: Endpoint unreachable or non-2xx response
        """
        if not self.enabled:
            logger.debug("Notification endpoint not configured, dropping %s", notice.get("notice"))
            return False

        body = json.dumps({"sent_at": timezone.now().isoformat(), **notice}, sort_keys=True)
        headers = {
            "Content-Type": "application/json",
            "X-Notification-Type": notice.get("notice", ""),
            "User-Agent": "IP-Licensing-Service/1.0",
        }
        if self.secret:
            headers[SIGNATURE_HEADER] = self.generate_signature(body, self.secret)

        try:
            response = requests.post(self.url, data=body, headers=headers, timeout=self.timeout_seconds)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise NotificationDeliveryError(str(e)) from e

        logger.info("Notification delivered: %s", notice.get("notice"))
        return True
