"""
Unit tests for notification delivery.
"""
import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from core.infrastructure.notifications import (
    SIGNATURE_HEADER,
    NotificationDeliveryError,
    NotificationDeliveryService,
)

NOTICE = {"notice": "license_expired", "license_id": "lic-1", "audience": ["brand"], "recipients": []}


class TestNotificationDeliveryService:
    """Tests for NotificationDeliveryService."""

    def test_signature_roundtrip(self):
        """Test generated signatures verify and tampered payloads do not."""
        signature = NotificationDeliveryService.generate_signature('{"a": 1}', "secret")
        assert NotificationDeliveryService.verify_signature('{"a": 1}', signature, "secret")
        assert not NotificationDeliveryService.verify_signature('{"a": 2}', signature, "secret")

    def test_disabled(self):
        """Test nothing is sent without an endpoint."""
        service = NotificationDeliveryService(url="", secret="", timeout_seconds=5)
        with patch("core.infrastructure.notifications.requests.post") as post:
            assert service.deliver(NOTICE) is False
        post.assert_not_called()

    def test_delivers_signed(self):
        """Test notices are posted with a verifiable signature."""
        service = NotificationDeliveryService(
            url="https://hooks.example.com/licensing", secret="s3cret", timeout_seconds=5
        )
        response = MagicMock()
        with patch("core.infrastructure.notifications.requests.post", return_value=response) as post:
            assert service.deliver(NOTICE) is True

        _, kwargs = post.call_args
        body = kwargs["data"]
        assert json.loads(body)["notice"] == "license_expired"
        assert kwargs["headers"]["X-Notification-Type"] == "license_expired"
        assert NotificationDeliveryService.verify_signature(body, kwargs["headers"][SIGNATURE_HEADER], "s3cret")
        assert kwargs["timeout"] == 5
        response.raise_for_status.assert_called_once()

    def test_unsigned_without_secret(self):
        """Test no signature header is sent without a secret."""
        service = NotificationDeliveryService(url="https://hooks.example.com/licensing", secret="", timeout_seconds=5)
        with patch("core.infrastructure.notifications.requests.post") as post:
            service.deliver(NOTICE)
        assert SIGNATURE_HEADER not in post.call_args[1]["headers"]

    def test_http_error(self):
        """Test endpoint failures surface as NotificationDeliveryError."""
        service = NotificationDeliveryService(url="https://hooks.example.com/licensing", secret="", timeout_seconds=5)
        with patch(
            "core.infrastructure.notifications.requests.post",
            side_effect=requests.exceptions.ConnectionError("refused"),
        ):
            with pytest.raises(NotificationDeliveryError, match="refused"):
                service.deliver(NOTICE)
