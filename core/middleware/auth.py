"""
API key authentication middleware.

Resolves the ``X-API-Key`` header of licensing API requests to the actor
(user id and role) the request acts for.
"""

import logging
from typing import Optional

from django.conf import settings
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.utils.deprecation import MiddlewareMixin

from brands.infrastructure.models import ApiKey
from core.domain.value_objects import Actor, Role

logger = logging.getLogger(__name__)

PROTECTED_PREFIX = "/api/v1/"


def _unauthorized(message: str) -> JsonResponse:
    return JsonResponse({"error": {"code": "UNAUTHORIZED", "message": message}}, status=401)


class APIKeyAuthenticationMiddleware(MiddlewareMixin):
    """
    Middleware for API key authentication.

    This middleware:
    1. Looks up the hashed key of every /api/v1/ request
    2. Rejects missing, unknown and expired keys with 401
    3. Sets ``request.actor`` (and ``request.api_key``) for the views
    """

    def process_request(self, request: HttpRequest) -> Optional[HttpResponse]:
        """
        Process request and validate authentication.

        Args:
            request: HTTP request

        Returns:
            HttpResponse with 401 if authentication fails, None otherwise
        """
        request.actor = None  # type: ignore
        if not request.path.startswith(PROTECTED_PREFIX):
            return None

        header = getattr(settings, "API_KEY_HEADER", "X-API-Key")
        raw_key = request.headers.get(header) or request.headers.get("Authorization", "").replace(
            "Bearer ", ""
        )
        if not raw_key:
            return _unauthorized(f"Missing API key. Provide {header} header.")

        api_key = ApiKey.objects.filter(key_hash=ApiKey.hash_key(raw_key)).first()
        if api_key is None:
            logger.warning("Invalid API key attempted: %s...", raw_key[:8])
            return _unauthorized("Invalid API key")
        if not api_key.is_valid():
            logger.warning("Expired API key attempted: %s...", raw_key[:8])
            return _unauthorized("API key expired")

        api_key.mark_used()
        request.api_key = api_key  # type: ignore
        request.actor = Actor(user_id=api_key.user_id, role=Role(api_key.role))  # type: ignore
        return None
