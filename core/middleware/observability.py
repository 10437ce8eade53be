"""
Observability middleware.

This middleware adds structured request logging and correlation ids.
"""

import logging
import time
import uuid
from typing import Callable

from django.http import HttpRequest, HttpResponse
from opentelemetry import trace
from opentelemetry.trace import format_span_id, format_trace_id

logger = logging.getLogger(__name__)


class ObservabilityMiddleware:
    """
    Middleware for request observability.

    This middleware:
    1. Assigns a correlation ID (or reuses the caller's X-Correlation-ID)
    2. Logs request start and finish with duration and actor context
    3. Adds correlation and trace IDs to response headers
    """

    def __init__(self, get_response: Callable):
        """Initialize middleware."""
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        """
        Process request and add observability.

        Args:
            request: HTTP request

        Returns:
            HTTP response with observability headers
        """
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        request.correlation_id = correlation_id  # type: ignore

        log_extra = {
            "correlation_id": correlation_id,
            "method": request.method,
            "path": request.path,
            "remote_addr": request.META.get("REMOTE_ADDR"),
        }
        log_extra.update(self._trace_context())
        log_extra.update(self._actor_context(request))
        logger.info("Request started", extra=log_extra)

        start_time = time.time()
        try:
            response = self.get_response(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={
                    **log_extra,
                    "error_type": type(e).__name__,
                    "duration_ms": round((time.time() - start_time) * 1000, 2),
                },
                exc_info=True,
            )
            raise

        duration_ms = round((time.time() - start_time) * 1000, 2)
        log_extra.update({"status_code": response.status_code, "duration_ms": duration_ms})
        if response.status_code >= 500:
            logger.error("Request completed with server error", extra=log_extra)
        elif response.status_code >= 400:
            logger.warning("Request completed with client error", extra=log_extra)
        else:
            logger.info("Request completed successfully", extra=log_extra)

        response["X-Correlation-ID"] = correlation_id
        response["X-Request-Duration"] = f"{duration_ms / 1000:.3f}"
        if "trace_id" in log_extra:
            response["X-Trace-ID"] = log_extra["trace_id"]
        return response

    def _trace_context(self) -> dict:
        span_context = trace.get_current_span().get_span_context()
        if not span_context.is_valid:
            return {}
        return {
            "trace_id": format_trace_id(span_context.trace_id),
            "span_id": format_span_id(span_context.span_id),
        }

    def _actor_context(self, request: HttpRequest) -> dict:
        actor = getattr(request, "actor", None)
        if actor is None:
            return {}
        return {"actor_id": actor.user_id, "actor_role": actor.role.value}
