"""
Request Metrics Middleware

Times every request and records it into the application's MetricsRegistry,
which feeds both the Prometheus endpoint and the alert manager's request
rate / error rate / latency / active-user figures.

Also binds a correlation id (X-Request-ID, generated when absent) to the
logging context for the duration of the request.
"""

import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ethosview.core.config.constants import HEADER_REQUEST_ID, HEADER_RESPONSE_TIME, HEADER_USER_ID
from ethosview.core.logging.logger import clear_correlation_id, get_logger, set_correlation_id
from ethosview.infrastructure.monitoring.metrics_registry import MetricsRegistry

logger = get_logger(__name__)

# Threshold for logging slow requests (in seconds)
SLOW_REQUEST_THRESHOLD = 1.0


class RequestMetricsMiddleware(BaseHTTPMiddleware):
    """
    Records method, status, duration and user of each request.

    An exception escaping the handler is recorded as a 500 and re-raised.
    """

    def __init__(self, app, metrics: MetricsRegistry, slow_threshold: float = SLOW_REQUEST_THRESHOLD):
        super().__init__(app)
        self.metrics = metrics
        self.slow_threshold = slow_threshold

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(HEADER_REQUEST_ID) or str(uuid.uuid4())
        set_correlation_id(correlation_id)
        user_id = request.headers.get(HEADER_USER_ID)

        start_time = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            duration = time.perf_counter() - start_time
            self.metrics.record_request(request.method, status_code, duration, user_id=user_id)
            if duration > self.slow_threshold:
                logger.warning(
                    f"Slow request detected: {request.method} {request.url.path}",
                    method=request.method,
                    path=request.url.path,
                    duration_seconds=round(duration, 4),
                    threshold_seconds=self.slow_threshold,
                )
            clear_correlation_id()

        response.headers[HEADER_RESPONSE_TIME] = f"{duration:.4f}s"
        response.headers[HEADER_REQUEST_ID] = correlation_id
        return response
