"""
Request logging middleware shared by all three services.
"""
import time
import logging

from django.conf import settings

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware:
    """
    Log one line per request with method, path, status and duration.

    Captures:
    - HTTP method and path
    - Response status code
    - Request duration in milliseconds
    - Client address (honouring X-Forwarded-For from a fronting proxy)

    Excludes health probes. Requests slower than SLOW_REQUEST_THRESHOLD_MS
    are logged again at warning level. Streaming responses are timed up to
    the point the headers are ready.
    """

    EXCLUDED_PATHS = ['/health']

    def __init__(self, get_response):
        self.get_response = get_response
        self.slow_threshold_ms = getattr(settings, 'SLOW_REQUEST_THRESHOLD_MS', 2000)

    def __call__(self, request):
        if not self.should_log(request.path):
            return self.get_response(request)

        start_time = time.monotonic()
        response = self.get_response(request)
        duration_ms = int((time.monotonic() - start_time) * 1000)

        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            f"{request.method} {request.path} -> {response.status_code} "
            f"({duration_ms}ms) client={self._get_client_ip(request)}"
        )

        if duration_ms > self.slow_threshold_ms:
            logger.warning(
                f"Very slow request detected: {request.method} {request.path} "
                f"took {duration_ms}ms"
            )

        return response

    def should_log(self, path):
        return not any(path.startswith(p) for p in self.EXCLUDED_PATHS)

    def _get_client_ip(self, request):
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            return x_forwarded_for.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR') or '-'
