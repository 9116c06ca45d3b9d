"""
Request Timing Middleware
Logs the time taken for each API request.
"""

import logging
import time

from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)


class RequestTimingMiddleware(MiddlewareMixin):
    """
    Middleware that logs request timing information for JSON endpoints.

    Output format:
    METHOD /path/ XXX.XXms STATUS
    """

    def process_request(self, request):
        """Store the start time when request begins."""
        request._start_time = time.time()

    def process_response(self, request, response):
        """Calculate and log the request duration."""
        if hasattr(request, "_start_time") and request.path.startswith("/api/"):
            duration_ms = (time.time() - request._start_time) * 1000
            status = response.status_code

            if duration_ms < 100:
                duration_str = f"{duration_ms:.2f}ms"
            else:
                duration_str = f"{duration_ms:.1f}ms"

            # 5xx responses at warning level
            log = logger.warning if status >= 500 else logger.info
            log(f"{request.method} {request.path} {duration_str} {status}")

        return response
