import logging

from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import problem_json_response

logger = logging.getLogger(__name__)


class HealthView(APIView):
    """GET /health - liveness probe, always 200 while the process serves requests."""

    service = 'unknown'

    def get(self, request):
        return Response({'status': 'healthy', 'service': self.service})


def not_found(request, exception=None):
    """handler404: paths no route matches get a problem payload."""
    return problem_json_response(404, 'Not Found', f"No route matches {request.method} {request.path}")


def server_error(request):
    """handler500: errors raised outside DRF views get a problem payload."""
    logger.error(f"Unhandled error for {request.method} {request.path}")
    return problem_json_response(500, 'Internal Server Error', 'Unexpected error while processing the request')
