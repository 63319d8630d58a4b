"""
Error taxonomy shared by the storage, analysis and gateway services.

Every failure a component can report is a ServiceError subclass carrying
the HTTP status it maps to. Views let these propagate and DRF renders them
through problem_exception_handler as a problem payload:

    {"status": 404, "title": "Not Found", "detail": "File ... not found"}
"""

import logging

from django.http import Http404, JsonResponse
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response

logger = logging.getLogger(__name__)

PROBLEM_CONTENT_TYPE = 'application/problem+json'


class ServiceError(Exception):
    """Base class for failures surfaced to callers as structured responses."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    title = 'Internal Server Error'
    default_detail = 'Unexpected error'

    def __init__(self, detail=None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    title = 'Not Found'
    default_detail = 'Resource not found'


class ValidationError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    title = 'Validation Error'
    default_detail = 'Invalid input'

    def __init__(self, detail=None, details=None):
        super().__init__(detail)
        self.details = details


class DuplicateContent(ServiceError):
    """Text of a file matches text already analyzed under another file id."""

    status_code = status.HTTP_409_CONFLICT
    title = 'Duplicate Content'
    default_detail = 'File content is identical to an already analyzed file'


class AnalysisNotRun(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    title = 'Analysis Not Run'
    default_detail = 'Run the analysis for this file first'


class UpstreamUnavailable(ServiceError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    title = 'Service Unavailable'
    default_detail = 'Upstream service is unavailable'


class ArtifactGenerationFailed(ServiceError):
    status_code = status.HTTP_502_BAD_GATEWAY
    title = 'Artifact Generation Failed'
    default_detail = 'Word cloud rendering failed'


def problem_payload(status_code, title, detail, **extra):
    payload = {'status': status_code, 'title': title, 'detail': detail}
    payload.update(extra)
    return payload


def problem_response(status_code, title, detail, **extra):
    return Response(
        problem_payload(status_code, title, detail, **extra),
        status=status_code,
        content_type=PROBLEM_CONTENT_TYPE,
    )


def problem_json_response(status_code, title, detail, **extra):
    """Problem payload as a plain Django response, for code outside DRF views."""
    return JsonResponse(
        problem_payload(status_code, title, detail, **extra),
        status=status_code,
        content_type=PROBLEM_CONTENT_TYPE,
    )


def problem_exception_handler(exc, context):
    """
    DRF exception handler rendering every failure as a problem payload.

    ServiceError and DRF's own APIException keep their status codes.
    Anything else is logged with its traceback and answered with a 500,
    so a single bad request never takes the worker down.
    """
    if isinstance(exc, ServiceError):
        extra = {}
        if getattr(exc, 'details', None):
            extra['details'] = exc.details
        if exc.status_code >= 500:
            logger.warning(f"{exc.title}: {exc.detail}")
        return problem_response(exc.status_code, exc.title, exc.detail, **extra)

    if isinstance(exc, drf_exceptions.APIException):
        detail = exc.detail
        if not isinstance(detail, str):
            detail = str(detail)
        response = problem_response(exc.status_code, exc.default_code.replace('_', ' ').title(), detail)
        if getattr(exc, 'wait', None):
            response['Retry-After'] = str(int(exc.wait))
        return response

    if isinstance(exc, Http404):
        return problem_response(status.HTTP_404_NOT_FOUND, 'Not Found', str(exc) or 'Not found')

    view = context.get('view')
    logger.error(
        f"Unhandled error in {view.__class__.__name__ if view else 'view'}: {str(exc)}",
        exc_info=exc,
    )
    return problem_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        'Internal Server Error',
        'Unexpected error while processing the request',
    )
