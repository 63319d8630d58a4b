"""
Unit Tests for the shared service plumbing
==========================================
Tests cover:
- Problem payload rendering of the error taxonomy
- DRF and unexpected exceptions through the exception handler
- Request logging middleware
- Problem payloads for unmatched paths and server errors
"""

from unittest.mock import MagicMock

from django.http import Http404, HttpResponse
from django.test import RequestFactory, TestCase, override_settings
from rest_framework import exceptions as drf_exceptions

from core.exceptions import (
    AnalysisNotRun,
    ArtifactGenerationFailed,
    DuplicateContent,
    NotFound,
    UpstreamUnavailable,
    ValidationError,
    problem_exception_handler,
)
from core.middleware import RequestLoggingMiddleware
from core.views import server_error


class ProblemExceptionHandlerTests(TestCase):
    """Tests for problem_exception_handler."""

    def test_taxonomy_status_codes(self):
        expected = {
            NotFound: 404,
            ValidationError: 400,
            DuplicateContent: 409,
            AnalysisNotRun: 409,
            UpstreamUnavailable: 503,
            ArtifactGenerationFailed: 502,
        }
        for exc_class, status_code in expected.items():
            response = problem_exception_handler(exc_class(), {})
            self.assertEqual(response.status_code, status_code, exc_class.__name__)
            self.assertEqual(response.data['status'], status_code)
            self.assertEqual(response.data['title'], exc_class.title)

    def test_detail_is_carried(self):
        response = problem_exception_handler(NotFound("File abc not found"), {})

        self.assertEqual(response.data['detail'], "File abc not found")
        self.assertEqual(response.content_type, 'application/problem+json')

    def test_default_detail_used_without_message(self):
        response = problem_exception_handler(AnalysisNotRun(), {})

        self.assertEqual(response.data['detail'], AnalysisNotRun.default_detail)

    def test_validation_details_are_included(self):
        response = problem_exception_handler(ValidationError("Too big", details={'max_size': 10}), {})

        self.assertEqual(response.data['details'], {'max_size': 10})

    def test_drf_exception_keeps_status(self):
        response = problem_exception_handler(drf_exceptions.MethodNotAllowed('PUT'), {})

        self.assertEqual(response.status_code, 405)
        self.assertEqual(response.data['title'], 'Method Not Allowed')

    def test_http404_becomes_not_found(self):
        response = problem_exception_handler(Http404("nope"), {})

        self.assertEqual(response.status_code, 404)

    def test_unexpected_exception_becomes_500(self):
        response = problem_exception_handler(RuntimeError("boom"), {'view': None})

        self.assertEqual(response.status_code, 500)
        self.assertNotIn('boom', response.data['detail'])


class RequestLoggingMiddlewareTests(TestCase):
    """Tests for the RequestLoggingMiddleware."""

    def setUp(self):
        self.factory = RequestFactory()
        self.get_response = MagicMock(return_value=HttpResponse(status=200))
        self.middleware = RequestLoggingMiddleware(self.get_response)

    def test_should_log_api_paths(self):
        self.assertTrue(self.middleware.should_log('/files/store'))
        self.assertTrue(self.middleware.should_log('/files/analysis/abc'))

    def test_should_not_log_health_endpoint(self):
        self.assertFalse(self.middleware.should_log('/health'))

    def test_logs_method_path_and_status(self):
        with self.assertLogs('core.middleware', level='INFO') as logs:
            self.middleware(self.factory.get('/files/store'))

        self.assertIn('GET /files/store -> 200', logs.output[0])

    def test_server_errors_logged_as_warning(self):
        self.middleware.get_response = MagicMock(return_value=HttpResponse(status=503))

        with self.assertLogs('core.middleware', level='WARNING') as logs:
            self.middleware(self.factory.post('/files/store'))

        self.assertIn('-> 503', logs.output[0])

    def test_health_is_not_logged(self):
        with self.assertNoLogs('core.middleware', level='INFO'):
            self.middleware(self.factory.get('/health'))

    @override_settings(SLOW_REQUEST_THRESHOLD_MS=-1)
    def test_slow_requests_are_flagged(self):
        middleware = RequestLoggingMiddleware(self.get_response)

        with self.assertLogs('core.middleware', level='WARNING') as logs:
            middleware(self.factory.get('/files/store'))

        self.assertTrue(any('Very slow request detected' in line for line in logs.output))

    def test_client_ip_from_x_forwarded_for(self):
        request = self.factory.get('/files/store', HTTP_X_FORWARDED_FOR='203.0.113.5, 10.0.0.1')

        self.assertEqual(self.middleware._get_client_ip(request), '203.0.113.5')

    def test_response_is_returned_unchanged(self):
        response = self.middleware(self.factory.get('/files/store'))

        self.assertIs(response, self.get_response.return_value)


class ErrorHandlerViewTests(TestCase):
    """Tests for the handler404 and handler500 views."""

    @override_settings(ROOT_URLCONF='core.urls.analysis')
    def test_unmatched_path_returns_problem_payload(self):
        response = self.client.get('/files/analysis/not-a-uuid')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response['Content-Type'], 'application/problem+json')
        self.assertEqual(response.json()['title'], 'Not Found')
        self.assertIn('/files/analysis/not-a-uuid', response.json()['detail'])

    def test_server_error_returns_problem_payload(self):
        request = RequestFactory().get('/files/store')

        with self.assertLogs('core.views', level='ERROR'):
            response = server_error(request)

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response['Content-Type'], 'application/problem+json')
