"""
Unit Tests for the Gateway
==========================
Tests cover:
- Method, body, path and query forwarding
- Hop-by-hop header filtering in both directions
- Upstream status, headers and error bodies passed through unchanged
- 503 naming the upstream on transport failures
- Closing the client response closes the upstream response
- Method dispatch and the local health endpoint
"""

import json
import uuid
from unittest.mock import patch

import requests
from django.test import TestCase, override_settings
from requests.structures import CaseInsensitiveDict

from gateway.proxy import Forwarder


class FakeRaw:

    def __init__(self, chunks):
        self.chunks = chunks
        self.decode_content = None

    def stream(self, amt, decode_content=None):
        self.decode_content = decode_content
        return iter(self.chunks)


class FakeUpstreamResponse:

    def __init__(self, status_code=200, headers=None, chunks=(b'',), reason='OK'):
        self.status_code = status_code
        self.reason = reason
        self.headers = CaseInsensitiveDict(headers or {})
        self.raw = FakeRaw(list(chunks))
        self.closed = False

    def close(self):
        self.closed = True


class FakeSession:
    """Records outbound requests and consumes their bodies like a transport would."""

    def __init__(self, response=None, error=None):
        self.response = response or FakeUpstreamResponse()
        self.error = error
        self.calls = []

    def request(self, method, url, headers=None, data=None, **kwargs):
        body = b''.join(data) if data is not None else None
        declared_length = len(data) if hasattr(data, '__len__') else None
        self.calls.append({
            'method': method,
            'url': url,
            'headers': headers,
            'body': body,
            'declared_length': declared_length,
            **kwargs,
        })
        if self.error:
            raise self.error
        return self.response


TEST_UPSTREAMS = {
    'storage': {
        'base_url': 'http://storage.test',
        'headers': {'Accept': 'application/json'},
        'timeout': 5,
    },
    'analysis': {
        'base_url': 'http://analysis.test/',
        'headers': {},
        'timeout': 7,
    },
}


@override_settings(ROOT_URLCONF='core.urls.gateway', GATEWAY_UPSTREAMS=TEST_UPSTREAMS)
class GatewayForwardingTests(TestCase):

    def _use_session(self, session):
        patcher = patch('gateway.views.get_forwarder', return_value=Forwarder(session=session))
        patcher.start()
        self.addCleanup(patcher.stop)
        return session

    def test_forwards_method_path_and_body(self):
        session = self._use_session(FakeSession())

        self.client.post('/files/store', data=b'payload bytes', content_type='text/plain')

        call = session.calls[0]
        self.assertEqual(call['method'], 'POST')
        self.assertEqual(call['url'], 'http://storage.test/files/store')
        self.assertEqual(call['body'], b'payload bytes')
        self.assertEqual(call['declared_length'], len(b'payload bytes'))
        self.assertTrue(call['stream'])
        self.assertEqual(call['timeout'], 5)
        self.assertFalse(call['allow_redirects'])

    def test_fills_upstream_path_from_route_parameters(self):
        session = self._use_session(FakeSession())
        file_id = uuid.uuid4()

        self.client.post(f'/files/analysis/{file_id}/start')
        self.client.get(f'/files/analysis/{file_id}')
        self.client.get(f'/files/analysis/{file_id}/wordcloud')
        self.client.get(f'/files/file/{file_id}')

        self.assertEqual(
            [call['url'] for call in session.calls],
            [
                f'http://analysis.test/files/analysis/{file_id}/start',
                f'http://analysis.test/files/analysis/{file_id}',
                f'http://analysis.test/files/analysis/{file_id}/wordcloud',
                f'http://storage.test/files/file/{file_id}',
            ]
        )
        self.assertEqual([call['method'] for call in session.calls], ['POST', 'GET', 'GET', 'GET'])

    def test_forwards_query_string(self):
        session = self._use_session(FakeSession())
        file_id = uuid.uuid4()

        self.client.get(f'/files/file/{file_id}?download=1&v=2')

        self.assertEqual(session.calls[0]['url'], f'http://storage.test/files/file/{file_id}?download=1&v=2')

    def test_copies_request_headers_except_hop_by_hop(self):
        session = self._use_session(FakeSession())

        self.client.post(
            '/files/store',
            data=b'x',
            content_type='text/plain',
            HTTP_X_TRACE_ID='trace-1',
            HTTP_AUTHORIZATION='Bearer token',
            HTTP_CONNECTION='keep-alive',
            HTTP_KEEP_ALIVE='timeout=5',
            HTTP_TE='trailers',
            HTTP_UPGRADE='websocket',
            HTTP_PROXY_AUTHORIZATION='Basic abc',
        )

        headers = {name.lower(): value for name, value in session.calls[0]['headers'].items()}
        self.assertEqual(headers['x-trace-id'], 'trace-1')
        self.assertEqual(headers['authorization'], 'Bearer token')
        self.assertEqual(headers['content-type'], 'text/plain')
        for hop_header in ['connection', 'keep-alive', 'te', 'upgrade',
                           'proxy-authorization', 'content-length', 'host']:
            self.assertNotIn(hop_header, headers)

    def test_applies_upstream_default_headers(self):
        session = self._use_session(FakeSession())

        self.client.post('/files/store', data=b'x', content_type='text/plain')

        self.assertEqual(session.calls[0]['headers']['Accept'], 'application/json')

    def test_client_header_overrides_upstream_default(self):
        session = self._use_session(FakeSession())

        self.client.post('/files/store', data=b'x', content_type='text/plain', HTTP_ACCEPT='text/plain')

        self.assertEqual(session.calls[0]['headers']['Accept'], 'text/plain')

    def test_request_without_body_sends_none(self):
        session = self._use_session(FakeSession())

        self.client.get(f'/files/file/{uuid.uuid4()}')

        self.assertIsNone(session.calls[0]['body'])

    def test_relays_status_headers_and_streamed_body(self):
        upstream = FakeUpstreamResponse(
            status_code=201,
            reason='Created',
            headers={
                'Content-Type': 'application/json',
                'X-Upstream': 'storage',
                'Connection': 'keep-alive',
                'Transfer-Encoding': 'chunked',
                'Keep-Alive': 'timeout=5',
                'Content-Length': '12',
            },
            chunks=[b'{"id": ', b'"abc"}'],
        )
        self._use_session(FakeSession(response=upstream))

        response = self.client.post('/files/store', data=b'x', content_type='text/plain')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response['Content-Type'], 'application/json')
        self.assertEqual(response['X-Upstream'], 'storage')
        for hop_header in ['Connection', 'Transfer-Encoding', 'Keep-Alive', 'Content-Length']:
            self.assertFalse(response.has_header(hop_header))
        self.assertTrue(response.streaming)
        self.assertEqual(b''.join(response.streaming_content), b'{"id": "abc"}')
        self.assertFalse(upstream.raw.decode_content)

    def test_upstream_error_passes_through_unchanged(self):
        problem = b'{"status": 409, "title": "Duplicate Content", "detail": "same text"}'
        upstream = FakeUpstreamResponse(
            status_code=409,
            reason='Conflict',
            headers={'Content-Type': 'application/problem+json'},
            chunks=[problem],
        )
        self._use_session(FakeSession(response=upstream))

        response = self.client.post(f'/files/analysis/{uuid.uuid4()}/start')

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response['Content-Type'], 'application/problem+json')
        self.assertEqual(b''.join(response.streaming_content), problem)

    def test_upstream_without_content_type_gets_none(self):
        upstream = FakeUpstreamResponse(status_code=204, reason='No Content')
        self._use_session(FakeSession(response=upstream))

        response = self.client.get(f'/files/file/{uuid.uuid4()}')

        self.assertFalse(response.has_header('Content-Type'))

    def test_connection_failure_returns_503_naming_upstream(self):
        self._use_session(FakeSession(error=requests.ConnectionError("refused")))

        response = self.client.post('/files/store', data=b'x', content_type='text/plain')

        self.assertEqual(response.status_code, 503)
        payload = json.loads(response.content)
        self.assertEqual(payload['status'], 503)
        self.assertIn("'storage'", payload['detail'])

    def test_timeout_returns_503_naming_upstream(self):
        self._use_session(FakeSession(error=requests.Timeout("timed out")))

        response = self.client.get(f'/files/analysis/{uuid.uuid4()}')

        self.assertEqual(response.status_code, 503)
        self.assertIn("'analysis'", json.loads(response.content)['detail'])

    def test_closing_client_response_closes_upstream(self):
        upstream = FakeUpstreamResponse(chunks=[b'part one', b'part two'])
        self._use_session(FakeSession(response=upstream))

        response = self.client.get(f'/files/file/{uuid.uuid4()}')
        next(iter(response.streaming_content))
        response.close()

        self.assertTrue(upstream.closed)

    def test_unconfigured_method_returns_405(self):
        session = self._use_session(FakeSession())

        response = self.client.get('/files/store')

        self.assertEqual(response.status_code, 405)
        self.assertEqual(response['Allow'], 'POST')
        self.assertEqual(session.calls, [])

    def test_unknown_path_is_not_forwarded(self):
        session = self._use_session(FakeSession())

        response = self.client.get('/files/file/not-a-uuid')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response['Content-Type'], 'application/problem+json')
        self.assertEqual(session.calls, [])

    def test_health_is_answered_locally(self):
        session = self._use_session(FakeSession(error=requests.ConnectionError("down")))

        response = self.client.get('/health')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'status': 'healthy', 'service': 'gateway'})
        self.assertEqual(session.calls, [])


class ForwarderTests(TestCase):

    def test_default_session_sends_no_library_headers(self):
        forwarder = Forwarder()

        self.assertEqual(dict(forwarder.session.headers), {})
