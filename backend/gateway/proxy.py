"""
Request forwarding for the gateway.

Forwarder relays one inbound Django request to an upstream and streams the
answer back. Bodies are never buffered in either direction, hop-by-hop
headers are dropped both ways, and a transport failure becomes a 503
naming the upstream instead of an opaque 500.
"""

import logging

import requests
from django.http import StreamingHttpResponse

from core.exceptions import problem_json_response

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536

HOP_BY_HOP_HEADERS = frozenset({
    'connection',
    'keep-alive',
    'proxy-authenticate',
    'proxy-authorization',
    'te',
    'trailer',
    'transfer-encoding',
    'upgrade',
    'content-length',
})

# Host names the gateway itself; the upstream URL supplies its own
EXCLUDED_REQUEST_HEADERS = HOP_BY_HOP_HEADERS | {'host'}


class RequestBody:
    """
    Inbound request body read lazily in chunks.

    len() reports the length the client declared, so the outbound request
    carries a recomputed Content-Length instead of falling back to
    chunked transfer encoding.
    """

    def __init__(self, request, length):
        self.request = request
        self.length = length

    def __len__(self):
        return self.length

    def __iter__(self):
        return iter(lambda: self.request.read(CHUNK_SIZE), b'')


class UpstreamBody:
    """
    Undecoded upstream body for StreamingHttpResponse.

    Django calls close() when the client response is closed, including
    when the client disconnects mid-stream, which releases the upstream
    connection.
    """

    def __init__(self, upstream_response):
        self.upstream_response = upstream_response

    def __iter__(self):
        return self.upstream_response.raw.stream(CHUNK_SIZE, decode_content=False)

    def close(self):
        self.upstream_response.close()


def filter_headers(headers, excluded):
    return {name: value for name, value in headers.items() if name.lower() not in excluded}


def unavailable_response(upstream_name):
    return problem_json_response(503, 'Service Unavailable', f"Upstream '{upstream_name}' is unavailable")


class Forwarder:
    """
    Forwards requests to upstreams over a shared requests.Session.

    Nothing is retried: a failed upstream call is reported at once and
    retrying is left to the client.
    """

    def __init__(self, session=None):
        if session is None:
            session = requests.Session()
            # Only the client's headers and the upstream defaults go out
            session.headers.clear()
        self.session = session

    def build_headers(self, request, upstream):
        headers = dict(upstream.headers)
        headers.update(filter_headers(request.headers, EXCLUDED_REQUEST_HEADERS))
        return headers

    def build_body(self, request):
        content_length = int(request.META.get('CONTENT_LENGTH') or 0)
        if content_length > 0:
            return RequestBody(request, content_length)
        if 'HTTP_TRANSFER_ENCODING' in request.META:
            # Length unknown: sent on with chunked transfer encoding
            return iter(lambda: request.read(CHUNK_SIZE), b'')
        return None

    def forward(self, request, upstream, path):
        """
        Relay request to upstream at path and return the streamed answer.

        Args:
            request: inbound Django HttpRequest
            upstream: routes.Upstream to send to
            path: upstream path, already filled in from the route template
        """
        url = upstream.url_for(path, request.META.get('QUERY_STRING', ''))

        try:
            upstream_response = self.session.request(
                request.method,
                url,
                headers=self.build_headers(request, upstream),
                data=self.build_body(request),
                stream=True,
                timeout=upstream.timeout,
                allow_redirects=False,
            )
        except requests.RequestException as e:
            logger.warning(
                f"Upstream '{upstream.name}' unreachable for {request.method} {url}: {str(e)}"
            )
            return unavailable_response(upstream.name)

        response = StreamingHttpResponse(
            UpstreamBody(upstream_response),
            status=upstream_response.status_code,
            reason=upstream_response.reason or None,
        )
        # Content-Type comes from the upstream, or is absent
        del response['Content-Type']
        for name, value in filter_headers(upstream_response.headers, HOP_BY_HOP_HEADERS).items():
            response[name] = value

        logger.debug(
            f"Forwarded {request.method} {request.path} to '{upstream.name}' "
            f"-> {upstream_response.status_code}"
        )
        return response
