"""
Outbound collaborators of the Analysis Engine.

ContentStoreClient talks to the Content Store service, QuickChartRenderer
to the external word-cloud renderer. Both receive their base address and
timeout at construction; tests substitute alternate implementations with
the same methods.
"""

import logging
import re
import uuid
from urllib.parse import quote, unquote

import requests

from core.exceptions import ArtifactGenerationFailed, NotFound, UpstreamUnavailable

logger = logging.getLogger(__name__)

FILENAME_STAR = re.compile(r"filename\*=(?:UTF-8|utf-8)''([^;]+)")
FILENAME = re.compile(r'filename="?([^";]+)"?')


def filename_from_disposition(header):
    """Extract the suggested filename from a Content-Disposition header."""
    if not header:
        return ''
    match = FILENAME_STAR.search(header)
    if match:
        return unquote(match.group(1))
    match = FILENAME.search(header)
    return match.group(1) if match else ''


class ContentStoreClient:
    """HTTP client for the Content Store service."""

    def __init__(self, base_url, timeout=30.0, session=None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def retrieve(self, file_id) -> tuple[bytes, str]:
        """
        Fetch the bytes and original name of a stored file.

        Raises:
            NotFound: the Content Store does not know file_id
            UpstreamUnavailable: the Content Store cannot be reached or failed
        """
        url = f"{self.base_url}/files/file/{file_id}"
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"Content Store unreachable while fetching {file_id}: {str(e)}")
            raise UpstreamUnavailable(f"Content Store is unavailable: {str(e)}") from e

        if response.status_code == 404:
            raise NotFound(f"File {file_id} not found")
        if not response.ok:
            raise UpstreamUnavailable(
                f"Content Store answered {response.status_code} for file {file_id}"
            )

        name = filename_from_disposition(response.headers.get('Content-Disposition'))
        return response.content, name

    def store(self, data: bytes, name: str, content_type='application/octet-stream') -> uuid.UUID:
        """
        Upload bytes to the Content Store and return the resulting id.

        Identical bytes stored earlier resolve to the existing id.
        """
        url = f"{self.base_url}/files/store"
        try:
            response = self.session.post(
                url,
                files={'file': (name, data, content_type)},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"Content Store unreachable while storing {name}: {str(e)}")
            raise UpstreamUnavailable(f"Content Store is unavailable: {str(e)}") from e

        if not response.ok:
            raise UpstreamUnavailable(
                f"Content Store rejected {name}: {response.status_code} {response.text[:200]}"
            )

        try:
            return uuid.UUID(str(response.json()['id']))
        except (ValueError, KeyError, TypeError) as e:
            raise UpstreamUnavailable(f"Content Store returned an invalid store response: {str(e)}") from e


class QuickChartRenderer:
    """
    Word-cloud renderer backed by a QuickChart-compatible service.

    Tokens are percent-encoded one by one and comma-joined; stop words are
    removed by the service and the image is a fixed-size square PNG.
    """

    def __init__(self, base_url='https://quickchart.io', timeout=60.0, size=600, session=None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.size = size
        self.session = session or requests.Session()

    def build_url(self, tokens) -> str:
        text = ','.join(quote(token, safe='') for token in tokens)
        return (
            f"{self.base_url}/wordcloud"
            f"?text={text}"
            f"&useWordList=true"
            f"&removeStopwords=true"
            f"&format=png&width={self.size}&height={self.size}"
        )

    def render(self, tokens) -> bytes:
        """
        Render tokens into image bytes.

        Raises:
            ArtifactGenerationFailed: on transport failure or an error status
        """
        try:
            response = self.session.get(self.build_url(tokens), timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Word cloud renderer unreachable: {str(e)}")
            raise ArtifactGenerationFailed(f"Word cloud renderer is unavailable: {str(e)}") from e

        if not response.ok:
            logger.error(f"Word cloud renderer answered {response.status_code}")
            raise ArtifactGenerationFailed(
                f"Word cloud renderer answered {response.status_code}"
            )
        return response.content
