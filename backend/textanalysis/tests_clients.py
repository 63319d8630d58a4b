"""
Tests for the Content Store client and the word-cloud renderer client.
"""

import uuid
from unittest.mock import MagicMock

import requests
from django.test import TestCase

from core.exceptions import ArtifactGenerationFailed, NotFound, UpstreamUnavailable
from textanalysis.services.clients import (
    ContentStoreClient,
    QuickChartRenderer,
    filename_from_disposition,
)


def _response(status_code=200, content=b'', headers=None, json_data=None):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.content = content
    response.text = content.decode('utf-8', errors='replace')
    response.headers = headers or {}
    response.json.return_value = json_data
    return response


class ContentStoreClientTests(TestCase):

    def setUp(self):
        self.session = MagicMock()
        self.client = ContentStoreClient('http://storage:8080/', timeout=5, session=self.session)

    def test_retrieve_returns_bytes_and_name(self):
        file_id = uuid.uuid4()
        self.session.get.return_value = _response(
            content=b"some text",
            headers={'Content-Disposition': 'attachment; filename="notes.txt"'},
        )

        data, name = self.client.retrieve(file_id)

        self.assertEqual(data, b"some text")
        self.assertEqual(name, 'notes.txt')
        self.session.get.assert_called_once_with(
            f'http://storage:8080/files/file/{file_id}', timeout=5
        )

    def test_retrieve_404_raises_not_found(self):
        self.session.get.return_value = _response(status_code=404)

        with self.assertRaises(NotFound):
            self.client.retrieve(uuid.uuid4())

    def test_retrieve_connection_error_raises_upstream_unavailable(self):
        self.session.get.side_effect = requests.ConnectionError("refused")

        with self.assertRaises(UpstreamUnavailable):
            self.client.retrieve(uuid.uuid4())

    def test_retrieve_server_error_raises_upstream_unavailable(self):
        self.session.get.return_value = _response(status_code=500)

        with self.assertRaises(UpstreamUnavailable):
            self.client.retrieve(uuid.uuid4())

    def test_store_posts_multipart_and_returns_id(self):
        new_id = uuid.uuid4()
        self.session.post.return_value = _response(status_code=201, json_data={'id': str(new_id)})

        result = self.client.store(b'\x89PNG', 'cloud.png', 'image/png')

        self.assertEqual(result, new_id)
        self.session.post.assert_called_once_with(
            'http://storage:8080/files/store',
            files={'file': ('cloud.png', b'\x89PNG', 'image/png')},
            timeout=5,
        )

    def test_store_timeout_raises_upstream_unavailable(self):
        self.session.post.side_effect = requests.Timeout("timed out")

        with self.assertRaises(UpstreamUnavailable):
            self.client.store(b'data', 'x.png')

    def test_store_rejection_raises_upstream_unavailable(self):
        self.session.post.return_value = _response(status_code=400, content=b'{"detail": "No file provided"}')

        with self.assertRaises(UpstreamUnavailable):
            self.client.store(b'data', 'x.png')

    def test_filename_from_disposition(self):
        self.assertEqual(filename_from_disposition('attachment; filename="a b.txt"'), 'a b.txt')
        self.assertEqual(
            filename_from_disposition("attachment; filename*=utf-8''%D1%84%D0%B0%D0%B9%D0%BB.txt"),
            'файл.txt'
        )
        self.assertEqual(filename_from_disposition(None), '')


class QuickChartRendererTests(TestCase):

    def setUp(self):
        self.session = MagicMock()
        self.renderer = QuickChartRenderer('https://quickchart.io', timeout=10, session=self.session)

    def test_build_url_percent_encodes_each_token(self):
        url = self.renderer.build_url(['hello', 'c++', 'naïve'])

        self.assertEqual(
            url,
            'https://quickchart.io/wordcloud'
            '?text=hello,c%2B%2B,na%C3%AFve'
            '&useWordList=true&removeStopwords=true'
            '&format=png&width=600&height=600'
        )

    def test_render_returns_image_bytes(self):
        self.session.get.return_value = _response(content=b'\x89PNG image')

        image = self.renderer.render(['hello', 'world'])

        self.assertEqual(image, b'\x89PNG image')
        self.session.get.assert_called_once_with(
            self.renderer.build_url(['hello', 'world']), timeout=10
        )

    def test_render_error_status_raises_generation_failed(self):
        self.session.get.return_value = _response(status_code=500)

        with self.assertRaises(ArtifactGenerationFailed):
            self.renderer.render(['hello'])

    def test_render_transport_error_raises_generation_failed(self):
        self.session.get.side_effect = requests.ConnectionError("dns failure")

        with self.assertRaises(ArtifactGenerationFailed):
            self.renderer.render(['hello'])
