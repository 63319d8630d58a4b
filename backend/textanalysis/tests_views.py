"""
Tests for the Analysis Engine HTTP surface.
"""

import uuid
from unittest.mock import patch

from django.test import SimpleTestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from textanalysis.services import AnalysisEngine
from textanalysis.tests_engine import InMemoryContentStore, RecordingRenderer
from textanalysis.views import build_engine


@override_settings(ROOT_URLCONF='core.urls.analysis')
class AnalysisAPITests(APITestCase):

    def setUp(self):
        self.store = InMemoryContentStore()
        self.renderer = RecordingRenderer()
        engine = AnalysisEngine(content_store=self.store, renderer=self.renderer)
        patcher = patch('textanalysis.views.build_engine', return_value=engine)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_start_returns_statistics(self):
        text = "Hello world.\n\nThis is a test."
        file_id = self.store.add(text.encode('utf-8'))

        response = self.client.post(f'/files/analysis/{file_id}/start')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            set(response.data),
            {'fileId', 'fileHash', 'paragraphs', 'words', 'characters'}
        )
        self.assertEqual(response.data['fileId'], str(file_id))
        self.assertEqual(response.data['paragraphs'], 2)
        self.assertEqual(response.data['words'], 6)
        self.assertEqual(response.data['characters'], len(text))

    def test_get_returns_same_result_as_start(self):
        file_id = self.store.add(b"Cached file text.")

        started = self.client.post(f'/files/analysis/{file_id}/start')
        fetched = self.client.get(f'/files/analysis/{file_id}')

        self.assertEqual(fetched.status_code, status.HTTP_200_OK)
        self.assertEqual(started.data, fetched.data)
        self.assertEqual(len(self.store.retrieve_calls), 1)

    def test_unknown_file_returns_404(self):
        response = self.client.get(f'/files/analysis/{uuid.uuid4()}')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response['Content-Type'], 'application/problem+json')

    def test_duplicate_text_returns_409(self):
        first_id = self.store.add(b"Same text", 'a.txt')
        second_id = uuid.uuid4()
        self.store.files[second_id] = (b"Same text", 'b.txt')
        self.client.post(f'/files/analysis/{first_id}/start')

        response = self.client.post(f'/files/analysis/{second_id}/start')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.json()['title'], 'Duplicate Content')

    def test_store_unavailable_returns_503(self):
        file_id = self.store.add(b"Some text")
        self.store.unavailable = True

        response = self.client.post(f'/files/analysis/{file_id}/start')

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.json()['status'], 503)

    def test_wordcloud_returns_png(self):
        file_id = self.store.add(b"Words words words")
        self.client.post(f'/files/analysis/{file_id}/start')

        response = self.client.get(f'/files/analysis/{file_id}/wordcloud')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'image/png')
        self.assertIn(f'{file_id}.png', response['Content-Disposition'])
        self.assertTrue(b''.join(response.streaming_content).startswith(b'\x89PNG'))

    def test_wordcloud_before_analysis_returns_409(self):
        file_id = self.store.add(b"Not analyzed")

        response = self.client.get(f'/files/analysis/{file_id}/wordcloud')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.json()['title'], 'Analysis Not Run')

    def test_wordcloud_renderer_failure_returns_502(self):
        file_id = self.store.add(b"Render me")
        self.client.post(f'/files/analysis/{file_id}/start')
        self.renderer.fail = True

        response = self.client.get(f'/files/analysis/{file_id}/wordcloud')

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)

    def test_unexpected_error_returns_500_problem(self):
        with patch('textanalysis.views.build_engine', side_effect=RuntimeError("boom")):
            response = self.client.get(f'/files/analysis/{uuid.uuid4()}')

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.json()['title'], 'Internal Server Error')

    def test_health(self):
        response = self.client.get('/health')

        self.assertEqual(response.json(), {'status': 'healthy', 'service': 'analysis'})

    def test_wordcloud_served_to_clients_accepting_png(self):
        file_id = self.store.add(b"Picture these words")
        self.client.post(f'/files/analysis/{file_id}/start')

        response = self.client.get(f'/files/analysis/{file_id}/wordcloud', HTTP_ACCEPT='image/png')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'image/png')
        self.assertTrue(b''.join(response.streaming_content).startswith(b'\x89PNG'))

    def test_wordcloud_failure_for_png_client_is_problem_payload(self):
        file_id = self.store.add(b"Not analyzed either")

        response = self.client.get(f'/files/analysis/{file_id}/wordcloud', HTTP_ACCEPT='image/png')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response['Content-Type'], 'application/problem+json')
        self.assertEqual(response.json()['title'], 'Analysis Not Run')


@override_settings(CONTENT_STORE_URL='http://storage.test', WORDCLOUD_URL='http://render.test')
class BuildEngineTests(SimpleTestCase):

    def setUp(self):
        build_engine.cache_clear()
        self.addCleanup(build_engine.cache_clear)

    def test_engine_is_wired_from_settings(self):
        engine = build_engine()

        self.assertEqual(engine.content_store.base_url, 'http://storage.test')
        self.assertEqual(engine.renderer.base_url, 'http://render.test')

    def test_engine_and_sessions_are_shared_across_requests(self):
        first = build_engine()
        second = build_engine()

        self.assertIs(first, second)
        self.assertIs(first.content_store.session, second.content_store.session)
        self.assertIs(first.renderer.session, second.renderer.session)
