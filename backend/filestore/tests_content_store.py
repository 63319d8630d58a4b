"""
Unit Tests for the Content Store
================================
Tests cover:
- Hash computation
- Store with deduplication
- Store race on the unique content hash
- Retrieve by id
- HTTP surface: store, retrieve, size validation, health
"""

import hashlib
import os
import shutil
import tempfile
import uuid
from unittest.mock import patch

from django.core.files.base import ContentFile
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from core.exceptions import NotFound
from filestore.models import StoredFile
from filestore.services import ContentStore


# Create a temporary media root for tests
TEST_MEDIA_ROOT = tempfile.mkdtemp()


def _create_test_file(content: bytes, filename: str = 'test.txt') -> SimpleUploadedFile:
    """Helper to create a test upload."""
    content_type = 'image/png' if filename.endswith('.png') else 'text/plain'
    return SimpleUploadedFile(filename, content, content_type=content_type)


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT)
class ContentStoreServiceTests(TestCase):
    """Tests for the ContentStore service."""

    @classmethod
    def tearDownClass(cls):
        """Clean up temporary media directory after all tests."""
        super().tearDownClass()
        shutil.rmtree(TEST_MEDIA_ROOT, ignore_errors=True)

    # ===================
    # Hash Computation Tests
    # ===================

    def test_compute_hash_returns_md5(self):
        """Hash computation should return a 128-bit hex string."""
        computed_hash = ContentStore.compute_hash(_create_test_file(b"Hello, World!"))

        self.assertEqual(len(computed_hash), 32)
        self.assertTrue(all(c in '0123456789abcdef' for c in computed_hash))

    def test_compute_hash_matches_expected(self):
        """Hash should match independently computed MD5."""
        content = b"Test content for hashing"

        computed_hash = ContentStore.compute_hash(_create_test_file(content))

        self.assertEqual(computed_hash, hashlib.md5(content).hexdigest())

    def test_compute_hash_resets_file_pointer(self):
        """File pointer should be reset to beginning after hashing."""
        content = b"Test content"
        file_obj = _create_test_file(content)

        ContentStore.compute_hash(file_obj)

        self.assertEqual(file_obj.read(), content)

    # ===================
    # Store Tests
    # ===================

    def test_store_new_content_creates_record(self):
        """Storing new content should create one StoredFile."""
        record, created = ContentStore.store(_create_test_file(b"New unique content"), 'test.txt')

        self.assertTrue(created)
        self.assertEqual(StoredFile.objects.count(), 1)
        self.assertEqual(record.name, 'test.txt')
        self.assertEqual(record.size, len(b"New unique content"))

    def test_store_same_bytes_twice_returns_same_id(self):
        """Storing identical bytes twice should resolve to the same id."""
        first, created_first = ContentStore.store(_create_test_file(b"hello"), 'a.txt')
        second, created_second = ContentStore.store(_create_test_file(b"hello"), 'a.txt')

        self.assertTrue(created_first)
        self.assertFalse(created_second)
        self.assertEqual(first.id, second.id)
        self.assertEqual(StoredFile.objects.count(), 1)

    def test_store_different_name_same_content_deduplicates(self):
        """The name is not part of identity: first name wins."""
        first, _ = ContentStore.store(_create_test_file(b"Same content", 'report.txt'), 'report.txt')
        second, created = ContentStore.store(_create_test_file(b"Same content", 'backup.txt'), 'backup.txt')

        self.assertFalse(created)
        self.assertEqual(first.id, second.id)
        self.assertEqual(second.name, 'report.txt')

    def test_store_same_name_different_content_creates_both(self):
        """Same filename with different content should create separate records."""
        first, _ = ContentStore.store(_create_test_file(b"Version 1", 'data.txt'), 'data.txt')
        second, _ = ContentStore.store(_create_test_file(b"Version 2", 'data.txt'), 'data.txt')

        self.assertNotEqual(first.id, second.id)
        self.assertEqual(StoredFile.objects.count(), 2)

    def test_store_empty_files_deduplicate(self):
        """All empty payloads share one record."""
        ContentStore.store(_create_test_file(b"", 'empty1.txt'), 'empty1.txt')
        _, created = ContentStore.store(_create_test_file(b"", 'empty2.txt'), 'empty2.txt')

        self.assertFalse(created)
        self.assertEqual(StoredFile.objects.count(), 1)

    def test_store_accepts_plain_django_file(self):
        """Internal callers may pass a ContentFile instead of an upload."""
        record, created = ContentStore.store(ContentFile(b"\x89PNG data", name='cloud.png'), 'cloud.png')

        self.assertTrue(created)
        self.assertEqual(record.file.read(), b"\x89PNG data")

    def test_store_uses_cas_path(self):
        """Payload should be stored in its content-addressable path."""
        record, _ = ContentStore.store(_create_test_file(b"CAS test"), 'test.txt')

        content_hash = record.content_hash
        expected_path_pattern = f"cas/{content_hash[:2]}/{content_hash[2:4]}/{content_hash}"
        self.assertIn(expected_path_pattern, record.file.name)

    def test_store_race_resolves_to_existing_record(self):
        """
        A store that misses the lookup but loses the insert should return
        the winner's id and remove its own payload.
        """
        winner, _ = ContentStore.store(_create_test_file(b"racing bytes"), 'first.txt')

        real_filter = StoredFile.objects.filter
        stale = [True]

        def stale_lookup(*args, **kwargs):
            # The first lookup runs before the concurrent insert became visible
            if stale:
                stale.pop()
                return StoredFile.objects.none()
            return real_filter(*args, **kwargs)

        with patch.object(StoredFile.objects, 'filter', side_effect=stale_lookup):
            record, created = ContentStore.store(_create_test_file(b"racing bytes"), 'second.txt')

        self.assertFalse(created)
        self.assertEqual(record.id, winner.id)
        self.assertEqual(StoredFile.objects.count(), 1)
        self.assertEqual(os.listdir(os.path.dirname(winner.file.path)), [os.path.basename(winner.file.name)])

    # ===================
    # Retrieve Tests
    # ===================

    def test_open_payload_returns_exact_payload_and_name(self):
        record, _ = ContentStore.store(_create_test_file(b"payload \xe2\x9c\x93", 'check.txt'), 'check.txt')

        payload, name = ContentStore.open_payload(record.id)
        with payload:
            data = payload.read()

        self.assertEqual(data, b"payload \xe2\x9c\x93")
        self.assertEqual(name, 'check.txt')

    def test_retrieve_unknown_id_raises_not_found(self):
        with self.assertRaises(NotFound):
            ContentStore.retrieve(uuid.uuid4())

    def test_retrieve_malformed_id_raises_not_found(self):
        with self.assertRaises(NotFound):
            ContentStore.retrieve('not-a-uuid')


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT, ROOT_URLCONF='core.urls.storage')
class ContentStoreAPITests(APITestCase):
    """Tests for the Content Store HTTP surface."""

    def _store(self, content, filename='test.txt'):
        return self.client.post(
            '/files/store',
            {'file': _create_test_file(content, filename)},
            format='multipart'
        )

    def test_store_returns_id(self):
        response = self._store(b"hello")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(set(response.data), {'id'})
        self.assertTrue(StoredFile.objects.filter(pk=response.data['id']).exists())

    def test_store_duplicate_returns_existing_id(self):
        first = self._store(b"hello", 'a.txt')
        second = self._store(b"hello", 'b.txt')

        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertEqual(first.data['id'], second.data['id'])
        self.assertEqual(StoredFile.objects.count(), 1)

    def test_store_without_file_returns_problem(self):
        response = self.client.post('/files/store', {}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response['Content-Type'], 'application/problem+json')
        self.assertEqual(response.json()['detail'], 'No file provided')

    @override_settings(FILE_UPLOAD_MAX_SIZE=10)
    def test_store_rejects_oversized_file(self):
        response = self._store(b"x" * 11)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['details']['max_size'], 10)
        self.assertEqual(StoredFile.objects.count(), 0)

    def test_retrieve_returns_bytes_with_original_name(self):
        file_id = self._store(b"raw bytes", 'notes.txt').data['id']

        response = self.client.get(f'/files/file/{file_id}')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/octet-stream')
        self.assertIn('notes.txt', response['Content-Disposition'])
        self.assertEqual(b''.join(response.streaming_content), b"raw bytes")

    def test_retrieve_serves_clients_accepting_octet_stream(self):
        file_id = self._store(b"hello").data['id']

        response = self.client.get(f'/files/file/{file_id}', HTTP_ACCEPT='application/octet-stream')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(b''.join(response.streaming_content), b"hello")

    def test_retrieve_unknown_id_returns_404(self):
        response = self.client.get(f'/files/file/{uuid.uuid4()}')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.json()['title'], 'Not Found')

    def test_retrieve_unknown_id_for_octet_stream_client_is_problem_payload(self):
        response = self.client.get(f'/files/file/{uuid.uuid4()}', HTTP_ACCEPT='application/octet-stream')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response['Content-Type'], 'application/problem+json')

    def test_unmatched_path_returns_problem_payload(self):
        response = self.client.get('/files/file/not-a-uuid')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response['Content-Type'], 'application/problem+json')
        self.assertEqual(response.json()['status'], 404)

    def test_health(self):
        response = self.client.get('/health')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json(), {'status': 'healthy', 'service': 'storage'})
