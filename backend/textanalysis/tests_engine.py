"""
Unit Tests for the Analysis Engine
==================================
Tests cover:
- Statistics computation and per-file caching
- Duplicate text rejection across file ids
- Content Store failures during analysis
- Insert race on the file id
- Word cloud generation, caching and retry after renderer failure
- Artifact compare-and-set when another writer wins
- One render per file when requests arrive concurrently
"""

import hashlib
import threading
import uuid
from contextlib import contextmanager

from django.db import connections
from django.test import TestCase, TransactionTestCase

from core.exceptions import (
    AnalysisNotRun,
    ArtifactGenerationFailed,
    DuplicateContent,
    NotFound,
    UpstreamUnavailable,
)
from textanalysis.models import AnalysisRecord
from textanalysis.services import AnalysisEngine
from textanalysis.services.engine import KeyedLocks


class InMemoryContentStore:
    """Content Store double: deduplicating dict of payloads."""

    def __init__(self):
        self.files = {}
        self.ids_by_hash = {}
        self.retrieve_calls = []
        self.store_calls = []
        self.unavailable = False
        self.on_retrieve = None

    def add(self, data: bytes, name='test.txt'):
        content_hash = hashlib.md5(data).hexdigest()
        if content_hash in self.ids_by_hash:
            return self.ids_by_hash[content_hash]
        file_id = uuid.uuid4()
        self.files[file_id] = (data, name)
        self.ids_by_hash[content_hash] = file_id
        return file_id

    def retrieve(self, file_id):
        self.retrieve_calls.append(file_id)
        if self.unavailable:
            raise UpstreamUnavailable("Content Store is unavailable")
        if file_id not in self.files:
            raise NotFound(f"File {file_id} not found")
        if self.on_retrieve:
            self.on_retrieve(file_id)
        return self.files[file_id]

    def store(self, data, name, content_type='application/octet-stream'):
        self.store_calls.append((name, content_type))
        if self.unavailable:
            raise UpstreamUnavailable("Content Store is unavailable")
        return self.add(data, name)


class RecordingRenderer:
    """Renderer double: records token streams, returns a fake PNG."""

    def __init__(self):
        self.calls = []
        self.fail = False
        self.on_render = None

    def render(self, tokens):
        self.calls.append(list(tokens))
        if self.fail:
            raise ArtifactGenerationFailed("Word cloud renderer answered 500")
        if self.on_render:
            self.on_render()
        return b'\x89PNG' + ','.join(tokens).encode('utf-8')


class AnalysisEngineTestMixin:

    def setUp(self):
        self.store = InMemoryContentStore()
        self.renderer = RecordingRenderer()
        self.engine = AnalysisEngine(content_store=self.store, renderer=self.renderer)


class AnalyzeTests(AnalysisEngineTestMixin, TestCase):
    """Tests for AnalysisEngine.analyze."""

    def test_calculates_statistics(self):
        text = "Hello world.\n\nThis is a test."
        file_id = self.store.add(text.encode('utf-8'))

        record = self.engine.analyze(file_id)

        self.assertEqual(record.paragraph_count, 2)
        self.assertEqual(record.word_count, 6)
        self.assertEqual(record.character_count, len(text))
        self.assertEqual(record.file_hash, hashlib.sha256(text.encode('utf-8')).hexdigest())

    def test_returns_cached_record_without_refetching(self):
        file_id = self.store.add(b"Cached file text.")

        first = self.engine.analyze(file_id)
        second = self.engine.analyze(file_id)

        self.assertEqual(first.file_hash, second.file_hash)
        self.assertEqual(first.character_count, second.character_count)
        self.assertEqual(len(self.store.retrieve_calls), 1)
        self.assertEqual(AnalysisRecord.objects.count(), 1)

    def test_accepts_string_id(self):
        file_id = self.store.add(b"String ids work too.")

        record = self.engine.analyze(str(file_id))

        self.assertEqual(record.file_id, file_id)

    def test_duplicate_text_under_another_id_is_rejected(self):
        first_id = self.store.add(b"Same hash text.", 'a.txt')
        # Same text reachable under a second id
        second_id = uuid.uuid4()
        self.store.files[second_id] = (b"Same hash text.", 'b.txt')

        self.engine.analyze(first_id)

        with self.assertRaises(DuplicateContent):
            self.engine.analyze(second_id)
        self.assertFalse(AnalysisRecord.objects.filter(pk=second_id).exists())

    def test_unknown_file_raises_not_found(self):
        with self.assertRaises(NotFound):
            self.engine.analyze(uuid.uuid4())
        self.assertEqual(AnalysisRecord.objects.count(), 0)

    def test_malformed_id_raises_not_found(self):
        with self.assertRaises(NotFound):
            self.engine.analyze('not-a-uuid')

    def test_unreachable_store_raises_upstream_unavailable(self):
        file_id = self.store.add(b"Some text")
        self.store.unavailable = True

        with self.assertRaises(UpstreamUnavailable):
            self.engine.analyze(file_id)
        self.assertEqual(AnalysisRecord.objects.count(), 0)

    def test_concurrent_insert_for_same_id_returns_stored_record(self):
        text = "Racing analysis."
        file_id = self.store.add(text.encode('utf-8'))

        def finish_concurrently(retrieved_id):
            # Another request stores the record while this one is fetching
            AnalysisRecord.objects.create(
                file_id=retrieved_id,
                file_hash=hashlib.sha256(text.encode('utf-8')).hexdigest(),
                paragraph_count=1,
                word_count=2,
                character_count=len(text),
            )

        self.store.on_retrieve = finish_concurrently

        record = self.engine.analyze(file_id)

        self.assertEqual(record.file_id, file_id)
        self.assertEqual(AnalysisRecord.objects.count(), 1)


class EnsureArtifactTests(AnalysisEngineTestMixin, TestCase):
    """Tests for AnalysisEngine.ensure_artifact."""

    def _analyzed_file(self, text="Hello, World! hello_world"):
        file_id = self.store.add(text.encode('utf-8'))
        self.engine.analyze(file_id)
        return file_id

    def test_requires_analysis(self):
        file_id = self.store.add(b"Never analyzed")

        with self.assertRaises(AnalysisNotRun):
            self.engine.ensure_artifact(file_id)
        self.assertEqual(self.renderer.calls, [])

    def test_first_call_generates_and_stores_once(self):
        file_id = self._analyzed_file()
        files_before = len(self.store.files)

        image, name = self.engine.ensure_artifact(file_id)

        record = AnalysisRecord.objects.get(pk=file_id)
        self.assertEqual(name, f"{file_id}.png")
        self.assertTrue(image.startswith(b'\x89PNG'))
        self.assertEqual(len(self.store.files), files_before + 1)
        self.assertEqual(self.store.files[record.artifact_id][0], image)
        self.assertEqual(self.store.store_calls, [(f"{file_id}.png", 'image/png')])

    def test_renderer_receives_normalized_tokens(self):
        file_id = self._analyzed_file("Hello, World! hello_world")

        self.engine.ensure_artifact(file_id)

        self.assertEqual(self.renderer.calls, [['hello', 'world', 'hello', 'world']])

    def test_second_call_serves_cached_artifact(self):
        file_id = self._analyzed_file()

        first, _ = self.engine.ensure_artifact(file_id)
        artifact_id = AnalysisRecord.objects.get(pk=file_id).artifact_id
        second, _ = self.engine.ensure_artifact(file_id)

        self.assertEqual(first, second)
        self.assertEqual(len(self.renderer.calls), 1)
        self.assertEqual(len(self.store.store_calls), 1)
        self.assertEqual(AnalysisRecord.objects.get(pk=file_id).artifact_id, artifact_id)

    def test_renderer_failure_leaves_record_untouched_and_is_retryable(self):
        file_id = self._analyzed_file()
        self.renderer.fail = True

        with self.assertRaises(ArtifactGenerationFailed):
            self.engine.ensure_artifact(file_id)
        self.assertIsNone(AnalysisRecord.objects.get(pk=file_id).artifact_id)
        self.assertEqual(self.store.store_calls, [])

        self.renderer.fail = False
        image, _ = self.engine.ensure_artifact(file_id)

        self.assertIsNotNone(AnalysisRecord.objects.get(pk=file_id).artifact_id)
        self.assertTrue(image.startswith(b'\x89PNG'))

    def test_artifact_set_by_another_writer_is_never_overwritten(self):
        file_id = self._analyzed_file()
        winner_id = self.store.add(b'\x89PNG winner image', 'winner.png')

        def other_writer_finishes_first():
            AnalysisRecord.objects.filter(pk=file_id).update(artifact_id=winner_id)

        self.renderer.on_render = other_writer_finishes_first

        image, _ = self.engine.ensure_artifact(file_id)

        self.assertEqual(image, b'\x89PNG winner image')
        self.assertEqual(AnalysisRecord.objects.get(pk=file_id).artifact_id, winner_id)


class KeyedLocksTests(TestCase):

    def test_entries_are_released_after_use(self):
        locks = KeyedLocks()

        with locks.hold('a'):
            with locks.hold('b'):
                self.assertEqual(set(locks._locks), {'a', 'b'})

        self.assertEqual(locks._locks, {})

    def test_entry_released_when_body_raises(self):
        locks = KeyedLocks()

        with self.assertRaises(RuntimeError):
            with locks.hold('a'):
                raise RuntimeError("boom")

        self.assertEqual(locks._locks, {})


class ObservedLocks(KeyedLocks):
    """KeyedLocks that signals once the expected number of callers asked for a key."""

    def __init__(self, expected):
        super().__init__()
        self.expected = expected
        self.requested = 0
        self.all_requested = threading.Event()
        self._count_guard = threading.Lock()

    @contextmanager
    def hold(self, key):
        with self._count_guard:
            self.requested += 1
            if self.requested >= self.expected:
                self.all_requested.set()
        with super().hold(key):
            yield


class ConcurrentArtifactTests(TransactionTestCase):
    """ensure_artifact called from two threads for the same file."""

    def test_concurrent_requests_render_and_store_once(self):
        store = InMemoryContentStore()
        renderer = RecordingRenderer()
        locks = ObservedLocks(expected=2)
        engine = AnalysisEngine(content_store=store, renderer=renderer, locks=locks)
        file_id = store.add(b"Render me once, not twice")
        engine.analyze(file_id)

        rendering = threading.Event()
        release = threading.Event()

        def block_until_released():
            rendering.set()
            release.wait(timeout=5)

        renderer.on_render = block_until_released
        results = []
        errors = []

        def request_artifact():
            try:
                results.append(engine.ensure_artifact(file_id))
            except Exception as e:
                errors.append(e)
            finally:
                connections.close_all()

        threads = [threading.Thread(target=request_artifact) for _ in range(2)]
        for thread in threads:
            thread.start()

        # Both callers are at the lock and one of them is inside the renderer
        self.assertTrue(locks.all_requested.wait(timeout=5))
        self.assertTrue(rendering.wait(timeout=5))
        release.set()
        for thread in threads:
            thread.join(timeout=10)

        self.assertEqual(errors, [])
        self.assertEqual(len(results), 2)
        self.assertEqual(len(renderer.calls), 1)
        self.assertEqual(store.store_calls, [(f"{file_id}.png", 'image/png')])
        self.assertEqual(results[0], results[1])
        record = AnalysisRecord.objects.get(pk=file_id)
        self.assertEqual(store.files[record.artifact_id][0], results[0][0])
