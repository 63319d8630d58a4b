"""
Analysis Engine
===============
Computes text statistics for stored files and caches them per file id,
then derives a word-cloud image on demand and caches it back into the
Content Store.

Record Lifecycle:
1. No record: the first analyze() fetches the bytes and inserts one
2. Record without artifact: statistics are served from the cache
3. Record with artifact: ensure_artifact() serves the stored image

The insert races are settled by the database (primary key on file_id,
unique file_hash). The artifact transition is a conditional UPDATE on
artifact_id IS NULL, with generation serialized per file id inside the
process so the renderer normally runs once per file.
"""

import logging
import threading
import uuid
from contextlib import contextmanager

from django.db import IntegrityError, transaction

from core.exceptions import AnalysisNotRun, DuplicateContent, NotFound
from textanalysis.models import AnalysisRecord
from .text import compute_statistics, decode_text, text_hash, tokenize

logger = logging.getLogger(__name__)


class KeyedLocks:
    """Mutual exclusion per key; entries are dropped once nobody holds them."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}

    @contextmanager
    def hold(self, key):
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]


generation_locks = KeyedLocks()


def artifact_name(file_id) -> str:
    return f"{file_id}.png"


class AnalysisEngine:
    """
    Statistics and word-cloud cache keyed by Content Store file id.

    Args:
        content_store: object with retrieve(file_id) -> (bytes, name) and
            store(data, name, content_type) -> id
        renderer: object with render(tokens) -> bytes
    """

    def __init__(self, content_store, renderer, locks=None):
        self.content_store = content_store
        self.renderer = renderer
        self.locks = locks or generation_locks

    @staticmethod
    def _normalize_id(file_id) -> uuid.UUID:
        try:
            return file_id if isinstance(file_id, uuid.UUID) else uuid.UUID(str(file_id))
        except ValueError:
            raise NotFound(f"File {file_id} not found")

    def analyze(self, file_id) -> AnalysisRecord:
        """
        Return the statistics record for a file, computing it on first use.

        Raises:
            NotFound: the Content Store does not know file_id
            UpstreamUnavailable: the Content Store cannot be reached
            DuplicateContent: the same text was already analyzed under
                another file id; no record is created
        """
        file_id = self._normalize_id(file_id)

        cached = AnalysisRecord.objects.filter(pk=file_id).first()
        if cached is not None:
            logger.debug(f"Analysis cache hit for {file_id}")
            return cached

        logger.info(f"Analyzing file {file_id}")
        data, _ = self.content_store.retrieve(file_id)
        text = decode_text(data)
        file_hash = text_hash(text)

        if AnalysisRecord.objects.filter(file_hash=file_hash).exclude(pk=file_id).exists():
            logger.warning(f"File {file_id} duplicates already analyzed text {file_hash[:12]}...")
            raise DuplicateContent(
                f"File {file_id} has the same text as an already analyzed file"
            )

        stats = compute_statistics(text)
        record = AnalysisRecord(
            file_id=file_id,
            file_hash=file_hash,
            paragraph_count=stats.paragraphs,
            word_count=stats.words,
            character_count=stats.characters,
        )

        try:
            with transaction.atomic():
                record.save(force_insert=True)
        except IntegrityError:
            # Lost an insert race: same id means the winner's record is ours too
            existing = AnalysisRecord.objects.filter(pk=file_id).first()
            if existing is not None:
                logger.info(f"Analysis of {file_id} completed concurrently, using stored record")
                return existing
            raise DuplicateContent(
                f"File {file_id} has the same text as an already analyzed file"
            )

        logger.info(
            f"Analysis of {file_id} complete: {stats.paragraphs} paragraphs, "
            f"{stats.words} words, {stats.characters} characters"
        )
        return record

    def ensure_artifact(self, file_id) -> tuple[bytes, str]:
        """
        Return the word-cloud image of an analyzed file, generating it once.

        Returns:
            tuple: (image bytes, suggested filename "<file_id>.png")

        Raises:
            AnalysisNotRun: analyze() has not been run for file_id
            ArtifactGenerationFailed: the renderer failed; nothing is
                recorded, so the call can be retried
            UpstreamUnavailable: the Content Store cannot be reached
        """
        file_id = self._normalize_id(file_id)
        record = AnalysisRecord.objects.filter(pk=file_id).first()
        if record is None:
            raise AnalysisNotRun(f"Run the analysis of file {file_id} first")

        name = artifact_name(file_id)
        if record.has_artifact:
            return self._read_artifact(record), name

        with self.locks.hold(file_id):
            record.refresh_from_db(fields=['artifact_id'])
            if record.has_artifact:
                return self._read_artifact(record), name

            logger.info(f"Generating word cloud for {file_id}")
            data, _ = self.content_store.retrieve(file_id)
            image = self.renderer.render(tokenize(decode_text(data)))
            artifact_id = self.content_store.store(image, name, 'image/png')

            updated = AnalysisRecord.objects.filter(
                pk=file_id, artifact_id__isnull=True
            ).update(artifact_id=artifact_id)

            if not updated:
                # Another process set the artifact first; it is never overwritten
                record.refresh_from_db(fields=['artifact_id'])
                if record.artifact_id != artifact_id:
                    logger.info(f"Word cloud for {file_id} was generated concurrently")
                    return self._read_artifact(record), name

            record.artifact_id = artifact_id
            logger.info(f"Word cloud for {file_id} stored as {artifact_id}")
            return image, name

    def _read_artifact(self, record) -> bytes:
        image, _ = self.content_store.retrieve(record.artifact_id)
        return image
