"""
Content Store Service
=====================
Handles file hashing, duplicate detection, and content-addressable storage.
"""

import hashlib
import logging
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from core.exceptions import NotFound
from filestore.models import StoredFile

logger = logging.getLogger(__name__)


CHUNK_SIZE = 65536  # 64KB for memory-efficient hashing


class ContentStore:
    """
    Store and retrieve payloads by logical id, deduplicated by content hash.

    Store Algorithm:
    1. Hash computation: MD5 over the payload, read in chunks
    2. Duplicate detection: look up StoredFile by hash
    3. Existing content: return the existing record, nothing is written
    4. New content: save payload to its CAS path, insert the record
    5. Insert race: the unique index on content_hash rejects the loser,
       whose payload is removed and the winner's record returned
    """

    @staticmethod
    def compute_hash(file_obj) -> str:
        """
        Compute MD5 hash of file content.

        Uses chunked reading for memory efficiency.
        Resets file pointer after hashing.

        Args:
            file_obj: Django UploadedFile or file-like object

        Returns:
            str: Hexadecimal MD5 hash
        """
        md5 = hashlib.md5()
        for chunk in iter(lambda: file_obj.read(CHUNK_SIZE), b''):
            md5.update(chunk)
        file_obj.seek(0)  # Reset for subsequent operations
        return md5.hexdigest()

    @classmethod
    def store(cls, file_obj, name: str) -> tuple[StoredFile, bool]:
        """
        Store a payload, deduplicating by content.

        Args:
            file_obj: Django UploadedFile or File wrapping the payload
            name: Client-supplied filename

        Returns:
            tuple: (StoredFile instance, created boolean). created is False
            when the same bytes were already stored, under any name.
        """
        content_hash = cls.compute_hash(file_obj)

        existing = StoredFile.objects.filter(content_hash=content_hash).first()
        if existing:
            logger.info(f"Content {content_hash} already stored as {existing.id}")
            return existing, False

        record = StoredFile(
            name=name,
            content_hash=content_hash,
            size=file_obj.size,
        )
        record.file.save(name, file_obj, save=False)

        try:
            with transaction.atomic():
                record.save(force_insert=True)
        except IntegrityError:
            # A concurrent store of the same bytes inserted first
            record.file.delete(save=False)
            winner = StoredFile.objects.filter(content_hash=content_hash).first()
            if winner is None:
                raise
            logger.info(f"Content {content_hash} stored concurrently as {winner.id}")
            return winner, False

        logger.info(f"Stored {name} as {record.id} ({record.size} bytes)")
        return record, True

    @staticmethod
    def retrieve(file_id) -> StoredFile:
        """
        Look up a stored file by id.

        Raises:
            NotFound: if no record has this id
        """
        try:
            record = StoredFile.objects.filter(pk=file_id).first()
        except DjangoValidationError:
            record = None
        if record is None:
            raise NotFound(f"File {file_id} not found")
        return record

    @classmethod
    def open_payload(cls, file_id):
        """
        Open the payload of a stored file for streaming.

        Returns:
            tuple: (binary file object, original name)
        """
        record = cls.retrieve(file_id)
        return record.file.open('rb'), record.name
