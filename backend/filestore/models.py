"""
Content Store Models
====================
StoredFile is both the logical identity (id) and the content identity
(content_hash) of an uploaded payload. Records are append-only: never
updated, never deleted, so an id's bytes never change.
"""

from django.db import models
import uuid


def content_addressable_path(instance, filename):
    """
    Generate storage path for content-addressable file.
    Path structure: cas/{hash[0:2]}/{hash[2:4]}/{hash}.{ext}
    """
    hash_value = instance.content_hash
    ext = filename.split('.')[-1] if '.' in filename else ''

    if ext:
        return f"cas/{hash_value[:2]}/{hash_value[2:4]}/{hash_value}.{ext}"
    return f"cas/{hash_value[:2]}/{hash_value[2:4]}/{hash_value}"


class StoredFile(models.Model):
    """
    A stored payload with its client-supplied name.
    One record per distinct byte sequence; the unique index on
    content_hash is what keeps concurrent uploads of the same bytes
    from creating two records.
    """
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False
    )
    name = models.CharField(
        max_length=255,
        help_text="Original filename as uploaded by the client"
    )
    content_hash = models.CharField(
        max_length=32,
        unique=True,
        help_text="MD5 hash of file content"
    )
    file = models.FileField(
        upload_to=content_addressable_path,
        max_length=255,
        help_text="Path to physical file in content-addressable storage"
    )
    size = models.BigIntegerField(
        help_text="File size in bytes"
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When this content was first stored"
    )

    class Meta:
        verbose_name = "Stored File"
        verbose_name_plural = "Stored Files"

    def __str__(self):
        return f"{self.name} ({self.content_hash[:12]}..., {self.size} bytes)"
