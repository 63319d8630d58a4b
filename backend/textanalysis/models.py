from django.db import models


class AnalysisRecord(models.Model):
    """
    Cached statistics for one stored file.

    Created once per file id and never recomputed. artifact_id is the only
    field that changes after creation: NULL until the first word cloud is
    generated, then set exactly once.
    """
    file_id = models.UUIDField(
        primary_key=True,
        help_text="Id of the analyzed file in the Content Store"
    )
    file_hash = models.CharField(
        max_length=64,
        unique=True,
        help_text="SHA-256 hash of the decoded text"
    )
    paragraph_count = models.PositiveIntegerField()
    word_count = models.PositiveIntegerField()
    character_count = models.PositiveIntegerField()
    artifact_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="Id of the word cloud image in the Content Store"
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When the analysis was first run"
    )

    class Meta:
        verbose_name = "Analysis Record"
        verbose_name_plural = "Analysis Records"

    def __str__(self):
        return (
            f"{self.file_id}: {self.paragraph_count} paragraphs, "
            f"{self.word_count} words, {self.character_count} characters"
        )

    @property
    def has_artifact(self):
        return self.artifact_id is not None
