from rest_framework import serializers
from .models import StoredFile


class StoredFileIdSerializer(serializers.ModelSerializer):
    """Response body of a store request: only the logical id is exposed."""

    class Meta:
        model = StoredFile
        fields = ['id']
        read_only_fields = ['id']
