from rest_framework import serializers
from .models import AnalysisRecord


class AnalysisRecordSerializer(serializers.ModelSerializer):
    """
    Serializer for AnalysisRecord.
    Field names follow the public API: fileId, fileHash, paragraphs, words, characters.
    """
    fileId = serializers.UUIDField(source='file_id', read_only=True)
    fileHash = serializers.CharField(source='file_hash', read_only=True)
    paragraphs = serializers.IntegerField(source='paragraph_count', read_only=True)
    words = serializers.IntegerField(source='word_count', read_only=True)
    characters = serializers.IntegerField(source='character_count', read_only=True)

    class Meta:
        model = AnalysisRecord
        fields = ['fileId', 'fileHash', 'paragraphs', 'words', 'characters']
        read_only_fields = fields
