import logging

from django.conf import settings
from django.http import FileResponse
from rest_framework import status
from rest_framework.parsers import MultiPartParser
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import ValidationError
from core.negotiation import BinaryContentNegotiation
from .serializers import StoredFileIdSerializer
from .services import ContentStore

logger = logging.getLogger(__name__)


def get_max_upload_size():
    """Get max upload size from settings, default 10MB."""
    return getattr(settings, 'FILE_UPLOAD_MAX_SIZE', 10 * 1024 * 1024)


def format_file_size(size_bytes):
    """Format bytes as human-readable string."""
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size_bytes < 1024:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.1f} TB"


class StoreView(APIView):
    """
    POST /files/store

    Accepts a multipart payload with a single `file` field and returns
    {"id": ...}.

    Status codes:
    - 201 Created: the bytes were not stored before, a new id was issued
    - 200 OK: the bytes were already stored, the existing id is returned

    Both are success answers with the same body. Clients should treat any
    2xx as success rather than expecting 200 only.
    """
    parser_classes = [MultiPartParser]

    def post(self, request):
        file_obj = request.FILES.get('file')
        if not file_obj:
            raise ValidationError('No file provided')

        max_size = get_max_upload_size()
        if file_obj.size > max_size:
            raise ValidationError(
                'File size exceeds maximum allowed',
                details={
                    'file_size': file_obj.size,
                    'file_size_formatted': format_file_size(file_obj.size),
                    'max_size': max_size,
                    'max_size_formatted': format_file_size(max_size),
                },
            )

        record, created = ContentStore.store(file_obj, file_obj.name)

        serializer = StoredFileIdSerializer(record)
        return Response(
            serializer.data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK
        )


class FileDownloadView(APIView):
    """
    GET /files/file/{id}

    Streams the stored bytes back as application/octet-stream with the
    original filename as the suggested download name. Any Accept header
    is served the same bytes.
    """
    content_negotiation_class = BinaryContentNegotiation

    def get(self, request, file_id):
        payload, name = ContentStore.open_payload(file_id)
        return FileResponse(
            payload,
            as_attachment=True,
            filename=name,
            content_type='application/octet-stream',
        )
