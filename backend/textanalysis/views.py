import io
import logging
from functools import lru_cache

from django.conf import settings
from django.http import FileResponse
from rest_framework.response import Response
from rest_framework.views import APIView

from core.negotiation import BinaryContentNegotiation

from .serializers import AnalysisRecordSerializer
from .services import AnalysisEngine, ContentStoreClient, QuickChartRenderer

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def build_engine():
    """
    Wire the process-wide AnalysisEngine from the service configuration.

    The clients keep their requests sessions, so connections to the
    Content Store and the renderer are pooled across requests.
    """
    content_store = ContentStoreClient(
        base_url=settings.CONTENT_STORE_URL,
        timeout=getattr(settings, 'CONTENT_STORE_TIMEOUT', 30.0),
    )
    renderer = QuickChartRenderer(
        base_url=getattr(settings, 'WORDCLOUD_URL', 'https://quickchart.io'),
        timeout=getattr(settings, 'WORDCLOUD_TIMEOUT', 60.0),
        size=getattr(settings, 'WORDCLOUD_SIZE', 600),
    )
    return AnalysisEngine(content_store=content_store, renderer=renderer)


class AnalysisEngineMixin:

    def get_engine(self):
        return build_engine()


class StartAnalysisView(AnalysisEngineMixin, APIView):
    """
    POST /files/analysis/{fileId}/start

    Runs the analysis, or returns the cached record if it already ran.
    """

    def post(self, request, file_id):
        record = self.get_engine().analyze(file_id)
        return Response(AnalysisRecordSerializer(record).data)


class AnalysisView(AnalysisEngineMixin, APIView):
    """
    GET /files/analysis/{fileId}

    Idempotent re-read of the analysis; computes it on first request.
    """

    def get(self, request, file_id):
        record = self.get_engine().analyze(file_id)
        return Response(AnalysisRecordSerializer(record).data)


class WordCloudView(AnalysisEngineMixin, APIView):
    """
    GET /files/analysis/{fileId}/wordcloud

    Returns the word-cloud PNG, generating and caching it on first request.
    """
    content_negotiation_class = BinaryContentNegotiation

    def get(self, request, file_id):
        image, name = self.get_engine().ensure_artifact(file_id)
        return FileResponse(
            io.BytesIO(image),
            filename=name,
            content_type='image/png',
        )
