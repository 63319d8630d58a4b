from django.urls import path
from .views import AnalysisView, StartAnalysisView, WordCloudView

urlpatterns = [
    path('<uuid:file_id>/start', StartAnalysisView.as_view(), name='analysis-start'),
    path('<uuid:file_id>', AnalysisView.as_view(), name='analysis-detail'),
    path('<uuid:file_id>/wordcloud', WordCloudView.as_view(), name='analysis-wordcloud'),
]
