from django.urls import path
from .views import StoreView, FileDownloadView

urlpatterns = [
    path('store', StoreView.as_view(), name='file-store'),
    path('file/<uuid:file_id>', FileDownloadView.as_view(), name='file-retrieve'),
]
