from django.urls import path, include

from core.views import HealthView

urlpatterns = [
    path('files/', include('filestore.urls')),
    path('health', HealthView.as_view(service='storage'), name='health'),
]

handler404 = 'core.views.not_found'
handler500 = 'core.views.server_error'
