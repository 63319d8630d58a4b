from django.urls import path, include

from core.views import HealthView

urlpatterns = [
    # Answered locally, never forwarded
    path('health', HealthView.as_view(service='gateway'), name='health'),
    path('', include('gateway.urls')),
]

handler404 = 'core.views.not_found'
handler500 = 'core.views.server_error'
