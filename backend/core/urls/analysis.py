from django.urls import path, include

from core.views import HealthView

urlpatterns = [
    path('files/analysis/', include('textanalysis.urls')),
    path('health', HealthView.as_view(service='analysis'), name='health'),
]

handler404 = 'core.views.not_found'
handler500 = 'core.views.server_error'
