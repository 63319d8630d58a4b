"""
WSGI config.

The service that answers is selected with SERVICE_ROLE
(storage, analysis or gateway), see core.settings.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'core.settings')

application = get_wsgi_application()
