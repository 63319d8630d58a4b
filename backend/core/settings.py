"""
Django settings for the word-cloud file pipeline.

One code base, three services. SERVICE_ROLE picks which URL conf is served:

- storage:  Content Store (upload, deduplicate, retrieve)
- analysis: Analysis Engine (text statistics, word-cloud cache)
- gateway:  routing layer in front of the two

All values come from environment variables with development defaults.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.lower() in ('1', 'true', 'yes', 'on')


def env_list(name, default=''):
    return [item.strip() for item in os.environ.get(name, default).split(',') if item.strip()]


SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'dev-only-insecure-secret-key')

DEBUG = env_bool('DJANGO_DEBUG', False)

ALLOWED_HOSTS = env_list('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver')

SERVICE_ROLE = os.environ.get('SERVICE_ROLE', 'gateway')

SERVICE_URLCONFS = {
    'storage': 'core.urls.storage',
    'analysis': 'core.urls.analysis',
    'gateway': 'core.urls.gateway',
}

if SERVICE_ROLE not in SERVICE_URLCONFS:
    raise ValueError(
        f"Unknown SERVICE_ROLE '{SERVICE_ROLE}', expected one of: "
        f"{', '.join(sorted(SERVICE_URLCONFS))}"
    )

ROOT_URLCONF = SERVICE_URLCONFS[SERVICE_ROLE]

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'rest_framework',
    'filestore',
    'textanalysis',
    'gateway',
]

MIDDLEWARE = [
    'core.middleware.RequestLoggingMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

# Gateway paths are forwarded verbatim, never redirected to a slash variant
APPEND_SLASH = False

WSGI_APPLICATION = 'core.wsgi.application'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {'context_processors': []},
    },
]


# Database
# SQLite for development, PostgreSQL when DB_ENGINE=postgresql.
# Storage and analysis deployments are expected to point at separate databases.

DB_ENGINE = os.environ.get('DB_ENGINE', 'sqlite3')

if DB_ENGINE == 'postgresql':
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.environ.get('DB_NAME', 'filepipeline'),
            'USER': os.environ.get('DB_USER', 'postgres'),
            'PASSWORD': os.environ.get('DB_PASSWORD', ''),
            'HOST': os.environ.get('DB_HOST', 'localhost'),
            'PORT': os.environ.get('DB_PORT', '5432'),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': os.environ.get('DB_NAME', str(BASE_DIR / f'db-{SERVICE_ROLE}.sqlite3')),
        }
    }

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

USE_TZ = True
TIME_ZONE = 'UTC'


MEDIA_ROOT = os.environ.get('MEDIA_ROOT', str(BASE_DIR / 'media'))


# Django REST Framework

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [],
    'DEFAULT_PERMISSION_CLASSES': ['rest_framework.permissions.AllowAny'],
    'DEFAULT_RENDERER_CLASSES': ['rest_framework.renderers.JSONRenderer'],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
        'rest_framework.parsers.MultiPartParser',
    ],
    'EXCEPTION_HANDLER': 'core.exceptions.problem_exception_handler',
    'UNAUTHENTICATED_USER': None,
}


# Content Store

FILE_UPLOAD_MAX_SIZE = int(os.environ.get('FILE_UPLOAD_MAX_SIZE', 10 * 1024 * 1024))


# Analysis Engine

CONTENT_STORE_URL = os.environ.get('CONTENT_STORE_URL', 'http://localhost:8001')
CONTENT_STORE_TIMEOUT = float(os.environ.get('CONTENT_STORE_TIMEOUT', '30'))

WORDCLOUD_URL = os.environ.get('WORDCLOUD_URL', 'https://quickchart.io')
WORDCLOUD_TIMEOUT = float(os.environ.get('WORDCLOUD_TIMEOUT', '60'))
WORDCLOUD_SIZE = int(os.environ.get('WORDCLOUD_SIZE', '600'))


# Gateway
# Upstreams are resolved by name; routes may change without touching the
# storage or analysis deployments.

GATEWAY_UPSTREAMS = {
    'storage': {
        'base_url': os.environ.get('GATEWAY_STORAGE_URL', CONTENT_STORE_URL),
        'headers': {'Accept': 'application/json'},
        'timeout': float(os.environ.get('GATEWAY_STORAGE_TIMEOUT', '60')),
    },
    'analysis': {
        'base_url': os.environ.get('GATEWAY_ANALYSIS_URL', 'http://localhost:8002'),
        'headers': {'Accept': 'application/json'},
        'timeout': float(os.environ.get('GATEWAY_ANALYSIS_TIMEOUT', '120')),
    },
}

GATEWAY_ROUTES = [
    {
        'path': 'files/store',
        'methods': ['POST'],
        'upstream': 'storage',
        'upstream_path': '/files/store',
    },
    {
        'path': 'files/file/<uuid:id>',
        'methods': ['GET'],
        'upstream': 'storage',
        'upstream_path': '/files/file/{id}',
    },
    {
        'path': 'files/analysis/<uuid:fileId>/start',
        'methods': ['POST'],
        'upstream': 'analysis',
        'upstream_path': '/files/analysis/{fileId}/start',
    },
    {
        'path': 'files/analysis/<uuid:fileId>',
        'methods': ['GET'],
        'upstream': 'analysis',
        'upstream_path': '/files/analysis/{fileId}',
    },
    {
        'path': 'files/analysis/<uuid:fileId>/wordcloud',
        'methods': ['GET'],
        'upstream': 'analysis',
        'upstream_path': '/files/analysis/{fileId}/wordcloud',
    },
]


# Request logging

SLOW_REQUEST_THRESHOLD_MS = int(os.environ.get('SLOW_REQUEST_THRESHOLD_MS', '2000'))

LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': os.environ.get('DJANGO_LOG_LEVEL', 'WARNING'),
            'propagate': False,
        },
    },
}
