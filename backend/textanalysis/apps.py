"""
Analysis Engine app configuration.
"""

from django.apps import AppConfig


class TextanalysisConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'textanalysis'
    verbose_name = 'Analysis Engine'
