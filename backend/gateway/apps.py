"""
Gateway app configuration.

Checks the route catalogue on startup so a route naming an unknown
upstream fails the deployment instead of the first request.
"""

import logging
from django.apps import AppConfig

logger = logging.getLogger(__name__)


class GatewayConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'gateway'
    verbose_name = 'Gateway'

    def ready(self):
        from .routes import load_routes, load_upstreams

        upstreams = load_upstreams()
        routes = load_routes(upstreams)
        logger.debug(
            f"Gateway catalogue: {len(routes)} routes over upstreams "
            f"{', '.join(sorted(upstreams))}"
        )
