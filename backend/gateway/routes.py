"""
Gateway route catalogue.

Upstreams and routes come from settings (GATEWAY_UPSTREAMS, GATEWAY_ROUTES)
and are bound by upstream name, so the catalogue can change without
touching the services behind it.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured


@dataclass(frozen=True)
class Upstream:
    """A named service the gateway forwards to."""
    name: str
    base_url: str
    headers: Dict[str, str] = field(default_factory=dict)
    timeout: float = 60.0

    def url_for(self, path: str, query_string: str = '') -> str:
        url = f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        return f"{url}?{query_string}" if query_string else url


@dataclass(frozen=True)
class Route:
    """
    One external path template mapped to an upstream path template.

    path uses Django path-converter syntax ('files/file/<uuid:id>'),
    upstream_path a str.format template over the same names
    ('/files/file/{id}').
    """
    path: str
    methods: Tuple[str, ...]
    upstream: str
    upstream_path: str

    def upstream_path_for(self, params) -> str:
        return self.upstream_path.format(**{k: str(v) for k, v in params.items()})


def load_upstreams(config: Optional[dict] = None) -> Dict[str, Upstream]:
    config = config if config is not None else getattr(settings, 'GATEWAY_UPSTREAMS', {})
    upstreams = {}
    for name, options in config.items():
        if not options.get('base_url'):
            raise ImproperlyConfigured(f"Gateway upstream '{name}' has no base_url")
        upstreams[name] = Upstream(
            name=name,
            base_url=options['base_url'],
            headers=dict(options.get('headers') or {}),
            timeout=float(options.get('timeout', 60.0)),
        )
    return upstreams


def load_routes(upstreams: Optional[Dict[str, Upstream]] = None, config: Optional[list] = None):
    """
    Build the route list from configuration.

    Raises:
        ImproperlyConfigured: a route names an upstream that is not configured
    """
    upstreams = upstreams if upstreams is not None else load_upstreams()
    config = config if config is not None else getattr(settings, 'GATEWAY_ROUTES', [])

    routes = []
    for options in config:
        if options['upstream'] not in upstreams:
            raise ImproperlyConfigured(
                f"Gateway route '{options['path']}' targets unknown upstream "
                f"'{options['upstream']}'"
            )
        routes.append(Route(
            path=options['path'],
            methods=tuple(method.upper() for method in options['methods']),
            upstream=options['upstream'],
            upstream_path=options['upstream_path'],
        ))
    return routes


def routes_by_path(routes) -> Dict[str, Dict[str, Route]]:
    """Group routes sharing a path template into {path: {method: route}}."""
    grouped = {}
    for route in routes:
        methods = grouped.setdefault(route.path, {})
        for method in route.methods:
            if method in methods:
                raise ImproperlyConfigured(
                    f"Gateway route '{route.path}' maps {method} more than once"
                )
            methods[method] = route
    return grouped
