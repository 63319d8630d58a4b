import logging
from functools import lru_cache

from django.http import HttpResponseNotAllowed
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from .proxy import Forwarder
from .routes import load_upstreams

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_forwarder() -> Forwarder:
    """Returns the process-wide Forwarder, sharing one connection pool."""
    return Forwarder()


@method_decorator(csrf_exempt, name='dispatch')
class ProxyView(View):
    """
    Forwards every configured method of one path template.

    routes maps an HTTP method to its Route; other methods get a 405.
    The upstream is looked up by name on each request.
    """
    routes = None

    def dispatch(self, request, *args, **kwargs):
        route = self.routes.get(request.method)
        if route is None:
            return HttpResponseNotAllowed(sorted(self.routes))

        upstream = load_upstreams()[route.upstream]
        return get_forwarder().forward(request, upstream, route.upstream_path_for(kwargs))
