from django.urls import path
from .routes import load_routes, routes_by_path
from .views import ProxyView


def build_urlpatterns(routes):
    return [
        path(route_path, ProxyView.as_view(routes=methods))
        for route_path, methods in routes_by_path(routes).items()
    ]


urlpatterns = build_urlpatterns(load_routes())
