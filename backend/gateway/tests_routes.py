"""
Tests for the gateway route catalogue.
"""

import uuid

from django.core.exceptions import ImproperlyConfigured
from django.test import TestCase, override_settings
from django.urls import resolve

from gateway.routes import Route, Upstream, load_routes, load_upstreams, routes_by_path
from gateway.urls import build_urlpatterns


class RouteCatalogueTests(TestCase):

    def test_default_catalogue_binds_every_route_to_a_known_upstream(self):
        upstreams = load_upstreams()
        routes = load_routes(upstreams)

        self.assertEqual(
            {(route.path, route.methods) for route in routes},
            {
                ('files/store', ('POST',)),
                ('files/file/<uuid:id>', ('GET',)),
                ('files/analysis/<uuid:fileId>/start', ('POST',)),
                ('files/analysis/<uuid:fileId>', ('GET',)),
                ('files/analysis/<uuid:fileId>/wordcloud', ('GET',)),
            }
        )
        self.assertTrue(all(route.upstream in upstreams for route in routes))

    def test_unknown_upstream_is_rejected(self):
        config = [{
            'path': 'files/store',
            'methods': ['POST'],
            'upstream': 'archive',
            'upstream_path': '/files/store',
        }]

        with self.assertRaises(ImproperlyConfigured):
            load_routes(upstreams={}, config=config)

    def test_upstream_without_base_url_is_rejected(self):
        with self.assertRaises(ImproperlyConfigured):
            load_upstreams({'storage': {'base_url': ''}})

    def test_methods_are_normalized(self):
        upstreams = load_upstreams({'storage': {'base_url': 'http://s'}})
        routes = load_routes(upstreams, config=[{
            'path': 'x', 'methods': ['get', 'post'], 'upstream': 'storage', 'upstream_path': '/x',
        }])

        self.assertEqual(routes[0].methods, ('GET', 'POST'))

    def test_upstream_path_is_filled_from_parameters(self):
        route = Route(
            path='files/analysis/<uuid:fileId>/start',
            methods=('POST',),
            upstream='analysis',
            upstream_path='/files/analysis/{fileId}/start',
        )
        file_id = uuid.uuid4()

        self.assertEqual(route.upstream_path_for({'fileId': file_id}), f'/files/analysis/{file_id}/start')

    def test_upstream_url_joins_base_path_and_query(self):
        upstream = Upstream(name='storage', base_url='http://storage:8080/')

        self.assertEqual(upstream.url_for('/files/store'), 'http://storage:8080/files/store')
        self.assertEqual(upstream.url_for('/files/store', 'a=1'), 'http://storage:8080/files/store?a=1')

    def test_routes_sharing_a_path_are_grouped_by_method(self):
        routes = [
            Route('items/<int:pk>', ('GET',), 'storage', '/items/{pk}'),
            Route('items/<int:pk>', ('DELETE',), 'storage', '/items/{pk}/remove'),
        ]

        grouped = routes_by_path(routes)

        self.assertEqual(set(grouped['items/<int:pk>']), {'GET', 'DELETE'})

    def test_duplicate_method_on_one_path_is_rejected(self):
        routes = [
            Route('items', ('GET',), 'storage', '/a'),
            Route('items', ('GET',), 'storage', '/b'),
        ]

        with self.assertRaises(ImproperlyConfigured):
            routes_by_path(routes)

    def test_build_urlpatterns_creates_one_view_per_path(self):
        routes = [
            Route('items/<int:pk>', ('GET',), 'storage', '/items/{pk}'),
            Route('items/<int:pk>', ('DELETE',), 'storage', '/items/{pk}'),
            Route('other', ('POST',), 'analysis', '/other'),
        ]

        self.assertEqual(len(build_urlpatterns(routes)), 2)

    @override_settings(ROOT_URLCONF='core.urls.gateway')
    def test_gateway_urlconf_resolves_public_paths(self):
        file_id = uuid.uuid4()

        match = resolve(f'/files/analysis/{file_id}/wordcloud')

        self.assertEqual(match.kwargs, {'fileId': file_id})
        self.assertEqual(resolve('/health').url_name, 'health')
