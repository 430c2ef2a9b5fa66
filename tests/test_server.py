"""
Tests for HttpMock Server

Tests the FastAPI control channel and mock traffic handling including:
- Expectation installation and listing
- Mock responses and the no-match response
- Interaction log queries over HTTP
- Cleanup, diagnostics and liveness routes
"""

import pytest
from fastapi.testclient import TestClient

from httpmock.builder import MockBuilder
from httpmock.common.request import RecordedRequest
from httpmock.matching.engine import NO_MATCH_BODY
from httpmock.server.config import MockConfig
from httpmock.server.server import MockServer, create_mock_server
from httpmock.transport.codec import encode_expectations
from httpmock.transport.registry import CallbackRegistry

ADMIN = '/__admin__'


def explode(request):
    raise RuntimeError('custom predicate failed')


@pytest.fixture
def server():
    return MockServer(MockConfig(callbacks={'explode': f"{__name__}:explode"}))


@pytest.fixture
def client(server):
    return TestClient(server.app)


@pytest.fixture
def builder():
    return MockBuilder()


def install(client, builder):
    response = client.put(f"{ADMIN}/expectation", content=encode_expectations(builder.flush_expectations()))
    assert response.status_code == 200
    return response.json()


class TestMockServerInit:
    """Test server construction."""

    def test_default_config(self):
        server = MockServer()

        assert server.config.port == 28080
        assert server.config.admin_prefix == ADMIN
        assert server.get_app() is server.app

    def test_create_mock_server(self):
        server = create_mock_server(port=9999, admin_prefix='/_mock')

        assert server.config.port == 9999
        assert server.is_admin_path('/_mock/ping')
        assert server.is_admin_path('/_mock')
        assert not server.is_admin_path('/_mockery')

    def test_config_callbacks_registered(self, server):
        assert 'explode' in server.registry

    def test_shared_registry(self):
        registry = CallbackRegistry()
        server = MockServer(registry=registry)

        assert server.registry is registry


class TestMockTraffic:
    """Test mock request handling."""

    def test_matching_request(self, client, builder):
        builder.when().method_is('POST').path_is('/foo').then() \
            .status_code(401).body('response body').header('X-Foo', 'Bar').end()
        install(client, builder)

        response = client.post('/foo')

        assert response.status_code == 401
        assert response.text == 'response body'
        assert response.headers['X-Foo'] == 'Bar'

    def test_no_match(self, client, builder):
        builder.when().method_is('POST').path_is('/foo').then().end()
        install(client, builder)

        response = client.get('/foo')

        assert response.status_code == 404
        assert response.text == NO_MATCH_BODY

    def test_exact_count(self, client, builder):
        builder.exactly(2).when().method_is('POST').then().body('POST METHOD').end()
        install(client, builder)

        responses = [client.post('/') for _ in range(3)]

        assert [(r.status_code, r.text) for r in responses] == [
            (200, 'POST METHOD'),
            (200, 'POST METHOD'),
            (404, NO_MATCH_BODY),
        ]

    def test_positions(self, client, builder):
        builder.first().when().method_is('POST').path_is('/resource').then().body('called once').end()
        builder.second().when().method_is('POST').path_is('/resource').then().body('called twice').end()
        builder.third().when().method_is('POST').path_is('/resource').then().body('called 3 times').end()
        install(client, builder)

        bodies = [client.post('/resource').text for _ in range(3)]

        assert bodies == ['called once', 'called twice', 'called 3 times']

    def test_repeated_response_headers(self, client, builder):
        builder.when().then().header('Set-Cookie', 'a=1').header('Set-Cookie', 'b=2').end()
        install(client, builder)

        response = client.get('/')

        assert response.headers.get_list('set-cookie') == ['a=1', 'b=2']

    def test_query_and_body_predicates(self, client, builder):
        builder.when().query_param_is('page', '2').body_is('payload').then().body('found').end()
        install(client, builder)

        assert client.post('/items?page=2', content=b'payload').text == 'found'
        assert client.post('/items?page=3', content=b'payload').status_code == 404

    def test_every_method_reaches_engine(self, client, builder):
        builder.when().then().status_code(204).end()
        install(client, builder)

        methods = ('GET', 'POST', 'PUT', 'DELETE', 'PATCH', 'OPTIONS', 'HEAD', 'TRACE', 'PROPFIND', 'PURGE')
        for method in methods:
            assert client.request(method, '/any').status_code == 204

        recorded = client.get(f"{ADMIN}/requests").json()['requests']
        assert [r['method'] for r in recorded] == list(methods)


class TestInstallation:
    """Test the expectation routes."""

    def test_install_reports_count(self, client, builder):
        builder.when().then().end()
        builder.when().then().end()

        assert install(client, builder) == {'status': 'installed', 'count': 2}

    def test_list_installed(self, client, builder):
        builder.twice().when().path_is('/foo').then().status_code(201).end()
        install(client, builder)
        client.get('/foo')

        data = client.get(f"{ADMIN}/expectation").json()

        assert data['total'] == 1
        [entry] = data['expectations']
        assert entry['remaining'] == 1
        assert entry['status'] == 201
        assert entry['state'] == 'ACTIVE'

    def test_invalid_payload_keeps_previous_table(self, client, builder):
        builder.when().path_is('/foo').then().body('old').end()
        install(client, builder)

        response = client.put(f"{ADMIN}/expectation", content=b'{"version": 1, "expectations": [{"matchers": [{"type": "nope"}]}]}')

        assert response.status_code == 500
        assert 'Invalid expectation payload' in response.text
        assert client.get('/foo').text == 'old'

    def test_unknown_callback_rejected(self, client):
        payload = '{"version": 1, "expectations": [{"matchers": [{"type": "callback", "name": "missing"}]}]}'

        assert client.put(f"{ADMIN}/expectation", content=payload).status_code == 500

    def test_unregistered_import_paths_rejected(self, client, builder, capsys):
        """Payloads cannot name arbitrary importable callables."""
        builder.when().path_is('/foo').then().body('old').end()
        install(client, builder)

        payload = (
            '{"version": 1, "expectations": [{'
            '"matchers": [{"type": "callback", "name": "builtins:bool"}], '
            '"response": {"status": 200, "transform": "builtins:print"}}]}'
        )
        response = client.put(f"{ADMIN}/expectation", content=payload)

        assert response.status_code == 500
        assert 'Unknown callback' in response.text
        assert client.get('/foo').text == 'old'
        assert capsys.readouterr().out == ''

    def test_unregistered_transform_rejected(self, client):
        payload = '{"version": 1, "expectations": [{"response": {"transform": "builtins:print"}}]}'

        assert client.put(f"{ADMIN}/expectation", content=payload).status_code == 500
        assert client.get(f"{ADMIN}/expectation").json()['total'] == 0

    def test_configured_callback_paths_accepted(self, client):
        payload = '{"version": 1, "expectations": [{"matchers": [{"type": "callback", "name": "explode"}]}]}'

        assert client.put(f"{ADMIN}/expectation", content=payload).status_code == 200


class TestRequestLog:
    """Test interaction log routes."""

    def test_log_queries(self, client):
        client.get('/foo')
        client.post('/bar?x=1', content=b'body')

        first = RecordedRequest.from_dict(client.get(f"{ADMIN}/request/first").json())
        last = RecordedRequest.from_dict(client.get(f"{ADMIN}/request/last").json())
        at = RecordedRequest.from_dict(client.get(f"{ADMIN}/request/1").json())

        assert (first.method, first.path) == ('GET', '/foo')
        assert (last.method, last.path) == ('POST', '/bar')
        assert last.query_param('x') == '1'
        assert last.body == b'body'
        assert at == last
        assert client.get(f"{ADMIN}/request/latest").json()['path'] == '/bar'

    def test_pop_and_shift(self, client):
        client.get('/foo')
        client.get('/bar')

        assert client.delete(f"{ADMIN}/request/pop").json()['path'] == '/bar'
        assert client.delete(f"{ADMIN}/request/shift").json()['path'] == '/foo'
        assert client.delete(f"{ADMIN}/request/pop").status_code == 404
        assert client.delete(f"{ADMIN}/request/shift").status_code == 404

    def test_empty_log(self, client):
        assert client.get(f"{ADMIN}/request/first").status_code == 404
        assert client.get(f"{ADMIN}/request/last").status_code == 404

    def test_index_errors(self, client):
        client.get('/foo')

        assert client.get(f"{ADMIN}/request/1").status_code == 404
        assert client.get(f"{ADMIN}/request/-1").status_code == 404
        assert client.get(f"{ADMIN}/request/abc").status_code == 404

    def test_all_requests(self, client):
        client.get('/a')
        client.get('/b')

        data = client.get(f"{ADMIN}/requests").json()

        assert data['total'] == 2
        assert [r['path'] for r in data['requests']] == ['/a', '/b']

    def test_admin_traffic_not_logged(self, client):
        """Control routes, including unknown ones, never reach the log."""
        client.get(f"{ADMIN}/ping")
        client.get(f"{ADMIN}/requests")
        unknown = client.get(f"{ADMIN}/does-not-exist")
        wrong_method = client.post(f"{ADMIN}/ping")

        assert unknown.status_code == 404
        assert wrong_method.status_code == 404
        assert client.get(f"{ADMIN}/requests").json()['total'] == 0

    def test_headers_recorded(self, client):
        client.get('/foo', headers={'X-Custom': 'value'})

        recorded = RecordedRequest.from_dict(client.get(f"{ADMIN}/request/last").json())

        assert recorded.header('x-custom') == 'value'


class TestCleanup:
    """Test cleanup route."""

    def test_cleanup_all(self, client, builder):
        builder.when().path_is('/foo').then().end()
        install(client, builder)
        client.get('/foo')

        response = client.delete(f"{ADMIN}/cleanup")

        assert response.status_code == 200
        assert client.get(f"{ADMIN}/requests").json()['total'] == 0
        assert client.get(f"{ADMIN}/expectation").json()['total'] == 0

    def test_cleanup_requests_only(self, client, builder):
        builder.when().path_is('/foo').then().end()
        install(client, builder)
        client.get('/foo')

        client.delete(f"{ADMIN}/cleanup", params={'target': 'requests'})

        assert client.get(f"{ADMIN}/requests").json()['total'] == 0
        assert client.get(f"{ADMIN}/expectation").json()['total'] == 1

    def test_unknown_target(self, client):
        assert client.delete(f"{ADMIN}/cleanup", params={'target': 'everything'}).status_code == 404


class TestDiagnostics:
    """Test errors and ping routes."""

    def test_ping(self, client):
        response = client.get(f"{ADMIN}/ping")

        assert response.status_code == 200
        assert response.json() == {'status': 'ok'}

    def test_callback_failures_reported(self, client, builder):
        builder.when().callback('explode').then().end()
        builder.any().when().then().body('fallback').end()
        install(client, builder)

        assert client.get('/').text == 'fallback'

        data = client.get(f"{ADMIN}/errors").json()
        assert data['total'] == 1
        assert data['errors'][0]['message'] == 'custom predicate failed'

        client.delete(f"{ADMIN}/cleanup", params={'target': 'errors'})
        assert client.get(f"{ADMIN}/errors").json()['total'] == 0

    def test_custom_admin_prefix(self, builder):
        client = TestClient(create_mock_server(admin_prefix='/_mock').app)
        builder.when().then().body('mocked').end()

        client.put('/_mock/expectation', content=encode_expectations(builder.flush_expectations()))

        assert client.get('/__admin__/ping').text == 'mocked'
        assert client.get('/_mock/ping').status_code == 200
