"""
Tests for HttpMock Rule Transport

Tests the expectation wire format and callback resolution including:
- Encoding and decoding complete expectation sets
- Callbacks referenced by registered name and by import path
- Rejection of malformed payloads
"""

import json

import pytest

from httpmock.builder import MockBuilder
from httpmock.common.errors import CallbackResolutionError, InvalidInstallPayload, UnportableCallbackError
from httpmock.common.request import RecordedRequest
from httpmock.matching.expectation import ExactCount, Position, Unlimited
from httpmock.matching.predicates import AllOf, FieldEquals
from httpmock.transport.codec import (
    PAYLOAD_VERSION,
    decode_expectations,
    encode_expectations,
    expectation_from_dict
)
from httpmock.transport.registry import CallbackRegistry, import_callable, import_path_of


def is_json(request):
    return (request.header('Content-Type') or '').startswith('application/json')


def add_trace_header(request, response):
    response.add_header('X-Trace', str(request.ordinal))


class Handlers:
    @staticmethod
    def shout(request, response):
        response.set_body(response.text.upper())


@pytest.fixture
def registry():
    return CallbackRegistry()


@pytest.fixture
def builder(registry):
    return MockBuilder(registry)


class TestEncoding:
    """Test the JSON payload layout."""

    def test_payload_layout(self, builder):
        builder.first().when().method_is('POST').path_is('/foo').then() \
            .status_code(401).body('response body').header('X-Foo', 'Bar').end()

        data = json.loads(encode_expectations(builder.flush_expectations()))

        assert data['version'] == PAYLOAD_VERSION
        [item] = data['expectations']
        assert item['position'] == {'kind': 'ordinal', 'ordinal': 1}
        assert item['policy'] == {'kind': 'exact', 'limit': 1}
        assert item['matchers'][0] == {'type': 'equals', 'field': 'method', 'name': None, 'value': 'POST'}
        assert item['response']['status'] == 401
        assert item['response']['headers'] == [['X-Foo', 'Bar']]
        assert item['response']['transform'] is None

    def test_round_trip(self, builder, registry):
        builder.when().path_is('/a').then().body(b'\x00binary').end()
        builder.second().thrice().when().method_is('PUT').then().status_code(204).end()
        builder.any().when().then().status_code(500).end()
        original = builder.flush_expectations()

        decoded = decode_expectations(encode_expectations(original), registry)

        assert decoded == original
        assert decoded[1].policy == ExactCount(3)
        assert decoded[2].position == Position.fallback()
        assert decoded[2].policy == Unlimited()

    def test_nested_conjunction(self, builder, registry):
        nested = AllOf((FieldEquals('method', 'GET'), FieldEquals('path', '/x')))
        builder.when().matches(nested).then().end()

        [decoded] = decode_expectations(encode_expectations(builder.flush_expectations()), registry)

        assert decoded.matchers == (nested,)


class TestCallbackTransport:
    """Test callbacks crossing the process boundary by name."""

    def test_import_path_callbacks(self, builder):
        builder.when().callback(is_json).then().callback(add_trace_header).end()
        payload = encode_expectations(builder.flush_expectations())

        # A fresh registry stands in for the server side
        [expectation] = decode_expectations(payload, CallbackRegistry())

        request = RecordedRequest.build('POST', '/', headers=[('Content-Type', 'application/json')], ordinal=4)
        assert expectation.matches(request)
        assert expectation.response.render(request).header('X-Trace') == '4'

    def test_nested_qualname(self, builder):
        builder.when().then().body('quiet').callback(Handlers.shout).end()
        payload = encode_expectations(builder.flush_expectations())

        [expectation] = decode_expectations(payload, CallbackRegistry())

        request = RecordedRequest.build('GET', '/')
        assert expectation.response.render(request).body == b'QUIET'

    def test_registered_names_on_both_sides(self):
        controller = CallbackRegistry({'always': lambda request: True})
        server = CallbackRegistry({'always': lambda request: True})
        builder = MockBuilder(controller)
        builder.when().callback('always').then().end()

        [expectation] = decode_expectations(encode_expectations(builder.flush_expectations()), server)

        assert expectation.matchers[0].ref.name == 'always'
        assert expectation.matches(RecordedRequest.build('GET', '/'))

    def test_server_only_name(self, builder):
        """Names unknown to the controller are sent unresolved."""
        builder.when().callback('server-side-only').then().end()
        payload = encode_expectations(builder.flush_expectations())

        server = CallbackRegistry()
        server.register('server-side-only', lambda request: False)

        [expectation] = decode_expectations(payload, server)
        assert not expectation.matches(RecordedRequest.build('GET', '/'))

    def test_unknown_callback_rejects_payload(self, builder):
        builder.when().callback('nobody-knows-me').then().end()
        payload = encode_expectations(builder.flush_expectations())

        with pytest.raises(InvalidInstallPayload):
            decode_expectations(payload, CallbackRegistry())

    def test_registered_names_only(self, builder):
        """A registry without imports resolves only what it registered."""
        builder.when().callback(is_json).then().end()
        payload = encode_expectations(builder.flush_expectations())

        with pytest.raises(InvalidInstallPayload):
            decode_expectations(payload, CallbackRegistry(allow_import=False))

        server = CallbackRegistry({f"{__name__}:is_json": f"{__name__}:is_json"}, allow_import=False)
        [expectation] = decode_expectations(payload, server)
        assert expectation.matchers[0].ref.fn is is_json

    def test_lambda_is_unportable(self, registry):
        with pytest.raises(UnportableCallbackError):
            registry.reference(lambda request: True)

    def test_nested_function_is_unportable(self, registry):
        def local(request):
            return True

        with pytest.raises(UnportableCallbackError):
            registry.reference(local)


class TestRegistry:
    """Test callback registry lookups."""

    def test_import_path_of(self):
        assert import_path_of(is_json) == f"{__name__}:is_json"
        assert import_path_of(lambda: None) is None

    def test_import_callable(self):
        assert import_callable('json:dumps') is json.dumps

    def test_import_callable_errors(self):
        with pytest.raises(CallbackResolutionError):
            import_callable('no_such_module_xyz:fn')
        with pytest.raises(CallbackResolutionError):
            import_callable('json:missing')
        with pytest.raises(CallbackResolutionError):
            import_callable('json')
        with pytest.raises(CallbackResolutionError):
            import_callable('json:__doc__')

    def test_registered_import_path(self):
        registry = CallbackRegistry({'dump': 'json:dumps'})

        assert 'dump' in registry
        assert registry.resolve('dump') is json.dumps

    def test_unregister(self, registry):
        registry.register('x', len)
        registry.unregister('x')

        assert 'x' not in registry
        with pytest.raises(CallbackResolutionError):
            registry.resolve('x')

    def test_register_rejects_non_callable(self, registry):
        with pytest.raises(TypeError):
            registry.register('x', 42)


class TestInvalidPayloads:
    """Test rejection of malformed payloads."""

    @pytest.mark.parametrize('payload', [
        'not json',
        '[]',
        '{"version": 99, "expectations": []}',
        '{"version": 1}',
        '{"version": 1, "expectations": [{"matchers": [{"type": "nope"}]}]}',
        '{"version": 1, "expectations": [{"matchers": [{"type": "equals", "field": "bogus", "value": "x"}]}]}',
        '{"version": 1, "expectations": [{"matchers": [{"type": "regex", "field": "path", "pattern": "(["}]}]}',
        '{"version": 1, "expectations": [{"position": {"kind": "ordinal", "ordinal": 0}}]}',
        '{"version": 1, "expectations": [{"policy": {"kind": "exact", "limit": 0}}]}',
        '{"version": 1, "expectations": [{"response": {"body": "%%%"}}]}',
        '{"version": 1, "expectations": [{"response": {"status": "abc"}}]}',
    ])
    def test_rejected(self, payload, registry):
        with pytest.raises(InvalidInstallPayload):
            decode_expectations(payload, registry)

    def test_empty_set_is_valid(self, registry):
        assert decode_expectations('{"version": 1, "expectations": []}', registry) == []

    def test_minimal_expectation_defaults(self, registry):
        expectation = expectation_from_dict({}, registry)

        assert expectation.matchers == ()
        assert expectation.response.status == 200
        assert expectation.position == Position.sequential()
        assert expectation.policy == Unlimited()
