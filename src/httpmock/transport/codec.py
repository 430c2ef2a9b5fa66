"""
HttpMock Expectation Codec

JSON wire format for expectation sets sent from the controller to the server.

Payload layout:

    {
      "version": 1,
      "expectations": [
        {
          "position": {"kind": "ordinal", "ordinal": 1},
          "policy": {"kind": "exact", "limit": 1},
          "matchers": [
            {"type": "equals", "field": "path", "name": null, "value": "/foo"},
            {"type": "regex", "field": "method", "name": null, "pattern": "POST"},
            {"type": "callback", "name": "myproject.mocks:is_admin"}
          ],
          "response": {
            "status": 200,
            "headers": [["X-Foo", "Bar"]],
            "body": "<base64>",
            "transform": "teapot"
          }
        }
      ]
    }

Decoding is all-or-nothing: any malformed field or unresolvable callback
raises InvalidInstallPayload and nothing is returned.
"""

import binascii
import json
import re
from typing import Any, Dict, List, Sequence, Union

from ..common.errors import CallbackResolutionError, InvalidInstallPayload
from ..common.utils import as_pairs, decode_body, encode_body
from ..matching.expectation import Expectation, Position, ResponseSpec, policy_from_dict
from ..matching.predicates import AllOf, Callback, CallbackRef, FieldEquals, PatternMatch, Predicate
from .registry import CallbackRegistry

PAYLOAD_VERSION = 1


def expectation_to_dict(expectation: Expectation) -> Dict[str, Any]:
    """Convert an expectation to its wire dictionary."""
    response = expectation.response
    return {
        'position': expectation.position.to_dict(),
        'policy': expectation.policy.to_dict(),
        'matchers': [m.to_dict() for m in expectation.matchers],
        'response': {
            'status': response.status,
            'headers': [list(pair) for pair in response.headers],
            'body': encode_body(response.body),
            'transform': response.transform.name if response.transform else None
        }
    }


def predicate_from_dict(data: Dict[str, Any], registry: CallbackRegistry) -> Predicate:
    """
    Rebuild a predicate from its wire dictionary.

    Raises:
        ValueError: On unknown predicate types
        CallbackResolutionError: If a callback name cannot be resolved
    """
    kind = data['type']
    if kind == FieldEquals.kind:
        return FieldEquals(field=data['field'], expected=str(data['value']), name=data.get('name'))
    if kind == PatternMatch.kind:
        return PatternMatch(field=data['field'], pattern=data['pattern'], name=data.get('name'))
    if kind == AllOf.kind:
        return AllOf(tuple(predicate_from_dict(p, registry) for p in data['predicates']))
    if kind == Callback.kind:
        return Callback(registry.bind(CallbackRef(data['name'])))
    raise ValueError(f"Unknown predicate type: {kind!r}")


def expectation_from_dict(data: Dict[str, Any], registry: CallbackRegistry) -> Expectation:
    """Rebuild an expectation, resolving its callbacks in ``registry``."""
    response_data = data.get('response') or {}
    transform_name = response_data.get('transform')

    response = ResponseSpec(
        status=int(response_data.get('status', 200)),
        headers=tuple(as_pairs(response_data.get('headers'))),
        body=decode_body(response_data.get('body')),
        transform=registry.bind(CallbackRef(transform_name)) if transform_name else None
    )

    return Expectation(
        matchers=tuple(predicate_from_dict(m, registry) for m in data.get('matchers', [])),
        response=response,
        position=Position.from_dict(data.get('position') or {}),
        policy=policy_from_dict(data.get('policy') or {})
    )


def encode_expectations(expectations: Sequence[Expectation]) -> str:
    """
    Serialise an expectation list to a self-contained JSON payload.

    Args:
        expectations: Expectations in declaration order

    Returns:
        JSON string
    """
    return json.dumps({
        'version': PAYLOAD_VERSION,
        'expectations': [expectation_to_dict(e) for e in expectations]
    })


def decode_expectations(payload: Union[str, bytes], registry: CallbackRegistry) -> List[Expectation]:
    """
    Decode a payload produced by :func:`encode_expectations`.

    Args:
        payload: JSON text or bytes
        registry: Registry used to resolve callback names

    Returns:
        Expectations in declaration order

    Raises:
        InvalidInstallPayload: If the payload is malformed or references
            unknown callbacks
    """
    try:
        data = json.loads(payload)
        if not isinstance(data, dict):
            raise ValueError("Payload must be a JSON object")
        version = data.get('version', PAYLOAD_VERSION)
        if version != PAYLOAD_VERSION:
            raise ValueError(f"Unsupported payload version: {version!r}")
        items = data.get('expectations')
        if not isinstance(items, list):
            raise ValueError("Payload field 'expectations' must be a list")
        return [expectation_from_dict(item, registry) for item in items]
    except (ValueError, KeyError, TypeError, AttributeError, re.error,
            binascii.Error, UnicodeDecodeError, CallbackResolutionError) as e:
        raise InvalidInstallPayload(f"Invalid expectation payload: {e}") from e
