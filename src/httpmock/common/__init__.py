"""
HttpMock Common Utilities

Shared types, errors and helpers used by both the controller and the server.
"""

from .errors import (
    HttpMockError,
    NotFoundError,
    RequestNotFound,
    InvalidInstallPayload,
    UnportableCallbackError,
    CallbackResolutionError,
    UnexpectedStatusError,
    ServerErrorsDetected
)
from .request import RecordedRequest
from .utils import safe_json_parse, find_pair, encode_body, decode_body, as_pairs

__all__ = [
    'HttpMockError',
    'NotFoundError',
    'RequestNotFound',
    'InvalidInstallPayload',
    'UnportableCallbackError',
    'CallbackResolutionError',
    'UnexpectedStatusError',
    'ServerErrorsDetected',
    'RecordedRequest',
    'safe_json_parse',
    'find_pair',
    'encode_body',
    'decode_body',
    'as_pairs',
]
