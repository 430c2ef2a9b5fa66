"""
HttpMock Rule Transport

Encodes expectation sets for transmission to the server and decodes them
there, resolving custom callbacks by name.
"""

from .registry import CallbackRegistry, import_callable, import_path_of
from .codec import (
    PAYLOAD_VERSION,
    encode_expectations,
    decode_expectations,
    expectation_to_dict,
    expectation_from_dict
)

__all__ = [
    'CallbackRegistry',
    'import_callable',
    'import_path_of',
    'PAYLOAD_VERSION',
    'encode_expectations',
    'decode_expectations',
    'expectation_to_dict',
    'expectation_from_dict',
]
