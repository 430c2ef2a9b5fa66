"""
HttpMock Common Utilities

Small helpers shared across HttpMock modules.
"""

import base64
import json
from typing import Any, List, Optional, Sequence, Tuple

Pairs = List[Tuple[str, str]]


def safe_json_parse(json_string: Any, default: Any = None) -> Any:
    """
    Safely parse a JSON string or bytes with error handling.

    Args:
        json_string: JSON string (or UTF-8 bytes) to parse
        default: Default value to return if parsing fails

    Returns:
        Parsed JSON object, or default if parsing fails
    """
    if not json_string:
        return default

    try:
        return json.loads(json_string)
    except (json.JSONDecodeError, TypeError, ValueError, UnicodeDecodeError):
        return default


def find_pair(pairs: Sequence[Tuple[str, str]], name: str, case_sensitive: bool = True) -> Optional[str]:
    """
    Return the first value stored under ``name`` in an ordered pair list.

    Args:
        pairs: Ordered (name, value) pairs
        name: Name to look up
        case_sensitive: Compare names case-insensitively when False (headers)

    Returns:
        The first matching value, or None
    """
    if not case_sensitive:
        name = name.lower()
    for key, value in pairs:
        if (key if case_sensitive else key.lower()) == name:
            return value
    return None


def encode_body(body: bytes) -> str:
    """Encode raw body bytes for a JSON document."""
    return base64.b64encode(body).decode('ascii')


def decode_body(encoded: Optional[str]) -> bytes:
    """Decode a body produced by :func:`encode_body`."""
    if not encoded:
        return b''
    return base64.b64decode(encoded.encode('ascii'), validate=True)


def as_pairs(items: Any) -> Pairs:
    """Normalise a mapping or a sequence of 2-item sequences into pairs."""
    if not items:
        return []
    if isinstance(items, dict):
        return [(str(k), str(v)) for k, v in items.items()]
    return [(str(k), str(v)) for k, v in items]
