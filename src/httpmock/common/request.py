"""
HttpMock Request Snapshot

Immutable view of a received HTTP request. It is what predicates evaluate and
what the interaction log stores.
"""

from dataclasses import dataclass, field
from datetime import datetime
from http.cookies import CookieError, SimpleCookie
from typing import Any, Dict, Optional, Tuple
from urllib.parse import parse_qsl, urlencode

from .utils import decode_body, encode_body, find_pair, safe_json_parse

PairTuple = Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class RecordedRequest:
    """Snapshot of one mock-traffic request."""

    method: str
    path: str
    query: PairTuple = ()
    headers: PairTuple = ()
    body: bytes = b''
    ordinal: int = 0
    received_at: str = field(default_factory=lambda: datetime.now().isoformat())

    @classmethod
    def build(
        cls,
        method: str,
        path: str,
        query_string: str = '',
        headers: Any = (),
        body: bytes = b'',
        ordinal: int = 0
    ) -> 'RecordedRequest':
        """
        Build a snapshot from raw request parts.

        Args:
            method: HTTP method
            path: Request path without the query string
            query_string: Raw query string (without ``?``)
            headers: Mapping or sequence of (name, value) pairs
            body: Request body
            ordinal: Arrival number assigned by the server

        Returns:
            RecordedRequest instance
        """
        if isinstance(headers, dict):
            header_pairs = tuple((str(k), str(v)) for k, v in headers.items())
        else:
            header_pairs = tuple((str(k), str(v)) for k, v in headers)

        return cls(
            method=method.upper(),
            path=path or '/',
            query=tuple(parse_qsl(query_string, keep_blank_values=True)),
            headers=header_pairs,
            body=body or b'',
            ordinal=ordinal
        )

    @property
    def url(self) -> str:
        """Path plus query string."""
        if not self.query:
            return self.path
        return f"{self.path}?{urlencode(self.query)}"

    def header(self, name: str) -> Optional[str]:
        """Return the first value of a header (case-insensitive)."""
        return find_pair(self.headers, name, case_sensitive=False)

    def query_param(self, name: str) -> Optional[str]:
        """Return the first value of a query parameter."""
        return find_pair(self.query, name)

    @property
    def cookies(self) -> Dict[str, str]:
        """Cookies sent in the ``Cookie`` header."""
        raw = self.header('cookie')
        if not raw:
            return {}
        jar = SimpleCookie()
        try:
            jar.load(raw)
        except CookieError:
            return {}
        return {name: morsel.value for name, morsel in jar.items()}

    def cookie(self, name: str) -> Optional[str]:
        """Return a single cookie value."""
        return self.cookies.get(name)

    @property
    def text(self) -> str:
        """Body decoded as UTF-8 (undecodable bytes replaced)."""
        return self.body.decode('utf-8', errors='replace')

    @property
    def json(self) -> Any:
        """Body parsed as JSON, or None."""
        return safe_json_parse(self.body)

    @property
    def form(self) -> Dict[str, str]:
        """Body parsed as ``application/x-www-form-urlencoded`` fields."""
        content_type = (self.header('content-type') or '').lower()
        if 'application/x-www-form-urlencoded' not in content_type:
            return {}
        return dict(parse_qsl(self.text, keep_blank_values=True))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serialisable dictionary."""
        return {
            'ordinal': self.ordinal,
            'method': self.method,
            'path': self.path,
            'url': self.url,
            'query': [list(pair) for pair in self.query],
            'headers': [list(pair) for pair in self.headers],
            'body': encode_body(self.body),
            'text': self.text,
            'received_at': self.received_at
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RecordedRequest':
        """Create RecordedRequest from dictionary."""
        return cls(
            method=data['method'],
            path=data['path'],
            query=tuple((k, v) for k, v in data.get('query', [])),
            headers=tuple((k, v) for k, v in data.get('headers', [])),
            body=decode_body(data.get('body')),
            ordinal=data.get('ordinal', 0),
            received_at=data.get('received_at', '')
        )
