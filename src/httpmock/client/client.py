"""
HttpMock Control Client

httpx-based client for the server's administrative control channel.

Any non-200 administrative answer is raised as UnexpectedStatusError with the
message ``Expected status code 200 from "<path>", got <code>``.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..common.errors import UnexpectedStatusError
from ..common.request import RecordedRequest
from ..matching.expectation import Expectation
from ..server.config import DEFAULT_ADMIN_PREFIX
from ..transport.codec import encode_expectations

logger = logging.getLogger("httpmock.client")


class RequestLogClient:
    """Remote view of the server's interaction log."""

    def __init__(self, client: 'HttpMockClient'):
        self._client = client

    def _fetch(self, method: str, endpoint: str) -> RecordedRequest:
        response = self._client.admin(method, f"/request/{endpoint}")
        return RecordedRequest.from_dict(response.json())

    def first(self) -> RecordedRequest:
        return self._fetch('GET', 'first')

    def last(self) -> RecordedRequest:
        return self._fetch('GET', 'last')

    def latest(self) -> RecordedRequest:
        return self._fetch('GET', 'latest')

    def at(self, index: int) -> RecordedRequest:
        return self._fetch('GET', str(int(index)))

    def pop(self) -> RecordedRequest:
        """Remove and return the newest recorded request."""
        return self._fetch('DELETE', 'pop')

    def shift(self) -> RecordedRequest:
        """Remove and return the oldest recorded request."""
        return self._fetch('DELETE', 'shift')

    def all(self) -> List[RecordedRequest]:
        data = self._client.admin('GET', '/requests').json()
        return [RecordedRequest.from_dict(item) for item in data['requests']]

    def count(self) -> int:
        return self._client.admin('GET', '/requests').json()['total']


class HttpMockClient:
    """
    Controller-side client for one mock server.

    Example:
        client = HttpMockClient('http://127.0.0.1:28080')
        client.install(builder.flush_expectations())
        client.request('POST', '/foo')
        assert client.requests.latest().method == 'POST'
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        admin_prefix: str = DEFAULT_ADMIN_PREFIX,
        http_client: Optional[httpx.Client] = None,
        timeout: float = 5.0
    ):
        """
        Initialize control client.

        Args:
            base_url: Server base URL (required unless http_client is given)
            admin_prefix: Reserved path prefix of the control channel
            http_client: Pre-configured httpx.Client (e.g. FastAPI TestClient)
            timeout: Request timeout in seconds for an owned client
        """
        if http_client is None:
            if not base_url:
                raise ValueError("Either base_url or http_client is required")
            http_client = httpx.Client(base_url=base_url, timeout=timeout)
            self._owns_client = True
        else:
            self._owns_client = False

        self.http = http_client
        self.admin_prefix = '/' + admin_prefix.strip('/')
        self.requests = RequestLogClient(self)

    def admin(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        """
        Call an administrative endpoint.

        Raises:
            UnexpectedStatusError: If the answer is not 200
        """
        path = f"{self.admin_prefix}{endpoint}"
        response = self.http.request(method, path, **kwargs)
        if response.status_code != 200:
            logger.debug(f"{method} {path} answered {response.status_code}: {response.text}")
            raise UnexpectedStatusError(path, response.status_code, response.text)
        return response

    def install(self, expectations: Sequence[Expectation]) -> int:
        """
        Replace the server's expectation table.

        Returns:
            Number of installed expectations
        """
        response = self.admin(
            'PUT', '/expectation',
            content=encode_expectations(expectations),
            headers={'Content-Type': 'application/json'}
        )
        count = response.json()['count']
        logger.debug(f"Installed {count} expectation(s)")
        return count

    def installed(self) -> List[Dict[str, Any]]:
        return self.admin('GET', '/expectation').json()['expectations']

    def cleanup(self, target: str = 'all'):
        """Clear requests, expectations, errors, or everything on the server."""
        self.admin('DELETE', '/cleanup', params={'target': target})

    def errors(self) -> List[Dict[str, Any]]:
        """Callback failures recorded by the server."""
        return self.admin('GET', '/errors').json()['errors']

    def ping(self) -> bool:
        try:
            self.admin('GET', '/ping')
        except (httpx.HTTPError, UnexpectedStatusError):
            return False
        return True

    def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send mock traffic to the server."""
        return self.http.request(method, path, **kwargs)

    def close(self):
        if self._owns_client:
            self.http.close()

    def __enter__(self) -> 'HttpMockClient':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
