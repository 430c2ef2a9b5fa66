"""
HttpMock Facade

Bundles everything a test needs for one mock server (builder, control client,
server runner) and keeps named facades in an explicit registry.
"""

import logging
from typing import Any, Callable, Dict, Iterator, Optional

from ..builder.builder import MockBuilder
from ..common.errors import ServerErrorsDetected
from ..server.config import DEFAULT_ADMIN_PREFIX
from ..transport.registry import CallbackRegistry
from .client import HttpMockClient

logger = logging.getLogger("httpmock.client")


class HttpMockFacade:
    """
    One mock server as seen from a test.

    Attributes:
        mock: MockBuilder collecting expectations for the next ``setup()``
        client: HttpMockClient for the control channel and mock traffic
        requests: Remote interaction log
        server: Optional runner (BackgroundServer or ServerProcess)

    Example:
        http = HttpMockFacade(server=ServerProcess(port=28080))
        http.start()
        http.mock.when().path_is('/foo').then().body('foo body').end()
        http.setup()
        http.client.request('GET', '/foo')
        assert http.requests.latest().path == '/foo'
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        admin_prefix: str = DEFAULT_ADMIN_PREFIX,
        server: Optional[Any] = None,
        client: Optional[HttpMockClient] = None,
        registry: Optional[CallbackRegistry] = None
    ):
        """
        Initialize facade.

        Args:
            base_url: Server base URL (defaults to the runner's base_url)
            admin_prefix: Reserved path prefix of the control channel
            server: Runner exposing start/stop/ensure_running/base_url
            client: Pre-built client (overrides base_url)
            registry: Callback registry shared by the builder
        """
        self.server = server
        self.registry = registry or CallbackRegistry()
        if client is None:
            url = base_url or (server.base_url if server is not None else None)
            client = HttpMockClient(url, admin_prefix=admin_prefix)
        self.client = client
        self.mock = MockBuilder(self.registry)

    @property
    def requests(self):
        return self.client.requests

    def start(self):
        """Start the runner if needed and clean the server state."""
        if self.server is not None:
            self.server.ensure_running()
        self.client.cleanup()

    def setup(self) -> int:
        """Flush the builder and install its expectations on the server."""
        if self.server is not None:
            self.server.ensure_running()
        return self.client.install(self.mock.flush_expectations())

    def clean(self):
        self.client.cleanup()

    def assert_no_errors(self):
        """
        Raise if the server recorded callback failures.

        Raises:
            ServerErrorsDetected: With the recorded failure messages
        """
        errors = self.client.errors()
        if errors:
            summary = '; '.join(f"{e['stage']}: {e['error_type']}: {e['message']}" for e in errors)
            raise ServerErrorsDetected(f"HTTP mock server recorded {len(errors)} error(s): {summary}")

    def stop(self):
        if self.server is not None:
            self.server.stop()

    def close(self):
        self.client.close()


class HttpMockRegistry:
    """
    Named mock servers for one test lifecycle.

    Owned by whoever sets up the test session; there is no process-wide
    instance.

    Example:
        servers = HttpMockRegistry()
        servers.add('payments', HttpMockFacade(server=ServerProcess(port=28080)))
        servers.add('users', HttpMockFacade(server=ServerProcess(port=28081)))
        servers.start_all()
        ...
        servers.stop_all()
    """

    def __init__(self):
        self._facades: Dict[str, HttpMockFacade] = {}

    def add(self, name: str, facade: HttpMockFacade) -> HttpMockFacade:
        if name in self._facades:
            raise ValueError(f"A mock server named '{name}' is already registered")
        self._facades[name] = facade
        return facade

    def get(self, name: str) -> HttpMockFacade:
        try:
            return self._facades[name]
        except KeyError:
            raise KeyError(f"No mock server named '{name}'. Registered: {', '.join(self._facades) or 'none'}") from None

    __getitem__ = get

    def remove(self, name: str) -> HttpMockFacade:
        facade = self.get(name)
        del self._facades[name]
        return facade

    def __contains__(self, name: str) -> bool:
        return name in self._facades

    def __iter__(self) -> Iterator[str]:
        return iter(self._facades)

    def __len__(self) -> int:
        return len(self._facades)

    def each(self, fn: Callable[[HttpMockFacade], Any]):
        for facade in self._facades.values():
            fn(facade)

    def start_all(self):
        self.each(lambda facade: facade.start())

    def assert_no_errors(self):
        self.each(lambda facade: facade.assert_no_errors())

    def stop_all(self):
        """Stop every runner, close every client and empty the registry."""
        for name, facade in list(self._facades.items()):
            logger.debug(f"Stopping mock server '{name}'")
            facade.stop()
            facade.close()
        self._facades.clear()
