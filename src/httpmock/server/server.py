"""
HttpMock Server

FastAPI application multiplexing mock traffic and the administrative control
channel on one listener.

Features:
- Expectation installation (whole-table replacement)
- Request matching with ordering and invocation budgets
- Interaction log queries and destructive reads
- Callback failure diagnostics
- Liveness probe
"""

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse

from ..common.errors import InvalidInstallPayload, NotFoundError
from ..matching.engine import MatchingEngine
from ..transport.codec import decode_expectations
from ..transport.registry import CallbackRegistry
from .config import MockConfig
from .log import InteractionLog

# Headers computed by the HTTP layer itself
SKIPPED_RESPONSE_HEADERS = {'content-length', 'transfer-encoding', 'connection'}

CLEANUP_TARGETS = ('all', 'requests', 'expectations', 'errors')


class MockServer:
    """
    HTTP mock server driven by installed expectations.

    Example:
        server = MockServer(MockConfig(port=28080))
        server.start()

        # Or mount the app elsewhere / test it in-process
        client = TestClient(server.app)
    """

    def __init__(
        self,
        config: Optional[MockConfig] = None,
        registry: Optional[CallbackRegistry] = None
    ):
        """
        Initialize mock server.

        Args:
            config: Optional MockConfig for server behavior
            registry: Callback registry used to resolve custom predicates and
                transforms (created if None, resolving registered names only)
        """
        self.config = config or MockConfig()
        self.registry = registry or CallbackRegistry(allow_import=False)
        for name, path in self.config.callbacks.items():
            self.registry.register(name, path)

        self.logger = logging.getLogger("httpmock.server")
        self.logger.setLevel(getattr(logging, self.config.log_level.upper(), logging.INFO))

        self.log = InteractionLog()
        self.engine = MatchingEngine(self.log, diagnostics_limit=self.config.diagnostics_limit)

        self.app = self._create_app()

    def is_admin_path(self, path: str) -> bool:
        prefix = self.config.admin_prefix
        return path == prefix or path.startswith(prefix + '/')

    def _create_app(self) -> FastAPI:
        """Create FastAPI application with routes."""
        app = FastAPI(
            title="HttpMock Server",
            description="Expectation-driven HTTP mock server",
            version="1.0.0"
        )
        prefix = self.config.admin_prefix

        @app.exception_handler(NotFoundError)
        async def not_found(request: Request, exc: NotFoundError):
            return PlainTextResponse(str(exc), status_code=404)

        @app.exception_handler(InvalidInstallPayload)
        async def invalid_payload(request: Request, exc: InvalidInstallPayload):
            self.logger.error(str(exc))
            return PlainTextResponse(str(exc), status_code=500)

        @app.get(f"{prefix}/ping")
        async def ping():
            """Liveness probe."""
            return JSONResponse(content={'status': 'ok'})

        @app.put(f"{prefix}/expectation")
        async def install_expectations(request: Request):
            """Replace the expectation table with the payload's expectations."""
            expectations = decode_expectations(await request.body(), self.registry)
            count = self.engine.install(expectations)
            return JSONResponse(content={'status': 'installed', 'count': count})

        @app.get(f"{prefix}/expectation")
        async def list_expectations():
            """List installed expectations with their remaining budgets."""
            installed = self.engine.installed()
            return JSONResponse(content={'total': len(installed), 'expectations': installed})

        @app.get(f"{prefix}/request/first")
        async def first_request():
            return JSONResponse(content=self.log.first().to_dict())

        @app.get(f"{prefix}/request/last")
        async def last_request():
            return JSONResponse(content=self.log.last().to_dict())

        @app.get(f"{prefix}/request/latest")
        async def latest_request():
            return JSONResponse(content=self.log.latest().to_dict())

        @app.delete(f"{prefix}/request/pop")
        async def pop_request():
            """Remove and return the newest recorded request."""
            return JSONResponse(content=self.log.pop().to_dict())

        @app.delete(f"{prefix}/request/shift")
        async def shift_request():
            """Remove and return the oldest recorded request."""
            return JSONResponse(content=self.log.shift().to_dict())

        @app.get(f"{prefix}/request/{{index}}")
        async def request_at(index: str):
            try:
                position = int(index)
            except ValueError:
                return PlainTextResponse(f"Invalid request index: {index}", status_code=404)
            return JSONResponse(content=self.log.at(position).to_dict())

        @app.get(f"{prefix}/requests")
        async def all_requests():
            """Get all recorded requests."""
            recorded = self.log.all()
            return JSONResponse(content={
                'total': len(recorded),
                'requests': [r.to_dict() for r in recorded]
            })

        @app.get(f"{prefix}/errors")
        async def list_errors():
            """Get callback failures recorded while serving mock traffic."""
            failures = self.engine.failure_list()
            return JSONResponse(content={'total': len(failures), 'errors': failures})

        @app.delete(f"{prefix}/cleanup")
        async def cleanup(target: str = 'all'):
            """Clear recorded requests, expectations and/or errors."""
            if target not in CLEANUP_TARGETS:
                return PlainTextResponse(
                    f"Unknown cleanup target '{target}', expected one of: {', '.join(CLEANUP_TARGETS)}",
                    status_code=404
                )
            everything = target == 'all'
            self.engine.reset(
                requests=everything or target == 'requests',
                expectations=everything or target == 'expectations',
                failures=everything or target == 'errors'
            )
            return JSONResponse(content={'status': 'cleaned', 'target': target})

        # Main catch-all route for mocking. A plain Starlette route with no
        # method list, so any verb (TRACE, PROPFIND, ...) reaches the engine.
        async def mock_request(request: Request) -> Response:
            """Handle incoming requests and serve mock responses."""
            return await self._handle_request(request)

        app.add_route("/{path:path}", mock_request, include_in_schema=False)

        return app

    async def _handle_request(self, request: Request) -> Response:
        """
        Handle an incoming mock-traffic request.

        Args:
            request: FastAPI Request object

        Returns:
            Response rendered from the matched expectation, or the 404
            no-match response
        """
        path = request.url.path

        if self.is_admin_path(path):
            # Unknown route or method under the reserved prefix: never logged
            return PlainTextResponse(
                f"Unknown administrative endpoint: {request.method} {path}",
                status_code=404
            )

        body = await request.body()
        headers = [(k.decode('latin-1'), v.decode('latin-1')) for k, v in request.headers.raw]

        self.logger.debug(f"Incoming: {request.method} {request.url}")

        outcome = self.engine.handle(
            request.method,
            path,
            query_string=request.url.query,
            headers=headers,
            body=body
        )
        rendered = outcome.response

        response = Response(content=rendered.body, status_code=rendered.status)
        for name, value in rendered.headers:
            if name.lower() in SKIPPED_RESPONSE_HEADERS:
                continue
            response.headers.append(name, value)
        return response

    def start(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Start the mock server (blocking).

        Args:
            host: Host to bind to (overrides config)
            port: Port to bind to (overrides config)
        """
        actual_host = host or self.config.host
        actual_port = port or self.config.port

        print("HttpMock server starting...")
        print(f"   Host: {actual_host}:{actual_port}")
        print(f"   Admin API: http://{actual_host}:{actual_port}{self.config.admin_prefix}/ping")
        print()

        uvicorn.run(
            self.app,
            host=actual_host,
            port=actual_port,
            log_level=self.config.log_level,
            access_log=self.config.access_log
        )

    def get_app(self) -> FastAPI:
        """
        Get the FastAPI app instance for testing or custom deployment.

        Returns:
            FastAPI application instance
        """
        return self.app


def create_mock_server(
    host: str = "127.0.0.1",
    port: int = 28080,
    admin_prefix: str = "/__admin__",
    log_level: str = "info",
    registry: Optional[CallbackRegistry] = None
) -> MockServer:
    """
    Convenience function to create and configure a mock server.

    Args:
        host: Host to bind to
        port: Port to bind to
        admin_prefix: Reserved path prefix of the control channel
        log_level: Logging level name
        registry: Callback registry shared with an in-process controller

    Returns:
        Configured MockServer instance
    """
    config = MockConfig(
        host=host,
        port=port,
        admin_prefix=admin_prefix,
        log_level=log_level
    )
    return MockServer(config=config, registry=registry)
