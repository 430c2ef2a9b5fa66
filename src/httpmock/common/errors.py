"""
HttpMock Errors

Exception hierarchy shared by the controller and the server.
"""

from typing import Optional


class HttpMockError(Exception):
    """Base class for all HttpMock errors."""


class NotFoundError(HttpMockError):
    """A requested administrative resource does not exist."""


class RequestNotFound(NotFoundError):
    """The interaction log is empty or an index is out of range."""


class InvalidInstallPayload(HttpMockError):
    """An expectation payload could not be decoded or resolved."""


class UnportableCallbackError(HttpMockError):
    """A callable cannot be referenced from another process."""


class CallbackResolutionError(HttpMockError):
    """A callback name could not be resolved to a callable."""


class UnexpectedStatusError(HttpMockError):
    """An administrative call answered with something other than 200."""

    def __init__(self, path: str, status_code: int, body: Optional[str] = None):
        self.path = path
        self.status_code = status_code
        self.body = body
        super().__init__(f'Expected status code 200 from "{path}", got {status_code}')


class ServerErrorsDetected(HttpMockError):
    """The server recorded callback failures during a test."""
