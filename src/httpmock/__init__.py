"""
HttpMock

Out-of-process HTTP mock server for tests. Expectations are defined with a
fluent builder in the test process, shipped to a separate server over its
control channel, and matched there against incoming traffic.

Example:
    http = HttpMockFacade(server=ServerProcess(port=28080))
    http.start()
    http.mock.when().method_is('GET').path_is('/foo').then().body('foo').end()
    http.setup()
"""

from .builder import MockBuilder
from .client import HttpMockClient, HttpMockFacade, HttpMockRegistry
from .common import RecordedRequest, UnexpectedStatusError, ServerErrorsDetected
from .matching import ExactCount, MockResponse, Unlimited, regex
from .server import BackgroundServer, MockConfig, MockServer, ServerProcess
from .transport import CallbackRegistry

__version__ = "0.1.0"

__all__ = [
    'MockBuilder',
    'HttpMockClient',
    'HttpMockFacade',
    'HttpMockRegistry',
    'RecordedRequest',
    'UnexpectedStatusError',
    'ServerErrorsDetected',
    'ExactCount',
    'MockResponse',
    'Unlimited',
    'regex',
    'BackgroundServer',
    'MockConfig',
    'MockServer',
    'ServerProcess',
    'CallbackRegistry',
]
