"""
HttpMock Client Module

Controller side: control-channel client, per-server facade and the named
server registry.
"""

from .client import HttpMockClient, RequestLogClient
from .facade import HttpMockFacade, HttpMockRegistry

__all__ = [
    'HttpMockClient',
    'RequestLogClient',
    'HttpMockFacade',
    'HttpMockRegistry',
]
