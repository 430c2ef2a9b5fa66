"""
HttpMock Server Module

Mock HTTP server process: control channel, interaction log and runners.
"""

from .config import MockConfig, DEFAULT_PORT, DEFAULT_ADMIN_PREFIX
from .log import InteractionLog
from .server import MockServer, create_mock_server
from .runner import BackgroundServer, ServerProcess, find_free_port, wait_for_ping

__all__ = [
    'MockConfig',
    'DEFAULT_PORT',
    'DEFAULT_ADMIN_PREFIX',
    'InteractionLog',
    'MockServer',
    'create_mock_server',
    'BackgroundServer',
    'ServerProcess',
    'find_free_port',
    'wait_for_ping',
]
