"""
HttpMock Builder

Controller-side fluent API for defining expectations.
"""

from .builder import MockBuilder, MatcherBuilder, ResponseBuilder

__all__ = [
    'MockBuilder',
    'MatcherBuilder',
    'ResponseBuilder',
]
