"""
HttpMock Matching

Predicate model, expectation data model and the server-side matching engine.
"""

from .predicates import (
    Predicate,
    FieldEquals,
    PatternMatch,
    AllOf,
    Callback,
    CallbackRef,
    Regex,
    regex
)
from .expectation import (
    Expectation,
    Position,
    ResponseSpec,
    MockResponse,
    Unlimited,
    ExactCount,
    InvocationPolicy
)
from .engine import (
    MatchingEngine,
    ExpectationTable,
    InstalledExpectation,
    MatchOutcome,
    CallbackFailure,
    NO_MATCH_BODY
)

__all__ = [
    # Predicates
    'Predicate',
    'FieldEquals',
    'PatternMatch',
    'AllOf',
    'Callback',
    'CallbackRef',
    'Regex',
    'regex',

    # Expectations
    'Expectation',
    'Position',
    'ResponseSpec',
    'MockResponse',
    'Unlimited',
    'ExactCount',
    'InvocationPolicy',

    # Engine
    'MatchingEngine',
    'ExpectationTable',
    'InstalledExpectation',
    'MatchOutcome',
    'CallbackFailure',
    'NO_MATCH_BODY',
]
