"""
HttpMock Mock Builder

Fluent, controller-side construction of an ordered expectation set.

Example:
    builder = MockBuilder()
    builder.first().when() \\
        .method_is('POST') \\
        .path_is('/foo') \\
    .then() \\
        .status_code(401) \\
        .body('response body') \\
        .header('X-Foo', 'Bar') \\
    .end()

    expectations = builder.flush_expectations()
"""

import json
from typing import Any, Callable, List, Optional, Tuple, Union

from ..matching.expectation import (
    ExactCount,
    Expectation,
    InvocationPolicy,
    Position,
    ResponseSpec,
    Unlimited
)
from ..matching.predicates import Callback, Predicate, field_predicate
from ..transport.registry import CallbackRegistry

CallbackTarget = Union[Callable, str]


class ExpectationDraft:
    """Mutable expectation being assembled by the builder contexts."""

    def __init__(self, position: Position, policy: Optional[InvocationPolicy]):
        self.position = position
        self.policy = policy
        self.matchers: List[Predicate] = []
        self.status = 200
        self.headers: List[Tuple[str, str]] = []
        self.body = b''
        self.transform = None

    def build(self) -> Expectation:
        policy = self.policy
        if policy is None:
            # A position names a single slot in the call sequence
            policy = ExactCount(1) if self.position.is_explicit else Unlimited()
        return Expectation(
            matchers=tuple(self.matchers),
            response=ResponseSpec(
                status=self.status,
                headers=tuple(self.headers),
                body=self.body,
                transform=self.transform
            ),
            position=self.position,
            policy=policy
        )


class MatcherBuilder:
    """Predicate context opened by :meth:`MockBuilder.when`."""

    def __init__(self, builder: 'MockBuilder', draft: ExpectationDraft):
        self._builder = builder
        self._draft = draft

    def matches(self, predicate: Predicate) -> 'MatcherBuilder':
        """Append any predicate instance."""
        self._draft.matchers.append(predicate)
        return self

    def path_is(self, path: Any) -> 'MatcherBuilder':
        return self.matches(field_predicate('path', path))

    def method_is(self, method: Any) -> 'MatcherBuilder':
        return self.matches(field_predicate('method', method))

    def header_is(self, name: str, value: Any) -> 'MatcherBuilder':
        return self.matches(field_predicate('header', value, name=name))

    def query_param_is(self, name: str, value: Any) -> 'MatcherBuilder':
        return self.matches(field_predicate('query', value, name=name))

    def cookie_is(self, name: str, value: Any) -> 'MatcherBuilder':
        return self.matches(field_predicate('cookie', value, name=name))

    def body_is(self, body: Any) -> 'MatcherBuilder':
        return self.matches(field_predicate('body', body))

    def callback(self, target: CallbackTarget) -> 'MatcherBuilder':
        """
        Add a custom predicate ``fn(request) -> bool``.

        Args:
            target: Registered name, import path, or module-level function
        """
        return self.matches(Callback(self._builder.registry.reference(target)))

    def then(self) -> 'ResponseBuilder':
        return ResponseBuilder(self._builder, self._draft)


class ResponseBuilder:
    """Response context opened by :meth:`MatcherBuilder.then`."""

    def __init__(self, builder: 'MockBuilder', draft: ExpectationDraft):
        self._builder = builder
        self._draft = draft

    def status_code(self, status: int) -> 'ResponseBuilder':
        self._draft.status = int(status)
        return self

    def body(self, body: Union[str, bytes]) -> 'ResponseBuilder':
        self._draft.body = body.encode('utf-8') if isinstance(body, str) else bytes(body)
        return self

    def header(self, name: str, value: str) -> 'ResponseBuilder':
        """Append a header value; repeated names keep insertion order."""
        self._draft.headers.append((name, str(value)))
        return self

    def json(self, payload: Any) -> 'ResponseBuilder':
        self.header('Content-Type', 'application/json')
        return self.body(json.dumps(payload))

    def callback(self, target: CallbackTarget) -> 'ResponseBuilder':
        """
        Set a response transform ``fn(request, response)``.

        The transform runs after status, headers and body are applied and may
        mutate the response or return a replacement MockResponse.
        """
        self._draft.transform = self._builder.registry.reference(target)
        return self

    def end(self) -> 'MockBuilder':
        return self._builder


class MockBuilder:
    """
    Collects expectations until they are flushed for installation.

    Position selectors (``first``, ``second``, ``third``, ``nth``, ``any``) and
    policy selectors (``once``, ``twice``, ``thrice``, ``exactly``) apply to
    the next expectation opened with :meth:`when`.
    """

    def __init__(self, registry: Optional[CallbackRegistry] = None):
        """
        Initialize mock builder.

        Args:
            registry: Registry used to name callbacks (created if None)
        """
        self.registry = registry or CallbackRegistry()
        self._pending: List[ExpectationDraft] = []
        self._next_position = Position.sequential()
        self._next_policy: Optional[InvocationPolicy] = None

    def first(self) -> 'MockBuilder':
        return self.nth(1)

    def second(self) -> 'MockBuilder':
        return self.nth(2)

    def third(self) -> 'MockBuilder':
        return self.nth(3)

    def nth(self, position: int) -> 'MockBuilder':
        self._next_position = Position.at(position)
        return self

    def any(self) -> 'MockBuilder':
        """Make the next expectation a fallback tried after all others."""
        self._next_position = Position.fallback()
        return self

    def once(self) -> 'MockBuilder':
        return self.exactly(1)

    def twice(self) -> 'MockBuilder':
        return self.exactly(2)

    def thrice(self) -> 'MockBuilder':
        return self.exactly(3)

    def exactly(self, times: int) -> 'MockBuilder':
        self._next_policy = ExactCount(times)
        return self

    def when(self) -> MatcherBuilder:
        """Open a new expectation and return its predicate context."""
        draft = ExpectationDraft(self._next_position, self._next_policy)
        self._pending.append(draft)
        self._next_position = Position.sequential()
        self._next_policy = None
        return MatcherBuilder(self, draft)

    def flush_expectations(self) -> List[Expectation]:
        """Return the pending expectations and start a fresh list."""
        pending, self._pending = self._pending, []
        return [draft.build() for draft in pending]

    def __len__(self) -> int:
        return len(self._pending)
