"""
HttpMock Expectation Model

An expectation pairs a predicate conjunction with a canned response, a
position in the call sequence and an invocation policy.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from ..common.request import RecordedRequest
from ..common.utils import Pairs, find_pair
from .predicates import CallbackRef, Predicate, all_match


@dataclass(frozen=True)
class Position:
    """
    Where an expectation sits in the installed order.

    kind is one of:
    - ``ordinal``: explicit 1-based slot (``first()``, ``nth(k)``)
    - ``sequential``: next slot after all positioned expectations
    - ``fallback``: tried only after everything else (``any()``)
    """

    kind: str = 'sequential'
    ordinal: Optional[int] = None

    @classmethod
    def at(cls, ordinal: int) -> 'Position':
        if ordinal < 1:
            raise ValueError(f"Position must be 1 or greater, got {ordinal}")
        return cls(kind='ordinal', ordinal=ordinal)

    @classmethod
    def sequential(cls) -> 'Position':
        return cls(kind='sequential')

    @classmethod
    def fallback(cls) -> 'Position':
        return cls(kind='fallback')

    @property
    def is_explicit(self) -> bool:
        return self.kind == 'ordinal'

    def to_dict(self) -> Dict[str, Any]:
        return {'kind': self.kind, 'ordinal': self.ordinal}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Position':
        kind = data.get('kind', 'sequential')
        if kind == 'ordinal':
            return cls.at(int(data['ordinal']))
        if kind not in ('sequential', 'fallback'):
            raise ValueError(f"Unknown position kind: {kind}")
        return cls(kind=kind)


@dataclass(frozen=True)
class Unlimited:
    """The expectation never exhausts."""

    def initial_budget(self) -> Optional[int]:
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {'kind': 'unlimited'}


@dataclass(frozen=True)
class ExactCount:
    """The expectation matches at most ``limit`` times."""

    limit: int

    def __post_init__(self):
        if self.limit < 1:
            raise ValueError(f"Invocation count must be 1 or greater, got {self.limit}")

    def initial_budget(self) -> Optional[int]:
        return self.limit

    def to_dict(self) -> Dict[str, Any]:
        return {'kind': 'exact', 'limit': self.limit}


InvocationPolicy = Union[Unlimited, ExactCount]


def policy_from_dict(data: Dict[str, Any]) -> InvocationPolicy:
    kind = data.get('kind', 'unlimited')
    if kind == 'unlimited':
        return Unlimited()
    if kind == 'exact':
        return ExactCount(int(data['limit']))
    raise ValueError(f"Unknown invocation policy: {kind}")


@dataclass
class MockResponse:
    """
    Response being rendered for one request.

    Transforms receive this object and may mutate it in place or return a
    replacement.
    """

    status: int = 200
    headers: Pairs = field(default_factory=list)
    body: bytes = b''

    def header(self, name: str) -> Optional[str]:
        return find_pair(self.headers, name, case_sensitive=False)

    def set_header(self, name: str, value: str):
        """Replace every value of ``name`` with a single value."""
        lowered = name.lower()
        self.headers = [(k, v) for k, v in self.headers if k.lower() != lowered]
        self.headers.append((name, value))

    def add_header(self, name: str, value: str):
        self.headers.append((name, value))

    def set_body(self, body: Union[str, bytes]):
        self.body = body.encode('utf-8') if isinstance(body, str) else body

    @property
    def text(self) -> str:
        return self.body.decode('utf-8', errors='replace')


@dataclass(frozen=True)
class ResponseSpec:
    """Static response definition plus an optional transform."""

    status: int = 200
    headers: Tuple[Tuple[str, str], ...] = ()
    body: bytes = b''
    transform: Optional[CallbackRef] = None

    def render(self, request: RecordedRequest) -> MockResponse:
        """
        Apply status, headers and body, then run the transform.

        Args:
            request: Request being answered

        Returns:
            Rendered MockResponse
        """
        response = MockResponse(status=self.status, headers=list(self.headers), body=self.body)
        if self.transform is not None:
            replaced = self.transform(request, response)
            if isinstance(replaced, MockResponse):
                response = replaced
        return response


@dataclass(frozen=True)
class Expectation:
    """One configured rule."""

    matchers: Tuple[Predicate, ...] = ()
    response: ResponseSpec = field(default_factory=ResponseSpec)
    position: Position = field(default_factory=Position.sequential)
    policy: InvocationPolicy = field(default_factory=Unlimited)

    def matches(self, request: RecordedRequest) -> bool:
        """Conjunction of all matchers; an empty list matches everything."""
        return all_match(self.matchers, request)
