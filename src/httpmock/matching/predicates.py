"""
HttpMock Predicates

Composable boolean conditions over a :class:`RecordedRequest`.

Variants:
- FieldEquals: exact comparison of one request field
- PatternMatch: regular expression search against one request field
- AllOf: conjunction of other predicates
- Callback: custom procedure referenced by name (see ``httpmock.transport``)

Every variant is pure: it reads the request snapshot and nothing else.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..common.errors import CallbackResolutionError
from ..common.request import RecordedRequest

FIELDS = ('path', 'method', 'header', 'query', 'cookie', 'body')
NAMED_FIELDS = ('header', 'query', 'cookie')


def extract_field(request: RecordedRequest, field_name: str, name: Optional[str] = None) -> Optional[str]:
    """
    Read one field of a request as text.

    Args:
        request: Request snapshot
        field_name: One of path, method, header, query, cookie, body
        name: Header/query/cookie name for named fields

    Returns:
        Field value, or None when a named field is absent
    """
    if field_name == 'path':
        return request.path
    if field_name == 'method':
        return request.method
    if field_name == 'header':
        return request.header(name)
    if field_name == 'query':
        return request.query_param(name)
    if field_name == 'cookie':
        return request.cookie(name)
    if field_name == 'body':
        return request.text
    raise ValueError(f"Unknown request field: {field_name}")


def _check_field(field_name: str, name: Optional[str]):
    if field_name not in FIELDS:
        raise ValueError(f"Unknown request field: {field_name}")
    if field_name in NAMED_FIELDS and not name:
        raise ValueError(f"Field '{field_name}' requires a name")


@dataclass(frozen=True)
class CallbackRef:
    """
    Name of a custom procedure plus, once resolved, the procedure itself.

    Only ``name`` crosses the process boundary.
    """

    name: str
    fn: Optional[Callable] = field(default=None, compare=False, repr=False)

    def __call__(self, *args: Any) -> Any:
        if self.fn is None:
            raise CallbackResolutionError(f"Callback '{self.name}' has not been resolved")
        return self.fn(*args)


class Predicate:
    """Base class for request predicates."""

    kind = ''

    def matches(self, request: RecordedRequest) -> bool:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True)
class FieldEquals(Predicate):
    """Field equals an expected value. Method and header names ignore case."""

    field: str
    expected: str
    name: Optional[str] = None
    kind = 'equals'

    def __post_init__(self):
        _check_field(self.field, self.name)

    def matches(self, request: RecordedRequest) -> bool:
        value = extract_field(request, self.field, self.name)
        if value is None:
            return False
        if self.field == 'method':
            return value.upper() == self.expected.upper()
        return value == self.expected

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.kind, 'field': self.field, 'name': self.name, 'value': self.expected}


@dataclass(frozen=True)
class PatternMatch(Predicate):
    """Regular expression search against a field."""

    field: str
    pattern: str
    name: Optional[str] = None
    kind = 'regex'

    def __post_init__(self):
        _check_field(self.field, self.name)
        # Fail early on invalid patterns
        re.compile(self.pattern)

    def matches(self, request: RecordedRequest) -> bool:
        value = extract_field(request, self.field, self.name)
        if value is None:
            return False
        return re.search(self.pattern, value) is not None

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.kind, 'field': self.field, 'name': self.name, 'pattern': self.pattern}


@dataclass(frozen=True)
class AllOf(Predicate):
    """Conjunction of predicates, evaluated in order with short-circuit."""

    predicates: Sequence[Predicate] = ()
    kind = 'all'

    def matches(self, request: RecordedRequest) -> bool:
        return all_match(self.predicates, request)

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.kind, 'predicates': [p.to_dict() for p in self.predicates]}


@dataclass(frozen=True)
class Callback(Predicate):
    """Custom predicate backed by a named procedure ``fn(request) -> bool``."""

    ref: CallbackRef
    kind = 'callback'

    def matches(self, request: RecordedRequest) -> bool:
        return bool(self.ref(request))

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.kind, 'name': self.ref.name}


def all_match(predicates: Sequence[Predicate], request: RecordedRequest) -> bool:
    """Return True when every predicate holds; stops at the first failure."""
    for predicate in predicates:
        if not predicate.matches(request):
            return False
    return True


@dataclass(frozen=True)
class Regex:
    """Marker passed to builder methods to request a pattern match."""

    pattern: str


def regex(pattern: str) -> Regex:
    """
    Wrap a pattern so builder methods produce a :class:`PatternMatch`.

    Example:
        builder.when().method_is(regex('^(POST|PUT)$'))
    """
    return Regex(pattern)


def field_predicate(field_name: str, value: Any, name: Optional[str] = None) -> Predicate:
    """Create FieldEquals or PatternMatch depending on ``value``."""
    if isinstance(value, Regex):
        return PatternMatch(field=field_name, pattern=value.pattern, name=name)
    if isinstance(value, re.Pattern):
        return PatternMatch(field=field_name, pattern=value.pattern, name=name)
    if isinstance(value, bytes):
        value = value.decode('utf-8')
    return FieldEquals(field=field_name, expected=str(value), name=name)


def describe(predicates: List[Predicate]) -> List[Dict[str, Any]]:
    """Serialisable description of a predicate list."""
    return [p.to_dict() for p in predicates]
