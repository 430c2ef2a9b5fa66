"""
HttpMock Matching Engine

Server-side evaluation of incoming requests against the installed
expectation table.

Features:
- Deterministic ordering (positioned, then sequential, then fallback)
- Invocation budgets (ACTIVE -> EXHAUSTED, one way)
- Atomic table replacement on install
- Unconditional request logging
- Callback failures captured on a diagnostics channel instead of crashing
"""

import logging
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Sequence

from ..common.request import RecordedRequest
from .expectation import Expectation, MockResponse
from .predicates import describe

NO_MATCH_BODY = 'No matching expectation found'

logger = logging.getLogger("httpmock.engine")


@dataclass
class InstalledExpectation:
    """An expectation in the live table, with its remaining budget."""

    expectation: Expectation
    sequence: int
    slot: Optional[int] = None
    remaining: Optional[int] = None
    hits: int = 0

    def __post_init__(self):
        if self.remaining is None:
            self.remaining = self.expectation.policy.initial_budget()

    @property
    def exhausted(self) -> bool:
        return self.remaining is not None and self.remaining <= 0

    @property
    def state(self) -> str:
        return 'EXHAUSTED' if self.exhausted else 'ACTIVE'

    def consume(self):
        """Record one successful match."""
        self.hits += 1
        if self.remaining is not None:
            self.remaining -= 1

    def to_dict(self) -> Dict[str, Any]:
        expectation = self.expectation
        return {
            'index': self.sequence,
            'slot': self.slot,
            'position': expectation.position.to_dict(),
            'policy': expectation.policy.to_dict(),
            'remaining': self.remaining,
            'hits': self.hits,
            'state': self.state,
            'matchers': describe(list(expectation.matchers)),
            'status': expectation.response.status
        }


class ExpectationTable:
    """
    Ordered, immutable-once-built list of installed expectations.

    Ordering:
    1. Explicitly positioned expectations by slot. Every claimed slot goes to
       the latest declaration claiming it. The earlier claimants are then
       placed, lowest requested slot first and latest declaration first, in
       the next free slot after the one they asked for, so they never take a
       slot another expectation claimed.
    2. Sequential expectations in declaration order.
    3. Fallback (``any()``) expectations in declaration order.
    """

    def __init__(self, entries: Optional[List[InstalledExpectation]] = None):
        self.entries = entries or []

    @classmethod
    def build(cls, expectations: Sequence[Expectation]) -> 'ExpectationTable':
        slots: Dict[int, Expectation] = {}
        displaced: List[Expectation] = []
        for expectation in reversed([e for e in expectations if e.position.is_explicit]):
            if expectation.position.ordinal in slots:
                displaced.append(expectation)
            else:
                slots[expectation.position.ordinal] = expectation

        for expectation in sorted(displaced, key=lambda e: e.position.ordinal):
            slot = expectation.position.ordinal
            while slot in slots:
                slot += 1
            slots[slot] = expectation

        ordered = [(slot, slots[slot]) for slot in sorted(slots)]
        ordered += [(None, e) for e in expectations if e.position.kind == 'sequential']
        ordered += [(None, e) for e in expectations if e.position.kind == 'fallback']

        return cls([
            InstalledExpectation(expectation=expectation, sequence=index, slot=slot)
            for index, (slot, expectation) in enumerate(ordered)
        ])

    def __iter__(self) -> Iterator[InstalledExpectation]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def to_list(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self.entries]


@dataclass
class CallbackFailure:
    """A custom predicate or transform that raised while handling a request."""

    stage: str
    request_ordinal: int
    expectation_index: int
    error_type: str
    message: str
    traceback: str = ''
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'stage': self.stage,
            'request_ordinal': self.request_ordinal,
            'expectation_index': self.expectation_index,
            'error_type': self.error_type,
            'message': self.message,
            'traceback': self.traceback,
            'timestamp': self.timestamp
        }


@dataclass
class MatchOutcome:
    """Result of handling one mock-traffic request."""

    request: RecordedRequest
    response: MockResponse
    entry: Optional[InstalledExpectation] = None

    @property
    def matched(self) -> bool:
        return self.entry is not None


def no_match_response() -> MockResponse:
    return MockResponse(
        status=404,
        headers=[('Content-Type', 'text/plain; charset=utf-8')],
        body=NO_MATCH_BODY.encode('utf-8')
    )


class MatchingEngine:
    """
    Owns the expectation table, the interaction log and the failure list.

    Every operation that reads or mutates shared state runs under one
    re-entrant lock, which the interaction log shares.

    Example:
        engine = MatchingEngine(InteractionLog())
        engine.install(builder.flush_expectations())
        outcome = engine.handle('POST', '/foo')
        print(outcome.response.status, engine.log.last().path)
    """

    def __init__(self, log: Any, diagnostics_limit: int = 0):
        """
        Initialize matching engine.

        Args:
            log: InteractionLog to record into; its lock guards all state
            diagnostics_limit: Maximum stored callback failures (0 = unlimited)
        """
        self.log = log
        self.lock = log.lock
        self.diagnostics_limit = diagnostics_limit
        self.table = ExpectationTable()
        self.failures: List[CallbackFailure] = []
        self._arrivals = 0

    def install(self, expectations: Sequence[Expectation]) -> int:
        """
        Replace the whole table with a new expectation set.

        Args:
            expectations: Decoded expectations in declaration order

        Returns:
            Number of installed expectations
        """
        table = ExpectationTable.build(expectations)
        with self.lock:
            self.table = table
        logger.info(f"Installed {len(table)} expectation(s)")
        return len(table)

    def handle(
        self,
        method: str,
        path: str,
        query_string: str = '',
        headers: Any = (),
        body: bytes = b''
    ) -> MatchOutcome:
        """
        Log a mock-traffic request and answer it from the table.

        Args:
            method: HTTP method
            path: Request path
            query_string: Raw query string
            headers: Request headers as pairs or mapping
            body: Request body

        Returns:
            MatchOutcome with the rendered response
        """
        with self.lock:
            request = RecordedRequest.build(
                method, path, query_string, headers, body, ordinal=self._arrivals
            )
            self._arrivals += 1
            self.log.append(request)

            for entry in self.table:
                if entry.exhausted:
                    continue
                try:
                    if not entry.expectation.matches(request):
                        continue
                except Exception as e:
                    self._record_failure('predicate', request, entry, e)
                    continue

                try:
                    response = entry.expectation.response.render(request)
                except Exception as e:
                    self._record_failure('transform', request, entry, e)
                    continue

                entry.consume()
                logger.debug(
                    f"Matched {request.method} {request.url} -> expectation #{entry.sequence} "
                    f"({entry.state}, remaining: {entry.remaining})"
                )
                return MatchOutcome(request=request, response=response, entry=entry)

        logger.warning(f"No matching expectation for {request.method} {request.url}")
        return MatchOutcome(request=request, response=no_match_response())

    def reset(self, requests: bool = True, expectations: bool = True, failures: bool = True):
        """Clear the log, the table and/or the failure list."""
        with self.lock:
            if requests:
                self.log.clear()
            if expectations:
                self.table = ExpectationTable()
            if failures:
                self.failures.clear()
        logger.debug(f"Reset state (requests={requests}, expectations={expectations}, failures={failures})")

    def installed(self) -> List[Dict[str, Any]]:
        with self.lock:
            return self.table.to_list()

    def failure_list(self) -> List[Dict[str, Any]]:
        with self.lock:
            return [f.to_dict() for f in self.failures]

    def _record_failure(self, stage: str, request: RecordedRequest, entry: InstalledExpectation, error: Exception):
        logger.exception(
            f"Callback {stage} failed for {request.method} {request.url} "
            f"on expectation #{entry.sequence}"
        )
        if self.diagnostics_limit > 0 and len(self.failures) >= self.diagnostics_limit:
            # Remove oldest failure (FIFO)
            self.failures.pop(0)
        self.failures.append(CallbackFailure(
            stage=stage,
            request_ordinal=request.ordinal,
            expectation_index=entry.sequence,
            error_type=type(error).__name__,
            message=str(error),
            traceback=traceback.format_exc()
        ))
