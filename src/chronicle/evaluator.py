"""Fluent evaluation over the event log (Event Calculus).

A fluent F holds at time T when some event initiated F at T1 <= T and F
was not clipped in (T1, T]. A candidate is clipped by:
- an event matching a Terminates rule for F, or
- when F's domain is exclusive, an initiation of the same domain and
  subject with a different value.

Initiation takes effect at its own timestamp, and so does clipping: a
query exactly at a termination instant does not hold. Evaluation scans
events by timestamp, never by insertion order.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from .errors import QueryError
from .rules import ExclusiveDomains, Rule, RuleSet
from .store import Event, FactStore
from .terms import Bindings, Compound, Term, format_term, is_ground, match, substitute


@dataclass(frozen=True)
class Initiation:
    """A ground fluent started by a specific event."""

    fluent: Compound
    event: Event

    @property
    def timestamp(self) -> str:
        return self.event.timestamp


@dataclass(frozen=True)
class Holding:
    """A fluent that holds at the queried time.

    Attributes:
        fluent: The ground fluent.
        since: Start of the interval the fluent currently holds in.
    """

    fluent: Compound
    since: str

    @property
    def domain(self) -> str:
        return self.fluent.functor

    @property
    def subject(self) -> Term:
        return self.fluent.args[0]

    @property
    def value(self) -> Term | tuple[Term, ...] | None:
        rest = self.fluent.args[1:]
        if not rest:
            return None
        if len(rest) == 1:
            return rest[0]
        return rest

    def as_tuple(self) -> tuple[str, Term, Any]:
        return (self.domain, self.subject, self.value)


@dataclass(frozen=True)
class Interval:
    """A maximal period during which a ground fluent holds.

    ``end`` is the clipping timestamp (exclusive), None if still holding.
    """

    fluent: Compound
    start: str
    end: str | None = None

    def contains(self, timestamp: str) -> bool:
        return self.start <= timestamp and (self.end is None or timestamp < self.end)


def check_pattern(pattern: Any) -> Compound:
    """Validate a fluent pattern.

    Raises:
        QueryError: If it is not a compound with at least a subject argument.
    """
    if not isinstance(pattern, Compound):
        raise QueryError(f"Fluent pattern must be a compound term, got {pattern!r}")
    if pattern.arity == 0:
        raise QueryError(f"Fluent pattern {pattern.functor} has no subject argument")
    return pattern


class FluentEvaluator:
    """Answers holds-at questions against a store and rule set.

    The evaluator only reads from the store, the rules and the exclusive
    domains; it keeps no state between calls.
    """

    def __init__(self, store: FactStore, rules: RuleSet, exclusive: ExclusiveDomains) -> None:
        self.store = store
        self.rules = rules
        self.exclusive = exclusive

    # Derivation primitives

    def _initiations_by(self, rule: Rule, until: str | None = None) -> Iterator[Initiation]:
        for event in self.store.events_with_functor(rule.event_functor):
            if until is not None and event.timestamp > until:
                continue
            bindings = match(rule.event_pattern, event.description)
            if bindings is None:
                continue
            fluent = substitute(rule.fluent_pattern, bindings)
            if isinstance(fluent, Compound) and is_ground(fluent):
                yield Initiation(fluent, event)

    def initiations(self, domain: str, arity: int, until: str | None = None) -> Iterator[Initiation]:
        """Ground initiations of a domain, optionally bounded by a timestamp."""
        for rule in self.rules.initiating(domain, arity):
            yield from self._initiations_by(rule, until)

    def clipping_events(self, fluent: Compound) -> Iterator[Event]:
        """Events that would clip a ground fluent if they fall inside its interval."""
        for rule in self.rules.terminating(fluent.functor, fluent.arity):
            for event in self.store.events_with_functor(rule.event_functor):
                bindings = match(rule.event_pattern, event.description)
                if bindings is None:
                    continue
                if match(substitute(rule.fluent_pattern, bindings), fluent) is not None:
                    yield event

        if fluent.functor in self.exclusive:
            subject, value = fluent.args[0], fluent.args[1:]
            for other in self.initiations(fluent.functor, fluent.arity):
                if other.fluent.args[0] == subject and other.fluent.args[1:] != value:
                    yield other.event

    def clipped(self, fluent: Compound, start: str, end: str) -> bool:
        """True if the fluent is clipped at some T with start < T <= end."""
        return any(start < event.timestamp <= end for event in self.clipping_events(fluent))

    # Queries

    def query(self, pattern: Compound, timestamp: str) -> list[Bindings]:
        """Bindings for which the pattern holds at the timestamp.

        Args:
            pattern: Fluent pattern, possibly with variables.
            timestamp: Normalized timestamp.

        Returns:
            Distinct bindings, ordered by initiation time. A ground pattern
            that holds yields a single empty binding.
        """
        pattern = check_pattern(pattern)

        candidates: list[tuple[str, str, Bindings]] = []
        for init in self.initiations(pattern.functor, pattern.arity, until=timestamp):
            bindings = match(pattern, init.fluent)
            if bindings is None:
                continue
            if self.clipped(init.fluent, init.timestamp, timestamp):
                continue
            candidates.append((init.timestamp, format_term(init.fluent), bindings))
        candidates.sort(key=lambda c: (c[0], c[1]))

        results: list[Bindings] = []
        seen: set[frozenset] = set()
        for _, _, bindings in candidates:
            key = frozenset(bindings.items())
            if key not in seen:
                seen.add(key)
                results.append(bindings)
        return results

    def holds_at(self, fluent: Compound, timestamp: str) -> bool:
        """True if the fluent (ground or not) has at least one binding at the timestamp."""
        return bool(self.query(fluent, timestamp))

    def all_holding(self, timestamp: str) -> list[Holding]:
        """Every ground fluent holding at the timestamp, across all domains."""
        since: dict[Compound, str] = {}
        for rule in self.rules.initiating_all():
            for init in self._initiations_by(rule, until=timestamp):
                known = since.get(init.fluent)
                if known is not None and known <= init.timestamp:
                    continue
                if not self.clipped(init.fluent, init.timestamp, timestamp):
                    since[init.fluent] = init.timestamp

        holdings = [Holding(fluent, start) for fluent, start in since.items()]
        holdings.sort(key=lambda h: (h.domain, format_term(h.subject), format_term(h.fluent)))
        return holdings

    def ever_held(self, pattern: Compound) -> bool:
        """True if any event ever initiated a fluent matching the pattern, ignoring clipping."""
        pattern = check_pattern(pattern)
        return any(
            match(pattern, init.fluent) is not None
            for init in self.initiations(pattern.functor, pattern.arity)
        )

    def timeline(self, pattern: Compound) -> list[Interval]:
        """Maximal holding intervals for every ground fluent matching the pattern."""
        pattern = check_pattern(pattern)

        fluents: list[Compound] = []
        for init in sorted(
            self.initiations(pattern.functor, pattern.arity),
            key=lambda i: (i.timestamp, format_term(i.fluent)),
        ):
            if init.fluent not in fluents and match(pattern, init.fluent) is not None:
                fluents.append(init.fluent)

        intervals: list[Interval] = []
        for fluent in fluents:
            intervals.extend(self._intervals(fluent))
        intervals.sort(key=lambda i: (i.start, format_term(i.fluent)))
        return intervals

    def _intervals(self, fluent: Compound) -> list[Interval]:
        # Holding status can only change where the fluent is initiated or clipped.
        points = {
            init.timestamp
            for init in self.initiations(fluent.functor, fluent.arity)
            if init.fluent == fluent
        }
        points.update(event.timestamp for event in self.clipping_events(fluent))

        intervals = []
        start: str | None = None
        for point in sorted(points):
            holds = self.holds_at(fluent, point)
            if holds and start is None:
                start = point
            elif not holds and start is not None:
                intervals.append(Interval(fluent, start, point))
                start = None
        if start is not None:
            intervals.append(Interval(fluent, start, None))
        return intervals
