"""Engine facade: the public entry point for asserting events and asking what holds."""

import logging
import time
from dataclasses import replace
from datetime import date, datetime
from typing import Any

from .compiler import RuleCompiler
from .errors import ChronicleError, MalformedTermError, QueryError
from .evaluator import FluentEvaluator, Holding, Interval
from .logging import JSONLLogger
from .rules import ExclusiveDomains, Rule, RuleRecord, RuleSet, RuleSource
from .store import DEFAULT_MAX_DEPTH, Event, FactStore
from .taxonomy import VerbPattern
from .terms import Bindings, Compound, Term, format_term, parse_term
from .timestamps import normalize_timestamp, today

logger = logging.getLogger(__name__)

TimestampLike = str | date | datetime


class Engine:
    """Temporal fact store with Event Calculus evaluation.

    Events are asserted with a timestamp and never modified. Fluents are
    derived on demand from the events and the rules registered for their
    verbs: built-in rules come from the verb taxonomy, learned rules from
    register_rule.

    The engine is single-threaded; callers serialise access.
    """

    def __init__(
        self,
        current_date: TimestampLike | None = None,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
        taxonomy: list[VerbPattern] | None = None,
        audit: JSONLLogger | None = None,
    ) -> None:
        """Initialize an empty engine.

        Args:
            current_date: What "now" means for holds_now and all_holding;
                defaults to today.
            max_depth: Maximum nesting depth for event descriptions.
            taxonomy: Verb patterns for built-in rules, defaults to the standard taxonomy.
            audit: Optional JSONL audit log.
        """
        self.store = FactStore(max_depth=max_depth)
        self.rules = RuleSet()
        self.exclusive = ExclusiveDomains()
        self.compiler = RuleCompiler(self.rules, self.exclusive, taxonomy)
        self.evaluator = FluentEvaluator(self.store, self.rules, self.exclusive)
        self.audit = audit
        self._records: dict[str, RuleRecord] = {}
        self._current_date = normalize_timestamp(current_date) if current_date is not None else today()

    # Current date

    @property
    def current_date(self) -> str:
        return self._current_date

    def set_current_date(self, value: TimestampLike) -> str:
        """Change what "now" means. Returns the normalized timestamp."""
        self._current_date = normalize_timestamp(value)
        if self.audit:
            self.audit.log("current_date_set", at=self._current_date)
        return self._current_date

    # Writes

    def assert_event(self, description: Term | str, timestamp: TimestampLike) -> int:
        """Record that an event happened at a time.

        Args:
            description: Ground compound, or its text form (``moved_to(user, paris)``).
            timestamp: ISO timestamp text, date or datetime.

        Returns:
            The id assigned to the stored event.

        Raises:
            MalformedTermError: If the description cannot be parsed or is not ground.
            InvalidTimestampError: If the timestamp is not usable.
        """
        try:
            term = parse_term(description) if isinstance(description, str) else description
            at = normalize_timestamp(timestamp)
            event = self.store.append(term, at)
        except ChronicleError as e:
            self._log_error("assert_event", e)
            raise

        self.compiler.compile_functor(event.functor, event.description.arity)
        if self.audit:
            self.audit.log_event_asserted(event.id, event.functor, event.timestamp)
        return event.id

    def register_rule(self, rule: Rule | RuleRecord | dict[str, Any]) -> list[Rule]:
        """Register a learned rule or an external rule record.

        Rules registered here count as learned and are dropped by reset.
        Registering the same rule twice is a no-op.

        Returns:
            The rules newly added.

        Raises:
            RuleRecordError: If a record is malformed.
        """
        try:
            if isinstance(rule, Rule):
                rules = [replace(rule, source=RuleSource.LEARNED)]
            else:
                record = rule if isinstance(rule, RuleRecord) else RuleRecord.from_dict(rule)
                rules = self.compiler.build_record_rules(record)
                self._records[record.verb] = record
        except ChronicleError as e:
            self._log_error("register_rule", e)
            raise

        added = self.compiler.register(rules)
        if self.audit:
            for r in rules:
                self.audit.log_rule_registered(str(r), source=r.source.value, added=r in added)
        return added

    def reset(self) -> None:
        """Drop every event and learned rule; built-in rules stay."""
        events = len(self.store)
        self.store.clear()
        removed = self.rules.discard_learned()
        self._records.clear()

        # Exclusive domains only grow, so rebuild from the surviving rules.
        self.exclusive = ExclusiveDomains()
        for rule in self.rules.all():
            if rule.exclusive:
                self.exclusive.register(rule.domain)
        self.compiler.exclusive = self.exclusive
        self.evaluator.exclusive = self.exclusive
        # A learned rule may have stood in for an equal built-in one.
        self.compiler.reset()

        logger.debug("Reset engine: %d events, %d learned rules dropped", events, removed)
        if self.audit:
            self.audit.log("reset", events=events, rules=removed)

    # Reads

    def query(self, pattern: Compound | str, timestamp: TimestampLike | None = None) -> list[Bindings]:
        """Bindings for which the pattern holds at a time (default: now).

        Raises:
            QueryError: If the pattern is malformed.
        """
        fluent = self._pattern(pattern)
        at = self._at(timestamp)
        started = time.perf_counter()
        results = self.evaluator.query(fluent, at)
        if self.audit:
            self.audit.log_query(
                format_term(fluent),
                at,
                len(results),
                round((time.perf_counter() - started) * 1000, 3),
            )
        return results

    def holds_at(self, fluent: Compound | str, timestamp: TimestampLike) -> bool:
        """True if the fluent holds at the timestamp."""
        return bool(self.query(fluent, timestamp))

    def holds_now(self, fluent: Compound | str) -> bool:
        """True if the fluent holds at the current date."""
        return bool(self.query(fluent, self._current_date))

    def all_holding(self, timestamp: TimestampLike | None = None) -> list[Holding]:
        """Every fluent holding at a time (default: now)."""
        return self.evaluator.all_holding(self._at(timestamp))

    def ever_held(self, pattern: Compound | str) -> bool:
        """True if a matching fluent was ever initiated, regardless of later clipping."""
        return self.evaluator.ever_held(self._pattern(pattern))

    def timeline(self, pattern: Compound | str) -> list[Interval]:
        """Holding intervals for every fluent matching the pattern."""
        return self.evaluator.timeline(self._pattern(pattern))

    def events(self, start: TimestampLike | None = None, end: TimestampLike | None = None) -> list[Event]:
        """Stored events within an inclusive time range, chronologically."""
        lo = normalize_timestamp(start) if start is not None else None
        hi = normalize_timestamp(end) if end is not None else None
        return self.store.events_between(lo, hi)

    def learned_records(self) -> list[RuleRecord]:
        """Rule records registered since the last reset."""
        return list(self._records.values())

    def is_known_verb(self, functor: str, arity: int = 2) -> bool:
        """True if events with this verb derive anything."""
        if self.rules.for_event_functor(functor):
            return True
        return self.compiler.has_builtin(functor, arity)

    def learned_rules(self) -> list[Rule]:
        return [rule for rule in self.rules.all() if rule.source is RuleSource.LEARNED]

    # Helpers

    def _pattern(self, pattern: Compound | str) -> Compound:
        if isinstance(pattern, str):
            try:
                pattern = parse_term(pattern)
            except MalformedTermError as e:
                self._log_error("query", e)
                raise QueryError(f"Invalid fluent pattern {pattern!r}: {e}") from e
        return pattern

    def _at(self, timestamp: TimestampLike | None) -> str:
        if timestamp is None:
            return self._current_date
        return normalize_timestamp(timestamp)

    def _log_error(self, operation: str, error: Exception) -> None:
        if self.audit:
            self.audit.log_error(operation, str(error))

    def __len__(self) -> int:
        return len(self.store)
