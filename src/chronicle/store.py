"""Append-only storage for timestamped events."""

import bisect
from collections.abc import Iterator
from dataclasses import dataclass

from .errors import MalformedTermError
from .terms import Compound, Term, format_term, is_ground, term_depth

DEFAULT_MAX_DEPTH = 16


@dataclass(frozen=True)
class Event:
    """A ground occurrence recorded in the store.

    Attributes:
        id: Sequential id assigned by the store, starting at 1.
        description: Ground compound, functor is the verb.
        timestamp: Sortable timestamp text.
    """

    id: int
    description: Compound
    timestamp: str

    @property
    def functor(self) -> str:
        return self.description.functor

    def __str__(self) -> str:
        return f"happens({format_term(self.description)}, \"{self.timestamp}\")"


class EventView:
    """Lazy, restartable view over the events recorded for one functor."""

    def __init__(self, events: list[Event]) -> None:
        self._events = events

    def __iter__(self) -> Iterator[Event]:
        # Length is fixed at iteration start so appends during a scan are not seen.
        for i in range(len(self._events)):
            yield self._events[i]

    def __len__(self) -> int:
        return len(self._events)


class FactStore:
    """Append-only, insertion-ordered event storage.

    Two derived indices support lookup: events by functor name and
    (timestamp, id) pairs kept sorted for range scans. Identical
    (description, timestamp) pairs are stored as independent events.
    """

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        """Initialize an empty store.

        Args:
            max_depth: Maximum nesting depth accepted for event descriptions.
        """
        self.max_depth = max_depth
        self._events: list[Event] = []
        self._by_functor: dict[str, list[Event]] = {}
        self._by_time: list[tuple[str, int]] = []

    def validate(self, description: Term) -> Compound:
        """Check that a description can be stored.

        Raises:
            MalformedTermError: If it is not a ground compound within the depth limit.
        """
        if not isinstance(description, Compound):
            raise MalformedTermError(
                f"Event description must be a compound term, got {format_term(description)}"
            )
        if not is_ground(description):
            raise MalformedTermError(
                f"Event description must be ground: {format_term(description)}"
            )
        if term_depth(description) > self.max_depth:
            raise MalformedTermError(
                f"Event description nests deeper than {self.max_depth}: {description.functor}"
            )
        return description

    def append(self, description: Term, timestamp: str) -> Event:
        """Record an event.

        Args:
            description: Ground compound describing the occurrence.
            timestamp: Already-normalized timestamp text.

        Returns:
            The stored event with its assigned id.
        """
        compound = self.validate(description)
        event = Event(id=len(self._events) + 1, description=compound, timestamp=timestamp)

        self._events.append(event)
        self._by_functor.setdefault(compound.functor, []).append(event)
        bisect.insort(self._by_time, (timestamp, event.id))
        return event

    def get(self, event_id: int) -> Event | None:
        """Get an event by id."""
        if 1 <= event_id <= len(self._events):
            return self._events[event_id - 1]
        return None

    def events_with_functor(self, name: str) -> EventView:
        """Events whose description has the given functor, in insertion order."""
        return EventView(self._by_functor.get(name, []))

    def functors(self) -> list[str]:
        """Functor names seen so far, in first-seen order."""
        return list(self._by_functor)

    def all_events(self) -> list[Event]:
        """Every event in insertion order."""
        return list(self._events)

    def events_between(self, start: str | None = None, end: str | None = None) -> list[Event]:
        """Events with start <= timestamp <= end, in chronological order.

        Either bound may be None for an open range.
        """
        lo = 0 if start is None else bisect.bisect_left(self._by_time, (start, 0))
        if end is None:
            hi = len(self._by_time)
        else:
            # Any timestamp with ``end`` as a proper prefix sorts after ``end``.
            hi = bisect.bisect_right(self._by_time, (end, len(self._events) + 1))
        return [self._events[event_id - 1] for _, event_id in self._by_time[lo:hi]]

    def events_until(self, timestamp: str) -> list[Event]:
        """Events at or before a timestamp, in chronological order."""
        return self.events_between(None, timestamp)

    def clear(self) -> None:
        """Remove every event and restart the id sequence."""
        self._events.clear()
        self._by_functor.clear()
        self._by_time.clear()

    def __len__(self) -> int:
        return len(self._events)
