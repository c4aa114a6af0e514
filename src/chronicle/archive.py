"""SQLite archive for events and learned rule records.

The archive lives outside the engine: it snapshots an engine's events and
records, and restores them by replaying through the public engine API.
"""

import json
import sqlite3
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .errors import MalformedTermError
from .rules import RuleRecord
from .store import Event
from .terms import Compound, Term, Text, format_term, is_ground, parse_term
from .timestamps import normalize_timestamp

if TYPE_CHECKING:
    from .engine import Engine, TimestampLike


def _event_term(description: Term | str) -> Compound:
    term = parse_term(description) if isinstance(description, str) else description
    if not isinstance(term, Compound) or not is_ground(term):
        raise MalformedTermError(f"Archived events must be ground compounds: {format_term(term)}")
    return term


class EventArchive:
    """Persistent storage for events using SQLite.

    Identical (description, timestamp) pairs are stored once, so saving
    the same engine twice does not duplicate anything.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the archive with a database path.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def init_db(self) -> None:
        """Create the events and rules tables if they don't exist."""
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS events (
                id          INTEGER PRIMARY KEY AUTOINCREMENT,
                description TEXT NOT NULL,
                functor     TEXT NOT NULL,
                timestamp   TEXT NOT NULL,
                created_at  TEXT NOT NULL DEFAULT (datetime('now')),
                UNIQUE(description, timestamp)
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_events_timestamp ON events(timestamp)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_events_functor ON events(functor)")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS rules (
                verb        TEXT PRIMARY KEY,
                record      TEXT NOT NULL,
                updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        conn.commit()

    def save_event(self, description: Term | str, timestamp: "TimestampLike") -> bool:
        """Save an event.

        Args:
            description: Ground compound or its text form.
            timestamp: When the event happened.

        Returns:
            True if the event was new, False if it was already archived.

        Raises:
            MalformedTermError: If the description is not a ground compound.
            InvalidTimestampError: If the timestamp is not usable.
        """
        term = _event_term(description)
        at = normalize_timestamp(timestamp)
        conn = self._get_connection()
        cursor = conn.execute(
            """
            INSERT INTO events (description, functor, timestamp)
            VALUES (?, ?, ?)
            ON CONFLICT(description, timestamp) DO NOTHING
            """,
            (format_term(term), term.functor, at),
        )
        conn.commit()
        return cursor.rowcount > 0

    def save_events(self, events: Iterable[Event]) -> int:
        """Save stored engine events.

        Returns:
            Number of events that were new to the archive.
        """
        count = 0
        for event in events:
            if self.save_event(event.description, event.timestamp):
                count += 1
        return count

    def save_rule(self, record: RuleRecord) -> None:
        """Save a rule record, replacing any previous record for its verb."""
        conn = self._get_connection()
        conn.execute(
            """
            INSERT INTO rules (verb, record)
            VALUES (?, ?)
            ON CONFLICT(verb) DO UPDATE SET
                record = excluded.record,
                updated_at = datetime('now')
            """,
            (record.verb, json.dumps(record.to_dict())),
        )
        conn.commit()

    def load_events(
        self,
        start: "TimestampLike | None" = None,
        end: "TimestampLike | None" = None,
    ) -> list[Event]:
        """Get archived events in chronological order.

        Args:
            start: Inclusive lower bound, or None.
            end: Inclusive upper bound, or None.

        Returns:
            Events carrying their archive ids.
        """
        query = "SELECT id, description, timestamp FROM events"
        clauses: list[str] = []
        params: list[str] = []
        if start is not None:
            clauses.append("timestamp >= ?")
            params.append(normalize_timestamp(start))
        if end is not None:
            clauses.append("timestamp <= ?")
            params.append(normalize_timestamp(end))
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY timestamp, id"

        conn = self._get_connection()
        cursor = conn.execute(query, params)
        return [self._row_to_event(row) for row in cursor.fetchall()]

    def load_rules(self) -> list[RuleRecord]:
        """Get every archived rule record."""
        conn = self._get_connection()
        cursor = conn.execute("SELECT record FROM rules ORDER BY verb")
        return [RuleRecord.from_dict(json.loads(row["record"])) for row in cursor.fetchall()]

    def snapshot(self, engine: "Engine") -> int:
        """Archive an engine's learned records and events.

        Returns:
            Number of events that were new to the archive.
        """
        for record in engine.learned_records():
            self.save_rule(record)
        return self.save_events(engine.events())

    def restore(self, engine: "Engine") -> int:
        """Replay the archive into an engine: rule records first, then events.

        Returns:
            Number of events asserted.
        """
        for record in self.load_rules():
            engine.register_rule(record)

        events = self.load_events()
        for event in events:
            engine.assert_event(event.description, event.timestamp)
        return len(events)

    def export_facts(self) -> str:
        """Archived events as ``happens(<term>, "<timestamp>").`` lines."""
        lines = [f"{event}." for event in self.load_events()]
        return "\n".join(lines) + "\n" if lines else ""

    def import_facts(self, text: str) -> int:
        """Archive ``happens/2`` fact lines.

        Blank lines and lines starting with ``%`` are skipped.

        Returns:
            Number of events that were new to the archive.

        Raises:
            MalformedTermError: If a line is not a happens fact; nothing is saved then.
        """
        parsed: list[tuple[Compound, str]] = []
        for number, raw in enumerate(text.splitlines(), start=1):
            line = raw.strip()
            if not line or line.startswith("%"):
                continue
            parsed.append(self._parse_fact(line.removesuffix("."), number))

        count = 0
        for description, timestamp in parsed:
            if self.save_event(description, timestamp):
                count += 1
        return count

    def _parse_fact(self, line: str, number: int) -> tuple[Compound, str]:
        try:
            fact = parse_term(line)
        except MalformedTermError as e:
            raise MalformedTermError(f"Line {number}: {e}") from e

        if (
            not isinstance(fact, Compound)
            or fact.functor != "happens"
            or fact.arity != 2
            or not isinstance(fact.args[1], Text)
        ):
            raise MalformedTermError(f'Line {number}: expected happens(<event>, "<timestamp>")')

        description = fact.args[0]
        if not isinstance(description, Compound) or not is_ground(description):
            raise MalformedTermError(f"Line {number}: event must be a ground compound")
        return description, normalize_timestamp(fact.args[1].value)

    def stats(self) -> dict[str, Any]:
        """Counts and time span of the archive."""
        conn = self._get_connection()
        row = conn.execute(
            "SELECT COUNT(*) AS events, COUNT(DISTINCT functor) AS functors, "
            "MIN(timestamp) AS first, MAX(timestamp) AS last FROM events"
        ).fetchone()
        rules = conn.execute("SELECT COUNT(*) AS rules FROM rules").fetchone()
        return {
            "events": row["events"],
            "functors": row["functors"],
            "rules": rules["rules"],
            "first": row["first"],
            "last": row["last"],
        }

    def clear(self) -> None:
        """Delete every archived event and rule record."""
        conn = self._get_connection()
        conn.execute("DELETE FROM events")
        conn.execute("DELETE FROM rules")
        conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _row_to_event(self, row: sqlite3.Row) -> Event:
        """Convert a database row to an Event."""
        return Event(id=row["id"], description=_event_term(row["description"]), timestamp=row["timestamp"])
