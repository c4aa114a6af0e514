"""JSONL audit log for engine operations."""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass
class LogEntry:
    """A single audit log entry."""

    timestamp: str
    event: str
    event_id: int | None = None
    functor: str | None = None
    at: str | None = None
    fluent: str | None = None
    results: int | None = None
    duration_ms: float | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict, excluding None values."""
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None and v != {}}


class JSONLLogger:
    """Writes one JSON object per engine operation, rotating by size."""

    def __init__(
        self,
        log_dir: str | Path | None = None,
        filename: str = "chronicle.jsonl",
        max_size_mb: float = 10.0,
    ) -> None:
        if log_dir is None:
            log_dir = Path.home() / ".chronicle" / "logs"
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.filename = filename
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)

    @property
    def log_path(self) -> Path:
        """Current log file path."""
        return self.log_dir / self.filename

    def _rotate_if_needed(self) -> None:
        if not self.log_path.exists():
            return

        if self.log_path.stat().st_size >= self.max_size_bytes:
            stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
            self.log_path.rename(self.log_dir / f"{self.log_path.stem}_{stamp}.jsonl")

    def _write(self, entry: LogEntry) -> None:
        self._rotate_if_needed()

        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry.to_dict(), default=str) + "\n")

    def log(
        self,
        event: str,
        *,
        event_id: int | None = None,
        functor: str | None = None,
        at: str | None = None,
        fluent: str | None = None,
        results: int | None = None,
        duration_ms: float | None = None,
        error: str | None = None,
        **extra: Any,
    ) -> None:
        """Log an event."""
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event=event,
            event_id=event_id,
            functor=functor,
            at=at,
            fluent=fluent,
            results=results,
            duration_ms=duration_ms,
            error=error,
            extra=extra if extra else {},
        )
        self._write(entry)

    def log_event_asserted(self, event_id: int, functor: str, at: str) -> None:
        """Log a stored event."""
        self.log("event_asserted", event_id=event_id, functor=functor, at=at)

    def log_rule_registered(self, rule: str, *, source: str, added: bool) -> None:
        """Log a rule registration attempt."""
        self.log("rule_registered", rule=rule, source=source, added=added)

    def log_query(self, fluent: str, at: str | None, results: int, duration_ms: float) -> None:
        """Log a fluent query."""
        self.log("query", fluent=fluent, at=at, results=results, duration_ms=duration_ms)

    def log_error(self, operation: str, error: str) -> None:
        """Log a rejected operation."""
        self.log("error", error=error, operation=operation)


# Global logger instance
_logger: JSONLLogger | None = None


def get_logger() -> JSONLLogger:
    """Get the global logger instance."""
    global _logger
    if _logger is None:
        _logger = JSONLLogger()
    return _logger


def configure_logger(log_dir: str | Path | None = None, max_size_mb: float = 10.0) -> JSONLLogger:
    """Configure and return the global logger."""
    global _logger
    _logger = JSONLLogger(log_dir=log_dir, max_size_mb=max_size_mb)
    return _logger
