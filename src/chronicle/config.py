"""Configuration loader.

Loads settings from ~/.chronicle/config.json and overlays environment
variables on top.
"""

import json
import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from .errors import InvalidTimestampError
from .store import DEFAULT_MAX_DEPTH
from .timestamps import normalize_timestamp

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".chronicle" / "config.json"
DEFAULT_DB_PATH = Path.home() / ".chronicle" / "events.db"
DEFAULT_MODEL = "llama-3.3-70b-versatile"


@dataclass
class EngineConfig:
    """Settings for the engine and the collaborators around it.

    Attributes:
        current_date: What "now" means; today when None.
        max_term_depth: Maximum nesting depth of event descriptions.
        log_dir: Directory for the JSONL audit log (~/.chronicle/logs if None).
        log_enabled: Whether the engine writes an audit log.
        max_log_size_mb: Size at which the audit log rotates.
        db_path: SQLite file for the event archive.
        model: Groq model used by the parser and the rule learner.
        auto_learn: Ask the rule learner about verbs the engine does not know.
    """

    current_date: str | None = None
    max_term_depth: int = DEFAULT_MAX_DEPTH
    log_dir: Path | None = None
    log_enabled: bool = False
    max_log_size_mb: float = 10.0
    db_path: Path | None = None
    model: str = DEFAULT_MODEL
    auto_learn: bool = True

    def __post_init__(self) -> None:
        """Validate config and set defaults."""
        if self.current_date is not None:
            self.current_date = normalize_timestamp(self.current_date)

        if self.max_term_depth < 1:
            raise ValueError("max_term_depth must be at least 1")

        if self.max_log_size_mb <= 0:
            raise ValueError("max_log_size_mb must be positive")

        if self.log_dir is not None:
            self.log_dir = Path(self.log_dir).expanduser()

        if self.db_path is None:
            self.db_path = DEFAULT_DB_PATH
        self.db_path = Path(self.db_path).expanduser()


def load_config(config_path: Path | None = None) -> EngineConfig:
    """Load EngineConfig from a JSON file.

    The config file should have this structure:
    ```json
    {
      "engine": {"current_date": "2024-06-01", "max_term_depth": 16},
      "log": {"enabled": true, "dir": "~/.chronicle/logs", "max_size_mb": 10},
      "llm": {"model": "llama-3.3-70b-versatile", "auto_learn": true},
      "archive": {"db_path": "~/.chronicle/events.db"}
    }
    ```

    Args:
        config_path: Path to config file. Uses DEFAULT_CONFIG_PATH if None.

    Returns:
        EngineConfig with loaded values; defaults if the file is missing or invalid.
    """
    path = config_path or DEFAULT_CONFIG_PATH

    if not path.exists():
        logger.debug("No config file at %s, using defaults", path)
        return EngineConfig()

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.warning("Invalid JSON in %s: %s. Using defaults.", path, e)
        return EngineConfig()
    except OSError as e:
        logger.warning("Cannot read %s: %s. Using defaults.", path, e)
        return EngineConfig()

    if not isinstance(data, dict):
        logger.warning("Config in %s is not an object. Using defaults.", path)
        return EngineConfig()

    try:
        return _parse_config(data)
    except (ValueError, InvalidTimestampError) as e:
        logger.warning("Invalid settings in %s: %s. Using defaults.", path, e)
        return EngineConfig()


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name, {})
    return section if isinstance(section, dict) else {}


def _parse_config(data: dict[str, Any]) -> EngineConfig:
    engine = _section(data, "engine")
    log = _section(data, "log")
    llm = _section(data, "llm")
    archive = _section(data, "archive")

    max_depth = engine.get("max_term_depth", DEFAULT_MAX_DEPTH)
    if not isinstance(max_depth, int) or max_depth < 1:
        max_depth = DEFAULT_MAX_DEPTH

    max_size = log.get("max_size_mb", 10.0)
    if not isinstance(max_size, (int, float)) or max_size <= 0:
        max_size = 10.0

    return EngineConfig(
        current_date=engine.get("current_date"),
        max_term_depth=max_depth,
        log_dir=log.get("dir"),
        log_enabled=bool(log.get("enabled", False)),
        max_log_size_mb=float(max_size),
        db_path=archive.get("db_path"),
        model=llm.get("model") or DEFAULT_MODEL,
        auto_learn=bool(llm.get("auto_learn", True)),
    )


def config_from_env(base: EngineConfig | None = None) -> EngineConfig:
    """Overlay environment variables on a config.

    Reads CHRONICLE_CURRENT_DATE, CHRONICLE_LOG_DIR, CHRONICLE_DB and
    GROQ_MODEL. Setting CHRONICLE_LOG_DIR also enables the audit log.
    """
    config = base or EngineConfig()
    overrides: dict[str, Any] = {}

    if os.getenv("CHRONICLE_CURRENT_DATE"):
        overrides["current_date"] = os.environ["CHRONICLE_CURRENT_DATE"]
    if os.getenv("CHRONICLE_LOG_DIR"):
        overrides["log_dir"] = Path(os.environ["CHRONICLE_LOG_DIR"])
        overrides["log_enabled"] = True
    if os.getenv("CHRONICLE_DB"):
        overrides["db_path"] = Path(os.environ["CHRONICLE_DB"])
    if os.getenv("GROQ_MODEL"):
        overrides["model"] = os.environ["GROQ_MODEL"]

    return replace(config, **overrides) if overrides else config
