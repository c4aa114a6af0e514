"""Temporal fact store with Event Calculus fluent evaluation."""

from .engine import Engine
from .errors import ChronicleError, InvalidTimestampError, MalformedTermError, QueryError, RuleRecordError
from .evaluator import Holding, Interval
from .rules import Effect, Rule, RuleRecord, RuleSource, RuleType
from .store import Event
from .terms import Atom, Compound, Number, Text, Variable, compound, format_term, parse_term

__version__ = "0.1.0"

__all__ = [
    "Atom",
    "ChronicleError",
    "Compound",
    "Effect",
    "Engine",
    "Event",
    "Holding",
    "Interval",
    "InvalidTimestampError",
    "MalformedTermError",
    "Number",
    "QueryError",
    "Rule",
    "RuleRecord",
    "RuleRecordError",
    "RuleSource",
    "RuleType",
    "Text",
    "Variable",
    "compound",
    "format_term",
    "parse_term",
]
