"""Rule model: Initiates/Terminates rules, external rule records, and registries."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import RuleRecordError
from .terms import FUNCTOR_RE, Compound, format_term


class Effect(Enum):
    """What a matching event does to a fluent."""

    INITIATES = "initiates"
    TERMINATES = "terminates"


class RuleSource(Enum):
    """Provenance of a rule. Evaluation never looks at it."""

    BUILTIN = "builtin"
    LEARNED = "learned"


@dataclass(frozen=True)
class Rule:
    """An Initiates or Terminates rule.

    Variables in fluent_pattern are shared with event_pattern. Variables
    that only appear in fluent_pattern act as wildcards for Terminates
    rules; Initiates rules that leave them unbound derive nothing.

    Attributes:
        event_pattern: Compound matched against stored event descriptions.
        effect: Whether matching events initiate or terminate the fluent.
        fluent_pattern: Compound naming the affected fluent.
        exclusive: True if the fluent's domain holds one value per subject.
        source: Where the rule came from; excluded from equality.
    """

    event_pattern: Compound
    effect: Effect
    fluent_pattern: Compound
    exclusive: bool = False
    source: RuleSource = field(default=RuleSource.BUILTIN, compare=False)

    @property
    def event_functor(self) -> str:
        return self.event_pattern.functor

    @property
    def domain(self) -> str:
        return self.fluent_pattern.functor

    def __str__(self) -> str:
        return (
            f"{self.effect.value}({format_term(self.event_pattern)}, "
            f"{format_term(self.fluent_pattern)})"
        )


class RuleType(Enum):
    """Temporal character of a learned verb."""

    STATE_CHANGE = "state_change"
    INSTANTANEOUS = "instantaneous"
    CONTINUOUS = "continuous"


@dataclass(frozen=True)
class FluentSpec:
    """One fluent affected by a learned verb.

    Attributes:
        fluent: Domain name of the fluent.
        pattern: Optional fluent pattern text, e.g. ``employed_at(Subject, _)``.
    """

    fluent: str
    pattern: str | None = None

    def to_dict(self) -> dict[str, str]:
        data = {"fluent": self.fluent}
        if self.pattern:
            data["pattern"] = self.pattern
        return data


def _parse_specs(items: Any, key: str) -> tuple[FluentSpec, ...]:
    if items is None:
        return ()
    if not isinstance(items, list):
        raise RuleRecordError(f"'{key}' must be a list, got {type(items).__name__}")

    specs = []
    for item in items:
        if not isinstance(item, dict) or not isinstance(item.get("fluent"), str):
            raise RuleRecordError(f"Invalid '{key}' entry: {item!r}")
        fluent = item["fluent"].strip()
        if not FUNCTOR_RE.match(fluent):
            raise RuleRecordError(f"Fluent name must be a lowercase identifier: {fluent!r}")
        pattern = item.get("pattern")
        if pattern is not None and not isinstance(pattern, str):
            raise RuleRecordError(f"Pattern for {fluent!r} must be a string")
        specs.append(FluentSpec(fluent=fluent, pattern=pattern or None))
    return tuple(specs)


@dataclass(frozen=True)
class RuleRecord:
    """Externally supplied description of how a verb affects fluents.

    Attributes:
        verb: Event functor the record applies to.
        type: Temporal character of the verb.
        initiates: Fluents started by the verb.
        terminates: Fluents ended by the verb.
    """

    verb: str
    type: RuleType
    initiates: tuple[FluentSpec, ...] = ()
    terminates: tuple[FluentSpec, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any], verb: str | None = None) -> "RuleRecord":
        """Build a record from its JSON shape.

        Args:
            data: ``{"verb"?, "type", "initiates"?, "terminates"?}``.
            verb: Verb to use when data does not carry one.

        Raises:
            RuleRecordError: If the data is not a valid record.
        """
        if not isinstance(data, dict):
            raise RuleRecordError(f"Rule record must be an object, got {type(data).__name__}")

        name = data.get("verb", verb)
        if not isinstance(name, str) or not FUNCTOR_RE.match(name):
            raise RuleRecordError(f"Rule record verb must be a lowercase identifier: {name!r}")

        try:
            rule_type = RuleType(data.get("type", RuleType.INSTANTANEOUS.value))
        except ValueError as e:
            raise RuleRecordError(f"Unknown rule type: {data.get('type')!r}") from e

        return cls(
            verb=name,
            type=rule_type,
            initiates=_parse_specs(data.get("initiates"), "initiates"),
            terminates=_parse_specs(data.get("terminates"), "terminates"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "verb": self.verb,
            "type": self.type.value,
            "initiates": [spec.to_dict() for spec in self.initiates],
            "terminates": [spec.to_dict() for spec in self.terminates],
        }


class RuleSet:
    """Registry of rules indexed by event functor.

    Insertion order is preserved per functor. Adding a rule equal to one
    already registered is a no-op, whatever its source.
    """

    def __init__(self) -> None:
        self._by_functor: dict[str, list[Rule]] = {}
        self._by_domain: dict[tuple[str, int, Effect], list[Rule]] = {}

    def add(self, rule: Rule) -> bool:
        """Register a rule. Returns False if an equal rule was already present."""
        rules = self._by_functor.setdefault(rule.event_functor, [])
        if rule in rules:
            return False
        rules.append(rule)
        key = (rule.domain, rule.fluent_pattern.arity, rule.effect)
        self._by_domain.setdefault(key, []).append(rule)
        return True

    def for_event_functor(self, name: str) -> list[Rule]:
        """Rules triggered by events with this functor."""
        return list(self._by_functor.get(name, []))

    def initiating(self, domain: str, arity: int) -> list[Rule]:
        """Initiates rules for a fluent domain and arity."""
        return list(self._by_domain.get((domain, arity, Effect.INITIATES), []))

    def terminating(self, domain: str, arity: int) -> list[Rule]:
        """Terminates rules for a fluent domain and arity."""
        return list(self._by_domain.get((domain, arity, Effect.TERMINATES), []))

    def initiating_all(self) -> list[Rule]:
        """Every Initiates rule, grouped by domain in registration order."""
        return [
            rule
            for (_, _, effect), rules in self._by_domain.items()
            if effect is Effect.INITIATES
            for rule in rules
        ]

    def all(self) -> list[Rule]:
        return [rule for rules in self._by_functor.values() for rule in rules]

    def discard_learned(self) -> int:
        """Drop learned rules, keeping built-in ones. Returns the number removed."""
        kept = [rule for rule in self.all() if rule.source is RuleSource.BUILTIN]
        removed = len(self) - len(kept)
        self._by_functor.clear()
        self._by_domain.clear()
        for rule in kept:
            self.add(rule)
        return removed

    def __contains__(self, rule: object) -> bool:
        if not isinstance(rule, Rule):
            return False
        return rule in self._by_functor.get(rule.event_functor, [])

    def __len__(self) -> int:
        return sum(len(rules) for rules in self._by_functor.values())


class ExclusiveDomains:
    """Domains where at most one value holds per subject at a time.

    Membership only grows; registering a domain twice is a no-op.
    """

    def __init__(self) -> None:
        self._domains: set[str] = set()

    def register(self, domain: str) -> bool:
        """Mark a domain exclusive. Returns False if it already was."""
        if domain in self._domains:
            return False
        self._domains.add(domain)
        return True

    def __contains__(self, domain: object) -> bool:
        return domain in self._domains

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._domains))

    def __len__(self) -> int:
        return len(self._domains)
