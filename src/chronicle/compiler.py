"""Rule compilation from the built-in taxonomy and external rule records."""

import logging

from .errors import MalformedTermError, RuleRecordError
from .rules import Effect, ExclusiveDomains, FluentSpec, Rule, RuleRecord, RuleSet, RuleSource, RuleType
from .taxonomy import VerbPattern, classify
from .terms import Compound, Variable, format_term, parse_term, variables

logger = logging.getLogger(__name__)

RECORD_EVENT_SLOTS = (Variable("Subject"), Variable("Object"))


class RuleCompiler:
    """Turns verbs into rules and registers them.

    Built-in rules are compiled the first time a functor/arity pair is
    seen. Rules from external records are compiled on demand. Both land in
    the same RuleSet, and exclusive rules register their domain in the
    ExclusiveDomains registry.
    """

    def __init__(
        self,
        rules: RuleSet,
        exclusive: ExclusiveDomains,
        taxonomy: list[VerbPattern] | None = None,
    ) -> None:
        """Initialize the compiler.

        Args:
            rules: Registry receiving compiled rules.
            exclusive: Registry receiving exclusive domains.
            taxonomy: Verb patterns to classify with, defaults to the built-in taxonomy.
        """
        self.rules = rules
        self.exclusive = exclusive
        self.taxonomy = taxonomy
        self._compiled: set[tuple[str, int]] = set()

    def compile_functor(self, functor: str, arity: int) -> list[Rule]:
        """Compile built-in rules for a functor/arity pair.

        Returns:
            Rules newly added to the registry; empty if the pair was already
            compiled or the verb is not in the taxonomy.
        """
        key = (functor, arity)
        if key in self._compiled:
            return []
        self._compiled.add(key)

        rules = classify(functor, arity, self.taxonomy)
        if not rules:
            logger.debug("No built-in rules for %s/%d", functor, arity)
        return self.register(rules)

    def reset(self) -> None:
        """Forget which functors were compiled so they compile again on next use."""
        self._compiled.clear()

    def has_builtin(self, functor: str, arity: int) -> bool:
        """True if the taxonomy recognises the verb."""
        return bool(classify(functor, arity, self.taxonomy))

    def register(self, rules: list[Rule]) -> list[Rule]:
        """Add rules to the registry, recording exclusive domains.

        Returns:
            The rules that were not already registered.
        """
        added = []
        for rule in rules:
            if rule.exclusive:
                self.exclusive.register(rule.domain)
            if self.rules.add(rule):
                added.append(rule)
                logger.debug("Registered %s rule %s", rule.source.value, rule)
        return added

    def compile_record(self, record: RuleRecord) -> list[Rule]:
        """Compile and register the rules described by an external record."""
        return self.register(self.build_record_rules(record))

    def build_record_rules(self, record: RuleRecord) -> list[Rule]:
        """Translate a record into rules without registering them.

        The event pattern is ``verb(Subject, Object)``. A state_change record
        that both initiates and terminates the same domain becomes an
        exclusive Initiates rule; the Terminates half is covered by
        exclusive clipping.

        Raises:
            RuleRecordError: If a pattern is malformed or names the wrong fluent.
        """
        event = Compound(record.verb, RECORD_EVENT_SLOTS)

        replaced: set[str] = set()
        if record.type is RuleType.STATE_CHANGE:
            replaced = {s.fluent for s in record.initiates} & {s.fluent for s in record.terminates}

        rules = []
        for spec in record.initiates:
            fluent = _spec_pattern(spec)
            unbound = set(variables(fluent)) - {v.name for v in RECORD_EVENT_SLOTS}
            if unbound:
                raise RuleRecordError(
                    f"Initiates pattern {format_term(fluent)} uses variables the event "
                    f"does not bind: {', '.join(sorted(unbound))}"
                )
            rules.append(
                Rule(
                    event,
                    Effect.INITIATES,
                    fluent,
                    exclusive=spec.fluent in replaced,
                    source=RuleSource.LEARNED,
                )
            )
        for spec in record.terminates:
            if spec.fluent in replaced:
                continue
            rules.append(Rule(event, Effect.TERMINATES, _spec_pattern(spec), source=RuleSource.LEARNED))
        return rules


def _spec_pattern(spec: FluentSpec) -> Compound:
    if not spec.pattern:
        return Compound(spec.fluent, RECORD_EVENT_SLOTS)

    try:
        pattern = parse_term(spec.pattern)
    except MalformedTermError as e:
        raise RuleRecordError(f"Invalid pattern for {spec.fluent!r}: {e}") from e

    if not isinstance(pattern, Compound) or pattern.functor != spec.fluent:
        raise RuleRecordError(
            f"Pattern {spec.pattern!r} must be a compound with functor {spec.fluent!r}"
        )
    if pattern.arity == 0:
        raise RuleRecordError(f"Pattern {spec.pattern!r} has no subject argument")
    return pattern
