"""Built-in verb taxonomy.

The taxonomy is a priority-ordered list of VerbPattern entries. Each entry
pairs a matcher (functor name -> fluent domain, or None) with a template
(functor, domain, arity -> rules). Both are pure functions, so every entry
can be tested on its own and the first entry that matches decides the rules
for a verb.

Verb families:
- accumulating: initiates a fluent; many values may hold per subject
- terminating: ends the fluent for the same subject and value
- singular: initiates a fluent whose domain holds one value per subject
"""

from collections.abc import Callable
from dataclasses import dataclass

from .rules import Effect, Rule
from .terms import FUNCTOR_RE, Compound, Variable

Matcher = Callable[[str], str | None]
Template = Callable[[str, str, int], list[Rule]]

ACCUMULATING_VERBS: dict[str, str] = {
    "learned": "knows",
    "studied": "knows",
    "mastered": "knows",
    "met": "knows",
    "joined": "member_of",
    "bought": "has",
    "acquired": "has",
    "obtained": "has",
    "got": "has",
    "started_liking": "likes",
    "started_disliking": "dislikes",
    "got_pet": "has_pet",
    "started_business": "owns",
    "founded": "owns",
    "started_project": "working_on",
    "started_learning": "learning",
}

TERMINATING_VERBS: dict[str, str] = {
    "left": "member_of",
    "quit": "member_of",
    "sold": "has",
    "lost": "has",
    "divorced": "married_to",
    "closed_business": "owns",
    "sold_business": "owns",
    "left_company": "employed_at",
    "lost_pet": "has_pet",
    "stopped_liking": "likes",
    "stopped_disliking": "dislikes",
    "finished_project": "working_on",
    "abandoned_project": "working_on",
}

SINGULAR_VERBS: dict[str, str] = {
    "moved_to": "lives_in",
    "relocated_to": "lives_in",
    "married": "married_to",
    "hired_at": "employed_at",
    "joined_company": "employed_at",
}

# Verbs that end one fluent and start another for the same arguments.
COMPLETION_VERBS: dict[str, tuple[str, str]] = {
    "finished_learning": ("learning", "knows"),
}

ACCUMULATING_PREFIXES = ("started_",)
TERMINATING_PREFIXES = ("stopped_", "quit_", "ended_", "finished_")
SINGULAR_PREFIXES = ("became_", "set_", "got_", "changed_")


def slot_variables(arity: int) -> tuple[Variable, ...]:
    """Variables for the argument slots of a verb/fluent pair."""
    if arity <= 0:
        return ()
    if arity == 1:
        return (Variable("Subject"),)
    if arity == 2:
        return (Variable("Subject"), Variable("Value"))
    return (Variable("Subject"),) + tuple(Variable(f"Value{i}") for i in range(1, arity))


def _patterns(functor: str, domain: str, arity: int) -> tuple[Compound, Compound]:
    slots = slot_variables(arity)
    return Compound(functor, slots), Compound(domain, slots)


# Matchers


def exact(table: dict[str, str]) -> Matcher:
    """Match functors listed in a verb -> domain table."""

    def matcher(functor: str) -> str | None:
        return table.get(functor)

    return matcher


def prefix(*prefixes: str) -> Matcher:
    """Match functors carrying one of the prefixes; the remainder is the domain."""

    def matcher(functor: str) -> str | None:
        for p in prefixes:
            if functor.startswith(p):
                domain = functor[len(p):]
                if FUNCTOR_RE.match(domain):
                    return domain
        return None

    return matcher


# Templates


def accumulate(functor: str, domain: str, arity: int) -> list[Rule]:
    event, fluent = _patterns(functor, domain, arity)
    return [Rule(event, Effect.INITIATES, fluent)]


def terminate(functor: str, domain: str, arity: int) -> list[Rule]:
    event, fluent = _patterns(functor, domain, arity)
    return [Rule(event, Effect.TERMINATES, fluent)]


def replace(functor: str, domain: str, arity: int) -> list[Rule]:
    # The previous value is clipped by exclusivity, not by a Terminates rule.
    event, fluent = _patterns(functor, domain, arity)
    return [Rule(event, Effect.INITIATES, fluent, exclusive=True)]


def complete(functor: str, domain: str, arity: int) -> list[Rule]:
    ended, started = COMPLETION_VERBS[functor]
    event, ended_fluent = _patterns(functor, ended, arity)
    _, started_fluent = _patterns(functor, started, arity)
    return [
        Rule(event, Effect.TERMINATES, ended_fluent),
        Rule(event, Effect.INITIATES, started_fluent),
    ]


@dataclass(frozen=True)
class VerbPattern:
    """One taxonomy entry: a matcher and the template applied when it matches."""

    name: str
    matcher: Matcher
    template: Template

    def rules_for(self, functor: str, arity: int) -> list[Rule] | None:
        """Rules for a functor, or None if this entry does not match it."""
        domain = self.matcher(functor)
        if domain is None:
            return None
        return self.template(functor, domain, arity)


TAXONOMY: list[VerbPattern] = [
    # Checked first so the finished_ prefix does not shadow it.
    VerbPattern("completion", exact({v: d[1] for v, d in COMPLETION_VERBS.items()}), complete),
    VerbPattern("accumulating", exact(ACCUMULATING_VERBS), accumulate),
    VerbPattern("accumulating_prefix", prefix(*ACCUMULATING_PREFIXES), accumulate),
    VerbPattern("terminating", exact(TERMINATING_VERBS), terminate),
    VerbPattern("terminating_prefix", prefix(*TERMINATING_PREFIXES), terminate),
    VerbPattern("singular", exact(SINGULAR_VERBS), replace),
    VerbPattern("singular_prefix", prefix(*SINGULAR_PREFIXES), replace),
]


def find_pattern(functor: str, patterns: list[VerbPattern] | None = None) -> VerbPattern | None:
    """First taxonomy entry matching a functor."""
    for entry in TAXONOMY if patterns is None else patterns:
        if entry.matcher(functor) is not None:
            return entry
    return None


def classify(
    functor: str,
    arity: int,
    patterns: list[VerbPattern] | None = None,
) -> list[Rule]:
    """Built-in rules for events with this functor and arity.

    Args:
        functor: Event verb.
        arity: Number of event arguments; zero-arity events have no subject.
        patterns: Taxonomy to use, defaults to TAXONOMY.

    Returns:
        Rules from the first matching entry, empty for unrecognised verbs.
    """
    if arity <= 0:
        return []
    entry = find_pattern(functor, patterns)
    if entry is None:
        return []
    return entry.rules_for(functor, arity) or []
