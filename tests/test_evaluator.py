"""Tests for FluentEvaluator: holds-at semantics over the event log."""

import pytest

from chronicle.compiler import RuleCompiler
from chronicle.errors import QueryError
from chronicle.evaluator import FluentEvaluator, Holding, Interval
from chronicle.rules import ExclusiveDomains, RuleRecord, RuleSet
from chronicle.store import FactStore
from chronicle.terms import Atom, Compound, Number, format_term, parse_term


class World:
    """A store, rule set and evaluator wired the way the engine wires them."""

    def __init__(self) -> None:
        self.store = FactStore()
        self.rules = RuleSet()
        self.exclusive = ExclusiveDomains()
        self.compiler = RuleCompiler(self.rules, self.exclusive)
        self.evaluator = FluentEvaluator(self.store, self.rules, self.exclusive)

    def happens(self, source: str, timestamp: str) -> None:
        event = self.store.append(parse_term(source), timestamp)
        self.compiler.compile_functor(event.functor, event.description.arity)

    def values(self, pattern: str, timestamp: str, var: str = "X") -> list[str]:
        return [format_term(b[var]) for b in self.evaluator.query(parse_term(pattern), timestamp)]

    def holds(self, fluent: str, timestamp: str) -> bool:
        return self.evaluator.holds_at(parse_term(fluent), timestamp)


@pytest.fixture
def world() -> World:
    return World()


class TestSingularReplacement:
    """A singular verb replaces the previous value for the same subject."""

    def test_latest_value_wins(self, world: World):
        world.happens("moved_to(alice, paris)", "2024-01-01")
        world.happens("moved_to(alice, rome)", "2024-06-01")

        assert world.values("lives_in(alice, X)", "2024-03-01") == ["paris"]
        assert world.values("lives_in(alice, X)", "2024-07-01") == ["rome"]

    def test_replacement_takes_effect_at_its_timestamp(self, world: World):
        world.happens("moved_to(alice, paris)", "2024-01-01")
        world.happens("moved_to(alice, rome)", "2024-06-01")

        assert world.values("lives_in(alice, X)", "2024-06-01") == ["rome"]
        assert not world.holds("lives_in(alice, paris)", "2024-06-01")

    def test_no_leakage_across_subjects(self, world: World):
        world.happens("moved_to(alice, paris)", "2024-01-01")
        world.happens("moved_to(bob, rome)", "2024-02-01")

        assert world.values("lives_in(alice, X)", "2024-03-01") == ["paris"]
        assert world.values("lives_in(bob, X)", "2024-03-01") == ["rome"]

    def test_moving_back_holds_again(self, world: World):
        world.happens("moved_to(alice, paris)", "2024-01-01")
        world.happens("moved_to(alice, rome)", "2024-03-01")
        world.happens("moved_to(alice, paris)", "2024-06-01")

        assert world.values("lives_in(alice, X)", "2024-04-01") == ["rome"]
        assert world.values("lives_in(alice, X)", "2024-07-01") == ["paris"]

    def test_repeating_the_same_value_does_not_clip(self, world: World):
        world.happens("moved_to(alice, paris)", "2024-01-01")
        world.happens("moved_to(alice, paris)", "2024-03-01")

        assert world.values("lives_in(alice, X)", "2024-04-01") == ["paris"]
        (holding,) = world.evaluator.all_holding("2024-04-01")
        assert holding.since == "2024-01-01"


class TestAccumulation:
    """Accumulating verbs let many values hold at once."""

    def test_values_accumulate_in_initiation_order(self, world: World):
        world.happens("learned(alice, go)", "2024-02-01")
        world.happens("learned(alice, python)", "2024-01-01")

        assert world.values("knows(alice, X)", "2024-03-01") == ["python", "go"]
        assert world.values("knows(alice, X)", "2024-01-15") == ["python"]

    def test_binding_both_arguments(self, world: World):
        world.happens("learned(alice, python)", "2024-01-01")
        world.happens("learned(bob, rust)", "2024-01-02")

        results = world.evaluator.query(parse_term("knows(Who, What)"), "2024-02-01")
        assert results == [
            {"Who": Atom("alice"), "What": Atom("python")},
            {"Who": Atom("bob"), "What": Atom("rust")},
        ]

    def test_duplicate_events_give_one_binding(self, world: World):
        world.happens("learned(alice, python)", "2024-01-01")
        world.happens("learned(alice, python)", "2024-01-01")

        assert world.values("knows(alice, X)", "2024-02-01") == ["python"]


class TestTermination:
    """Terminating verbs end a fluent at their own timestamp."""

    def test_boundary(self, world: World):
        world.happens("joined(alice, chess_club)", "2024-01-01")
        world.happens("left(alice, chess_club)", "2024-06-01")

        assert world.holds("member_of(alice, chess_club)", "2024-01-01")
        assert world.holds("member_of(alice, chess_club)", "2024-05-31")
        assert not world.holds("member_of(alice, chess_club)", "2024-06-01")
        assert not world.holds("member_of(alice, chess_club)", "2024-12-01")

    def test_terminating_one_value_keeps_others(self, world: World):
        world.happens("bought(alice, car)", "2024-01-01")
        world.happens("bought(alice, bike)", "2024-01-01")
        world.happens("sold(alice, car)", "2024-02-01")

        assert world.values("has(alice, X)", "2024-03-01") == ["bike"]

    def test_reinitiation_after_termination(self, world: World):
        world.happens("joined(alice, chess_club)", "2024-01-01")
        world.happens("left(alice, chess_club)", "2024-03-01")
        world.happens("joined(alice, chess_club)", "2024-06-01")

        assert not world.holds("member_of(alice, chess_club)", "2024-04-01")
        assert world.holds("member_of(alice, chess_club)", "2024-07-01")

    def test_termination_before_initiation_has_no_effect(self, world: World):
        world.happens("left(alice, chess_club)", "2023-01-01")
        world.happens("joined(alice, chess_club)", "2024-01-01")

        assert world.holds("member_of(alice, chess_club)", "2024-02-01")

    def test_simultaneous_initiation_and_termination(self, world: World):
        """Clipping needs a terminator strictly after the initiation."""
        world.happens("joined(alice, chess_club)", "2024-01-01")
        world.happens("left(alice, chess_club)", "2024-01-01")

        assert world.holds("member_of(alice, chess_club)", "2024-02-01")

    def test_completion_verb(self, world: World):
        world.happens("started_learning(alice, spanish)", "2024-01-01")
        assert world.holds("learning(alice, spanish)", "2024-03-01")

        world.happens("finished_learning(alice, spanish)", "2024-06-01")
        assert not world.holds("learning(alice, spanish)", "2024-07-01")
        assert world.holds("knows(alice, spanish)", "2024-07-01")
        assert world.holds("learning(alice, spanish)", "2024-05-01")

    def test_prefix_termination(self, world: World):
        world.happens("started_painting(alice, portraits)", "2024-01-01")
        world.happens("stopped_painting(alice, portraits)", "2024-02-01")

        assert world.holds("painting(alice, portraits)", "2024-01-15")
        assert not world.holds("painting(alice, portraits)", "2024-03-01")


class TestOrderIndependence:
    """Results depend on timestamps, never on insertion order."""

    EVENTS = [
        ("moved_to(alice, paris)", "2024-01-01"),
        ("learned(alice, python)", "2024-02-01"),
        ("moved_to(alice, rome)", "2024-03-01"),
        ("joined(alice, chess_club)", "2024-01-15"),
        ("left(alice, chess_club)", "2024-04-01"),
    ]

    @pytest.mark.parametrize("reverse", [False, True])
    def test_same_answers_in_any_order(self, reverse: bool):
        world = World()
        for source, timestamp in reversed(self.EVENTS) if reverse else self.EVENTS:
            world.happens(source, timestamp)

        assert world.values("lives_in(alice, X)", "2024-02-15") == ["paris"]
        assert world.values("lives_in(alice, X)", "2024-05-01") == ["rome"]
        assert world.holds("member_of(alice, chess_club)", "2024-03-15")
        assert not world.holds("member_of(alice, chess_club)", "2024-05-01")
        assert [h.as_tuple() for h in world.evaluator.all_holding("2024-05-01")] == [
            ("knows", Atom("alice"), Atom("python")),
            ("lives_in", Atom("alice"), Atom("rome")),
        ]


class TestQueries:
    """Tests for query shapes and failure modes."""

    def test_nothing_holds_before_first_event(self, world: World):
        world.happens("moved_to(alice, paris)", "2024-01-01")
        assert world.values("lives_in(alice, X)", "2023-12-31") == []

    def test_time_of_day_precision(self, world: World):
        """A bare date sorts before every time on that day."""
        world.happens("moved_to(alice, paris)", "2024-01-01T10:00")

        assert not world.holds("lives_in(alice, paris)", "2024-01-01")
        assert not world.holds("lives_in(alice, paris)", "2024-01-01T09:59")
        assert world.holds("lives_in(alice, paris)", "2024-01-01T10:00")

    def test_ground_query_yields_one_empty_binding(self, world: World):
        world.happens("moved_to(alice, paris)", "2024-01-01")
        assert world.evaluator.query(parse_term("lives_in(alice, paris)"), "2024-02-01") == [{}]

    def test_unknown_domain_is_empty(self, world: World):
        world.happens("moved_to(alice, paris)", "2024-01-01")
        assert world.values("likes(alice, X)", "2024-02-01") == []

    def test_unknown_verb_is_stored_but_not_derived(self, world: World):
        world.happens("sneezed(alice, loudly)", "2024-01-01")

        assert len(world.store) == 1
        assert world.evaluator.all_holding("2024-02-01") == []
        assert world.values("sneezed(alice, X)", "2024-02-01") == []

    def test_zero_arity_event_derives_nothing(self, world: World):
        world.happens("learned()", "2024-01-01")
        assert world.evaluator.all_holding("2024-02-01") == []

    def test_numbers_and_text_values(self, world: World):
        world.happens('set_score(alice, 10)', "2024-01-01")
        world.happens('set_nickname(alice, "Ally")', "2024-01-01")
        world.happens('set_score(alice, 12)', "2024-02-01")

        (score,) = world.evaluator.query(parse_term("score(alice, X)"), "2024-03-01")
        assert score == {"X": Number(12)}
        assert world.values("nickname(alice, X)", "2024-03-01") == ['"Ally"']

    @pytest.mark.parametrize("pattern", [Atom("lives_in"), Compound("lives_in", ())])
    def test_bad_patterns(self, world: World, pattern):
        with pytest.raises(QueryError):
            world.evaluator.query(pattern, "2024-01-01")


class TestLearnedRules:
    """Rules registered from records behave like built-in ones."""

    def test_learned_state_change(self, world: World):
        world.compiler.compile_record(
            RuleRecord.from_dict(
                {
                    "verb": "relocated",
                    "type": "state_change",
                    "initiates": [{"fluent": "resides_in"}],
                    "terminates": [{"fluent": "resides_in"}],
                }
            )
        )
        world.happens("relocated(alice, paris)", "2024-01-01")
        world.happens("relocated(alice, rome)", "2024-02-01")

        assert world.values("resides_in(alice, X)", "2024-03-01") == ["rome"]

    def test_wildcard_terminator(self, world: World):
        """A Terminates pattern with an unbound variable ends every value."""
        world.compiler.compile_record(
            RuleRecord.from_dict(
                {"verb": "retired", "terminates": [{"fluent": "employed_at", "pattern": "employed_at(Subject, _)"}]}
            )
        )
        world.happens("hired_at(alice, acme)", "2024-01-01")
        world.happens("retired(alice, early)", "2024-06-01")

        assert world.holds("employed_at(alice, acme)", "2024-05-01")
        assert not world.holds("employed_at(alice, acme)", "2024-07-01")

    def test_rules_apply_to_events_stored_earlier(self, world: World):
        world.happens("earned(alice, gold)", "2024-01-01")
        assert world.values("has_badge(alice, X)", "2024-02-01") == []

        world.compiler.compile_record(
            RuleRecord.from_dict({"verb": "earned", "initiates": [{"fluent": "has_badge"}]})
        )
        assert world.values("has_badge(alice, X)", "2024-02-01") == ["gold"]


class TestAllHolding:
    """Tests for listing everything that holds."""

    def test_sorted_with_since(self, world: World):
        world.happens("moved_to(bob, rome)", "2024-02-01")
        world.happens("learned(alice, python)", "2024-01-10")
        world.happens("moved_to(alice, paris)", "2024-01-01")

        holdings = world.evaluator.all_holding("2024-03-01")
        assert [(format_term(h.fluent), h.since) for h in holdings] == [
            ("knows(alice, python)", "2024-01-10"),
            ("lives_in(alice, paris)", "2024-01-01"),
            ("lives_in(bob, rome)", "2024-02-01"),
        ]

    def test_since_restarts_after_reinitiation(self, world: World):
        world.happens("joined(alice, club)", "2024-01-01")
        world.happens("left(alice, club)", "2024-02-01")
        world.happens("joined(alice, club)", "2024-03-01")

        (holding,) = world.evaluator.all_holding("2024-04-01")
        assert holding.since == "2024-03-01"

    def test_holding_accessors(self):
        unary = Holding(parse_term("knows(alice)"), "2024-01-01")
        assert unary.value is None
        ternary = Holding(parse_term("knows(alice, a, b)"), "2024-01-01")
        assert ternary.value == (Atom("a"), Atom("b"))
        assert ternary.subject == Atom("alice")


class TestHistory:
    """Tests for ever_held and timeline."""

    def test_ever_held_ignores_clipping(self, world: World):
        world.happens("joined(alice, club)", "2024-01-01")
        world.happens("left(alice, club)", "2024-02-01")

        assert world.evaluator.ever_held(parse_term("member_of(alice, club)"))
        assert world.evaluator.ever_held(parse_term("member_of(alice, X)"))
        assert not world.evaluator.ever_held(parse_term("member_of(bob, X)"))

    def test_timeline_for_singular_domain(self, world: World):
        world.happens("moved_to(alice, paris)", "2024-01-01")
        world.happens("moved_to(alice, rome)", "2024-03-01")
        world.happens("moved_to(alice, paris)", "2024-06-01")

        assert world.evaluator.timeline(parse_term("lives_in(alice, X)")) == [
            Interval(parse_term("lives_in(alice, paris)"), "2024-01-01", "2024-03-01"),
            Interval(parse_term("lives_in(alice, rome)"), "2024-03-01", "2024-06-01"),
            Interval(parse_term("lives_in(alice, paris)"), "2024-06-01", None),
        ]

    def test_timeline_after_termination(self, world: World):
        world.happens("joined(alice, club)", "2024-01-01")
        world.happens("left(alice, club)", "2024-02-01")

        (interval,) = world.evaluator.timeline(parse_term("member_of(alice, club)"))
        assert interval == Interval(parse_term("member_of(alice, club)"), "2024-01-01", "2024-02-01")
        assert interval.contains("2024-01-15")
        assert not interval.contains("2024-02-01")

    def test_timeline_unknown_is_empty(self, world: World):
        assert world.evaluator.timeline(parse_term("lives_in(alice, X)")) == []
