"""Tests for rules, rule records and registries."""

import pytest

from chronicle.errors import MalformedTermError, RuleRecordError
from chronicle.rules import Effect, ExclusiveDomains, FluentSpec, Rule, RuleRecord, RuleSet, RuleSource, RuleType
from chronicle.terms import parse_term


def rule(event: str, effect: Effect, fluent: str, **kwargs) -> Rule:
    return Rule(parse_term(event), effect, parse_term(fluent), **kwargs)


class TestRule:
    """Tests for the Rule value."""

    def test_equality_ignores_source(self):
        builtin = rule("adopted(S, V)", Effect.INITIATES, "has_pet(S, V)")
        learned = rule("adopted(S, V)", Effect.INITIATES, "has_pet(S, V)", source=RuleSource.LEARNED)
        assert builtin == learned

    def test_properties_and_str(self):
        r = rule("moved_to(S, V)", Effect.INITIATES, "lives_in(S, V)", exclusive=True)
        assert r.event_functor == "moved_to"
        assert r.domain == "lives_in"
        assert str(r) == "initiates(moved_to(S, V), lives_in(S, V))"


class TestRuleSet:
    """Tests for the rule registry."""

    def test_add_is_idempotent(self):
        rules = RuleSet()
        r = rule("adopted(S, V)", Effect.INITIATES, "has_pet(S, V)")
        assert rules.add(r) is True
        assert rules.add(r) is False
        assert len(rules) == 1
        assert r in rules

    def test_lookup_by_functor_and_domain(self):
        rules = RuleSet()
        start = rule("adopted(S, V)", Effect.INITIATES, "has_pet(S, V)")
        stop = rule("rehomed(S, V)", Effect.TERMINATES, "has_pet(S, V)")
        rules.add(start)
        rules.add(stop)

        assert rules.for_event_functor("adopted") == [start]
        assert rules.for_event_functor("unknown") == []
        assert rules.initiating("has_pet", 2) == [start]
        assert rules.terminating("has_pet", 2) == [stop]
        assert rules.initiating("has_pet", 1) == []
        assert rules.initiating_all() == [start]

    def test_discard_learned_keeps_builtin(self):
        rules = RuleSet()
        builtin = rule("adopted(S, V)", Effect.INITIATES, "has_pet(S, V)")
        learned = rule("rehomed(S, V)", Effect.TERMINATES, "has_pet(S, V)", source=RuleSource.LEARNED)
        rules.add(builtin)
        rules.add(learned)

        assert rules.discard_learned() == 1
        assert rules.all() == [builtin]
        assert rules.terminating("has_pet", 2) == []

    def test_contains_rejects_other_types(self):
        assert "rule" not in RuleSet()


class TestExclusiveDomains:
    """Tests for the exclusive domain registry."""

    def test_register_is_idempotent(self):
        domains = ExclusiveDomains()
        assert domains.register("lives_in") is True
        assert domains.register("lives_in") is False
        assert "lives_in" in domains
        assert "knows" not in domains
        assert len(domains) == 1

    def test_iterates_sorted(self):
        domains = ExclusiveDomains()
        domains.register("married_to")
        domains.register("employed_at")
        assert list(domains) == ["employed_at", "married_to"]


class TestRuleRecord:
    """Tests for parsing external rule records."""

    def test_from_dict(self):
        record = RuleRecord.from_dict(
            {
                "verb": "relocated",
                "type": "state_change",
                "initiates": [{"fluent": "lives_in"}],
                "terminates": [{"fluent": "lives_in", "pattern": "lives_in(Subject, _)"}],
            }
        )
        assert record.verb == "relocated"
        assert record.type is RuleType.STATE_CHANGE
        assert record.initiates == (FluentSpec("lives_in"),)
        assert record.terminates == (FluentSpec("lives_in", "lives_in(Subject, _)"),)

    def test_verb_argument_and_default_type(self):
        record = RuleRecord.from_dict({"initiates": [{"fluent": "has_badge"}]}, verb="earned")
        assert record.verb == "earned"
        assert record.type is RuleType.INSTANTANEOUS

    def test_to_dict_shape(self):
        record = RuleRecord("earned", RuleType.INSTANTANEOUS, (FluentSpec("has_badge"),))
        assert record.to_dict() == {
            "verb": "earned",
            "type": "instantaneous",
            "initiates": [{"fluent": "has_badge"}],
            "terminates": [],
        }
        assert RuleRecord.from_dict(record.to_dict()) == record

    @pytest.mark.parametrize(
        "data",
        [
            [],
            {"verb": "Earned"},
            {"verb": "earned", "type": "sometimes"},
            {"verb": "earned", "initiates": {"fluent": "x"}},
            {"verb": "earned", "initiates": [{"name": "x"}]},
            {"verb": "earned", "initiates": [{"fluent": "Has Badge"}]},
            {"verb": "earned", "initiates": [{"fluent": "x", "pattern": 3}]},
        ],
    )
    def test_invalid_records(self, data):
        with pytest.raises(RuleRecordError):
            RuleRecord.from_dict(data)

    def test_record_error_is_malformed_term_error(self):
        assert issubclass(RuleRecordError, MalformedTermError)
