"""Tests for EventParser."""

from unittest.mock import AsyncMock

import pytest

from chronicle.errors import MalformedTermError
from chronicle.llm import EventParser, ParsedEvent, snake_case
from chronicle.terms import Atom, Compound


@pytest.fixture
def llm() -> AsyncMock:
    """Create a mock LLM client."""
    return AsyncMock()


@pytest.fixture
def parser(llm: AsyncMock) -> EventParser:
    return EventParser(llm)


class TestParsedEvent:
    """Tests for turning parsed events into terms."""

    def test_to_term(self):
        event = ParsedEvent(subject="Alice", verb="moved to", object="New York")
        assert event.to_term() == Compound("moved_to", (Atom("alice"), Atom("new_york")))

    def test_without_object(self):
        assert ParsedEvent(subject="Bob", verb="retired").to_term() == Compound(
            "retired", (Atom("bob"),)
        )

    @pytest.mark.parametrize(
        "event",
        [
            ParsedEvent(subject="Alice", verb="!!!"),
            ParsedEvent(subject="Alice", verb="3d printed"),
            ParsedEvent(subject="   ", verb="moved_to", object="paris"),
        ],
    )
    def test_unusable_events(self, event: ParsedEvent):
        with pytest.raises(MalformedTermError):
            event.to_term()

    def test_snake_case(self):
        assert snake_case("  Started Learning ") == "started_learning"
        assert snake_case("Acme-Corp, Inc.") == "acme_corp_inc"


class TestEventParserParse:
    """Tests for the parse method."""

    @pytest.mark.asyncio
    async def test_events_object(self, parser: EventParser, llm: AsyncMock):
        llm.complete.return_value = (
            '{"events": [{"subject": "Alice", "verb": "moved_to", "object": "Paris"}, '
            '{"subject": "Alice", "verb": "started_learning", "object": "Spanish"}]}'
        )

        events = await parser.parse("Alice moved to Paris and started learning Spanish")

        assert events == [
            ParsedEvent("Alice", "moved_to", "Paris"),
            ParsedEvent("Alice", "started_learning", "Spanish"),
        ]
        prompt = llm.complete.call_args.args[0]
        assert "Alice moved to Paris" in prompt
        assert llm.complete.call_args.kwargs["system"]

    @pytest.mark.asyncio
    async def test_bare_event_and_fenced_list(self, parser: EventParser, llm: AsyncMock):
        llm.complete.return_value = '{"subject": "Bob", "verb": "married", "object": "Carol"}'
        assert await parser.parse("Bob married Carol") == [ParsedEvent("Bob", "married", "Carol")]

        llm.complete.return_value = '```json\n[{"subject": "Bob", "verb": "retired", "object": null}]\n```'
        assert await parser.parse("Bob retired") == [ParsedEvent("Bob", "retired", None)]

    @pytest.mark.asyncio
    async def test_skips_invalid_items(self, parser: EventParser, llm: AsyncMock):
        llm.complete.return_value = (
            '{"events": [{"subject": "Bob"}, "nope", {"subject": "Bob", "verb": "won", "object": 3}]}'
        )
        assert await parser.parse("Bob won 3 times") == [ParsedEvent("Bob", "won", "3")]

    @pytest.mark.asyncio
    async def test_empty_text_skips_llm(self, parser: EventParser, llm: AsyncMock):
        assert await parser.parse("   ") == []
        llm.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_json_returns_empty(self, parser: EventParser, llm: AsyncMock):
        llm.complete.return_value = "I could not find any events."
        assert await parser.parse("hello") == []

    @pytest.mark.asyncio
    async def test_wrong_shape_returns_empty(self, parser: EventParser, llm: AsyncMock):
        llm.complete.return_value = '{"events": "none"}'
        assert await parser.parse("hello") == []

    @pytest.mark.asyncio
    async def test_llm_failure_returns_empty(self, parser: EventParser, llm: AsyncMock):
        llm.complete.side_effect = Exception("API error")
        assert await parser.parse("Alice moved to Paris") == []
