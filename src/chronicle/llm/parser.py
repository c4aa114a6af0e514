"""Free text to structured events using an LLM."""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from ..errors import MalformedTermError
from ..terms import FUNCTOR_RE, Atom, Compound
from .client import LLMClient, extract_json

logger = logging.getLogger(__name__)

PARSE_SYSTEM_PROMPT = """You extract events from short statements about people and things.

Return ONLY valid JSON:
{
  "events": [
    {"subject": "<who>", "verb": "<past_tense_verb>", "object": "<what, or null>"},
    ...
  ]
}

Rules:
- The main person mentioned is always the subject; keep the same actor throughout
- Verbs are lowercase past tense with underscores: "moved_to", "started_learning", "married"
- For "X married Y", X is the subject, the verb is "married" and Y is the object
- Objects are short noun phrases, without articles
- If the text describes no event, return {"events": []}
"""

_NON_WORD_RE = re.compile(r"[^0-9a-z]+")


def snake_case(value: str) -> str:
    """Normalise a phrase into a lowercase underscore-separated name."""
    return _NON_WORD_RE.sub("_", value.strip().lower()).strip("_")


@dataclass(frozen=True)
class ParsedEvent:
    """An event extracted from text, before it becomes a term."""

    subject: str
    verb: str
    object: str | None = None

    def to_term(self) -> Compound:
        """Ground compound ``verb(subject[, object])`` with snake_case atoms.

        Raises:
            MalformedTermError: If the verb or subject is empty after normalisation.
        """
        verb = snake_case(self.verb)
        if not FUNCTOR_RE.match(verb):
            raise MalformedTermError(f"Cannot use {self.verb!r} as an event verb")

        subject = snake_case(self.subject)
        if not subject:
            raise MalformedTermError(f"Event {verb} has no subject")

        args = [Atom(subject)]
        if self.object:
            obj = snake_case(self.object)
            if obj:
                args.append(Atom(obj))
        return Compound(verb, tuple(args))


class EventParser:
    """Extracts events from free text."""

    def __init__(self, llm: LLMClient) -> None:
        self.llm = llm

    async def parse(self, text: str) -> list[ParsedEvent]:
        """Extract events from a statement.

        Args:
            text: Free-text statement, e.g. "Alice moved to Paris".

        Returns:
            Parsed events, empty if none found or on error.
        """
        if not text.strip():
            return []

        try:
            content = await self.llm.complete(f'Text: "{text}"', system=PARSE_SYSTEM_PROMPT)
        except Exception as e:
            logger.warning(f"Event parsing failed: {e}")
            return []

        return self._parse_response(content)

    def _parse_response(self, content: str) -> list[ParsedEvent]:
        try:
            data = extract_json(content)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse event response: {e}")
            return []

        # Accept a bare event or a bare list as well as {"events": [...]}.
        if isinstance(data, dict) and "events" in data:
            items = data["events"]
        elif isinstance(data, dict):
            items = [data]
        else:
            items = data

        if not isinstance(items, list):
            logger.warning("Invalid response structure: 'events' is not a list")
            return []

        events = []
        for item in items:
            event = _parsed_event(item)
            if event is None:
                logger.warning(f"Skipping invalid event item: {item}")
                continue
            events.append(event)
        return events


def _parsed_event(item: Any) -> ParsedEvent | None:
    if not isinstance(item, dict):
        return None
    subject, verb, obj = item.get("subject"), item.get("verb"), item.get("object")
    if not isinstance(subject, str) or not isinstance(verb, str):
        return None
    if not subject.strip() or not verb.strip():
        return None
    if obj is not None and not isinstance(obj, str):
        obj = str(obj)
    return ParsedEvent(subject=subject, verb=verb, object=obj or None)
