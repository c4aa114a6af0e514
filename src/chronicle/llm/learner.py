"""Rule learning for verbs the built-in taxonomy does not cover."""

import json
import logging

from ..errors import RuleRecordError
from ..rules import RuleRecord
from .client import LLMClient, extract_json

logger = logging.getLogger(__name__)

LEARN_SYSTEM_PROMPT = """You describe how a verb changes the state of the world, for an Event Calculus engine.

Return ONLY valid JSON:
{
  "type": "state_change" | "instantaneous" | "continuous",
  "initiates": [{"fluent": "<state_name>", "pattern": "<optional pattern>"}],
  "terminates": [{"fluent": "<state_name>", "pattern": "<optional pattern>"}]
}

Rules:
- Events look like verb(Subject, Object); patterns may only use Subject and Object
- Fluent names are lowercase with underscores: "lives_in", "employed_at", "knows"
- Use "state_change" when the verb replaces a previous value, listing the same
  fluent under both initiates and terminates (e.g. moving replaces lives_in)
- Use "instantaneous" when the verb only adds or removes a state
- Leave a list empty when the verb starts or ends nothing
"""


class RuleLearner:
    """Asks an LLM for a rule record describing a verb.

    Learned records are cached per verb for the lifetime of the learner.
    """

    def __init__(self, llm: LLMClient) -> None:
        self.llm = llm
        self._cache: dict[str, RuleRecord] = {}

    async def learn(self, verb: str, context: str = "") -> RuleRecord | None:
        """Get a rule record for a verb.

        Args:
            verb: Event functor to describe.
            context: Statement the verb came from, to disambiguate it.

        Returns:
            The rule record, or None if the model gave no usable answer.
        """
        if verb in self._cache:
            return self._cache[verb]

        prompt = f'Verb: "{verb}"'
        if context:
            prompt += f'\nContext: "{context}"'

        try:
            content = await self.llm.complete(prompt, system=LEARN_SYSTEM_PROMPT)
        except Exception as e:
            logger.warning(f"Rule learning failed for {verb}: {e}")
            return None

        record = self._parse_response(verb, content)
        if record is not None:
            self._cache[verb] = record
        return record

    def _parse_response(self, verb: str, content: str) -> RuleRecord | None:
        try:
            data = extract_json(content)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse rule response for {verb}: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Invalid rule response for {verb}: expected an object")
            return None

        try:
            return RuleRecord.from_dict({**data, "verb": verb})
        except RuleRecordError as e:
            logger.warning(f"Invalid rule record for {verb}: {e}")
            return None

    def cached(self, verb: str) -> RuleRecord | None:
        return self._cache.get(verb)

    def clear(self) -> None:
        """Forget every learned record."""
        self._cache.clear()
