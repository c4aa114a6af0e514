"""Temporal memory: free text in, current state out."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .errors import MalformedTermError, RuleRecordError
from .evaluator import Holding
from .llm.parser import snake_case
from .terms import Atom, plain_value

if TYPE_CHECKING:
    from .engine import Engine, TimestampLike
    from .llm import EventParser, RuleLearner

logger = logging.getLogger(__name__)


class TemporalMemory:
    """Orchestrates parsing, rule learning and assertion around an engine.

    The engine itself never calls the LLM. This class parses a statement
    into events, asks the learner about verbs the engine does not know,
    registers what it learns and then asserts the events.
    """

    def __init__(
        self,
        engine: Engine,
        parser: EventParser,
        learner: RuleLearner | None = None,
        auto_learn: bool = True,
    ) -> None:
        """Initialize the memory.

        Args:
            engine: Engine receiving the events.
            parser: Parser turning text into events.
            learner: Optional learner for verbs outside the taxonomy.
            auto_learn: Whether to consult the learner for unknown verbs.
        """
        self.engine = engine
        self.parser = parser
        self.learner = learner
        self.auto_learn = auto_learn

    async def remember(self, text: str, timestamp: TimestampLike | None = None) -> list[int]:
        """Record the events described by a statement.

        Args:
            text: Free-text statement.
            timestamp: When the events happened; the engine's current date if None.

        Returns:
            Ids of the stored events, empty if nothing could be extracted.
        """
        at = timestamp if timestamp is not None else self.engine.current_date
        parsed = await self.parser.parse(text)

        ids = []
        for event in parsed:
            try:
                term = event.to_term()
            except MalformedTermError as e:
                logger.warning(f"Skipping unusable event {event}: {e}")
                continue

            if self.auto_learn and self.learner and not self.engine.is_known_verb(term.functor, term.arity):
                await self._learn(self.learner, term.functor, text)

            ids.append(self.engine.assert_event(term, at))
        return ids

    async def _learn(self, learner: RuleLearner, verb: str, context: str) -> None:
        record = await learner.learn(verb, context)
        if record is None:
            return
        try:
            self.engine.register_rule(record)
        except RuleRecordError as e:
            logger.warning(f"Learned rules for {verb} were rejected: {e}")

    def holdings_for(self, subject: str, timestamp: TimestampLike | None = None) -> list[Holding]:
        """Fluents holding for a subject at a time (default: now)."""
        target = Atom(snake_case(subject))
        return [h for h in self.engine.all_holding(timestamp) if h.subject == target]

    def state_block(self, subject: str, timestamp: TimestampLike | None = None) -> str:
        """Format a subject's current state as a block for prompt injection.

        Returns:
            XML-formatted memory block, or empty string if nothing holds.
        """
        holdings = self.holdings_for(subject, timestamp)
        if not holdings:
            return ""

        lines = [f"- {h.domain}: {_display(h)} (since {h.since})" for h in holdings]
        content = "\n".join(lines)
        at = self.engine.current_date if timestamp is None else timestamp

        return f"""<memory>
What holds for {snake_case(subject)} as of {at}:
{content}
</memory>"""


def _display(holding: Holding) -> str:
    value = holding.value
    if value is None:
        return "yes"
    if isinstance(value, tuple):
        return ", ".join(str(plain_value(v)) for v in value)
    return str(plain_value(value))
