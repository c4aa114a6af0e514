"""LLM client used by the event parser and the rule learner.

The collaborators only depend on the LLMClient Protocol, so tests and
other providers can stand in for Groq.
"""

import json
from typing import Any, Protocol

from groq import AsyncGroq

DEFAULT_MODEL = "llama-3.3-70b-versatile"


class LLMClient(Protocol):
    """Protocol for text completion."""

    async def complete(self, prompt: str, system: str | None = None) -> str:
        """Complete a prompt and return the text response."""
        ...


class GroqLLMClient:
    """LLMClient implementation that wraps AsyncGroq.

    Example:
        from groq import AsyncGroq
        from chronicle.llm import GroqLLMClient

        llm = GroqLLMClient(AsyncGroq(api_key="..."), model="llama-3.3-70b-versatile")
        parser = EventParser(llm)
    """

    def __init__(
        self,
        client: AsyncGroq,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.1,
    ) -> None:
        """Initialize the Groq LLM client wrapper.

        Args:
            client: The AsyncGroq client instance to wrap.
            model: The model to use for completions.
            temperature: Sampling temperature; low for consistent structured output.
        """
        self._client = client
        self._model = model
        self._temperature = temperature

    async def complete(self, prompt: str, system: str | None = None) -> str:
        """Complete a prompt and return the text response.

        Args:
            prompt: The user prompt to complete.
            system: Optional system prompt to set context.

        Returns:
            The LLM's text response.
        """
        messages: list[dict[str, Any]] = []

        if system:
            messages.append({"role": "system", "content": system})

        messages.append({"role": "user", "content": prompt})

        response = await self._client.chat.completions.create(
            model=self._model,
            messages=messages,
            temperature=self._temperature,
        )

        return response.choices[0].message.content or ""

    @property
    def model(self) -> str:
        """Return the model being used."""
        return self._model


def extract_json(content: str) -> Any:
    """Parse JSON from a model response, tolerating markdown code fences.

    Raises:
        json.JSONDecodeError: If no valid JSON remains after stripping fences.
    """
    json_str = content.strip()
    if json_str.startswith("```"):
        # The model might wrap it in a markdown code block
        lines = [line for line in json_str.split("\n") if not line.startswith("```")]
        json_str = "\n".join(lines)
    return json.loads(json_str)
