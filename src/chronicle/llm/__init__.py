"""LLM collaborators: free-text event parsing and rule learning."""

from .client import GroqLLMClient, LLMClient, extract_json
from .learner import RuleLearner
from .parser import EventParser, ParsedEvent, snake_case

__all__ = [
    "EventParser",
    "GroqLLMClient",
    "LLMClient",
    "ParsedEvent",
    "RuleLearner",
    "extract_json",
    "snake_case",
]
