"""LLM integration components.

Shared Components:
- `client.py`: LiteLLM client wrapper
- `prompt_loader.py`: Prompt template loading utility
- `room_logger.py`: Per-room interaction transcripts

Generation boundary implementations:
- `resolver.py`: ActionResolverAI (day resolution)
- `narrator.py`: DayNarratorAI (opening and new-day narration)
- `console_ai.py`: ConsoleAI (single-player console game)
"""

from castaway.llm.client import get_completion, get_model_string, parse_json_response
from castaway.llm.prompt_loader import get_loader

__all__ = [
    "get_completion",
    "parse_json_response",
    "get_model_string",
    "get_loader",
]
