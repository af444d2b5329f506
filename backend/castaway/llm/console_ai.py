"""
Console AI - the three small LLM calls behind the single-player game.

1. check_possibility: can the action be attempted at all, and is it trivial?
2. classify: action type and difficulty for the difficulty roll
3. narrate_outcome: one sentence plus the state changes, given the roll

Each returns a GenerationResult so the console can run it through the
same retry combinator as the room server.
"""

import logging
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from castaway.llm.client import get_completion, parse_json_response
from castaway.llm.prompt_loader import PromptLoader, get_loader
from castaway.llm.resolver import Completion
from castaway.models.console import (
    ActionClassification,
    ConsoleOutcome,
    PossibilityCheck,
)
from castaway.models.outcome import (
    GenerationCallError,
    GenerationOk,
    GenerationParseError,
    GenerationResult,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _history_block(history: list[str]) -> str:
    if not history:
        return ""
    lines = "\n".join(f"Day {i}: {beat}" for i, beat in enumerate(history, start=1))
    return f"Story so far:\n{lines}\n\n"


class ConsoleAI:
    def __init__(
        self,
        completion: Completion = get_completion,
        loader: PromptLoader | None = None,
    ):
        self.completion = completion
        self._loader = loader

    @property
    def loader(self) -> PromptLoader:
        return self._loader or get_loader()

    async def _ask(self, prompt_file: str, user_prompt: str, model: type[M]) -> GenerationResult:
        messages = [
            {"role": "system", "content": self.loader.get_prompt("console", prompt_file)},
            {"role": "user", "content": user_prompt},
        ]
        try:
            raw = await self.completion(
                messages,
                temperature=0.4,
                max_tokens=256,
                response_format={"type": "json_object"},
            )
        except Exception as e:
            return GenerationCallError(f"{type(e).__name__}: {e}")

        try:
            return GenerationOk(model.model_validate(parse_json_response(raw)))
        except (ValueError, ValidationError) as e:
            logger.debug(f"Unreadable {model.__name__}: {e}")
            return GenerationParseError(str(e), raw=raw)

    async def check_possibility(self, action: str, history: list[str]) -> GenerationResult:
        return await self._ask(
            "possibility_prompt.txt",
            f'{_history_block(history)}Action: "{action}"',
            PossibilityCheck,
        )

    async def classify(self, action: str) -> GenerationResult:
        return await self._ask("classify_prompt.txt", f'Action: "{action}"', ActionClassification)

    async def narrate_outcome(
        self,
        player_name: str,
        action: str,
        action_type: str,
        difficulty: str,
        success: bool,
        history: list[str],
    ) -> GenerationResult:
        user_prompt = (
            f"{_history_block(history)}"
            f"Player: {player_name}\n"
            f'Action: "{action}"\n'
            f"Type: {action_type}\n"
            f"Difficulty: {difficulty}\n"
            f"Result: {'SUCCESS' if success else 'FAILURE'}"
        )
        return await self._ask("outcome_prompt.txt", user_prompt, ConsoleOutcome)
