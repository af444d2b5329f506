"""
Action resolver AI - the LLM-backed outcome generator.

Takes one day's ResolutionRequest, asks the model for a public narration
plus one outcome per player, and reports the result as a tagged
GenerationResult. It never raises for model-side problems: a failed call
is a GenerationCallError and unreadable output is a GenerationParseError.
Validation against game rules happens later, in the pipeline.
"""

import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

from pydantic import ValidationError

from castaway.llm.client import get_completion, get_model_string, parse_json_response
from castaway.llm.formatting import format_list, format_threads_block
from castaway.llm.prompt_loader import PromptLoader, get_loader
from castaway.llm.room_logger import get_room_logger
from castaway.models.outcome import (
    GenerationCallError,
    GenerationOk,
    GenerationParseError,
    GenerationResult,
    Resolution,
    ResolutionRequest,
)
from castaway.models.room import MAX_HEALTH

logger = logging.getLogger(__name__)

Completion = Callable[..., Awaitable[str]]


class ActionResolverAI:
    """Resolves simultaneous player actions with a single LLM call.

    Example:
        >>> resolver = ActionResolverAI(log_dir=Path("logs"))
        >>> result = await resolver.generate(request)
    """

    def __init__(
        self,
        completion: Completion = get_completion,
        loader: PromptLoader | None = None,
        log_dir: Path | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1500,
    ):
        self.completion = completion
        self._loader = loader
        self.log_dir = log_dir
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def loader(self) -> PromptLoader:
        return self._loader or get_loader()

    async def generate(self, request: ResolutionRequest) -> GenerationResult:
        system_prompt = self.loader.get_prompt("resolver", "system_prompt.txt")
        user_prompt = self.build_user_prompt(request)
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        label = f"resolution day {request.current_day}"

        try:
            raw = await self.completion(
                messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
            )
        except Exception as e:
            message = f"{type(e).__name__}: {e}"
            self._log(request.room_code, label, system_prompt, user_prompt, None, None, message)
            return GenerationCallError(message)

        try:
            parsed = parse_json_response(raw)
            resolution = Resolution.model_validate(parsed)
        except (ValueError, ValidationError) as e:
            logger.warning(f"[{request.room_code}] Unreadable resolution: {e}")
            self._log(request.room_code, label, system_prompt, user_prompt, raw, None, str(e))
            return GenerationParseError(str(e), raw=raw)

        self._log(request.room_code, label, system_prompt, user_prompt, raw, parsed, None)
        return GenerationOk(resolution)

    def build_user_prompt(self, request: ResolutionRequest) -> str:
        player_details = "\n".join(
            f"- [{p.id}] {p.name} ({p.pronouns or 'they/them'}, {p.mbti_type}, "
            f"{p.stats.summary()}, HP:{p.hp}/{MAX_HEALTH})\n"
            f'  Action: "{p.action}"'
            for p in request.players
        )
        map_state = request.map_state
        template = self.loader.get_prompt("resolver", "user_prompt.txt")
        return template.format(
            current_day=request.current_day,
            player_details=player_details or "(nobody is able to act)",
            explored_tiles=format_list(map_state.explored_tiles if map_state else []),
            adjacent_tiles=format_list(request.adjacent_tiles, empty="none available"),
            starting_tile=map_state.starting_tile if map_state else "unknown",
            food=request.resources.food,
            water=request.resources.water,
            items=format_list(request.inventory.items),
            facts=f"{len(request.inventory.facts)} discovered" if request.inventory.facts else "none",
            threads_block=format_threads_block(request.story_threads),
            player_count=len(request.players),
        )

    def _log(self, room_code, label, system_prompt, user_prompt, raw, parsed, error) -> None:
        if self.log_dir is None:
            return
        get_room_logger(room_code, self.log_dir).log_interaction(
            label=label,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            raw_response=raw,
            parsed_response=parsed,
            model=get_model_string(),
            error=error,
        )
