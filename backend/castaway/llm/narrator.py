"""
Day narrator AI - opening and new-day narration for a room.
"""

import logging
from pathlib import Path

from pydantic import ValidationError

from castaway.engine.map_generator import summarize_map
from castaway.llm.client import get_completion, get_model_string, parse_json_response
from castaway.llm.formatting import format_threads_block
from castaway.llm.prompt_loader import PromptLoader, get_loader
from castaway.llm.resolver import Completion
from castaway.llm.room_logger import get_room_logger
from castaway.models.outcome import (
    DayNarration,
    GenerationCallError,
    GenerationOk,
    GenerationParseError,
    GenerationResult,
)
from castaway.models.room import MAX_HEALTH, Room

logger = logging.getLogger(__name__)


class DayNarratorAI:
    """LLM-powered narrator for game start and plain day advances.

    The narrator describes the room as it stands; it never changes
    health or resources. Its only side effect on state is the thread
    updates it proposes, which the pipeline merges.
    """

    def __init__(
        self,
        completion: Completion = get_completion,
        loader: PromptLoader | None = None,
        log_dir: Path | None = None,
        temperature: float = 0.8,
        max_tokens: int = 1200,
    ):
        self.completion = completion
        self._loader = loader
        self.log_dir = log_dir
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def loader(self) -> PromptLoader:
        return self._loader or get_loader()

    async def narrate(self, room: Room, opening: bool = False) -> GenerationResult:
        system_prompt = self.loader.get_prompt("narrator", "system_prompt.txt")
        user_prompt = self.build_user_prompt(room, opening)
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        label = "opening narration" if opening else f"day {room.current_day} narration"

        try:
            raw = await self.completion(
                messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
            )
        except Exception as e:
            message = f"{type(e).__name__}: {e}"
            self._log(room.code, label, system_prompt, user_prompt, None, None, message)
            return GenerationCallError(message)

        try:
            parsed = parse_json_response(raw)
            narration = DayNarration.model_validate(parsed)
        except (ValueError, ValidationError) as e:
            logger.warning(f"[{room.code}] Unreadable narration: {e}")
            self._log(room.code, label, system_prompt, user_prompt, raw, None, str(e))
            return GenerationParseError(str(e), raw=raw)

        if not narration.narration.strip():
            self._log(room.code, label, system_prompt, user_prompt, raw, parsed, "empty narration")
            return GenerationParseError("empty narration", raw=raw)

        self._log(room.code, label, system_prompt, user_prompt, raw, parsed, None)
        return GenerationOk(narration)

    def build_user_prompt(self, room: Room, opening: bool = False) -> str:
        player_summary = ", ".join(
            f"{p.name} ({p.pronouns or 'they/them'}, {p.mbti_type}, "
            f"Current Health: {p.health}/{MAX_HEALTH}{', injured' if p.injured else ''})"
            for p in room.players
        )

        if opening:
            day_instructions = self.loader.get_prompt("narrator", "opening_instructions.txt")
        else:
            day_instructions = self.loader.get_prompt("narrator", "day_instructions.txt").format(
                current_day=room.current_day
            )

        template = self.loader.get_prompt("narrator", "user_prompt.txt")
        return template.format(
            current_day=room.current_day,
            player_summary=player_summary or "nobody",
            food=room.resources.food,
            water=room.resources.water,
            map_summary=self._format_map(room),
            threads_block=format_threads_block(
                room.story_threads, header="ACTIVE PLOT THREADS (continue these narrative threads)"
            ),
            day_instructions=day_instructions.strip(),
        )

    def _format_map(self, room: Room) -> str:
        summary = summarize_map(room.map_state, room.resource_depletion)
        if summary is None:
            return "not yet explored"

        text = f"{summary['explored_tiles']} of {summary['total_tiles']} areas explored"
        if summary["nearby_unexplored"]:
            text += ", unexplored ground close to camp"
        found = [
            f"{r['type']}{' (used up)' if r['collected'] else ''}"
            for r in summary["revealed_resources"]
        ]
        if found:
            text += f"; known resources: {', '.join(found)}"
        return text

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
