"""Unit tests for DayNarratorAI."""

import json

import pytest

from castaway.llm.narrator import DayNarratorAI
from castaway.llm.prompt_loader import PromptLoader
from castaway.models.outcome import GenerationCallError, GenerationOk, GenerationParseError
from castaway.models.room import StoryThread
from tests.mocks.llm import MockCompletion


def make_narrator(completion) -> DayNarratorAI:
    return DayNarratorAI(completion=completion, loader=PromptLoader())


class TestNarrate:
    @pytest.mark.asyncio
    async def test_opening(self, started_manager) -> None:
        mock = MockCompletion({"default": json.dumps({"narration": "The boat splinters on the reef."})})
        result = await make_narrator(mock).narrate(started_manager.get_state(), opening=True)

        assert isinstance(result, GenerationOk)
        assert result.value.narration == "The boat splinters on the reef."
        assert result.value.thread_updates == []
        assert "capsizing" in mock.get_last_call().user_prompt

    @pytest.mark.asyncio
    async def test_new_day_with_thread_updates(self, started_manager) -> None:
        started_manager.advance_day()
        response = {
            "narration": "Morning fog rolls in.",
            "thread_updates": [{"thread_id": "NEW", "title_if_new": "Fog", "beat": "Shapes move in the fog."}],
        }
        mock = MockCompletion({"default": json.dumps(response)})
        result = await make_narrator(mock).narrate(started_manager.get_state())

        assert isinstance(result, GenerationOk)
        assert result.value.thread_updates[0].beat == "Shapes move in the fog."
        assert "This is Day 2." in mock.get_last_call().user_prompt

    @pytest.mark.asyncio
    async def test_empty_narration_is_parse_error(self, started_manager) -> None:
        mock = MockCompletion({"default": '{"narration": "   "}'})
        result = await make_narrator(mock).narrate(started_manager.get_state())
        assert isinstance(result, GenerationParseError)

    @pytest.mark.asyncio
    async def test_garbage_is_parse_error(self, started_manager) -> None:
        mock = MockCompletion({"default": "Once upon a time"})
        result = await make_narrator(mock).narrate(started_manager.get_state())
        assert isinstance(result, GenerationParseError)

    @pytest.mark.asyncio
    async def test_call_failure(self, started_manager) -> None:
        mock = MockCompletion({"default": TimeoutError("slow provider")})
        result = await make_narrator(mock).narrate(started_manager.get_state())
        assert isinstance(result, GenerationCallError)


class TestUserPrompt:
    def test_players_and_resources(self, started_manager) -> None:
        started_manager.mark_injured("p2")
        started_manager.get_state().resources.water = 3
        prompt = make_narrator(MockCompletion()).build_user_prompt(started_manager.get_state())

        assert "Alice (she/her, ENFP, Current Health: 10/10)" in prompt
        assert "Bob (he/him, ISTJ, Current Health: 10/10, injured)" in prompt
        assert "Food: 0, Water: 3" in prompt

    def test_map_summary(self, started_manager) -> None:
        started_manager.explore_tiles("p1", ["0,3"])
        started_manager.gather_resource("p1", "food", "0,3", 2)
        prompt = make_narrator(MockCompletion()).build_user_prompt(started_manager.get_state())

        assert "2 of 25 areas explored" in prompt
        assert "coconut (used up)" in prompt

    def test_lobby_room_has_no_map(self, manager) -> None:
        manager.join("p1", "Alice")
        prompt = make_narrator(MockCompletion()).build_user_prompt(manager.get_state(), opening=True)
        assert "ISLAND: not yet explored" in prompt

    def test_threads_block(self, started_manager) -> None:
        started_manager.get_state().story_threads["t1"] = StoryThread(title="The drum", beats=["a drum at night"])
        prompt = make_narrator(MockCompletion()).build_user_prompt(started_manager.get_state())

        assert "ACTIVE PLOT THREADS (continue these narrative threads):" in prompt
        assert "a drum at night" in prompt
