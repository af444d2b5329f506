"""
Single-player console game.

Each turn the player types an action. The action is checked for
possibility, classified into a type and difficulty, rolled against the
difficulty table, and narrated with its consequences. Health runs on a
0-100 scale here. Every LLM call goes through call_with_retry with a
deterministic fallback, so a dead connection never stalls the game.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from pathlib import Path

import click
import yaml

from castaway.engine.difficulty import Difficulty, DifficultyResolver, DifficultyRoll
from castaway.engine.retry import Backoff, call_with_retry, linear_backoff
from castaway.engine.validator import clamp
from castaway.llm.console_ai import ConsoleAI
from castaway.models.console import (
    CONSOLE_MAX_HP,
    ActionClassification,
    ActionType,
    ConsoleOutcome,
    ConsolePlayer,
    ConsoleState,
    PossibilityCheck,
)

logger = logging.getLogger(__name__)


DEFAULT_PARTY_FILE = Path(__file__).parent.parent / "data" / "party.yaml"
QUIT_WORDS = {"quit", "exit"}

HP_CHANGE_RANGE = (-20, 20)
SUPPLY_CHANGE_RANGE = (0, 5)


def load_party(path: Path = DEFAULT_PARTY_FILE) -> list[ConsolePlayer]:
    """Load the party from a YAML file with a top-level ``players`` list."""
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    players = [ConsolePlayer.model_validate(entry) for entry in data.get("players", [])]
    if not players:
        raise ValueError(f"No players defined in {path}")
    return players


def _fallback_outcome(name: str, roll: DifficultyRoll) -> ConsoleOutcome:
    if roll.success:
        return ConsoleOutcome(narration=f"{name} manages it, though the island gives nothing extra today.")
    return ConsoleOutcome(narration=f"{name} tries, but the island does not cooperate.")


class ConsoleGame:
    """Runs the console loop for one party.

    Example:
        >>> game = ConsoleGame(load_party())
        >>> exit_code = asyncio.run(game.run())
    """

    def __init__(
        self,
        players: list[ConsolePlayer],
        ai: ConsoleAI | None = None,
        resolver: DifficultyResolver | None = None,
        read_action: Callable[[], Awaitable[str]] | None = None,
        echo: Callable[[str], None] = click.echo,
        max_attempts: int = 3,
        backoff: Backoff = linear_backoff(1.0),
        timeout: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.state = ConsoleState(players=players)
        self.ai = ai or ConsoleAI()
        self.resolver = resolver or DifficultyResolver(random.Random())
        self.read_action = read_action or self._prompt
        self.echo = echo
        self._retry_settings = dict(
            max_attempts=max_attempts, backoff=backoff, timeout=timeout, sleep=sleep
        )

    @staticmethod
    async def _prompt() -> str:
        return await asyncio.to_thread(
            click.prompt, "\nWhat do you do?", default="", show_default=False
        )

    # =========================================================================
    # Loop
    # =========================================================================

    async def run(self) -> int:
        """Play until the player quits or the whole party is dead.

        Returns:
            Process exit code (always 0)
        """
        self.echo("Island survival. Describe your action.")
        self.print_state()

        while True:
            action = (await self.read_action()).strip()
            if not action or action.lower() in QUIT_WORDS:
                self.echo("You stop for now. The island will wait.")
                return 0

            await self.take_turn(action)
            self.print_state()

            if not self.state.living_players():
                self.echo("\nGAME OVER. The island claims the last of the survivors.")
                return 0

    def print_state(self) -> None:
        state = self.state
        self.echo(f"\n--- Day {state.day} ---")
        for p in state.players:
            status = " (injured)" if p.injured else ""
            self.echo(
                f"  {p.name} | HP: {p.hp} | STR: {p.stats.strength} "
                f"INT: {p.stats.intelligence} CHA: {p.stats.charisma}{status}"
            )
        self.echo(f"  Food: {state.food} | Water: {state.water}")
        if state.items:
            self.echo(f"  Items: {', '.join(state.items)}")

    # =========================================================================
    # Turn
    # =========================================================================

    async def take_turn(self, action: str) -> ConsoleOutcome:
        """Resolve one action for the first living player and apply it."""
        player = self.state.living_players()[0]
        history = self.state.story_beats

        check = await self._call(
            lambda: self.ai.check_possibility(action, history),
            lambda: PossibilityCheck(possible=True, trivial=False),
            "possibility check",
        )

        if not check.possible:
            action_type, label = ActionType.PHYSICAL, Difficulty.IMPOSSIBLE
        elif check.trivial:
            action_type, label = ActionType.PHYSICAL, Difficulty.TRIVIAL
        else:
            classification = await self._call(
                lambda: self.ai.classify(action),
                lambda: ActionClassification(type=ActionType.PHYSICAL, difficulty="moderate"),
                "classification",
            )
            action_type, label = classification.type, Difficulty(classification.difficulty)

        roll = self.resolver.resolve(label)
        self.echo(f"\n  Type: {action_type.value}")
        self.echo(f"  Difficulty: {label.value}")
        self.echo(f"  Roll: {roll.roll_percent} vs {roll.threshold_percent} needed")
        self.echo(f"  Result: {'SUCCESS' if roll.success else 'FAILURE'}")

        outcome = await self._call(
            lambda: self.ai.narrate_outcome(
                player.name, action, action_type.value, label.value, roll.success, history
            ),
            lambda: _fallback_outcome(player.name, roll),
            "outcome narration",
        )
        self.apply_outcome(player, outcome)
        self.echo(f"\n{outcome.narration}")
        return outcome

    def apply_outcome(self, player: ConsolePlayer, outcome: ConsoleOutcome) -> None:
        """Apply narrated consequences, clamped to their documented ranges."""
        state = self.state
        player.hp = clamp(player.hp + clamp(outcome.hp_change, *HP_CHANGE_RANGE), 0, CONSOLE_MAX_HP)
        player.injured = outcome.injured
        state.food += clamp(outcome.food_change, *SUPPLY_CHANGE_RANGE)
        state.water += clamp(outcome.water_change, *SUPPLY_CHANGE_RANGE)
        for item in outcome.items_gained:
            if item and item not in state.items:
                state.items.append(item)
        state.story_beats.append(outcome.narration)
        state.day += 1

    async def _call(self, attempt, fallback, label: str):
        outcome = await call_with_retry(attempt, fallback=fallback, label=label, **self._retry_settings)
        return outcome.value
