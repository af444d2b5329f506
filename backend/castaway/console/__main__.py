"""
Castaway console game: ``python -m castaway.console``
"""

import asyncio
import logging
import sys
from pathlib import Path

import click

from castaway.config import get_settings
from castaway.console.game import DEFAULT_PARTY_FILE, ConsoleGame, load_party
from castaway.logging_setup import setup_logging


@click.command()
@click.option(
    "--party",
    "party_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML file describing the party",
)
@click.option("--debug", is_flag=True, help="Show debug logging on the console")
def main(party_file: Path | None, debug: bool):
    """Play the island survival game alone in the terminal."""
    # Keep the console quiet unless asked; everything still goes to the log file
    log_file = setup_logging(
        get_settings().log_dir / "console",
        name="console",
        console_level=logging.DEBUG if debug else logging.ERROR,
    )
    logger = logging.getLogger(__name__)
    logger.info(f"Console game starting, log file: {log_file}")

    players = load_party(party_file or DEFAULT_PARTY_FILE)
    exit_code = asyncio.run(ConsoleGame(players).run())
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
