"""
Room-based LLM interaction logger.

Writes one human-readable transcript per room, with every generation
request and response clearly separated. Nothing is written until the
first interaction.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any


class RoomLogger:
    """Logs LLM interactions for a room to a dedicated file."""

    def __init__(self, room_code: str, log_dir: Path):
        self.room_code = room_code
        self.log_dir = Path(log_dir)
        self.interaction_count = 0
        self.log_file: Path | None = None

    def _ensure_log_file(self) -> Path:
        """Create the log file on first interaction."""
        if self.log_file is None:
            rooms_dir = self.log_dir / "rooms"
            rooms_dir.mkdir(parents=True, exist_ok=True)

            started = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
            self.log_file = rooms_dir / f"{started}_{self.room_code}.log"

            with open(self.log_file, "w", encoding="utf-8") as f:
                f.write("Castaway Room Log\n")
                f.write("=================\n")
                f.write(f"Room: {self.room_code}\n")
                f.write(f"Started: {datetime.now().isoformat()}\n\n")

        return self.log_file

    def log_interaction(
        self,
        label: str,
        system_prompt: str,
        user_prompt: str,
        raw_response: str | None,
        parsed_response: dict[str, Any] | None,
        model: str,
        error: str | None = None,
    ) -> None:
        """Append one request/response pair to the room transcript."""
        log_file = self._ensure_log_file()
        self.interaction_count += 1
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        with open(log_file, "a", encoding="utf-8") as f:
            f.write("═" * 70 + "\n")
            f.write(f"{label.upper()} #{self.interaction_count} | {timestamp} | {model}\n")
            f.write("═" * 70 + "\n\n")

            f.write("─── SYSTEM PROMPT ───\n")
            f.write(system_prompt)
            f.write("\n\n")

            f.write("─── USER PROMPT ───\n")
            f.write(user_prompt)
            f.write("\n\n")

            f.write("─── RAW RESPONSE ───\n")
            f.write(raw_response or "(empty)")
            f.write("\n\n")

            if parsed_response is not None:
                f.write("─── PARSED RESULT ───\n")
                try:
                    f.write(json.dumps(parsed_response, indent=2, ensure_ascii=False))
                except (TypeError, ValueError):
                    f.write(str(parsed_response))
                f.write("\n\n")

            if error:
                f.write("─── ERROR ───\n")
                f.write(error)
                f.write("\n\n")


_room_loggers: dict[str, RoomLogger] = {}


def get_room_logger(room_code: str, log_dir: Path) -> RoomLogger:
    """Get or create the logger for a room."""
    if room_code not in _room_loggers:
        _room_loggers[room_code] = RoomLogger(room_code, log_dir)
    return _room_loggers[room_code]
