"""Append-only player log."""

from __future__ import annotations

from typing import TYPE_CHECKING

from models.game_state import LogEntry, LogType

if TYPE_CHECKING:
    from models.game_state import GameState


def add_log(state: GameState, text: str, log_type: LogType = LogType.INFO) -> LogEntry:
    """Append a log entry stamped with the current turn.

    Ids are sequential, so they stay unique and reproducible across replays.
    """
    entry = LogEntry(id=f"log_{len(state.logs)}", text=text, type=log_type, turn=state.turn)
    state.logs.append(entry)
    return entry


def unread(state: GameState) -> list[LogEntry]:
    return [entry for entry in state.logs if not entry.read]
