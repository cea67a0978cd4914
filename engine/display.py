"""Display callback surface that renderers implement and the scheduler drives."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from models.entities import SensorType
    from models.game_state import GameState, LogType

PANELS = ("status", "objectives", "journal")


@runtime_checkable
class Display(Protocol):
    """What a renderer provides. It only ever reads the snapshots it is given."""

    def render(self, state: GameState) -> None: ...

    def render_ui(self, state: GameState, panel: str) -> None: ...

    def add_log(self, text: str, log_type: LogType) -> None: ...

    def active_sensor(self) -> SensorType | None: ...

    def destroy(self) -> None: ...

