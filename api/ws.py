"""WebSocket feed: a display that streams snapshots and logs to connected clients."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from loguru import logger

from engine.scheduler import build_observation
from models.entities import SensorType
from models.game_state import GameState, LogType

router = APIRouter()

# Connected display clients
connections: list[WebSocket] = []


async def broadcast(message: dict[str, Any]) -> None:
    """Send a message to all connected WebSocket clients.

    Args:
        message: The JSON-serializable message to send.
    """
    disconnected = []
    for i, ws in enumerate(connections):
        try:
            await ws.send_json(message)
        except (WebSocketDisconnect, RuntimeError) as exc:
            logger.debug(f"Dropping WebSocket client: {exc!r}")
            disconnected.append(i)
    # Clean up disconnected clients
    for i in reversed(disconnected):
        connections.pop(i)


class WebSocketFeed:
    """Display implementation that queues messages for remote clients.

    The scheduler calls it synchronously during a turn; the queued messages are
    sent when the request handler awaits ``flush``.
    """

    def __init__(self) -> None:
        self.pending: list[dict[str, Any]] = []
        self.sensor: SensorType | None = None
        self.announced_game_over = False
        self.closed = False

    def render(self, state: GameState) -> None:
        if self.closed:
            return
        self.sensor = state.player.active_sensor
        self.pending.append({
            "type": "snapshot",
            "turn": state.turn,
            "observation": build_observation(state).model_dump(mode="json"),
        })
        if state.game_over and not self.announced_game_over:
            self.announced_game_over = True
            self.pending.append({"type": "game_over", "victory": state.victory, "turn": state.turn})
        elif not state.game_over:
            self.announced_game_over = False

    def render_ui(self, state: GameState, panel: str) -> None:
        if self.closed:
            return
        mystery = state.mystery
        if panel == "status":
            data = {"hp": state.player.hp, "max_hp": state.player.max_hp, "stun_turns": state.player.stun_turns}
        elif panel == "objectives":
            data = {"phase": mystery.objective_phase.value, "evacuation": mystery.evacuation.model_dump()}
        elif panel == "journal":
            data = {"entries": len(mystery.journal), "threshold": mystery.evidence_threshold}
        else:
            return
        self.pending.append({"type": "panel", "panel": panel, "data": data})

    def add_log(self, text: str, log_type: LogType) -> None:
        if self.closed:
            return
        self.pending.append({"type": "log", "text": text, "log_type": log_type.value})

    def active_sensor(self) -> SensorType | None:
        return self.sensor

    def destroy(self) -> None:
        self.closed = True
        self.pending = []

    async def flush(self) -> None:
        """Broadcast and clear everything queued since the last flush."""
        messages, self.pending = self.pending, []
        for message in messages:
            await broadcast(message)


feed = WebSocketFeed()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Stream snapshots, log lines and game-over notices to a display client."""
    await websocket.accept()
    connections.append(websocket)

    try:
        scheduler = websocket.app.state.scheduler
        state = scheduler.get_state()
        await websocket.send_json({"type": "connected", "turn": state.turn})
        await websocket.send_json({
            "type": "snapshot",
            "turn": state.turn,
            "observation": build_observation(state).model_dump(mode="json"),
        })

        # Keep connection alive, listen for client messages (optional)
        while True:
            try:
                await websocket.receive_text()
            except WebSocketDisconnect:
                break
    finally:
        if websocket in connections:
            connections.remove(websocket)
