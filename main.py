"""FastAPI app entry point for Corvus Station Server."""

import uvicorn
from fastapi import FastAPI
from loguru import logger

from api.game import router as game_router
from api.ws import feed
from api.ws import router as ws_router
from config import SAVE_FILE, SERVICE_NAME, SERVICE_VERSION, STATION_ARCHETYPE, STATION_SEED
from engine.procgen import generate_station
from engine.scheduler import TurnScheduler, load_game

app = FastAPI(
    title=SERVICE_NAME,
    description="A deterministic, turn-based station exploration engine for bots and renderers",
    version=SERVICE_VERSION,
)

# Load or create the singleton run
loaded = load_game(SAVE_FILE)
if loaded is not None:
    state = loaded
    logger.info(f"Resuming saved run at turn {state.turn}")
else:
    state = generate_station(STATION_SEED, archetype=STATION_ARCHETYPE)
app.state.scheduler = TurnScheduler(state, displays=[feed])

app.include_router(game_router, prefix="/game", tags=["Game"])
app.include_router(ws_router, prefix="/game", tags=["WebSocket"])


@app.get("/")
def root() -> dict:
    """Root endpoint returning server info."""
    return {"name": SERVICE_NAME, "version": SERVICE_VERSION, "status": "running"}


@app.get("/health")
def health() -> dict:
    """Health check endpoint."""
    return {"healthy": True, "turn": app.state.scheduler.get_state().turn}


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000)
