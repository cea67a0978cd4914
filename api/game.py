"""Run creation, intent submission, observation, and log endpoints."""

from fastapi import APIRouter, HTTPException, Query, Request
from loguru import logger

from api.ws import feed
from config import MAP_HEIGHT, MAP_WIDTH, SAVE_FILE, STATION_ARCHETYPE, STATION_SEED
from engine.deduction import summarize, unlocked
from engine.procgen import generate_station
from engine.scheduler import TurnScheduler, save_game
from models.intents import DeductionView, Intent, IntentResult, NewGameRequest

router = APIRouter()


def _get_scheduler(request: Request) -> TurnScheduler:
    """Get the singleton scheduler from app state."""
    return request.app.state.scheduler


@router.post("/new")
async def new_game(request: Request, options: NewGameRequest | None = None) -> dict:
    """Generate a fresh station and replace the running game."""
    options = options or NewGameRequest()
    seed = options.seed if options.seed is not None else STATION_SEED
    try:
        state = generate_station(
            seed,
            width=options.width or MAP_WIDTH,
            height=options.height or MAP_HEIGHT,
            archetype=options.archetype or STATION_ARCHETYPE,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    previous = _get_scheduler(request)
    scheduler = TurnScheduler(state, displays=previous.displays)
    request.app.state.scheduler = scheduler
    save_game(state, SAVE_FILE)
    await feed.flush()
    logger.info(f"New run started: seed={seed} archetype={state.mystery.archetype}")
    return {
        "seed": state.seed,
        "archetype": state.mystery.archetype,
        "turn": state.turn,
        "width": state.width,
        "height": state.height,
    }


@router.get("/state")
def get_observation(request: Request) -> dict:
    """Get the fog-of-war view of the current turn."""
    return _get_scheduler(request).observe().model_dump(mode="json")


@router.get("/snapshot")
def get_snapshot(request: Request) -> dict:
    """Get the full, unfiltered state snapshot (for debugging and replays)."""
    return _get_scheduler(request).get_state().model_dump(mode="json")


@router.post("/intent", response_model=IntentResult)
async def submit_intent(intent: Intent, request: Request) -> IntentResult:
    """Submit the player's intent for this turn."""
    scheduler = _get_scheduler(request)
    if scheduler.get_state().game_over:
        raise HTTPException(status_code=409, detail="The run is over; start a new game")

    result = scheduler.submit(intent)
    await feed.flush()

    if not result.turn_consumed:
        raise HTTPException(status_code=400, detail=result.error)

    save_game(scheduler.get_state(), SAVE_FILE)
    return result


@router.post("/save")
def save(request: Request) -> dict:
    """Write the current snapshot to the save file."""
    state = _get_scheduler(request).get_state()
    save_game(state, SAVE_FILE)
    return {"saved": True, "turn": state.turn, "path": SAVE_FILE}


@router.get("/log")
def get_log(request: Request, limit: int = Query(50, ge=1, le=500)) -> list[dict]:
    """Get the most recent log entries."""
    state = _get_scheduler(request).get_state()
    return [entry.model_dump(mode="json") for entry in state.logs[-limit:]]


@router.get("/journal")
def get_journal(request: Request) -> list[dict]:
    """Get the evidence journal."""
    state = _get_scheduler(request).get_state()
    return [entry.model_dump(mode="json") for entry in state.mystery.journal]


@router.get("/summary")
def get_summary(request: Request) -> dict:
    """Get the "what we know" write-up and the evidence threads."""
    mystery = _get_scheduler(request).get_state().mystery
    return summarize(mystery).model_dump(mode="json")


@router.get("/deductions")
def get_deductions(request: Request) -> dict:
    """Get unlocked questions and the outcome of answered ones."""
    mystery = _get_scheduler(request).get_state().mystery
    return {
        "unlocked": [
            DeductionView(
                id=d.id,
                category=d.category.value,
                question=d.question,
                options=[o.model_dump() for o in d.options],
                hint=d.hint,
            ).model_dump()
            for d in unlocked(mystery)
        ],
        "solved": [
            {"id": d.id, "given_answer": d.given_answer, "correct": d.answered_correctly}
            for d in mystery.deductions
            if d.solved
        ],
        "locked": sum(1 for d in mystery.deductions if not d.solved) - len(unlocked(mystery)),
    }
