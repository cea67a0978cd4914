"""Intent request, result, and observation models for Corvus Station Server."""

from enum import Enum

from pydantic import BaseModel

from models.entities import EntityKind, Position, SensorType
from models.game_state import HazardReading, LogEntry, TileType
from models.mystery import InvestigationSummary, MysteryChoice, ObjectivePhase


class IntentType(str, Enum):
    """Available intents the player can submit for a turn."""
    MOVE = "move"
    INTERACT = "interact"
    WAIT = "wait"
    TOGGLE_SENSOR = "toggle_sensor"
    CLEAN = "clean"
    SCAN = "scan"                   # Sweep the active sensor for hidden traces
    ANSWER = "answer"               # Answer an unlocked deduction
    CHOOSE = "choose"               # Settle a presented mystery choice


class Direction(str, Enum):
    NORTH = "north"
    SOUTH = "south"
    EAST = "east"
    WEST = "west"


DIRECTION_DELTAS: dict[Direction, tuple[int, int]] = {
    Direction.NORTH: (0, -1),
    Direction.SOUTH: (0, 1),
    Direction.EAST: (1, 0),
    Direction.WEST: (-1, 0),
}


class Intent(BaseModel):
    """One player intent, submitted once per turn."""
    type: IntentType
    direction: Direction | None = None      # For move
    delta: tuple[int, int] | None = None    # For move, alternative to direction
    target_id: str | None = None            # For interact
    sensor: SensorType | None = None        # For toggle_sensor; None cycles
    deduction_id: str | None = None         # For answer
    answer: str | None = None               # For answer / choose
    choice_id: str | None = None            # For choose


class IntentResult(BaseModel):
    """The engine's response after resolving an intent."""
    accepted: bool
    turn_consumed: bool
    intent_type: IntentType
    description: str                # Human-readable narrative
    turn: int
    error: str | None = None        # If the intent was rejected


class TileView(BaseModel):
    """A tile as an external consumer is allowed to see it."""
    x: int
    y: int
    type: TileType | None           # None = unexplored
    visible: bool
    explored: bool
    hazards: HazardReading


class EntityView(BaseModel):
    """An entity as shown to display clients."""
    id: str
    kind: EntityKind
    pos: Position
    props: dict
    exhausted: bool


class PlayerView(BaseModel):
    pos: Position
    hp: int
    max_hp: int
    stun_turns: int
    sensors: list[SensorType]
    active_sensor: SensorType | None
    attachments: dict[str, str]
    power_cells: int


class DeductionView(BaseModel):
    """An unlocked deduction without its answer key."""
    id: str
    category: str
    question: str
    options: list[dict]
    hint: str


class Observation(BaseModel):
    """What a display or bot receives each turn: fog-of-war applied."""
    turn: int
    width: int
    height: int
    player: PlayerView
    tiles: list[TileView]
    entities: list[EntityView]
    logs: list[LogEntry]
    objective_phase: ObjectivePhase
    rooms_cleaned: list[str]
    unlocked_deductions: list[DeductionView]
    open_choices: list[MysteryChoice]
    journal_size: int
    investigation: InvestigationSummary
    game_over: bool
    victory: bool


class NewGameRequest(BaseModel):
    """Options accepted when starting a fresh run."""
    seed: int | None = None                 # None = server default
    archetype: str | None = None            # None = derived from the seed
    width: int | None = None
    height: int | None = None
