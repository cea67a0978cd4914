"""Game state, tile, room, and log models for Corvus Station Server."""

from enum import Enum

from pydantic import BaseModel, ConfigDict

from models.entities import Entity
from models.mystery import Mystery
from models.player import Player


class TileType(str, Enum):
    """Possible tile types."""
    WALL = "wall"
    FLOOR = "floor"
    CORRIDOR = "corridor"
    DOOR = "door"
    LOCKED_DOOR = "locked_door"


WALKABLE_TYPES = frozenset({TileType.FLOOR, TileType.CORRIDOR, TileType.DOOR})


class HazardField(str, Enum):
    """The four per-tile hazard scalars."""
    HEAT = "heat"
    SMOKE = "smoke"
    PRESSURE = "pressure"
    DIRT = "dirt"


class HazardReading(BaseModel):
    """Hazard values as last seen by the bot (the memory fog snapshot)."""
    model_config = ConfigDict(frozen=True)

    heat: int = 0
    smoke: int = 0
    pressure: int = 100
    dirt: int = 0


class Tile(BaseModel):
    """A single tile on the station grid."""
    type: TileType = TileType.WALL
    walkable: bool = False
    explored: bool = False
    visible: bool = False
    heat: int = 0                   # 0..HEAT_MAX
    smoke: int = 0                  # 0..100
    pressure: int = 100             # 0..100
    dirt: int = 0                   # 0..100
    memory: HazardReading | None = None


class Room(BaseModel):
    """A named room, laid out once at generation time."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    zone: str = "Infrastructure"
    x: int
    y: int
    width: int
    height: int

    def contains(self, x: int, y: int) -> bool:
        return self.x <= x < self.x + self.width and self.y <= y < self.y + self.height

    @property
    def center(self) -> tuple[int, int]:
        return (self.x + self.width // 2, self.y + self.height // 2)


class LogType(str, Enum):
    """Categories the display layer colours logs by."""
    INFO = "info"
    WARNING = "warning"
    ALERT = "alert"
    NARRATIVE = "narrative"
    MILESTONE = "milestone"
    REJECTED = "rejected"


class LogEntry(BaseModel):
    """A message shown to the player."""
    id: str
    text: str
    type: LogType = LogType.INFO
    read: bool = False
    turn: int = 0


class GameState(BaseModel):
    """The full state of a run."""
    seed: int
    turn: int = 0
    width: int
    height: int
    tiles: list[list[Tile]]         # 2D grid [y][x]
    rooms: list[Room] = []
    entities: dict[str, Entity] = {}  # entity_id -> Entity
    player: Player
    logs: list[LogEntry] = []
    mystery: Mystery
    game_over: bool = False
    victory: bool = False
