"""Entity data models: positions, entity kinds, and per-kind state records."""

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class Position(BaseModel):
    """A tile coordinate on the station grid."""
    model_config = ConfigDict(frozen=True)

    x: int
    y: int

    def offset(self, dx: int, dy: int) -> "Position":
        return Position(x=self.x + dx, y=self.y + dy)

    def as_tuple(self) -> tuple[int, int]:
        return (self.x, self.y)


class SensorType(str, Enum):
    """Sensor attachments the bot can carry."""
    CLEANLINESS = "cleanliness"
    THERMAL = "thermal"
    ATMOSPHERIC = "atmospheric"


class EntityKind(str, Enum):
    """Closed set of entity kinds: the player bot plus everything placed on the station."""
    PLAYER_BOT = "player_bot"
    RELAY = "relay"
    SENSOR_PICKUP = "sensor_pickup"
    DATA_CORE = "data_core"
    SERVICE_BOT = "service_bot"
    LOG_TERMINAL = "log_terminal"
    CREW_ITEM = "crew_item"
    DRONE = "drone"
    MED_KIT = "med_kit"
    REPAIR_BOT = "repair_bot"
    BREACH = "breach"
    CLOSED_DOOR = "closed_door"
    SECURITY_TERMINAL = "security_terminal"
    PATROL_DRONE = "patrol_drone"
    PRESSURE_VALVE = "pressure_valve"
    FUSE_BOX = "fuse_box"
    POWER_CELL = "power_cell"
    ESCAPE_POD = "escape_pod"
    CREW_NPC = "crew_npc"
    AIRLOCK = "airlock"
    TOOL_PICKUP = "tool_pickup"
    UTILITY_PICKUP = "utility_pickup"
    CONSOLE = "console"
    REPAIR_CRADLE = "repair_cradle"
    EVIDENCE_TRACE = "evidence_trace"


class EntityProps(BaseModel):
    """Flags shared by every entity kind.

    Subclasses narrow ``kind`` to a single literal so the union below can be
    discriminated on it.
    """
    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    hidden: bool = False            # Not shown until revealed (buried, scan-hidden)
    revealed: bool = False          # Shown regardless of line of sight


class PlayerBotProps(EntityProps):
    kind: Literal[EntityKind.PLAYER_BOT] = EntityKind.PLAYER_BOT


class RelayProps(EntityProps):
    kind: Literal[EntityKind.RELAY] = EntityKind.RELAY
    activated: bool = False
    locked: bool = False
    overheating: bool = False
    group: str | None = None        # Fuse box group that unlocks it


class SensorPickupProps(EntityProps):
    kind: Literal[EntityKind.SENSOR_PICKUP] = EntityKind.SENSOR_PICKUP
    sensor_type: SensorType


class DataCoreProps(EntityProps):
    kind: Literal[EntityKind.DATA_CORE] = EntityKind.DATA_CORE
    locked: bool = True
    transmitted: bool = False


class ServiceBotProps(EntityProps):
    kind: Literal[EntityKind.SERVICE_BOT] = EntityKind.SERVICE_BOT
    active: bool = False


class LogTerminalProps(EntityProps):
    kind: Literal[EntityKind.LOG_TERMINAL] = EntityKind.LOG_TERMINAL
    title: str = ""
    text: str = ""
    source: str = "unknown"
    evidence_id: str | None = None
    choice_id: str | None = None    # Mystery choice presented on first read
    read: bool = False


class CrewItemProps(EntityProps):
    kind: Literal[EntityKind.CREW_ITEM] = EntityKind.CREW_ITEM
    name: str = ""
    text: str = ""
    evidence_id: str | None = None
    examined: bool = False


class DroneProps(EntityProps):
    kind: Literal[EntityKind.DRONE] = EntityKind.DRONE
    room_id: str | None = None
    step: int = 0
    pinged: bool = False


class MedKitProps(EntityProps):
    kind: Literal[EntityKind.MED_KIT] = EntityKind.MED_KIT
    used: bool = False


class RepairBotProps(EntityProps):
    kind: Literal[EntityKind.REPAIR_BOT] = EntityKind.REPAIR_BOT
    following: bool = False
    follow_turns_left: int = 0
    coolant_reserve: int = 60


class BreachProps(EntityProps):
    kind: Literal[EntityKind.BREACH] = EntityKind.BREACH
    sealed: bool = False


class ClosedDoorProps(EntityProps):
    kind: Literal[EntityKind.CLOSED_DOOR] = EntityKind.CLOSED_DOOR
    closed: bool = True
    locked: bool = False
    clearance: int = 0              # Correct deductions needed to open


class SecurityTerminalProps(EntityProps):
    kind: Literal[EntityKind.SECURITY_TERMINAL] = EntityKind.SECURITY_TERMINAL
    accessed: bool = False
    reveal_rooms: list[str] = []


class PatrolDroneProps(EntityProps):
    kind: Literal[EntityKind.PATROL_DRONE] = EntityKind.PATROL_DRONE
    hostile: bool = True
    disabled: bool = False
    route: list[Position] = []
    route_index: int = 0
    stun_cooldown: int = 0


class PressureValveProps(EntityProps):
    kind: Literal[EntityKind.PRESSURE_VALVE] = EntityKind.PRESSURE_VALVE
    turned: bool = False
    room_id: str | None = None


class FuseBoxProps(EntityProps):
    kind: Literal[EntityKind.FUSE_BOX] = EntityKind.FUSE_BOX
    powered: bool = False
    group: str | None = None


class PowerCellProps(EntityProps):
    kind: Literal[EntityKind.POWER_CELL] = EntityKind.POWER_CELL


class EscapePodProps(EntityProps):
    kind: Literal[EntityKind.ESCAPE_POD] = EntityKind.ESCAPE_POD
    powered: bool = False
    capacity: int = 2
    boarded: int = 0


class CrewNPCProps(EntityProps):
    kind: Literal[EntityKind.CREW_NPC] = EntityKind.CREW_NPC
    name: str = ""
    hp: int = 50
    found: bool = False
    following: bool = False
    evacuated: bool = False
    dead: bool = False


class AirlockProps(EntityProps):
    kind: Literal[EntityKind.AIRLOCK] = EntityKind.AIRLOCK
    open: bool = False


class ToolPickupProps(EntityProps):
    kind: Literal[EntityKind.TOOL_PICKUP] = EntityKind.TOOL_PICKUP
    tool_type: str = "sealant_patch"


class UtilityPickupProps(EntityProps):
    kind: Literal[EntityKind.UTILITY_PICKUP] = EntityKind.UTILITY_PICKUP
    utility_type: str = "emp_emitter"


class ConsoleProps(EntityProps):
    kind: Literal[EntityKind.CONSOLE] = EntityKind.CONSOLE
    name: str = ""
    text: str = ""
    evidence_id: str | None = None
    read: bool = False


class RepairCradleProps(EntityProps):
    kind: Literal[EntityKind.REPAIR_CRADLE] = EntityKind.REPAIR_CRADLE
    cooldown: int = 0


class EvidenceTraceProps(EntityProps):
    kind: Literal[EntityKind.EVIDENCE_TRACE] = EntityKind.EVIDENCE_TRACE
    text: str = ""
    evidence_id: str | None = None
    sensor_required: SensorType | None = None
    discovered: bool = False


AnyProps = Annotated[
    Union[
        PlayerBotProps,
        RelayProps,
        SensorPickupProps,
        DataCoreProps,
        ServiceBotProps,
        LogTerminalProps,
        CrewItemProps,
        DroneProps,
        MedKitProps,
        RepairBotProps,
        BreachProps,
        ClosedDoorProps,
        SecurityTerminalProps,
        PatrolDroneProps,
        PressureValveProps,
        FuseBoxProps,
        PowerCellProps,
        EscapePodProps,
        CrewNPCProps,
        AirlockProps,
        ToolPickupProps,
        UtilityPickupProps,
        ConsoleProps,
        RepairCradleProps,
        EvidenceTraceProps,
    ],
    Field(discriminator="kind"),
]


class Entity(BaseModel):
    """An object on the station: the shared interface is id, pos and kind."""
    id: str                         # Unique and stable for the entity's lifetime
    pos: Position
    props: AnyProps

    @property
    def kind(self) -> EntityKind:
        return self.props.kind
