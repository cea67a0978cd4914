"""Interaction resolution: one handler per entity kind.

Handlers return the narrative line for the log. A handler that raises
``IllegalIntent`` rejects the intent and no turn elapses; re-using an
exhausted entity is legal and simply produces a no-op message.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from config import (
    BREACH_INFLUENCE_RADIUS,
    MEDKIT_HEAL,
    REPAIR_BOT_FOLLOW_TURNS,
    REPAIR_CRADLE_COOLDOWN,
    VALVE_PRESSURE_RESTORE,
)
from engine.deduction import correct_count, present_choice, record_evidence
from engine.entities import is_exhausted
from engine.errors import IllegalIntent, InvariantViolation
from engine.grid import distance, is_adjacent
from engine.hazards import influence_zone, restore_pressure
from engine.vision import reveal_room
from models.entities import EntityKind
from models.game_state import TileType
from models.player import Attachment, AttachmentSlot

if TYPE_CHECKING:
    from engine.entities import EntityRegistry
    from models.entities import Entity
    from models.game_state import GameState

Handler = Callable[["GameState", "EntityRegistry", "Entity"], str]


def _record(state: GameState, registry: EntityRegistry, entity: Entity, evidence_id: str | None, text: str) -> str:
    """Journal a piece of evidence found on an entity. Returns a suffix for the log."""
    if not evidence_id:
        return ""
    room = registry.grid.room_at(entity.pos.x, entity.pos.y)
    entry = record_evidence(
        state.mystery,
        evidence_id,
        text,
        room_id=room.id if room else None,
        entity_id=entity.id,
        turn=state.turn,
    )
    return " [Evidence logged]" if entry else ""


def _player_bot(state, registry, entity):
    raise IllegalIntent("The bot cannot interact with itself")


def _relay(state, registry, entity):
    props = entity.props
    if props.activated:
        return "The relay is already rerouted and stable."
    if props.locked:
        return "The relay is locked out. Its fuse box needs power first."
    registry.mutate_prop(entity.id, "activated", True)
    registry.mutate_prop(entity.id, "overheating", False)
    return "Relay rerouted. Power flow stabilises and the overload clears."


def _sensor_pickup(state, registry, entity):
    player = state.player
    sensor = entity.props.sensor_type
    if sensor not in player.sensors:
        player.sensors = sorted({*player.sensors, sensor}, key=lambda s: s.value)
    if player.active_sensor is None:
        player.attachments[AttachmentSlot.SENSOR] = Attachment(
            slot=AttachmentSlot.SENSOR, name=sensor.value, sensor_type=sensor,
        )
    registry.remove(entity.id)
    return f"Installed the {sensor.value} sensor."


def _data_core(state, registry, entity):
    props = entity.props
    if props.transmitted:
        return "The data core has already transmitted its archive."
    if props.locked:
        return "The data core is sealed. It will only unlock once evacuation begins."
    registry.mutate_prop(entity.id, "transmitted", True)
    return "Data core archive transmitted to the relay satellite."


def _service_bot(state, registry, entity):
    if entity.props.active:
        return "The service bot is already standing by as a backup chassis."
    registry.mutate_prop(entity.id, "active", True)
    return "Service bot activated. It will take over if your chassis fails."


def _log_terminal(state, registry, entity):
    props = entity.props
    text = f"[{props.source}] {props.title}: {props.text}" if props.title else props.text
    suffix = _record(state, registry, entity, props.evidence_id, text)
    registry.mutate_prop(entity.id, "read", True)
    if props.choice_id and present_choice(state.mystery, props.choice_id):
        suffix += " [Decision pending]"
    return text + suffix


def _crew_item(state, registry, entity):
    props = entity.props
    text = f"{props.name}: {props.text}" if props.name else props.text
    suffix = _record(state, registry, entity, props.evidence_id, text)
    registry.mutate_prop(entity.id, "examined", True)
    return text + suffix


def _drone(state, registry, entity):
    if entity.props.pinged:
        return "The maintenance drone ignores you; it has nothing more to report."
    registry.mutate_prop(entity.id, "pinged", True)
    return "The maintenance drone chirps and uploads its cleaning route."


def _med_kit(state, registry, entity):
    if entity.props.used:
        return "The med kit is empty."
    player = state.player
    healed = min(MEDKIT_HEAL, player.max_hp - player.hp)
    player.hp += healed
    registry.mutate_prop(entity.id, "used", True)
    return f"Applied repair kit: +{healed} HP."


def _repair_bot(state, registry, entity):
    props = entity.props
    if props.following:
        return "The repair bot is already following you."
    if props.coolant_reserve <= 0:
        return "The repair bot's coolant tanks are dry."
    registry.mutate_prop(entity.id, "following", True)
    registry.mutate_prop(entity.id, "follow_turns_left", REPAIR_BOT_FOLLOW_TURNS)
    return "Repair bot online. It falls in behind you, venting coolant."


def _breach(state, registry, entity):
    if entity.props.sealed:
        return "The breach is already sealed."
    if not state.player.has_tool():
        raise IllegalIntent("You need a tool attachment to seal the breach")
    registry.mutate_prop(entity.id, "sealed", True)
    return "Breach sealed. The hiss of escaping air stops."


def _closed_door(state, registry, entity):
    props = entity.props
    if not props.closed:
        return "The door is already open."
    if props.clearance > correct_count(state.mystery):
        return f"Access denied: clearance level {props.clearance} required."
    registry.mutate_prop(entity.id, "closed", False)
    registry.mutate_prop(entity.id, "locked", False)
    registry.grid.set_type(entity.pos.x, entity.pos.y, TileType.DOOR)
    return "The door slides open."


def _security_terminal(state, registry, entity):
    if entity.props.accessed:
        return "The security terminal has nothing new to show."
    registry.mutate_prop(entity.id, "accessed", True)
    revealed = []
    for room in state.rooms:
        if room.id in entity.props.reveal_rooms:
            reveal_room(state, room)
            revealed.append(room.name)
    if not revealed:
        return "Security feeds are dark."
    return f"Security cameras show: {', '.join(revealed)}."


def _patrol_drone(state, registry, entity):
    if entity.props.disabled:
        return "The patrol drone is inert."
    if not state.player.has_utility():
        raise IllegalIntent("You need a utility attachment to disable the patrol drone")
    registry.mutate_prop(entity.id, "disabled", True)
    registry.mutate_prop(entity.id, "hostile", False)
    return "EMP pulse! The patrol drone drops to the deck."


def _pressure_valve(state, registry, entity):
    props = entity.props
    if props.turned:
        return "The valve is already fully open."
    room = next((r for r in state.rooms if r.id == props.room_id), None)
    if room is None:
        room = registry.grid.room_at(entity.pos.x, entity.pos.y)
    if room is None:
        return "The valve spins freely; it is not connected to anything."
    for breach in registry.all(EntityKind.BREACH):
        if breach.props.sealed:
            continue
        zone = influence_zone(registry.grid, breach.pos.as_tuple(), BREACH_INFLUENCE_RADIUS)
        if any(room.contains(x, y) for x, y in zone):
            return "Opening the valve now would vent the reserve through an open breach."
    restore_pressure(registry.grid, room, VALVE_PRESSURE_RESTORE)
    registry.mutate_prop(entity.id, "turned", True)
    return f"Reserve air floods {room.name}. Pressure recovering."


def _fuse_box(state, registry, entity):
    props = entity.props
    if props.powered:
        return "The fuse box is already powered."
    player = state.player
    if player.power_cells <= 0:
        raise IllegalIntent("You need a power cell to energise the fuse box")
    player.power_cells -= 1
    registry.mutate_prop(entity.id, "powered", True)
    unlocked = 0
    for relay in registry.all(EntityKind.RELAY):
        if relay.props.locked and relay.props.group == props.group:
            registry.mutate_prop(relay.id, "locked", False)
            unlocked += 1
    return f"Fuse box energised. {unlocked} relay(s) unlocked."


def _power_cell(state, registry, entity):
    state.player.power_cells += 1
    registry.remove(entity.id)
    return f"Picked up a power cell ({state.player.power_cells} carried)."


def _escape_pod(state, registry, entity):
    props = entity.props
    if not props.powered:
        return "The escape pod is dark. It will power up when evacuation begins."
    return f"Escape pod ready: {props.boarded}/{props.capacity} aboard."


def _crew_npc(state, registry, entity):
    props = entity.props
    name = props.name or "The crew member"
    if props.dead:
        return f"{name} is beyond help."
    if props.evacuated:
        return f"{name} is already aboard an escape pod."
    if props.following:
        return f"{name} is following you."
    registry.mutate_prop(entity.id, "found", True)
    registry.mutate_prop(entity.id, "following", True)
    return f"{name} is alive! They fall in behind you."


def _airlock(state, registry, entity):
    is_open = not entity.props.open
    registry.mutate_prop(entity.id, "open", is_open)
    return "Airlock cycled open. Atmosphere venting!" if is_open else "Airlock sealed."


def _tool_pickup(state, registry, entity):
    tool = entity.props.tool_type
    state.player.attachments[AttachmentSlot.TOOL] = Attachment(slot=AttachmentSlot.TOOL, name=tool)
    registry.remove(entity.id)
    return f"Mounted tool: {tool}."


def _utility_pickup(state, registry, entity):
    utility = entity.props.utility_type
    state.player.attachments[AttachmentSlot.UTILITY] = Attachment(slot=AttachmentSlot.UTILITY, name=utility)
    registry.remove(entity.id)
    return f"Mounted utility: {utility}."


def _console(state, registry, entity):
    props = entity.props
    text = f"{props.name}: {props.text}" if props.name else props.text
    suffix = _record(state, registry, entity, props.evidence_id, text)
    registry.mutate_prop(entity.id, "read", True)
    return text + suffix


def _repair_cradle(state, registry, entity):
    if entity.props.cooldown > 0:
        return f"The repair cradle is recharging ({entity.props.cooldown} turns)."
    player = state.player
    healed = player.max_hp - player.hp
    player.hp = player.max_hp
    registry.mutate_prop(entity.id, "cooldown", REPAIR_CRADLE_COOLDOWN)
    return f"Docked in the repair cradle: +{healed} HP."


def _evidence_trace(state, registry, entity):
    props = entity.props
    if props.discovered:
        return f"Trace already catalogued: {props.text}"
    suffix = _record(state, registry, entity, props.evidence_id, props.text)
    registry.mutate_prop(entity.id, "discovered", True)
    return f"Trace analysed: {props.text}{suffix}"


HANDLERS: dict[EntityKind, Handler] = {
    EntityKind.PLAYER_BOT: _player_bot,
    EntityKind.RELAY: _relay,
    EntityKind.SENSOR_PICKUP: _sensor_pickup,
    EntityKind.DATA_CORE: _data_core,
    EntityKind.SERVICE_BOT: _service_bot,
    EntityKind.LOG_TERMINAL: _log_terminal,
    EntityKind.CREW_ITEM: _crew_item,
    EntityKind.DRONE: _drone,
    EntityKind.MED_KIT: _med_kit,
    EntityKind.REPAIR_BOT: _repair_bot,
    EntityKind.BREACH: _breach,
    EntityKind.CLOSED_DOOR: _closed_door,
    EntityKind.SECURITY_TERMINAL: _security_terminal,
    EntityKind.PATROL_DRONE: _patrol_drone,
    EntityKind.PRESSURE_VALVE: _pressure_valve,
    EntityKind.FUSE_BOX: _fuse_box,
    EntityKind.POWER_CELL: _power_cell,
    EntityKind.ESCAPE_POD: _escape_pod,
    EntityKind.CREW_NPC: _crew_npc,
    EntityKind.AIRLOCK: _airlock,
    EntityKind.TOOL_PICKUP: _tool_pickup,
    EntityKind.UTILITY_PICKUP: _utility_pickup,
    EntityKind.CONSOLE: _console,
    EntityKind.REPAIR_CRADLE: _repair_cradle,
    EntityKind.EVIDENCE_TRACE: _evidence_trace,
}

if set(HANDLERS) != set(EntityKind):
    raise InvariantViolation(
        f"Interaction handlers missing for {sorted(k.value for k in set(EntityKind) - set(HANDLERS))}"
    )


def find_target(state: GameState, registry: EntityRegistry, target_id: str | None) -> Entity:
    """Pick the entity an interact intent applies to.

    With a target id, that entity must be visible and within one tile. Without
    one, the closest visible non-exhausted entity within one tile is used.

    Raises:
        IllegalIntent: If there is nothing suitable to interact with.
    """
    player_pos = state.player.entity.pos.as_tuple()
    nearby = registry.query(lambda e: is_adjacent(player_pos, e.pos.as_tuple()))
    if target_id is not None:
        for entity in nearby:
            if entity.id == target_id:
                return entity
        raise IllegalIntent(f"'{target_id}' is not within reach")
    candidates = [e for e in nearby if not is_exhausted(e)]
    if not candidates:
        raise IllegalIntent("There is nothing here to interact with")
    return min(candidates, key=lambda e: (distance(player_pos, e.pos.as_tuple()), e.id))


def interact(state: GameState, registry: EntityRegistry, entity: Entity) -> str:
    """Resolve an interaction with the entity's kind handler."""
    return HANDLERS[entity.kind](state, registry, entity)
