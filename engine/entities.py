"""Entity registry: lookups, the single prop write path, and per-turn reactions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

from config import (
    PATROL_STUN_COOLDOWN,
    PATROL_STUN_TURNS,
    REPAIR_BOT_COOLANT_PER_TURN,
)
from engine.errors import InvariantViolation, OutOfBounds
from engine.grid import TileGrid, is_adjacent, manhattan
from engine.vision import entity_visible
from models.entities import Entity, EntityKind, Position
from models.game_state import LogType

if TYPE_CHECKING:
    from models.game_state import GameState

# Props that may flip to True but never back
ONE_WAY_PROPS = {
    EntityKind.CREW_NPC: ("evacuated", "dead"),
    EntityKind.DATA_CORE: ("transmitted",),
    EntityKind.BREACH: ("sealed",),
}

# Exhaustion predicates: an exhausted entity has nothing left to offer
EXHAUSTED: dict[EntityKind, Callable[[Any], bool]] = {
    EntityKind.PLAYER_BOT: lambda p: False,
    EntityKind.RELAY: lambda p: p.activated,
    EntityKind.SENSOR_PICKUP: lambda p: False,
    EntityKind.DATA_CORE: lambda p: p.transmitted,
    EntityKind.SERVICE_BOT: lambda p: p.active,
    EntityKind.LOG_TERMINAL: lambda p: p.read,
    EntityKind.CREW_ITEM: lambda p: p.examined,
    EntityKind.DRONE: lambda p: p.pinged,
    EntityKind.MED_KIT: lambda p: p.used,
    EntityKind.REPAIR_BOT: lambda p: p.following or p.coolant_reserve <= 0,
    EntityKind.BREACH: lambda p: p.sealed,
    EntityKind.CLOSED_DOOR: lambda p: not p.closed,
    EntityKind.SECURITY_TERMINAL: lambda p: p.accessed,
    EntityKind.PATROL_DRONE: lambda p: p.disabled,
    EntityKind.PRESSURE_VALVE: lambda p: p.turned,
    EntityKind.FUSE_BOX: lambda p: p.powered,
    EntityKind.POWER_CELL: lambda p: False,
    EntityKind.ESCAPE_POD: lambda p: p.boarded >= p.capacity,
    EntityKind.CREW_NPC: lambda p: p.evacuated or p.dead,
    EntityKind.AIRLOCK: lambda p: False,
    EntityKind.TOOL_PICKUP: lambda p: False,
    EntityKind.UTILITY_PICKUP: lambda p: False,
    EntityKind.CONSOLE: lambda p: p.read,
    EntityKind.REPAIR_CRADLE: lambda p: p.cooldown > 0,
    EntityKind.EVIDENCE_TRACE: lambda p: p.discovered,
}

if set(EXHAUSTED) != set(EntityKind):
    raise InvariantViolation(
        f"Exhaustion predicates missing for {sorted(k.value for k in set(EntityKind) - set(EXHAUSTED))}"
    )


def is_exhausted(entity: Entity) -> bool:
    """Whether every interaction the entity offers has been used up."""
    return EXHAUSTED[entity.kind](entity.props)


class EntityRegistry:
    """Mediates all access to ``state.entities``.

    ``mutate_prop`` is the only sanctioned way to change an entity's props.
    """

    def __init__(self, state: GameState) -> None:
        self.state = state
        self.grid = TileGrid(state.tiles, state.rooms)

    def get(self, entity_id: str) -> Entity | None:
        return self.state.entities.get(entity_id)

    def all(self, kind: EntityKind | None = None) -> list[Entity]:
        """Every entity (optionally of one kind), ordered by id."""
        return [
            self.state.entities[eid]
            for eid in sorted(self.state.entities)
            if kind is None or self.state.entities[eid].kind == kind
        ]

    def query(self, predicate: Callable[[Entity], bool] | None = None) -> list[Entity]:
        """Entities the bot can currently see, optionally filtered.

        Args:
            predicate: Extra filter applied to each visible entity.

        Returns:
            Visible (or revealed) entities matching the predicate, ordered by id.
        """
        return [
            e for e in self.all()
            if entity_visible(self.state, e) and (predicate is None or predicate(e))
        ]

    def at(self, x: int, y: int) -> list[Entity]:
        return [e for e in self.all() if e.pos.x == x and e.pos.y == y]

    def add(self, entity: Entity) -> Entity:
        """Register a new entity.

        Raises:
            InvariantViolation: If the id is taken or the entity is the player bot.
            OutOfBounds: If its position lies outside the grid.
        """
        if entity.kind == EntityKind.PLAYER_BOT:
            raise InvariantViolation("The player bot is not stored in the entity registry")
        if entity.id in self.state.entities:
            raise InvariantViolation(f"Duplicate entity id '{entity.id}'")
        if not self.grid.in_bounds(entity.pos.x, entity.pos.y):
            raise OutOfBounds(entity.pos.x, entity.pos.y)
        self.state.entities[entity.id] = entity
        return entity

    def remove(self, entity_id: str) -> Entity:
        if entity_id not in self.state.entities:
            raise KeyError(f"Unknown entity '{entity_id}'")
        return self.state.entities.pop(entity_id)

    def move(self, entity_id: str, x: int, y: int) -> None:
        if not self.grid.in_bounds(x, y):
            raise OutOfBounds(x, y)
        entity = self.state.entities[entity_id]
        entity.pos = Position(x=x, y=y)

    def mutate_prop(self, entity_id: str, key: str, value: Any) -> None:
        """Set one prop on an entity.

        Args:
            entity_id: Target entity.
            key: Prop name; must be declared by the entity's kind.
            value: New value, validated against the prop's type.

        Raises:
            KeyError: If the entity does not exist.
            InvariantViolation: For an undeclared key, the ``kind`` tag, or an
                attempt to undo a one-way transition.
            pydantic.ValidationError: If the value has the wrong type.
        """
        entity = self.state.entities.get(entity_id)
        if entity is None:
            raise KeyError(f"Unknown entity '{entity_id}'")
        props = entity.props
        if key == "kind" or key not in type(props).model_fields:
            raise InvariantViolation(f"{entity.kind.value} has no prop '{key}'")
        if key in ONE_WAY_PROPS.get(entity.kind, ()) and getattr(props, key) and not value:
            raise InvariantViolation(f"'{key}' on {entity_id} cannot be reverted")
        setattr(props, key, value)


# ── Per-turn reactions ──────────────────────────────────────


def step_toward(registry: EntityRegistry, entity: Entity, goal: tuple[int, int]) -> bool:
    """Move an entity one orthogonal step closer to goal, never onto it.

    Returns:
        True if the entity moved.
    """
    grid = registry.grid
    here = entity.pos.as_tuple()
    best = None
    best_dist = manhattan(here, goal)
    for nxt in grid.neighbors4(*here):
        if nxt == goal or not grid.is_walkable(*nxt):
            continue
        dist = manhattan(nxt, goal)
        if dist < best_dist:
            best, best_dist = nxt, dist
    if best is None:
        return False
    registry.move(entity.id, *best)
    return True


def room_ring(registry: EntityRegistry, room_id: str | None) -> list[tuple[int, int]]:
    """The clockwise loop of floor tiles along a room's inner edge."""
    room = next((r for r in registry.state.rooms if r.id == room_id), None)
    if room is None:
        return []
    x0, y0 = room.x, room.y
    x1, y1 = room.x + room.width - 1, room.y + room.height - 1
    ring = [(x, y0) for x in range(x0, x1 + 1)]
    ring += [(x1, y) for y in range(y0 + 1, y1 + 1)]
    if y1 > y0:
        ring += [(x, y1) for x in range(x1 - 1, x0 - 1, -1)]
    if x1 > x0:
        ring += [(x0, y) for y in range(y1 - 1, y0, -1)]
    return [p for p in ring if registry.grid.is_walkable(*p)]


def _react_crew(state: GameState, registry: EntityRegistry, events: list) -> None:
    player_pos = state.player.entity.pos.as_tuple()
    pods = [p for p in registry.all(EntityKind.ESCAPE_POD) if p.props.powered]
    for crew in registry.all(EntityKind.CREW_NPC):
        props = crew.props
        if not props.following or props.evacuated or props.dead:
            continue
        pod = next(
            (p for p in pods
             if p.props.boarded < p.props.capacity and is_adjacent(crew.pos.as_tuple(), p.pos.as_tuple())),
            None,
        )
        if pod is not None:
            registry.mutate_prop(pod.id, "boarded", pod.props.boarded + 1)
            registry.mutate_prop(crew.id, "following", False)
            registry.mutate_prop(crew.id, "evacuated", True)
            events.append((LogType.MILESTONE, f"{props.name or 'A crew member'} boards the escape pod."))
            continue
        if not is_adjacent(crew.pos.as_tuple(), player_pos):
            step_toward(registry, crew, player_pos)


def _react_repair_bots(state: GameState, registry: EntityRegistry, events: list) -> None:
    player_pos = state.player.entity.pos.as_tuple()
    for bot in registry.all(EntityKind.REPAIR_BOT):
        props = bot.props
        if not props.following:
            continue
        if props.coolant_reserve > 0:
            registry.mutate_prop(bot.id, "coolant_reserve", max(0, props.coolant_reserve - REPAIR_BOT_COOLANT_PER_TURN))
        turns_left = props.follow_turns_left - 1
        registry.mutate_prop(bot.id, "follow_turns_left", max(0, turns_left))
        if turns_left <= 0 or props.coolant_reserve <= 0:
            registry.mutate_prop(bot.id, "following", False)
            events.append((LogType.INFO, "The repair bot powers down and returns to standby."))
            continue
        if not is_adjacent(bot.pos.as_tuple(), player_pos):
            step_toward(registry, bot, player_pos)


def _react_patrols(state: GameState, registry: EntityRegistry, events: list) -> None:
    player = state.player
    for drone in registry.all(EntityKind.PATROL_DRONE):
        props = drone.props
        if props.disabled:
            continue
        if props.route:
            index = (props.route_index + 1) % len(props.route)
            target = props.route[index]
            if registry.grid.is_walkable(target.x, target.y):
                registry.move(drone.id, target.x, target.y)
            registry.mutate_prop(drone.id, "route_index", index)
        if props.stun_cooldown > 0:
            registry.mutate_prop(drone.id, "stun_cooldown", props.stun_cooldown - 1)
        elif props.hostile and is_adjacent(drone.pos.as_tuple(), player.entity.pos.as_tuple()):
            player.stun_turns = max(player.stun_turns, PATROL_STUN_TURNS)
            registry.mutate_prop(drone.id, "stun_cooldown", PATROL_STUN_COOLDOWN)
            events.append((LogType.ALERT, f"A patrol drone discharges at you! Systems stunned for {PATROL_STUN_TURNS} turns."))


def _react_drones(state: GameState, registry: EntityRegistry, events: list) -> None:
    for drone in registry.all(EntityKind.DRONE):
        ring = room_ring(registry, drone.props.room_id)
        if not ring:
            continue
        step = (drone.props.step + 1) % len(ring)
        registry.move(drone.id, *ring[step])
        registry.mutate_prop(drone.id, "step", step)


def _react_cradles(state: GameState, registry: EntityRegistry, events: list) -> None:
    for cradle in registry.all(EntityKind.REPAIR_CRADLE):
        if cradle.props.cooldown > 0:
            registry.mutate_prop(cradle.id, "cooldown", cradle.props.cooldown - 1)


REACTIONS = (_react_crew, _react_repair_bots, _react_patrols, _react_drones, _react_cradles)


def run_reactions(state: GameState, registry: EntityRegistry) -> list[tuple[LogType, str]]:
    """Let autonomous entities act once, in a fixed order.

    Args:
        state: The working game state.
        registry: Registry over the same state.

    Returns:
        (log type, message) pairs for anything the player should hear about.
    """
    events: list[tuple[LogType, str]] = []
    for react in REACTIONS:
        react(state, registry, events)
    return events
