"""Per-turn evolution of the heat, smoke, pressure and dirt fields.

Everything here is integer arithmetic with a fixed iteration order, so the same
grid and turn counter always produce the same result.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

from config import (
    AIRLOCK_PRESSURE_DRAIN,
    BREACH_HEAT_RATE,
    BREACH_INFLUENCE_RADIUS,
    CLEAN_AMOUNT,
    CLEAN_SPLASH_AMOUNT,
    COOL_RECOVERY_RATE,
    DETERIORATION_HEAT_BOOST,
    DETERIORATION_INTERVAL,
    DIRT_ACCUMULATION_AMOUNT,
    DIRT_ACCUMULATION_INTERVAL,
    HEAT_DAMAGE_INTERVAL,
    HEAT_DAMAGE_PER_TURN,
    HEAT_DECAY_RATE,
    HEAT_DIFFUSION_DIVISOR,
    HEAT_PAIN_THRESHOLD,
    HEAT_SOURCE_CAP,
    HEAT_SOURCE_RATE,
    HEAT_VISIBLE_THRESHOLD,
    PRESSURE_BREACH_DRAIN,
    PRESSURE_DAMAGE_PER_TURN,
    PRESSURE_DAMAGE_THRESHOLD,
    REPAIR_BOT_COOLING,
    SMOKE_DAMAGE_PER_TURN,
    SMOKE_DAMAGE_THRESHOLD,
    SMOKE_DECAY_RATE,
    SMOKE_DIFFUSION_DIVISOR,
    SMOKE_SOURCE_CAP,
    SMOKE_SOURCE_RATE,
)
from engine.grid import TileGrid
from models.entities import EntityKind, SensorType
from models.game_state import HazardField, LogType

if TYPE_CHECKING:
    from engine.entities import EntityRegistry
    from models.game_state import GameState, Room, Tile

HazardEvent = tuple[LogType, str]


# ── Diffusion ───────────────────────────────────────────────


def diffuse(grid: TileGrid, field: HazardField, divisor: int) -> None:
    """Move a share of each gradient from hotter to cooler walkable neighbours.

    Flows are computed from the values at the start of the step, then applied,
    so the scan order cannot bias the result.
    """
    old = [[getattr(tile, field.value) for tile in row] for row in grid.tiles]
    new = [row[:] for row in old]

    for x, y in grid.walkable_positions():
        value = old[y][x]
        if value <= 0:
            continue
        for nx, ny in grid.neighbors4(x, y):
            if not grid.tiles[ny][nx].walkable:
                continue
            gradient = value - old[ny][nx]
            if gradient <= 0:
                continue
            flow = gradient // divisor
            new[y][x] -= flow
            new[ny][nx] += flow

    for x, y in grid.walkable_positions():
        if new[y][x] != old[y][x]:
            grid.set_hazard(x, y, field, new[y][x])


def decay(grid: TileGrid, field: HazardField, rate: int, exempt: set[tuple[int, int]]) -> None:
    """Lower a field by a constant on every tile except the exempt source tiles."""
    for x, y in grid.walkable_positions():
        if (x, y) in exempt:
            continue
        value = grid.hazard(x, y, field)
        if value > 0:
            grid.set_hazard(x, y, field, max(0, value - rate))


def inject(grid: TileGrid, pos: tuple[int, int], field: HazardField, rate: int, cap: int) -> None:
    """Raise a field at a source tile without pushing it past the source cap."""
    value = grid.hazard(*pos, field)
    if value < cap:
        grid.set_hazard(*pos, field, min(cap, value + rate))


# ── Pressure ────────────────────────────────────────────────


def influence_zone(grid: TileGrid, origin: tuple[int, int], radius: int) -> set[tuple[int, int]]:
    """Walkable tiles reachable from origin within `radius` orthogonal steps.

    The origin itself is always included, even when it is a wall tile.
    """
    zone = {origin}
    queue = deque([(origin, 0)])
    while queue:
        (x, y), dist = queue.popleft()
        if dist >= radius:
            continue
        for nxt in grid.neighbors4(x, y):
            if nxt in zone or not grid.is_walkable(*nxt):
                continue
            zone.add(nxt)
            queue.append((nxt, dist + 1))
    return zone


def drain_pressure(grid: TileGrid, zone: set[tuple[int, int]], amount: int) -> None:
    for x, y in sorted(zone):
        value = grid.hazard(x, y, HazardField.PRESSURE)
        if value > 0:
            grid.set_hazard(x, y, HazardField.PRESSURE, max(0, value - amount))


def restore_pressure(grid: TileGrid, room: Room, amount: int) -> int:
    """Raise pressure on a room's floor tiles. Returns the number of tiles changed."""
    changed = 0
    for x, y in grid.room_positions(room):
        if not grid.is_walkable(x, y):
            continue
        value = grid.hazard(x, y, HazardField.PRESSURE)
        stored = grid.set_hazard(x, y, HazardField.PRESSURE, value + amount)
        if stored != value:
            changed += 1
    return changed


# ── Dirt ────────────────────────────────────────────────────


def accumulate_dirt(grid: TileGrid, amount: int) -> None:
    for x, y in grid.walkable_positions():
        grid.set_hazard(x, y, HazardField.DIRT, grid.hazard(x, y, HazardField.DIRT) + amount)


def clean_area(grid: TileGrid, x: int, y: int) -> int:
    """Scrub the tile at (x, y) and splash-clean its walkable neighbours.

    Args:
        grid: The station grid.
        x: Column of the tile being cleaned.
        y: Row of the tile being cleaned.

    Returns:
        Total dirt removed across all affected tiles.
    """
    removed = 0
    targets = [((x, y), CLEAN_AMOUNT)]
    targets += [(pos, CLEAN_SPLASH_AMOUNT) for pos in grid.neighbors4(x, y) if grid.is_walkable(*pos)]
    for (tx, ty), amount in targets:
        value = grid.hazard(tx, ty, HazardField.DIRT)
        stored = grid.set_hazard(tx, ty, HazardField.DIRT, max(0, value - amount))
        removed += value - stored
    return removed


# ── Damage ──────────────────────────────────────────────────


def heat_damage(heat: int, sensor: SensorType | None = None) -> int:
    """Damage taken this turn from standing on a tile at the given heat."""
    if heat <= HEAT_PAIN_THRESHOLD:
        return 0
    damage = HEAT_DAMAGE_PER_TURN + (heat - HEAT_PAIN_THRESHOLD) // 25
    if sensor == SensorType.THERMAL:
        # Thermal readout lets the bot keep to the cooler edge of a hot tile
        damage = max(1, damage // 2)
    return damage


def tile_damage(tile: Tile, turn: int, sensor: SensorType | None = None) -> int:
    """Total hazard damage the player takes on a tile at the end of `turn`."""
    damage = 0
    if turn % HEAT_DAMAGE_INTERVAL == 0:
        damage += heat_damage(tile.heat, sensor)
    if tile.pressure < PRESSURE_DAMAGE_THRESHOLD:
        pressure_damage = PRESSURE_DAMAGE_PER_TURN
        if sensor == SensorType.ATMOSPHERIC:
            pressure_damage = max(1, pressure_damage // 2)
        damage += pressure_damage
    if tile.smoke > SMOKE_DAMAGE_THRESHOLD:
        damage += SMOKE_DAMAGE_PER_TURN
    return damage


def is_safe(tile: Tile) -> bool:
    """Cool, breathable, clear air: the bot's self-repair can run."""
    return (
        tile.heat < HEAT_VISIBLE_THRESHOLD
        and tile.pressure >= PRESSURE_DAMAGE_THRESHOLD
        and tile.smoke <= SMOKE_DAMAGE_THRESHOLD
    )


def apply_damage(state: GameState, registry: EntityRegistry, turn: int) -> list[HazardEvent]:
    """Damage the player and crew NPCs standing on hazardous tiles."""
    events: list[HazardEvent] = []
    grid = TileGrid(state.tiles, state.rooms)
    player = state.player

    tile = grid.get(*player.entity.pos.as_tuple())
    damage = tile_damage(tile, turn, player.active_sensor)
    if damage > 0:
        player.hp = max(0, player.hp - damage)
        events.append((LogType.WARNING, f"Hazard damage: -{damage} HP ({player.hp}/{player.max_hp})."))
    elif is_safe(tile) and player.hp < player.max_hp:
        player.hp = min(player.max_hp, player.hp + COOL_RECOVERY_RATE)

    for crew in registry.all(EntityKind.CREW_NPC):
        if crew.props.dead or crew.props.evacuated:
            continue
        crew_tile = grid.get(*crew.pos.as_tuple())
        if turn % HEAT_DAMAGE_INTERVAL != 0:
            continue
        crew_damage = heat_damage(crew_tile.heat)
        if crew_damage == 0:
            continue
        hp = max(0, crew.props.hp - crew_damage)
        registry.mutate_prop(crew.id, "hp", hp)
        if hp == 0:
            registry.mutate_prop(crew.id, "dead", True)
            registry.mutate_prop(crew.id, "following", False)
            events.append((LogType.ALERT, f"{crew.props.name or 'A crew member'} has succumbed to the heat."))
    return events


# ── Turn tick ───────────────────────────────────────────────


def tick_hazards(state: GameState, registry: EntityRegistry) -> list[HazardEvent]:
    """Advance every hazard field by one turn, then apply hazard damage.

    Mutates ``state.tiles`` in place; the caller owns the working copy.

    Args:
        state: The working game state for the turn being resolved.
        registry: Entity registry over the same state.

    Returns:
        (log type, message) pairs describing notable hazard events.
    """
    grid = TileGrid(state.tiles, state.rooms)
    turn = state.turn + 1
    events: list[HazardEvent] = []

    relay_sources = sorted(
        e.pos.as_tuple() for e in registry.all(EntityKind.RELAY) if e.props.overheating
    )
    breaches = sorted(
        e.pos.as_tuple() for e in registry.all(EntityKind.BREACH) if not e.props.sealed
    )
    airlocks = sorted(
        e.pos.as_tuple() for e in registry.all(EntityKind.AIRLOCK) if e.props.open
    )
    coolers = sorted(
        e.pos.as_tuple()
        for e in registry.all(EntityKind.REPAIR_BOT)
        if e.props.following and e.props.coolant_reserve > 0
    )

    # Heat and smoke
    diffuse(grid, HazardField.HEAT, HEAT_DIFFUSION_DIVISOR)
    diffuse(grid, HazardField.SMOKE, SMOKE_DIFFUSION_DIVISOR)
    sources = set(relay_sources)
    decay(grid, HazardField.HEAT, HEAT_DECAY_RATE, sources)
    decay(grid, HazardField.SMOKE, SMOKE_DECAY_RATE, sources)

    for pos in relay_sources:
        inject(grid, pos, HazardField.HEAT, HEAT_SOURCE_RATE, HEAT_SOURCE_CAP)
        inject(grid, pos, HazardField.SMOKE, SMOKE_SOURCE_RATE, SMOKE_SOURCE_CAP)
    for pos in breaches:
        if grid.is_walkable(*pos):
            inject(grid, pos, HazardField.HEAT, BREACH_HEAT_RATE, HEAT_SOURCE_CAP)

    for cx, cy in coolers:
        for x, y in [(cx, cy), *grid.neighbors4(cx, cy)]:
            value = grid.hazard(x, y, HazardField.HEAT)
            if value > 0:
                grid.set_hazard(x, y, HazardField.HEAT, max(0, value - REPAIR_BOT_COOLING))

    # Pressure: only ever lost here
    for pos in breaches:
        drain_pressure(grid, influence_zone(grid, pos, BREACH_INFLUENCE_RADIUS), PRESSURE_BREACH_DRAIN)
    for pos in airlocks:
        drain_pressure(grid, influence_zone(grid, pos, BREACH_INFLUENCE_RADIUS), AIRLOCK_PRESSURE_DRAIN)

    if turn % DIRT_ACCUMULATION_INTERVAL == 0:
        accumulate_dirt(grid, DIRT_ACCUMULATION_AMOUNT)

    if turn % DETERIORATION_INTERVAL == 0 and relay_sources:
        for pos in relay_sources:
            grid.set_hazard(*pos, HazardField.HEAT, grid.hazard(*pos, HazardField.HEAT) + DETERIORATION_HEAT_BOOST)
        events.append((LogType.ALERT, "Station systems deteriorating: overheating relays surge."))

    events.extend(apply_damage(state, registry, turn))
    return events
