"""Fog of war: line-of-sight sweep, memory snapshots, and sensor radar."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from config import (
    HEAT_VISIBLE_THRESHOLD,
    PRESSURE_VISIBLE_THRESHOLD,
    SMOKE_LOS_THRESHOLD,
    VISION_RADIUS,
    VISION_RADIUS_ATMOSPHERIC,
    VISION_RADIUS_THERMAL,
)
from engine.grid import TileGrid, bresenham, is_adjacent
from models.entities import SensorType
from models.game_state import HazardReading
from models.intents import TileView

if TYPE_CHECKING:
    from models.entities import Entity
    from models.game_state import GameState, Room, Tile


def reading(tile: Tile) -> HazardReading:
    """Snapshot a tile's live hazard values."""
    return HazardReading(heat=tile.heat, smoke=tile.smoke, pressure=tile.pressure, dirt=tile.dirt)


def _remember(tile: Tile) -> None:
    tile.explored = True
    tile.memory = reading(tile)


def ray_clear(grid: TileGrid, origin: tuple[int, int], target: tuple[int, int]) -> bool:
    """Check a sight ray: walls, locked doors and dense smoke block it.

    Only the tiles strictly between the endpoints are tested, so the first
    wall or smoke-filled tile along a line is itself seen.
    """
    for x, y in bresenham(origin, target)[1:-1]:
        if grid.is_opaque(x, y):
            return False
        if grid.tiles[y][x].smoke > SMOKE_LOS_THRESHOLD:
            return False
    return True


def _within(origin: tuple[int, int], radius: int, grid: TileGrid) -> Iterable[tuple[int, int]]:
    ox, oy = origin
    r2 = radius * radius
    for y in range(max(0, oy - radius), min(grid.height, oy + radius + 1)):
        for x in range(max(0, ox - radius), min(grid.width, ox + radius + 1)):
            if (x - ox) ** 2 + (y - oy) ** 2 <= r2:
                yield x, y


def compute_visibility(state: GameState) -> set[tuple[int, int]]:
    """Recompute the visible set from the player's position.

    Clears every ``visible`` flag, sweeps rays out to VISION_RADIUS, and marks
    each tile reached as visible and explored with a fresh memory snapshot.
    Tiles that fall out of sight keep ``explored`` and their old memory.
    An active thermal or atmospheric sensor additionally charts hot or
    depressurised tiles further out, through walls.

    Args:
        state: The working game state.

    Returns:
        The set of (x, y) positions now visible.
    """
    grid = TileGrid(state.tiles, state.rooms)
    for row in grid.tiles:
        for tile in row:
            tile.visible = False

    origin = state.player.entity.pos.as_tuple()
    visible: set[tuple[int, int]] = set()
    for x, y in _within(origin, VISION_RADIUS, grid):
        if (x, y) == origin or ray_clear(grid, origin, (x, y)):
            tile = grid.tiles[y][x]
            tile.visible = True
            _remember(tile)
            visible.add((x, y))

    sensor = state.player.active_sensor
    if sensor == SensorType.THERMAL:
        for x, y in _within(origin, VISION_RADIUS_THERMAL, grid):
            tile = grid.tiles[y][x]
            if tile.heat >= HEAT_VISIBLE_THRESHOLD:
                _remember(tile)
    elif sensor == SensorType.ATMOSPHERIC:
        for x, y in _within(origin, VISION_RADIUS_ATMOSPHERIC, grid):
            tile = grid.tiles[y][x]
            if tile.walkable and tile.pressure < PRESSURE_VISIBLE_THRESHOLD:
                _remember(tile)
    return visible


def reveal_area(state: GameState, positions: Iterable[tuple[int, int]]) -> int:
    """Mark tiles explored (map download). Returns how many were newly explored."""
    grid = TileGrid(state.tiles, state.rooms)
    newly = 0
    for x, y in positions:
        if not grid.in_bounds(x, y):
            continue
        tile = grid.tiles[y][x]
        if not tile.explored:
            newly += 1
        _remember(tile)
    return newly


def reveal_room(state: GameState, room: Room) -> int:
    """Reveal a room and its surrounding walls."""
    grid = TileGrid(state.tiles, state.rooms)
    positions = [
        (x, y)
        for y in range(room.y - 1, room.y + room.height + 1)
        for x in range(room.x - 1, room.x + room.width + 1)
    ]
    return reveal_area(state, [p for p in positions if grid.in_bounds(*p)])


def entity_visible(state: GameState, entity: Entity) -> bool:
    """Whether the bot can currently see an entity.

    Revealed entities are always shown. Otherwise the entity must not be
    hidden, its tile must be visible, and dense smoke on that tile hides it
    unless the bot is right next to it.
    """
    if entity.props.revealed:
        return True
    if entity.props.hidden:
        return False
    x, y = entity.pos.as_tuple()
    grid = TileGrid(state.tiles, state.rooms)
    if not grid.in_bounds(x, y):
        return False
    tile = grid.tiles[y][x]
    if not tile.visible:
        return False
    if tile.smoke > SMOKE_LOS_THRESHOLD:
        return is_adjacent(state.player.entity.pos.as_tuple(), (x, y))
    return True


def tile_view(tile: Tile, x: int, y: int) -> TileView:
    """The external view of a tile under fog of war.

    Unexplored tiles report no type and zero hazards, remembered tiles report
    their frozen memory, and visible tiles report live values.
    """
    if not tile.explored:
        return TileView(x=x, y=y, type=None, visible=False, explored=False,
                        hazards=HazardReading(pressure=0))
    if tile.visible:
        hazards = reading(tile)
    else:
        hazards = tile.memory or HazardReading(pressure=0)
    return TileView(x=x, y=y, type=tile.type, visible=tile.visible, explored=True, hazards=hazards)
