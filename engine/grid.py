"""Tile grid access, hazard writes, distance, and line-of-sight logic."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Iterator

from config import DIRT_MAX, HEAT_MAX, PRESSURE_MAX, SMOKE_MAX
from engine.errors import InvariantViolation, OutOfBounds
from models.game_state import WALKABLE_TYPES, HazardField, Tile, TileType

if TYPE_CHECKING:
    from models.game_state import Room

HAZARD_LIMITS: dict[HazardField, int] = {
    HazardField.HEAT: HEAT_MAX,
    HazardField.SMOKE: SMOKE_MAX,
    HazardField.PRESSURE: PRESSURE_MAX,
    HazardField.DIRT: DIRT_MAX,
}

# 4-directional: N, S, E, W
ADJACENT_DELTAS = ((0, -1), (0, 1), (1, 0), (-1, 0))

OPAQUE_TYPES = frozenset({TileType.WALL, TileType.LOCKED_DOOR})


def create_tiles(width: int, height: int) -> list[list[Tile]]:
    """Initialize a solid grid of wall tiles.

    Args:
        width: Number of columns.
        height: Number of rows.

    Returns:
        A 2D list indexed as tiles[y][x].
    """
    return [[Tile() for _ in range(width)] for _ in range(height)]


def distance(pos1: tuple[int, int], pos2: tuple[int, int]) -> int:
    """Chebyshev distance in tiles between two positions."""
    return max(abs(pos1[0] - pos2[0]), abs(pos1[1] - pos2[1]))


def manhattan(pos1: tuple[int, int], pos2: tuple[int, int]) -> int:
    return abs(pos1[0] - pos2[0]) + abs(pos1[1] - pos2[1])


def is_adjacent(pos1: tuple[int, int], pos2: tuple[int, int]) -> bool:
    """Check if two positions touch (including diagonals and the same tile)."""
    return distance(pos1, pos2) <= 1


def bresenham(pos1: tuple[int, int], pos2: tuple[int, int]) -> list[tuple[int, int]]:
    """All tiles on the line from pos1 to pos2, both ends included."""
    x0, y0 = pos1
    x1, y1 = pos2

    dx = abs(x1 - x0)
    dy = abs(y1 - y0)
    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    err = dx - dy

    points = []
    while True:
        points.append((x0, y0))
        if x0 == x1 and y0 == y1:
            break
        e2 = 2 * err
        if e2 > -dy:
            err -= dy
            x0 += sx
        if e2 < dx:
            err += dx
            y0 += sy
    return points


class TileGrid:
    """Owns the 2D tile array of a game state.

    The grid wraps the state's ``tiles`` list in place; it never copies it.
    Only the hazard propagator and the station generator write hazard fields.
    """

    def __init__(self, tiles: list[list[Tile]], rooms: list[Room] | None = None) -> None:
        self.tiles = tiles
        self.height = len(tiles)
        self.width = len(tiles[0]) if tiles else 0
        self.rooms = rooms or []

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def get(self, x: int, y: int) -> Tile:
        """Return the tile at (x, y).

        Raises:
            OutOfBounds: If the coordinate lies outside the grid.
        """
        if not self.in_bounds(x, y):
            raise OutOfBounds(x, y)
        return self.tiles[y][x]

    def is_walkable(self, x: int, y: int) -> bool:
        return self.in_bounds(x, y) and self.tiles[y][x].walkable

    def is_opaque(self, x: int, y: int) -> bool:
        return not self.in_bounds(x, y) or self.tiles[y][x].type in OPAQUE_TYPES

    def set_type(self, x: int, y: int, tile_type: TileType) -> None:
        """Change a tile's type, keeping walkability consistent with it."""
        tile = self.get(x, y)
        tile.type = tile_type
        tile.walkable = tile_type in WALKABLE_TYPES

    def set_hazard(self, x: int, y: int, field: HazardField, value: int) -> int:
        """Write a hazard value, clamped to the field's legal maximum.

        Args:
            x: Column.
            y: Row.
            field: Which hazard scalar to write.
            value: The new value.

        Returns:
            The value actually stored.

        Raises:
            OutOfBounds: If the coordinate lies outside the grid.
            InvariantViolation: If the value is negative or not finite.
        """
        tile = self.get(x, y)
        if isinstance(value, float) and not math.isfinite(value):
            raise InvariantViolation(f"Non-finite {field.value} {value} at ({x}, {y})")
        if value < 0:
            raise InvariantViolation(f"Negative {field.value} {value} at ({x}, {y})")
        stored = min(int(value), HAZARD_LIMITS[field])
        setattr(tile, field.value, stored)
        return stored

    def hazard(self, x: int, y: int, field: HazardField) -> int:
        return getattr(self.get(x, y), field.value)

    def neighbors4(self, x: int, y: int) -> Iterator[tuple[int, int]]:
        """In-bounds orthogonal neighbours of (x, y)."""
        for dx, dy in ADJACENT_DELTAS:
            nx, ny = x + dx, y + dy
            if self.in_bounds(nx, ny):
                yield nx, ny

    def walkable_positions(self) -> Iterator[tuple[int, int]]:
        for y in range(self.height):
            for x in range(self.width):
                if self.tiles[y][x].walkable:
                    yield x, y

    def room_at(self, x: int, y: int) -> Room | None:
        """The room containing (x, y), or None in corridors."""
        for room in self.rooms:
            if room.contains(x, y):
                return room
        return None

    def room_positions(self, room: Room) -> Iterator[tuple[int, int]]:
        for y in range(room.y, room.y + room.height):
            for x in range(room.x, room.x + room.width):
                if self.in_bounds(x, y):
                    yield x, y

    def room_cleanliness(self, room: Room) -> int:
        """Percent cleanliness of a room: 100 minus the average dirt of its floor."""
        dirt = [self.tiles[y][x].dirt for x, y in self.room_positions(room) if self.tiles[y][x].walkable]
        if not dirt:
            return 100
        return round(100 - sum(dirt) / len(dirt))

    def line_of_sight(self, pos1: tuple[int, int], pos2: tuple[int, int]) -> bool:
        """Check if pos1 can see pos2 (blocked by walls and locked doors).

        The endpoints themselves never block, so a wall tile can be seen.
        """
        for point in bresenham(pos1, pos2)[1:-1]:
            if self.is_opaque(*point):
                return False
        return True

    def check_invariants(self) -> None:
        """Raise InvariantViolation if any tile breaks a grid invariant."""
        for y, row in enumerate(self.tiles):
            if len(row) != self.width:
                raise InvariantViolation(f"Row {y} has {len(row)} tiles, expected {self.width}")
            for x, tile in enumerate(row):
                if tile.walkable and tile.type not in WALKABLE_TYPES:
                    raise InvariantViolation(f"Tile ({x}, {y}) of type {tile.type.value} is walkable")
                for field, limit in HAZARD_LIMITS.items():
                    value = getattr(tile, field.value)
                    if not 0 <= value <= limit:
                        raise InvariantViolation(
                            f"{field.value} {value} at ({x}, {y}) outside [0, {limit}]"
                        )
