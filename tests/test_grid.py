"""Tests for tile grid access, hazard writes, distance, and line-of-sight logic."""

import pytest

from config import HEAT_MAX
from engine.errors import InvariantViolation, OutOfBounds
from engine.grid import (
    TileGrid,
    bresenham,
    create_tiles,
    distance,
    is_adjacent,
    manhattan,
)
from models.game_state import HazardField, Room, TileType


def _make_grid(width: int = 10, height: int = 10) -> TileGrid:
    """Helper to create a grid with one open room inside a wall border."""
    room = Room(id="room_0", name="Arrival Bay", x=1, y=1, width=width - 2, height=height - 2)
    grid = TileGrid(create_tiles(width, height), [room])
    for x, y in grid.room_positions(room):
        grid.set_type(x, y, TileType.FLOOR)
    return grid


class TestCreateTiles:
    """Tests for create_tiles()."""

    def test_dimensions(self):
        tiles = create_tiles(5, 3)
        assert len(tiles) == 3      # height (rows)
        assert len(tiles[0]) == 5   # width (cols)

    def test_tiles_start_as_walls(self):
        for row in create_tiles(3, 3):
            for tile in row:
                assert tile.type == TileType.WALL
                assert not tile.walkable
                assert not tile.explored

    def test_rows_are_independent(self):
        tiles = create_tiles(3, 3)
        tiles[0][0].heat = 10
        assert tiles[1][0].heat == 0


class TestDistance:
    """Tests for distance(), manhattan() and is_adjacent()."""

    def test_same_position(self):
        assert distance((0, 0), (0, 0)) == 0

    def test_diagonal_is_chebyshev(self):
        assert distance((0, 0), (3, 3)) == 3
        assert distance((0, 0), (4, 2)) == 4

    def test_manhattan(self):
        assert manhattan((0, 0), (3, 3)) == 6

    def test_adjacent_includes_diagonals_and_self(self):
        assert is_adjacent((5, 5), (6, 6))
        assert is_adjacent((5, 5), (5, 5))
        assert not is_adjacent((5, 5), (7, 5))


class TestBresenham:
    def test_includes_both_ends(self):
        points = bresenham((0, 0), (4, 0))
        assert points[0] == (0, 0)
        assert points[-1] == (4, 0)
        assert len(points) == 5

    def test_diagonal(self):
        assert bresenham((0, 0), (3, 3)) == [(0, 0), (1, 1), (2, 2), (3, 3)]


class TestTileAccess:
    """Tests for TileGrid.get / in_bounds / set_type."""

    def test_get_out_of_bounds_raises(self):
        grid = _make_grid()
        with pytest.raises(OutOfBounds):
            grid.get(10, 0)
        with pytest.raises(OutOfBounds):
            grid.get(-1, 3)

    def test_out_of_bounds_is_a_value_error(self):
        grid = _make_grid()
        with pytest.raises(ValueError):
            grid.get(0, 99)

    def test_set_type_keeps_walkability_consistent(self):
        grid = _make_grid()
        grid.set_type(3, 3, TileType.LOCKED_DOOR)
        assert not grid.is_walkable(3, 3)
        grid.set_type(3, 3, TileType.DOOR)
        assert grid.is_walkable(3, 3)

    def test_border_is_wall(self):
        grid = _make_grid()
        assert not grid.is_walkable(0, 0)
        assert grid.is_walkable(1, 1)

    def test_neighbors4_stays_in_bounds(self):
        grid = _make_grid()
        assert sorted(grid.neighbors4(0, 0)) == [(0, 1), (1, 0)]


class TestSetHazard:
    """Tests for TileGrid.set_hazard()."""

    def test_stores_value(self):
        grid = _make_grid()
        assert grid.set_hazard(2, 2, HazardField.SMOKE, 40) == 40
        assert grid.get(2, 2).smoke == 40

    def test_clamps_to_field_max(self):
        grid = _make_grid()
        assert grid.set_hazard(2, 2, HazardField.HEAT, HEAT_MAX + 500) == HEAT_MAX
        assert grid.set_hazard(2, 2, HazardField.DIRT, 250) == 100

    def test_negative_raises(self):
        grid = _make_grid()
        with pytest.raises(InvariantViolation):
            grid.set_hazard(2, 2, HazardField.PRESSURE, -1)

    def test_non_finite_raises(self):
        grid = _make_grid()
        with pytest.raises(InvariantViolation):
            grid.set_hazard(2, 2, HazardField.HEAT, float("nan"))

    def test_out_of_bounds_raises(self):
        grid = _make_grid()
        with pytest.raises(OutOfBounds):
            grid.set_hazard(50, 50, HazardField.HEAT, 1)


class TestRooms:
    def test_room_at(self):
        grid = _make_grid()
        assert grid.room_at(3, 3).id == "room_0"
        assert grid.room_at(0, 0) is None

    def test_cleanliness_from_average_dirt(self):
        grid = _make_grid(4, 4)  # 2x2 room
        room = grid.rooms[0]
        assert grid.room_cleanliness(room) == 100
        for x, y in grid.room_positions(room):
            grid.set_hazard(x, y, HazardField.DIRT, 50)
        assert grid.room_cleanliness(room) == 50


class TestLineOfSight:
    """Tests for TileGrid.line_of_sight()."""

    def test_clear_line(self):
        grid = _make_grid()
        assert grid.line_of_sight((1, 1), (8, 1))

    def test_blocked_by_wall(self):
        grid = _make_grid()
        grid.set_type(4, 1, TileType.WALL)
        assert not grid.line_of_sight((1, 1), (8, 1))

    def test_blocked_by_locked_door(self):
        grid = _make_grid()
        grid.set_type(4, 1, TileType.LOCKED_DOOR)
        assert not grid.line_of_sight((1, 1), (8, 1))

    def test_wall_endpoint_is_seen(self):
        grid = _make_grid()
        assert grid.line_of_sight((1, 1), (0, 1))


class TestCheckInvariants:
    def test_valid_grid_passes(self):
        _make_grid().check_invariants()

    def test_walkable_wall_fails(self):
        grid = _make_grid()
        grid.get(0, 0).walkable = True
        with pytest.raises(InvariantViolation):
            grid.check_invariants()

    def test_out_of_range_hazard_fails(self):
        grid = _make_grid()
        grid.get(2, 2).smoke = 101
        with pytest.raises(InvariantViolation):
            grid.check_invariants()
