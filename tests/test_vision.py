"""Tests for fog of war, memory snapshots, sensor radar, and entity visibility."""

from config import PLAYER_MAX_HP
from engine.grid import TileGrid, create_tiles
from engine.vision import (
    compute_visibility,
    entity_visible,
    reveal_room,
    tile_view,
)
from models.entities import (
    CrewItemProps,
    Entity,
    MedKitProps,
    PlayerBotProps,
    Position,
    SensorType,
)
from models.game_state import GameState, HazardField, Room, TileType
from models.mystery import Mystery
from models.player import Attachment, AttachmentSlot, Player


def _make_state(width: int = 10, height: int = 10, player_pos: tuple[int, int] = (2, 5)) -> GameState:
    """Helper to create a state with one open room inside a wall border."""
    room = Room(id="room_0", name="Arrival Bay", x=1, y=1, width=width - 2, height=height - 2)
    grid = TileGrid(create_tiles(width, height), [room])
    for x, y in grid.room_positions(room):
        grid.set_type(x, y, TileType.FLOOR)
    player = Player(
        entity=Entity(id="player", pos=Position(x=player_pos[0], y=player_pos[1]), props=PlayerBotProps()),
        hp=PLAYER_MAX_HP,
        max_hp=PLAYER_MAX_HP,
    )
    return GameState(
        seed=1,
        width=width,
        height=height,
        tiles=grid.tiles,
        rooms=[room],
        player=player,
        mystery=Mystery(archetype="coolant_cascade"),
    )


def _grid(state: GameState) -> TileGrid:
    return TileGrid(state.tiles, state.rooms)


def _equip(state: GameState, sensor: SensorType) -> None:
    state.player.sensors = [sensor]
    state.player.attachments[AttachmentSlot.SENSOR] = Attachment(
        slot=AttachmentSlot.SENSOR, name=sensor.value, sensor_type=sensor,
    )


class TestComputeVisibility:
    """Tests for compute_visibility()."""

    def test_origin_visible_and_explored(self):
        state = _make_state()
        visible = compute_visibility(state)
        assert (2, 5) in visible
        tile = state.tiles[5][2]
        assert tile.visible and tile.explored
        assert tile.memory is not None

    def test_open_room_in_view(self):
        state = _make_state()
        compute_visibility(state)
        assert state.tiles[5][6].visible
        assert state.tiles[5][0].visible  # The border wall itself is seen

    def test_wall_blocks_sight(self):
        state = _make_state()
        grid = _grid(state)
        for y in range(1, 9):
            grid.set_type(4, y, TileType.WALL)
        compute_visibility(state)
        assert state.tiles[5][4].visible
        assert not state.tiles[5][6].visible
        assert not state.tiles[5][6].explored

    def test_dense_smoke_blocks_sight(self):
        state = _make_state()
        _grid(state).set_hazard(4, 5, HazardField.SMOKE, 60)
        compute_visibility(state)
        assert state.tiles[5][4].visible
        assert not state.tiles[5][6].visible

    def test_light_smoke_does_not_block(self):
        state = _make_state()
        _grid(state).set_hazard(4, 5, HazardField.SMOKE, 20)
        compute_visibility(state)
        assert state.tiles[5][6].visible

    def test_radius_limits_sight(self):
        state = _make_state(20, 20, player_pos=(2, 2))
        compute_visibility(state)
        assert not state.tiles[15][15].visible

    def test_explored_is_never_lost(self):
        state = _make_state(20, 20, player_pos=(2, 2))
        compute_visibility(state)
        seen = {(x, y) for y, row in enumerate(state.tiles) for x, tile in enumerate(row) if tile.explored}
        state.player.entity.pos = Position(x=17, y=17)
        compute_visibility(state)
        for x, y in seen:
            assert state.tiles[y][x].explored
        assert not state.tiles[2][2].visible

    def test_memory_is_frozen_out_of_sight(self):
        state = _make_state(20, 20, player_pos=(2, 2))
        compute_visibility(state)
        state.player.entity.pos = Position(x=17, y=17)
        compute_visibility(state)
        _grid(state).set_hazard(3, 3, HazardField.HEAT, 40)
        view = tile_view(state.tiles[3][3], 3, 3)
        assert view.explored and not view.visible
        assert view.hazards.heat == 0

    def test_visible_tile_reports_live_values(self):
        state = _make_state()
        compute_visibility(state)
        _grid(state).set_hazard(3, 5, HazardField.HEAT, 40)
        assert tile_view(state.tiles[5][3], 3, 5).hazards.heat == 40


class TestSensorRadar:
    def test_thermal_charts_hot_tiles_through_walls(self):
        state = _make_state(20, 20, player_pos=(2, 2))
        grid = _grid(state)
        grid.set_type(8, 2, TileType.WALL)
        grid.set_hazard(14, 2, HazardField.HEAT, 40)
        _equip(state, SensorType.THERMAL)
        compute_visibility(state)
        tile = state.tiles[2][14]
        assert tile.explored
        assert not tile.visible
        assert tile.memory.heat == 40

    def test_atmospheric_charts_low_pressure(self):
        state = _make_state(20, 20, player_pos=(2, 2))
        _grid(state).set_hazard(11, 2, HazardField.PRESSURE, 20)
        _equip(state, SensorType.ATMOSPHERIC)
        compute_visibility(state)
        assert state.tiles[2][11].explored
        assert state.tiles[2][11].memory.pressure == 20

    def test_without_sensor_nothing_extra(self):
        state = _make_state(20, 20, player_pos=(2, 2))
        _grid(state).set_hazard(14, 2, HazardField.HEAT, 40)
        compute_visibility(state)
        assert not state.tiles[2][14].explored


class TestTileView:
    def test_unexplored_reports_nothing(self):
        state = _make_state()
        view = tile_view(state.tiles[5][5], 5, 5)
        assert view.type is None
        assert not view.explored
        assert view.hazards.heat == 0
        assert view.hazards.pressure == 0

    def test_explored_reports_type(self):
        state = _make_state()
        compute_visibility(state)
        assert tile_view(state.tiles[5][5], 5, 5).type == TileType.FLOOR


class TestEntityVisible:
    """Tests for entity_visible()."""

    def _entity(self, props, pos=(5, 5)) -> Entity:
        return Entity(id="thing_0", pos=Position(x=pos[0], y=pos[1]), props=props)

    def test_on_visible_tile(self):
        state = _make_state()
        compute_visibility(state)
        assert entity_visible(state, self._entity(MedKitProps()))

    def test_hidden_entity_not_shown(self):
        state = _make_state()
        compute_visibility(state)
        assert not entity_visible(state, self._entity(CrewItemProps(hidden=True)))

    def test_revealed_entity_shown_anywhere(self):
        state = _make_state(20, 20, player_pos=(2, 2))
        compute_visibility(state)
        assert entity_visible(state, self._entity(MedKitProps(revealed=True), pos=(17, 17)))

    def test_smoke_hides_unless_adjacent(self):
        state = _make_state()
        _grid(state).set_hazard(5, 5, HazardField.SMOKE, 60)
        compute_visibility(state)
        medkit = self._entity(MedKitProps())
        assert not entity_visible(state, medkit)
        state.player.entity.pos = Position(x=4, y=5)
        compute_visibility(state)
        assert entity_visible(state, medkit)


class TestRevealRoom:
    def test_reveals_room_and_walls(self):
        state = _make_state()
        room = state.rooms[0]
        newly = reveal_room(state, room)
        assert newly == 100
        assert all(tile.explored for row in state.tiles for tile in row)
        assert reveal_room(state, room) == 0
