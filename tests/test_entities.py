"""Tests for the entity registry, prop mutation rules, and per-turn reactions."""

import pytest
from pydantic import ValidationError

from config import PATROL_STUN_COOLDOWN, PATROL_STUN_TURNS, PLAYER_MAX_HP
from engine.entities import (
    EXHAUSTED,
    EntityRegistry,
    is_exhausted,
    room_ring,
    run_reactions,
    step_toward,
)
from engine.errors import InvariantViolation, OutOfBounds
from engine.grid import TileGrid, create_tiles
from engine.vision import compute_visibility
from models.entities import (
    BreachProps,
    CrewItemProps,
    CrewNPCProps,
    DataCoreProps,
    DroneProps,
    Entity,
    EntityKind,
    EscapePodProps,
    MedKitProps,
    PatrolDroneProps,
    PlayerBotProps,
    Position,
    RelayProps,
    RepairBotProps,
    RepairCradleProps,
)
from models.game_state import GameState, LogType, Room, TileType
from models.mystery import Mystery
from models.player import Player


def _make_state(width: int = 10, height: int = 10, player_pos: tuple[int, int] = (2, 2)) -> GameState:
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


def _entity(entity_id: str, pos: tuple[int, int], props) -> Entity:
    return Entity(id=entity_id, pos=Position(x=pos[0], y=pos[1]), props=props)


class TestRegistry:
    """Tests for EntityRegistry lookups and membership."""

    def test_add_and_get(self):
        registry = EntityRegistry(_make_state())
        registry.add(_entity("med_kit_0", (3, 3), MedKitProps()))
        assert registry.get("med_kit_0").kind == EntityKind.MED_KIT
        assert registry.get("missing") is None

    def test_duplicate_id_rejected(self):
        registry = EntityRegistry(_make_state())
        registry.add(_entity("med_kit_0", (3, 3), MedKitProps()))
        with pytest.raises(InvariantViolation):
            registry.add(_entity("med_kit_0", (4, 4), MedKitProps()))

    def test_player_bot_not_stored(self):
        registry = EntityRegistry(_make_state())
        with pytest.raises(InvariantViolation):
            registry.add(_entity("player_2", (3, 3), PlayerBotProps()))

    def test_out_of_bounds_rejected(self):
        registry = EntityRegistry(_make_state())
        with pytest.raises(OutOfBounds):
            registry.add(_entity("med_kit_0", (30, 3), MedKitProps()))

    def test_all_sorted_and_filtered(self):
        registry = EntityRegistry(_make_state())
        registry.add(_entity("relay_1", (3, 3), RelayProps()))
        registry.add(_entity("med_kit_0", (4, 4), MedKitProps()))
        registry.add(_entity("relay_0", (5, 5), RelayProps()))
        assert [e.id for e in registry.all()] == ["med_kit_0", "relay_0", "relay_1"]
        assert [e.id for e in registry.all(EntityKind.RELAY)] == ["relay_0", "relay_1"]

    def test_query_only_returns_visible(self):
        state = _make_state()
        registry = EntityRegistry(state)
        registry.add(_entity("med_kit_0", (3, 3), MedKitProps()))
        registry.add(_entity("crew_item_0", (4, 4), CrewItemProps(hidden=True)))
        compute_visibility(state)
        assert [e.id for e in registry.query()] == ["med_kit_0"]
        assert registry.query(lambda e: e.kind == EntityKind.RELAY) == []

    def test_at(self):
        registry = EntityRegistry(_make_state())
        registry.add(_entity("med_kit_0", (3, 3), MedKitProps()))
        assert [e.id for e in registry.at(3, 3)] == ["med_kit_0"]
        assert registry.at(4, 4) == []

    def test_remove(self):
        registry = EntityRegistry(_make_state())
        registry.add(_entity("med_kit_0", (3, 3), MedKitProps()))
        registry.remove("med_kit_0")
        assert registry.get("med_kit_0") is None
        with pytest.raises(KeyError):
            registry.remove("med_kit_0")

    def test_move_out_of_bounds(self):
        registry = EntityRegistry(_make_state())
        registry.add(_entity("med_kit_0", (3, 3), MedKitProps()))
        with pytest.raises(OutOfBounds):
            registry.move("med_kit_0", -1, 3)


class TestMutateProp:
    """Tests for EntityRegistry.mutate_prop()."""

    def test_sets_declared_prop(self):
        registry = EntityRegistry(_make_state())
        registry.add(_entity("relay_0", (3, 3), RelayProps()))
        registry.mutate_prop("relay_0", "activated", True)
        assert registry.get("relay_0").props.activated

    def test_unknown_prop_rejected(self):
        registry = EntityRegistry(_make_state())
        registry.add(_entity("relay_0", (3, 3), RelayProps()))
        with pytest.raises(InvariantViolation):
            registry.mutate_prop("relay_0", "sealed", True)

    def test_kind_cannot_change(self):
        registry = EntityRegistry(_make_state())
        registry.add(_entity("relay_0", (3, 3), RelayProps()))
        with pytest.raises(InvariantViolation):
            registry.mutate_prop("relay_0", "kind", EntityKind.BREACH)

    def test_wrong_type_rejected(self):
        registry = EntityRegistry(_make_state())
        registry.add(_entity("escape_pod_0", (3, 3), EscapePodProps()))
        with pytest.raises(ValidationError):
            registry.mutate_prop("escape_pod_0", "boarded", "many")

    def test_unknown_entity(self):
        registry = EntityRegistry(_make_state())
        with pytest.raises(KeyError):
            registry.mutate_prop("ghost", "used", True)

    @pytest.mark.parametrize("props,key", [
        (CrewNPCProps(evacuated=True), "evacuated"),
        (CrewNPCProps(dead=True), "dead"),
        (DataCoreProps(transmitted=True), "transmitted"),
        (BreachProps(sealed=True), "sealed"),
    ])
    def test_one_way_props_cannot_revert(self, props, key):
        registry = EntityRegistry(_make_state())
        registry.add(_entity("thing_0", (3, 3), props))
        with pytest.raises(InvariantViolation):
            registry.mutate_prop("thing_0", key, False)
        assert getattr(registry.get("thing_0").props, key) is True


class TestExhaustion:
    def test_every_kind_has_a_predicate(self):
        assert set(EXHAUSTED) == set(EntityKind)

    def test_relay(self):
        relay = _entity("relay_0", (3, 3), RelayProps())
        assert not is_exhausted(relay)
        relay.props.activated = True
        assert is_exhausted(relay)

    def test_pod_full(self):
        pod = _entity("escape_pod_0", (3, 3), EscapePodProps(capacity=2, boarded=2))
        assert is_exhausted(pod)

    def test_cradle_recharging(self):
        assert is_exhausted(_entity("repair_cradle_0", (3, 3), RepairCradleProps(cooldown=3)))


class TestMovement:
    def test_step_toward_never_enters_goal(self):
        registry = EntityRegistry(_make_state())
        crew = registry.add(_entity("crew_npc_0", (5, 2), CrewNPCProps()))
        assert step_toward(registry, crew, (3, 2))
        assert crew.pos.as_tuple() == (4, 2)
        assert not step_toward(registry, crew, (3, 2))
        assert crew.pos.as_tuple() == (4, 2)

    def test_room_ring_is_a_loop(self):
        state = _make_state(6, 6)  # 4x4 room at (1, 1)
        ring = room_ring(EntityRegistry(state), "room_0")
        assert len(ring) == 12
        assert ring[0] == (1, 1)
        assert len(set(ring)) == 12

    def test_room_ring_unknown_room(self):
        assert room_ring(EntityRegistry(_make_state()), "nowhere") == []


class TestReactions:
    """Tests for run_reactions()."""

    def test_following_crew_closes_in(self):
        state = _make_state()
        registry = EntityRegistry(state)
        registry.add(_entity("crew_npc_0", (6, 2), CrewNPCProps(following=True)))
        run_reactions(state, registry)
        assert registry.get("crew_npc_0").pos.as_tuple() == (5, 2)

    def test_idle_crew_stays_put(self):
        state = _make_state()
        registry = EntityRegistry(state)
        registry.add(_entity("crew_npc_0", (6, 2), CrewNPCProps()))
        run_reactions(state, registry)
        assert registry.get("crew_npc_0").pos.as_tuple() == (6, 2)

    def test_crew_boards_powered_pod(self):
        state = _make_state()
        registry = EntityRegistry(state)
        registry.add(_entity("escape_pod_0", (6, 6), EscapePodProps(powered=True)))
        registry.add(_entity("crew_npc_0", (6, 5), CrewNPCProps(name="Ilse Okafor", following=True)))
        events = run_reactions(state, registry)
        crew = registry.get("crew_npc_0")
        assert crew.props.evacuated
        assert not crew.props.following
        assert registry.get("escape_pod_0").props.boarded == 1
        assert (LogType.MILESTONE, "Ilse Okafor boards the escape pod.") in events

    def test_unpowered_pod_is_ignored(self):
        state = _make_state()
        registry = EntityRegistry(state)
        registry.add(_entity("escape_pod_0", (6, 6), EscapePodProps()))
        registry.add(_entity("crew_npc_0", (6, 5), CrewNPCProps(following=True)))
        run_reactions(state, registry)
        assert not registry.get("crew_npc_0").props.evacuated

    def test_repair_bot_spends_coolant_and_stands_down(self):
        state = _make_state()
        registry = EntityRegistry(state)
        registry.add(_entity("repair_bot_0", (3, 2), RepairBotProps(following=True, follow_turns_left=2)))
        run_reactions(state, registry)
        bot = registry.get("repair_bot_0")
        assert bot.props.following
        assert bot.props.coolant_reserve == 58
        run_reactions(state, registry)
        assert not bot.props.following
        assert bot.props.follow_turns_left == 0

    def test_patrol_drone_stuns_adjacent_player(self):
        state = _make_state()
        registry = EntityRegistry(state)
        route = [Position(x=3, y=3), Position(x=3, y=2)]
        registry.add(_entity("patrol_drone_0", (3, 3), PatrolDroneProps(route=route)))
        events = run_reactions(state, registry)
        drone = registry.get("patrol_drone_0")
        assert drone.pos.as_tuple() == (3, 2)
        assert state.player.stun_turns == PATROL_STUN_TURNS
        assert drone.props.stun_cooldown == PATROL_STUN_COOLDOWN
        assert any(log_type == LogType.ALERT for log_type, _ in events)

    def test_patrol_cooldown_prevents_restun(self):
        state = _make_state()
        registry = EntityRegistry(state)
        registry.add(_entity("patrol_drone_0", (3, 3), PatrolDroneProps(stun_cooldown=3)))
        run_reactions(state, registry)
        assert state.player.stun_turns == 0
        assert registry.get("patrol_drone_0").props.stun_cooldown == 2

    def test_disabled_patrol_is_inert(self):
        state = _make_state()
        registry = EntityRegistry(state)
        registry.add(_entity("patrol_drone_0", (3, 3), PatrolDroneProps(disabled=True, hostile=False)))
        run_reactions(state, registry)
        assert state.player.stun_turns == 0

    def test_drone_circles_its_room(self):
        state = _make_state(6, 6)
        registry = EntityRegistry(state)
        registry.add(_entity("drone_0", (1, 1), DroneProps(room_id="room_0")))
        run_reactions(state, registry)
        assert registry.get("drone_0").pos.as_tuple() == (2, 1)
        assert registry.get("drone_0").props.step == 1

    def test_cradle_recharges(self):
        state = _make_state()
        registry = EntityRegistry(state)
        registry.add(_entity("repair_cradle_0", (5, 5), RepairCradleProps(cooldown=2)))
        run_reactions(state, registry)
        assert registry.get("repair_cradle_0").props.cooldown == 1
