"""Seeded station generation: rooms, corridors, entities, and the mystery."""

from __future__ import annotations

import random
from collections import deque

from loguru import logger

from config import (
    BURIED_ITEM_DIRT,
    CREW_NPC_HP,
    ESCAPE_POD_CAPACITY,
    EVIDENCE_THRESHOLD_RATIO,
    HEAT_SOURCE_CAP,
    INITIAL_DIRT_MAX,
    MAP_HEIGHT,
    MAP_WIDTH,
    MAX_ROOMS,
    MIN_EVIDENCE_THRESHOLD,
    MIN_ROOMS,
    PLAYER_MAX_HP,
    ROOM_MAX_SIZE,
    ROOM_MIN_SIZE,
    ROOM_PLACEMENT_ATTEMPTS,
)
from engine.entities import EntityRegistry, room_ring
from engine.grid import TileGrid, create_tiles, distance
from engine.logbook import add_log
from engine.narrative import (
    ARCHETYPES,
    CREW_ITEMS,
    FIRST_NAMES,
    LAST_NAMES,
    ROOM_NAMES,
    ROOM_ZONES,
    fill,
    select_archetype,
)
from engine.vision import compute_visibility
from models.entities import (
    AirlockProps,
    BreachProps,
    ClosedDoorProps,
    ConsoleProps,
    CrewItemProps,
    CrewNPCProps,
    DataCoreProps,
    DroneProps,
    Entity,
    EntityProps,
    EscapePodProps,
    EvidenceTraceProps,
    FuseBoxProps,
    LogTerminalProps,
    MedKitProps,
    PatrolDroneProps,
    PlayerBotProps,
    Position,
    PowerCellProps,
    PressureValveProps,
    RelayProps,
    RepairBotProps,
    RepairCradleProps,
    SecurityTerminalProps,
    SensorPickupProps,
    SensorType,
    ServiceBotProps,
    ToolPickupProps,
    UtilityPickupProps,
)
from models.game_state import GameState, HazardField, LogType, Room, TileType
from models.mystery import AnswerOption, Deduction, Mystery, MysteryChoice
from models.player import Player

TRACE_TEXT = {
    SensorType.THERMAL: "Scorch pattern radiating outward from the relay bank.",
    SensorType.ATMOSPHERIC: "Pressure gradient pointing to a manual seal override.",
    SensorType.CLEANLINESS: "Boot prints in the grime leading toward the cargo hold.",
}

LOG_SOURCES = ["maintenance", "operations", "security", "medical", "command"]


# ── Layout ──────────────────────────────────────────────────


def _overlaps(room: tuple[int, int, int, int], placed: list[tuple[int, int, int, int]]) -> bool:
    x, y, w, h = room
    for px, py, pw, ph in placed:
        # One tile of wall must separate rooms
        if x - 1 <= px + pw and px - 1 <= x + w and y - 1 <= py + ph and py - 1 <= y + h:
            return True
    return False


def place_rooms(rng: random.Random, width: int, height: int) -> list[Room]:
    """Scatter non-overlapping rectangular rooms across the map.

    Raises:
        ValueError: If the map is too small to hold at least two rooms.
    """
    if width < ROOM_MIN_SIZE + 2 or height < ROOM_MIN_SIZE + 2:
        raise ValueError(f"Map {width}x{height} is too small for a station")

    target = rng.randint(MIN_ROOMS, MAX_ROOMS)
    placed: list[tuple[int, int, int, int]] = []
    for _ in range(ROOM_PLACEMENT_ATTEMPTS):
        if len(placed) >= target:
            break
        w = rng.randint(ROOM_MIN_SIZE, min(ROOM_MAX_SIZE, width - 2))
        h = rng.randint(ROOM_MIN_SIZE, min(ROOM_MAX_SIZE, height - 2))
        x = rng.randint(1, width - w - 1)
        y = rng.randint(1, height - h - 1)
        if not _overlaps((x, y, w, h), placed):
            placed.append((x, y, w, h))

    if len(placed) < 2:
        raise ValueError(f"Could only place {len(placed)} room(s) on a {width}x{height} map")

    names = ["Arrival Bay"] + rng.sample([n for n in ROOM_NAMES if n != "Arrival Bay"], len(placed) - 1)
    return [
        Room(id=f"room_{i}", name=name, zone=ROOM_ZONES.get(name, "Infrastructure"), x=x, y=y, width=w, height=h)
        for i, ((x, y, w, h), name) in enumerate(zip(placed, names))
    ]


def carve_corridor(grid: TileGrid, start: tuple[int, int], end: tuple[int, int], horizontal_first: bool) -> None:
    """Dig an L-shaped corridor between two points through solid wall."""
    (x0, y0), (x1, y1) = start, end
    corner = (x1, y0) if horizontal_first else (x0, y1)
    for (ax, ay), (bx, by) in ((start, corner), (corner, end)):
        for x in range(min(ax, bx), max(ax, bx) + 1):
            for y in range(min(ay, by), max(ay, by) + 1):
                if grid.get(x, y).type == TileType.WALL:
                    grid.set_type(x, y, TileType.CORRIDOR)


def build_layout(rng: random.Random, width: int, height: int) -> tuple[TileGrid, list[Room]]:
    """Carve rooms and the corridors joining them in a chain."""
    tiles = create_tiles(width, height)
    rooms = place_rooms(rng, width, height)
    grid = TileGrid(tiles, rooms)

    for room in rooms:
        for x, y in grid.room_positions(room):
            grid.set_type(x, y, TileType.FLOOR)

    for a, b in zip(rooms, rooms[1:]):
        carve_corridor(grid, a.center, b.center, rng.random() < 0.5)

    # Doorways where a corridor meets a room
    for y in range(height):
        for x in range(width):
            if grid.tiles[y][x].type != TileType.CORRIDOR:
                continue
            if any(grid.tiles[ny][nx].type == TileType.FLOOR for nx, ny in grid.neighbors4(x, y)):
                grid.set_type(x, y, TileType.DOOR)

    for x, y in grid.walkable_positions():
        grid.set_hazard(x, y, HazardField.DIRT, rng.randint(0, INITIAL_DIRT_MAX))
    return grid, rooms


# ── Population ──────────────────────────────────────────────


class _Placer:
    """Hands out free floor tiles and sequential entity ids."""

    def __init__(self, rng: random.Random, registry: EntityRegistry, reserved: set[tuple[int, int]]) -> None:
        self.rng = rng
        self.registry = registry
        self.used = set(reserved)
        self.counts: dict[str, int] = {}

    def free_tile(self, room: Room) -> tuple[int, int]:
        grid = self.registry.grid
        candidates = [p for p in grid.room_positions(room) if grid.is_walkable(*p) and p not in self.used]
        if not candidates:
            candidates = [p for p in grid.walkable_positions() if p not in self.used]
        pos = self.rng.choice(candidates)
        self.used.add(pos)
        return pos

    def spawn(self, props: EntityProps, room: Room | None = None, pos: tuple[int, int] | None = None) -> Entity:
        if pos is None:
            pos = self.free_tile(room)
        prefix = props.kind.value
        index = self.counts.get(prefix, 0)
        self.counts[prefix] = index + 1
        entity = Entity(id=f"{prefix}_{index}", pos=Position(x=pos[0], y=pos[1]), props=props)
        return self.registry.add(entity)


def _crew_names(rng: random.Random, count: int) -> list[str]:
    firsts = rng.sample(FIRST_NAMES, count)
    lasts = rng.sample(LAST_NAMES, count)
    return [f"{f} {l}" for f, l in zip(firsts, lasts)]


def _door_tiles(grid: TileGrid, room: Room) -> list[tuple[int, int]]:
    return sorted(
        (x, y)
        for y in range(room.y - 1, room.y + room.height + 1)
        for x in range(room.x - 1, room.x + room.width + 1)
        if grid.in_bounds(x, y) and grid.tiles[y][x].type == TileType.DOOR
    )


def _flood(grid: TileGrid, start: tuple[int, int], blocked: set[tuple[int, int]]) -> set[tuple[int, int]]:
    seen = {start}
    queue = deque([start])
    while queue:
        x, y = queue.popleft()
        for nxt in grid.neighbors4(x, y):
            if nxt in seen or nxt in blocked or not grid.is_walkable(*nxt):
                continue
            seen.add(nxt)
            queue.append(nxt)
    return seen


def choose_vault(
    grid: TileGrid, start: tuple[int, int], candidates: list[Room],
) -> tuple[Room | None, list[tuple[int, int]]]:
    """Pick the most remote room that can be sealed off on its own.

    Sealing locks every doorway on the room's edge. A room qualifies only if
    it is cut off with those doorways shut while every other room is still
    reachable from the start.

    Returns:
        (room, doorways), or (None, []) if no room can be sealed cleanly.
    """
    by_distance = sorted(candidates, key=lambda r: (distance(start, r.center), r.id), reverse=True)
    for room in by_distance:
        doors = _door_tiles(grid, room)
        if not doors:
            continue
        seen = _flood(grid, start, set(doors))
        if room.center in seen:
            continue
        if all(other.center in seen for other in grid.rooms if other.id != room.id):
            return room, doors
    return None, []


def generate_station(
    seed: int,
    width: int = MAP_WIDTH,
    height: int = MAP_HEIGHT,
    archetype: str | None = None,
) -> GameState:
    """Build a complete, ready-to-play station from a seed.

    Args:
        seed: RNG seed; the same seed and options always give the same station.
        width: Map width in tiles.
        height: Map height in tiles.
        archetype: Incident archetype id, or None to derive one from the seed.

    Returns:
        A GameState on turn 0 with visibility computed.

    Raises:
        ValueError: For an unknown archetype or an unusably small map.
    """
    archetype_id = archetype or select_archetype(seed)
    if archetype_id not in ARCHETYPES:
        raise ValueError(f"Unknown archetype '{archetype_id}'")
    story = ARCHETYPES[archetype_id]

    rng = random.Random(seed)
    grid, rooms = build_layout(rng, width, height)
    start_room = rooms[0]
    start = start_room.center

    player = Player(
        entity=Entity(id="player", pos=Position(x=start[0], y=start[1]), props=PlayerBotProps()),
        hp=PLAYER_MAX_HP,
        max_hp=PLAYER_MAX_HP,
    )
    state = GameState(
        seed=seed,
        width=width,
        height=height,
        tiles=grid.tiles,
        rooms=rooms,
        player=player,
        mystery=Mystery(archetype=archetype_id),
    )
    registry = EntityRegistry(state)

    # The data core gets a sealed room of its own when one can be spared
    others = rooms[1:]
    vault, vault_doors = choose_vault(grid, start, others) if len(others) > 1 else (None, [])
    reserved = {start, *vault_doors}
    if vault is not None:
        others = [r for r in others if r.id != vault.id]
        reserved.update(grid.room_positions(vault))
    placer = _Placer(rng, registry, reserved)
    by_distance = sorted(others, key=lambda r: (distance(start, r.center), r.id))

    def room(i: int) -> Room:
        return others[i % len(others)]

    names = _crew_names(rng, 3)
    roles = dict(zip(story.roles, names))
    beats = [fill(beat, roles) for beat in story.beats]

    # Start room: support equipment
    placer.spawn(SensorPickupProps(sensor_type=SensorType.CLEANLINESS), start_room)
    placer.spawn(ServiceBotProps(), start_room)
    placer.spawn(RepairCradleProps(), start_room)
    for _ in range(2):
        placer.spawn(EscapePodProps(capacity=ESCAPE_POD_CAPACITY), start_room)
    placer.spawn(ToolPickupProps(), start_room)

    # Power grid
    overheating = story.primary_hazard in ("heat", "smoke")
    for i in range(3):
        relay = placer.spawn(
            RelayProps(overheating=overheating and i < 2, locked=i == 2, group="grid_a" if i == 2 else None),
            room(i),
        )
        if relay.props.overheating:
            grid.set_hazard(relay.pos.x, relay.pos.y, HazardField.HEAT, HEAT_SOURCE_CAP // 2)
    placer.spawn(FuseBoxProps(group="grid_a"), room(3))
    placer.spawn(PowerCellProps(), room(4))

    # Sensors the story leans on
    for i, sensor in enumerate((SensorType.THERMAL, SensorType.ATMOSPHERIC)):
        placer.spawn(SensorPickupProps(sensor_type=sensor), room(i + 1))

    # Atmosphere
    breach_room = room(2)
    placer.spawn(BreachProps(), breach_room)
    if story.primary_hazard == "pressure":
        placer.spawn(BreachProps(), room(5))
    placer.spawn(PressureValveProps(room_id=breach_room.id), breach_room)
    placer.spawn(AirlockProps(), room(6))

    # Evidence
    for i, beat in enumerate(beats):
        placer.spawn(
            LogTerminalProps(
                title=f"Log {i + 1:02d}",
                text=beat,
                source=LOG_SOURCES[i % len(LOG_SOURCES)],
                evidence_id=f"ev_log_{i}",
                choice_id="choice_report" if i == len(beats) - 1 else None,
            ),
            start_room if i == 0 else room(i),
        )
    for i in range(2):
        label, template = CREW_ITEMS[(seed + i) % len(CREW_ITEMS)]
        item = placer.spawn(
            CrewItemProps(
                name=label,
                text=template.replace("{line}", beats[2 + i]),
                evidence_id=f"ev_item_{i}",
                hidden=i == 0,
            ),
            room(i + 2),
        )
        if item.props.hidden:
            grid.set_hazard(item.pos.x, item.pos.y, HazardField.DIRT, BURIED_ITEM_DIRT)
    placer.spawn(
        ConsoleProps(name="Operations console", text=f"Incident summary: {story.story_hook}.", evidence_id="ev_console_0"),
        room(4),
    )
    bias = story.sensor_bias
    placer.spawn(
        EvidenceTraceProps(text=TRACE_TEXT[bias], evidence_id="ev_trace_0", sensor_required=bias, hidden=True),
        room(3),
    )

    # Crew and helpers
    for i, name in enumerate(names):
        placer.spawn(CrewNPCProps(name=name, hp=CREW_NPC_HP), by_distance[-1 - (i % len(by_distance))])
    for i in range(2):
        placer.spawn(MedKitProps(), room(i * 3))
    placer.spawn(RepairBotProps(), room(1))
    drone_room = room(0)
    placer.spawn(DroneProps(room_id=drone_room.id), drone_room)
    placer.spawn(UtilityPickupProps(), room(1))

    patrol_room = room(4)
    patrol = placer.spawn(PatrolDroneProps(), patrol_room)
    route = room_ring(registry, patrol_room.id)
    if route:
        registry.mutate_prop(patrol.id, "route", [Position(x=x, y=y) for x, y in route])
        if patrol.pos.as_tuple() in route:
            registry.mutate_prop(patrol.id, "route_index", route.index(patrol.pos.as_tuple()))

    placer.spawn(
        SecurityTerminalProps(reveal_rooms=[r.id for r in by_distance[-3:]]),
        room(5),
    )

    # The data core sits in the vault behind clearance doors, or in the most remote room
    if vault is not None:
        placer.spawn(DataCoreProps(), pos=rng.choice(list(grid.room_positions(vault))))
        for dx, dy in vault_doors:
            grid.set_type(dx, dy, TileType.LOCKED_DOOR)
            placer.spawn(ClosedDoorProps(locked=True, clearance=1), pos=(dx, dy))
    else:
        placer.spawn(DataCoreProps(), by_distance[-1])

    # Mystery
    evidence_ids = [f"ev_log_{i}" for i in range(len(beats))] + ["ev_item_0", "ev_item_1", "ev_console_0", "ev_trace_0"]
    prerequisites = [
        ["ev_log_0", "ev_log_1"],
        ["ev_log_2", "ev_item_0"],
        ["ev_console_0", "ev_trace_0"],
    ]
    mystery = state.mystery
    for i, (template, prereq) in enumerate(zip(story.deductions, prerequisites)):
        mystery.deductions.append(Deduction(
            id=f"deduction_{template.category.value}",
            category=template.category,
            question=template.question,
            options=[AnswerOption(key=k, label=v) for k, v in template.options.items()],
            prerequisite_evidence_ids=prereq,
            correct_answer=template.correct,
            reward=template.reward,
            hint=template.hint,
        ))
    mystery.choices.append(MysteryChoice(
        id="choice_report",
        prompt=story.choice_prompt,
        options=[AnswerOption(key=k, label=v) for k, v in story.choice_options.items()],
        trigger_entity_id=f"log_terminal_{len(beats) - 1}",
    ))
    mystery.evidence_threshold = max(MIN_EVIDENCE_THRESHOLD, int(len(evidence_ids) * EVIDENCE_THRESHOLD_RATIO))

    compute_visibility(state)
    add_log(state, f"Incident on record: {story.name}. {story.story_hook}.", LogType.NARRATIVE)
    add_log(state, "Objective: clean up the arrival area and get the station's sensors back online.", LogType.MILESTONE)

    grid.check_invariants()
    logger.info(
        f"Generated station seed={seed} archetype={archetype_id} "
        f"rooms={len(rooms)} entities={len(state.entities)}"
    )
    return state
