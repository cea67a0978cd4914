"""Turn orchestration: intent validation, the per-turn pipeline, snapshots, and persistence."""

from __future__ import annotations

import json
import os
from enum import Enum
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from config import BURIED_REVEAL_DIRT, SAVE_VERSION, SCAN_RADIUS, SERVICE_BOT_REVIVE_FRACTION
from engine.deduction import answer, apply_reward, choose, find_deduction, open_choices, summarize, unlocked
from engine.display import PANELS, Display
from engine.entities import EntityRegistry, is_exhausted, run_reactions
from engine.errors import AlreadyAnswered, IllegalIntent, OutOfBounds
from engine.grid import TileGrid, distance
from engine.hazards import clean_area, tick_hazards
from engine.interactions import find_target, interact
from engine.logbook import add_log
from engine.narrative import ARCHETYPES, describe_ending
from engine.objectives import advance_phase, finish, record_cleaning, victory_reached
from engine.vision import compute_visibility, entity_visible, tile_view
from models.entities import EntityKind, Position
from models.game_state import GameState, LogType
from models.intents import (
    DIRECTION_DELTAS,
    DeductionView,
    EntityView,
    Intent,
    IntentResult,
    IntentType,
    Observation,
    PlayerView,
)
from models.player import Attachment, AttachmentSlot

# Intents refused (but still costing the turn) while the bot is stunned
STUN_BLOCKED = frozenset({IntentType.MOVE, IntentType.INTERACT, IntentType.CLEAN, IntentType.SCAN})

PHASE_MESSAGES = {
    "investigate": "Objective: the station is clean enough to work. Investigate what happened here.",
    "recover": "Objective: you know enough. Restore power by rerouting the relays.",
    "evacuate": "Objective: escape pods are live and the data core is unlocked. Get the crew out or transmit the archive.",
}


class SchedulerState(str, Enum):
    AWAITING_INPUT = "awaiting_input"
    RESOLVING = "resolving"
    SNAPSHOT_READY = "snapshot_ready"


def _rejected(state: GameState, intent: Intent, error: str) -> IntentResult:
    add_log(state, f"Rejected: {error}", LogType.REJECTED)
    logger.warning(f"Turn {state.turn}: rejected {intent.type.value} intent: {error}")
    return IntentResult(
        accepted=False,
        turn_consumed=False,
        intent_type=intent.type,
        description=error,
        turn=state.turn,
        error=error,
    )


# ── Intent application ──────────────────────────────────────


def _move(state: GameState, registry: EntityRegistry, intent: Intent) -> str:
    if intent.direction is not None:
        dx, dy = DIRECTION_DELTAS[intent.direction]
    elif intent.delta is not None:
        dx, dy = intent.delta
    else:
        raise IllegalIntent("Move needs a direction")
    if (dx, dy) == (0, 0) or max(abs(dx), abs(dy)) > 1:
        raise IllegalIntent(f"Cannot move by ({dx}, {dy})")

    pos = state.player.entity.pos
    x, y = pos.x + dx, pos.y + dy
    tile = registry.grid.get(x, y)
    if not tile.walkable:
        raise IllegalIntent(f"({x}, {y}) is blocked by a {tile.type.value}")
    state.player.entity.pos = Position(x=x, y=y)
    room = registry.grid.room_at(x, y)
    return f"Moved to ({x}, {y})" + (f" in {room.name}." if room else ".")


def _toggle_sensor(state: GameState, intent: Intent) -> str:
    player = state.player
    if not player.sensors:
        raise IllegalIntent("No sensors installed")
    if intent.sensor is not None:
        if intent.sensor not in player.sensors:
            raise IllegalIntent(f"The {intent.sensor.value} sensor is not installed")
        sensor = intent.sensor
    else:
        current = player.active_sensor
        index = player.sensors.index(current) + 1 if current in player.sensors else 0
        sensor = player.sensors[index % len(player.sensors)]
    player.attachments[AttachmentSlot.SENSOR] = Attachment(
        slot=AttachmentSlot.SENSOR, name=sensor.value, sensor_type=sensor,
    )
    return f"Sensor switched to {sensor.value}."


def _clean(state: GameState, registry: EntityRegistry) -> str:
    x, y = state.player.entity.pos.as_tuple()
    removed = clean_area(registry.grid, x, y)
    if removed == 0:
        raise IllegalIntent("Nothing to clean here")
    surfaced = []
    for item in registry.all(EntityKind.CREW_ITEM):
        if not item.props.hidden or distance((x, y), item.pos.as_tuple()) > 1:
            continue
        if registry.grid.get(item.pos.x, item.pos.y).dirt < BURIED_REVEAL_DIRT:
            registry.mutate_prop(item.id, "hidden", False)
            surfaced.append(item.props.name or "something")
    description = f"Scrubbed away {removed} units of grime."
    if surfaced:
        description += f" Uncovered: {', '.join(surfaced)}."
    room = record_cleaning(state, registry, x, y)
    if room is not None:
        description += f" {room.name} is clean."
    return description


def _scan(state: GameState, registry: EntityRegistry) -> str:
    sensor = state.player.active_sensor
    if sensor is None:
        raise IllegalIntent("Equip a sensor before scanning")
    origin = state.player.entity.pos.as_tuple()
    found = 0
    for trace in registry.all(EntityKind.EVIDENCE_TRACE):
        props = trace.props
        if not props.hidden or props.sensor_required not in (None, sensor):
            continue
        if distance(origin, trace.pos.as_tuple()) > SCAN_RADIUS:
            continue
        registry.mutate_prop(trace.id, "hidden", False)
        registry.mutate_prop(trace.id, "revealed", True)
        found += 1
    if not found:
        return f"{sensor.value.capitalize()} sweep finds nothing unusual."
    return f"{sensor.value.capitalize()} sweep highlights {found} trace(s)."


def _answer(state: GameState, registry: EntityRegistry, intent: Intent) -> str:
    if not intent.deduction_id or intent.answer is None:
        raise IllegalIntent("Answer needs a deduction id and an answer")
    result = answer(state.mystery, intent.deduction_id, intent.answer)
    deduction = find_deduction(state.mystery, intent.deduction_id)
    if not result.correct:
        return f"Deduction filed: {deduction.question} Your conclusion does not fit the evidence."
    description = f"Deduction confirmed: {deduction.question}"
    reward = apply_reward(state, registry, deduction)
    if reward:
        description += f" {reward}"
    return description


def _choose(state: GameState, intent: Intent) -> str:
    if not intent.choice_id or intent.answer is None:
        raise IllegalIntent("Choose needs a choice id and an option")
    choice = choose(state.mystery, intent.choice_id, intent.answer)
    label = next(o.label for o in choice.options if o.key == choice.chosen)
    return f"Decision recorded: {label}."


def apply_intent(state: GameState, registry: EntityRegistry, intent: Intent) -> str:
    """Apply an intent's direct effect. Raises IllegalIntent if it cannot apply."""
    if intent.type == IntentType.MOVE:
        return _move(state, registry, intent)
    elif intent.type == IntentType.INTERACT:
        target = find_target(state, registry, intent.target_id)
        return interact(state, registry, target)
    elif intent.type == IntentType.WAIT:
        return "You hold position."
    elif intent.type == IntentType.TOGGLE_SENSOR:
        return _toggle_sensor(state, intent)
    elif intent.type == IntentType.CLEAN:
        return _clean(state, registry)
    elif intent.type == IntentType.SCAN:
        return _scan(state, registry)
    elif intent.type == IntentType.ANSWER:
        return _answer(state, registry, intent)
    elif intent.type == IntentType.CHOOSE:
        return _choose(state, intent)
    raise IllegalIntent(f"Unknown intent type '{intent.type}'")


# ── Terminal conditions ─────────────────────────────────────


def _failover(state: GameState, registry: EntityRegistry) -> bool:
    """Transfer control to an active service bot. Returns True if revived."""
    for bot in registry.all(EntityKind.SERVICE_BOT):
        if not bot.props.active:
            continue
        player = state.player
        player.hp = max(1, int(player.max_hp * SERVICE_BOT_REVIVE_FRACTION))
        player.stun_turns = 0
        player.entity.pos = bot.pos
        registry.remove(bot.id)
        compute_visibility(state)
        add_log(state, "Chassis failure! Control transfers to the service bot.", LogType.ALERT)
        return True
    return False


def _check_terminal(state: GameState, registry: EntityRegistry) -> None:
    if state.player.hp <= 0 and not _failover(state, registry):
        finish(state, registry, victory=False)
    elif victory_reached(state, registry):
        finish(state, registry, victory=True)
    else:
        return
    evacuation = state.mystery.evacuation
    add_log(
        state,
        describe_ending(
            ARCHETYPES[state.mystery.archetype],
            state.victory,
            len(evacuation.crew_evacuated),
            len(evacuation.crew_dead),
        ),
        LogType.MILESTONE,
    )


# ── The turn ────────────────────────────────────────────────


def resolve_turn(state: GameState, intent: Intent) -> tuple[GameState, IntentResult]:
    """Resolve one intent against a state. Pure: the input is never modified.

    Args:
        state: The current snapshot.
        intent: The player's intent for this turn.

    Returns:
        (next_state, result). A rejected intent yields a copy of the state with
        only an explanatory log entry added and the turn counter unchanged.
    """
    working = state.model_copy(deep=True)
    if working.game_over:
        return working, _rejected(working, intent, "The run is over")

    registry = EntityRegistry(working)
    player = working.player
    refused = player.stun_turns > 0 and intent.type in STUN_BLOCKED
    try:
        if refused:
            description = f"Systems stunned: {intent.type.value} refused ({player.stun_turns} turn(s) left)."
        else:
            description = apply_intent(working, registry, intent)
    except AlreadyAnswered as exc:
        prior = exc.result
        verdict = "correct" if prior.correct else "incorrect"
        return working, _rejected(working, intent, f"{exc} (answered '{prior.given_answer}', {verdict})")
    except (IllegalIntent, OutOfBounds) as exc:
        return working, _rejected(working, intent, str(exc))

    add_log(working, description, LogType.WARNING if refused else LogType.INFO)

    if player.stun_turns > 0:
        player.stun_turns -= 1

    for log_type, text in tick_hazards(working, registry):
        add_log(working, text, log_type)
    compute_visibility(working)
    for log_type, text in run_reactions(working, registry):
        add_log(working, text, log_type)
    new_phase = advance_phase(working, registry)
    if new_phase is not None:
        add_log(working, PHASE_MESSAGES[new_phase.value], LogType.MILESTONE)

    working.turn += 1
    _check_terminal(working, registry)

    logger.debug(f"Turn {working.turn}: {intent.type.value} -> {description}")
    # A stun refusal is still a rejection, but the turn has passed
    return working, IntentResult(
        accepted=not refused,
        turn_consumed=True,
        intent_type=intent.type,
        description=description,
        turn=working.turn,
        error=description if refused else None,
    )


# ── Observation ─────────────────────────────────────────────


def build_observation(state: GameState) -> Observation:
    """Fog-filtered view of a snapshot for displays and bots."""
    player = state.player
    tiles = [
        tile_view(tile, x, y)
        for y, row in enumerate(state.tiles)
        for x, tile in enumerate(row)
    ]
    entities = [
        EntityView(
            id=e.id,
            kind=e.kind,
            pos=e.pos,
            props=e.props.model_dump(mode="json"),
            exhausted=is_exhausted(e),
        )
        for eid, e in sorted(state.entities.items())
        if entity_visible(state, e)
    ]
    deductions = [
        DeductionView(
            id=d.id,
            category=d.category.value,
            question=d.question,
            options=[o.model_dump() for o in d.options],
            hint=d.hint,
        )
        for d in unlocked(state.mystery)
    ]
    return Observation(
        turn=state.turn,
        width=state.width,
        height=state.height,
        player=PlayerView(
            pos=player.entity.pos,
            hp=player.hp,
            max_hp=player.max_hp,
            stun_turns=player.stun_turns,
            sensors=player.sensors,
            active_sensor=player.active_sensor,
            attachments={slot.value: a.name for slot, a in player.attachments.items()},
            power_cells=player.power_cells,
        ),
        tiles=tiles,
        entities=entities,
        logs=state.logs[-20:],
        objective_phase=state.mystery.objective_phase,
        rooms_cleaned=list(state.mystery.rooms_cleaned),
        unlocked_deductions=deductions,
        open_choices=open_choices(state.mystery),
        journal_size=len(state.mystery.journal),
        investigation=summarize(state.mystery),
        game_over=state.game_over,
        victory=state.victory,
    )


# ── Scheduler ───────────────────────────────────────────────


class TurnScheduler:
    """Owns the authoritative state and publishes one snapshot per turn.

    Displays registered with the scheduler are handed each new snapshot and
    every new log line; they must treat what they receive as read-only.
    """

    def __init__(self, state: GameState, displays: list[Display] | None = None) -> None:
        TileGrid(state.tiles, state.rooms).check_invariants()
        self._snapshot = state
        self.status = SchedulerState.SNAPSHOT_READY
        self.last_result: IntentResult | None = None
        self.displays: list[Display] = list(displays or [])

    def get_state(self) -> GameState:
        """The latest published snapshot. Never mutated after publication."""
        return self._snapshot

    def add_display(self, display: Display) -> None:
        self.displays.append(display)
        self._render(display, self._snapshot)

    def remove_display(self, display: Display) -> None:
        if display in self.displays:
            self.displays.remove(display)
            display.destroy()

    def submit(self, intent: Intent) -> IntentResult:
        """Resolve an intent and return the result (the new snapshot via get_state)."""
        self.status = SchedulerState.AWAITING_INPUT
        previous = self._snapshot
        self.status = SchedulerState.RESOLVING
        next_state, result = resolve_turn(previous, intent)
        self._snapshot = next_state
        self.last_result = result
        self.status = SchedulerState.SNAPSHOT_READY

        new_logs = next_state.logs[len(previous.logs):]
        for display in self.displays:
            for entry in new_logs:
                display.add_log(entry.text, entry.type)
            self._render(display, next_state)
        return result

    def advance_turn(self, intent: Intent) -> GameState:
        """Resolve an intent and return the newly published snapshot."""
        self.submit(intent)
        return self._snapshot

    def observe(self) -> Observation:
        return build_observation(self._snapshot)

    def close(self) -> None:
        for display in self.displays:
            display.destroy()
        self.displays = []

    @staticmethod
    def _render(display: Display, state: GameState) -> None:
        display.render(state)
        for panel in PANELS:
            display.render_ui(state, panel)


# ── Persistence ─────────────────────────────────────────────


def save_game(state: GameState, path: str) -> None:
    """Persist a snapshot to a JSON file.

    Writes to a temporary file first, then renames for atomicity.

    Args:
        state: The snapshot to save.
        path: File path to write to.
    """
    tmp_path = path + ".tmp"
    data = {"version": SAVE_VERSION, "state": state.model_dump(mode="json")}
    with open(tmp_path, "w") as f:
        json.dump(data, f)
    os.replace(tmp_path, path)
    logger.info(f"Saved turn {state.turn} to {path}")


def load_game(path: str) -> GameState | None:
    """Load a snapshot from a JSON file.

    Args:
        path: File path to read from.

    Returns:
        The loaded GameState, or None if the file is missing, corrupt, or
        written by an incompatible version.
    """
    if not Path(path).exists():
        return None
    try:
        with open(path) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning(f"Could not read save file {path}: {exc}")
        return None
    if not isinstance(data, dict) or data.get("version") != SAVE_VERSION:
        logger.warning(f"Ignoring save file {path}: unsupported version {data.get('version') if isinstance(data, dict) else None}")
        return None
    try:
        state = GameState.model_validate(data["state"])
    except (KeyError, ValidationError) as exc:
        logger.warning(f"Ignoring corrupt save file {path}: {exc}")
        return None
    logger.info(f"Loaded turn {state.turn} from {path}")
    return state
