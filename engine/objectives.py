"""Objective phase machine, evacuation bookkeeping, and terminal conditions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from config import (
    CLEAN_ROOMS_REQUIRED,
    EVACUATION_QUOTA,
    MIN_CORRECT_DEDUCTIONS,
    RELAYS_REQUIRED,
    ROOM_CLEANLINESS_GOAL,
)
from engine.deduction import correct_count
from models.entities import EntityKind
from models.mystery import PHASE_ORDER, ObjectivePhase

if TYPE_CHECKING:
    from engine.entities import EntityRegistry
    from models.game_state import GameState, Room


def cleaned_rooms(state: GameState) -> int:
    return len(state.mystery.rooms_cleaned)


def record_cleaning(state: GameState, registry: EntityRegistry, x: int, y: int) -> Room | None:
    """Credit the room at (x, y) once a scrub leaves it at the cleanliness goal.

    Only rooms the bot has worked on count, so a room that was tidy on arrival
    still needs one pass.

    Returns:
        The newly credited room, or None.
    """
    grid = registry.grid
    room = grid.room_at(x, y)
    if room is None or room.id in state.mystery.rooms_cleaned:
        return None
    if grid.room_cleanliness(room) < ROOM_CLEANLINESS_GOAL:
        return None
    state.mystery.rooms_cleaned.append(room.id)
    logger.info(f"Room {room.id} cleaned on turn {state.turn}")
    return room


def relays_needed(registry: EntityRegistry) -> int:
    return min(RELAYS_REQUIRED, len(registry.all(EntityKind.RELAY)))


def relays_activated(registry: EntityRegistry) -> int:
    return sum(1 for r in registry.all(EntityKind.RELAY) if r.props.activated)


def evacuation_needed(registry: EntityRegistry) -> int:
    return min(EVACUATION_QUOTA, len(registry.all(EntityKind.CREW_NPC)))


def milestone_met(state: GameState, registry: EntityRegistry) -> bool:
    """Whether the current phase's exit milestone has been reached."""
    mystery = state.mystery
    phase = mystery.objective_phase
    if phase == ObjectivePhase.CLEAN:
        return cleaned_rooms(state) >= min(CLEAN_ROOMS_REQUIRED, len(state.rooms))
    if phase == ObjectivePhase.INVESTIGATE:
        return (
            len(mystery.journal) >= mystery.evidence_threshold
            and correct_count(mystery) >= MIN_CORRECT_DEDUCTIONS
        )
    if phase == ObjectivePhase.RECOVER:
        return relays_activated(registry) >= relays_needed(registry)
    return False


def sync_evacuation(state: GameState, registry: EntityRegistry) -> None:
    """Copy one-way crew transitions into the mystery's evacuation lists."""
    evacuation = state.mystery.evacuation
    for crew in registry.all(EntityKind.CREW_NPC):
        if crew.props.evacuated and crew.id not in evacuation.crew_evacuated:
            evacuation.crew_evacuated.append(crew.id)
        elif crew.props.dead and crew.id not in evacuation.crew_dead:
            evacuation.crew_dead.append(crew.id)


def advance_phase(state: GameState, registry: EntityRegistry) -> ObjectivePhase | None:
    """Step the objective phase forward at most once.

    Entering EVACUATE powers every escape pod and unlocks the data core.

    Returns:
        The newly entered phase, or None if the phase did not change.
    """
    sync_evacuation(state, registry)
    mystery = state.mystery
    if mystery.objective_phase == ObjectivePhase.EVACUATE or not milestone_met(state, registry):
        return None

    new_phase = PHASE_ORDER[PHASE_ORDER.index(mystery.objective_phase) + 1]
    mystery.objective_phase = new_phase
    logger.info(f"Objective phase advanced to {new_phase.value} on turn {state.turn + 1}")

    if new_phase == ObjectivePhase.EVACUATE:
        for pod in registry.all(EntityKind.ESCAPE_POD):
            registry.mutate_prop(pod.id, "powered", True)
        for core in registry.all(EntityKind.DATA_CORE):
            registry.mutate_prop(core.id, "locked", False)
    return new_phase


def victory_reached(state: GameState, registry: EntityRegistry) -> bool:
    """Core objective met: data core transmitted or enough crew evacuated.

    Only meaningful once the run has reached the evacuate phase.
    """
    if state.mystery.objective_phase != ObjectivePhase.EVACUATE:
        return False
    if any(c.props.transmitted for c in registry.all(EntityKind.DATA_CORE)):
        return True
    needed = evacuation_needed(registry)
    return needed > 0 and len(state.mystery.evacuation.crew_evacuated) >= needed


def finish(state: GameState, registry: EntityRegistry, victory: bool) -> None:
    """Mark the run over. Crew left aboard are recorded as lost."""
    sync_evacuation(state, registry)
    evacuation = state.mystery.evacuation
    for crew in registry.all(EntityKind.CREW_NPC):
        if crew.props.evacuated:
            continue
        if not crew.props.dead:
            registry.mutate_prop(crew.id, "dead", True)
            registry.mutate_prop(crew.id, "following", False)
        if crew.id not in evacuation.crew_dead:
            evacuation.crew_dead.append(crew.id)
    state.game_over = True
    state.victory = victory
    logger.info(
        f"Run over on turn {state.turn}: {'victory' if victory else 'defeat'} "
        f"({len(evacuation.crew_evacuated)} evacuated, {len(evacuation.crew_dead)} lost)"
    )
