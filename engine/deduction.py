"""Evidence journal, gated deductions, mystery choices, and answer rewards."""

from __future__ import annotations

from typing import TYPE_CHECKING

from engine.errors import AlreadyAnswered, IllegalIntent
from engine.grid import distance
from engine.narrative import ARCHETYPE_THREADS, ARCHETYPES, COMMON_THREADS
from engine.vision import reveal_room
from models.entities import EntityKind
from models.mystery import (
    AnswerResult,
    Confidence,
    DeductionCategory,
    EvidenceThread,
    InvestigationSummary,
    JournalEntry,
    RewardType,
)

if TYPE_CHECKING:
    from engine.entities import EntityRegistry
    from models.game_state import GameState
    from models.mystery import Deduction, Mystery, MysteryChoice


def journal_ids(mystery: Mystery) -> set[str]:
    return {entry.id for entry in mystery.journal}


def record_evidence(
    mystery: Mystery,
    evidence_id: str,
    text: str,
    room_id: str | None = None,
    entity_id: str | None = None,
    turn: int = 0,
) -> JournalEntry | None:
    """Append an evidence entry to the journal.

    Entries are never edited; recording an id that is already present is a
    no-op.

    Returns:
        The new entry, or None if the evidence was already on file.
    """
    if evidence_id in journal_ids(mystery):
        return None
    entry = JournalEntry(id=evidence_id, text=text, room_id=room_id, entity_id=entity_id, turn=turn)
    mystery.journal.append(entry)
    return entry


def is_unlocked(mystery: Mystery, deduction: Deduction) -> bool:
    return set(deduction.prerequisite_evidence_ids) <= journal_ids(mystery)


def unlocked(mystery: Mystery) -> list[Deduction]:
    """Unsolved deductions whose prerequisite evidence is all in the journal."""
    have = journal_ids(mystery)
    return [
        d for d in mystery.deductions
        if not d.solved and set(d.prerequisite_evidence_ids) <= have
    ]


def find_deduction(mystery: Mystery, deduction_id: str) -> Deduction:
    for deduction in mystery.deductions:
        if deduction.id == deduction_id:
            return deduction
    raise IllegalIntent(f"Unknown deduction '{deduction_id}'")


def answer(mystery: Mystery, deduction_id: str, given_answer: str) -> AnswerResult:
    """Answer a deduction. One shot per deduction.

    Args:
        mystery: The run's mystery.
        deduction_id: Which deduction to answer.
        given_answer: The option key chosen.

    Returns:
        The scored result.

    Raises:
        IllegalIntent: If the deduction is unknown or still locked.
        AlreadyAnswered: If it was answered before; carries the first result.
    """
    deduction = find_deduction(mystery, deduction_id)
    if deduction.solved:
        raise AlreadyAnswered(AnswerResult(
            deduction_id=deduction.id,
            correct=deduction.answered_correctly,
            given_answer=deduction.given_answer or "",
        ))
    if not is_unlocked(mystery, deduction):
        raise IllegalIntent(f"Deduction '{deduction_id}' needs more evidence")
    if deduction.options and given_answer not in {o.key for o in deduction.options}:
        raise IllegalIntent(f"'{given_answer}' is not an option for '{deduction_id}'")

    deduction.solved = True
    deduction.given_answer = given_answer
    deduction.answered_correctly = given_answer == deduction.correct_answer
    return AnswerResult(
        deduction_id=deduction.id,
        correct=deduction.answered_correctly,
        given_answer=given_answer,
    )


def correct_count(mystery: Mystery) -> int:
    return sum(1 for d in mystery.deductions if d.answered_correctly)


# ── Investigation summary ───────────────────────────────────

# Log beats run warning, warning, trigger, response, aftermath. Anything not
# listed belongs to the incident's own storyline.
EVIDENCE_THREAD_INDEX = {"ev_log_0": 0, "ev_log_1": 0, "ev_log_2": 1, "ev_log_3": 2}

CATEGORY_QUESTIONS = {
    DeductionCategory.WHAT: "what happened",
    DeductionCategory.WHY: "why it happened",
    DeductionCategory.WHO: "who is responsible",
}


def evidence_threads(mystery: Mystery) -> list[EvidenceThread]:
    """Group journal entries, in discovery order, under the run's four storylines."""
    name, description = ARCHETYPE_THREADS[mystery.archetype]
    threads = [EvidenceThread(name=n, description=d) for n, d in COMMON_THREADS]
    threads.append(EvidenceThread(name=name, description=description))
    for entry in mystery.journal:
        threads[EVIDENCE_THREAD_INDEX.get(entry.id, 3)].entry_ids.append(entry.id)
    return threads


def _correct_label(deduction: Deduction) -> str:
    return next((o.label for o in deduction.options if o.key == deduction.correct_answer), deduction.correct_answer)


def _confidence(mystery: Mystery) -> Confidence:
    total = len(mystery.deductions)
    solved = sum(1 for d in mystery.deductions if d.solved)
    correct = correct_count(mystery)
    if total and correct == total:
        return Confidence.COMPLETE
    if total and correct >= total * 0.6:
        return Confidence.HIGH
    if total and solved >= total * 0.4:
        return Confidence.MEDIUM
    if len(mystery.journal) >= 3:
        return Confidence.LOW
    return Confidence.NONE


def summarize(mystery: Mystery) -> InvestigationSummary:
    """Write up what the investigation has established so far.

    A pure function of the journal and the answered deductions: the same
    mystery always yields the same summary.
    """
    threads = evidence_threads(mystery)
    if not mystery.journal:
        return InvestigationSummary(
            paragraphs=[
                "No evidence has been collected yet. Explore the station, read terminals, "
                "and examine items to begin piecing together what happened."
            ],
            confidence=Confidence.NONE,
            threads=threads,
        )

    by_category = {d.category: d for d in mystery.deductions}
    paragraphs = []

    what = by_category.get(DeductionCategory.WHAT)
    if what is not None and what.answered_correctly:
        paragraphs.append(
            f"The investigation has determined what happened aboard the station: {_correct_label(what)}."
        )
    elif what is not None and what.solved:
        paragraphs.append(
            "An initial assessment of the incident was filed, but it may be wrong. "
            "What really happened remains uncertain."
        )
    else:
        name = ARCHETYPES[mystery.archetype].name
        paragraphs.append(
            f"Evidence suggests a {name.lower()} incident. More evidence is needed to say exactly what happened."
        )

    covered = [t.name.removeprefix("The ").lower() for t in threads if t.entry_ids]
    count = len(mystery.journal)
    paragraphs.append(
        f"The timeline is taking shape. Evidence covers: {', '.join(covered)}. "
        f"{count} piece{'s' if count != 1 else ''} of evidence on file."
    )

    why = by_category.get(DeductionCategory.WHY)
    if why is not None and why.answered_correctly:
        paragraphs.append(f"The root cause has been identified: {_correct_label(why)}.")
    elif why is not None and why.solved:
        paragraphs.append("A cause was proposed, but the conclusion may be wrong. The true cause remains unclear.")

    who = by_category.get(DeductionCategory.WHO)
    if who is not None and who.answered_correctly:
        paragraphs.append(f"Responsibility has been assigned: {_correct_label(who)}.")
    elif who is not None and who.solved:
        paragraphs.append("Responsibility was assigned, but the conclusion may be wrong.")

    unsolved = [d for d in mystery.deductions if not d.solved]
    if unsolved:
        questions = list(dict.fromkeys(CATEGORY_QUESTIONS[d.category] for d in unsolved))
        paragraphs.append(
            f"Questions remaining: {', '.join(questions)}. "
            f"{len(unsolved)} deduction{'s' if len(unsolved) != 1 else ''} still unsolved."
        )

    return InvestigationSummary(paragraphs=paragraphs, confidence=_confidence(mystery), threads=threads)


# ── Choices ─────────────────────────────────────────────────


def find_choice(mystery: Mystery, choice_id: str) -> MysteryChoice:
    for choice in mystery.choices:
        if choice.id == choice_id:
            return choice
    raise IllegalIntent(f"Unknown choice '{choice_id}'")


def present_choice(mystery: Mystery, choice_id: str) -> MysteryChoice | None:
    """Make a choice available to the player. Returns it if newly presented."""
    choice = find_choice(mystery, choice_id)
    if choice.presented:
        return None
    choice.presented = True
    return choice


def open_choices(mystery: Mystery) -> list[MysteryChoice]:
    return [c for c in mystery.choices if c.presented and c.chosen is None]


def choose(mystery: Mystery, choice_id: str, key: str) -> MysteryChoice:
    """Settle a presented choice. ``chosen`` is written at most once.

    Raises:
        IllegalIntent: Unknown, unpresented, or already settled choice, or an
            invalid option key.
    """
    choice = find_choice(mystery, choice_id)
    if not choice.presented:
        raise IllegalIntent(f"Choice '{choice_id}' has not come up yet")
    if choice.chosen is not None:
        raise IllegalIntent(f"Choice '{choice_id}' is already settled")
    if key not in {o.key for o in choice.options}:
        raise IllegalIntent(f"'{key}' is not an option for '{choice_id}'")
    choice.chosen = key
    return choice


# ── Rewards ─────────────────────────────────────────────────


def apply_reward(state: GameState, registry: EntityRegistry, deduction: Deduction) -> str | None:
    """Grant the reward attached to a correctly answered deduction.

    Returns:
        A log line describing the reward, or None if nothing was granted.
    """
    if not deduction.answered_correctly or deduction.reward is None:
        return None
    player_pos = state.player.entity.pos.as_tuple()

    if deduction.reward == RewardType.ROOM_REVEAL:
        grid = registry.grid
        hidden_rooms = [
            r for r in state.rooms
            if not all(grid.tiles[y][x].explored for x, y in grid.room_positions(r))
        ]
        if not hidden_rooms:
            return None
        room = min(hidden_rooms, key=lambda r: (distance(player_pos, r.center), r.id))
        reveal_room(state, room)
        return f"Station schematic recovered: {room.name} mapped."

    if deduction.reward == RewardType.SENSOR_HINT:
        pickups = [e for e in registry.all(EntityKind.SENSOR_PICKUP) if not e.props.revealed]
        if not pickups:
            return None
        pickup = min(pickups, key=lambda e: (distance(player_pos, e.pos.as_tuple()), e.id))
        registry.mutate_prop(pickup.id, "revealed", True)
        return f"Maintenance records point to a {pickup.props.sensor_type.value} sensor nearby."

    if deduction.reward == RewardType.CLEARANCE:
        level = correct_count(state.mystery) + 1
        opened = 0
        for door in registry.all(EntityKind.CLOSED_DOOR):
            if door.props.closed and 0 < door.props.clearance <= level:
                registry.mutate_prop(door.id, "clearance", 0)
                opened += 1
        if not opened:
            return None
        return f"Clearance upgraded: {opened} restricted door(s) now accept your credentials."

    return None
