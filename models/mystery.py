"""Mystery models: evidence journal, deductions, choices, and objective phase."""

from enum import Enum

from pydantic import BaseModel


class ObjectivePhase(str, Enum):
    """Mission stages, in the only order they may be entered."""
    CLEAN = "clean"
    INVESTIGATE = "investigate"
    RECOVER = "recover"
    EVACUATE = "evacuate"


PHASE_ORDER = [
    ObjectivePhase.CLEAN,
    ObjectivePhase.INVESTIGATE,
    ObjectivePhase.RECOVER,
    ObjectivePhase.EVACUATE,
]


def phase_index(phase: ObjectivePhase) -> int:
    """Position of a phase in the Clean < Investigate < Recover < Evacuate order."""
    return PHASE_ORDER.index(phase)


class JournalEntry(BaseModel):
    """A piece of evidence the bot has recorded. Never mutated once added."""
    id: str                         # Evidence id, e.g. "ev_log_2"
    text: str
    room_id: str | None = None
    entity_id: str | None = None
    turn: int = 0


class DeductionCategory(str, Enum):
    WHAT = "what"
    WHY = "why"
    WHO = "who"


class RewardType(str, Enum):
    """Bonus granted for a correct answer."""
    ROOM_REVEAL = "room_reveal"
    SENSOR_HINT = "sensor_hint"
    CLEARANCE = "clearance"


class AnswerOption(BaseModel):
    key: str
    label: str


class Deduction(BaseModel):
    """A question that unlocks once its evidence has been collected."""
    id: str
    category: DeductionCategory = DeductionCategory.WHAT
    question: str
    options: list[AnswerOption] = []
    prerequisite_evidence_ids: list[str] = []
    correct_answer: str
    solved: bool = False
    answered_correctly: bool = False
    given_answer: str | None = None
    reward: RewardType | None = None
    hint: str = ""


class AnswerResult(BaseModel):
    """Outcome of answering a deduction."""
    deduction_id: str
    correct: bool
    given_answer: str


class Confidence(str, Enum):
    """How settled the investigation is."""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    COMPLETE = "complete"


class EvidenceThread(BaseModel):
    """A storyline that journal entries are grouped under."""
    name: str
    description: str
    entry_ids: list[str] = []


class InvestigationSummary(BaseModel):
    """Prose recap of what the journal and answered deductions establish."""
    paragraphs: list[str]
    confidence: Confidence
    threads: list[EvidenceThread]


class MysteryChoice(BaseModel):
    """A report decision presented by a terminal; shapes the ending."""
    id: str
    prompt: str
    options: list[AnswerOption] = []
    trigger_entity_id: str | None = None
    presented: bool = False
    chosen: str | None = None


class Evacuation(BaseModel):
    crew_evacuated: list[str] = []  # Entity ids, append-only
    crew_dead: list[str] = []       # Entity ids, append-only


class Mystery(BaseModel):
    """Everything the investigation tracks for one run."""
    archetype: str
    deductions: list[Deduction] = []
    journal: list[JournalEntry] = []
    choices: list[MysteryChoice] = []
    evacuation: Evacuation = Evacuation()
    objective_phase: ObjectivePhase = ObjectivePhase.CLEAN
    rooms_cleaned: list[str] = []   # Room ids scrubbed to the cleanliness goal, append-only
    evidence_threshold: int = 2
