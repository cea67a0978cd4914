"""Incident archetypes, crew names, room names, and mystery text templates."""

from __future__ import annotations

from pydantic import BaseModel

from models.entities import SensorType
from models.mystery import DeductionCategory, RewardType


class DeductionTemplate(BaseModel):
    category: DeductionCategory
    question: str
    options: dict[str, str]         # key -> label
    correct: str
    reward: RewardType | None = None
    hint: str = ""


class Archetype(BaseModel):
    """A story template the generator fills with crew and rooms."""
    id: str
    name: str
    primary_hazard: str             # heat | pressure | smoke
    sensor_bias: SensorType
    story_hook: str
    roles: list[str]
    beats: list[str]                # Five beats with {role} placeholders
    deductions: list[DeductionTemplate]
    choice_prompt: str
    choice_options: dict[str, str]


ROOM_NAMES = [
    "Arrival Bay",
    "Central Atrium",
    "Data Core",
    "Engineering Storage",
    "Power Relay Junction",
    "Life Support",
    "Charging Bay",
    "Robotics Bay",
    "Vent Control Room",
    "Cargo Hold",
    "Med Bay",
    "Research Lab",
    "Crew Quarters",
    "Communications Hub",
    "Observation Deck",
]

ROOM_ZONES = {
    "Arrival Bay": "Operations",
    "Central Atrium": "Operations",
    "Data Core": "Research",
    "Engineering Storage": "Infrastructure",
    "Power Relay Junction": "Infrastructure",
    "Life Support": "Infrastructure",
    "Charging Bay": "Infrastructure",
    "Robotics Bay": "Research",
    "Vent Control Room": "Infrastructure",
    "Cargo Hold": "Logistics",
    "Med Bay": "Habitation",
    "Research Lab": "Research",
    "Crew Quarters": "Habitation",
    "Communications Hub": "Operations",
    "Observation Deck": "Habitation",
}

FIRST_NAMES = [
    "Ada", "Bram", "Chen", "Dara", "Emeka", "Freya", "Goran", "Hana",
    "Ines", "Joss", "Kai", "Lena", "Mateo", "Nadia", "Oren", "Priya",
]

LAST_NAMES = [
    "Okafor", "Lindqvist", "Reyes", "Tanaka", "Volkov", "Mbeki", "Hale",
    "Sorensen", "Ibarra", "Novak", "Castell", "Ashford",
]

CREW_ITEMS = [
    ("Cracked datapad", "A half-written message home: '{line}'"),
    ("Coffee-stained duty roster", "Someone circled a shift change in red: '{line}'"),
    ("Personal audio recorder", "A tired voice: '{line}'"),
    ("Torn maintenance tag", "Handwritten on the back: '{line}'"),
]

ARCHETYPES: dict[str, Archetype] = {
    "coolant_cascade": Archetype(
        id="coolant_cascade",
        name="Coolant Cascade",
        primary_hazard="heat",
        sensor_bias=SensorType.THERMAL,
        story_hook="Engineer warned about a failing coolant loop",
        roles=["engineer", "captain", "medic"],
        beats=[
            "{engineer} files a maintenance request for coolant loop B. {captain} marks it low priority.",
            "Coolant pressure drops in the relay junction. {engineer} detects the anomaly during a routine check.",
            "Heat cascade begins at the relays. {engineer} attempts an emergency bypass while {captain} orders sections cleared.",
            "Multiple relay overheats trigger an automated lockdown. {medic} treats burn injuries.",
            "Crew shelters in the cargo hold. {engineer} documents the backup procedure and waits for rescue.",
        ],
        deductions=[
            DeductionTemplate(
                category=DeductionCategory.WHAT,
                question="What happened aboard the station?",
                options={
                    "cascade": "A coolant failure cascaded through the power relays",
                    "breach": "A hull breach vented the outer ring",
                    "fire": "An electrical fire started in the crew quarters",
                },
                correct="cascade",
                reward=RewardType.ROOM_REVEAL,
                hint="Check what the maintenance logs say about loop B.",
            ),
            DeductionTemplate(
                category=DeductionCategory.WHY,
                question="Why was the failure not caught in time?",
                options={
                    "ignored": "The repair request was deprioritised",
                    "sensor": "The coolant sensors were miscalibrated",
                    "sabotage": "Someone disabled the alarms",
                },
                correct="ignored",
                reward=RewardType.SENSOR_HINT,
                hint="Who decided when the loop would be repaired?",
            ),
            DeductionTemplate(
                category=DeductionCategory.WHO,
                question="Who kept the station alive after the cascade?",
                options={
                    "engineer": "The engineer",
                    "captain": "The captain",
                    "medic": "The medic",
                },
                correct="engineer",
                reward=RewardType.CLEARANCE,
                hint="Look for whoever wrote the backup procedure.",
            ),
        ],
        choice_prompt="The maintenance backlog will reach the review board. How do you file it?",
        choice_options={
            "full": "File the full backlog, including the captain's sign-off",
            "redact": "Redact the sign-off and blame the hardware",
        },
    ),
    "hull_breach": Archetype(
        id="hull_breach",
        name="Hull Breach",
        primary_hazard="pressure",
        sensor_bias=SensorType.ATMOSPHERIC,
        story_hook="Structural failure in the outer ring, emergency seals activated",
        roles=["security", "engineer", "life_support"],
        beats=[
            "{security} reports micro-impacts on the hull sensors. {engineer} schedules an inspection.",
            "Hull integrity alarm in sector 4. {life_support} sees pressure falling.",
            "Emergency bulkheads seal. {engineer} reroutes atmosphere as two sections depressurise.",
            "A secondary breach opens in a maintenance corridor. {security} moves the crew to safe zones.",
            "Crew waits in sealed sections while {life_support} rations the remaining air.",
        ],
        deductions=[
            DeductionTemplate(
                category=DeductionCategory.WHAT,
                question="What happened aboard the station?",
                options={
                    "breach": "The hull failed and vented several sections",
                    "cascade": "A coolant failure overheated the relays",
                    "scram": "The reactor shut itself down",
                },
                correct="breach",
                reward=RewardType.ROOM_REVEAL,
                hint="Pressure readings tell this story best.",
            ),
            DeductionTemplate(
                category=DeductionCategory.WHY,
                question="Why did the hull give way?",
                options={
                    "fatigue": "Micro-impacts were logged but the inspection never happened",
                    "collision": "A supply shuttle collided with the ring",
                    "sabotage": "Explosive charges were planted",
                },
                correct="fatigue",
                reward=RewardType.SENSOR_HINT,
                hint="Compare the inspection schedule with the impact reports.",
            ),
            DeductionTemplate(
                category=DeductionCategory.WHO,
                question="Who first noticed the danger?",
                options={
                    "security": "The security officer",
                    "engineer": "The engineer",
                    "life_support": "The life support technician",
                },
                correct="security",
                reward=RewardType.CLEARANCE,
                hint="The earliest report names its author.",
            ),
        ],
        choice_prompt="The inspection delay will be investigated. What goes in your report?",
        choice_options={
            "full": "Report the missed inspection in full",
            "spare": "Attribute the failure to unforeseeable debris",
        },
    ),
    "reactor_scram": Archetype(
        id="reactor_scram",
        name="Reactor Scram",
        primary_hazard="heat",
        sensor_bias=SensorType.THERMAL,
        story_hook="A containment fault triggered an emergency reactor shutdown",
        roles=["scientist", "engineer", "captain"],
        beats=[
            "{scientist} notes fluctuations in reactor output. {engineer} runs diagnostics with no result.",
            "A containment field fluctuation triggers the automated scram. {captain} clears the area.",
            "Heat spikes in the reactor ring. {engineer} attempts a manual containment reset.",
            "Full scram. The station drops to backup power and {scientist} seals the lab samples.",
            "Emergency power only. {captain} authorises the distress beacon.",
        ],
        deductions=[
            DeductionTemplate(
                category=DeductionCategory.WHAT,
                question="What happened aboard the station?",
                options={
                    "scram": "The reactor scrammed after a containment fault",
                    "breach": "A hull breach vented the reactor ring",
                    "signal": "An outside signal scrambled the controls",
                },
                correct="scram",
                reward=RewardType.ROOM_REVEAL,
                hint="The power logs mark the moment the station went dark.",
            ),
            DeductionTemplate(
                category=DeductionCategory.WHY,
                question="Why did containment fail?",
                options={
                    "experiment": "An unlogged experiment overloaded the field",
                    "age": "The field emitters were past their service life",
                    "sabotage": "A crew member tampered with the emitters",
                },
                correct="experiment",
                reward=RewardType.SENSOR_HINT,
                hint="Someone was drawing power that never appears in the schedule.",
            ),
            DeductionTemplate(
                category=DeductionCategory.WHO,
                question="Who was running the unlogged work?",
                options={
                    "scientist": "The scientist",
                    "engineer": "The engineer",
                    "captain": "The captain",
                },
                correct="scientist",
                reward=RewardType.CLEARANCE,
                hint="Check who sealed the samples afterwards.",
            ),
        ],
        choice_prompt="The experiment data survived. What do you do with it?",
        choice_options={
            "transmit": "Transmit it with the incident report",
            "purge": "Purge it from the archive",
        },
    ),
    "sabotage": Archetype(
        id="sabotage",
        name="Sabotage",
        primary_hazard="smoke",
        sensor_bias=SensorType.CLEANLINESS,
        story_hook="Deliberate damage to station systems. Who did it, and why?",
        roles=["security", "captain", "engineer"],
        beats=[
            "Operations normal. {security} reviews routine access logs and finds nothing unusual.",
            "Faults appear across unrelated sections. {engineer} says the pattern is not random.",
            "{captain} orders a lockdown after a forged badge is used on restricted systems.",
            "A critical system is disabled. {security} confronts a suspect and the situation deteriorates.",
            "The crew is divided. Damaged systems need outside repair and the evidence is scattered.",
        ],
        deductions=[
            DeductionTemplate(
                category=DeductionCategory.WHAT,
                question="What happened aboard the station?",
                options={
                    "sabotage": "Systems were deliberately disabled",
                    "cascade": "A coolant failure spread through the relays",
                    "breach": "A hull breach forced a lockdown",
                },
                correct="sabotage",
                reward=RewardType.ROOM_REVEAL,
                hint="Random failures do not use forged badges.",
            ),
            DeductionTemplate(
                category=DeductionCategory.WHY,
                question="Why were the systems disabled?",
                options={
                    "cover": "To hide cargo that was never declared",
                    "mutiny": "To force the captain to abandon the station",
                    "accident": "It was an accident during maintenance",
                },
                correct="cover",
                reward=RewardType.SENSOR_HINT,
                hint="Follow the cargo manifests.",
            ),
            DeductionTemplate(
                category=DeductionCategory.WHO,
                question="Who forged the badge?",
                options={
                    "engineer": "The engineer",
                    "security": "The security officer",
                    "captain": "The captain",
                },
                correct="engineer",
                reward=RewardType.CLEARANCE,
                hint="Whoever called the pattern deliberate knew a lot about it.",
            ),
        ],
        choice_prompt="The saboteur's identity is in your logs. Do you include it?",
        choice_options={
            "name": "Name them in the report",
            "withhold": "Withhold the name pending a hearing",
        },
    ),
}

# Storylines every investigation has, in story order
COMMON_THREADS = [
    ("The Warning Signs", "Early indicators that something was wrong: maintenance logs, sensor anomalies, ignored reports."),
    ("The Trigger Event", "What actually set off the chain of events that left the station in this state."),
    ("The Response", "How the crew reacted when the alarms went off. Who helped, who ran, who froze."),
]

# The fourth storyline depends on the kind of incident
ARCHETYPE_THREADS = {
    "coolant_cascade": (
        "The Breakdown",
        "A trail of deferred maintenance and system failures that made the disaster inevitable.",
    ),
    "reactor_scram": (
        "The Breakdown",
        "A trail of deferred maintenance and system failures that made the disaster inevitable.",
    ),
    "hull_breach": (
        "The Breach",
        "Physical evidence of the failure: structural damage and pressure loss.",
    ),
    "sabotage": (
        "The Hidden Agenda",
        "Someone aboard had secrets. The evidence does not add up to an accident.",
    ),
}


def select_archetype(seed: int) -> str:
    """Pick an archetype id deterministically from a seed."""
    ids = sorted(ARCHETYPES)
    return ids[((seed * 2654435761) % 2**32) % len(ids)]


def fill(template: str, roles: dict[str, str]) -> str:
    """Substitute {role} placeholders with crew names."""
    for role, name in roles.items():
        template = template.replace("{" + role + "}", name)
    return template


def describe_ending(archetype: Archetype, victory: bool, evacuated: int, lost: int) -> str:
    if not victory:
        return f"Signal lost. The {archetype.name.lower()} claims the station."
    if lost == 0:
        return f"Mission complete. Every surviving crew member is off the station and the {archetype.name.lower()} is on record."
    return f"Mission complete. {evacuated} crew evacuated; {lost} did not make it."
