"""Player bot data models: attachments, sensors, and hit points."""

from enum import Enum

from pydantic import BaseModel

from models.entities import Entity, SensorType


class AttachmentSlot(str, Enum):
    """Hardpoints on the bot chassis."""
    TOOL = "tool"
    SENSOR = "sensor"
    UTILITY = "utility"


class Attachment(BaseModel):
    """Equipment mounted in one slot."""
    slot: AttachmentSlot
    name: str                       # e.g., "sealant_patch", "thermal"
    sensor_type: SensorType | None = None


class Player(BaseModel):
    """The bot the player drives around the station."""
    entity: Entity
    hp: int
    max_hp: int
    stun_turns: int = 0
    attachments: dict[AttachmentSlot, Attachment] = {}
    sensors: list[SensorType] = []  # Kept sorted and unique
    power_cells: int = 0

    @property
    def active_sensor(self) -> SensorType | None:
        attachment = self.attachments.get(AttachmentSlot.SENSOR)
        return attachment.sensor_type if attachment else None

    def has_tool(self) -> bool:
        return AttachmentSlot.TOOL in self.attachments

    def has_utility(self) -> bool:
        return AttachmentSlot.UTILITY in self.attachments
