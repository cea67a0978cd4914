"""Tests for the admin CLI's intent payload builder."""

import argparse

from manage_game import build_intent
from models.intents import Intent


def _args(**overrides) -> argparse.Namespace:
    values = {"intent": "wait", "direction": None, "target": None, "sensor": None, "choice": None, "option": None}
    values.update(overrides)
    return argparse.Namespace(**values)


class TestBuildIntent:
    def test_bare_intent(self):
        assert build_intent(_args()) == {"type": "wait"}

    def test_move(self):
        assert build_intent(_args(intent="move", direction="north")) == {"type": "move", "direction": "north"}

    def test_choose(self):
        intent = build_intent(_args(intent="choose", choice="choice_report", option="full"))
        assert intent == {"type": "choose", "choice_id": "choice_report", "answer": "full"}

    def test_payload_validates(self):
        payload = build_intent(_args(intent="toggle_sensor", sensor="thermal"))
        assert Intent.model_validate(payload).sensor.value == "thermal"
