"""Reference bot that plays Corvus Station Server via the REST API.

Starts a fresh run and plays each turn by picking simple goals:
  - Settle any open decision and take a guess at unlocked deductions.
  - Interact with anything useful within reach.
  - Clean dirty floor while the station still needs cleaning.
  - Sweep the active sensor every so often for hidden traces.
  - Otherwise walk to the nearest unused entity, or explore the fog.

Usage:
    1. Start the server:  uvicorn main:app --reload
    2. Run this bot:      python bots/playtest_bot.py --seed 184201

Environment variables:
    CORVUS_URL  Server URL (default: http://127.0.0.1:8000)
"""

import argparse
import os
import sys
from collections import deque

import httpx

BASE_URL = os.environ.get("CORVUS_URL", "http://127.0.0.1:8000")

WALKABLE = {"floor", "corridor", "door"}
DIRECTIONS = {
    "north": (0, -1),
    "south": (0, 1),
    "east": (1, 0),
    "west": (-1, 0),
}
DANGEROUS_HEAT = 50
DIRTY = 30
SCAN_EVERY = 12
MAX_TRIES = 3       # Interactions with one target before the bot gives up on it
# Kinds the bot never walks to on its own
IGNORED_KINDS = {"escape_pod", "airlock", "patrol_drone", "drone"}


class BotMemory:
    """What the bot remembers between turns."""

    def __init__(self) -> None:
        self.failed_targets: set[str] = set()
        self.last_scan_turn = -SCAN_EVERY
        self.answered: set[str] = set()
        self.unclean: set[tuple[int, int]] = set()
        self.tries: dict[str, int] = {}


def _tile_map(obs: dict) -> dict[tuple[int, int], dict]:
    return {(t["x"], t["y"]): t for t in obs["tiles"]}


def _passable(tile: dict | None) -> bool:
    if tile is None or tile["type"] not in WALKABLE:
        return False
    return tile["hazards"]["heat"] < DANGEROUS_HEAT


def path_step(obs: dict, goals: set[tuple[int, int]], stop_adjacent: bool = False) -> str | None:
    """First move direction on a shortest known path to any goal.

    Args:
        obs: Observation payload from /game/state.
        goals: Target positions.
        stop_adjacent: Treat tiles next to a goal as arrivals (for entities
            on tiles the bot cannot enter).

    Returns:
        A direction name, or None if no goal is reachable.
    """
    tiles = _tile_map(obs)
    start = (obs["player"]["pos"]["x"], obs["player"]["pos"]["y"])
    queue = deque([start])
    first_step: dict[tuple[int, int], str | None] = {start: None}
    while queue:
        pos = queue.popleft()
        arrived = pos in goals or (
            stop_adjacent and any(max(abs(pos[0] - gx), abs(pos[1] - gy)) <= 1 for gx, gy in goals)
        )
        if arrived and pos != start:
            return first_step[pos]
        for name, (dx, dy) in DIRECTIONS.items():
            nxt = (pos[0] + dx, pos[1] + dy)
            if nxt in first_step or not _passable(tiles.get(nxt)):
                continue
            first_step[nxt] = first_step[pos] or name
            queue.append(nxt)
    return None


def _frontier(obs: dict) -> set[tuple[int, int]]:
    tiles = _tile_map(obs)
    frontier = set()
    for (x, y), tile in tiles.items():
        if not _passable(tile):
            continue
        for dx, dy in DIRECTIONS.values():
            neighbour = tiles.get((x + dx, y + dy))
            if neighbour is not None and not neighbour["explored"]:
                frontier.add((x, y))
                break
    return frontier


def choose_intent(obs: dict, memory: BotMemory) -> dict:
    """Decide the next intent from an observation.

    Args:
        obs: Observation payload from /game/state.
        memory: Mutable memory carried across turns.

    Returns:
        An intent payload for /game/intent.
    """
    for choice in obs["open_choices"]:
        return {"type": "choose", "choice_id": choice["id"], "answer": choice["options"][0]["key"]}

    for deduction in obs["unlocked_deductions"]:
        if deduction["id"] not in memory.answered:
            memory.answered.add(deduction["id"])
            return {"type": "answer", "deduction_id": deduction["id"], "answer": deduction["options"][0]["key"]}

    player = obs["player"]
    px, py = player["pos"]["x"], player["pos"]["y"]
    candidates = [
        e for e in obs["entities"]
        if not e["exhausted"]
        and e["id"] not in memory.failed_targets
        and memory.tries.get(e["id"], 0) < MAX_TRIES
        and e["kind"] not in IGNORED_KINDS
    ]

    for entity in candidates:
        if max(abs(entity["pos"]["x"] - px), abs(entity["pos"]["y"] - py)) <= 1:
            memory.tries[entity["id"]] = memory.tries.get(entity["id"], 0) + 1
            return {"type": "interact", "target_id": entity["id"]}

    here = _tile_map(obs).get((px, py))
    if (
        obs["objective_phase"] == "clean"
        and here is not None
        and here["hazards"]["dirt"] > (DIRTY if obs["rooms_cleaned"] else 0)
        and (px, py) not in memory.unclean
    ):
        return {"type": "clean"}

    if player["active_sensor"] and obs["turn"] - memory.last_scan_turn >= SCAN_EVERY:
        memory.last_scan_turn = obs["turn"]
        return {"type": "scan"}

    goals = {(e["pos"]["x"], e["pos"]["y"]) for e in candidates}
    if goals:
        direction = path_step(obs, goals, stop_adjacent=True)
        if direction:
            return {"type": "move", "direction": direction}

    direction = path_step(obs, _frontier(obs))
    if direction:
        return {"type": "move", "direction": direction}
    return {"type": "wait"}


def play(client: httpx.Client, max_turns: int) -> dict:
    """Play until the run ends or the turn budget runs out. Returns the final observation."""
    memory = BotMemory()
    obs = client.get("/game/state").json()
    for _ in range(max_turns):
        if obs["game_over"]:
            break
        intent = choose_intent(obs, memory)
        resp = client.post("/game/intent", json=intent)
        if resp.status_code == 409:
            break
        if resp.status_code == 400:
            if intent["type"] == "interact":
                memory.failed_targets.add(intent["target_id"])
            elif intent["type"] == "clean":
                memory.unclean.add((obs["player"]["pos"]["x"], obs["player"]["pos"]["y"]))
            print(f"  rejected {intent['type']}: {resp.json().get('detail')}")
        else:
            resp.raise_for_status()
            result = resp.json()
            print(f"[{result['turn']:>4}] {result['description']}")
        obs = client.get("/game/state").json()
    return obs


def main() -> None:
    parser = argparse.ArgumentParser(description="Play a Corvus Station run over REST")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--archetype", default=None)
    parser.add_argument("--turns", type=int, default=500)
    args = parser.parse_args()

    client = httpx.Client(base_url=BASE_URL, timeout=10.0)
    try:
        resp = client.post("/game/new", json={"seed": args.seed, "archetype": args.archetype})
    except httpx.ConnectError:
        print(f"Error: Could not connect to server at {BASE_URL}", file=sys.stderr)
        sys.exit(1)
    resp.raise_for_status()
    print(f"Playing seed {resp.json()['seed']} ({resp.json()['archetype']})")

    obs = play(client, args.turns)
    outcome = "VICTORY" if obs["victory"] else ("DEFEAT" if obs["game_over"] else "UNFINISHED")
    print(f"\n{outcome} after {obs['turn']} turns, phase {obs['objective_phase']}, journal {obs['journal_size']}")


if __name__ == "__main__":
    main()
