"""CLI tool for driving the running Corvus Station Server.

Connects to the server's game endpoints to start runs, inspect the current
turn, submit intents, answer deductions, and force a save.
The server must be running for this tool to work.

Usage:
    python manage_game.py new --seed 184201 --archetype hull_breach
    python manage_game.py state
    python manage_game.py act move --direction north
    python manage_game.py act interact --target relay_0
    python manage_game.py answer deduction_what cascade
    python manage_game.py save

Environment variables:
    CORVUS_URL     Server URL (default: http://127.0.0.1:8000)
"""

import argparse
import os
import sys

import httpx

DEFAULT_URL = os.environ.get("CORVUS_URL", "http://127.0.0.1:8000")

INTENT_TYPES = ["move", "interact", "wait", "toggle_sensor", "clean", "scan", "choose"]


def _request(method: str, url: str, **kwargs) -> httpx.Response:
    """Make an HTTP request, handling connection errors."""
    kwargs.setdefault("timeout", 10.0)
    try:
        return httpx.request(method, url, **kwargs)
    except httpx.ConnectError:
        print(f"Error: Could not connect to server at {url}", file=sys.stderr)
        print("Is the server running?", file=sys.stderr)
        sys.exit(1)


def _handle_error(resp: httpx.Response) -> None:
    """Handle common error status codes."""
    if resp.status_code == 400:
        detail = resp.json().get("detail", "Bad request")
        print(f"Rejected: {detail}", file=sys.stderr)
        sys.exit(1)
    elif resp.status_code == 409:
        detail = resp.json().get("detail", "Conflict")
        print(f"Error: {detail}", file=sys.stderr)
        sys.exit(1)
    elif resp.status_code != 200:
        print(f"Error: {resp.status_code} {resp.text}", file=sys.stderr)
        sys.exit(1)


def build_intent(args: argparse.Namespace) -> dict:
    """Translate parsed `act` arguments into an intent payload."""
    intent: dict = {"type": args.intent}
    if args.direction:
        intent["direction"] = args.direction
    if args.target:
        intent["target_id"] = args.target
    if args.sensor:
        intent["sensor"] = args.sensor
    if args.choice:
        intent["choice_id"] = args.choice
    if args.option:
        intent["answer"] = args.option
    return intent


def new_game(url: str, seed: int | None, archetype: str | None) -> None:
    """Start a fresh run on the server."""
    payload = {"seed": seed, "archetype": archetype}
    resp = _request("POST", f"{url}/game/new", json=payload)
    _handle_error(resp)
    data = resp.json()
    print(f"New run:   seed {data['seed']}")
    print(f"Incident:  {data['archetype']}")
    print(f"Map:       {data['width']}x{data['height']}")


def show_state(url: str) -> None:
    """Print a summary of the current observation."""
    resp = _request("GET", f"{url}/game/state")
    _handle_error(resp)
    obs = resp.json()
    player = obs["player"]
    print(f"Turn {obs['turn']}  phase={obs['objective_phase']}  HP {player['hp']}/{player['max_hp']}")
    print(f"Position: ({player['pos']['x']}, {player['pos']['y']})  sensor={player['active_sensor']}")
    print(f"Journal: {obs['journal_size']} entries")
    if obs["game_over"]:
        print("VICTORY" if obs["victory"] else "DEFEAT")
    print()
    print(f"{'ENTITY':<24} {'KIND':<18} {'POS':<10}")
    print("-" * 52)
    for entity in obs["entities"]:
        pos = f"({entity['pos']['x']},{entity['pos']['y']})"
        marker = " (done)" if entity["exhausted"] else ""
        print(f"{entity['id']:<24} {entity['kind']:<18} {pos:<10}{marker}")
    for deduction in obs["unlocked_deductions"]:
        options = ", ".join(o["key"] for o in deduction["options"])
        print(f"? {deduction['id']}: {deduction['question']} [{options}]")
    for log in obs["logs"][-5:]:
        print(f"  {log['text']}")


def submit(url: str, intent: dict) -> None:
    """Submit one intent and print the outcome."""
    resp = _request("POST", f"{url}/game/intent", json=intent)
    _handle_error(resp)
    result = resp.json()
    print(f"[turn {result['turn']}] {result['description']}")


def save(url: str) -> None:
    resp = _request("POST", f"{url}/game/save")
    _handle_error(resp)
    data = resp.json()
    print(f"Saved turn {data['turn']} to {data['path']}")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Drive a Corvus Station Server run",
    )

    url_kwargs = dict(
        default=DEFAULT_URL,
        help=f"Server URL (default: {DEFAULT_URL}, or set CORVUS_URL env var)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    new_parser = subparsers.add_parser("new", help="Start a new run")
    new_parser.add_argument("--seed", type=int, default=None, help="Station seed")
    new_parser.add_argument("--archetype", default=None, help="Incident archetype id")
    new_parser.add_argument("--url", **url_kwargs)

    state_parser = subparsers.add_parser("state", help="Show the current turn")
    state_parser.add_argument("--url", **url_kwargs)

    act_parser = subparsers.add_parser("act", help="Submit an intent")
    act_parser.add_argument("intent", choices=INTENT_TYPES, help="Intent type")
    act_parser.add_argument("--direction", choices=["north", "south", "east", "west"])
    act_parser.add_argument("--target", help="Entity id to interact with")
    act_parser.add_argument("--sensor", choices=["cleanliness", "thermal", "atmospheric"])
    act_parser.add_argument("--choice", help="Choice id (for choose)")
    act_parser.add_argument("--option", help="Option key (for choose)")
    act_parser.add_argument("--url", **url_kwargs)

    answer_parser = subparsers.add_parser("answer", help="Answer an unlocked deduction")
    answer_parser.add_argument("deduction", help="Deduction id")
    answer_parser.add_argument("option", help="Option key")
    answer_parser.add_argument("--url", **url_kwargs)

    save_parser = subparsers.add_parser("save", help="Save the current run")
    save_parser.add_argument("--url", **url_kwargs)

    args = parser.parse_args()

    if args.command == "new":
        new_game(args.url, args.seed, args.archetype)
    elif args.command == "state":
        show_state(args.url)
    elif args.command == "act":
        submit(args.url, build_intent(args))
    elif args.command == "answer":
        submit(args.url, {"type": "answer", "deduction_id": args.deduction, "answer": args.option})
    elif args.command == "save":
        save(args.url)


if __name__ == "__main__":
    main()
