#!/usr/bin/env python3
"""Narrator smoke run.

Generates narration for 120 synthetic combat, travel, dungeon and town
inputs, twice each, and checks that output is non-empty, deterministic,
guardrail-clean, reasonably long and varied.

Usage:
    python scripts/narrator_smoke.py
    python scripts/narrator_smoke.py --samples 40 --verbose
"""

import argparse
import sys
from typing import Any

# Add project root to path
sys.path.insert(0, ".")

from rich.console import Console

from mythic_narrator.narrator import ProceduralNarrator, is_forbidden
from mythic_narrator.observability import RichConsoleObserver

KINDS = ("combat", "travel", "dungeon", "town")
MIN_AVG_WORDS = 10
MAX_AVG_WORDS = 120
MIN_UNIQUE_SHARE = 1 / 3


def sample_event(kind: str, index: int) -> dict[str, Any]:
    """Raw event record in the combat service's nested shape."""
    if kind == "combat":
        return {
            "id": f"combat-{index}",
            "event_type": "status_applied" if index % 3 == 0 else "damage",
            "turn_index": index,
            "payload": {
                "source_name": "Rook",
                "target_name": "Bone Marshal" if index % 2 == 0 else "Ash Stalker",
                "damage_to_hp": 12 + (index % 27),
                "status": {"id": "bleed" if index % 3 == 0 else "burn"},
            },
        }
    if kind == "travel":
        return {
            "id": f"travel-{index}",
            "event_type": "travel_step",
            "turn_index": index,
            "payload": {
                "source_name": "Scout Team",
                "target_name": "ridge trail" if index % 2 == 0 else "river ford",
            },
        }
    if kind == "dungeon":
        return {
            "id": f"dungeon-{index}",
            "event_type": "room_entered" if index % 2 == 0 else "loot_drop",
            "turn_index": index,
            "payload": {
                "source_name": "Breach Team",
                "target_name": "vault antechamber" if index % 2 == 0 else "supply cache",
            },
        }
    return {
        "id": f"town-{index}",
        "event_type": "npc_dialogue" if index % 2 == 0 else "quest_update",
        "turn_index": index,
        "payload": {"source_name": "Street Broker", "target_name": "you"},
    }


def sample_request(kind: str, index: int) -> dict[str, Any]:
    """camelCase request as a request handler would forward it."""
    return {
        "campaignSeed": "smoke-campaign",
        "sessionId": "smoke-session",
        "eventId": f"{kind}-{index}",
        "boardType": kind,
        "biome": {"travel": "forest", "town": "city"}.get(kind, "dungeon"),
        "tone": {"combat": "grim", "town": "comic"}.get(kind, "tactical"),
        "intensity": {"combat": "high", "travel": "med"}.get(kind, "low"),
        "actionSummary": f"Sample action {index} for {kind}.",
        "recoveryBeat": "Choose one concrete move and commit it.",
        "boardAnchor": "ridge route" if kind == "travel" else "active board",
        "summaryObjective": "Focus priority target." if kind == "combat" else "Secure momentum.",
        "summaryRumor": "A broker knows a shortcut." if kind == "town" else "Pressure is moving fast.",
        "boardNarration": "The board remains authoritative and pressure-forward.",
        "introOpening": index % 9 == 0,
        "suppressNarrationOnError": False,
        "executionError": None,
        "stateChanges": [f"state-change-{index}"],
        "events": [sample_event(kind, index)],
    }


def run(samples: int, verbose: bool, console: Console) -> bool:
    """Run the smoke samples and print a summary. Returns True on success."""
    observer = RichConsoleObserver(console=console) if verbose else None
    narrator = ProceduralNarrator(hook=observer)
    replay = ProceduralNarrator()

    outputs: list[str] = []
    word_counts: list[int] = []
    failures: list[str] = []

    for index in range(samples):
        kind = KINDS[index % len(KINDS)]
        request = sample_request(kind, index)
        first = narrator.narrate(request)
        second = replay.narrate(request)

        if not first.text.strip():
            failures.append(f"empty narration at sample {index}")
        if first.text != second.text:
            failures.append(f"non-deterministic output at sample {index}")
        if is_forbidden(first.text):
            failures.append(f"forbidden content at sample {index}")

        outputs.append(first.text)
        word_counts.append(len(first.text.split()))

    avg_words = sum(word_counts) / max(1, len(word_counts))
    unique = len(set(outputs))
    if avg_words < MIN_AVG_WORDS:
        failures.append(f"average narration length too short: {avg_words:.2f}")
    if avg_words > MAX_AVG_WORDS:
        failures.append(f"average narration length too long: {avg_words:.2f}")
    if unique < samples * MIN_UNIQUE_SHARE:
        failures.append(f"low output variety: {unique} unique narrations")

    if observer:
        observer.print_summary()

    console.print(f"\nSamples: {len(outputs)}")
    console.print(f"Unique outputs: {unique}")
    console.print(f"Average words: {avg_words:.2f}")

    if failures:
        for failure in failures:
            console.print(f"[red]x[/] {failure}")
        return False
    console.print("[green]Narrator smoke test passed.[/]")
    return True


def main() -> None:
    parser = argparse.ArgumentParser(description="Deterministic narrator smoke run")
    parser.add_argument("--samples", type=int, default=120, help="Number of synthetic inputs")
    parser.add_argument("--verbose", action="store_true", help="Print every narration")
    args = parser.parse_args()

    console = Console()
    passed = run(args.samples, args.verbose, console)
    sys.exit(0 if passed else 1)


if __name__ == "__main__":
    main()
