"""Maps raw gameplay event records into NarrationEvents.

Raw records arrive in whatever shape the combat and board services emit:
flat (``{"type": "damage", "actor": ...}``) or nested under ``payload``
(``{"event_type": "damage", "payload": {"source_name": ...}}``). Mapping is
pure and order-preserving; records that are not mappings are dropped.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from mythic_narrator.narrator.types import NarrationEvent, NarrationEventType

logger = logging.getLogger(__name__)

DEFAULT_ACTOR = "You"
DEFAULT_TARGET = "the line"
MAX_STATE_CHANGE_EVENTS = 6

# Raw type string -> narration event type. "moved" is board-dependent.
EVENT_TYPE_TABLE: dict[str, NarrationEventType] = {
    "damage": NarrationEventType.ATTACK_RESOLVED,
    "miss": NarrationEventType.ATTACK_RESOLVED,
    "healed": NarrationEventType.ATTACK_RESOLVED,
    "death": NarrationEventType.ATTACK_RESOLVED,
    "combat_end": NarrationEventType.ATTACK_RESOLVED,
    "attack_resolved": NarrationEventType.ATTACK_RESOLVED,
    "status_tick": NarrationEventType.STATUS_TICK,
    "status_applied": NarrationEventType.STATUS_TICK,
    "status_expired": NarrationEventType.STATUS_TICK,
    "loot_drop": NarrationEventType.LOOT_DROPPED,
    "loot_dropped": NarrationEventType.LOOT_DROPPED,
    "xp_gain": NarrationEventType.LEVEL_UP,
    "level_up": NarrationEventType.LEVEL_UP,
    "dialogue": NarrationEventType.NPC_DIALOGUE,
    "npc_dialogue": NarrationEventType.NPC_DIALOGUE,
    "room_entered": NarrationEventType.DUNGEON_ROOM_ENTERED,
    "room_transition": NarrationEventType.DUNGEON_ROOM_ENTERED,
    "dungeon_room_entered": NarrationEventType.DUNGEON_ROOM_ENTERED,
    "travel_step": NarrationEventType.TRAVEL_STEP,
    "quest_update": NarrationEventType.QUEST_UPDATE,
    "objective": NarrationEventType.QUEST_UPDATE,
    "board_transition": NarrationEventType.BOARD_TRANSITION,
    "runtime_transition": NarrationEventType.BOARD_TRANSITION,
}


def to_event_type(raw_type: str, board_type: str) -> NarrationEventType:
    """Resolve a raw type string through the dispatch table.

    Unknown strings map to ``board_transition`` instead of failing.

    Args:
        raw_type: Raw event type from the record.
        board_type: Normalized board type ("combat", "travel", ...).

    Returns:
        The narration event type.
    """
    key = raw_type.strip().lower()
    if key == "moved":
        if board_type == "travel":
            return NarrationEventType.TRAVEL_STEP
        return NarrationEventType.BOARD_TRANSITION
    return EVENT_TYPE_TABLE.get(key, NarrationEventType.BOARD_TRANSITION)


def _as_mapping(value: Any) -> Mapping[str, Any] | None:
    return value if isinstance(value, Mapping) else None


def _first_text(*values: Any) -> str | None:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _first_number(*values: Any) -> float | None:
    for value in values:
        if value is None or isinstance(value, bool):
            continue
        try:
            number = float(value)
        except (TypeError, ValueError, OverflowError):
            continue
        if math.isfinite(number):
            return int(number) if number.is_integer() else number
    return None


def _to_timestamp(value: Any, fallback: int) -> int:
    if isinstance(value, (int, float)):
        number = _first_number(value)
        return int(number) if number is not None else fallback
    if isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return fallback
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return int(parsed.timestamp() * 1000)
    return fallback


def _status_id(record: Mapping[str, Any], payload: Mapping[str, Any]) -> str | None:
    for source in (payload, record):
        status = source.get("status")
        status_map = _as_mapping(status)
        if status_map is not None:
            found = _first_text(status_map.get("id"))
            if found:
                return found
        elif isinstance(status, str) and status.strip():
            return status.strip()
        found = _first_text(source.get("status_id"))
        if found:
            return found
    return None


def map_event(
    record: Any,
    index: int,
    board_type: str,
    seed: str = "",
) -> NarrationEvent | None:
    """Map one raw record, or return None if it is malformed."""
    raw = _as_mapping(record)
    if raw is None:
        return None
    payload = _as_mapping(raw.get("payload")) or {}

    raw_type = _first_text(raw.get("event_type"), raw.get("type"), payload.get("event_type"))
    raw_type = raw_type or "quest_update"
    event_type = to_event_type(raw_type, board_type)
    event_id = _first_text(raw.get("id")) or f"{event_type.value}_{index}"

    context: dict[str, Any] = {
        "actor": _first_text(
            payload.get("source_name"),
            payload.get("actor_name"),
            raw.get("actor"),
            raw.get("source_name"),
        )
        or DEFAULT_ACTOR,
        "target": _first_text(payload.get("target_name"), raw.get("target"), raw.get("target_name"))
        or DEFAULT_TARGET,
        "amount": _first_number(
            payload.get("damage_to_hp"),
            payload.get("amount"),
            payload.get("final_damage"),
            raw.get("amount"),
            raw.get("damage"),
        ),
        "status": _status_id(raw, payload),
        "raw_event_type": raw_type,
        "payload": {str(key): value for key, value in payload.items()},
    }
    traits = _as_mapping(payload.get("enemy_traits") or raw.get("enemy_traits"))
    if traits is not None:
        context["enemy_traits"] = {str(key): value for key, value in traits.items()}
    actor_traits = _as_mapping(payload.get("actor_traits") or raw.get("actor_traits"))
    if actor_traits is not None:
        context["actor_traits"] = {str(key): value for key, value in actor_traits.items()}

    return NarrationEvent(
        id=event_id,
        type=event_type,
        ts=_to_timestamp(raw.get("created_at", raw.get("ts", payload.get("ts"))), index),
        seed=seed,
        context=context,
    )


def map_events(
    records: Sequence[Any],
    board_type: str,
    seed: str = "",
) -> list[NarrationEvent]:
    """Map raw records in order, dropping malformed ones.

    Args:
        records: Raw event records of any shape.
        board_type: Board type hint used for board-dependent types.
        seed: Seed string stamped onto each event.

    Returns:
        Same-or-fewer NarrationEvents, in input order.
    """
    normalized_board = board_type.strip().lower()
    mapped: list[NarrationEvent] = []
    for index, record in enumerate(records):
        event = map_event(record, index, normalized_board, seed)
        if event is None:
            logger.debug(f"Dropping malformed event record at index {index}")
            continue
        mapped.append(event)
    return mapped


def map_events_with_fallback(
    records: Sequence[Any],
    board_type: str,
    state_changes: Sequence[str],
    fallback_event_id: str,
    seed: str = "",
) -> list[NarrationEvent]:
    """Map records, guaranteeing at least one event for the composer.

    When no record maps, up to six events are synthesized from the
    state-change summaries; failing that, a single anchor event carrying
    ``fallback_event_id`` is produced.
    """
    mapped = map_events(records, board_type, seed)
    if mapped:
        return mapped

    normalized_board = board_type.strip().lower()
    for index, change in enumerate(state_changes):
        summary = change.strip() if isinstance(change, str) else ""
        if not summary:
            continue
        mapped.append(
            NarrationEvent(
                id=f"state_change_{index}",
                type=NarrationEventType.QUEST_UPDATE,
                ts=index,
                seed=seed,
                context={"summary": summary, "source": "state_change"},
            )
        )
        if len(mapped) >= MAX_STATE_CHANGE_EVENTS:
            break
    if mapped:
        return mapped

    return [
        NarrationEvent(
            id=fallback_event_id.strip() or "event_fallback",
            type=NarrationEventType.QUEST_UPDATE,
            ts=0,
            seed=seed,
            context={
                "actor": DEFAULT_ACTOR,
                "target": "hostiles" if normalized_board == "combat" else "the board",
                "amount": None,
                "status": None,
            },
        )
    ]
