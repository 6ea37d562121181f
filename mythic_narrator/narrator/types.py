"""Pydantic schemas and enums for procedural narration.

This module contains the data models for:
- Narration events (NarrationEvent, NarrationEventType)
- Tone enumerations (NarrationTone, ToneMode, Intensity, VoiceMode)
- Narrator input (NarrationRequest)
- Narrator output (NarrationResult, NarrationDebug, LineHistorySnapshot)

Request fields accept camelCase aliases, and every field coerces malformed
values to a safe default instead of failing validation.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel


# =============================================================================
# Enums
# =============================================================================


class NarrationEventType(str, Enum):
    """Uniform event kinds the narrator knows how to voice."""

    ATTACK_RESOLVED = "attack_resolved"
    STATUS_TICK = "status_tick"
    LOOT_DROPPED = "loot_dropped"
    TRAVEL_STEP = "travel_step"
    DUNGEON_ROOM_ENTERED = "dungeon_room_entered"
    NPC_DIALOGUE = "npc_dialogue"
    LEVEL_UP = "level_up"
    QUEST_UPDATE = "quest_update"
    BOARD_TRANSITION = "board_transition"


class NarrationTone(str, Enum):
    """Narration tone used to score templates."""

    DARK = "dark"
    COMIC = "comic"
    HEROIC = "heroic"
    GRIM = "grim"
    MISCHIEVOUS = "mischievous"
    TACTICAL = "tactical"


class ToneMode(str, Enum):
    """Moment tone selected from pressure signals."""

    TACTICAL = "tactical"
    MYTHIC = "mythic"
    WHIMSICAL = "whimsical"
    BRUTAL = "brutal"
    MINIMALIST = "minimalist"


class Intensity(str, Enum):
    """Coarse intensity hint."""

    LOW = "low"
    MED = "med"
    HIGH = "high"


class VoiceMode(str, Enum):
    """Phrasing bank used by the voice engine."""

    TACTICAL = "tactical"
    BRUTAL = "brutal"
    MISCHIEVOUS = "mischievous"
    DARK = "dark"
    WHIMSICAL = "whimsical"
    BLESSING = "blessing"
    PUNISHMENT = "punishment"
    MYTHIC = "mythic"
    MINIMALIST = "minimalist"


# =============================================================================
# Events
# =============================================================================


class NarrationEvent(BaseModel):
    """One normalized gameplay event. Produced once, never mutated."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: NarrationEventType
    ts: int = 0
    seed: str = ""
    context: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Narrator input
# =============================================================================


def _finite_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


class NarrationRequest(BaseModel):
    """Everything the composer needs for one narration call.

    Missing or malformed fields fall back to defaults, so constructing a
    request from an untrusted mapping never raises.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    # Seed inputs
    campaign_seed: str = "campaign"
    session_id: str = "session"
    event_id: str = "event"

    # Board and tone hints
    board_type: str = "combat"
    biome: str | None = None
    tone: str = "tactical"
    intensity: str = "med"

    # Raw gameplay input
    events: list[Any] = Field(default_factory=list)
    state_changes: list[str] = Field(default_factory=list)

    # Free text
    action_summary: str = ""
    recovery_beat: str = "Choose one concrete move and commit it."
    board_anchor: str = "the board"
    summary_objective: str | None = None
    summary_rumor: str | None = None
    board_narration: str = ""

    # Flags
    intro_opening: bool = False
    suppress_narration_on_error: bool = False
    execution_error: str | None = None

    # Anti-repetition state owned by the caller
    line_history: list[str] = Field(default_factory=list)
    fragment_history: list[str] | None = None
    line_history_size: int | None = None
    similarity_threshold: float | None = None
    last_tone: ToneMode | None = None
    last_voice_mode: VoiceMode | None = None

    # Pressure signals
    world_tone_vector: dict[str, float] = Field(default_factory=dict)
    tension: float = 0.0
    boss_present: bool = False
    player_hp_pct: float | None = None
    enemy_threat_level: float | None = None
    faction_tension: str = "moderate"
    active_hooks: list[str] = Field(default_factory=list)
    player_reputation_tags: list[str] = Field(default_factory=list)

    @field_validator(
        "campaign_seed",
        "session_id",
        "event_id",
        "board_type",
        "tone",
        "intensity",
        "action_summary",
        "recovery_beat",
        "board_anchor",
        "board_narration",
        "faction_tension",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, value: Any, info: ValidationInfo) -> str:
        if isinstance(value, str):
            return value.strip()
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return cls.model_fields[info.field_name].default

    @field_validator(
        "biome", "summary_objective", "summary_rumor", "execution_error", mode="before"
    )
    @classmethod
    def _coerce_optional_text(cls, value: Any) -> str | None:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    @field_validator(
        "intro_opening", "suppress_narration_on_error", "boss_present", mode="before"
    )
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return False

    @field_validator("events", mode="before")
    @classmethod
    def _coerce_events(cls, value: Any) -> list[Any]:
        return list(value) if isinstance(value, (list, tuple)) else []

    @field_validator(
        "state_changes",
        "line_history",
        "active_hooks",
        "player_reputation_tags",
        mode="before",
    )
    @classmethod
    def _coerce_text_list(cls, value: Any) -> list[str]:
        if not isinstance(value, (list, tuple)):
            return []
        return [entry for entry in value if isinstance(entry, str)]

    @field_validator("fragment_history", mode="before")
    @classmethod
    def _coerce_optional_text_list(cls, value: Any) -> list[str] | None:
        if not isinstance(value, (list, tuple)):
            return None
        return [entry for entry in value if isinstance(entry, str)]

    @field_validator("line_history_size", mode="before")
    @classmethod
    def _coerce_history_size(cls, value: Any) -> int | None:
        number = _finite_float(value)
        return int(number) if number is not None else None

    @field_validator(
        "similarity_threshold", "player_hp_pct", "enemy_threat_level", mode="before"
    )
    @classmethod
    def _coerce_optional_number(cls, value: Any) -> float | None:
        return _finite_float(value)

    @field_validator("tension", mode="before")
    @classmethod
    def _coerce_tension(cls, value: Any) -> float:
        number = _finite_float(value)
        return number if number is not None else 0.0

    @field_validator("last_tone", mode="before")
    @classmethod
    def _coerce_last_tone(cls, value: Any) -> ToneMode | None:
        if isinstance(value, ToneMode):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            if key in {mode.value for mode in ToneMode}:
                return ToneMode(key)
        return None

    @field_validator("last_voice_mode", mode="before")
    @classmethod
    def _coerce_last_voice_mode(cls, value: Any) -> VoiceMode | None:
        if isinstance(value, VoiceMode):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            if key in {mode.value for mode in VoiceMode}:
                return VoiceMode(key)
        return None

    @field_validator("world_tone_vector", mode="before")
    @classmethod
    def _coerce_tone_vector(cls, value: Any) -> dict[str, float]:
        if not isinstance(value, dict):
            return {}
        out: dict[str, float] = {}
        for key, raw in value.items():
            number = _finite_float(raw)
            if isinstance(key, str) and number is not None:
                out[key.strip().lower()] = number
        return out


# =============================================================================
# Narrator output
# =============================================================================


class LineHistorySnapshot(BaseModel):
    """History buffer contents handed back to the caller."""

    lines: list[str] = Field(default_factory=list)
    fragments: list[str] = Field(default_factory=list)


class NarrationDebug(BaseModel):
    """Trace of every decision made during one narration call."""

    model_config = ConfigDict(use_enum_values=True)

    seed: int
    seed_key: str
    rng_picks: list[float]
    template_id: str
    template_tags: list[str]
    tone: NarrationTone
    moment_tone: ToneMode
    tone_reason: str
    voice_mode: VoiceMode
    voice_profile: dict[str, Any]
    biome: str
    intensity: Intensity
    aside_used: bool
    fallback_used: bool
    guardrail_retries: int
    event_count: int
    event_ids: list[str]
    event_types: list[NarrationEventType]
    mapped_events: list[NarrationEvent]
    line_history_before: list[str]
    line_history_after: list[str]
    fragment_history_after: list[str]


class NarrationResult(BaseModel):
    """Final narration text plus the debug trace."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    text: str
    template_id: str
    template_ids: list[str]
    history: LineHistorySnapshot
    debug: NarrationDebug
