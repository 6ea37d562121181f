"""Procedural narration: events in, one guarded line of flavor text out.

Usage:
    >>> from mythic_narrator.narrator import generate_narration
    >>> result = generate_narration({"campaignSeed": "c1", "events": [{"type": "damage"}]})
    >>> bool(result.text)
    True
"""

# Types
from mythic_narrator.narrator.types import (
    Intensity,
    LineHistorySnapshot,
    NarrationDebug,
    NarrationEvent,
    NarrationEventType,
    NarrationRequest,
    NarrationResult,
    NarrationTone,
    ToneMode,
    VoiceMode,
)

# Building blocks
from mythic_narrator.narrator.event_mapper import map_events, map_events_with_fallback
from mythic_narrator.narrator.guardrails import (
    ContentClassifier,
    KeywordContentClassifier,
    is_forbidden,
)
from mythic_narrator.narrator.history import LineHistoryBuffer, line_similarity
from mythic_narrator.narrator.templates import TEMPLATES, Template, choose_template
from mythic_narrator.narrator.tone import ToneSelection, select_tone_mode
from mythic_narrator.narrator.voice import (
    NarrationContext,
    VoiceProfile,
    build_voice_narration_bundle,
    build_voice_profile,
    build_voice_prompt_template,
    select_voice_mode,
)

# Composer
from mythic_narrator.narrator.composer import ProceduralNarrator, generate_narration

__all__ = [
    # Types
    "Intensity",
    "LineHistorySnapshot",
    "NarrationDebug",
    "NarrationEvent",
    "NarrationEventType",
    "NarrationRequest",
    "NarrationResult",
    "NarrationTone",
    "ToneMode",
    "VoiceMode",
    # Building blocks
    "map_events",
    "map_events_with_fallback",
    "ContentClassifier",
    "KeywordContentClassifier",
    "is_forbidden",
    "LineHistoryBuffer",
    "line_similarity",
    "TEMPLATES",
    "Template",
    "choose_template",
    "ToneSelection",
    "select_tone_mode",
    "NarrationContext",
    "VoiceProfile",
    "build_voice_narration_bundle",
    "build_voice_profile",
    "build_voice_prompt_template",
    "select_voice_mode",
    # Composer
    "ProceduralNarrator",
    "generate_narration",
]
