"""Tone selection and normalization.

Two tone axes exist:
- Narration tone (dark/comic/heroic/grim/mischievous/tactical) comes from the
  caller's free-text hint and scores templates.
- Moment tone (tactical/mythic/whimsical/brutal/minimalist) is chosen from
  pressure signals each call and steers the voice engine. It is never
  persisted; callers echo ``last_tone`` back to avoid immediate repeats.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from mythic_narrator.narrator.types import Intensity, NarrationTone, ToneMode
from mythic_narrator.rng.selection import (
    pick_deterministic,
    weighted_pick_without_immediate_repeat,
)

logger = logging.getLogger(__name__)

BASE_TONE_WEIGHTS: dict[ToneMode, float] = {
    ToneMode.TACTICAL: 1.6,
    ToneMode.MYTHIC: 1.3,
    ToneMode.WHIMSICAL: 0.8,
    ToneMode.BRUTAL: 0.9,
    ToneMode.MINIMALIST: 0.7,
}

HIGH_TENSION = 65
LOW_HP_PCT = 0.35
DEFAULT_HP_PCT = 0.65

LIGHT_THEME_KEYWORDS = ("town", "market", "festival")
GRIM_THEME_KEYWORDS = ("dungeon", "crypt", "grave")

TONE_LINES: dict[ToneMode, tuple[str, ...]] = {
    ToneMode.TACTICAL: (
        "The supply line is open. Move now or lose leverage.",
        "Angles are clean for one turn. Use them.",
        "You have tempo. Spend it before they reset.",
    ),
    ToneMode.MYTHIC: (
        "The sky answers in lightning.",
        "Old names wake when steel meets oath.",
        "The ground remembers who stood here.",
    ),
    ToneMode.WHIMSICAL: (
        "Someone is about to regret standing there.",
        "Luck trips over your boots and keeps running.",
        "That plan is ridiculous. It might work.",
    ),
    ToneMode.BRUTAL: (
        "It hits hard. Something cracks.",
        "Claws rake, armor sings, blood answers.",
        "One clean blow can end this.",
    ),
    ToneMode.MINIMALIST: (
        "Claws. Blood. Stone.",
        "Step. Strike. Breathe.",
        "No noise. Just impact.",
    ),
}


@dataclass(frozen=True)
class ToneSelection:
    """Chosen moment tone with a compact reason string."""

    tone: ToneMode
    reason: str
    weights: dict[ToneMode, float]


def tone_weights(
    tension: float,
    boss_present: bool,
    player_hp_pct: float,
    region_theme: str,
) -> dict[ToneMode, float]:
    """Compute moment-tone weights from pressure signals."""
    weights = dict(BASE_TONE_WEIGHTS)
    theme = region_theme.strip().lower()

    if tension >= HIGH_TENSION:
        weights[ToneMode.TACTICAL] += 0.7
        weights[ToneMode.BRUTAL] += 0.8
        weights[ToneMode.MINIMALIST] += 0.4
    if boss_present:
        weights[ToneMode.MYTHIC] += 1.2
        weights[ToneMode.BRUTAL] += 0.6
    if player_hp_pct <= LOW_HP_PCT:
        weights[ToneMode.BRUTAL] += 1.0
        weights[ToneMode.MINIMALIST] += 0.6
        weights[ToneMode.WHIMSICAL] -= 0.2
    if any(keyword in theme for keyword in LIGHT_THEME_KEYWORDS):
        weights[ToneMode.WHIMSICAL] += 0.8
        weights[ToneMode.TACTICAL] += 0.2
    if any(keyword in theme for keyword in GRIM_THEME_KEYWORDS):
        weights[ToneMode.BRUTAL] += 0.4
        weights[ToneMode.MYTHIC] += 0.5
    return weights


def select_tone_mode(
    seed_key: str,
    last_tone: ToneMode | None = None,
    tension: float = 0,
    boss_present: bool = False,
    player_hp_pct: float | None = None,
    region_theme: str = "",
) -> ToneSelection:
    """Select the moment tone for this call.

    Args:
        seed_key: Caller-supplied key; same key and signals give same tone.
        last_tone: Tone used on the previous call, avoided when possible.
        tension: Tension score, clamped to [0, 100].
        boss_present: Whether a boss is on the board.
        player_hp_pct: Player HP fraction; defaults to 0.65 when unknown.
        region_theme: Free-text biome or region name.

    Returns:
        ToneSelection with the tone and a "tone:tension:hp:boss" reason.
    """
    hp_pct = DEFAULT_HP_PCT if player_hp_pct is None else min(1.0, max(0.0, player_hp_pct))
    clamped_tension = int(min(100, max(0, tension or 0)))
    weights = tone_weights(clamped_tension, boss_present, hp_pct, region_theme)

    tone = weighted_pick_without_immediate_repeat(
        {mode.value: weight for mode, weight in weights.items()},
        seed_key,
        last_tone.value if last_tone else None,
        "tone-mode",
    )
    selected = ToneMode(tone)
    reason = f"{selected.value}:{clamped_tension}:{round(hp_pct * 100)}:{1 if boss_present else 0}"
    logger.debug(f"Moment tone selected: {reason}")
    return ToneSelection(tone=selected, reason=reason, weights=weights)


def tone_seed_line(tone: ToneMode, seed_key: str) -> str:
    """Deterministic one-liner for a moment tone."""
    pool = TONE_LINES.get(tone) or TONE_LINES[ToneMode.TACTICAL]
    return pick_deterministic(pool, seed_key, f"tone-line:{tone.value}")


def normalize_narration_tone(value: str) -> NarrationTone:
    """Map a free-text tone hint onto the narration tone enum."""
    key = value.strip().lower()
    for tone in NarrationTone:
        if key == tone.value:
            return tone
    if "whim" in key:
        return NarrationTone.COMIC
    if "brutal" in key:
        return NarrationTone.GRIM
    if "mythic" in key:
        return NarrationTone.HEROIC
    if "dark" in key:
        return NarrationTone.DARK
    return NarrationTone.TACTICAL


def normalize_intensity(value: str) -> Intensity:
    """Map a free-text intensity hint onto low/med/high."""
    key = value.strip().lower()
    for intensity in Intensity:
        if key == intensity.value:
            return intensity
    return Intensity.MED


def normalize_biome(value: str | None) -> str:
    """Bucket a free-text biome into one of the known biome keys."""
    key = (value or "").strip().lower()
    if not key:
        return "default"
    if "forest" in key:
        return "forest"
    if "desert" in key:
        return "desert"
    if "swamp" in key:
        return "swamp"
    if "arctic" in key or "ice" in key or "snow" in key:
        return "arctic"
    if "city" in key or "town" in key or "market" in key:
        return "city"
    if "dungeon" in key or "crypt" in key or "cave" in key:
        return "dungeon"
    return "default"
