"""Character budget management for the world-context prompt block.

Shrinks a nested world/campaign state into a JSON payload that fits a
character budget for an upstream model prompt. Each subtree is first
compacted on its own (unknown fields dropped, free text truncated, lists
capped). If the serialized payload is still over budget, reduction stages
run in a fixed priority order until it fits:

1. drop campaign_context
2. reduce world_state
3. reduce world_context
4. reduce dm_context
5. drop world_state
6. drop world_context
7. drop dm_context
8. reduce world_seed

A stage only applies when its subtree is present. If the payload is still
over budget after every stage, ``meta.final_chars > meta.max_chars`` says so.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from mythic_narrator.config import get_settings
from mythic_narrator.observability.events import CompactionStageEvent
from mythic_narrator.observability.hooks import NarrationHook, NullHook

logger = logging.getLogger(__name__)

MIN_PROMPT_CHARS = 700
MAX_PROMPT_CHARS = 4000

TONE_VECTOR_KEYS = (
    "darkness",
    "whimsy",
    "brutality",
    "absurdity",
    "cosmic",
    "heroic",
    "tragic",
    "cozy",
)

Payload = dict[str, Any]


@dataclass
class CompactionMeta:
    """Size accounting for one compaction."""

    raw_chars: int
    final_chars: int
    max_chars: int
    trimmed: bool
    dropped_sections: list[str] = field(default_factory=list)
    reductions: list[str] = field(default_factory=list)

    @property
    def over_budget(self) -> bool:
        return self.final_chars > self.max_chars

    def to_dict(self) -> dict[str, Any]:
        return {
            "rawChars": self.raw_chars,
            "finalChars": self.final_chars,
            "maxChars": self.max_chars,
            "trimmed": self.trimmed,
            "droppedSections": list(self.dropped_sections),
            "reductions": list(self.reductions),
        }


@dataclass
class CompactionResult:
    """Compacted payload plus its size accounting."""

    payload: Payload
    meta: CompactionMeta

    def to_dict(self) -> dict[str, Any]:
        return {"payload": self.payload, "meta": self.meta.to_dict()}


# =============================================================================
# Primitive coercion
# =============================================================================


def _as_record(value: Any) -> Mapping[str, Any] | None:
    return value if isinstance(value, Mapping) else None


def _as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _as_text_list(value: Any) -> list[str]:
    out = []
    for entry in _as_list(value):
        if isinstance(entry, str) and entry.strip():
            out.append(entry.strip())
    return out


def _first(record: Mapping[str, Any] | None, *keys: str) -> Any:
    """First non-None value among ``keys``."""
    if record is None:
        return None
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def _number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def truncate_text(value: Any, max_len: int) -> str | None:
    """Collapse whitespace and cut to ``max_len`` characters plus "...".

    Examples:
        >>> truncate_text("  a   b  ", 10)
        'a b'
        >>> truncate_text("abcdef", 3)
        'abc...'
    """
    if not isinstance(value, str):
        return None
    clean = " ".join(value.split())
    if not clean:
        return None
    if len(clean) <= max_len:
        return clean
    return f"{clean[:max_len].strip()}..."


def _keys(value: Any) -> list[str]:
    return sorted(str(key) for key in value) if isinstance(value, Mapping) else []


def measure_json(value: Any) -> int:
    """Length of the compact JSON serialization of ``value``."""
    try:
        return len(json.dumps(value, separators=(",", ":"), ensure_ascii=False))
    except (TypeError, ValueError):
        return 0


# =============================================================================
# Per-subtree compaction
# =============================================================================


def compact_tone_vector(raw: Any) -> dict[str, float] | None:
    tone = _as_record(raw)
    if tone is None:
        return None
    out = {}
    for key in TONE_VECTOR_KEYS:
        value = _number(tone.get(key))
        if value is not None:
            out[key] = max(0.0, min(1.0, round(value, 3)))
    return out or None


def compact_world_seed(raw: Mapping[str, Any] | None) -> Payload | None:
    """Title, description, seed number/string, theme tags and tone vector."""
    if raw is None:
        return None
    seed_number = _number(_first(raw, "seed_number", "seedNumber", "seed"))
    seed_string = truncate_text(_first(raw, "seed_string", "seedString"), 120)
    title = truncate_text(raw.get("title"), 120)
    description = truncate_text(raw.get("description"), 180)
    theme_tags = _as_text_list(_first(raw, "theme_tags", "themeTags"))[:10]
    tone_vector = compact_tone_vector(_first(raw, "tone_vector", "toneVector"))

    out: Payload = {}
    if title:
        out["title"] = title
    if description:
        out["description"] = description
    if seed_number is not None:
        out["seed_number"] = max(0, math.floor(seed_number))
    if seed_string:
        out["seed_string"] = seed_string
    if theme_tags:
        out["theme_tags"] = theme_tags
    if tone_vector:
        out["tone_vector"] = tone_vector
    return out or None


def _records(raw: Any) -> list[Mapping[str, Any]]:
    return [entry for entry in _as_list(raw) if isinstance(entry, Mapping)]


def compact_dominant_factions(raw: Any, limit: int) -> list[Payload]:
    rows = []
    for entry in _records(raw)[:limit]:
        row: Payload = {}
        faction_id = truncate_text(entry.get("id"), 64)
        name = truncate_text(entry.get("name"), 72)
        ideology = truncate_text(entry.get("ideology"), 92)
        power = _number(_first(entry, "power", "powerLevel"))
        if faction_id:
            row["id"] = faction_id
        if name:
            row["name"] = name
        if ideology:
            row["ideology"] = ideology
        if power is not None:
            row["power"] = max(0, math.floor(power))
        rows.append(row)
    return rows


def compact_biome_rows(raw: Any, limit: int) -> list[Payload]:
    rows = []
    for entry in _records(raw)[:limit]:
        row: Payload = {}
        region_id = truncate_text(entry.get("id"), 64)
        name = truncate_text(entry.get("name"), 72)
        biome = truncate_text(_first(entry, "dominant_biome", "biome", "dominantBiome"), 48)
        corruption = _number(entry.get("corruption"))
        dungeon_density = _number(_first(entry, "dungeon_density", "dungeonDensity"))
        if region_id:
            row["id"] = region_id
        if name:
            row["name"] = name
        if biome:
            row["biome"] = biome
        if corruption is not None:
            row["corruption"] = round(corruption, 3)
        if dungeon_density is not None:
            row["dungeon_density"] = round(dungeon_density, 3)
        rows.append(row)
    return rows


def compact_magic_rules(raw: Any) -> Payload | None:
    value = _as_record(raw)
    if value is None:
        return None
    density = truncate_text(value.get("density"), 24)
    volatility = _number(value.get("volatility"))
    schools = _as_text_list(value.get("schools"))[:4]
    out: Payload = {}
    if density:
        out["density"] = density
    if volatility is not None:
        out["volatility"] = round(volatility, 3)
    if schools:
        out["schools"] = schools
    return out or None


def compact_loot_flavor(raw: Any) -> Payload | None:
    value = _as_record(raw)
    if value is None:
        return None
    whimsical = _number(_first(value, "whimsical_scale", "whimsicalScale"))
    flourish = _as_text_list(_first(value, "flourish_samples", "flourishPool"))[:4]
    out: Payload = {}
    if whimsical is not None:
        out["whimsical_scale"] = round(whimsical, 3)
    if flourish:
        out["flourish_samples"] = flourish
    return out or None


def compact_world_context(raw: Mapping[str, Any] | None) -> Payload | None:
    """World bible summary, factions, biomes, creatures, magic and loot flavor.

    Accepts both the flat compact shape and the full world-forge shape
    (``worldBible``, ``factionGraph``, ``biomeMap`` ...).
    """
    if raw is None:
        return None
    bible = _as_record(raw.get("worldBible"))
    factions = _as_record(raw.get("factionGraph"))
    biomes = _as_record(raw.get("biomeMap"))
    creatures = _as_record(raw.get("creaturePools"))

    world_name = truncate_text(_first(raw, "world_name") or _first(bible, "worldName"), 120)
    tone_vector = compact_tone_vector(_first(raw, "tone_vector", "toneVector"))
    theme_tags = _as_text_list(_first(raw, "theme_tags", "themeTags"))[:10]
    moral_climate = truncate_text(
        _first(raw, "moral_climate") or _first(bible, "moralClimate"), 180
    )
    core_conflicts = _as_text_list(
        _first(raw, "core_conflicts") or _first(bible, "coreConflicts")
    )[:5]
    dominant_factions = compact_dominant_factions(
        _first(raw, "dominant_factions") or _first(factions, "factions"), 6
    )
    faction_tensions = _as_text_list(
        _first(raw, "faction_tensions") or _first(factions, "activeTensions")
    )[:6]
    biome_atmosphere = compact_biome_rows(
        _first(raw, "biome_atmosphere") or _first(biomes, "regions"), 6
    )
    creature_focus = _as_text_list(
        _first(raw, "creature_focus") or _first(creatures, "featuredFocus")
    )[:6]
    magic_rules = compact_magic_rules(_first(raw, "magic_rules", "magicRules"))
    loot_flavor = compact_loot_flavor(_first(raw, "loot_flavor", "lootFlavorProfile"))

    out: Payload = {}
    if world_name:
        out["world_name"] = world_name
    if tone_vector:
        out["tone_vector"] = tone_vector
    if theme_tags:
        out["theme_tags"] = theme_tags
    if moral_climate:
        out["moral_climate"] = moral_climate
    if core_conflicts:
        out["core_conflicts"] = core_conflicts
    if dominant_factions:
        out["dominant_factions"] = dominant_factions
    if faction_tensions:
        out["faction_tensions"] = faction_tensions
    if biome_atmosphere:
        out["biome_atmosphere"] = biome_atmosphere
    if creature_focus:
        out["creature_focus"] = creature_focus
    if magic_rules:
        out["magic_rules"] = magic_rules
    if loot_flavor:
        out["loot_flavor"] = loot_flavor
    return out or None


def _bias(profile: Mapping[str, Any], camel: str, snake: str) -> float:
    value = _number(_first(profile, camel, snake))
    return value if value is not None else 0.0


def compact_dm_context(raw: Mapping[str, Any] | None) -> Payload | None:
    """DM behavior profile biases plus narrative and tactical directives."""
    if raw is None:
        return None
    profile = _as_record(_first(raw, "profile", "dmBehaviorProfile"))
    narrative = _as_text_list(
        _first(raw, "narrative_directives", "narrativeDirectives", "directives")
    )[:6]
    tactical = _as_text_list(_first(raw, "tactical_directives", "tacticalDirectives"))[:5]

    out: Payload = {}
    if profile is not None:
        out["profile"] = {
            "cruelty_bias": _bias(profile, "crueltyBias", "cruelty_bias"),
            "generosity_bias": _bias(profile, "generosityBias", "generosity_bias"),
            "chaos_bias": _bias(profile, "chaosBias", "chaos_bias"),
            "fairness_bias": _bias(profile, "fairnessBias", "fairness_bias"),
            "humor_bias": _bias(profile, "humorBias", "humor_bias"),
            "memory_depth": _bias(profile, "memoryDepth", "memory_depth"),
        }
    if narrative:
        out["narrative_directives"] = narrative
    if tactical:
        out["tactical_directives"] = tactical
    return out or None


def compact_faction_states(raw: Any, limit: int) -> list[Payload]:
    """Faction state rows, strongest (by absolute power) first."""
    rows = []
    for entry in _records(raw):
        faction_id = truncate_text(_first(entry, "factionId", "faction_id"), 96)
        power = _number(_first(entry, "powerLevel", "power_level", "power"))
        trust = _number(_first(entry, "trustDelta", "trust_delta", "trust"))
        last_tick = _number(_first(entry, "lastActionTick", "last_action_tick"))
        row: Payload = {}
        if faction_id:
            row["faction_id"] = faction_id
        if power is not None:
            row["power"] = math.floor(power)
        if trust is not None:
            row["trust"] = math.floor(trust)
        if last_tick is not None:
            row["last_action_tick"] = max(0, math.floor(last_tick))
        if row:
            rows.append(row)
    rows.sort(key=lambda row: (-abs(row.get("power", 0)), str(row.get("faction_id", ""))))
    return rows[:limit]


def compact_world_history(raw: Any, limit: int) -> list[Payload]:
    """Most recent ``limit`` world history entries."""
    rows = []
    for entry in _records(raw)[-limit:] if limit > 0 else []:
        tick = _number(entry.get("tick"))
        kind = truncate_text(entry.get("type"), 80)
        summary = truncate_text(entry.get("summary"), 180)
        impacts = _as_record(entry.get("impacts"))
        row: Payload = {}
        if tick is not None:
            row["tick"] = max(0, math.floor(tick))
        if kind:
            row["type"] = kind
        if summary:
            row["summary"] = summary
        if impacts is not None:
            compact_impacts = {}
            for key, value in impacts.items():
                number = _number(value)
                if number is not None:
                    compact_impacts[str(key)] = round(number, 3)
            if compact_impacts:
                row["impacts"] = compact_impacts
        if row:
            rows.append(row)
    return rows


def compact_world_state(raw: Mapping[str, Any] | None) -> Payload | None:
    """Tick, escalation, rumors, dungeons, towns, faction states, history."""
    if raw is None:
        return None
    tick = _number(raw.get("tick"))
    escalation = _number(_first(raw, "villainEscalation", "villain_escalation"))
    rumors = _as_text_list(_first(raw, "activeRumors", "active_rumors"))[-6:]
    collapsed = _as_text_list(_first(raw, "collapsedDungeons", "collapsed_dungeons"))[-5:]
    towns = _as_text_list(_first(raw, "activeTowns", "active_towns"))[:6]
    faction_states = compact_faction_states(_first(raw, "factionStates", "faction_states"), 8)
    history = compact_world_history(raw.get("history"), 8)

    out: Payload = {}
    if tick is not None:
        out["tick"] = max(0, math.floor(tick))
    if escalation is not None:
        out["villain_escalation"] = max(0, math.floor(escalation))
    if rumors:
        out["active_rumors"] = rumors
    if collapsed:
        out["collapsed_dungeons"] = collapsed
    if towns:
        out["active_towns"] = towns
    if faction_states:
        out["faction_states"] = faction_states
    if history:
        out["history"] = history
    return out or None


def compact_campaign_context(raw: Mapping[str, Any] | None) -> Payload | None:
    """Campaign title/description plus a thin world seed and world summary."""
    if raw is None:
        return None
    world_seed = compact_world_seed(_as_record(_first(raw, "worldSeed", "world_seed")))
    world_context = (
        compact_world_context(_as_record(_first(raw, "worldContext", "world_context"))) or {}
    )
    title = truncate_text(raw.get("title"), 120)
    description = truncate_text(raw.get("description"), 200)
    version = truncate_text(_first(raw, "worldForgeVersion", "world_forge_version"), 48)

    out: Payload = {}
    if title:
        out["title"] = title
    if description:
        out["description"] = description
    if version:
        out["world_forge_version"] = version
    if world_seed:
        out["world_seed"] = world_seed
    summary = _prune(
        {
            "world_name": world_context.get("world_name"),
            "moral_climate": world_context.get("moral_climate"),
            "core_conflicts": _as_text_list(world_context.get("core_conflicts"))[:3],
            "faction_tensions": _as_text_list(world_context.get("faction_tensions"))[:3],
        }
    )
    if summary:
        out["world_context"] = summary
    return out or None


# =============================================================================
# Reduced forms
# =============================================================================


def _prune(payload: Payload) -> Payload:
    """Drop empty values so a reduced form never grows past the full one."""
    return {key: value for key, value in payload.items() if value not in (None, [], {})}


def reduce_world_state(state: Payload) -> Payload:
    return _prune(
        {
            "tick": state.get("tick"),
            "villain_escalation": state.get("villain_escalation"),
            "active_rumors": _as_text_list(state.get("active_rumors"))[:4],
            "collapsed_dungeons": _as_text_list(state.get("collapsed_dungeons"))[:3],
            "faction_states": compact_faction_states(state.get("faction_states"), 5),
            "history": compact_world_history(state.get("history"), 4),
        }
    )


def reduce_world_context(context: Payload) -> Payload:
    return _prune(
        {
            "world_name": context.get("world_name"),
            "tone_vector": context.get("tone_vector"),
            "theme_tags": _as_text_list(context.get("theme_tags"))[:6],
            "moral_climate": context.get("moral_climate"),
            "core_conflicts": _as_text_list(context.get("core_conflicts"))[:3],
            "faction_tensions": _as_text_list(context.get("faction_tensions"))[:3],
        }
    )


def reduce_dm_context(context: Payload) -> Payload:
    reduced = dict(context)
    for key in ("narrative_directives", "tactical_directives"):
        kept = _as_text_list(context.get(key))[:2]
        if kept:
            reduced[key] = kept
        else:
            reduced.pop(key, None)
    return reduced


def reduce_world_seed(seed: Payload) -> Payload:
    return _prune(
        {
            "seed_number": seed.get("seed_number"),
            "seed_string": seed.get("seed_string"),
            "theme_tags": _as_text_list(seed.get("theme_tags"))[:4],
            "tone_vector": compact_tone_vector(seed.get("tone_vector")),
        }
    )


# Stage table: (name, section, action, reducer). Order is load-bearing.
STAGES: tuple[tuple[str, str, str, Callable[[Payload], Payload] | None], ...] = (
    ("campaign_context:dropped", "campaign_context", "drop", None),
    ("world_state:reduced", "world_state", "reduce", reduce_world_state),
    ("world_context:reduced", "world_context", "reduce", reduce_world_context),
    ("dm_context:reduced", "dm_context", "reduce", reduce_dm_context),
    ("world_state:dropped", "world_state", "drop", None),
    ("world_context:dropped", "world_context", "drop", None),
    ("dm_context:dropped", "dm_context", "drop", None),
    ("world_seed:reduced", "world_seed", "reduce", reduce_world_seed),
)


def clamp_max_chars(value: Any) -> int:
    """Clamp a requested budget into [700, 4000]; junk uses the configured default."""
    number = _number(value)
    if number is None:
        number = get_settings().world_prompt_budget
    return max(MIN_PROMPT_CHARS, min(MAX_PROMPT_CHARS, math.floor(number)))


def build_world_context_block(
    world_seed: Mapping[str, Any] | None = None,
    world_context: Mapping[str, Any] | None = None,
    dm_context: Mapping[str, Any] | None = None,
    world_state: Mapping[str, Any] | None = None,
    campaign_context: Mapping[str, Any] | None = None,
    max_chars: int | None = None,
    world_forge_version: str | None = None,
    hook: NarrationHook | None = None,
) -> CompactionResult:
    """Compact world state into a payload that fits ``max_chars``.

    Args:
        world_seed: World seed subtree.
        world_context: World-forge context subtree.
        dm_context: DM behavior subtree.
        world_state: Live world state subtree.
        campaign_context: Campaign summary subtree.
        max_chars: Budget, clamped to [700, 4000]. Defaults to settings.
        world_forge_version: Version tag, emitted only when supplied.
        hook: Observability hook notified after each applied stage.

    Returns:
        CompactionResult. Never raises; an unreachable budget is reported
        through ``meta.final_chars > meta.max_chars``.
    """
    hook = hook or NullHook()
    budget = clamp_max_chars(max_chars)

    sections: dict[str, Payload | None] = {
        "world_seed": compact_world_seed(_as_record(world_seed)),
        "world_context": compact_world_context(_as_record(world_context)),
        "dm_context": compact_dm_context(_as_record(dm_context)),
        "world_state": compact_world_state(_as_record(world_state)),
        "campaign_context": compact_campaign_context(_as_record(campaign_context)),
    }
    payload: Payload = {}
    version = truncate_text(world_forge_version, 48)
    if version:
        payload["world_forge_version"] = version
    payload.update({key: value for key, value in sections.items() if value})

    raw_chars = measure_json(payload)
    final_chars = raw_chars
    dropped: list[str] = []
    reductions: list[str] = []

    for stage, section, action, reducer in STAGES:
        if final_chars <= budget:
            break
        current = payload.get(section)
        if not current:
            continue
        before = final_chars
        details: dict[str, Any] = {"section": section, "keys_before": _keys(current)}
        if action == "drop":
            del payload[section]
            dropped.append(section)
            details["keys_after"] = []
        else:
            payload[section] = reducer(current)
            reductions.append(stage)
            details["keys_after"] = _keys(payload[section])
        final_chars = measure_json(payload)
        logger.debug(f"Compaction stage {stage}: {before} -> {final_chars} (budget {budget})")
        hook.on_compaction_stage(
            CompactionStageEvent(
                stage=stage,
                chars_before=before,
                chars_after=final_chars,
                max_chars=budget,
                dropped_section=section if action == "drop" else None,
                details=details,
            )
        )

    if final_chars > budget:
        logger.debug(f"World context still over budget after all stages: {final_chars} > {budget}")

    return CompactionResult(
        payload=payload,
        meta=CompactionMeta(
            raw_chars=raw_chars,
            final_chars=final_chars,
            max_chars=budget,
            trimmed=final_chars < raw_chars,
            dropped_sections=dropped,
            reductions=reductions,
        ),
    )
