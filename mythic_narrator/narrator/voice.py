"""Voice engine: the drifting narrator persona.

Each call derives a voice profile (eight personality levels) from the seed
key and the world tone vector, picks one of nine voice modes from pressure
signals, and renders short phrase lines anchored to something concrete on
the board. Every decision draws from its own labelled stream, so voice
choices never shift the composer's draw sequence.

History is passed in as a ``LineHistoryBuffer`` handle; accepted lines are
pushed onto it.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Sequence

from mythic_narrator.narrator.grammar import compact_sentence
from mythic_narrator.narrator.history import LineHistoryBuffer
from mythic_narrator.narrator.types import (
    NarrationEvent,
    NarrationEventType,
    NarrationRequest,
    ToneMode,
    VoiceMode,
)
from mythic_narrator.rng.stream import SeededRng

logger = logging.getLogger(__name__)

DEFAULT_HP_PCT = 0.65
DEFAULT_THREAT = 0.52
MAX_HOOKS = 5
MAX_REPUTATION_TAGS = 8
MAX_RECENT_EVENTS = 12
MAX_BUNDLE_LINES = 3
REPEAT_DAMPING = 0.08
MIN_MODE_WEIGHT = 0.05
MOMENT_TONE_BONUS = 0.6

_FACTION_HEAT = re.compile(r"\b(?:high|critical|war|feud|fracture)\b", re.IGNORECASE)


# =============================================================================
# Phrase pools
# =============================================================================

PHRASE_POOLS: dict[VoiceMode, tuple[str, ...]] = {
    VoiceMode.TACTICAL: (
        "That window is closing.",
        "Move now or surrender tempo.",
        "You just made yourself a target.",
        "Their flank is open for one heartbeat.",
        "Commit or lose the lane.",
        "You have leverage. Spend it.",
        "One clean step wins this exchange.",
        "Hold center and deny the angle.",
        "You can still steal initiative.",
        "The line bends where you push.",
        "Do not let them reset formation.",
        "They gave you range. Punish it.",
        "You are one tile from control.",
        "A safer path exists, but not for long.",
        "The next trade decides momentum.",
        "Their guard is late on the follow-up.",
        "You can pin this route right now.",
        "You do not need fancy. You need timing.",
        "Trade distance for certainty.",
        "They are overextended. Make it expensive.",
    ),
    VoiceMode.BRUTAL: (
        "That one hurt.",
        "Bone gave before steel did.",
        "You felt that in your teeth.",
        "The impact carried through armor.",
        "That blow took years off somebody.",
        "The tile shudders under that hit.",
        "You hear something crack.",
        "They are leaking confidence and blood.",
        "That strike rang like a bell.",
        "The air snaps on contact.",
        "No clean blocks left in this lane.",
        "That cut opened a real problem.",
        "You can smell iron from here.",
        "The next hit could end it.",
        "That was not a warning shot.",
        "Somebody is rethinking their life choices.",
        "That impact turned posture into panic.",
        "This fight is chewing through nerves.",
        "They staggered hard on that connection.",
        "You can hear panic in the breathing.",
    ),
    VoiceMode.MISCHIEVOUS: (
        "Oh no. That was optimistic.",
        "I respect the confidence.",
        "Bold. Possibly stupid.",
        "That plan had charm, if not survival value.",
        "You almost made that look easy.",
        "Did you mean to do that? It worked anyway.",
        "Cute angle. Mean result.",
        "I adore this chaos.",
        "A reckless move, and somehow correct.",
        "That was either genius or luck in a wig.",
        "You keep improvising in dangerous ways.",
        "Somebody is going to write songs about that mistake.",
        "That was illegal in three kingdoms and still efficient.",
        "You just turned panic into leverage.",
        "Unhinged, but tactical enough.",
        "That was rude. I approve.",
        "A little chaos goes a long way.",
        "You made that look intentional.",
        "Messy execution. Great outcome.",
        "You keep feeding me dramatic material.",
    ),
    VoiceMode.DARK: (
        "The street remembers blood.",
        "Lanternlight lies.",
        "Something hungry is watching this lane.",
        "The shadows lean in when steel sings.",
        "Every victory here has a bill attached.",
        "The map keeps score in scars.",
        "Tonight favors predators.",
        "Mercy is expensive on this board.",
        "The ground drinks first, asks later.",
        "Even silence sounds armed.",
        "Fear travels faster than footsteps here.",
        "This district chews up hesitation.",
        "You can feel history pressing at your back.",
        "The walls remember louder names than yours.",
        "The night wants a debt paid.",
        "Every corner has teeth.",
        "Trust is rare; consequences are not.",
        "The dark loves overconfidence.",
        "The board has no sympathy for slow hands.",
        "Weak footing. Strong consequences.",
    ),
    VoiceMode.WHIMSICAL: (
        "That escalated delightfully.",
        "Someone is about to regret a life choice.",
        "Chaos put on a party hat.",
        "The board is feeling theatrical tonight.",
        "A dramatic flourish, unexpectedly practical.",
        "The universe winked at that move.",
        "That looked ridiculous and deeply effective.",
        "Confetti would be appropriate if we had time.",
        "That was a very expensive magic trick.",
        "The crowd would cheer if they were not terrified.",
        "A little sparkle, a lot of damage.",
        "This is one bad decision away from legend.",
        "You turned panic into performance art.",
        "There is whimsy in that violence.",
        "The board approves your nonsense.",
        "That was cartoon logic and battlefield math.",
        "Absurd strategy. Solid payoff.",
        "A chaotic move with suspiciously clean timing.",
        "That had style points and real consequences.",
        "Delightful. Also horrifying.",
    ),
    VoiceMode.BLESSING: (
        "Luck leans your way for now.",
        "Fine. I will let you have that one.",
        "A small mercy lands on your side.",
        "The board gives you one clean breath.",
        "You earned a narrow blessing.",
        "The next step feels strangely favored.",
        "Fortune nods, once.",
        "A kinder angle opens unexpectedly.",
        "The timing finally respects you.",
        "A rare break appears. Take it.",
        "You catch a lucky seam in the chaos.",
        "The storm blinks and you slip through.",
        "Call it grace or call it timing.",
        "The worst outcome passes you by.",
        "A softer hand guides this exchange.",
        "The board pays back some of your risk.",
        "One clean reprieve is yours.",
        "For now, destiny is being helpful.",
        "The lane opens as if invited.",
        "You get one generous heartbeat.",
    ),
    VoiceMode.PUNISHMENT: (
        "You tempted fate. It noticed.",
        "Did you think I was not watching?",
        "The board punishes sloppy timing.",
        "That debt is due now.",
        "Bad footing meets bad luck.",
        "The lane answers with interest.",
        "You gave them permission to hurt you.",
        "That greed cost blood.",
        "A careless step, an expensive lesson.",
        "The map has teeth for that mistake.",
        "This is what overconfidence buys.",
        "You left the door open. They walked through.",
        "The board collects on hesitation.",
        "That mistake echoed too loudly.",
        "Now you pay for that angle.",
        "A punished gamble, exactly on schedule.",
        "You blinked first. They did not.",
        "That shortcut found a trap.",
        "The board is correcting your attitude.",
        "This is consequences, with receipts.",
    ),
    VoiceMode.MYTHIC: (
        "Old names stir when you move like that.",
        "The sky keeps a ledger of bold decisions.",
        "Something ancient just leaned closer.",
        "Your strike wakes sleeping thunder.",
        "Legends are forged in moments this sharp.",
        "The battlefield answers like an altar.",
        "The horizon bends toward your intent.",
        "Oaths and iron are speaking the same language.",
        "The board hums with mythic static.",
        "Even the wind sounds ceremonial.",
        "A larger story just took notice.",
        "The ground remembers this rhythm.",
    ),
    VoiceMode.MINIMALIST: (
        "Claws. Blood. Stone.",
        "Step. Strike. Breathe.",
        "Too close. Too late.",
        "You move. They break.",
        "No room for waste.",
        "One hit. One lesson.",
        "Cold steel. Hot consequence.",
        "Short move. Big damage.",
        "Fast hands. Hard truth.",
        "Hold line. Hit first.",
        "Bad angle. Worse ending.",
        "No speeches. Just outcomes.",
    ),
}

PERSONA_POOLS: dict[str, tuple[str, ...]] = {
    "aggressive": (
        "It commits. Too close. Claws everywhere.",
        "No hesitation. It is all forward momentum.",
        "It lunges again before breathing.",
    ),
    "cunning": (
        "It waits, then feints left.",
        "It reads your weight shift before striking.",
        "That one hunts mistakes, not openings.",
    ),
    "chaotic": (
        "It thrashes wildly and overextends.",
        "The pattern is chaos, which is still dangerous.",
        "It wobbles into violence and somehow connects.",
    ),
    "brutal": (
        "It hits hard and keeps hitting.",
        "It is here to break armor, then nerve.",
        "Bone-first tactics. No subtlety.",
    ),
    "whimsical": (
        "It bonks, wobbles, and still causes problems.",
        "The creature looks silly right up to impact.",
        "Comedic posture, lethal follow-through.",
    ),
}

BASE_MODE_WEIGHTS: dict[VoiceMode, float] = {
    VoiceMode.TACTICAL: 1.4,
    VoiceMode.BRUTAL: 0.8,
    VoiceMode.MISCHIEVOUS: 0.7,
    VoiceMode.DARK: 0.7,
    VoiceMode.WHIMSICAL: 0.5,
    VoiceMode.BLESSING: 0.4,
    VoiceMode.PUNISHMENT: 0.6,
    VoiceMode.MYTHIC: 0.8,
    VoiceMode.MINIMALIST: 0.4,
}

MOOD_MODE_BONUS: dict[str, dict[VoiceMode, float]] = {
    "menacing": {VoiceMode.DARK: 0.3, VoiceMode.PUNISHMENT: 0.2},
    "playful": {VoiceMode.MISCHIEVOUS: 0.3, VoiceMode.WHIMSICAL: 0.2},
    "grandiose": {VoiceMode.MYTHIC: 0.4},
    "measured": {VoiceMode.TACTICAL: 0.3},
}

# Tone-vector keys that feed each profile bias
DARK_KEYS = ("dark", "grim", "danger")
WHIMSY_KEYS = ("whimsical", "comic", "bright")
MYTHIC_KEYS = ("mythic", "epic", "legendary")
TACTICAL_KEYS = ("tactical", "strategy", "discipline")


def _clamp01(value: float, fallback: float = 0.0) -> float:
    if value is None or not math.isfinite(value):
        return fallback
    return min(1.0, max(0.0, value))


def _tone_value(vector: dict[str, float], keys: Sequence[str]) -> float:
    for key in keys:
        value = vector.get(key)
        if value is not None and math.isfinite(value):
            return value
    return 0.0


def _number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


# =============================================================================
# Profile and context
# =============================================================================


@dataclass(frozen=True)
class VoiceProfile:
    """Personality levels of the narrator for one call, each in [0, 1]."""

    sarcasm: float
    cruelty: float
    humor: float
    verbosity: float
    mythic_intensity: float
    absurdity: float
    favoritism: float
    memory_recall: float

    @property
    def mood(self) -> str:
        """Coarse mood label derived from the levels."""
        if self.cruelty >= 0.6 and self.cruelty >= self.humor:
            return "menacing"
        if self.humor >= 0.6 or self.sarcasm >= 0.7:
            return "playful"
        if self.mythic_intensity >= 0.68:
            return "grandiose"
        return "measured"

    @property
    def line_count(self) -> int:
        """Candidate line count gated by verbosity."""
        if self.verbosity >= 0.68:
            return 3
        if self.verbosity >= 0.35:
            return 2
        return 1

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {key: round(value, 6) for key, value in asdict(self).items()}
        data["mood"] = self.mood
        return data


def build_voice_profile(
    seed_key: str,
    world_tone_vector: dict[str, float] | None = None,
) -> VoiceProfile:
    """Derive the voice profile from a seed key and world tone vector.

    The eight levels are drawn in a fixed order from the ``{seed_key}:profile``
    stream and nudged by tone-vector biases before clamping.
    """
    rng = SeededRng.from_key(f"{seed_key}:profile")
    vector = {key.strip().lower(): value for key, value in (world_tone_vector or {}).items()}
    dark = _tone_value(vector, DARK_KEYS)
    whimsy = _tone_value(vector, WHIMSY_KEYS)
    mythic = _tone_value(vector, MYTHIC_KEYS)
    tactical = _tone_value(vector, TACTICAL_KEYS)

    return VoiceProfile(
        sarcasm=_clamp01(0.28 + rng.next01() * 0.52 + whimsy * 0.07),
        cruelty=_clamp01(0.2 + rng.next01() * 0.58 + dark * 0.08),
        humor=_clamp01(0.18 + rng.next01() * 0.6 + whimsy * 0.09),
        verbosity=_clamp01(0.26 + rng.next01() * 0.5 + tactical * 0.05),
        mythic_intensity=_clamp01(0.24 + rng.next01() * 0.58 + mythic * 0.1),
        absurdity=_clamp01(0.12 + rng.next01() * 0.62 + whimsy * 0.08),
        favoritism=_clamp01(0.1 + rng.next01() * 0.55),
        memory_recall=_clamp01(0.2 + rng.next01() * 0.62 + tactical * 0.05),
    )


@dataclass
class NarrationContext:
    """Screened board context the voice engine anchors lines to."""

    board_type: str
    biome: str
    profile: VoiceProfile
    moment_tone: ToneMode = ToneMode.TACTICAL
    active_hooks: list[str] = field(default_factory=list)
    faction_tension: str = "moderate"
    player_hp_pct: float = DEFAULT_HP_PCT
    enemy_threat_level: float = DEFAULT_THREAT
    recent_events: list[NarrationEvent] = field(default_factory=list)
    player_reputation_tags: list[str] = field(default_factory=list)
    world_tone_vector: dict[str, float] = field(default_factory=dict)
    is_blocked: Callable[[str], bool] = lambda text: False


def infer_enemy_threat(events: Sequence[NarrationEvent]) -> float:
    """Estimate enemy threat from the event mix when the caller gives none."""
    if not events:
        return 0.45
    score = 0.0
    for event in events:
        if event.type == NarrationEventType.ATTACK_RESOLVED:
            score += 0.12
        elif event.type == NarrationEventType.STATUS_TICK:
            score += 0.08
        elif event.type == NarrationEventType.BOARD_TRANSITION:
            score += 0.04
        amount = _number(event.context.get("amount"))
        if amount is not None and amount > 0:
            score += min(0.18, amount / 200)
    return _clamp01(0.3 + score, DEFAULT_THREAT)


def build_narration_context(
    request: NarrationRequest,
    events: Sequence[NarrationEvent],
    biome: str,
    profile: VoiceProfile,
    moment_tone: ToneMode = ToneMode.TACTICAL,
    is_blocked: Callable[[str], bool] | None = None,
) -> NarrationContext:
    """Collect and screen the context the voice engine may quote.

    Hooks and reputation tags that ``is_blocked`` flags are dropped, and
    flagged board, biome and faction labels fall back to neutral defaults,
    so nothing forbidden can reach a voice line.
    """
    blocked = is_blocked or (lambda text: False)

    def screened(values: Sequence[Any], limit: int) -> list[str]:
        out = []
        for value in values:
            text = _text(value)
            if text and not blocked(text):
                out.append(text)
        return out[:limit]

    hooks = screened(
        [
            *request.active_hooks,
            request.summary_objective,
            request.summary_rumor,
            request.action_summary,
            request.board_anchor,
        ],
        MAX_HOOKS,
    )
    reputation = screened(request.player_reputation_tags, MAX_REPUTATION_TAGS)

    board_type = request.board_type or "combat"
    if blocked(board_type):
        board_type = "combat"
    region = request.biome or biome
    if blocked(region):
        region = biome
    faction = request.faction_tension or "moderate"
    if blocked(faction):
        faction = "moderate"

    threat = request.enemy_threat_level
    return NarrationContext(
        board_type=board_type,
        biome=region,
        profile=profile,
        moment_tone=moment_tone,
        active_hooks=hooks,
        faction_tension=faction,
        player_hp_pct=_clamp01(
            request.player_hp_pct if request.player_hp_pct is not None else DEFAULT_HP_PCT,
            DEFAULT_HP_PCT,
        ),
        enemy_threat_level=(
            _clamp01(threat, DEFAULT_THREAT) if threat is not None else infer_enemy_threat(events)
        ),
        recent_events=list(events)[-MAX_RECENT_EVENTS:],
        player_reputation_tags=reputation,
        world_tone_vector=dict(request.world_tone_vector),
        is_blocked=blocked,
    )


# =============================================================================
# Mode selection and lines
# =============================================================================


def voice_mode_weights(context: NarrationContext) -> dict[VoiceMode, float]:
    """Raw voice-mode weights before repeat damping and jitter."""
    weights = dict(BASE_MODE_WEIGHTS)
    profile = context.profile

    if context.board_type == "combat":
        weights[VoiceMode.TACTICAL] += 0.9
        weights[VoiceMode.BRUTAL] += 0.7
        weights[VoiceMode.PUNISHMENT] += 0.4
    else:
        weights[VoiceMode.WHIMSICAL] += 0.4
        weights[VoiceMode.MISCHIEVOUS] += 0.4
        weights[VoiceMode.MYTHIC] += 0.3

    if context.player_hp_pct <= 0.35:
        weights[VoiceMode.BRUTAL] += 0.8
        weights[VoiceMode.PUNISHMENT] += 0.7
        weights[VoiceMode.MINIMALIST] += 0.4
    elif context.player_hp_pct >= 0.82:
        weights[VoiceMode.BLESSING] += 0.2
        weights[VoiceMode.MISCHIEVOUS] += 0.2

    if context.enemy_threat_level >= 0.7:
        weights[VoiceMode.TACTICAL] += 0.6
        weights[VoiceMode.BRUTAL] += 0.5
        weights[VoiceMode.DARK] += 0.4

    weights[VoiceMode.MISCHIEVOUS] += profile.sarcasm * 0.65
    weights[VoiceMode.WHIMSICAL] += profile.humor * 0.8 + profile.absurdity * 0.7
    weights[VoiceMode.DARK] += profile.cruelty * 0.7
    weights[VoiceMode.PUNISHMENT] += profile.cruelty * 0.75
    weights[VoiceMode.BLESSING] += profile.favoritism * 0.8
    weights[VoiceMode.MYTHIC] += profile.mythic_intensity * 0.95
    weights[VoiceMode.MINIMALIST] += max(0.0, 0.65 - profile.verbosity) * 0.7
    weights[VoiceMode.TACTICAL] += profile.verbosity * 0.35

    for mode, bonus in MOOD_MODE_BONUS.get(profile.mood, {}).items():
        weights[mode] += bonus
    weights[VoiceMode(context.moment_tone.value)] += MOMENT_TONE_BONUS

    if _FACTION_HEAT.search(context.faction_tension):
        weights[VoiceMode.TACTICAL] += 0.35
        weights[VoiceMode.DARK] += 0.35
    return weights


def select_voice_mode(
    seed_key: str,
    context: NarrationContext,
    last_voice_mode: VoiceMode | None = None,
) -> VoiceMode:
    """Pick the voice mode; the previous mode keeps only 8% of its weight."""
    rng = SeededRng.from_key(f"{seed_key}:voice-mode")
    entries: list[tuple[VoiceMode, float]] = []
    for mode, weight in voice_mode_weights(context).items():
        if mode == last_voice_mode:
            adjusted = weight * REPEAT_DAMPING
        else:
            adjusted = weight + rng.next01() * 0.06
        entries.append((mode, max(MIN_MODE_WEIGHT, adjusted)))
    return rng.weighted_pick(entries, weight=lambda entry: entry[1])[0]


def contextual_anchor(context: NarrationContext, seed_key: str) -> str:
    """One concrete board detail for a voice line to lean on."""
    rng = SeededRng.from_key(f"{seed_key}:anchor")
    anchors: list[str] = []
    if context.active_hooks:
        anchors.append(f"Hook: {rng.pick(context.active_hooks)}.")
    anchors.append(f"Board: {context.board_type} in {context.biome}.")
    if context.faction_tension.strip():
        anchors.append(f"Faction friction: {context.faction_tension}.")
    anchors.append(
        f"HP {round(context.player_hp_pct * 100)}%, "
        f"threat {round(context.enemy_threat_level * 100)}%."
    )
    if context.player_reputation_tags:
        anchors.append(f"Reputation echo: {rng.pick(context.player_reputation_tags)}.")
    if context.recent_events:
        latest = context.recent_events[-1]
        actor = _text(latest.context.get("actor"))
        target = _text(latest.context.get("target"))
        if actor and target and not context.is_blocked(f"{actor} {target}"):
            anchors.append(f"Latest exchange: {actor} pressured {target}.")
    return compact_sentence(rng.pick(anchors))


def build_voice_line(
    seed_key: str,
    context: NarrationContext,
    mode: VoiceMode,
    history: LineHistoryBuffer,
) -> str:
    """Render one voice line for ``mode``, skipping phrases history rejects.

    When every phrase collides with history, the pool's first phrase is used
    anyway so the bundle always has a line.
    """
    rng = SeededRng.from_key(f"{seed_key}:voice-line:{mode.value}")
    pool = PHRASE_POOLS.get(mode) or PHRASE_POOLS[VoiceMode.TACTICAL]
    anchor = contextual_anchor(context, f"{seed_key}:{mode.value}")
    for attempt in range(len(pool)):
        phrase = pool[(attempt + int(rng.next01() * len(pool))) % len(pool)]
        line = compact_sentence(f"{phrase} {anchor}")
        if history.should_reject(line):
            continue
        history.push(line)
        return line
    line = compact_sentence(f"{pool[0]} {anchor}")
    history.push(line)
    return line


def _persona_pool(traits: dict[str, Any], rng: SeededRng) -> tuple[str, ...]:
    aggression = _number(traits.get("aggression"))
    intelligence = _number(traits.get("intelligence"))
    instinct = _text(traits.get("instinct_type")).lower()

    pool = PERSONA_POOLS["aggressive"]
    if (intelligence is not None and intelligence >= 0.66) or instinct in ("ambush", "duelist"):
        pool = PERSONA_POOLS["cunning"]
    elif instinct == "chaotic":
        pool = PERSONA_POOLS["chaotic"]
    elif (aggression is not None and aggression >= 0.72) or instinct == "predator":
        pool = PERSONA_POOLS["brutal"]
    if instinct == "pack" and rng.next01() > 0.4:
        pool = PERSONA_POOLS["cunning"]
    if rng.next01() <= 0.12:
        pool = PERSONA_POOLS["whimsical"]
    return pool


def build_enemy_personality_line(
    seed_key: str,
    context: NarrationContext,
    history: LineHistoryBuffer,
) -> str | None:
    """Persona line for the latest event carrying enemy or actor traits.

    Returns:
        The line, or None when no event has traits or every line repeats.
    """
    event = next(
        (
            entry
            for entry in reversed(context.recent_events)
            if isinstance(entry.context.get("enemy_traits") or entry.context.get("actor_traits"), dict)
        ),
        None,
    )
    if event is None:
        return None
    traits = event.context.get("enemy_traits") or event.context.get("actor_traits")
    rng = SeededRng.from_key(f"{seed_key}:enemy-persona")
    pool = _persona_pool(traits, rng)

    actor = _text(event.context.get("actor")) or "The enemy"
    if context.is_blocked(actor):
        actor = "The enemy"
    for attempt in range(len(pool)):
        line = compact_sentence(
            f"{actor}: {pool[(attempt + int(rng.next01() * len(pool))) % len(pool)]}"
        )
        if history.should_reject(line):
            continue
        history.push(line)
        return line
    return None


def _secondary_mode(context: NarrationContext, mode: VoiceMode) -> VoiceMode:
    profile = context.profile
    if context.player_hp_pct <= 0.28 and profile.favoritism >= 0.45:
        return VoiceMode.BLESSING
    if context.player_hp_pct <= 0.45 and profile.cruelty >= 0.5:
        return VoiceMode.PUNISHMENT
    if context.enemy_threat_level >= 0.72:
        return VoiceMode.TACTICAL
    if profile.humor >= 0.62:
        return VoiceMode.MISCHIEVOUS
    if profile.mythic_intensity >= 0.68:
        return VoiceMode.MYTHIC
    return VoiceMode.DARK if mode == VoiceMode.TACTICAL else VoiceMode.TACTICAL


@dataclass(frozen=True)
class VoiceBundle:
    """Voice mode plus up to three rendered voice lines."""

    mode: VoiceMode
    lines: tuple[str, ...]


def build_voice_narration_bundle(
    seed_key: str,
    context: NarrationContext,
    history: LineHistoryBuffer,
    last_voice_mode: VoiceMode | None = None,
) -> VoiceBundle:
    """Primary mode line, secondary mode line, optional persona line.

    Args:
        seed_key: Bundle key; each line derives its own sub-key from it.
        context: Screened narration context.
        history: Emitted history. Candidates are tested against a scratch
            copy, so the caller decides which lines get recorded.
        last_voice_mode: Mode used on the previous call.

    Returns:
        VoiceBundle with at most three lines.
    """
    mode = select_voice_mode(seed_key, context, last_voice_mode)
    scratch = history.copy()
    lines = [build_voice_line(f"{seed_key}:primary", context, mode, scratch)]

    secondary = _secondary_mode(context, mode)
    if secondary != mode:
        lines.append(build_voice_line(f"{seed_key}:secondary", context, secondary, scratch))

    persona = build_enemy_personality_line(f"{seed_key}:persona", context, scratch)
    if persona:
        lines.append(persona)

    logger.debug(f"Voice bundle: mode={mode.value} secondary={secondary.value} lines={len(lines)}")
    return VoiceBundle(
        mode=mode,
        lines=tuple(line for line in lines if line.strip())[:MAX_BUNDLE_LINES],
    )


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def build_voice_prompt_template(
    context: NarrationContext,
    recent_lines: Sequence[str],
    recent_fragments: Sequence[str],
) -> str:
    """Strict voice instruction block for model-driven narration.

    Args:
        context: Narration context for the call.
        recent_lines: Line history; the last 20 are quoted.
        recent_fragments: Fragment history; the last 32 are quoted.

    Returns:
        Multi-line prompt block.
    """
    profile = {key: round(value, 3) for key, value in asdict(context.profile).items()}
    compact_context = {
        "board_type": context.board_type,
        "biome": context.biome,
        "active_hooks": context.active_hooks[:4],
        "faction_tension": context.faction_tension,
        "player_hp_pct": round(context.player_hp_pct, 3),
        "enemy_threat_level": round(context.enemy_threat_level, 3),
        "player_reputation_tags": context.player_reputation_tags[:6],
        "world_tone_vector": context.world_tone_vector,
        "moment_tone": context.moment_tone.value,
    }
    return "\n".join(
        [
            "DM VOICE TEMPLATE (STRICT):",
            "- You are the Mischievous Mythic Dungeon Master.",
            "- Ground every sentence in provided narration context. No floating filler.",
            "- Rotate tone and sentence structure. Never reuse exact or near-duplicate lines from history.",
            "- Keep lines sharp, high-signal, and board-aware. Avoid telemetry or corporate phrasing.",
            f"- Voice profile: {_dumps(profile)}",
            f"- Narration context: {_dumps(compact_context)}",
            f"- Recent line history (avoid repeats): {_dumps(list(recent_lines)[-20:])}",
            f"- Recent phrase fragments (avoid reuse): {_dumps(list(recent_fragments)[-32:])}",
        ]
    )
