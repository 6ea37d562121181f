"""Static narration template bank and scorer.

The catalog is closed: each template is an id, an event type, a base weight,
a tag set, and a pure render function over a RenderContext. Selection scores
templates against the current tone, biome and intensity and then draws from
the scored pool on the composer's stream, so the pick is weighted rather
than an argmax.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable

from mythic_narrator.narrator.grammar import (
    article_for,
    compact_sentence,
    pluralize,
    third_person,
)
from mythic_narrator.narrator.types import NarrationEvent, NarrationEventType
from mythic_narrator.rng.stream import SeededRng

# Score bonuses for tag matches
TONE_BONUS = 1.1
BIOME_BONUS = 0.8
INTENSITY_BONUS = 0.7


@dataclass(frozen=True)
class RenderContext:
    """Variables available to template render functions."""

    event: NarrationEvent
    actor: str
    target: str
    amount: float | None
    status: str | None
    action_summary: str
    board_anchor: str
    objective: str | None
    rumor: str | None
    recovery_beat: str
    board_narration: str
    attack_verb: str
    motion_verb: str
    flavor_noun: str


@dataclass(frozen=True)
class Template:
    """A tagged, parametrized prose render function keyed by event type."""

    id: str
    event_type: NarrationEventType
    weight: float
    tags: frozenset[str]
    render: Callable[[RenderContext], str]


def _amount(ctx: RenderContext) -> int:
    return max(0, int(ctx.amount or 0))


def _conjugate(ctx: RenderContext, verb: str) -> str:
    # "You" takes the base form.
    return verb if ctx.actor.strip().lower() == "you" else third_person(verb)


TEMPLATES: tuple[Template, ...] = (
    Template(
        id="combat_hit_01",
        event_type=NarrationEventType.ATTACK_RESOLVED,
        weight=4,
        tags=frozenset({"combat", "grim", "high"}),
        render=lambda ctx: compact_sentence(
            f"{ctx.actor} {_conjugate(ctx, ctx.attack_verb)} {ctx.target} for {_amount(ctx)}. "
            f"{ctx.recovery_beat}"
        ),
    ),
    Template(
        id="combat_hit_02",
        event_type=NarrationEventType.ATTACK_RESOLVED,
        weight=3,
        tags=frozenset({"combat", "dark", "med"}),
        render=lambda ctx: compact_sentence(
            f"{ctx.actor} drives {article_for(ctx.flavor_noun)} {ctx.flavor_noun} into "
            f"{ctx.target}. Pressure stays on: {ctx.action_summary or ctx.recovery_beat}"
        ),
    ),
    Template(
        id="combat_hit_03",
        event_type=NarrationEventType.ATTACK_RESOLVED,
        weight=2,
        tags=frozenset({"combat", "heroic", "high"}),
        render=lambda ctx: compact_sentence(
            f"{ctx.actor} lands the turn and rips momentum away from {ctx.target}. "
            f"{ctx.recovery_beat}"
        ),
    ),
    Template(
        id="combat_status_01",
        event_type=NarrationEventType.STATUS_TICK,
        weight=3,
        tags=frozenset({"combat", "grim", "med"}),
        render=lambda ctx: compact_sentence(
            f"{ctx.target} eats another tick of {ctx.status or 'pressure'} while "
            f"{ctx.actor} keeps the lane sealed."
        ),
    ),
    Template(
        id="combat_status_02",
        event_type=NarrationEventType.STATUS_TICK,
        weight=2,
        tags=frozenset({"combat", "dark", "high"}),
        render=lambda ctx: compact_sentence(
            f"{ctx.status or 'The effect'} keeps chewing through {ctx.target}. {ctx.recovery_beat}"
        ),
    ),
    Template(
        id="loot_drop_01",
        event_type=NarrationEventType.LOOT_DROPPED,
        weight=3,
        tags=frozenset({"loot", "mischievous", "med", "dungeon"}),
        render=lambda ctx: compact_sentence(
            f"The dust settles and a prize drops out of the noise. {ctx.board_anchor} just paid up."
        ),
    ),
    Template(
        id="loot_drop_02",
        event_type=NarrationEventType.LOOT_DROPPED,
        weight=2,
        tags=frozenset({"loot", "heroic", "low"}),
        render=lambda ctx: compact_sentence(
            f"{ctx.actor} pulls spoils from the wreckage. "
            + (f"Objective: {ctx.objective}." if ctx.objective else ctx.recovery_beat)
        ),
    ),
    Template(
        id="travel_step_01",
        event_type=NarrationEventType.TRAVEL_STEP,
        weight=3,
        tags=frozenset({"travel", "tactical", "med", "forest"}),
        render=lambda ctx: compact_sentence(
            f"Boots hit the road and {ctx.motion_verb} toward {ctx.board_anchor}. {ctx.recovery_beat}"
        ),
    ),
    Template(
        id="travel_step_02",
        event_type=NarrationEventType.TRAVEL_STEP,
        weight=2,
        tags=frozenset({"travel", "dark", "low", "swamp", "desert"}),
        render=lambda ctx: compact_sentence(
            "The route narrows. "
            + (f"Rumor bite: {ctx.rumor}." if ctx.rumor else ctx.board_narration or ctx.recovery_beat)
        ),
    ),
    Template(
        id="dungeon_enter_01",
        event_type=NarrationEventType.DUNGEON_ROOM_ENTERED,
        weight=3,
        tags=frozenset({"dungeon", "grim", "high"}),
        render=lambda ctx: compact_sentence(
            f"You cross the threshold and the room answers immediately. "
            f"{ctx.action_summary or ctx.recovery_beat}"
        ),
    ),
    Template(
        id="dungeon_enter_02",
        event_type=NarrationEventType.DUNGEON_ROOM_ENTERED,
        weight=2,
        tags=frozenset({"dungeon", "dark", "med"}),
        render=lambda ctx: compact_sentence(
            f"Stone, stale air, and one clean decision point: {ctx.recovery_beat}"
        ),
    ),
    Template(
        id="npc_dialogue_01",
        event_type=NarrationEventType.NPC_DIALOGUE,
        weight=3,
        tags=frozenset({"town", "city", "comic", "low"}),
        render=lambda ctx: compact_sentence(
            "A local cuts through the noise with a live lead. "
            + (ctx.rumor or ctx.action_summary or ctx.recovery_beat)
        ),
    ),
    Template(
        id="npc_dialogue_02",
        event_type=NarrationEventType.NPC_DIALOGUE,
        weight=2,
        tags=frozenset({"town", "city", "mischievous", "med"}),
        render=lambda ctx: compact_sentence(
            "The conversation turns sharp, then useful. " + (ctx.objective or ctx.recovery_beat)
        ),
    ),
    Template(
        id="level_up_01",
        event_type=NarrationEventType.LEVEL_UP,
        weight=2,
        tags=frozenset({"progression", "heroic", "med"}),
        render=lambda ctx: compact_sentence(
            f"Power spikes and the board notices. {ctx.actor} now has "
            f"{article_for('edge')} edge to spend."
        ),
    ),
    Template(
        id="quest_update_01",
        event_type=NarrationEventType.QUEST_UPDATE,
        weight=3,
        tags=frozenset({"quest", "tactical", "med"}),
        render=lambda ctx: compact_sentence(
            "Quest pressure updates in real time. "
            + (ctx.objective or ctx.action_summary or ctx.recovery_beat)
        ),
    ),
    Template(
        id="quest_update_02",
        event_type=NarrationEventType.QUEST_UPDATE,
        weight=2,
        tags=frozenset({"quest", "dark", "low"}),
        render=lambda ctx: compact_sentence(
            f"Threads tighten around {ctx.board_anchor}. {ctx.rumor or ctx.recovery_beat}"
        ),
    ),
    Template(
        id="board_transition_01",
        event_type=NarrationEventType.BOARD_TRANSITION,
        weight=2,
        tags=frozenset({"transition", "tactical", "low"}),
        render=lambda ctx: compact_sentence(
            f"State shifts cleanly. {ctx.actor} {_conjugate(ctx, ctx.motion_verb)} into the next "
            "pressure window."
        ),
    ),
)

TEMPLATES_BY_ID: dict[str, Template] = {template.id: template for template in TEMPLATES}

ASIDE_LINES: tuple[str, ...] = (
    "The board keeps receipts.",
    "Bad odds are still odds.",
    "Someone upstairs is betting against you.",
    "The map never blinks first.",
    "Yes, this is the fun part.",
)

ATTACK_VERBS: tuple[str, ...] = (
    "carve",
    "slam",
    "crack",
    "hammer",
    "gouge",
    "rupture",
    "detonate",
    "cleave",
)

MOTION_VERBS: tuple[str, ...] = ("press", "angle", "drive", "cut", "slip", "pivot", "push")

FLAVOR_NOUNS: tuple[str, ...] = (
    "shockwave",
    "gash",
    "hammerfall",
    "impact lane",
    "open seam",
    "kill angle",
)

BIOME_HINTS: dict[str, tuple[str, ...]] = {
    "forest": ("wet roots", "pine-dark cover", "mossed stone"),
    "desert": ("blown grit", "sun-cut ridges", "dry thunder"),
    "swamp": ("black water", "rot haze", "reed shadows"),
    "arctic": ("frost crack", "ice glare", "white hush"),
    "city": ("iron alleys", "chimney smoke", "market noise"),
    "dungeon": ("cold masonry", "rust damp", "torch soot"),
    "default": ("dust", "stone", "pressure"),
}


def describe_context_clue(biome: str, amount: int) -> str:
    """Pick a biome texture phrase by index."""
    pool = BIOME_HINTS.get(biome) or BIOME_HINTS["default"]
    return pool[max(0, amount) % len(pool)]


def concise_count_label(label: str, count: int) -> str:
    """Format "3 events" style labels."""
    return f"{count} {pluralize(label, count)}"


def score_template(template: Template, tone: str, biome: str, intensity: str) -> float:
    """Score a template against the current tone, biome and intensity.

    Score = max(1, weight) + 1.1 * [tone in tags] + 0.8 * [biome in tags]
    + 0.7 * [intensity in tags].
    """
    score = max(1.0, float(template.weight))
    if tone in template.tags:
        score += TONE_BONUS
    if biome in template.tags:
        score += BIOME_BONUS
    if intensity in template.tags:
        score += INTENSITY_BONUS
    return score


def candidate_templates(
    event_type: NarrationEventType,
    excluded_ids: Iterable[str] = (),
) -> list[Template]:
    """Templates for ``event_type``, widening to the full bank when none remain."""
    excluded = set(excluded_ids)
    matching = [t for t in TEMPLATES if t.event_type == event_type and t.id not in excluded]
    if matching:
        return matching
    remaining = [t for t in TEMPLATES if t.id not in excluded]
    return remaining or list(TEMPLATES)


def choose_template(
    event: NarrationEvent,
    tone: str,
    biome: str,
    intensity: str,
    rng: SeededRng,
    excluded_ids: Iterable[str] = (),
) -> Template:
    """Draw a template from the scored candidate pool.

    Args:
        event: Primary event being narrated.
        tone: Normalized narration tone value.
        biome: Normalized biome key.
        intensity: Normalized intensity value.
        rng: Composer stream; exactly one draw is consumed.
        excluded_ids: Template ids rejected earlier in this call.

    Returns:
        The chosen template.
    """
    pool = candidate_templates(event.type, excluded_ids)
    scores = {template.id: score_template(template, tone, biome, intensity) for template in pool}
    return rng.weighted_pick(pool, weight=lambda template: scores[template.id])
