"""ProceduralNarrator: deterministic narration composer.

This module turns one batch of gameplay events into one line of narration:
- Derives a seed from (campaign seed, session id, event id) and replays it
- Picks a template, fillers, a moment tone and a voice bundle
- Skips lines the caller's history says were already used
- Retries on guardrail rejection, then falls back to a safe line

The caller owns the line history. It is copied in from the request and the
updated lists are returned in the result, so concurrent calls share nothing.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping

from mythic_narrator.config import NarratorSettings, get_settings
from mythic_narrator.narrator.event_mapper import map_events_with_fallback
from mythic_narrator.narrator.grammar import collapse_whitespace, compact_sentence
from mythic_narrator.narrator.guardrails import ContentClassifier, is_forbidden
from mythic_narrator.narrator.history import LineHistoryBuffer
from mythic_narrator.narrator.templates import (
    ASIDE_LINES,
    ATTACK_VERBS,
    FLAVOR_NOUNS,
    MOTION_VERBS,
    RenderContext,
    Template,
    choose_template,
    concise_count_label,
    describe_context_clue,
)
from mythic_narrator.narrator.tone import (
    normalize_biome,
    normalize_intensity,
    normalize_narration_tone,
    select_tone_mode,
)
from mythic_narrator.narrator.types import (
    LineHistorySnapshot,
    NarrationDebug,
    NarrationEvent,
    NarrationRequest,
    NarrationResult,
)
from mythic_narrator.narrator.voice import (
    NarrationContext,
    VoiceBundle,
    build_narration_context,
    build_voice_narration_bundle,
    build_voice_profile,
)
from mythic_narrator.observability.events import (
    FallbackUsedEvent,
    GuardrailRejectionEvent,
    NarrationCompleteEvent,
)
from mythic_narrator.observability.hooks import NarrationHook, NullHook
from mythic_narrator.rng.seeds import build_narration_seed, build_seed_key
from mythic_narrator.rng.stream import derive

logger = logging.getLogger(__name__)

NARRATION_STREAM = "narration"
MAX_GUARDRAIL_RETRIES = 4
SECONDARY_LINE_CHANCE = 0.58
ASIDE_PICK_CHANCE = 0.1
ASIDE_LINE_CHANCE = 0.12
DEFAULT_RECOVERY_BEAT = "Choose one concrete move and commit it."
DEFAULT_BOARD_ANCHOR = "the board"

_REPEATED_PERIODS = re.compile(r"\.{2,}")


def cleanup_narration(text: str) -> str:
    """Tidy a composed string into final narration form."""
    return collapse_whitespace(_REPEATED_PERIODS.sub(".", compact_sentence(text)))


def _event_text(event: NarrationEvent, key: str, fallback: str) -> str:
    value = event.context.get(key)
    return value.strip() if isinstance(value, str) and value.strip() else fallback


def _event_amount(event: NarrationEvent) -> float | None:
    value = event.context.get("amount")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return None


def _event_status(event: NarrationEvent) -> str | None:
    value = event.context.get("status")
    if isinstance(value, str) and value.strip():
        return value.strip().replace("_", " ")
    return None


class ProceduralNarrator:
    """Composes seeded, history-aware, guardrailed narration.

    The composer is a small state machine: compose, validate, then accept or
    retry, and finally fall back when every retry was rejected.

    Usage:
        narrator = ProceduralNarrator()
        result = narrator.narrate({"campaignSeed": "c1", "events": [...]})
        print(result.text)
    """

    def __init__(
        self,
        classifier: ContentClassifier | None = None,
        hook: NarrationHook | None = None,
        settings: NarratorSettings | None = None,
        max_retries: int = MAX_GUARDRAIL_RETRIES,
    ) -> None:
        """Initialize ProceduralNarrator.

        Args:
            classifier: Content classifier for the guardrail.
            hook: Observability hook. Defaults to NullHook.
            settings: Settings. Defaults to the cached environment settings.
            max_retries: Guardrail retry cap.
        """
        self.classifier = classifier
        self.hook = hook or NullHook()
        self.settings = settings or get_settings()
        self.max_retries = max_retries

    def is_forbidden(self, text: str) -> bool:
        """Guardrail check with this narrator's classifier."""
        return is_forbidden(text, self.classifier)

    def narrate(self, request: NarrationRequest | Mapping[str, Any] | None) -> NarrationResult:
        """Generate one narration line.

        Args:
            request: A NarrationRequest or a raw mapping (snake_case or
                camelCase keys). Malformed fields fall back to defaults.

        Returns:
            NarrationResult with text, template ids, history and debug trace.
        """
        if not isinstance(request, NarrationRequest):
            request = NarrationRequest.model_validate(request if isinstance(request, Mapping) else {})

        seed_key = build_seed_key(request.campaign_seed, request.session_id, request.event_id)
        seed = build_narration_seed(request.campaign_seed, request.session_id, request.event_id)
        rng = derive(seed, NARRATION_STREAM)

        tone = normalize_narration_tone(request.tone)
        intensity = normalize_intensity(request.intensity)
        biome = normalize_biome(request.biome)

        events = map_events_with_fallback(
            request.events,
            request.board_type,
            request.state_changes,
            request.event_id,
            seed=request.campaign_seed,
        )
        primary = events[-1]
        secondary = events[-2] if len(events) > 1 else None

        moment = select_tone_mode(
            seed_key,
            last_tone=request.last_tone,
            tension=request.tension,
            boss_present=request.boss_present,
            player_hp_pct=request.player_hp_pct,
            region_theme=request.biome or "",
        )
        profile = build_voice_profile(f"{seed}:voice-profile", request.world_tone_vector)
        context = build_narration_context(
            request, events, biome, profile, moment.tone, is_blocked=self.is_forbidden
        )

        history = LineHistoryBuffer.from_lists(
            request.line_history,
            request.fragment_history,
            max_lines=request.line_history_size or self.settings.history_size,
            similarity_threshold=(
                request.similarity_threshold
                if request.similarity_threshold is not None
                else self.settings.similarity_threshold
            ),
        )
        history_before = list(history.lines)

        # Fallback ingredients must pass the guardrail on their own.
        recovery_beat = request.recovery_beat or DEFAULT_RECOVERY_BEAT
        if self.is_forbidden(recovery_beat):
            recovery_beat = DEFAULT_RECOVERY_BEAT
        board_anchor = request.board_anchor or DEFAULT_BOARD_ANCHOR
        if self.is_forbidden(board_anchor):
            board_anchor = DEFAULT_BOARD_ANCHOR

        excluded: set[str] = set()
        template = choose_template(primary, tone.value, biome, intensity.value, rng, excluded)
        attack_verb = rng.pick(ATTACK_VERBS)
        motion_verb = rng.pick(MOTION_VERBS)
        clue = describe_context_clue(biome, int(rng.next01() * 1000))
        flavor_noun = f"{clue} {rng.pick(FLAVOR_NOUNS)}"

        render_context = RenderContext(
            event=primary,
            actor=_event_text(primary, "actor", "You"),
            target=_event_text(primary, "target", "the line"),
            amount=_event_amount(primary),
            status=_event_status(primary),
            action_summary=request.action_summary,
            board_anchor=board_anchor,
            objective=request.summary_objective,
            rumor=request.summary_rumor,
            recovery_beat=recovery_beat,
            board_narration=request.board_narration,
            attack_verb=attack_verb,
            motion_verb=motion_verb,
            flavor_noun=flavor_noun,
        )

        if secondary is not None:
            secondary_line = (
                f"{concise_count_label('event', len(events))} unfolding. "
                f"{_event_text(secondary, 'actor', 'The board')} pressures "
                f"{_event_text(secondary, 'target', 'the seam')}."
            )
        else:
            secondary_line = (
                f"{request.board_narration} "
                f"{request.summary_objective or request.summary_rumor or recovery_beat}"
            )
        intro_line = f"Opening move locks around {board_anchor}." if request.intro_opening else ""
        error_line = (
            f"Action blocked: {request.execution_error}."
            if request.suppress_narration_on_error and request.execution_error
            else ""
        )

        aside_used = False
        aside_line = ""
        if rng.next01() <= ASIDE_PICK_CHANCE:
            aside_used = True
            aside_line = rng.pick(ASIDE_LINES)

        bundle = build_voice_narration_bundle(
            f"{seed}:voice-bundle", context, history, request.last_voice_mode
        )
        line_cap = max(1, profile.line_count + (1 if error_line else 0))

        # Candidates are checked against a working copy; only emitted lines
        # reach the caller's history.
        working = history.copy()
        for line in bundle.lines:
            working.push(line)
        composed: list[str] = []

        def push_candidate(value: str) -> None:
            clean = cleanup_narration(value)
            if not clean or working.should_reject(clean):
                return
            composed.append(clean)
            working.push(clean)

        if error_line:
            push_candidate(error_line)
        if intro_line:
            push_candidate(intro_line)
        push_candidate(template.render(render_context))
        for line in bundle.lines:
            clean = cleanup_narration(line)
            if clean and clean not in composed:
                composed.append(clean)
            if len(composed) >= line_cap:
                break
        if rng.next01() <= SECONDARY_LINE_CHANCE:
            push_candidate(secondary_line)
        if rng.next01() <= ASIDE_LINE_CHANCE:
            push_candidate(aside_line)

        emitted = composed[:line_cap]
        rendered = cleanup_narration(" ".join(emitted))

        attempts = 0
        while rendered and self.is_forbidden(rendered) and attempts < self.max_retries:
            attempts += 1
            logger.debug(
                f"Guardrail rejected narration (attempt {attempts}/{self.max_retries}) "
                f"template={template.id}"
            )
            self.hook.on_guardrail_rejection(
                GuardrailRejectionEvent(
                    attempt=attempts,
                    max_attempts=self.max_retries,
                    template_id=template.id,
                    text_preview=rendered[:60],
                )
            )
            excluded.add(template.id)
            template = choose_template(primary, tone.value, biome, intensity.value, rng, excluded)
            emitted = self._compose_retry(
                template=template,
                render_context=render_context,
                error_line=error_line,
                recovery_beat=recovery_beat,
                seed_key=f"{seed}:voice-retry:{attempts - 1}",
                context=context,
                history=history,
                last_bundle=bundle,
                line_cap=line_cap,
            )
            rendered = cleanup_narration(" ".join(emitted))

        fallback_used = False
        if not rendered or self.is_forbidden(rendered):
            fallback_used = True
            rendered = self._fallback(
                bundle,
                board_anchor,
                recovery_beat,
                history,
                reason="guardrail" if rendered else "empty",
            )
        else:
            for line in emitted:
                history.push(line)

        lines_after, fragments_after = history.snapshot()
        debug = NarrationDebug(
            seed=seed,
            seed_key=seed_key,
            rng_picks=list(rng.draws),
            template_id=template.id,
            template_tags=sorted(template.tags),
            tone=tone,
            moment_tone=moment.tone,
            tone_reason=moment.reason,
            voice_mode=bundle.mode,
            voice_profile=profile.as_dict(),
            biome=biome,
            intensity=intensity,
            aside_used=aside_used,
            fallback_used=fallback_used,
            guardrail_retries=attempts,
            event_count=len(events),
            event_ids=[event.id for event in events],
            event_types=[event.type for event in events],
            mapped_events=events,
            line_history_before=history_before,
            line_history_after=lines_after,
            fragment_history_after=fragments_after,
        )

        if self.settings.debug:
            logger.info(f"Narration seed={seed} template={template.id} voice={bundle.mode.value}")
        self.hook.on_narration_complete(
            NarrationCompleteEvent(
                seed=seed,
                template_id=template.id,
                voice_mode=bundle.mode.value,
                moment_tone=moment.tone.value,
                guardrail_retries=attempts,
                fallback_used=fallback_used,
                text=rendered,
            )
        )

        return NarrationResult(
            text=rendered,
            template_id=template.id,
            template_ids=[template.id],
            history=LineHistorySnapshot(lines=lines_after, fragments=fragments_after),
            debug=debug,
        )

    def _compose_retry(
        self,
        template: Template,
        render_context: RenderContext,
        error_line: str,
        recovery_beat: str,
        seed_key: str,
        context: NarrationContext,
        history: LineHistoryBuffer,
        last_bundle: VoiceBundle,
        line_cap: int,
    ) -> list[str]:
        """Rebuild the candidate lines with a new template and a salted voice bundle.

        Rejected attempts never reach ``history``; the candidate is checked
        against a fresh working copy.
        """
        working = history.copy()
        lines: list[str] = []

        def push_retry(value: str) -> None:
            clean = cleanup_narration(value)
            if not clean or working.should_reject(clean):
                return
            lines.append(clean)
            working.push(clean)

        if error_line:
            push_retry(error_line)
        push_retry(template.render(render_context))
        retry_bundle = build_voice_narration_bundle(seed_key, context, working, last_bundle.mode)
        for line in retry_bundle.lines:
            clean = cleanup_narration(line)
            if clean and clean not in lines:
                lines.append(clean)
                working.push(clean)
        push_retry(recovery_beat)
        return lines[:line_cap]

    def _fallback(
        self,
        bundle: VoiceBundle,
        board_anchor: str,
        recovery_beat: str,
        history: LineHistoryBuffer,
        reason: str,
    ) -> str:
        """Safe line: first voice line plus recovery beat, else an anchor sentence.

        Not re-checked by the guardrail; its ingredients were screened
        before composition.
        """
        first = bundle.lines[0] if bundle.lines else f"Hold {board_anchor}."
        text = cleanup_narration(f"{first} {recovery_beat}")
        level = "voice"
        if history.should_reject(text):
            text = cleanup_narration(f"Board state shifts around {board_anchor}. {recovery_beat}")
            level = "anchor"
        history.push(text)
        logger.debug(f"Narration fallback used ({level}, {reason})")
        self.hook.on_fallback(FallbackUsedEvent(level=level, reason=reason, text=text))
        return text


def generate_narration(
    request: NarrationRequest | Mapping[str, Any] | None,
    classifier: ContentClassifier | None = None,
    hook: NarrationHook | None = None,
) -> NarrationResult:
    """Generate narration with a one-off ProceduralNarrator.

    Args:
        request: NarrationRequest or raw mapping.
        classifier: Optional content classifier for the guardrail.
        hook: Optional observability hook.

    Returns:
        NarrationResult.
    """
    return ProceduralNarrator(classifier=classifier, hook=hook).narrate(request)
