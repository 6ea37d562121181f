"""Tests for observability hooks and the console observer."""

import io

from rich.console import Console

from mythic_narrator.observability import (
    CompactionStageEvent,
    CompositeHook,
    FallbackUsedEvent,
    GuardrailRejectionEvent,
    NarrationCompleteEvent,
    NarrationHook,
    NullHook,
    RichConsoleObserver,
)


class CountingHook:
    def __init__(self) -> None:
        self.calls = []

    def on_guardrail_rejection(self, event) -> None:
        self.calls.append("rejection")

    def on_fallback(self, event) -> None:
        self.calls.append("fallback")

    def on_narration_complete(self, event) -> None:
        self.calls.append("complete")

    def on_compaction_stage(self, event) -> None:
        self.calls.append("stage")


def complete_event(**overrides) -> NarrationCompleteEvent:
    values = dict(
        seed=7,
        template_id="combat_hit_01",
        voice_mode="brutal",
        moment_tone="tactical",
        guardrail_retries=0,
        fallback_used=False,
        text="Rook carves the Bone Marshal for 34.",
    )
    values.update(overrides)
    return NarrationCompleteEvent(**values)


def make_observer(**kwargs) -> tuple[RichConsoleObserver, io.StringIO]:
    buffer = io.StringIO()
    console = Console(file=buffer, force_terminal=False, width=120)
    return RichConsoleObserver(console=console, **kwargs), buffer


class TestHooks:
    """Tests for NullHook and CompositeHook."""

    def test_null_hook_satisfies_protocol(self):
        assert isinstance(NullHook(), NarrationHook)

    def test_composite_dispatches_in_order(self):
        first, second = CountingHook(), CountingHook()
        hook = CompositeHook([first, second])
        hook.on_guardrail_rejection(GuardrailRejectionEvent(1, 4, "combat_hit_01"))
        hook.on_fallback(FallbackUsedEvent(level="voice", reason="guardrail", text="Hold."))
        hook.on_narration_complete(complete_event())
        hook.on_compaction_stage(CompactionStageEvent("world_state:reduced", 900, 800, 700))
        assert first.calls == ["rejection", "fallback", "complete", "stage"]
        assert second.calls == first.calls


class TestRichConsoleObserver:
    """Tests for RichConsoleObserver."""

    def test_completion_printed(self):
        observer, buffer = make_observer()
        observer.on_narration_complete(complete_event())
        output = buffer.getvalue()
        assert "brutal" in output
        assert "Rook carves the Bone Marshal for 34." in output
        assert observer.narration_count == 1

    def test_hide_text(self):
        observer, buffer = make_observer(show_text=False)
        observer.on_narration_complete(complete_event())
        assert "Bone Marshal" not in buffer.getvalue()

    def test_compact_skips_stages(self):
        observer, buffer = make_observer(compact=True)
        observer.on_compaction_stage(CompactionStageEvent("world_state:dropped", 900, 600, 700))
        assert buffer.getvalue() == ""

    def test_stage_printed(self):
        observer, buffer = make_observer()
        observer.on_compaction_stage(
            CompactionStageEvent("world_state:dropped", 900, 600, 700, dropped_section="world_state")
        )
        output = buffer.getvalue()
        assert "900 -> 600/700" in output
        assert "dropped world_state" in output

    def test_summary_and_reset(self):
        observer, buffer = make_observer()
        observer.on_guardrail_rejection(GuardrailRejectionEvent(1, 4, "combat_hit_01"))
        observer.on_fallback(FallbackUsedEvent(level="anchor", reason="empty", text="Hold."))
        observer.on_narration_complete(complete_event(fallback_used=True))
        observer.print_summary()
        output = buffer.getvalue()
        assert "narrations: 1" in output
        assert "guardrail retries: 1" in output
        assert "fallbacks: 1" in output

        observer.reset()
        assert (observer.narration_count, observer.retry_count, observer.fallback_count) == (0, 0, 0)

    def test_summary_silent_without_narrations(self):
        observer, buffer = make_observer()
        observer.print_summary()
        assert buffer.getvalue() == ""

    def test_observer_drives_narrator(self, settings):
        from mythic_narrator.narrator.composer import ProceduralNarrator

        observer, buffer = make_observer()
        result = ProceduralNarrator(hook=observer, settings=settings).narrate({"eventId": "e1"})
        assert observer.narration_count == 1
        assert result.debug.template_id in buffer.getvalue()
