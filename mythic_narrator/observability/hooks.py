"""Observability hook protocol and implementations.

The NarrationHook protocol defines the interface for receiving events from
the narrator and the compactor. Implementations can render to console,
collect events in tests, or aggregate metrics.
"""

from typing import Protocol, runtime_checkable

from mythic_narrator.observability.events import (
    CompactionStageEvent,
    FallbackUsedEvent,
    GuardrailRejectionEvent,
    NarrationCompleteEvent,
)


@runtime_checkable
class NarrationHook(Protocol):
    """Protocol for observability hooks.

    Implement this protocol to receive narrator events.
    """

    def on_guardrail_rejection(self, event: GuardrailRejectionEvent) -> None:
        """Called when a candidate fails the guardrail."""
        ...

    def on_fallback(self, event: FallbackUsedEvent) -> None:
        """Called when the fallback ladder produces the final text."""
        ...

    def on_narration_complete(self, event: NarrationCompleteEvent) -> None:
        """Called once per narration call."""
        ...

    def on_compaction_stage(self, event: CompactionStageEvent) -> None:
        """Called after each applied compaction stage."""
        ...


class NullHook:
    """No-op hook for when observability is disabled.

    This is the default hook. Using it avoids None checks in the pipeline.
    """

    def on_guardrail_rejection(self, event: GuardrailRejectionEvent) -> None:
        pass

    def on_fallback(self, event: FallbackUsedEvent) -> None:
        pass

    def on_narration_complete(self, event: NarrationCompleteEvent) -> None:
        pass

    def on_compaction_stage(self, event: CompactionStageEvent) -> None:
        pass


class CompositeHook:
    """Combines multiple hooks into one.

    Events are dispatched to all hooks in order.
    """

    def __init__(self, hooks: list[NarrationHook]) -> None:
        """Initialize with a list of hooks.

        Args:
            hooks: List of hooks to dispatch events to.
        """
        self.hooks = hooks

    def on_guardrail_rejection(self, event: GuardrailRejectionEvent) -> None:
        for hook in self.hooks:
            hook.on_guardrail_rejection(event)

    def on_fallback(self, event: FallbackUsedEvent) -> None:
        for hook in self.hooks:
            hook.on_fallback(event)

    def on_narration_complete(self, event: NarrationCompleteEvent) -> None:
        for hook in self.hooks:
            hook.on_narration_complete(event)

    def on_compaction_stage(self, event: CompactionStageEvent) -> None:
        for hook in self.hooks:
            hook.on_compaction_stage(event)
