"""Observability module for narrator monitoring.

Provides hooks and observers for visibility into guardrail retries,
fallbacks, final narration decisions and compaction stages.
"""

from mythic_narrator.observability.events import (
    CompactionStageEvent,
    FallbackUsedEvent,
    GuardrailRejectionEvent,
    NarrationCompleteEvent,
)
from mythic_narrator.observability.hooks import (
    CompositeHook,
    NarrationHook,
    NullHook,
)
from mythic_narrator.observability.console_observer import RichConsoleObserver

__all__ = [
    # Events
    "CompactionStageEvent",
    "FallbackUsedEvent",
    "GuardrailRejectionEvent",
    "NarrationCompleteEvent",
    # Hooks
    "CompositeHook",
    "NarrationHook",
    "NullHook",
    # Observers
    "RichConsoleObserver",
]
