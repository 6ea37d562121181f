"""Event dataclasses for observability hooks.

These events are emitted by the narration composer and the world-context
compactor at key decision points so a caller can see why a line or payload
came out the way it did.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class GuardrailRejectionEvent:
    """Emitted when a composed candidate fails the content guardrail."""

    attempt: int
    max_attempts: int
    template_id: str
    text_preview: str = ""
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class FallbackUsedEvent:
    """Emitted when the composer falls back to a safe line."""

    level: str  # "voice" or "anchor"
    reason: str  # "guardrail" or "empty"
    text: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class NarrationCompleteEvent:
    """Emitted once per narration call with the final decision summary."""

    seed: int
    template_id: str
    voice_mode: str
    moment_tone: str
    guardrail_retries: int
    fallback_used: bool
    text: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class CompactionStageEvent:
    """Emitted after each compaction stage that changed the payload."""

    stage: str
    chars_before: int
    chars_after: int
    max_chars: int
    dropped_section: str | None = None
    timestamp: datetime = field(default_factory=datetime.now)
    details: dict[str, Any] = field(default_factory=dict)
