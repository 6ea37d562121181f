"""Seeded procedural narration and world-context compaction."""

from mythic_narrator.context import CompactionResult, build_world_context_block
from mythic_narrator.narrator import (
    NarrationRequest,
    NarrationResult,
    ProceduralNarrator,
    generate_narration,
)

__version__ = "0.1.0"

__all__ = [
    "CompactionResult",
    "NarrationRequest",
    "NarrationResult",
    "ProceduralNarrator",
    "build_world_context_block",
    "generate_narration",
]
