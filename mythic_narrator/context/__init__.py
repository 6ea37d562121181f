"""World-context compaction for upstream prompts."""

from mythic_narrator.context.compactor import (
    CompactionMeta,
    CompactionResult,
    build_world_context_block,
    measure_json,
    truncate_text,
)

__all__ = [
    "CompactionMeta",
    "CompactionResult",
    "build_world_context_block",
    "measure_json",
    "truncate_text",
]
