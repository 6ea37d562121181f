"""Narrator exception definitions.

Custom exception hierarchy for the narration core. The public entry points
(``generate_narration`` and ``build_world_context_block``) never raise; these
exceptions signal programming errors in internal helpers.
"""


class NarratorError(Exception):
    """Base exception for narration operations."""

    pass


class EmptyPoolError(NarratorError, ValueError):
    """A selection helper was asked to pick from an empty pool.

    Attributes:
        operation: Name of the helper that received the empty pool.
    """

    def __init__(self, operation: str) -> None:
        super().__init__(f"Cannot {operation} from an empty pool.")
        self.operation = operation
