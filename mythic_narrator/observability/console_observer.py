"""Rich console observer for narrator visibility.

Uses the Rich library to print guardrail retries, fallbacks, final
narration lines and compaction stages as they happen.
"""

from rich.console import Console

from mythic_narrator.observability.events import (
    CompactionStageEvent,
    FallbackUsedEvent,
    GuardrailRejectionEvent,
    NarrationCompleteEvent,
)


class RichConsoleObserver:
    """Pretty console output using Rich."""

    # Voice mode colors for the completion line
    MODE_STYLES = {
        "tactical": "cyan",
        "brutal": "red",
        "mischievous": "magenta",
        "dark": "bright_black",
        "whimsical": "bright_magenta",
        "blessing": "green",
        "punishment": "yellow",
        "mythic": "blue",
        "minimalist": "white",
    }

    def __init__(
        self,
        console: Console | None = None,
        show_text: bool = True,
        compact: bool = False,
        indent: str = "  ",
    ) -> None:
        """Initialize the console observer.

        Args:
            console: Rich Console instance. Creates new one if not provided.
            show_text: Print the final narration text.
            compact: Skip per-stage compaction output.
            indent: Indentation string for nested output.
        """
        self.console = console or Console()
        self.show_text = show_text
        self.compact = compact
        self.indent = indent
        self.narration_count = 0
        self.fallback_count = 0
        self.retry_count = 0

    def on_guardrail_rejection(self, event: GuardrailRejectionEvent) -> None:
        """Render a guardrail retry."""
        self.retry_count += 1
        self.console.print(
            f"{self.indent}[yellow]guardrail[/] retry ({event.attempt}/{event.max_attempts}) "
            f"template={event.template_id}"
        )

    def on_fallback(self, event: FallbackUsedEvent) -> None:
        """Render a fallback."""
        self.fallback_count += 1
        self.console.print(
            f"{self.indent}[red]fallback[/] {event.level} ({event.reason})", style="dim"
        )

    def on_narration_complete(self, event: NarrationCompleteEvent) -> None:
        """Render the final narration line."""
        self.narration_count += 1
        style = self.MODE_STYLES.get(event.voice_mode, "white")
        header = (
            f"[{style}]{event.voice_mode}[/] / {event.moment_tone} "
            f"[dim]{event.template_id} seed={event.seed}[/]"
        )
        self.console.print(f"{self.indent}{header}")
        if self.show_text:
            self.console.print(f"{self.indent}{self.indent}{event.text}")

    def on_compaction_stage(self, event: CompactionStageEvent) -> None:
        """Render one compaction stage."""
        if self.compact:
            return
        dropped = f" [red]dropped {event.dropped_section}[/]" if event.dropped_section else ""
        self.console.print(
            f"{self.indent}[blue]{event.stage}[/] {event.chars_before} -> "
            f"{event.chars_after}/{event.max_chars}{dropped}"
        )

    def print_summary(self) -> None:
        """Print counts of narrations, retries and fallbacks."""
        if not self.narration_count:
            return
        self.console.print("\n[bold]Narration Summary:[/]")
        self.console.print(f"  narrations: {self.narration_count}")
        self.console.print(f"  guardrail retries: {self.retry_count}")
        self.console.print(f"  fallbacks: {self.fallback_count}")

    def reset(self) -> None:
        """Reset counters."""
        self.narration_count = 0
        self.fallback_count = 0
        self.retry_count = 0
