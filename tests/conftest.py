"""Core test fixtures for narrator tests."""

import pytest

from mythic_narrator.config import NarratorSettings, get_settings
from mythic_narrator.narrator.composer import ProceduralNarrator


class RecordingHook:
    """Hook that keeps every event it receives, grouped by kind."""

    def __init__(self) -> None:
        self.rejections = []
        self.fallbacks = []
        self.completions = []
        self.stages = []

    def on_guardrail_rejection(self, event) -> None:
        self.rejections.append(event)

    def on_fallback(self, event) -> None:
        self.fallbacks.append(event)

    def on_narration_complete(self, event) -> None:
        self.completions.append(event)

    def on_compaction_stage(self, event) -> None:
        self.stages.append(event)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Drop the cached settings so env changes in one test don't leak."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> NarratorSettings:
    """Settings built from defaults only, ignoring .env files."""
    return NarratorSettings(_env_file=None)


@pytest.fixture
def recording_hook() -> RecordingHook:
    return RecordingHook()


@pytest.fixture
def narrator(settings: NarratorSettings, recording_hook: RecordingHook) -> ProceduralNarrator:
    """Narrator with default settings and a recording hook."""
    return ProceduralNarrator(hook=recording_hook, settings=settings)


@pytest.fixture
def combat_request() -> dict:
    """A camelCase combat request as a request handler would forward it."""
    return {
        "campaignSeed": "42",
        "sessionId": "session-1",
        "eventId": "event-1",
        "boardType": "combat",
        "biome": "crypt",
        "tone": "grim",
        "intensity": "high",
        "events": [
            {"type": "damage", "actor": "Rook", "target": "Bone Marshal", "amount": 34},
        ],
        "actionSummary": "Rook presses the breach.",
        "recoveryBeat": "Choose one concrete move and commit it.",
        "boardAnchor": "the crypt gate",
    }
