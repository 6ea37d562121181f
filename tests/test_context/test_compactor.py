"""Tests for world-context compaction."""

import pytest

from mythic_narrator.context.compactor import (
    STAGES,
    build_world_context_block,
    clamp_max_chars,
    compact_dm_context,
    compact_faction_states,
    compact_tone_vector,
    compact_world_context,
    measure_json,
    truncate_text,
)


def long_text(label: str, size: int) -> str:
    return (label + " ") * (size // (len(label) + 1))


@pytest.fixture
def huge_world_seed() -> dict:
    """A seed whose tags alone exceed any budget, even after reduction."""
    return {
        "title": "Ashfall",
        "seedNumber": 991,
        "themeTags": [long_text(f"tag{index}", 400) for index in range(10)],
    }


@pytest.fixture
def large_sections() -> dict:
    return {
        "world_context": {
            "world_name": "Ashfall",
            "moral_climate": long_text("grim", 400),
            "core_conflicts": [long_text("war", 300) for _ in range(5)],
            "dominant_factions": [
                {"id": f"f{index}", "name": f"Faction {index}", "ideology": long_text("order", 200)}
                for index in range(6)
            ],
        },
        "dm_context": {
            "profile": {"crueltyBias": 0.4},
            "narrative_directives": [long_text("directive", 150) for _ in range(6)],
            "tactical_directives": [long_text("tactic", 150) for _ in range(5)],
        },
        "world_state": {
            "tick": 12,
            "activeRumors": [long_text("rumor", 200) for _ in range(6)],
            "history": [
                {"tick": index, "type": "raid", "summary": long_text("raid", 250)}
                for index in range(8)
            ],
        },
        "campaign_context": {
            "title": "The Long Night",
            "description": long_text("campaign", 300),
        },
    }


class TestHelpers:
    """Tests for primitive helpers."""

    def test_truncate(self):
        assert truncate_text("abcdef", 3) == "abc..."
        assert truncate_text("  a   b  ", 10) == "a b"

    def test_truncate_rejects_non_text(self):
        assert truncate_text(5, 10) is None
        assert truncate_text("   ", 10) is None

    def test_measure_json_compact(self):
        assert measure_json({"a": [1, 2]}) == len('{"a":[1,2]}')

    def test_measure_json_non_ascii_counts_characters(self):
        assert measure_json("é") == 3

    @pytest.mark.parametrize(
        "value,expected",
        [(100, 700), (99999, 4000), (1500.9, 1500), (None, 2000), ("junk", 2000)],
    )
    def test_clamp_max_chars(self, value, expected):
        assert clamp_max_chars(value) == expected


class TestSubtrees:
    """Tests for per-subtree compaction."""

    def test_tone_vector_clamped_and_filtered(self):
        assert compact_tone_vector({"darkness": 1.7, "whimsy": -1, "unknown": 0.5}) == {
            "darkness": 1.0,
            "whimsy": 0.0,
        }

    def test_world_forge_shape(self):
        compact = compact_world_context(
            {
                "worldBible": {"worldName": "Ashfall", "moralClimate": "grim"},
                "factionGraph": {"factions": [{"id": "f1", "name": "Iron", "powerLevel": 7.9}]},
            }
        )
        assert compact == {
            "world_name": "Ashfall",
            "moral_climate": "grim",
            "dominant_factions": [{"id": "f1", "name": "Iron", "power": 7}],
        }

    def test_dm_profile_defaults(self):
        compact = compact_dm_context({"dmBehaviorProfile": {"crueltyBias": 0.4}})
        assert compact["profile"]["cruelty_bias"] == 0.4
        assert compact["profile"]["memory_depth"] == 0.0

    def test_faction_states_sorted(self):
        """Strongest absolute power first; ties break on faction id."""
        rows = compact_faction_states(
            [
                {"factionId": "b", "powerLevel": 10},
                {"factionId": "a", "powerLevel": -10},
                {"factionId": "c", "powerLevel": 50},
            ],
            8,
        )
        assert [row["faction_id"] for row in rows] == ["c", "a", "b"]


class TestBuildWorldContextBlock:
    """Tests for build_world_context_block."""

    def test_only_supplied_subtrees(self):
        """Absent subtrees never appear in the payload."""
        result = build_world_context_block(
            world_seed={"title": "Ashfall", "seedNumber": 7}, max_chars=700
        )
        assert result.payload == {"world_seed": {"title": "Ashfall", "seed_number": 7}}
        assert result.meta.final_chars <= 700
        assert not result.meta.trimmed
        assert result.meta.dropped_sections == []
        assert result.meta.reductions == []

    def test_unknown_fields_dropped(self):
        result = build_world_context_block(world_seed={"title": "A", "secret": "y"})
        assert result.payload["world_seed"] == {"title": "A"}

    def test_long_text_truncated(self):
        result = build_world_context_block(world_seed={"description": "x" * 500})
        assert result.payload["world_seed"]["description"] == "x" * 180 + "..."

    def test_forge_version_only_when_supplied(self):
        without = build_world_context_block(world_seed={"title": "A"})
        assert "world_forge_version" not in without.payload
        with_version = build_world_context_block(world_seed={"title": "A"}, world_forge_version="v2")
        assert with_version.payload["world_forge_version"] == "v2"

    def test_junk_input(self):
        result = build_world_context_block("x", 5, None, [], {})
        assert result.payload == {}
        assert result.meta.final_chars == 2

    def test_oversized_numbers_dropped(self):
        result = build_world_context_block(
            world_state={"tick": 10**400, "villain_escalation": 3},
            world_seed={"seedNumber": 10**400, "title": "Ashfall"},
        )
        assert "tick" not in result.payload["world_state"]
        assert result.payload["world_state"]["villain_escalation"] == 3
        assert "seed_number" not in result.payload["world_seed"]

    def test_fits_budget_by_dropping(self, large_sections):
        result = build_world_context_block(
            world_seed={"title": "Ashfall"}, max_chars=700, **large_sections
        )
        assert result.meta.final_chars <= 700
        assert result.meta.final_chars == measure_json(result.payload)
        assert result.meta.trimmed
        assert result.meta.dropped_sections
        assert result.meta.dropped_sections[0] == "campaign_context"
        assert result.payload["world_seed"] == {"title": "Ashfall"}

    def test_full_stage_order(self, huge_world_seed, large_sections, recording_hook):
        """An unreachable budget runs every stage in order and reports it."""
        result = build_world_context_block(
            world_seed=huge_world_seed, max_chars=700, hook=recording_hook, **large_sections
        )
        assert result.meta.dropped_sections == [
            "campaign_context",
            "world_state",
            "world_context",
            "dm_context",
        ]
        assert result.meta.reductions == [
            "world_state:reduced",
            "world_context:reduced",
            "dm_context:reduced",
            "world_seed:reduced",
        ]
        assert result.meta.over_budget
        assert list(result.payload) == ["world_seed"]
        assert [event.stage for event in recording_hook.stages] == [stage[0] for stage in STAGES]
        assert recording_hook.stages[0].dropped_section == "campaign_context"
        assert recording_hook.stages[1].dropped_section is None
        for event in recording_hook.stages:
            assert event.chars_after <= event.chars_before

    def test_stage_details_record_keys(self, huge_world_seed, large_sections, recording_hook):
        build_world_context_block(
            world_seed=huge_world_seed, max_chars=700, hook=recording_hook, **large_sections
        )
        dropped = recording_hook.stages[0]
        assert dropped.details["section"] == "campaign_context"
        assert dropped.details["keys_before"]
        assert dropped.details["keys_after"] == []
        for event in recording_hook.stages:
            if event.dropped_section is None:
                assert event.details["section"] == event.stage.split(":")[0]
                assert set(event.details["keys_after"]) <= set(event.details["keys_before"])

    def test_stages_skip_absent_sections(self, huge_world_seed, recording_hook):
        result = build_world_context_block(
            world_seed=huge_world_seed, max_chars=700, hook=recording_hook
        )
        assert result.meta.reductions == ["world_seed:reduced"]
        assert [event.stage for event in recording_hook.stages] == ["world_seed:reduced"]

    def test_meta_to_dict_camel_case(self):
        meta = build_world_context_block(world_seed={"title": "A"}).meta.to_dict()
        assert set(meta) == {
            "rawChars",
            "finalChars",
            "maxChars",
            "trimmed",
            "droppedSections",
            "reductions",
        }
        assert meta["maxChars"] == 2000
