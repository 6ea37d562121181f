"""Tests for the template bank and scorer."""

import dataclasses

import pytest

from mythic_narrator.narrator.event_mapper import map_event
from mythic_narrator.narrator.templates import (
    TEMPLATES,
    TEMPLATES_BY_ID,
    RenderContext,
    candidate_templates,
    choose_template,
    concise_count_label,
    describe_context_clue,
    score_template,
)
from mythic_narrator.narrator.types import NarrationEventType
from mythic_narrator.rng.stream import SeededRng


@pytest.fixture
def damage_event():
    return map_event({"type": "damage", "actor": "Rook", "target": "Bone Marshal"}, 0, "combat")


@pytest.fixture
def render_context(damage_event) -> RenderContext:
    return RenderContext(
        event=damage_event,
        actor="Rook",
        target="Bone Marshal",
        amount=34,
        status="bleed",
        action_summary="",
        board_anchor="the crypt gate",
        objective=None,
        rumor=None,
        recovery_beat="Choose one concrete move and commit it.",
        board_narration="",
        attack_verb="carve",
        motion_verb="push",
        flavor_noun="torch soot gash",
    )


class TestCatalog:
    """Tests for the static catalog."""

    def test_every_event_type_covered(self):
        """Each event type has at least one template."""
        covered = {template.event_type for template in TEMPLATES}
        assert covered == set(NarrationEventType)

    def test_catalog_size(self):
        assert len(TEMPLATES) == 17

    def test_ids_unique(self):
        assert len(TEMPLATES_BY_ID) == len(TEMPLATES)

    def test_weights_positive(self):
        assert all(template.weight > 0 for template in TEMPLATES)

    def test_attack_templates_tagged_combat(self):
        for template in TEMPLATES:
            if template.event_type == NarrationEventType.ATTACK_RESOLVED:
                assert "combat" in template.tags

    def test_every_template_renders(self, render_context):
        """Every template renders a non-empty, punctuated sentence."""
        for template in TEMPLATES:
            text = template.render(render_context)
            assert text
            assert text[-1] in ".!?:\"'"

    def test_attack_render_uses_fillers(self, render_context):
        text = TEMPLATES_BY_ID["combat_hit_01"].render(render_context)
        assert text.startswith("Rook carves Bone Marshal for 34.")

    def test_default_actor_keeps_base_verb(self, render_context):
        """The default "You" actor is never conjugated."""
        you = dataclasses.replace(render_context, actor="You")
        assert TEMPLATES_BY_ID["combat_hit_01"].render(you).startswith(
            "You carve Bone Marshal for 34."
        )
        assert "You push into the next" in TEMPLATES_BY_ID["board_transition_01"].render(you)


class TestScoring:
    """Tests for score_template."""

    def test_tag_bonuses(self):
        """Tone and intensity matches add their bonuses to the base weight."""
        template = TEMPLATES_BY_ID["combat_hit_01"]
        assert score_template(template, "grim", "default", "high") == pytest.approx(4 + 1.1 + 0.7)

    def test_biome_bonus(self):
        template = TEMPLATES_BY_ID["travel_step_01"]
        assert score_template(template, "comic", "forest", "low") == pytest.approx(3 + 0.8)

    def test_no_match_is_base_weight(self):
        template = TEMPLATES_BY_ID["board_transition_01"]
        assert score_template(template, "comic", "arctic", "high") == pytest.approx(2)


class TestCandidates:
    """Tests for candidate filtering."""

    def test_filters_by_event_type(self):
        pool = candidate_templates(NarrationEventType.LEVEL_UP)
        assert [template.id for template in pool] == ["level_up_01"]

    def test_widens_when_type_exhausted(self):
        """Excluding every template of the type widens to the rest of the bank."""
        pool = candidate_templates(NarrationEventType.LEVEL_UP, {"level_up_01"})
        assert pool
        assert "level_up_01" not in {template.id for template in pool}

    def test_full_bank_when_everything_excluded(self):
        pool = candidate_templates(NarrationEventType.LEVEL_UP, TEMPLATES_BY_ID.keys())
        assert len(pool) == len(TEMPLATES)


class TestChooseTemplate:
    """Tests for choose_template."""

    def test_consumes_one_draw(self, damage_event):
        rng = SeededRng(42)
        template = choose_template(damage_event, "grim", "dungeon", "high", rng)
        assert template.event_type == NarrationEventType.ATTACK_RESOLVED
        assert len(rng.draws) == 1

    def test_respects_exclusions(self, damage_event):
        for seed in range(30):
            template = choose_template(
                damage_event, "grim", "dungeon", "high", SeededRng(seed), {"combat_hit_01"}
            )
            assert template.id != "combat_hit_01"

    def test_deterministic(self, damage_event):
        first = choose_template(damage_event, "dark", "default", "med", SeededRng(9))
        second = choose_template(damage_event, "dark", "default", "med", SeededRng(9))
        assert first.id == second.id


class TestFillers:
    """Tests for filler helpers."""

    def test_context_clue_indexes_biome_pool(self):
        assert describe_context_clue("arctic", 0) == "frost crack"
        assert describe_context_clue("arctic", 4) == "ice glare"

    def test_unknown_biome_uses_default(self):
        assert describe_context_clue("moon", 1) == "stone"

    def test_count_label(self):
        assert concise_count_label("event", 1) == "1 event"
        assert concise_count_label("event", 3) == "3 events"
