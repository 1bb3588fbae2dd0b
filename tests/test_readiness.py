"""Tests for design_council/readiness.py."""

import pytest

from design_council.models import DesignState, ReadinessScore
from design_council.readiness import (
    READY_TO_BUILD,
    phase_for,
    project_readiness,
    readiness_message,
    score_readiness,
    update_readiness,
)


def test_empty_state_scores_only_optional_workflow():
    score = score_readiness(DesignState())
    assert score.schema == 0
    assert score.ui == 0
    assert score.workflow == 50
    assert score.overall == 10


@pytest.mark.parametrize("fields,expected", [(0, 0), (1, 30), (2, 30), (3, 50), (4, 50), (5, 70), (12, 70)])
def test_schema_breakpoints(fields, expected):
    assert score_readiness(DesignState(field_count=fields)).schema == expected


def test_schema_bonuses_are_additive_and_clamped():
    state = DesignState(field_count=5, has_description=True, relationship_count=2, computed_field_count=1)
    assert score_readiness(state).schema == 100


def test_schema_bonus_needs_fields():
    assert score_readiness(DesignState(has_description=True, relationship_count=3)).schema == 0


@pytest.mark.parametrize(
    "layout,components,responsive,expected",
    [(False, 5, True, 0), (True, 0, False, 50), (True, 2, False, 70), (True, 4, False, 85), (True, 4, True, 95)],
)
def test_ui_breakpoints(layout, components, responsive, expected):
    state = DesignState(has_layout=layout, component_count=components, responsive_layout=responsive)
    assert score_readiness(state).ui == expected


def test_workflow_score_clamped():
    assert score_readiness(DesignState(workflow_count=1)).workflow == 70
    assert score_readiness(DesignState(workflow_count=10)).workflow == 100


def test_overall_is_weighted_sum():
    state = DesignState(field_count=5, has_layout=True, component_count=4, workflow_count=1)
    score = score_readiness(state)
    assert score.overall == round(0.4 * 70 + 0.4 * 85 + 0.2 * 70)


def test_overall_non_decreasing_as_counts_grow():
    previous = -1
    for n in range(0, 12):
        state = DesignState(
            field_count=n,
            has_description=n > 2,
            relationship_count=n // 3,
            has_layout=n > 1,
            component_count=n,
            responsive_layout=n > 6,
            workflow_count=n // 2,
        )
        score = score_readiness(state)
        assert 0 <= score.overall <= 100
        assert score.overall >= previous
        previous = score.overall


def test_update_readiness_recomputes_overall():
    updated = update_readiness(ReadinessScore(), schema=100, ui=100, workflow=100)
    assert updated == ReadinessScore(100, 100, 100, 100)


def test_update_readiness_clamps():
    updated = update_readiness(ReadinessScore(), schema=150, ui=-20)
    assert updated.schema == 100
    assert updated.ui == 0


def test_update_readiness_rejects_unknown_dimension():
    with pytest.raises(ValueError, match="colour"):
        update_readiness(ReadinessScore(), colour=10)


def test_project_readiness_new_request_affects_all():
    projected = project_readiness(ReadinessScore(), ["all"], is_new_request=True)
    assert (projected.schema, projected.ui, projected.workflow) == (40, 40, 40)
    assert projected.overall == 40


def test_project_readiness_refinement_only_touches_named_areas():
    current = ReadinessScore(schema=90, ui=50, workflow=50, overall=70)
    projected = project_readiness(current, ["schema"], is_new_request=False)
    assert projected.schema == 100
    assert projected.ui == 50


@pytest.mark.parametrize(
    "score,phase",
    [
        (ReadinessScore(overall=96), "complete"),
        (ReadinessScore(overall=READY_TO_BUILD), "preview"),
        (ReadinessScore(ui=60, overall=40), "ui"),
        (ReadinessScore(schema=40, overall=30), "schema"),
        (ReadinessScore(), "intent"),
    ],
)
def test_phase_for(score, phase):
    assert phase_for(score) == phase


def test_readiness_message_bands():
    assert "ready to build" in readiness_message(ReadinessScore(overall=92))
    assert "Looking good" in readiness_message(ReadinessScore(overall=75))
    assert "progress" in readiness_message(ReadinessScore(overall=55))
    assert "Tell me more" in readiness_message(ReadinessScore(overall=10))
