"""Readiness scoring: how complete is the design, per dimension, 0-100."""

from collections.abc import Iterable

from design_council.models import DesignState, ReadinessScore

READY_TO_BUILD = 80

SCHEMA_WEIGHT = 0.4
UI_WEIGHT = 0.4
WORKFLOW_WEIGHT = 0.2       # workflows are optional, so they count least

NEW_REQUEST_DELTA = 40
REFINEMENT_DELTA = 20

_DIMENSIONS = ("schema", "ui", "workflow")


def _clamp(value: float) -> int:
    return int(max(0, min(100, round(value))))


def _overall(schema: int, ui: int, workflow: int) -> int:
    return _clamp(schema * SCHEMA_WEIGHT + ui * UI_WEIGHT + workflow * WORKFLOW_WEIGHT)


def _schema_score(state: DesignState) -> int:
    score = 0
    if state.field_count >= 1:
        score = 30
    if state.field_count >= 3:
        score = 50
    if state.field_count >= 5:
        score = 70
    if score:
        if state.has_description:
            score += 10
        if state.relationship_count > 0:
            score += 10
        if state.computed_field_count > 0:
            score += 10
    return _clamp(score)


def _ui_score(state: DesignState) -> int:
    if not state.has_layout:
        return 0
    score = 50
    if state.component_count >= 2:
        score = 70
    if state.component_count >= 4:
        score = 85
    if state.responsive_layout:
        score += 10
    return _clamp(score)


def _workflow_score(state: DesignState) -> int:
    if state.workflow_count <= 0:
        return 50
    return _clamp(60 + state.workflow_count * 10)


def score_readiness(state: DesignState) -> ReadinessScore:
    """Score a design state. Pure; every dimension and overall lie in [0, 100]."""
    schema = _schema_score(state)
    ui = _ui_score(state)
    workflow = _workflow_score(state)
    return ReadinessScore(schema=schema, ui=ui, workflow=workflow, overall=_overall(schema, ui, workflow))


def update_readiness(current: ReadinessScore, **dimensions: float) -> ReadinessScore:
    """Replace some dimensions and recompute overall."""
    unknown = set(dimensions) - set(_DIMENSIONS)
    if unknown:
        raise ValueError(f"Unknown readiness dimension(s): {', '.join(sorted(unknown))}")
    values = {name: getattr(current, name) for name in _DIMENSIONS}
    values.update({name: _clamp(v) for name, v in dimensions.items()})
    return ReadinessScore(**values, overall=_overall(**values))


def project_readiness(
    current: ReadinessScore,
    affected_areas: Iterable[str],
    is_new_request: bool,
) -> ReadinessScore:
    """Expected readiness once the planned actions land.

    A flat delta per affected dimension, not a recomputation from the
    artifacts the actions will produce.
    """
    areas = set(affected_areas)
    delta = NEW_REQUEST_DELTA if is_new_request else REFINEMENT_DELTA
    updates = {
        name: getattr(current, name) + delta
        for name in _DIMENSIONS
        if "all" in areas or name in areas
    }
    return update_readiness(current, **updates)


def phase_for(score: ReadinessScore) -> str:
    if score.overall >= 95:
        return "complete"
    if score.overall >= READY_TO_BUILD:
        return "preview"
    if score.ui >= 60:
        return "ui"
    if score.schema >= 40:
        return "schema"
    return "intent"


def readiness_message(score: ReadinessScore) -> str:
    if score.overall >= 90:
        return "Your app is ready to build! Say 'build it' when you're ready."
    if score.overall >= 70:
        return "Looking good! A few more refinements and we can build."
    if score.overall >= 50:
        return "We're making progress. What would you like to adjust?"
    return "Tell me more about what you'd like to build."
