"""Axis normalization ("stretching") and questionnaire blending.

Raw axis scores cluster tightly in practice, so each axis is rescaled across
the current population to span the full [-1, 1] range::

    stretched = ((value - min) / (max - min)) * 2 - 1

Values are therefore *relative to the population*: adding or
re-categorizing votes can move everyone, and profiles must be recomputed
in full whenever that happens.  Only legislators with evidence on an axis
take part in that axis's min/max; everyone else gets 0 there.
"""

from __future__ import annotations

import logging
from typing import Mapping

from . import config as cfg
from .aggregator import RawAxisScores
from .axes import AXES, Axis
from .models import Profile

LOGGER = logging.getLogger(__name__)


def stretch(value: float, lo: float, hi: float) -> float:
    """Min-max map *value* from [lo, hi] onto [-1, 1]; 0 when hi == lo."""
    if hi <= lo:
        return 0.0
    scaled = ((value - lo) / (hi - lo)) * 2 - 1
    return max(-1.0, min(1.0, scaled))


def axis_bounds(raw: Mapping[str, RawAxisScores]) -> dict[Axis, tuple[float, float] | None]:
    """Population (min, max) per axis over legislators with evidence on it."""
    bounds: dict[Axis, tuple[float, float] | None] = {}
    for axis in AXES:
        values = [r.scores[axis] for r in raw.values() if r.has_evidence(axis)]
        bounds[axis] = (min(values), max(values)) if values else None
    return bounds


def stretch_population(raw: Mapping[str, RawAxisScores]) -> dict[str, dict[Axis, float]]:
    """Stretch every legislator's raw scores against one set of bounds."""
    bounds = axis_bounds(raw)
    for axis, b in bounds.items():
        if b is not None and b[0] == b[1]:
            LOGGER.info("Axis %s is degenerate (min == max == %.4f); stretched to 0.", axis.value, b[0])
    result: dict[str, dict[Axis, float]] = {}
    for lid, r in raw.items():
        stretched: dict[Axis, float] = {}
        for axis in AXES:
            b = bounds[axis]
            if b is None or not r.has_evidence(axis):
                stretched[axis] = 0.0
            else:
                stretched[axis] = stretch(r.scores[axis], b[0], b[1])
        result[lid] = stretched
    return result


def blend(
    voting: float | None,
    questionnaire: float | None,
    *,
    questionnaire_weight: float | None = None,
) -> float:
    """Combine voting and questionnaire evidence for one axis.

    ``0.6 * voting + 0.4 * questionnaire`` by default.  With only one source
    present that source is used outright; with neither the result is 0.
    """
    qw = cfg.QUESTIONNAIRE_WEIGHT if questionnaire_weight is None else questionnaire_weight
    if voting is None and questionnaire is None:
        return 0.0
    if questionnaire is None:
        return voting
    if voting is None:
        return questionnaire
    return (1 - qw) * voting + qw * questionnaire


def build_profiles(
    raw: Mapping[str, RawAxisScores],
    questionnaire: Mapping[str, Mapping[Axis, float]] | None = None,
    *,
    as_of: str,
    questionnaire_weight: float | None = None,
) -> dict[str, Profile]:
    """Build the full profile population for one snapshot.

    Legislators appear if they have qualifying votes, questionnaire answers,
    or both.  Anyone with neither gets no profile at all.
    """
    questionnaire = questionnaire or {}
    stretched = stretch_population(raw)
    profiles: dict[str, Profile] = {}

    for lid in sorted(set(raw) | set(questionnaire)):
        r = raw.get(lid)
        q = questionnaire.get(lid, {})
        scores: dict[Axis, float] = {}
        for axis in AXES:
            voting = stretched[lid][axis] if r is not None and r.has_evidence(axis) else None
            value = blend(voting, q.get(axis), questionnaire_weight=questionnaire_weight)
            scores[axis] = max(-1.0, min(1.0, value))
        profiles[lid] = Profile(
            legislator_id=lid,
            scores=scores,
            axis_evidence={a: (r.counts.get(a, 0) if r else 0) for a in AXES},
            total_votes_analyzed=r.total_votes if r else 0,
            last_updated=as_of,
            questionnaire_axes=[a for a in AXES if a in q],
        )
    LOGGER.info(
        "Built %d profiles (%d vote-backed, %d questionnaire-only).",
        len(profiles),
        len(raw),
        len(set(questionnaire) - set(raw)),
    )
    return profiles
