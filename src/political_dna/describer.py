"""Human-readable archetype for a profile ("Market-driven Conservative")."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from .axes import AXES, Axis
from .models import Profile

SIGNIFICANCE = 0.15

CENTRIST_TITLE = "Centrist Pragmatist"
CENTRIST_DESCRIPTION = (
    "Votes in a balanced, pragmatic way. Not tied to either end of any axis; "
    "weighs issues case by case."
)


@dataclass(frozen=True)
class AxisLabels:
    neg: str
    pos: str
    neg_desc: str
    pos_desc: str


AXIS_MAP: dict[Axis, AxisLabels] = {
    Axis.ECONOMY: AxisLabels(
        "Left-wing",
        "Market-driven",
        "favours a strong public sector and social fairness",
        "values a free market economy, personal responsibility and growth",
    ),
    Axis.VALUES: AxisLabels(
        "Liberal",
        "Conservative",
        "defends individual freedoms and new values",
        "wants to preserve tradition and social stability",
    ),
    Axis.ENVIRONMENT: AxisLabels(
        "Industry-friendly",
        "Nature Defender",
        "prioritizes use of natural resources and economic realism",
        "puts biodiversity and climate action first",
    ),
    Axis.REGIONAL: AxisLabels(
        "Urbanist",
        "Regionalist",
        "sees growth centres and efficiency as key",
        "wants the whole country kept populated and services decentralized",
    ),
    Axis.INTERNATIONAL: AxisLabels(
        "Nationalist",
        "Globalist",
        "stresses national interest and independent decision-making",
        "believes in international cooperation, EU integration and openness",
    ),
    Axis.SECURITY: AxisLabels(
        "Soft-line",
        "Security Hawk",
        "emphasizes diplomacy, peace and soft power",
        "backs strong defence, military readiness and a hard security line",
    ),
}


def _label(axis: Axis, value: float) -> str:
    labels = AXIS_MAP[axis]
    return labels.pos if value > 0 else labels.neg


def _sentence(axis: Axis, value: float) -> str:
    labels = AXIS_MAP[axis]
    text = labels.pos_desc if value > 0 else labels.neg_desc
    return f"{text[0].upper()}{text[1:]}."


def describe_profile(profile: Profile | Mapping[Axis, float]) -> tuple[str, str]:
    """Return ``(title, description)`` for a profile or a plain score mapping.

    The two strongest axes beyond ``SIGNIFICANCE`` form the title as
    ``"<secondary> <primary>"``; the three strongest give the description.
    """
    scores = profile.scores if isinstance(profile, Profile) else profile
    significant = sorted(
        ((axis, scores.get(axis, 0.0)) for axis in AXES if abs(scores.get(axis, 0.0)) > SIGNIFICANCE),
        key=lambda item: -abs(item[1]),
    )
    if not significant:
        return CENTRIST_TITLE, CENTRIST_DESCRIPTION

    primary = significant[0]
    if len(significant) > 1:
        secondary = significant[1]
        title = f"{_label(*secondary)} {_label(*primary)}"
    else:
        title = _label(*primary)
    description = " ".join(_sentence(axis, value) for axis, value in significant[:3])
    return title, description
