"""Outcome predictor ("weather engine") for a pending vote.

Each active legislator starts from their own position on the event's axis::

    prob_aye = 0.5 + score * 0.4

and is pulled toward the party line by the party's cohesion ``c`` (0-1)::

    corrected = prob_aye * (1 - c) + (c if party line is aye else 0)

Government parties (a configured input) vote aye; everyone else nay.
``corrected > 0.55`` counts as aye, ``< 0.45`` as nay, anything between as
undecided.  Legislators without a profile are undecided.

A **potential rebel** leans more than ``REBEL_THRESHOLD`` against their
party's line while that party's cohesion is below ``DISCIPLINE_CEILING``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from . import config as cfg
from .axes import Axis
from .categorizer import Categorizer, safe_categorize
from .models import Legislator, Profile, VotingEvent
from .store import VoteStore

LOGGER = logging.getLogger(__name__)

BASE_PROB = 0.5
SCORE_SWING = 0.4
AYE_CUTOFF = 0.55
NAY_CUTOFF = 0.45
REBEL_THRESHOLD = 0.3
DISCIPLINE_CEILING = 0.9
REBEL_SCALE = 80
SUNNY_MARGIN = 30
STORMY_MARGIN = 15
FALLBACK_AXIS = Axis.ECONOMY


@dataclass
class PotentialRebel:
    legislator_id: str
    name: str
    party: str
    probability: int  # 0-80


@dataclass
class WeatherForecast:
    aye: int
    nay: int
    undecided: int
    weather: str  # sunny | cloudy | stormy
    axis: Axis
    rebels: list[PotentialRebel] = field(default_factory=list)

    def top_rebels(self, n: int = 5) -> list[PotentialRebel]:
        return self.rebels[:n]

    def to_dict(self) -> dict:
        return {
            "aye": self.aye,
            "nay": self.nay,
            "undecided": self.undecided,
            "weather": self.weather,
            "axis": self.axis.value,
            "rebels": [
                {
                    "legislator_id": r.legislator_id,
                    "name": r.name,
                    "party": r.party,
                    "probability": r.probability,
                }
                for r in self.rebels
            ],
        }


def classify_weather(aye: int, nay: int) -> str:
    """``sunny`` when aye leads by more than 30, ``stormy`` under 15, else ``cloudy``."""
    margin = abs(aye - nay)
    if aye > nay and margin > SUNNY_MARGIN:
        return "sunny"
    if margin < STORMY_MARGIN:
        return "stormy"
    return "cloudy"


def resolve_axis(
    event: VotingEvent,
    *,
    vote_store: VoteStore | None = None,
    categorizer: Categorizer | None = None,
) -> Axis:
    """Axis the event is forecast on.

    Uncategorized events go through the categorizer once; a real-axis answer
    is backfilled into *vote_store* when one is given.  Anything still
    unresolved falls back to Economy.
    """
    if event.category is not None and event.category.is_axis:
        return event.category
    if categorizer is not None:
        result = safe_categorize(categorizer, event.title)
        if result.category.is_axis:
            if vote_store is not None:
                vote_store.backfill_category(event.id, result.category, result.weight)
            return result.category
    LOGGER.debug("Event %s has no axis; forecasting on %s.", event.id, FALLBACK_AXIS.value)
    return FALLBACK_AXIS


def corrected_probability(score: float, cohesion: float, party_line_aye: bool) -> float:
    prob_aye = BASE_PROB + score * SCORE_SWING
    return prob_aye * (1 - cohesion) + (cohesion if party_line_aye else 0.0)


def is_rebel(score: float, cohesion: float, party_line_aye: bool) -> bool:
    if cohesion >= DISCIPLINE_CEILING:
        return False
    if party_line_aye:
        return score < -REBEL_THRESHOLD
    return score > REBEL_THRESHOLD


def predict_outcome(
    event: VotingEvent,
    profiles: Mapping[str, Profile],
    legislators: Iterable[Legislator],
    cohesion: Mapping[str, float] | None = None,
    *,
    government_parties: Iterable[str] | None = None,
    default_cohesion: float | None = None,
    vote_store: VoteStore | None = None,
    categorizer: Categorizer | None = None,
) -> WeatherForecast:
    """Forecast *event* over the active members of *legislators*.

    *cohesion* maps party to a 0-100 score as produced by
    :func:`political_dna.party_analytics.compute_cohesion`; parties missing
    from it use *default_cohesion* (0-1, ``DNA_DEFAULT_COHESION``).
    """
    cohesion = cohesion or {}
    government = frozenset(
        cfg.get_government_parties() if government_parties is None else government_parties
    )
    fallback = cfg.DEFAULT_COHESION if default_cohesion is None else default_cohesion
    axis = resolve_axis(event, vote_store=vote_store, categorizer=categorizer)

    aye = nay = undecided = 0
    rebels: list[PotentialRebel] = []
    for leg in sorted(legislators, key=lambda x: x.id):
        if not leg.active:
            continue
        profile = profiles.get(leg.id)
        if profile is None:
            undecided += 1
            continue
        score = profile.score(axis)
        c = cohesion[leg.party] / 100 if leg.party in cohesion else fallback
        line_aye = leg.party in government

        p = corrected_probability(score, c, line_aye)
        if p > AYE_CUTOFF:
            aye += 1
        elif p < NAY_CUTOFF:
            nay += 1
        else:
            undecided += 1

        if is_rebel(score, c, line_aye):
            rebels.append(
                PotentialRebel(
                    legislator_id=leg.id,
                    name=leg.name,
                    party=leg.party,
                    probability=round(abs(score) * REBEL_SCALE),
                )
            )

    rebels.sort(key=lambda r: (-r.probability, r.legislator_id))
    forecast = WeatherForecast(
        aye=aye,
        nay=nay,
        undecided=undecided,
        weather=classify_weather(aye, nay),
        axis=axis,
        rebels=rebels,
    )
    LOGGER.info(
        "Forecast for %s on %s: %d aye / %d nay / %d undecided (%s), %d potential rebels.",
        event.id,
        axis.value,
        aye,
        nay,
        undecided,
        forecast.weather,
        len(rebels),
    )
    return forecast
