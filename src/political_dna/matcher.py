"""Ideological matcher: rank every legislator by similarity to a target vector.

Compatibility blends two distances:

- **z-distance** (60%): Euclidean distance after standardizing each axis by
  the population mean and standard deviation (floored at ``STD_FLOOR`` so a
  near-constant axis cannot explode).  Captures *relative* extremity.
- **raw distance** (40%): Euclidean distance in plain [-1, 1] space.  Keeps
  thinly-evidenced population outliers from dominating.

Both are divided by a cap and subtracted from 1, blended, and reported as a
percentage clamped to [1, 100]; nothing ever shows 0%.

Axes on which a candidate has no evidence count with ``NO_OPINION_WEIGHT``
instead of full weight, so a default 0 is not mistaken for a centrist
position.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Mapping, Sequence

import numpy as np

from .axes import AXES
from .models import Legislator, Profile

LOGGER = logging.getLogger(__name__)

STD_FLOOR = 0.15
NO_OPINION_WEIGHT = 0.25
# Six-axis unit diagonal is √6; the multipliers keep total opposites above 0%.
RAW_CAP = math.sqrt(6) * 2.2
Z_CAP = math.sqrt(6) * 3.0
Z_SHARE = 0.6
RAW_SHARE = 0.4


@dataclass
class PopulationStats:
    mean: np.ndarray
    std: np.ndarray


def population_stats(profiles: Sequence[Profile]) -> PopulationStats:
    """Per-axis mean and (floored) population standard deviation.

    Each axis only counts profiles with an opinion on it; an axis nobody
    has an opinion on gets mean 0 and the floor std.
    """
    mean = np.zeros(len(AXES))
    std = np.full(len(AXES), STD_FLOOR)
    for i, axis in enumerate(AXES):
        values = np.array([p.score(axis) for p in profiles if p.has_opinion(axis)], dtype=float)
        if values.size:
            mean[i] = values.mean()
            std[i] = max(float(values.std()), STD_FLOOR)
    return PopulationStats(mean=mean, std=std)


def opinion_weights(profile: Profile) -> np.ndarray:
    return np.array(
        [1.0 if profile.has_opinion(a) else NO_OPINION_WEIGHT for a in AXES],
        dtype=float,
    )


def compatibility(z_distance: float, raw_distance: float) -> int:
    """Blend the two distances into a 1-100 compatibility percentage."""
    z_term = max(0.0, 1.0 - z_distance / Z_CAP)
    raw_term = max(0.0, 1.0 - raw_distance / RAW_CAP)
    score = round(max(1.0, (Z_SHARE * z_term + RAW_SHARE * raw_term) * 100))
    return min(100, score)


@dataclass
class MatchResult:
    legislator_id: str
    name: str
    party: str
    compatibility: int
    z_distance: float
    raw_distance: float
    scores: list[float]
    pivot_score: int | None = None


def match(
    target: Sequence[float],
    population: Sequence[Profile],
    *,
    legislators: Mapping[str, Legislator] | None = None,
    exclude: str | None = None,
    pivot_scores: Mapping[str, int] | None = None,
    stats: PopulationStats | None = None,
) -> list[MatchResult]:
    """Rank *population* by compatibility with *target* (six floats, ``AXES`` order).

    Sorted by compatibility descending, then z-distance ascending, then id.
    Statistics come from the whole population (including any *exclude*d
    legislator) unless precomputed *stats* are given.
    """
    if len(target) != len(AXES):
        raise ValueError(f"target must have {len(AXES)} values, got {len(target)}")
    t = np.array(target, dtype=float)
    stats = stats or population_stats(population)
    legislators = legislators or {}
    pivot_scores = pivot_scores or {}

    results: list[MatchResult] = []
    for profile in population:
        if profile.legislator_id == exclude:
            continue
        c = np.array(profile.vector(), dtype=float)
        w = opinion_weights(profile)
        diff = t - c
        raw_distance = float(np.sqrt(np.sum(w * diff**2)))
        z_distance = float(np.sqrt(np.sum(w * (diff / stats.std) ** 2)))
        leg = legislators.get(profile.legislator_id)
        results.append(
            MatchResult(
                legislator_id=profile.legislator_id,
                name=leg.name if leg else profile.legislator_id,
                party=leg.party if leg else "",
                compatibility=compatibility(z_distance, raw_distance),
                z_distance=round(z_distance, 6),
                raw_distance=round(raw_distance, 6),
                scores=[round(v, 4) for v in profile.vector()],
                pivot_score=pivot_scores.get(profile.legislator_id),
            )
        )
    results.sort(key=lambda r: (-r.compatibility, r.z_distance, r.legislator_id))
    return results


# ── Party rollup ─────────────────────────────────────────────────────────────


@dataclass
class PartyMatch:
    party: str
    avg_compatibility: int
    members: list[MatchResult] = field(default_factory=list)


def party_rollup(results: Sequence[MatchResult]) -> list[PartyMatch]:
    """Group match results by party; mean compatibility per party, best first."""
    grouped: dict[str, list[MatchResult]] = {}
    for r in results:
        grouped.setdefault(r.party or "Independent", []).append(r)
    rollup = []
    for party, members in grouped.items():
        members = sorted(members, key=lambda r: (-r.compatibility, r.z_distance, r.legislator_id))
        avg = round(sum(m.compatibility for m in members) / len(members))
        rollup.append(PartyMatch(party=party, avg_compatibility=avg, members=members))
    rollup.sort(key=lambda p: (-p.avg_compatibility, p.party))
    return rollup


@dataclass
class MatchReport:
    """Everything the "who votes like X" view needs."""

    target_id: str
    target_scores: list[float]
    matches: list[MatchResult]
    parties: list[PartyMatch]

    @property
    def top_matches(self) -> list[MatchResult]:
        return self.matches[:3]

    @property
    def bottom_matches(self) -> list[MatchResult]:
        return list(reversed(self.matches[-3:]))


def match_legislator(
    legislator_id: str,
    profiles: Mapping[str, Profile],
    legislators: Mapping[str, Legislator] | None = None,
    *,
    pivot_scores: Mapping[str, int] | None = None,
) -> MatchReport:
    """Match one legislator's own profile against everyone else.

    Raises ``KeyError`` if the legislator has no published profile.
    """
    target = profiles[legislator_id]
    population = list(profiles.values())
    matches = match(
        target.vector(),
        population,
        legislators=legislators,
        exclude=legislator_id,
        pivot_scores=pivot_scores,
    )
    LOGGER.debug("Matched %s against %d legislators.", legislator_id, len(matches))
    return MatchReport(
        target_id=legislator_id,
        target_scores=target.vector(),
        matches=matches,
        parties=party_rollup(matches),
    )
