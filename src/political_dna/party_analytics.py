"""Party-level analytics: cohesion, polarization, topic ownership, pivot.

Key concepts
------------
- **Cohesion (Rice index)**: for every categorized event where at least
  two party members voted aye or nay, ``|ayes - nays| / (ayes + nays)``.
  A party's cohesion is the mean over those events, as a 0-100 percentage.
  Uncategorized events do not count.
- **Polarization**: party mean profile minus the chamber median profile.
  The signed vector shows *which* axes drive it; the scalar score is its
  Euclidean norm scaled by ``POLARIZATION_SCALE``.
- **Topic ownership**: categorized votes cast per party member, per
  category.  The owned topic is the most intense real axis.
- **Pivot**: average of members' non-zero pivot scores (see
  :mod:`political_dna.promise`), optionally over a seeded sample.

Everything here is derived from one vote snapshot plus one profile snapshot
and can be recomputed at will.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

import numpy as np
import polars as pl

from . import config as cfg
from .axes import AXES, Axis
from .models import PartyAggregate, Profile
from .store import VoteSnapshot

LOGGER = logging.getLogger(__name__)

POLARIZATION_SCALE = 50
NO_TOPIC = "General"


# ── Cohesion ─────────────────────────────────────────────────────────────────


def rice_index(aye_count: int, nay_count: int) -> float | None:
    """``|ayes - nays| / total`` in [0, 1]; ``None`` with fewer than two voters."""
    total = aye_count + nay_count
    if total < 2:
        return None
    return abs(aye_count - nay_count) / total


def party_event_splits(snapshot: VoteSnapshot) -> pl.DataFrame:
    """Aye/nay counts per (party, categorized event) over active legislators."""
    return (
        snapshot.casts_frame()
        .filter(
            pl.col("active")
            & pl.col("category").is_not_null()
            & (pl.col("party") != "")
            & pl.col("vote_type").is_in(["aye", "nay"])
        )
        .group_by(["party", "event_id"])
        .agg(
            (pl.col("vote_type") == "aye").sum().cast(pl.Int64).alias("aye"),
            (pl.col("vote_type") == "nay").sum().cast(pl.Int64).alias("nay"),
        )
        .sort(["party", "event_id"])
    )


def compute_cohesion(snapshot: VoteSnapshot) -> dict[str, float]:
    """Mean Rice index per party, 0-100.

    Parties without a single qualifying event are absent from the result
    (their cohesion is undefined, not zero).
    """
    indices: dict[str, list[float]] = {}
    for row in party_event_splits(snapshot).iter_rows(named=True):
        rice = rice_index(row["aye"], row["nay"])
        if rice is not None:
            indices.setdefault(row["party"], []).append(rice)
    return {party: sum(vals) / len(vals) * 100 for party, vals in sorted(indices.items())}


# ── Polarization ─────────────────────────────────────────────────────────────


def chamber_median(profiles: Sequence[Profile]) -> dict[Axis, float]:
    if not profiles:
        return {a: 0.0 for a in AXES}
    matrix = np.array([p.vector() for p in profiles], dtype=float)
    medians = np.median(matrix, axis=0)
    return {a: float(medians[i]) for i, a in enumerate(AXES)}


def polarization(
    party_profiles: Sequence[Profile],
    median: Mapping[Axis, float],
) -> tuple[int, dict[Axis, float]]:
    """Return ``(score, vector)`` for a party against the chamber median."""
    if not party_profiles:
        return 0, {a: 0.0 for a in AXES}
    matrix = np.array([p.vector() for p in party_profiles], dtype=float)
    means = matrix.mean(axis=0)
    vector = {a: float(means[i] - median[a]) for i, a in enumerate(AXES)}
    norm = float(np.linalg.norm([vector[a] for a in AXES]))
    return round(norm * POLARIZATION_SCALE), vector


# ── Topic ownership ──────────────────────────────────────────────────────────


def category_vote_counts(snapshot: VoteSnapshot) -> dict[str, dict[str, int]]:
    """Votes cast by active members on categorized events: party -> category -> n."""
    counts = (
        snapshot.casts_frame()
        .filter(pl.col("active") & (pl.col("party") != "") & pl.col("category").is_not_null())
        .group_by(["party", "category"])
        .agg(pl.len().alias("votes"))
        .sort(["party", "category"])
    )
    result: dict[str, dict[str, int]] = {}
    for row in counts.iter_rows(named=True):
        result.setdefault(row["party"], {})[row["category"]] = int(row["votes"])
    return result


def topic_ownership(votes_by_category: Mapping[str, int], member_count: int) -> dict[str, float]:
    """Per-category intensity (votes per member); all six axes always present."""
    if member_count <= 0:
        return {a.value: 0.0 for a in AXES}
    ownership = {a.value: votes_by_category.get(a.value, 0) / member_count for a in AXES}
    for category, n in votes_by_category.items():
        if category not in ownership:
            ownership[category] = n / member_count
    return ownership


def owned_category(ownership: Mapping[str, float]) -> str:
    """Most intense real axis; ties resolve in ``AXES`` order."""
    best, best_value = NO_TOPIC, 0.0
    for axis in AXES:
        value = ownership.get(axis.value, 0.0)
        if value > best_value:
            best, best_value = axis.value, value
    return best


# ── Pivot ────────────────────────────────────────────────────────────────────


def party_pivot(
    member_ids: Iterable[str],
    pivot_scores: Mapping[str, int],
    *,
    sample_size: int | None = None,
    seed: int = 0,
) -> int:
    """Average non-zero pivot score across (a seeded sample of) members."""
    ids = sorted(member_ids)
    size = cfg.PIVOT_SAMPLE_SIZE if sample_size is None else sample_size
    if 0 < size < len(ids):
        ids = sorted(random.Random(seed).sample(ids, size))
    scores = [pivot_scores[i] for i in ids if pivot_scores.get(i, 0) > 0]
    if not scores:
        return 0
    return round(sum(scores) / len(scores))


# ── Assembly ─────────────────────────────────────────────────────────────────


def compute_party_aggregates(
    snapshot: VoteSnapshot,
    profiles: Mapping[str, Profile],
    pivot_scores: Mapping[str, int] | None = None,
    *,
    sample_size: int | None = None,
) -> dict[str, PartyAggregate]:
    """Compute a :class:`PartyAggregate` for every party with active members."""
    pivot_scores = pivot_scores or {}
    members = snapshot.party_members(active_only=True)
    cohesion = compute_cohesion(snapshot)
    category_votes = category_vote_counts(snapshot)
    active_profiles = [
        profiles[leg.id] for legs in members.values() for leg in legs if leg.id in profiles
    ]
    median = chamber_median(active_profiles)

    aggregates: dict[str, PartyAggregate] = {}
    for party in sorted(members):
        legs = members[party]
        party_profiles = [profiles[leg.id] for leg in legs if leg.id in profiles]
        score, vector = polarization(party_profiles, median)
        votes = category_votes.get(party, {})
        ownership = topic_ownership(votes, len(legs))
        if party not in cohesion:
            LOGGER.info("Party %s has no event with two or more voters; cohesion 0.", party)
        aggregates[party] = PartyAggregate(
            party=party,
            cohesion_score=cohesion.get(party, 0.0),
            polarization_score=score,
            polarization_vector=vector,
            pivot_score=party_pivot(
                (leg.id for leg in legs), pivot_scores, sample_size=sample_size
            ),
            topic_ownership=ownership,
            top_category=owned_category(ownership),
            activity_score=sum(votes.values()) / len(legs),
            mp_count=len(legs),
        )
    LOGGER.info("Computed aggregates for %d parties.", len(aggregates))
    return aggregates


@dataclass
class ParliamentStats:
    median_dna: dict[Axis, float]
    top_disciplined: list[tuple[str, float]] = field(default_factory=list)
    top_flip_flops: list[tuple[str, int]] = field(default_factory=list)
    category_owners: dict[str, tuple[str, float]] = field(default_factory=dict)


def parliament_stats(
    aggregates: Mapping[str, PartyAggregate],
    profiles: Sequence[Profile],
    *,
    top_n: int = 3,
) -> ParliamentStats:
    """Chamber-wide summary: median DNA, most disciplined, most pivoting, topic owners."""
    parties = sorted(aggregates.values(), key=lambda a: a.party)
    disciplined = sorted(parties, key=lambda a: -a.cohesion_score)[:top_n]
    flip_flops = sorted(
        (a for a in parties if a.pivot_score > 0), key=lambda a: -a.pivot_score
    )[:top_n]
    owners: dict[str, tuple[str, float]] = {}
    for axis in AXES:
        best: tuple[str, float] | None = None
        for agg in parties:
            value = agg.topic_ownership.get(axis.value, 0.0)
            if value > 0 and (best is None or value > best[1]):
                best = (agg.party, value)
        if best is not None:
            owners[axis.value] = best
    return ParliamentStats(
        median_dna=chamber_median(profiles),
        top_disciplined=[(a.party, round(a.cohesion_score, 1)) for a in disciplined],
        top_flip_flops=[(a.party, a.pivot_score) for a in flip_flops],
        category_owners=owners,
    )
