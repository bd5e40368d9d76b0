"""Axis aggregation: turn one legislator's categorized votes into raw axis scores.

Each qualifying vote contributes::

    vote_value * event.signed_weight * (0.5 + controversy)

where ``controversy = 1 - |aye - nay| / (aye + nay)`` is 1 for a perfectly
split chamber and 0 for a unanimous one.  Near-unanimous events
(controversy below ``MIN_CONTROVERSY``) are skipped entirely, so symbolic
votes do not drown out contested ones.  The raw axis score is the mean
contribution over the qualifying votes on that axis.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from . import config as cfg
from .axes import AXES, Axis, VoteType
from .models import CandidateResponse, VotingEvent
from .store import VoteSnapshot

LOGGER = logging.getLogger(__name__)


def controversy(aye_count: int, nay_count: int) -> float | None:
    """How evenly split an event was (0 = unanimous, 1 = tied).

    Returns ``None`` when nobody voted aye or nay.
    """
    total = aye_count + nay_count
    if total <= 0:
        return None
    return 1.0 - abs(aye_count - nay_count) / total


def vote_contribution(vote_type: VoteType, weight: float, event_controversy: float) -> float:
    return vote_type.value_sign * weight * (0.5 + event_controversy)


@dataclass
class RawAxisScores:
    """Pre-normalization axis scores for one legislator."""

    legislator_id: str
    scores: dict[Axis, float] = field(default_factory=dict)
    counts: dict[Axis, int] = field(default_factory=dict)
    total_votes: int = 0  # every vote seen, qualifying or not

    def has_evidence(self, axis: Axis) -> bool:
        return self.counts.get(axis, 0) > 0

    @property
    def contributing_votes(self) -> int:
        return sum(self.counts.values())


def _qualifying_controversy(event: VotingEvent, min_controversy: float) -> float | None:
    if not event.is_categorized:
        return None
    c = controversy(event.aye_count, event.nay_count)
    if c is None or c < min_controversy:
        return None
    return c


def aggregate_votes(
    legislator_id: str,
    votes: Iterable[tuple[VotingEvent, VoteType]],
    *,
    min_controversy: float | None = None,
) -> RawAxisScores | None:
    """Aggregate one legislator's votes.

    Returns ``None`` when no vote qualifies on any axis: a legislator with
    no signal must stay distinguishable from a genuinely neutral one.
    """
    threshold = cfg.MIN_CONTROVERSY if min_controversy is None else min_controversy
    sums: dict[Axis, float] = defaultdict(float)
    counts: dict[Axis, int] = defaultdict(int)
    total = 0
    for event, vote_type in votes:
        total += 1
        c = _qualifying_controversy(event, threshold)
        if c is None:
            continue
        axis = event.category
        sums[axis] += vote_contribution(vote_type, event.signed_weight, c)
        counts[axis] += 1

    if not counts:
        return None

    return RawAxisScores(
        legislator_id=legislator_id,
        scores={a: (sums[a] / counts[a] if counts.get(a) else 0.0) for a in AXES},
        counts={a: counts.get(a, 0) for a in AXES},
        total_votes=total,
    )


def aggregate_all(
    snapshot: VoteSnapshot,
    *,
    min_controversy: float | None = None,
) -> dict[str, RawAxisScores]:
    """Raw axis scores for every legislator with at least one qualifying vote."""
    result: dict[str, RawAxisScores] = {}
    for legislator_id in sorted(snapshot.legislators):
        raw = aggregate_votes(
            legislator_id,
            snapshot.votes_for_legislator(legislator_id),
            min_controversy=min_controversy,
        )
        if raw is not None:
            result[legislator_id] = raw
    LOGGER.info(
        "Aggregated axis scores for %d of %d legislators.",
        len(result),
        len(snapshot.legislators),
    )
    return result


# ── Questionnaire ────────────────────────────────────────────────────────────


def promise_value(response: CandidateResponse) -> float:
    """Map a 1-5 answer onto [-1, 1] (1 → +1, 3 → 0, 5 → -1), times its weight."""
    return (3 - response.response_value) / 2 * response.weight


def questionnaire_scores(responses: Iterable[CandidateResponse]) -> dict[Axis, float]:
    """Mean promise value per axis.  Axes without answers are absent."""
    sums: dict[Axis, float] = defaultdict(float)
    counts: dict[Axis, int] = defaultdict(int)
    for r in responses:
        if not r.category.is_axis:
            continue
        sums[r.category] += promise_value(r)
        counts[r.category] += 1
    return {a: sums[a] / counts[a] for a in AXES if counts.get(a)}


def questionnaire_scores_all(
    responses: Iterable[CandidateResponse],
) -> dict[str, dict[Axis, float]]:
    by_legislator: dict[str, list[CandidateResponse]] = defaultdict(list)
    for r in responses:
        by_legislator[r.legislator_id].append(r)
    result = {}
    for lid in sorted(by_legislator):
        scores = questionnaire_scores(by_legislator[lid])
        if scores:
            result[lid] = scores
    return result
