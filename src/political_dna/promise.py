"""Promise watch: compare actual votes with pre-election questionnaire answers.

For one voting event, every legislator who voted aye or nay and answered
questions in the event's category gets an *average promise* in [-1, 1]
(answer 1 → +1, 3 → 0, 5 → -1, times the question weight).  The deviation
``|avg_promise - vote_value|`` lies in [0, 2]:

- deviation ≤ 1.2 → no alert
- 1.2 < deviation ≤ 1.6 → ``medium``
- deviation > 1.6 → ``high``

Alerts are upserted by (legislator, event), so re-checking an event never
duplicates them.  A legislator's **pivot score** summarizes their alert
history against the number of votes that could have produced one.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Mapping

from .aggregator import promise_value
from .axes import VoteType
from .models import CandidateResponse, IntegrityAlert, VotingEvent
from .store import AlertStore, ResponseStore, VoteSnapshot, VoteStore

LOGGER = logging.getLogger(__name__)

MIN_EVENT_WEIGHT = 0.2
ALERT_THRESHOLD = 1.2
HIGH_THRESHOLD = 1.6

SEVERITY_WEIGHTS: dict[str, float] = {
    "high": 1.0,
    "medium": 0.5,
}


def average_promise(responses: Iterable[CandidateResponse]) -> float | None:
    values = [promise_value(r) for r in responses]
    if not values:
        return None
    return sum(values) / len(values)


def deviation(avg_promise: float, vote_value: int) -> float:
    return abs(avg_promise - vote_value)


def classify_deviation(value: float) -> str | None:
    """``None`` up to 1.2, ``"medium"`` for (1.2, 1.6], ``"high"`` above 1.6."""
    if value > HIGH_THRESHOLD:
        return "high"
    if value > ALERT_THRESHOLD:
        return "medium"
    return None


def event_is_checkable(event: VotingEvent) -> bool:
    """Only real-axis events with a clear enough weight are compared."""
    return event.is_categorized and abs(event.signed_weight) >= MIN_EVENT_WEIGHT


def detect_event_deviations(
    event: VotingEvent,
    votes: Iterable[tuple[str, VoteType]],
    responses_by_legislator: Mapping[str, list[CandidateResponse]],
) -> list[IntegrityAlert]:
    """Alerts for every vote on *event* that breaks the voter's stated position."""
    if not event_is_checkable(event):
        return []
    alerts: list[IntegrityAlert] = []
    for legislator_id, vote_type in votes:
        if vote_type is VoteType.ABSTAIN:
            continue
        avg = average_promise(responses_by_legislator.get(legislator_id, []))
        if avg is None:
            continue
        d = deviation(avg, vote_type.value_sign)
        severity = classify_deviation(d)
        if severity is None:
            continue
        alerts.append(
            IntegrityAlert(
                legislator_id=legislator_id,
                event_id=event.id,
                category=event.category,
                promise_value=round(avg * 100),
                vote_type=vote_type,
                deviation=round(d, 6),
                severity=severity,
            )
        )
    return alerts


def check_vote_integrity(
    event_id: str,
    vote_store: VoteStore,
    response_store: ResponseStore,
    alert_store: AlertStore,
) -> list[IntegrityAlert]:
    """Check one event and upsert its alerts.  Returns the alerts found."""
    event = vote_store.get_event(event_id)
    if not event_is_checkable(event):
        return []
    votes = [(lid, vt) for lid, _party, vt in vote_store.votes_for_event(event_id)]
    alerts = detect_event_deviations(event, votes, response_store.for_category(event.category))
    if alerts:
        created = alert_store.upsert(alerts)
        LOGGER.info(
            "Event %s: %d integrity alerts (%d new).", event_id, len(alerts), created
        )
    return alerts


def check_all_events(
    snapshot: VoteSnapshot,
    response_store: ResponseStore,
    alert_store: AlertStore,
) -> int:
    """Run promise watch over every checkable event in *snapshot*."""
    if not len(response_store):
        return 0
    total = 0
    for event_id in sorted(snapshot.events):
        event = snapshot.events[event_id]
        if not event_is_checkable(event):
            continue
        votes = [(lid, vt) for lid, _party, vt in snapshot.votes_for_event(event_id)]
        alerts = detect_event_deviations(event, votes, response_store.for_category(event.category))
        alert_store.upsert(alerts)
        total += len(alerts)
    LOGGER.info("Promise watch: %d alerts across %d events.", total, len(snapshot.events))
    return total


# ── Pivot score ──────────────────────────────────────────────────────────────


def comparable_vote_counts(
    snapshot: VoteSnapshot,
    response_store: ResponseStore,
) -> dict[str, int]:
    """Votes per legislator that promise watch could have flagged."""
    answered: dict[str, set] = defaultdict(set)
    for r in response_store.all():
        answered[r.legislator_id].add(r.category)
    counts: dict[str, int] = defaultdict(int)
    for event_id in sorted(snapshot.events):
        event = snapshot.events[event_id]
        if not event_is_checkable(event):
            continue
        for lid, _party, vote_type in snapshot.votes_for_event(event_id):
            if vote_type is not VoteType.ABSTAIN and event.category in answered.get(lid, ()):
                counts[lid] += 1
    return dict(counts)


def pivot_score(alerts: Iterable[IntegrityAlert], comparable_votes: int) -> int:
    """Severity-weighted share of comparable votes that raised an alert, 0-100."""
    if comparable_votes <= 0:
        return 0
    weighted = sum(SEVERITY_WEIGHTS.get(a.severity, 0.0) for a in alerts)
    return min(100, round(100 * weighted / comparable_votes))


def compute_pivot_scores(
    snapshot: VoteSnapshot,
    response_store: ResponseStore,
    alert_store: AlertStore,
) -> dict[str, int]:
    """Pivot score for every legislator with at least one comparable vote."""
    comparable = comparable_vote_counts(snapshot, response_store)
    scores: dict[str, int] = {}
    for lid, n in sorted(comparable.items()):
        alerts = [a for a in alert_store.for_legislator(lid) if a.event_id in snapshot.events]
        scores[lid] = pivot_score(alerts, n)
    return scores
