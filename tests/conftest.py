from __future__ import annotations

import pytest

from political_dna.axes import AXES
from political_dna.models import Profile
from political_dna.pipeline import compute_profiles
from political_dna.store import ResponseStore, VoteStore

AS_OF = "2025-01-01T00:00:00+00:00"

# ── Chamber fixture ───────────────────────────────────────────────────────────
#
# e1 and e2 split 3-2 (controversy 0.8, contribution ±1.3), e3 is unanimous
# and never counts, e4 is uncategorized.  n1 never votes.

LEGISLATORS = [
    {"id": "a1", "name": "Aino Aaltonen", "party": "KOK"},
    {"id": "a2", "name": "Antti Ahonen", "party": "KOK"},
    {"id": "b1", "name": "Liisa Lehto", "party": "SDP"},
    {"id": "b2", "name": "Pekka Peltonen", "party": "SDP"},
    {"id": "c1", "name": "Vesa Virtanen", "party": "VIHR"},
    {"id": "x1", "name": "Olli Entinen", "party": "SDP", "active": False},
    {"id": "n1", "name": "Nea Nieminen", "party": "KESK"},
]

EVENTS = [
    {
        "id": "e1",
        "title": "Corporate tax cut",
        "category": "Economy",
        "signed_weight": 1.0,
        "aye_count": 3,
        "nay_count": 2,
    },
    {
        "id": "e2",
        "title": "Nature conservation act",
        "category": "Environment",
        "signed_weight": 1.0,
        "aye_count": 3,
        "nay_count": 2,
    },
    {
        "id": "e3",
        "title": "Symbolic anniversary resolution",
        "category": "Economy",
        "signed_weight": 1.0,
        "aye_count": 100,
        "nay_count": 0,
    },
    {"id": "e4", "title": "NATO membership", "aye_count": 1, "nay_count": 1},
]

VOTES = [
    ("a1", "e1", "aye"),
    ("a2", "e1", "aye"),
    ("b1", "e1", "nay"),
    ("b2", "e1", "nay"),
    ("c1", "e1", "aye"),
    ("x1", "e1", "nay"),
    ("a1", "e2", "nay"),
    ("a2", "e2", "nay"),
    ("b1", "e2", "aye"),
    ("b2", "e2", "aye"),
    ("c1", "e2", "aye"),
    ("a1", "e3", "aye"),
    ("b1", "e3", "aye"),
    ("a1", "e4", "aye"),
    ("a2", "e4", "nay"),
]

RESPONSES = [
    {"legislator_id": "a1", "question": "Taxes should be cut", "response_value": 1, "category": "Economy"},
    {"legislator_id": "b1", "question": "Taxes should be cut", "response_value": 1, "category": "Economy"},
    {"legislator_id": "b2", "question": "Taxes should be cut", "response_value": 2, "category": "Economy"},
    {
        "legislator_id": "c1",
        "question": "Nature must be protected at any cost",
        "response_value": 5,
        "category": "Environment",
    },
    {
        "legislator_id": "n1",
        "question": "Traditional values matter",
        "response_value": 1,
        "category": "Arvot",
    },
]


@pytest.fixture
def chamber() -> VoteStore:
    return VoteStore.from_records(
        LEGISLATORS,
        EVENTS,
        [{"legislator_id": lid, "event_id": eid, "vote_type": vt} for lid, eid, vt in VOTES],
    )


@pytest.fixture
def responses() -> ResponseStore:
    return ResponseStore.from_records(RESPONSES)


@pytest.fixture
def profiles(chamber: VoteStore) -> dict[str, Profile]:
    """Vote-only profiles for the chamber fixture."""
    return compute_profiles(chamber.snapshot(), as_of=AS_OF)


def make_profile(legislator_id: str, evidence: int = 1, **scores: float) -> Profile:
    """Profile with the given axis scores (keyword = lower-case axis name)."""
    values = {a: scores.get(a.value.lower(), 0.0) for a in AXES}
    return Profile(
        legislator_id=legislator_id,
        scores=values,
        axis_evidence={a: evidence for a in AXES},
        total_votes_analyzed=evidence * len(AXES),
        last_updated=AS_OF,
    )

