from __future__ import annotations

from dataclasses import dataclass, field

from .axes import AXES, Axis, VoteType


@dataclass
class Legislator:
    id: str
    name: str
    party: str  # mutable on defection
    active: bool = True


@dataclass
class VotingEvent:
    id: str
    title: str
    category: Axis | None = None  # None until the categorizer backfills it
    signed_weight: float | None = None  # -1.0 .. 1.0
    aye_count: int = 0
    nay_count: int = 0

    @property
    def is_categorized(self) -> bool:
        """True once the event sits on a real axis with a usable weight."""
        return (
            self.category is not None
            and self.category.is_axis
            and self.signed_weight is not None
        )


@dataclass(frozen=True)
class VoteCast:
    legislator_id: str
    event_id: str
    vote_type: VoteType


@dataclass(frozen=True)
class CandidateResponse:
    """One pre-election questionnaire answer (1 = fully agree, 5 = fully disagree)."""

    legislator_id: str
    question: str
    response_value: int
    category: Axis
    weight: float = 1.0

    def __post_init__(self) -> None:
        if not 1 <= self.response_value <= 5:
            raise ValueError(
                f"response_value must be in 1..5, got {self.response_value!r}"
            )


@dataclass
class Profile:
    """Normalized ideological profile for one legislator."""

    legislator_id: str
    scores: dict[Axis, float]  # stretched, -1.0 .. 1.0
    axis_evidence: dict[Axis, int]  # contributing votes per axis
    total_votes_analyzed: int
    last_updated: str  # ISO timestamp of the snapshot
    questionnaire_axes: list[Axis] = field(default_factory=list)

    def score(self, axis: Axis) -> float:
        return self.scores.get(axis, 0.0)

    def has_opinion(self, axis: Axis) -> bool:
        """True when the axis value rests on votes or questionnaire answers."""
        return self.axis_evidence.get(axis, 0) > 0 or axis in self.questionnaire_axes

    def vector(self) -> list[float]:
        return [self.score(a) for a in AXES]

    def to_dict(self) -> dict:
        return {
            "legislator_id": self.legislator_id,
            "scores": {a.value: round(self.score(a), 6) for a in AXES},
            "axis_evidence": {a.value: self.axis_evidence.get(a, 0) for a in AXES},
            "questionnaire_axes": [a.value for a in AXES if a in self.questionnaire_axes],
            "total_votes_analyzed": self.total_votes_analyzed,
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, d: dict) -> Profile:
        return cls(
            legislator_id=d["legislator_id"],
            scores={Axis(k): float(v) for k, v in d["scores"].items()},
            axis_evidence={Axis(k): int(v) for k, v in d.get("axis_evidence", {}).items()},
            total_votes_analyzed=int(d.get("total_votes_analyzed", 0)),
            last_updated=d.get("last_updated", ""),
            questionnaire_axes=[Axis(a) for a in d.get("questionnaire_axes", [])],
        )


@dataclass(frozen=True)
class IntegrityAlert:
    legislator_id: str
    event_id: str
    category: Axis
    promise_value: int  # average promise as a percentage, -100 .. 100
    vote_type: VoteType
    deviation: float
    severity: str  # "medium" | "high"

    @property
    def key(self) -> tuple[str, str]:
        return (self.legislator_id, self.event_id)


@dataclass
class PartyAggregate:
    """Derived party-level analytics.  Recomputable, never authoritative."""

    party: str
    cohesion_score: float  # mean Rice index, 0-100
    polarization_score: int
    polarization_vector: dict[Axis, float]
    pivot_score: int  # 0-100
    topic_ownership: dict[str, float]  # category -> votes per member
    top_category: str
    activity_score: float  # categorized votes per member
    mp_count: int

    def to_dict(self) -> dict:
        return {
            "party": self.party,
            "cohesion_score": round(self.cohesion_score, 4),
            "polarization_score": self.polarization_score,
            "polarization_vector": {
                a.value: round(self.polarization_vector.get(a, 0.0), 6) for a in AXES
            },
            "pivot_score": self.pivot_score,
            "topic_ownership": {
                k: round(v, 6) for k, v in sorted(self.topic_ownership.items())
            },
            "top_category": self.top_category,
            "activity_score": round(self.activity_score, 6),
            "mp_count": self.mp_count,
        }

    @classmethod
    def from_dict(cls, d: dict) -> PartyAggregate:
        return cls(
            party=d["party"],
            cohesion_score=float(d["cohesion_score"]),
            polarization_score=int(d["polarization_score"]),
            polarization_vector={
                Axis(k): float(v) for k, v in d["polarization_vector"].items()
            },
            pivot_score=int(d["pivot_score"]),
            topic_ownership={k: float(v) for k, v in d["topic_ownership"].items()},
            top_category=d["top_category"],
            activity_score=float(d.get("activity_score", 0.0)),
            mp_count=int(d["mp_count"]),
        )
