"""In-memory stores for votes, profiles, questionnaire answers and alerts.

Every engine component receives the stores it needs as parameters; nothing
here is a module-level singleton.

* :class:`VoteStore` is append-only apart from the one-time category
  backfill.  Analytics never read it directly: they read a
  :class:`VoteSnapshot`, a frozen copy taken once per batch pass so that
  population-wide statistics all come from the same data.
* :class:`ProfileStore` publishes whole snapshots atomically.  Readers see
  either the previous snapshot or the new one, never a mix.
* :class:`ResponseStore` and :class:`AlertStore` are keyed upsert stores.

Loaders read the JSON layout written by :meth:`VoteStore.to_json` or a
Parquet star schema (``dim_legislators``, ``dim_events``, ``fact_votes``,
optionally ``fact_candidate_responses``) via Polars.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from collections import defaultdict
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping

import polars as pl

from .axes import Axis, VoteType, parse_category, parse_vote_type
from .models import CandidateResponse, IntegrityAlert, Legislator, Profile, VoteCast, VotingEvent

LOGGER = logging.getLogger(__name__)

_OWN_SECTIONS = ("legislators", "events", "votes")


class DuplicateVoteError(ValueError):
    """A second vote was recorded for the same (legislator, event) pair."""


class UnknownEventError(KeyError):
    """Referenced voting event does not exist in the store."""


def write_json_atomic(path: Path, payload: Any) -> None:
    """Write *payload* as JSON via a temp file + ``os.replace``.

    Output uses sorted keys so identical payloads produce identical bytes.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True, ensure_ascii=False)
            f.write("\n")
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


# ── Row conversion ───────────────────────────────────────────────────────────


def _legislator_from_row(row: Mapping[str, Any]) -> Legislator:
    return Legislator(
        id=str(row["id"]),
        name=row.get("name") or str(row["id"]),
        party=row.get("party") or "",
        active=bool(row.get("active", True)),
    )


def _clamp_weight(weight: float) -> float:
    return max(-1.0, min(1.0, float(weight)))


def _event_from_row(row: Mapping[str, Any]) -> VotingEvent:
    raw_category = row.get("category")
    weight = row.get("signed_weight")
    if weight is not None:
        weight = float(weight)
        if not -1.0 <= weight <= 1.0:
            LOGGER.warning("Event %s: signed_weight %s clamped to [-1, 1].", row["id"], weight)
            weight = _clamp_weight(weight)
    aye_count = int(row.get("aye_count") or 0)
    nay_count = int(row.get("nay_count") or 0)
    if aye_count < 0 or nay_count < 0:
        LOGGER.warning(
            "Event %s: negative vote counts (%d/%d) set to 0.", row["id"], aye_count, nay_count
        )
    return VotingEvent(
        id=str(row["id"]),
        title=row.get("title") or "",
        category=parse_category(raw_category) if raw_category else None,
        signed_weight=weight,
        aye_count=max(0, aye_count),
        nay_count=max(0, nay_count),
    )


def _event_to_row(event: VotingEvent) -> dict[str, Any]:
    return {
        "id": event.id,
        "title": event.title,
        "category": event.category.value if event.category is not None else None,
        "signed_weight": event.signed_weight,
        "aye_count": event.aye_count,
        "nay_count": event.nay_count,
    }


def _response_from_row(row: Mapping[str, Any]) -> CandidateResponse:
    return CandidateResponse(
        legislator_id=str(row["legislator_id"]),
        question=row["question"],
        response_value=int(row["response_value"]),
        category=parse_category(row.get("category")),
        weight=float(row["weight"]) if row.get("weight") is not None else 1.0,
    )


# ── Frozen snapshot ──────────────────────────────────────────────────────────


class VoteSnapshot:
    """Immutable view of the vote store at one point in time."""

    def __init__(
        self,
        legislators: Mapping[str, Legislator],
        events: Mapping[str, VotingEvent],
        casts: Iterable[VoteCast],
        taken_at: str,
    ) -> None:
        self.legislators: Mapping[str, Legislator] = MappingProxyType(
            {lid: replace(leg) for lid, leg in legislators.items()}
        )
        self.events: Mapping[str, VotingEvent] = MappingProxyType(
            {eid: replace(ev) for eid, ev in events.items()}
        )
        self.casts: tuple[VoteCast, ...] = tuple(casts)
        self.taken_at = taken_at

        by_legislator: dict[str, list[VoteCast]] = defaultdict(list)
        by_event: dict[str, list[VoteCast]] = defaultdict(list)
        for cast in self.casts:
            by_legislator[cast.legislator_id].append(cast)
            by_event[cast.event_id].append(cast)
        self._by_legislator = dict(by_legislator)
        self._by_event = dict(by_event)

    def votes_for_legislator(self, legislator_id: str) -> list[tuple[VotingEvent, VoteType]]:
        """All of a legislator's votes joined with their events."""
        return [
            (self.events[c.event_id], c.vote_type)
            for c in self._by_legislator.get(legislator_id, [])
            if c.event_id in self.events
        ]

    def votes_for_event(self, event_id: str) -> list[tuple[str, str, VoteType]]:
        """``(legislator_id, party, vote_type)`` for every vote on *event_id*."""
        rows = []
        for c in self._by_event.get(event_id, []):
            leg = self.legislators.get(c.legislator_id)
            rows.append((c.legislator_id, leg.party if leg else "", c.vote_type))
        return rows

    def party_members(self, *, active_only: bool = True) -> dict[str, list[Legislator]]:
        members: dict[str, list[Legislator]] = defaultdict(list)
        for leg in sorted(self.legislators.values(), key=lambda leg: leg.id):
            if active_only and not leg.active:
                continue
            if leg.party:
                members[leg.party].append(leg)
        return dict(members)

    def casts_frame(self) -> pl.DataFrame:
        """Votes joined with legislator party and event category.

        Columns: ``legislator_id, party, active, event_id, category,
        vote_type``.  ``category`` is null for uncategorized events.
        """
        cols: dict[str, list] = {
            "legislator_id": [],
            "party": [],
            "active": [],
            "event_id": [],
            "category": [],
            "vote_type": [],
        }
        for c in self.casts:
            leg = self.legislators.get(c.legislator_id)
            event = self.events.get(c.event_id)
            if leg is None or event is None:
                continue
            cols["legislator_id"].append(c.legislator_id)
            cols["party"].append(leg.party)
            cols["active"].append(leg.active)
            cols["event_id"].append(c.event_id)
            cols["category"].append(event.category.value if event.category else None)
            cols["vote_type"].append(c.vote_type.value)
        return pl.DataFrame(
            cols,
            schema={
                "legislator_id": pl.Utf8,
                "party": pl.Utf8,
                "active": pl.Boolean,
                "event_id": pl.Utf8,
                "category": pl.Utf8,
                "vote_type": pl.Utf8,
            },
        )


# ── Vote store ───────────────────────────────────────────────────────────────


class VoteStore:
    """Append-only store of legislators, voting events and vote casts.

    A file-backed store (see :meth:`from_json`) writes itself back to the
    same file on :meth:`flush`.  Top-level sections it does not own (e.g.
    ``responses``) and vote rows it could not load are written back
    unchanged.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path
        self._legislators: dict[str, Legislator] = {}
        self._events: dict[str, VotingEvent] = {}
        self._casts: dict[tuple[str, str], VoteCast] = {}
        self._by_legislator: dict[str, dict[str, VoteCast]] = defaultdict(dict)
        self._by_event: dict[str, dict[str, VoteCast]] = defaultdict(dict)
        self._extra: dict[str, Any] = {}
        self._rejected_votes: list[Mapping[str, Any]] = []
        self._lock = threading.RLock()

    # ── Writes ──

    def add_legislator(self, legislator: Legislator) -> None:
        with self._lock:
            self._legislators[legislator.id] = legislator

    def add_event(self, event: VotingEvent) -> None:
        with self._lock:
            self._events[event.id] = event

    def add_vote(self, cast: VoteCast) -> None:
        key = (cast.legislator_id, cast.event_id)
        with self._lock:
            if cast.event_id not in self._events:
                raise UnknownEventError(cast.event_id)
            if key in self._casts:
                raise DuplicateVoteError(
                    f"{cast.legislator_id} already voted on {cast.event_id}"
                )
            self._casts[key] = cast
            self._by_legislator[cast.legislator_id][cast.event_id] = cast
            self._by_event[cast.event_id][cast.legislator_id] = cast

    def backfill_category(
        self,
        event_id: str,
        category: Axis,
        weight: float,
        *,
        force: bool = False,
    ) -> bool:
        """Write a categorizer result onto an event.

        A no-op (returns ``False``) when the event is already categorized,
        unless *force* is set.  Re-running a pass therefore never rewrites
        an existing category.
        """
        with self._lock:
            event = self._events.get(event_id)
            if event is None:
                raise UnknownEventError(event_id)
            if event.is_categorized and not force:
                return False
            event.category = category
            event.signed_weight = _clamp_weight(weight)
            return True

    # ── Reads ──

    def get_event(self, event_id: str) -> VotingEvent:
        with self._lock:
            try:
                return self._events[event_id]
            except KeyError:
                raise UnknownEventError(event_id) from None

    def events_needing_category(self, *, force: bool = False) -> list[VotingEvent]:
        """Events still uncategorized or tagged ``Other`` (all events if *force*)."""
        with self._lock:
            events = sorted(self._events.values(), key=lambda e: e.id)
        if force:
            return events
        return [e for e in events if not e.is_categorized]

    def votes_for_legislator(self, legislator_id: str) -> list[tuple[VotingEvent, VoteType]]:
        """A legislator's votes joined with their events, ordered by event id."""
        with self._lock:
            casts = self._by_legislator.get(legislator_id, {})
            return [(self._events[eid], casts[eid].vote_type) for eid in sorted(casts)]

    def votes_for_event(self, event_id: str) -> list[tuple[str, str, VoteType]]:
        """``(legislator_id, party, vote_type)`` per vote, ordered by legislator id."""
        with self._lock:
            casts = self._by_event.get(event_id, {})
            rows = []
            for lid in sorted(casts):
                leg = self._legislators.get(lid)
                rows.append((lid, leg.party if leg else "", casts[lid].vote_type))
            return rows

    def snapshot(self) -> VoteSnapshot:
        """Freeze the current contents for one analytics pass."""
        with self._lock:
            casts = sorted(self._casts.values(), key=lambda c: (c.event_id, c.legislator_id))
            return VoteSnapshot(
                self._legislators,
                self._events,
                casts,
                taken_at=datetime.now(timezone.utc).isoformat(),
            )

    def __len__(self) -> int:
        return len(self._casts)

    # ── Persistence ──

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                **self._extra,
                "legislators": [
                    {"id": leg.id, "name": leg.name, "party": leg.party, "active": leg.active}
                    for leg in sorted(self._legislators.values(), key=lambda x: x.id)
                ],
                "events": [
                    _event_to_row(ev) for ev in sorted(self._events.values(), key=lambda x: x.id)
                ],
                "votes": [
                    {
                        "legislator_id": c.legislator_id,
                        "event_id": c.event_id,
                        "vote_type": c.vote_type.value,
                    }
                    for _key, c in sorted(self._casts.items())
                ]
                + [dict(row) for row in self._rejected_votes],
            }

    def to_json(self, path: Path) -> None:
        write_json_atomic(path, self.to_dict())

    def flush(self) -> bool:
        """Persist to :attr:`path` if the store is file-backed."""
        if self.path is None:
            return False
        self.to_json(self.path)
        return True

    @classmethod
    def from_records(
        cls,
        legislators: Iterable[Mapping[str, Any]],
        events: Iterable[Mapping[str, Any]],
        votes: Iterable[Mapping[str, Any]],
        *,
        path: Path | None = None,
    ) -> VoteStore:
        store = cls(path=path)
        for row in legislators:
            store.add_legislator(_legislator_from_row(row))
        for row in events:
            store.add_event(_event_from_row(row))
        skipped = 0
        for row in votes:
            try:
                store.add_vote(
                    VoteCast(
                        legislator_id=str(row["legislator_id"]),
                        event_id=str(row["event_id"]),
                        vote_type=parse_vote_type(row.get("vote_type", "")),
                    )
                )
            except (DuplicateVoteError, UnknownEventError) as e:
                skipped += 1
                store._rejected_votes.append(row)
                LOGGER.debug("Skipping vote row %r: %s", row, e)
        if skipped:
            LOGGER.warning("Skipped %d duplicate or orphaned vote rows.", skipped)
        LOGGER.info(
            "Loaded vote store: %d legislators, %d events, %d votes.",
            len(store._legislators),
            len(store._events),
            len(store._casts),
        )
        return store

    @classmethod
    def from_json(cls, path: Path) -> VoteStore:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
        store = cls.from_records(
            raw.get("legislators", []),
            raw.get("events", []),
            raw.get("votes", []),
            path=path,
        )
        store._extra = {k: v for k, v in raw.items() if k not in _OWN_SECTIONS}
        return store

    @classmethod
    def from_parquet(cls, directory: Path) -> VoteStore:
        """Load the ``dim_legislators`` / ``dim_events`` / ``fact_votes`` star schema."""
        return cls.from_records(
            pl.read_parquet(directory / "dim_legislators.parquet").to_dicts(),
            pl.read_parquet(directory / "dim_events.parquet").to_dicts(),
            pl.read_parquet(directory / "fact_votes.parquet").to_dicts(),
        )


# ── Profile store ────────────────────────────────────────────────────────────


class ProfileStore:
    """Holds the published profile snapshot.  Publishing swaps it whole."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._profiles: Mapping[str, Profile] = MappingProxyType({})
        self.version = 0

    def publish(self, profiles: Mapping[str, Profile]) -> int:
        """Replace the snapshot in one step and return the new version."""
        frozen = MappingProxyType(dict(sorted(profiles.items())))
        with self._lock:
            self._profiles = frozen
            self.version += 1
            version = self.version
        LOGGER.info("Published profile snapshot v%d (%d profiles).", version, len(frozen))
        return version

    def snapshot(self) -> Mapping[str, Profile]:
        """The current snapshot; stays consistent even if a publish follows."""
        with self._lock:
            return self._profiles

    def get(self, legislator_id: str) -> Profile | None:
        return self.snapshot().get(legislator_id)

    def all(self) -> list[Profile]:
        return list(self.snapshot().values())

    def with_evidence(self) -> list[Profile]:
        """Profiles backed by at least one qualifying vote."""
        return [p for p in self.snapshot().values() if sum(p.axis_evidence.values()) > 0]

    def __len__(self) -> int:
        return len(self.snapshot())


# ── Candidate responses ──────────────────────────────────────────────────────


class ResponseStore:
    """Pre-election questionnaire answers, upserted by (legislator, question)."""

    def __init__(self) -> None:
        self._responses: dict[tuple[str, str], CandidateResponse] = {}
        self._lock = threading.Lock()

    def upsert(self, response: CandidateResponse) -> None:
        with self._lock:
            self._responses[(response.legislator_id, response.question)] = response

    def for_category(self, category: Axis) -> dict[str, list[CandidateResponse]]:
        grouped: dict[str, list[CandidateResponse]] = defaultdict(list)
        for r in self.all():
            if r.category == category:
                grouped[r.legislator_id].append(r)
        return dict(grouped)

    def all(self) -> list[CandidateResponse]:
        with self._lock:
            return [self._responses[k] for k in sorted(self._responses)]

    def __len__(self) -> int:
        return len(self._responses)

    @classmethod
    def from_records(cls, rows: Iterable[Mapping[str, Any]]) -> ResponseStore:
        store = cls()
        for row in rows:
            try:
                store.upsert(_response_from_row(row))
            except (KeyError, ValueError) as e:
                LOGGER.warning("Skipping malformed candidate response %r: %s", row, e)
        return store

    @classmethod
    def from_json(cls, path: Path) -> ResponseStore:
        """Read the ``responses`` list of a vote-store JSON file (may be absent)."""
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
        return cls.from_records(raw.get("responses", []))

    @classmethod
    def from_parquet(cls, directory: Path) -> ResponseStore:
        path = directory / "fact_candidate_responses.parquet"
        if not path.exists():
            return cls()
        return cls.from_records(pl.read_parquet(path).to_dicts())


# ── Integrity alerts ─────────────────────────────────────────────────────────


class AlertStore:
    """Integrity alerts, upserted by (legislator, event)."""

    def __init__(self) -> None:
        self._alerts: dict[tuple[str, str], IntegrityAlert] = {}
        self._lock = threading.Lock()

    def upsert(self, alerts: Iterable[IntegrityAlert]) -> int:
        """Store *alerts*, replacing any with the same key.  Returns new-key count."""
        created = 0
        with self._lock:
            for alert in alerts:
                if alert.key not in self._alerts:
                    created += 1
                self._alerts[alert.key] = alert
        return created

    def for_legislator(self, legislator_id: str) -> list[IntegrityAlert]:
        return [a for a in self.all() if a.legislator_id == legislator_id]

    def all(self) -> list[IntegrityAlert]:
        with self._lock:
            return [self._alerts[k] for k in sorted(self._alerts)]

    def __len__(self) -> int:
        return len(self._alerts)
