"""Batch pass: categorize → aggregate → normalize → publish → party analytics.

Every pass recomputes the full profile population from one frozen vote
snapshot and publishes it in a single step, replacing the previous
snapshot rather than merging into it.  If anything raises before the
publish, the previously published profiles stay untouched.

Checkpoint publishes during categorization are the exception: each one
replaces the snapshot with a complete population computed from the vote
store at that checkpoint.  A pass that fails after a checkpoint therefore
leaves the last checkpoint's profiles published, not the ones from before
the pass.  Pass ``reaggregate_on_checkpoint=False`` to publish only once.

Usage::

    from political_dna.pipeline import run_batch_pass

    result = run_batch_pass(vote_store, profile_store, response_store=responses)
    print(result.summary.to_dict())
"""

from __future__ import annotations

import logging
import time
from contextlib import nullcontext
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from .aggregator import aggregate_all, questionnaire_scores_all
from .analytics_cache import save_snapshot
from .categorizer import CategorizationSummary, Categorizer, ItemFailure, categorize_pending
from .models import PartyAggregate, Profile
from .normalizer import build_profiles
from .party_analytics import compute_party_aggregates
from .promise import check_all_events, compute_pivot_scores
from .run_log import RunLogger
from .store import AlertStore, ProfileStore, ResponseStore, VoteSnapshot, VoteStore

LOGGER = logging.getLogger(__name__)


@dataclass
class BatchSummary:
    """Structured outcome of one batch pass."""

    categorization: CategorizationSummary = field(default_factory=CategorizationSummary)
    profiles: int = 0
    vote_backed: int = 0
    questionnaire_only: int = 0
    parties: int = 0
    alerts: int = 0
    profile_version: int = 0
    taken_at: str = ""
    duration_s: float = 0.0

    @property
    def categorized(self) -> int:
        return self.categorization.categorized

    @property
    def skipped(self) -> int:
        """Events the categorizer placed in ``Other``; retried next pass."""
        return self.categorization.other

    @property
    def failures(self) -> list[ItemFailure]:
        return self.categorization.failures

    def to_dict(self) -> dict:
        return {
            "categorization": self.categorization.to_dict(),
            "profiles": self.profiles,
            "vote_backed": self.vote_backed,
            "questionnaire_only": self.questionnaire_only,
            "parties": self.parties,
            "alerts": self.alerts,
            "profile_version": self.profile_version,
            "taken_at": self.taken_at,
        }


@dataclass
class PassResult:
    profiles: Mapping[str, Profile]
    aggregates: dict[str, PartyAggregate]
    pivot_scores: dict[str, int]
    summary: BatchSummary


def compute_profiles(
    snapshot: VoteSnapshot,
    response_store: ResponseStore | None = None,
    *,
    as_of: str | None = None,
) -> dict[str, Profile]:
    """Full profile population for *snapshot*; nothing is published."""
    raw = aggregate_all(snapshot)
    questionnaire = questionnaire_scores_all(response_store.all()) if response_store else {}
    return build_profiles(raw, questionnaire, as_of=as_of or snapshot.taken_at)


def _phase(run_log: RunLogger | None, name: str, detail: str | None = None):
    return run_log.phase_ctx(name, detail) if run_log is not None else nullcontext()


def run_batch_pass(
    vote_store: VoteStore,
    profile_store: ProfileStore,
    *,
    response_store: ResponseStore | None = None,
    alert_store: AlertStore | None = None,
    categorizer: Categorizer | None = None,
    as_of: str | None = None,
    workers: int | None = None,
    checkpoint_every: int | None = None,
    reaggregate_on_checkpoint: bool = True,
    cache_dir: Path | None = None,
    run_log: RunLogger | None = None,
) -> PassResult:
    """Run one complete batch pass.

    With a *categorizer*, pending events are categorized first; each
    checkpoint flushes the vote store and (unless disabled) publishes an
    interim profile snapshot so a crash loses at most one checkpoint of work.
    *as_of* stamps every profile; pass a fixed value for reproducible output.
    """
    t_start = time.perf_counter()
    summary = BatchSummary()

    if categorizer is not None:

        def _reaggregate(completed: int) -> None:
            interim = compute_profiles(vote_store.snapshot(), response_store, as_of=as_of)
            profile_store.publish(interim)
            LOGGER.info("Checkpoint after %d events: published interim profiles.", completed)

        with _phase(run_log, "Categorize"):
            summary.categorization = categorize_pending(
                vote_store,
                categorizer,
                workers=workers,
                checkpoint_every=checkpoint_every,
                on_checkpoint=_reaggregate if reaggregate_on_checkpoint else None,
            )

    snapshot = vote_store.snapshot()
    summary.taken_at = snapshot.taken_at

    with _phase(run_log, "Profiles"):
        profiles = compute_profiles(snapshot, response_store, as_of=as_of)
    summary.profiles = len(profiles)
    summary.vote_backed = sum(1 for p in profiles.values() if p.total_votes_analyzed > 0)
    summary.questionnaire_only = summary.profiles - summary.vote_backed

    pivot_scores: dict[str, int] = {}
    if response_store is not None:
        alert_store = alert_store if alert_store is not None else AlertStore()
        with _phase(run_log, "Promise watch"):
            summary.alerts = check_all_events(snapshot, response_store, alert_store)
            pivot_scores = compute_pivot_scores(snapshot, response_store, alert_store)

    with _phase(run_log, "Party analytics"):
        aggregates = compute_party_aggregates(snapshot, profiles, pivot_scores)
    summary.parties = len(aggregates)

    # Publish only once everything above has succeeded.
    summary.profile_version = profile_store.publish(profiles)
    published = profile_store.snapshot()

    if cache_dir is not None:
        with _phase(run_log, "Save snapshot"):
            save_snapshot(cache_dir, published, aggregates)

    summary.duration_s = round(time.perf_counter() - t_start, 2)
    if run_log is not None:
        run_log.summary.update(summary.to_dict())
    LOGGER.info(
        "Batch pass done in %.1fs: %d profiles (%d questionnaire-only), %d parties, %d alerts.",
        summary.duration_s,
        summary.profiles,
        summary.questionnaire_only,
        summary.parties,
        summary.alerts,
    )
    return PassResult(
        profiles=published,
        aggregates=aggregates,
        pivot_scores=pivot_scores,
        summary=summary,
    )
