#!/usr/bin/env python3
"""Run one full Political DNA batch pass.

    1. Categorize pending voting events (LLM if DNA_CATEGORIZER_API_KEY is
       set, keyword table otherwise), checkpointing as it goes
    2. Aggregate + stretch + blend questionnaire answers into profiles
    3. Promise watch (integrity alerts, pivot scores)
    4. Party analytics (cohesion, polarization, topic ownership, pivot)
    5. Publish and save profiles.json / party_aggregates.json

Usage:
    python scripts/dna_run.py --votes data/votes.json
    python scripts/dna_run.py --parquet processed/ --no-categorize
    python scripts/dna_run.py --votes data/votes.json --as-of 2025-01-01T00:00:00+00:00
    python scripts/dna_run.py --history 20
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from political_dna import config as cfg
from political_dna.axes import AXES
from political_dna.categorizer import build_categorizer
from political_dna.describer import describe_profile
from political_dna.party_analytics import parliament_stats
from political_dna.pipeline import run_batch_pass
from political_dna.run_log import RunLogger, read_runs
from political_dna.store import ProfileStore, ResponseStore, VoteStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(message)s",
    datefmt="%H:%M:%S",
)

console = Console()


def _load(args: argparse.Namespace) -> tuple[VoteStore, ResponseStore]:
    if args.parquet:
        return VoteStore.from_parquet(args.parquet), ResponseStore.from_parquet(args.parquet)
    return VoteStore.from_json(args.votes), ResponseStore.from_json(args.votes)


def _print_history(n: int) -> None:
    runs = read_runs(n, task="dna_run")
    if not runs:
        console.print("[dim]No batch passes in the run log yet.[/]")
        return
    table = Table(title=f"Last {len(runs)} batch passes")
    table.add_column("Run", style="dim")
    table.add_column("Started")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    table.add_column("Slowest phase")
    table.add_column("Categorized", justify="right")
    table.add_column("Profiles", justify="right")
    table.add_column("Alerts", justify="right")
    for run in runs:
        slowest = run.slowest_phase()
        summary = run.summary
        status = "[green]ok[/]" if run.status == "ok" else f"[red]{run.error or run.status}[/]"
        table.add_row(
            run.run_id,
            run.started_at[:16].replace("T", " "),
            status,
            f"{run.duration_s:.1f}s",
            f"{slowest.name} ({slowest.duration_s:.1f}s)" if slowest else "-",
            str(summary.get("categorization", {}).get("categorized", "-")),
            str(summary.get("profiles", "-")),
            str(summary.get("alerts", "-")),
        )
    console.print(table)


def main() -> int:
    parser = argparse.ArgumentParser(description="Political DNA batch pass")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--votes", type=Path, help="Vote store JSON file (updated at checkpoints)")
    source.add_argument("--parquet", type=Path, help="Directory with the parquet star schema")
    parser.add_argument("--no-categorize", action="store_true", help="Skip categorization")
    parser.add_argument("--as-of", default=None, help="Timestamp stamped on every profile")
    parser.add_argument(
        "--cache-dir", type=Path, default=cfg.CACHE_DIR, help="Output directory for snapshots"
    )
    parser.add_argument("--top", type=int, default=10, help="Profiles to show in the summary")
    parser.add_argument(
        "--history",
        type=int,
        metavar="N",
        default=None,
        help="Show the last N batch passes from the run log and exit",
    )
    args = parser.parse_args()

    if args.history is not None:
        _print_history(args.history)
        return 0
    if args.votes is None and args.parquet is None:
        parser.error("one of --votes or --parquet is required")

    vote_store, response_store = _load(args)
    categorizer = None if args.no_categorize else build_categorizer()

    console.print(
        Panel(
            f"[bold]Political DNA batch pass[/]\n"
            f"Profile: {cfg.PROFILE}   Categorizer: "
            f"{categorizer.name if categorizer else 'off'}   Votes: {len(vote_store):,}",
            border_style="cyan",
        )
    )

    with RunLogger("dna_run") as log:
        result = run_batch_pass(
            vote_store,
            ProfileStore(),
            response_store=response_store,
            categorizer=categorizer,
            as_of=args.as_of,
            cache_dir=args.cache_dir,
            run_log=log,
        )

    summary = result.summary
    if summary.failures:
        console.print(f"[yellow]{len(summary.failures)} categorization failures[/]")
        for failure in summary.failures[:10]:
            console.print(f"  [dim]{failure.item_id}: {failure.error}[/]")

    parties = Table(title="Parties", show_lines=False)
    parties.add_column("Party", style="bold")
    parties.add_column("MPs", justify="right")
    parties.add_column("Cohesion", justify="right")
    parties.add_column("Polarization", justify="right")
    parties.add_column("Pivot", justify="right")
    parties.add_column("Owns")
    for agg in result.aggregates.values():
        parties.add_row(
            agg.party,
            str(agg.mp_count),
            f"{agg.cohesion_score:.1f}",
            str(agg.polarization_score),
            str(agg.pivot_score),
            agg.top_category,
        )
    console.print(parties)

    profiles = Table(title=f"Profiles (first {args.top})")
    profiles.add_column("Legislator", style="bold")
    for axis in AXES:
        profiles.add_column(axis.value[:4], justify="right")
    profiles.add_column("Archetype")
    for profile in list(result.profiles.values())[: args.top]:
        title, _ = describe_profile(profile)
        profiles.add_row(
            profile.legislator_id, *(f"{v:+.2f}" for v in profile.vector()), title
        )
    console.print(profiles)

    stats = parliament_stats(result.aggregates, list(result.profiles.values()))
    median = "  ".join(f"{a.value[:4]} {stats.median_dna[a]:+.2f}" for a in AXES)
    console.print(Panel(median, title="Chamber median DNA", border_style="dim"))

    console.print(
        f"\n[bold green]Done[/] in {summary.duration_s:.1f}s: "
        f"{summary.profiles} profiles, {summary.parties} parties, {summary.alerts} alerts "
        f"-> {args.cache_dir}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
