#!/usr/bin/env python3
"""Forecast a pending vote ("weather") from the current profiles.

Usage:
    python scripts/dna_forecast.py --votes data/votes.json --event HE-12-2025
    python scripts/dna_forecast.py --votes data/votes.json --title "Corporate tax cut"
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
from political_dna.analytics_cache import load_snapshot
from political_dna.categorizer import build_categorizer
from political_dna.models import VotingEvent
from political_dna.party_analytics import compute_cohesion
from political_dna.pipeline import compute_profiles
from political_dna.run_log import RunLogger
from political_dna.store import ResponseStore, UnknownEventError, VoteStore
from political_dna.weather import predict_outcome

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(message)s",
    datefmt="%H:%M:%S",
)

console = Console()

_WEATHER_STYLE = {"sunny": "bold yellow", "cloudy": "bold white", "stormy": "bold red"}


def main() -> int:
    parser = argparse.ArgumentParser(description="Political DNA vote forecast")
    parser.add_argument("--votes", type=Path, required=True, help="Vote store JSON file")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--event", help="Id of a stored voting event")
    target.add_argument("--title", help="Title of a not-yet-stored pending vote")
    parser.add_argument("--cache-dir", type=Path, default=cfg.CACHE_DIR)
    parser.add_argument("--rebels", type=int, default=5, help="Potential rebels to list")
    args = parser.parse_args()

    vote_store = VoteStore.from_json(args.votes)
    snapshot = vote_store.snapshot()

    with RunLogger("dna_forecast") as log:
        with log.phase_ctx("Profiles"):
            cached = load_snapshot(args.cache_dir, source_path=args.votes)
            if cached is not None:
                profiles = cached[0]
            else:
                console.print("[dim]No fresh snapshot in cache; recomputing profiles.[/]")
                profiles = compute_profiles(snapshot, ResponseStore.from_json(args.votes))

        if args.event:
            try:
                event = vote_store.get_event(args.event)
            except UnknownEventError:
                console.print(f"[red]Unknown event {args.event}[/]")
                return 1
        else:
            event = VotingEvent(id="pending", title=args.title)

        with log.phase_ctx("Forecast"):
            forecast = predict_outcome(
                event,
                profiles,
                snapshot.legislators.values(),
                compute_cohesion(snapshot),
                vote_store=vote_store if args.event else None,
                categorizer=build_categorizer(),
            )
        log.summary.update({"event_id": event.id, **forecast.to_dict()})

    style = _WEATHER_STYLE.get(forecast.weather, "bold")
    console.print(
        Panel(
            f"[{style}]{forecast.weather.upper()}[/]   axis: {forecast.axis.value}\n"
            f"aye {forecast.aye}   nay {forecast.nay}   undecided {forecast.undecided}",
            title=event.title or event.id,
            border_style="cyan",
        )
    )

    rebels = forecast.top_rebels(args.rebels)
    if rebels:
        table = Table(title="Potential rebels")
        table.add_column("Legislator", style="bold")
        table.add_column("Party")
        table.add_column("Probability", justify="right")
        for r in rebels:
            table.add_row(r.name, r.party, f"{r.probability}%")
        console.print(table)
    return 0


if __name__ == "__main__":
    sys.exit(main())
