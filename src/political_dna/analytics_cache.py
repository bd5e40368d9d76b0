"""Persist and load the published profile and party snapshot to skip recomputation."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Mapping

from .models import PartyAggregate, Profile
from .store import write_json_atomic

LOGGER = logging.getLogger(__name__)

_PROFILES_FILE = "profiles.json"
_AGGREGATES_FILE = "party_aggregates.json"


def _profiles_path(cache_dir: Path) -> Path:
    return cache_dir / _PROFILES_FILE


def _aggregates_path(cache_dir: Path) -> Path:
    return cache_dir / _AGGREGATES_FILE


def profiles_payload(profiles: Mapping[str, Profile]) -> dict:
    return {lid: profiles[lid].to_dict() for lid in sorted(profiles)}


def aggregates_payload(aggregates: Mapping[str, PartyAggregate]) -> dict:
    return {party: aggregates[party].to_dict() for party in sorted(aggregates)}


def save_snapshot(
    cache_dir: Path,
    profiles: Mapping[str, Profile],
    aggregates: Mapping[str, PartyAggregate],
) -> tuple[Path, Path]:
    """Write profiles.json and party_aggregates.json to *cache_dir*.

    Identical inputs produce byte-identical files.
    """
    p_path = _profiles_path(cache_dir)
    a_path = _aggregates_path(cache_dir)
    write_json_atomic(p_path, profiles_payload(profiles))
    write_json_atomic(a_path, aggregates_payload(aggregates))
    LOGGER.info("Saved analytics snapshot to %s and %s", p_path, a_path)
    return p_path, a_path


def load_snapshot(
    cache_dir: Path,
    source_path: Path | None = None,
) -> tuple[dict[str, Profile], dict[str, PartyAggregate]] | None:
    """Load the cached snapshot if present and not stale.

    The cache is stale when either file is older than *source_path* (the
    vote data it was computed from).  Returns None if any file is missing,
    stale or unreadable.
    """
    p_path = _profiles_path(cache_dir)
    a_path = _aggregates_path(cache_dir)
    if not p_path.exists() or not a_path.exists():
        return None
    if source_path is not None:
        try:
            source_mtime = source_path.stat().st_mtime
            if p_path.stat().st_mtime < source_mtime or a_path.stat().st_mtime < source_mtime:
                LOGGER.info("Analytics cache older than %s; ignoring.", source_path)
                return None
        except OSError:
            return None

    try:
        with open(p_path, encoding="utf-8") as f:
            p_raw = json.load(f)
        with open(a_path, encoding="utf-8") as f:
            a_raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        LOGGER.warning("Failed to read analytics cache: %s", e)
        return None

    try:
        profiles = {lid: Profile.from_dict(d) for lid, d in p_raw.items()}
        aggregates = {party: PartyAggregate.from_dict(d) for party, d in a_raw.items()}
    except (TypeError, KeyError, ValueError, AttributeError) as e:
        LOGGER.warning("Analytics cache format error: %s", e)
        return None
    LOGGER.info(
        "Loaded analytics from cache (%d profiles, %d parties).",
        len(profiles),
        len(aggregates),
    )
    return profiles, aggregates
