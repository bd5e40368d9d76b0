"""Centralized configuration for the Political DNA engine.

All settings live here so they can be overridden by environment variables or a
``.env`` file without touching source code.

**Profile system:** Set ``DNA_PROFILE=dev`` (default) or ``DNA_PROFILE=prod``
to get sensible defaults for each environment.  Any individual ``DNA_*`` var
still overrides the profile value.

Usage::

    from political_dna.config import MIN_CONTROVERSY, get_government_parties
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the current working directory (project root for scripts)
load_dotenv()

LOGGER = logging.getLogger(__name__)

# ── Profile: one knob for the whole environment ──────────────────────────────

PROFILE: str = os.getenv("DNA_PROFILE", "dev").lower().strip()

_PROFILE_DEFAULTS: dict[str, dict[str, str]] = {
    "dev": {
        "DNA_CATEGORIZER_WORKERS": "2",
        "DNA_CHECKPOINT_EVERY": "10",
        "DNA_PIVOT_SAMPLE_SIZE": "0",
    },
    "prod": {
        "DNA_CATEGORIZER_WORKERS": "4",
        "DNA_CHECKPOINT_EVERY": "25",
        "DNA_PIVOT_SAMPLE_SIZE": "0",
    },
}

if PROFILE not in _PROFILE_DEFAULTS:
    LOGGER.warning("Unknown DNA_PROFILE=%r, falling back to 'dev'.", PROFILE)
    PROFILE = "dev"

_defaults = _PROFILE_DEFAULTS[PROFILE]


def _env(key: str, fallback: str = "") -> str:
    """Read an env var, falling back to profile default then *fallback*."""
    return os.getenv(key, _defaults.get(key, fallback))


# ── Directories ──────────────────────────────────────────────────────────────
CACHE_DIR: Path = Path(_env("DNA_CACHE_DIR", "cache"))

# ── Scoring thresholds ───────────────────────────────────────────────────────
# Events closer to unanimous than this carry no discriminating signal.
MIN_CONTROVERSY: float = float(_env("DNA_MIN_CONTROVERSY", "0.05"))
# Share of a blended profile that comes from the pre-election questionnaire.
QUESTIONNAIRE_WEIGHT: float = float(_env("DNA_QUESTIONNAIRE_WEIGHT", "0.4"))
# Cohesion assumed for parties with no measured cohesion (0-1).
DEFAULT_COHESION: float = float(_env("DNA_DEFAULT_COHESION", "0.8"))

# ── Categorizer ──────────────────────────────────────────────────────────────
CATEGORIZER_URL: str = _env(
    "DNA_CATEGORIZER_URL", "https://api.openai.com/v1/chat/completions"
).strip()
CATEGORIZER_API_KEY: str = _env("DNA_CATEGORIZER_API_KEY").strip()
CATEGORIZER_MODEL: str = _env("DNA_CATEGORIZER_MODEL", "gpt-4o-mini").strip()
CATEGORIZER_WORKERS: int = int(_env("DNA_CATEGORIZER_WORKERS", "4"))
CHECKPOINT_EVERY: int = int(_env("DNA_CHECKPOINT_EVERY", "25"))

# ── Party analytics ──────────────────────────────────────────────────────────
# 0 = use every member when averaging pivot scores.
PIVOT_SAMPLE_SIZE: int = int(_env("DNA_PIVOT_SAMPLE_SIZE", "0"))

DEFAULT_GOVERNMENT_PARTIES: tuple[str, ...] = ("KOK", "PS", "RKP", "KD")

if PROFILE == "prod" and not CATEGORIZER_API_KEY:
    LOGGER.warning(
        "DNA_PROFILE=prod but DNA_CATEGORIZER_API_KEY is empty. "
        "Only the keyword categorizer is available."
    )


def get_government_parties() -> frozenset[str]:
    """Return the configured government coalition (party line = aye).

    Coalition membership is an input, not something the engine infers.
    """
    custom = _env("DNA_GOVERNMENT_PARTIES").strip()
    if custom:
        return frozenset(p.strip() for p in custom.split(",") if p.strip())
    return frozenset(DEFAULT_GOVERNMENT_PARTIES)
