"""Voting-event categorization.

A categorizer maps an event title onto one of the six axes plus a signed
weight in [-1, 1] saying which end of the axis an *aye* vote supports.
Example: "Corporate tax cut" → ``Economy, +1.0``; "Stricter nature
conservation act" → ``Environment, +1.0``.

Two implementations ship here:

- :class:`KeywordCategorizer`: deterministic keyword table, no network.
- :class:`LLMCategorizer`: calls an OpenAI-compatible chat endpoint and
  decodes the reply through the :class:`CategoryResult` schema.

Callers never use ``categorize()`` directly in batch code: they go through
:func:`safe_categorize`, which is total (falls back to ``Other``/0 on any
failure), and :func:`categorize_pending`, which runs a bounded worker pool
and checkpoints progress.
"""

from __future__ import annotations

import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable

import requests
from pydantic import BaseModel, Field, ValidationError, field_validator
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from . import config as cfg
from .axes import AXES, Axis, parse_category
from .store import VoteStore

LOGGER = logging.getLogger(__name__)


class CategorizerError(Exception):
    """The categorizer could not produce a valid result."""


# ── Response contract ────────────────────────────────────────────────────────


class CategoryResult(BaseModel):
    """Validated categorizer output."""

    category: Axis = Field(description="One of the six axes, or Other")
    weight: float = Field(ge=-1.0, le=1.0, description="Signed ideological weight of an aye")
    ok: bool = Field(default=True, description="False when this is a fallback value")

    @field_validator("category", mode="before")
    @classmethod
    def _parse_category(cls, value: object) -> Axis:
        if isinstance(value, str) or value is None:
            return parse_category(value)
        return value

    @field_validator("weight", mode="before")
    @classmethod
    def _null_weight(cls, value: object) -> object:
        return 0.0 if value is None else value


FALLBACK = CategoryResult(category=Axis.OTHER, weight=0.0, ok=False)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def decode_response(text: str) -> CategoryResult:
    """Decode a model reply into a :class:`CategoryResult`.

    Accepts a bare JSON object or one wrapped in a Markdown code fence.
    Raises :class:`CategorizerError` if no object is present or it fails
    schema validation.
    """
    if not text or not text.strip():
        raise CategorizerError("empty categorizer response")
    fenced = _FENCE_RE.search(text)
    body = fenced.group(1) if fenced else text
    match = _OBJECT_RE.search(body)
    if match is None:
        raise CategorizerError(f"no JSON object in response: {text[:80]!r}")
    try:
        return CategoryResult.model_validate_json(match.group(0))
    except ValidationError as e:
        raise CategorizerError(f"invalid categorizer response: {e.error_count()} error(s)") from e


# ── Categorizers ─────────────────────────────────────────────────────────────


class Categorizer:
    """Base class.  ``categorize`` may raise; use :func:`safe_categorize`."""

    name = "base"

    def categorize(self, title: str) -> CategoryResult:
        raise NotImplementedError


def safe_categorize(categorizer: Categorizer, title: str) -> CategoryResult:
    """Total wrapper: any failure yields the ``Other``/0 fallback."""
    try:
        return categorizer.categorize(title)
    except Exception as e:
        LOGGER.warning("Categorizer %s failed for %r: %s", categorizer.name, title[:60], e)
        return FALLBACK


# keyword -> signed weight of an aye vote on a title containing it
_KEYWORDS: dict[Axis, dict[str, float]] = {
    Axis.ECONOMY: {
        "tax cut": 1.0,
        "tax reduction": 1.0,
        "privatis": 0.8,
        "privatiz": 0.8,
        "deregulat": 0.8,
        "spending cut": 0.8,
        "savings": 0.6,
        "unemployment benefit": -0.6,
        "minimum wage": -0.8,
        "social security": -0.6,
        "tax increase": -0.8,
        "budget": 0.2,
        "tax": 0.3,
    },
    Axis.VALUES: {
        "marriage": -0.6,
        "gender": -0.8,
        "cannabis": -0.8,
        "abortion": -0.8,
        "religio": 0.6,
        "tradition": 0.8,
        "family values": 0.8,
        "asylum": 0.4,
        "immigration": 0.4,
    },
    Axis.ENVIRONMENT: {
        "nature conservation": 1.0,
        "conservation": 0.8,
        "climate": 0.8,
        "emission": 0.8,
        "biodiversity": 1.0,
        "forest protection": 1.0,
        "logging": -0.6,
        "peat": -0.6,
        "mining": -0.8,
        "fuel tax": 0.4,
    },
    Axis.REGIONAL: {
        "rural": 0.8,
        "sparsely populated": 0.8,
        "regional": 0.6,
        "agricultur": 0.6,
        "metropolitan": -0.6,
        "urban": -0.6,
        "municipal merger": -0.4,
    },
    Axis.INTERNATIONAL: {
        "european union": 0.8,
        "eu ": 0.6,
        "treaty": 0.6,
        "development aid": 0.8,
        "ukraine": 0.8,
        "sovereignty": -0.8,
        "national interest": -0.6,
    },
    Axis.SECURITY: {
        "nato": 1.0,
        "defence": 0.8,
        "defense": 0.8,
        "military": 0.8,
        "border guard": 0.6,
        "police": 0.6,
        "surveillance": 0.6,
        "disarmament": -0.8,
        "peace": -0.6,
    },
}


class KeywordCategorizer(Categorizer):
    """Deterministic, offline categorizer driven by a keyword table.

    The axis with the most keyword hits wins (ties go to enumeration
    order); the weight is the mean weight of that axis's hits.
    """

    name = "keyword"

    def __init__(self, keywords: dict[Axis, dict[str, float]] | None = None) -> None:
        self.keywords = keywords if keywords is not None else _KEYWORDS

    def categorize(self, title: str) -> CategoryResult:
        text = f" {title.lower()} "
        best_axis = Axis.OTHER
        best_hits: list[float] = []
        for axis in AXES:
            hits = [w for kw, w in self.keywords.get(axis, {}).items() if kw in text]
            if len(hits) > len(best_hits):
                best_axis, best_hits = axis, hits
        if not best_hits:
            return CategoryResult(category=Axis.OTHER, weight=0.0)
        weight = sum(best_hits) / len(best_hits)
        return CategoryResult(category=best_axis, weight=round(weight, 3))


_SYSTEM_PROMPT = (
    "You are a political analyst. Classify the title of a parliamentary vote "
    "into exactly one category: Economy (weight -1 = left, 1 = right), Values "
    "(-1 = liberal, 1 = conservative), Environment (-1 = exploitation, "
    "1 = protection), Regional (-1 = urban, 1 = rural), International "
    "(-1 = national, 1 = global), Security (-1 = soft, 1 = hard line), or Other. "
    'Reply ONLY with JSON: {"category": "<name>", "weight": <-1..1>}'
)


class LLMCategorizer(Categorizer):
    """Categorizer backed by an OpenAI-compatible chat-completions endpoint.

    Transport retries (429/5xx) are handled by the session's retry adapter
    with exponential backoff; anything still failing raises
    :class:`CategorizerError`.
    """

    name = "llm"

    def __init__(
        self,
        api_key: str = "",
        *,
        url: str = "",
        model: str = "",
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key or cfg.CATEGORIZER_API_KEY
        self.url = url or cfg.CATEGORIZER_URL
        self.model = model or cfg.CATEGORIZER_MODEL
        self.timeout = timeout
        self._session = session or self._build_session()

    @staticmethod
    def _build_session() -> requests.Session:
        session = requests.Session()
        retry_strategy = Retry(
            total=3,
            backoff_factor=1.0,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["POST"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy, pool_connections=4, pool_maxsize=8)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    def categorize(self, title: str) -> CategoryResult:
        if not self.api_key:
            raise CategorizerError("no API key configured")
        payload = {
            "model": self.model,
            "temperature": 0,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": title},
            ],
        }
        try:
            resp = self._session.post(
                self.url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            content = resp.json()["choices"][0]["message"]["content"]
        except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as e:
            raise CategorizerError(f"categorizer request failed: {e}") from e
        return decode_response(content)


def build_categorizer(api_key: str | None = None) -> Categorizer:
    """LLM categorizer when an API key is configured, keyword table otherwise."""
    key = cfg.CATEGORIZER_API_KEY if api_key is None else api_key
    if key:
        return LLMCategorizer(key)
    return KeywordCategorizer()


# ── Batch categorization ─────────────────────────────────────────────────────


@dataclass
class ItemFailure:
    item_id: str
    error: str


@dataclass
class CategorizationSummary:
    """Structured outcome of one categorization pass."""

    attempted: int = 0
    categorized: int = 0
    other: int = 0  # classifier answered "Other"; retried next pass
    checkpoints: int = 0
    duration_s: float = 0.0
    failures: list[ItemFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def to_dict(self) -> dict:
        return {
            "attempted": self.attempted,
            "categorized": self.categorized,
            "other": self.other,
            "failed": self.failed,
            "checkpoints": self.checkpoints,
            "failures": [{"item_id": f.item_id, "error": f.error} for f in self.failures],
        }


def _categorize_one(categorizer: Categorizer, event_id: str, title: str):
    try:
        return event_id, categorizer.categorize(title), None
    except Exception as e:
        LOGGER.warning("Categorizer %s failed for event %s: %s", categorizer.name, event_id, e)
        return event_id, FALLBACK, f"{type(e).__name__}: {e}"


def categorize_pending(
    store: VoteStore,
    categorizer: Categorizer,
    *,
    workers: int | None = None,
    checkpoint_every: int | None = None,
    on_checkpoint: Callable[[int], None] | None = None,
    force: bool = False,
) -> CategorizationSummary:
    """Categorize every event that still needs it.

    Results are written to *store* as they complete, so an interrupted pass
    resumes where it left off.  Every *checkpoint_every* completions the
    store is flushed and *on_checkpoint* (e.g. partial re-aggregation) runs.
    """
    workers = max(1, workers if workers is not None else cfg.CATEGORIZER_WORKERS)
    checkpoint_every = checkpoint_every if checkpoint_every is not None else cfg.CHECKPOINT_EVERY
    pending = store.events_needing_category(force=force)
    summary = CategorizationSummary(attempted=len(pending))
    if not pending:
        LOGGER.info("No events need categorization.")
        return summary

    LOGGER.info(
        "Categorizing %d events with %s (%d workers).", len(pending), categorizer.name, workers
    )
    t_start = time.perf_counter()
    completed = 0
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(_categorize_one, categorizer, e.id, e.title) for e in pending]
        for future in as_completed(futures):
            event_id, result, error = future.result()
            completed += 1
            if error is not None:
                summary.failures.append(ItemFailure(event_id, error))
            elif result.category.is_axis:
                store.backfill_category(event_id, result.category, result.weight, force=force)
                summary.categorized += 1
            else:
                summary.other += 1

            if checkpoint_every and completed % checkpoint_every == 0:
                _checkpoint(store, on_checkpoint, completed, summary)

    if checkpoint_every and completed % checkpoint_every != 0:
        _checkpoint(store, on_checkpoint, completed, summary)

    summary.duration_s = round(time.perf_counter() - t_start, 2)
    LOGGER.info(
        "Categorization done in %.1fs: %d categorized, %d other, %d failed.",
        summary.duration_s,
        summary.categorized,
        summary.other,
        summary.failed,
    )
    return summary


def _checkpoint(
    store: VoteStore,
    on_checkpoint: Callable[[int], None] | None,
    completed: int,
    summary: CategorizationSummary,
) -> None:
    try:
        store.flush()
    except OSError as e:
        summary.failures.append(ItemFailure("checkpoint", f"flush failed: {e}"))
        LOGGER.warning("Checkpoint flush failed after %d events: %s", completed, e)
    if on_checkpoint is not None:
        on_checkpoint(completed)
    summary.checkpoints += 1
    LOGGER.debug("Checkpoint %d after %d events.", summary.checkpoints, completed)
