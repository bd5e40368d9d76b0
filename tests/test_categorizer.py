"""Tests for categorizer decoding, implementations and the batch pass."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest
import requests

from political_dna import config as cfg
from political_dna.axes import Axis
from political_dna.categorizer import (
    FALLBACK,
    Categorizer,
    CategorizerError,
    CategoryResult,
    KeywordCategorizer,
    LLMCategorizer,
    build_categorizer,
    categorize_pending,
    decode_response,
    safe_categorize,
)
from political_dna.models import VotingEvent
from political_dna.store import VoteStore


class _Boom(Categorizer):
    name = "boom"

    def categorize(self, title: str) -> CategoryResult:
        raise RuntimeError("classifier down")


class _Scripted(Categorizer):
    """Answers from a title -> result table; raises for unknown titles."""

    name = "scripted"

    def __init__(self, answers: dict[str, CategoryResult]) -> None:
        self.answers = answers
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def categorize(self, title: str) -> CategoryResult:
        with self._lock:
            self.calls.append(title)
        if title not in self.answers:
            raise CategorizerError(f"no answer for {title}")
        return self.answers[title]


# ── Response decoding ─────────────────────────────────────────────────────────


class TestDecodeResponse:
    def test_bare_object(self) -> None:
        result = decode_response('{"category": "Security", "weight": 0.9}')
        assert result.category is Axis.SECURITY
        assert result.weight == 0.9
        assert result.ok

    def test_fenced_object(self) -> None:
        text = 'Sure:\n```json\n{"category": "Talous", "weight": -0.4}\n```'
        result = decode_response(text)
        assert result.category is Axis.ECONOMY
        assert result.weight == -0.4

    def test_unknown_category_is_other(self) -> None:
        assert decode_response('{"category": "Sports", "weight": 0.2}').category is Axis.OTHER

    def test_null_weight_is_zero(self) -> None:
        assert decode_response('{"category": "Other", "weight": null}').weight == 0.0

    def test_weight_out_of_range(self) -> None:
        with pytest.raises(CategorizerError):
            decode_response('{"category": "Economy", "weight": 1.5}')

    def test_no_json(self) -> None:
        with pytest.raises(CategorizerError):
            decode_response("Economy, probably")

    def test_empty(self) -> None:
        with pytest.raises(CategorizerError):
            decode_response("   ")


# ── Implementations ───────────────────────────────────────────────────────────


class TestKeywordCategorizer:
    def test_mean_weight_of_hits(self) -> None:
        result = KeywordCategorizer().categorize("Corporate tax cut")
        assert result.category is Axis.ECONOMY
        assert result.weight == pytest.approx(0.65)

    def test_security(self) -> None:
        result = KeywordCategorizer().categorize("NATO membership")
        assert result.category is Axis.SECURITY
        assert result.weight == 1.0

    def test_no_hits(self) -> None:
        result = KeywordCategorizer().categorize("Annual report of the ombudsman")
        assert result.category is Axis.OTHER
        assert result.weight == 0.0

    def test_custom_table(self) -> None:
        cat = KeywordCategorizer({Axis.REGIONAL: {"ferry": 0.5}})
        assert cat.categorize("Archipelago ferry subsidy").category is Axis.REGIONAL


class TestSafeCategorize:
    def test_failure_falls_back(self) -> None:
        result = safe_categorize(_Boom(), "anything")
        assert result == FALLBACK
        assert result.category is Axis.OTHER
        assert not result.ok


class TestLLMCategorizer:
    def _session(self, content: str) -> MagicMock:
        session = MagicMock()
        session.post.return_value.json.return_value = {
            "choices": [{"message": {"content": content}}]
        }
        return session

    def test_decodes_reply(self) -> None:
        session = self._session('{"category": "Arvot", "weight": 0.7}')
        cat = LLMCategorizer("key", url="http://llm.test/v1", model="m", session=session)
        result = cat.categorize("Restrict same-sex adoption")
        assert result.category is Axis.VALUES
        assert result.weight == 0.7
        _, kwargs = session.post.call_args
        assert kwargs["json"]["model"] == "m"
        assert kwargs["headers"]["Authorization"] == "Bearer key"

    def test_transport_error(self) -> None:
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("refused")
        cat = LLMCategorizer("key", url="http://llm.test/v1", session=session)
        with pytest.raises(CategorizerError):
            cat.categorize("x")

    def test_malformed_body(self) -> None:
        session = MagicMock()
        session.post.return_value.json.return_value = {"unexpected": True}
        cat = LLMCategorizer("key", url="http://llm.test/v1", session=session)
        with pytest.raises(CategorizerError):
            cat.categorize("x")

    def test_missing_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(cfg, "CATEGORIZER_API_KEY", "")
        session = MagicMock()
        cat = LLMCategorizer("", session=session)
        assert safe_categorize(cat, "x") == FALLBACK
        session.post.assert_not_called()

    def test_build_categorizer(self) -> None:
        assert isinstance(build_categorizer(""), KeywordCategorizer)
        assert isinstance(build_categorizer("secret"), LLMCategorizer)


# ── Batch categorization ──────────────────────────────────────────────────────


@pytest.fixture
def pending_store() -> VoteStore:
    store = VoteStore()
    for i, title in enumerate(["Defence budget", "Rural roads", "Mystery", "Ombudsman report"]):
        store.add_event(VotingEvent(f"p{i}", title))
    return store


class TestCategorizePending:
    def test_writes_axis_results_only(self, pending_store: VoteStore) -> None:
        cat = _Scripted(
            {
                "Defence budget": CategoryResult(category=Axis.SECURITY, weight=0.8),
                "Rural roads": CategoryResult(category=Axis.REGIONAL, weight=0.6),
                "Ombudsman report": CategoryResult(category=Axis.OTHER, weight=0.0),
            }
        )
        summary = categorize_pending(pending_store, cat, workers=2, checkpoint_every=0)
        assert summary.attempted == 4
        assert summary.categorized == 2
        assert summary.other == 1
        assert [f.item_id for f in summary.failures] == ["p2"]
        assert pending_store.get_event("p0").category is Axis.SECURITY
        # Failures and "Other" stay pending for the next pass.
        assert [e.id for e in pending_store.events_needing_category()] == ["p2", "p3"]

    def test_second_pass_only_retries_pending(self, pending_store: VoteStore) -> None:
        cat = KeywordCategorizer()
        categorize_pending(pending_store, cat, workers=1, checkpoint_every=0)
        scripted = _Scripted({})
        categorize_pending(pending_store, scripted, workers=1, checkpoint_every=0)
        assert sorted(scripted.calls) == ["Mystery", "Ombudsman report"]

    def test_checkpoints(self, pending_store: VoteStore) -> None:
        seen: list[int] = []
        summary = categorize_pending(
            pending_store,
            KeywordCategorizer(),
            workers=2,
            checkpoint_every=3,
            on_checkpoint=seen.append,
        )
        assert seen == [3, 4]
        assert summary.checkpoints == 2

    def test_checkpoint_flushes_file_store(self, tmp_path) -> None:
        path = tmp_path / "votes.json"
        store = VoteStore(path=path)
        store.add_event(VotingEvent("p0", "NATO exercise"))
        categorize_pending(store, KeywordCategorizer(), workers=1, checkpoint_every=1)
        assert VoteStore.from_json(path).get_event("p0").category is Axis.SECURITY

    def test_nothing_pending(self, chamber: VoteStore) -> None:
        chamber.backfill_category("e4", Axis.SECURITY, 1.0)
        summary = categorize_pending(chamber, _Boom(), workers=1)
        assert summary.attempted == 0
        assert summary.to_dict()["failed"] == 0
