"""Tests for axes, vote parsing, data models and configuration."""

from __future__ import annotations

import pytest

from political_dna import config as cfg
from political_dna.axes import AXES, Axis, VoteType, parse_category, parse_vote_type, vote_value
from political_dna.models import CandidateResponse, Profile, VotingEvent


class TestParseCategory:
    def test_canonical_name(self) -> None:
        assert parse_category("Economy") is Axis.ECONOMY

    def test_case_insensitive(self) -> None:
        assert parse_category("  security ") is Axis.SECURITY

    def test_finnish_label(self) -> None:
        assert parse_category("Ympäristö") is Axis.ENVIRONMENT
        assert parse_category("Kansainvälisyys") is Axis.INTERNATIONAL

    def test_unknown_is_other(self) -> None:
        assert parse_category("Hallituksen esitys") is Axis.OTHER

    def test_empty_and_none_are_other(self) -> None:
        assert parse_category("") is Axis.OTHER
        assert parse_category(None) is Axis.OTHER

    def test_axis_passthrough(self) -> None:
        assert parse_category(Axis.VALUES) is Axis.VALUES

    def test_other_is_not_an_axis(self) -> None:
        assert not Axis.OTHER.is_axis
        assert Axis.OTHER not in AXES
        assert len(AXES) == 6

    def test_str_enum_compares_to_string(self) -> None:
        assert Axis.ECONOMY == "Economy"


class TestVoteType:
    def test_aye_tokens(self) -> None:
        for raw in ("aye", "Yes", "JAA", "yea"):
            assert parse_vote_type(raw) is VoteType.AYE

    def test_nay_tokens(self) -> None:
        for raw in ("nay", "No", "Ei"):
            assert parse_vote_type(raw) is VoteType.NAY

    def test_everything_else_abstains(self) -> None:
        for raw in ("abstain", "present", "nv", "poissa", "tyhjää", ""):
            assert parse_vote_type(raw) is VoteType.ABSTAIN

    def test_vote_values(self) -> None:
        assert vote_value("aye") == 1
        assert vote_value(VoteType.NAY) == -1
        assert vote_value("present") == 0


class TestModels:
    def test_response_value_out_of_range(self) -> None:
        with pytest.raises(ValueError):
            CandidateResponse("a1", "q", 6, Axis.ECONOMY)
        with pytest.raises(ValueError):
            CandidateResponse("a1", "q", 0, Axis.ECONOMY)

    def test_event_categorized_needs_axis_and_weight(self) -> None:
        assert not VotingEvent("e", "t").is_categorized
        assert not VotingEvent("e", "t", Axis.OTHER, 0.5).is_categorized
        assert not VotingEvent("e", "t", Axis.ECONOMY, None).is_categorized
        assert VotingEvent("e", "t", Axis.ECONOMY, 0.0).is_categorized

    def test_profile_dict_round_trip(self) -> None:
        profile = Profile(
            legislator_id="a1",
            scores={a: 0.25 for a in AXES},
            axis_evidence={Axis.ECONOMY: 3},
            total_votes_analyzed=3,
            last_updated="2025-01-01",
            questionnaire_axes=[Axis.VALUES],
        )
        restored = Profile.from_dict(profile.to_dict())
        assert restored.vector() == profile.vector()
        assert restored.axis_evidence[Axis.ECONOMY] == 3
        assert restored.axis_evidence[Axis.SECURITY] == 0
        assert restored.has_opinion(Axis.VALUES)
        assert not restored.has_opinion(Axis.SECURITY)


class TestConfig:
    def test_default_government(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DNA_GOVERNMENT_PARTIES", raising=False)
        assert cfg.get_government_parties() == frozenset({"KOK", "PS", "RKP", "KD"})

    def test_custom_government(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DNA_GOVERNMENT_PARTIES", "SDP, VAS,,")
        assert cfg.get_government_parties() == frozenset({"SDP", "VAS"})
