"""Tests for the outcome predictor."""

from __future__ import annotations

import pytest

from political_dna.axes import Axis
from political_dna.categorizer import KeywordCategorizer
from political_dna.models import Legislator, Profile, VotingEvent
from political_dna.party_analytics import compute_cohesion
from political_dna.store import VoteStore
from political_dna.weather import (
    classify_weather,
    corrected_probability,
    is_rebel,
    predict_outcome,
    resolve_axis,
)

from conftest import make_profile

GOVERNMENT = {"KOK", "PS", "RKP", "KD"}


class TestClassifyWeather:
    def test_sunny(self) -> None:
        assert classify_weather(120, 30) == "sunny"

    def test_stormy(self) -> None:
        assert classify_weather(80, 75) == "stormy"

    def test_cloudy(self) -> None:
        assert classify_weather(90, 70) == "cloudy"

    def test_nay_landslide_is_cloudy(self) -> None:
        assert classify_weather(30, 120) == "cloudy"

    def test_margin_edges(self) -> None:
        assert classify_weather(130, 100) == "cloudy"  # margin exactly 30
        assert classify_weather(115, 100) == "cloudy"  # margin exactly 15
        assert classify_weather(114, 100) == "stormy"


class TestProbability:
    def test_party_line_pull(self) -> None:
        assert corrected_probability(0.0, 0.0, True) == pytest.approx(0.5)
        assert corrected_probability(1.0, 0.5, True) == pytest.approx(0.95)
        assert corrected_probability(1.0, 0.5, False) == pytest.approx(0.45)

    def test_rebel_rules(self) -> None:
        assert is_rebel(-0.5, 0.8, True)
        assert is_rebel(0.5, 0.8, False)
        assert not is_rebel(0.5, 0.8, True)
        assert not is_rebel(-0.3, 0.8, True)  # threshold is strict
        assert not is_rebel(-0.9, 0.9, True)  # disciplined party


class TestResolveAxis:
    def test_categorized_event(self) -> None:
        assert resolve_axis(VotingEvent("e", "t", Axis.VALUES, 0.5)) is Axis.VALUES

    def test_fallback_to_economy(self) -> None:
        assert resolve_axis(VotingEvent("e", "NATO membership")) is Axis.ECONOMY

    def test_categorizer_backfills(self, chamber: VoteStore) -> None:
        event = chamber.get_event("e4")
        axis = resolve_axis(event, vote_store=chamber, categorizer=KeywordCategorizer())
        assert axis is Axis.SECURITY
        assert chamber.get_event("e4").category is Axis.SECURITY

    def test_unresolvable_title(self) -> None:
        event = VotingEvent("e", "Ombudsman report")
        assert resolve_axis(event, categorizer=KeywordCategorizer()) is Axis.ECONOMY


class TestPredictOutcome:
    def test_chamber(self, chamber: VoteStore, profiles: dict[str, Profile]) -> None:
        snapshot = chamber.snapshot()
        forecast = predict_outcome(
            snapshot.events["e1"],
            profiles,
            snapshot.legislators.values(),
            compute_cohesion(snapshot),
            government_parties=GOVERNMENT,
            default_cohesion=0.8,
        )
        # KOK aye, SDP and VIHR nay, n1 has no profile, x1 is inactive
        assert (forecast.aye, forecast.nay, forecast.undecided) == (2, 3, 1)
        assert forecast.weather == "stormy"
        assert forecast.axis is Axis.ECONOMY
        assert [(r.legislator_id, r.probability) for r in forecast.rebels] == [("c1", 80)]

    def test_rebels_ranked(self) -> None:
        legislators = [
            Legislator("k1", "K One", "KOK"),
            Legislator("k2", "K Two", "KOK"),
            Legislator("k3", "K Three", "KOK"),
        ]
        profiles = {
            "k1": make_profile("k1", economy=-0.5),
            "k2": make_profile("k2", economy=-0.9),
            "k3": make_profile("k3", economy=-0.5),
        }
        forecast = predict_outcome(
            VotingEvent("e", "t", Axis.ECONOMY, 1.0),
            profiles,
            legislators,
            {"KOK": 60.0},
            government_parties=GOVERNMENT,
        )
        assert [(r.legislator_id, r.probability) for r in forecast.rebels] == [
            ("k2", 72),
            ("k1", 40),
            ("k3", 40),
        ]
        assert [r.legislator_id for r in forecast.top_rebels(1)] == ["k2"]

    def test_disciplined_party_has_no_rebels(self) -> None:
        forecast = predict_outcome(
            VotingEvent("e", "t", Axis.ECONOMY, 1.0),
            {"k1": make_profile("k1", economy=-1.0)},
            [Legislator("k1", "K One", "KOK")],
            {"KOK": 95.0},
            government_parties=GOVERNMENT,
        )
        assert forecast.rebels == []
        assert forecast.aye == 1

    def test_empty_chamber(self) -> None:
        forecast = predict_outcome(VotingEvent("e", "t"), {}, [])
        assert (forecast.aye, forecast.nay, forecast.undecided) == (0, 0, 0)
        assert forecast.weather == "stormy"

    def test_to_dict(self, chamber: VoteStore, profiles: dict[str, Profile]) -> None:
        snapshot = chamber.snapshot()
        forecast = predict_outcome(
            snapshot.events["e2"],
            profiles,
            snapshot.legislators.values(),
            government_parties=GOVERNMENT,
        )
        d = forecast.to_dict()
        assert d["axis"] == "Environment"
        assert d["aye"] + d["nay"] + d["undecided"] == 6
