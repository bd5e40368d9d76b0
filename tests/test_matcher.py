"""Tests for the ideological matcher."""

from __future__ import annotations

import numpy as np
import pytest

from political_dna.matcher import (
    NO_OPINION_WEIGHT,
    STD_FLOOR,
    compatibility,
    match,
    match_legislator,
    opinion_weights,
    party_rollup,
    population_stats,
)
from political_dna.models import Profile
from political_dna.store import VoteStore

from conftest import make_profile


class TestCompatibility:
    def test_identical_is_100(self) -> None:
        assert compatibility(0.0, 0.0) == 100

    def test_floor_is_1(self) -> None:
        assert compatibility(1e6, 1e6) == 1

    @pytest.mark.parametrize("z,raw", [(0.5, 0.5), (2.0, 1.0), (7.3, 5.3), (20.0, 0.0)])
    def test_bounded(self, z: float, raw: float) -> None:
        assert 1 <= compatibility(z, raw) <= 100


class TestPopulationStats:
    def test_std_floor(self) -> None:
        stats = population_stats([make_profile("a", economy=0.5), make_profile("b", economy=0.5)])
        assert np.allclose(stats.std, STD_FLOOR)
        assert stats.mean[0] == pytest.approx(0.5)

    def test_no_opinion_profiles_left_out(self) -> None:
        population = [
            make_profile("a", economy=1.0),
            make_profile("b", economy=-1.0),
            *(make_profile(f"q{i}", evidence=0) for i in range(3)),
        ]
        stats = population_stats(population)
        assert stats.mean[0] == pytest.approx(0.0)
        assert stats.std[0] == pytest.approx(1.0)
        # no profile has an opinion on the remaining axes
        assert np.allclose(stats.std[1:], STD_FLOOR)

    def test_empty(self) -> None:
        stats = population_stats([])
        assert np.allclose(stats.mean, 0.0)

    def test_opinion_weights(self) -> None:
        assert np.allclose(opinion_weights(make_profile("q", evidence=0)), NO_OPINION_WEIGHT)
        assert np.allclose(opinion_weights(make_profile("v")), 1.0)


class TestMatch:
    def test_self_match_is_100(self, profiles: dict[str, Profile]) -> None:
        target = profiles["c1"].vector()
        results = match(target, list(profiles.values()))
        assert results[0].legislator_id == "c1"
        assert results[0].compatibility == 100

    def test_wrong_length(self, profiles: dict[str, Profile]) -> None:
        with pytest.raises(ValueError):
            match([0.0] * 5, list(profiles.values()))

    def test_ordering_is_stable(self, profiles: dict[str, Profile]) -> None:
        population = list(profiles.values())
        first = match([0.3, 0, 0, 0, 0, 0], population)
        second = match([0.3, 0, 0, 0, 0, 0], list(reversed(population)))
        assert [r.legislator_id for r in first] == [r.legislator_id for r in second]
        keys = [(-r.compatibility, r.z_distance, r.legislator_id) for r in first]
        assert keys == sorted(keys)

    def test_moving_away_never_improves_rank(self) -> None:
        population = [
            make_profile("a", economy=0.1),
            make_profile("b", economy=0.4),
            make_profile("c", economy=-0.6),
        ]
        stats = population_stats(population)
        target = [0.0] * 6
        previous = 101
        for distance in (0.1, 0.3, 0.6, 0.9):
            population[0] = make_profile("a", economy=distance)
            result = {r.legislator_id: r for r in match(target, population, stats=stats)}
            assert result["a"].compatibility <= previous
            previous = result["a"].compatibility

    def test_no_opinion_axes_count_less(self) -> None:
        informed = make_profile("informed", economy=0.0)
        silent = make_profile("silent", evidence=0)
        stats = population_stats([informed, silent])
        ranked = match([1.0, 0, 0, 0, 0, 0], [informed, silent], stats=stats)
        results = {r.legislator_id: r for r in ranked}
        assert results["silent"].raw_distance == pytest.approx(np.sqrt(NO_OPINION_WEIGHT))
        assert results["informed"].raw_distance == pytest.approx(1.0)
        assert results["silent"].compatibility > results["informed"].compatibility

    def test_exclude_and_metadata(self, profiles: dict[str, Profile], chamber: VoteStore) -> None:
        results = match(
            profiles["a1"].vector(),
            list(profiles.values()),
            legislators=chamber.snapshot().legislators,
            exclude="a1",
            pivot_scores={"a2": 40},
        )
        assert "a1" not in {r.legislator_id for r in results}
        top = results[0]
        assert (top.legislator_id, top.name, top.party, top.pivot_score) == (
            "a2",
            "Antti Ahonen",
            "KOK",
            40,
        )


class TestPartyRollup:
    def test_grouped_and_sorted(self, profiles: dict[str, Profile], chamber: VoteStore) -> None:
        results = match(
            profiles["a1"].vector(),
            list(profiles.values()),
            legislators=chamber.snapshot().legislators,
        )
        rollup = party_rollup(results)
        assert rollup[0].party == "KOK"
        assert rollup[0].avg_compatibility == 100
        averages = [p.avg_compatibility for p in rollup]
        assert averages == sorted(averages, reverse=True)

    def test_missing_party_is_independent(self) -> None:
        rollup = party_rollup(match([0.0] * 6, [make_profile("q")]))
        assert rollup[0].party == "Independent"


class TestMatchLegislator:
    def test_report(self, profiles: dict[str, Profile], chamber: VoteStore) -> None:
        legislators = dict(chamber.snapshot().legislators)
        report = match_legislator("a1", profiles, legislators)
        assert report.target_scores == profiles["a1"].vector()
        assert len(report.matches) == len(profiles) - 1
        assert report.top_matches[0].legislator_id == "a2"
        assert len(report.top_matches) == 3
        bottom = report.bottom_matches
        assert {r.legislator_id for r in bottom[:2]} == {"b1", "b2"}
        assert bottom[0].compatibility <= bottom[-1].compatibility

    def test_unknown_legislator(self, profiles: dict[str, Profile]) -> None:
        with pytest.raises(KeyError):
            match_legislator("n1", profiles)
