"""Tests for cluster growth, momentum and persistence scores."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from trendpress.models import TrendSnapshot
from trendpress.opportunity import score_opportunity
from trendpress.process.cluster import ClusterProcessor
from trendpress.process.scoring import (
    blend_growth,
    round_half_up,
    score_cluster_growth,
    score_cluster_momentum,
    score_persistence,
)

NOW = datetime(2026, 10, 18, 12, 0, 0)


def _snap(rank, heat=None, minutes_ago=0):
    return TrendSnapshot(
        platform="weibo",
        title="话题",
        rank=rank,
        heat_value=heat,
        captured_at=NOW - timedelta(minutes=minutes_ago),
    )


def test_growth_of_empty_cluster_is_zero():
    assert score_cluster_growth([]) == 0.0


def test_growth_from_rank_only():
    """Without heat, growth is 70% of the rank score."""
    assert score_cluster_growth([_snap(0)]) == pytest.approx(70.0)
    assert score_cluster_growth([_snap(1)]) == pytest.approx(68.6)
    assert score_cluster_growth([_snap(60)]) == pytest.approx(0.0)


def test_growth_saturates_with_heat():
    """A million heat at the top rank scores the full 100."""
    assert score_cluster_growth([_snap(0, heat=999_999)]) == pytest.approx(100.0)


def test_growth_ignores_non_positive_heat():
    assert score_cluster_growth([_snap(0, heat=0), _snap(0, heat=-5)]) == pytest.approx(70.0)


def test_momentum_neutral_for_single_item():
    assert score_cluster_momentum([]) == 50.0
    assert score_cluster_momentum([_snap(3)]) == 50.0


def test_momentum_rising_rank():
    """Climbing from rank 20 to rank 1 pushes momentum up."""
    items = [_snap(1, minutes_ago=0), _snap(20, minutes_ago=30)]
    assert score_cluster_momentum(items) == pytest.approx(83.25)


def test_momentum_falling_rank():
    items = [_snap(30, minutes_ago=0), _snap(1, minutes_ago=30)]
    assert score_cluster_momentum(items) == pytest.approx(15.0)


def test_momentum_rising_heat():
    items = [_snap(5, heat=300, minutes_ago=0), _snap(5, heat=100, minutes_ago=30)]
    expected = (0.5 * 0.7 + (500 / 601) * 0.3) * 100
    assert score_cluster_momentum(items) == pytest.approx(expected)


def test_momentum_treats_infinite_heat_as_zero():
    items = [_snap(5, heat=float("inf"), minutes_ago=30), _snap(5, heat=1000.0, minutes_ago=0)]
    expected = (0.5 * 0.7 + (2000 / 2001) * 0.3) * 100
    assert score_cluster_momentum(items) == pytest.approx(expected)


@pytest.mark.parametrize("heat", [float("inf"), float("-inf"), float("nan"), 1e308])
def test_extreme_heat_keeps_scores_in_range(heat):
    """Huge or non-finite heat never yields NaN or an out-of-range score."""
    items = [_snap(1, heat=heat, minutes_ago=m) for m in (0, 10, 20, 30)]
    items.append(_snap(2, heat=500.0, minutes_ago=40))

    growth = score_cluster_growth(items)
    momentum = score_cluster_momentum(items)
    blended = blend_growth(growth, momentum)

    for value in (growth, momentum, blended):
        assert 0 <= value <= 100

    cluster = ClusterProcessor({}).build_clusters(
        items, NOW - timedelta(hours=2), NOW,
    )[0]
    assert 0 <= cluster.growth_score <= 100
    assert 0 <= score_opportunity(cluster, 10, NOW).score <= 100


def test_momentum_is_order_independent():
    """Items are sorted by capture time before splitting into halves."""
    a = [_snap(1, minutes_ago=0), _snap(20, minutes_ago=30)]
    assert score_cluster_momentum(a) == score_cluster_momentum(list(reversed(a)))


def test_blend_growth():
    assert blend_growth(100, 0) == pytest.approx(65.0)
    assert blend_growth(0, 100) == pytest.approx(35.0)
    assert blend_growth(100, 100) == pytest.approx(100.0)


def test_persistence():
    assert score_persistence(0, 0) == 0.0
    assert score_persistence(3, 0) == 0.0
    assert score_persistence(2, 1) == pytest.approx(63.212, abs=0.01)
    assert score_persistence(2, 2) == pytest.approx(39.347, abs=0.01)
    assert score_persistence(1000, 1) == pytest.approx(100.0)


def test_round_half_up():
    assert round_half_up(0.5) == 1
    assert round_half_up(2.5) == 3
    assert round_half_up(84.49) == 84
    assert round_half_up(55.3) == 55
