"""Growth, momentum and persistence scores for a topic cluster.

All scores are on a 0-100 scale. Inputs are the snapshots grouped into one
cluster; order does not matter except where noted.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from trendpress.models import TrendSnapshot

GROWTH_WEIGHT = 0.65
MOMENTUM_WEIGHT = 0.35
NEUTRAL_MOMENTUM = 50.0
# Heat far beyond any real platform counter; keeps half means finite.
HEAT_CEILING = 1e12


def _heat_values(items: Sequence[TrendSnapshot]) -> np.ndarray:
    """Heat per item; missing or non-finite heat counts as 0."""
    heat = np.array(
        [item.heat_value if item.heat_value is not None else 0.0 for item in items],
        dtype=float,
    )
    heat[~np.isfinite(heat)] = 0.0
    return np.clip(heat, -HEAT_CEILING, HEAT_CEILING)


def score_cluster_growth(items: Sequence[TrendSnapshot]) -> float:
    """Blend of how high the items rank and how hot they are on average."""
    if not items:
        return 0.0

    ranks = np.array([item.rank for item in items], dtype=float)
    rank_score = float(np.clip((50 - ranks) / 50, 0, 1).mean())

    heat = _heat_values(items)
    positive = heat[heat > 0]
    avg_heat = float(positive.mean()) if positive.size else 0.0
    hot_score = float(np.clip(math.log10(avg_heat + 1) / 6, 0, 1))

    return float(np.clip((rank_score * 0.7 + hot_score * 0.3) * 100, 0, 100))


def score_cluster_momentum(items: Sequence[TrendSnapshot]) -> float:
    """Compare the earlier half of the items with the later half.

    Rising rank (smaller numbers) and rising heat push the score above 50.
    """
    if len(items) < 2:
        return NEUTRAL_MOMENTUM

    ordered = sorted(items, key=lambda item: item.captured_at)
    midpoint = max(1, len(ordered) // 2)
    early, late = ordered[:midpoint], ordered[midpoint:]
    if not late:
        return NEUTRAL_MOMENTUM

    early_rank = float(np.mean([item.rank for item in early]))
    late_rank = float(np.mean([item.rank for item in late]))
    rank_delta = float(np.clip(((early_rank - late_rank) + 20) / 40, 0, 1))

    early_hot = float(_heat_values(early).mean())
    late_hot = float(_heat_values(late).mean())
    if early_hot > 0 or late_hot > 0:
        peak = max(early_hot, late_hot)
        hot_delta = float(np.clip((late_hot - early_hot + peak) / (peak * 2 + 1), 0, 1))
    else:
        hot_delta = 0.5

    return float(np.clip((rank_delta * 0.7 + hot_delta * 0.3) * 100, 0, 100))


def blend_growth(growth: float, momentum: float) -> float:
    """The growth score stored on a cluster."""
    return float(np.clip(growth * GROWTH_WEIGHT + momentum * MOMENTUM_WEIGHT, 0, 100))


def score_persistence(item_count: int, resonance_count: int) -> float:
    """How often a topic repeats per platform, saturating towards 100."""
    if item_count <= 0 or resonance_count <= 0:
        return 0.0
    avg_repeat = item_count / resonance_count
    return float(np.clip((1 - math.exp(-avg_repeat / 2)) * 100, 0, 100))


def round_half_up(value: float) -> int:
    """Round .5 upwards (Python's round() goes to even)."""
    return int(math.floor(value + 0.5))
