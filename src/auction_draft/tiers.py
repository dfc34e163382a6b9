"""Per-position percentile tiers.

Tiers are recomputed from the *live* catalog (available players only), so the
score a player gets moves as the pool at their position thins out. Tier tables
are a pure function of the values passed in; memoisation is the caller's job
(see :class:`auction_draft.valuation.ValuationEngine`).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple


@dataclass(frozen=True, slots=True)
class PositionTiers:
    """Tier thresholds for one metric at one position (higher is better)."""

    max: float
    elite: float
    top10: float
    top25: float
    starter: float
    replacement: float
    average: float
    sample_size: int

    def as_tuple(self) -> Tuple[float, ...]:
        return (
            self.max,
            self.elite,
            self.top10,
            self.top25,
            self.starter,
            self.replacement,
            self.average,
            float(self.sample_size),
        )


def compute_tiers(values: Sequence[float], starter_count: int) -> Optional[PositionTiers]:
    """Build tiers from raw metric values. None when there are no values.

    ``starter_count`` is the number of league-wide starters at the position:
    the starter tier is the value of the last starter and the replacement tier
    the first non-starter.
    """

    if not values:
        return None

    ranked = sorted(values, reverse=True)
    last = len(ranked) - 1

    def at(index: int) -> float:
        return ranked[min(max(index, 0), last)]

    return PositionTiers(
        max=ranked[0],
        elite=at(2),
        top10=at(int(len(ranked) * 0.1)),
        top25=at(int(len(ranked) * 0.25)),
        starter=at(starter_count - 1),
        replacement=at(starter_count),
        average=sum(ranked) / len(ranked),
        sample_size=len(ranked),
    )


def _interpolate(value: float, lo: float, hi: float, base: float, span: float) -> float:
    if hi <= lo:
        return base + span
    return base + min(1.0, (value - lo) / (hi - lo)) * span


def tier_score(value: float, tiers: PositionTiers) -> float:
    """Map a metric value onto 0-100 using the tier bands.

    ======================  ========
    band                    score
    ======================  ========
    >= max                  100
    elite .. max            90-100
    top 10% .. elite        80-90
    top 25% .. top 10%      70-80
    starter .. top 25%      55-70
    replacement .. starter  40-55
    below replacement       0-40
    ======================  ========
    """

    if value >= tiers.max:
        return 100.0
    if value >= tiers.elite:
        return _interpolate(value, tiers.elite, tiers.max, 90.0, 10.0)
    if value >= tiers.top10:
        return _interpolate(value, tiers.top10, tiers.elite, 80.0, 10.0)
    if value >= tiers.top25:
        return _interpolate(value, tiers.top25, tiers.top10, 70.0, 10.0)
    if value >= tiers.starter:
        return _interpolate(value, tiers.starter, tiers.top25, 55.0, 15.0)
    if value >= tiers.replacement:
        return _interpolate(value, tiers.replacement, tiers.starter, 40.0, 15.0)
    if tiers.replacement <= 0:
        return 0.0
    return max(0.0, min(40.0, value / tiers.replacement * 40.0))
