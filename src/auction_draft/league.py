"""League constants and small pure helpers shared by valuation and the market.

Keeping these here (rather than on the simulator) lets the valuation engine
classify scarcity and price players without depending on market state.
"""

from __future__ import annotations

from typing import Mapping, Optional, Sequence, Tuple

from auction_draft.data import Player, Position, ScarcityLevel

# League-wide starters in a 12-team league, used to place the starter and
# replacement tiers.
TWELVE_TEAM_STARTER_COUNTS: Mapping[Position, int] = {
    Position.QB: 12,
    Position.RB: 24,
    Position.WR: 36,
    Position.TE: 12,
    Position.K: 12,
    Position.DST: 12,
}

# Typical price of a drafted player per position, for position inflation.
EXPECTED_POSITION_PRICES: Mapping[Position, float] = {
    Position.QB: 5.0,
    Position.RB: 30.0,
    Position.WR: 25.0,
    Position.TE: 5.0,
    Position.K: 1.0,
    Position.DST: 1.0,
}

# (max ADP, dollars). Anything later than the last bucket is a $1 player.
ADP_PRICE_BUCKETS: Sequence[Tuple[float, float]] = (
    (10, 50.0),
    (20, 35.0),
    (40, 25.0),
    (60, 15.0),
    (100, 8.0),
    (150, 3.0),
)

MIN_BID = 1


def estimate_price_from_adp(adp: Optional[float]) -> Optional[float]:
    """Baseline auction price for a draft slot. None when ADP is unknown."""

    if adp is None:
        return None
    for max_adp, price in ADP_PRICE_BUCKETS:
        if adp <= max_adp:
            return price
    return float(MIN_BID)


def baseline_price(player: Player) -> float:
    """ADP-bucket price, falling back to the quoted auction value, then $1."""

    estimate = estimate_price_from_adp(player.adp)
    if estimate is not None:
        return estimate
    if player.auction_value is not None and player.auction_value > 0:
        return float(player.auction_value)
    return float(MIN_BID)


def classify_scarcity(quality_remaining: int, starters_needed: int) -> ScarcityLevel:
    """Bucket remaining quality players against league-wide starter demand."""

    if quality_remaining > starters_needed * 2:
        return ScarcityLevel.ABUNDANT
    if quality_remaining > starters_needed:
        return ScarcityLevel.NORMAL
    if quality_remaining > starters_needed / 2:
        return ScarcityLevel.SCARCE
    return ScarcityLevel.CRITICAL
