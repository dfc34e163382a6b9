"""Pluggable "overvalued" and "sleeper" detectors used by nomination and bidding.

The defaults are deliberately naive. Anything with an ``is_overvalued`` /
``is_sleeper`` method can be passed to :class:`auction_draft.market.MarketSimulator`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Protocol

from auction_draft.data import Player
from auction_draft.league import estimate_price_from_adp


class OvervaluedDetector(Protocol):
    def is_overvalued(self, player: Player) -> bool: ...


class SleeperDetector(Protocol):
    def is_sleeper(self, player: Player) -> bool: ...


@dataclass(frozen=True, slots=True)
class MarketPriceOvervaluedDetector:
    """Flags players quoted well above what their draft slot usually costs.

    A player is overvalued when the quoted auction value exceeds the ADP-bucket
    price by more than ``premium`` (25% by default). Players missing either
    input are never flagged.
    """

    premium: float = 0.25

    def is_overvalued(self, player: Player) -> bool:
        expected = estimate_price_from_adp(player.adp)
        if expected is None or player.auction_value is None:
            return False
        return player.auction_value > expected * (1.0 + self.premium)


class NameListOvervaluedDetector:
    """Flags an explicit list of player names (case-insensitive)."""

    def __init__(self, names: Iterable[str]) -> None:
        self.names: FrozenSet[str] = frozenset(n.strip().lower() for n in names if n.strip())

    def is_overvalued(self, player: Player) -> bool:
        return player.name.strip().lower() in self.names


@dataclass(frozen=True, slots=True)
class ProjectionSleeperDetector:
    """High projection, late ADP."""

    min_points: float = 150.0
    min_adp: float = 100.0

    def is_sleeper(self, player: Player) -> bool:
        if player.adp is None:
            return False
        return player.projected_points > self.min_points and player.adp > self.min_adp
