"""Composite Value Score (CVS) valuation engine.

The CVS blends six components, each normalised to 0-100:

=====================  ======  ===========================================
component              weight  normalisation
=====================  ======  ===========================================
auction value          23%     position tiers over quoted auction values
ADP                    23%     position tiers over ``300 - min(adp, 300)``
projected points       28%     position tiers over projections
position scarcity      8%      scarcity level of the position
strength of schedule   10%     position tiers over the 0-100 SOS rating
trend                  8%      position tiers over ``50 + trend / 2``
=====================  ======  ===========================================

Unknown inputs drop their component and the remaining weights are rescaled so
they still sum to 1. Positions that aren't scored (K and DST by default) get
:data:`auction_draft.data.UNSCORED` rather than a number.

Every result is a function of the player record, the catalog's available set
and the explicit :class:`ValuationContext`. There is no process-wide cache:
memoised entries live on the engine instance and are keyed by the inputs that
produced them.
"""

from __future__ import annotations

import logging
import statistics
import threading
import time
from dataclasses import dataclass, field
from typing import (
    Dict,
    FrozenSet,
    Hashable,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

from auction_draft.catalog import CatalogChange, ChangeKind, PlayerCatalog
from auction_draft.data import (
    COMPONENT_ADP,
    COMPONENT_AUCTION_VALUE,
    COMPONENT_PROJECTED_POINTS,
    COMPONENT_SCARCITY,
    COMPONENT_SCHEDULE,
    COMPONENT_TREND,
    UNSCORED,
    ConfidenceLevel,
    Evaluation,
    InjuryStatus,
    LeagueSettings,
    Player,
    Position,
    ScarcityLevel,
    Score,
    ValuationWeights,
)
from auction_draft.league import MIN_BID, TWELVE_TEAM_STARTER_COUNTS, classify_scarcity
from auction_draft.tiers import PositionTiers, compute_tiers, tier_score

logger = logging.getLogger(__name__)


ADP_HORIZON = 300.0

TIERED_METRICS: Tuple[str, ...] = (
    COMPONENT_AUCTION_VALUE,
    COMPONENT_ADP,
    COMPONENT_PROJECTED_POINTS,
    COMPONENT_SCHEDULE,
    COMPONENT_TREND,
)

SCARCITY_SCORES: Mapping[ScarcityLevel, float] = {
    ScarcityLevel.ABUNDANT: 25.0,
    ScarcityLevel.NORMAL: 50.0,
    ScarcityLevel.SCARCE: 75.0,
    ScarcityLevel.CRITICAL: 100.0,
}

DEFAULT_UNSCORED_POSITIONS: FrozenSet[Position] = frozenset({Position.K, Position.DST})

# (cvs_low, cvs_high, dollars_low, dollars_high) for a $200 / 16-slot league.
_BID_CURVE: Tuple[Tuple[float, float, float, float], ...] = (
    (85.0, 100.0, 30.0, 55.0),
    (70.0, 85.0, 15.0, 30.0),
    (55.0, 70.0, 8.0, 15.0),
    (40.0, 55.0, 3.0, 8.0),
    (25.0, 40.0, 1.0, 3.0),
)
_BID_CURVE_BASELINE = 200.0 / 16.0


def metric_value(player: Player, metric: str) -> Optional[float]:
    """Raw value of a tiered metric, already oriented so higher is better."""

    if metric == COMPONENT_PROJECTED_POINTS:
        return float(player.projected_points)
    if metric == COMPONENT_AUCTION_VALUE:
        return None if player.auction_value is None else float(player.auction_value)
    if metric == COMPONENT_ADP:
        if player.adp is None:
            return None
        return max(0.0, ADP_HORIZON - min(float(player.adp), ADP_HORIZON))
    if metric == COMPONENT_SCHEDULE:
        return None if player.strength_of_schedule is None else float(player.strength_of_schedule)
    if metric == COMPONENT_TREND:
        if player.trend is None:
            return None
        return max(0.0, min(100.0, 50.0 + float(player.trend) / 2.0))
    raise ValueError(f"Unknown metric {metric!r}")


@dataclass(frozen=True, slots=True)
class ValuationContext:
    """Draft state a valuation depends on.

    Build one from live market state with
    :meth:`auction_draft.market.MarketSimulator.valuation_context`.
    """

    drafted_player_ids: FrozenSet[str] = frozenset()
    remaining_budgets_by_team: Mapping[str, int] = field(default_factory=dict)
    position_scarcity: Mapping[Position, ScarcityLevel] = field(default_factory=dict)
    recent_bids: Tuple[float, ...] = ()

    # Explicit league inflation. When None it is derived from recent_bids.
    inflation_rate: Optional[float] = None

    budget: int = 200
    roster_size: int = 16
    team_count: int = 12

    @property
    def baseline_price(self) -> float:
        return self.budget / self.roster_size

    @property
    def effective_inflation(self) -> float:
        if self.inflation_rate is not None:
            return float(self.inflation_rate)
        if self.recent_bids:
            return statistics.fmean(self.recent_bids) / self.baseline_price - 1.0
        return 0.0

    @property
    def effective_team_count(self) -> int:
        if self.remaining_budgets_by_team:
            return len(self.remaining_budgets_by_team)
        return self.team_count


def cvs_to_dollars(score: float) -> float:
    """Piecewise-linear CVS -> dollars curve for a $200 / 16-slot league."""

    for lo, hi, dollars_lo, dollars_hi in _BID_CURVE:
        if score >= lo:
            frac = min(1.0, (score - lo) / (hi - lo))
            return dollars_lo + frac * (dollars_hi - dollars_lo)
    return float(MIN_BID)


def confidence_level(player: Player) -> ConfidenceLevel:
    points = 0
    if player.auction_value is not None:
        points += 20
    if player.adp is not None:
        points += 20
    if player.injury_status is InjuryStatus.HEALTHY:
        points += 15
    if player.age is not None and 24 <= player.age <= 29:
        points += 15
    if player.projected_points > 200:
        points += 20
    if player.strength_of_schedule is not None:
        points += 10

    if points >= 70:
        return ConfidenceLevel.HIGH
    if points >= 40:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


@dataclass(frozen=True, slots=True)
class _EvaluationInputs:
    """Catalog-derived inputs read once per evaluation."""

    tiers: Mapping[str, Optional[PositionTiers]]
    scarcity: ScarcityLevel


class ValuationEngine:
    """Scores players against the live catalog.

    The engine subscribes to the catalog: a draft or undo drops memoised
    evaluations for the affected position, a patch drops the patched player's.
    Tier tables are memoised per (position, metric) and reused while the
    position's catalog version is unchanged.
    """

    def __init__(
        self,
        catalog: PlayerCatalog,
        *,
        weights: ValuationWeights = ValuationWeights(),
        settings: LeagueSettings = LeagueSettings(),
        unscored_positions: FrozenSet[Position] = DEFAULT_UNSCORED_POSITIONS,
        starter_counts: Mapping[Position, int] = TWELVE_TEAM_STARTER_COUNTS,
        undervalued_margin: float = 0.15,
        max_bid_fraction: float = 0.30,
    ) -> None:
        self.catalog = catalog
        self.weights = weights
        self.settings = settings
        self.unscored_positions = frozenset(unscored_positions)
        self.starter_counts = dict(starter_counts)
        self.undervalued_margin = undervalued_margin
        self.max_bid_fraction = max_bid_fraction

        self._lock = threading.RLock()
        self._tier_cache: Dict[Tuple[Position, str], Tuple[int, Optional[PositionTiers]]] = {}
        # player_id -> (input fingerprint, position, evaluation)
        self._evaluations: Dict[str, Tuple[Hashable, Position, Evaluation]] = {}
        self.cache_hits = 0
        self.cache_misses = 0

        catalog.subscribe(self._on_catalog_change)

    # --- Context helpers ---

    def default_context(self) -> ValuationContext:
        return ValuationContext(
            budget=self.settings.budget,
            roster_size=self.settings.roster_size,
            team_count=self.settings.team_count,
        )

    def tiers(self, position: Position, metric: str) -> Optional[PositionTiers]:
        """Tier table for ``metric`` over available players at ``position``."""

        version = self.catalog.position_version(position)
        with self._lock:
            cached = self._tier_cache.get((position, metric))
            if cached is not None and cached[0] == version:
                return cached[1]

        values: List[float] = []
        for p in self.catalog.available_players(position):
            v = metric_value(p, metric)
            if v is not None:
                values.append(v)
        tiers = compute_tiers(values, self.starter_counts[position])

        with self._lock:
            self._tier_cache[(position, metric)] = (version, tiers)
        return tiers

    def scarcity_level(self, position: Position, context: ValuationContext) -> ScarcityLevel:
        level = context.position_scarcity.get(position)
        if level is not None:
            return level
        quality = sum(
            1 for p in self.catalog.available_players(position) if p.projected_points > self.settings.quality_floor
        )
        starters = self.settings.starters_needed(position, context.effective_team_count)
        return classify_scarcity(quality, starters)

    # --- Evaluation ---

    def evaluate(self, player: Player | str, context: Optional[ValuationContext] = None) -> Evaluation:
        """Evaluate one player (record or id) under ``context``."""

        if isinstance(player, str):
            player = self.catalog.get(player)
        if context is None:
            context = self.default_context()

        # One read of tiers and scarcity feeds both the cache key and the computation.
        inputs = self._gather_inputs(player, context)
        fingerprint = self._input_fingerprint(player, context, inputs)
        with self._lock:
            cached = self._evaluations.get(player.player_id)
            if cached is not None and cached[0] == fingerprint:
                self.cache_hits += 1
                return cached[2]
            self.cache_misses += 1

        evaluation = self._compute(player, context, inputs)
        with self._lock:
            self._evaluations[player.player_id] = (fingerprint, player.position, evaluation)
        return evaluation

    def evaluate_all(
        self,
        context: Optional[ValuationContext] = None,
        *,
        include_drafted: bool = False,
    ) -> Dict[str, Evaluation]:
        """Evaluate every available player (or every player), reusing memoised results."""

        if context is None:
            context = self.default_context()
        players = tuple(self.catalog) if include_drafted else self.catalog.available_players()
        return {p.player_id: self.evaluate(p, context) for p in players}

    def recompute_all(
        self,
        context: Optional[ValuationContext] = None,
        *,
        include_drafted: bool = False,
    ) -> Dict[str, Evaluation]:
        """Full recompute: drop every memoised result, then evaluate the catalog."""

        started = time.perf_counter()
        self.clear_cache()
        result = self.evaluate_all(context, include_drafted=include_drafted)
        logger.info("Recomputed %d evaluations in %.3fs", len(result), time.perf_counter() - started)
        return result

    def iter_evaluate_all(
        self,
        context: Optional[ValuationContext] = None,
        *,
        chunk_size: int = 250,
    ) -> Iterator[List[Evaluation]]:
        """Evaluate available players in chunks so a caller can interleave other work."""

        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if context is None:
            context = self.default_context()
        players = self.catalog.available_players()
        for start in range(0, len(players), chunk_size):
            yield [self.evaluate(p, context) for p in players[start : start + chunk_size]]

    # --- Invalidation ---

    def invalidate_position(self, position: Position) -> int:
        with self._lock:
            stale = [pid for pid, (_, pos, _) in self._evaluations.items() if pos is position]
            for pid in stale:
                del self._evaluations[pid]
        logger.debug("Invalidated %d cached evaluations at %s", len(stale), position.value)
        return len(stale)

    def invalidate_player(self, player_id: str) -> bool:
        with self._lock:
            removed = self._evaluations.pop(player_id, None) is not None
        if removed:
            logger.debug("Invalidated cached evaluation for player %s", player_id)
        return removed

    def clear_cache(self) -> None:
        with self._lock:
            self._evaluations.clear()
            self._tier_cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._evaluations)

    def _on_catalog_change(self, change: CatalogChange) -> None:
        if change.kind is ChangeKind.PATCHED:
            for pid in change.player_ids:
                self.invalidate_player(pid)
            return
        for pos in change.positions:
            self.invalidate_position(pos)

    # --- Internals ---

    def _gather_inputs(self, player: Player, context: ValuationContext) -> _EvaluationInputs:
        tiers = {m: self.tiers(player.position, m) for m in TIERED_METRICS}
        return _EvaluationInputs(tiers=tiers, scarcity=self.scarcity_level(player.position, context))

    def _input_fingerprint(self, player: Player, context: ValuationContext, inputs: _EvaluationInputs) -> Hashable:
        tiers = tuple(None if (t := inputs.tiers[m]) is None else t.as_tuple() for m in TIERED_METRICS)
        return (
            player,
            tiers,
            inputs.scarcity,
            round(context.effective_inflation, 9),
            context.budget,
            context.roster_size,
        )

    def _compute(self, player: Player, context: ValuationContext, inputs: _EvaluationInputs) -> Evaluation:
        if player.position in self.unscored_positions:
            return self._unscored(player)

        points_tiers = inputs.tiers[COMPONENT_PROJECTED_POINTS]
        if points_tiers is not None and points_tiers.max <= 0 and player.projected_points <= 0:
            return self._unscored(player)

        components: Dict[str, float] = {}
        for metric in TIERED_METRICS:
            value = metric_value(player, metric)
            if value is None:
                continue
            tiers = inputs.tiers[metric]
            if tiers is None:
                # Nobody available at the position has this metric; rank the player alone.
                tiers = compute_tiers([value], self.starter_counts[player.position])
                assert tiers is not None
            components[metric] = tier_score(value, tiers)

        components[COMPONENT_SCARCITY] = SCARCITY_SCORES[inputs.scarcity]

        weights = self.weights.renormalized(components)
        score = sum(components[name] * w for name, w in weights.items())
        score = round(max(0.0, min(100.0, score)), 1)

        bid = self.recommended_bid(score, context)
        market_price = player.auction_value
        undervalued = (
            market_price is not None
            and market_price > 0
            and bid >= market_price * (1.0 + self.undervalued_margin)
        )

        return Evaluation(
            player_id=player.player_id,
            cvs_score=score,
            recommended_bid=bid,
            confidence_level=confidence_level(player),
            is_undervalued=undervalued,
            market_price=market_price,
            components={name: components[name] for name in weights},
            weights=weights,
        )

    def _unscored(self, player: Player) -> Evaluation:
        if player.auction_value is not None and player.auction_value > 0:
            bid = int(round(player.auction_value))
        else:
            bid = MIN_BID
        return Evaluation(
            player_id=player.player_id,
            cvs_score=UNSCORED,
            recommended_bid=bid,
            confidence_level=confidence_level(player),
            is_undervalued=False,
            market_price=player.auction_value,
        )

    def recommended_bid(self, score: float, context: ValuationContext) -> int:
        """Monotone map of a CVS onto the league's shared budget pool."""

        scale = (context.baseline_price / _BID_CURVE_BASELINE) * max(0.0, 1.0 + context.effective_inflation)
        cap = max(MIN_BID, int(context.budget * self.max_bid_fraction))
        return max(MIN_BID, min(cap, int(round(cvs_to_dollars(score) * scale))))


# --- Ranking helpers ---


def score_sort_key(evaluation: Evaluation) -> Tuple[int, float, str]:
    """Sort key placing higher scores first and unscored players last."""

    if evaluation.cvs_score is UNSCORED:
        return (1, 0.0, evaluation.player_id)
    return (0, -float(evaluation.cvs_score), evaluation.player_id)


def rank_evaluations(evaluations: Iterable[Evaluation]) -> List[Evaluation]:
    return sorted(evaluations, key=score_sort_key)


def position_ranks(evaluations: Iterable[Evaluation], catalog: PlayerCatalog) -> Dict[str, Optional[int]]:
    """Rank within position (1 = best). Unscored players have no rank (None)."""

    by_position: Dict[Position, List[Evaluation]] = {}
    ranks: Dict[str, Optional[int]] = {}
    for ev in evaluations:
        if ev.cvs_score is UNSCORED:
            ranks[ev.player_id] = None
            continue
        by_position.setdefault(catalog.get(ev.player_id).position, []).append(ev)

    for group in by_position.values():
        for i, ev in enumerate(rank_evaluations(group), start=1):
            ranks[ev.player_id] = i
    return ranks


def mean_score(evaluations: Sequence[Evaluation]) -> Score:
    """Average CVS over scored players; UNSCORED when none are scored."""

    scores = [float(ev.cvs_score) for ev in evaluations if ev.cvs_score is not UNSCORED]
    if not scores:
        return UNSCORED
    return statistics.fmean(scores)
