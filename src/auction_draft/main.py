from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence, Tuple

from auction_draft.catalog import PlayerCatalog
from auction_draft.data import (
    DraftEvent,
    DraftSnapshot,
    Evaluation,
    LeagueSettings,
    Player,
    PlayerPatch,
    Position,
    RosterComposition,
    ValuationWeights,
)
from auction_draft.io import LoadResult, dump_snapshot, load_players_from_json, load_snapshot, validate_patch_ids
from auction_draft.market import (
    BidStrategy,
    MarketConditions,
    MarketSimulator,
    NominationStrategy,
    PositionMarket,
)
from auction_draft.optimizer import LockedPick, OptimizationResult, RosterOptimizer
from auction_draft.strategies import OvervaluedDetector, SleeperDetector
from auction_draft.valuation import ValuationContext, ValuationEngine


def configure_logging(*, level: int = logging.INFO) -> None:
    """Configure a simple root logger that writes to stderr.

    This is safe to call multiple times.
    """

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        )
    else:
        root.setLevel(level)


logger = logging.getLogger(__name__)


def load_players(*, players_json_path: str | Path) -> LoadResult:
    """Load a player feed for the engine."""

    return load_players_from_json(players_json_path)


class DraftSession:
    """One live draft: catalog, valuation engine, market and optimiser wired together.

    The catalog is shared. Drafts recorded through the market change
    availability in the catalog, and the catalog notifies the valuation engine,
    so scores always reflect the current pool.
    """

    def __init__(
        self,
        players: Iterable[Player] = (),
        settings: LeagueSettings = LeagueSettings(),
        *,
        weights: ValuationWeights = ValuationWeights(),
        optimizer: Optional[RosterOptimizer] = None,
        overvalued_detector: Optional[OvervaluedDetector] = None,
        sleeper_detector: Optional[SleeperDetector] = None,
    ) -> None:
        self.settings = settings
        self.weights = weights
        self.optimizer = optimizer or RosterOptimizer()
        self._overvalued_detector = overvalued_detector
        self._sleeper_detector = sleeper_detector
        self._attach_catalog(PlayerCatalog(players))

    def _attach_catalog(self, catalog: PlayerCatalog) -> None:
        self.catalog = catalog
        self.engine = ValuationEngine(catalog, weights=self.weights, settings=self.settings)
        self.market = MarketSimulator(
            self.settings,
            overvalued_detector=self._overvalued_detector,
            sleeper_detector=self._sleeper_detector,
            catalog=catalog,
        )

    # --- Valuation ---

    def valuation_context(self) -> ValuationContext:
        if self.market.teams:
            return self.market.valuation_context()
        return self.engine.default_context()

    def evaluate(self, player_id: str) -> Evaluation:
        return self.engine.evaluate(player_id, self.valuation_context())

    def evaluate_all(self) -> Dict[str, Evaluation]:
        return self.engine.evaluate_all(self.valuation_context())

    def recompute_all(self) -> Dict[str, Evaluation]:
        return self.engine.recompute_all(self.valuation_context())

    # --- Market ---

    def initialize_market(
        self,
        team_ids: Sequence[str],
        budget: Optional[int] = None,
        roster_size: Optional[int] = None,
        players: Optional[Iterable[Player]] = None,
    ) -> None:
        """Start the draft. Passing ``players`` replaces the catalog."""

        if players is not None:
            self._attach_catalog(PlayerCatalog(players))
        self.market.initialize(
            team_ids,
            self.settings.budget if budget is None else budget,
            self.settings.roster_size if roster_size is None else roster_size,
            self.catalog,
        )

    def record_draft(self, player: Player | str, team_id: str, price: int) -> DraftEvent:
        return self.market.record_draft(player, team_id, price)

    def undo_draft(self, player: Player | str, team_id: str, price: int) -> DraftEvent:
        return self.market.undo_draft(player, team_id, price)

    def undo_last(self) -> DraftEvent:
        return self.market.undo_last()

    def set_targets(self, team_id: str, player_ids: Iterable[str]) -> None:
        self.market.set_targets(team_id, player_ids)

    def get_market_conditions(self) -> MarketConditions:
        return self.market.get_market_conditions()

    def get_position_markets(self) -> Dict[Position, PositionMarket]:
        return self.market.get_position_markets()

    def get_nomination_strategy(self, team_id: str) -> NominationStrategy:
        return self.market.get_nomination_strategy(team_id)

    def get_bid_strategy(self, player: Player | str, team_id: str, current_bid: int) -> BidStrategy:
        return self.market.get_bid_strategy(player, team_id, current_bid)

    # --- Roster ---

    def optimize_roster(
        self,
        players: Optional[Iterable[Player]] = None,
        budget: Optional[int] = None,
        composition: Optional[RosterComposition] = None,
        locked: Sequence[LockedPick] = (),
    ) -> OptimizationResult:
        """Greedy roster over ``players`` (default: every available player)."""

        return self.optimizer.optimize(
            self.catalog.available_players() if players is None else players,
            self.settings.budget if budget is None else budget,
            self.settings.composition if composition is None else composition,
            locked,
        )

    def optimize_for_team(self, team_id: str) -> OptimizationResult:
        """Complete a team's roster mid-draft; its purchases become locked picks.

        Purchases beyond what the composition holds (say a third QB) are
        reported in ``result.overflow`` rather than rejected.
        """

        team = self.market.get_team(team_id)
        locked = [LockedPick(player=e.player, price=e.price) for e in team.roster]
        logger.info("Optimising for %s: %d locked picks, $%d remaining", team_id, len(locked), team.remaining)
        return self.optimizer.optimize(
            self.catalog.available_players(),
            team.budget,
            team.composition,
            locked,
            allow_overflow=True,
        )

    # --- Feeds ---

    def apply_patch(self, patch: PlayerPatch) -> Player:
        return self.catalog.apply_patch(patch)

    def apply_patches(self, patches: Sequence[PlayerPatch], *, source_label: str = "patch feed") -> Tuple[Player, ...]:
        validate_patch_ids(
            patch_ids=(p.player_id for p in patches),
            known_ids=(p.player_id for p in self.catalog),
            source_label=source_label,
        )
        return tuple(self.catalog.apply_patch(p) for p in patches)

    # --- Persistence ---

    def snapshot(self) -> DraftSnapshot:
        return self.market.snapshot()

    def save(self, path: str | Path) -> Path:
        return dump_snapshot(self.snapshot(), path)

    @classmethod
    def from_snapshot(
        cls,
        snapshot: DraftSnapshot,
        settings: LeagueSettings = LeagueSettings(),
        *,
        weights: ValuationWeights = ValuationWeights(),
        optimizer: Optional[RosterOptimizer] = None,
        overvalued_detector: Optional[OvervaluedDetector] = None,
        sleeper_detector: Optional[SleeperDetector] = None,
    ) -> "DraftSession":
        session = cls(
            snapshot.players,
            settings,
            weights=weights,
            optimizer=optimizer,
            overvalued_detector=overvalued_detector,
            sleeper_detector=sleeper_detector,
        )
        session.market = MarketSimulator.from_snapshot(
            snapshot,
            settings,
            overvalued_detector=overvalued_detector,
            sleeper_detector=sleeper_detector,
            catalog=session.catalog,
        )
        return session

    @classmethod
    def load(
        cls,
        path: str | Path,
        settings: LeagueSettings = LeagueSettings(),
        *,
        weights: ValuationWeights = ValuationWeights(),
    ) -> "DraftSession":
        return cls.from_snapshot(load_snapshot(path), settings, weights=weights)
