"""Auction (salary-cap) fantasy football draft engine.

Three cooperating parts share one live :class:`PlayerCatalog`:

- :class:`ValuationEngine` scores players (Composite Value Score) and
  recommends bids.
- :class:`MarketSimulator` tracks budgets, prices, inflation and scarcity as
  picks happen, and suggests nominations and bids.
- :class:`RosterOptimizer` builds a budget-constrained roster, optionally
  around players already bought.

:class:`DraftSession` wires them together for a single draft.
"""

from .catalog import PlayerCatalog
from .data import (
    UNSCORED,
    DraftEvent,
    DraftSnapshot,
    Evaluation,
    InjuryStatus,
    LeagueSettings,
    Player,
    PlayerPatch,
    Position,
    RosterComposition,
    Slot,
    ValuationWeights,
)
from .errors import DraftRuleError, InfeasibleConstraintError, UnknownEntityError, ValidationError
from .main import DraftSession, configure_logging
from .market import MarketSimulator
from .optimizer import LockedPick, OptimizationResult, RosterOptimizer
from .valuation import ValuationContext, ValuationEngine

__all__ = [
    "UNSCORED",
    "DraftEvent",
    "DraftRuleError",
    "DraftSession",
    "DraftSnapshot",
    "Evaluation",
    "InfeasibleConstraintError",
    "InjuryStatus",
    "LeagueSettings",
    "LockedPick",
    "MarketSimulator",
    "OptimizationResult",
    "Player",
    "PlayerCatalog",
    "PlayerPatch",
    "Position",
    "RosterComposition",
    "RosterOptimizer",
    "Slot",
    "UnknownEntityError",
    "ValidationError",
    "ValuationContext",
    "ValuationEngine",
    "ValuationWeights",
    "configure_logging",
]
