"""Domain data model for the auction draft engine.

This module is intentionally *pure*: it defines the core enums and dataclasses
used throughout the project, with no dependency on input formats.

Record parsing and persistence live in :mod:`auction_draft.io`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple, Union

from auction_draft.errors import ValidationError


class Position(str, Enum):
    """Roster positions."""

    QB = "QB"
    RB = "RB"
    WR = "WR"
    TE = "TE"
    K = "K"
    DST = "DST"


class Slot(str, Enum):
    """Roster slots: one per position plus FLEX."""

    QB = "QB"
    RB = "RB"
    WR = "WR"
    TE = "TE"
    K = "K"
    DST = "DST"
    FLEX = "FLEX"

    @property
    def position(self) -> Optional[Position]:
        """The single position this slot takes, or None for FLEX."""

        if self is Slot.FLEX:
            return None
        return Position(self.value)

    @classmethod
    def for_position(cls, position: Position) -> "Slot":
        return cls(position.value)


class InjuryStatus(str, Enum):
    HEALTHY = "Healthy"
    QUESTIONABLE = "Questionable"
    DOUBTFUL = "Doubtful"
    OUT = "Out"
    IR = "IR"
    PUP = "PUP"
    SUSPENDED = "Suspended"


class ConfidenceLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ScarcityLevel(str, Enum):
    ABUNDANT = "abundant"
    NORMAL = "normal"
    SCARCE = "scarce"
    CRITICAL = "critical"


class DraftPhase(str, Enum):
    EARLY = "early"
    MIDDLE = "middle"
    LATE = "late"


class Unscored(Enum):
    """Sentinel for "no score available".

    Distinct from a computed score of 0. It never compares equal to a number and
    must be handled explicitly (see :func:`auction_draft.valuation.score_sort_key`).
    """

    UNSCORED = "unscored"

    def __repr__(self) -> str:
        return "UNSCORED"


UNSCORED = Unscored.UNSCORED

Score = Union[float, Unscored]


def is_scored(score: Score) -> bool:
    return score is not UNSCORED


def format_score(score: Score, *, digits: int = 1) -> str:
    """Render a score for display; unscored players show as ``N/A``."""

    if score is UNSCORED:
        return "N/A"
    return f"{score:.{digits}f}"


def _check_optional_range(name: str, value: Optional[float], lo: float, hi: float = math.inf) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        raise ValidationError(f"Player.{name} must be a number, got {value!r}")
    if value < lo or value > hi:
        raise ValidationError(f"Player.{name} must be within [{lo}, {hi}], got {value!r}")


@dataclass(frozen=True, slots=True)
class Player:
    """A draftable player.

    Records are immutable. External feeds change a player by replacing the
    record (see :class:`PlayerPatch`).
    """

    player_id: str
    name: str
    position: Position
    team: str
    projected_points: float

    # Unknown market inputs are None, never 0.
    auction_value: Optional[float] = None
    adp: Optional[float] = None

    age: Optional[int] = None
    injury_status: InjuryStatus = InjuryStatus.HEALTHY

    # 0-100, higher means an easier schedule.
    strength_of_schedule: Optional[float] = None

    # Year-over-year momentum, -100..100.
    trend: Optional[float] = None

    def __post_init__(self) -> None:
        if not self.player_id:
            raise ValidationError("Player.player_id must be non-empty")
        if not self.name:
            raise ValidationError(f"Player {self.player_id!r} must have a name")
        if not isinstance(self.position, Position):
            raise ValidationError(f"Player {self.player_id!r} has invalid position {self.position!r}")
        if not isinstance(self.injury_status, InjuryStatus):
            raise ValidationError(f"Player {self.player_id!r} has invalid injury status {self.injury_status!r}")
        if self.projected_points is None:
            raise ValidationError(f"Player {self.player_id!r} must have projected_points")
        _check_optional_range("projected_points", self.projected_points, 0.0)
        _check_optional_range("auction_value", self.auction_value, 0.0)
        _check_optional_range("adp", self.adp, 0.0)
        _check_optional_range("age", self.age, 0.0)
        _check_optional_range("strength_of_schedule", self.strength_of_schedule, 0.0, 100.0)
        _check_optional_range("trend", self.trend, -100.0, 100.0)


PATCHABLE_FIELDS: FrozenSet[str] = frozenset(
    {
        "team",
        "injury_status",
        "projected_points",
        "auction_value",
        "adp",
        "age",
        "strength_of_schedule",
        "trend",
    }
)


@dataclass(frozen=True, slots=True)
class PlayerPatch:
    """An out-of-band field update from an external feed."""

    player_id: str
    field: str
    value: Any

    def __post_init__(self) -> None:
        if self.field not in PATCHABLE_FIELDS:
            raise ValidationError(
                f"Field {self.field!r} cannot be patched; allowed: {sorted(PATCHABLE_FIELDS)}"
            )


@dataclass(frozen=True, slots=True)
class Evaluation:
    """Valuation of one player under one draft context."""

    player_id: str
    cvs_score: Score
    recommended_bid: int
    confidence_level: ConfidenceLevel
    is_undervalued: bool = False
    market_price: Optional[float] = None

    # Component name -> normalized 0-100 score, only for components used.
    components: Mapping[str, float] = field(default_factory=dict)

    # Component name -> weight actually applied (renormalized).
    weights: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.recommended_bid < 0:
            raise ValueError("Evaluation.recommended_bid must be >= 0")
        if self.cvs_score is not UNSCORED and not 0.0 <= self.cvs_score <= 100.0:
            raise ValueError(f"Evaluation.cvs_score must be within [0, 100], got {self.cvs_score!r}")

    @property
    def is_scored(self) -> bool:
        return is_scored(self.cvs_score)


@dataclass(frozen=True, slots=True)
class DraftEvent:
    """One completed purchase."""

    sequence: int
    player_id: str
    team_id: str
    position: Position
    price: int
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class RosterEntry:
    player: Player
    price: int


# Component name -> weight.
COMPONENT_AUCTION_VALUE = "auction_value"
COMPONENT_ADP = "adp"
COMPONENT_PROJECTED_POINTS = "projected_points"
COMPONENT_SCARCITY = "scarcity"
COMPONENT_SCHEDULE = "strength_of_schedule"
COMPONENT_TREND = "trend"


@dataclass(frozen=True, slots=True)
class ValuationWeights:
    """CVS component weights. They must sum to 1."""

    auction_value: float = 0.23
    adp: float = 0.23
    projected_points: float = 0.28
    scarcity: float = 0.08
    strength_of_schedule: float = 0.10
    trend: float = 0.08

    def __post_init__(self) -> None:
        values = self.as_dict()
        for name, w in values.items():
            if w < 0:
                raise ValueError(f"ValuationWeights.{name} must be >= 0")
        if not math.isclose(sum(values.values()), 1.0, abs_tol=1e-9):
            raise ValueError(f"ValuationWeights must sum to 1.0, got {sum(values.values())}")

    def as_dict(self) -> Dict[str, float]:
        return {
            COMPONENT_AUCTION_VALUE: self.auction_value,
            COMPONENT_ADP: self.adp,
            COMPONENT_PROJECTED_POINTS: self.projected_points,
            COMPONENT_SCARCITY: self.scarcity,
            COMPONENT_SCHEDULE: self.strength_of_schedule,
            COMPONENT_TREND: self.trend,
        }

    def renormalized(self, available: Iterable[str]) -> Dict[str, float]:
        """Weights restricted to ``available`` components, rescaled to sum to 1.

        Returns an empty dict when no available component carries weight.
        """

        base = self.as_dict()
        kept = {name: base[name] for name in available if name in base and base[name] > 0}
        total = sum(kept.values())
        if total <= 0:
            return {}
        return {name: w / total for name, w in kept.items()}


@dataclass(frozen=True, slots=True)
class RosterComposition:
    """Required roster slots."""

    slots: Mapping[Slot, int]
    flex_positions: FrozenSet[Position] = frozenset({Position.RB, Position.WR, Position.TE})

    def __post_init__(self) -> None:
        for slot, count in self.slots.items():
            if not isinstance(slot, Slot):
                raise ValueError(f"RosterComposition slot keys must be Slot members, got {slot!r}")
            if count < 0:
                raise ValueError(f"RosterComposition[{slot.value}] must be >= 0")
        if self.count(Slot.FLEX) > 0 and not self.flex_positions:
            raise ValueError("RosterComposition has FLEX slots but no flex positions")

    def count(self, slot: Slot) -> int:
        return int(self.slots.get(slot, 0))

    def position_count(self, position: Position) -> int:
        return self.count(Slot.for_position(position))

    @property
    def size(self) -> int:
        return sum(self.slots.values())

    def eligible_positions(self, slot: Slot) -> FrozenSet[Position]:
        if slot is Slot.FLEX:
            return self.flex_positions
        return frozenset({Position(slot.value)})

    def iter_slots(self) -> Iterable[Tuple[Slot, int]]:
        """(slot, count) pairs in Slot declaration order, skipping zero counts."""

        return ((s, self.count(s)) for s in Slot if self.count(s) > 0)


DEFAULT_COMPOSITION = RosterComposition(
    slots={
        Slot.QB: 2,
        Slot.RB: 4,
        Slot.WR: 4,
        Slot.TE: 2,
        Slot.K: 1,
        Slot.DST: 1,
        Slot.FLEX: 2,
    }
)


DEFAULT_STARTERS_PER_TEAM: Mapping[Position, int] = {
    Position.QB: 1,
    Position.RB: 2,
    Position.WR: 3,
    Position.TE: 1,
    Position.K: 1,
    Position.DST: 1,
}


@dataclass(frozen=True, slots=True)
class LeagueSettings:
    """League-wide configuration."""

    team_count: int = 12
    budget: int = 200
    roster_size: int = 16
    composition: RosterComposition = DEFAULT_COMPOSITION
    starters_per_team: Mapping[Position, int] = field(default_factory=lambda: dict(DEFAULT_STARTERS_PER_TEAM))

    # Projected points a player needs to count as a "quality" option.
    quality_floor: float = 100.0

    def __post_init__(self) -> None:
        if self.team_count < 1:
            raise ValueError("LeagueSettings.team_count must be >= 1")
        if self.roster_size < 1:
            raise ValueError("LeagueSettings.roster_size must be >= 1")
        if self.budget < self.roster_size:
            raise ValueError("LeagueSettings.budget must allow $1 per roster slot")
        missing = set(Position) - set(self.starters_per_team)
        if missing:
            raise ValueError(f"starters_per_team missing positions: {sorted(p.value for p in missing)}")

    @property
    def baseline_price(self) -> float:
        """Even-split price per roster slot (budget / roster_size)."""

        return self.budget / self.roster_size

    def starters_needed(self, position: Position, team_count: Optional[int] = None) -> int:
        teams = self.team_count if team_count is None else team_count
        return int(self.starters_per_team[position]) * teams


@dataclass(frozen=True, slots=True)
class DraftSnapshot:
    """Everything needed to resume a draft exactly."""

    players: Tuple[Player, ...]
    draft_events: Tuple[DraftEvent, ...]
    team_budgets: Mapping[str, int]
    roster_size: int
    targets: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
