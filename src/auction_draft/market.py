"""Auction market simulation: team budgets, price history, inflation and strategy.

The simulator is the single writer of draft state. Every mutation validates
first and commits under a re-entrant lock, so readers never observe a
half-applied draft. Availability lives in the shared
:class:`auction_draft.catalog.PlayerCatalog`; per-position price history is
derived from the event log, which keeps undo exact.
"""

from __future__ import annotations

import itertools
import logging
import statistics
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from auction_draft.catalog import PlayerCatalog
from auction_draft.data import (
    DraftEvent,
    DraftPhase,
    DraftSnapshot,
    LeagueSettings,
    Player,
    Position,
    RosterComposition,
    RosterEntry,
    ScarcityLevel,
    Slot,
)
from auction_draft.errors import DraftRuleError, UnknownEntityError
from auction_draft.league import (
    EXPECTED_POSITION_PRICES,
    MIN_BID,
    baseline_price,
    classify_scarcity,
)
from auction_draft.strategies import (
    MarketPriceOvervaluedDetector,
    OvervaluedDetector,
    ProjectionSleeperDetector,
    SleeperDetector,
)
from auction_draft.valuation import ValuationContext

logger = logging.getLogger(__name__)


EARLY_PHASE_LIMIT = 0.25
MIDDLE_PHASE_LIMIT = 0.70

RECENT_PRICE_WINDOW = 3
RECENT_BID_WINDOW = 10
TOP_TIER_ADP = 50.0
EARLY_NOMINATION_ADP = 20.0
MID_TIER_ADP = (50.0, 150.0)

OVERBID_FACTOR = 1.15
SLEEPER_DISCOUNT = 0.70
VALUE_CAP_FACTOR = 1.10
NEED_BOOST = 1.15
OVERVALUED_CAP = 0.90


@dataclass(slots=True)
class Team:
    """One team's budget and roster.

    ``max_bid`` reserves $1 for every open slot other than the one being bid on.
    """

    team_id: str
    budget: int
    roster_size: int
    composition: RosterComposition
    spent: int = 0
    roster: List[RosterEntry] = field(default_factory=list)
    targets: Set[str] = field(default_factory=set)

    @property
    def remaining(self) -> int:
        return self.budget - self.spent

    @property
    def slots_left(self) -> int:
        return self.roster_size - len(self.roster)

    @property
    def is_full(self) -> bool:
        return self.slots_left <= 0

    @property
    def max_bid(self) -> int:
        if self.is_full:
            return 0
        return self.remaining - (self.slots_left - 1)

    @property
    def needs(self) -> Dict[Position, int]:
        """Unfilled position slots (FLEX excluded)."""

        held: Dict[Position, int] = {}
        for entry in self.roster:
            held[entry.player.position] = held.get(entry.player.position, 0) + 1

        out: Dict[Position, int] = {}
        for pos in Position:
            missing = self.composition.count(Slot.for_position(pos)) - held.get(pos, 0)
            if missing > 0:
                out[pos] = missing
        return out

    def needs_position(self, position: Position) -> bool:
        return position in self.needs

    @property
    def positions_held(self) -> Set[Position]:
        return {entry.player.position for entry in self.roster}


@dataclass(frozen=True, slots=True)
class MarketConditions:
    total_spent: int
    total_remaining: int
    players_rostered: int
    players_remaining: int
    avg_price_per_player: float
    inflation_rate: float
    phase: DraftPhase


@dataclass(frozen=True, slots=True)
class PositionMarket:
    position: Position
    players_drafted: int
    avg_price: float
    recent_prices: Tuple[int, ...]
    inflation_rate: float
    top_tier_remaining: int
    quality_remaining: int
    starters_needed: int
    scarcity_level: ScarcityLevel


@dataclass(frozen=True, slots=True)
class NominationStrategy:
    phase: DraftPhase
    player: Optional[Player]
    reason: str
    expected_price: float
    target_bidder: Optional[str] = None
    alternates: Tuple[Player, ...] = ()


@dataclass(frozen=True, slots=True)
class BidStrategy:
    player_id: str
    current_bid: int
    max_bid: int
    should_bid: bool
    reason: str
    inflation_adjusted_value: float


def _adp_key(player: Player) -> float:
    return float("inf") if player.adp is None else player.adp


class MarketSimulator:
    """Tracks a live auction and recommends nominations and bids."""

    def __init__(
        self,
        settings: LeagueSettings = LeagueSettings(),
        *,
        overvalued_detector: Optional[OvervaluedDetector] = None,
        sleeper_detector: Optional[SleeperDetector] = None,
        catalog: Optional[PlayerCatalog] = None,
    ) -> None:
        self.settings = settings
        self.overvalued_detector: OvervaluedDetector = overvalued_detector or MarketPriceOvervaluedDetector()
        self.sleeper_detector: SleeperDetector = sleeper_detector or ProjectionSleeperDetector()
        self.catalog = catalog if catalog is not None else PlayerCatalog()

        self._lock = threading.RLock()
        self._teams: Dict[str, Team] = {}
        self._events: List[DraftEvent] = []
        self._sequence = itertools.count(1)
        self._budget = settings.budget
        self._roster_size = settings.roster_size

    # --- Setup ---

    def initialize(
        self,
        team_ids: Sequence[str],
        budget: int,
        roster_size: int,
        available_players: Iterable[Player] | PlayerCatalog,
    ) -> None:
        """Start a fresh draft. Every team starts at ``budget`` with an empty roster."""

        team_ids = list(team_ids)
        if not team_ids:
            raise ValueError("At least one team is required")
        if len(set(team_ids)) != len(team_ids):
            raise ValueError("Team ids must be unique")
        if roster_size < 1:
            raise ValueError("roster_size must be >= 1")
        if budget < roster_size:
            raise ValueError(f"budget ({budget}) must allow ${MIN_BID} per roster slot ({roster_size})")

        if isinstance(available_players, PlayerCatalog):
            catalog = available_players
        else:
            catalog = PlayerCatalog(available_players)

        with self._lock:
            self.catalog = catalog
            self._budget = int(budget)
            self._roster_size = int(roster_size)
            self._events = []
            self._sequence = itertools.count(1)
            self._teams = {
                tid: Team(
                    team_id=tid,
                    budget=int(budget),
                    roster_size=int(roster_size),
                    composition=self.settings.composition,
                )
                for tid in team_ids
            }

        logger.info(
            "Market initialised: teams=%d budget=%d roster_size=%d players=%d",
            len(team_ids),
            budget,
            roster_size,
            len(catalog),
        )

    def set_targets(self, team_id: str, player_ids: Iterable[str]) -> None:
        with self._lock:
            team = self.get_team(team_id)
            ids = set(player_ids)
            for pid in ids:
                self.catalog.get(pid)
            team.targets = ids

    # --- Reads ---

    @property
    def budget(self) -> int:
        return self._budget

    @property
    def roster_size(self) -> int:
        return self._roster_size

    @property
    def teams(self) -> Mapping[str, Team]:
        with self._lock:
            return dict(self._teams)

    @property
    def events(self) -> Tuple[DraftEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def get_team(self, team_id: str) -> Team:
        try:
            return self._teams[team_id]
        except KeyError as e:
            raise UnknownEntityError(f"Unknown team {team_id!r}") from e

    def available_players(self, position: Optional[Position] = None) -> Tuple[Player, ...]:
        return self.catalog.available_players(position)

    def price_history(self, position: Position) -> Tuple[int, ...]:
        with self._lock:
            return tuple(e.price for e in self._events if e.position is position)

    @property
    def phase(self) -> DraftPhase:
        with self._lock:
            total_slots = self._roster_size * len(self._teams)
            fraction = len(self._events) / total_slots if total_slots else 0.0
        if fraction < EARLY_PHASE_LIMIT:
            return DraftPhase.EARLY
        if fraction < MIDDLE_PHASE_LIMIT:
            return DraftPhase.MIDDLE
        return DraftPhase.LATE

    def get_market_conditions(self) -> MarketConditions:
        with self._lock:
            teams = list(self._teams.values())
            total_spent = sum(t.spent for t in teams)
            total_remaining = sum(t.remaining for t in teams)
            rostered = len(self._events)
            open_slots = sum(max(0, t.slots_left) for t in teams)
            avg = total_spent / rostered if rostered else 0.0
            baseline = self._budget / self._roster_size
            inflation = avg / baseline - 1.0 if rostered else 0.0
            return MarketConditions(
                total_spent=total_spent,
                total_remaining=total_remaining,
                players_rostered=rostered,
                players_remaining=open_slots,
                avg_price_per_player=avg,
                inflation_rate=inflation,
                phase=self.phase,
            )

    def get_position_markets(self) -> Dict[Position, PositionMarket]:
        with self._lock:
            team_count = len(self._teams) or self.settings.team_count
            markets: Dict[Position, PositionMarket] = {}
            for pos in Position:
                prices = self.price_history(pos)
                available = self.catalog.available_players(pos)
                avg = statistics.fmean(prices) if prices else 0.0
                expected = EXPECTED_POSITION_PRICES[pos]
                quality = sum(1 for p in available if p.projected_points > self.settings.quality_floor)
                starters = self.settings.starters_needed(pos, team_count)
                markets[pos] = PositionMarket(
                    position=pos,
                    players_drafted=len(prices),
                    avg_price=avg,
                    recent_prices=prices[-RECENT_PRICE_WINDOW:],
                    inflation_rate=avg / expected - 1.0 if prices else 0.0,
                    top_tier_remaining=sum(1 for p in available if p.adp is not None and p.adp < TOP_TIER_ADP),
                    quality_remaining=quality,
                    starters_needed=starters,
                    scarcity_level=classify_scarcity(quality, starters),
                )
            return markets

    def valuation_context(self) -> ValuationContext:
        """Snapshot the live draft state for :class:`auction_draft.valuation.ValuationEngine`."""

        with self._lock:
            conditions = self.get_market_conditions()
            return ValuationContext(
                drafted_player_ids=frozenset(e.player_id for e in self._events),
                remaining_budgets_by_team={tid: t.remaining for tid, t in self._teams.items()},
                position_scarcity={pos: m.scarcity_level for pos, m in self.get_position_markets().items()},
                recent_bids=tuple(float(e.price) for e in self._events[-RECENT_BID_WINDOW:]),
                inflation_rate=conditions.inflation_rate,
                budget=self._budget,
                roster_size=self._roster_size,
                team_count=len(self._teams) or self.settings.team_count,
            )

    # --- Mutations ---

    def record_draft(self, player: Player | str, team_id: str, price: int) -> DraftEvent:
        """Commit a purchase. Raises before touching any state when the draft is invalid."""

        with self._lock:
            team = self.get_team(team_id)
            record = self.catalog.get(player if isinstance(player, str) else player.player_id)
            price = int(price)

            if not self.catalog.is_available(record.player_id):
                raise DraftRuleError(f"Player {record.player_id!r} is already drafted")
            if price < 0:
                raise DraftRuleError(f"Price must be >= 0, got {price}")
            if team.is_full:
                raise DraftRuleError(f"Team {team_id!r} roster is full")
            if price > team.max_bid:
                raise DraftRuleError(
                    f"Price {price} exceeds team {team_id!r} max bid {team.max_bid} "
                    f"(remaining={team.remaining}, slots_left={team.slots_left})"
                )

            event = DraftEvent(
                sequence=next(self._sequence),
                player_id=record.player_id,
                team_id=team_id,
                position=record.position,
                price=price,
                timestamp=datetime.now(timezone.utc),
            )
            self._apply(event, record, team)

        logger.info("Drafted %s (%s) to %s for $%d", record.name, record.position.value, team_id, price)
        return event

    def undo_draft(self, player: Player | str, team_id: str, price: int) -> DraftEvent:
        """Reverse the most recent event matching (player, team, price)."""

        player_id = player if isinstance(player, str) else player.player_id
        with self._lock:
            for idx in range(len(self._events) - 1, -1, -1):
                e = self._events[idx]
                if e.player_id == player_id and e.team_id == team_id and e.price == int(price):
                    return self._revert(idx)
        raise UnknownEntityError(f"No draft event for player {player_id!r} to team {team_id!r} at ${price}")

    def undo_last(self) -> DraftEvent:
        with self._lock:
            if not self._events:
                raise UnknownEntityError("No draft events to undo")
            return self._revert(len(self._events) - 1)

    def _apply(self, event: DraftEvent, player: Player, team: Team) -> None:
        # Availability first: the catalog rejects a concurrent double draft.
        try:
            self.catalog.mark_drafted(player.player_id)
        except ValueError as e:
            raise DraftRuleError(str(e)) from e
        team.spent += event.price
        team.roster.append(RosterEntry(player=player, price=event.price))
        self._events.append(event)

    def _revert(self, idx: int) -> DraftEvent:
        event = self._events[idx]
        team = self._teams[event.team_id]
        for i in range(len(team.roster) - 1, -1, -1):
            entry = team.roster[i]
            if entry.player.player_id == event.player_id and entry.price == event.price:
                del team.roster[i]
                break
        team.spent -= event.price
        del self._events[idx]
        self.catalog.mark_available(event.player_id)
        logger.info("Undid draft of %s from %s ($%d)", event.player_id, event.team_id, event.price)
        return event

    # --- Strategy ---

    def find_likely_bidder(self, player: Player, *, exclude: Optional[str] = None) -> Optional[str]:
        """Team with the most remaining budget that still needs the player's position."""

        best: Optional[Team] = None
        for team in self._teams.values():
            if team.team_id == exclude or team.is_full or not team.needs_position(player.position):
                continue
            if best is None or team.remaining > best.remaining:
                best = team
        return None if best is None else best.team_id

    def get_nomination_strategy(self, team_id: str) -> NominationStrategy:
        """Phase-dependent nomination. Only returns ``player=None`` when nobody is left."""

        with self._lock:
            team = self.get_team(team_id)
            phase = self.phase
            available = self.catalog.available_players()
            if not available:
                return NominationStrategy(phase=phase, player=None, reason="No players available", expected_price=0.0)

            candidates: List[Player] = []
            reason = ""
            target_bidder: Optional[str] = None
            factor = 1.0

            if phase is DraftPhase.EARLY:
                candidates = sorted(
                    (
                        p
                        for p in available
                        if p.adp is not None and p.adp < EARLY_NOMINATION_ADP and p.player_id not in team.targets
                    ),
                    key=_adp_key,
                )
                if candidates:
                    reason = "Drain opponent budgets with a high-profile player"
                    with_bidder = [p for p in candidates if self.find_likely_bidder(p, exclude=team_id)]
                    if with_bidder:
                        candidates = with_bidder + [p for p in candidates if p not in with_bidder]
                    target_bidder = self.find_likely_bidder(candidates[0], exclude=team_id)
            elif phase is DraftPhase.MIDDLE:
                candidates = sorted((p for p in available if self.overvalued_detector.is_overvalued(p)), key=_adp_key)
                if candidates:
                    reason = "Popular name likely to draw an overbid"
                    factor = OVERBID_FACTOR
            else:
                candidates = sorted(
                    (
                        p
                        for p in available
                        if self.sleeper_detector.is_sleeper(p)
                        and (p.player_id in team.targets or team.needs_position(p.position))
                    ),
                    key=lambda p: -p.projected_points,
                )
                if candidates:
                    reason = "Get your sleeper while budgets are tight"
                    factor = SLEEPER_DISCOUNT

            if not candidates:
                lo, hi = MID_TIER_ADP
                held = team.positions_held
                candidates = sorted(
                    (p for p in available if p.position in held and p.adp is not None and lo < p.adp < hi),
                    key=_adp_key,
                )
                if candidates:
                    reason = "Mid-tier player at a filled position"
                else:
                    candidates = sorted(available, key=lambda p: (baseline_price(p), _adp_key(p)))
                    reason = "Cheapest available player"
                factor = 1.0

            choice = candidates[0]
            expected = max(float(MIN_BID), baseline_price(choice) * factor)
            alternates = list(candidates[1:4])
            if len(alternates) < 3:
                chosen = {choice.player_id} | {p.player_id for p in alternates}
                for p in sorted(available, key=_adp_key):
                    if len(alternates) >= 3:
                        break
                    if p.player_id not in chosen:
                        alternates.append(p)
                        chosen.add(p.player_id)

            logger.debug("Nomination for %s (%s): %s - %s", team_id, phase.value, choice.name, reason)
            return NominationStrategy(
                phase=phase,
                player=choice,
                reason=reason,
                expected_price=expected,
                target_bidder=target_bidder,
                alternates=tuple(alternates),
            )

    def get_bid_strategy(self, player: Player | str, team_id: str, current_bid: int) -> BidStrategy:
        """How far ``team_id`` should go for ``player`` given the current bid."""

        with self._lock:
            team = self.get_team(team_id)
            record = self.catalog.get(player) if isinstance(player, str) else player
            inflation = self.get_market_conditions().inflation_rate

            base = baseline_price(record)
            adjusted = base * (1.0 + inflation)
            limit = min(adjusted * VALUE_CAP_FACTOR, float(team.max_bid))
            if team.needs_position(record.position):
                limit = min(limit * NEED_BOOST, float(team.max_bid))

            overvalued = self.overvalued_detector.is_overvalued(record)
            if overvalued:
                limit = min(limit, base * OVERVALUED_CAP)

            max_bid = 0 if team.is_full else max(MIN_BID, min(team.max_bid, int(round(limit))))

            if team.is_full:
                should_bid, reason = False, "Roster is full"
            elif current_bid >= max_bid:
                should_bid, reason = False, f"Current bid (${current_bid}) is at or above max value (${max_bid})"
            elif team.remaining < max_bid:
                should_bid, reason = False, f"Insufficient budget ({team.remaining} < {max_bid})"
            elif overvalued:
                should_bid, reason = True, "Player is overvalued; capped below baseline"
            else:
                should_bid, reason = True, "Good value at current price"

            return BidStrategy(
                player_id=record.player_id,
                current_bid=int(current_bid),
                max_bid=max_bid,
                should_bid=should_bid,
                reason=reason,
                inflation_adjusted_value=round(adjusted, 2),
            )

    # --- Persistence ---

    def snapshot(self) -> DraftSnapshot:
        with self._lock:
            return DraftSnapshot(
                players=tuple(self.catalog),
                draft_events=tuple(self._events),
                team_budgets={tid: t.budget for tid, t in self._teams.items()},
                roster_size=self._roster_size,
                targets={tid: tuple(sorted(t.targets)) for tid, t in self._teams.items() if t.targets},
            )

    @classmethod
    def from_snapshot(
        cls,
        snapshot: DraftSnapshot,
        settings: LeagueSettings = LeagueSettings(),
        *,
        overvalued_detector: Optional[OvervaluedDetector] = None,
        sleeper_detector: Optional[SleeperDetector] = None,
        catalog: Optional[PlayerCatalog] = None,
    ) -> "MarketSimulator":
        """Rebuild a simulator by replaying the snapshot's events in order.

        Pass ``catalog`` to replay into an existing (fully available) catalog
        that other components already observe.
        """

        if not snapshot.team_budgets:
            raise ValueError("Snapshot has no teams")

        sim = cls(settings, overvalued_detector=overvalued_detector, sleeper_detector=sleeper_detector)
        source = catalog if catalog is not None else PlayerCatalog(snapshot.players)
        budgets = dict(snapshot.team_budgets)
        sim.initialize(list(budgets), max(budgets.values()), snapshot.roster_size, source)
        with sim._lock:
            for tid, budget in budgets.items():
                sim._teams[tid].budget = int(budget)
            for tid, ids in snapshot.targets.items():
                sim.get_team(tid).targets = set(ids)

            for event in sorted(snapshot.draft_events, key=lambda e: e.sequence):
                team = sim.get_team(event.team_id)
                record = sim.catalog.get(event.player_id)
                if event.price > team.max_bid or team.is_full:
                    raise DraftRuleError(f"Snapshot event {event.sequence} breaks budget or roster rules")
                sim._apply(event, record, team)

            last = max((e.sequence for e in snapshot.draft_events), default=0)
            sim._sequence = itertools.count(last + 1)

        logger.info("Restored market from snapshot: %d events", len(snapshot.draft_events))
        return sim
