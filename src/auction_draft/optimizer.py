"""Budget-constrained roster construction.

A phased greedy fill followed by a local-search repair pass. This is a
heuristic: :mod:`auction_draft.exact` solves the same problem exactly and can
be used to measure how far the greedy answer is from optimal.

Algorithm
---------
1. Partition the pool by position, best projection first.
2. Split the budget left after locked picks across positions using fixed
   proportions (renormalised over positions the composition requires).
3. Fill position slots in a fixed order. Each slot has a target spend (the
   position's unspent allocation over its open slots). Among affordable
   players priced at or below target take the best projection; otherwise take
   the affordable player priced nearest 80% of target. "Affordable" always
   reserves $1 for every other open slot.
4. Fill FLEX from leftover flex-eligible players by points per dollar.
5. When the roster is complete, repeatedly apply the first slot-compatible
   swap that strictly increases projected points within budget.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from auction_draft.data import DEFAULT_COMPOSITION, Player, Position, RosterComposition, Slot
from auction_draft.errors import InfeasibleConstraintError
from auction_draft.league import MIN_BID

logger = logging.getLogger(__name__)


DEFAULT_ALLOCATION: Mapping[Position, float] = {
    Position.RB: 0.42,
    Position.WR: 0.33,
    Position.QB: 0.145,
    Position.TE: 0.08,
    Position.K: 0.0125,
    Position.DST: 0.0125,
}

FILL_ORDER: Tuple[Position, ...] = (
    Position.RB,
    Position.WR,
    Position.QB,
    Position.TE,
    Position.DST,
    Position.K,
)

TARGET_SPEND_FRACTION = 0.8

_SLOT_ORDER: Dict[Slot, int] = {s: i for i, s in enumerate(Slot)}


def player_price(player: Player) -> int:
    """Whole-dollar cost of a player: rounded auction value, at least $1."""

    if player.auction_value is None:
        return MIN_BID
    return max(MIN_BID, int(round(player.auction_value)))


@dataclass(frozen=True, slots=True)
class LockedPick:
    """A player already on the roster (mid-draft resume)."""

    player: Player
    price: Optional[int] = None

    @property
    def cost(self) -> int:
        return player_price(self.player) if self.price is None else int(self.price)


@dataclass(frozen=True, slots=True)
class RosterPick:
    slot: Slot
    player: Player
    price: int
    locked: bool = False


@dataclass(frozen=True, slots=True)
class Shortfall:
    """Slots that could not be filled, and why."""

    slot: Slot
    missing: int
    reason: str


@dataclass(frozen=True, slots=True)
class OptimizationResult:
    roster: Tuple[RosterPick, ...]
    total_spent: int
    total_projected_points: float
    budget: int
    shortfalls: Tuple[Shortfall, ...] = ()
    # Purchases that fit no open slot; their cost is counted in total_spent.
    overflow: Tuple[LockedPick, ...] = ()

    @property
    def is_complete(self) -> bool:
        return not self.shortfalls

    @property
    def remaining_budget(self) -> int:
        return self.budget - self.total_spent

    @property
    def players(self) -> Tuple[Player, ...]:
        return tuple(pick.player for pick in self.roster)

    def picks_for(self, slot: Slot) -> Tuple[RosterPick, ...]:
        return tuple(pick for pick in self.roster if pick.slot is slot)

    def raise_for_shortfall(self) -> "OptimizationResult":
        """Return self, or raise :class:`InfeasibleConstraintError` if any slot is unfilled."""

        if self.shortfalls:
            detail = ", ".join(f"{s.slot.value} x{s.missing} ({s.reason})" for s in self.shortfalls)
            raise InfeasibleConstraintError(f"Roster is incomplete: {detail}", self.shortfalls)
        return self


def build_result(
    picks: Sequence[RosterPick],
    budget: int,
    shortfalls: Sequence[Shortfall] = (),
    overflow: Sequence[LockedPick] = (),
) -> OptimizationResult:
    ordered = sorted(picks, key=lambda pk: (_SLOT_ORDER[pk.slot], -pk.player.projected_points, pk.player.player_id))
    return OptimizationResult(
        roster=tuple(ordered),
        total_spent=sum(pk.price for pk in ordered) + sum(lp.cost for lp in overflow),
        total_projected_points=sum(pk.player.projected_points for pk in ordered),
        budget=int(budget),
        shortfalls=tuple(shortfalls),
        overflow=tuple(overflow),
    )


def place_locked_picks(
    locked: Iterable[LockedPick],
    composition: RosterComposition,
    *,
    overflow: Optional[List[LockedPick]] = None,
) -> List[RosterPick]:
    """Assign locked players to slots: their own position first, then FLEX.

    A player that fits no open slot raises ``ValueError``, unless an
    ``overflow`` list is given, in which case it is appended there instead.
    """

    open_slots = {slot: count for slot, count in composition.iter_slots()}
    seen: Set[str] = set()
    picks: List[RosterPick] = []
    for lp in locked:
        pid = lp.player.player_id
        if pid in seen:
            raise ValueError(f"Player {pid!r} is locked more than once")
        seen.add(pid)
        if lp.cost < 0:
            raise ValueError(f"Locked price for {pid!r} must be >= 0")

        own = Slot.for_position(lp.player.position)
        if open_slots.get(own, 0) > 0:
            slot = own
        elif open_slots.get(Slot.FLEX, 0) > 0 and lp.player.position in composition.flex_positions:
            slot = Slot.FLEX
        elif overflow is not None:
            overflow.append(lp)
            continue
        else:
            raise ValueError(f"Locked player {pid!r} ({lp.player.position.value}) does not fit the roster composition")
        open_slots[slot] -= 1
        picks.append(RosterPick(slot=slot, player=lp.player, price=lp.cost, locked=True))
    return picks


class RosterOptimizer:
    """Phased greedy roster builder with local-search repair."""

    def __init__(
        self,
        *,
        allocation: Mapping[Position, float] = DEFAULT_ALLOCATION,
        fill_order: Sequence[Position] = FILL_ORDER,
        target_spend_fraction: float = TARGET_SPEND_FRACTION,
        max_repair_iterations: int = 1_000,
    ) -> None:
        if any(share < 0 for share in allocation.values()):
            raise ValueError("Allocation shares must be >= 0")
        self.allocation = dict(allocation)
        self.fill_order = tuple(fill_order)
        self.target_spend_fraction = target_spend_fraction
        self.max_repair_iterations = max_repair_iterations

    def allocate(self, composition: RosterComposition, budget: float) -> Dict[Position, float]:
        """Dollar allocation per required position."""

        required = [pos for pos in Position if composition.position_count(pos) > 0]
        total = sum(self.allocation.get(pos, 0.0) for pos in required)
        if total <= 0:
            return {pos: 0.0 for pos in required}
        return {pos: budget * self.allocation.get(pos, 0.0) / total for pos in required}

    def optimize(
        self,
        players: Iterable[Player],
        budget: int = 200,
        composition: RosterComposition = DEFAULT_COMPOSITION,
        locked: Sequence[LockedPick] = (),
        *,
        allow_overflow: bool = False,
    ) -> OptimizationResult:
        """Build a roster around ``locked``.

        With ``allow_overflow`` a locked player that fits no open slot is kept
        out of the slot assignment and reported in ``result.overflow`` (its
        price still counts against the budget). Otherwise it raises ``ValueError``.
        """

        budget = int(budget)
        overflow: List[LockedPick] = []
        picks = place_locked_picks(locked, composition, overflow=overflow if allow_overflow else None)
        for lp in overflow:
            logger.warning(
                "Locked player %s (%s) fits no open slot; left out of the roster", lp.player.player_id, lp.player.position.value
            )
        locked_spent = sum(pk.price for pk in picks) + sum(lp.cost for lp in overflow)
        if locked_spent > budget:
            if picks:
                last_slot = picks[-1].slot
            else:
                last_slot = Slot.for_position(overflow[-1].player.position) if overflow else Slot.FLEX
            shortfall = Shortfall(slot=last_slot, missing=0, reason=f"locked picks cost ${locked_spent}")
            raise InfeasibleConstraintError(
                f"Locked picks cost ${locked_spent}, over the ${budget} budget", (shortfall,)
            )

        used: Set[str] = {pk.player.player_id for pk in picks} | {lp.player.player_id for lp in overflow}
        by_position: Dict[Position, List[Player]] = {pos: [] for pos in Position}
        pooled: Set[str] = set()
        for p in players:
            if p.player_id in used or p.player_id in pooled:
                continue
            pooled.add(p.player_id)
            by_position[p.position].append(p)
        for group in by_position.values():
            group.sort(key=lambda p: p.projected_points, reverse=True)

        open_slots: Dict[Slot, int] = {slot: count for slot, count in composition.iter_slots()}
        for pk in picks:
            open_slots[pk.slot] -= 1

        remaining = budget - locked_spent
        allocation = self.allocate(composition, remaining)
        shortfalls: List[Shortfall] = []

        def total_open() -> int:
            return sum(open_slots.values())

        for pos in self.fill_order:
            slot = Slot.for_position(pos)
            need = open_slots.get(slot, 0)
            if need <= 0:
                continue
            spent_here = 0
            for k in range(need):
                cap = remaining - (total_open() - 1)
                target = max(0.0, allocation.get(pos, 0.0) - spent_here) / (need - k)
                pool = [p for p in by_position[pos] if p.player_id not in used]
                choice = self._pick_for_target(pool, cap, target)
                if choice is None:
                    reason = f"no {pos.value} available" if not pool else f"no {pos.value} affordable within ${cap}"
                    shortfalls.append(Shortfall(slot=slot, missing=need - k, reason=reason))
                    break
                price = player_price(choice)
                picks.append(RosterPick(slot=slot, player=choice, price=price))
                used.add(choice.player_id)
                open_slots[slot] -= 1
                remaining -= price
                spent_here += price

        flex_needed = open_slots.get(Slot.FLEX, 0)
        for k in range(flex_needed):
            cap = remaining - (total_open() - 1)
            pool = [
                p
                for pos in Position
                if pos in composition.flex_positions
                for p in by_position[pos]
                if p.player_id not in used and player_price(p) <= cap
            ]
            if not pool:
                shortfalls.append(
                    Shortfall(slot=Slot.FLEX, missing=flex_needed - k, reason=f"no flex player affordable within ${cap}")
                )
                break
            choice = max(pool, key=lambda p: (p.projected_points / player_price(p), p.projected_points))
            price = player_price(choice)
            picks.append(RosterPick(slot=Slot.FLEX, player=choice, price=price))
            used.add(choice.player_id)
            open_slots[Slot.FLEX] -= 1
            remaining -= price

        if not shortfalls:
            picks = self.repair(picks, by_position, composition, budget - sum(lp.cost for lp in overflow))
        else:
            for s in shortfalls:
                logger.warning("Roster shortfall: %s x%d (%s)", s.slot.value, s.missing, s.reason)

        result = build_result(picks, budget, shortfalls, overflow)
        logger.info(
            "Optimised roster: players=%d spent=%d/%d points=%.1f shortfalls=%d",
            len(result.roster),
            result.total_spent,
            budget,
            result.total_projected_points,
            len(result.shortfalls),
        )
        return result

    def _pick_for_target(self, pool: Sequence[Player], cap: int, target: float) -> Optional[Player]:
        affordable = [p for p in pool if player_price(p) <= cap]
        if not affordable:
            return None
        aim = target * self.target_spend_fraction
        within = [p for p in affordable if player_price(p) <= target]
        if within:
            return max(within, key=lambda p: (p.projected_points, -abs(player_price(p) - aim)))
        return min(affordable, key=lambda p: (abs(player_price(p) - aim), -p.projected_points))

    def repair(
        self,
        picks: List[RosterPick],
        by_position: Mapping[Position, Sequence[Player]],
        composition: RosterComposition,
        budget: int,
    ) -> List[RosterPick]:
        """Apply first-improving swaps until none is left (or the iteration cap is hit)."""

        picks = list(picks)
        used = {pk.player.player_id for pk in picks}
        spent = sum(pk.price for pk in picks)
        swaps = 0

        while swaps < self.max_repair_iterations:
            swapped = False
            for i, pk in enumerate(picks):
                if pk.locked:
                    continue
                for pos in composition.eligible_positions(pk.slot):
                    for cand in by_position.get(pos, ()):
                        if cand.projected_points <= pk.player.projected_points:
                            # Pools are sorted by projection; nothing further can improve.
                            break
                        if cand.player_id in used:
                            continue
                        price = player_price(cand)
                        if spent - pk.price + price > budget:
                            continue
                        used.discard(pk.player.player_id)
                        used.add(cand.player_id)
                        spent += price - pk.price
                        picks[i] = RosterPick(slot=pk.slot, player=cand, price=price)
                        swapped = True
                        break
                    if swapped:
                        break
                if swapped:
                    break
            if not swapped:
                break
            swaps += 1

        if swaps >= self.max_repair_iterations:
            logger.warning("Repair stopped at the iteration cap (%d swaps)", swaps)
        else:
            logger.debug("Repair applied %d swaps", swaps)
        return picks
