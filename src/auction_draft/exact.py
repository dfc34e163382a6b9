"""Exact roster selection as a MILP (PuLP + CBC).

Reference solver for :class:`auction_draft.optimizer.RosterOptimizer`: it
answers the same question (maximise projected points for a full roster within
budget) exactly, so the greedy result can be benchmarked against it with
:func:`optimality_gap`.

Model
-----
x[p, s] in {0, 1}   player p fills slot type s (s eligible for p's position)

maximise   sum_{p,s} points[p] * x[p, s]
subject to sum_p x[p, s] == open[s]          for every slot type s
           sum_s x[p, s] <= 1                for every player p
           sum_{p,s} price[p] * x[p, s] <= budget - locked spend
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

import pulp

from auction_draft.data import DEFAULT_COMPOSITION, Player, RosterComposition, Slot
from auction_draft.errors import InfeasibleConstraintError
from auction_draft.optimizer import (
    LockedPick,
    OptimizationResult,
    RosterPick,
    Shortfall,
    build_result,
    place_locked_picks,
    player_price,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Data structures
# ============================================================================


@dataclass(slots=True)
class RosterDecisionVariables:
    # x[p, s] in {0,1}
    assign: Dict[Tuple[str, Slot], pulp.LpVariable] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RosterModelInput:
    players: Mapping[str, Player]
    open_slots: Mapping[Slot, int]
    budget: int
    composition: RosterComposition

    @property
    def idx_player_slot(self) -> List[Tuple[str, Slot]]:
        return [
            (pid, slot)
            for pid, p in self.players.items()
            for slot in self.open_slots
            if self.open_slots[slot] > 0 and p.position in self.composition.eligible_positions(slot)
        ]


# ============================================================================
# Formulation
# ============================================================================


def formulate_roster_problem(model_input: RosterModelInput) -> Tuple[pulp.LpProblem, RosterDecisionVariables]:
    problem = pulp.LpProblem(name="auction_roster", sense=pulp.LpMaximize)

    # Player ids may contain characters PuLP rewrites in names; index by load order.
    index = {pid: i for i, pid in enumerate(model_input.players)}
    variables = RosterDecisionVariables(
        assign={
            (pid, slot): pulp.LpVariable(f"x_{index[pid]}_{slot.value}", lowBound=0, upBound=1, cat=pulp.LpBinary)
            for (pid, slot) in model_input.idx_player_slot
        }
    )

    problem += pulp.lpSum(
        model_input.players[pid].projected_points * var for (pid, _), var in variables.assign.items()
    )

    _add_slot_count_constraints(problem, model_input, variables)
    _add_one_slot_per_player_constraints(problem, model_input, variables)
    _add_budget_constraint(problem, model_input, variables)

    return problem, variables


def _add_slot_count_constraints(
    problem: pulp.LpProblem,
    model_input: RosterModelInput,
    variables: RosterDecisionVariables,
) -> None:
    """Every open slot is filled exactly."""

    for slot, count in model_input.open_slots.items():
        if count <= 0:
            continue
        terms = [var for (_, s), var in variables.assign.items() if s is slot]
        problem += (pulp.lpSum(terms) == count, f"slot_count_{slot.value}")


def _add_one_slot_per_player_constraints(
    problem: pulp.LpProblem,
    model_input: RosterModelInput,
    variables: RosterDecisionVariables,
) -> None:
    by_player: Dict[str, List[pulp.LpVariable]] = {}
    for (pid, _), var in variables.assign.items():
        by_player.setdefault(pid, []).append(var)
    for i, terms in enumerate(by_player.values()):
        if len(terms) > 1:
            problem += (pulp.lpSum(terms) <= 1, f"one_slot_{i}")


def _add_budget_constraint(
    problem: pulp.LpProblem,
    model_input: RosterModelInput,
    variables: RosterDecisionVariables,
) -> None:
    problem += (
        pulp.lpSum(player_price(model_input.players[pid]) * var for (pid, _), var in variables.assign.items())
        <= model_input.budget,
        "budget",
    )


# ============================================================================
# Solve
# ============================================================================


def _build_cbc_solver(*, time_limit_seconds: int | None, enable_solver_output: bool) -> pulp.LpSolver:
    """Create a CBC (COIN-OR) solver instance for PuLP."""

    if time_limit_seconds is not None:
        return pulp.PULP_CBC_CMD(msg=enable_solver_output, timeLimit=time_limit_seconds)

    return pulp.PULP_CBC_CMD(msg=enable_solver_output)


def solve_exact_roster(
    players: Iterable[Player],
    budget: int = 200,
    composition: RosterComposition = DEFAULT_COMPOSITION,
    locked: Sequence[LockedPick] = (),
    *,
    time_limit_seconds: int | None = None,
    enable_solver_output: bool | None = None,
) -> OptimizationResult:
    """Solve the roster problem to optimality with CBC.

    Raises :class:`InfeasibleConstraintError` when no full roster fits the
    budget (the exact solver has no meaningful partial answer).
    """

    if enable_solver_output is None:
        enable_solver_output = os.environ.get("AUCTION_DRAFT_SOLVER_OUTPUT") is not None

    picks = place_locked_picks(locked, composition)
    locked_ids = {pk.player.player_id for pk in picks}
    open_slots = {slot: count for slot, count in composition.iter_slots()}
    for pk in picks:
        open_slots[pk.slot] -= 1

    pool: Dict[str, Player] = {}
    for p in players:
        if p.player_id not in locked_ids:
            pool.setdefault(p.player_id, p)

    model_input = RosterModelInput(
        players=pool,
        open_slots=open_slots,
        budget=int(budget) - sum(pk.price for pk in picks),
        composition=composition,
    )
    problem, variables = formulate_roster_problem(model_input)
    logger.info(
        "Solving exact roster with CBC: variables=%d constraints=%d",
        len(problem.variables()),
        len(problem.constraints),
    )

    solver = _build_cbc_solver(time_limit_seconds=time_limit_seconds, enable_solver_output=enable_solver_output)
    status = pulp.LpStatus[problem.solve(solver)]
    if status != "Optimal":
        shortfalls = tuple(
            Shortfall(slot=slot, missing=count, reason=f"solver status {status}")
            for slot, count in open_slots.items()
            if count > 0
        )
        raise InfeasibleConstraintError(f"Exact roster solve ended with status {status}", shortfalls)

    for (pid, slot), var in variables.assign.items():
        if (var.value() or 0.0) > 0.5:
            p = pool[pid]
            picks.append(RosterPick(slot=slot, player=p, price=player_price(p)))

    result = build_result(picks, int(budget))
    logger.info("Exact roster: spent=%d points=%.1f", result.total_spent, result.total_projected_points)
    return result


def optimality_gap(heuristic: OptimizationResult, exact: OptimizationResult) -> float:
    """Relative points shortfall of ``heuristic`` vs ``exact`` (0.0 means optimal)."""

    if exact.total_projected_points <= 0:
        return 0.0
    return max(0.0, 1.0 - heuristic.total_projected_points / exact.total_projected_points)
