from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from auction_draft.catalog import PlayerCatalog
from auction_draft.data import UNSCORED, Evaluation, format_score
from auction_draft.optimizer import OptimizationResult
from auction_draft.valuation import position_ranks, rank_evaluations


@dataclass(frozen=True, slots=True)
class RosterEntrySummary:
    player_id: str
    player_name: str
    slot: str
    position: str
    team: str
    price: int
    projected_points: float
    locked: bool


@dataclass(frozen=True, slots=True)
class ShortfallSummary:
    slot: str
    missing: int
    reason: str


@dataclass(frozen=True, slots=True)
class RosterSummary:
    complete: bool
    budget: int
    total_spent: int
    remaining_budget: int
    total_projected_points: float
    roster: List[RosterEntrySummary]
    shortfalls: List[ShortfallSummary]
    optimality_gap: Optional[float] = None
    # Bought players that fit no open slot (slot is "-").
    overflow: List[RosterEntrySummary] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class EvaluationRow:
    rank: int
    player_id: str
    player_name: str
    position: str
    position_rank: Optional[int]
    cvs_score: Optional[float]
    recommended_bid: int
    market_price: Optional[float]
    confidence_level: str
    is_undervalued: bool


def build_roster_summary(result: OptimizationResult, *, optimality_gap: Optional[float] = None) -> RosterSummary:
    """Build a JSON-serialisable summary of an optimiser result."""

    entries = [
        RosterEntrySummary(
            player_id=pk.player.player_id,
            player_name=pk.player.name,
            slot=pk.slot.value,
            position=pk.player.position.value,
            team=pk.player.team,
            price=pk.price,
            projected_points=float(pk.player.projected_points),
            locked=pk.locked,
        )
        for pk in result.roster
    ]
    shortfalls = [ShortfallSummary(slot=s.slot.value, missing=s.missing, reason=s.reason) for s in result.shortfalls]
    overflow = [
        RosterEntrySummary(
            player_id=lp.player.player_id,
            player_name=lp.player.name,
            slot="-",
            position=lp.player.position.value,
            team=lp.player.team,
            price=lp.cost,
            projected_points=float(lp.player.projected_points),
            locked=True,
        )
        for lp in result.overflow
    ]
    return RosterSummary(
        complete=result.is_complete,
        budget=result.budget,
        total_spent=result.total_spent,
        remaining_budget=result.remaining_budget,
        total_projected_points=float(result.total_projected_points),
        roster=entries,
        shortfalls=shortfalls,
        optimality_gap=optimality_gap,
        overflow=overflow,
    )


def roster_summary_to_json_dict(summary: RosterSummary) -> Dict[str, Any]:
    return asdict(summary)


def roster_summary_from_json_dict(raw: Dict[str, Any]) -> RosterSummary:
    """Inverse of :func:`roster_summary_to_json_dict` (e.g. for a saved ``roster.json``)."""

    return RosterSummary(
        complete=bool(raw["complete"]),
        budget=int(raw["budget"]),
        total_spent=int(raw["total_spent"]),
        remaining_budget=int(raw["remaining_budget"]),
        total_projected_points=float(raw["total_projected_points"]),
        roster=[RosterEntrySummary(**e) for e in raw.get("roster", [])],
        shortfalls=[ShortfallSummary(**s) for s in raw.get("shortfalls", [])],
        optimality_gap=raw.get("optimality_gap"),
        overflow=[RosterEntrySummary(**e) for e in raw.get("overflow", [])],
    )


def dumps_roster_summary_pretty(summary: RosterSummary) -> str:
    return json.dumps(roster_summary_to_json_dict(summary), indent=2, sort_keys=False)


def _format_points(points: float) -> str:
    # Keep integers as integers for readability.
    if abs(points - round(points)) < 1e-9:
        return str(int(round(points)))
    return f"{points:.1f}"


def roster_summary_to_markdown(summary: RosterSummary) -> str:
    lines: List[str] = []
    lines.append("| Slot | Player | Pos | Team | Price | Points |")
    lines.append("| --- | --- | --- | --- | ---: | ---: |")
    for e in summary.roster:
        name = f"{e.player_name} (locked)" if e.locked else e.player_name
        lines.append(
            f"| {e.slot} | {name} | {e.position} | {e.team} | ${e.price} | {_format_points(e.projected_points)} |"
        )
    lines.append(
        f"| **Total** | | | | **${summary.total_spent}** | **{_format_points(summary.total_projected_points)}** |"
    )
    lines.append("")
    lines.append(f"Budget: ${summary.budget} (remaining ${summary.remaining_budget})")
    if summary.optimality_gap is not None:
        lines.append(f"Gap to exact optimum: {summary.optimality_gap:.1%}")
    if summary.shortfalls:
        lines.append("")
        lines.append("Shortfalls:")
        for s in summary.shortfalls:
            lines.append(f"- {s.slot} x{s.missing}: {s.reason}")
    if summary.overflow:
        lines.append("")
        lines.append("Bought but outside the roster composition:")
        for e in summary.overflow:
            lines.append(f"- {e.player_name} ({e.position}, ${e.price})")
    return "\n".join(lines) + "\n"


def build_evaluation_rows(
    evaluations: Iterable[Evaluation],
    catalog: PlayerCatalog,
    *,
    top: Optional[int] = None,
) -> List[EvaluationRow]:
    """Ranked rows, unscored players last with no score or position rank."""

    ranked = rank_evaluations(evaluations)
    pos_ranks = position_ranks(ranked, catalog)
    if top is not None:
        ranked = ranked[:top]

    rows: List[EvaluationRow] = []
    for i, ev in enumerate(ranked, start=1):
        player = catalog.get(ev.player_id)
        rows.append(
            EvaluationRow(
                rank=i,
                player_id=ev.player_id,
                player_name=player.name,
                position=player.position.value,
                position_rank=pos_ranks.get(ev.player_id),
                cvs_score=float(ev.cvs_score) if ev.is_scored else None,
                recommended_bid=ev.recommended_bid,
                market_price=ev.market_price,
                confidence_level=ev.confidence_level.value,
                is_undervalued=ev.is_undervalued,
            )
        )
    return rows


def evaluation_rows_to_text(rows: Iterable[EvaluationRow]) -> str:
    """Fixed-width table for the terminal."""

    lines = [f"{'#':>4}  {'Player':<28} {'Pos':<4} {'CVS':>6} {'Bid':>5} {'Mkt':>5}  Conf"]
    for r in rows:
        score = format_score(r.cvs_score if r.cvs_score is not None else UNSCORED)
        pos = f"{r.position}{r.position_rank}" if r.position_rank is not None else r.position
        market = "" if r.market_price is None else f"${r.market_price:.0f}"
        flag = " *" if r.is_undervalued else ""
        lines.append(
            f"{r.rank:>4}  {r.player_name[:28]:<28} {pos:<4} {score:>6} {'$' + str(r.recommended_bid):>5} {market:>5}  "
            f"{r.confidence_level}{flag}"
        )
    return "\n".join(lines) + "\n"

