from __future__ import annotations

import json

from auction_draft.catalog import PlayerCatalog
from auction_draft.data import Position, Slot
from auction_draft.optimizer import LockedPick, RosterPick, Shortfall, build_result
from auction_draft.solution import (
    build_evaluation_rows,
    build_roster_summary,
    dumps_roster_summary_pretty,
    evaluation_rows_to_text,
    roster_summary_from_json_dict,
    roster_summary_to_markdown,
)
from auction_draft.valuation import ValuationEngine
from factories import make_player, make_ranked_position
from scripts.roster_to_markdown import main as roster_to_markdown_main


def _result(shortfalls=()):
    qb = make_player("qb1", Position.QB, name="Josh Allen", team="BUF", points=380.0)
    rb = make_player("rb1", Position.RB, name="Bijan Robinson", team="ATL", points=301.5)
    picks = [
        RosterPick(slot=Slot.RB, player=rb, price=55),
        RosterPick(slot=Slot.QB, player=qb, price=30, locked=True),
    ]
    return build_result(picks, budget=100, shortfalls=shortfalls)


def test_roster_summary_orders_by_slot_and_totals() -> None:
    summary = build_roster_summary(_result())

    assert [e.slot for e in summary.roster] == ["QB", "RB"]
    assert summary.total_spent == 85
    assert summary.remaining_budget == 15
    assert summary.total_projected_points == 681.5
    assert summary.complete


def test_roster_summary_json_is_serialisable() -> None:
    payload = json.loads(dumps_roster_summary_pretty(build_roster_summary(_result(), optimality_gap=0.05)))
    assert payload["roster"][0]["player_name"] == "Josh Allen"
    assert payload["roster"][0]["locked"] is True
    assert payload["optimality_gap"] == 0.05
    assert payload["shortfalls"] == []


def test_markdown_table_has_rows_totals_and_budget_line() -> None:
    md = roster_summary_to_markdown(build_roster_summary(_result()))
    lines = md.splitlines()

    assert lines[0] == "| Slot | Player | Pos | Team | Price | Points |"
    assert lines[2] == "| QB | Josh Allen (locked) | QB | BUF | $30 | 380 |"
    assert lines[3] == "| RB | Bijan Robinson | RB | ATL | $55 | 301.5 |"
    assert lines[4] == "| **Total** | | | | **$85** | **681.5** |"
    assert "Budget: $100 (remaining $15)" in lines
    assert "Shortfalls:" not in md


def test_markdown_lists_shortfalls_and_gap() -> None:
    result = _result(shortfalls=(Shortfall(slot=Slot.K, missing=1, reason="no K available"),))
    md = roster_summary_to_markdown(build_roster_summary(result, optimality_gap=0.125))

    assert "Gap to exact optimum: 12.5%" in md
    assert "Shortfalls:" in md
    assert "- K x1: no K available" in md


def test_roster_json_renders_through_markdown_script(tmp_path, capsys) -> None:
    summary = build_roster_summary(_result(shortfalls=(Shortfall(slot=Slot.K, missing=1, reason="no K available"),)))
    path = tmp_path / "roster.json"
    path.write_text(dumps_roster_summary_pretty(summary), encoding="utf-8")

    assert roster_summary_from_json_dict(json.loads(path.read_text(encoding="utf-8"))) == summary

    roster_to_markdown_main([str(path)])
    assert capsys.readouterr().out == roster_summary_to_markdown(summary)


def test_overflow_purchases_are_listed_outside_the_table() -> None:
    qb3 = make_player("qb3", Position.QB, name="Backup Passer", team="NYG", points=210.0)
    base = _result()
    result = build_result(base.roster, budget=100, overflow=(LockedPick(player=qb3, price=4),))
    summary = build_roster_summary(result)
    md = roster_summary_to_markdown(summary)

    assert summary.total_spent == 89
    assert [e.player_id for e in summary.overflow] == ["qb3"]
    assert "| **Total** | | | | **$89** | **681.5** |" in md
    assert "- Backup Passer (QB, $4)" in md
    assert roster_summary_from_json_dict(json.loads(dumps_roster_summary_pretty(summary))) == summary


def test_evaluation_rows_put_unscored_last_without_rank() -> None:
    players = make_ranked_position(Position.RB, 3) + make_ranked_position(Position.K, 2)
    catalog = PlayerCatalog(players)
    evaluations = ValuationEngine(catalog).evaluate_all().values()

    rows = build_evaluation_rows(evaluations, catalog)

    assert [r.player_id for r in rows[:3]] == ["rb1", "rb2", "rb3"]
    assert [r.position_rank for r in rows[:3]] == [1, 2, 3]
    assert {r.player_id for r in rows[3:]} == {"k1", "k2"}
    assert all(r.cvs_score is None and r.position_rank is None for r in rows[3:])
    assert [r.rank for r in rows] == [1, 2, 3, 4, 5]


def test_evaluation_rows_respect_top() -> None:
    catalog = PlayerCatalog(make_ranked_position(Position.WR, 10))
    rows = build_evaluation_rows(ValuationEngine(catalog).evaluate_all().values(), catalog, top=4)
    assert len(rows) == 4


def test_evaluation_text_shows_na_for_unscored_and_flags_undervalued() -> None:
    catalog = PlayerCatalog(
        [
            make_player("rb1", Position.RB, name="Cheap Star", points=300.0, auction_value=5.0, adp=1.0),
            make_player("k1", Position.K, name="Kicker", points=140.0, auction_value=1.0),
        ]
    )
    rows = build_evaluation_rows(ValuationEngine(catalog).evaluate_all().values(), catalog)
    text = evaluation_rows_to_text(rows)
    lines = text.splitlines()

    assert len(lines) == 3
    assert "Cheap Star" in lines[1] and lines[1].endswith(" *")
    assert "Kicker" in lines[2] and "N/A" in lines[2]
