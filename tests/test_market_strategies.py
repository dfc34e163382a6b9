from __future__ import annotations

import pytest

from auction_draft.data import DraftPhase, Position
from auction_draft.market import MarketSimulator
from auction_draft.strategies import (
    MarketPriceOvervaluedDetector,
    NameListOvervaluedDetector,
    ProjectionSleeperDetector,
)
from factories import draft_pool, make_player


def _market(sim: MarketSimulator, teams=("A", "B"), budget: int = 200, roster_size: int = 16, players=None):
    sim.initialize(list(teams), budget, roster_size, players if players is not None else draft_pool())
    return sim


def test_market_price_detector_flags_players_quoted_over_their_slot() -> None:
    detector = MarketPriceOvervaluedDetector()
    assert detector.is_overvalued(make_player("a", adp=13.0, auction_value=54.0))
    assert not detector.is_overvalued(make_player("b", adp=1.0, auction_value=60.0))
    assert not detector.is_overvalued(make_player("c", adp=None, auction_value=60.0))


def test_name_list_detector_is_case_insensitive() -> None:
    detector = NameListOvervaluedDetector(["  Big Name ", ""])
    assert detector.is_overvalued(make_player("a", name="big name"))
    assert not detector.is_overvalued(make_player("b", name="Big Names"))


def test_projection_sleeper_detector_needs_late_adp_and_high_projection() -> None:
    detector = ProjectionSleeperDetector()
    assert detector.is_sleeper(make_player("a", points=200.0, adp=120.0))
    assert not detector.is_sleeper(make_player("b", points=200.0, adp=80.0))
    assert not detector.is_sleeper(make_player("c", points=120.0, adp=120.0))
    assert not detector.is_sleeper(make_player("d", points=200.0, adp=None))


def test_early_nomination_picks_an_early_adp_player_outside_own_targets() -> None:
    sim = _market(MarketSimulator())
    sim.set_targets("A", ["rb1"])

    strategy = sim.get_nomination_strategy("A")

    assert strategy.phase is DraftPhase.EARLY
    assert strategy.player is not None
    assert strategy.player.player_id == "wr1"
    assert strategy.player.adp < 20
    assert strategy.target_bidder == "B"
    assert strategy.expected_price == pytest.approx(50.0)
    assert [p.player_id for p in strategy.alternates] == ["rb2", "wr2", "rb3"]


def test_middle_nomination_prefers_overvalued_names() -> None:
    sim = _market(MarketSimulator(overvalued_detector=NameListOvervaluedDetector(["Player wr3"])), budget=40, roster_size=4)
    sim.record_draft("rb1", "A", 5)
    sim.record_draft("rb2", "B", 5)

    strategy = sim.get_nomination_strategy("A")

    assert strategy.phase is DraftPhase.MIDDLE
    assert strategy.player is not None
    assert strategy.player.player_id == "wr3"
    assert strategy.expected_price == pytest.approx(50.0 * 1.15)
    assert len(strategy.alternates) == 3


def test_late_nomination_prefers_a_needed_sleeper() -> None:
    pool = draft_pool() + [make_player("sleeper", Position.WR, points=200.0, adp=120.0)]
    sim = _market(MarketSimulator(), budget=40, roster_size=4, players=pool)
    for i, pid in enumerate(["rb1", "rb2", "rb3", "qb1", "qb2", "te1"]):
        sim.record_draft(pid, "A" if i % 2 == 0 else "B", 1)

    strategy = sim.get_nomination_strategy("A")

    assert strategy.phase is DraftPhase.LATE
    assert strategy.player is not None
    assert strategy.player.player_id == "sleeper"
    assert strategy.expected_price == pytest.approx(3.0 * 0.7)


def test_nomination_falls_back_to_mid_tier_at_a_held_position() -> None:
    sim = _market(MarketSimulator(overvalued_detector=NameListOvervaluedDetector([])), budget=40, roster_size=4)
    sim.record_draft("rb1", "A", 5)
    sim.record_draft("wr1", "B", 5)

    strategy = sim.get_nomination_strategy("A")

    assert strategy.player is not None
    assert strategy.player.player_id == "rb14"
    assert strategy.reason == "Mid-tier player at a filled position"


def test_nomination_falls_back_to_cheapest_player() -> None:
    sim = _market(
        MarketSimulator(overvalued_detector=NameListOvervaluedDetector([])),
        teams=("A", "B", "C"),
        budget=20,
        roster_size=2,
    )
    sim.record_draft("rb1", "A", 5)
    sim.record_draft("wr1", "B", 5)

    strategy = sim.get_nomination_strategy("C")

    assert strategy.player is not None
    assert strategy.player.player_id == "k2"
    assert strategy.reason == "Cheapest available player"
    assert strategy.expected_price == 1.0


def test_nomination_returns_no_player_only_when_pool_is_empty() -> None:
    sim = _market(MarketSimulator(), teams=("A",), budget=5, roster_size=1, players=[make_player("only", adp=10.0)])
    assert sim.get_nomination_strategy("A").player is not None

    sim.record_draft("only", "A", 5)

    strategy = sim.get_nomination_strategy("A")
    assert strategy.player is None
    assert strategy.expected_price == 0.0


def test_bid_strategy_boosts_needed_positions() -> None:
    sim = _market(MarketSimulator())

    bid = sim.get_bid_strategy("rb2", "A", 10)

    assert bid.inflation_adjusted_value == pytest.approx(50.0)
    assert bid.max_bid == 63
    assert bid.should_bid


def test_bid_strategy_caps_overvalued_players_below_baseline() -> None:
    sim = _market(MarketSimulator(overvalued_detector=NameListOvervaluedDetector(["Player rb2"])))

    bid = sim.get_bid_strategy("rb2", "A", 10)

    assert bid.max_bid == 45
    assert bid.should_bid
    assert "overvalued" in bid.reason.lower()


def test_bid_strategy_declines_at_or_above_max() -> None:
    sim = _market(MarketSimulator())
    bid = sim.get_bid_strategy("rb2", "A", 63)
    assert bid.max_bid == 63
    assert not bid.should_bid


def test_bid_strategy_never_exceeds_team_max_bid() -> None:
    sim = _market(MarketSimulator(), budget=20, roster_size=4)
    bid = sim.get_bid_strategy("rb2", "A", 1)
    assert bid.max_bid == 17
    assert bid.should_bid


def test_bid_strategy_for_full_roster_is_zero() -> None:
    sim = _market(MarketSimulator(), teams=("A", "B"), budget=5, roster_size=1)
    sim.record_draft("qb1", "A", 1)

    bid = sim.get_bid_strategy("rb2", "A", 1)

    assert bid.max_bid == 0
    assert not bid.should_bid
    assert bid.reason == "Roster is full"
