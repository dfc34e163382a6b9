from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from auction_draft.catalog import PlayerCatalog
from auction_draft.data import (
    UNSCORED,
    ConfidenceLevel,
    InjuryStatus,
    PlayerPatch,
    Position,
    ScarcityLevel,
)
from auction_draft.errors import UnknownEntityError
from auction_draft.valuation import (
    ValuationContext,
    ValuationEngine,
    confidence_level,
    cvs_to_dollars,
    mean_score,
    position_ranks,
    rank_evaluations,
)
from factories import draft_pool, make_player, make_ranked_position


def _engine() -> ValuationEngine:
    return ValuationEngine(PlayerCatalog(draft_pool()))


def test_every_scored_player_gets_a_score_between_0_and_100() -> None:
    engine = _engine()
    for pid, ev in engine.evaluate_all().items():
        position = engine.catalog.get(pid).position
        if position in (Position.K, Position.DST):
            assert ev.cvs_score is UNSCORED
        else:
            assert 0.0 <= ev.cvs_score <= 100.0
        assert ev.recommended_bid >= 1


def test_kicker_is_unscored_and_bids_its_quoted_value() -> None:
    catalog = PlayerCatalog(
        [
            make_player("k1", Position.K, points=140.0, auction_value=2.4),
            make_player("k2", Position.K, points=120.0, auction_value=None),
        ]
    )
    engine = ValuationEngine(catalog)

    assert engine.evaluate("k1").cvs_score is UNSCORED
    assert engine.evaluate("k1").recommended_bid == 2
    assert engine.evaluate("k2").recommended_bid == 1


def test_position_with_no_projections_is_unscored() -> None:
    catalog = PlayerCatalog([make_player("te1", Position.TE, points=0.0), make_player("te2", Position.TE, points=0.0)])
    ev = ValuationEngine(catalog).evaluate("te1")
    assert ev.cvs_score is UNSCORED
    assert not ev.is_scored


def test_dominant_player_scores_at_least_as_high() -> None:
    engine = _engine()
    evaluations = engine.evaluate_all()
    for pos in (Position.QB, Position.RB, Position.WR, Position.TE):
        ids = [p.player_id for p in engine.catalog.available_players(pos)]
        scores = [evaluations[pid].cvs_score for pid in ids]
        assert all(a >= b for a, b in zip(scores, scores[1:])), pos


def test_lone_elite_player_scores_100_and_is_undervalued() -> None:
    catalog = PlayerCatalog(
        [make_player("rb1", Position.RB, points=300.0, auction_value=5.0, adp=1.0, sos=80.0, trend=10.0)]
    )
    ev = ValuationEngine(catalog).evaluate("rb1")

    assert ev.cvs_score == 100.0
    assert ev.recommended_bid == 55
    assert ev.is_undervalued
    assert ev.market_price == 5.0


def test_missing_inputs_drop_their_component_and_renormalize() -> None:
    catalog = PlayerCatalog(
        [
            make_player("wr1", Position.WR, points=250.0),
            make_player("wr2", Position.WR, points=200.0, auction_value=30.0, adp=12.0, sos=60.0, trend=5.0),
        ]
    )
    ev = ValuationEngine(catalog).evaluate("wr1")

    assert set(ev.weights) == {"projected_points", "scarcity"}
    assert sum(ev.weights.values()) == pytest.approx(1.0)
    assert not ev.is_undervalued


def test_context_scarcity_overrides_catalog_classification() -> None:
    engine = _engine()
    ctx = ValuationContext(position_scarcity={Position.RB: ScarcityLevel.CRITICAL})
    assert engine.evaluate("rb5", ctx).components["scarcity"] == 100.0
    assert engine.scarcity_level(Position.RB, ctx) is ScarcityLevel.CRITICAL


def test_evaluate_unknown_player_raises() -> None:
    with pytest.raises(UnknownEntityError):
        _engine().evaluate("nobody")


def test_repeat_evaluation_is_a_cache_hit_and_identical() -> None:
    engine = _engine()
    first = engine.evaluate("rb3")
    second = engine.evaluate("rb3")
    assert first is second
    assert engine.cache_hits == 1


def test_drafting_invalidates_only_that_position() -> None:
    engine = _engine()
    engine.evaluate("rb2")
    engine.evaluate("wr2")
    hits = engine.cache_hits

    engine.catalog.mark_drafted("rb1")

    assert engine.cache_size == 1
    engine.evaluate("wr2")
    assert engine.cache_hits == hits + 1


def test_drafting_the_top_player_lifts_the_next_one() -> None:
    engine = _engine()
    before = engine.evaluate("rb2").cvs_score
    engine.catalog.mark_drafted("rb1")
    after = engine.evaluate("rb2").cvs_score
    assert after > before


def test_undo_restores_the_original_score() -> None:
    engine = _engine()
    before = engine.evaluate("rb2")
    engine.catalog.mark_drafted("rb1")
    engine.evaluate("rb2")
    engine.catalog.mark_available("rb1")
    assert engine.evaluate("rb2") == before


def test_draft_during_evaluation_does_not_mix_tier_tables(monkeypatch: pytest.MonkeyPatch) -> None:
    engine = _engine()
    pre_draft = _engine().evaluate("rb2")
    compute = engine._compute

    def draft_then_compute(player, context, inputs):
        engine.catalog.mark_drafted("rb1")
        return compute(player, context, inputs)

    monkeypatch.setattr(engine, "_compute", draft_then_compute)
    first = engine.evaluate("rb2")
    monkeypatch.undo()

    assert first == pre_draft
    post_draft = engine.evaluate("rb2")
    assert post_draft.cvs_score > pre_draft.cvs_score
    engine.catalog.mark_available("rb1")
    assert engine.evaluate("rb2") == pre_draft


def test_patch_invalidates_and_rescores_the_player() -> None:
    engine = _engine()
    before = engine.evaluate("wr8")
    engine.catalog.apply_patch(PlayerPatch(player_id="wr8", field="projected_points", value=500.0))
    after = engine.evaluate("wr8")
    assert after.cvs_score > before.cvs_score


def test_injury_patch_lowers_confidence() -> None:
    engine = _engine()
    assert engine.evaluate("rb1").confidence_level is ConfidenceLevel.HIGH
    engine.catalog.apply_patch(PlayerPatch(player_id="rb1", field="injury_status", value=InjuryStatus.OUT))
    engine.catalog.apply_patch(PlayerPatch(player_id="rb1", field="auction_value", value=None))
    assert engine.evaluate("rb1").confidence_level is ConfidenceLevel.MEDIUM


def test_evaluate_all_excludes_drafted_players_by_default() -> None:
    engine = _engine()
    engine.catalog.mark_drafted("qb1")
    assert "qb1" not in engine.evaluate_all()
    assert "qb1" in engine.evaluate_all(include_drafted=True)


def test_recompute_all_matches_incremental_results() -> None:
    engine = _engine()
    engine.catalog.mark_drafted("rb1")
    engine.catalog.mark_drafted("wr1")
    incremental = engine.evaluate_all()
    full = engine.recompute_all()
    assert incremental == full


def test_iter_evaluate_all_yields_chunks() -> None:
    catalog = PlayerCatalog(make_ranked_position(Position.WR, 10))
    chunks = list(ValuationEngine(catalog).iter_evaluate_all(chunk_size=4))
    assert [len(c) for c in chunks] == [4, 4, 2]


def test_iter_evaluate_all_rejects_empty_chunks() -> None:
    with pytest.raises(ValueError):
        list(_engine().iter_evaluate_all(chunk_size=0))


def test_inflation_raises_recommended_bids() -> None:
    engine = _engine()
    calm = engine.evaluate("rb4", ValuationContext()).recommended_bid
    hot = engine.evaluate("rb4", ValuationContext(inflation_rate=0.5)).recommended_bid
    assert hot > calm


def test_recent_bids_drive_inflation_when_not_given() -> None:
    ctx = ValuationContext(recent_bids=(25.0, 25.0))
    assert ctx.effective_inflation == pytest.approx(1.0)
    assert ValuationContext().effective_inflation == 0.0


def test_recommended_bid_is_clamped_to_league_cap() -> None:
    engine = _engine()
    assert engine.recommended_bid(100.0, ValuationContext()) == 55
    assert engine.recommended_bid(100.0, ValuationContext(inflation_rate=1.0)) == 60
    assert engine.recommended_bid(0.0, ValuationContext()) == 1


def test_recommended_bid_is_monotone_in_score() -> None:
    engine = _engine()
    ctx = ValuationContext()
    bids = [engine.recommended_bid(float(s), ctx) for s in range(0, 101)]
    assert all(b >= a for a, b in zip(bids, bids[1:]))


def test_cvs_to_dollars_is_continuous_at_band_edges() -> None:
    assert cvs_to_dollars(85.0) == pytest.approx(30.0)
    assert cvs_to_dollars(84.999) == pytest.approx(30.0, abs=0.01)
    assert cvs_to_dollars(70.0) == pytest.approx(15.0)
    assert cvs_to_dollars(25.0) == pytest.approx(1.0)
    assert cvs_to_dollars(10.0) == 1.0


def test_confidence_level_buckets() -> None:
    full = make_player("a", points=250.0, auction_value=30.0, adp=10.0, age=26, sos=70.0)
    bare = make_player("b", points=50.0, injury_status=InjuryStatus.IR)
    assert confidence_level(full) is ConfidenceLevel.HIGH
    assert confidence_level(bare) is ConfidenceLevel.LOW


def test_ranking_puts_unscored_players_last() -> None:
    engine = _engine()
    evaluations = engine.evaluate_all()
    ranked = rank_evaluations(evaluations.values())
    first_unscored = next(i for i, ev in enumerate(ranked) if ev.cvs_score is UNSCORED)
    assert all(ev.cvs_score is UNSCORED for ev in ranked[first_unscored:])

    ranks = position_ranks(evaluations.values(), engine.catalog)
    assert ranks["k1"] is None
    assert ranks["rb1"] == 1


def test_mean_score_is_unscored_without_scored_players() -> None:
    catalog = PlayerCatalog(make_ranked_position(Position.K, 3))
    evaluations = list(ValuationEngine(catalog).evaluate_all().values())
    assert mean_score(evaluations) is UNSCORED


def test_concurrent_reads_during_drafting() -> None:
    engine = _engine()
    ids = [p.player_id for p in engine.catalog.available_players(Position.WR)][:6]

    def read() -> int:
        return len(engine.evaluate_all())

    with ThreadPoolExecutor(max_workers=4) as pool:
        futures = [pool.submit(read) for _ in range(8)]
        for pid in ids:
            engine.catalog.mark_drafted(pid)
        sizes = [f.result() for f in futures]

    assert all(s > 0 for s in sizes)
    assert len(engine.evaluate_all()) == len(draft_pool()) - len(ids)
