import math

import pytest

from auction_draft.data import (
    DEFAULT_COMPOSITION,
    UNSCORED,
    ConfidenceLevel,
    Evaluation,
    LeagueSettings,
    PlayerPatch,
    Position,
    RosterComposition,
    Slot,
    ValuationWeights,
    format_score,
)
from auction_draft.errors import ValidationError
from factories import make_player


def test_player_raises_when_projected_points_is_negative() -> None:
    with pytest.raises(ValidationError):
        make_player("p1", points=-1.0)


def test_player_raises_when_auction_value_is_negative() -> None:
    with pytest.raises(ValidationError):
        make_player("p1", auction_value=-5.0)


def test_player_raises_when_strength_of_schedule_above_100() -> None:
    with pytest.raises(ValidationError):
        make_player("p1", sos=101.0)


def test_player_raises_when_trend_out_of_range() -> None:
    with pytest.raises(ValidationError):
        make_player("p1", trend=-150.0)


def test_player_raises_when_id_is_empty() -> None:
    with pytest.raises(ValidationError):
        make_player("")


def test_player_accepts_unknown_market_inputs() -> None:
    p = make_player("p1", auction_value=None, adp=None)
    assert p.auction_value is None
    assert p.adp is None


def test_player_accepts_known_zero_auction_value() -> None:
    assert make_player("p1", auction_value=0.0).auction_value == 0.0


def test_validation_error_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        make_player("p1", adp=-1.0)


def test_player_patch_rejects_unpatchable_field() -> None:
    with pytest.raises(ValidationError):
        PlayerPatch(player_id="p1", field="position", value="QB")


def test_default_weights_sum_to_one() -> None:
    assert math.isclose(sum(ValuationWeights().as_dict().values()), 1.0)


def test_weights_raise_when_they_do_not_sum_to_one() -> None:
    with pytest.raises(ValueError):
        ValuationWeights(auction_value=0.5)


def test_renormalized_weights_sum_to_one_when_components_missing() -> None:
    w = ValuationWeights().renormalized(["adp", "projected_points", "scarcity"])
    assert set(w) == {"adp", "projected_points", "scarcity"}
    assert sum(w.values()) == pytest.approx(1.0)
    assert w["projected_points"] == pytest.approx(0.28 / (0.23 + 0.28 + 0.08))


def test_renormalized_weights_empty_when_nothing_available() -> None:
    assert ValuationWeights().renormalized([]) == {}


def test_default_composition_has_sixteen_slots() -> None:
    assert DEFAULT_COMPOSITION.size == 16
    assert DEFAULT_COMPOSITION.count(Slot.FLEX) == 2
    assert DEFAULT_COMPOSITION.position_count(Position.QB) == 2


def test_flex_slot_accepts_rb_wr_te_only() -> None:
    assert DEFAULT_COMPOSITION.eligible_positions(Slot.FLEX) == frozenset({Position.RB, Position.WR, Position.TE})
    assert DEFAULT_COMPOSITION.eligible_positions(Slot.K) == frozenset({Position.K})
    assert Slot.FLEX.position is None
    assert Slot.DST.position is Position.DST


def test_composition_raises_on_negative_count() -> None:
    with pytest.raises(ValueError):
        RosterComposition(slots={Slot.QB: -1})


def test_league_settings_requires_a_dollar_per_slot() -> None:
    with pytest.raises(ValueError):
        LeagueSettings(budget=15, roster_size=16)


def test_league_settings_starters_needed_scales_with_teams() -> None:
    settings = LeagueSettings()
    assert settings.starters_needed(Position.RB) == 24
    assert settings.starters_needed(Position.WR, team_count=10) == 30
    assert settings.baseline_price == pytest.approx(12.5)


def test_evaluation_raises_when_score_out_of_range() -> None:
    with pytest.raises(ValueError):
        Evaluation(player_id="p1", cvs_score=101.0, recommended_bid=1, confidence_level=ConfidenceLevel.LOW)


def test_evaluation_accepts_unscored() -> None:
    ev = Evaluation(player_id="k1", cvs_score=UNSCORED, recommended_bid=1, confidence_level=ConfidenceLevel.LOW)
    assert not ev.is_scored


def test_unscored_is_not_zero() -> None:
    assert UNSCORED != 0
    assert UNSCORED != 0.0
    assert format_score(UNSCORED) == "N/A"
    assert format_score(0.0) == "0.0"
