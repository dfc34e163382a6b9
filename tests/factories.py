from __future__ import annotations

from typing import Dict, List, Mapping, Optional

from auction_draft.data import InjuryStatus, Player, Position


def make_player(
    player_id: str,
    position: Position = Position.RB,
    *,
    name: Optional[str] = None,
    team: str = "FA",
    points: float = 100.0,
    auction_value: Optional[float] = None,
    adp: Optional[float] = None,
    age: Optional[int] = None,
    injury_status: InjuryStatus = InjuryStatus.HEALTHY,
    sos: Optional[float] = None,
    trend: Optional[float] = None,
) -> Player:
    return Player(
        player_id=player_id,
        name=name or f"Player {player_id}",
        position=position,
        team=team,
        projected_points=points,
        auction_value=auction_value,
        adp=adp,
        age=age,
        injury_status=injury_status,
        strength_of_schedule=sos,
        trend=trend,
    )


def make_filler(counts: Mapping[Position, int], *, price: float = 1.0, points: float = 50.0) -> List[Player]:
    """Cheap, interchangeable players to make a roster fillable."""

    players: List[Player] = []
    for pos, n in counts.items():
        for i in range(n):
            players.append(
                make_player(f"{pos.value.lower()}-fill-{i}", pos, points=points - i, auction_value=price)
            )
    return players


def make_ranked_position(
    position: Position,
    n: int,
    *,
    prefix: Optional[str] = None,
    top_points: float = 300.0,
    top_value: float = 60.0,
    first_adp: float = 1.0,
    adp_step: float = 5.0,
) -> List[Player]:
    """``n`` players at one position, strictly better to worse."""

    prefix = prefix or position.value.lower()
    out: List[Player] = []
    for i in range(n):
        out.append(
            make_player(
                f"{prefix}{i + 1}",
                position,
                points=max(0.0, top_points - 10.0 * i),
                auction_value=max(1.0, top_value - 2.0 * i),
                adp=first_adp + adp_step * i,
                age=26,
                sos=max(0.0, 90.0 - 3.0 * i),
                trend=max(-100.0, 40.0 - 5.0 * i),
            )
        )
    return out


def draft_pool() -> List[Player]:
    """A small but complete league pool (enough for a couple of full rosters)."""

    players: List[Player] = []
    players += make_ranked_position(Position.QB, 8, top_points=380.0, top_value=35.0, first_adp=15.0, adp_step=9.0)
    players += make_ranked_position(Position.RB, 16, top_points=320.0, top_value=60.0, first_adp=1.0, adp_step=4.0)
    players += make_ranked_position(Position.WR, 16, top_points=300.0, top_value=55.0, first_adp=2.0, adp_step=4.0)
    players += make_ranked_position(Position.TE, 6, top_points=200.0, top_value=25.0, first_adp=20.0, adp_step=12.0)
    players += make_ranked_position(Position.K, 4, top_points=140.0, top_value=2.0, first_adp=150.0, adp_step=5.0)
    players += make_ranked_position(Position.DST, 4, top_points=120.0, top_value=2.0, first_adp=140.0, adp_step=5.0)
    return players


def by_id(players: List[Player]) -> Dict[str, Player]:
    return {p.player_id: p for p in players}
