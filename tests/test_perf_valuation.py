from __future__ import annotations

import time

import pytest

from auction_draft.catalog import PlayerCatalog
from auction_draft.data import Player, Position
from auction_draft.valuation import ValuationEngine
from factories import make_player

_POSITIONS = (Position.QB, Position.RB, Position.WR, Position.TE, Position.K, Position.DST)


def _large_pool(n: int) -> list[Player]:
    players: list[Player] = []
    for i in range(n):
        rank = i // len(_POSITIONS)
        players.append(
            make_player(
                f"p{i}",
                _POSITIONS[i % len(_POSITIONS)],
                points=max(0.0, 400.0 - 0.7 * rank),
                auction_value=max(1.0, 70.0 - 0.15 * rank),
                adp=1.0 + i * 0.1,
                age=22 + rank % 12,
                sos=float(rank % 100),
                trend=float(rank % 200 - 100),
            )
        )
    return players


@pytest.mark.perf
def test_full_recompute_of_a_large_catalog_is_fast(request: pytest.FixtureRequest) -> None:
    max_seconds = float(request.config.getoption("--perf-max-seconds"))
    engine = ValuationEngine(PlayerCatalog(_large_pool(3000)))

    started = time.perf_counter()
    evaluations = engine.recompute_all()
    elapsed = time.perf_counter() - started

    assert len(evaluations) == 3000
    assert elapsed <= max_seconds, f"recompute took {elapsed:.2f}s (limit {max_seconds:.2f}s)"


@pytest.mark.perf
def test_single_draft_recomputes_only_one_position() -> None:
    engine = ValuationEngine(PlayerCatalog(_large_pool(3000)))
    engine.evaluate_all()
    misses = engine.cache_misses

    engine.catalog.mark_drafted("p0")
    engine.evaluate_all()

    assert engine.cache_misses - misses == 499
