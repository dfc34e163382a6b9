"""Live player collection shared by valuation, the market and the optimiser."""

from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple

from auction_draft.data import InjuryStatus, Player, PlayerPatch, Position
from auction_draft.errors import UnknownEntityError, ValidationError

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    DRAFTED = "drafted"
    RESTORED = "restored"
    PATCHED = "patched"


@dataclass(frozen=True, slots=True)
class CatalogChange:
    kind: ChangeKind
    player_ids: FrozenSet[str]
    positions: FrozenSet[Position]
    version: int


CatalogListener = Callable[[CatalogChange], None]


class PlayerCatalog:
    """Players by id plus the set still available to draft.

    Every change that touches the available set or a player record bumps the
    global ``version`` and the ``position_version`` of each affected position,
    then notifies subscribers. Tier tables and valuation caches key on these
    counters.
    """

    def __init__(self, players: Iterable[Player] = ()) -> None:
        self._players: Dict[str, Player] = {}
        for p in players:
            if p.player_id in self._players:
                raise ValidationError(f"Duplicate player id {p.player_id!r}")
            self._players[p.player_id] = p
        self._available: set[str] = set(self._players)
        self._version = 0
        self._position_versions: Dict[Position, int] = {pos: 0 for pos in Position}
        self._lock = threading.RLock()
        self._listeners: List[CatalogListener] = []

    # --- Queries ---

    def __len__(self) -> int:
        return len(self._players)

    def __contains__(self, player_id: object) -> bool:
        return player_id in self._players

    def __iter__(self) -> Iterator[Player]:
        with self._lock:
            return iter(tuple(self._players.values()))

    @property
    def version(self) -> int:
        return self._version

    def position_version(self, position: Position) -> int:
        return self._position_versions[position]

    def get(self, player_id: str) -> Player:
        try:
            return self._players[player_id]
        except KeyError as e:
            raise UnknownEntityError(f"Unknown player {player_id!r}") from e

    def is_available(self, player_id: str) -> bool:
        return player_id in self._available

    def available_players(self, position: Optional[Position] = None) -> Tuple[Player, ...]:
        """Available players in load order, optionally for one position."""

        with self._lock:
            return tuple(
                p
                for pid, p in self._players.items()
                if pid in self._available and (position is None or p.position is position)
            )

    def available_ids(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._available)

    # --- Mutations ---

    def mark_drafted(self, player_id: str) -> None:
        with self._lock:
            player = self.get(player_id)
            if player_id not in self._available:
                raise ValueError(f"Player {player_id!r} is already drafted")
            self._available.discard(player_id)
            change = self._bump(ChangeKind.DRAFTED, {player_id}, {player.position})
        self._notify(change)

    def mark_available(self, player_id: str) -> None:
        with self._lock:
            player = self.get(player_id)
            if player_id in self._available:
                raise ValueError(f"Player {player_id!r} is already available")
            self._available.add(player_id)
            change = self._bump(ChangeKind.RESTORED, {player_id}, {player.position})
        self._notify(change)

    def apply_patch(self, patch: PlayerPatch) -> Player:
        """Replace a player record with one field updated. Returns the new record."""

        with self._lock:
            old = self.get(patch.player_id)
            value = patch.value
            if patch.field == "injury_status" and not isinstance(value, InjuryStatus):
                try:
                    value = InjuryStatus(value)
                except ValueError as e:
                    raise ValidationError(f"Unknown injury status {value!r}") from e
            new = dataclasses.replace(old, **{patch.field: value})
            self._players[new.player_id] = new
            change = self._bump(ChangeKind.PATCHED, {new.player_id}, {old.position, new.position})
        logger.info("Patched player %s: %s=%r", new.player_id, patch.field, value)
        self._notify(change)
        return new

    def subscribe(self, listener: CatalogListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: CatalogListener) -> None:
        with self._lock:
            self._listeners.remove(listener)

    def _bump(self, kind: ChangeKind, player_ids: set[str], positions: set[Position]) -> CatalogChange:
        self._version += 1
        for pos in positions:
            self._position_versions[pos] += 1
        return CatalogChange(
            kind=kind,
            player_ids=frozenset(player_ids),
            positions=frozenset(positions),
            version=self._version,
        )

    def _notify(self, change: CatalogChange) -> None:
        # Copy listeners outside the lock so a listener may call back into the catalog.
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(change)
            except Exception:
                logger.exception("Catalog listener failed for %s change", change.kind.value)
