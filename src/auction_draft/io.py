"""I/O utilities for building the engine's domain objects.

This module owns:
- record and file format knowledge (JSON player feeds, JSON/CSV patch feeds,
  league settings, draft snapshots)
- parsing and validation
- construction of domain objects from :mod:`auction_draft.data`

Keeping this separate from :mod:`auction_draft.data` makes the core model easy
to test and reuse. Third-party source formats are out of scope: callers
normalise those into the record shape below first.

Player record keys (camelCase or snake_case)::

    {"id", "name", "position", "team", "projectedPoints",
     "auctionValue"?, "adp"?, "age"?, "injuryStatus"?, "sos"?, "trend"?}
"""

from __future__ import annotations

import csv
import difflib
import json
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, cast

from auction_draft.data import (
    DEFAULT_COMPOSITION,
    DEFAULT_STARTERS_PER_TEAM,
    DraftEvent,
    DraftSnapshot,
    InjuryStatus,
    LeagueSettings,
    Player,
    PlayerPatch,
    Position,
    RosterComposition,
    Slot,
    ValuationWeights,
)
from auction_draft.errors import ValidationError

logger = logging.getLogger(__name__)


SNAPSHOT_FORMAT_VERSION = 1

_POSITION_ALIASES: Mapping[str, str] = {
    "D/ST": "DST",
    "DEF": "DST",
    "D": "DST",
    "PK": "K",
}

_INJURY_ALIASES: Mapping[str, InjuryStatus] = {
    "Q": InjuryStatus.QUESTIONABLE,
    "D": InjuryStatus.DOUBTFUL,
    "O": InjuryStatus.OUT,
    "ACTIVE": InjuryStatus.HEALTHY,
    "INJURED RESERVE": InjuryStatus.IR,
    "SUSP": InjuryStatus.SUSPENDED,
}

# Field name -> accepted record keys, first match wins.
_RECORD_KEYS: Mapping[str, Tuple[str, ...]] = {
    "player_id": ("id", "player_id", "playerId"),
    "name": ("name",),
    "position": ("position",),
    "team": ("team",),
    "projected_points": ("projectedPoints", "projected_points"),
    "auction_value": ("auctionValue", "auction_value"),
    "adp": ("adp",),
    "age": ("age",),
    "injury_status": ("injuryStatus", "injury_status"),
    "strength_of_schedule": ("sos", "strengthOfSchedule", "strength_of_schedule"),
    "trend": ("trend",),
}

_PATCH_FIELD_ALIASES: Mapping[str, str] = {
    "injuryStatus": "injury_status",
    "projectedPoints": "projected_points",
    "auctionValue": "auction_value",
    "sos": "strength_of_schedule",
    "strengthOfSchedule": "strength_of_schedule",
}

_FLOAT_FIELDS = frozenset({"projected_points", "auction_value", "adp", "strength_of_schedule", "trend"})


def parse_position_str(value: str) -> Position:
    """Parse position strings from feeds.

    Accepts a couple of common variants:
    - D/ST, DEF -> DST
    - PK -> K
    - case-insensitive
    """

    v = str(value).strip().upper()
    v = _POSITION_ALIASES.get(v, v)
    try:
        return Position(v)
    except ValueError as e:
        raise ValidationError(f"Unknown position string: {value!r}") from e


def parse_injury_status(value: Any) -> InjuryStatus:
    if value is None or (isinstance(value, str) and not value.strip()):
        return InjuryStatus.HEALTHY
    if isinstance(value, InjuryStatus):
        return value
    v = str(value).strip()
    for status in InjuryStatus:
        if status.value.upper() == v.upper():
            return status
    try:
        return _INJURY_ALIASES[v.upper()]
    except KeyError as e:
        raise ValidationError(f"Unknown injury status: {value!r}") from e


def _lookup(rec: Mapping[str, Any], field_name: str) -> Any:
    for key in _RECORD_KEYS[field_name]:
        if key in rec:
            return rec[key]
    return None


def _optional_float(value: Any, field_name: str) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field_name} must be numeric, got {value!r}") from e


def _optional_int(value: Any, field_name: str) -> Optional[int]:
    number = _optional_float(value, field_name)
    if number is None:
        return None
    if not math.isfinite(number):
        raise ValidationError(f"{field_name} must be a finite number, got {value!r}")
    return int(number)


def player_from_record(rec: Mapping[str, Any]) -> Player:
    """Build a :class:`Player` from one feed record. Raises :class:`ValidationError`."""

    if not isinstance(rec, Mapping):
        raise ValidationError(f"Player record must be an object, got {type(rec).__name__}")

    player_id = _lookup(rec, "player_id")
    if player_id is None or str(player_id).strip() == "":
        raise ValidationError("Player record is missing 'id'")
    name = _lookup(rec, "name")
    position = _lookup(rec, "position")
    if position is None:
        raise ValidationError(f"Player {player_id!r} is missing 'position'")
    points = _optional_float(_lookup(rec, "projected_points"), "projectedPoints")
    if points is None:
        raise ValidationError(f"Player {player_id!r} is missing 'projectedPoints'")

    return Player(
        player_id=str(player_id),
        name=str(name or "").strip(),
        position=parse_position_str(position),
        team=str(_lookup(rec, "team") or "").strip(),
        projected_points=points,
        auction_value=_optional_float(_lookup(rec, "auction_value"), "auctionValue"),
        adp=_optional_float(_lookup(rec, "adp"), "adp"),
        age=_optional_int(_lookup(rec, "age"), "age"),
        injury_status=parse_injury_status(_lookup(rec, "injury_status")),
        strength_of_schedule=_optional_float(_lookup(rec, "strength_of_schedule"), "sos"),
        trend=_optional_float(_lookup(rec, "trend"), "trend"),
    )


def player_to_record(player: Player) -> Dict[str, Any]:
    return {
        "id": player.player_id,
        "name": player.name,
        "position": player.position.value,
        "team": player.team,
        "projectedPoints": player.projected_points,
        "auctionValue": player.auction_value,
        "adp": player.adp,
        "age": player.age,
        "injuryStatus": player.injury_status.value,
        "sos": player.strength_of_schedule,
        "trend": player.trend,
    }


@dataclass(frozen=True, slots=True)
class LoadResult:
    """Players that loaded, plus ``(record index, message)`` for each skipped record."""

    players: Tuple[Player, ...]
    errors: Tuple[Tuple[int, str], ...] = field(default_factory=tuple)


def load_players_from_records(records: Iterable[Mapping[str, Any]]) -> LoadResult:
    """Convert feed records, skipping (and logging) malformed or duplicate ones."""

    players: List[Player] = []
    errors: List[Tuple[int, str]] = []
    seen: set[str] = set()
    for i, rec in enumerate(records):
        try:
            player = player_from_record(rec)
            if player.player_id in seen:
                raise ValidationError(f"Duplicate player id {player.player_id!r}")
        except ValidationError as e:
            logger.warning("Skipping player record %d: %s", i, e)
            errors.append((i, str(e)))
            continue
        seen.add(player.player_id)
        players.append(player)
    return LoadResult(players=tuple(players), errors=tuple(errors))


def load_players_from_json(path: str | Path) -> LoadResult:
    """Load a player feed: a JSON list of records, or ``{"players": [...]}``."""

    path = Path(path)
    raw = json.loads(path.read_text(encoding="utf-8-sig"))
    if isinstance(raw, dict):
        raw = raw.get("players")
    if not isinstance(raw, list):
        raise ValueError(f"{path} must contain a JSON list of player records")

    result = load_players_from_records(raw)
    logger.info("Loaded %d players from %s (%d skipped)", len(result.players), path, len(result.errors))
    return result


# ============================================================================
# Patches
# ============================================================================


def _coerce_patch_value(field_name: str, value: Any) -> Any:
    if field_name == "injury_status":
        return parse_injury_status(value)
    if field_name == "team":
        return str(value or "").strip()
    if field_name == "age":
        return _optional_int(value, field_name)
    if field_name in _FLOAT_FIELDS:
        number = _optional_float(value, field_name)
        if number is None and field_name == "projected_points":
            raise ValidationError("projected_points cannot be cleared")
        return number
    return value


def patch_from_record(rec: Mapping[str, Any]) -> PlayerPatch:
    """Build a :class:`PlayerPatch` from ``{playerId, field, value}``."""

    player_id = rec.get("playerId", rec.get("player_id"))
    raw_field = rec.get("field")
    if player_id is None or str(player_id).strip() == "":
        raise ValidationError("Patch record is missing 'playerId'")
    if not raw_field:
        raise ValidationError(f"Patch for {player_id!r} is missing 'field'")
    field_name = _PATCH_FIELD_ALIASES.get(str(raw_field), str(raw_field))
    return PlayerPatch(player_id=str(player_id), field=field_name, value=_coerce_patch_value(field_name, rec.get("value")))


def load_patches_from_json(path: str | Path) -> List[PlayerPatch]:
    """Load a JSON list of patch records. Malformed records are logged and skipped."""

    path = Path(path)
    raw = json.loads(path.read_text(encoding="utf-8-sig"))
    if not isinstance(raw, list):
        raise ValueError(f"{path} must contain a JSON list of patch records")
    return _patches_from_rows(raw, source=str(path))


def read_patches_csv(path: str | Path) -> List[PlayerPatch]:
    """Read a patch CSV with columns: player_id, field, value."""

    path = Path(path)
    with path.open("r", encoding="utf-8", newline="") as f:
        reader: csv.DictReader[str] = csv.DictReader(f)
        rows = [cast(Mapping[str, Optional[str]], row) for row in reader]
    return _patches_from_rows(rows, source=str(path))


def _patches_from_rows(rows: Sequence[Mapping[str, Any]], *, source: str) -> List[PlayerPatch]:
    patches: List[PlayerPatch] = []
    for i, rec in enumerate(rows):
        try:
            patches.append(patch_from_record(rec))
        except ValidationError as e:
            logger.warning("Skipping patch %d from %s: %s", i, source, e)
    return patches


def validate_patch_ids(
    *,
    patch_ids: Iterable[str],
    known_ids: Iterable[str],
    source_label: str,
    close_match_cutoff: float = 0.6,
    close_match_n: int = 3,
) -> None:
    """Check every patched player id exists in the catalog.

    Raises
    ------
    ValueError
        If any patch ids aren't present in ``known_ids``.
    """

    known = set(known_ids)
    missing = sorted(set(patch_ids) - known)
    if not missing:
        return

    hints: list[str] = []
    for pid in missing:
        candidates = difflib.get_close_matches(pid, sorted(known), n=close_match_n, cutoff=close_match_cutoff)
        if candidates:
            hints.append(f"- {pid}  (did you mean: {', '.join(candidates)})")
        else:
            hints.append(f"- {pid}")

    raise ValueError(
        "One or more patches reference unknown player ids.\n"
        f"Source: {source_label}\n"
        "Unmatched ids:\n"
        + "\n".join(hints)
    )


# ============================================================================
# Configuration
# ============================================================================


def _parse_position_counts(obj: Mapping[str, Any], field_name: str) -> Dict[Position, int]:
    counts: Dict[Position, int] = {}
    for key, value in obj.items():
        try:
            counts[parse_position_str(key)] = int(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"{field_name} has invalid entry {key!r}: {value!r}") from e
    return counts


def composition_from_dict(raw: Mapping[str, Any], flex_positions: Optional[Iterable[str]] = None) -> RosterComposition:
    slots: Dict[Slot, int] = {}
    for key, value in raw.items():
        k = str(key).strip().upper()
        try:
            slot = Slot.FLEX if k == "FLEX" else Slot.for_position(parse_position_str(k))
        except ValidationError as e:
            raise ValueError(f"composition has unknown slot {key!r}") from e
        slots[slot] = int(value)
    if flex_positions is None:
        return RosterComposition(slots=slots)
    return RosterComposition(slots=slots, flex_positions=frozenset(parse_position_str(p) for p in flex_positions))


def league_settings_from_dict(raw: Mapping[str, Any]) -> LeagueSettings:
    composition = DEFAULT_COMPOSITION
    if "composition" in raw:
        composition = composition_from_dict(raw["composition"], raw.get("flex_positions"))

    starters = dict(DEFAULT_STARTERS_PER_TEAM)
    if "starters_per_team" in raw:
        starters.update(_parse_position_counts(raw["starters_per_team"], "starters_per_team"))

    return LeagueSettings(
        team_count=int(raw.get("team_count", 12)),
        budget=int(raw.get("budget", 200)),
        roster_size=int(raw.get("roster_size", composition.size)),
        composition=composition,
        starters_per_team=starters,
        quality_floor=float(raw.get("quality_floor", 100.0)),
    )


def load_league_settings_from_json(path: str | Path) -> LeagueSettings:
    """Load :class:`~auction_draft.data.LeagueSettings` from JSON.

    Every key is optional::

        {"team_count": 12, "budget": 200, "roster_size": 16, "quality_floor": 100,
         "composition": {"QB": 2, "RB": 4, "WR": 4, "TE": 2, "K": 1, "DST": 1, "FLEX": 2},
         "flex_positions": ["RB", "WR", "TE"],
         "starters_per_team": {"QB": 1, "RB": 2, "WR": 3, "TE": 1, "K": 1, "DST": 1}}
    """

    path = Path(path)
    raw = json.loads(path.read_text(encoding="utf-8-sig"))
    if not isinstance(raw, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return league_settings_from_dict(raw)


def load_valuation_weights_from_json(path: str | Path) -> ValuationWeights:
    """Read CVS weights from the ``"weights"`` object of a settings file (defaults if absent)."""

    path = Path(path)
    raw = json.loads(path.read_text(encoding="utf-8-sig"))
    weights = raw.get("weights") if isinstance(raw, dict) else None
    if not weights:
        return ValuationWeights()
    return ValuationWeights(**{str(k): float(v) for k, v in weights.items()})


# ============================================================================
# Snapshots
# ============================================================================


def snapshot_to_json_dict(snapshot: DraftSnapshot) -> Dict[str, Any]:
    return {
        "version": SNAPSHOT_FORMAT_VERSION,
        "roster_size": snapshot.roster_size,
        "team_budgets": dict(snapshot.team_budgets),
        "targets": {tid: list(ids) for tid, ids in snapshot.targets.items()},
        "players": [player_to_record(p) for p in snapshot.players],
        "draft_events": [
            {
                "sequence": e.sequence,
                "player_id": e.player_id,
                "team_id": e.team_id,
                "position": e.position.value,
                "price": e.price,
                "timestamp": e.timestamp.isoformat(),
            }
            for e in snapshot.draft_events
        ],
    }


def snapshot_from_json_dict(raw: Mapping[str, Any]) -> DraftSnapshot:
    version = int(raw.get("version", SNAPSHOT_FORMAT_VERSION))
    if version != SNAPSHOT_FORMAT_VERSION:
        raise ValueError(f"Unsupported snapshot version {version}")

    # Snapshots are written by us; a bad player record is an error, not a skip.
    players = tuple(player_from_record(rec) for rec in raw["players"])
    events = tuple(
        DraftEvent(
            sequence=int(e["sequence"]),
            player_id=str(e["player_id"]),
            team_id=str(e["team_id"]),
            position=parse_position_str(e["position"]),
            price=int(e["price"]),
            timestamp=datetime.fromisoformat(e["timestamp"]),
        )
        for e in raw.get("draft_events", [])
    )
    return DraftSnapshot(
        players=players,
        draft_events=events,
        team_budgets={str(k): int(v) for k, v in raw["team_budgets"].items()},
        roster_size=int(raw["roster_size"]),
        targets={str(k): tuple(str(x) for x in v) for k, v in (raw.get("targets") or {}).items()},
    )


def dump_snapshot(snapshot: DraftSnapshot, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(snapshot_to_json_dict(snapshot), indent=2, sort_keys=False), encoding="utf-8")
    logger.info("Wrote draft snapshot to %s (%d events)", path, len(snapshot.draft_events))
    return path


def load_snapshot(path: str | Path) -> DraftSnapshot:
    path = Path(path)
    return snapshot_from_json_dict(json.loads(path.read_text(encoding="utf-8-sig")))
