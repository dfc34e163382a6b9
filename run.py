from __future__ import annotations

import json
from pathlib import Path

from auction_draft.data import LeagueSettings
from auction_draft.io import load_league_settings_from_json, load_patches_from_json
from auction_draft.main import DraftSession, configure_logging, load_players
from auction_draft.solution import build_roster_summary, dumps_roster_summary_pretty


def main() -> None:
    repo_root = Path(__file__).resolve().parent
    data_dir = repo_root / "data"
    output_dir = repo_root / "output"
    output_dir.mkdir(parents=True, exist_ok=True)

    configure_logging()

    # Optional league overrides, see auction_draft.io.load_league_settings_from_json.
    settings_path = data_dir / "league_settings.json"
    settings = load_league_settings_from_json(settings_path) if settings_path.exists() else LeagueSettings()

    loaded = load_players(players_json_path=data_dir / "players.json")
    session = DraftSession(loaded.players, settings)

    patches_path = data_dir / "patches.json"
    if patches_path.exists():
        session.apply_patches(load_patches_from_json(patches_path), source_label=str(patches_path))

    result = session.optimize_roster()
    if not result.is_complete:
        # Still emit something helpful.
        print(json.dumps({"complete": False, "shortfalls": [s.reason for s in result.shortfalls]}, indent=2))

    summary = build_roster_summary(result)

    # Write to output file.
    out_path = output_dir / "roster.json"
    out_path.write_text(dumps_roster_summary_pretty(summary), encoding="utf-8")

    # Pretty JSON to stdout.
    print(dumps_roster_summary_pretty(summary))


if __name__ == "__main__":
    main()
