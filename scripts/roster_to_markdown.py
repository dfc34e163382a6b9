from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from auction_draft.solution import roster_summary_from_json_dict, roster_summary_to_markdown


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Render an optimised roster.json as a markdown table")
    parser.add_argument("roster_json", type=Path, help="Path to roster.json (from run.py or `auction-draft optimize`)")
    parser.add_argument("--out", type=Path, default=None, help="Optional output markdown path")

    args = parser.parse_args(argv)

    raw: Dict[str, Any] = json.loads(args.roster_json.read_text(encoding="utf-8-sig"))
    md = roster_summary_to_markdown(roster_summary_from_json_dict(raw))

    if args.out is None:
        print(md, end="")
    else:
        args.out.write_text(md, encoding="utf-8")


if __name__ == "__main__":
    main()
