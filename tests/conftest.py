from __future__ import annotations

import sys
from pathlib import Path

import pytest


# Ensure src/, scripts/ and tests/ helpers are importable without an install.
_REPO_ROOT = Path(__file__).resolve().parents[1]
for _p in (_REPO_ROOT, _REPO_ROOT / "src", Path(__file__).resolve().parent):
    if str(_p) not in sys.path:
        sys.path.insert(0, str(_p))


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-perf",
        action="store_true",
        default=False,
        help="Run performance tests (skipped by default).",
    )
    parser.addoption(
        "--perf-max-seconds",
        action="store",
        type=float,
        default=5.0,
        help="Wall-clock ceiling for a full recompute in perf tests (default: 5s).",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "perf: performance tests (opt-in with --run-perf)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-perf"):
        return

    skip_perf = pytest.mark.skip(reason="need --run-perf option to run")
    for item in items:
        if "perf" in item.keywords:
            item.add_marker(skip_perf)
