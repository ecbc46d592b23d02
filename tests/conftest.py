"""Pytest configuration for test isolation.

The package reads its knobs from ``UPI_LEDGER_*`` environment variables and
caches the default classifier for the life of the process. A developer's
shell (or a ``.env`` loaded by an earlier CLI test) could otherwise leak a
custom rules file or preview size into unrelated tests, so every test starts
from a clean environment and a fresh classifier cache.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import pytest

# Make sure the workspace `packages/` dir is on sys.path so `upi_ledger` is importable
_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
sys.path[:0] = [p for p in [str(_PKG_DIR), str(_ROOT)] if p not in sys.path]

from upi_ledger import logging_setup  # noqa: E402
from upi_ledger.classifier import default_classifier  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in list(os.environ):
        if name.startswith("UPI_LEDGER_"):
            monkeypatch.delenv(name, raising=False)
    # The CLI loads ``.env`` from the working directory.
    monkeypatch.chdir(tmp_path)
    default_classifier.cache_clear()
    yield
    default_classifier.cache_clear()


@pytest.fixture(autouse=True)
def _reset_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    # CLI tests call ``configure_logging``; undo it so caplog keeps working.
    pkg = logging.getLogger("upi_ledger")
    handlers, level, propagate = list(pkg.handlers), pkg.level, pkg.propagate
    monkeypatch.setattr(logging_setup, "_CONFIGURED", False)
    yield
    pkg.handlers[:] = handlers
    pkg.setLevel(level)
    pkg.propagate = propagate
