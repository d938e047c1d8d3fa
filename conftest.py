"""Repository-wide pytest configuration.

Pins the repository root on ``sys.path`` so ``deposit_miner`` imports from the
working tree regardless of the invocation directory, and keeps ``MINER_*``
variables from the caller's shell out of the settings tests.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _clear_miner_environment(monkeypatch):
    for key in list(os.environ):
        if key.startswith("MINER_"):
            monkeypatch.delenv(key, raising=False)
    yield
