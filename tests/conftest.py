"""
Pytest bootstrap for src/ layout.

Ensures ./src is on sys.path so `import synthpivot` works without an
editable install, and provides a few shared fixtures.
"""
from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest

repo_root = Path(__file__).resolve().parents[1]
src = repo_root / "src"
if src.is_dir():
    src_str = str(src)
    if src_str not in sys.path:
        # Put first so local src wins over any installed synthpivot.
        sys.path.insert(0, src_str)


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(20210101)


@pytest.fixture(autouse=True)
def _no_env_seed(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SYNTHPIVOT_SEED", raising=False)
