from __future__ import annotations

from pathlib import Path

import pytest

from mull.docket import Docket
from mull.store import MatterStore


@pytest.fixture
def store(tmp_path: Path) -> MatterStore:
    return MatterStore(tmp_path / ".mull" / "matters")


@pytest.fixture
def docket(tmp_path: Path) -> Docket:
    return Docket(tmp_path / ".mull" / "docket.yml")


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """An empty project directory the CLI resolves to."""
    monkeypatch.delenv("MULL_DIR", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path
