from __future__ import annotations

from pathlib import Path

import pytest

from mull.config import init_config, load_config
from mull.store import MatterStore


def test_defaults_without_file(tmp_path: Path):
    cfg = load_config(tmp_path)
    assert cfg.root == tmp_path.resolve()
    assert cfg.name == tmp_path.name
    assert cfg.matters_dir == tmp_path.resolve() / ".mull" / "matters"
    assert cfg.docket_path == tmp_path.resolve() / ".mull" / "docket.yml"
    assert cfg.extension == "md"
    assert cfg.ids.max_attempts == 100
    assert cfg.log.level == "WARNING"


def test_reads_toml(tmp_path: Path):
    (tmp_path / "mull.toml").write_text(
        '[mull]\nname = "demo"\nroot_dir = "work"\nextension = ".markdown"\n'
        "[ids]\nmax_attempts = 7\n"
        '[log]\nlevel = "info"\n'
    )
    cfg = load_config(tmp_path)
    assert cfg.name == "demo"
    assert cfg.matters_dir == tmp_path.resolve() / "work" / "matters"
    assert cfg.docket_path == tmp_path.resolve() / "work" / "docket.yml"
    assert cfg.extension == "markdown"
    assert cfg.ids.max_attempts == 7
    assert cfg.log.level == "INFO"

    store = MatterStore.from_config(cfg)
    assert store.max_attempts == 7
    m = store.create("Hello")
    assert m.filename.endswith(".markdown")


def test_explicit_paths(tmp_path: Path):
    (tmp_path / "mull.toml").write_text('[mull]\nmatters_dir = "m"\ndocket_file = "q.yml"\n')
    cfg = load_config(tmp_path)
    assert cfg.matters_dir == tmp_path.resolve() / "m"
    assert cfg.docket_path == tmp_path.resolve() / "q.yml"


def test_searches_upward(tmp_path: Path):
    (tmp_path / "mull.toml").write_text('[mull]\nname = "up"\n')
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    cfg = load_config(nested)
    assert cfg.root == tmp_path.resolve()
    assert cfg.name == "up"


def test_env_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("MULL_DIR", str(tmp_path))
    assert load_config().root == tmp_path.resolve()


def test_init_config(tmp_path: Path):
    path = init_config(tmp_path, name="proj")
    assert load_config(tmp_path).name == "proj"
    with pytest.raises(FileExistsError):
        init_config(tmp_path)
    assert path == tmp_path / "mull.toml"


def test_ensure_dirs(tmp_path: Path):
    cfg = load_config(tmp_path)
    cfg.ensure_dirs()
    assert cfg.matters_dir.is_dir()
