"""MullConfig: project-local config for the matter store.

Default layout (all relative to the project root):

    mull.toml             # optional project config (git-tracked)
    .mull/
        matters/          # one markdown file per matter
            <id>-<slug>.md
        docket.yml        # ordered work queue

mull.toml example:

    [mull]
    name = "my-project"
    # root_dir = ".mull"                # default
    # matters_dir = ".mull/matters"     # default
    # docket_file = ".mull/docket.yml"  # default
    # extension = "md"

    [ids]
    max_attempts = 100

    [log]
    level = "WARNING"

The MULL_DIR environment variable, when set, replaces the current directory
as the starting point of the upward search for mull.toml.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

_CONFIG_FILENAME = "mull.toml"
_ENV_ROOT = "MULL_DIR"
_DEFAULT_ROOT_DIR = ".mull"
_DEFAULT_MATTERS_DIR = ".mull/matters"
_DEFAULT_DOCKET_FILE = ".mull/docket.yml"
_DEFAULT_EXTENSION = "md"
_DEFAULT_MAX_ATTEMPTS = 100
_DEFAULT_LOG_LEVEL = "WARNING"


@dataclass
class IdsConfig:
    max_attempts: int = _DEFAULT_MAX_ATTEMPTS   # identifier generation retry bound


@dataclass
class LogConfig:
    level: str = _DEFAULT_LOG_LEVEL


@dataclass
class MullConfig:
    """Resolved configuration for a mull project."""

    root: Path                      # directory that contains mull.toml
    name: str = ""
    store_dir: Path = field(default_factory=Path)
    matters_dir: Path = field(default_factory=Path)
    docket_path: Path = field(default_factory=Path)
    extension: str = _DEFAULT_EXTENSION
    ids: IdsConfig = field(default_factory=IdsConfig)
    log: LogConfig = field(default_factory=LogConfig)

    @property
    def config_path(self) -> Path:
        return self.root / _CONFIG_FILENAME

    def ensure_dirs(self) -> None:
        """Create the matters directory (and the store root) if missing."""
        self.matters_dir.mkdir(parents=True, exist_ok=True)
        self.docket_path.parent.mkdir(parents=True, exist_ok=True)


def load_config(root: Path | str | None = None) -> MullConfig:
    """Load mull.toml from root (or search upward from $MULL_DIR / cwd if root is None)."""
    if root is not None:
        start = Path(root)
    elif os.environ.get(_ENV_ROOT):
        start = Path(os.environ[_ENV_ROOT])
    else:
        start = Path.cwd()
    root_path = _find_root(start.resolve())
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    section = raw.get("mull", {})
    ids_section = raw.get("ids", {})
    log_section = raw.get("log", {})

    store_rel = section.get("root_dir", _DEFAULT_ROOT_DIR)
    matters_rel = section.get("matters_dir", str(Path(store_rel) / "matters"))
    docket_rel = section.get("docket_file", str(Path(store_rel) / "docket.yml"))

    return MullConfig(
        root=root_path,
        name=section.get("name", root_path.name),
        store_dir=root_path / store_rel,
        matters_dir=root_path / matters_rel,
        docket_path=root_path / docket_rel,
        extension=str(section.get("extension", _DEFAULT_EXTENSION)).lstrip("."),
        ids=IdsConfig(
            max_attempts=int(ids_section.get("max_attempts", _DEFAULT_MAX_ATTEMPTS)),
        ),
        log=LogConfig(
            level=str(log_section.get("level", _DEFAULT_LOG_LEVEL)).upper(),
        ),
    )


def _find_root(start: Path) -> Path:
    """Walk upward from start looking for mull.toml."""
    for directory in (start, *start.parents):
        if (directory / _CONFIG_FILENAME).exists():
            return directory
    return start


def init_config(root: Path, name: str | None = None) -> Path:
    """Write a default mull.toml at root. Raises if already exists."""
    config_path = root / _CONFIG_FILENAME
    if config_path.exists():
        msg = f"mull.toml already exists at {config_path}"
        raise FileExistsError(msg)

    project_name = name or root.name
    content = f"""\
[mull]
name = "{project_name}"
# root_dir = "{_DEFAULT_ROOT_DIR}"
# matters_dir = "{_DEFAULT_MATTERS_DIR}"
# docket_file = "{_DEFAULT_DOCKET_FILE}"
# extension = "{_DEFAULT_EXTENSION}"

# [ids]
# max_attempts = {_DEFAULT_MAX_ATTEMPTS}   # retries before giving up on a free matter ID

# [log]
# level = "{_DEFAULT_LOG_LEVEL}"   # overridden by -v / -vv on the command line
"""
    config_path.write_text(content)
    return config_path
