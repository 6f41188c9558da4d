"""Matter repository: one markdown file per matter in a flat directory.

MatterStore is the public API:
    store = MatterStore("/path/to/.mull/matters")
    m = store.create("Cache invalidation", {"tags": "perf, storage"})
    store.update(m.id, "status", "planned")
    store.append_body(m.id, "Start with the read path.")

Files are named <id>-<slug>.md. Lookups scan the directory and match on the
"<id>-" prefix every time; nothing is cached between calls, so every read
reflects what is currently on disk.

Writes go to a temp file in the same directory and are renamed into place.
There is no locking: the store assumes a single writer.
"""

from __future__ import annotations

import hashlib
import logging
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from mull.codec import decode, encode, slugify
from mull.errors import DecodeError, IDExhaustedError, NotFoundError, ReadOnlyFieldError
from mull.models import Matter, today, validate_status

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from mull.config import MullConfig

logger = logging.getLogger("mull.store")

_ID_BYTES = 2
_FILTER_KEYS = ("status", "tag", "effort", "epic")
_READ_ONLY = {
    "created": "set when the matter is created",
    "updated": "bumped on every change",
    "relates": "use link/unlink",
    "blocks": "use link/unlink",
    "needs": "use link/unlink",
}


def _rfc3339_ns(ns: int) -> str:
    secs, frac = divmod(ns, 1_000_000_000)
    stamp = datetime.fromtimestamp(secs, UTC).strftime("%Y-%m-%dT%H:%M:%S")
    return f"{stamp}.{frac:09d}Z"


def _clean_title(title: str) -> str:
    return " ".join(line.strip() for line in title.splitlines() if line.strip())


def _split_tags(value: Any) -> list[str]:
    items = value.split(",") if isinstance(value, str) else list(value or [])
    return [t for t in (str(i).strip() for i in items) if t]


def apply_meta(matter: Matter, meta: Mapping[str, Any]) -> None:
    """Apply metadata fields to a matter, validating status.

    Unknown keys land in ``matter.extra``.
    """
    for key, value in meta.items():
        if key in _READ_ONLY:
            raise ReadOnlyFieldError(key, _READ_ONLY[key])
        if key == "tags":
            matter.tags = list(dict.fromkeys(_split_tags(value)))
            continue
        sv = "" if value is None else str(value)
        if key == "status":
            validate_status(sv)
            matter.status = sv
        elif key in ("effort", "plan", "epic", "parent"):
            setattr(matter, key, sv)
        else:
            matter.extra[key] = value


def matches_filters(matter: Matter, filters: Mapping[str, str]) -> bool:
    for key, value in filters.items():
        if key == "tag":
            if value not in matter.tags:
                return False
        elif getattr(matter, key) != value:
            return False
    return True


class MatterStore:
    """Directory-backed matter repository."""

    def __init__(self, matters_dir: Path | str, *, extension: str = "md", max_attempts: int = 100) -> None:
        self.matters_dir = Path(matters_dir)
        self.matters_dir.mkdir(parents=True, exist_ok=True)
        self.extension = extension
        self.max_attempts = max_attempts

    @classmethod
    def from_config(cls, cfg: MullConfig) -> MatterStore:
        return cls(cfg.matters_dir, extension=cfg.extension, max_attempts=cfg.ids.max_attempts)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @property
    def _suffix(self) -> str:
        return f".{self.extension}"

    def _paths(self) -> list[Path]:
        if not self.matters_dir.exists():
            return []
        return sorted(
            p for p in self.matters_dir.iterdir()
            if p.is_file() and p.suffix == self._suffix and not p.name.startswith(".")
        )

    def _find(self, matter_id: str) -> Path | None:
        if not matter_id:
            return None
        prefix = f"{matter_id}-"
        for path in self._paths():
            if path.name.startswith(prefix):
                return path
        return None

    def path_for(self, matter_id: str) -> Path:
        """Resolve the file backing matter_id. Raises NotFoundError."""
        path = self._find(matter_id)
        if path is None:
            raise NotFoundError(matter_id)
        return path

    def exists(self, matter_id: str) -> bool:
        return self._find(matter_id) is not None

    def ids(self) -> set[str]:
        """Identifiers of every matter file, without decoding them."""
        return {p.name.split("-", 1)[0] for p in self._paths() if "-" in p.name}

    # ------------------------------------------------------------------
    # Identifiers
    # ------------------------------------------------------------------

    def generate_id(self, title: str) -> str:
        """Short hex ID from sha256(title + timestamp), retried on collision."""
        base = time.time_ns()
        for i in range(self.max_attempts):
            digest = hashlib.sha256((title + _rfc3339_ns(base + i)).encode("utf-8")).digest()
            matter_id = digest[:_ID_BYTES].hex()
            if not self.exists(matter_id):
                return matter_id
            logger.debug("id collision on %s (attempt %d)", matter_id, i + 1)
        raise IDExhaustedError(self.max_attempts)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _read(self, path: Path) -> Matter:
        return decode(path.read_bytes(), path.name)

    def get(self, matter_id: str) -> Matter:
        return self._read(self.path_for(matter_id))

    def read_raw(self, matter_id: str) -> str:
        return self.path_for(matter_id).read_text(encoding="utf-8", errors="replace")

    def snapshot(self, matter_id: str) -> tuple[Path, bytes]:
        """Current on-disk bytes of a matter, for rollback."""
        path = self.path_for(matter_id)
        return path, path.read_bytes()

    def iter_matters(self) -> Iterator[Matter]:
        """Iterate all decodable matters; undecodable files are logged and skipped."""
        for path in self._paths():
            try:
                yield self._read(path)
            except (DecodeError, OSError) as exc:
                logger.warning("skipping %s: %s", path.name, exc)

    def list(self, filters: Mapping[str, str] | None = None, *, exclude_terminal: bool = False) -> list[Matter]:
        """All matters matching every given filter (status, tag, effort, epic)."""
        filters = {k: v for k, v in (filters or {}).items() if v}
        unknown = set(filters) - set(_FILTER_KEYS)
        if unknown:
            msg = f"unknown filter: {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        return [
            m for m in self.iter_matters()
            if matches_filters(m, filters) and not (exclude_terminal and m.is_terminal)
        ]

    def search(self, query: str) -> list[Matter]:
        """Case-insensitive substring match over title and body."""
        q = query.lower()
        return [m for m in self.iter_matters() if q in m.title.lower() or q in m.body.lower()]

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def write_raw(self, path: Path, data: bytes) -> None:
        """Replace a file's content atomically (temp file + rename)."""
        tmp = path.with_name(f".{path.name}.tmp")
        tmp.write_bytes(data)
        tmp.replace(path)

    def write(self, matter: Matter) -> None:
        """Encode and persist a matter to its file."""
        if not matter.filename:
            matter.filename = f"{matter.id}-{slugify(matter.title)}{self._suffix}"
        self.write_raw(self.matters_dir / matter.filename, encode(matter))

    def create(self, title: str, meta: Mapping[str, Any] | None = None) -> Matter:
        """Create a new matter with status raw and today's dates.

        The title is stored as a single heading line, so line breaks in it
        are folded into spaces.
        """
        title = _clean_title(title)
        day = today()
        matter = Matter(id="", title=title, status="raw", created=day, updated=day)
        if meta:
            apply_meta(matter, meta)
        matter.id = self.generate_id(title)
        matter.filename = f"{matter.id}-{slugify(title)}{self._suffix}"
        self.write(matter)
        logger.info("created matter %s (%s)", matter.id, matter.filename)
        return matter

    def update(self, matter_id: str, key: str, value: Any) -> Matter:
        matter = self.get(matter_id)
        apply_meta(matter, {key: value})
        matter.touch()
        self.write(matter)
        logger.info("set %s on %s", key, matter_id)
        return matter

    def append_body(self, matter_id: str, text: str) -> Matter:
        matter = self.get(matter_id)
        matter.body = f"{matter.body}\n\n{text}" if matter.body else text
        matter.touch()
        self.write(matter)
        logger.info("appended to %s", matter_id)
        return matter

    def delete(self, matter_id: str) -> None:
        """Remove the matter's file. References held by other matters are left alone."""
        path = self.path_for(matter_id)
        path.unlink()
        logger.info("deleted matter %s", matter_id)
