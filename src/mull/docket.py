"""The docket: a manually ordered queue of matter ids kept in docket.yml.

    - id: a1b2
      note: after the release
    - id: 9f3c

Every operation loads the whole list, changes it in memory and writes the
whole list back.
"""

from __future__ import annotations

import logging
from pathlib import Path

from mull.codec import dump_yaml, load_yaml
from mull.errors import AfterIDNotFoundError, DecodeError, DuplicateEntryError, NotFoundError
from mull.models import DocketEntry

logger = logging.getLogger("mull.docket")


def _index(entries: list[DocketEntry], matter_id: str) -> int:
    for i, entry in enumerate(entries):
        if entry.id == matter_id:
            return i
    return -1


class Docket:
    """YAML-file-backed ordered list of DocketEntry."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> list[DocketEntry]:
        """Read the docket; a missing file is an empty docket."""
        if not self.path.exists():
            return []
        raw = load_yaml(self.path.read_text(encoding="utf-8"), self.path.name)
        if raw is None:
            return []
        if not isinstance(raw, list):
            msg = f"parsing {self.path.name}: expected a list of entries"
            raise DecodeError(msg)
        entries: list[DocketEntry] = []
        for item in raw:
            if not isinstance(item, dict) or "id" not in item:
                msg = f"parsing {self.path.name}: entry without id: {item!r}"
                raise DecodeError(msg)
            entries.append(DocketEntry.from_dict(item))
        return entries

    def save(self, entries: list[DocketEntry]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(f".{self.path.name}.tmp")
        tmp.write_text(dump_yaml([e.to_dict() for e in entries]), encoding="utf-8")
        tmp.replace(self.path)

    def ids(self) -> list[str]:
        return [e.id for e in self.load()]

    def add(self, matter_id: str, after_id: str = "", note: str = "") -> None:
        """Append matter_id, or insert it right after after_id."""
        entries = self.load()
        if _index(entries, matter_id) >= 0:
            raise DuplicateEntryError(matter_id)

        entry = DocketEntry(id=matter_id, note=note)
        if not after_id:
            entries.append(entry)
        else:
            idx = _index(entries, after_id)
            if idx < 0:
                raise AfterIDNotFoundError(after_id)
            entries.insert(idx + 1, entry)

        self.save(entries)
        logger.info("docket add %s", matter_id)

    def remove(self, matter_id: str) -> None:
        entries = self.load()
        idx = _index(entries, matter_id)
        if idx < 0:
            raise NotFoundError(matter_id, "docket entry")
        del entries[idx]
        self.save(entries)
        logger.info("docket remove %s", matter_id)

    def discard(self, matter_id: str) -> bool:
        """Remove matter_id if present. Returns whether it was on the docket."""
        entries = self.load()
        idx = _index(entries, matter_id)
        if idx < 0:
            return False
        del entries[idx]
        self.save(entries)
        logger.info("docket remove %s", matter_id)
        return True

    def move(self, matter_id: str, after_id: str) -> None:
        """Move matter_id to directly after after_id.

        The anchor is looked up after matter_id has been taken out, so moving
        an entry after itself fails cleanly instead of reordering anything.
        """
        entries = self.load()
        idx = _index(entries, matter_id)
        if idx < 0:
            raise NotFoundError(matter_id, "docket entry")
        entry = entries.pop(idx)

        after_idx = _index(entries, after_id)
        if after_idx < 0:
            raise AfterIDNotFoundError(after_id)
        entries.insert(after_idx + 1, entry)

        self.save(entries)
        logger.info("docket move %s after %s", matter_id, after_id)
