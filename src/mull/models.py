"""Data models for the matter store."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from mull.errors import InvalidStatusError

STATUSES = ("raw", "refined", "planned", "done", "dropped")
TERMINAL_STATUSES = frozenset({"done", "dropped"})

# Metadata keys the codec maps onto Matter attributes, in emit order.
KNOWN_FIELDS = (
    "status", "tags", "effort", "created", "updated", "plan", "epic",
    "relates", "blocks", "needs", "parent",
)

# Relationship attribute names that hold lists of matter ids.
LIST_RELATIONS = ("relates", "blocks", "needs")


def today() -> str:
    """Current local date as YYYY-MM-DD."""
    return date.today().isoformat()


def validate_status(status: str) -> None:
    if status not in STATUSES:
        raise InvalidStatusError(status)


@dataclass
class Matter:
    """A single work item, stored as one markdown file."""

    id: str
    title: str = ""
    filename: str = ""
    status: str = ""
    created: str = ""
    updated: str = ""

    tags: list[str] = field(default_factory=list)
    effort: str = ""
    plan: str = ""
    epic: str = ""

    relates: list[str] = field(default_factory=list)
    blocks: list[str] = field(default_factory=list)
    needs: list[str] = field(default_factory=list)
    parent: str = ""

    # Unrecognised frontmatter keys, preserved in file order
    extra: dict[str, Any] = field(default_factory=dict)
    body: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def references(self) -> list[tuple[str, str]]:
        """All outgoing references as (relation, target) pairs."""
        refs = [(rel, ref) for rel in LIST_RELATIONS for ref in getattr(self, rel)]
        if self.parent:
            refs.append(("parent", self.parent))
        return refs

    def touch(self) -> None:
        self.updated = today()

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "file": self.filename,
            "title": self.title,
            "status": self.status,
            "created": self.created,
            "updated": self.updated,
        }
        for key in ("tags", "effort", "plan", "epic", "relates", "blocks", "needs", "parent", "extra", "body"):
            value = getattr(self, key)
            if value:
                d[key] = value
        return d


@dataclass
class DocketEntry:
    """One position in the docket."""

    id: str
    note: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> DocketEntry:
        return cls(id=str(d["id"]), note=str(d.get("note") or ""))

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"id": self.id}
        if self.note:
            d["note"] = self.note
        return d
