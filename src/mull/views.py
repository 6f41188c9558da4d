"""Read-only projections over the store used by the CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mull.errors import DecodeError, NotFoundError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mull.docket import Docket
    from mull.models import Matter
    from mull.store import MatterStore


def epic_summaries(matters: Iterable[Matter], *, include_terminal: bool = False) -> list[dict[str, Any]]:
    """Per-epic status counts, sorted by epic name."""
    epics: dict[str, dict[str, int]] = {}
    for m in matters:
        if not m.epic or (m.is_terminal and not include_terminal):
            continue
        counts = epics.setdefault(m.epic, {})
        counts[m.status] = counts.get(m.status, 0) + 1
    return [
        {"name": name, "counts": counts, "total": sum(counts.values())}
        for name, counts in sorted(epics.items())
    ]


def docket_rows(store: MatterStore, docket: Docket) -> list[dict[str, Any]]:
    """Docket entries joined with title/status/epic of the matter, when it exists."""
    rows: list[dict[str, Any]] = []
    for entry in docket.load():
        row: dict[str, Any] = {"id": entry.id}
        try:
            m = store.get(entry.id)
        except (NotFoundError, DecodeError):
            m = None
        if m is not None:
            row["title"] = m.title
            row["status"] = m.status
            if m.epic:
                row["epic"] = m.epic
        if entry.note:
            row["note"] = entry.note
        rows.append(row)
    return rows


def undocketed(store: MatterStore, docket: Docket, *, include_terminal: bool = False) -> list[Matter]:
    on_docket = set(docket.ids())
    return [
        m for m in store.list(exclude_terminal=not include_terminal)
        if m.id not in on_docket
    ]


def graph_ids_for(store: MatterStore, matter_id: str) -> set[str]:
    """A matter plus every matter it references directly."""
    m = store.get(matter_id)
    return {matter_id, *(ref for _, ref in m.references())}


def build_graph(store: MatterStore, ids: Iterable[str]) -> dict[str, list[dict[str, str]]]:
    """Nodes and edges among the non-terminal matters in ids.

    Edges are blocks (directed) and relates (emitted once per pair).
    """
    seen: dict[str, Matter] = {}
    for matter_id in sorted(set(ids)):
        try:
            m = store.get(matter_id)
        except (NotFoundError, DecodeError):
            continue
        if not m.is_terminal:
            seen[matter_id] = m

    nodes = [{"id": m.id, "title": m.title, "status": m.status} for m in seen.values()]
    edges: list[dict[str, str]] = []
    emitted: set[tuple[str, str, str]] = set()
    for matter_id, m in seen.items():
        for target in m.blocks:
            key = (matter_id, "blocks", target)
            if target in seen and key not in emitted:
                emitted.add(key)
                edges.append({"from": matter_id, "to": target, "type": "blocks"})
        for target in m.relates:
            if target not in seen:
                continue
            if (matter_id, "relates", target) in emitted or (target, "relates", matter_id) in emitted:
                continue
            emitted.add((matter_id, "relates", target))
            edges.append({"from": matter_id, "to": target, "type": "relates"})
    return {"nodes": nodes, "edges": edges}
