"""Relationship maintenance between matters.

Relationship types and the attribute each side records:

    relates   A.relates += B    B.relates += A    (symmetric)
    blocks    A.blocks  += B    B.needs   += A    (complementary pair)
    needs     A.needs   += B    B.blocks  += A    (complementary pair)
    parent    A.parent   = B    -                 (one-way)

Two-file changes are ordered: A is snapshotted, A is written, then B. If
writing B fails, A's snapshot bytes are put back (when A was written) and
LinkingFailedError is raised with the original error as its cause. Nothing guards against another
process rewriting A between the snapshot and the restore.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from mull.errors import InvalidRelationTypeError, LinkingFailedError, SelfLinkError

if TYPE_CHECKING:
    from collections.abc import Callable

    from mull.models import Matter
    from mull.store import MatterStore

logger = logging.getLogger("mull.links")

REL_TYPES = ("relates", "blocks", "needs", "parent")

# rel_type -> (attribute on A, attribute on B)
_SIDES = {
    "relates": ("relates", "relates"),
    "blocks": ("blocks", "needs"),
    "needs": ("needs", "blocks"),
}


def validate_rel_type(rel_type: str) -> None:
    if rel_type not in REL_TYPES:
        raise InvalidRelationTypeError(rel_type)


def _add(values: list[str], ref: str) -> bool:
    if ref in values:
        return False
    values.append(ref)
    return True


def _discard(values: list[str], ref: str) -> bool:
    if ref not in values:
        return False
    values[:] = [v for v in values if v != ref]
    return True


def _apply_pair(
    store: MatterStore,
    id_a: str,
    rel_type: str,
    id_b: str,
    change: Callable[[list[str], str], bool],
    action: str,
) -> bool:
    """Apply change to both sides of a list relation; returns whether anything was written."""
    if id_a == id_b:
        raise SelfLinkError(id_a)
    # Both lookups happen before any write.
    a = store.get(id_a)
    b = store.get(id_b)
    attr_a, attr_b = _SIDES[rel_type]

    write_a = change(getattr(a, attr_a), id_b)
    write_b = change(getattr(b, attr_b), id_a)
    if not write_a and not write_b:
        return False

    path_a, backup = store.snapshot(id_a)

    if write_a:
        a.touch()
        store.write(a)

    if write_b:
        b.touch()
        try:
            store.write(b)
        except Exception as exc:
            if not write_a:
                logger.warning("%s %s %s %s failed: %s", action, id_a, rel_type, id_b, exc)
                raise LinkingFailedError(action, "", exc) from exc
            try:
                store.write_raw(path_a, backup)
            except OSError as restore_exc:
                logger.error("%s %s %s %s failed and %s could not be restored: %s; %s",
                             action, id_a, rel_type, id_b, id_a, exc, restore_exc)
                raise LinkingFailedError(action, "", exc, restore_exc) from exc
            logger.warning("%s %s %s %s failed, rolled back %s: %s", action, id_a, rel_type, id_b, id_a, exc)
            raise LinkingFailedError(action, id_a, exc) from exc

    logger.info("%s %s %s %s", action, id_a, rel_type, id_b)
    return True


def link(store: MatterStore, id_a: str, rel_type: str, id_b: str) -> bool:
    """Create a relationship. Returns False if it already existed in full."""
    validate_rel_type(rel_type)

    if rel_type == "parent":
        if id_a == id_b:
            raise SelfLinkError(id_a)
        a = store.get(id_a)
        store.path_for(id_b)
        if a.parent == id_b:
            return False
        a.parent = id_b
        a.touch()
        store.write(a)
        logger.info("linked %s parent %s", id_a, id_b)
        return True

    return _apply_pair(store, id_a, rel_type, id_b, _add, "linking")


def unlink(store: MatterStore, id_a: str, rel_type: str, id_b: str) -> bool:
    """Remove a relationship. Removing one that does not exist is a no-op."""
    validate_rel_type(rel_type)

    if rel_type == "parent":
        a = store.get(id_a)
        if a.parent != id_b:
            return False
        a.parent = ""
        a.touch()
        store.write(a)
        logger.info("unlinked %s parent %s", id_a, id_b)
        return True

    return _apply_pair(store, id_a, rel_type, id_b, _discard, "unlinking")


def strip_reference(matter: Matter, rel_type: str, ref: str) -> bool:
    """Drop one reference from a matter in memory. Returns whether it was present."""
    if rel_type == "parent":
        if matter.parent != ref:
            return False
        matter.parent = ""
        return True
    return _discard(getattr(matter, rel_type), ref)


def remove_all_references(store: MatterStore, target: str) -> list[str]:
    """Strip every reference to target from all other matters.

    Explicit cleanup for after a delete; deleting a matter never does this on
    its own. Returns the ids of the matters that were rewritten.
    """
    touched: list[str] = []
    for matter in store.iter_matters():
        changed = False
        for rel_type in REL_TYPES:
            changed = strip_reference(matter, rel_type, target) or changed
        if changed:
            matter.touch()
            store.write(matter)
            touched.append(matter.id)
    if touched:
        logger.info("removed references to %s from %s", target, ", ".join(touched))
    return touched
