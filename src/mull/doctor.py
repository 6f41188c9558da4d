"""Integrity checks across all matter files and the docket.

Checks, in the order they run:

    orphaned-docket      docket entry whose matter file does not exist
    dangling-<rel>       relates/blocks/needs/parent pointing at a missing matter
    asymmetric-<rel>     relates/blocks/needs not reciprocated on the other side
    docket-terminal      done/dropped matter still on the docket

With fix=True each finding is repaired as it is found: orphans and terminal
entries leave the docket, dangling references are stripped from the matter
holding them, and asymmetric links are re-applied through links.link so the
usual rollback applies. Without fix nothing is written.

parent is only checked for dangling targets; it is one-way by design.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from mull.errors import DecodeError, MullError
from mull.links import link, strip_reference

if TYPE_CHECKING:
    from mull.docket import Docket
    from mull.models import Matter
    from mull.store import MatterStore

logger = logging.getLogger("mull.doctor")

# relation on A -> relation B must hold for the link to be symmetric
_RECIPROCAL = {"blocks": "needs", "needs": "blocks", "relates": "relates"}

_ASYMMETRIC_DETAIL = {
    "blocks": "{a} blocks {b} but {b} doesn't need {a}",
    "needs": "{a} needs {b} but {b} doesn't block {a}",
    "relates": "{a} relates to {b} but not vice versa",
}

_DANGLING_DETAIL = {
    "relates": "{a} relates to nonexistent {b}",
    "blocks": "{a} blocks nonexistent {b}",
    "needs": "{a} needs nonexistent {b}",
    "parent": "{a} has nonexistent parent {b}",
}


@dataclass
class Issue:
    """One finding from an audit."""

    check: str
    id: str
    detail: str
    ref: str = ""
    fixed: bool = False
    error: str = ""          # set when a fix was attempted and failed
    error_kind: str = ""

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"check": self.check, "id": self.id}
        if self.ref:
            d["ref"] = self.ref
        d["detail"] = self.detail
        if self.fixed:
            d["fixed"] = True
        if self.error:
            d["error"] = self.error
            d["error_kind"] = self.error_kind
        return d


@dataclass
class AuditReport:
    issues: list[Issue] = field(default_factory=list)
    fix: bool = False

    @property
    def count(self) -> int:
        return len(self.issues)

    @property
    def fixed(self) -> int:
        return sum(1 for i in self.issues if i.fixed)

    def by_check(self, check: str) -> list[Issue]:
        return [i for i in self.issues if i.check == check]

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"issues": [i.to_dict() for i in self.issues], "count": self.count}
        if self.fix:
            d["fixed"] = self.fixed
        return d


def _check_orphans(docket: Docket, ids: set[str], report: AuditReport) -> None:
    for entry in docket.load():
        if entry.id in ids:
            continue
        issue = Issue("orphaned-docket", entry.id, "docket references nonexistent matter")
        if report.fix:
            issue.fixed = docket.discard(entry.id)
        report.issues.append(issue)


def _check_dangling(
    store: MatterStore, matters: list[Matter], ids: set[str], report: AuditReport,
) -> set[tuple[str, str, str]]:
    dangling: set[tuple[str, str, str]] = set()
    for matter in matters:
        found: list[Issue] = []
        for rel_type, ref in matter.references():
            if ref in ids:
                continue
            dangling.add((matter.id, rel_type, ref))
            found.append(Issue(
                f"dangling-{rel_type}", matter.id,
                _DANGLING_DETAIL[rel_type].format(a=matter.id, b=ref), ref=ref,
            ))
            if report.fix:
                strip_reference(matter, rel_type, ref)
        if found and report.fix:
            matter.touch()
            store.write(matter)
            for issue in found:
                issue.fixed = True
            logger.info("stripped %d dangling reference(s) from %s", len(found), matter.id)
        report.issues.extend(found)
    return dangling


def _check_asymmetric(
    store: MatterStore,
    matters: list[Matter],
    ids: set[str],
    dangling: set[tuple[str, str, str]],
    report: AuditReport,
) -> None:
    for matter in matters:
        for rel_type, reciprocal in _RECIPROCAL.items():
            for ref in list(getattr(matter, rel_type)):
                if ref not in ids or (matter.id, rel_type, ref) in dangling:
                    continue
                try:
                    other = store.get(ref)
                except DecodeError as exc:
                    logger.warning("cannot verify %s %s %s: %s", matter.id, rel_type, ref, exc)
                    continue
                if matter.id in getattr(other, reciprocal):
                    continue
                issue = Issue(
                    f"asymmetric-{rel_type}", matter.id,
                    _ASYMMETRIC_DETAIL[rel_type].format(a=matter.id, b=ref), ref=ref,
                )
                if report.fix:
                    try:
                        link(store, matter.id, rel_type, ref)
                        issue.fixed = True
                    except (MullError, OSError) as exc:
                        issue.error = str(exc)
                        issue.error_kind = exc.kind if isinstance(exc, MullError) else "io-error"
                        logger.warning("could not repair %s: %s", issue.detail, exc)
                report.issues.append(issue)


def _check_docket_terminal(docket: Docket, matters: list[Matter], report: AuditReport) -> None:
    by_id = {m.id: m for m in matters}
    # Re-read: orphan fixes may already have rewritten the docket.
    for entry in docket.load():
        matter = by_id.get(entry.id)
        if matter is None or not matter.is_terminal:
            continue
        issue = Issue("docket-terminal", entry.id, f"{matter.status} matter {entry.id} is still in docket")
        if report.fix:
            issue.fixed = docket.discard(entry.id)
        report.issues.append(issue)


def audit(store: MatterStore, docket: Docket, *, fix: bool = False) -> AuditReport:
    """Run every check over the store and docket; repair findings when fix is set."""
    report = AuditReport(fix=fix)
    ids = store.ids()
    matters = list(store.iter_matters())

    _check_orphans(docket, ids, report)
    dangling = _check_dangling(store, matters, ids, report)
    _check_asymmetric(store, matters, ids, dangling, report)
    _check_docket_terminal(docket, matters, report)

    if fix:
        logger.info("doctor: fixed %d of %d issue(s)", report.fixed, report.count)
    else:
        logger.info("doctor: %d issue(s) found", report.count)
    return report
