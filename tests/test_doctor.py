from __future__ import annotations

import pytest

from mull.docket import Docket
from mull.doctor import audit
from mull.links import link
from mull.store import MatterStore


def _set_list(store: MatterStore, matter_id: str, attr: str, values: list[str]) -> None:
    """Write one side of a relation directly, bypassing link()."""
    m = store.get(matter_id)
    setattr(m, attr, values)
    store.write(m)


def test_clean_store_has_no_issues(store: MatterStore, docket: Docket):
    a = store.create("A").id
    b = store.create("B").id
    link(store, a, "blocks", b)
    link(store, a, "relates", b)
    link(store, b, "parent", a)
    docket.add(a)

    report = audit(store, docket)
    assert report.issues == []
    assert report.to_dict() == {"issues": [], "count": 0}


class TestAsymmetric:
    def test_relates_reported_once(self, store: MatterStore, docket: Docket):
        a = store.create("A").id
        b = store.create("B").id
        _set_list(store, a, "relates", [b])

        report = audit(store, docket)
        assert [(i.check, i.id, i.ref) for i in report.issues] == [("asymmetric-relates", a, b)]
        assert not report.issues[0].fixed
        assert store.get(b).relates == []

    def test_relates_fixed(self, store: MatterStore, docket: Docket):
        a = store.create("A").id
        b = store.create("B").id
        _set_list(store, a, "relates", [b])

        report = audit(store, docket, fix=True)
        assert report.fixed == 1
        assert store.get(b).relates == [a]
        assert audit(store, docket).issues == []

    def test_blocks_fixed(self, store: MatterStore, docket: Docket):
        a = store.create("A").id
        b = store.create("B").id
        _set_list(store, a, "blocks", [b])

        report = audit(store, docket, fix=True)
        assert [i.check for i in report.issues] == ["asymmetric-blocks"]
        assert store.get(b).needs == [a]

    def test_needs_fixed(self, store: MatterStore, docket: Docket):
        a = store.create("A").id
        b = store.create("B").id
        _set_list(store, a, "needs", [b])

        report = audit(store, docket, fix=True)
        assert [i.check for i in report.issues] == ["asymmetric-needs"]
        assert store.get(b).blocks == [a]

    def test_parent_is_not_checked(self, store: MatterStore, docket: Docket):
        a = store.create("A").id
        b = store.create("B").id
        link(store, a, "parent", b)
        assert audit(store, docket).issues == []

    def test_failed_repair_is_reported(self, store: MatterStore, docket: Docket, monkeypatch: pytest.MonkeyPatch):
        a = store.create("A").id
        b = store.create("B").id
        _set_list(store, a, "relates", [b])

        real_write = store.write

        def write(matter):
            if matter.id == b:
                raise OSError("read-only filesystem")
            real_write(matter)

        monkeypatch.setattr(store, "write", write)
        report = audit(store, docket, fix=True)
        assert report.count == 1
        assert report.fixed == 0
        assert "read-only filesystem" in report.issues[0].error
        assert report.issues[0].error_kind == "linking-failed"
        assert report.to_dict()["issues"][0]["error_kind"] == "linking-failed"

    @pytest.mark.parametrize("content", [
        b"---\nstatus: raw\n---\n\n# \xff\xfe\n",
        b"---\nstatus: [oops\n---\n\n# Broken\n",
    ])
    def test_undecodable_target_does_not_stop_audit(self, store: MatterStore, docket: Docket, content: bytes):
        a = store.create("A").id
        b = store.create("B").id
        (store.matters_dir / "beef-bad.md").write_bytes(content)
        _set_list(store, a, "relates", ["beef"])
        _set_list(store, b, "blocks", [a])
        docket.add("beef")

        for fix in (False, True):
            report = audit(store, docket, fix=fix)
            assert [(i.check, i.id) for i in report.issues] == [("asymmetric-blocks", b)]
        assert store.get(a).needs == [b]
        assert store.get(a).relates == ["beef"]
        assert docket.ids() == ["beef"]


class TestDangling:
    def test_reported(self, store: MatterStore, docket: Docket):
        a = store.create("A").id
        _set_list(store, a, "blocks", ["zzzz"])

        report = audit(store, docket)
        assert [(i.check, i.id, i.ref) for i in report.issues] == [("dangling-blocks", a, "zzzz")]
        assert store.get(a).blocks == ["zzzz"]

    def test_fixed(self, store: MatterStore, docket: Docket):
        a = store.create("A").id
        b = store.create("B").id
        link(store, a, "blocks", b)
        m = store.get(a)
        m.blocks.append("zzzz")
        m.relates = ["yyyy"]
        m.parent = "xxxx"
        store.write(m)

        report = audit(store, docket, fix=True)
        assert sorted(i.check for i in report.issues) == ["dangling-blocks", "dangling-parent", "dangling-relates"]
        assert report.fixed == 3
        fixed = store.get(a)
        assert fixed.blocks == [b]
        assert fixed.relates == []
        assert fixed.parent == ""

    def test_dangling_is_not_also_asymmetric(self, store: MatterStore, docket: Docket):
        a = store.create("A").id
        gone = store.create("Gone").id
        link(store, a, "relates", gone)
        store.delete(gone)

        report = audit(store, docket)
        assert [i.check for i in report.issues] == ["dangling-relates"]


class TestDocket:
    def test_orphan_reported_and_fixed(self, store: MatterStore, docket: Docket):
        a = store.create("A").id
        docket.add(a)
        docket.add("zzzz")

        report = audit(store, docket)
        assert [(i.check, i.id) for i in report.issues] == [("orphaned-docket", "zzzz")]
        assert docket.ids() == [a, "zzzz"]

        report = audit(store, docket, fix=True)
        assert report.fixed == 1
        assert docket.ids() == [a]

    def test_terminal_reported_and_fixed(self, store: MatterStore, docket: Docket):
        a = store.create("A").id
        b = store.create("B").id
        docket.add(a)
        docket.add(b)
        store.update(b, "status", "done")
        before = store.read_raw(b)

        report = audit(store, docket)
        assert [(i.check, i.id) for i in report.issues] == [("docket-terminal", b)]
        assert report.issues[0].detail == f"done matter {b} is still in docket"

        report = audit(store, docket, fix=True)
        assert report.fixed == 1
        assert docket.ids() == [a]
        assert store.read_raw(b) == before

    def test_dropped_counts_as_terminal(self, store: MatterStore, docket: Docket):
        a = store.create("A", {"status": "dropped"}).id
        docket.add(a)
        assert [i.check for i in audit(store, docket).issues] == ["docket-terminal"]

    def test_orphan_not_double_reported(self, store: MatterStore, docket: Docket):
        docket.add("zzzz")
        report = audit(store, docket, fix=True)
        assert [i.check for i in report.issues] == ["orphaned-docket"]


def test_report_counts(store: MatterStore, docket: Docket):
    a = store.create("A").id
    b = store.create("B").id
    _set_list(store, a, "relates", [b])
    _set_list(store, b, "needs", ["zzzz"])
    docket.add("yyyy")

    report = audit(store, docket, fix=True)
    out = report.to_dict()
    assert out["count"] == 3
    assert out["fixed"] == 3
    assert {i["check"] for i in out["issues"]} == {"orphaned-docket", "dangling-needs", "asymmetric-relates"}
    assert audit(store, docket).count == 0


def test_check_mode_never_writes(store: MatterStore, docket: Docket):
    a = store.create("A").id
    b = store.create("B", {"status": "done"}).id
    _set_list(store, a, "relates", [b])
    _set_list(store, a, "needs", ["zzzz"])
    docket.add(b)
    docket.add("yyyy")

    files = {p.name: p.read_bytes() for p in store.matters_dir.iterdir()}
    docket_bytes = docket.path.read_bytes()

    assert audit(store, docket).count == 4
    assert {p.name: p.read_bytes() for p in store.matters_dir.iterdir()} == files
    assert docket.path.read_bytes() == docket_bytes
