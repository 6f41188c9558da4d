from __future__ import annotations

import pytest

from mull.docket import Docket
from mull.errors import AfterIDNotFoundError, DecodeError, DuplicateEntryError, NotFoundError
from mull.models import DocketEntry


def test_missing_file_is_empty(docket: Docket):
    assert docket.load() == []


def test_empty_file_is_empty(docket: Docket):
    docket.path.parent.mkdir(parents=True)
    docket.path.write_text("")
    assert docket.load() == []


def test_save_and_load(docket: Docket):
    docket.save([DocketEntry("a1b2", "first"), DocketEntry("0412")])
    assert docket.load() == [DocketEntry("a1b2", "first"), DocketEntry("0412")]
    assert docket.path.read_text() == "- id: a1b2\n  note: first\n- id: '0412'\n"


def test_malformed_file(docket: Docket):
    docket.path.parent.mkdir(parents=True)
    docket.path.write_text("id: a1b2\n")
    with pytest.raises(DecodeError):
        docket.load()


def test_add_appends(docket: Docket):
    docket.add("a")
    docket.add("b", note="later")
    assert docket.load() == [DocketEntry("a"), DocketEntry("b", "later")]


def test_add_duplicate(docket: Docket):
    docket.add("a")
    with pytest.raises(DuplicateEntryError):
        docket.add("a")


def test_add_after(docket: Docket):
    docket.add("a")
    docket.add("c")
    docket.add("b", "a")
    assert docket.ids() == ["a", "b", "c"]


def test_add_after_last(docket: Docket):
    docket.add("a")
    docket.add("b", "a")
    assert docket.ids() == ["a", "b"]


def test_add_after_not_found(docket: Docket):
    docket.add("a")
    with pytest.raises(AfterIDNotFoundError):
        docket.add("b", "zzzz")
    assert docket.ids() == ["a"]


def test_remove_keeps_order(docket: Docket):
    for matter_id in ("a", "b", "c", "d"):
        docket.add(matter_id)
    docket.remove("b")
    assert docket.ids() == ["a", "c", "d"]


def test_remove_not_found(docket: Docket):
    with pytest.raises(NotFoundError):
        docket.remove("a")


def test_discard(docket: Docket):
    docket.add("a")
    assert docket.discard("a") is True
    assert docket.discard("a") is False
    assert docket.ids() == []


class TestMove:
    @pytest.fixture
    def abc(self, docket: Docket) -> Docket:
        for matter_id in ("a", "b", "c"):
            docket.add(matter_id)
        return docket

    def test_move_after(self, abc: Docket):
        abc.move("c", "a")
        assert abc.ids() == ["a", "c", "b"]

    def test_move_forward(self, abc: Docket):
        abc.move("a", "c")
        assert abc.ids() == ["b", "c", "a"]

    def test_move_to_same_place(self, abc: Docket):
        abc.move("b", "a")
        assert abc.ids() == ["a", "b", "c"]

    def test_move_keeps_note(self, docket: Docket):
        docket.add("a", note="keep me")
        docket.add("b")
        docket.move("a", "b")
        assert docket.load() == [DocketEntry("b"), DocketEntry("a", "keep me")]

    def test_move_not_found(self, abc: Docket):
        with pytest.raises(NotFoundError):
            abc.move("zzzz", "a")

    def test_move_after_not_found(self, abc: Docket):
        with pytest.raises(AfterIDNotFoundError):
            abc.move("a", "zzzz")
        assert abc.ids() == ["a", "b", "c"]

    def test_move_after_itself(self, abc: Docket):
        with pytest.raises(AfterIDNotFoundError):
            abc.move("b", "b")
        assert abc.ids() == ["a", "b", "c"]
