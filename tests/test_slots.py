"""Tests for the single-occupant registry."""
from voice.slots import SingleSlot


class Handle:
    def __init__(self, name):
        self.name = name


def _slot():
    released = []
    return SingleSlot("test", release=released.append), released


class TestSingleSlot:

    def test_starts_empty(self):
        slot, _ = _slot()
        assert slot.current is None
        assert not slot.occupied

    def test_replace_releases_previous_first(self):
        slot, released = _slot()
        a, b = Handle("a"), Handle("b")
        slot.replace(a)
        previous = slot.replace(b)
        assert previous is a
        assert released == [a]
        assert slot.holds(b)

    def test_compare_and_clear_matches_only_current(self):
        slot, released = _slot()
        a, b = Handle("a"), Handle("b")
        slot.replace(a)
        slot.replace(b)
        assert slot.compare_and_clear(a) is False
        assert slot.holds(b)
        assert slot.compare_and_clear(b) is True
        assert released == [a, b]
        assert not slot.occupied

    def test_compare_and_clear_none(self):
        slot, released = _slot()
        assert slot.compare_and_clear(None) is False
        assert released == []

    def test_clear_returns_previous(self):
        slot, released = _slot()
        a = Handle("a")
        slot.replace(a)
        assert slot.clear() is a
        assert slot.clear() is None
        assert released == [a]

    def test_release_sees_empty_slot(self):
        seen = []
        slot = SingleSlot("test", release=lambda h: seen.append(slot.current))
        slot.replace(Handle("a"))
        slot.clear()
        assert seen == [None]
