"""Unit tests for CollectionCounter."""

import pytest

from resync.util.collection_counter import CollectionCounter


@pytest.mark.unit
def test_absent_entries_read_as_zero():
    """Unknown collections and ids count as 0"""
    counter = CollectionCounter()

    assert counter.get("docs", "1") == 0
    assert len(counter) == 0


@pytest.mark.unit
def test_increment_returns_new_count():
    """increment() returns the count after incrementing"""
    counter = CollectionCounter()

    assert counter.increment("docs", "1") == 1
    assert counter.increment("docs", "1") == 2
    assert counter.increment("docs", "2") == 1
    assert counter.get("docs", "1") == 2


@pytest.mark.unit
def test_decrement_floors_at_zero():
    """Decrements count down to zero and never below"""
    counter = CollectionCounter()
    counter.increment("docs", "1")
    counter.increment("docs", "1")

    assert counter.decrement("docs", "1") == 1
    assert counter.decrement("docs", "1") == 0
    assert counter.decrement("docs", "1") == 0
    assert counter.get("docs", "1") == 0


@pytest.mark.unit
def test_decrement_absent_entry_is_noop():
    """Decrementing something never incremented returns 0"""
    counter = CollectionCounter()

    assert counter.decrement("docs", "missing") == 0
    assert counter.to_dict() == {}


@pytest.mark.unit
def test_zeroed_entries_are_dropped():
    """Entries and collections that reach zero are removed"""
    counter = CollectionCounter()
    counter.increment("docs", "1")
    counter.increment("users", "a")

    counter.decrement("docs", "1")

    assert counter.to_dict() == {"users": {"a": 1}}
    assert len(counter) == 1


@pytest.mark.unit
def test_collections_are_independent():
    """The same id in two collections is counted separately"""
    counter = CollectionCounter()
    counter.increment("docs", "1")

    assert counter.get("users", "1") == 0
    assert "docs" in repr(counter)
