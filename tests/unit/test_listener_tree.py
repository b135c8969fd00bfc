"""
Tests for the arena-allocated ListenerTree.
"""

from types import SimpleNamespace

import pytest

from resync.util.listener_tree import ListenerTree
from resync.util.path_pattern import PatternError


def make_listener(name):
    return SimpleNamespace(name=name, node=None)


def names(listeners):
    return [listener.name for listener in listeners]


def add(tree, pattern, name):
    listener = make_listener(name)
    tree.add_listener(tuple(pattern.split(".")), listener)
    return listener


@pytest.mark.unit
class TestListenerTreeRegistration:
    """Adding listeners to the tree."""

    def test_add_listener_returns_node_and_records_it(self):
        """The holding node id is returned and stored on the listener"""
        tree = ListenerTree()
        listener = make_listener("a")

        node = tree.add_listener(("posts", "1"), listener)

        assert listener.node == node
        assert node != 0
        assert len(tree) == 1

    def test_same_pattern_reuses_node(self):
        """Listeners on the same pattern share one node"""
        tree = ListenerTree()
        first = add(tree, "posts.*", "first")
        second = add(tree, "posts.*", "second")

        assert first.node == second.node
        assert tree.node_count == 3  # root, posts, *

    def test_tail_wildcard_must_be_last(self):
        """A `**` anywhere but the end is rejected before touching the tree"""
        tree = ListenerTree()

        with pytest.raises(PatternError):
            tree.add_listener(("posts", "**", "title"), make_listener("bad"))
        assert len(tree) == 0

    def test_empty_pattern_rejected(self):
        """An empty pattern is rejected"""
        tree = ListenerTree()

        with pytest.raises(PatternError):
            tree.add_listener((), make_listener("bad"))


@pytest.mark.unit
class TestListenerTreeLookup:
    """Matching concrete paths against registered patterns."""

    def test_exact_pattern_matches_only_exact_path(self):
        """Literal patterns match only the identical path"""
        tree = ListenerTree()
        add(tree, "posts.1", "exact")

        assert names(tree.get_wildcard_listeners(("posts", "1"))) == ["exact"]
        assert tree.get_wildcard_listeners(("posts",)) == []
        assert tree.get_wildcard_listeners(("posts", "1", "title")) == []
        assert tree.get_wildcard_listeners(("posts", "2")) == []

    def test_single_wildcard_matches_exactly_one_segment(self):
        """`*` matches one segment, not zero and not two"""
        tree = ListenerTree()
        add(tree, "a.*", "star")

        assert names(tree.get_wildcard_listeners(("a", "x"))) == ["star"]
        assert tree.get_wildcard_listeners(("a",)) == []
        assert tree.get_wildcard_listeners(("a", "x", "y")) == []

    def test_tail_wildcard_matches_any_suffix_including_empty(self):
        """`**` matches the prefix itself and anything below it"""
        tree = ListenerTree()
        add(tree, "a.**", "tail")

        assert names(tree.get_wildcard_listeners(("a",))) == ["tail"]
        assert names(tree.get_wildcard_listeners(("a", "x"))) == ["tail"]
        assert names(tree.get_wildcard_listeners(("a", "x", "y"))) == ["tail"]
        assert tree.get_wildcard_listeners(("b",)) == []

    def test_bare_tail_wildcard_matches_everything(self):
        """A root-level `**` matches every path"""
        tree = ListenerTree()
        add(tree, "**", "all")

        assert names(tree.get_wildcard_listeners(("x",))) == ["all"]
        assert names(tree.get_wildcard_listeners(("x", "y", "z"))) == ["all"]

    def test_listeners_on_same_pattern_in_registration_order(self):
        """Listeners on one pattern are returned in the order they were added"""
        tree = ListenerTree()
        add(tree, "posts.1", "first")
        add(tree, "posts.1", "second")
        add(tree, "posts.1", "third")

        assert names(tree.get_wildcard_listeners(("posts", "1"))) == [
            "first",
            "second",
            "third",
        ]

    def test_traversal_order_is_tail_then_exact_then_literal_then_wildcard(self):
        """Matches are ordered by depth, `**` first, then literal before `*`"""
        tree = ListenerTree()
        add(tree, "posts.*.title", "star-title")
        add(tree, "posts.1.title", "exact-title")
        add(tree, "posts.**", "posts-tail")
        add(tree, "posts.1.**", "doc-tail")
        add(tree, "**", "root-tail")

        result = names(tree.get_wildcard_listeners(("posts", "1", "title")))

        assert result == [
            "root-tail",
            "posts-tail",
            "doc-tail",
            "exact-title",
            "star-title",
        ]

    def test_lookup_returns_snapshot(self):
        """Removing a listener does not change an already returned list"""
        tree = ListenerTree()
        first = add(tree, "posts.1", "first")
        add(tree, "posts.1", "second")

        snapshot = tree.get_wildcard_listeners(("posts", "1"))
        tree.remove_own_listener(first)

        assert names(snapshot) == ["first", "second"]
        assert names(tree.get_wildcard_listeners(("posts", "1"))) == ["second"]


@pytest.mark.unit
class TestListenerTreeRemoval:
    """Removing listeners and pruning empty nodes."""

    def test_remove_own_listener_detaches_and_prunes(self):
        """Removing the last listener frees the now empty branch"""
        tree = ListenerTree()
        listener = add(tree, "posts.1.title", "a")

        assert tree.remove_own_listener(listener)
        assert listener.node is None
        assert len(tree) == 0
        assert tree.node_count == 1

    def test_remove_keeps_nodes_with_other_listeners(self):
        """Branches still holding listeners are not pruned"""
        tree = ListenerTree()
        keep = add(tree, "posts.1", "keep")
        drop = add(tree, "posts.1.title", "drop")

        tree.remove_own_listener(drop)

        assert names(tree.get_wildcard_listeners(("posts", "1"))) == ["keep"]
        assert keep.node is not None
        assert tree.node_count == 3

    def test_remove_detached_listener_is_noop(self):
        """Removing a listener twice is harmless"""
        tree = ListenerTree()
        listener = add(tree, "posts.1", "a")

        assert tree.remove_own_listener(listener)
        assert not tree.remove_own_listener(listener)
        assert len(tree) == 0

    def test_freed_nodes_are_reused(self):
        """Churn does not grow the arena"""
        tree = ListenerTree()
        for _ in range(100):
            listener = add(tree, "posts.*.comments.**", "churn")
            tree.remove_own_listener(listener)

        assert len(tree.children) <= 5
        assert tree.node_count == 1

    def test_remove_all_listeners_clears_tree(self):
        """remove_all_listeners with no prefix clears every listener"""
        tree = ListenerTree()
        a = add(tree, "posts.1", "a")
        b = add(tree, "users.*", "b")

        removed = tree.remove_all_listeners()

        assert removed == 2
        assert a.node is None and b.node is None
        assert len(tree) == 0
        assert tree.node_count == 1

    def test_remove_all_listeners_under_prefix(self):
        """Only listeners at or below the prefix are removed"""
        tree = ListenerTree()
        add(tree, "posts.1", "doc")
        add(tree, "posts.1.title", "title")
        add(tree, "posts.1.**", "tail")
        other = add(tree, "posts.2", "other")

        removed = tree.remove_all_listeners(("posts", "1"))

        assert removed == 3
        assert tree.get_wildcard_listeners(("posts", "1", "title")) == []
        assert names(tree.get_wildcard_listeners(("posts", "2"))) == ["other"]
        assert other.node is not None

    def test_remove_all_listeners_unknown_prefix(self):
        """An unregistered prefix removes nothing"""
        tree = ListenerTree()
        add(tree, "posts.1", "a")

        assert tree.remove_all_listeners(("users",)) == 0
        assert len(tree) == 1

    def test_remove_distinguishes_equal_listeners(self):
        """Removal is by identity, even for listeners that compare equal"""
        tree = ListenerTree()
        first = add(tree, "posts.1", "same")
        second = add(tree, "posts.1", "same")

        assert first == second
        assert tree.remove_own_listener(second)

        assert tree.get_wildcard_listeners(("posts", "1")) == [first]
        assert first.node is not None

    def test_remove_from_middle_keeps_registration_order(self):
        tree = ListenerTree()
        add(tree, "posts.1", "a")
        middle = add(tree, "posts.1", "b")
        add(tree, "posts.1", "c")

        tree.remove_own_listener(middle)
        add(tree, "posts.1", "d")

        assert names(tree.get_wildcard_listeners(("posts", "1"))) == ["a", "c", "d"]

    def test_remove_with_stale_node_is_noop(self):
        """A listener whose node no longer holds it is not removed twice"""
        tree = ListenerTree()
        listener = add(tree, "posts.1", "a")
        node = listener.node
        tree.remove_own_listener(listener)
        add(tree, "posts.1", "b")
        listener.node = node

        assert not tree.remove_own_listener(listener)
        assert listener.node is None
        assert len(tree) == 1
