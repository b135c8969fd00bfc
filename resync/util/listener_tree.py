"""
Listener Tree - Arena-Allocated Path Pattern Trie
=================================================

This module stores mutation listeners in a trie keyed by path segments, so that
finding every listener interested in a mutated path costs O(path depth) rather
than O(all listeners).

Key Features:
- Nodes live in an arena of parallel lists and are addressed by integer ids
- Listeners hold the id of their node (no node <-> listener reference cycles)
- O(1) removal: the node id is stored on the listener and each node keeps
  its listeners in an insertion-ordered dict keyed by ``id(listener)``
- Literal, single-wildcard (``*``) and tail-wildcard (``**``) children
- Freed node ids are recycled through a free list
- Empty branches are pruned as listeners are removed

Lookup order is fixed and part of the contract, since callers rely on
deterministic delivery order:

1. listeners of the ``**`` child at the current depth
2. listeners terminating at the current node, once the path is exhausted
3. recursion into the literal child for the next segment
4. recursion into the ``*`` child
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from .path_pattern import SINGLE_WILDCARD, TAIL_WILDCARD, PatternError

ROOT = 0


class ListenerTree:
    """
    Trie of listeners indexed by pattern segments.

    Each node id indexes into parallel arrays:
    - ``children[id]``: literal segment -> child node id
    - ``wildcard[id]``: id of the ``*`` child, or None
    - ``tail[id]``: id of the ``**`` child, or None
    - ``listeners[id]``: ``id(listener) -> listener`` for listeners whose
      pattern terminates at this node, in registration order
    - ``parents[id]`` / ``parent_keys[id]``: link back up for pruning

    Listeners are any objects with a writable ``node`` attribute; the tree
    stores the holding node id there when the listener is added.
    """

    def __init__(self):
        self.children: List[Optional[Dict[str, int]]] = []
        self.wildcard: List[Optional[int]] = []
        self.tail: List[Optional[int]] = []
        self.listeners: List[Optional[Dict[int, Any]]] = []
        self.parents: List[Optional[int]] = []
        self.parent_keys: List[Optional[str]] = []

        # Free list for reuse
        self.free_list: List[int] = []
        self._listener_count = 0

        self._allocate(None, None)

    def _allocate(self, parent: Optional[int], key: Optional[str]) -> int:
        if self.free_list:
            node_id = self.free_list.pop()
            self.children[node_id] = None
            self.wildcard[node_id] = None
            self.tail[node_id] = None
            self.listeners[node_id] = None
            self.parents[node_id] = parent
            self.parent_keys[node_id] = key
            return node_id

        node_id = len(self.children)
        self.children.append(None)
        self.wildcard.append(None)
        self.tail.append(None)
        self.listeners.append(None)
        self.parents.append(parent)
        self.parent_keys.append(key)
        return node_id

    def _free(self, node_id: int) -> None:
        self.children[node_id] = None
        self.wildcard[node_id] = None
        self.tail[node_id] = None
        self.listeners[node_id] = None
        self.parents[node_id] = None
        self.parent_keys[node_id] = None
        self.free_list.append(node_id)

    def _child(self, node_id: int, segment: str) -> Optional[int]:
        if segment == TAIL_WILDCARD:
            return self.tail[node_id]
        if segment == SINGLE_WILDCARD:
            return self.wildcard[node_id]
        children = self.children[node_id]
        return children.get(segment) if children else None

    def _get_or_create_child(self, node_id: int, segment: str) -> int:
        child = self._child(node_id, segment)
        if child is not None:
            return child
        child = self._allocate(node_id, segment)
        if segment == TAIL_WILDCARD:
            self.tail[node_id] = child
        elif segment == SINGLE_WILDCARD:
            self.wildcard[node_id] = child
        else:
            if self.children[node_id] is None:
                self.children[node_id] = {}
            self.children[node_id][segment] = child
        return child

    def _is_empty(self, node_id: int) -> bool:
        return (
            not self.listeners[node_id]
            and not self.children[node_id]
            and self.wildcard[node_id] is None
            and self.tail[node_id] is None
        )

    def _prune(self, node_id: int) -> None:
        """Free empty nodes from ``node_id`` upward, stopping at the root."""
        while node_id != ROOT and self._is_empty(node_id):
            parent = self.parents[node_id]
            key = self.parent_keys[node_id]
            if key == TAIL_WILDCARD:
                self.tail[parent] = None
            elif key == SINGLE_WILDCARD:
                self.wildcard[parent] = None
            else:
                children = self.children[parent]
                del children[key]
                if not children:
                    self.children[parent] = None
            self._free(node_id)
            node_id = parent

    def add_listener(self, segments: Sequence[str], listener: Any) -> int:
        """
        Register a listener under a pattern.

        Args:
            segments: Pattern segments; ``**`` is only legal last
            listener: Object with a writable ``node`` attribute

        Returns:
            Id of the node now holding the listener

        Raises:
            PatternError: If the pattern is empty or ``**`` is not last
        """
        if not segments:
            raise PatternError("Path pattern may not be empty")
        last = len(segments) - 1
        node_id = ROOT
        for i, segment in enumerate(segments):
            if segment == TAIL_WILDCARD and i != last:
                raise PatternError("Path pattern may contain `**` at end only")
            node_id = self._get_or_create_child(node_id, segment)

        if self.listeners[node_id] is None:
            self.listeners[node_id] = {}
        self.listeners[node_id][id(listener)] = listener
        listener.node = node_id
        self._listener_count += 1
        return node_id

    def remove_own_listener(self, listener: Any) -> bool:
        """
        Remove a listener from the node recorded on it.

        Returns:
            True if the listener was removed, False if it was not attached
        """
        node_id = getattr(listener, "node", None)
        if node_id is None:
            return False
        listeners = self.listeners[node_id]
        listener.node = None
        key = id(listener)
        if not listeners or listeners.get(key) is not listener:
            return False
        del listeners[key]
        self._listener_count -= 1
        self._prune(node_id)
        return True

    def get_wildcard_listeners(self, segments: Sequence[str]) -> List[Any]:
        """
        Collect every listener whose pattern matches a concrete path.

        The returned list is a snapshot; removing listeners while iterating it
        is safe.
        """
        matches: List[Any] = []
        self._collect(ROOT, segments, 0, matches)
        return matches

    def _collect(
        self, node_id: int, segments: Sequence[str], index: int, matches: List[Any]
    ) -> None:
        tail = self.tail[node_id]
        if tail is not None and self.listeners[tail]:
            matches.extend(self.listeners[tail].values())

        if index == len(segments):
            if self.listeners[node_id]:
                matches.extend(self.listeners[node_id].values())
            return

        children = self.children[node_id]
        if children:
            child = children.get(segments[index])
            if child is not None:
                self._collect(child, segments, index + 1, matches)

        wildcard = self.wildcard[node_id]
        if wildcard is not None:
            self._collect(wildcard, segments, index + 1, matches)

    def remove_all_listeners(self, segments: Optional[Sequence[str]] = None) -> int:
        """
        Detach all listeners at or below a pattern prefix.

        Args:
            segments: Pattern prefix to clear; None or empty clears the tree

        Returns:
            Number of listeners removed
        """
        if not segments:
            node_id = ROOT
        else:
            node_id = ROOT
            for segment in segments:
                node_id = self._child(node_id, segment)
                if node_id is None:
                    return 0

        removed = 0
        stack = [node_id]
        visited = []
        while stack:
            current = stack.pop()
            visited.append(current)
            for listener in (self.listeners[current] or {}).values():
                listener.node = None
                removed += 1
            self.listeners[current] = None
            if self.children[current]:
                stack.extend(self.children[current].values())
            if self.wildcard[current] is not None:
                stack.append(self.wildcard[current])
            if self.tail[current] is not None:
                stack.append(self.tail[current])

        # Free descendants deepest first, then prune the cleared branch
        for current in reversed(visited[1:]):
            self._free(current)
        self.children[node_id] = None
        self.wildcard[node_id] = None
        self.tail[node_id] = None
        self._prune(node_id)

        self._listener_count -= removed
        if removed:
            logging.debug(f"Removed {removed} listeners under {list(segments or ())}")
        return removed

    @property
    def node_count(self) -> int:
        """Number of live nodes, including the root."""
        return len(self.children) - len(self.free_list)

    def __len__(self) -> int:
        return self._listener_count

    def __bool__(self) -> bool:
        return True
