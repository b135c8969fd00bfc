"""
resync Utilities - Data Structures Behind the Model
===================================================

This package contains the standalone data structures the model is built on.

Classes:
- ListenerTree: Arena-allocated trie of listeners indexed by path pattern
- PathPattern: Parsed, validated listener pattern with capture positions
- CollectionCounter: collection -> id -> count reference map
- AsyncGroup: Fan-in of several completion callbacks
- AsyncioScheduler / ManualScheduler: Next-tick and delayed callbacks
"""

from .async_group import AsyncGroup
from .collection_counter import CollectionCounter
from .listener_tree import ListenerTree
from .path_pattern import (
    SINGLE_WILDCARD,
    TAIL_WILDCARD,
    PathPattern,
    PatternError,
    configure_pattern_cache,
    join_path,
    normalize_pattern,
    parse_pattern,
    split_path,
)
from .scheduler import AsyncioScheduler, ManualScheduler, Scheduler

__all__ = [
    "AsyncGroup",
    "CollectionCounter",
    "ListenerTree",
    "PathPattern",
    "PatternError",
    "SINGLE_WILDCARD",
    "TAIL_WILDCARD",
    "configure_pattern_cache",
    "join_path",
    "normalize_pattern",
    "parse_pattern",
    "split_path",
    "Scheduler",
    "AsyncioScheduler",
    "ManualScheduler",
]
