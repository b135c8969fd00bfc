"""
resync Mutation Events - Event Taxonomy and Listener Adapters
=============================================================

Every local mutation of the model data tree is described by one of six event
types. Events are emitted at the path that changed and delivered to listeners
whose pattern matches that path.

Event Types
-----------

==========  ===================  ===========================================
type        immediate type       payload
==========  ===================  ===========================================
change      changeImmediate      value, previous
load        loadImmediate        value (alias: document)
unload      unloadImmediate      previous (alias: previous_document)
insert      insertImmediate      index, values
remove      removeImmediate      index, values (alias: removed)
move        moveImmediate        from_index, to_index, how_many
==========  ===================  ===========================================

Each event also carries ``passed``, the context bag of the scope that made the
mutation. The ``all`` pseudo-type receives every queued event.

Listener Delivery
-----------------

Listeners registered with ``use_event_objects=True`` are called as
``callback(event, captures)``. Otherwise they use the legacy positional form
``callback(*captures, *event.get_args())``, with the event type inserted
after the captures for ``all`` listeners.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, List, Optional, Sequence, Tuple

from .util.path_pattern import PathPattern, parse_pattern

ALL = "all"


class Passed(dict):
    """
    Context bag threaded through a mutation to describe who made it and why.

    A plain dict with attribute access, so listeners can write either
    ``passed["source"]`` or ``passed.source``.
    """

    def __getattr__(self, name: str) -> Any:
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def merged(self, other: Optional[Dict[str, Any]], invert: bool = False) -> "Passed":
        """
        Return a new bag combining this one with ``other``.

        Later keys win: by default ``other`` overrides this bag; with
        ``invert`` this bag's keys win.
        """
        other = other or {}
        if invert:
            return Passed({**other, **self})
        return Passed({**self, **other})


# ============================================================================
# EVENT TYPES
# ============================================================================


@dataclass(frozen=True)
class MutationEvent:
    """Base class for mutation events."""

    type: ClassVar[str] = ""
    immediate_type: ClassVar[str] = ""

    def clone(self) -> "MutationEvent":
        raise NotImplementedError

    def get_args(self) -> List[Any]:
        """Positional arguments for legacy-style listeners."""
        raise NotImplementedError


@dataclass(frozen=True)
class ChangeEvent(MutationEvent):
    value: Any
    previous: Any
    passed: Passed = field(default_factory=Passed)

    type: ClassVar[str] = "change"
    immediate_type: ClassVar[str] = "changeImmediate"

    def clone(self) -> "ChangeEvent":
        return ChangeEvent(self.value, self.previous, self.passed)

    def get_args(self) -> List[Any]:
        return [self.value, self.previous, self.passed]


@dataclass(frozen=True)
class LoadEvent(MutationEvent):
    value: Any
    passed: Passed = field(default_factory=Passed)

    type: ClassVar[str] = "load"
    immediate_type: ClassVar[str] = "loadImmediate"

    @property
    def document(self) -> Any:
        return self.value

    def clone(self) -> "LoadEvent":
        return LoadEvent(self.value, self.passed)

    def get_args(self) -> List[Any]:
        return [self.value, self.passed]


@dataclass(frozen=True)
class UnloadEvent(MutationEvent):
    previous: Any
    passed: Passed = field(default_factory=Passed)

    type: ClassVar[str] = "unload"
    immediate_type: ClassVar[str] = "unloadImmediate"

    @property
    def previous_document(self) -> Any:
        return self.previous

    def clone(self) -> "UnloadEvent":
        return UnloadEvent(self.previous, self.passed)

    def get_args(self) -> List[Any]:
        return [self.previous, self.passed]


@dataclass(frozen=True)
class InsertEvent(MutationEvent):
    index: int
    values: List[Any]
    passed: Passed = field(default_factory=Passed)

    type: ClassVar[str] = "insert"
    immediate_type: ClassVar[str] = "insertImmediate"

    def clone(self) -> "InsertEvent":
        return InsertEvent(self.index, self.values, self.passed)

    def get_args(self) -> List[Any]:
        return [self.index, self.values, self.passed]


@dataclass(frozen=True)
class RemoveEvent(MutationEvent):
    index: int
    values: List[Any]
    passed: Passed = field(default_factory=Passed)

    type: ClassVar[str] = "remove"
    immediate_type: ClassVar[str] = "removeImmediate"

    @property
    def removed(self) -> List[Any]:
        return self.values

    def clone(self) -> "RemoveEvent":
        return RemoveEvent(self.index, self.values, self.passed)

    def get_args(self) -> List[Any]:
        return [self.index, self.values, self.passed]


@dataclass(frozen=True)
class MoveEvent(MutationEvent):
    from_index: int
    to_index: int
    how_many: int
    passed: Passed = field(default_factory=Passed)

    type: ClassVar[str] = "move"
    immediate_type: ClassVar[str] = "moveImmediate"

    def clone(self) -> "MoveEvent":
        return MoveEvent(self.from_index, self.to_index, self.how_many, self.passed)

    def get_args(self) -> List[Any]:
        return [self.from_index, self.to_index, self.how_many, self.passed]


MUTATION_EVENTS: Dict[str, type] = {
    cls.type: cls
    for cls in (ChangeEvent, LoadEvent, UnloadEvent, InsertEvent, RemoveEvent, MoveEvent)
}

# Every listener tree key: each type, each immediate type, and "all"
EVENT_TYPES: Tuple[str, ...] = (
    (ALL,)
    + tuple(MUTATION_EVENTS)
    + tuple(cls.immediate_type for cls in MUTATION_EVENTS.values())
)


def is_mutation_type(event_type: str) -> bool:
    return event_type in EVENT_TYPES


# ============================================================================
# LISTENERS
# ============================================================================


class MutationListener:
    """
    A registered mutation listener.

    Attributes:
        pattern: Parsed pattern the listener was registered under
        event_context: Context tag for bulk removal, or None
        fn: Dispatch function, called as ``fn(segments, event)``
        node: Id of the listener tree node holding this listener, or None
            when the listener is detached
        event_type: Listener tree the listener was added to
    """

    __slots__ = ("pattern", "event_context", "fn", "node", "event_type")

    def __init__(
        self,
        pattern: PathPattern,
        event_context: Any,
        fn: Callable[[Sequence[str], MutationEvent], None],
    ):
        self.pattern = pattern
        self.event_context = event_context
        self.fn = fn
        self.node: Optional[int] = None
        self.event_type: Optional[str] = None

    @property
    def pattern_segments(self) -> Tuple[str, ...]:
        return self.pattern.segments

    @property
    def attached(self) -> bool:
        return self.node is not None

    def __repr__(self) -> str:
        return f"MutationListener({self.pattern}, context={self.event_context!r})"


def create_mutation_listener(
    pattern: str, event_context: Any, callback: Callable[[MutationEvent, list], None]
) -> MutationListener:
    """
    Build a listener that calls ``callback(event, captures)``.

    Raises:
        PatternError: If the pattern is malformed
    """
    parsed = parse_pattern(pattern)
    if parsed.has_captures:

        def fn(segments, event):
            callback(event, parsed.captures(segments))

    else:

        def fn(segments, event):
            callback(event, [])

    return MutationListener(parsed, event_context, fn)


def legacy_args(event_type: str, event: MutationEvent, captures: list) -> list:
    """Project a typed event into the legacy positional argument list."""
    if event_type == ALL:
        return [*captures, event.type, *event.get_args()]
    return [*captures, *event.get_args()]


def create_legacy_listener(
    event_type: str, pattern: str, event_context: Any, callback: Callable[..., None]
) -> MutationListener:
    """Build a listener that calls ``callback`` with positional arguments."""

    def adapter(event, captures):
        callback(*legacy_args(event_type, event, captures))

    return create_mutation_listener(pattern, event_context, adapter)


def call_listeners(listeners: List[MutationListener], segments, event) -> None:
    """Invoke listeners in order. Exceptions propagate to the caller."""
    for listener in listeners:
        listener.fn(segments, event)
    if listeners:
        logging.debug(
            f"Delivered {event.type} at {'.'.join(segments)} to {len(listeners)} listeners"
        )
