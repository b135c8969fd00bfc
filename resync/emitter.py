"""
resync Mutation Emitter - Ordered, Cycle-Bounded Event Delivery
===============================================================

The emitter delivers mutation events to listeners without ever interleaving
two dispatches. When a listener makes another mutation while an event is being
delivered, the new event is queued and delivered after the current one has
reached every listener, so later listeners never see events out of order.

Delivery of one emission:

1. Immediate-type listeners (``changeImmediate`` etc.) run synchronously,
   even while another emission is in flight.
2. If an emission is already in flight, the event is queued and ``emit``
   returns.
3. Otherwise the event goes to its own-type listeners, then to ``all``
   listeners, then the queue is drained in whole batches until empty.

A listener that keeps re-triggering itself would never let the queue drain,
so the number of drain passes is capped. Exceeding the cap raises
MutationCycleError, which is not recoverable: it always points to a listener
that mutates the data it listens to.

Listener exceptions are not caught here; they surface at the call site of the
mutation that triggered them.
"""

import json
import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .events import ALL, EVENT_TYPES, MutationEvent, MutationListener, Passed, call_listeners
from .util.listener_tree import ListenerTree

DEFAULT_MAX_CYCLES = 1000


class MutationCycleError(RuntimeError):
    """Raised when queued mutation events keep generating more events."""

    def __init__(self, message: str, queue: Optional[list] = None):
        super().__init__(message)
        self.queue = queue or []


def _describe_queue(queue: List[Tuple[Tuple[str, ...], MutationEvent]]) -> str:
    entries = [
        {"path": ".".join(segments), "type": event.type, "args": event.get_args()}
        for segments, event in queue
    ]
    return json.dumps(entries, indent=2, default=repr)


class DispatchState:
    """
    Mutable state shared by a root model and every scope derived from it.

    Attributes:
        trees: One ListenerTree per mutation event type, immediate type and
            ``all``
        emitting: True while an emission is being delivered
        queue: Events emitted during delivery, waiting their turn
        context_listeners: Event-context id -> listeners added under it
        passed: Root passed-context bag
        max_cycles: Cap on queue drain passes per emission
    """

    def __init__(self, max_cycles: int = DEFAULT_MAX_CYCLES):
        self.trees: Dict[str, ListenerTree] = {
            event_type: ListenerTree() for event_type in EVENT_TYPES
        }
        self.emitting = False
        self.queue: List[Tuple[Tuple[str, ...], MutationEvent]] = []
        self.context_listeners: Dict[Any, List[MutationListener]] = defaultdict(list)
        self.passed = Passed()
        self.max_cycles = max_cycles

    def tree(self, event_type: str) -> Optional[ListenerTree]:
        return self.trees.get(event_type)


class MutationEmitter:
    """Serializes mutation event delivery against a DispatchState."""

    def __init__(self, state: DispatchState):
        self.state = state

    def call_mutation_listeners(
        self, event_type: str, segments: Sequence[str], event: MutationEvent
    ) -> None:
        tree = self.state.trees[event_type]
        listeners = tree.get_wildcard_listeners(segments)
        call_listeners(listeners, segments, event)

    def emit(self, segments: Sequence[str], event: MutationEvent, silent: bool = False) -> None:
        """
        Deliver a mutation event at a path.

        Args:
            segments: Path the mutation happened at
            event: The mutation event
            silent: Skip delivery entirely (emitted from a silent scope)

        Raises:
            MutationCycleError: If draining the queue takes more passes than
                the configured cap
        """
        if silent:
            return
        state = self.state
        segments = tuple(segments)

        self.call_mutation_listeners(event.immediate_type, segments, event)

        if state.emitting:
            state.queue.append((segments, event))
            return

        state.emitting = True
        try:
            self.call_mutation_listeners(event.type, segments, event)
            self.call_mutation_listeners(ALL, segments, event)

            remaining = state.max_cycles
            while state.queue:
                remaining -= 1
                if remaining < 0:
                    raise MutationCycleError(
                        "Maximum model mutation event cycles exceeded. Most likely, "
                        "an event listener is performing a mutation that emits an "
                        "event to the same listener, directly or indirectly. This "
                        "creates an infinite cycle. Queue details: \n"
                        + _describe_queue(state.queue),
                        queue=list(state.queue),
                    )
                batch = state.queue
                state.queue = []
                logging.debug(f"Draining {len(batch)} queued mutation events")
                for queued_segments, queued_event in batch:
                    self.call_mutation_listeners(
                        queued_event.type, queued_segments, queued_event
                    )
                    self.call_mutation_listeners(ALL, queued_segments, queued_event)
        finally:
            state.emitting = False
            state.queue = []
