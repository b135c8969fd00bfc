"""
resync - Realtime Model Synchronization Core
============================================

In-process mutation event dispatch and document retention for a realtime
model-synchronization layer. Observers register interest in paths of a
hierarchical data tree and are notified of every local mutation in a stable,
non-interleaved order; documents loaded from a remote backend are reference
counted and unloaded once nothing needs them.
"""

from .config import ModelOptions
from .documents import Collection, CollectionMap, LocalDoc, QueryRegistry
from .emitter import DispatchState, MutationCycleError, MutationEmitter
from .events import (
    ALL,
    EVENT_TYPES,
    MUTATION_EVENTS,
    ChangeEvent,
    InsertEvent,
    LoadEvent,
    MoveEvent,
    MutationEvent,
    MutationListener,
    Passed,
    RemoveEvent,
    UnloadEvent,
    legacy_args,
)
from .model import Model, create_model
from .protocols import Connection, Query, ShareDoc
from .subscriptions import SubscriptionLifecycle, SubscriptionPathError
from .util import (
    AsyncioScheduler,
    CollectionCounter,
    ListenerTree,
    ManualScheduler,
    PatternError,
    Scheduler,
)

__all__ = [
    # Model
    "Model",
    "ModelOptions",
    "create_model",
    "SubscriptionLifecycle",
    # Events
    "ALL",
    "EVENT_TYPES",
    "MUTATION_EVENTS",
    "MutationEvent",
    "ChangeEvent",
    "LoadEvent",
    "UnloadEvent",
    "InsertEvent",
    "RemoveEvent",
    "MoveEvent",
    "MutationListener",
    "Passed",
    "legacy_args",
    # Dispatch
    "DispatchState",
    "MutationEmitter",
    "ListenerTree",
    # Documents
    "LocalDoc",
    "Collection",
    "CollectionMap",
    "QueryRegistry",
    "CollectionCounter",
    # External contracts
    "Connection",
    "Query",
    "ShareDoc",
    # Scheduling
    "Scheduler",
    "AsyncioScheduler",
    "ManualScheduler",
    # Exceptions
    "MutationCycleError",
    "PatternError",
    "SubscriptionPathError",
]
