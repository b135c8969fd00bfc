"""
resync Model - Scoped Views over a Synchronized Data Tree
=========================================================

A Model is a view of one shared data tree. The root model owns all state (the
documents, the listener trees, the reference counters); scoped views derived
from it with ``at()``, ``pass_()``, ``silent()`` or ``event_context()`` only
carry their own path prefix and emission settings.

Data is addressed by dotted paths whose first two segments are the collection
name and the document id: ``"posts.1.title"``.

Basic Usage
-----------

```python
from resync import create_model

model = create_model()
post = model.at("_page.post")

def on_title(value, previous, passed):
    print(f"title: {previous!r} -> {value!r} ({passed})")

post.on("change", "title", on_title)
post.pass_({"source": "editor"}).set("title", "Hello")
# title: None -> 'Hello' ({'source': 'editor'})
```

Listener Patterns
-----------------

- ``"posts.1.title"``: exactly this path
- ``"posts.*.title"``: any document's title; the id is captured
- ``"posts.1.**"``: the document and anything below it; the remaining dotted
  suffix is captured (``""`` for the document itself)

Listeners run synchronously inside the mutating call. Events emitted by a
listener are queued and delivered once the current event has reached every
listener (see ``resync.emitter``).
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from .config import ModelOptions
from .documents import CollectionMap, LocalDoc, QueryRegistry, is_local_collection
from .emitter import DispatchState, MutationEmitter
from .events import (
    ChangeEvent,
    InsertEvent,
    LoadEvent,
    MoveEvent,
    MutationEvent,
    MutationListener,
    Passed,
    RemoveEvent,
    create_legacy_listener,
    create_mutation_listener,
)
from .subscriptions import SubscriptionLifecycle
from .util.collection_counter import CollectionCounter
from .util.path_pattern import (
    TAIL_WILDCARD,
    PathLike,
    configure_pattern_cache,
    join_path,
    split_path,
)

ERROR = "error"


class Model(SubscriptionLifecycle):
    """
    A scoped view of the model data tree.

    Construct the root with ``Model(options)`` or ``create_model(...)``; derive
    scopes from it rather than constructing more roots.
    """

    def __init__(self, options: Optional[ModelOptions] = None):
        self.options = options or ModelOptions()
        configure_pattern_cache(self.options.pattern_cache_size)

        # Scope fields; every derived view carries its own copy
        self.root = self
        self._at: tuple = ()
        self._silent = False
        self._event_context: Any = None

        # Root-owned state shared by all scopes
        self._state = DispatchState(max_cycles=self.options.max_mutation_cycles)
        self._pass = self._state.passed
        self._emitter = MutationEmitter(self._state)
        self._event_listeners: Dict[str, List[Callable]] = {}
        self.collections = CollectionMap()
        self.queries = QueryRegistry()
        # Track the total number of active fetches and subscribes per doc
        self._fetched_docs = CollectionCounter()
        self._subscribed_docs = CollectionCounter()

    # ------------------------------------------------------------------
    # Configuration shortcuts
    # ------------------------------------------------------------------

    @property
    def connection(self):
        return self.root.options.connection

    @property
    def scheduler(self):
        return self.root.options.scheduler

    @property
    def fetch_only(self) -> bool:
        return self.root.options.fetch_only

    @property
    def unload_delay(self) -> float:
        return self.root.options.unload_delay

    # ------------------------------------------------------------------
    # Scopes
    # ------------------------------------------------------------------

    def _child(self) -> "Model":
        model = object.__new__(type(self))
        model.root = self.root
        model._at = self._at
        model._pass = self._pass
        model._silent = self._silent
        model._event_context = self._event_context
        return model

    def _split_path(self, subpath: PathLike = None) -> tuple:
        if isinstance(subpath, Model):
            return subpath._at
        return join_path(self._at, subpath)

    def path(self, subpath: PathLike = None) -> str:
        """Absolute dotted path of this scope, optionally extended by ``subpath``."""
        return ".".join(self._split_path(subpath))

    def at(self, subpath: PathLike) -> "Model":
        """Scope relative to this one."""
        model = self._child()
        model._at = self._split_path(subpath)
        return model

    def scope(self, path: PathLike = None) -> "Model":
        """Scope at an absolute path."""
        model = self._child()
        model._at = split_path(path)
        return model

    def parent(self, levels: int = 1) -> "Model":
        model = self._child()
        model._at = self._at[: max(len(self._at) - levels, 0)]
        return model

    def leaf(self) -> str:
        return self._at[-1] if self._at else ""

    def pass_(self, obj: Optional[Dict[str, Any]], invert: bool = False) -> "Model":
        """
        Scope whose mutations carry extra passed context.

        With ``invert`` the inherited context wins over ``obj`` on conflicting
        keys; otherwise ``obj`` wins.
        """
        model = self._child()
        model._pass = self._pass.merged(obj, invert=invert)
        return model

    @property
    def passed(self) -> Passed:
        return self._pass

    def silent(self, value: Optional[bool] = True) -> "Model":
        """Scope whose mutations do (or, with False, do not) skip listeners."""
        model = self._child()
        model._silent = True if value is None else bool(value)
        return model

    @property
    def is_silent(self) -> bool:
        return self._silent

    def event_context(self, context_id: Any) -> "Model":
        """Scope whose listeners are tagged for bulk removal."""
        model = self._child()
        model._event_context = context_id
        return model

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def get_doc(self, collection_name: str, doc_id: str) -> Optional[LocalDoc]:
        return self.root.collections.get_doc(collection_name, doc_id)

    def get_or_create_doc(self, collection_name: str, doc_id: str) -> LocalDoc:
        root = self.root
        doc = root.collections.get_doc(collection_name, doc_id)
        if doc is not None:
            return doc
        share_doc = None
        if not is_local_collection(collection_name) and self.connection is not None:
            share_doc = self.connection.get(collection_name, doc_id)
        doc = LocalDoc(collection_name, doc_id, share_doc)
        root.collections.get_or_create(collection_name).add(doc)
        logging.debug(f"Created local doc {collection_name}.{doc_id}")
        return doc

    def add_query(self, query) -> Any:
        """Track a live query so the documents in its results stay resident."""
        return self.root.queries.add(query)

    def remove_query(self, query) -> None:
        self.root.queries.remove(query)

    # ------------------------------------------------------------------
    # Data access and mutation
    # ------------------------------------------------------------------

    def get(self, subpath: PathLike = None) -> Any:
        segments = self._split_path(subpath)
        collections = self.root.collections
        if not segments:
            return {
                collection.name: {doc.id: doc.data for doc in collection}
                for collection in collections
            }
        collection = collections.get(segments[0])
        if collection is None:
            return None
        if len(segments) == 1:
            return {doc.id: doc.data for doc in collection}
        doc = collection.get(segments[1])
        if doc is None:
            return None
        return doc.get(segments[2:])

    def _doc_for_write(self, segments: tuple, method: str) -> LocalDoc:
        if len(segments) < 2:
            raise ValueError(
                f"Cannot {method} at path '{'.'.join(segments)}': "
                "mutations must address a document (collection.id)"
            )
        return self.get_or_create_doc(segments[0], segments[1])

    def _emit_mutation(self, segments, event: MutationEvent) -> None:
        self.root._emitter.emit(segments, event, silent=self._silent)

    def set(self, subpath: PathLike, value: Any) -> Any:
        """Set a value, returning the previous one. Emits ``change``."""
        segments = self._split_path(subpath)
        doc = self._doc_for_write(segments, "set")
        previous = doc.set(segments[2:], value)
        self._emit_mutation(segments, ChangeEvent(value, previous, self._pass))
        return previous

    def set_each(self, subpath: PathLike, values: Dict[str, Any]) -> None:
        for key, value in values.items():
            self.set(join_path(subpath, key), value)

    def delete(self, subpath: PathLike = None) -> Any:
        """Delete a value, returning the previous one. Emits ``change``."""
        segments = self._split_path(subpath)
        doc = self._doc_for_write(segments, "delete")
        previous = doc.delete(segments[2:])
        self._emit_mutation(segments, ChangeEvent(None, previous, self._pass))
        return previous

    def insert(self, subpath: PathLike, index: int, values: List[Any]) -> int:
        """Insert values into an array. Emits ``insert``."""
        segments = self._split_path(subpath)
        doc = self._doc_for_write(segments, "insert")
        values = list(values)
        index = doc.insert(segments[2:], index, values)
        self._emit_mutation(segments, InsertEvent(index, values, self._pass))
        return len(doc.get(segments[2:]))

    def push(self, subpath: PathLike, value: Any) -> int:
        array = self.get(subpath) or []
        return self.insert(subpath, len(array), [value])

    def unshift(self, subpath: PathLike, value: Any) -> int:
        return self.insert(subpath, 0, [value])

    def remove(self, subpath: PathLike, index: int, how_many: int = 1) -> List[Any]:
        """Remove items from an array, returning them. Emits ``remove``."""
        segments = self._split_path(subpath)
        doc = self._doc_for_write(segments, "remove")
        index, removed = doc.remove(segments[2:], index, how_many)
        self._emit_mutation(segments, RemoveEvent(index, removed, self._pass))
        return removed

    def move(
        self, subpath: PathLike, from_index: int, to_index: int, how_many: int = 1
    ) -> List[Any]:
        """Move items within an array, returning them. Emits ``move``."""
        segments = self._split_path(subpath)
        doc = self._doc_for_write(segments, "move")
        from_index, to_index, moved = doc.move(
            segments[2:], from_index, to_index, how_many
        )
        self._emit_mutation(
            segments, MoveEvent(from_index, to_index, len(moved), self._pass)
        )
        return moved

    def load_doc(self, collection_name: str, doc_id: str, data: Any) -> LocalDoc:
        """Place a document that arrived from outside into the model. Emits ``load``."""
        doc = self.get_or_create_doc(collection_name, doc_id)
        doc.data = data
        self._emit_mutation((collection_name, doc_id), LoadEvent(data, self._pass))
        return doc

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def _is_mutation_type(self, event_type: str) -> bool:
        return self.root._state.tree(event_type) is not None

    def on(
        self,
        event_type: str,
        pattern: PathLike = None,
        callback: Optional[Callable] = None,
        *,
        use_event_objects: bool = False,
    ):
        """
        Register a listener.

        For mutation event types, ``pattern`` is relative to this scope and
        the returned value is the listener handle to pass to
        ``remove_listener``. With ``use_event_objects`` the callback receives
        ``(event, captures)``; otherwise it receives the captures followed by
        the event's positional arguments.

        For other event types (``error`` and custom events) ``pattern`` must
        be None and the callback itself is returned.

        Raises:
            TypeError: If no callback is given
            PatternError: If the pattern is malformed
        """
        if not callable(callback):
            raise TypeError("No expected callback function")
        if not self._is_mutation_type(event_type):
            if pattern is not None:
                raise ValueError(f"Event type '{event_type}' does not take a pattern")
            self.root._event_listeners.setdefault(event_type, []).append(callback)
            return callback
        return self._add_mutation_listener(
            event_type, pattern, callback, use_event_objects
        )

    def once(
        self,
        event_type: str,
        pattern: PathLike = None,
        callback: Optional[Callable] = None,
        *,
        use_event_objects: bool = False,
    ):
        """Like ``on``, but the listener removes itself after its first call."""
        if not callable(callback):
            raise TypeError("No expected callback function")
        if not self._is_mutation_type(event_type):
            if pattern is not None:
                raise ValueError(f"Event type '{event_type}' does not take a pattern")

            def once_callback(*args):
                self.remove_listener(event_type, once_callback)
                callback(*args)

            return self.on(event_type, None, once_callback)

        listener = self._add_mutation_listener(
            event_type, pattern, callback, use_event_objects
        )
        fn = listener.fn

        def once_wrapper(segments, event):
            self._remove_mutation_listener(listener)
            fn(segments, event)

        listener.fn = once_wrapper
        return listener

    def _add_mutation_listener(
        self, event_type: str, pattern: PathLike, callback: Callable, use_event_objects: bool
    ) -> MutationListener:
        segments = self._split_path(pattern)
        pattern_string = ".".join(segments) if segments else TAIL_WILDCARD
        if use_event_objects:
            listener = create_mutation_listener(
                pattern_string, self._event_context, callback
            )
        else:
            listener = create_legacy_listener(
                event_type, pattern_string, self._event_context, callback
            )
        listener.event_type = event_type
        root = self.root
        root._state.trees[event_type].add_listener(listener.pattern_segments, listener)
        logging.debug(f"Added {event_type} listener on {listener.pattern}")

        # Contexts are expected to add many listeners and remove them all at
        # once, so duplicates are not checked for here
        if self._event_context is not None:
            root._state.context_listeners[self._event_context].append(listener)
        return listener

    def _remove_mutation_listener(self, listener: MutationListener) -> None:
        state = self.root._state
        tree = state.tree(listener.event_type)
        if tree is not None:
            tree.remove_own_listener(listener)
        context_id = listener.event_context
        if context_id is None:
            return
        listeners = state.context_listeners.get(context_id)
        if not listeners:
            return
        # A listener may appear more than once; remove every occurrence
        listeners[:] = [item for item in listeners if item is not listener]
        if not listeners:
            del state.context_listeners[context_id]

    def remove_listener(self, event_type: str, listener) -> None:
        if self._is_mutation_type(event_type):
            self._remove_mutation_listener(listener)
            return
        callbacks = self.root._event_listeners.get(event_type)
        if callbacks and listener in callbacks:
            callbacks.remove(listener)

    def remove_all_listeners(
        self, event_type: Optional[str] = None, subpath: PathLike = None
    ) -> None:
        """
        Remove listeners of a type (or of every type) at or below a path.

        With no path and a root scope, every listener of the type is removed.
        """
        segments = self._split_path(subpath)
        trees = self.root._state.trees
        if event_type is None:
            for tree in trees.values():
                tree.remove_all_listeners(segments)
            if not segments:
                self.root._event_listeners.clear()
            self._drop_detached_context_listeners()
            return
        tree = trees.get(event_type)
        if tree is not None:
            if tree.remove_all_listeners(segments):
                self._drop_detached_context_listeners()
            return
        self.root._event_listeners.pop(event_type, None)

    def _drop_detached_context_listeners(self) -> None:
        context_listeners = self.root._state.context_listeners
        for context_id in list(context_listeners):
            listeners = [
                listener
                for listener in context_listeners[context_id]
                if listener.attached
            ]
            if listeners:
                context_listeners[context_id] = listeners
            else:
                del context_listeners[context_id]

    def remove_context_listeners(self) -> None:
        """Remove every listener added through this scope's event context."""
        context_id = self._event_context
        if context_id is None:
            return
        state = self.root._state
        listeners = state.context_listeners.pop(context_id, None)
        if not listeners:
            return
        for listener in reversed(listeners):
            tree = state.tree(listener.event_type)
            if tree is not None:
                tree.remove_own_listener(listener)
        logging.debug(f"Removed {len(listeners)} listeners of context {context_id!r}")

    def listener_count(self, event_type: str) -> int:
        tree = self.root._state.tree(event_type)
        if tree is not None:
            return len(tree)
        return len(self.root._event_listeners.get(event_type, ()))

    # ------------------------------------------------------------------
    # Plain events and the error channel
    # ------------------------------------------------------------------

    def emit(self, event_type: str, *args) -> bool:
        """
        Call the plain (non-mutation) listeners of an event type.

        Returns:
            True if any listener was called
        """
        callbacks = list(self.root._event_listeners.get(event_type, ()))
        for callback in callbacks:
            callback(*args)
        return bool(callbacks)

    def emit_error(self, err: Any, context: Optional[str] = None) -> None:
        """
        Report an error on the root ``error`` event.

        ``context`` is appended to the message. Non-exception errors are
        wrapped in RuntimeError. With no ``error`` listener the error is
        logged.
        """
        if isinstance(err, BaseException):
            message = str(err) or type(err).__name__
        elif isinstance(err, str):
            message = err
        else:
            message = "Unknown model error"
        if context:
            message += " " + context
        if isinstance(err, BaseException):
            if context:
                err.args = (message,) + tuple(err.args[1:])
        else:
            err = RuntimeError(message)

        if not self.emit(ERROR, err):
            logging.error(f"Unhandled model error: {message}", exc_info=err)

    def _default_callback(self, err: Optional[BaseException] = None, *args) -> None:
        if err is not None:
            self.emit_error(err)

    def wrap_callback(self, callback: Optional[Callable]) -> Callable:
        """
        Isolate a user completion callback.

        With no callback, errors go to the ``error`` event. With a callback,
        exceptions raised by it are caught and sent to the ``error`` event
        instead of unwinding into whatever completed the operation.
        """
        if callback is None:
            return self._default_callback

        def wrapped_callback(*args, **kwargs):
            try:
                return callback(*args, **kwargs)
            except Exception as e:
                self.emit_error(e)

        return wrapped_callback

    def __repr__(self) -> str:
        return f"Model({self.path()!r})"


def create_model(**options) -> Model:
    """
    Create a root model.

    Args:
        **options: ModelOptions fields (connection, fetch_only, is_server,
            unload_delay, max_mutation_cycles, pattern_cache_size, scheduler)

    Returns:
        Root Model
    """
    return Model(ModelOptions(**options))
