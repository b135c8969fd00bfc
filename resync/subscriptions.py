"""
resync Subscriptions - Document Loading and Retention
=====================================================

Documents are kept in memory for as long as something needs them. There are
three independent reasons to keep a document resident:

- a direct fetch (``fetch_doc`` / ``fetch``) that has not been unfetched
- a direct subscribe (``subscribe_doc`` / ``subscribe``) that has not been
  unsubscribed
- a loaded query whose results include the document

Fetches and subscribes are reference counted per document. Releasing the last
reference starts an optional delay (``unload_delay``); when it runs out the
document is unloaded unless a new reference arrived in the meantime. Unloading
waits for the share doc's pending operations to finish, then removes the local
copy, destroys the share doc and emits an ``unload`` event.

Usage:
    model.subscribe(["posts.1", "posts.2"], callback=on_ready)
    ...
    model.unsubscribe(["posts.1", "posts.2"])

    # or, inside a coroutine
    await model.fetch_async(["posts.1"])
"""

import asyncio
import logging
from collections.abc import Sequence
from typing import Any, Callable, Optional

from .events import LoadEvent, UnloadEvent
from .protocols import Query
from .util.async_group import AsyncGroup


class SubscriptionPathError(ValueError):
    """Raised when a fetch or subscribe target does not address a document."""

    pass


class SubscriptionLifecycle:
    """
    Fetch/subscribe reference counting for Model.

    Relies on the Model for documents, scheduling, the error channel and
    mutation emission.
    """

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def fetch(self, items: Any = None, callback: Optional[Callable] = None):
        """
        Load documents and queries into the model.

        Args:
            items: Paths (relative to this scope), Model scopes or queries;
                a single item is accepted too. None means this scope's path.
            callback: Called as ``callback(err)`` once everything completed
        """
        self._for_subscribable(items, "fetch", callback)
        return self

    def subscribe(self, items: Any = None, callback: Optional[Callable] = None):
        """
        Load documents and queries and keep them updated. Documents that are
        already subscribed do not cause a network request.
        """
        self._for_subscribable(items, "subscribe", callback)
        return self

    def unfetch(self, items: Any = None, callback: Optional[Callable] = None):
        """Release fetches made with ``fetch``."""
        self._for_subscribable(items, "unfetch", callback)
        return self

    def unsubscribe(self, items: Any = None, callback: Optional[Callable] = None):
        """Release subscriptions made with ``subscribe``."""
        self._for_subscribable(items, "unsubscribe", callback)
        return self

    def _normalize_items(self, items: Any) -> list:
        if items is None:
            return [None]
        if isinstance(items, (str, int, tuple)) or not isinstance(items, Sequence):
            return [items]
        return list(items) or [None]

    def _for_subscribable(
        self, items: Any, method: str, callback: Optional[Callable]
    ) -> None:
        scheduler = self.scheduler
        # Fail before any counter moves if the final callback cannot be scheduled
        scheduler.ensure_ready()

        group = AsyncGroup(self.wrap_callback(callback))
        finished = group()
        doc_method = getattr(self, f"{method}_doc")
        connection = self.connection

        if connection is not None:
            connection.start_bulk()
        try:
            for item in self._normalize_items(items):
                if isinstance(item, Query):
                    self._query_method(item, method, group())
                    continue
                segments = self._split_path(item)
                if len(segments) == 2:
                    doc_method(segments[0], segments[1], group())
                else:
                    group()(
                        SubscriptionPathError(
                            f"Cannot {method} to path: {'.'.join(segments)}"
                        )
                    )
        finally:
            if connection is not None:
                connection.end_bulk()
        scheduler.call_soon(finished)

    def _query_method(self, query: Query, method: str, callback: Callable) -> None:
        if method in ("fetch", "subscribe"):
            # Registered queries keep the documents in their results resident
            self.root.queries.add(query)
            getattr(query, method)(callback)
            return

        def released(err: Optional[BaseException] = None, *args) -> None:
            if not query.fetch_count and not query.subscribe_count:
                self.release_query(query)
            callback(err)

        getattr(query, method)(released)

    def release_query(self, query: Query) -> None:
        """
        Stop tracking a query and unload the documents only it was holding.

        Called once a query is neither fetched nor subscribed any more.
        """
        root = self.root
        if root.queries.get(query.collection_name, query.hash) is query:
            root.queries.remove(query)
        for doc_id in list(query.id_map):
            self.maybe_unload_doc(query.collection_name, doc_id)

    # ------------------------------------------------------------------
    # Single documents
    # ------------------------------------------------------------------

    def _load_callback(self, collection_name: str, doc_id: str, doc, callback):
        had_data = doc.data is not None

        def loaded(err: Optional[BaseException] = None, *args) -> None:
            if err is None and not had_data and doc.data is not None:
                self._emit_mutation(
                    (collection_name, doc_id), LoadEvent(doc.data, self._pass)
                )
            callback(err)

        return loaded

    def fetch_doc(
        self, collection_name: str, doc_id: str, callback: Optional[Callable] = None
    ) -> None:
        callback = self.wrap_callback(callback)

        # Counted so the doc can be unloaded once no fetches or subscribes remain
        self.root._fetched_docs.increment(collection_name, doc_id)

        doc = self.get_or_create_doc(collection_name, doc_id)
        if doc.share_doc is None:
            callback(None)
            return
        doc.share_doc.fetch(self._load_callback(collection_name, doc_id, doc, callback))

    def subscribe_doc(
        self, collection_name: str, doc_id: str, callback: Optional[Callable] = None
    ) -> None:
        callback = self.wrap_callback(callback)

        self.root._subscribed_docs.increment(collection_name, doc_id)

        doc = self.get_or_create_doc(collection_name, doc_id)
        share_doc = doc.share_doc
        if share_doc is None or share_doc.subscribed:
            callback(None)
            return
        loaded = self._load_callback(collection_name, doc_id, doc, callback)
        if self.fetch_only:
            share_doc.fetch(loaded)
        else:
            share_doc.subscribe(loaded)

    def _after_unload_delay(self, finish: Callable[[], None]) -> None:
        delay = self.unload_delay
        if delay:
            # The counter only moves inside finish, so a scheduler failure
            # leaves it untouched
            self.scheduler.call_later(delay, finish)
        else:
            finish()

    def unfetch_doc(
        self, collection_name: str, doc_id: str, callback: Optional[Callable] = None
    ) -> None:
        """
        Release one fetch of a document.

        ``callback(err, count)`` receives the number of fetches still holding
        the document. Unfetching a document that is not fetched does nothing.
        """
        callback = self.wrap_callback(callback)
        fetched_docs = self.root._fetched_docs

        if not fetched_docs.get(collection_name, doc_id):
            callback(None, 0)
            return

        def finish_unfetch_doc():
            count = fetched_docs.decrement(collection_name, doc_id)
            if count:
                callback(None, count)
                return
            self.maybe_unload_doc(collection_name, doc_id)
            callback(None, 0)

        self._after_unload_delay(finish_unfetch_doc)

    def unsubscribe_doc(
        self, collection_name: str, doc_id: str, callback: Optional[Callable] = None
    ) -> None:
        """
        Release one subscription of a document.

        The share doc is only unsubscribed when the last subscription goes.
        """
        callback = self.wrap_callback(callback)
        subscribed_docs = self.root._subscribed_docs

        if not subscribed_docs.get(collection_name, doc_id):
            callback(None, 0)
            return

        def unsubscribed(err: Optional[BaseException] = None, *args) -> None:
            self.maybe_unload_doc(collection_name, doc_id)
            if err is not None:
                callback(err)
                return
            callback(None, 0)

        def finish_unsubscribe_doc():
            count = subscribed_docs.decrement(collection_name, doc_id)
            if count:
                callback(None, count)
                return
            if self.fetch_only:
                unsubscribed()
                return
            doc = self.get_doc(collection_name, doc_id)
            share_doc = doc.share_doc if doc is not None else None
            if share_doc is None:
                unsubscribed()
                return
            share_doc.unsubscribe(unsubscribed)

        self._after_unload_delay(finish_unsubscribe_doc)

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def has_doc_references(self, collection_name: str, doc_id: str) -> bool:
        """True if a loaded query, a fetch or a subscribe holds the document."""
        root = self.root
        if root.queries.lists_doc(collection_name, doc_id):
            return True
        return bool(
            root._fetched_docs.get(collection_name, doc_id)
            or root._subscribed_docs.get(collection_name, doc_id)
        )

    def maybe_unload_doc(self, collection_name: str, doc_id: str) -> bool:
        """
        Unload a document if nothing references it any more.

        If the share doc still has operations in flight, the check is repeated
        once they complete.

        Returns:
            True if the document was unloaded now
        """
        doc = self.get_doc(collection_name, doc_id)
        if doc is None:
            return False
        if self.has_doc_references(collection_name, doc_id):
            return False

        share_doc = doc.share_doc
        # Destroying a share doc with pending operations would leave it out of
        # step with the model, so wait for them to settle first
        if share_doc is not None and share_doc.has_pending():
            logging.debug(f"Deferring unload of {collection_name}.{doc_id}")
            share_doc.when_nothing_pending(
                lambda: self.maybe_unload_doc(collection_name, doc_id)
            )
            return False

        previous = doc.data
        self.root.collections.remove_doc(collection_name, doc_id)
        if share_doc is not None:
            share_doc.destroy()
        logging.debug(f"Unloaded {collection_name}.{doc_id}")

        self._emit_mutation((collection_name, doc_id), UnloadEvent(previous, self._pass))
        return True

    # ------------------------------------------------------------------
    # Awaitable variants
    # ------------------------------------------------------------------

    async def _promised(self, method: Callable, *args) -> Any:
        future = asyncio.get_running_loop().create_future()

        def done(err: Any = None, *results) -> None:
            if future.done():
                return
            if err is not None:
                if not isinstance(err, BaseException):
                    err = RuntimeError(str(err))
                future.set_exception(err)
            else:
                future.set_result(results[0] if results else None)

        method(*args, done)
        return await future

    async def fetch_async(self, items: Any = None) -> None:
        await self._promised(self.fetch, items)

    async def subscribe_async(self, items: Any = None) -> None:
        await self._promised(self.subscribe, items)

    async def unfetch_async(self, items: Any = None) -> None:
        await self._promised(self.unfetch, items)

    async def unsubscribe_async(self, items: Any = None) -> None:
        await self._promised(self.unsubscribe, items)

    async def fetch_doc_async(self, collection_name: str, doc_id: str) -> None:
        await self._promised(self.fetch_doc, collection_name, doc_id)

    async def subscribe_doc_async(self, collection_name: str, doc_id: str) -> None:
        await self._promised(self.subscribe_doc, collection_name, doc_id)

    async def unfetch_doc_async(self, collection_name: str, doc_id: str) -> int:
        """Returns the number of fetches still holding the document."""
        return await self._promised(self.unfetch_doc, collection_name, doc_id)

    async def unsubscribe_doc_async(self, collection_name: str, doc_id: str) -> int:
        """Returns the number of subscriptions still holding the document."""
        return await self._promised(self.unsubscribe_doc, collection_name, doc_id)
