"""
resync External Contracts
=========================

The model does not implement document synchronization, transport or query
execution itself. It talks to those collaborators through the protocols
below; any object with the right shape can be plugged in.

Completion callbacks follow the node convention ``callback(err=None)``.
"""

from typing import Any, Callable, Dict, Optional, Protocol, runtime_checkable

Callback = Callable[..., None]


@runtime_checkable
class ShareDoc(Protocol):
    """Synchronization handle for one remote-backed document."""

    subscribed: bool
    data: Any

    def fetch(self, callback: Callback) -> None: ...

    def subscribe(self, callback: Callback) -> None: ...

    def unsubscribe(self, callback: Callback) -> None: ...

    def destroy(self) -> None: ...

    def has_pending(self) -> bool: ...

    def when_nothing_pending(self, callback: Callable[[], None]) -> None: ...


@runtime_checkable
class Connection(Protocol):
    """Source of share docs; groups requests issued together into one batch."""

    def get(self, collection_name: str, doc_id: str) -> ShareDoc: ...

    def start_bulk(self) -> None: ...

    def end_bulk(self) -> None: ...


@runtime_checkable
class Query(Protocol):
    """
    A live query against one collection.

    ``id_map`` maps each document id in the results to a positive count;
    ``fetch_count`` and ``subscribe_count`` are non-zero while the query itself
    is loaded.
    """

    collection_name: str
    hash: str
    id_map: Dict[str, int]
    fetch_count: int
    subscribe_count: int

    def fetch(self, callback: Optional[Callback] = None) -> None: ...

    def subscribe(self, callback: Optional[Callback] = None) -> None: ...

    def unfetch(self, callback: Optional[Callback] = None) -> None: ...

    def unsubscribe(self, callback: Optional[Callback] = None) -> None: ...
