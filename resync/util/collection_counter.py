"""
Collection Counter
==================

Two-level counting map (collection name -> document id -> count) used to track
how many active fetches or subscribes hold each document.
"""

from collections import defaultdict
from typing import Dict


class CollectionCounter:
    """
    Per-document reference counts grouped by collection.

    Counts never go negative and absent entries read as 0. Entries that drop
    back to 0 are removed, so the map only holds referenced documents.

    Usage:
        counter = CollectionCounter()
        counter.increment("posts", "1")  # 1
        counter.increment("posts", "1")  # 2
        counter.decrement("posts", "1")  # 1
        counter.get("posts", "2")        # 0
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, int]] = defaultdict(dict)

    def get(self, collection_name: str, doc_id: str) -> int:
        collection = self._collections.get(collection_name)
        if not collection:
            return 0
        return collection.get(doc_id, 0)

    def increment(self, collection_name: str, doc_id: str) -> int:
        collection = self._collections[collection_name]
        count = collection.get(doc_id, 0) + 1
        collection[doc_id] = count
        return count

    def decrement(self, collection_name: str, doc_id: str) -> int:
        """Decrement a count, returning the new value. No-op at zero."""
        collection = self._collections.get(collection_name)
        if not collection or doc_id not in collection:
            return 0
        count = collection[doc_id] - 1
        if count > 0:
            collection[doc_id] = count
            return count
        del collection[doc_id]
        if not collection:
            del self._collections[collection_name]
        return 0

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        """Snapshot of all non-zero counts."""
        return {name: dict(ids) for name, ids in self._collections.items() if ids}

    def __len__(self) -> int:
        return sum(len(ids) for ids in self._collections.values())

    def __repr__(self) -> str:
        return f"CollectionCounter({self.to_dict()})"
