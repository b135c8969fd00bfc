"""
resync Local Documents - In-Memory Copies of Remote Documents
=============================================================

Documents live in collections keyed by id. A document loaded through a
connection is backed by a share doc, and its data is the share doc's data.
Collections whose name starts with ``_`` or ``$`` are local-only: their
documents have no share doc and never leave the process.

Also tracks live queries per collection, which keep the documents in their
results resident.
"""

from collections import defaultdict
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from .protocols import Query, ShareDoc


def is_local_collection(collection_name: str) -> bool:
    return collection_name[:1] in ("_", "$")


def _index(segment: str) -> int:
    return int(segment)


def _container_get(container: Any, segment: str) -> Any:
    if isinstance(container, dict):
        return container.get(segment)
    if isinstance(container, list):
        try:
            return container[_index(segment)]
        except (ValueError, IndexError):
            return None
    return None


def _container_set(container: Any, segment: str, value: Any) -> None:
    if isinstance(container, list):
        index = _index(segment)
        if index >= len(container):
            container.extend([None] * (index + 1 - len(container)))
        container[index] = value
    else:
        container[segment] = value


def _is_container(value: Any) -> bool:
    return isinstance(value, (dict, list))


def _new_container(next_segment: str) -> Any:
    return [] if next_segment.isdigit() else {}


class LocalDoc:
    """
    The model's copy of a single document.

    Attributes:
        collection_name: Collection the document belongs to
        id: Document id
        share_doc: Synchronization handle, or None for local-only documents
    """

    def __init__(
        self, collection_name: str, doc_id: str, share_doc: Optional[ShareDoc] = None
    ):
        self.collection_name = collection_name
        self.id = doc_id
        self.share_doc = share_doc
        self._data: Any = None

    @property
    def data(self) -> Any:
        if self.share_doc is not None:
            return self.share_doc.data
        return self._data

    @data.setter
    def data(self, value: Any) -> None:
        if self.share_doc is not None:
            self.share_doc.data = value
        else:
            self._data = value

    def get(self, segments: Sequence[str] = ()) -> Any:
        value = self.data
        for segment in segments:
            if value is None:
                return None
            value = _container_get(value, segment)
        return value

    def _parent(self, segments: Sequence[str]) -> Any:
        """
        Walk to the container of the last segment.

        Missing values and scalars on the way are replaced with a new list
        (next segment is an index) or dict. The document itself is always a
        dict.
        """
        if not _is_container(self.data):
            self.data = {}
        node = self.data
        for i, segment in enumerate(segments[:-1]):
            child = _container_get(node, segment)
            if not _is_container(child):
                child = _new_container(segments[i + 1])
                _container_set(node, segment, child)
            node = child
        return node

    def set(self, segments: Sequence[str], value: Any) -> Any:
        """Set a value, returning the previous one."""
        if not segments:
            previous = self.data
            self.data = value
            return previous
        parent = self._parent(segments)
        key = segments[-1]
        previous = _container_get(parent, key)
        _container_set(parent, key, value)
        return previous

    def delete(self, segments: Sequence[str]) -> Any:
        """Delete a value, returning the previous one."""
        if not segments:
            previous = self.data
            self.data = None
            return previous
        parent = self.get(segments[:-1])
        key = segments[-1]
        previous = _container_get(parent, key)
        if isinstance(parent, dict):
            parent.pop(key, None)
        elif isinstance(parent, list) and previous is not None:
            parent[_index(key)] = None
        return previous

    def _array(self, segments: Sequence[str]) -> List[Any]:
        array = self.get(segments)
        if array is None:
            array = []
            self.set(segments, array)
        if not isinstance(array, list):
            raise TypeError(
                f"Array operation on non-array at {self.collection_name}.{self.id}."
                + ".".join(segments)
            )
        return array

    def insert(self, segments: Sequence[str], index: int, values: List[Any]) -> int:
        array = self._array(segments)
        index = _normalize_index(index, len(array) + 1)
        array[index:index] = values
        return index

    def remove(
        self, segments: Sequence[str], index: int, how_many: int
    ) -> Tuple[int, List[Any]]:
        """Remove items, returning the normalized index and the removed items."""
        array = self._array(segments)
        index = _normalize_index(index, len(array))
        removed = array[index : index + how_many]
        del array[index : index + how_many]
        return index, removed

    def move(
        self, segments: Sequence[str], from_index: int, to_index: int, how_many: int
    ) -> Tuple[int, int, List[Any]]:
        """
        Move items within an array.

        Returns:
            The normalized from and to indexes and the moved items
        """
        array = self._array(segments)
        length = len(array)
        from_index = _normalize_index(from_index, length)
        moved = array[from_index : from_index + how_many]
        del array[from_index : from_index + how_many]
        to_index = _normalize_index(to_index, length)
        to_index = min(to_index, len(array))
        array[to_index:to_index] = moved
        return from_index, to_index, moved

    def __repr__(self) -> str:
        return f"LocalDoc({self.collection_name}.{self.id})"


def _normalize_index(index: int, length: int) -> int:
    if index < 0:
        index += length
    return max(0, min(index, length))


class Collection:
    """Documents of one collection, keyed by id."""

    def __init__(self, name: str):
        self.name = name
        self.docs: Dict[str, LocalDoc] = {}

    def get(self, doc_id: str) -> Optional[LocalDoc]:
        return self.docs.get(doc_id)

    def add(self, doc: LocalDoc) -> LocalDoc:
        self.docs[doc.id] = doc
        return doc

    def remove(self, doc_id: str) -> Optional[LocalDoc]:
        return self.docs.pop(doc_id, None)

    def __contains__(self, doc_id: str) -> bool:
        return doc_id in self.docs

    def __len__(self) -> int:
        return len(self.docs)

    def __iter__(self) -> Iterator[LocalDoc]:
        return iter(list(self.docs.values()))


class CollectionMap:
    """All collections of a model; empty collections are dropped."""

    def __init__(self):
        self._collections: Dict[str, Collection] = {}

    def get(self, collection_name: str) -> Optional[Collection]:
        return self._collections.get(collection_name)

    def get_or_create(self, collection_name: str) -> Collection:
        collection = self._collections.get(collection_name)
        if collection is None:
            collection = Collection(collection_name)
            self._collections[collection_name] = collection
        return collection

    def get_doc(self, collection_name: str, doc_id: str) -> Optional[LocalDoc]:
        collection = self._collections.get(collection_name)
        return collection.get(doc_id) if collection else None

    def remove_doc(self, collection_name: str, doc_id: str) -> Optional[LocalDoc]:
        collection = self._collections.get(collection_name)
        if collection is None:
            return None
        doc = collection.remove(doc_id)
        if not collection:
            del self._collections[collection_name]
        return doc

    def __contains__(self, collection_name: str) -> bool:
        return collection_name in self._collections

    def __iter__(self) -> Iterator[Collection]:
        return iter(list(self._collections.values()))


class QueryRegistry:
    """Live queries indexed by collection name and query hash."""

    def __init__(self):
        self._by_collection: Dict[str, Dict[str, Query]] = defaultdict(dict)

    def add(self, query: Query) -> Query:
        self._by_collection[query.collection_name][query.hash] = query
        return query

    def remove(self, query: Query) -> None:
        queries = self._by_collection.get(query.collection_name)
        if not queries:
            return
        queries.pop(query.hash, None)
        if not queries:
            del self._by_collection[query.collection_name]

    def get(self, collection_name: str, query_hash: str) -> Optional[Query]:
        queries = self._by_collection.get(collection_name)
        return queries.get(query_hash) if queries else None

    def get_collection(self, collection_name: str) -> Dict[str, Query]:
        return dict(self._by_collection.get(collection_name) or {})

    def lists_doc(self, collection_name: str, doc_id: str) -> bool:
        """True if a loaded query against the collection includes the id."""
        for query in self.get_collection(collection_name).values():
            if not query.subscribe_count and not query.fetch_count:
                continue
            if query.id_map.get(doc_id, 0) > 0:
                return True
        return False

    def __len__(self) -> int:
        return sum(len(queries) for queries in self._by_collection.values())
