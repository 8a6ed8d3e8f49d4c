"""
Entry-oriented adapter over SimpleVectorStore.

Callers that deal in ``{id, vector, payload}`` entries use this instead of the
store's vector/document API. ``upsert`` replaces existing ids.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union

import numpy as np

from lshstore.vector.store import SimpleVectorStore

logger = logging.getLogger(__name__)


@dataclass
class VectorStoreEntry:
    id: str
    vector: list[float]
    payload: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        vector = self.vector.tolist() if isinstance(self.vector, np.ndarray) else list(self.vector)
        return {"id": self.id, "vector": vector, "payload": self.payload}


EntryLike = Union[VectorStoreEntry, Mapping[str, Any]]


def coerce_entry(entry: Any) -> Optional[VectorStoreEntry]:
    """Return ``entry`` as a VectorStoreEntry, or None if it has no id or vector."""
    if isinstance(entry, VectorStoreEntry):
        candidate = entry
    elif isinstance(entry, Mapping):
        candidate = VectorStoreEntry(
            id=entry.get("id"), vector=entry.get("vector"), payload=entry.get("payload")
        )
    else:
        return None

    if not candidate.id or not isinstance(candidate.vector, (list, tuple, np.ndarray)):
        return None
    return candidate


class EntryVectorStore:
    """
    Upsert/query wrapper returning ``{"id", "payload", "score"}`` dicts.

    Example:
        >>> store = create_vector_store(dim=4)
        >>> store.upsert([{"id": "x", "vector": [1, 0, 0, 0], "payload": {"field": "Name"}}])
        >>> store.query([1, 0, 0, 0], k=1)[0]["id"]
        'x'
    """

    def __init__(self, store: Optional[SimpleVectorStore] = None, **options: Any):
        self.store = store if store is not None else SimpleVectorStore(**options)

    def upsert(self, entries: Optional[Iterable[EntryLike]]) -> None:
        """
        Delete any existing ids in ``entries``, then insert them.

        Entries without an id or vector are skipped. The remaining batch is
        validated before the delete, so a rejected upsert removes nothing.

        Raises:
            DimensionMismatchError: If a vector has the wrong dimension.
            DuplicateIdError: If an id repeats within ``entries``.
        """
        if not entries:
            return

        ids, vectors, docs = [], [], []
        for entry in entries:
            coerced = coerce_entry(entry)
            if coerced is None:
                logger.warning("Skipping malformed vector store entry: %r", entry)
                continue
            ids.append(coerced.id)
            vectors.append(coerced.vector)
            docs.append({"metadata": coerced.payload})

        if not ids:
            return
        self.store.validate_vectors(vectors, ids=ids, docs=docs)
        self.store.delete_by_ids(ids)
        self.store.add_vectors(vectors, ids=ids, docs=docs)

    def query(self, query_vector: Any, k: int = 10) -> list[dict[str, Any]]:
        return [
            {"id": result.doc.id, "payload": result.doc.metadata, "score": result.score}
            for result in self.store.similarity_search_vector_with_score(query_vector, k)
        ]

    def clear(self) -> None:
        self.store.clear()

    def size(self) -> int:
        return self.store.size()


def create_vector_store(**options: Any) -> EntryVectorStore:
    """Create an EntryVectorStore backed by a new SimpleVectorStore."""
    return EntryVectorStore(**options)
