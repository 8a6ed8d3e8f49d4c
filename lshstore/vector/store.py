"""
SimpleVectorStore - in-memory vector store with LSH candidates and exact top-k.

Vectors live in a flat float32 buffer (VectorStorage), bucket memberships in
an LSHIndex, and document metadata in a plain dict keyed by id.
"""

import json
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, Mapping, NamedTuple, Optional, Sequence, Union

import numpy as np

from lshstore import config
from lshstore.errors import (
    DuplicateIdError,
    EmptyInputError,
    InvalidSnapshotError,
    LengthMismatchError,
    ValidationError,
)
from lshstore.vector.lsh import LSHIndex
from lshstore.vector.storage import VectorLike, VectorStorage
from lshstore.vector.topk import gather_candidates, select_top_k

logger = logging.getLogger(__name__)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(value: int) -> str:
    digits = []
    while True:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
        if value == 0:
            return "".join(reversed(digits))


def generate_id() -> str:
    """
    Generate a document id of the form ``vec_<ms timestamp>_<6 random chars>``.

    Uniqueness is probabilistic only; pass explicit ids when it matters.
    """
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"vec_{_base36(int(time.time() * 1000))}_{suffix}"


@dataclass
class VectorDoc:
    """Document stored alongside a vector."""

    id: str
    text: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text, "metadata": self.metadata}


class ScoredDocument(NamedTuple):
    doc: VectorDoc
    score: float


DocLike = Union[VectorDoc, Mapping[str, Any], None]


def _doc_field(doc: DocLike, name: str) -> Any:
    if doc is None:
        return None
    if isinstance(doc, VectorDoc):
        return getattr(doc, name)
    return doc.get(name)


def _snapshot_int(data: Mapping[str, Any], name: str, default: Optional[int]) -> int:
    value = data.get(name, default)
    # bool is an int subclass but never a valid size
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidSnapshotError(f"invalid store JSON: bad {name} {value!r}")
    return value


class SimpleVectorStore:
    """
    In-memory vector store with SimHash LSH and bounded top-k search.

    API:
    - add_vectors(vectors, ids=None, docs=None) - Index vectors, returns ids
    - add_documents(documents, vectors=None) - Store documents, optionally with vectors
    - similarity_search_vector_with_score(query, k=10)
    - similarity_search(query, k=10)
    - delete_by_ids(ids), clear(), size()
    - to_json() / from_json(data)

    Batches are validated in full before anything is written, so a failing
    call leaves the store untouched.

    Example:
        >>> store = SimpleVectorStore(dim=4)
        >>> store.add_vectors([[1, 0, 0, 0], [0, 1, 0, 0]], ids=["x", "y"])
        ['x', 'y']
        >>> store.similarity_search_vector_with_score([1, 0, 0, 0], k=1)[0].doc.id
        'x'
    """

    def __init__(
        self,
        dim: int = config.DIM,
        expected_capacity: int = config.CAPACITY,
        tables: int = config.TABLES,
        bits: int = config.BITS,
    ):
        """
        Args:
            dim: Dimensionality of every vector in the store.
            expected_capacity: Initial slot count, raised to at least
                ``config.MIN_CAPACITY``. The buffer doubles when full.
            tables: Number of LSH hash tables.
            bits: Hyperplanes per LSH table.
        """
        self.dim = dim
        self.tables = tables
        self.bits = bits
        self._storage = VectorStorage(dim, max(config.MIN_CAPACITY, expected_capacity))
        self._lsh = LSHIndex(dim, tables=tables, bits=bits)
        self._docs: dict[str, VectorDoc] = {}

    @property
    def capacity(self) -> int:
        return self._storage.capacity

    def _check_new_ids(self, ids: Sequence[str]) -> None:
        seen = set()
        for doc_id in ids:
            if doc_id in self._storage or doc_id in seen:
                raise DuplicateIdError(doc_id)
            seen.add(doc_id)

    def _insert_vector(self, doc_id: str, vector: np.ndarray) -> None:
        slot = self._storage.allocate_slot()
        self._storage.write(slot, vector)
        self._storage.assign(slot, doc_id)
        self._lsh.index(vector, slot)

    def add_vectors(
        self,
        vectors: Sequence[VectorLike],
        ids: Optional[Sequence[str]] = None,
        docs: Optional[Sequence[DocLike]] = None,
    ) -> list[str]:
        """
        Add vectors with optional ids and documents.

        Args:
            vectors: Sequence (or 2D array) of raw vectors; normalized on insert.
            ids: Ids for the vectors. Generated where missing.
            docs: Documents (``VectorDoc`` or mappings with ``text``/``metadata``).

        Returns:
            The ids of the inserted vectors, in input order.

        Raises:
            EmptyInputError: If ``vectors`` is empty.
            LengthMismatchError: If ``ids`` or ``docs`` length differs from ``vectors``.
            DimensionMismatchError: If any vector has the wrong dimension.
            DuplicateIdError: If an id exists already or repeats in the batch.
        """
        normalized, new_ids = self.validate_vectors(vectors, ids=ids, docs=docs)
        for doc_id in new_ids:
            if doc_id in self._storage:
                raise DuplicateIdError(doc_id)

        for i, (doc_id, vector) in enumerate(zip(new_ids, normalized)):
            doc = docs[i] if docs is not None else None
            self._insert_vector(doc_id, vector)
            if doc is None and doc_id in self._docs:
                # Vectors supplied later for a metadata-only document
                continue
            self._docs[doc_id] = VectorDoc(
                id=doc_id,
                text=_doc_field(doc, "text"),
                metadata=_doc_field(doc, "metadata"),
            )
        return new_ids

    def validate_vectors(
        self,
        vectors: Sequence[VectorLike],
        ids: Optional[Sequence[str]] = None,
        docs: Optional[Sequence[DocLike]] = None,
    ) -> tuple[list[np.ndarray], list[str]]:
        """
        Check a batch for ``add_vectors`` without touching the store.

        Ids already in the store are not checked here, so callers that delete
        before inserting can validate first.

        Returns:
            The normalized vectors and the ids (generated where missing).

        Raises:
            EmptyInputError, LengthMismatchError, DimensionMismatchError, or
            DuplicateIdError for an id repeated within the batch.
        """
        if vectors is None or len(vectors) == 0:
            raise EmptyInputError("vectors must be a non-empty sequence")
        if ids is not None and len(ids) != len(vectors):
            raise LengthMismatchError(
                f"Number of ids ({len(ids)}) must match number of vectors ({len(vectors)})"
            )
        if docs is not None and len(docs) != len(vectors):
            raise LengthMismatchError(
                f"Number of docs ({len(docs)}) must match number of vectors ({len(vectors)})"
            )
        if docs is not None:
            for position, doc in enumerate(docs):
                if doc is not None and not isinstance(doc, (VectorDoc, Mapping)):
                    raise ValidationError(
                        f"docs[{position}] must be a VectorDoc, a mapping or None, "
                        f"got {type(doc).__name__}"
                    )

        normalized = [self._storage.normalize(v) for v in vectors]
        new_ids = [
            ids[i] if ids is not None and ids[i] is not None else generate_id()
            for i in range(len(vectors))
        ]
        seen = set()
        for doc_id in new_ids:
            if doc_id in seen:
                raise DuplicateIdError(doc_id)
            seen.add(doc_id)
        return normalized, new_ids

    def add_documents(
        self,
        documents: Sequence[DocLike],
        vectors: Optional[Sequence[VectorLike]] = None,
    ) -> list[str]:
        """
        Add documents, optionally with one vector each.

        Documents added without vectors are kept as metadata only and are not
        returned by similarity search until vectors are added for them.

        Raises:
            EmptyInputError: If ``documents`` is empty.
            LengthMismatchError: If ``vectors`` is given with a different length.
            DimensionMismatchError: If any vector has the wrong dimension.
            DuplicateIdError: If an id already has a vector or repeats in the batch.
        """
        if documents is None or len(documents) == 0:
            raise EmptyInputError("documents must be a non-empty sequence")
        if vectors is not None and len(vectors) != len(documents):
            raise LengthMismatchError("documents and vectors must have same length")

        normalized = (
            [self._storage.normalize(v) for v in vectors] if vectors is not None else None
        )
        new_ids = [_doc_field(doc, "id") or generate_id() for doc in documents]
        self._check_new_ids(new_ids)

        for i, (doc_id, doc) in enumerate(zip(new_ids, documents)):
            self._docs[doc_id] = VectorDoc(
                id=doc_id,
                text=_doc_field(doc, "text"),
                metadata=_doc_field(doc, "metadata"),
            )
            if normalized is not None:
                self._insert_vector(doc_id, normalized[i])
        return new_ids

    def similarity_search_vector_with_score(
        self,
        query_vector: VectorLike,
        k: int = 10,
    ) -> list[ScoredDocument]:
        """
        Return up to ``k`` documents most similar to ``query_vector``.

        Raises:
            DimensionMismatchError: If the query has the wrong dimension.
        """
        if self._storage.count == 0 or k <= 0:
            return []

        query = self._storage.normalize(query_vector)
        slots = gather_candidates(self._storage, self._lsh, query, k)

        results = []
        for slot, score in select_top_k(self._storage, query, slots, k):
            doc_id = self._storage.id_at(slot)
            results.append(ScoredDocument(self._docs.get(doc_id) or VectorDoc(id=doc_id), score))
        return results

    def similarity_search(self, query_vector: VectorLike, k: int = 10) -> list[VectorDoc]:
        return [result.doc for result in self.similarity_search_vector_with_score(query_vector, k)]

    def delete_by_ids(self, ids: Sequence[str]) -> int:
        """
        Delete vectors and documents by id.

        Unknown ids are skipped.

        Returns:
            Number of vectors actually removed.
        """
        removed = 0
        for doc_id in ids:
            self._docs.pop(doc_id, None)
            slot = self._storage.slot_of(doc_id)
            if slot is None:
                continue
            # The stored vector hashes to the same buckets it was indexed under
            self._lsh.unindex(self._storage.read(slot), slot)
            self._storage.free_slot(slot)
            removed += 1
        return removed

    def clear(self) -> None:
        """Remove everything; capacity is preserved."""
        self._storage.reset()
        self._lsh.clear()
        self._docs.clear()

    def size(self) -> int:
        """Number of live vectors."""
        return self._storage.count

    def __len__(self) -> int:
        return self._storage.count

    def get_document(self, doc_id: str) -> Optional[VectorDoc]:
        return self._docs.get(doc_id)

    def to_json(self) -> dict[str, Any]:
        """Snapshot every live vector with its document as plain JSON-ready data."""
        items = []
        for slot in self._storage.live_slots():
            doc_id = self._storage.id_at(slot)
            doc = self._docs.get(doc_id)
            items.append({
                "id": doc_id,
                "vec": self._storage.read(slot).tolist(),
                "doc": doc.to_dict() if doc is not None else None,
            })
        return {"dim": self.dim, "tables": self.tables, "bits": self.bits, "items": items}

    @classmethod
    def from_json(cls, data: Union[str, Mapping[str, Any]]) -> "SimpleVectorStore":
        """
        Rebuild a store from ``to_json`` output (a dict or its JSON text).

        Slots and buckets are re-derived by inserting every item again.

        Raises:
            InvalidSnapshotError: If the snapshot or any item is malformed.
        """
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as e:
                raise InvalidSnapshotError(f"invalid store JSON: {e}") from e

        if not isinstance(data, Mapping) or not isinstance(data.get("items"), list):
            raise InvalidSnapshotError("invalid store JSON: expected an object with an 'items' list")
        dim = _snapshot_int(data, "dim", None)
        tables = _snapshot_int(data, "tables", config.TABLES)
        bits = _snapshot_int(data, "bits", config.BITS)

        items = data["items"]
        ids, vectors, docs = [], [], []
        for position, item in enumerate(items):
            if (
                not isinstance(item, Mapping)
                or not isinstance(item.get("id"), str)
                or not item["id"]
                or not isinstance(item.get("vec"), list)
                or not (item.get("doc") is None or isinstance(item["doc"], Mapping))
            ):
                raise InvalidSnapshotError(f"invalid store JSON: malformed item at position {position}")
            ids.append(item["id"])
            vectors.append(item["vec"])
            docs.append(item.get("doc"))

        try:
            store = cls(dim=dim, expected_capacity=len(items), tables=tables, bits=bits)
            if items:
                store.add_vectors(vectors, ids=ids, docs=docs)
        except (TypeError, ValueError) as e:
            raise InvalidSnapshotError(f"invalid store JSON: {e}") from e
        logger.debug("Restored vector store with %d items", len(items))
        return store
