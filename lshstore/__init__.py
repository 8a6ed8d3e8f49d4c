"""
lshstore - A small in-memory vector store with LSH candidate search.

lshstore keeps unit-normalized vectors in a flat numpy buffer, narrows
queries to candidates with signed random projection LSH, and ranks them by
exact cosine similarity.
"""

from lshstore.__version__ import __version__
from lshstore.adapter import EntryVectorStore, VectorStoreEntry, create_vector_store
from lshstore.cache import EntryCache
from lshstore.errors import (
    DimensionMismatchError,
    DuplicateIdError,
    EmptyInputError,
    FetchError,
    InvalidEntriesError,
    InvalidSnapshotError,
    LengthMismatchError,
    ValidationError,
    VectorStoreError,
)
from lshstore.service import EntryQueryService
from lshstore.vector import LSHIndex, ScoredDocument, SimpleVectorStore, VectorDoc, VectorStorage

__all__ = [
    "DimensionMismatchError",
    "DuplicateIdError",
    "EmptyInputError",
    "EntryCache",
    "EntryQueryService",
    "EntryVectorStore",
    "FetchError",
    "InvalidEntriesError",
    "InvalidSnapshotError",
    "LSHIndex",
    "LengthMismatchError",
    "ScoredDocument",
    "SimpleVectorStore",
    "ValidationError",
    "VectorDoc",
    "VectorStorage",
    "VectorStoreEntry",
    "VectorStoreError",
    "create_vector_store",
    "__version__",
]
