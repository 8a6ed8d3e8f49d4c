"""
Vector search module using LSH (Locality-Sensitive Hashing).

This module provides in-memory vector storage, SimHash bucket indexing and
exact top-k reranking of the LSH candidates.
"""

from lshstore.vector.lsh import LSHIndex
from lshstore.vector.storage import VectorStorage
from lshstore.vector.store import ScoredDocument, SimpleVectorStore, VectorDoc

__all__ = ["LSHIndex", "ScoredDocument", "SimpleVectorStore", "VectorDoc", "VectorStorage"]
