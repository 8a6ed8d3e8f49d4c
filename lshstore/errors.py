"""
Exceptions raised by lshstore.

Input problems subclass ValueError as well as VectorStoreError, so callers
that only catch ValueError keep working. ``status_code`` is a hint for an
HTTP layer translating errors into responses.
"""

from typing import Union


class VectorStoreError(Exception):
    """Base class for all lshstore errors."""

    status_code = 500


class ValidationError(VectorStoreError, ValueError):
    """Malformed input; the whole call is rejected before any mutation."""

    status_code = 400


class EmptyInputError(ValidationError):
    """A batch operation received no items."""


class LengthMismatchError(ValidationError):
    """Parallel sequences (vectors, ids, docs) differ in length."""


class DimensionMismatchError(ValidationError):
    """A vector does not have the store's configured dimension."""

    def __init__(self, expected: int, actual: Union[int, tuple[int, ...]]):
        got = f"shape {actual}" if isinstance(actual, tuple) else actual
        super().__init__(
            f"Vector dimensionality mismatch: expected {expected}, got {got}"
        )
        self.expected = expected
        self.actual = actual


class InvalidSnapshotError(ValidationError):
    """A snapshot passed to ``from_json`` is missing fields or malformed."""


class DuplicateIdError(VectorStoreError, ValueError):
    """An id is already present in the store or repeated within a batch."""

    def __init__(self, doc_id: str):
        super().__init__(f"Duplicate vector id: {doc_id}")
        self.doc_id = doc_id


class EntrySourceError(VectorStoreError):
    """Base class for failures loading entry lists."""


class FetchError(EntrySourceError):
    """The upstream entries URL could not be fetched."""

    status_code = 502


class InvalidEntriesError(EntrySourceError, ValueError):
    """Fetched content is not a JSON array of entries."""

    status_code = 400
