"""
VectorStorage - flat float32 buffer of unit vectors with slot bookkeeping.

Slot ``s`` occupies ``data[s * dim:(s + 1) * dim]``. Slots are handed out by
a first-free linear scan; when every slot is taken the buffer doubles.
"""

import logging
from typing import Iterator, Optional, Sequence, Union

import numpy as np

from lshstore.errors import DimensionMismatchError

logger = logging.getLogger(__name__)

VectorLike = Union[Sequence[float], np.ndarray]


class VectorStorage:
    """
    Arena of fixed-size float32 vector slots addressed by integer index.

    Keeps the bidirectional id <-> slot mapping alongside the buffer so that
    exactly one id owns a live slot and free slots are marked with ``None``.
    """

    def __init__(self, dim: int, capacity: int):
        """
        Args:
            dim: Dimensionality of every stored vector.
            capacity: Initial number of slots. Grows by doubling, never shrinks.
        """
        if dim < 1:
            raise ValueError(f"dim must be positive, got {dim}")
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")

        self.dim = dim
        self.capacity = capacity
        self.count = 0
        self._data = np.zeros(capacity * dim, dtype=np.float32)
        self._id_to_slot: dict[str, int] = {}
        self._slot_to_id: list[Optional[str]] = [None] * capacity

    def normalize(self, raw: VectorLike) -> np.ndarray:
        """
        Return ``raw`` scaled to unit L2 norm as a float32 array.

        The zero vector is returned unchanged; it scores 0 against everything.

        Raises:
            DimensionMismatchError: If ``raw`` is not a 1D vector of ``dim`` elements.
        """
        vector = np.asarray(raw, dtype=np.float64)
        if vector.ndim != 1:
            raise DimensionMismatchError(self.dim, vector.shape)
        if vector.shape[0] != self.dim:
            raise DimensionMismatchError(self.dim, vector.shape[0])

        norm = np.linalg.norm(vector)
        if norm == 0:
            return vector.astype(np.float32)
        return (vector / norm).astype(np.float32)

    def allocate_slot(self) -> int:
        """Return the first free slot, doubling capacity if there is none."""
        try:
            return self._slot_to_id.index(None)
        except ValueError:
            pass

        old_capacity = self.capacity
        self._grow(old_capacity * 2)
        return old_capacity

    def _grow(self, new_capacity: int) -> None:
        logger.debug("Growing vector buffer from %d to %d slots", self.capacity, new_capacity)
        data = np.zeros(new_capacity * self.dim, dtype=np.float32)
        data[: self._data.shape[0]] = self._data
        self._data = data
        self._slot_to_id.extend([None] * (new_capacity - self.capacity))
        self.capacity = new_capacity

    def write(self, slot: int, vector: np.ndarray) -> None:
        offset = slot * self.dim
        self._data[offset:offset + self.dim] = vector

    def read(self, slot: int) -> np.ndarray:
        """Return a copy of the vector stored at ``slot``."""
        offset = slot * self.dim
        return self._data[offset:offset + self.dim].copy()

    def matrix(self) -> np.ndarray:
        """Return a ``(capacity, dim)`` view of the buffer (no copy)."""
        return self._data.reshape(self.capacity, self.dim)

    def assign(self, slot: int, doc_id: str) -> None:
        """Mark ``slot`` as owned by ``doc_id``."""
        self._slot_to_id[slot] = doc_id
        self._id_to_slot[doc_id] = slot
        self.count += 1

    def free_slot(self, slot: int) -> None:
        """Zero the slot's vector and release both directions of its mapping."""
        doc_id = self._slot_to_id[slot]
        if doc_id is None:
            return
        offset = slot * self.dim
        self._data[offset:offset + self.dim] = 0.0
        self._slot_to_id[slot] = None
        del self._id_to_slot[doc_id]
        self.count -= 1

    def slot_of(self, doc_id: str) -> Optional[int]:
        return self._id_to_slot.get(doc_id)

    def id_at(self, slot: int) -> Optional[str]:
        return self._slot_to_id[slot]

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._id_to_slot

    def live_slots(self) -> Iterator[int]:
        """Yield every occupied slot in ascending order."""
        for slot, doc_id in enumerate(self._slot_to_id):
            if doc_id is not None:
                yield slot

    def reset(self) -> None:
        """Drop every vector and mapping; capacity is kept."""
        self._data = np.zeros(self.capacity * self.dim, dtype=np.float32)
        self._id_to_slot.clear()
        self._slot_to_id = [None] * self.capacity
        self.count = 0
