"""
LSHIndex - signed random projection (SimHash) buckets over vector slots.

Each of ``tables`` hash tables owns ``bits`` hyperplanes. A vector's bucket
key in a table is the bit pattern of the signs of its projections onto those
hyperplanes. The union of a query's buckets across tables gives a candidate
set that usually contains its nearest neighbours.

Hyperplanes come from a 32-bit linear congruential generator seeded by the
table index, so the same ``(dim, tables, bits)`` always yields the same
bucket assignments, across restarts and across implementations.
"""

import numpy as np

from lshstore import config

LCG_MULTIPLIER = 1664525
LCG_INCREMENT = 1013904223
LCG_OFFSET_BASIS = 2166136261
_MASK32 = np.uint64(0xFFFFFFFF)

BucketKey = tuple[int, int]  # (table_id, key)


def lcg_uniform(seed: int, n: int) -> np.ndarray:
    """
    Return the first ``n`` outputs of the LCG started at ``seed``, mapped to (-1, 1).

    Closed form of ``s = (a * s + c) mod 2**32``: after k steps
    ``s_k = a**k * s_0 + c * (a**0 + ... + a**(k-1))``. uint64 arithmetic
    wraps modulo 2**64, which is a multiple of 2**32, so masking the low
    32 bits afterwards gives the exact sequence.
    """
    a = np.full(n, LCG_MULTIPLIER, dtype=np.uint64)
    powers = np.cumprod(a, dtype=np.uint64)
    geometric = np.cumsum(
        np.concatenate((np.ones(1, dtype=np.uint64), powers[:-1])), dtype=np.uint64
    )
    states = (
        powers * np.uint64(seed & 0xFFFFFFFF) + np.uint64(LCG_INCREMENT) * geometric
    ) & _MASK32
    return states.astype(np.float64) / 4294967296.0 * 2.0 - 1.0


class LSHIndex:
    """
    Multi-table SimHash index from bucket key to the set of member slots.

    Example:
        >>> lsh = LSHIndex(dim=4, tables=2, bits=3)
        >>> vec = np.array([1, 0, 0, 0], dtype=np.float32)
        >>> lsh.index(vec, slot=0)
        >>> 0 in lsh.candidates(vec)
        True
    """

    def __init__(self, dim: int, tables: int = config.TABLES, bits: int = config.BITS):
        """
        Args:
            dim: Dimensionality of indexed vectors.
            tables: Number of independent hash tables (more = better recall).
            bits: Hyperplanes per table, 1..32 (more = smaller buckets).
        """
        if tables < 1:
            raise ValueError(f"tables must be positive, got {tables}")
        if not 1 <= bits <= 32:
            raise ValueError(f"bits must be between 1 and 32, got {bits}")

        self.dim = dim
        self.tables = tables
        self.bits = bits
        self._buckets: dict[BucketKey, set[int]] = {}

        # Shape: (tables, bits, dim), plane-major within each table
        self.hyperplanes = np.stack([
            lcg_uniform(LCG_OFFSET_BASIS + t, bits * dim).astype(np.float32).reshape(bits, dim)
            for t in range(tables)
        ])
        self._planes = self.hyperplanes.astype(np.float64)
        self._shifts = np.arange(bits, dtype=np.int64)

    def hash_to_buckets(self, vector: np.ndarray) -> list[BucketKey]:
        """Return one ``(table_id, key)`` per table; bit b is set when the projection is >= 0."""
        projections = self._planes @ np.asarray(vector, dtype=np.float64)
        keys = ((projections >= 0).astype(np.int64) << self._shifts).sum(axis=1)
        return [(table_id, int(key)) for table_id, key in enumerate(keys)]

    def add_to_bucket(self, bucket: BucketKey, slot: int) -> None:
        members = self._buckets.get(bucket)
        if members is None:
            self._buckets[bucket] = {slot}
        else:
            members.add(slot)

    def remove_from_bucket(self, bucket: BucketKey, slot: int) -> None:
        """Remove ``slot`` from ``bucket``, dropping the bucket once it is empty."""
        members = self._buckets.get(bucket)
        if members is None:
            return
        members.discard(slot)
        if not members:
            del self._buckets[bucket]

    def index(self, vector: np.ndarray, slot: int) -> None:
        for bucket in self.hash_to_buckets(vector):
            self.add_to_bucket(bucket, slot)

    def unindex(self, vector: np.ndarray, slot: int) -> None:
        """Remove ``slot`` from every bucket ``vector`` hashes to."""
        for bucket in self.hash_to_buckets(vector):
            self.remove_from_bucket(bucket, slot)

    def candidates(self, vector: np.ndarray) -> set[int]:
        """Union of the slots sharing a bucket with ``vector`` in any table."""
        found: set[int] = set()
        for bucket in self.hash_to_buckets(vector):
            members = self._buckets.get(bucket)
            if members:
                found.update(members)
        return found

    def members(self, bucket: BucketKey) -> frozenset[int]:
        return frozenset(self._buckets.get(bucket, ()))

    def bucket_count(self) -> int:
        return len(self._buckets)

    def clear(self) -> None:
        self._buckets.clear()
