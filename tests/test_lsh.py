"""
Tests for LSHIndex: deterministic hyperplanes, hashing and bucket maintenance.
"""

import numpy as np
import pytest

from lshstore import LSHIndex
from lshstore.vector.lsh import lcg_uniform


class TestHyperplanes:
    """Test deterministic hyperplane generation."""

    def test_lcg_known_values(self):
        """The generator reproduces the reference LCG sequence."""
        values = lcg_uniform(2166136261, 3)
        assert values == pytest.approx([0.2030168027, -0.9844021504, 0.4827724183], abs=1e-9)

        values = lcg_uniform(2166136262, 3)
        assert values == pytest.approx([0.2037919075, -0.8029946201, -0.1478110370], abs=1e-9)

    def test_values_in_range(self):
        values = lcg_uniform(12345, 10_000)
        assert values.min() >= -1.0
        assert values.max() < 1.0

    def test_hyperplanes_shape_and_layout(self):
        lsh = LSHIndex(dim=4, tables=3, bits=5)
        assert lsh.hyperplanes.shape == (3, 5, 4)
        assert lsh.hyperplanes.dtype == np.float32
        # Table 0, plane 0 starts the table-0 sequence
        assert lsh.hyperplanes[0, 0, :3] == pytest.approx(
            [0.2030168027, -0.9844021504, 0.4827724183], abs=1e-6
        )

    def test_reproducible(self):
        """Identical parameters give identical hyperplanes."""
        first = LSHIndex(dim=16, tables=4, bits=8)
        second = LSHIndex(dim=16, tables=4, bits=8)
        assert np.array_equal(first.hyperplanes, second.hyperplanes)

    def test_tables_differ(self):
        lsh = LSHIndex(dim=16, tables=2, bits=8)
        assert not np.array_equal(lsh.hyperplanes[0], lsh.hyperplanes[1])

    def test_invalid_parameters(self):
        with pytest.raises(ValueError):
            LSHIndex(dim=4, tables=0, bits=8)
        with pytest.raises(ValueError):
            LSHIndex(dim=4, tables=4, bits=0)
        with pytest.raises(ValueError):
            LSHIndex(dim=4, tables=4, bits=33)


class TestHashing:
    """Test bucket key computation."""

    def test_known_bucket_keys(self):
        """Default configuration produces the reference bucket keys."""
        lsh = LSHIndex(dim=4, tables=16, bits=12)

        x = lsh.hash_to_buckets(np.array([1, 0, 0, 0], dtype=np.float32))
        y = lsh.hash_to_buckets(np.array([0, 1, 0, 0], dtype=np.float32))
        q = lsh.hash_to_buckets(np.array([0.7, 0.7, 0, 0], dtype=np.float32))

        assert len(x) == 16
        assert x[0] == (0, 1357)
        assert y[0] == (0, 870)
        assert q[0] == (0, 836)
        assert y[6] == q[6] == (6, 749)
        assert x[6] == (6, 141)

    def test_scale_invariant(self):
        """Only the signs of the projections matter."""
        lsh = LSHIndex(dim=8, tables=4, bits=10)
        vec = np.random.default_rng(42).standard_normal(8)
        assert lsh.hash_to_buckets(vec) == lsh.hash_to_buckets(vec * 37.5)

    def test_keys_fit_in_bits(self):
        lsh = LSHIndex(dim=8, tables=4, bits=6)
        rng = np.random.default_rng(0)
        for vec in rng.standard_normal(size=(50, 8)):
            for table_id, (t, key) in enumerate(lsh.hash_to_buckets(vec)):
                assert t == table_id
                assert 0 <= key < 2 ** 6

    def test_zero_vector_sets_all_bits(self):
        """Projections of zero are 0, which counts as non-negative."""
        lsh = LSHIndex(dim=4, tables=2, bits=3)
        assert lsh.hash_to_buckets(np.zeros(4)) == [(0, 7), (1, 7)]


class TestBuckets:
    """Test bucket membership maintenance."""

    def test_index_and_candidates(self):
        lsh = LSHIndex(dim=4, tables=4, bits=6)
        vec = np.array([0.5, -0.5, 0.5, 0.5], dtype=np.float32)
        lsh.index(vec, 3)
        assert lsh.candidates(vec) == {3}

    def test_one_bucket_per_table(self):
        lsh = LSHIndex(dim=4, tables=5, bits=6)
        vec = np.array([0.1, 0.2, 0.3, 0.4], dtype=np.float32)
        lsh.index(vec, 0)
        containing = [b for b in lsh.hash_to_buckets(vec) if 0 in lsh.members(b)]
        assert len(containing) == 5
        assert lsh.bucket_count() == 5

    def test_unindex_removes_empty_buckets(self):
        lsh = LSHIndex(dim=4, tables=4, bits=6)
        vec = np.array([0.1, 0.2, 0.3, 0.4], dtype=np.float32)
        lsh.index(vec, 0)
        lsh.index(vec, 1)

        lsh.unindex(vec, 0)
        assert lsh.candidates(vec) == {1}

        lsh.unindex(vec, 1)
        assert lsh.candidates(vec) == set()
        assert lsh.bucket_count() == 0

    def test_remove_missing_is_noop(self):
        lsh = LSHIndex(dim=4, tables=2, bits=4)
        lsh.remove_from_bucket((0, 5), 1)
        lsh.add_to_bucket((0, 5), 2)
        lsh.remove_from_bucket((0, 5), 1)
        assert lsh.members((0, 5)) == frozenset({2})

    def test_clear(self):
        lsh = LSHIndex(dim=4, tables=2, bits=4)
        lsh.index(np.ones(4, dtype=np.float32), 0)
        lsh.clear()
        assert lsh.bucket_count() == 0
