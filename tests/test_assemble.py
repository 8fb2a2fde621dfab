# File: tests/test_assemble.py
"""
TEST: Sparse Assembly with Constrained-DOF Elimination
======================================================

Key checks:
1. Only free DOFs reach the reduced matrix, at the shifted indices
2. The assembled matrix is symmetric even though only the upper triangle
   is scattered
3. Serial and parallel assembly agree, and repeated parallel runs are
   bit-identical whatever the chunk size
4. Force scatter adds overlapping contributions
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from stan_solid.kernel.assemble import (
    assemble_global_F,
    assemble_reduced_K,
    chunked,
    parallel_assemble_F,
    parallel_assemble_K,
    upper_triplets,
)
from stan_solid.kernel.dof import elimination_map


def spring(k):
    return k * np.array([[1.0, -1.0], [-1.0, 1.0]])


def spring_chain(n_springs, seed=0):
    """Chain of 1-DOF springs 0-1-2-...; stiffness varies per spring."""
    rng = np.random.default_rng(seed)
    return [([i, i + 1], spring(k)) for i, k in enumerate(rng.uniform(1.0, 5.0, n_springs))]


def dense_reference(ndof, contributions, fixed):
    K = np.zeros((ndof, ndof))
    for dofs, ke in contributions:
        K[np.ix_(dofs, dofs)] += ke
    free = [d for d in range(ndof) if d not in fixed]
    return K[np.ix_(free, free)]


def test_chunked():
    assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert chunked([], 3) == []
    assert chunked([1, 2], 0) == [[1], [2]]


def test_upper_triplets_skip_constrained():
    emap = elimination_map(3, [1])
    ke = np.arange(9.0).reshape(3, 3)
    r, c, v = upper_triplets([0, 1, 2], ke, emap)
    assert list(zip(r.tolist(), c.tolist(), v.tolist())) == [(0, 0, 0.0), (0, 1, 2.0), (1, 1, 8.0)]


def test_upper_triplets_use_global_order():
    # local order reversed: the kept entry is the one with global col ≥ row
    emap = elimination_map(2, [])
    ke = np.array([[1.0, 2.0], [3.0, 4.0]])
    r, c, v = upper_triplets([1, 0], ke, emap)
    kept = dict(zip(zip(r.tolist(), c.tolist()), v.tolist()))
    assert kept == {(1, 1): 1.0, (0, 1): 3.0, (0, 0): 4.0}


def test_reduced_K_matches_dense_reference():
    contributions = spring_chain(6)
    fixed = [0, 4]
    emap = elimination_map(7, fixed)

    K = assemble_reduced_K(5, contributions, emap)
    assert K.shape == (5, 5)
    assert_allclose(K.toarray(), dense_reference(7, contributions, fixed))
    assert_allclose(K.toarray(), K.toarray().T)


@pytest.mark.parametrize("n_jobs, chunk_size", [(1, 256), (2, 1), (4, 3)])
def test_parallel_matches_serial(n_jobs, chunk_size):
    contributions = spring_chain(40, seed=3)
    emap = elimination_map(41, [0])
    serial = assemble_reduced_K(40, contributions, emap)

    K = parallel_assemble_K(contributions, lambda c: c, emap, n_jobs=n_jobs, chunk_size=chunk_size)
    assert_allclose(K.toarray(), serial.toarray(), rtol=0, atol=1e-12)


def test_parallel_assembly_is_bit_identical():
    contributions = spring_chain(200, seed=7)
    emap = elimination_map(201, [0, 100])
    first = parallel_assemble_K(contributions, lambda c: c, emap, n_jobs=4, chunk_size=16)
    for _ in range(3):
        again = parallel_assemble_K(contributions, lambda c: c, emap, n_jobs=4, chunk_size=16)
        assert_array_equal(again.toarray(), first.toarray())


def test_empty_assembly():
    emap = elimination_map(3, [])
    assert parallel_assemble_K([], lambda c: c, emap).shape == (3, 3)
    assert assemble_reduced_K(3, [], emap).nnz == 0


def test_global_F_scatter_adds():
    F = assemble_global_F(4, [([0, 1], np.array([1.0, 2.0])), ([1, 3], np.array([5.0, 1.0]))])
    assert_array_equal(F, [1.0, 7.0, 0.0, 1.0])

    # repeated DOF inside one element accumulates too
    F = assemble_global_F(2, [([1, 1], np.array([1.0, 2.0]))])
    assert_array_equal(F, [0.0, 3.0])


def test_parallel_F_matches_serial():
    vectors = [([i, i + 1], np.array([1.0 + i, -1.0 - i])) for i in range(30)]
    serial = assemble_global_F(31, vectors)
    parallel = parallel_assemble_F(vectors, lambda c: c, 31, n_jobs=3, chunk_size=4)
    assert_allclose(parallel, serial)
