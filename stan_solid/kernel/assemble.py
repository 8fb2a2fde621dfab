# stan_solid/kernel/assemble.py
"""
ASSEMBLY: Parallel Sparse Assembly with Constrained-DOF Elimination
===================================================================

PURPOSE:
--------
This module scatters element contributions into the global (reduced)
stiffness matrix and into global force vectors.

The key insight is the same as for any element type: assembly doesn't care
what the element is. It needs, per element, a DOF map and a dense matrix.

WHAT'S DIFFERENT FOR SOLIDS:
----------------------------
1. SIZE: a solid mesh has thousands of DOFs, so K is SPARSE (scipy.sparse)
   and never stored dense.

2. ELIMINATION: constrained DOFs are removed while assembling, using the
   elimination map from kernel.dof:

       reduced_row = row - emap[row]     (skip if emap[row] == -1)

   so the solver only ever sees the free DOFs.

3. SYMMETRY: only the upper triangle (global col ≥ global row) of each
   element matrix is scattered. The full matrix is mirrored once at the end.

4. PARALLELISM: elements are split into chunks and processed by a joblib
   thread pool. Each chunk returns its OWN triplet lists (rows, cols, vals);
   the lists are concatenated once, in chunk order, and summed by scipy.
   No locks, and repeated runs give bit-identical matrices.

USAGE:
------
    def stiffness(element):
        return dof.element_dof_map(element.nodes), ke

    K = parallel_assemble_K(elements, stiffness, emap, n_jobs=4)
"""

import logging
from typing import Callable, Iterable, List, Sequence, Tuple

import numpy as np
import scipy.sparse as sp
from joblib import Parallel, delayed

logger = logging.getLogger(__name__)

Contribution = Tuple[Sequence[int], np.ndarray]


def chunked(items: Sequence, chunk_size: int) -> List[Sequence]:
    """Split items into consecutive chunks of at most chunk_size."""
    chunk_size = max(1, int(chunk_size))
    return [items[i:i + chunk_size] for i in range(0, len(items), chunk_size)]


def upper_triplets(
    dof_map: Sequence[int],
    ke: np.ndarray,
    emap: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Reduced (row, col, value) triplets of one element matrix.

    Keeps entries with global col ≥ global row where neither DOF is
    constrained, and shifts both indices into the reduced system.

    Parameters:
    -----------
    dof_map : Sequence[int]
        Global DOF index of each local DOF
    ke : np.ndarray
        Element matrix, shape (len(dof_map), len(dof_map))
    emap : np.ndarray
        Elimination map (see kernel.dof.elimination_map)

    Returns:
    --------
    rows, cols, vals : np.ndarray
        Reduced upper-triangle triplets

    Example:
    --------
    >>> emap = np.array([0, -1, 1])
    >>> r, c, v = upper_triplets([0, 1, 2], np.arange(9.0).reshape(3, 3), emap)
    >>> list(zip(r.tolist(), c.tolist(), v.tolist()))
    [(0, 0, 0.0), (0, 1, 2.0), (1, 1, 8.0)]
    """
    dofs = np.asarray(dof_map, dtype=np.int64)
    n = dofs.shape[0]
    assert ke.shape == (n, n), \
        f"Element matrix shape {ke.shape} doesn't match dof_map length {n}"

    R = np.repeat(dofs, n)
    C = np.tile(dofs, n)
    keep = (C >= R) & (emap[R] >= 0) & (emap[C] >= 0)
    R = R[keep]
    C = C[keep]
    return R - emap[R], C - emap[C], ke.ravel()[keep]


def _chunk_triplets(chunk, element_matrix: Callable, emap: np.ndarray):
    rows, cols, vals = [], [], []
    for element in chunk:
        dof_map, ke = element_matrix(element)
        r, c, v = upper_triplets(dof_map, ke, emap)
        rows.append(r)
        cols.append(c)
        vals.append(v)
    if not rows:
        empty = np.zeros(0, dtype=np.int64)
        return empty, empty, np.zeros(0)
    return np.concatenate(rows), np.concatenate(cols), np.concatenate(vals)


def symmetric_from_upper(upper: sp.spmatrix) -> sp.csr_matrix:
    """Mirror an upper-triangular sparse matrix into the full symmetric one."""
    upper = sp.csr_matrix(upper)
    return (upper + sp.triu(upper, k=1).T).tocsr()


def assemble_reduced_K(
    n_red: int,
    contributions: Iterable[Contribution],
    emap: np.ndarray,
) -> sp.csr_matrix:
    """
    Serial assembly of (dof_map, ke) pairs into the reduced symmetric K.

    Parameters:
    -----------
    n_red : int
        Number of unconstrained DOFs
    contributions : Iterable[(dof_map, ke)]
        One pair per element
    emap : np.ndarray
        Elimination map

    Returns:
    --------
    scipy.sparse.csr_matrix
        Reduced symmetric stiffness, shape (n_red, n_red)
    """
    rows, cols, vals = [], [], []
    for dof_map, ke in contributions:
        r, c, v = upper_triplets(dof_map, ke, emap)
        rows.append(r)
        cols.append(c)
        vals.append(v)
    if not rows:
        return sp.csr_matrix((n_red, n_red))
    upper = sp.coo_matrix(
        (np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))),
        shape=(n_red, n_red),
    )
    return symmetric_from_upper(upper)


def parallel_assemble_K(
    elements: Sequence,
    element_matrix: Callable,
    emap: np.ndarray,
    n_jobs: int = 1,
    chunk_size: int = 256,
) -> sp.csr_matrix:
    """
    Parallel-for over elements, building the reduced symmetric K.

    Parameters:
    -----------
    elements : Sequence
        Element records (whatever element_matrix accepts)
    element_matrix : Callable
        element → (dof_map, ke). Called from worker threads; it may only
        write to buffers owned by that element.
    emap : np.ndarray
        Elimination map
    n_jobs : int
        joblib worker threads (1 = run inline)
    chunk_size : int
        Elements per task

    Returns:
    --------
    scipy.sparse.csr_matrix
        Reduced symmetric stiffness matrix
    """
    n_red = int(np.count_nonzero(emap >= 0))
    chunks = chunked(list(elements), chunk_size)
    parts = Parallel(n_jobs=n_jobs, prefer="threads")(
        delayed(_chunk_triplets)(chunk, element_matrix, emap) for chunk in chunks
    )
    if not parts:
        return sp.csr_matrix((n_red, n_red))

    rows = np.concatenate([p[0] for p in parts])
    cols = np.concatenate([p[1] for p in parts])
    vals = np.concatenate([p[2] for p in parts])
    upper = sp.coo_matrix((vals, (rows, cols)), shape=(n_red, n_red))
    K = symmetric_from_upper(upper)
    logger.debug("Assembled K: %d×%d, %d stored entries", n_red, n_red, K.nnz)
    return K


def assemble_global_F(
    ndof: int,
    contributions: Iterable[Contribution],
) -> np.ndarray:
    """
    Scatter-add element vectors into a full-length global vector.

    Used for internal (resisting) forces. Constrained DOFs are kept here;
    reduce_vector drops them afterwards.

    Example:
    --------
    >>> assemble_global_F(4, [([0, 1], np.array([1.0, 2.0])), ([1, 3], np.array([5.0, 1.0]))])
    array([1., 7., 0., 1.])
    """
    F = np.zeros(ndof, dtype=float)
    for dof_map, fe in contributions:
        dofs = np.asarray(dof_map, dtype=np.int64)
        assert fe.shape == dofs.shape, \
            f"Element vector shape {fe.shape} doesn't match dof_map length {dofs.shape[0]}"
        np.add.at(F, dofs, fe)
    return F


def parallel_assemble_F(
    elements: Sequence,
    element_vector: Callable,
    ndof: int,
    n_jobs: int = 1,
    chunk_size: int = 256,
) -> np.ndarray:
    """
    Parallel-for over elements, scattering element → (dof_map, fe) into a
    full-length vector. Chunk vectors are summed in chunk order.
    """
    def run(chunk):
        return assemble_global_F(ndof, (element_vector(e) for e in chunk))

    chunks = chunked(list(elements), chunk_size)
    parts = Parallel(n_jobs=n_jobs, prefer="threads")(delayed(run)(c) for c in chunks)
    F = np.zeros(ndof, dtype=float)
    for part in parts:
        F += part
    return F
