# stan_solid/kernel/solve.py
"""Pluggable sparse solvers for the reduced system K·u = F (CG, banded Cholesky, LU)."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict

import numpy as np
import scipy.sparse as sp
from scipy.linalg import LinAlgError, cho_solve_banded, cholesky_banded
from scipy.sparse.linalg import cg, splu

from ..errors import ConfigurationError, LinearSolveError

logger = logging.getLogger(__name__)


class SolverStatus(Enum):
    """Outcome of a linear solve. Anything but CONVERGED is a failure."""
    CONVERGED = "Converged"
    ILL_CONDITIONED_OR_NON_SPD = "IllConditionedOrNonSPD"
    ITERATION_LIMIT_REACHED = "IterationLimitReached"
    NUMERICAL_OVERFLOW = "NumericalOverflow"


@dataclass
class LinearSolveResult:
    """Solution vector plus how the solver got there."""
    x: np.ndarray
    status: SolverStatus
    iterations: int = 0
    method: str = ""

    @property
    def converged(self) -> bool:
        return self.status is SolverStatus.CONVERGED


def _finite(*arrays) -> bool:
    return all(np.all(np.isfinite(a)) for a in arrays)


def solve_cg(
    K: sp.spmatrix,
    F: np.ndarray,
    tolerance: float = 1e-6,
    max_iterations: int = 0,
) -> LinearSolveResult:
    """
    Jacobi-preconditioned conjugate gradient.

    Args:
        K: Reduced symmetric stiffness (sparse)
        F: Reduced right-hand side
        tolerance: Relative residual tolerance ||r|| / ||F||
        max_iterations: Iteration cap, 0 = scipy default (10·n)

    Returns:
        LinearSolveResult. A non-positive diagonal means K is not SPD and
        CG is not attempted.
    """
    n = K.shape[0]
    diag = K.diagonal()
    if np.any(diag <= 0.0):
        return LinearSolveResult(np.zeros(n), SolverStatus.ILL_CONDITIONED_OR_NON_SPD, 0, "CG")

    M = sp.diags(1.0 / diag)
    count = [0]

    def callback(xk):
        count[0] += 1

    maxiter = max_iterations if max_iterations > 0 else None
    x, info = cg(K, F, rtol=tolerance, atol=0.0, maxiter=maxiter, M=M, callback=callback)

    if not _finite(x):
        status = SolverStatus.NUMERICAL_OVERFLOW
    elif info > 0:
        status = SolverStatus.ITERATION_LIMIT_REACHED
    elif info < 0:
        status = SolverStatus.ILL_CONDITIONED_OR_NON_SPD
    else:
        status = SolverStatus.CONVERGED
    return LinearSolveResult(x, status, count[0], "CG")


def upper_band(K: sp.spmatrix) -> np.ndarray:
    """
    Upper band storage of a symmetric sparse matrix, as cholesky_banded wants it.

    ab[u + i - j, j] = K[i, j] for j ≥ i, where u is the semi-bandwidth.
    The BFS numbering in kernel.dof keeps u small.
    """
    U = sp.triu(K, format="coo")
    n = K.shape[0]
    u = int((U.col - U.row).max()) if U.nnz else 0
    ab = np.zeros((u + 1, n))
    ab[u + U.row - U.col, U.col] = U.data
    return ab


def solve_cholesky(
    K: sp.spmatrix,
    F: np.ndarray,
    tolerance: float = 1e-6,
    max_iterations: int = 0,
) -> LinearSolveResult:
    """
    Banded Cholesky factorisation (direct, SPD only).

    tolerance and max_iterations are accepted for a uniform interface and
    ignored. A matrix that is not positive definite returns
    ILL_CONDITIONED_OR_NON_SPD instead of raising.
    """
    n = K.shape[0]
    ab = upper_band(K)
    if not _finite(ab, F):
        return LinearSolveResult(np.zeros(n), SolverStatus.NUMERICAL_OVERFLOW, 0, "Cholesky")
    try:
        cb = cholesky_banded(ab, lower=False)
    except LinAlgError:
        return LinearSolveResult(np.zeros(n), SolverStatus.ILL_CONDITIONED_OR_NON_SPD, 0, "Cholesky")

    x = cho_solve_banded((cb, False), F)
    status = SolverStatus.CONVERGED if _finite(x) else SolverStatus.NUMERICAL_OVERFLOW
    return LinearSolveResult(x, status, 0, "Cholesky")


def solve_lu(
    K: sp.spmatrix,
    F: np.ndarray,
    tolerance: float = 1e-6,
    max_iterations: int = 0,
) -> LinearSolveResult:
    """Sparse LU with partial pivoting (SuperLU). Works for any non-singular K."""
    n = K.shape[0]
    if not _finite(K.data, F):
        return LinearSolveResult(np.zeros(n), SolverStatus.NUMERICAL_OVERFLOW, 0, "LU")
    try:
        lu = splu(sp.csc_matrix(K))
    except RuntimeError:
        # SuperLU reports an exactly singular factor this way
        return LinearSolveResult(np.zeros(n), SolverStatus.ILL_CONDITIONED_OR_NON_SPD, 0, "LU")

    x = lu.solve(np.asarray(F, dtype=float))
    status = SolverStatus.CONVERGED if _finite(x) else SolverStatus.NUMERICAL_OVERFLOW
    return LinearSolveResult(x, status, 0, "LU")


LINEAR_SOLVERS: Dict[str, Callable[..., LinearSolveResult]] = {
    "CG": solve_cg,
    "Cholesky": solve_cholesky,
    "LU": solve_lu,
}


def canonical_solver_name(name: str) -> str:
    """
    Match a solver name case-insensitively against LINEAR_SOLVERS.

    Raises:
        ConfigurationError: If no solver has that name
    """
    for key in LINEAR_SOLVERS:
        if key.lower() == str(name).strip().lower():
            return key
    raise ConfigurationError(
        f"Unknown linear solver '{name}'. Choose one of {sorted(LINEAR_SOLVERS)}.",
        parameter="linear_solver", value=name,
    )


def solve_reduced(
    K: sp.spmatrix,
    F: np.ndarray,
    method: str = "CG",
    tolerance: float = 1e-6,
    max_iterations: int = 0,
) -> LinearSolveResult:
    """
    Solve the reduced system with the named strategy.

    Args:
        K: Reduced symmetric sparse stiffness (n×n)
        F: Reduced right-hand side (n,)
        method: "CG", "Cholesky" or "LU"
        tolerance: CG relative tolerance
        max_iterations: CG iteration cap (0 = default)

    Returns:
        LinearSolveResult (never raises for numerical trouble; check status)

    Raises:
        ConfigurationError: Unknown method name
    """
    key = canonical_solver_name(method)
    F = np.asarray(F, dtype=float)
    if K.shape[0] != K.shape[1] or K.shape[0] != F.shape[0]:
        raise ValueError(f"K {K.shape} and F {F.shape} don't form a square system")
    if F.shape[0] == 0:
        return LinearSolveResult(np.zeros(0), SolverStatus.CONVERGED, 0, key)

    result = LINEAR_SOLVERS[key](K, F, tolerance=tolerance, max_iterations=max_iterations)
    result.method = key
    logger.debug("%s solve: n=%d, status=%s, iterations=%d",
                 key, F.shape[0], result.status.name, result.iterations)
    return result


def require_converged(result: LinearSolveResult) -> np.ndarray:
    """Return the solution, or raise LinearSolveError for any other status."""
    if result.status is not SolverStatus.CONVERGED:
        raise LinearSolveError(result.method, result.status, result.iterations)
    return result.x
