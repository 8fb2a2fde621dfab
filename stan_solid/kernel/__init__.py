# stan_solid/kernel - Element-agnostic numerical core
"""
KERNEL: THE ELEMENT-AGNOSTIC FOUNDATION
=======================================

This package contains the pieces of a solid FE analysis that don't care
which element produced the numbers:

- matrix.py    Small dense matrices with a strict contract (Matrix)
- dof.py       BFS equation numbering + constrained-DOF elimination
- assemble.py  Parallel sparse assembly of the reduced system
- solve.py     Pluggable linear solvers (CG, banded Cholesky, LU)

The ELEMENT implementations (HEX8, TET4) live in v3d; the kernel plumbing
is shared.
"""

from .matrix import Matrix, vector_to_tensor, tensor_to_vector
from .dof import DOFAssigner, elimination_map, reduce_vector, expand_vector
from .assemble import parallel_assemble_K, parallel_assemble_F, assemble_reduced_K
from .solve import SolverStatus, LinearSolveResult, solve_reduced, require_converged

__all__ = [
    'Matrix', 'vector_to_tensor', 'tensor_to_vector',
    'DOFAssigner', 'elimination_map', 'reduce_vector', 'expand_vector',
    'parallel_assemble_K', 'parallel_assemble_F', 'assemble_reduced_K',
    'SolverStatus', 'LinearSolveResult', 'solve_reduced', 'require_converged',
]
