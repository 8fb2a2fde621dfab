# stan_solid - 3D Solid Finite-Element Static Analysis
"""
STAN SOLID: Static Analysis of 3D Solid Meshes
==============================================

This package provides:
- Hexahedral and tetrahedral solid elements (HEX8, TET4)
- Linear statics and incremental Total-Lagrangian Newton-Raphson
- Bandwidth-reducing DOF numbering and parallel sparse assembly
- CG, banded Cholesky and LU solvers behind one interface

ARCHITECTURE:
-------------
    kernel/         Element-agnostic core (matrices, DOFs, assembly, solvers)
    v3d/            Solid model records, element library, formulation, import
    solver.py       Linear and Newton-Raphson drivers
    io.py           Save/load models with results (joblib)
    post.py         von Mises, principal stresses, result tables (pandas)
    viz.py          Convergence plot (matplotlib)
    cli.py          python -m stan_solid MODEL
"""

from .errors import (
    ConfigurationError,
    ConvergenceError,
    DegenerateGeometryError,
    LinearSolveError,
    MaterialNotResolvedError,
    ModelIntegrityError,
    StanError,
    UnsupportedElementError,
)
from .v3d import Model, AnalysisType
from .solver import run_analysis, AnalysisResult
from .io import load_model, save_model

__version__ = "0.1.0"
