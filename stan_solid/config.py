# stan_solid/config.py
"""
Solver configuration and defaults.
"""

from dataclasses import dataclass


@dataclass
class SolverConfig:
    """Global solver configuration."""

    # Package metadata
    app_name: str = "STAN Solid"
    version: str = "0.1.0"

    # Parallel element loops (joblib thread pool)
    n_jobs: int = 4
    chunk_size: int = 256

    # Newton-Raphson defaults for Nonlinear_Statics
    nr_tolerance: float = 1e-3
    nr_max_iterations: int = 25

    # Jacobian determinant below this fraction of the row-norm product is degenerate
    det_tolerance: float = 1e-12

    # Linear solver defaults
    linear_solver: str = "CG"
    solver_tolerance: float = 1e-6
    solver_max_iterations: int = 0

    # CLI
    exit_delay: float = 3.0
    log_level: str = "INFO"


# Global config instance
CONFIG = SolverConfig()
