# stan_solid/solver.py
"""
EQUILIBRIUM SOLVER: Linear Statics and Incremental Newton-Raphson
=================================================================

PURPOSE:
--------
This module drives a complete static analysis of a Model:

    prepare  →  DOF numbering, elimination map, step-zero results
    solve    →  Linear_Statics (one pass) or Nonlinear_Statics (Newton-Raphson)
    commit   →  append displacement/stress/strain to each record's history

All run state lives in a SolveContext that is passed explicitly from step
to step. Nothing is stored in module globals.

LINEAR STATICS:
---------------
    F = point loads on free DOFs
    K = K_initial
    solve K·u = F, scatter u, recover stresses, commit as increment 1

NONLINEAR STATICS (Newton-Raphson):
-----------------------------------
For increment i = 1..N the target load is Fi = F·i/N.

    BuildInitial   K = K_initial, residual = Fi - R(committed state)
    Iterate        solve K·Δu = residual, accumulate Δu, recover stresses,
                   residual = Fi - R;  ||residual|| / ||Fi|| ≤ tol → Converged,
                   else K = K_tangent and iterate again
    Converged      commit results
    NextIncrement  move to i+1

Iterations are capped at Analysis.nr_max_iterations; exceeding the cap
raises ConvergenceError.

Stress recovery uses the BL operators stored by the most recent stiffness
build, and the residual is measured against the same operators. With an
exact linear solve (Cholesky, LU) the residual after iteration 0 is
therefore zero up to round-off, and every increment converges there,
large loads included. The K_tangent rebuild only comes into play after an
inexact solve (CG stopped at its tolerance). The increments thus trace a
piecewise-linear path through the load history rather than a fully
converged geometrically nonlinear equilibrium.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

import numpy as np

from .config import CONFIG, SolverConfig
from .errors import ConvergenceError, ModelIntegrityError
from .kernel.assemble import parallel_assemble_F, parallel_assemble_K
from .kernel.dof import DOFAssigner, elimination_map, expand_vector, n_reduced, reduce_vector
from .kernel.solve import require_converged, solve_reduced
from .v3d.elements import (
    Formulation,
    element_contribution,
    element_force_contribution,
    resolve_material,
)
from .v3d.library import ElementLibrary, ElementTypeDefinition
from .v3d.model import AnalysisType, Element, Model

logger = logging.getLogger(__name__)


class IncrementState(Enum):
    BUILD_INITIAL = "BuildInitial"
    ITERATE = "Iterate"
    CONVERGED = "Converged"
    NEXT_INCREMENT = "NextIncrement"


@dataclass
class IncrementRecord:
    """Convergence history of one load increment."""
    increment: int
    residuals: List[float] = field(default_factory=list)
    solver_status: List[str] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def iterations(self) -> int:
        """Linear solves performed in this increment."""
        return len(self.residuals)

    @property
    def converged_iteration(self) -> int:
        """0-based iteration at which the increment converged."""
        return max(len(self.residuals) - 1, 0)


@dataclass
class AnalysisResult:
    """Summary of a finished run."""
    analysis_type: AnalysisType
    n_dof: int
    n_free: int
    increments: List[IncrementRecord] = field(default_factory=list)
    dof_time: float = 0.0
    elapsed: float = 0.0

    @property
    def total_iterations(self) -> int:
        return sum(rec.iterations for rec in self.increments)


@dataclass
class SolveContext:
    """
    Everything a run needs besides the Model itself.

    Attributes:
    -----------
    model : Model
        The model being solved (results are written into it)
    dof : DOFAssigner
        Node numbering
    emap : np.ndarray
        Elimination map (-1 = constrained)
    definitions : Dict[int, ElementTypeDefinition]
        element id → integration data
    elements : List[Element]
        Elements in ascending id order (the parallel loop order)
    load : np.ndarray
        Full-length total point-load vector
    """
    model: Model
    dof: DOFAssigner
    emap: np.ndarray
    definitions: Dict[int, ElementTypeDefinition]
    elements: List[Element]
    load: np.ndarray
    n_jobs: int = 1
    chunk_size: int = 256
    det_tolerance: float = 1e-12
    dof_time: float = 0.0

    @property
    def n_free(self) -> int:
        return n_reduced(self.emap)


def prepare(
    model: Model,
    config: Optional[SolverConfig] = None,
    library: Optional[ElementLibrary] = None,
    n_jobs: Optional[int] = None,
) -> SolveContext:
    """
    Validate the model, number the DOFs and reset results to step zero.

    Raises:
        ConfigurationError: Bad analysis settings
        ModelIntegrityError: Dangling references, part without material,
            node count not matching the element type
        UnsupportedElementError: Element type without formulation
        MaterialNotResolvedError: Element material missing or unresolved
    """
    config = config or CONFIG
    library = library or ElementLibrary()

    model.analysis.validate()
    model.validate()

    start = time.perf_counter()
    dof = model.assign_dofs()
    dof_time = time.perf_counter() - start
    logger.info("DOF assignment: %d DOFs numbered in %.3f s", model.n_dof, dof_time)

    elements = [model.elements[eid] for eid in sorted(model.elements)]
    definitions = {}
    for element in elements:
        definition = library.get(element.type)
        if len(element.nodes) != definition.n_nodes:
            raise ModelIntegrityError(
                f"Element {element.id} of type {element.type} has {len(element.nodes)} "
                f"nodes, expected {definition.n_nodes}"
            )
        resolve_material(model.materials, element)
        definitions[element.id] = definition

    emap = elimination_map(model.n_dof, model.fixed_dofs())

    model.clear_results()
    for node in model.nodes.values():
        node.initialize_step_zero()
    for element in elements:
        element.initialize_step_zero(definitions[element.id].n_gauss)

    return SolveContext(
        model=model,
        dof=dof,
        emap=emap,
        definitions=definitions,
        elements=elements,
        load=model.load_vector(),
        n_jobs=config.n_jobs if n_jobs is None else n_jobs,
        chunk_size=config.chunk_size,
        det_tolerance=config.det_tolerance,
        dof_time=dof_time,
    )


def assemble_stiffness(ctx: SolveContext, mode: Formulation):
    """Reduced symmetric global stiffness for the current state."""
    model = ctx.model

    def stiffness(element):
        return element_contribution(
            model, element, ctx.definitions[element.id], mode, ctx.det_tolerance
        )

    return parallel_assemble_K(ctx.elements, stiffness, ctx.emap, ctx.n_jobs, ctx.chunk_size)


def recover(ctx: SolveContext) -> np.ndarray:
    """Recover all element stresses and return the reduced internal force vector."""
    model = ctx.model

    def force(element):
        return element_force_contribution(model, element, ctx.definitions[element.id])

    R = parallel_assemble_F(ctx.elements, force, model.n_dof, ctx.n_jobs, ctx.chunk_size)
    return reduce_vector(R, ctx.emap)


def apply_correction(ctx: SolveContext, du: np.ndarray) -> None:
    """Scatter a reduced displacement correction onto the nodes."""
    full = expand_vector(du, ctx.emap)
    for node in ctx.model.nodes.values():
        node.add_correction(full[list(node.dof)])


def solve_system(ctx: SolveContext, K, F: np.ndarray, record: IncrementRecord) -> np.ndarray:
    """Linear solve with the configured strategy; non-converged statuses raise."""
    analysis = ctx.model.analysis
    result = solve_reduced(
        K, F,
        method=analysis.linear_solver,
        tolerance=analysis.solver_tolerance,
        max_iterations=analysis.solver_max_iterations,
    )
    record.solver_status.append(result.status.name)
    return require_converged(result)


def commit(ctx: SolveContext) -> None:
    for node in ctx.model.nodes.values():
        node.commit_increment()
    for element in ctx.elements:
        element.commit_increment()
    ctx.model.analysis.result_steps += 1


def _relative(residual: np.ndarray, reference: float) -> float:
    if reference == 0.0:
        return 0.0
    return float(np.linalg.norm(residual) / reference)


def linear_statics(ctx: SolveContext) -> AnalysisResult:
    """Single-pass small-displacement analysis."""
    start = time.perf_counter()
    model = ctx.model
    result = AnalysisResult(AnalysisType.LINEAR_STATICS, model.n_dof, ctx.n_free, dof_time=ctx.dof_time)
    record = IncrementRecord(1)

    K = assemble_stiffness(ctx, Formulation.INITIAL)
    F = reduce_vector(ctx.load, ctx.emap)
    du = solve_system(ctx, K, F, record)
    apply_correction(ctx, du)
    R = recover(ctx)

    record.residuals.append(_relative(F - R, float(np.linalg.norm(F))))
    logger.info("Linear solve: residual %.3e, solver status %s",
                record.residuals[-1], record.solver_status[-1])
    commit(ctx)

    record.elapsed = time.perf_counter() - start
    result.increments.append(record)
    return result


def nonlinear_statics(ctx: SolveContext) -> AnalysisResult:
    """
    Incremental Total-Lagrangian Newton-Raphson analysis.

    Raises:
        ConvergenceError: An increment needs more than nr_max_iterations
        LinearSolveError: The linear solver fails in any iteration
    """
    model = ctx.model
    analysis = model.analysis
    n_inc = analysis.increments
    F_total = reduce_vector(ctx.load, ctx.emap)
    result = AnalysisResult(AnalysisType.NONLINEAR_STATICS, model.n_dof, ctx.n_free, dof_time=ctx.dof_time)

    for inc in range(1, n_inc + 1):
        start = time.perf_counter()
        record = IncrementRecord(inc)
        Fi = F_total * inc / n_inc
        f_norm = float(np.linalg.norm(Fi))
        state = IncrementState.BUILD_INITIAL

        while state is not IncrementState.NEXT_INCREMENT:
            if state is IncrementState.BUILD_INITIAL:
                K = assemble_stiffness(ctx, Formulation.INITIAL)
                residual = Fi - recover(ctx)
                state = IncrementState.ITERATE if f_norm > 0.0 else IncrementState.CONVERGED

            elif state is IncrementState.ITERATE:
                if record.iterations >= analysis.nr_max_iterations:
                    raise ConvergenceError(inc, record.iterations, record.residuals[-1])
                du = solve_system(ctx, K, residual, record)
                apply_correction(ctx, du)
                residual = Fi - recover(ctx)
                norm = _relative(residual, f_norm)
                record.residuals.append(norm)
                logger.info("Increment %d/%d, iteration %d: residual %.3e, solver status %s",
                            inc, n_inc, record.iterations - 1, norm, record.solver_status[-1])
                if norm <= analysis.nr_tolerance:
                    state = IncrementState.CONVERGED
                else:
                    K = assemble_stiffness(ctx, Formulation.TANGENT)

            elif state is IncrementState.CONVERGED:
                commit(ctx)
                state = IncrementState.NEXT_INCREMENT

        record.elapsed = time.perf_counter() - start
        result.increments.append(record)
        logger.info("Increment %d/%d converged in %d iteration(s), %.3f s",
                    inc, n_inc, record.iterations, record.elapsed)

    return result


def run_analysis(
    model: Model,
    config: Optional[SolverConfig] = None,
    library: Optional[ElementLibrary] = None,
    n_jobs: Optional[int] = None,
) -> AnalysisResult:
    """
    Solve a model with its Analysis settings and append results to it.

    Any exception leaves the model's results in an undefined state; call
    model.clear_results() (or reload it) before trusting or saving it.

    Parameters:
    -----------
    model : Model
        Model with nodes, elements, materials, BCs and Analysis settings
    config : SolverConfig, optional
        Worker count, chunk size, tolerances (default: CONFIG)
    library : ElementLibrary, optional
        Element registry (default: a fresh ElementLibrary)
    n_jobs : int, optional
        Override config.n_jobs

    Returns:
    --------
    AnalysisResult
    """
    start = time.perf_counter()
    ctx = prepare(model, config, library, n_jobs)
    logger.info("%s: %d nodes, %d elements, %d DOFs (%d free)",
                model.analysis.type.value, len(model.nodes), len(model.elements),
                model.n_dof, ctx.n_free)

    if model.analysis.type is AnalysisType.LINEAR_STATICS:
        result = linear_statics(ctx)
    else:
        result = nonlinear_statics(ctx)

    model.clear_transient()
    result.elapsed = time.perf_counter() - start
    logger.info("Analysis finished in %.3f s", result.elapsed)
    return result
