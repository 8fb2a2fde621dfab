# stan_solid/v3d/elements.py
"""
SOLID ELEMENT FORMULATION: Total-Lagrangian Stiffness and Stress Recovery
=========================================================================

PURPOSE:
--------
This module turns one element (nodes + material + element type) into:
- its stiffness matrix (3n × 3n), INITIAL or TANGENT
- its stress/strain increments after a displacement update
- its internal (resisting) nodal force vector

ENGINEERING DERIVATION:
-----------------------
At every Gauss point g the element maps natural coordinates (ξ, η, ζ) to
physical coordinates through the JACOBIAN:

    J = dN_local · X          (3×n)·(n×3) = 3×3

and physical shape-function derivatives follow from

    dN = J⁻¹ · dN_local       (3×n)

Total Lagrangian kinematics measure strain (Green-Lagrange) against the
UNDEFORMED configuration. Linearised, the strain increment is

    Δε = (BL0 + BL1) · Δu = BL · Δu

- BL0 is the usual small-strain operator (6×3n)
- BL1 adds the effect of the displacement already present, through the
  displacement gradient F = dN · U  (F[b][a] = ∂u_a/∂x_b)

The element stiffness is integrated over Gauss points:

    K_initial = Σ BLᵀ · D · BL · det(J) · w
    K_tangent = K_initial + Σ BNLᵀ · S · BNL · det(J) · w

where BNL (9×3n) collects all nine displacement derivatives and S (9×9)
repeats the current 3×3 stress tensor on its diagonal (stress stiffening).

RECOVERY:
---------
After a displacement update with element increment ΔU (3n vector):

    Δε_g = BL_g · ΔU,   Δσ_g = D · Δε_g

Gauss values are extrapolated to the nodes with the library weights, and
the internal force is

    R = Σ BL_gᵀ · (σ_committed,g + Δσ_g) · det(J) · w

THREAD SAFETY:
--------------
All functions read nodes and materials and only write buffers of the
element they were given, so they can run in a thread pool over elements.
"""

from enum import Enum
from typing import Dict, List, Tuple

import numpy as np

from ..config import CONFIG
from ..errors import DegenerateGeometryError, MaterialNotResolvedError
from ..kernel.matrix import Matrix, vector_to_tensor
from .library import ElementTypeDefinition
from .model import Element, Material, Model


class Formulation(Enum):
    INITIAL = "Initial"
    TANGENT = "Tangent"


# =============================================================================
# NODAL DATA
# =============================================================================

def nodal_coordinates(model: Model, element: Element) -> Matrix:
    """Undeformed coordinates of the element's nodes, n×3."""
    return Matrix.from_array([model.nodes[nid].coords for nid in element.nodes])


def nodal_displacements(model: Model, element: Element) -> Matrix:
    """Current displacements (committed + pending increment), n×3."""
    return Matrix.from_array([model.nodes[nid].current_displacement() for nid in element.nodes])


def increment_vector(model: Model, element: Element) -> np.ndarray:
    """Pending displacement increment as a 3n vector [u1x, u1y, u1z, u2x, ...]."""
    return np.concatenate([model.nodes[nid].du_increment for nid in element.nodes])


def element_dofs(model: Model, element: Element) -> List[int]:
    dofs = []
    for nid in element.nodes:
        dofs.extend(model.nodes[nid].dof)
    return dofs


def resolve_material(materials: Dict[int, Material], element: Element) -> Matrix:
    """
    Elastic matrix of the element's material.

    Raises:
        MaterialNotResolvedError: Missing material or no elastic matrix
    """
    material = materials.get(element.material_id)
    if material is None or material.elastic is None:
        raise MaterialNotResolvedError(element.id, element.material_id)
    return material.elastic


# =============================================================================
# GEOMETRY
# =============================================================================

def jacobian(dN_local: Matrix, X: Matrix) -> Matrix:
    """J = dN_local · X, 3×3."""
    return dN_local @ X


def jacobian_determinant(
    J: Matrix,
    element_id: int,
    gauss_point: int = 0,
    tolerance: float = None,
) -> float:
    """
    det(J), rejecting degenerate and inverted elements.

    The test is scale free: det(J) must exceed tolerance × (product of
    the row norms of J), i.e. the three natural directions must not be
    (nearly) coplanar.

    Raises:
        DegenerateGeometryError: det(J) ≤ 0 or near zero
    """
    if tolerance is None:
        tolerance = CONFIG.det_tolerance
    det = J.det3()
    scale = float(np.prod(np.linalg.norm(J.data, axis=1)))
    if not np.isfinite(det) or det <= tolerance * scale or scale == 0.0:
        raise DegenerateGeometryError(element_id, det, gauss_point)
    return det


def global_derivatives(J: Matrix, dN_local: Matrix) -> Matrix:
    """dN = J⁻¹ · dN_local, 3×n (rows: ∂/∂x, ∂/∂y, ∂/∂z)."""
    return J.inverse3() @ dN_local


# =============================================================================
# STRAIN-DISPLACEMENT OPERATORS
# =============================================================================

def bl0_matrix(dN: Matrix) -> Matrix:
    """
    Small-strain operator BL0, 6×3n.

    For node i (columns 3i, 3i+1, 3i+2):

        [∂x   0    0 ]     εxx
        [0    ∂y   0 ]     εyy
        [0    0    ∂z]     εzz
        [∂y   ∂x   0 ]     γxy
        [0    ∂z   ∂y]     γyz
        [∂z   0    ∂x]     γxz
    """
    n = dN.cols
    B = Matrix(6, 3 * n)
    for i in range(n):
        dx, dy, dz = dN.get_fast(0, i), dN.get_fast(1, i), dN.get_fast(2, i)
        c = 3 * i
        B.set_fast(0, c, dx)
        B.set_fast(1, c + 1, dy)
        B.set_fast(2, c + 2, dz)
        B.set_fast(3, c, dy)
        B.set_fast(3, c + 1, dx)
        B.set_fast(4, c + 1, dz)
        B.set_fast(4, c + 2, dy)
        B.set_fast(5, c, dz)
        B.set_fast(5, c + 2, dx)
    return B


def bl1_matrix(dN: Matrix, U: Matrix) -> Matrix:
    """
    Initial-displacement operator BL1, 6×3n.

    With F = dN · U (F[b][a] = ∂u_a/∂x_b), column 3i+a of node i is

        [F[0][a]·∂x_i                ]
        [F[1][a]·∂y_i                ]
        [F[2][a]·∂z_i                ]
        [F[0][a]·∂y_i + F[1][a]·∂x_i ]
        [F[1][a]·∂z_i + F[2][a]·∂y_i ]
        [F[0][a]·∂z_i + F[2][a]·∂x_i ]

    Zero when U is zero.
    """
    F = dN @ U
    n = dN.cols
    B = Matrix(6, 3 * n)
    for i in range(n):
        dx, dy, dz = dN.get_fast(0, i), dN.get_fast(1, i), dN.get_fast(2, i)
        for a in range(3):
            f0, f1, f2 = F.get_fast(0, a), F.get_fast(1, a), F.get_fast(2, a)
            c = 3 * i + a
            B.set_fast(0, c, f0 * dx)
            B.set_fast(1, c, f1 * dy)
            B.set_fast(2, c, f2 * dz)
            B.set_fast(3, c, f0 * dy + f1 * dx)
            B.set_fast(4, c, f1 * dz + f2 * dy)
            B.set_fast(5, c, f0 * dz + f2 * dx)
    return B


def bnl_matrix(dN: Matrix) -> Matrix:
    """
    Nonlinear operator BNL, 9×3n: rows 3a..3a+2 hold ∂x, ∂y, ∂z of node i
    in column 3i+a, giving all nine derivatives ∂u_a/∂x_b.
    """
    n = dN.cols
    B = Matrix(9, 3 * n)
    for i in range(n):
        for a in range(3):
            for b in range(3):
                B.set_fast(3 * a + b, 3 * i + a, dN.get_fast(b, i))
    return B


def stress_matrix(stress: np.ndarray) -> Matrix:
    """
    9×9 block-diagonal stress matrix with the 3×3 tensor of a Voigt stress
    vector repeated three times.
    """
    tensor = vector_to_tensor(stress)
    S = Matrix(9, 9)
    for k in range(3):
        S.data[3 * k:3 * k + 3, 3 * k:3 * k + 3] = tensor.data
    return S


# =============================================================================
# ELEMENT STIFFNESS
# =============================================================================

def element_stiffness(
    model: Model,
    element: Element,
    definition: ElementTypeDefinition,
    mode: Formulation = Formulation.INITIAL,
    det_tolerance: float = None,
) -> Matrix:
    """
    Element stiffness matrix, 3n × 3n.

    Stores BL and det(J) per Gauss point on the element for the recovery
    pass that follows.

    Parameters:
    -----------
    model : Model
        Source of node coordinates, displacements and materials
    element : Element
        The element (its increment buffers must be initialised)
    definition : ElementTypeDefinition
        Integration data for element.type
    mode : Formulation
        INITIAL (BLᵀ D BL) or TANGENT (adds BNLᵀ S BNL)
    det_tolerance : float, optional
        Relative degeneracy threshold (default from CONFIG)

    Returns:
    --------
    Matrix
        Symmetric element stiffness

    Raises:
    -------
    MaterialNotResolvedError, DegenerateGeometryError
    """
    D = resolve_material(model.materials, element)
    X = nodal_coordinates(model, element)
    U = nodal_displacements(model, element)
    w = definition.effective_weight
    n_dof = 3 * definition.n_nodes

    K = Matrix(n_dof, n_dof)
    bl_list = []
    det_list = []
    for g, dN_local in enumerate(definition.dN_local):
        J = jacobian(dN_local, X)
        det = jacobian_determinant(J, element.id, g, det_tolerance)
        dN = global_derivatives(J, dN_local)

        BL = bl0_matrix(dN) + bl1_matrix(dN, U)
        K = K + (BL.T @ D @ BL).scale(det * w)

        if mode is Formulation.TANGENT:
            sigma = element.gauss_stress[g] + element.d_gauss_stress[g]
            BNL = bnl_matrix(dN)
            K = K + (BNL.T @ stress_matrix(sigma) @ BNL).scale(det * w)

        bl_list.append(BL)
        det_list.append(det)

    element.bl = bl_list
    element.det_j = det_list
    return K


def element_contribution(
    model: Model,
    element: Element,
    definition: ElementTypeDefinition,
    mode: Formulation = Formulation.INITIAL,
    det_tolerance: float = None,
) -> Tuple[List[int], np.ndarray]:
    """(dof_map, ke) pair for kernel.assemble."""
    ke = element_stiffness(model, element, definition, mode, det_tolerance)
    return element_dofs(model, element), ke.data


# =============================================================================
# RECOVERY
# =============================================================================

def recover_element(model: Model, element: Element, definition: ElementTypeDefinition) -> None:
    """
    Recompute the element's stress/strain increments from the pending
    displacement increment, using BL from the latest stiffness build.

    The increment buffers are overwritten (the pending increment already
    contains every correction of this increment).
    """
    D = resolve_material(model.materials, element)
    dU = increment_vector(model, element)

    d_strain = np.zeros((definition.n_gauss, 6))
    for g, BL in enumerate(element.bl):
        d_strain[g] = BL.multiply_vector(dU)
    d_stress = d_strain @ D.data.T

    element.d_gauss_strain = d_strain
    element.d_gauss_stress = d_stress
    element.d_strain = definition.extrapolate(d_strain)
    element.d_stress = definition.extrapolate(d_stress)


def internal_force(element: Element, definition: ElementTypeDefinition) -> np.ndarray:
    """
    Internal nodal force R = Σ BLᵀ (σ_committed + Δσ) det(J) w, length 3n.
    """
    w = definition.effective_weight
    R = np.zeros(3 * definition.n_nodes)
    for g, BL in enumerate(element.bl):
        sigma = element.gauss_stress[g] + element.d_gauss_stress[g]
        R += BL.T.multiply_vector(sigma) * (element.det_j[g] * w)
    return R


def element_force_contribution(
    model: Model,
    element: Element,
    definition: ElementTypeDefinition,
) -> Tuple[List[int], np.ndarray]:
    """Recover the element and return its (dof_map, internal force) pair."""
    recover_element(model, element, definition)
    return element_dofs(model, element), internal_force(element, definition)


def element_volume(model: Model, element: Element, definition: ElementTypeDefinition) -> float:
    """Σ det(J)·w over Gauss points (exact for undistorted elements)."""
    X = nodal_coordinates(model, element)
    volume = 0.0
    for g, dN_local in enumerate(definition.dN_local):
        J = jacobian(dN_local, X)
        volume += jacobian_determinant(J, element.id, g) * definition.effective_weight
    return volume
