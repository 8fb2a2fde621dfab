# stan_solid/v3d/library.py
"""
ELEMENT LIBRARY: Gauss Points, Shape Derivatives, Extrapolation
===============================================================

PURPOSE:
--------
Everything element formulation needs to know about an element TYPE (as
opposed to one particular element) lives here, computed once:

- Gauss-point locations and the integration weight
- 3×n matrix of shape-function derivatives ∂N/∂(ξ,η,ζ) at each Gauss point
- per-node extrapolation weights, to move Gauss-point stresses to nodes

SUPPORTED TYPES:
----------------
    HEX8_G1    8-node hexahedron, 1 point at the origin, weight 8
    HEX8_G2    8-node hexahedron, 2×2×2 points at ±1/√3, weight 1
    TET4_G1    4-node tetrahedron, 1 point at the centroid, weight 1.0
    TET4_G2    4-node tetrahedron, 4 points, weight 0.25
    PENTA6_*   declared, no formulation (UnsupportedElementError)

NATURAL COORDINATES:
--------------------
HEX8 lives in the cube [-1, 1]³, nodes numbered bottom face then top face:

        7 -------- 6          ζ
       /|         /|          |
      4 -------- 5 |          +--- η
      | 3 -------|-2         /
      |/         |/         ξ
      0 -------- 1

TET4 lives in the unit simplex ξ, η, ζ ≥ 0, ξ+η+ζ ≤ 1 with
N1 = 1-ξ-η-ζ, N2 = ξ, N3 = η, N4 = ζ. The simplex has volume 1/6, so tet
types carry volume_factor = 1/6 and the effective weight of a Gauss point
is weight × volume_factor.

EXTRAPOLATION:
--------------
The Gauss points of HEX8_G2 (and TET4_G2) form a smaller copy of the
element. Treat them as the nodes of that copy, find where each REAL node
sits in the copy's natural coordinates, and evaluate the copy's shape
functions there:

    nodal_value[k] = Σ_g extrapolation[k][g] · gauss_value[g]

With one Gauss point the field is constant and every weight is 1.
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np

from ..errors import UnsupportedElementError
from ..kernel.matrix import Matrix


G = 1.0 / np.sqrt(3.0)

# HEX8 node (and 2×2×2 Gauss point) sign pattern
HEX8_NODES = np.array([
    [-1.0, -1.0, -1.0],
    [+1.0, -1.0, -1.0],
    [+1.0, +1.0, -1.0],
    [-1.0, +1.0, -1.0],
    [-1.0, -1.0, +1.0],
    [+1.0, -1.0, +1.0],
    [+1.0, +1.0, +1.0],
    [-1.0, +1.0, +1.0],
])

TET4_NODES = np.array([
    [0.0, 0.0, 0.0],
    [1.0, 0.0, 0.0],
    [0.0, 1.0, 0.0],
    [0.0, 0.0, 1.0],
])

# 4-point tetrahedron rule
TET_A = 0.585410196624968
TET_B = 0.138196601125010


@dataclass(frozen=True)
class ElementTypeDefinition:
    """
    Integration data for one element type.

    Attributes:
    -----------
    name : str
        Registry key, e.g. "HEX8_G2"
    n_nodes : int
        Nodes per element
    gauss_points : np.ndarray
        Natural coordinates, shape (n_gauss, 3)
    weight : float
        Integration weight (same for every Gauss point)
    volume_factor : float
        Reference-volume scaling (1 for hexahedra, 1/6 for tetrahedra)
    dN_local : Tuple[Matrix, ...]
        One 3×n_nodes derivative matrix per Gauss point
    extrapolation : Tuple[np.ndarray, ...]
        One (n_gauss,) weight vector per node
    """
    name: str
    n_nodes: int
    gauss_points: np.ndarray
    weight: float
    volume_factor: float
    dN_local: Tuple[Matrix, ...]
    extrapolation: Tuple[np.ndarray, ...]

    @property
    def n_gauss(self) -> int:
        return self.gauss_points.shape[0]

    @property
    def effective_weight(self) -> float:
        return self.weight * self.volume_factor

    def extrapolate(self, gauss_values: np.ndarray) -> np.ndarray:
        """
        Gauss-point values (n_gauss, k) → nodal values (n_nodes, k).
        """
        E = np.vstack(self.extrapolation)
        return E @ gauss_values


# =============================================================================
# SHAPE FUNCTIONS
# =============================================================================

def hex8_shape(xi: float, eta: float, zeta: float) -> np.ndarray:
    """
    Trilinear HEX8 shape functions Ni = (1+ξiξ)(1+ηiη)(1+ζiζ)/8.

    >>> float(hex8_shape(0.0, 0.0, 0.0).sum())
    1.0
    """
    s = HEX8_NODES
    return (1 + s[:, 0] * xi) * (1 + s[:, 1] * eta) * (1 + s[:, 2] * zeta) / 8.0


def hex8_derivatives(xi: float, eta: float, zeta: float) -> Matrix:
    """
    ∂N/∂(ξ,η,ζ) for HEX8, shape 3×8.

    Row 0: ∂Ni/∂ξ = ξi(1+ηiη)(1+ζiζ)/8
    Row 1: ∂Ni/∂η = ηi(1+ξiξ)(1+ζiζ)/8
    Row 2: ∂Ni/∂ζ = ζi(1+ξiξ)(1+ηiη)/8
    """
    s = HEX8_NODES
    a = 1 + s[:, 0] * xi
    b = 1 + s[:, 1] * eta
    c = 1 + s[:, 2] * zeta
    return Matrix.from_array(np.vstack([
        s[:, 0] * b * c,
        s[:, 1] * a * c,
        s[:, 2] * a * b,
    ]) / 8.0)


def tet4_shape(xi: float, eta: float, zeta: float) -> np.ndarray:
    """Linear TET4 shape functions [1-ξ-η-ζ, ξ, η, ζ]."""
    return np.array([1.0 - xi - eta - zeta, xi, eta, zeta])


def tet4_derivatives() -> Matrix:
    """∂N/∂(ξ,η,ζ) for TET4 (constant), shape 3×4."""
    return Matrix.from_array([
        [-1.0, 1.0, 0.0, 0.0],
        [-1.0, 0.0, 1.0, 0.0],
        [-1.0, 0.0, 0.0, 1.0],
    ])


# =============================================================================
# TYPE BUILDERS
# =============================================================================

def _hex8_g1() -> ElementTypeDefinition:
    return ElementTypeDefinition(
        name="HEX8_G1",
        n_nodes=8,
        gauss_points=np.zeros((1, 3)),
        weight=8.0,
        volume_factor=1.0,
        dN_local=(hex8_derivatives(0.0, 0.0, 0.0),),
        extrapolation=tuple(np.ones(1) for _ in range(8)),
    )


def _hex8_g2() -> ElementTypeDefinition:
    points = HEX8_NODES * G
    return ElementTypeDefinition(
        name="HEX8_G2",
        n_nodes=8,
        gauss_points=points,
        weight=1.0,
        volume_factor=1.0,
        dN_local=tuple(hex8_derivatives(*p) for p in points),
        # real node k sits at HEX8_NODES[k] / G in the Gauss-point cube
        extrapolation=tuple(hex8_shape(*(node / G)) for node in HEX8_NODES),
    )


def _tet4_g1() -> ElementTypeDefinition:
    return ElementTypeDefinition(
        name="TET4_G1",
        n_nodes=4,
        gauss_points=np.full((1, 3), 0.25),
        weight=1.0,
        volume_factor=1.0 / 6.0,
        dN_local=(tet4_derivatives(),),
        extrapolation=tuple(np.ones(1) for _ in range(4)),
    )


def _tet4_g2() -> ElementTypeDefinition:
    # Gauss point k is the one closest to node k
    points = TET_B + (TET_A - TET_B) * TET4_NODES
    return ElementTypeDefinition(
        name="TET4_G2",
        n_nodes=4,
        gauss_points=points,
        weight=0.25,
        volume_factor=1.0 / 6.0,
        dN_local=tuple(tet4_derivatives() for _ in points),
        extrapolation=tuple(
            tet4_shape(*((node - TET_B) / (TET_A - TET_B))) for node in TET4_NODES
        ),
    )


_BUILDERS = {
    "HEX8_G1": _hex8_g1,
    "HEX8_G2": _hex8_g2,
    "TET4_G1": _tet4_g1,
    "TET4_G2": _tet4_g2,
}

# Known to the model (import, part formulation) but without shape functions
DECLARED_TYPES = ("PENTA6_G1", "PENTA6_G2")


def element_shape(type_name: str) -> str:
    """Shape family of a type tag: "HEX8_G2" → "HEX8"."""
    return type_name.split("_")[0]


class ElementLibrary:
    """
    Registry of element type definitions, built once at construction.

    The registry is read-only afterwards, so worker threads can share it.

    Examples:
    ---------
    >>> lib = ElementLibrary()
    >>> lib.get("HEX8_G2").n_gauss
    8
    >>> "PENTA6_G2" in lib
    False
    """

    def __init__(self):
        self._types: Dict[str, ElementTypeDefinition] = {
            name: build() for name, build in _BUILDERS.items()
        }

    def get(self, name: str) -> ElementTypeDefinition:
        """
        Look up a type definition.

        Raises:
        -------
        UnsupportedElementError
            For declared-but-unimplemented types (PENTA6) and unknown names
        """
        try:
            return self._types[name]
        except KeyError:
            raise UnsupportedElementError(name) from None

    def __getitem__(self, name: str) -> ElementTypeDefinition:
        return self.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._types

    def names(self) -> List[str]:
        return sorted(self._types)
