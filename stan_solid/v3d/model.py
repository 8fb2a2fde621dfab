# stan_solid/v3d/model.py
"""
SOLID MODEL DEFINITIONS: Nodes, Elements, Materials, Parts, BCs, Analysis
=========================================================================

PURPOSE:
--------
This module defines the data structures of a 3D solid FE model and the
Model record that owns them. A Model is passed explicitly through the whole
pipeline (import → DOF numbering → assembly → solve → results); there is
no global "current model".

ENGINEERING CONTEXT:
--------------------
A SOLID element (hexahedron, tetrahedron) fills volume. Each node has
3 degrees of freedom:
- ux, uy, uz: displacements (no rotations, unlike beams)

Stress and strain are 3D tensors stored as Voigt 6-vectors:

    [XX, YY, ZZ, XY, YZ, XZ]

Strain shear components are ENGINEERING shears (γ = 2ε).

RESULT HISTORY:
---------------
Results are stored per increment. Index 0 is the undeformed state (zeros),
index i the converged state after increment i:

    node.disp_x = [0.0, u1, u2, ...]
    element.stress = [zeros, σ1, σ2, ...]     each (n_nodes, 6)

Between increments, nodes and elements also hold TRANSIENT buffers
(displacement increment, strain-displacement matrices, stress increments).
They are rebuilt every run and are never needed after a run ends.

MUTATION:
---------
Records are plain dataclasses. The few state changes a solve needs go
through small explicit methods (initialize_step_zero, initialize_increment,
commit_increment, clear_results).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..config import CONFIG
from ..errors import ConfigurationError, ModelIntegrityError
from ..kernel.dof import DOFAssigner
from ..kernel.matrix import Matrix
from ..kernel.solve import canonical_solver_name
from .library import element_shape


class BCKind(Enum):
    """Boundary condition kinds."""
    SPC = "SPC"                 # prescribed displacement, 0/1 flag per component
    POINT_LOAD = "PointLoad"    # nodal force vector


class AnalysisType(Enum):
    LINEAR_STATICS = "Linear_Statics"
    NONLINEAR_STATICS = "Nonlinear_Statics"

    @classmethod
    def parse(cls, value) -> "AnalysisType":
        """
        Accept an AnalysisType or its string name.

        Raises:
            ConfigurationError: Unknown analysis type string
        """
        if isinstance(value, cls):
            return value
        for member in cls:
            if str(value).strip().lower() in (member.value.lower(), member.name.lower()):
                return member
        raise ConfigurationError(
            f"Unknown analysis type '{value}'. Choose one of {[m.value for m in cls]}.",
            parameter="type", value=value,
        )


def isotropic_elastic_matrix(E: float, nu: float) -> Matrix:
    """
    6×6 isotropic elastic matrix D (Voigt order, engineering shear).

        λ = Eν / ((1-2ν)(1+ν)),   G = E / (2(1+ν))

        D = [λ+2G  λ     λ     0  0  0]
            [λ     λ+2G  λ     0  0  0]
            [λ     λ     λ+2G  0  0  0]
            [0     0     0     G  0  0]
            [0     0     0     0  G  0]
            [0     0     0     0  0  G]
    """
    lam = E * nu / ((1.0 - 2.0 * nu) * (1.0 + nu))
    G = E / (2.0 * (1.0 + nu))
    D = np.zeros((6, 6))
    D[:3, :3] = lam
    D[[0, 1, 2], [0, 1, 2]] = lam + 2.0 * G
    D[[3, 4, 5], [3, 4, 5]] = G
    return Matrix.from_array(D)


@dataclass
class Node:
    """
    A node of the solid mesh.

    Parameters:
    -----------
    id : int
        Unique node identifier (need not be contiguous)
    x, y, z : float
        Coordinates in the undeformed configuration

    Attributes set by the solver:
    -----------------------------
    dof : Tuple[int, int, int]
        Global equation indices of ux, uy, uz (-1 = unassigned)
    elements : List[int]
        Ids of elements containing this node
    disp_x, disp_y, disp_z : List[float]
        Displacement history, index 0 = undeformed
    du : np.ndarray
        Last Newton correction (transient)
    du_increment : np.ndarray
        Displacement accumulated in the current increment (transient)

    Examples:
    ---------
    >>> n = Node(1, 0.0, 0.0, 1.0)
    >>> n.coords.tolist()
    [0.0, 0.0, 1.0]
    """
    id: int
    x: float
    y: float
    z: float
    dof: Tuple[int, int, int] = (-1, -1, -1)
    elements: List[int] = field(default_factory=list)
    disp_x: List[float] = field(default_factory=list)
    disp_y: List[float] = field(default_factory=list)
    disp_z: List[float] = field(default_factory=list)
    du: np.ndarray = field(default_factory=lambda: np.zeros(3))
    du_increment: np.ndarray = field(default_factory=lambda: np.zeros(3))

    @property
    def coords(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)

    def displacement(self, inc: int = -1) -> np.ndarray:
        """Committed displacement vector at increment inc (default: latest)."""
        if not self.disp_x:
            return np.zeros(3)
        return np.array([self.disp_x[inc], self.disp_y[inc], self.disp_z[inc]])

    def current_displacement(self) -> np.ndarray:
        """Committed displacement plus the pending increment."""
        return self.displacement() + self.du_increment

    def initialize_step_zero(self) -> None:
        self.disp_x = [0.0]
        self.disp_y = [0.0]
        self.disp_z = [0.0]
        self.initialize_increment()

    def initialize_increment(self) -> None:
        self.du = np.zeros(3)
        self.du_increment = np.zeros(3)

    def add_correction(self, du: np.ndarray) -> None:
        """Accumulate a Newton correction into the running increment."""
        self.du = np.asarray(du, dtype=float)
        self.du_increment = self.du_increment + self.du

    def commit_increment(self) -> None:
        total = self.current_displacement()
        self.disp_x.append(float(total[0]))
        self.disp_y.append(float(total[1]))
        self.disp_z.append(float(total[2]))
        self.initialize_increment()

    def clear_results(self) -> None:
        self.disp_x = []
        self.disp_y = []
        self.disp_z = []
        self.initialize_increment()


@dataclass
class Element:
    """
    A solid element.

    Parameters:
    -----------
    id : int
        Unique element identifier
    type : str
        Formulation tag, e.g. "HEX8_G2", "TET4_G1" (see ElementLibrary)
    part_id : int
        Part the element belongs to
    nodes : List[int]
        Ordered node ids (HEX8: bottom face then top face)
    material_id : int, optional
        Material id, normally set through the part

    Result attributes:
    ------------------
    stress, strain : List[np.ndarray]
        Per-increment nodal tensors, each (n_nodes, 6)
    gauss_stress, gauss_strain : np.ndarray
        Committed totals at Gauss points, (n_gauss, 6)

    Transient attributes (current increment only):
    ----------------------------------------------
    bl : List[Matrix]
        Strain-displacement matrix BL per Gauss point, from the latest
        stiffness build
    det_j : List[float]
        Jacobian determinant per Gauss point
    d_gauss_stress, d_gauss_strain : np.ndarray
        Increment at Gauss points, (n_gauss, 6)
    d_stress, d_strain : np.ndarray
        Increment extrapolated to nodes, (n_nodes, 6)
    """
    id: int
    type: str
    part_id: int
    nodes: List[int]
    material_id: Optional[int] = None
    stress: List[np.ndarray] = field(default_factory=list)
    strain: List[np.ndarray] = field(default_factory=list)
    gauss_stress: Optional[np.ndarray] = None
    gauss_strain: Optional[np.ndarray] = None
    bl: List[Matrix] = field(default_factory=list)
    det_j: List[float] = field(default_factory=list)
    d_gauss_stress: Optional[np.ndarray] = None
    d_gauss_strain: Optional[np.ndarray] = None
    d_stress: Optional[np.ndarray] = None
    d_strain: Optional[np.ndarray] = None

    @property
    def shape(self) -> str:
        return element_shape(self.type)

    def get_stress(self, inc: int, node_index: int, component: int) -> float:
        return float(self.stress[inc][node_index, component])

    def get_strain(self, inc: int, node_index: int, component: int) -> float:
        return float(self.strain[inc][node_index, component])

    def initialize_step_zero(self, n_gauss: int) -> None:
        n = len(self.nodes)
        self.stress = [np.zeros((n, 6))]
        self.strain = [np.zeros((n, 6))]
        self.gauss_stress = np.zeros((n_gauss, 6))
        self.gauss_strain = np.zeros((n_gauss, 6))
        self.initialize_increment()

    def initialize_increment(self) -> None:
        n = len(self.nodes)
        n_gauss = self.gauss_stress.shape[0]
        self.bl = []
        self.det_j = []
        self.d_gauss_stress = np.zeros((n_gauss, 6))
        self.d_gauss_strain = np.zeros((n_gauss, 6))
        self.d_stress = np.zeros((n, 6))
        self.d_strain = np.zeros((n, 6))

    def commit_increment(self) -> None:
        self.stress.append(self.stress[-1] + self.d_stress)
        self.strain.append(self.strain[-1] + self.d_strain)
        self.gauss_stress = self.gauss_stress + self.d_gauss_stress
        self.gauss_strain = self.gauss_strain + self.d_gauss_strain
        self.initialize_increment()

    def clear_transient(self) -> None:
        self.bl = []
        self.det_j = []
        self.d_gauss_stress = None
        self.d_gauss_strain = None
        self.d_stress = None
        self.d_strain = None

    def clear_results(self) -> None:
        self.stress = []
        self.strain = []
        self.gauss_stress = None
        self.gauss_strain = None
        self.clear_transient()


@dataclass
class Material:
    """
    Linear isotropic elastic material.

    The elastic matrix is derived from E and nu when the material is created
    and again whenever update() changes them. A material with E = 0 (an
    unfinished placeholder) has no elastic matrix.

    Examples:
    ---------
    >>> steel = Material(1, E=210000.0, nu=0.3, name="Steel")
    >>> round(steel.elastic.get(3, 3), 1)
    80769.2
    """
    id: int
    E: float = 0.0
    nu: float = 0.0
    name: str = "New Material"
    elastic: Optional[Matrix] = None

    def __post_init__(self):
        if self.E > 0.0:
            self.update()

    def update(self, E: Optional[float] = None, nu: Optional[float] = None) -> None:
        """
        Change E and/or nu and recompute the elastic matrix.

        Raises:
            ConfigurationError: E ≤ 0 or nu outside (-1, 0.5)
        """
        if E is not None:
            self.E = float(E)
        if nu is not None:
            self.nu = float(nu)
        if self.E <= 0.0:
            raise ConfigurationError(
                f"Material {self.id}: Young's modulus must be positive, got {self.E}",
                parameter="E", value=self.E,
            )
        if not -1.0 < self.nu < 0.5:
            raise ConfigurationError(
                f"Material {self.id}: Poisson ratio must be in (-1, 0.5), got {self.nu}",
                parameter="nu", value=self.nu,
            )
        self.elastic = isotropic_elastic_matrix(self.E, self.nu)


@dataclass
class Part:
    """
    A group of elements sharing a material and per-shape formulations.

    Attributes:
    -----------
    material_id : int, optional
        None until a material is assigned
    formulations : Dict[str, str]
        Shape family → element type, e.g. {"HEX8": "HEX8_G2"}
    """
    id: int
    name: str = "New Part"
    material_id: Optional[int] = None
    formulations: Dict[str, str] = field(default_factory=lambda: {
        "HEX8": "HEX8_G2",
        "PENTA6": "PENTA6_G2",
        "TET4": "TET4_G2",
    })


@dataclass
class BoundaryCondition:
    """
    SPC or point load applied to a set of nodes.

    values maps node id → 3-vector. For SPC the vector holds 0/1 flags
    (1 = component fixed); for point loads it holds the force components.
    """
    id: int
    kind: BCKind
    name: str = ""
    values: Dict[int, np.ndarray] = field(default_factory=dict)

    def set(self, node_id: int, value: Sequence[float]) -> None:
        vec = np.asarray(value, dtype=float).ravel()
        if vec.shape != (3,):
            raise ConfigurationError(
                f"BC {self.id}: value for node {node_id} must have 3 components",
                parameter="value", value=value,
            )
        self.values[node_id] = vec

    def remove(self, node_id: int) -> None:
        self.values.pop(node_id, None)


@dataclass
class Analysis:
    """
    Analysis settings.

    Attributes:
    -----------
    type : AnalysisType
        Linear_Statics or Nonlinear_Statics
    linear_solver : str
        "CG", "Cholesky" or "LU"
    solver_tolerance : float
        CG relative tolerance
    solver_max_iterations : int
        CG iteration cap (0 = solver default)
    increments : int
        Load increments for Nonlinear_Statics
    nr_tolerance : float
        Newton-Raphson relative residual tolerance
    nr_max_iterations : int
        Newton-Raphson iteration cap per increment
    result_steps : int
        Completed (committed) increments of the last run
    """
    type: AnalysisType = AnalysisType.LINEAR_STATICS
    linear_solver: str = field(default_factory=lambda: CONFIG.linear_solver)
    solver_tolerance: float = field(default_factory=lambda: CONFIG.solver_tolerance)
    solver_max_iterations: int = field(default_factory=lambda: CONFIG.solver_max_iterations)
    increments: int = 1
    nr_tolerance: float = field(default_factory=lambda: CONFIG.nr_tolerance)
    nr_max_iterations: int = field(default_factory=lambda: CONFIG.nr_max_iterations)
    result_steps: int = 0

    def validate(self) -> None:
        """
        Normalise type/solver names and check numeric settings.

        Raises:
            ConfigurationError: Unknown names or out-of-range values
        """
        self.type = AnalysisType.parse(self.type)
        self.linear_solver = canonical_solver_name(self.linear_solver)
        if self.increments < 1:
            raise ConfigurationError(
                f"Increment count must be ≥ 1, got {self.increments}",
                parameter="increments", value=self.increments,
            )
        if self.solver_tolerance <= 0.0 or self.nr_tolerance <= 0.0:
            raise ConfigurationError(
                "Solver and Newton-Raphson tolerances must be positive",
                parameter="tolerance", value=(self.solver_tolerance, self.nr_tolerance),
            )
        if self.nr_max_iterations < 1 or self.solver_max_iterations < 0:
            raise ConfigurationError(
                "Iteration limits must be nr_max_iterations ≥ 1, solver_max_iterations ≥ 0",
                parameter="max_iterations",
                value=(self.nr_max_iterations, self.solver_max_iterations),
            )


@dataclass
class Model:
    """
    The complete solid model: geometry, properties, BCs, settings, results.

    Examples:
    ---------
    >>> m = Model()
    >>> for i, (x, y, z) in enumerate([(0, 0, 0), (1, 0, 0), (0, 1, 0), (0, 0, 1)], 1):
    ...     _ = m.add_node(i, x, y, z)
    >>> _ = m.add_material(1, E=1000.0, nu=0.25)
    >>> _ = m.add_element(1, "TET4_G1", part_id=1, nodes=[1, 2, 3, 4], material_id=1)
    >>> m.assign_dofs().ndof()
    12
    """
    nodes: Dict[int, Node] = field(default_factory=dict)
    elements: Dict[int, Element] = field(default_factory=dict)
    materials: Dict[int, Material] = field(default_factory=dict)
    parts: Dict[int, Part] = field(default_factory=dict)
    bcs: Dict[int, BoundaryCondition] = field(default_factory=dict)
    analysis: Analysis = field(default_factory=Analysis)
    n_dof: int = 0

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def add_node(self, node_id: int, x: float, y: float, z: float) -> Node:
        if node_id in self.nodes:
            raise ModelIntegrityError(f"Duplicate node id {node_id}")
        node = Node(node_id, float(x), float(y), float(z))
        self.nodes[node_id] = node
        return node

    def add_element(
        self,
        element_id: int,
        type: str,
        part_id: int,
        nodes: Sequence[int],
        material_id: Optional[int] = None,
    ) -> Element:
        """
        Add an element. Its nodes must already exist.

        A part that doesn't exist yet is created; if material_id is given and
        the new part has no material, the part takes it.
        """
        if element_id in self.elements:
            raise ModelIntegrityError(f"Duplicate element id {element_id}")
        missing = [n for n in nodes if n not in self.nodes]
        if missing:
            raise ModelIntegrityError(
                f"Element {element_id} references nonexistent node(s) {missing}"
            )
        part = self.parts.get(part_id)
        if part is None:
            part = self.add_part(part_id)
        if part.material_id is None and material_id is not None:
            part.material_id = material_id
        if material_id is None:
            material_id = part.material_id

        element = Element(element_id, type, part_id, list(nodes), material_id)
        self.elements[element_id] = element
        return element

    def add_part(self, part_id: int, name: str = "New Part") -> Part:
        if part_id in self.parts:
            raise ModelIntegrityError(f"Duplicate part id {part_id}")
        part = Part(part_id, name=name)
        self.parts[part_id] = part
        return part

    def add_material(self, material_id: int, E: float, nu: float, name: str = "New Material") -> Material:
        if material_id in self.materials:
            raise ModelIntegrityError(f"Duplicate material id {material_id}")
        material = Material(material_id, E=E, nu=nu, name=name)
        self.materials[material_id] = material
        return material

    def assign_material(self, part_id: int, material_id: int) -> None:
        """Assign a material to a part and to every element in it."""
        if part_id not in self.parts:
            raise ModelIntegrityError(f"Part {part_id} does not exist")
        if material_id not in self.materials:
            raise ModelIntegrityError(f"Material {material_id} does not exist")
        self.parts[part_id].material_id = material_id
        for element in self.part_elements(part_id):
            element.material_id = material_id

    def set_formulation(self, part_id: int, **types: str) -> None:
        """
        Change per-shape formulations of a part and its elements.

        >>> m = Model(); _ = m.add_part(1)
        >>> m.set_formulation(1, HEX8="HEX8_G1")
        >>> m.parts[1].formulations["HEX8"]
        'HEX8_G1'
        """
        if part_id not in self.parts:
            raise ModelIntegrityError(f"Part {part_id} does not exist")
        part = self.parts[part_id]
        for shape, type_name in types.items():
            if element_shape(type_name) != shape:
                raise ConfigurationError(
                    f"Formulation '{type_name}' does not belong to shape {shape}",
                    parameter=shape, value=type_name,
                )
            part.formulations[shape] = type_name
        for element in self.part_elements(part_id):
            element.type = part.formulations.get(element.shape, element.type)

    def part_elements(self, part_id: int) -> List[Element]:
        return [e for e in self.elements.values() if e.part_id == part_id]

    def add_spc(
        self,
        bc_id: int,
        node_ids: Sequence[int],
        components: Sequence[float] = (1, 1, 1),
        name: str = "SPC",
    ) -> BoundaryCondition:
        """Fix the flagged displacement components of node_ids."""
        return self._add_bc(bc_id, BCKind.SPC, node_ids, components, name)

    def add_point_load(
        self,
        bc_id: int,
        node_ids: Sequence[int],
        force: Sequence[float],
        name: str = "Load",
    ) -> BoundaryCondition:
        """Apply the same force vector at each of node_ids."""
        return self._add_bc(bc_id, BCKind.POINT_LOAD, node_ids, force, name)

    def _add_bc(self, bc_id, kind, node_ids, value, name) -> BoundaryCondition:
        if bc_id in self.bcs:
            raise ModelIntegrityError(f"Duplicate boundary condition id {bc_id}")
        missing = [n for n in node_ids if n not in self.nodes]
        if missing:
            raise ModelIntegrityError(
                f"Boundary condition {bc_id} references nonexistent node(s) {missing}"
            )
        bc = BoundaryCondition(bc_id, kind, name)
        for node_id in node_ids:
            bc.set(node_id, value)
        self.bcs[bc_id] = bc
        return bc

    # ------------------------------------------------------------------
    # Checks and numbering
    # ------------------------------------------------------------------

    def connectivity(self) -> Dict[int, List[int]]:
        return {eid: e.nodes for eid, e in sorted(self.elements.items())}

    def validate(self) -> None:
        """
        Check references before solving.

        Raises:
            ModelIntegrityError: Element with a missing node, part without
                material, BC on a missing node
        """
        for element in self.elements.values():
            missing = [n for n in element.nodes if n not in self.nodes]
            if missing:
                raise ModelIntegrityError(
                    f"Element {element.id} references nonexistent node(s) {missing}"
                )
            if element.part_id not in self.parts:
                raise ModelIntegrityError(
                    f"Element {element.id} references nonexistent part {element.part_id}"
                )
        for part in self.parts.values():
            if part.material_id is None and self.part_elements(part.id):
                raise ModelIntegrityError(f"Part {part.id} ('{part.name}') has no material assigned")
        for bc in self.bcs.values():
            missing = [n for n in bc.values if n not in self.nodes]
            if missing:
                raise ModelIntegrityError(
                    f"Boundary condition {bc.id} references nonexistent node(s) {missing}"
                )

    def link_elements(self) -> None:
        """Rebuild each node's incident-element list (sorted, no duplicates)."""
        for node in self.nodes.values():
            node.elements = []
        for eid, element in sorted(self.elements.items()):
            for nid in element.nodes:
                incident = self.nodes[nid].elements
                if not incident or incident[-1] != eid:
                    incident.append(eid)

    def assign_dofs(self) -> DOFAssigner:
        """
        Number all DOFs with the bandwidth-reducing BFS and store them on nodes.

        Returns:
            The DOFAssigner holding the node order
        """
        self.link_elements()
        dof = DOFAssigner.from_connectivity(sorted(self.nodes), self.connectivity())
        for nid, node in self.nodes.items():
            node.dof = tuple(dof.node_dofs(nid))
        self.n_dof = dof.ndof()
        return dof

    def fixed_dofs(self) -> List[int]:
        """Global DOFs flagged by any SPC (requires assign_dofs)."""
        fixed = set()
        for bc in self.bcs.values():
            if bc.kind is not BCKind.SPC:
                continue
            for nid, flags in bc.values.items():
                dofs = self.nodes[nid].dof
                for k in range(3):
                    if flags[k] != 0:
                        fixed.add(dofs[k])
        return sorted(fixed)

    def load_vector(self) -> np.ndarray:
        """Full-length vector of all point loads (requires assign_dofs)."""
        F = np.zeros(self.n_dof)
        for bc in self.bcs.values():
            if bc.kind is not BCKind.POINT_LOAD:
                continue
            for nid, force in bc.values.items():
                F[list(self.nodes[nid].dof)] += force
        return F

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def clear_transient(self) -> None:
        for node in self.nodes.values():
            node.initialize_increment()
        for element in self.elements.values():
            element.clear_transient()

    def clear_results(self) -> None:
        for node in self.nodes.values():
            node.clear_results()
        for element in self.elements.values():
            element.clear_results()
        self.analysis.result_steps = 0

    def displacement_field(self, inc: int = -1) -> Dict[int, np.ndarray]:
        """node id → committed displacement at increment inc."""
        return {nid: node.displacement(inc) for nid, node in self.nodes.items()}

    def summary(self) -> str:
        lines = [
            "=" * 60,
            "MODEL SUMMARY",
            "=" * 60,
            f"  Number of nodes:{len(self.nodes):>40}",
            f"  Number of elements:{len(self.elements):>37}",
            f"  Number of DoF:{self.n_dof:>42}",
            "=" * 60,
        ]
        return "\n".join(lines)
