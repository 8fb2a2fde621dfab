# stan_solid/v3d - 3D Solid Elements
"""
V3D: 3D SOLID ELEMENTS
======================

This package provides the solid-element side of the analysis:
- model.py     Node, Element, Material, Part, BoundaryCondition, Analysis, Model
- library.py   Element types (HEX8_G1/G2, TET4_G1/G2) and their integration data
- elements.py  Total-Lagrangian stiffness, stress recovery, internal forces
- bdf.py       Nastran bulk-data import

These elements work with the element-agnostic kernel for assembly and solving.

USAGE:
------
    from stan_solid.v3d import Model
    from stan_solid.solver import run_analysis

    model = Model()
    ... add nodes, elements, a material, SPCs and point loads ...
    result = run_analysis(model)
    model.nodes[7].displacement()      # latest committed displacement
"""

from .model import (
    Analysis,
    AnalysisType,
    BCKind,
    BoundaryCondition,
    Element,
    Material,
    Model,
    Node,
    Part,
)
from .library import ElementLibrary, ElementTypeDefinition
from .elements import Formulation, element_stiffness
from .bdf import read_bulk_data

__all__ = [
    'Analysis', 'AnalysisType', 'BCKind', 'BoundaryCondition', 'Element',
    'Material', 'Model', 'Node', 'Part',
    'ElementLibrary', 'ElementTypeDefinition',
    'Formulation', 'element_stiffness', 'read_bulk_data',
]
