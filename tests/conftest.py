# File: tests/conftest.py
"""
Shared model builders for the solid-element tests.

All models use a unit cube [0, 1]³:

        8 -------- 7          z
       /|         /|          |
      5 -------- 6 |          +--- y
      | 4 -------|-3         /
      |/         |/         x
      1 -------- 2

(HEX8 node order: bottom face 1-2-3-4, top face 5-6-7-8.)
"""

import pytest

from stan_solid.v3d.model import Model

CUBE_NODES = {
    1: (0.0, 0.0, 0.0),
    2: (1.0, 0.0, 0.0),
    3: (1.0, 1.0, 0.0),
    4: (0.0, 1.0, 0.0),
    5: (0.0, 0.0, 1.0),
    6: (1.0, 0.0, 1.0),
    7: (1.0, 1.0, 1.0),
    8: (0.0, 1.0, 1.0),
}

# Kuhn split of the cube along diagonal 1-7, every tet positively oriented
CUBE_TETS = [
    [1, 2, 3, 7],
    [1, 3, 4, 7],
    [1, 4, 8, 7],
    [1, 8, 5, 7],
    [1, 5, 6, 7],
    [1, 6, 2, 7],
]

FACE_X0 = [1, 4, 5, 8]
FACE_X1 = [2, 3, 6, 7]

E_STEEL = 210000.0
NU_STEEL = 0.3


def cube_model(element_type="HEX8_G2", E=E_STEEL, nu=NU_STEEL) -> Model:
    """Unit cube as one HEX8 (or six TET4) with one material, no BCs."""
    model = Model()
    for nid, (x, y, z) in CUBE_NODES.items():
        model.add_node(nid, x, y, z)
    model.add_material(1, E=E, nu=nu, name="Steel")
    if element_type.startswith("HEX8"):
        model.add_element(1, element_type, part_id=1, nodes=[1, 2, 3, 4, 5, 6, 7, 8], material_id=1)
    else:
        for eid, nodes in enumerate(CUBE_TETS, start=1):
            model.add_element(eid, element_type, part_id=1, nodes=nodes, material_id=1)
    return model


def clamped_cube(element_type="HEX8_G2") -> Model:
    """Face x=0 fully fixed, unit +X force at each node of face x=1."""
    model = cube_model(element_type)
    model.add_spc(1, FACE_X0, (1, 1, 1))
    model.add_point_load(2, FACE_X1, (1.0, 0.0, 0.0))
    return model


def uniaxial_cube(element_type="HEX8_G2", total_force=1.0) -> Model:
    """
    Face x=0 on rollers (minimal rigid-body restraint), total_force in +X
    spread over face x=1 as the nodal loads consistent with a uniform
    traction: a state of uniform uniaxial stress.
    """
    model = cube_model(element_type)
    model.add_spc(1, [1], (1, 1, 1))
    model.add_spc(2, [4], (1, 0, 1))
    model.add_spc(3, [5], (1, 1, 0))
    model.add_spc(4, [8], (1, 0, 0))
    if element_type.startswith("HEX8"):
        model.add_point_load(5, FACE_X1, (total_force / 4.0, 0.0, 0.0))
    else:
        # face x=1 is split into triangles 2-3-7 and 2-7-6
        model.add_point_load(5, [2, 7], (total_force / 3.0, 0.0, 0.0))
        model.add_point_load(6, [3, 6], (total_force / 6.0, 0.0, 0.0))
    return model


def bar_model(n_cells: int, node_id) -> Model:
    """
    1×1×n_cells column of HEX8 elements along x.

    node_id(layer, corner) gives the id of corner 0..3 of layer 0..n_cells.
    """
    corners = [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)]
    model = Model()
    model.add_material(1, E=E_STEEL, nu=NU_STEEL)
    for layer in range(n_cells + 1):
        for c, (y, z) in enumerate(corners):
            model.add_node(node_id(layer, c), float(layer), y, z)
    for cell in range(n_cells):
        a = [node_id(cell, c) for c in range(4)]
        b = [node_id(cell + 1, c) for c in range(4)]
        # natural (ξ, η, ζ) along (y, z, x): right-handed, positive det J
        model.add_element(cell + 1, "HEX8_G2", part_id=1,
                          nodes=a + b,
                          material_id=1)
    return model


@pytest.fixture
def hex_cube():
    return cube_model("HEX8_G2")


@pytest.fixture
def tet_cube():
    return cube_model("TET4_G2")


@pytest.fixture
def clamped_hex():
    return clamped_cube("HEX8_G2")
