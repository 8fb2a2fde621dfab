# File: tests/test_elements.py
"""
TEST: Solid Element Formulation
===============================

Properties every correct solid element must have:

1. SYMMETRY: K = Kᵀ
2. RIGID BODY MODES: translations and (small) rotations give zero force,
   so K has exactly 6 zero eigenvalues (18 for the 1-point hexahedron,
   which also has 12 hourglass modes)
3. PATCH TEST: a linear displacement field gives the exact constant
   strain everywhere, even on a distorted element, and σ = D·ε
4. VOLUME: Σ det(J)·w equals the element volume
5. BAD INPUT: inverted/flat elements and missing materials are rejected
6. CONSISTENCY: internal force of a small displacement equals K·u
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from stan_solid.errors import DegenerateGeometryError, MaterialNotResolvedError
from stan_solid.kernel.matrix import Matrix
from stan_solid.solver import prepare
from stan_solid.v3d.elements import (
    Formulation,
    bl0_matrix,
    bl1_matrix,
    bnl_matrix,
    element_stiffness,
    element_volume,
    increment_vector,
    internal_force,
    jacobian,
    jacobian_determinant,
    recover_element,
    resolve_material,
    stress_matrix,
)
from stan_solid.v3d.library import ElementLibrary
from stan_solid.v3d.model import Material, Model

from conftest import CUBE_NODES, E_STEEL, NU_STEEL, cube_model

LIB = ElementLibrary()

# u = A·x, a general linear displacement field
A = np.array([
    [1.0e-3, 2.0e-4, 0.0],
    [0.0, -5.0e-4, 1.0e-4],
    [3.0e-4, 0.0, 2.0e-4],
])
EXACT_STRAIN = np.array([
    A[0, 0], A[1, 1], A[2, 2],
    A[0, 1] + A[1, 0], A[1, 2] + A[2, 1], A[0, 2] + A[2, 0],
])


def distorted_hex():
    model = cube_model("HEX8_G2")
    node = model.nodes[7]
    node.x, node.y, node.z = 1.2, 1.1, 1.3
    model.nodes[2].y = -0.1
    return model


def stiffness(model, eid=1, mode=Formulation.INITIAL):
    element = model.elements[eid]
    return element_stiffness(model, element, LIB.get(element.type), mode).to_array()


def zero_eigenvalues(K):
    eig = np.linalg.eigvalsh(K)
    return int(np.sum(np.abs(eig) < 1e-8 * np.abs(eig).max()))


def rigid_body_modes(model, element):
    """Three translations and three infinitesimal rotations, as 3n vectors."""
    X = np.array([model.nodes[nid].coords for nid in element.nodes])
    modes = [np.tile(e, len(X)) for e in np.eye(3)]
    for axis in np.eye(3):
        modes.append(np.cross(axis, X).ravel())
    return modes


@pytest.mark.parametrize("element_type", ["HEX8_G1", "HEX8_G2", "TET4_G1", "TET4_G2"])
def test_stiffness_symmetric(element_type):
    K = stiffness(cube_model(element_type))
    assert_allclose(K, K.T, atol=1e-9 * np.abs(K).max())


@pytest.mark.parametrize("element_type", ["HEX8_G2", "TET4_G2"])
def test_rigid_body_modes_give_zero_force(element_type):
    model = cube_model(element_type)
    element = model.elements[1]
    K = stiffness(model)
    for mode in rigid_body_modes(model, element):
        assert_allclose(K @ mode, 0.0, atol=1e-9 * np.abs(K).max())


@pytest.mark.parametrize("element_type, n_zero", [
    ("HEX8_G2", 6),
    ("HEX8_G1", 18),
    ("TET4_G2", 6),
])
def test_zero_energy_modes(element_type, n_zero):
    assert zero_eigenvalues(stiffness(cube_model(element_type))) == n_zero


def test_distorted_hex_still_has_six_rigid_modes():
    assert zero_eigenvalues(stiffness(distorted_hex())) == 6


@pytest.mark.parametrize("build", [distorted_hex, lambda: cube_model("TET4_G2")])
def test_patch_test_constant_strain(build):
    model = build()
    ctx = prepare(model, n_jobs=1)
    element = model.elements[1]
    definition = ctx.definitions[1]

    element_stiffness(model, element, definition)
    for nid in element.nodes:
        model.nodes[nid].du_increment = A @ model.nodes[nid].coords
    recover_element(model, element, definition)

    D = model.materials[1].elastic.to_array()
    for g in range(definition.n_gauss):
        assert_allclose(element.d_gauss_strain[g], EXACT_STRAIN, atol=1e-14)
        assert_allclose(element.d_gauss_stress[g], D @ EXACT_STRAIN, rtol=1e-10)
    # constant field extrapolates to the same value at every node
    for k in range(definition.n_nodes):
        assert_allclose(element.d_strain[k], EXACT_STRAIN, atol=1e-14)


def test_internal_force_equals_K_times_u():
    model = distorted_hex()
    ctx = prepare(model, n_jobs=1)
    element = model.elements[1]
    definition = ctx.definitions[1]

    K = element_stiffness(model, element, definition).to_array()
    rng = np.random.default_rng(11)
    for nid in element.nodes:
        model.nodes[nid].du_increment = rng.normal(scale=1e-4, size=3)
    recover_element(model, element, definition)

    dU = increment_vector(model, element)
    assert_allclose(internal_force(element, definition), K @ dU, rtol=1e-10, atol=1e-9)


def test_tangent_equals_initial_without_stress():
    model = cube_model("HEX8_G2")
    prepare(model, n_jobs=1)
    K0 = stiffness(model, mode=Formulation.INITIAL)
    Kt = stiffness(model, mode=Formulation.TANGENT)
    assert_allclose(Kt, K0, rtol=0, atol=1e-9)


def test_tangent_adds_stress_stiffening():
    model = cube_model("HEX8_G2")
    prepare(model, n_jobs=1)
    element = model.elements[1]
    element.gauss_stress[:, 0] = 100.0   # uniform tension σxx

    K0 = stiffness(model, mode=Formulation.INITIAL)
    Kt = stiffness(model, mode=Formulation.TANGENT)
    assert not np.allclose(Kt, K0)
    assert_allclose(Kt, Kt.T, atol=1e-9 * np.abs(Kt).max())

    # geometric stiffness of a rigid translation is still zero
    for mode in rigid_body_modes(model, element)[:3]:
        assert_allclose(Kt @ mode, 0.0, atol=1e-8 * np.abs(Kt).max())


@pytest.mark.parametrize("element_type", ["HEX8_G1", "HEX8_G2", "TET4_G1", "TET4_G2"])
def test_unit_cube_volume(element_type):
    model = cube_model(element_type)
    total = sum(
        element_volume(model, element, LIB.get(element.type))
        for element in model.elements.values()
    )
    assert total == pytest.approx(1.0)


def test_box_volume_and_stored_determinants():
    model = cube_model("HEX8_G2")
    for node in model.nodes.values():
        node.x, node.y, node.z = 2.0 * node.x, 3.0 * node.y, 4.0 * node.z
    element = model.elements[1]
    definition = LIB.get("HEX8_G2")
    assert element_volume(model, element, definition) == pytest.approx(24.0)

    element_stiffness(model, element, definition)
    assert len(element.bl) == 8
    assert_allclose(element.det_j, 24.0 / 8.0)


def test_inverted_element_rejected():
    model = cube_model("HEX8_G2")
    del model.elements[1]
    model.add_element(2, "HEX8_G2", part_id=1, nodes=[5, 6, 7, 8, 1, 2, 3, 4])
    with pytest.raises(DegenerateGeometryError) as info:
        stiffness(model, eid=2)
    assert info.value.element_id == 2
    assert info.value.det < 0.0


def test_flat_element_rejected():
    model = cube_model("HEX8_G2")
    for nid in (5, 6, 7, 8):
        model.nodes[nid].z = 0.0
    with pytest.raises(DegenerateGeometryError):
        stiffness(model)


def test_tiny_element_is_not_degenerate():
    model = cube_model("TET4_G2")
    for node in model.nodes.values():
        node.x, node.y, node.z = 1e-4 * node.x, 1e-4 * node.y, 1e-4 * node.z
    K = stiffness(model)
    assert np.all(np.isfinite(K))


def test_jacobian_determinant_threshold():
    X = Matrix.from_array([CUBE_NODES[n] for n in (1, 2, 3, 4, 5, 6, 7, 8)])
    J = jacobian(LIB.get("HEX8_G1").dN_local[0], X)
    assert jacobian_determinant(J, 1) == pytest.approx(1.0 / 8.0)
    with pytest.raises(DegenerateGeometryError):
        jacobian_determinant(J.scale(-1.0), 1)
    with pytest.raises(DegenerateGeometryError):
        jacobian_determinant(Matrix(3, 3), 1)


def test_missing_material():
    model = cube_model("HEX8_G2")
    element = model.elements[1]

    element.material_id = 99
    with pytest.raises(MaterialNotResolvedError) as info:
        stiffness(model)
    assert info.value.material_id == 99

    # placeholder material: no elastic matrix yet
    model.materials[2] = Material(2)
    element.material_id = 2
    with pytest.raises(MaterialNotResolvedError):
        resolve_material(model.materials, element)


def test_operators_shapes_and_zero_bl1():
    dN = Matrix.from_array(np.arange(12.0).reshape(3, 4))
    assert bl0_matrix(dN).shape == (6, 12)
    assert bnl_matrix(dN).shape == (9, 12)
    assert_allclose(bl1_matrix(dN, Matrix(4, 3)).to_array(), 0.0)

    S = stress_matrix([1.0, 2.0, 3.0, 4.0, 5.0, 6.0]).to_array()
    assert_allclose(S[0:3, 0:3], S[3:6, 3:6])
    assert_allclose(S[0:3, 0:3], S[6:9, 6:9])
    assert_allclose(S[0:3, 3:9], 0.0)


def test_bl1_matches_green_lagrange_linearisation():
    """BL·Δu is the first-order change of Green-Lagrange strain at U."""
    model = distorted_hex()
    element = model.elements[1]
    definition = LIB.get("HEX8_G2")
    rng = np.random.default_rng(5)
    U = rng.normal(scale=1e-2, size=(8, 3))
    dU = rng.normal(scale=1e-7, size=(8, 3))

    X = Matrix.from_array([model.nodes[n].coords for n in element.nodes])
    dN_local = definition.dN_local[0]
    J = jacobian(dN_local, X)
    dN = J.inverse3() @ dN_local

    def green_lagrange(disp):
        H = (dN.to_array() @ disp).T            # H[a][b] = ∂u_a/∂x_b
        E = 0.5 * (H + H.T + H.T @ H)
        return np.array([E[0, 0], E[1, 1], E[2, 2], 2 * E[0, 1], 2 * E[1, 2], 2 * E[0, 2]])

    BL = bl0_matrix(dN) + bl1_matrix(dN, Matrix.from_array(U))
    predicted = BL.multiply_vector(dU.ravel())
    actual = green_lagrange(U + dU) - green_lagrange(U)
    assert_allclose(predicted, actual, rtol=1e-5, atol=1e-14)


def test_material_matrix_values():
    D = Model().add_material(1, E=E_STEEL, nu=NU_STEEL).elastic.to_array()
    lam = E_STEEL * NU_STEEL / ((1 + NU_STEEL) * (1 - 2 * NU_STEEL))
    G = E_STEEL / (2 * (1 + NU_STEEL))
    assert D[0, 0] == pytest.approx(lam + 2 * G)
    assert D[0, 1] == pytest.approx(lam)
    assert D[3, 3] == pytest.approx(G)
    assert_allclose(D, D.T)
