# File: tests/test_element_library.py
"""
TEST: Element Library Integration Data
======================================

For every implemented element type we check the properties any correct
isoparametric element must have:

1. Shape-function derivatives sum to zero (rigid translation → no strain)
2. Weights integrate the reference volume exactly (8 for the cube,
   1/6 for the simplex)
3. Extrapolation weights sum to 1 and reproduce linear fields exactly
4. Wedge elements fail loudly instead of using wrong shape functions
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from stan_solid.errors import UnsupportedElementError
from stan_solid.v3d.library import (
    HEX8_NODES,
    TET4_NODES,
    TET_A,
    TET_B,
    ElementLibrary,
    hex8_shape,
    tet4_shape,
)

LIB = ElementLibrary()


def test_registry_contents():
    assert LIB.names() == ["HEX8_G1", "HEX8_G2", "TET4_G1", "TET4_G2"]
    assert LIB.get("HEX8_G1").n_gauss == 1
    assert LIB.get("HEX8_G2").n_gauss == 8
    assert LIB.get("TET4_G1").n_gauss == 1
    assert LIB["TET4_G2"].n_gauss == 4


@pytest.mark.parametrize("name", ["PENTA6_G1", "PENTA6_G2", "HEX20_G3", ""])
def test_unsupported_types_raise(name):
    assert name not in LIB
    with pytest.raises(UnsupportedElementError) as info:
        LIB.get(name)
    assert info.value.element_type == name


@pytest.mark.parametrize("name", ["HEX8_G1", "HEX8_G2", "TET4_G1", "TET4_G2"])
def test_derivatives_sum_to_zero(name):
    definition = LIB.get(name)
    for dN in definition.dN_local:
        assert dN.shape == (3, definition.n_nodes)
        assert_allclose(dN.to_array().sum(axis=1), 0.0, atol=1e-15)


@pytest.mark.parametrize("name, volume", [
    ("HEX8_G1", 8.0), ("HEX8_G2", 8.0), ("TET4_G1", 1.0 / 6.0), ("TET4_G2", 1.0 / 6.0),
])
def test_weights_integrate_reference_volume(name, volume):
    definition = LIB.get(name)
    assert definition.effective_weight * definition.n_gauss == pytest.approx(volume)


def test_hex8_shape_functions_are_nodal():
    for k, node in enumerate(HEX8_NODES):
        expected = np.zeros(8)
        expected[k] = 1.0
        assert_allclose(hex8_shape(*node), expected, atol=1e-15)


def test_hex8_derivatives_match_finite_differences():
    definition = LIB.get("HEX8_G2")
    h = 1e-6
    for point, dN in zip(definition.gauss_points, definition.dN_local):
        for axis in range(3):
            step = np.zeros(3)
            step[axis] = h
            fd = (hex8_shape(*(point + step)) - hex8_shape(*(point - step))) / (2 * h)
            assert_allclose(dN.row(axis), fd, atol=1e-8)


@pytest.mark.parametrize("name", ["HEX8_G1", "HEX8_G2", "TET4_G1", "TET4_G2"])
def test_extrapolation_weights_sum_to_one(name):
    definition = LIB.get(name)
    assert len(definition.extrapolation) == definition.n_nodes
    for weights in definition.extrapolation:
        assert weights.shape == (definition.n_gauss,)
        assert weights.sum() == pytest.approx(1.0)


def test_hex8_g2_extrapolates_linear_field_exactly():
    definition = LIB.get("HEX8_G2")

    def field(p):
        return 2.0 * p[..., 0] - p[..., 1] + 3.0 * p[..., 2] + 1.0

    nodal = definition.extrapolate(field(definition.gauss_points)[:, None])[:, 0]
    assert_allclose(nodal, field(HEX8_NODES), atol=1e-12)


def test_tet4_g2_extrapolation():
    definition = LIB.get("TET4_G2")

    # Gauss point k sits closest to node k
    for k, point in enumerate(definition.gauss_points):
        distances = np.linalg.norm(TET4_NODES - point, axis=1)
        assert np.argmin(distances) == k

    E = np.vstack(definition.extrapolation)
    c = -TET_B / (TET_A - TET_B)
    assert_allclose(np.diag(E), 1.0 - 3.0 * c)
    assert_allclose(E[0, 1:], c)

    def field(p):
        return 4.0 * p[..., 0] + p[..., 1] - 2.0 * p[..., 2] + 0.5

    nodal = definition.extrapolate(field(definition.gauss_points)[:, None])[:, 0]
    assert_allclose(nodal, field(TET4_NODES), atol=1e-12)


def test_tet4_shape_partition_of_unity():
    assert tet4_shape(0.2, 0.3, 0.1).sum() == pytest.approx(1.0)
    assert_allclose(tet4_shape(0.0, 0.0, 1.0), [0.0, 0.0, 0.0, 1.0])
