# File: tests/test_matrix.py
"""
TEST: Matrix Kernel Contracts
=============================

The element formulation leans on a handful of strict matrix rules:

1. Checked access raises IndexError outside the shape
2. det3/inverse3 only work on 3×3 (SizeError), inverse3 refuses det = 0
3. Products raise DimensionMismatchError for incompatible shapes
4. Addition/subtraction take the LEFT operand's shape and only combine
   the overlapping block of a larger right operand
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from stan_solid.errors import DimensionMismatchError, SingularMatrixError, SizeError
from stan_solid.kernel.matrix import Matrix, tensor_to_vector, vector_to_tensor


def test_checked_access_bounds():
    A = Matrix(2, 3)
    A.set(1, 2, 4.0)
    A.add(1, 2, 1.5)
    assert A.get(1, 2) == 5.5

    for i, j in [(2, 0), (0, 3), (-1, 0), (0, -1)]:
        with pytest.raises(IndexError):
            A.get(i, j)
        with pytest.raises(IndexError):
            A.set(i, j, 1.0)
        with pytest.raises(IndexError):
            A.add(i, j, 1.0)


def test_fast_access_matches_checked():
    A = Matrix(3, 3)
    A.set_fast(0, 1, 2.0)
    A.add_fast(0, 1, 3.0)
    assert A.get_fast(0, 1) == A.get(0, 1) == 5.0


def test_rows_and_columns():
    A = Matrix.from_array([[1, 2, 3], [4, 5, 6]])
    assert_allclose(A.row(1), [4, 5, 6])
    assert_allclose(A.column(2), [3, 6])

    A.set_row(0, [7, 8, 9])
    A.add_row(0, [1, 1, 1])
    assert_allclose(A.row(0), [8, 9, 10])

    # row() hands out a copy
    r = A.row(1)
    r[:] = 0.0
    assert A.get(1, 0) == 4.0

    with pytest.raises(IndexError):
        A.row(2)
    with pytest.raises(DimensionMismatchError):
        A.set_row(0, [1, 2])


def test_transpose():
    A = Matrix.from_array([[1, 2, 3], [4, 5, 6]])
    assert A.T.shape == (3, 2)
    assert_allclose(A.transpose().to_array(), A.to_array().T)


def test_det3_and_inverse3():
    A = Matrix.from_array([[2.0, 0.0, 1.0], [1.0, 3.0, 0.0], [0.0, 1.0, 4.0]])
    assert A.det3() == pytest.approx(np.linalg.det(A.to_array()))
    assert_allclose((A @ A.inverse3()).to_array(), np.eye(3), atol=1e-14)


def test_det3_requires_3x3():
    with pytest.raises(SizeError):
        Matrix(2, 2).det3()
    with pytest.raises(SizeError):
        Matrix(3, 4).inverse3()


def test_inverse3_singular():
    A = Matrix.from_array([[1.0, 2.0, 3.0], [2.0, 4.0, 6.0], [0.0, 1.0, 1.0]])
    assert A.det3() == 0.0
    with pytest.raises(SingularMatrixError):
        A.inverse3()


def test_multiply_dimension_checks():
    A = Matrix(2, 3)
    B = Matrix(2, 3)
    with pytest.raises(DimensionMismatchError):
        A @ B
    with pytest.raises(DimensionMismatchError):
        A.multiply_vector(np.ones(2))

    C = Matrix.from_array([[1, 2, 3], [4, 5, 6]])
    assert_allclose(C.multiply_vector([1, 0, -1]), [-2, -2])
    assert_allclose((C @ C.T).to_array(), [[14, 32], [32, 77]])
    assert_allclose(C.scale(2.0).to_array(), 2.0 * C.to_array())


def test_add_takes_left_shape_and_overlap():
    small = Matrix.from_array([[1.0, 1.0], [1.0, 1.0]])
    big = Matrix.from_array(np.arange(9.0).reshape(3, 3))

    total = small + big
    assert total.shape == (2, 2)
    assert_allclose(total.to_array(), [[1.0, 2.0], [4.0, 5.0]])

    diff = small - big
    assert_allclose(diff.to_array(), [[1.0, 0.0], [-2.0, -3.0]])


def test_add_rejects_smaller_right_operand():
    small = Matrix(2, 2)
    big = Matrix(3, 3)
    with pytest.raises(DimensionMismatchError):
        big + small
    with pytest.raises(DimensionMismatchError):
        big - Matrix(3, 2)


def test_min_max_and_shapes():
    A = Matrix.from_array([[-2.0, 5.0], [1.0, 0.0]])
    assert A.min() == -2.0
    assert A.max() == 5.0
    with pytest.raises(SizeError):
        Matrix(0, 3)


def test_voigt_tensor_helpers():
    v = np.array([1.0, 2.0, 3.0, 4.0, 5.0, 6.0])
    T = vector_to_tensor(v)
    assert_allclose(T.to_array(), T.to_array().T)
    assert T.get(0, 1) == 4.0   # XY
    assert T.get(1, 2) == 5.0   # YZ
    assert T.get(0, 2) == 6.0   # XZ
    assert_allclose(tensor_to_vector(T), v)

    with pytest.raises(SizeError):
        vector_to_tensor([1.0, 2.0, 3.0])
