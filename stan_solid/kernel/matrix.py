# stan_solid/kernel/matrix.py
"""
MATRIX KERNEL: Small Dense Matrices for Element Formulation
===========================================================

PURPOSE:
--------
Element formulation works with lots of SMALL dense matrices:
- 3×3 Jacobians (and their inverses)
- 3×n shape-function derivative matrices
- 6×3n / 9×3n strain-displacement operators
- 6×6 elastic matrices, 9×9 stress matrices
- 3n×3n element stiffness matrices

Matrix wraps a numpy array and gives these a small, strict contract:

    checked access      get/set/add         → IndexError outside the shape
    unchecked access    get_fast/...        → caller guarantees validity
    3×3 only            det3/inverse3       → SizeError, SingularMatrixError
    products            @, multiply_vector  → DimensionMismatchError

ASYMMETRIC ADDITION:
--------------------
A + B and A - B take the shape of the LEFT operand. B must be at least as
large in both directions, and only the overlapping block is combined:

    A (2×2)  +  B (3×3)   →   2×2 result, uses B[0:2, 0:2]
    A (3×3)  +  B (2×2)   →   DimensionMismatchError

This lets a small accumulator be combined with the leading block of a
larger operand without slicing at every call site.

VOIGT ORDER:
------------
Stress/strain vectors use [XX, YY, ZZ, XY, YZ, XZ]. vector_to_tensor and
tensor_to_vector convert between that order and the symmetric 3×3 tensor.
"""

import numpy as np

from ..errors import SizeError, DimensionMismatchError, SingularMatrixError


class Matrix:
    """
    Dense rows×cols matrix of floats.

    Parameters:
    -----------
    rows : int
        Number of rows (> 0)
    cols : int
        Number of columns (> 0)

    Examples:
    ---------
    >>> A = Matrix(3, 3)
    >>> A.set(0, 0, 2.0)
    >>> A.get(0, 0)
    2.0
    >>> A.get(3, 0)
    Traceback (most recent call last):
        ...
    IndexError: Index (3, 0) outside 3×3 matrix
    """

    def __init__(self, rows: int, cols: int):
        if rows <= 0 or cols <= 0:
            raise SizeError(f"Matrix shape must be positive, got {rows}×{cols}", (rows, cols))
        self.data = np.zeros((rows, cols), dtype=float)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_array(cls, values) -> "Matrix":
        """Build a Matrix from any 2-D array-like (copied). 1-D input becomes a column."""
        arr = np.array(values, dtype=float)
        if arr.ndim == 1:
            arr = arr.reshape(-1, 1)
        if arr.ndim != 2:
            raise SizeError(f"Expected a 2-D array, got {arr.ndim}-D", arr.shape)
        m = cls.__new__(cls)
        m.data = arr
        return m

    @classmethod
    def identity(cls, n: int) -> "Matrix":
        return cls.from_array(np.eye(n))

    def copy(self) -> "Matrix":
        return Matrix.from_array(self.data)

    def to_array(self) -> np.ndarray:
        """Return a copy of the underlying numpy array."""
        return self.data.copy()

    @property
    def rows(self) -> int:
        return self.data.shape[0]

    @property
    def cols(self) -> int:
        return self.data.shape[1]

    @property
    def shape(self):
        return self.data.shape

    # ------------------------------------------------------------------
    # Element access
    # ------------------------------------------------------------------

    def _check(self, i: int, j: int) -> None:
        if not (0 <= i < self.rows and 0 <= j < self.cols):
            raise IndexError(f"Index ({i}, {j}) outside {self.rows}×{self.cols} matrix")

    def get(self, i: int, j: int) -> float:
        self._check(i, j)
        return float(self.data[i, j])

    def set(self, i: int, j: int, value: float) -> None:
        self._check(i, j)
        self.data[i, j] = value

    def add(self, i: int, j: int, value: float) -> None:
        self._check(i, j)
        self.data[i, j] += value

    def get_fast(self, i: int, j: int) -> float:
        return self.data[i, j]

    def set_fast(self, i: int, j: int, value: float) -> None:
        self.data[i, j] = value

    def add_fast(self, i: int, j: int, value: float) -> None:
        self.data[i, j] += value

    def row(self, i: int) -> np.ndarray:
        """Copy of row i."""
        if not 0 <= i < self.rows:
            raise IndexError(f"Row {i} outside {self.rows}×{self.cols} matrix")
        return self.data[i, :].copy()

    def column(self, j: int) -> np.ndarray:
        """Copy of column j."""
        if not 0 <= j < self.cols:
            raise IndexError(f"Column {j} outside {self.rows}×{self.cols} matrix")
        return self.data[:, j].copy()

    def set_row(self, i: int, values) -> None:
        values = np.asarray(values, dtype=float)
        if not 0 <= i < self.rows:
            raise IndexError(f"Row {i} outside {self.rows}×{self.cols} matrix")
        if values.shape != (self.cols,):
            raise DimensionMismatchError(
                f"Row of length {values.size} doesn't fit {self.cols} columns",
                self.shape, values.shape,
            )
        self.data[i, :] = values

    def add_row(self, i: int, values) -> None:
        values = np.asarray(values, dtype=float)
        if not 0 <= i < self.rows:
            raise IndexError(f"Row {i} outside {self.rows}×{self.cols} matrix")
        if values.shape != (self.cols,):
            raise DimensionMismatchError(
                f"Row of length {values.size} doesn't fit {self.cols} columns",
                self.shape, values.shape,
            )
        self.data[i, :] += values

    def min(self) -> float:
        return float(self.data.min())

    def max(self) -> float:
        return float(self.data.max())

    # ------------------------------------------------------------------
    # Algebra
    # ------------------------------------------------------------------

    def transpose(self) -> "Matrix":
        return Matrix.from_array(self.data.T)

    @property
    def T(self) -> "Matrix":
        return self.transpose()

    def det3(self) -> float:
        """
        Determinant of a 3×3 matrix (cofactor expansion along row 0).

        Raises:
        -------
        SizeError
            If the matrix is not 3×3
        """
        if self.shape != (3, 3):
            raise SizeError(f"det3 requires a 3×3 matrix, got {self.rows}×{self.cols}", self.shape)
        a = self.data
        return float(
            a[0, 0] * (a[1, 1] * a[2, 2] - a[1, 2] * a[2, 1])
            - a[0, 1] * (a[1, 0] * a[2, 2] - a[1, 2] * a[2, 0])
            + a[0, 2] * (a[1, 0] * a[2, 1] - a[1, 1] * a[2, 0])
        )

    def inverse3(self) -> "Matrix":
        """
        Inverse of a 3×3 matrix from its adjugate.

        Raises:
        -------
        SizeError
            If the matrix is not 3×3
        SingularMatrixError
            If the determinant is exactly zero
        """
        det = self.det3()
        if det == 0.0:
            raise SingularMatrixError("Cannot invert a 3×3 matrix with zero determinant")
        a = self.data
        adj = np.array([
            [a[1, 1] * a[2, 2] - a[1, 2] * a[2, 1], a[0, 2] * a[2, 1] - a[0, 1] * a[2, 2], a[0, 1] * a[1, 2] - a[0, 2] * a[1, 1]],
            [a[1, 2] * a[2, 0] - a[1, 0] * a[2, 2], a[0, 0] * a[2, 2] - a[0, 2] * a[2, 0], a[0, 2] * a[1, 0] - a[0, 0] * a[1, 2]],
            [a[1, 0] * a[2, 1] - a[1, 1] * a[2, 0], a[0, 1] * a[2, 0] - a[0, 0] * a[2, 1], a[0, 0] * a[1, 1] - a[0, 1] * a[1, 0]],
        ])
        return Matrix.from_array(adj / det)

    def scale(self, factor: float) -> "Matrix":
        """Return factor × self."""
        return Matrix.from_array(self.data * factor)

    def multiply_vector(self, vector) -> np.ndarray:
        """Return self · vector for a 1-D vector of length cols."""
        v = np.asarray(vector, dtype=float)
        if v.ndim != 1 or v.shape[0] != self.cols:
            raise DimensionMismatchError(
                f"Cannot multiply {self.rows}×{self.cols} matrix by vector of shape {v.shape}",
                self.shape, v.shape,
            )
        return self.data @ v

    def __matmul__(self, other: "Matrix") -> "Matrix":
        if not isinstance(other, Matrix):
            return NotImplemented
        if self.cols != other.rows:
            raise DimensionMismatchError(
                f"Cannot multiply {self.rows}×{self.cols} by {other.rows}×{other.cols}",
                self.shape, other.shape,
            )
        return Matrix.from_array(self.data @ other.data)

    def _overlap(self, other: "Matrix") -> np.ndarray:
        if not isinstance(other, Matrix):
            raise TypeError(f"Expected Matrix, got {type(other).__name__}")
        if other.rows < self.rows or other.cols < self.cols:
            raise DimensionMismatchError(
                f"Right operand {other.rows}×{other.cols} is smaller than "
                f"left operand {self.rows}×{self.cols}",
                self.shape, other.shape,
            )
        return other.data[:self.rows, :self.cols]

    def __add__(self, other: "Matrix") -> "Matrix":
        return Matrix.from_array(self.data + self._overlap(other))

    def __sub__(self, other: "Matrix") -> "Matrix":
        return Matrix.from_array(self.data - self._overlap(other))

    def __repr__(self) -> str:
        return f"Matrix({self.rows}×{self.cols})"


def vector_to_tensor(vector) -> Matrix:
    """
    Voigt 6-vector [XX, YY, ZZ, XY, YZ, XZ] → symmetric 3×3 tensor.

    >>> vector_to_tensor([1, 2, 3, 4, 5, 6]).to_array()
    array([[1., 4., 6.],
           [4., 2., 5.],
           [6., 5., 3.]])
    """
    v = np.asarray(vector, dtype=float).ravel()
    if v.shape != (6,):
        raise SizeError(f"Voigt vector must have 6 components, got {v.size}", v.shape)
    return Matrix.from_array([
        [v[0], v[3], v[5]],
        [v[3], v[1], v[4]],
        [v[5], v[4], v[2]],
    ])


def tensor_to_vector(tensor: Matrix) -> np.ndarray:
    """Symmetric 3×3 tensor → Voigt 6-vector [XX, YY, ZZ, XY, YZ, XZ]."""
    if tensor.shape != (3, 3):
        raise SizeError(f"Tensor must be 3×3, got {tensor.rows}×{tensor.cols}", tensor.shape)
    a = tensor.data
    return np.array([a[0, 0], a[1, 1], a[2, 2], a[0, 1], a[1, 2], a[0, 2]])
