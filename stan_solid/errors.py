# stan_solid/errors.py
"""
ERRORS: Failure Modes of a Solid FE Run
=======================================

PURPOSE:
--------
Every way an analysis can fail has its own exception class, so callers can
tell a bad mesh apart from a bad solver choice without parsing messages.

Two families live here:

1. MATRIX KERNEL errors (small dense matrices):
   - SizeError: 3×3-only operation called on another shape
   - DimensionMismatchError: operands don't line up for multiply/add
   - SingularMatrixError: 3×3 inverse of a zero-determinant matrix

2. ANALYSIS errors (all derive from StanError, a RuntimeError):
   - UnsupportedElementError: element type has no formulation
   - DegenerateGeometryError: zero/negative Jacobian determinant
   - MaterialNotResolvedError: element material missing or not initialised
   - ModelIntegrityError: dangling node reference, part without material
   - LinearSolveError: linear solver returned a non-converged status
   - ConfigurationError: unknown analysis type or solver name
   - ConvergenceError: Newton-Raphson iteration cap exceeded

All analysis errors are FATAL to the current run. Results of a failed run
must not be saved.
"""


class SizeError(ValueError):
    """Raised when a 3×3-only operation is applied to another shape."""

    def __init__(self, message: str, shape=None):
        self.shape = shape
        super().__init__(message)


class DimensionMismatchError(ValueError):
    """Raised when matrix operands have incompatible shapes."""

    def __init__(self, message: str, left=None, right=None):
        self.left = left
        self.right = right
        super().__init__(message)


class SingularMatrixError(ArithmeticError):
    """Raised when inverting a 3×3 matrix whose determinant is zero."""
    pass


class StanError(RuntimeError):
    """Base class for fatal analysis errors."""
    pass


class UnsupportedElementError(StanError):
    """Raised when an element type has no implemented formulation."""

    def __init__(self, element_type: str):
        self.element_type = element_type
        super().__init__(
            f"Element type '{element_type}' has no formulation. "
            f"Switch the part formulation to a supported type."
        )


class DegenerateGeometryError(StanError):
    """
    Raised when an element's Jacobian determinant is zero, near zero or negative.

    Attributes:
    -----------
    element_id : int
        Offending element
    det : float
        Jacobian determinant at the failing Gauss point
    gauss_point : int
        Index of the failing Gauss point
    """

    def __init__(self, element_id: int, det: float, gauss_point: int = 0):
        self.element_id = element_id
        self.det = det
        self.gauss_point = gauss_point
        super().__init__(
            f"Element {element_id} is degenerate at Gauss point {gauss_point} "
            f"(det J = {det:.3e}). Check node ordering and coincident nodes."
        )


class MaterialNotResolvedError(StanError):
    """Raised when an element's material is missing or has no elastic matrix."""

    def __init__(self, element_id: int, material_id):
        self.element_id = element_id
        self.material_id = material_id
        super().__init__(
            f"Element {element_id} references material {material_id}, "
            f"which is missing or has no elastic matrix."
        )


class ModelIntegrityError(StanError):
    """Raised when the model references things that don't exist."""
    pass


class LinearSolveError(StanError):
    """Raised when the linear solver returns anything but CONVERGED."""

    def __init__(self, method: str, status, iterations: int = 0):
        self.method = method
        self.status = status
        self.iterations = iterations
        super().__init__(
            f"Linear solver '{method}' failed with status {status.name} "
            f"after {iterations} iterations."
        )


class ConfigurationError(StanError, ValueError):
    """Raised for unknown analysis types, solver names or bad settings."""

    def __init__(self, message: str, parameter: str = "", value=None):
        self.parameter = parameter
        self.value = value
        super().__init__(message)


class ConvergenceError(StanError):
    """
    Raised when Newton-Raphson exceeds its iteration cap.

    Attributes:
    -----------
    increment : int
        Load increment that failed (1-based)
    iterations : int
        Iterations performed
    residual : float
        Last relative residual norm
    """

    def __init__(self, increment: int, iterations: int, residual: float):
        self.increment = increment
        self.iterations = iterations
        self.residual = residual
        super().__init__(
            f"Increment {increment} did not converge after {iterations} "
            f"iterations (residual {residual:.3e})."
        )
