from __future__ import annotations

import os
import random
from typing import TYPE_CHECKING

import numpy as np

from .fast_ops import FastOps
from .matrix_data import Dim, MatrixData, ShapeError
from .matrix_ops import MatrixBackend, SimpleOps

if TYPE_CHECKING:
    from typing import Any, List, Optional, Sequence, Tuple, Union

    import numpy.typing as npt

    from .matrix_data import Shape, Storage, Strides, UserIndex, UserShape, UserStrides

    MatrixLike = Union[float, int, "Matrix"]

__all__ = [
    "Matrix",
    "SimpleBackend",
    "FastBackend",
    "backends",
    "default_backend",
    "zeros",
    "rand",
    "matrix",
    "vector",
    "scalar",
    "from_numpy",
]

SimpleBackend = MatrixBackend(SimpleOps)
FastBackend = MatrixBackend(FastOps)

backends = {"simple": SimpleBackend, "fast": FastBackend}


def default_backend() -> MatrixBackend:
    """Backend used when a matrix is built without an explicit one.

    Read from the ``MINICNN_BACKEND`` environment variable (``simple`` or
    ``fast``), defaulting to ``simple``.
    """
    name = os.environ.get("MINICNN_BACKEND", "simple").strip().lower()
    if name not in backends:
        raise ValueError(
            f"Unknown MINICNN_BACKEND {name!r}, expected one of {sorted(backends)}"
        )
    return backends[name]


class Matrix:
    """A dense two dimensional block of float64 values.

    Matrices behave as values: every arithmetic operation allocates and returns
    a new matrix, and :meth:`copy` gives an independent buffer. ``*`` is the
    elementwise (Hadamard) product and ``@`` the matrix product. A Python number
    or a 1x1 matrix combines with any shape as a scalar.
    """

    backend: MatrixBackend
    _matrix: MatrixData

    def __init__(self, v: MatrixData, backend: Optional[MatrixBackend] = None):
        assert isinstance(v, MatrixData)
        self._matrix = v
        self.backend = backend if backend is not None else default_backend()
        self.f = self.backend

    @staticmethod
    def make(
        storage: Union[Storage, List[float]],
        shape: UserShape,
        strides: Optional[UserStrides] = None,
        backend: Optional[MatrixBackend] = None,
    ) -> Matrix:
        """Creates a new matrix from storage, shape, and optional strides."""
        return Matrix(MatrixData(storage, shape, strides), backend=backend)

    @property
    def shape(self) -> UserShape:
        return self._matrix.shape

    @property
    def dim(self) -> Dim:
        return self._matrix.dim

    @property
    def rows(self) -> int:
        return self._matrix.shape[0]

    @property
    def cols(self) -> int:
        return self._matrix.shape[1]

    @property
    def size(self) -> int:
        return self._matrix.size

    def is_scalar(self) -> bool:
        return self.shape == (1, 1)

    def is_column(self) -> bool:
        return self.cols == 1

    def tuple(self) -> Tuple[Storage, Shape, Strides]:
        """Returns the storage, shape, and strides, the form the kernels take."""
        return self._matrix.tuple()

    def zeros(self, shape: Optional[UserShape] = None) -> Matrix:
        """Creates a zero-filled matrix on the same backend, of this or the given shape."""
        if shape is None:
            shape = self.shape
        return Matrix.make(np.zeros(shape[0] * shape[1]), shape, backend=self.backend)

    def copy(self) -> Matrix:
        """Returns an independent, contiguous copy."""
        return self.f.id_map(self)

    def item(self) -> float:
        """Converts a 1x1 matrix to a float."""
        if self.size != 1:
            raise ShapeError(f"item() needs a single element, got shape {self.shape}")
        return float(self._matrix.get((0, 0)))

    def to_numpy(self) -> npt.NDArray[np.float64]:
        """Returns a (rows, cols) numpy array copy of the values."""
        return self.copy()._matrix._storage.reshape(self.shape).copy()

    def tolist(self) -> List[List[float]]:
        return self.to_numpy().tolist()

    def __getitem__(self, key: UserIndex) -> float:
        return self._matrix.get(key)

    def __setitem__(self, key: UserIndex, val: float) -> None:
        self._matrix.set(key, val)

    def __repr__(self) -> str:
        return self._matrix.to_string()

    def _ensure_matrix(self, b: MatrixLike) -> Matrix:
        if isinstance(b, (int, float)):
            return Matrix.make([float(b)], (1, 1), backend=self.backend)
        return b

    def _check_elementwise(self, b: Matrix, op: str) -> None:
        if self.shape != b.shape and not (self.is_scalar() or b.is_scalar()):
            raise ShapeError(f"Cannot {op} shapes {self.shape} and {b.shape}")

    def __add__(self, b: MatrixLike) -> Matrix:
        b = self._ensure_matrix(b)
        self._check_elementwise(b, "add")
        return self.f.add_zip(self, b)

    def __radd__(self, b: MatrixLike) -> Matrix:
        return self + b

    def __sub__(self, b: MatrixLike) -> Matrix:
        b = self._ensure_matrix(b)
        self._check_elementwise(b, "subtract")
        return self.f.add_zip(self, self.f.neg_map(b))

    def __rsub__(self, b: MatrixLike) -> Matrix:
        return -self + b

    def __mul__(self, b: MatrixLike) -> Matrix:
        """Elementwise product, or scaling by a number / 1x1 matrix."""
        b = self._ensure_matrix(b)
        self._check_elementwise(b, "multiply")
        return self.f.mul_zip(self, b)

    def __rmul__(self, b: MatrixLike) -> Matrix:
        return self * b

    def __neg__(self) -> Matrix:
        return self.f.neg_map(self)

    def __matmul__(self, b: Matrix) -> Matrix:
        return self.f.matrix_multiply(self, b)

    def transpose(self) -> Matrix:
        """Returns the transpose as a new contiguous matrix."""
        return Matrix(self._matrix.permute(1, 0), backend=self.backend).copy()

    @property
    def T(self) -> Matrix:
        return self.transpose()

    def sum(self) -> float:
        """Sum of every element."""
        return float(self.copy()._matrix._storage.sum())

    def squared_norm(self) -> float:
        """Sum of squared elements (squared Frobenius norm)."""
        return (self * self).sum()

    def sigmoid(self) -> Matrix:
        return self.f.sigmoid_map(self)

    def tanh(self) -> Matrix:
        return self.f.tanh_map(self)

    def exp(self) -> Matrix:
        return self.f.exp_map(self)

    def log(self) -> Matrix:
        return self.f.log_map(self)

    def max(self) -> float:
        return float(self.copy()._matrix._storage.max())

    def all_close(self, other: Matrix, rtol: float = 1e-5, atol: float = 1e-8) -> bool:
        return self.shape == other.shape and bool(
            np.allclose(self.to_numpy(), other.to_numpy(), rtol=rtol, atol=atol)
        )


# Helpers for constructing matrices


def zeros(shape: UserShape, backend: Optional[MatrixBackend] = None) -> Matrix:
    """Create a matrix filled with zeros.

    Args:
    ----
        shape: (rows, cols) of the matrix.
        backend: Backend to be used for the matrix (optional).

    Returns:
    -------
        Matrix: A matrix filled with zeros.

    """
    return Matrix.make(np.zeros(shape[0] * shape[1]), shape, backend=backend)


def rand(
    shape: UserShape,
    backend: Optional[MatrixBackend] = None,
    low: float = 0.0,
    high: float = 1.0,
) -> Matrix:
    """Create a matrix of values drawn uniformly from ``[low, high)``.

    Args:
    ----
        shape: (rows, cols) of the matrix.
        backend: Backend to be used for the matrix (optional).
        low: Lower bound of the values.
        high: Upper bound of the values.

    Returns:
    -------
        Matrix: A matrix filled with random values.

    """
    vals = [random.uniform(low, high) for _ in range(shape[0] * shape[1])]
    return Matrix.make(vals, shape, backend=backend)


def matrix(ls: Sequence[Sequence[float]], backend: Optional[MatrixBackend] = None) -> Matrix:
    """Create a matrix from a list of rows.

    Args:
    ----
        ls: Rows of equal length.
        backend: Backend to be used for the matrix (optional).

    Returns:
    -------
        Matrix: A (len(ls), len(ls[0])) matrix.

    """
    arr = np.asarray(ls, dtype=np.float64)
    if arr.ndim != 2:
        raise ShapeError(f"Expected a list of rows, got an array of shape {arr.shape}")
    return Matrix.make(arr.reshape(-1).copy(), arr.shape, backend=backend)


def vector(ls: Sequence[float], backend: Optional[MatrixBackend] = None) -> Matrix:
    """Create a column vector from a flat list of values."""
    arr = np.asarray(ls, dtype=np.float64)
    if arr.ndim != 1:
        raise ShapeError(f"Expected a flat list, got an array of shape {arr.shape}")
    return Matrix.make(arr.copy(), (arr.shape[0], 1), backend=backend)


def scalar(v: float, backend: Optional[MatrixBackend] = None) -> Matrix:
    """Create a 1x1 matrix."""
    return Matrix.make([float(v)], (1, 1), backend=backend)


def from_numpy(arr: Any, backend: Optional[MatrixBackend] = None) -> Matrix:
    """Create a matrix from a 2-D numpy array (copied)."""
    arr = np.asarray(arr, dtype=np.float64)
    if arr.ndim != 2:
        raise ShapeError(f"Expected a 2-D array, got shape {arr.shape}")
    return Matrix.make(np.ascontiguousarray(arr).reshape(-1).copy(), arr.shape, backend=backend)
