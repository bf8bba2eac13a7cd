from __future__ import annotations

from typing import Iterable, NamedTuple, Optional, Sequence, Tuple, Union

import numpy as np
import numpy.typing as npt
from numpy import array, float64
from typing_extensions import TypeAlias


class IndexingError(RuntimeError):
    """Exception raised for indexing errors."""

    pass


class ShapeError(RuntimeError):
    """Exception raised when operand shapes violate an operation's contract."""

    pass


Storage: TypeAlias = npt.NDArray[np.float64]
OutIndex: TypeAlias = npt.NDArray[np.int32]
Index: TypeAlias = npt.NDArray[np.int32]
Shape: TypeAlias = npt.NDArray[np.int32]
Strides: TypeAlias = npt.NDArray[np.int32]

UserIndex: TypeAlias = Tuple[int, int]
UserShape: TypeAlias = Tuple[int, int]
UserStrides: TypeAlias = Tuple[int, int]


class Dim(NamedTuple):
    """Shape of a matrix as (rows, cols)."""

    rows: int
    cols: int

    def __str__(self) -> str:
        return "{%d,%d}" % (self.rows, self.cols)


def index_to_position(index: Index, strides: Strides) -> int:
    """Convert a (row, col) index to a position in flat storage."""
    return int(index[0] * strides[0] + index[1] * strides[1])


def to_index(ordinal: int, shape: Shape, out_index: OutIndex) -> None:
    """Convert a row-major ordinal to a (row, col) index, written into `out_index`."""
    out_index[0] = ordinal // shape[1]
    out_index[1] = ordinal % shape[1]


def broadcast_index(
    big_index: Index, big_shape: Shape, shape: Shape, out_index: OutIndex
) -> None:
    """Map an index of the broadcast shape to an index of a smaller operand.

    A dimension of size 1 in `shape` is repeated along the bigger one, so it is
    always read at position 0.
    """
    for i in range(2):
        out_index[i] = big_index[i] if shape[i] != 1 else 0


def shape_broadcast(shape1: UserShape, shape2: UserShape) -> UserShape:
    """Broadcast two 2-D shapes to a compatible shape."""
    shape = []
    for a, b in zip(shape1, shape2):
        if a == 1 or b == 1:
            shape.append(max(a, b))
        elif a != b:
            raise ShapeError(f"Cannot broadcast shape {shape1} with shape {shape2}")
        else:
            shape.append(a)
    return (shape[0], shape[1])


def strides_from_shape(shape: UserShape) -> UserStrides:
    """Return the row-major strides for a given shape."""
    return (shape[1], 1)


class MatrixData:
    _storage: Storage
    _strides: Strides
    _shape: Shape
    strides: UserStrides
    shape: UserShape

    def __init__(
        self,
        storage: Union[Sequence[float], Storage],
        shape: UserShape,
        strides: Optional[UserStrides] = None,
    ):
        """Initialize matrix data with storage, shape, and optional strides."""
        if isinstance(storage, np.ndarray):
            self._storage = storage
        else:
            self._storage = array(storage, dtype=float64)

        if len(shape) != 2:
            raise ShapeError(f"Matrices are two dimensional, got shape {shape}.")
        shape = (int(shape[0]), int(shape[1]))
        if shape[0] < 0 or shape[1] < 0:
            raise ShapeError(f"Negative dimension in shape {shape}.")

        if strides is None:
            strides = strides_from_shape(shape)
        if len(strides) != 2:
            raise IndexingError(f"Len of strides {strides} must match {shape}.")
        self._strides = array(strides)
        self._shape = array(shape)
        self.strides = (int(strides[0]), int(strides[1]))
        self.shape = shape
        self.size = shape[0] * shape[1]
        if len(self._storage) != self.size:
            raise ShapeError(
                f"Storage of length {len(self._storage)} does not fit shape {shape}."
            )

    @property
    def dim(self) -> Dim:
        return Dim(*self.shape)

    def is_contiguous(self) -> bool:
        """Check if the matrix is stored row-major without gaps."""
        return self.strides == strides_from_shape(self.shape) or self.size <= 1

    def index(self, index: UserIndex) -> int:
        """Convert a (row, col) index to a position in storage."""
        if len(index) != 2:
            raise IndexingError(f"Index {index} must be a (row, col) pair.")
        for i, ind in enumerate(index):
            if ind < 0:
                raise IndexingError(f"Negative indexing for {index} not supported.")
            if ind >= self.shape[i]:
                raise IndexingError(f"Index {index} out of range {self.shape}.")
        return index_to_position(index, self._strides)

    def indices(self) -> Iterable[UserIndex]:
        """Yield every (row, col) index in row-major order."""
        for i in range(self.shape[0]):
            for j in range(self.shape[1]):
                yield (i, j)

    def get(self, key: UserIndex) -> float:
        x: float = self._storage[self.index(key)]
        return x

    def set(self, key: UserIndex, val: float) -> None:
        self._storage[self.index(key)] = val

    def tuple(self) -> Tuple[Storage, Shape, Strides]:
        """Return the core matrix data as a tuple, the form the kernels take."""
        return (self._storage, self._shape, self._strides)

    def permute(self, *order: int) -> MatrixData:
        """Reorder the two dimensions; `permute(1, 0)` is a transposed view."""
        assert sorted(order) == [0, 1], f"Must give a position to each dimension. Order: {order}"
        shape = (self.shape[order[0]], self.shape[order[1]])
        strides = (self.strides[order[0]], self.strides[order[1]])
        return MatrixData(self._storage, shape, strides)

    def to_string(self) -> str:
        rows = []
        for i in range(self.shape[0]):
            rows.append(" ".join(f"{self.get((i, j)):3.2f}" for j in range(self.shape[1])))
        return "[" + "\n ".join("[" + r + "]" for r in rows) + "]"
