from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

import numpy as np
from numba import njit as _njit
from numba import prange

from .matrix_data import (
    ShapeError,
    broadcast_index,
    index_to_position,
    shape_broadcast,
    to_index,
)
from .matrix_ops import MapProto, MatrixOps

if TYPE_CHECKING:
    from typing import Callable, Optional

    from .matrix import Matrix
    from .matrix_data import Shape, Storage, Strides

# TIP: Use `NUMBA_DISABLE_JIT=1` to step through these kernels as plain Python.

Fn = TypeVar("Fn")


def njit(fn: Fn, **kwargs: Any) -> Fn:
    """JIT compile `fn` with numba, always inlining it into its callers.

    Args:
    ----
        fn (Fn): The function to compile.
        **kwargs (Any): Additional options for numba.

    Returns:
    -------
        Fn: The compiled function.

    """
    return _njit(inline="always", **kwargs)(fn)  # type: ignore


to_index = njit(to_index)
index_to_position = njit(index_to_position)
broadcast_index = njit(broadcast_index)


class FastOps(MatrixOps):
    @staticmethod
    def map(fn: Callable[[float], float]) -> MapProto:
        """See `matrix_ops.py`"""
        f = matrix_map(njit(fn))

        def ret(a: Matrix, out: Optional[Matrix] = None) -> Matrix:
            if out is None:
                out = a.zeros(a.shape)
            f(*out.tuple(), *a.tuple())
            return out

        return ret

    @staticmethod
    def zip(fn: Callable[[float, float], float]) -> Callable[[Matrix, Matrix], Matrix]:
        """See `matrix_ops.py`"""
        f = matrix_zip(njit(fn))

        def ret(a: Matrix, b: Matrix) -> Matrix:
            c_shape = shape_broadcast(a.shape, b.shape)
            out = a.zeros(c_shape)
            f(*out.tuple(), *a.tuple(), *b.tuple())
            return out

        return ret

    @staticmethod
    def matrix_multiply(a: Matrix, b: Matrix) -> Matrix:
        """Matrix multiply ::

            for i:
              for j:
                for k:
                  out[i, j] += a[i, k] * b[k, j]

        Args:
        ----
            a : matrix of shape (n, k)
            b : matrix of shape (k, m)

        Returns:
        -------
            New matrix of shape (n, m)

        """
        if a.shape[1] != b.shape[0]:
            raise ShapeError(f"Cannot multiply {a.shape} by {b.shape}.")
        out = a.zeros((a.shape[0], b.shape[1]))
        matrix_multiply(*out.tuple(), *a.tuple(), *b.tuple())
        return out


# Implementations


def matrix_map(
    fn: Callable[[float], float],
) -> Callable[[Storage, Shape, Strides, Storage, Shape, Strides], None]:
    """NUMBA low_level matrix map function. See `matrix_ops.py` for description.

    Optimizations:

    * Main loop in parallel
    * All indices use numpy buffers
    * When `out` and `in` are stride-aligned, avoid indexing

    Args:
    ----
        fn: function mappings floats-to-floats to apply.

    Returns:
    -------
        Matrix map function.

    """

    def _map(
        out: Storage,
        out_shape: Shape,
        out_strides: Strides,
        in_storage: Storage,
        in_shape: Shape,
        in_strides: Strides,
    ) -> None:
        if np.array_equal(out_strides, in_strides) and np.array_equal(
            out_shape, in_shape
        ):
            for i in prange(len(out)):
                out[i] = fn(in_storage[i])
        else:
            for i in prange(len(out)):
                out_index = np.empty(2, dtype=np.int32)
                in_index = np.empty(2, dtype=np.int32)
                to_index(i, out_shape, out_index)
                broadcast_index(out_index, out_shape, in_shape, in_index)
                x = in_storage[index_to_position(in_index, in_strides)]
                out[index_to_position(out_index, out_strides)] = fn(x)

    return njit(_map, parallel=True)  # type: ignore


def matrix_zip(
    fn: Callable[[float, float], float],
) -> Callable[
    [Storage, Shape, Strides, Storage, Shape, Strides, Storage, Shape, Strides], None
]:
    """NUMBA higher-order matrix zip function. See `matrix_ops.py` for description.

    Optimizations:

    * Main loop in parallel
    * All indices use numpy buffers
    * When `out`, `a`, `b` are stride-aligned, avoid indexing

    Args:
    ----
        fn: function maps two floats to float to apply.

    Returns:
    -------
        Matrix zip function.

    """

    def _zip(
        out: Storage,
        out_shape: Shape,
        out_strides: Strides,
        a_storage: Storage,
        a_shape: Shape,
        a_strides: Strides,
        b_storage: Storage,
        b_shape: Shape,
        b_strides: Strides,
    ) -> None:
        if (
            np.array_equal(out_strides, a_strides)
            and np.array_equal(out_strides, b_strides)
            and np.array_equal(out_shape, a_shape)
            and np.array_equal(out_shape, b_shape)
        ):
            for i in prange(len(out)):
                out[i] = fn(a_storage[i], b_storage[i])
        else:
            for i in prange(len(out)):
                out_index = np.empty(2, dtype=np.int32)
                a_index = np.empty(2, dtype=np.int32)
                b_index = np.empty(2, dtype=np.int32)
                to_index(i, out_shape, out_index)
                broadcast_index(out_index, out_shape, a_shape, a_index)
                broadcast_index(out_index, out_shape, b_shape, b_index)
                x_a = a_storage[index_to_position(a_index, a_strides)]
                x_b = b_storage[index_to_position(b_index, b_strides)]
                out[index_to_position(out_index, out_strides)] = fn(x_a, x_b)

    return njit(_zip, parallel=True)  # type: ignore


def _matrix_multiply(
    out: Storage,
    out_shape: Shape,
    out_strides: Strides,
    a_storage: Storage,
    a_shape: Shape,
    a_strides: Strides,
    b_storage: Storage,
    b_shape: Shape,
    b_strides: Strides,
) -> None:
    """NUMBA matrix multiply function.

    Optimizations:

    * Outer loop in parallel
    * No index buffers or function calls
    * Inner loop should have no global writes, 1 multiply.

    Args:
    ----
        out (Storage): storage for `out` matrix
        out_shape (Shape): shape for `out` matrix
        out_strides (Strides): strides for `out` matrix
        a_storage (Storage): storage for `a` matrix
        a_shape (Shape): shape for `a` matrix
        a_strides (Strides): strides for `a` matrix
        b_storage (Storage): storage for `b` matrix
        b_shape (Shape): shape for `b` matrix
        b_strides (Strides): strides for `b` matrix

    Returns:
    -------
        None : Fills in `out`

    """
    N, K, M = a_shape[0], a_shape[1], b_shape[1]

    for n in prange(N):
        for m in range(M):
            # dot product of row n of a with column m of b
            tmp = 0.0
            for k in range(K):
                tmp += (
                    a_storage[n * a_strides[0] + k * a_strides[1]]
                    * b_storage[k * b_strides[0] + m * b_strides[1]]
                )
            out[n * out_strides[0] + m * out_strides[1]] = tmp


matrix_multiply = njit(_matrix_multiply, parallel=True)
assert matrix_multiply is not None
