from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional, Type

import numpy as np
from typing_extensions import Protocol

from . import operators
from .matrix_data import (
    ShapeError,
    broadcast_index,
    index_to_position,
    shape_broadcast,
    to_index,
)

if TYPE_CHECKING:
    from .matrix import Matrix
    from .matrix_data import Shape, Storage, Strides


class MapProto(Protocol):
    def __call__(self, x: Matrix, out: Optional[Matrix] = ..., /) -> Matrix:
        """Call a map function"""
        ...


class MatrixOps:
    @staticmethod
    def map(fn: Callable[[float], float]) -> MapProto:
        raise NotImplementedError("map is provided by a concrete ops class")

    @staticmethod
    def zip(
        fn: Callable[[float, float], float],
    ) -> Callable[[Matrix, Matrix], Matrix]:
        raise NotImplementedError("zip is provided by a concrete ops class")

    @staticmethod
    def matrix_multiply(a: Matrix, b: Matrix) -> Matrix:
        raise NotImplementedError("matrix_multiply is provided by a concrete ops class")


class MatrixBackend:
    def __init__(self, ops: Type[MatrixOps]):
        """Dynamically construct a matrix backend based on a `matrix_ops` object
        that implements map, zip and matrix_multiply.

        Args:
        ----
            ops : low-level matrix operations class

        """
        self.name = ops.__name__

        # Maps
        self.neg_map = ops.map(operators.neg)
        self.sigmoid_map = ops.map(operators.sigmoid)
        self.tanh_map = ops.map(operators.tanh)
        self.log_map = ops.map(operators.log)
        self.exp_map = ops.map(operators.exp)
        self.id_map = ops.map(operators.id)

        # Zips
        self.add_zip = ops.zip(operators.add)
        self.mul_zip = ops.zip(operators.mul)

        self.matrix_multiply = ops.matrix_multiply

    def __repr__(self) -> str:
        return f"MatrixBackend({self.name})"


class SimpleOps(MatrixOps):
    @staticmethod
    def map(fn: Callable[[float], float]) -> MapProto:
        """Higher-order matrix map function ::

          fn_map = map(fn)
          fn_map(a, out)
          out

        Simple version::

            for i:
                for j:
                    out[i, j] = fn(a[i, j])

        A 1x1 (or single row / column) input broadcasts over `out`.

        Args:
        ----
            fn: function from float-to-float to apply.

        Returns:
        -------
            new matrix data

        """
        f = matrix_map(fn)

        def ret(a: Matrix, out: Optional[Matrix] = None) -> Matrix:
            if out is None:
                out = a.zeros(a.shape)
            f(*out.tuple(), *a.tuple())
            return out

        return ret

    @staticmethod
    def zip(
        fn: Callable[[float, float], float],
    ) -> Callable[[Matrix, Matrix], Matrix]:
        """Higher-order matrix zip function ::

          fn_zip = zip(fn)
          out = fn_zip(a, b)

        Simple version ::

            for i:
                for j:
                    out[i, j] = fn(a[i, j], b[i, j])

        Args:
        ----
            fn: function from two floats-to-float to apply

        Returns:
        -------
            :class:`Matrix` : new matrix

        """
        f = matrix_zip(fn)

        def ret(a: Matrix, b: Matrix) -> Matrix:
            c_shape = shape_broadcast(a.shape, b.shape)
            out = a.zeros(c_shape)
            f(*out.tuple(), *a.tuple(), *b.tuple())
            return out

        return ret

    @staticmethod
    def matrix_multiply(a: Matrix, b: Matrix) -> Matrix:
        """Matrix product of `a` (n x k) and `b` (k x m) as an n x m matrix."""
        if a.shape[1] != b.shape[0]:
            raise ShapeError(f"Cannot multiply {a.shape} by {b.shape}.")
        out = a.zeros((a.shape[0], b.shape[1]))
        _matrix_multiply(*out.tuple(), *a.tuple(), *b.tuple())
        return out


# Implementations.


def matrix_map(
    fn: Callable[[float], float],
) -> Callable[[Storage, Shape, Strides, Storage, Shape, Strides], None]:
    """Low-level implementation of matrix map between storages of possibly
    different strides.

    Args:
    ----
        fn: function from float-to-float to apply

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
        out_index = np.zeros(2, dtype=np.int32)
        in_index = np.zeros(2, dtype=np.int32)
        for i in range(len(out)):
            to_index(i, out_shape, out_index)
            broadcast_index(out_index, out_shape, in_shape, in_index)
            x = in_storage[index_to_position(in_index, in_strides)]
            out[index_to_position(out_index, out_strides)] = fn(x)

    return _map


def matrix_zip(
    fn: Callable[[float, float], float],
) -> Callable[
    [Storage, Shape, Strides, Storage, Shape, Strides, Storage, Shape, Strides],
    None,
]:
    """Low-level implementation of matrix zip between storages of possibly
    different strides, broadcasting size-1 dimensions.

    Args:
    ----
        fn: function mapping two floats to float to apply

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
        out_index = np.zeros(2, dtype=np.int32)
        a_index = np.zeros(2, dtype=np.int32)
        b_index = np.zeros(2, dtype=np.int32)
        for i in range(len(out)):
            to_index(i, out_shape, out_index)
            broadcast_index(out_index, out_shape, a_shape, a_index)
            broadcast_index(out_index, out_shape, b_shape, b_index)
            x_a = a_storage[index_to_position(a_index, a_strides)]
            x_b = b_storage[index_to_position(b_index, b_strides)]
            out[index_to_position(out_index, out_strides)] = fn(x_a, x_b)

    return _zip


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
    N, K, M = a_shape[0], a_shape[1], b_shape[1]
    for n in range(N):
        for m in range(M):
            acc = 0.0
            for k in range(K):
                acc += (
                    a_storage[n * a_strides[0] + k * a_strides[1]]
                    * b_storage[k * b_strides[0] + m * b_strides[1]]
                )
            out[n * out_strides[0] + m * out_strides[1]] = acc
