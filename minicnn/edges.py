"""Differentiable operations that make up the nodes of a computation graph.

Every edge implements the same contract so that a scheduler can drive them
without knowing their kind:

* ``forward(xs)`` computes the node value from the values of its tail.
* ``backward(xs, fx, dEdf, i)`` returns the gradient of the loss with respect
  to ``xs[i]``, given the cached output ``fx`` and the upstream gradient
  ``dEdf``.
* ``describe(arg_names)`` renders the node as an expression.
* ``has_parameters()`` marks the nodes whose gradient the optimizer collects.

Leaf kinds have no inputs. They receive their upstream gradient through
``accumulate_grad(dEdf)``, which writes into the storage they reference.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from . import operators
from .matrix import Matrix
from .matrix_data import IndexingError, ShapeError

if TYPE_CHECKING:
    from typing import Optional, Sequence, Tuple

    from .params import ConstParameters, LookupParameters, Parameters

__all__ = [
    "EdgeError",
    "Edge",
    "ParameterEdge",
    "InputEdge",
    "LookupEdge",
    "MatrixMultiply",
    "Sum",
    "SquaredEuclideanDistance",
    "LogisticSigmoid",
    "Tanh",
    "LogSoftmax",
    "PickElement",
    "Square",
]

logger = logging.getLogger(__name__)


class EdgeError(RuntimeError):
    """Raised when an edge is used outside its contract (wrong arity, a
    non-differentiable input, gradient delivery on a computation node)."""

    pass


class Edge:
    """Base class of every operation kind.

    Args:
    ----
        tail: Ids of the predecessor nodes, in input order.

    """

    # Number of inputs. ``None`` means variadic with at least `min_arity`.
    arity: Optional[int] = 0
    min_arity: int = 0
    # Input positions whose derivative is undefined.
    nondifferentiable: Tuple[int, ...] = ()

    def __init__(self, tail: Sequence[int] = ()):
        self.tail: Tuple[int, ...] = tuple(tail)
        self._check_arity(len(self.tail), "tail")

    def _check_arity(self, n: int, what: str) -> None:
        if self.arity is None:
            if n < self.min_arity:
                raise EdgeError(
                    f"{type(self).__name__} takes at least {self.min_arity} inputs, "
                    f"{what} has {n}"
                )
        elif n != self.arity:
            raise EdgeError(
                f"{type(self).__name__} takes {self.arity} inputs, {what} has {n}"
            )

    def _check_inputs(self, xs: Sequence[Matrix]) -> None:
        self._check_arity(len(xs), "got")

    def _check_backward(self, xs: Sequence[Matrix], fx: Matrix, dEdf: Matrix, i: int) -> None:
        self._check_inputs(xs)
        if not 0 <= i < len(xs):
            raise EdgeError(
                f"{type(self).__name__} has no input {i} (it has {len(xs)})"
            )
        if not self.differentiable(i):
            raise EdgeError(
                f"{type(self).__name__} is not differentiable with respect to input {i}"
            )
        if dEdf.shape != fx.shape:
            raise ShapeError(
                f"Upstream gradient of shape {dEdf.shape} for output of shape {fx.shape}"
            )

    def forward(self, xs: Sequence[Matrix]) -> Matrix:
        raise NotImplementedError

    def backward(self, xs: Sequence[Matrix], fx: Matrix, dEdf: Matrix, i: int) -> Matrix:
        raise NotImplementedError

    def describe(self, arg_names: Sequence[str]) -> str:
        raise NotImplementedError

    def has_parameters(self) -> bool:
        return False

    def differentiable(self, i: int) -> bool:
        return i not in self.nondifferentiable

    def accumulate_grad(self, dEdf: Matrix) -> None:
        raise EdgeError(
            f"{type(self).__name__} has inputs; its gradient flows through backward"
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(tail={list(self.tail)})"


# Leaf kinds


class ParameterEdge(Edge):
    """Binds a node to trainable :class:`~minicnn.params.Parameters`."""

    def __init__(self, params: Parameters):
        super().__init__()
        self.params = params
        self.dim = params.dim

    def has_parameters(self) -> bool:
        return True

    def describe(self, arg_names: Sequence[str]) -> str:
        return f"params{self.dim}"

    def forward(self, xs: Sequence[Matrix]) -> Matrix:
        self._check_inputs(xs)
        return self.params.values.copy()

    def backward(self, xs: Sequence[Matrix], fx: Matrix, dEdf: Matrix, i: int) -> Matrix:
        raise EdgeError("ParameterEdge has no inputs; use accumulate_grad")

    def accumulate_grad(self, dEdf: Matrix) -> None:
        self.params.accumulate_grad(dEdf)


class InputEdge(Edge):
    """Binds a node to a constant input; gradients reaching it are dropped."""

    def __init__(self, params: ConstParameters):
        super().__init__()
        self.params = params
        self.dim = params.dim

    def describe(self, arg_names: Sequence[str]) -> str:
        return f"constant{self.dim}"

    def forward(self, xs: Sequence[Matrix]) -> Matrix:
        self._check_inputs(xs)
        return self.params.values.copy()

    def backward(self, xs: Sequence[Matrix], fx: Matrix, dEdf: Matrix, i: int) -> Matrix:
        raise EdgeError("InputEdge has no inputs")

    def accumulate_grad(self, dEdf: Matrix) -> None:
        if dEdf.shape != self.dim:
            raise ShapeError(f"Gradient of shape {dEdf.shape} for input {self.dim}")
        logger.debug("dropping gradient for constant input %s", self.dim)


class LookupEdge(Edge):
    """Binds a node to entry `index` of an embedding table.

    Only the selected entry receives the gradient.
    """

    def __init__(self, params: LookupParameters, index: int):
        super().__init__()
        params.check_index(index)
        self.params = params
        self.index = index
        self.dim = params.dim

    def describe(self, arg_names: Sequence[str]) -> str:
        return f"lookup{self.dim}[{self.index}]"

    def forward(self, xs: Sequence[Matrix]) -> Matrix:
        self._check_inputs(xs)
        return self.params.value(self.index).copy()

    def backward(self, xs: Sequence[Matrix], fx: Matrix, dEdf: Matrix, i: int) -> Matrix:
        raise EdgeError("LookupEdge has no inputs; use accumulate_grad")

    def accumulate_grad(self, dEdf: Matrix) -> None:
        self.params.accumulate_grad(self.index, dEdf)


# Computation kinds


class MatrixMultiply(Edge):
    """y = x_1 * x_2"""

    arity = 2

    def describe(self, arg_names: Sequence[str]) -> str:
        return f"{arg_names[0]} * {arg_names[1]}"

    def forward(self, xs: Sequence[Matrix]) -> Matrix:
        self._check_inputs(xs)
        return xs[0] @ xs[1]

    def backward(self, xs: Sequence[Matrix], fx: Matrix, dEdf: Matrix, i: int) -> Matrix:
        self._check_backward(xs, fx, dEdf, i)
        if i == 0:
            return dEdf @ xs[1].transpose()
        return xs[0].transpose() @ dEdf


class Sum(Edge):
    """y = \\sum_i x_i"""

    arity = None
    min_arity = 2

    def describe(self, arg_names: Sequence[str]) -> str:
        return " + ".join(arg_names)

    def forward(self, xs: Sequence[Matrix]) -> Matrix:
        self._check_inputs(xs)
        for x in xs[1:]:
            if x.shape != xs[0].shape:
                raise ShapeError(f"Sum of mismatched shapes {xs[0].shape} and {x.shape}")
        res = xs[0]
        for x in xs[1:]:
            res = res + x
        return res

    def backward(self, xs: Sequence[Matrix], fx: Matrix, dEdf: Matrix, i: int) -> Matrix:
        self._check_backward(xs, fx, dEdf, i)
        return dEdf.copy()


class SquaredEuclideanDistance(Edge):
    """y = || x_1 - x_2 ||^2"""

    arity = 2

    def describe(self, arg_names: Sequence[str]) -> str:
        return f"|| {arg_names[0]} - {arg_names[1]} ||^2"

    def forward(self, xs: Sequence[Matrix]) -> Matrix:
        self._check_inputs(xs)
        if xs[0].shape != xs[1].shape:
            raise ShapeError(
                f"Distance between mismatched shapes {xs[0].shape} and {xs[1].shape}"
            )
        res = xs[0].zeros((1, 1))
        res[0, 0] = (xs[0] - xs[1]).squared_norm()
        return res

    def backward(self, xs: Sequence[Matrix], fx: Matrix, dEdf: Matrix, i: int) -> Matrix:
        self._check_backward(xs, fx, dEdf, i)
        scale = dEdf.item() * 2
        if i == 1:
            scale = -scale
        return (xs[0] - xs[1]) * scale


class LogisticSigmoid(Edge):
    """y = \\sigma(x_1)"""

    arity = 1

    def describe(self, arg_names: Sequence[str]) -> str:
        return f"\\sigma({arg_names[0]})"

    def forward(self, xs: Sequence[Matrix]) -> Matrix:
        self._check_inputs(xs)
        return xs[0].sigmoid()

    def backward(self, xs: Sequence[Matrix], fx: Matrix, dEdf: Matrix, i: int) -> Matrix:
        self._check_backward(xs, fx, dEdf, i)
        return dEdf * fx * (1.0 - fx)


class Tanh(Edge):
    """y = tanh x_1"""

    arity = 1

    def describe(self, arg_names: Sequence[str]) -> str:
        return f"tanh({arg_names[0]})"

    def forward(self, xs: Sequence[Matrix]) -> Matrix:
        self._check_inputs(xs)
        return xs[0].tanh()

    def backward(self, xs: Sequence[Matrix], fx: Matrix, dEdf: Matrix, i: int) -> Matrix:
        self._check_backward(xs, fx, dEdf, i)
        return dEdf * (1.0 - fx * fx)


class LogSoftmax(Edge):
    """z = \\sum_j \\exp (x_1)_j
    y_i = (x_1)_i - \\log z

    x_1 must be a column vector.
    """

    arity = 1

    def describe(self, arg_names: Sequence[str]) -> str:
        return f"log_softmax({arg_names[0]})"

    def forward(self, xs: Sequence[Matrix]) -> Matrix:
        self._check_inputs(xs)
        x = xs[0]
        if not x.is_column():
            raise ShapeError(f"log_softmax needs a column vector, got shape {x.shape}")
        if x.rows == 0:
            raise ShapeError("log_softmax of an empty vector")
        # log z = m + log \sum_j exp(x_j - m), every exponent is <= 0
        m = x.max()
        shifted = x - m
        logz = m + operators.log(shifted.exp().sum())
        return x - logz

    def backward(self, xs: Sequence[Matrix], fx: Matrix, dEdf: Matrix, i: int) -> Matrix:
        self._check_backward(xs, fx, dEdf, i)
        return dEdf - fx.exp() * dEdf.sum()


class PickElement(Edge):
    """y = (x_1)_{x_2}

    x_1 is a column vector, x_2 a 1x1 matrix holding a row index. Used to
    implement cross-entropy training against a one-hot target.
    """

    arity = 2
    nondifferentiable = (1,)

    def describe(self, arg_names: Sequence[str]) -> str:
        return f"pick({arg_names[0]}_{arg_names[1]})"

    @staticmethod
    def _index(x: Matrix, mindex: Matrix) -> int:
        if not mindex.is_scalar():
            raise ShapeError(f"pick index must be 1x1, got shape {mindex.shape}")
        v = mindex.item()
        if not math.isfinite(v):
            raise IndexingError(f"pick index must be finite, got {v}")
        index = int(v)
        if index != v:
            raise IndexingError(f"pick index must be integral, got {v}")
        if not 0 <= index < x.rows:
            raise IndexingError(f"pick index {index} out of range for {x.rows} rows")
        return index

    def forward(self, xs: Sequence[Matrix]) -> Matrix:
        self._check_inputs(xs)
        x = xs[0]
        if not x.is_column():
            raise ShapeError(f"pick needs a column vector, got shape {x.shape}")
        index = self._index(x, xs[1])
        fx = x.zeros((1, 1))
        fx[0, 0] = x[index, 0]
        return fx

    # derivative is 0 in all dimensions except 1 for the selected element
    def backward(self, xs: Sequence[Matrix], fx: Matrix, dEdf: Matrix, i: int) -> Matrix:
        self._check_backward(xs, fx, dEdf, i)
        x = xs[0]
        index = self._index(x, xs[1])
        dEdx = x.zeros()
        dEdx[index, 0] = dEdf.item()
        return dEdx


class Square(Edge):
    """y = x_1 \\odot x_1"""

    arity = 1

    def describe(self, arg_names: Sequence[str]) -> str:
        return f"square({arg_names[0]})"

    def forward(self, xs: Sequence[Matrix]) -> Matrix:
        self._check_inputs(xs)
        return xs[0] * xs[0]

    def backward(self, xs: Sequence[Matrix], fx: Matrix, dEdf: Matrix, i: int) -> Matrix:
        self._check_backward(xs, fx, dEdf, i)
        return dEdf * xs[0] * 2.0
