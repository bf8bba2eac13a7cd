"""Storage for trainable weights, fixed inputs and embedding tables.

Edges hold plain references into these objects; the :class:`Model` that created
them owns their lifetime. Gradient accumulation is not synchronized: a caller
that runs backward passes in parallel must serialize calls to
``accumulate_grad`` on the same storage.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, List, Set

from .matrix import Matrix, rand, zeros
from .matrix_data import Dim, IndexingError, ShapeError

if TYPE_CHECKING:
    from typing import Optional, Sequence, Union

    from .matrix_ops import MatrixBackend

    DimLike = Union[Dim, Sequence[int]]

__all__ = ["Parameters", "ConstParameters", "LookupParameters", "Model"]

logger = logging.getLogger(__name__)


def _as_dim(dim: DimLike) -> Dim:
    if len(dim) != 2:
        raise ShapeError(f"Expected a (rows, cols) pair, got {dim}")
    return Dim(int(dim[0]), int(dim[1]))


class Parameters:
    """A trainable weight matrix with its gradient accumulator.

    Args:
    ----
        dim: (rows, cols) of the weight.
        scale: Initial values are drawn uniformly from ``[-scale, scale]``.
        backend: Backend for the value and gradient matrices (optional).

    """

    def __init__(
        self,
        dim: DimLike,
        scale: float = 0.1,
        backend: Optional[MatrixBackend] = None,
    ):
        self.dim = _as_dim(dim)
        self.values = rand(self.dim, backend=backend, low=-scale, high=scale)
        self.g = zeros(self.dim, backend=self.values.backend)

    def size(self) -> int:
        return self.dim.rows * self.dim.cols

    def accumulate_grad(self, d: Matrix) -> None:
        """Add `d` into the gradient."""
        if d.shape != self.dim:
            raise ShapeError(f"Gradient of shape {d.shape} for parameters {self.dim}")
        self.g = self.g + d
        logger.debug("accumulated gradient into parameters %s", self.dim)

    def clear(self) -> None:
        """Reset the gradient to zero."""
        self.g = self.values.zeros()

    def g_squared_l2norm(self) -> float:
        return self.g.squared_norm()

    def __repr__(self) -> str:
        return f"Parameters{self.dim}"


class ConstParameters:
    """A fixed matrix fed into the graph as an input; never trained."""

    def __init__(self, values: Matrix):
        self.values = values.copy()

    @property
    def dim(self) -> Dim:
        return self.values.dim

    def __repr__(self) -> str:
        return f"ConstParameters{self.dim}"


class LookupParameters:
    """A table of ``n`` embedding matrices of shape `dim`, selected by id.

    Only the rows touched since the last :meth:`clear` carry a gradient; their
    ids are kept in ``non_zero_grads``.
    """

    def __init__(
        self,
        n: int,
        dim: DimLike,
        scale: float = 0.1,
        backend: Optional[MatrixBackend] = None,
    ):
        if n <= 0:
            raise ShapeError(f"Lookup table needs at least one entry, got {n}")
        self.dim = _as_dim(dim)
        self.values: List[Matrix] = [
            rand(self.dim, backend=backend, low=-scale, high=scale) for _ in range(n)
        ]
        self.grads: Dict[int, Matrix] = {}
        self.non_zero_grads: Set[int] = set()

    def size(self) -> int:
        return len(self.values)

    def check_index(self, index: int) -> None:
        if not 0 <= index < len(self.values):
            raise IndexingError(
                f"Lookup index {index} out of range for table of size {len(self.values)}"
            )

    def value(self, index: int) -> Matrix:
        self.check_index(index)
        return self.values[index]

    def grad(self, index: int) -> Matrix:
        """Gradient of row `index` (zeros if it was not touched)."""
        self.check_index(index)
        if index in self.grads:
            return self.grads[index]
        return self.values[index].zeros()

    def accumulate_grad(self, index: int, d: Matrix) -> None:
        """Add `d` into the gradient of row `index`."""
        self.check_index(index)
        if d.shape != self.dim:
            raise ShapeError(f"Gradient of shape {d.shape} for lookup rows {self.dim}")
        self.grads[index] = self.grad(index) + d
        self.non_zero_grads.add(index)
        logger.debug("accumulated gradient into lookup row %d", index)

    def clear(self) -> None:
        self.grads.clear()
        self.non_zero_grads.clear()

    def g_squared_l2norm(self) -> float:
        return sum(self.grads[i].squared_norm() for i in self.non_zero_grads)

    def __repr__(self) -> str:
        return f"LookupParameters({len(self.values)}, {self.dim})"


class Model:
    """The collection that owns every storage object of a network.

    Example::

        model = Model()
        W = model.add_parameters((3, 2))
        E = model.add_lookup_parameters(100, (3, 1))

    """

    def __init__(self, backend: Optional[MatrixBackend] = None):
        self.backend = backend
        self._params: List[Parameters] = []
        self._lookup_params: List[LookupParameters] = []
        self._const_params: List[ConstParameters] = []

    def add_parameters(self, dim: DimLike, scale: float = 0.1) -> Parameters:
        p = Parameters(dim, scale=scale, backend=self.backend)
        self._params.append(p)
        return p

    def add_const_parameters(self, values: Matrix) -> ConstParameters:
        p = ConstParameters(values)
        self._const_params.append(p)
        return p

    def add_lookup_parameters(self, n: int, dim: DimLike, scale: float = 0.1) -> LookupParameters:
        p = LookupParameters(n, dim, scale=scale, backend=self.backend)
        self._lookup_params.append(p)
        return p

    def parameters(self) -> List[Parameters]:
        return list(self._params)

    def lookup_parameters(self) -> List[LookupParameters]:
        return list(self._lookup_params)

    def const_parameters(self) -> List[ConstParameters]:
        return list(self._const_params)

    def zero_grad(self) -> None:
        """Clear every gradient accumulator."""
        for p in self._params:
            p.clear()
        for lp in self._lookup_params:
            lp.clear()

    def gradient_l2_norm(self) -> float:
        total = sum(p.g_squared_l2norm() for p in self._params)
        total += sum(lp.g_squared_l2norm() for lp in self._lookup_params)
        return total**0.5
