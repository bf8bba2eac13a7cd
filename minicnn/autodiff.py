from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING

import numpy as np

from .matrix import rand

if TYPE_CHECKING:
    from typing import Any, List, Optional, Sequence

    from .edges import Edge
    from .matrix import Matrix
    from .matrix_data import UserIndex

__all__ = ["central_difference", "grad_central_difference", "grad_check"]

logger = logging.getLogger(__name__)


def central_difference(f: Any, *vals: Any, arg: int = 0, epsilon: float = 1e-6) -> Any:
    r"""Computes an approximation to the derivative of `f` with respect to one arg.

    See https://en.wikipedia.org/wiki/Finite_difference for more details.

    Args:
    ----
        f : arbitrary function from n-scalar args to one value
        *vals : n-float values $x_0 \ldots x_{n-1}$
        arg : the number $i$ of the arg to compute the derivative
        epsilon : a small constant

    Returns:
    -------
        An approximation of $f'_i(x_0, \ldots, x_{n-1})$

    """
    return (
        f(*vals[:arg], vals[arg] + epsilon, *vals[arg + 1 :])
        - f(*vals[:arg], vals[arg] - epsilon, *vals[arg + 1 :])
    ) / (2 * epsilon)


def _loss(edge: Edge, xs: Sequence[Matrix], dEdf: Matrix) -> float:
    # E = \sum_ij fx_ij * dEdf_ij has dE/dfx = dEdf
    return (edge.forward(xs) * dEdf).sum()


def grad_central_difference(
    edge: Edge,
    xs: Sequence[Matrix],
    dEdf: Matrix,
    arg: int,
    ind: UserIndex,
    epsilon: float = 1e-6,
) -> float:
    """Numerical derivative of ``sum(edge.forward(xs) * dEdf)`` with respect to
    the entry `ind` of input `arg`.

    Args:
    ----
        edge: Edge whose forward is differentiated.
        xs: Input matrices.
        dEdf: Upstream gradient, the same shape as the edge output.
        arg: Index of the input to perturb.
        ind: (row, col) entry of that input to perturb.
        epsilon: Half-width of the difference step.

    Returns:
    -------
        float: Central difference at the specified entry.

    """

    def f(v: float) -> float:
        x = xs[arg].copy()
        x[ind] = v
        perturbed = [x if j == arg else other for j, other in enumerate(xs)]
        return _loss(edge, perturbed, dEdf)

    return central_difference(f, xs[arg][ind], epsilon=epsilon)


def grad_check(
    edge: Edge,
    xs: Sequence[Matrix],
    dEdf: Optional[Matrix] = None,
    rtol: float = 1e-4,
    atol: float = 1e-6,
    epsilon: float = 1e-6,
) -> None:
    """Check that `edge.backward` agrees with central differences of `edge.forward`.

    Every differentiable input is checked at every entry. When `dEdf` is not
    given a random upstream gradient is drawn (seeded, so failures reproduce).

    Args:
    ----
        edge: Edge to check.
        xs: Input matrices satisfying the edge's shape contract.
        dEdf: Upstream gradient (optional).
        rtol: Relative tolerance.
        atol: Absolute tolerance.
        epsilon: Half-width of the difference step.

    """
    fx = edge.forward(xs)
    if dEdf is None:
        random.seed(10)
        dEdf = rand(fx.shape, backend=fx.backend, low=-1.0, high=1.0)
    err_msg = """

Gradient check error for edge %s.

Input %s

Received derivative %f for argument %d and index %s,
but was expecting derivative %f from central difference.

"""
    checked: List[int] = []
    for i, x in enumerate(xs):
        if not edge.differentiable(i):
            continue
        grad = edge.backward(xs, fx, dEdf, i)
        assert grad.shape == x.shape, (
            f"Gradient for argument {i} of {edge!r} has shape {grad.shape}, "
            f"input has shape {x.shape}"
        )
        for ind in x._matrix.indices():
            check = grad_central_difference(edge, xs, dEdf, i, ind, epsilon=epsilon)
            np.testing.assert_allclose(
                grad[ind],
                check,
                rtol,
                atol,
                err_msg=err_msg % (edge, xs, grad[ind], i, ind, check),
            )
        checked.append(i)
    logger.debug("gradient check passed for %r on inputs %s", edge, checked)
