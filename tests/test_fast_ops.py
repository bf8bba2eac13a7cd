import random

import numpy as np
import pytest

from minicnn import (
    FastBackend,
    LogSoftmax,
    MatrixMultiply,
    ShapeError,
    SimpleBackend,
    Tanh,
    from_numpy,
    grad_check,
    rand,
)


def pair(shape):
    a = rand(shape, backend=SimpleBackend, low=-3.0, high=3.0)
    return a, from_numpy(a.to_numpy(), backend=FastBackend)


@pytest.fixture(autouse=True)
def seed() -> None:
    random.seed(3)


@pytest.mark.fast
@pytest.mark.parametrize("fn", ["sigmoid", "tanh", "exp", "__neg__", "copy"])
def test_map_agrees(fn: str) -> None:
    s, f = pair((3, 4))
    out_s = getattr(s, fn)()
    out_f = getattr(f, fn)()
    assert out_f.backend is FastBackend
    np.testing.assert_allclose(out_f.to_numpy(), out_s.to_numpy())


@pytest.mark.fast
def test_zip_agrees() -> None:
    s1, f1 = pair((2, 5))
    s2, f2 = pair((2, 5))
    np.testing.assert_allclose((f1 + f2).to_numpy(), (s1 + s2).to_numpy())
    np.testing.assert_allclose((f1 * f2).to_numpy(), (s1 * s2).to_numpy())
    np.testing.assert_allclose((f1 * 0.5).to_numpy(), (s1 * 0.5).to_numpy())


@pytest.mark.fast
def test_transpose_agrees() -> None:
    s, f = pair((3, 2))
    np.testing.assert_allclose(f.transpose().to_numpy(), s.transpose().to_numpy())


@pytest.mark.fast
@pytest.mark.parametrize("shapes", [((2, 3), (3, 4)), ((1, 1), (1, 1)), ((5, 2), (2, 1))])
def test_matrix_multiply_agrees(shapes) -> None:
    sa, fa = pair(shapes[0])
    sb, fb = pair(shapes[1])
    np.testing.assert_allclose((fa @ fb).to_numpy(), (sa @ sb).to_numpy())
    np.testing.assert_allclose(
        (fa.transpose().transpose() @ fb).to_numpy(), (sa @ sb).to_numpy()
    )


@pytest.mark.fast
def test_matrix_multiply_shape_mismatch() -> None:
    _, fa = pair((2, 3))
    _, fb = pair((2, 3))
    with pytest.raises(ShapeError):
        fa @ fb


@pytest.mark.fast
def test_edges_on_fast_backend() -> None:
    _, x = pair((4, 1))
    _, w = pair((3, 4))
    grad_check(MatrixMultiply([0, 1]), [w, x])
    grad_check(Tanh([0]), [x])
    grad_check(LogSoftmax([0]), [x])
