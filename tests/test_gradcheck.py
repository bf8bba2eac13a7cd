import random

import pytest

from minicnn import (
    LogisticSigmoid,
    LogSoftmax,
    MatrixMultiply,
    PickElement,
    Square,
    SquaredEuclideanDistance,
    Sum,
    Tanh,
    central_difference,
    grad_check,
    matrix,
    rand,
    scalar,
    vector,
)
from minicnn.autodiff import grad_central_difference


@pytest.fixture(autouse=True)
def seed() -> None:
    random.seed(42)


def randn(shape):
    return rand(shape, low=-2.0, high=2.0)


@pytest.mark.gradcheck
def test_central_difference() -> None:
    d = central_difference(lambda x, y: x * x * y, 3.0, 2.0, arg=0)
    assert d == pytest.approx(12.0, rel=1e-5)
    d = central_difference(lambda x, y: x * x * y, 3.0, 2.0, arg=1)
    assert d == pytest.approx(9.0, rel=1e-5)


@pytest.mark.gradcheck
def test_grad_central_difference_on_square() -> None:
    x = vector([1.5, -0.5])
    d = grad_central_difference(Square([0]), [x], vector([1.0, 1.0]), 0, (0, 0))
    assert d == pytest.approx(3.0, rel=1e-5)
    # the input is left untouched
    assert x[0, 0] == 1.5


@pytest.mark.gradcheck
@pytest.mark.parametrize("shape", [(1, 1), (3, 1), (2, 3)])
def test_unary(shape) -> None:
    for edge in [LogisticSigmoid([0]), Tanh([0]), Square([0])]:
        grad_check(edge, [randn(shape)])


@pytest.mark.gradcheck
@pytest.mark.parametrize("n", [1, 2, 5])
def test_log_softmax(n: int) -> None:
    grad_check(LogSoftmax([0]), [randn((n, 1))])


@pytest.mark.gradcheck
@pytest.mark.parametrize("shapes", [((2, 3), (3, 1)), ((1, 4), (4, 2)), ((3, 3), (3, 3))])
def test_matrix_multiply(shapes) -> None:
    a, b = shapes
    grad_check(MatrixMultiply([0, 1]), [randn(a), randn(b)])


@pytest.mark.gradcheck
@pytest.mark.parametrize("k", [2, 3, 4])
def test_sum(k: int) -> None:
    grad_check(Sum(list(range(k))), [randn((3, 2)) for _ in range(k)])


@pytest.mark.gradcheck
@pytest.mark.parametrize("shape", [(1, 1), (4, 1), (2, 2)])
def test_squared_euclidean_distance(shape) -> None:
    grad_check(SquaredEuclideanDistance([0, 1]), [randn(shape), randn(shape)])


@pytest.mark.gradcheck
def test_squared_euclidean_distance_given_upstream() -> None:
    xs = [matrix([[1.0, 2.0]]), matrix([[-1.0, 0.5]])]
    grad_check(SquaredEuclideanDistance([0, 1]), xs, dEdf=scalar(-0.7))


@pytest.mark.gradcheck
@pytest.mark.parametrize("index", [0, 2, 3])
def test_pick_element(index: int) -> None:
    # the index input is skipped
    grad_check(PickElement([0, 1]), [randn((4, 1)), scalar(index)])


@pytest.mark.gradcheck
def test_grad_check_catches_wrong_backward() -> None:
    class BadSquare(Square):
        def backward(self, xs, fx, dEdf, i):
            return dEdf * xs[0]

    with pytest.raises(AssertionError):
        grad_check(BadSquare([0]), [vector([1.0, 2.0])])
