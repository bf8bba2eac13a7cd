import random

import numpy as np
import pytest

from minicnn import (
    SGD,
    ConstParameters,
    InputEdge,
    LookupEdge,
    Model,
    ParameterEdge,
    SquaredEuclideanDistance,
    Sum,
    vector,
)


@pytest.fixture(autouse=True)
def seed() -> None:
    random.seed(1)


@pytest.mark.optim
def test_sgd_step() -> None:
    model = Model()
    p = model.add_parameters((2, 1))
    start = p.values.to_numpy()
    p.accumulate_grad(vector([1.0, -2.0]))

    SGD(model, lr=0.1).step()
    np.testing.assert_allclose(p.values.to_numpy(), start - 0.1 * np.array([[1.0], [-2.0]]))
    assert p.g.squared_norm() == 0.0


@pytest.mark.optim
def test_sgd_scale_and_weight_decay() -> None:
    model = Model()
    p = model.add_parameters((1, 1))
    w = p.values.item()
    p.accumulate_grad(vector([4.0]))

    SGD(model, lr=0.5, weight_decay=0.1).step(scale=0.25)
    assert p.values.item() == pytest.approx(w - 0.5 * (0.25 * 4.0 + 0.1 * w))


@pytest.mark.optim
def test_sgd_updates_only_touched_lookup_rows() -> None:
    model = Model()
    table = model.add_lookup_parameters(3, (2, 1))
    before = [v.to_numpy() for v in table.values]
    table.accumulate_grad(2, vector([1.0, 1.0]))

    SGD(model, lr=1.0).step()
    np.testing.assert_allclose(table.values[0].to_numpy(), before[0])
    np.testing.assert_allclose(table.values[1].to_numpy(), before[1])
    np.testing.assert_allclose(table.values[2].to_numpy(), before[2] - 1.0)
    assert table.non_zero_grads == set()


@pytest.mark.optim
def test_zero_grad_keeps_weights() -> None:
    model = Model()
    p = model.add_parameters((2, 2))
    start = p.values.to_numpy()
    p.accumulate_grad(p.values.zeros() + 1.0)
    SGD(model).zero_grad()
    assert p.g.squared_norm() == 0.0
    np.testing.assert_array_equal(p.values.to_numpy(), start)


@pytest.mark.optim
def test_fit_embedding_to_target() -> None:
    # loss = || E[1] + b - target ||^2, driven through the edges by hand
    model = Model()
    E = model.add_lookup_parameters(3, (2, 1), scale=1.0)
    b = model.add_parameters((2, 1), scale=1.0)
    target = ConstParameters(vector([0.5, -0.25]))
    sgd = SGD(model, lr=0.1)

    lookup, bias, const = LookupEdge(E, 1), ParameterEdge(b), InputEdge(target)
    add = Sum([0, 1])
    dist = SquaredEuclideanDistance([2, 3])

    losses = []
    for _ in range(50):
        xe, xb, xt = lookup.forward([]), bias.forward([]), const.forward([])
        h = add.forward([xe, xb])
        loss = dist.forward([h, xt])
        losses.append(loss.item())

        dEdf = loss.zeros() + 1.0
        dh = dist.backward([h, xt], loss, dEdf, 0)
        const.accumulate_grad(dist.backward([h, xt], loss, dEdf, 1))
        lookup.accumulate_grad(add.backward([xe, xb], h, dh, 0))
        bias.accumulate_grad(add.backward([xe, xb], h, dh, 1))
        sgd.step()

    assert losses[-1] < 1e-6
    assert losses[-1] < losses[0]
    np.testing.assert_allclose(
        (E.values[1] + b.values).to_numpy(), target.values.to_numpy(), atol=1e-3
    )
