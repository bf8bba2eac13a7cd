import random

import numpy as np
import pytest

from minicnn import (
    ConstParameters,
    IndexingError,
    LookupParameters,
    Model,
    Parameters,
    ShapeError,
    vector,
)


@pytest.fixture(autouse=True)
def seed() -> None:
    random.seed(0)


@pytest.mark.params
def test_parameters_init() -> None:
    p = Parameters((3, 2), scale=0.5)
    assert p.dim == (3, 2)
    assert p.size() == 6
    values = p.values.to_numpy()
    assert np.all(np.abs(values) <= 0.5)
    assert p.g.sum() == 0.0
    assert repr(p) == "Parameters{3,2}"


@pytest.mark.params
def test_parameters_accumulate_is_additive() -> None:
    p = Parameters((2, 1))
    p.accumulate_grad(vector([1.0, 2.0]))
    p.accumulate_grad(vector([3.0, -1.0]))
    np.testing.assert_allclose(p.g.to_numpy(), [[4.0], [1.0]])
    assert p.g_squared_l2norm() == pytest.approx(17.0)
    p.clear()
    assert p.g.squared_norm() == 0.0


@pytest.mark.params
def test_parameters_bad_gradient_shape() -> None:
    p = Parameters((2, 1))
    with pytest.raises(ShapeError):
        p.accumulate_grad(vector([1.0, 2.0, 3.0]))
    with pytest.raises(ShapeError):
        Parameters((2,))


@pytest.mark.params
def test_const_parameters_copy_values() -> None:
    v = vector([1.0, 2.0])
    c = ConstParameters(v)
    v[0, 0] = 9.0
    assert c.values[0, 0] == 1.0
    assert c.dim == (2, 1)


@pytest.mark.params
def test_lookup_parameters() -> None:
    table = LookupParameters(3, (2, 1))
    assert table.size() == 3
    assert len(table.values) == 3
    table.accumulate_grad(1, vector([1.0, 1.0]))
    table.accumulate_grad(1, vector([1.0, 0.0]))
    assert table.non_zero_grads == {1}
    np.testing.assert_allclose(table.grad(1).to_numpy(), [[2.0], [1.0]])
    assert table.g_squared_l2norm() == pytest.approx(5.0)
    table.clear()
    assert table.non_zero_grads == set()
    assert table.grad(1).squared_norm() == 0.0


@pytest.mark.params
def test_lookup_parameters_errors() -> None:
    with pytest.raises(ShapeError):
        LookupParameters(0, (2, 1))
    table = LookupParameters(3, (2, 1))
    with pytest.raises(IndexingError):
        table.value(3)
    with pytest.raises(IndexingError):
        table.accumulate_grad(-1, vector([1.0, 1.0]))
    with pytest.raises(ShapeError):
        table.accumulate_grad(0, vector([1.0]))


@pytest.mark.params
def test_model_owns_storage() -> None:
    model = Model()
    W = model.add_parameters((2, 2))
    b = model.add_parameters((2, 1))
    E = model.add_lookup_parameters(10, (2, 1))
    c = model.add_const_parameters(vector([1.0, 2.0]))
    assert model.parameters() == [W, b]
    assert model.lookup_parameters() == [E]
    assert model.const_parameters() == [c]

    W.accumulate_grad(W.values.zeros() + 1.0)
    E.accumulate_grad(4, vector([3.0, 0.0]))
    assert model.gradient_l2_norm() == pytest.approx(np.sqrt(4.0 + 9.0))

    model.zero_grad()
    assert model.gradient_l2_norm() == 0.0
    assert E.non_zero_grads == set()
