import pytest

import minicnn


@pytest.mark.parametrize("name", ["Simple", "Diag", "Xor", "Circle"])
def test_datasets(name: str) -> None:
    data = minicnn.datasets[name](20, seed=5)
    assert data.N == 20
    assert len(data.X) == len(data.y) == 20
    assert set(data.y) <= {0, 1}
    for x, label in data.examples():
        assert x.shape == (2, 1)
        assert 0.0 <= x[0, 0] <= 1.0
    assert minicnn.datasets[name](20, seed=5).X == data.X


def test_xor_labels() -> None:
    data = minicnn.datasets["Xor"](50, seed=2)
    for (x_1, x_2), label in zip(data.X, data.y):
        assert label == int((x_1 < 0.5) != (x_2 < 0.5))
