"""Toy 2-D classification problems for the training demo."""

import random
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from .matrix import Matrix, vector


def make_pts(N: int, rng: Optional[random.Random] = None) -> List[Tuple[float, float]]:
    """Generates N random points in the unit square.

    Args:
    ----
        N (int): The number of points to generate.
        rng (random.Random): Source of randomness (optional, module state otherwise).

    Returns:
    -------
        List[Tuple[float, float]]: The points (x_1, x_2).

    """
    r = rng if rng is not None else random
    return [(r.random(), r.random()) for _ in range(N)]


@dataclass
class Graph:
    """A labelled point set.

    Attributes
    ----------
        N (int): The number of points.
        X (List[Tuple[float, float]]): The points.
        y (List[int]): 0/1 label of each point.

    """

    N: int
    X: List[Tuple[float, float]]
    y: List[int]

    def examples(self) -> Iterator[Tuple[Matrix, int]]:
        """Yield each point as a 2x1 column vector with its label."""
        for pt, label in zip(self.X, self.y):
            yield vector(list(pt)), label


def _labelled(N: int, rule: Callable[[float, float], bool], seed: Optional[int]) -> Graph:
    rng = random.Random(seed) if seed is not None else None
    X = make_pts(N, rng)
    y = [1 if rule(x_1, x_2) else 0 for x_1, x_2 in X]
    return Graph(N, X, y)


def simple(N: int, seed: Optional[int] = None) -> Graph:
    """Label is 1 left of x_1 = 0.5."""
    return _labelled(N, lambda x_1, x_2: x_1 < 0.5, seed)


def diag(N: int, seed: Optional[int] = None) -> Graph:
    """Label is 1 below the diagonal x_1 + x_2 = 0.5."""
    return _labelled(N, lambda x_1, x_2: x_1 + x_2 < 0.5, seed)


def xor(N: int, seed: Optional[int] = None) -> Graph:
    """Label is 1 in the two opposite quadrants (x_1 < 0.5, x_2 > 0.5) and
    (x_1 > 0.5, x_2 < 0.5)."""
    return _labelled(
        N,
        lambda x_1, x_2: (x_1 < 0.5 and x_2 > 0.5) or (x_1 > 0.5 and x_2 < 0.5),
        seed,
    )


def circle(N: int, seed: Optional[int] = None) -> Graph:
    """Label is 1 outside the circle of radius sqrt(0.1) around (0.5, 0.5)."""

    def outside(x_1: float, x_2: float) -> bool:
        x1, x2 = x_1 - 0.5, x_2 - 0.5
        return x1 * x1 + x2 * x2 > 0.1

    return _labelled(N, outside, seed)


datasets: Dict[str, Callable[..., Graph]] = {
    "Simple": simple,
    "Diag": diag,
    "Xor": xor,
    "Circle": circle,
}
