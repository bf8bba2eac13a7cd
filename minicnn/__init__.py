"""Differentiable Edges for Neural Networks

This package provides the operation nodes ("edges") of a reverse-mode
automatic-differentiation graph, together with the dense matrix type they
compute on and the storage for trainable parameters.

Modules
-------

- `operators`: Scalar functions applied elementwise by the backends.
- `matrix_data`: Strided 2-D storage, shapes (`Dim`) and indexing errors.
- `matrix_ops`: The backend interface and the pure Python `SimpleOps`.
- `fast_ops`: Parallel backend kernels compiled with numba (CPU).
- `matrix`: The `Matrix` value type and its constructors.
- `params`: Trainable parameters, constant inputs, lookup tables and the `Model` owning them.
- `edges`: The edge contract, leaf edges and computation edges.
- `autodiff`: Central difference gradient checking for edges.
- `optim`: Stochastic gradient descent over a `Model`.
- `datasets`: Toy classification problems.
"""

from .matrix_data import Dim, IndexingError, MatrixData, ShapeError  # noqa: F401
from .matrix_ops import MatrixBackend, MatrixOps, SimpleOps  # noqa: F401
from .fast_ops import FastOps  # noqa: F401
from .matrix import *  # noqa: F401,F403
from .params import *  # noqa: F401,F403
from .edges import *  # noqa: F401,F403
from .autodiff import *  # noqa: F401,F403
from .optim import *  # noqa: F401,F403
from .datasets import datasets  # noqa: F401
from . import operators  # noqa: F401

__version__ = "0.1.0"
