from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .matrix import Matrix
    from .params import Model

__all__ = ["Optimizer", "SGD"]

logger = logging.getLogger(__name__)


class Optimizer:
    def __init__(self, model: Model):
        self.model = model

    def zero_grad(self) -> None:
        """Clear every gradient without updating the weights."""
        self.model.zero_grad()


class SGD(Optimizer):
    """Plain stochastic gradient descent with optional L2 weight decay.

    ``w <- w - lr * (scale * g + weight_decay * w)``

    Only the lookup rows touched since the last step are updated.
    """

    def __init__(self, model: Model, lr: float = 0.1, weight_decay: float = 0.0):
        super().__init__(model)
        self.lr = lr
        self.weight_decay = weight_decay

    def _update(self, w: Matrix, g: Matrix, scale: float) -> Matrix:
        step = g * scale
        if self.weight_decay:
            step = step + w * self.weight_decay
        return w - step * self.lr

    def step(self, scale: float = 1.0) -> None:
        """Apply one update from the accumulated gradients, then clear them.

        Args:
        ----
            scale: Multiplier on the gradients, e.g. ``1 / batch_size``.

        """
        for p in self.model.parameters():
            p.values = self._update(p.values, p.g, scale)
            p.clear()
        for lp in self.model.lookup_parameters():
            for i in lp.non_zero_grads:
                lp.values[i] = self._update(lp.values[i], lp.grads[i], scale)
            lp.clear()
        logger.debug("sgd step lr=%g scale=%g", self.lr, scale)
