"""
Train a one hidden layer classifier by driving edges by hand.

Be sure you have minicnn installed in you Virtual Env.
>>> pip install -Ue .
"""
import logging
import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parent.parent))

import minicnn
from minicnn import (
    ConstParameters,
    InputEdge,
    LogisticSigmoid,
    MatrixMultiply,
    ParameterEdge,
    SquaredEuclideanDistance,
    Sum,
    Tanh,
)

logger = logging.getLogger("run_edges")


def run_forward(nodes):
    """Evaluate nodes in order; a node's tail only names earlier nodes."""
    values = []
    for edge in nodes:
        values.append(edge.forward([values[j] for j in edge.tail]))
    return values


def run_backward(nodes, values):
    """Propagate d(loss)/d(loss) = 1 from the last node back to the leaves."""
    grads = [None] * len(nodes)
    grads[-1] = values[-1].zeros() + 1.0
    for i in reversed(range(len(nodes))):
        edge, dEdf = nodes[i], grads[i]
        if dEdf is None:
            continue
        if not edge.tail:
            edge.accumulate_grad(dEdf)
            continue
        xs = [values[j] for j in edge.tail]
        for k, j in enumerate(edge.tail):
            if not edge.differentiable(k):
                continue
            d = edge.backward(xs, values[i], dEdf, k)
            grads[j] = d if grads[j] is None else grads[j] + d


class Network:
    """Two weight layers with a tanh hidden layer and a sigmoid output.

    Args:
        hidden_layers (int): The number of hidden units.
    """

    def __init__(self, hidden_layers):
        self.model = minicnn.Model()
        self.W1 = self.model.add_parameters((hidden_layers, 2), scale=1.0)
        self.b1 = self.model.add_parameters((hidden_layers, 1), scale=1.0)
        self.W2 = self.model.add_parameters((1, hidden_layers), scale=1.0)
        self.b2 = self.model.add_parameters((1, 1), scale=1.0)

    def build(self, x, label):
        """Nodes of the loss || sigma(W2 tanh(W1 x + b1) + b2) - label ||^2."""
        return [
            InputEdge(ConstParameters(x)),  # 0
            ParameterEdge(self.W1),  # 1
            ParameterEdge(self.b1),  # 2
            MatrixMultiply([1, 0]),  # 3
            Sum([3, 2]),  # 4
            Tanh([4]),  # 5
            ParameterEdge(self.W2),  # 6
            ParameterEdge(self.b2),  # 7
            MatrixMultiply([6, 5]),  # 8
            Sum([8, 7]),  # 9
            LogisticSigmoid([9]),  # 10
            InputEdge(ConstParameters(minicnn.scalar(label))),  # 11
            SquaredEuclideanDistance([10, 11]),  # 12
        ]


def describe(nodes):
    """Render every node as `tN = expression`."""
    lines = []
    for i, edge in enumerate(nodes):
        args = ["t%d" % j for j in edge.tail]
        lines.append("t%d = %s" % (i, edge.describe(args)))
    return "\n".join(lines)


def default_log_fn(epoch, total_loss, correct, losses):
    logger.info("Epoch %d loss %.4f correct %d", epoch, total_loss, correct)


class EdgeTrain:
    def __init__(self, hidden_layers):
        self.hidden_layers = hidden_layers
        self.network = Network(hidden_layers)

    def run_one(self, x):
        nodes = self.network.build(x, 0.0)
        return run_forward(nodes)[10].item()

    def train(self, data, learning_rate, max_epochs=100, log_fn=default_log_fn):
        self.network = Network(self.hidden_layers)
        optim = minicnn.SGD(self.network.model, learning_rate)
        logger.debug("graph:\n%s", describe(self.network.build(minicnn.zeros((2, 1)), 0)))

        losses = []
        for epoch in range(1, max_epochs + 1):
            total_loss = 0.0
            correct = 0
            optim.zero_grad()
            for x, label in data.examples():
                nodes = self.network.build(x, float(label))
                values = run_forward(nodes)
                total_loss += values[-1].item()
                correct += int((values[10].item() > 0.5) == (label == 1))
                run_backward(nodes, values)
            optim.step(scale=1.0 / data.N)
            losses.append(total_loss)

            if epoch % 10 == 0 or epoch == max_epochs:
                log_fn(epoch, total_loss, correct, losses)
        return losses


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(name)s %(levelname)s %(message)s")
    PTS = 50
    HIDDEN = 4
    RATE = 2.0
    data = minicnn.datasets["Xor"](PTS, seed=1)
    EdgeTrain(HIDDEN).train(data, RATE, max_epochs=200)
