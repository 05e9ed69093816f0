"""
Tiny feed-forward regressor trained online with plain gradient descent.
"""
from typing import Optional, Sequence

import numpy as np

DEFAULT_LEARNING_RATE = 0.1


def _sigmoid(x: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-x))


class FeedForwardNetwork:
    """
    One hidden layer, logistic activation on every layer.

    Weights and biases start uniformly in [-1, 1]; pass ``seed`` for
    reproducible initialisation.
    """

    def __init__(
        self,
        input_size: int,
        hidden_size: int,
        output_size: int = 1,
        learning_rate: float = DEFAULT_LEARNING_RATE,
        seed: Optional[int] = None,
    ):
        self.input_size = input_size
        self.hidden_size = hidden_size
        self.output_size = output_size
        self.learning_rate = learning_rate

        rng = np.random.default_rng(seed)
        self.weights_input_hidden = rng.uniform(-1.0, 1.0, (input_size, hidden_size))
        self.weights_hidden_output = rng.uniform(-1.0, 1.0, (hidden_size, output_size))
        self.bias_hidden = rng.uniform(-1.0, 1.0, hidden_size)
        self.bias_output = rng.uniform(-1.0, 1.0, output_size)

    def _as_input(self, inputs: Sequence[float]) -> np.ndarray:
        x = np.asarray(inputs, dtype=float)
        if x.shape != (self.input_size,):
            raise ValueError(f"Expected {self.input_size} inputs, got shape {x.shape}")
        return x

    def _forward(self, x: np.ndarray):
        hidden = _sigmoid(x @ self.weights_input_hidden + self.bias_hidden)
        output = _sigmoid(hidden @ self.weights_hidden_output + self.bias_output)
        return hidden, output

    def run(self, inputs: Sequence[float]) -> np.ndarray:
        """Single forward pass"""
        _, output = self._forward(self._as_input(inputs))
        return output

    def train(self, inputs: Sequence[float], expected: Sequence[float]) -> float:
        """
        One forward and backward pass against ``expected``

        Returns:
            Squared error before the update
        """
        x = self._as_input(inputs)
        target = np.asarray(expected, dtype=float)
        hidden, output = self._forward(x)

        error = target - output
        output_delta = error * output * (1.0 - output)
        hidden_delta = (self.weights_hidden_output @ output_delta) * hidden * (1.0 - hidden)

        lr = self.learning_rate
        self.weights_hidden_output += lr * np.outer(hidden, output_delta)
        self.bias_output += lr * output_delta
        self.weights_input_hidden += lr * np.outer(x, hidden_delta)
        self.bias_hidden += lr * hidden_delta

        return float(np.sum(error ** 2))
