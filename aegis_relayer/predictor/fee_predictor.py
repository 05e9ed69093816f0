"""
Base-fee predictor used as the adaptive batch trigger.

The predictor keeps the last ``window_size`` base-fee samples, retrains a
small network on every sample once the window is full, and scores how
favourable the current fee regime is for settling a batch. It only has to be
directional: a fee below the recent mean should score higher than one above.
"""
import logging
import math
import threading
from collections import deque
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Deque, Optional, Tuple, Union

import numpy as np
from web3 import Web3

from ..config import CONFIDENCE_CUTOFF, PREDICTOR_WINDOW
from ..exceptions import MalformedSampleError
from .network import FeedForwardNetwork, DEFAULT_LEARNING_RATE

logger = logging.getLogger(__name__)

HIDDEN_UNITS = 5
TRAINING_ITERATIONS = 200
# How strongly the deviation from the window mean moves the training target
DEVIATION_GAIN = 2.0
TARGET_MIN = 0.01
TARGET_MAX = 0.99

FeeValue = Union[int, str, Decimal]


class PredictorPhase(str, Enum):
    COLD = "COLD"
    READY = "READY"


def fee_to_gwei(fee_wei: FeeValue) -> float:
    """
    Convert a base fee in wei to gwei

    Raises:
        MalformedSampleError: If the value is not a non-negative finite number
    """
    if isinstance(fee_wei, bool) or fee_wei is None:
        raise MalformedSampleError(f"Invalid fee sample: {fee_wei!r}")
    try:
        value = Decimal(str(fee_wei).strip())
    except (InvalidOperation, ValueError) as e:
        raise MalformedSampleError(f"Invalid fee sample: {fee_wei!r}") from e
    if not value.is_finite() or value < 0 or value != value.to_integral_value():
        raise MalformedSampleError(f"Invalid fee sample: {fee_wei!r}")
    try:
        return float(Web3.from_wei(int(value), "gwei"))
    except ValueError as e:
        raise MalformedSampleError(f"Fee sample out of range: {fee_wei!r}") from e


def training_target(window: np.ndarray) -> float:
    """
    Label for the current window

    Pulled toward TARGET_MAX the further the latest sample sits below the
    window mean and toward TARGET_MIN the further it sits above it.
    """
    mean = float(window.mean())
    latest = float(window[-1])
    ratio = abs(mean - latest) / mean if mean > 0 else 0.0

    if latest < mean:
        return min(TARGET_MAX, 0.5 + ratio * DEVIATION_GAIN)
    return max(TARGET_MIN, 0.5 - ratio * DEVIATION_GAIN)


def normalize(window: np.ndarray) -> np.ndarray:
    low, high = window.min(), window.max()
    span = (high - low) or 1.0
    return (window - low) / span


class FeePredictor:
    """
    Sliding-window base-fee predictor.

    Stays COLD (score is always ``(False, 0.0)``) until the window first
    fills, then trains once per absorbed sample.
    """

    def __init__(
        self,
        window_size: int = PREDICTOR_WINDOW,
        cutoff: float = CONFIDENCE_CUTOFF,
        hidden_units: int = HIDDEN_UNITS,
        training_iterations: int = TRAINING_ITERATIONS,
        learning_rate: float = DEFAULT_LEARNING_RATE,
        seed: Optional[int] = None,
    ):
        if window_size < 2:
            raise ValueError("window_size must be at least 2")
        self.window_size = window_size
        self.cutoff = cutoff
        self.training_iterations = training_iterations
        self.network = FeedForwardNetwork(
            window_size, hidden_units, 1, learning_rate=learning_rate, seed=seed
        )
        self._window: Deque[float] = deque(maxlen=window_size)
        self._trained = False
        self._lock = threading.Lock()

    @property
    def phase(self) -> PredictorPhase:
        return PredictorPhase.READY if self.is_ready else PredictorPhase.COLD

    @property
    def is_ready(self) -> bool:
        return self._trained and len(self._window) == self.window_size

    @property
    def latest_fee_gwei(self) -> float:
        with self._lock:
            return self._window[-1] if self._window else 0.0

    def window(self) -> Tuple[float, ...]:
        with self._lock:
            return tuple(self._window)

    def absorb_sample(self, fee_wei: FeeValue) -> PredictorPhase:
        """
        Add a base-fee sample (in wei) and retrain if the window is full

        Raises:
            MalformedSampleError: If the sample is not a valid fee; the
                window and model are left untouched
        """
        gwei = fee_to_gwei(fee_wei)
        with self._lock:
            self._window.append(gwei)
            if len(self._window) == self.window_size:
                self._train()
        return self.phase

    def _train(self) -> None:
        window = np.fromiter(self._window, dtype=float)
        inputs = normalize(window)
        target = training_target(window)

        loss = 0.0
        for _ in range(self.training_iterations):
            loss = self.network.train(inputs, [target])

        if not self._trained:
            logger.info(f"Fee predictor ready after {self.window_size} samples")
        self._trained = True
        logger.debug(f"Trained on window ending {window[-1]:.4f} gwei, target={target:.3f}, loss={loss:.5f}")

    def score(self) -> Tuple[bool, float]:
        """
        Score the current window

        Returns:
            Tuple of (should_execute, confidence); ``(False, 0.0)`` while COLD
        """
        with self._lock:
            if not self.is_ready:
                return False, 0.0
            inputs = normalize(np.fromiter(self._window, dtype=float))
            confidence = float(self.network.run(inputs)[0])

        if math.isnan(confidence):
            return False, 0.0
        return confidence > self.cutoff, confidence
