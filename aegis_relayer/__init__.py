"""
Aegis relayer - batches value-transfer intents into single vault settlements.
"""
from .version import __version__
from .config import RelayerConfig
from .engine import RelayerEngine
from .exceptions import (
    RelayerError, ConfigError, MalformedSampleError, LedgerError,
    InsufficientFundsError, SettlementError, ConfirmationTimeoutError
)
from .models import BatchResult, BatchStatus, Intent, LastBatch, PredictorState, RelayerState, SettlementReceipt
from .pool import IntentPool
from .predictor import FeePredictor, PredictorPhase

__all__ = [
    "RelayerEngine",
    "RelayerConfig",
    "IntentPool",
    "FeePredictor",
    "PredictorPhase",
    "Intent",
    "BatchStatus",
    "BatchResult",
    "LastBatch",
    "PredictorState",
    "RelayerState",
    "SettlementReceipt",
    "RelayerError",
    "ConfigError",
    "MalformedSampleError",
    "LedgerError",
    "InsufficientFundsError",
    "SettlementError",
    "ConfirmationTimeoutError",
    "__version__",
]
