"""
Exceptions for the Aegis relayer.
"""
from typing import Optional


class RelayerError(Exception):
    """Base exception for relayer errors."""
    pass


class ConfigError(RelayerError):
    """Raised when the relayer configuration is invalid."""
    pass


class MalformedSampleError(RelayerError):
    """Raised when a fee sample cannot be interpreted as a fee value."""
    pass


class LedgerError(RelayerError):
    """Base exception for failures talking to the settlement ledger."""
    pass


class InsufficientFundsError(LedgerError):
    """Raised when the vault cannot cover the aggregate batch amount."""

    def __init__(self, message: str, available: int = 0, required: int = 0):
        self.available = available
        self.required = required
        super().__init__(message)


class SettlementError(LedgerError):
    """Raised when a settlement transaction is rejected or reverts."""

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        self.tx_hash = tx_hash
        super().__init__(message)


class ConfirmationTimeoutError(LedgerError):
    """Raised when a settlement transaction is not confirmed in time."""

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        self.tx_hash = tx_hash
        super().__init__(message)
