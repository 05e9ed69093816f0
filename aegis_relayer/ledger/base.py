"""
Ledger client interface.

The relayer never talks to the chain directly; everything it needs from the
vault that custodies funds goes through this interface, so the web3-backed
client and the in-memory stub are interchangeable.
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from ..models import Intent, SettlementReceipt


class LedgerClient(ABC):
    """
    Abstract base class for settlement ledger implementations.
    """

    @property
    @abstractmethod
    def executor_address(self) -> str:
        """Address this client submits settlements from."""
        pass

    @abstractmethod
    def authorized_executor(self) -> str:
        """
        Look up the executor the vault currently authorizes.

        Returns:
            Authorized executor address

        Raises:
            LedgerError: If the lookup fails
        """
        pass

    @abstractmethod
    def latest_block_number(self) -> int:
        """Current chain head."""
        pass

    @abstractmethod
    def fetch_intents(self, from_block: int, to_block: int) -> List[Intent]:
        """
        Collect intents registered between two blocks (inclusive).

        Raises:
            LedgerError: If the event query fails
        """
        pass

    @abstractmethod
    def fetch_base_fee(self, block_number: int) -> Optional[int]:
        """
        Base fee of a block in wei, or None if the block has no base fee.

        Raises:
            LedgerError: If the block query fails
        """
        pass

    @abstractmethod
    def available_funds(self) -> int:
        """
        Funds the vault can currently settle, in wei.

        Raises:
            LedgerError: If the balance query fails
        """
        pass

    @abstractmethod
    def submit_settlement(self, receivers: Sequence[str], amounts: Sequence[int]) -> str:
        """
        Submit a batch settlement.

        Args:
            receivers: Destination addresses
            amounts: Amounts in wei, parallel to ``receivers``

        Returns:
            Transaction hash

        Raises:
            SettlementError: If the transaction is rejected
        """
        pass

    @abstractmethod
    def wait_for_confirmation(self, tx_hash: str) -> SettlementReceipt:
        """
        Block until a settlement is mined.

        Raises:
            ConfirmationTimeoutError: If it is not mined in time
            SettlementError: If it reverted
        """
        pass

    def close(self) -> None:
        """Release any open connections or resources."""
        pass
