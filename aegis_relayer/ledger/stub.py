"""
In-memory ledger implementation.

Used when no chain is available (``aegis-relayer --stub``) and by tests. It
keeps a vault balance, records settlements and lets callers script
registrations, block fees and failures.
"""
import hashlib
import logging
import threading
from typing import Dict, List, Optional, Sequence

from ..exceptions import (
    LedgerError, SettlementError, ConfirmationTimeoutError
)
from ..models import Intent, SettlementReceipt
from .base import LedgerClient

logger = logging.getLogger(__name__)

STUB_EXECUTOR = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


class StubLedger(LedgerClient):
    """
    A simple stub implementation of the settlement ledger.

    Settlements are confirmed immediately and debit the vault balance.
    ``fail_submissions`` / ``fail_confirmations`` make the next N calls fail.
    """

    def __init__(
        self,
        balance: int = 0,
        executor: str = STUB_EXECUTOR,
        authorized: Optional[str] = None,
    ):
        self.balance = balance
        self._executor = executor
        self.authorized = authorized or executor
        self.block_number = 0
        self.fail_submissions = 0
        self.fail_confirmations = 0
        self.submissions = 0
        self.settlements: List[Dict[str, list]] = []
        self._intents: Dict[int, List[Intent]] = {}
        self._base_fees: Dict[int, int] = {}
        self._pending: Dict[str, tuple] = {}
        self._lock = threading.RLock()

    @property
    def executor_address(self) -> str:
        return self._executor

    def authorized_executor(self) -> str:
        return self.authorized

    def latest_block_number(self) -> int:
        with self._lock:
            return self.block_number

    def mine_block(self, base_fee: Optional[int] = None, intents: Sequence[Intent] = ()) -> int:
        """
        Append a block carrying ``intents`` and an optional base fee

        Returns:
            The new block number
        """
        with self._lock:
            self.block_number += 1
            if base_fee is not None:
                self._base_fees[self.block_number] = base_fee
            if intents:
                self._intents[self.block_number] = list(intents)
            return self.block_number

    def fetch_intents(self, from_block: int, to_block: int) -> List[Intent]:
        with self._lock:
            found: List[Intent] = []
            for number in range(from_block, to_block + 1):
                found.extend(self._intents.get(number, []))
            return found

    def fetch_base_fee(self, block_number: int) -> Optional[int]:
        with self._lock:
            if block_number > self.block_number:
                raise LedgerError(f"Unknown block {block_number}")
            return self._base_fees.get(block_number)

    def available_funds(self) -> int:
        with self._lock:
            return self.balance

    def submit_settlement(self, receivers: Sequence[str], amounts: Sequence[int]) -> str:
        if len(receivers) != len(amounts):
            raise ValueError("receivers and amounts must have the same length")

        with self._lock:
            if self.fail_submissions > 0:
                self.fail_submissions -= 1
                raise SettlementError("Simulated settlement rejection")

            total = sum(int(a) for a in amounts)
            if total > self.balance:
                raise SettlementError(f"Vault balance {self.balance} below batch total {total}")

            self.balance -= total
            self.submissions += 1
            self.settlements.append({"receivers": list(receivers), "amounts": [int(a) for a in amounts]})
            digest = hashlib.sha256(f"{self.submissions}:{receivers}:{amounts}".encode()).hexdigest()
            tx_hash = "0x" + digest
            self.block_number += 1
            self._pending[tx_hash] = (self.block_number, total, len(receivers))

        logger.info(f"Simulated settlement of {len(receivers)} transfer(s): {tx_hash[:18]}...")
        return tx_hash

    def wait_for_confirmation(self, tx_hash: str) -> SettlementReceipt:
        with self._lock:
            if self.fail_confirmations > 0 and tx_hash in self._pending:
                self.fail_confirmations -= 1
                # Dropped transactions never debit the vault
                _, total, _ = self._pending.pop(tx_hash)
                self.balance += total
                self.settlements.pop()
                raise ConfirmationTimeoutError(f"Simulated confirmation timeout for {tx_hash}", tx_hash=tx_hash)
            if tx_hash not in self._pending:
                raise SettlementError(f"Unknown settlement {tx_hash}", tx_hash=tx_hash)
            block_number, _, transfers = self._pending.pop(tx_hash)

        return SettlementReceipt(
            tx_hash=tx_hash,
            block_number=block_number,
            status=1,
            gas_used=21000 * max(1, transfers),
        )
