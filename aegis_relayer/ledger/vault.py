"""
VaultLedger - web3 client for the AegisVault settlement contract.
"""
import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception
from web3.types import TxReceipt as Web3TxReceipt
from eth_account import Account
from eth_account.signers.local import LocalAccount

from ..exceptions import (
    LedgerError, SettlementError, ConfirmationTimeoutError
)
from ..models import Intent, SettlementReceipt
from .abi import AEGIS_VAULT_ABI
from .base import LedgerClient

logger = logging.getLogger(__name__)

# Used when gas estimation is unavailable
DEFAULT_SETTLEMENT_GAS = 500000


class VaultLedger(LedgerClient):
    """
    Ledger client backed by an AegisVault contract.

    Handles:
    1. Reading intent registrations and block base fees
    2. Querying the vault balance and authorized relayer
    3. Signing, sending and confirming ``executeBatch`` transactions
    """

    def __init__(
        self,
        rpc_url: str,
        vault_address: str,
        priv_key: str,
        gas_safety_margin: float = 1.2,
        confirmation_timeout: float = 120.0,
        poll_latency: float = 0.5,
        w3: Optional[Web3] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the VaultLedger

        Args:
            rpc_url: Ethereum-compatible RPC endpoint URL
            vault_address: Deployed AegisVault contract address
            priv_key: Private key of the relayer wallet
            gas_safety_margin: Multiplier applied to the gas estimate
            confirmation_timeout: Seconds to wait for a settlement receipt
            poll_latency: Receipt polling interval in seconds
            w3: Preconfigured Web3 instance (defaults to an HTTPProvider on rpc_url)
            logger: Optional logger instance
        """
        if gas_safety_margin < 1.0:
            raise ValueError("gas_safety_margin must be at least 1.0")

        self.rpc_url = rpc_url
        self.gas_safety_margin = gas_safety_margin
        self.confirmation_timeout = confirmation_timeout
        self.poll_latency = poll_latency
        self.logger = logger or logging.getLogger(__name__)

        self.w3 = w3 or Web3(Web3.HTTPProvider(rpc_url))
        self.account: LocalAccount = Account.from_key(priv_key)
        self.vault_address = Web3.to_checksum_address(vault_address)
        self.contract = self.w3.eth.contract(address=self.vault_address, abi=AEGIS_VAULT_ABI)

    @property
    def executor_address(self) -> str:
        return self.account.address

    def authorized_executor(self) -> str:
        try:
            return self.contract.functions.relayer().call()
        except (Web3Exception, ValueError, OSError) as e:
            raise LedgerError(f"Could not read authorized relayer: {e}") from e

    def latest_block_number(self) -> int:
        try:
            return self.w3.eth.block_number
        except (Web3Exception, ValueError, OSError) as e:
            raise LedgerError(f"Could not read block number: {e}") from e

    def fetch_intents(self, from_block: int, to_block: int) -> List[Intent]:
        try:
            logs = self.contract.events.IntentRegistered().get_logs(
                from_block=from_block, to_block=to_block
            )
        except (Web3Exception, ValueError, OSError) as e:
            raise LedgerError(f"Could not read IntentRegistered events: {e}") from e

        now_ms = int(time.time() * 1000)
        return [self._log_to_intent(log, now_ms) for log in logs]

    @staticmethod
    def _log_to_intent(log: Dict[str, Any], received_at: int) -> Intent:
        args = log["args"]
        return Intent(
            sender=args["sender"],
            receiver=args["receiver"],
            amount=int(args["amount"]),
            intent_index=int(args["intentIndex"]),
            received_at=received_at,
            tx_hash=Web3.to_hex(log["transactionHash"]),
            block_number=int(log["blockNumber"]),
        )

    def fetch_base_fee(self, block_number: int) -> Optional[int]:
        try:
            block = self.w3.eth.get_block(block_number)
        except (Web3Exception, ValueError, OSError) as e:
            raise LedgerError(f"Could not read block {block_number}: {e}") from e
        base_fee = block.get("baseFeePerGas")
        return int(base_fee) if base_fee is not None else None

    def available_funds(self) -> int:
        try:
            return int(self.contract.functions.vaultBalance().call())
        except (Web3Exception, ValueError, OSError) as e:
            raise LedgerError(f"Could not read vault balance: {e}") from e

    def submit_settlement(self, receivers: Sequence[str], amounts: Sequence[int]) -> str:
        """
        Sign and send ``executeBatch(receivers, amounts)``

        Returns:
            Transaction hash as a 0x-prefixed hex string

        Raises:
            SettlementError: If building, signing or sending fails
            ValueError: If receivers and amounts differ in length
        """
        if len(receivers) != len(amounts):
            raise ValueError("receivers and amounts must have the same length")

        checksummed = [Web3.to_checksum_address(r) for r in receivers]
        values = [int(a) for a in amounts]
        call = self.contract.functions.executeBatch(checksummed, values)
        from_address = self.account.address

        try:
            nonce = self.w3.eth.get_transaction_count(from_address)

            # Gas estimation with safety margin
            try:
                estimate = call.estimate_gas({'from': from_address})
                gas = int(estimate * self.gas_safety_margin)
                self.logger.debug(f"Estimated gas: {estimate}, using limit {gas}")
            except ContractLogicError as e:
                raise SettlementError(f"Settlement would revert: {e}") from e
            except (Web3Exception, ValueError) as e:
                gas = DEFAULT_SETTLEMENT_GAS
                self.logger.warning(f"Gas estimation failed, using default: {gas}. Error: {e}")

            tx = call.build_transaction({
                'from': from_address,
                'nonce': nonce,
                'gas': gas,
                'gasPrice': self.w3.eth.gas_price,
            })
            signed_tx = self.account.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        except SettlementError:
            raise
        except (Web3Exception, ValueError, OSError) as e:
            self.logger.error(f"Failed to send settlement: {e}")
            raise SettlementError(f"Failed to send settlement: {e}") from e

        tx_hex = Web3.to_hex(tx_hash)
        self.logger.info(f"Settlement submitted: {tx_hex}")
        return tx_hex

    def wait_for_confirmation(self, tx_hash: str) -> SettlementReceipt:
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=self.confirmation_timeout,
                poll_latency=self.poll_latency
            )
        except TimeExhausted as e:
            raise ConfirmationTimeoutError(
                f"Settlement {tx_hash} not confirmed after {self.confirmation_timeout}s", tx_hash=tx_hash
            ) from e
        except (Web3Exception, ValueError, OSError) as e:
            raise SettlementError(f"Could not confirm settlement {tx_hash}: {e}", tx_hash=tx_hash) from e

        result = self._convert_receipt(receipt)
        if result.status != 1:
            raise SettlementError(f"Settlement {tx_hash} reverted in block {result.block_number}", tx_hash=tx_hash)
        return result

    def _convert_receipt(self, web3_receipt: Web3TxReceipt) -> SettlementReceipt:
        """
        Convert Web3 receipt to our SettlementReceipt model
        """
        receipt_dict = dict(web3_receipt)

        # Convert bytes to hex strings
        for key, value in list(receipt_dict.items()):
            if isinstance(value, bytes):
                receipt_dict[key] = Web3.to_hex(value)

        receipt_dict["logs"] = [dict(log) for log in receipt_dict.get("logs", [])]
        return SettlementReceipt.model_validate(receipt_dict)
