"""
Data models for the Aegis relayer.
"""
from enum import Enum
from typing import Optional, Tuple, List, Dict, Any
from pydantic import BaseModel, Field, field_validator
from web3 import Web3

ZERO_TX_HASH = "0x" + "0" * 64


class BatchStatus(str, Enum):
    """Overall relayer status as reported to the dashboard."""
    IDLE = "IDLE"
    POOLING = "POOLING"
    EXECUTING = "EXECUTING"
    ERROR = "ERROR"


class Intent(BaseModel):
    """A confirmed transfer request waiting for batched settlement"""
    sender: str
    receiver: str
    amount: int = Field(..., ge=0)
    intent_index: int = Field(..., alias="intentIndex")
    received_at: int = Field(..., alias="receivedAt")
    tx_hash: str = Field(ZERO_TX_HASH, alias="txHash")
    block_number: int = Field(0, alias="blockNumber")

    @field_validator("sender", "receiver")
    @classmethod
    def _check_address(cls, value: str) -> str:
        if not Web3.is_address(value):
            raise ValueError(f"not a valid address: {value!r}")
        return value

    class Config:
        frozen = True
        populate_by_name = True


class LastBatch(BaseModel):
    """Summary of the most recent successful settlement"""
    tx_hash: Optional[str] = None
    batch_size: int = 0
    total_value: int = 0
    executed_at: Optional[int] = None

    class Config:
        frozen = True


class PredictorState(BaseModel):
    """Predictor readiness and latest verdict"""
    is_ready: bool = False
    current_fee_gwei: float = 0.0
    confidence_score: float = 0.0
    threshold: float = 0.7

    class Config:
        frozen = True


class RelayerState(BaseModel):
    """Point-in-time copy of the relayer state"""
    status: BatchStatus
    pooled_intents: Tuple[Intent, ...] = ()
    batch_size_threshold: int
    last_batch: LastBatch = LastBatch()
    predictor: PredictorState = PredictorState()
    total_batches_executed: int = 0
    total_intents_processed: int = 0
    uptime: int = 0
    started_at: int
    last_error: Optional[str] = None

    class Config:
        frozen = True

    @property
    def pool_size(self) -> int:
        return len(self.pooled_intents)


class SettlementReceipt(BaseModel):
    """Receipt of a confirmed settlement transaction"""
    tx_hash: str = Field(..., alias="transactionHash")
    block_number: int = Field(..., alias="blockNumber")
    status: int
    gas_used: int = Field(..., alias="gasUsed")
    logs: List[Dict[str, Any]] = []

    class Config:
        populate_by_name = True


class BatchResult(BaseModel):
    """Outcome of one execution attempt"""
    success: bool
    batch_size: int
    total_value: int
    tx_hash: Optional[str] = None
    error: Optional[str] = None
