"""
Shape relayer snapshots into the JSON payload the dashboard polls.
"""
from typing import Any, Dict

from web3 import Web3

from .models import BatchStatus, Intent, RelayerState


def format_ether(wei: int) -> str:
    return str(Web3.from_wei(wei, "ether"))


def summarize(state: RelayerState) -> str:
    """One-line human summary of the relayer status"""
    if state.status == BatchStatus.EXECUTING:
        return "Executing batch transaction..."
    if state.status == BatchStatus.ERROR:
        return "Batch execution failed. Retrying..."
    if state.pool_size == 0:
        return "Waiting for intents..."
    confidence = state.predictor.confidence_score * 100
    return (
        f"{state.pool_size}/{state.batch_size_threshold} intents pooled"
        f" - AI Gas Confidence: {confidence:.1f}%"
    )


def intent_payload(intent: Intent) -> Dict[str, Any]:
    return {
        "intentIndex": intent.intent_index,
        "sender": intent.sender,
        "receiver": intent.receiver,
        "amount": format_ether(intent.amount),
        "amountWei": str(intent.amount),
        "receivedAt": intent.received_at,
        "txHash": intent.tx_hash,
        "blockNumber": intent.block_number,
    }


def status_payload(state: RelayerState) -> Dict[str, Any]:
    """
    Build the ``/api/status`` response body

    Args:
        state: Snapshot from ``RelayerEngine.snapshot()``

    Returns:
        JSON-serialisable dictionary
    """
    predictor = state.predictor
    last_batch = state.last_batch
    return {
        "status": state.status.value,
        "pooledIntents": state.pool_size,
        "batchSizeThreshold": state.batch_size_threshold,
        "aiReady": predictor.is_ready,
        "currentGasGwei": f"{predictor.current_fee_gwei:.2f}",
        "aiConfidence": predictor.confidence_score,
        "aiThreshold": predictor.threshold,
        "summary": summarize(state),
        "lastError": state.last_error,
        "intents": [intent_payload(intent) for intent in state.pooled_intents],
        "lastBatch": {
            "txHash": last_batch.tx_hash,
            "batchSize": last_batch.batch_size,
            "totalValue": format_ether(last_batch.total_value),
            "executedAt": last_batch.executed_at,
        },
        "stats": {
            "totalBatchesExecuted": state.total_batches_executed,
            "totalIntentsProcessed": state.total_intents_processed,
            "uptimeSec": state.uptime,
            "startedAt": state.started_at,
        },
    }
