#!/usr/bin/env python3
"""
Simple example of driving the Aegis relayer against the in-memory ledger.
"""
import logging

from aegis_relayer import RelayerConfig, RelayerEngine
from aegis_relayer.ledger import StubLedger

GWEI = 10**9


def main():
    """
    Demonstrate both batch triggers.

    This example shows how to:
    1. Fill the pool up to the size threshold
    2. Flush a smaller pool once the fee predictor sees a dip
    """
    logging.basicConfig(level=logging.INFO, format="%(levelname)-8s %(name)s: %(message)s")

    ledger = StubLedger(balance=10 * 10**18)
    engine = RelayerEngine(ledger, RelayerConfig(batch_size_threshold=3))

    # Size trigger
    for i in range(3):
        engine.inject_intent(f"0x{i + 1:040x}", 10**17)
    engine.wait_until_idle(timeout=5)
    print(f"After size trigger: {engine.snapshot().total_intents_processed} intent(s) settled")

    # Fee trigger: a flat window followed by a sharp drop
    engine.inject_intent("0x" + "ab" * 20, 2 * 10**17)
    fees = [40 * GWEI] * 9 + [8 * GWEI]
    for block, fee in enumerate(fees, start=1):
        engine.handle_fee_sample(block, fee)
    engine.wait_until_idle(timeout=5)

    state = engine.snapshot()
    print(f"Batches executed: {state.total_batches_executed}")
    print(f"Confidence: {state.predictor.confidence_score:.2%}")
    print(f"Remaining in pool: {state.pool_size}")

    engine.stop()


if __name__ == "__main__":
    main()
