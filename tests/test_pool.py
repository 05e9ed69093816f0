"""
Tests for the in-memory intent pool.
"""
import random
import threading
from collections import Counter

from aegis_relayer.pool import IntentPool


def test_enqueue_returns_new_size(make_intent):
    pool = IntentPool()
    assert pool.enqueue(make_intent()) == 1
    assert pool.enqueue(make_intent()) == 2
    assert len(pool) == 2


def test_drain_all_preserves_order_and_empties(make_intent):
    pool = IntentPool()
    intents = [make_intent() for _ in range(4)]
    for intent in intents:
        pool.enqueue(intent)

    assert pool.drain_all() == intents
    assert len(pool) == 0
    assert pool.drain_all() == []


def test_restore_to_front_goes_ahead_of_newer_intents(make_intent):
    pool = IntentPool()
    first, second = make_intent(), make_intent()
    pool.enqueue(first)
    pool.enqueue(second)
    drained = pool.drain_all()

    newer = make_intent()
    pool.enqueue(newer)
    assert pool.restore_to_front(drained) == 3

    assert list(pool.snapshot()) == [first, second, newer]


def test_snapshot_is_a_copy(make_intent):
    pool = IntentPool()
    pool.enqueue(make_intent())
    snap = pool.snapshot()

    pool.enqueue(make_intent())
    pool.drain_all()

    assert len(snap) == 1


def test_concurrent_drains_never_overlap(make_intent):
    """Every intent comes out of exactly one drain"""
    pool = IntentPool()
    intents = [make_intent() for _ in range(2000)]
    drained = []
    drained_lock = threading.Lock()
    start = threading.Barrier(5)

    def producer(chunk):
        start.wait()
        for intent in chunk:
            pool.enqueue(intent)

    def drainer():
        start.wait()
        for _ in range(200):
            batch = pool.drain_all()
            with drained_lock:
                drained.extend(batch)

    threads = [threading.Thread(target=producer, args=(intents[i::2],)) for i in range(2)]
    threads += [threading.Thread(target=drainer) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    drained.extend(pool.drain_all())
    counts = Counter(intent.intent_index for intent in drained)
    assert len(drained) == len(intents)
    assert all(count == 1 for count in counts.values())


def test_interleaved_operations_conserve_intents(make_intent):
    """Pool plus the outstanding drained batch always holds everything not settled"""
    rng = random.Random(42)
    pool = IntentPool()
    enqueued, settled = [], []
    outstanding = []

    for _ in range(500):
        op = rng.choice(["enqueue", "enqueue", "drain", "restore", "settle"])
        if op == "enqueue":
            intent = make_intent()
            enqueued.append(intent)
            pool.enqueue(intent)
        elif op == "drain" and not outstanding:
            outstanding = pool.drain_all()
        elif op == "restore" and outstanding:
            pool.restore_to_front(outstanding)
            outstanding = []
        elif op == "settle" and outstanding:
            settled.extend(outstanding)
            outstanding = []

        present = Counter(i.intent_index for i in list(pool.snapshot()) + outstanding)
        expected = Counter(i.intent_index for i in enqueued) - Counter(i.intent_index for i in settled)
        assert present == expected
