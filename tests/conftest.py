"""
Pytest fixtures for the Aegis relayer tests.
"""
import itertools
from concurrent.futures import Executor, Future

import pytest

from aegis_relayer.config import RelayerConfig
from aegis_relayer.engine import RelayerEngine
from aegis_relayer.ledger._rate_limited_log import reset_rate_limits
from aegis_relayer.ledger.stub import StubLedger
from aegis_relayer.models import Intent
from aegis_relayer.predictor import FeePredictor

TEST_SENDER = "0x1234567890123456789012345678901234567890"
TEST_CLOCK = 1_700_000_000.0
GWEI = 10**9


class SyncExecutor(Executor):
    """Runs submitted work inline so engine tests stay deterministic."""

    def __init__(self):
        self.submitted = 0

    def submit(self, fn, *args, **kwargs):
        self.submitted += 1
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class ManualTimer:
    """Stand-in for threading.Timer that only fires when told to."""

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if self.started and not self.cancelled:
            self.function()


class TimerRecorder:
    def __init__(self):
        self.timers = []

    def factory(self, interval, function):
        timer = ManualTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def last(self) -> ManualTimer:
        return self.timers[-1]


@pytest.fixture(autouse=True)
def _reset_log_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest.fixture
def make_intent():
    """Factory for distinct intents with sequential indexes"""
    counter = itertools.count()

    def _make(amount=1, receiver=None, sender=TEST_SENDER):
        i = next(counter)
        return Intent(
            sender=sender,
            receiver=receiver or f"0x{i + 1:040x}",
            amount=amount,
            intent_index=i,
            received_at=1_700_000_000_000 + i,
            tx_hash=f"0x{i:064x}",
            block_number=100 + i,
        )

    return _make


@pytest.fixture
def timers():
    return TimerRecorder()


@pytest.fixture
def stub_ledger():
    return StubLedger(balance=1_000 * 10**18)


@pytest.fixture
def relayer_config():
    return RelayerConfig(batch_size_threshold=5, cooldown_seconds=10)


@pytest.fixture
def sync_executor():
    return SyncExecutor()


@pytest.fixture
def engine(stub_ledger, relayer_config, timers, sync_executor):
    """Engine with inline dispatch, manual cooldown timer and a fixed clock"""
    eng = RelayerEngine(
        stub_ledger,
        relayer_config,
        predictor=FeePredictor(seed=7, training_iterations=1000),
        dispatcher=sync_executor,
        timer_factory=timers.factory,
        clock=lambda: TEST_CLOCK,
    )
    yield eng
    eng.stop()


def fee_series(*gwei_values):
    """Base fees in wei for the given gwei values"""
    return [int(g * GWEI) for g in gwei_values]


# Latest sample well below the window mean: strongly favourable
FALLING_FEES = fee_series(50, 50, 50, 50, 50, 50, 50, 50, 50, 10)
# Latest sample well above the window mean: strongly unfavourable
RISING_FEES = fee_series(10, 10, 10, 10, 10, 10, 10, 10, 10, 50)
