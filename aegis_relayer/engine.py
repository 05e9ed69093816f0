"""
RelayerEngine - intent pooling and batch execution.

The engine owns the intent pool, the fee predictor and all counters. Two
producers feed it concurrently: confirmed intent registrations and per-block
base fees. Either can trigger a batch:

1. Pool size reaches ``batch_size_threshold`` (hard ceiling, ignores the
   predictor)
2. The predictor is ready, scores the current fee window above the cutoff,
   and the pool is not empty

Triggers are dispatched to a single worker so producers never wait on the
ledger. A single lock guards the executing flag and the drain, so at most one
batch is in flight and intents that arrive meanwhile stay in the pool.
"""
import logging
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Callable, List, Optional

from .config import RelayerConfig
from .exceptions import InsufficientFundsError, LedgerError, MalformedSampleError
from .ledger.base import LedgerClient
from .ledger.feeds import BlockFeed, IntentFeed
from .models import (
    BatchResult, BatchStatus, Intent, LastBatch, PredictorState, RelayerState, ZERO_TX_HASH
)
from .pool import IntentPool
from .predictor import FeePredictor
from .reporter import format_ether

logger = logging.getLogger(__name__)

DEMO_SENDER = "0xde00000000000000000000000000000000000001"


def _short(address: str, length: int = 8) -> str:
    return f"{address[:length]}..."


class RelayerEngine:
    """
    Batching engine for value-transfer intents.

    Args:
        ledger: Settlement ledger client
        config: Relayer configuration (defaults to ``RelayerConfig()``)
        predictor: Fee predictor (defaults to a fresh ``FeePredictor``)
        dispatcher: Executor that runs triggered batches; defaults to a
            private single-thread pool
        timer_factory: Callable ``(seconds, fn) -> timer`` used for the
            failure cooldown; defaults to ``threading.Timer``
        clock: Wall clock in seconds
    """

    def __init__(
        self,
        ledger: LedgerClient,
        config: Optional[RelayerConfig] = None,
        predictor: Optional[FeePredictor] = None,
        dispatcher: Optional[Executor] = None,
        timer_factory: Callable = threading.Timer,
        clock: Callable[[], float] = time.time,
    ):
        self.ledger = ledger
        self.config = config or RelayerConfig()
        self.predictor = predictor or FeePredictor(
            window_size=self.config.predictor_window,
            cutoff=self.config.confidence_cutoff,
        )
        self.pool = IntentPool()

        self._dispatcher = dispatcher
        self._owns_dispatcher = dispatcher is None
        self._timer_factory = timer_factory
        self._clock = clock

        self._lock = threading.RLock()
        self._executing = False
        self._scheduled = False
        self._cooling_down = False
        self._cooldown_timer = None
        self._pending_future: Optional[Future] = None
        self._running = False
        self._stopped = False
        self._feeds: List = []

        self._status = BatchStatus.IDLE
        self._last_batch = LastBatch()
        self._last_error: Optional[str] = None
        self._total_batches = 0
        self._total_intents = 0
        self._current_fee_gwei = 0.0
        self._confidence = 0.0
        self._favourable = False
        self._started_at = self._now_ms()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    @property
    def threshold(self) -> int:
        return self.config.batch_size_threshold

    @property
    def is_executing(self) -> bool:
        with self._lock:
            return self._executing

    @property
    def is_cooling_down(self) -> bool:
        with self._lock:
            return self._cooling_down

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Verify the relayer identity and start consuming both feeds.

        The identity check is advisory: a mismatch or a failed lookup only
        logs a warning.
        """
        with self._lock:
            if self._running:
                return
            self._running = True
            self._stopped = False

        self._check_executor_identity()

        feed_options = {
            "poll_interval": self.config.poll_interval_seconds,
            "start_block": self.config.start_block,
        }
        self._feeds = [
            IntentFeed(self.ledger, self.handle_intent, **feed_options),
            BlockFeed(self.ledger, self.handle_fee_sample, **feed_options),
        ]
        for feed in self._feeds:
            feed.start()

        logger.info(
            f"Relayer started | threshold: {self.threshold} intents OR "
            f"fee confidence > {self.config.confidence_cutoff}"
        )

    def stop(self) -> None:
        """
        Stop the feeds and the batch worker; safe to call more than once.

        Pooled intents are not flushed. A batch already in flight runs to
        completion, but nothing is scheduled after it and a failure arms no
        retry.
        """
        with self._lock:
            self._stopped = True
            if not self._running and self._dispatcher is None and self._cooldown_timer is None:
                return
            self._running = False
            feeds, self._feeds = self._feeds, []
            timer, self._cooldown_timer = self._cooldown_timer, None
            self._cooling_down = False
            dispatcher = self._dispatcher if self._owns_dispatcher else None
            if self._owns_dispatcher:
                self._dispatcher = None

        for feed in feeds:
            feed.stop()
        if timer is not None:
            timer.cancel()
        if dispatcher is not None:
            dispatcher.shutdown(wait=True, cancel_futures=True)

        logger.info(f"Relayer stopped with {len(self.pool)} intent(s) still pooled")

    def _check_executor_identity(self) -> None:
        local = self.ledger.executor_address
        try:
            authorized = self.ledger.authorized_executor()
        except LedgerError as e:
            logger.warning(f"Could not verify on-chain relayer (contract may not be deployed locally): {e}")
            return

        if authorized.lower() != local.lower():
            logger.warning(
                f"This wallet ({local}) is NOT the authorized relayer ({authorized}). "
                f"executeBatch() calls will revert on-chain!"
            )
        else:
            logger.info(f"Relayer wallet {local} matches on-chain relayer")

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------

    def handle_intent(self, intent: Intent) -> int:
        """
        Pool a confirmed intent and apply the size trigger.

        Returns:
            Pool size after the intent was added
        """
        size = self.pool.enqueue(intent)
        self._after_enqueue(intent, size)
        return size

    def inject_intent(self, receiver: str, amount: int, sender: Optional[str] = None) -> Intent:
        """
        Pool a synthetic intent that never touched the ledger.

        For demo and test harnesses only. The intent index is synthesised as
        ``total_intents_processed + pool size`` at injection time.
        """
        with self._lock:
            intent = Intent(
                sender=sender or DEMO_SENDER,
                receiver=receiver,
                amount=amount,
                intent_index=self._total_intents + len(self.pool),
                received_at=self._now_ms(),
                tx_hash=ZERO_TX_HASH,
                block_number=0,
            )
            size = self.pool.enqueue(intent)

        logger.info(f"Injected demo intent #{intent.intent_index}")
        self._after_enqueue(intent, size)
        return intent

    def _after_enqueue(self, intent: Intent, size: int) -> None:
        logger.info(
            f"Intent #{intent.intent_index} received | Pool: {size}/{self.threshold}"
            f" | From: {_short(intent.sender)} -> {_short(intent.receiver)}"
            f" | Amount: {format_ether(intent.amount)}"
        )
        if size >= self.threshold:
            logger.info(f"Pool max capacity reached ({size}). Triggering batch immediately")
            self._trigger("size threshold")

    def handle_fee_sample(self, block_number: int, base_fee_wei) -> bool:
        """
        Feed a block's base fee to the predictor and apply the fee trigger.

        Malformed samples are dropped with a warning and change nothing.

        Returns:
            True if the predictor currently favours settling
        """
        try:
            self.predictor.absorb_sample(base_fee_wei)
        except MalformedSampleError as e:
            logger.warning(f"Dropping fee sample from block {block_number}: {e}")
            return False

        execute, score = self.predictor.score()
        with self._lock:
            self._current_fee_gwei = self.predictor.latest_fee_gwei
            self._confidence = score
            self._favourable = execute

        if not self.predictor.is_ready:
            logger.info(f"[Block {block_number}] Predictor training on new fee point... {self._current_fee_gwei:.2f} Gwei")
            return False

        logger.info(f"[Block {block_number}] Gas: {self._current_fee_gwei:.2f} Gwei | Confidence: {score * 100:.1f}%")
        if execute and len(self.pool) > 0:
            logger.info(
                f"FEE TRIGGER: confidence {score * 100:.1f}% > {self.config.confidence_cutoff * 100:.0f}%. "
                f"Executing {len(self.pool)} intent(s)"
            )
            self._trigger("fee confidence")
        return execute

    # ------------------------------------------------------------------
    # Triggering
    # ------------------------------------------------------------------

    def _get_dispatcher(self) -> Executor:
        if self._dispatcher is None:
            self._dispatcher = ThreadPoolExecutor(max_workers=1, thread_name_prefix="aegis-batch")
        return self._dispatcher

    def _trigger(self, reason: str) -> Optional[Future]:
        """Schedule a batch unless one is running, scheduled or cooling down."""
        with self._lock:
            if self._stopped or self._executing or self._scheduled or self._cooling_down or len(self.pool) == 0:
                logger.debug(
                    f"Dropping {reason} trigger (stopped={self._stopped}, executing={self._executing}, "
                    f"scheduled={self._scheduled}, cooling_down={self._cooling_down})"
                )
                return None
            self._scheduled = True
            dispatcher = self._get_dispatcher()

        try:
            future = dispatcher.submit(self.execute_batch)
        except RuntimeError as e:
            # Dispatcher already shut down
            with self._lock:
                self._scheduled = False
            logger.debug(f"Dropping {reason} trigger: {e}")
            return None

        with self._lock:
            self._pending_future = future
        return future

    def evaluate_triggers(self, reason: str = "re-evaluation") -> Optional[Future]:
        """Check both trigger conditions against the current state."""
        size = len(self.pool)
        if size == 0:
            return None
        if size >= self.threshold:
            return self._trigger(f"{reason} (size threshold)")
        with self._lock:
            favourable = self._favourable
        if favourable and self.predictor.is_ready:
            return self._trigger(f"{reason} (fee confidence)")
        return None

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for scheduled batches to finish

        Returns:
            False if the timeout expired first
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                future = self._pending_future
            if future is None:
                return True
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            try:
                future.result(remaining)
            except FutureTimeoutError:
                return False
            with self._lock:
                if self._pending_future is future:
                    self._pending_future = None
                    return True

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute_batch(self) -> Optional[BatchResult]:
        """
        Drain the pool and settle it as one batch.

        No-op (returns None) while another batch is executing, during the
        failure cooldown, or when the pool is empty. On failure the drained
        intents go back to the head of the pool and the cooldown starts.

        Returns:
            BatchResult for the attempt, or None if nothing was attempted
        """
        with self._lock:
            self._scheduled = False
            if self._executing or self._cooling_down:
                return None
            batch = self.pool.drain_all()
            if not batch:
                return None
            self._executing = True
            self._status = BatchStatus.EXECUTING

        receivers = [intent.receiver for intent in batch]
        amounts = [intent.amount for intent in batch]
        total_value = sum(amounts)

        logger.info(
            f"Executing batch | size: {len(batch)} intents | total value: {format_ether(total_value)} | "
            f"receivers: {', '.join(_short(r, 10) for r in receivers)}"
        )

        try:
            available = self.ledger.available_funds()
            if available < total_value:
                raise InsufficientFundsError(
                    f"Vault balance ({format_ether(available)}) < batch total ({format_ether(total_value)})",
                    available=available,
                    required=total_value,
                )

            tx_hash = self.ledger.submit_settlement(receivers, amounts)
            logger.info(f"Settlement submitted: {tx_hash}")

            receipt = self.ledger.wait_for_confirmation(tx_hash)
            logger.info(f"Settlement confirmed in block {receipt.block_number} | gas used: {receipt.gas_used}")
        except LedgerError as e:
            return self._fail(batch, total_value, str(e))
        except Exception as e:
            logger.error(f"Unexpected error during batch execution: {e}", exc_info=True)
            return self._fail(batch, total_value, f"Unexpected error: {e}")

        return self._succeed(batch, total_value, tx_hash)

    def _succeed(self, batch: List[Intent], total_value: int, tx_hash: str) -> BatchResult:
        with self._lock:
            self._last_batch = LastBatch(
                tx_hash=tx_hash,
                batch_size=len(batch),
                total_value=total_value,
                executed_at=self._now_ms(),
            )
            self._total_batches += 1
            self._total_intents += len(batch)
            self._last_error = None
            self._executing = False
            self._status = BatchStatus.POOLING if len(self.pool) > 0 else BatchStatus.IDLE

        logger.info(f"Batch of {len(batch)} settled in {tx_hash}")
        self.evaluate_triggers("post-batch pool check")
        return BatchResult(success=True, batch_size=len(batch), total_value=total_value, tx_hash=tx_hash)

    def _fail(self, batch: List[Intent], total_value: int, message: str) -> BatchResult:
        with self._lock:
            size = self.pool.restore_to_front(batch)
            self._executing = False
            self._status = BatchStatus.ERROR
            self._last_error = message
            # No retry is armed once the engine is stopped
            if not self._stopped:
                self._cooling_down = True
                timer = self._timer_factory(self.config.cooldown_seconds, self._end_cooldown)
                timer.daemon = True
                self._cooldown_timer = timer
                timer.start()

        logger.error(
            f"Batch execution FAILED: {message}. {len(batch)} intent(s) returned to pool "
            f"(size {size}); retry eligible in {self.config.cooldown_seconds}s"
        )
        return BatchResult(success=False, batch_size=len(batch), total_value=total_value, error=message)

    def _end_cooldown(self) -> None:
        with self._lock:
            if self._stopped or not self._cooling_down:
                return
            self._cooling_down = False
            self._cooldown_timer = None
            if self._status == BatchStatus.ERROR:
                self._status = BatchStatus.POOLING if len(self.pool) > 0 else BatchStatus.IDLE

        logger.info("Cooldown elapsed, executor eligible again")
        self.evaluate_triggers("cooldown elapsed")

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def snapshot(self) -> RelayerState:
        """
        Point-in-time copy of the relayer state.

        Status is recomputed from the pool size unless EXECUTING or ERROR.
        """
        with self._lock:
            pooled = self.pool.snapshot()
            status = self._status
            if status not in (BatchStatus.EXECUTING, BatchStatus.ERROR):
                status = BatchStatus.POOLING if pooled else BatchStatus.IDLE
            now_ms = self._now_ms()

            return RelayerState(
                status=status,
                pooled_intents=pooled,
                batch_size_threshold=self.threshold,
                last_batch=self._last_batch,
                predictor=PredictorState(
                    is_ready=self.predictor.is_ready,
                    current_fee_gwei=self._current_fee_gwei,
                    confidence_score=self._confidence,
                    threshold=self.config.confidence_cutoff,
                ),
                total_batches_executed=self._total_batches,
                total_intents_processed=self._total_intents,
                uptime=max(0, (now_ms - self._started_at) // 1000),
                started_at=self._started_at,
                last_error=self._last_error,
            )
