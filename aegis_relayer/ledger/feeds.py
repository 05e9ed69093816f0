"""
Polling feeds over a ledger client.

``IntentFeed`` delivers confirmed intent registrations and ``BlockFeed``
delivers the base fee of every new block. Each runs in its own daemon thread
and hands events to a callback; callbacks must not block.
"""
import logging
import threading
from typing import Callable, Optional

from ..exceptions import LedgerError
from ..models import Intent
from ._rate_limited_log import rate_limited_log
from .base import LedgerClient

logger = logging.getLogger(__name__)

# Blocks older than this behind the head are skipped when the fee feed lags
MAX_FEE_BACKLOG = 25


class PollingFeed:
    """
    Base class for block-range polling feeds.

    Subclasses implement ``_process(from_block, to_block)``.
    """

    name = "feed"

    def __init__(self, ledger: LedgerClient, poll_interval: float = 2.0, start_block: int = 0):
        self.ledger = ledger
        self.poll_interval = poll_interval
        self.start_block = start_block
        self.next_block: Optional[int] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=f"aegis-{self.name}", daemon=True)
        self._thread.start()
        logger.debug(f"Started {self.name}")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Stop polling; safe to call more than once."""
        self._stop_event.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            logger.debug(f"Stopped {self.name}")

    def _run(self) -> None:
        while not self._stop_event.is_set():
            self.poll_once()
            self._stop_event.wait(self.poll_interval)

    def poll_once(self) -> int:
        """
        Process every block between the last poll and the current head

        Returns:
            Number of events delivered
        """
        try:
            head = self.ledger.latest_block_number()
            if self.next_block is None:
                self.next_block = self.start_block if self.start_block > 0 else head + 1
            if head < self.next_block:
                return 0
            delivered = self._process(self.next_block, head)
            self.next_block = head + 1
            return delivered
        except LedgerError as e:
            rate_limited_log(f"{self.name} poll failed: {e}", level="warning", logger_instance=logger)
        except Exception as e:
            rate_limited_log(f"{self.name} listener error: {e}", level="error", logger_instance=logger)
        return 0

    def _process(self, from_block: int, to_block: int) -> int:
        raise NotImplementedError


class IntentFeed(PollingFeed):
    """Feed of IntentRegistered events."""

    name = "intent-feed"

    def __init__(self, ledger: LedgerClient, on_intent: Callable[[Intent], object], **kwargs):
        super().__init__(ledger, **kwargs)
        self.on_intent = on_intent

    def _process(self, from_block: int, to_block: int) -> int:
        intents = self.ledger.fetch_intents(from_block, to_block)
        for intent in intents:
            self.on_intent(intent)
        return len(intents)


class BlockFeed(PollingFeed):
    """Feed of per-block base fees."""

    name = "block-feed"

    def __init__(self, ledger: LedgerClient, on_fee: Callable[[int, int], object], **kwargs):
        super().__init__(ledger, **kwargs)
        self.on_fee = on_fee

    def _process(self, from_block: int, to_block: int) -> int:
        if to_block - from_block >= MAX_FEE_BACKLOG:
            logger.warning(f"Fee feed lagging, skipping blocks {from_block}-{to_block - MAX_FEE_BACKLOG}")
            from_block = to_block - MAX_FEE_BACKLOG + 1

        delivered = 0
        for number in range(from_block, to_block + 1):
            base_fee = self.ledger.fetch_base_fee(number)
            if base_fee is None:
                logger.debug(f"Block {number} has no base fee")
                continue
            self.on_fee(number, base_fee)
            delivered += 1
        return delivered
