"""Wait for submitted transactions to be mined."""

from __future__ import annotations

import logging
import math
import time
from typing import Any, Callable, Dict, Protocol

from .errors import ChainError, ConfirmationTimeout, InvalidTimeout, TransactionReverted
from .model import ConfirmationRecord, TransactionHandle
from .rpc_client import from_quantity

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0


class ReceiptReader(Protocol):
    def get_transaction_receipt(self, tx_hash: str) -> Dict[str, Any] | None: ...


def record_from_receipt(receipt: Dict[str, Any]) -> ConfirmationRecord:
    status = receipt.get("status")
    return ConfirmationRecord(
        transaction_hash=str(receipt["transactionHash"]),
        block_number=from_quantity(receipt["blockNumber"]),
        gas_used=from_quantity(receipt["gasUsed"]),
        status=from_quantity(status) if status is not None else None,
    )


class ConfirmationWaiter:
    """Poll a node until a transaction receipt appears or the deadline passes."""

    def __init__(
        self,
        reader: ReceiptReader,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.reader = reader
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep

    def wait(self, handle: TransactionHandle, timeout: float) -> ConfirmationRecord:
        """Block until ``handle`` is mined; raise ``ConfirmationTimeout`` otherwise."""

        if isinstance(timeout, bool) or not timeout or timeout <= 0 or not math.isfinite(timeout):
            raise InvalidTimeout("Timeout must be a number higher than 0.")

        deadline = self._clock() + timeout
        attempts = 0
        while True:
            attempts += 1
            receipt = self._poll(handle.hash)
            if receipt is not None:
                record = record_from_receipt(receipt)
                if record.status == 0:
                    raise TransactionReverted(handle.hash, record.block_number)
                logger.debug(
                    "Transaction %s mined in block %d after %d polls",
                    handle.hash,
                    record.block_number,
                    attempts,
                )
                return record
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise ConfirmationTimeout(handle.hash, timeout)
            self._sleep(min(self.poll_interval, remaining))

    def _poll(self, tx_hash: str) -> Dict[str, Any] | None:
        try:
            return self.reader.get_transaction_receipt(tx_hash)
        except ChainError as exc:
            # Transient node errors count as "not mined yet" until the deadline.
            logger.debug("Receipt lookup for %s failed: %s", tx_hash, exc)
            return None
