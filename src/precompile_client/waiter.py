"""Confirmation waiter: wait for the receipt of a broadcast transaction and check its status."""
from typing import Any, Optional

from .connector import ChainSession
from .constants import (
    CONFIRMATION_POLL_INTERVAL_SECONDS,
    CONFIRMATION_TIMEOUT_SECONDS,
    RECEIPT_STATUS_SUCCESS,
)
from .errors import ConfirmationTimeoutError, NotFoundError, TransactionFailedError
from .models import ConfirmationStatus
from .utils.logging import get_logger

__all__ = ["ConfirmationWaiter", "Confirmation"]

_logger = get_logger(__name__)


def _field(receipt: Any, name: str) -> Any:
    if isinstance(receipt, dict):
        return receipt.get(name)
    try:
        return receipt[name]
    except (KeyError, TypeError):
        return getattr(receipt, name, None)


class Confirmation:
    """Mined receipt summary."""

    def __init__(self, tx_hash: str, status: ConfirmationStatus, block_number: Optional[int],
                 gas_used: Optional[int], receipt: Any):
        self.tx_hash = tx_hash
        self.status = status
        self.block_number = block_number
        self.gas_used = gas_used
        self.receipt = receipt

    def __repr__(self) -> str:
        return (f"Confirmation(tx_hash={self.tx_hash!r}, status={self.status.value!r}, "
                f"block_number={self.block_number!r})")


class ConfirmationWaiter:
    """Wait until a transaction is mined or a deadline passes.

    Args:
        timeout: Default deadline in seconds (five minutes)
        poll_interval: Seconds between receipt polls
    """

    def __init__(
        self,
        timeout: float = CONFIRMATION_TIMEOUT_SECONDS,
        poll_interval: float = CONFIRMATION_POLL_INTERVAL_SECONDS,
    ):
        self.timeout = timeout
        self.poll_interval = poll_interval

    def wait(self, session: ChainSession, tx_hash: str, timeout: Optional[float] = None) -> Confirmation:
        """Block until ``tx_hash`` is mined.

        The transaction is looked up once first; an unknown hash fails
        immediately instead of polling until the deadline.

        Returns:
            Confirmation with status MINED_SUCCESS

        Raises:
            NotFoundError: If the node does not know the transaction
            TransactionFailedError: If the receipt status is not success
            ConfirmationTimeoutError: If the deadline passes first
        """
        timeout = self.timeout if timeout is None else timeout
        if session.get_transaction(tx_hash) is None:
            raise NotFoundError(tx_hash)

        try:
            receipt = session.wait_for_receipt(tx_hash, timeout, self.poll_interval)
        except ConfirmationTimeoutError:
            _logger.warning("Transaction not mined before deadline", extra={"tx_hash": tx_hash, "timeout": timeout})
            raise
        return self._check(tx_hash, receipt)

    def _check(self, tx_hash: str, receipt: Any) -> Confirmation:
        status = _field(receipt, "status")
        block_number = _field(receipt, "blockNumber")
        gas_used = _field(receipt, "gasUsed")
        if status != RECEIPT_STATUS_SUCCESS:
            _logger.error(
                "Transaction mined with failure status",
                extra={"tx_hash": tx_hash, "status": status, "block_number": block_number},
            )
            raise TransactionFailedError(tx_hash, status=status, block_number=block_number)
        _logger.info("Transaction mined", extra={"tx_hash": tx_hash, "block_number": block_number})
        return Confirmation(tx_hash, ConfirmationStatus.MINED_SUCCESS, block_number, gas_used, receipt)
