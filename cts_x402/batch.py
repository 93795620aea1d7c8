"""Batch transfer executor: one user operation carrying every transfer leg."""

import asyncio
import logging
from collections.abc import Sequence

from .constants import (
    DEFAULT_CONFIRMATION_POLL_SECONDS,
    DEFAULT_CONFIRMATION_TIMEOUT_SECONDS,
    DEFAULT_NETWORK,
    STATUS_COMPLETE,
    STATUS_TIMEOUT,
)
from .errors import InvalidBatch, OperationFailed, SettlementError, SubmissionError
from .session import AccountSession
from .types import OperationReceipt, TransferCall

logger = logging.getLogger(__name__)

# Slack on top of the custody service's own wait before we stop waiting ourselves
_WAIT_GRACE_SECONDS = 5


def build_transfer_calls(
    token: str,
    shares: Sequence[tuple[str, str, int]],
) -> list[TransferCall]:
    """Build one ERC-20 transfer leg per ``(label, address, amount)`` share."""
    return [
        TransferCall.transfer(token, address, amount, label=label)
        for label, address, amount in shares
    ]


class BatchTransferExecutor:
    """Submits transfer legs as a single user operation and waits for it.

    All legs land together in one on-chain operation or none do; legs are
    never submitted individually.

    Attributes:
        network: Network the operations are scoped to.
    """

    def __init__(
        self,
        network: str = DEFAULT_NETWORK,
        timeout_seconds: float = DEFAULT_CONFIRMATION_TIMEOUT_SECONDS,
        interval_seconds: float = DEFAULT_CONFIRMATION_POLL_SECONDS,
    ):
        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {timeout_seconds}")
        self.network = network
        self._timeout_seconds = timeout_seconds
        self._interval_seconds = interval_seconds

    @staticmethod
    def validate(legs: Sequence[TransferCall]) -> None:
        """Validate a batch before submission.

        Raises:
            InvalidBatch: If there are no legs or a leg carries native value.
        """
        if not legs:
            raise InvalidBatch("Batch must have at least 1 transfer")
        for leg in legs:
            if leg.value != 0:
                raise InvalidBatch(
                    f"Token transfer to {leg.recipient} must carry no native value, got {leg.value}"
                )

    async def execute(
        self,
        legs: Sequence[TransferCall],
        session: AccountSession,
    ) -> OperationReceipt:
        """Submit the batch and wait for a terminal state.

        1. Validate legs
        2. Submit all legs as one user operation
        3. Wait (bounded) for the operation to become terminal
        4. Return a receipt on ``complete``

        Raises:
            InvalidBatch: If the legs are invalid. Nothing is submitted.
            SubmissionError: On transport failure while submitting or polling.
            OperationFailed: On a non-complete terminal status or timeout.
        """
        self.validate(legs)
        smart_account = session.smart_account

        logger.info(
            "Executing batch transfer of %d legs via smart account %s on %s",
            len(legs),
            smart_account.address,
            self.network,
        )
        try:
            operation_id = await smart_account.send_user_operation(
                [leg.to_call() for leg in legs],
                network=self.network,
            )
        except SettlementError:
            raise
        except Exception as e:
            raise SubmissionError(f"Failed to submit user operation: {e}") from e

        logger.info("Waiting for user operation to be confirmed with hash: %s", operation_id)
        try:
            result = await asyncio.wait_for(
                smart_account.wait_for_user_operation(
                    operation_id,
                    timeout_seconds=self._timeout_seconds,
                    interval_seconds=self._interval_seconds,
                ),
                timeout=self._timeout_seconds + _WAIT_GRACE_SECONDS,
            )
        except (asyncio.TimeoutError, TimeoutError):
            raise OperationFailed(STATUS_TIMEOUT, operation_id) from None
        except SettlementError:
            raise
        except Exception as e:
            raise SubmissionError(
                f"Failed to poll user operation {operation_id}: {e}"
            ) from e

        if result.status != STATUS_COMPLETE:
            raise OperationFailed(result.status, operation_id)

        receipt = OperationReceipt(
            operation_id=operation_id,
            status=result.status,
            transaction_hash=result.transaction_hash,
            network=self.network,
            legs=tuple(legs),
        )
        logger.info("Batch transfer successful! Transaction hash: %s", receipt.transaction_hash)
        if receipt.explorer_url:
            logger.info("Block explorer link: %s", receipt.explorer_url)
        return receipt
