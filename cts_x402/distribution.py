"""Distribution orchestrator: splits a verified payment and settles it on-chain.

Usage:
    ```python
    session = AccountSession(CdpCustodyProvider.from_config(config), config.smart_account_address)
    orchestrator = DistributionOrchestrator.from_config(config, session)
    receipt = await orchestrator.distribute(SettlementRequest(amount=Decimal("0.01")))
    ```
"""

import logging

from .batch import BatchTransferExecutor, build_transfer_calls
from .config import SettlementConfig
from .constants import DEFAULT_TOKEN_DECIMALS
from .errors import ConfigurationError, SettlementError
from .session import AccountSession
from .split import compute_split, split_drift
from .types import DistributionPolicy, OperationReceipt, SettlementRequest
from .utils import from_token_units, validate_evm_address

logger = logging.getLogger(__name__)

__all__ = ["DistributionOrchestrator"]


class DistributionOrchestrator:
    """Runs one settlement per verified payment.

    Steps are strictly sequential: session, split, batch. There are no
    internal retries and no deduplication; each call is an independent
    operation. Per-attempt errors are logged and never raised.
    """

    def __init__(
        self,
        session: AccountSession,
        policy: DistributionPolicy,
        token_address: str,
        decimals: int = DEFAULT_TOKEN_DECIMALS,
        executor: BatchTransferExecutor | None = None,
    ):
        """Arm the orchestrator.

        Raises:
            ConfigurationError: If a beneficiary or the token address is malformed,
                or decimals is negative.
        """
        policy.validate_addresses()
        if not validate_evm_address(token_address):
            raise ConfigurationError(f"Invalid token contract address: {token_address!r}")
        if decimals < 0:
            raise ConfigurationError(f"Token decimals must be non-negative, got {decimals}")

        self._session = session
        self._policy = policy
        self._token_address = token_address
        self._decimals = decimals
        self._executor = executor or BatchTransferExecutor()
        logger.info("All distribution addresses validated")

    @classmethod
    def from_config(cls, config: SettlementConfig, session: AccountSession) -> "DistributionOrchestrator":
        """Arm an orchestrator from validated startup configuration."""
        return cls(
            session,
            config.policy,
            token_address=config.token_address,
            decimals=config.token_decimals,
            executor=BatchTransferExecutor(
                network=config.network,
                timeout_seconds=config.confirmation_timeout_seconds,
                interval_seconds=config.confirmation_poll_seconds,
            ),
        )

    @property
    def policy(self) -> DistributionPolicy:
        return self._policy

    @property
    def token_address(self) -> str:
        return self._token_address

    async def distribute(self, request: SettlementRequest) -> OperationReceipt | None:
        """Distribute one paid amount to the beneficiaries.

        Returns:
            The receipt on success, None on any settlement failure.
        """
        try:
            return await self._distribute(request)
        except SettlementError as e:
            logger.error("Payment distribution failed [%s]: %s", type(e).__name__, e)
            return None

    async def _distribute(self, request: SettlementRequest) -> OperationReceipt:
        logger.info("Starting payment distribution for $%s", request.amount)
        if request.payment_transaction:
            logger.info("Payment transaction: %s (payer %s)", request.payment_transaction, request.payer)

        if not self._session.is_ready():
            logger.warning("Smart account not initialized. Initializing...")
        await self._session.ensure_ready()

        shares = compute_split(request.amount, self._policy, self._decimals)

        logger.info("Distribution breakdown:")
        for b in self._policy.beneficiaries:
            logger.info(
                "   %s (%s): $%s -> %d units",
                b.label,
                self._policy.percentages()[b.label],
                from_token_units(shares[b.label], self._decimals),
                shares[b.label],
            )
        drift = split_drift(shares, request.amount, self._decimals)
        if drift:
            logger.warning("Split shares differ from rounded total by %d units", drift)

        legs = build_transfer_calls(
            self._token_address,
            [(b.label, b.address, shares[b.label]) for b in self._policy.beneficiaries],
        )
        receipt = await self._executor.execute(legs, self._session)

        logger.info(
            "Batch payment distribution completed! Operation %s, transaction %s",
            receipt.operation_id,
            receipt.transaction_hash,
        )
        logger.info("Total distributed: $%s to %d recipients", request.amount, len(legs))
        return receipt
