"""x402 paid report delivery with on-chain three-way payment distribution.

A verified payment is split between host, curator and platform and paid
out as one batched user operation from a CDP smart account. Distribution
runs on a background worker and never blocks resource delivery.

Usage:
    ```python
    from cts_x402 import (
        AccountSession,
        DistributionOrchestrator,
        SettlementConfig,
        SettlementRequest,
        SettlementWorker,
    )
    from cts_x402.cdp import CdpCustodyProvider

    config = SettlementConfig.from_env()
    session = AccountSession(CdpCustodyProvider.from_config(config), config.smart_account_address)
    worker = SettlementWorker(DistributionOrchestrator.from_config(config, session))
    worker.start()
    worker.submit(SettlementRequest(amount=Decimal("0.01")))
    ```
"""

from .batch import BatchTransferExecutor, build_transfer_calls
from .config import SettlementConfig
from .distribution import DistributionOrchestrator
from .errors import (
    ConfigurationError,
    InvalidAmount,
    InvalidBatch,
    InvalidPolicy,
    NoSigningIdentity,
    OperationFailed,
    SessionInitFailed,
    SettlementError,
    SubmissionError,
)
from .session import AccountSession
from .split import compute_split
from .types import (
    Beneficiary,
    DistributionPolicy,
    OperationReceipt,
    SettlementRequest,
    TransferCall,
)
from .worker import SettlementWorker

__all__ = [
    "AccountSession",
    "BatchTransferExecutor",
    "Beneficiary",
    "ConfigurationError",
    "DistributionOrchestrator",
    "DistributionPolicy",
    "InvalidAmount",
    "InvalidBatch",
    "InvalidPolicy",
    "NoSigningIdentity",
    "OperationFailed",
    "OperationReceipt",
    "SessionInitFailed",
    "SettlementConfig",
    "SettlementError",
    "SettlementRequest",
    "SettlementWorker",
    "SubmissionError",
    "TransferCall",
    "build_transfer_calls",
    "compute_split",
]
