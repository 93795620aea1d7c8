"""Shared fixtures. Fakes and address constants live in ``tests.fakes``."""

from decimal import Decimal

import pytest

from cts_x402.config import SettlementConfig
from cts_x402.types import DistributionPolicy

from tests.fakes import (
    CURATOR,
    HOST,
    PLATFORM,
    RECEIVER,
    SMART_ACCOUNT,
    TOKEN,
    FakeCustodyProvider,
    FakeSmartAccount,
)


@pytest.fixture
def policy() -> DistributionPolicy:
    return DistributionPolicy.from_addresses(HOST, CURATOR, PLATFORM)


@pytest.fixture
def smart_account() -> FakeSmartAccount:
    return FakeSmartAccount()


@pytest.fixture
def custody(smart_account) -> FakeCustodyProvider:
    return FakeCustodyProvider(smart_account=smart_account)


@pytest.fixture
def env() -> dict[str, str]:
    return {
        "CDP_API_KEY_ID": "key-id",
        "CDP_API_KEY_SECRET": "key-secret",
        "CDP_WALLET_SECRET": "wallet-secret",
        "HOST_ADDRESS": HOST,
        "CURATOR_ADDRESS": CURATOR,
        "PLATFORM_ADDRESS": PLATFORM,
        "USDC_CONTRACT_ADDRESS": TOKEN,
        "SMART_ACCOUNT_ADDRESS": SMART_ACCOUNT,
        "RECEIVING_WALLET_ADDRESS": RECEIVER,
    }


@pytest.fixture
def config(env) -> SettlementConfig:
    return SettlementConfig.from_env(env)


@pytest.fixture
def cent() -> Decimal:
    return Decimal("0.01")
