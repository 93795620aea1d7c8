"""Startup configuration loaded from the environment (and ``.env``)."""

import math
import os
import re
from dataclasses import dataclass, field

from dotenv import load_dotenv

from .constants import (
    DEFAULT_CONFIRMATION_POLL_SECONDS,
    DEFAULT_CONFIRMATION_TIMEOUT_SECONDS,
    DEFAULT_CURATOR_SPLIT,
    DEFAULT_FACILITATOR_URL,
    DEFAULT_HOST_SPLIT,
    DEFAULT_MAX_PENDING_SETTLEMENTS,
    DEFAULT_NETWORK,
    DEFAULT_PLATFORM_SPLIT,
    DEFAULT_PORT,
    DEFAULT_REPORT_PRICE,
    DEFAULT_REPORTS_API_BASE,
    DEFAULT_TOKEN_DECIMALS,
    DEFAULT_X402_SERVER_BASE,
    NETWORK_TO_CAIP2,
)
from .errors import ConfigurationError
from .types import DistributionPolicy
from .utils import validate_evm_address

REQUIRED_ENV_VARS = (
    "CDP_API_KEY_ID",
    "CDP_API_KEY_SECRET",
    "CDP_WALLET_SECRET",
    "HOST_ADDRESS",
    "CURATOR_ADDRESS",
    "PLATFORM_ADDRESS",
    "USDC_CONTRACT_ADDRESS",
    "SMART_ACCOUNT_ADDRESS",
    "RECEIVING_WALLET_ADDRESS",
)

ADDRESS_ENV_VARS = (
    "HOST_ADDRESS",
    "CURATOR_ADDRESS",
    "PLATFORM_ADDRESS",
    "USDC_CONTRACT_ADDRESS",
    "SMART_ACCOUNT_ADDRESS",
    "RECEIVING_WALLET_ADDRESS",
)


@dataclass(frozen=True)
class SettlementConfig:
    """Everything the server and the distribution core need at startup."""

    cdp_api_key_id: str
    cdp_api_key_secret: str
    cdp_wallet_secret: str
    policy: DistributionPolicy
    token_address: str
    smart_account_address: str
    receiving_wallet_address: str
    token_decimals: int = DEFAULT_TOKEN_DECIMALS
    network: str = DEFAULT_NETWORK
    confirmation_timeout_seconds: float = DEFAULT_CONFIRMATION_TIMEOUT_SECONDS
    confirmation_poll_seconds: float = DEFAULT_CONFIRMATION_POLL_SECONDS
    facilitator_url: str = DEFAULT_FACILITATOR_URL
    reports_api_base: str = DEFAULT_REPORTS_API_BASE
    report_price: str = DEFAULT_REPORT_PRICE
    port: int = DEFAULT_PORT
    max_pending_settlements: int = DEFAULT_MAX_PENDING_SETTLEMENTS

    @classmethod
    def from_env(
        cls,
        environ: dict[str, str] | None = None,
        *,
        dotenv: bool = True,
    ) -> "SettlementConfig":
        """Load and validate configuration.

        Args:
            environ: Mapping to read from (default: ``os.environ``).
            dotenv: Load a ``.env`` file into ``os.environ`` first.

        Raises:
            ConfigurationError: Listing every missing or malformed variable.
        """
        if environ is None:
            if dotenv:
                load_dotenv()
            environ = dict(os.environ)

        missing = [name for name in REQUIRED_ENV_VARS if not environ.get(name)]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

        invalid = [
            f"{name}={environ[name]!r}"
            for name in ADDRESS_ENV_VARS
            if not validate_evm_address(environ[name])
        ]
        if invalid:
            raise ConfigurationError(f"Invalid address: {', '.join(invalid)}")

        network = environ.get("NETWORK", DEFAULT_NETWORK)
        if network not in NETWORK_TO_CAIP2:
            raise ConfigurationError(f"Unsupported NETWORK: {network!r}")

        policy = DistributionPolicy.from_addresses(
            environ["HOST_ADDRESS"],
            environ["CURATOR_ADDRESS"],
            environ["PLATFORM_ADDRESS"],
            weights=(
                environ.get("HOST_SPLIT", DEFAULT_HOST_SPLIT),
                environ.get("CURATOR_SPLIT", DEFAULT_CURATOR_SPLIT),
                environ.get("PLATFORM_SPLIT", DEFAULT_PLATFORM_SPLIT),
            ),
        )

        return cls(
            cdp_api_key_id=environ["CDP_API_KEY_ID"],
            cdp_api_key_secret=environ["CDP_API_KEY_SECRET"],
            cdp_wallet_secret=environ["CDP_WALLET_SECRET"],
            policy=policy,
            token_address=environ["USDC_CONTRACT_ADDRESS"],
            smart_account_address=environ["SMART_ACCOUNT_ADDRESS"],
            receiving_wallet_address=environ["RECEIVING_WALLET_ADDRESS"],
            token_decimals=_int(environ, "TOKEN_DECIMALS", DEFAULT_TOKEN_DECIMALS),
            network=network,
            confirmation_timeout_seconds=_float(
                environ, "CONFIRMATION_TIMEOUT_SECONDS", DEFAULT_CONFIRMATION_TIMEOUT_SECONDS
            ),
            confirmation_poll_seconds=_float(
                environ, "CONFIRMATION_POLL_SECONDS", DEFAULT_CONFIRMATION_POLL_SECONDS
            ),
            facilitator_url=environ.get("FACILITATOR_URL", DEFAULT_FACILITATOR_URL),
            reports_api_base=environ.get("REPORTS_API_BASE", DEFAULT_REPORTS_API_BASE),
            report_price=environ.get("REPORT_PRICE", DEFAULT_REPORT_PRICE),
            port=_int(environ, "PORT", DEFAULT_PORT),
            max_pending_settlements=_int(
                environ, "MAX_PENDING_SETTLEMENTS", DEFAULT_MAX_PENDING_SETTLEMENTS, positive=True
            ),
        )


@dataclass(frozen=True)
class McpConfig:
    """Configuration of the paying MCP tool server."""

    private_key: str = field(repr=False)
    x402_server_base: str = DEFAULT_X402_SERVER_BASE
    reports_api_base: str = DEFAULT_REPORTS_API_BASE
    network: str = DEFAULT_NETWORK
    report_price: str = DEFAULT_REPORT_PRICE

    @classmethod
    def from_env(
        cls,
        environ: dict[str, str] | None = None,
        *,
        dotenv: bool = True,
    ) -> "McpConfig":
        """Load the payer key and server locations.

        Raises:
            ConfigurationError: If ``PRIVATE_KEY`` is missing or malformed.
        """
        if environ is None:
            if dotenv:
                load_dotenv()
            environ = dict(os.environ)

        network = environ.get("NETWORK", DEFAULT_NETWORK)
        if network not in NETWORK_TO_CAIP2:
            raise ConfigurationError(f"Unsupported NETWORK: {network!r}")

        return cls(
            private_key=normalize_private_key(environ.get("PRIVATE_KEY", "")),
            x402_server_base=environ.get("X402_SERVER_BASE", DEFAULT_X402_SERVER_BASE),
            reports_api_base=environ.get("REPORTS_API_BASE", DEFAULT_REPORTS_API_BASE),
            network=network,
            report_price=environ.get("REPORT_PRICE", DEFAULT_REPORT_PRICE),
        )


def normalize_private_key(raw: str) -> str:
    """Return a ``0x``-prefixed 32-byte hex private key.

    Raises:
        ConfigurationError: If the key is missing or not 32 bytes of hex.
    """
    if not raw:
        raise ConfigurationError("PRIVATE_KEY is not set")
    key = raw if raw.startswith("0x") else f"0x{raw}"
    if len(key) != 66:
        raise ConfigurationError(
            f"Invalid private key length: expected 66 characters (including 0x), got {len(key)}"
        )
    if not re.fullmatch(r"0x[0-9a-fA-F]{64}", key):
        raise ConfigurationError("Invalid private key: expected hex digits")
    return key


def _int(environ: dict[str, str], name: str, default: int, *, positive: bool = False) -> int:
    try:
        value = int(environ.get(name, default))
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {environ[name]!r}") from None
    if positive and value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def _float(environ: dict[str, str], name: str, default: float) -> float:
    try:
        value = float(environ.get(name, default))
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {environ[name]!r}") from None
    if not math.isfinite(value) or value <= 0:
        raise ConfigurationError(f"{name} must be a positive finite number, got {environ[name]!r}")
    return value
