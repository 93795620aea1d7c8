"""Utility functions for report settlement."""

import re
from decimal import Decimal, InvalidOperation

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from .constants import (
    ERC20_TRANSFER_SIGNATURE,
    EVM_ADDRESS_REGEX,
    NETWORK_TO_CAIP2,
    NETWORK_TO_EXPLORER,
)

_TRANSFER_SELECTOR = function_signature_to_4byte_selector(ERC20_TRANSFER_SIGNATURE)


def validate_evm_address(address: str | None) -> bool:
    """Validate a 20-byte hex address (case-insensitive, no checksum check)."""
    return bool(address) and bool(re.match(EVM_ADDRESS_REGEX, address))


def get_caip2_network(network: str) -> str:
    """Get the CAIP-2 identifier for a CDP network name."""
    caip2 = NETWORK_TO_CAIP2.get(network)
    if not caip2:
        raise ValueError(f"Unknown EVM network: {network}")
    return caip2


def explorer_tx_url(network: str, transaction_hash: str) -> str | None:
    """Build a block-explorer link for a transaction, if the network has one."""
    base = NETWORK_TO_EXPLORER.get(network)
    if not base or not transaction_hash:
        return None
    return f"{base}/tx/{transaction_hash}"


def parse_money_to_decimal(money: str | int | float | Decimal) -> Decimal:
    """Parse a price like ``"$0.01"``, ``"0.01"`` or ``0.01`` to a Decimal.

    Floats go through ``str`` so ``0.01`` stays ``Decimal("0.01")``.
    """
    if isinstance(money, Decimal):
        return money
    if isinstance(money, (int, float)):
        return Decimal(str(money))

    cleaned = money.strip().lstrip("$").replace(",", "").strip()
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"Invalid money amount: {money!r}") from None


def from_token_units(units: int | str, decimals: int) -> Decimal:
    """Convert smallest-unit token amount back to a decimal amount."""
    return Decimal(int(units)).scaleb(-decimals)


def encode_transfer_call(to: str, amount: int) -> str:
    """ABI-encode an ERC-20 ``transfer(address,uint256)`` call.

    Args:
        to: Destination address (any hex case).
        amount: Amount in the token's smallest unit.

    Returns:
        Hex-encoded calldata with 0x prefix.
    """
    if amount < 0:
        raise ValueError(f"Transfer amount must be non-negative, got {amount}")
    args = encode(["address", "uint256"], [to_checksum_address(to), amount])
    return "0x" + (_TRANSFER_SELECTOR + args).hex()
