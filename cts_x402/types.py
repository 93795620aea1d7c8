"""Types for report settlement and distribution."""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from .constants import (
    BENEFICIARY_ORDER,
    CURATOR,
    HOST,
    PLATFORM,
    STATUS_COMPLETE,
    WEIGHT_EPSILON,
)
from .errors import ConfigurationError, InvalidPolicy
from .utils import encode_transfer_call, explorer_tx_url, from_token_units, validate_evm_address


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise InvalidPolicy(f"Invalid weight: {value!r}") from None


@dataclass(frozen=True)
class Beneficiary:
    """A fixed recipient of a distribution.

    Attributes:
        label: Role of the beneficiary (host, curator or platform).
        address: Wallet address (EVM hex format).
        weight: Fraction of each payment, between 0 and 1.
    """

    label: str
    address: str
    weight: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label, "address": self.address, "weight": str(self.weight)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Beneficiary":
        return cls(
            label=data["label"],
            address=data["address"],
            weight=_to_decimal(data["weight"]),
        )


@dataclass(frozen=True)
class DistributionPolicy:
    """Immutable three-way split of every payment.

    Weights are checked when the policy is built, so a policy instance is
    always valid. Addresses are checked separately by
    :meth:`validate_addresses` before the orchestrator is armed.
    """

    host: Beneficiary
    curator: Beneficiary
    platform: Beneficiary

    def __post_init__(self) -> None:
        self.validate()

    @property
    def beneficiaries(self) -> tuple[Beneficiary, Beneficiary, Beneficiary]:
        return (self.host, self.curator, self.platform)

    def validate(self) -> None:
        """Validate weights.

        Raises:
            InvalidPolicy: If a weight is negative, not finite, or the weights
                do not sum to 1 within ``WEIGHT_EPSILON``.
        """
        for b in self.beneficiaries:
            if not b.weight.is_finite() or b.weight < 0:
                raise InvalidPolicy(f"Weight for {b.label} must be non-negative, got {b.weight}")

        total = sum((b.weight for b in self.beneficiaries), Decimal(0))
        if abs(total - 1) > Decimal(str(WEIGHT_EPSILON)):
            raise InvalidPolicy(f"Weights must sum to 1.0, got {total}")

    def validate_addresses(self) -> None:
        """Validate beneficiary address format.

        Raises:
            ConfigurationError: Listing every malformed address.
        """
        bad = [
            f"{b.label}={b.address!r}"
            for b in self.beneficiaries
            if not validate_evm_address(b.address)
        ]
        if bad:
            raise ConfigurationError(f"Invalid beneficiary address: {', '.join(bad)}")

    def percentages(self) -> dict[str, str]:
        return {b.label: f"{(b.weight * 100).normalize():f}%" for b in self.beneficiaries}

    def to_dict_list(self) -> list[dict[str, Any]]:
        return [b.to_dict() for b in self.beneficiaries]

    @classmethod
    def from_addresses(
        cls,
        host: str,
        curator: str,
        platform: str,
        weights: tuple[Any, Any, Any] = ("0.50", "0.30", "0.20"),
    ) -> "DistributionPolicy":
        """Build a policy from the three addresses and (host, curator, platform) weights."""
        return cls(
            host=Beneficiary(HOST, host, _to_decimal(weights[0])),
            curator=Beneficiary(CURATOR, curator, _to_decimal(weights[1])),
            platform=Beneficiary(PLATFORM, platform, _to_decimal(weights[2])),
        )

    @classmethod
    def from_dict_list(cls, data: list[dict[str, Any]]) -> "DistributionPolicy":
        by_label = {d["label"]: Beneficiary.from_dict(d) for d in data}
        missing = [label for label in BENEFICIARY_ORDER if label not in by_label]
        if missing:
            raise ConfigurationError(f"Missing beneficiaries: {', '.join(missing)}")
        return cls(*(by_label[label] for label in BENEFICIARY_ORDER))


@dataclass(frozen=True)
class SettlementRequest:
    """A payment already verified and settled by the facilitator.

    Attributes:
        amount: Paid amount in the token's reference unit (e.g. 0.01 USDC).
        payer: Payer address, for log correlation only.
        payment_transaction: Facilitator settlement transaction, for log correlation only.
        resource: Resource the payment was for.
    """

    amount: Decimal
    payer: str = ""
    payment_transaction: str = ""
    resource: str = ""

    @classmethod
    def from_token_units(
        cls,
        units: int | str,
        decimals: int,
        **kwargs: Any,
    ) -> "SettlementRequest":
        return cls(amount=from_token_units(units, decimals), **kwargs)


@dataclass(frozen=True)
class TransferCall:
    """One leg of a batch: an ERC-20 transfer to one beneficiary.

    Attributes:
        token: Token contract address (the call target).
        recipient: Destination of the transfer.
        amount: Amount in the token's smallest unit.
        data: Encoded ``transfer(to, amount)`` calldata.
        value: Native value sent with the call, always 0 for token transfers.
        label: Beneficiary label, for logging.
    """

    token: str
    recipient: str
    amount: int
    data: str
    value: int = 0
    label: str = ""

    @classmethod
    def transfer(cls, token: str, recipient: str, amount: int, label: str = "") -> "TransferCall":
        return cls(
            token=token,
            recipient=recipient,
            amount=amount,
            data=encode_transfer_call(recipient, amount),
            label=label,
        )

    def to_call(self) -> dict[str, Any]:
        return {"to": self.token, "value": self.value, "data": self.data}


@dataclass(frozen=True)
class OperationReceipt:
    """Terminal result of a submitted batch.

    Attributes:
        operation_id: User operation hash assigned at submission.
        status: Terminal status.
        transaction_hash: Settlement transaction, set only when complete.
        network: Network the operation ran on.
        legs: Transfers included in the operation.
    """

    operation_id: str
    status: str
    transaction_hash: str | None = None
    network: str = ""
    legs: tuple[TransferCall, ...] = field(default_factory=tuple)

    @property
    def is_complete(self) -> bool:
        return self.status == STATUS_COMPLETE

    @property
    def explorer_url(self) -> str | None:
        if not self.transaction_hash:
            return None
        return explorer_tx_url(self.network, self.transaction_hash)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "operationId": self.operation_id,
            "status": self.status,
            "network": self.network,
            "transfers": [
                {"label": leg.label, "address": leg.recipient, "amount": str(leg.amount)}
                for leg in self.legs
            ],
        }
        if self.transaction_hash:
            d["transaction"] = self.transaction_hash
        return d
