"""Base64 JSON coding of the x402 HTTP headers."""

import base64
import json
from typing import Any

from pydantic import BaseModel
from x402.schemas import PaymentPayload
from x402.schemas.payments import PaymentRequired

__all__ = [
    "decode_header",
    "decode_payment_header",
    "decode_payment_required",
    "encode_header",
    "encode_payment_header",
]


def encode_header(data: BaseModel | dict[str, Any]) -> str:
    """Encode a model or dict as a base64 JSON header value."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json", by_alias=True, exclude_none=True)
    return base64.b64encode(json.dumps(data).encode()).decode()


def decode_header(header: str) -> dict[str, Any]:
    """Decode a base64 JSON header value.

    Raises:
        ValueError: If the value is not base64 encoded JSON object.
    """
    try:
        data = json.loads(base64.b64decode(header, validate=True))
    except (ValueError, TypeError) as e:
        raise ValueError(f"Malformed payment header: {e}") from None
    if not isinstance(data, dict):
        raise ValueError("Malformed payment header: expected a JSON object")
    return data


def encode_payment_header(payload: PaymentPayload) -> str:
    return encode_header(payload)


def decode_payment_header(header: str) -> PaymentPayload:
    """Decode a ``PAYMENT-SIGNATURE`` (or legacy ``X-PAYMENT``) header.

    Raises:
        ValueError: If the header is malformed or not a payment payload.
    """
    return PaymentPayload.model_validate(decode_header(header))


def decode_payment_required(header: str) -> PaymentRequired:
    return PaymentRequired.model_validate(decode_header(header))
