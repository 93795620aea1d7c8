"""Starlette payment wrapper for paid resources.

Provides create_payment_wrapper() to gate a route on an x402 payment:
verify through the resource server, run the handler, settle, then hand
the verified amount to the settlement callback.

Example:
    ```python
    resource_server, accepts = create_resource_server(config)
    wrapper = create_payment_wrapper(
        resource_server,
        accepts=accepts,
        decimals=config.token_decimals,
        on_settled=worker.submit,
    )

    @wrapper
    async def get_report(request: Request) -> Response:
        ...
    ```
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from x402.schemas import PaymentRequirements
from x402.schemas.payments import ResourceInfo

from ..constants import (
    ERR_PAYMENT_REQUIRED,
    LEGACY_PAYMENT_HEADER,
    PAYMENT_HEADER,
    PAYMENT_REQUIRED_HEADER,
    PAYMENT_RESPONSE_HEADER,
    SCHEME_EXACT,
    X402_VERSION,
)
from ..types import SettlementRequest
from ..utils import get_caip2_network
from .headers import decode_payment_header, encode_header

if TYPE_CHECKING:
    from x402 import x402ResourceServer

    from ..config import SettlementConfig

logger = logging.getLogger(__name__)

__all__ = ["create_payment_wrapper", "create_resource_server"]

Handler = Callable[[Request], Awaitable[Response]]


def create_resource_server(
    config: SettlementConfig,
) -> tuple[x402ResourceServer, list[PaymentRequirements]]:
    """Build an initialized x402 resource server and the report's requirements.

    Initialization fetches the supported kinds from the facilitator.

    Returns:
        The resource server and the accepted payment requirements.
    """
    from x402 import ResourceConfig, x402ResourceServer
    from x402.http import FacilitatorConfig, HTTPFacilitatorClient
    from x402.mechanisms.evm.exact import register_exact_evm_server

    network = get_caip2_network(config.network)

    facilitator_client = HTTPFacilitatorClient(FacilitatorConfig(url=config.facilitator_url))
    resource_server = x402ResourceServer(facilitator_client)
    register_exact_evm_server(resource_server, network)
    resource_server.initialize()

    accepts = resource_server.build_payment_requirements(
        ResourceConfig(
            scheme=SCHEME_EXACT,
            network=network,
            pay_to=config.receiving_wallet_address,
            price=config.report_price,
        )
    )
    for requirements in accepts:
        if requirements.asset.lower() != config.token_address.lower():
            logger.warning(
                "Payment asset %s differs from distribution token %s",
                requirements.asset,
                config.token_address,
            )
    return resource_server, accepts


def create_payment_wrapper(
    resource_server: Any,
    *,
    accepts: list[PaymentRequirements],
    decimals: int,
    on_settled: Callable[[SettlementRequest], Any],
    description: str = "",
    mime_type: str = "",
) -> Callable[[Handler], Handler]:
    """Create a decorator that wraps a Starlette endpoint with x402 payment logic.

    The decorated endpoint automatically:
    - Returns 402 payment required when no payment is provided
    - Verifies the payment payload through the resource server
    - Executes the endpoint on successful verification
    - Settles the payment after a successful (< 400) response
    - Passes a :class:`SettlementRequest` to ``on_settled`` without awaiting
      any distribution
    - Returns the settlement in the ``PAYMENT-RESPONSE`` header

    Args:
        resource_server: An async ``x402ResourceServer`` (anything with
            ``verify_payment`` and ``settle_payment``).
        accepts: Accepted payment requirements. The first entry is used for
            verification and settlement.
        decimals: Token decimals used to turn the paid amount back into a
            decimal amount.
        on_settled: Non-blocking callback, normally ``SettlementWorker.submit``.
        description: Resource description for the payment challenge.
        mime_type: Resource MIME type for the payment challenge.

    Returns:
        A decorator to apply to a Starlette endpoint.
    """
    if not accepts:
        raise ValueError("accepts must have at least one payment requirement")
    requirements = accepts[0]

    def decorator(handler: Handler) -> Handler:
        @functools.wraps(handler)
        async def wrapped(request: Request) -> Response:
            resource = ResourceInfo(
                url=str(request.url),
                description=description,
                mime_type=mime_type,
            )

            header = request.headers.get(PAYMENT_HEADER) or request.headers.get(LEGACY_PAYMENT_HEADER)
            if not header:
                return _payment_required_response(accepts, resource, ERR_PAYMENT_REQUIRED)

            try:
                payload = decode_payment_header(header)
            except ValueError as e:
                return _payment_required_response(accepts, resource, f"Invalid payment payload: {e}")

            try:
                verify_result = await resource_server.verify_payment(payload, requirements)
            except Exception as e:
                logger.error("Payment verification error: %s", e)
                return _payment_required_response(accepts, resource, f"Payment verification error: {e}")
            if not verify_result.is_valid:
                return _payment_required_response(
                    accepts,
                    resource,
                    f"Payment verification failed: {verify_result.invalid_reason}",
                    payer=verify_result.payer,
                )

            logger.info("Payment validated! Processing paid request for %s", request.url.path)
            response = await handler(request)
            if response.status_code >= 400:
                return response

            try:
                settle_result = await resource_server.settle_payment(payload, requirements)
            except Exception as e:
                logger.error("Payment settlement error: %s", e)
                return _payment_required_response(accepts, resource, f"Settlement error: {e}")
            if not settle_result.success:
                return _payment_required_response(
                    accepts,
                    resource,
                    f"Settlement failed: {settle_result.error_reason}",
                )

            _schedule_settlement(
                on_settled,
                SettlementRequest.from_token_units(
                    requirements.amount,
                    decimals,
                    payer=settle_result.payer or verify_result.payer or "",
                    payment_transaction=settle_result.transaction or "",
                    resource=resource.url,
                ),
            )

            response.headers[PAYMENT_RESPONSE_HEADER] = encode_header(settle_result)
            return response

        return wrapped

    return decorator


def _schedule_settlement(
    on_settled: Callable[[SettlementRequest], Any],
    settlement: SettlementRequest,
) -> None:
    """Hand off a settlement; a failure here must not affect the response."""
    logger.info("Initiating automated payment distribution...")
    try:
        on_settled(settlement)
    except Exception:
        logger.exception("Failed to queue payment distribution for $%s", settlement.amount)


def _payment_required_response(
    accepts: list[PaymentRequirements],
    resource: ResourceInfo,
    error_message: str,
    payer: str | None = None,
) -> JSONResponse:
    payment_required: dict[str, Any] = {
        "x402Version": X402_VERSION,
        "accepts": [req.model_dump(mode="json", by_alias=True, exclude_none=True) for req in accepts],
        "error": error_message,
        "resource": resource.model_dump(mode="json", by_alias=True, exclude_none=True),
    }
    headers = {PAYMENT_REQUIRED_HEADER: encode_header(payment_required)}
    body = {**payment_required, "payer": payer} if payer else payment_required
    return JSONResponse(body, status_code=402, headers=headers)
