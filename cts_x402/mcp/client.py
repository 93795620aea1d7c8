"""HTTP client that pays for x402-gated resources.

Example:
    ```python
    x402_client, payer_address = create_payer(private_key)
    paid = PaidResourceClient(x402_client, "http://localhost:4021")
    response = await paid.get("/get-report-resource/r1")
    ```
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from x402.schemas.payments import PaymentRequired

from ..constants import PAYMENT_HEADER, PAYMENT_REQUIRED_HEADER
from ..http.headers import decode_payment_required, encode_payment_header

logger = logging.getLogger(__name__)

__all__ = ["PaidResourceClient", "create_payer"]


def create_payer(private_key: str) -> tuple[Any, str]:
    """Build an x402 client that signs exact EVM payments with ``private_key``.

    Returns:
        The ``x402Client`` and the payer's address.
    """
    from eth_account import Account
    from x402 import x402Client
    from x402.mechanisms.evm.exact import register_exact_evm_client
    from x402.mechanisms.evm.signers import EthAccountSigner

    client = x402Client()
    account = Account.from_key(private_key)
    register_exact_evm_client(client, EthAccountSigner(account))
    return client, account.address


class PaidResourceClient:
    """GETs resources, paying through ``x402_client`` when the server answers 402.

    The first request goes out without payment. On a 402 the payment
    requirements are read from the ``PAYMENT-REQUIRED`` header (or the
    JSON body), a payment payload is created and the request is retried
    once with it attached.
    """

    def __init__(
        self,
        x402_client: Any,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._x402_client = x402_client
        self._base_url = base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def get(self, path: str) -> httpx.Response:
        """Fetch ``path``, paying once if required.

        Returns:
            The final response. A 402 is returned as is when the server's
            payment requirements cannot be read.

        Raises:
            httpx.HTTPError: On transport failures.
        """
        url = f"{self._base_url}{path}"
        response = await self._http.get(url)
        if response.status_code != 402:
            return response

        payment_required = _extract_payment_required(response)
        if payment_required is None:
            logger.warning("402 from %s without readable payment requirements", url)
            return response

        payment_payload = await self._x402_client.create_payment_payload(payment_required)
        logger.info("Paying for %s", url)
        return await self._http.get(url, headers={PAYMENT_HEADER: encode_payment_header(payment_payload)})

    async def aclose(self) -> None:
        await self._http.aclose()


def _extract_payment_required(response: httpx.Response) -> PaymentRequired | None:
    """Read payment requirements, preferring the header over the body."""
    header = response.headers.get(PAYMENT_REQUIRED_HEADER)
    if header:
        try:
            return decode_payment_required(header)
        except ValueError as e:
            logger.debug("Unreadable %s header: %s", PAYMENT_REQUIRED_HEADER, e)

    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict) or "accepts" not in body:
        return None
    body.pop("payer", None)
    try:
        return PaymentRequired.model_validate(body)
    except ValueError:
        return None
