"""Starlette resource server for CryptoTwitter.Space reports.

Free routes list and search reports; ``/get-report-resource/{report_id}``
requires an x402 payment. Once the resource server settles the payment, the
paid amount is queued on the :class:`SettlementWorker` and the content is
returned without waiting for the on-chain distribution.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Any

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route
from x402.schemas import PaymentRequirements

from ..config import SettlementConfig
from ..errors import SettlementError
from ..reports import ReportsClient
from ..session import AccountSession
from ..utils import get_caip2_network
from ..worker import SettlementWorker
from .payment import create_payment_wrapper

logger = logging.getLogger(__name__)

__all__ = ["create_app"]


def create_app(
    config: SettlementConfig,
    *,
    worker: SettlementWorker,
    resource_server: Any,
    accepts: list[PaymentRequirements],
    reports: ReportsClient,
    session: AccountSession,
    warm_session: bool = True,
) -> Starlette:
    """Build the resource server.

    Args:
        config: Validated startup configuration.
        worker: Settlement worker; started and stopped with the app.
        resource_server: x402 resource server that verifies and settles payments.
        accepts: Accepted payment requirements for the paid route.
        reports: Upstream reports client; closed on shutdown.
        session: Account session used by the worker; closed on shutdown.
        warm_session: Initialize the session in the background at startup.
    """
    paid = create_payment_wrapper(
        resource_server,
        accepts=accepts,
        decimals=config.token_decimals,
        on_settled=worker.submit,
        description="CryptoTwitter.Space report",
        mime_type="text/markdown",
    )

    async def search_reports(request: Request) -> Response:
        query = request.query_params.get("query")
        if not query:
            return JSONResponse({"error": "Query parameter is required."}, status_code=400)

        matches = await reports.search_reports(query)
        if matches is None:
            return JSONResponse({"error": "Failed to retrieve reports data."}, status_code=500)
        if not matches:
            return JSONResponse({"message": f'No reports found matching "{query}".'})
        return JSONResponse([r.summary() for r in matches])

    async def browse_reports(request: Request) -> Response:
        listing = await reports.list_reports()
        if listing is None:
            return JSONResponse({"error": "Failed to retrieve reports data."}, status_code=500)
        return JSONResponse([r.summary() for r in listing])

    @paid
    async def get_report_resource(request: Request) -> Response:
        report_id = request.path_params["report_id"]
        logger.info("Fetching report content for ID: %s", report_id)
        content = await reports.get_report_content(report_id)
        if content is None:
            return JSONResponse(
                {"error": f"Failed to retrieve content for report ID: {report_id}."},
                status_code=500,
            )

        logger.info("Content retrieved successfully for report ID: %s", report_id)
        if isinstance(content, str):
            return PlainTextResponse(content)
        return JSONResponse(content)

    async def health(request: Request) -> Response:
        return JSONResponse(
            {
                "status": "healthy",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "receivingWallet": config.receiving_wallet_address,
                "distributionEnabled": worker.running,
                "usdcContract": config.token_address,
                "pendingDistributions": worker.pending,
                "droppedDistributions": worker.dropped,
            }
        )

    async def distribution_config(request: Request) -> Response:
        policy = config.policy
        return JSONResponse(
            {
                "hostAddress": policy.host.address,
                "curatorAddress": policy.curator.address,
                "platformAddress": policy.platform.address,
                "splits": policy.percentages(),
                "network": config.network,
                "chainId": get_caip2_network(config.network),
                "contracts": {"usdc": config.token_address},
            }
        )

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        worker.start()
        warmup = asyncio.create_task(_warm_session(session)) if warm_session else None
        try:
            yield
        finally:
            if warmup is not None and not warmup.done():
                warmup.cancel()
            await worker.stop()
            await reports.aclose()
            await session.close()

    return Starlette(
        routes=[
            Route("/search-reports", search_reports, methods=["GET"]),
            Route("/browse-reports", browse_reports, methods=["GET"]),
            Route("/get-report-resource/{report_id}", get_report_resource, methods=["GET"]),
            Route("/health", health, methods=["GET"]),
            Route("/distribution-config", distribution_config, methods=["GET"]),
        ],
        lifespan=lifespan,
    )


async def _warm_session(session: AccountSession) -> None:
    """Initialize the account session at startup; failure is retried on first use."""
    try:
        await session.ensure_ready()
    except SettlementError as e:
        logger.error(
            "Smart account initialization failed at startup; will retry on first distribution: %s",
            e,
        )

