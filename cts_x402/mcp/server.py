"""MCP tool server over the reports API and the paid x402 report route.

Run with ``cts-x402-mcp`` (stdio transport). Browsing and search go to the
reports API directly; report content is bought from the x402 server.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

from ..config import McpConfig
from ..constants import DEFAULT_NETWORK, DEFAULT_REPORT_PRICE
from ..reports import Report, ReportsClient
from .client import PaidResourceClient, create_payer

logger = logging.getLogger(__name__)

__all__ = ["ReportTools", "create_mcp_server", "main"]

SERVER_NAME = "cts-reports-x402"


class ReportTools:
    """Tool bodies of the MCP server. Every tool returns display text."""

    def __init__(
        self,
        reports: ReportsClient,
        paid: PaidResourceClient,
        *,
        payer_address: str,
        network: str = DEFAULT_NETWORK,
        price: str = DEFAULT_REPORT_PRICE,
    ) -> None:
        self._reports = reports
        self._paid = paid
        self.payer_address = payer_address
        self.network = network
        self.price = price

    async def search_reports(self, query: str) -> str:
        logger.info('Searching for reports matching: "%s"', query)
        matches = await self._reports.search_reports(query)
        if matches is None:
            return "Failed to retrieve reports data."
        if not matches:
            return f'No reports found matching "{query}".'
        return f'Found {len(matches)} reports matching "{query}":\n\n{_summaries(matches)}'

    async def browse_reports(self) -> str:
        listing = await self._reports.list_reports()
        if listing is None:
            return "Failed to retrieve reports data."
        if not listing:
            return "No reports found."
        return f"Found {len(listing)} reports:\n\n{_summaries(listing)}"

    async def get_report_resource(self, report_id: str) -> str:
        """Buy a report's content from the x402 server."""
        logger.info("Attempting to retrieve paid report content for ID: %s", report_id)
        failure = f"Failed to retrieve content for report ID: {report_id}."
        try:
            response = await self._paid.get(f"/get-report-resource/{report_id}")
        except Exception as e:
            logger.error("Error retrieving report content for ID %s: %s", report_id, e)
            return failure

        if response.status_code == 402:
            logger.error("Payment for report %s was not accepted", report_id)
            return f"{failure} Payment was required but could not be processed."
        if response.status_code >= 400:
            logger.error("Report %s request failed with status %d", report_id, response.status_code)
            return f"{failure} Server responded with status: {response.status_code}"

        logger.info("Successfully retrieved paid content for report ID: %s", report_id)
        return f"Report Content (ID: {report_id}):\n\n{response.text}"

    async def get_payment_info(self) -> str:
        return (
            f"Payment wallet address: {self.payer_address}\n"
            f"Network: {self.network}\n"
            f"Price per report: {self.price}"
        )

    async def aclose(self) -> None:
        await self._paid.aclose()
        await self._reports.aclose()


def _summaries(reports: list[Report]) -> str:
    return json.dumps([r.summary() for r in reports], indent=2)


def create_mcp_server(tools: ReportTools) -> Any:
    """Register the report tools on a FastMCP server."""
    from mcp.server.fastmcp import FastMCP

    mcp = FastMCP(SERVER_NAME)

    @mcp.tool(
        name="search-reports",
        description="Search CryptoTwitter.Space reports by title. This is a free operation.",
    )
    async def search_reports(query: str) -> str:
        return await tools.search_reports(query)

    @mcp.tool(
        name="browse-reports",
        description=(
            "Browse all available CryptoTwitter.Space reports. This is a free operation "
            "and returns the first page of results."
        ),
    )
    async def browse_reports() -> str:
        return await tools.browse_reports()

    @mcp.tool(
        name="get-report-resource",
        description=(
            "Retrieve the full markdown content of a CryptoTwitter.Space report by its ID. "
            f"This is a PAID operation that costs {tools.price} and will automatically process payment."
        ),
    )
    async def get_report_resource(report_id: str) -> str:
        return await tools.get_report_resource(report_id)

    @mcp.tool(
        name="get-payment-info",
        description="Get information about the payment wallet being used for x402 transactions.",
    )
    async def get_payment_info() -> str:
        return await tools.get_payment_info()

    return mcp


def main() -> None:
    """Start the MCP server on stdio."""
    # stdout carries the MCP protocol
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = McpConfig.from_env()
    x402_client, payer_address = create_payer(config.private_key)
    tools = ReportTools(
        ReportsClient(config.reports_api_base),
        PaidResourceClient(x402_client, config.x402_server_base),
        payer_address=payer_address,
        network=config.network,
        price=config.report_price,
    )

    logger.info("X402 Payment-Enabled Reports MCP Server running on stdio")
    logger.info("Payment wallet: %s", payer_address)
    create_mcp_server(tools).run()


if __name__ == "__main__":
    main()
