"""Run the report resource server: ``python -m cts_x402``."""

import logging
import os

from .cdp import CdpCustodyProvider
from .config import SettlementConfig
from .distribution import DistributionOrchestrator
from .http import create_app, create_resource_server
from .reports import ReportsClient
from .session import AccountSession
from .worker import SettlementWorker

logger = logging.getLogger("cts_x402")


def main() -> None:
    """Validate configuration, arm the distribution path and serve."""
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Missing or malformed values are startup-fatal
    config = SettlementConfig.from_env()

    session = AccountSession(CdpCustodyProvider.from_config(config), config.smart_account_address)
    orchestrator = DistributionOrchestrator.from_config(config, session)
    worker = SettlementWorker(orchestrator, max_pending=config.max_pending_settlements)
    resource_server, accepts = create_resource_server(config)

    app = create_app(
        config,
        worker=worker,
        resource_server=resource_server,
        accepts=accepts,
        reports=ReportsClient(config.reports_api_base),
        session=session,
    )

    policy = config.policy
    logger.info("x402 report server with automated distribution")
    logger.info("Listening at: http://localhost:%d", config.port)
    logger.info("Receiving payments at: %s", config.receiving_wallet_address)
    logger.info("USDC contract: %s", config.token_address)
    for b in policy.beneficiaries:
        logger.info("   %s (%s): %s", b.label, policy.percentages()[b.label], b.address)

    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=config.port, log_level="warning")


if __name__ == "__main__":
    main()
