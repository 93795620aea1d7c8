"""MCP tool server that buys report content over x402.

Requires the 'mcp' optional dependency: pip install cts-x402[mcp]

Example:
    ```python
    from cts_x402.mcp import PaidResourceClient, ReportTools, create_mcp_server

    x402_client, payer_address = create_payer(config.private_key)
    tools = ReportTools(
        ReportsClient(config.reports_api_base),
        PaidResourceClient(x402_client, config.x402_server_base),
        payer_address=payer_address,
    )
    create_mcp_server(tools).run()
    ```
"""

from __future__ import annotations

# Lazy imports to avoid requiring mcp and eth-account at import time
__all__ = [
    # Client
    "PaidResourceClient",
    "create_payer",
    # Server
    "ReportTools",
    "create_mcp_server",
]


def __getattr__(name: str):
    """Lazy import MCP components to avoid requiring mcp at import time."""
    if name in ("PaidResourceClient", "create_payer"):
        from . import client as _client

        return getattr(_client, name)
    if name in ("ReportTools", "create_mcp_server"):
        from . import server as _server

        return getattr(_server, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
