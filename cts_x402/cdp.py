"""Custody provider backed by the Coinbase Developer Platform SDK.

Requires the 'cdp' optional dependency: pip install cts-x402[cdp]

Example:
    ```python
    from cts_x402.cdp import CdpCustodyProvider

    provider = CdpCustodyProvider.from_config(config)
    session = AccountSession(provider, config.smart_account_address)
    await session.ensure_ready()
    ...
    await provider.close()
    ```
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .signer import UserOperationResult

if TYPE_CHECKING:
    from .config import SettlementConfig

__all__ = ["CdpCustodyProvider", "CdpSmartAccount"]


class CdpOwnerAccount:
    """A CDP server account used as smart-account owner."""

    def __init__(self, account: Any) -> None:
        self._account = account

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def account(self) -> Any:
        return self._account


class CdpSmartAccount:
    """Adapts a CDP ``EvmSmartAccount`` to the :class:`SmartAccount` protocol."""

    def __init__(self, smart_account: Any) -> None:
        self._smart_account = smart_account

    @property
    def address(self) -> str:
        return self._smart_account.address

    async def send_user_operation(
        self,
        calls: list[dict[str, Any]],
        *,
        network: str,
    ) -> str:
        from cdp.evm_call_types import EncodedCall

        encoded = [
            EncodedCall(to=call["to"], value=int(call["value"]), data=call["data"])
            for call in calls
        ]
        user_operation = await self._smart_account.send_user_operation(
            calls=encoded,
            network=network,
        )
        return user_operation.user_op_hash

    async def wait_for_user_operation(
        self,
        operation_id: str,
        *,
        timeout_seconds: float,
        interval_seconds: float,
    ) -> UserOperationResult:
        user_operation = await self._smart_account.wait_for_user_operation(
            user_op_hash=operation_id,
            timeout_seconds=timeout_seconds,
            interval_seconds=interval_seconds,
        )
        return UserOperationResult(
            status=str(user_operation.status),
            transaction_hash=getattr(user_operation, "transaction_hash", None),
        )


class CdpCustodyProvider:
    """Lists CDP server accounts and resolves smart accounts through ``CdpClient``.

    The underlying client is created on first use.
    """

    def __init__(
        self,
        api_key_id: str,
        api_key_secret: str,
        wallet_secret: str,
    ) -> None:
        self._api_key_id = api_key_id
        self._api_key_secret = api_key_secret
        self._wallet_secret = wallet_secret
        self._client: Any = None

    @classmethod
    def from_config(cls, config: SettlementConfig) -> CdpCustodyProvider:
        return cls(
            api_key_id=config.cdp_api_key_id,
            api_key_secret=config.cdp_api_key_secret,
            wallet_secret=config.cdp_wallet_secret,
        )

    def _get_client(self) -> Any:
        # Lazy import so the package can be imported without cdp-sdk installed
        if self._client is None:
            from cdp import CdpClient

            self._client = CdpClient(
                api_key_id=self._api_key_id,
                api_key_secret=self._api_key_secret,
                wallet_secret=self._wallet_secret,
            )
        return self._client

    async def list_accounts(self) -> list[CdpOwnerAccount]:
        response = await self._get_client().evm.list_accounts()
        return [CdpOwnerAccount(account) for account in response.accounts]

    async def get_smart_account(
        self,
        address: str,
        owner: CdpOwnerAccount,
    ) -> CdpSmartAccount:
        smart_account = await self._get_client().evm.get_smart_account(
            address=address,
            owner=owner.account,
        )
        return CdpSmartAccount(smart_account)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
