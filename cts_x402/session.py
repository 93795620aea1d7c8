"""Account session: the owner key and smart account used to sign transfers."""

from __future__ import annotations

import asyncio
import logging

from .errors import NoSigningIdentity, SessionInitFailed
from .signer import CustodyProvider, SigningIdentity, SmartAccount

logger = logging.getLogger(__name__)

__all__ = ["AccountSession"]


class AccountSession:
    """Lazily initialized custody session, shared by all settlements.

    Initialization is single-flight: concurrent first callers all await the
    same attempt and observe the same smart account or the same error. A
    failed attempt is forgotten so the next call retries.
    """

    def __init__(self, provider: CustodyProvider, smart_account_address: str):
        self._provider = provider
        self._smart_account_address = smart_account_address
        self._owner: SigningIdentity | None = None
        self._smart_account: SmartAccount | None = None
        self._init_task: asyncio.Task[SmartAccount] | None = None

    def is_ready(self) -> bool:
        return self._smart_account is not None

    @property
    def owner(self) -> SigningIdentity:
        if self._owner is None:
            raise SessionInitFailed("Account session is not initialized")
        return self._owner

    @property
    def smart_account(self) -> SmartAccount:
        if self._smart_account is None:
            raise SessionInitFailed("Account session is not initialized")
        return self._smart_account

    async def ensure_ready(self) -> SmartAccount:
        """Initialize the session if needed and return the smart account.

        Raises:
            NoSigningIdentity: If the custody service has no accounts.
            SessionInitFailed: If the custody service could not be reached.
        """
        if self._smart_account is not None:
            return self._smart_account

        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize())
            self._init_task.add_done_callback(self._forget_failed_init)

        # Shielded so one cancelled caller does not abort the shared attempt
        return await asyncio.shield(self._init_task)

    def _forget_failed_init(self, task: asyncio.Task[SmartAccount]) -> None:
        # Runs even when every caller was cancelled, so the next call retries
        if task is self._init_task and (task.cancelled() or task.exception() is not None):
            self._init_task = None

    async def close(self) -> None:
        """Close the custody provider and forget the session."""
        if self._init_task is not None and not self._init_task.done():
            self._init_task.cancel()
        self._init_task = None
        self._owner = None
        self._smart_account = None
        await self._provider.close()

    async def _initialize(self) -> SmartAccount:
        logger.info("Getting owner account...")
        try:
            accounts = await self._provider.list_accounts()
        except Exception as e:
            raise SessionInitFailed(f"Failed to list custody accounts: {e}") from e

        if not accounts:
            raise NoSigningIdentity("No EVM accounts found in the custody project")

        owner = accounts[0]
        logger.info("Owner account: %s", owner.address)

        logger.info("Getting smart account %s...", self._smart_account_address)
        try:
            smart_account = await self._provider.get_smart_account(
                self._smart_account_address, owner
            )
        except Exception as e:
            raise SessionInitFailed(
                f"Failed to resolve smart account {self._smart_account_address}: {e}"
            ) from e

        self._owner = owner
        self._smart_account = smart_account
        logger.info("Smart account: %s", smart_account.address)
        return smart_account
