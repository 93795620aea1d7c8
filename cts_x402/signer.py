"""Custody protocols consumed by the account session and batch executor."""

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class UserOperationResult:
    """Terminal state of a user operation as reported by the custody service."""

    status: str
    transaction_hash: str | None = None


class SigningIdentity(Protocol):
    """An owner key held by the custody service."""

    @property
    def address(self) -> str:
        """The owner's EVM address."""
        ...


class SmartAccount(Protocol):
    """Delegated smart account that executes batched calls for its owner."""

    @property
    def address(self) -> str:
        """The smart account's EVM address."""
        ...

    async def send_user_operation(
        self,
        calls: list[dict[str, Any]],
        *,
        network: str,
    ) -> str:
        """Submit calls as one user operation.

        Args:
            calls: List of ``{"to", "value", "data"}`` dicts.
            network: Network name (e.g. ``base-sepolia``).

        Returns:
            The user operation hash.
        """
        ...

    async def wait_for_user_operation(
        self,
        operation_id: str,
        *,
        timeout_seconds: float,
        interval_seconds: float,
    ) -> UserOperationResult:
        """Wait until the user operation reaches a terminal state.

        Raises:
            TimeoutError: If no terminal state is seen within ``timeout_seconds``.
        """
        ...


class CustodyProvider(Protocol):
    """Custodial key-management service."""

    async def list_accounts(self) -> list[SigningIdentity]:
        """List signing identities available to the project."""
        ...

    async def get_smart_account(
        self,
        address: str,
        owner: SigningIdentity,
    ) -> SmartAccount:
        """Resolve a pre-provisioned smart account bound to ``owner``."""
        ...

    async def close(self) -> None:
        """Release the underlying client."""
        ...
