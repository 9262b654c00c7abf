"""Funds mover contract shared by all execution backends."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from magic_link.config.settings import ExecutionMode
    from magic_link.engine.models.asset import Currency


@dataclass(frozen=True)
class WalletInfo:
    """A freshly created wallet.

    Attributes:
        address: Public address funds are sent to.
        credential: Opaque credential that authorizes moving funds out.
    """

    address: str
    credential: str


@dataclass(frozen=True)
class TransferResult:
    """Result of a completed value transfer.

    Attributes:
        transaction_id: Identifier assigned by the executing backend.
        mode: How the transfer was actually carried out.
        explorer_url: Public explorer link, only for live testnet transfers.
    """

    transaction_id: str
    mode: ExecutionMode
    explorer_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict."""
        return {
            "transaction_id": self.transaction_id,
            "mode": str(self.mode),
            "explorer_url": self.explorer_url,
        }


class FundsMover(Protocol):
    """Protocol for funds mover backends.

    Backends raise :class:`~magic_link.errors.MoverError` on any failure.
    """

    mode: ExecutionMode

    async def connect(self) -> None: ...
    async def close(self) -> None: ...
    async def create_wallet(self, owner_hint: str) -> WalletInfo: ...
    async def move(
        self,
        source_credential: str,
        destination: str,
        amount: str,
        currency: Currency,
    ) -> TransferResult: ...
