"""Payment gateway funds mover — live testnet transfers over HTTP.

Provides an async HTTP client for the gateway API:
- POST /v1/wallets — create (and optionally prefund) a wallet
- POST /v1/transfers — submit a signed transfer
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from magic_link.config.settings import ExecutionMode
from magic_link.errors.mover_errors import MoverError
from magic_link.mover.base import TransferResult, WalletInfo

if TYPE_CHECKING:
    from magic_link.config.settings import MoverConfig
    from magic_link.engine.models.asset import Currency, SupportedAsset

logger = logging.getLogger(__name__)


class GatewayFundsMover:
    """Async HTTP client that executes transfers on the live testnet.

    Usage::

        mover = GatewayFundsMover(config, assets=registry)
        await mover.connect()
        try:
            wallet = await mover.create_wallet("alice@example.com")
        finally:
            await mover.close()
    """

    mode = ExecutionMode.LIVE_TESTNET

    def __init__(
        self,
        config: MoverConfig,
        *,
        assets: dict[Currency, SupportedAsset] | None = None,
    ) -> None:
        """Initialize the gateway mover.

        Args:
            config: Mover configuration (gateway url, token, explorer template).
            assets: Asset registry used to attach issuers to transfers.
        """
        self._config = config
        self._assets = assets or {}
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Create the underlying HTTP client."""
        headers: dict[str, str] = {
            "Content-Type": "application/json",
        }
        if self._config.gateway_token:
            headers["Authorization"] = f"Bearer {self._config.gateway_token}"

        self._client = httpx.AsyncClient(
            base_url=self._config.gateway_url.rstrip("/"),
            headers=headers,
            timeout=self._config.timeout_seconds,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        """Check if the HTTP client is active."""
        return self._client is not None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def create_wallet(self, owner_hint: str) -> WalletInfo:
        """Create a new wallet on the gateway.

        Args:
            owner_hint: Recipient identifier, used only as a gateway label.

        Returns:
            WalletInfo with address and credential.

        Raises:
            MoverError: On HTTP or API errors.
        """
        client = self._ensure_connected()

        try:
            response = await client.post("/v1/wallets", json={"label": owner_hint})
        except httpx.HTTPError as exc:
            raise MoverError(f"wallet creation failed: {exc}") from exc

        if response.status_code not in (200, 201):
            self._raise_for_status(response, "create_wallet")

        body = response.json()
        address = body.get("address") or body.get("publicKey", "")
        credential = body.get("credential") or body.get("secret", "")
        if not address or not credential:
            msg = "gateway returned an incomplete wallet"
            raise MoverError(msg)

        wallet = WalletInfo(address=address, credential=credential)
        if self._config.prefund_wallets:
            await self._prefund(wallet.address)
        return wallet

    async def move(
        self,
        source_credential: str,
        destination: str,
        amount: str,
        currency: Currency,
    ) -> TransferResult:
        """Submit a transfer of *amount* *currency* to *destination*.

        Returns:
            TransferResult with the network transaction hash and explorer link.

        Raises:
            MoverError: On HTTP or API errors.
        """
        client = self._ensure_connected()

        payload: dict[str, Any] = {
            "sourceCredential": source_credential,
            "destination": destination,
            "amount": amount,
            "assetCode": str(currency),
        }
        asset = self._assets.get(currency)
        if asset is not None and asset.issuer:
            payload["assetIssuer"] = asset.issuer

        try:
            response = await client.post("/v1/transfers", json=payload)
        except httpx.HTTPError as exc:
            raise MoverError(f"transfer failed: {exc}") from exc

        if response.status_code not in (200, 201):
            self._raise_for_status(response, "move")

        body = response.json()
        transaction_id = body.get("hash") or body.get("transactionId", "")
        if not transaction_id:
            msg = "gateway response did not include a transaction hash"
            raise MoverError(msg)

        return TransferResult(
            transaction_id=transaction_id,
            mode=self.mode,
            explorer_url=self.explorer_url(transaction_id),
        )

    def explorer_url(self, transaction_id: str) -> str | None:
        """Build the public explorer link for *transaction_id*."""
        template = self._config.explorer_url_template
        if not template:
            return None
        return template.format(transaction_id=transaction_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _prefund(self, address: str) -> None:
        """Ask friendbot to fund a new testnet account."""
        client = self._ensure_connected()
        try:
            response = await client.get(self._config.friendbot_url, params={"addr": address})
        except httpx.HTTPError as exc:
            raise MoverError(f"friendbot funding failed: {exc}") from exc
        if response.status_code >= 400:
            self._raise_for_status(response, "prefund")
        logger.debug("Prefunded testnet wallet %s", address[:8])

    def _ensure_connected(self) -> httpx.AsyncClient:
        """Return the HTTP client, raising if not connected."""
        if self._client is None:
            msg = "Gateway mover not connected. Call connect() first."
            raise MoverError(msg, status_code=500)
        return self._client

    def _raise_for_status(self, response: httpx.Response, operation: str) -> None:
        """Raise a MoverError from a non-2xx response."""
        status = response.status_code
        try:
            body = response.json()
            detail = body.get("detail", body.get("title", response.text))
        except ValueError:
            detail = response.text

        error_map = {
            401: "gateway authentication failed",
            402: "insufficient funds in source wallet",
            404: "destination account does not exist",
        }
        message = error_map.get(status, f"gateway {operation} failed ({status}): {detail}")
        raise MoverError(message)
