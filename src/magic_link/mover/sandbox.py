"""Sandbox funds mover — drives the Soroban CLI against a local network.

Every operation is one CLI invocation through
``asyncio.create_subprocess_exec``:

- ``keys generate <name>`` / ``keys address <name>`` / ``keys show <name>``
  to create a wallet identity
- ``contract invoke --id <asset contract> -- transfer`` to move funds
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from typing import TYPE_CHECKING

from magic_link.config.settings import ExecutionMode
from magic_link.errors.mover_errors import MoverError
from magic_link.mover.base import TransferResult, WalletInfo
from magic_link.utils.crypto import random_hex

if TYPE_CHECKING:
    from magic_link.config.settings import MoverConfig
    from magic_link.engine.models.asset import Currency

logger = logging.getLogger(__name__)


class SandboxFundsMover:
    """Executes transfers on a local sandbox network via the Soroban CLI."""

    mode = ExecutionMode.LIVE_SANDBOX

    def __init__(self, config: MoverConfig) -> None:
        self._config = config
        self._cli: str | None = None

    async def connect(self) -> None:  # noqa: ASYNC910
        """Resolve the CLI binary.

        Raises:
            MoverError: If the CLI is not installed.
        """
        resolved = shutil.which(self._config.sandbox_cli_path)
        if resolved is None:
            msg = f"sandbox CLI not found: {self._config.sandbox_cli_path}"
            raise MoverError(msg)
        self._cli = resolved

    async def close(self) -> None:  # noqa: ASYNC910
        """Forget the resolved CLI."""
        self._cli = None

    async def create_wallet(self, owner_hint: str) -> WalletInfo:
        """Generate a fresh funded identity on the sandbox network."""
        name = f"claim-{random_hex(6)}"
        await self._run(
            "keys",
            "generate",
            name,
            "--network-passphrase",
            self._config.sandbox_network_passphrase,
            "--rpc-url",
            self._config.sandbox_rpc_url,
        )
        address = await self._run("keys", "address", name)
        credential = await self._run("keys", "show", name)
        logger.debug("Sandbox identity %s created for claim wallet %s", name, address[:8])
        return WalletInfo(address=address, credential=credential)

    async def move(
        self,
        source_credential: str,
        destination: str,
        amount: str,
        currency: Currency,
    ) -> TransferResult:
        """Invoke the asset contract's ``transfer`` function."""
        contract_id = self._config.sandbox_asset_contracts.get(str(currency))
        if not contract_id:
            msg = f"no sandbox asset contract configured for {currency}"
            raise MoverError(msg)

        output = await self._run(
            "contract",
            "invoke",
            "--id",
            contract_id,
            "--source",
            source_credential,
            "--rpc-url",
            self._config.sandbox_rpc_url,
            "--network-passphrase",
            self._config.sandbox_network_passphrase,
            "--",
            "transfer",
            "--to",
            destination,
            "--amount",
            amount,
        )
        # The CLI prints the transaction hash on the last line.
        transaction_id = output.splitlines()[-1].strip().strip('"') if output else ""
        if not transaction_id:
            msg = "sandbox transfer returned no transaction hash"
            raise MoverError(msg)
        return TransferResult(transaction_id=transaction_id, mode=self.mode, explorer_url=None)

    async def _run(self, *args: str) -> str:
        """Run the CLI and return its stripped stdout.

        Raises:
            MoverError: If the CLI is missing or exits non-zero.
        """
        if self._cli is None:
            msg = "Sandbox mover not connected. Call connect() first."
            raise MoverError(msg, status_code=500)

        proc = await asyncio.create_subprocess_exec(
            self._cli,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()
            msg = f"sandbox CLI {args[0]} {args[1]} failed ({proc.returncode}): {detail}"
            raise MoverError(msg)
        return stdout.decode("utf-8").strip()
