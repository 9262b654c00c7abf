"""Tests for the sandbox funds mover (CLI-driven)."""

from __future__ import annotations

import shutil

import pytest

from magic_link.config.settings import ExecutionMode, MoverConfig
from magic_link.engine.models.asset import Currency
from magic_link.errors.mover_errors import MoverError
from magic_link.mover.sandbox import SandboxFundsMover


def _config(**overrides) -> MoverConfig:
    defaults = {
        "mode": ExecutionMode.LIVE_SANDBOX,
        "sandbox_cli_path": "sh",
        "sandbox_asset_contracts": {"XLM": "CNATIVE", "USDC": "CUSDC"},
    }
    defaults.update(overrides)
    return MoverConfig(**defaults)


class _ScriptedCli:
    """Stand-in for ``SandboxFundsMover._run`` that records invocations."""

    def __init__(self, outputs: dict[tuple[str, str], str]) -> None:
        self.calls: list[tuple[str, ...]] = []
        self._outputs = outputs

    async def __call__(self, *args: str) -> str:
        self.calls.append(args)
        return self._outputs.get((args[0], args[1]), "")


class TestLifecycle:
    async def test_connect_resolves_cli(self) -> None:
        mover = SandboxFundsMover(_config())
        await mover.connect()
        assert mover._cli == shutil.which("sh")
        await mover.close()
        assert mover._cli is None

    async def test_missing_cli_raises(self) -> None:
        mover = SandboxFundsMover(_config(sandbox_cli_path="no-such-sandbox-cli-xyz"))
        with pytest.raises(MoverError, match="not found"):
            await mover.connect()

    async def test_run_before_connect_raises(self) -> None:
        mover = SandboxFundsMover(_config())
        with pytest.raises(MoverError, match="not connected"):
            await mover.create_wallet("alice@example.com")


class TestRun:
    async def test_run_returns_stdout(self) -> None:
        mover = SandboxFundsMover(_config())
        await mover.connect()
        assert await mover._run("-c", "echo '  GADDRESS  '") == "GADDRESS"

    async def test_non_zero_exit_raises(self) -> None:
        mover = SandboxFundsMover(_config())
        await mover.connect()
        with pytest.raises(MoverError, match=r"failed \(3\): oops"):
            await mover._run("-c", "echo oops >&2; exit 3")


class TestOperations:
    async def test_create_wallet(self, monkeypatch: pytest.MonkeyPatch) -> None:
        mover = SandboxFundsMover(_config())
        cli = _ScriptedCli({("keys", "address"): "GSANDBOX", ("keys", "show"): "SSANDBOX"})
        monkeypatch.setattr(mover, "_run", cli)

        wallet = await mover.create_wallet("alice@example.com")

        assert (wallet.address, wallet.credential) == ("GSANDBOX", "SSANDBOX")
        assert [c[:2] for c in cli.calls] == [
            ("keys", "generate"),
            ("keys", "address"),
            ("keys", "show"),
        ]
        identity = cli.calls[0][2]
        assert identity.startswith("claim-")
        assert cli.calls[1][2] == identity

    async def test_move_invokes_asset_contract(self, monkeypatch: pytest.MonkeyPatch) -> None:
        mover = SandboxFundsMover(_config())
        cli = _ScriptedCli({("contract", "invoke"): 'simulating...\n"feedbeef"'})
        monkeypatch.setattr(mover, "_run", cli)

        result = await mover.move("SSOURCE", "GDEST", "50", Currency.XLM)

        assert result.transaction_id == "feedbeef"
        assert result.mode == ExecutionMode.LIVE_SANDBOX
        args = cli.calls[0]
        assert args[args.index("--id") + 1] == "CNATIVE"
        assert args[args.index("--source") + 1] == "SSOURCE"
        assert args[args.index("--to") + 1] == "GDEST"
        assert args[args.index("--amount") + 1] == "50"

    async def test_move_without_contract_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        mover = SandboxFundsMover(_config())
        monkeypatch.setattr(mover, "_run", _ScriptedCli({}))
        with pytest.raises(MoverError, match="no sandbox asset contract"):
            await mover.move("SSOURCE", "GDEST", "5", Currency.PYUSD)

    async def test_move_without_hash_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        mover = SandboxFundsMover(_config())
        monkeypatch.setattr(mover, "_run", _ScriptedCli({}))
        with pytest.raises(MoverError, match="no transaction hash"):
            await mover.move("SSOURCE", "GDEST", "5", Currency.USDC)
