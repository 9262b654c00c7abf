"""Funds mover boundary — simulated, live-testnet and live-sandbox backends."""

from __future__ import annotations

from magic_link.mover.base import FundsMover, TransferResult, WalletInfo
from magic_link.mover.service import FundsMoverService

__all__ = ["FundsMover", "FundsMoverService", "TransferResult", "WalletInfo"]
