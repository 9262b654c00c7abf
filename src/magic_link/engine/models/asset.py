"""Asset registry — supported currencies and their amount precision."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from magic_link.config.settings import AssetConfig


class Currency(enum.StrEnum):
    """Currencies a claim can be denominated in."""

    USDC = "USDC"
    PYUSD = "PYUSD"
    XLM = "XLM"

    @classmethod
    def parse(cls, value: str) -> Currency | None:
        """Parse a currency code case-insensitively; None if unsupported."""
        try:
            return cls(value.strip().upper())
        except (ValueError, AttributeError):
            return None


@dataclass(frozen=True)
class SupportedAsset:
    """Static description of a supported asset.

    Attributes:
        code: Currency code.
        type: ``native`` or ``credit_alphanum4``.
        precision: Maximum number of decimal places in an amount.
        issuer: Issuing account for credit assets, empty for native.
        description: Human-readable name.
    """

    code: Currency
    type: str
    precision: int
    issuer: str = ""
    description: str = ""


def build_registry(config: AssetConfig) -> dict[Currency, SupportedAsset]:
    """Build the asset registry with configured issuers."""
    return {
        Currency.XLM: SupportedAsset(
            code=Currency.XLM,
            type="native",
            precision=7,
            description="Stellar Lumens",
        ),
        Currency.USDC: SupportedAsset(
            code=Currency.USDC,
            type="credit_alphanum4",
            precision=2,
            issuer=config.usdc_issuer,
            description="USD Coin",
        ),
        Currency.PYUSD: SupportedAsset(
            code=Currency.PYUSD,
            type="credit_alphanum4",
            precision=2,
            issuer=config.pyusd_issuer,
            description="PayPal USD",
        ),
    }


def normalize_amount(raw: object, asset: SupportedAsset) -> str | None:
    """Validate an amount for *asset* and return its canonical string.

    The amount must be a positive finite decimal with at most
    ``asset.precision`` fractional digits.  Surrounding whitespace is
    stripped; the digits themselves are kept as given (``"100"`` stays
    ``"100"``).

    Returns:
        The normalized amount string, or None if invalid.
    """
    if isinstance(raw, bool) or not isinstance(raw, (str, int, Decimal)):
        return None
    text = str(raw).strip()
    if not text:
        return None
    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    if not value.is_finite() or value <= 0:
        return None
    exponent = value.as_tuple().exponent
    if isinstance(exponent, int) and -exponent > asset.precision:
        return None
    if "e" in text.lower():
        text = format(value, "f")
    return text
