"""
LedgerConfiguration schema.

The human-authored YAML is parsed into these frozen types by the loader.
Bridges translate them into kernel inputs (PostingSettings, tax rates);
the kernel never sees these classes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

# ---------------------------------------------------------------------------
# Posting
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PostingConfig:
    """How the posting engine rounds, provisions and treats stock."""

    default_currency: str = "USD"
    rounding: str = "ROUND_HALF_UP"
    auto_provision_accounts: bool = False
    unlimited_stock_threshold: Decimal | None = Decimal("999999")


# ---------------------------------------------------------------------------
# Chart of accounts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChartAccountDef:
    """Default account created for a purpose when auto-provisioning."""

    purpose: str
    code: str
    name: str
    account_type: str


# ---------------------------------------------------------------------------
# Tax
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaxRateDef:
    """Rate as a fraction (0.10 for 10%)."""

    code: str
    rate: Decimal
    description: str | None = None


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerConfiguration:
    """The complete configuration set."""

    config_id: str
    version: int
    posting: PostingConfig
    chart: tuple[ChartAccountDef, ...] = field(default_factory=tuple)
    tax_rates: tuple[TaxRateDef, ...] = field(default_factory=tuple)
    checksum: str = ""

    def tax_rate(self, code: str) -> TaxRateDef | None:
        for rate in self.tax_rates:
            if rate.code == code:
                return rate
        return None
