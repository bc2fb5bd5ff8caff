"""
Kernel-facing posting settings.

The kernel never reads configuration files.  ``ledger_config`` compiles its
YAML into a PostingSettings value (see ledger_config.bridges) and callers
hand that value to the services that need it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import Mapping

from ledger_kernel.domain.accounts import AccountPurpose, AccountType


@dataclass(frozen=True)
class ChartAccountSpec:
    """Template for an account created by auto-provisioning."""

    code: str
    name: str
    account_type: AccountType


@dataclass(frozen=True)
class PostingSettings:
    """
    Knobs the posting and void engines honor.

    ``unlimited_stock_threshold``: a stock-tracked product whose on-hand
    quantity is at or above this value is treated as unlimited, the way
    legacy data marks services sold through the product catalogue.
    ``None`` disables the rule.
    """

    default_currency: str = "USD"
    rounding: str = ROUND_HALF_UP
    auto_provision_accounts: bool = False
    unlimited_stock_threshold: Decimal | None = Decimal("999999")
    default_chart: Mapping[AccountPurpose, ChartAccountSpec] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self) -> None:
        if not isinstance(self.default_chart, MappingProxyType):
            object.__setattr__(
                self, "default_chart", MappingProxyType(dict(self.default_chart))
            )

    def chart_spec(self, purpose: AccountPurpose) -> ChartAccountSpec | None:
        return self.default_chart.get(purpose)
