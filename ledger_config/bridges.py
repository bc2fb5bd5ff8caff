"""
Config -> Kernel Bridges.

Functions that convert a LedgerConfiguration into kernel-compatible inputs.
These live in ledger_config (the producer) because the kernel must NEVER
import ledger_config.

Usage:
    from ledger_config import get_active_config
    from ledger_config.bridges import build_posting_settings, build_tax_rates

    config = get_active_config()
    settings = build_posting_settings(config)
    tax_rates = build_tax_rates(config)
"""

from __future__ import annotations

from decimal import Decimal

from ledger_config.schema import LedgerConfiguration
from ledger_kernel.domain.accounts import AccountPurpose, AccountType
from ledger_kernel.domain.currency import CurrencyRegistry
from ledger_kernel.domain.settings import ChartAccountSpec, PostingSettings
from ledger_kernel.exceptions import ConfigurationError


def build_posting_settings(config: LedgerConfiguration) -> PostingSettings:
    """
    Compile the posting section and default chart into PostingSettings.

    Raises:
        ConfigurationError: Unknown purpose, account type or currency.
    """
    chart: dict[AccountPurpose, ChartAccountSpec] = {}
    for account in config.chart:
        try:
            purpose = AccountPurpose(account.purpose)
        except ValueError:
            raise ConfigurationError(
                f"Config {config.config_id}: unknown account purpose {account.purpose!r}"
            ) from None
        chart[purpose] = ChartAccountSpec(
            code=account.code,
            name=account.name,
            account_type=AccountType(account.account_type),
        )

    if not CurrencyRegistry.is_valid(config.posting.default_currency):
        raise ConfigurationError(
            f"Config {config.config_id}: unknown default currency "
            f"{config.posting.default_currency!r}"
        )

    return PostingSettings(
        default_currency=config.posting.default_currency,
        rounding=config.posting.rounding,
        auto_provision_accounts=config.posting.auto_provision_accounts,
        unlimited_stock_threshold=config.posting.unlimited_stock_threshold,
        default_chart=chart,
    )


def build_tax_rates(config: LedgerConfiguration) -> dict[str, Decimal]:
    """Tax code -> rate, for StaticTaxRateResolver."""
    return {rate.code: rate.rate for rate in config.tax_rates}
