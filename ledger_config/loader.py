"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen
``ledger_config.schema`` dataclasses.  Runtime callers go through
``ledger_config.get_active_config()``; this module is its implementation.

Invariants enforced
-------------------
* Missing required keys raise ``KeyError``; malformed values raise
  ``ValueError``.  No silent defaults for required fields.
* Rounding modes must name a ``decimal`` rounding constant.
* Tax rates lie in [0, 1]; purposes, account types and tax codes are
  unique within a set.
* ``compute_checksum`` is deterministic for identical content.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import decimal
import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    ChartAccountDef,
    LedgerConfiguration,
    PostingConfig,
    TaxRateDef,
)

_ROUNDING_MODES = frozenset(
    name for name in dir(decimal) if name.startswith("ROUND_")
)

_ACCOUNT_TYPES = frozenset({"asset", "liability", "equity", "revenue", "expense"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, name: str) -> Decimal:
    """Parse a Decimal from YAML.  Floats go through str() to keep digits."""
    if isinstance(value, bool):
        raise ValueError(f"{name}: expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{name}: cannot parse {value!r} as a decimal") from None


def parse_posting(data: dict[str, Any]) -> PostingConfig:
    rounding = data.get("rounding", "ROUND_HALF_UP")
    if rounding not in _ROUNDING_MODES:
        raise ValueError(f"posting.rounding: unknown rounding mode {rounding!r}")

    threshold = data.get("unlimited_stock_threshold", "999999")
    return PostingConfig(
        default_currency=str(data.get("default_currency", "USD")).upper(),
        rounding=rounding,
        auto_provision_accounts=bool(data.get("auto_provision_accounts", False)),
        unlimited_stock_threshold=(
            parse_decimal(threshold, "posting.unlimited_stock_threshold")
            if threshold is not None
            else None
        ),
    )


def parse_chart_account(data: dict[str, Any]) -> ChartAccountDef:
    account_type = data["account_type"]
    if account_type not in _ACCOUNT_TYPES:
        raise ValueError(
            f"chart.{data['purpose']}: unknown account type {account_type!r}"
        )
    return ChartAccountDef(
        purpose=data["purpose"],
        code=str(data["code"]),
        name=data["name"],
        account_type=account_type,
    )


def parse_tax_rate(data: dict[str, Any]) -> TaxRateDef:
    rate = parse_decimal(data["rate"], f"tax_rates.{data['code']}")
    if rate < 0 or rate > 1:
        raise ValueError(
            f"tax_rates.{data['code']}: rate must be a fraction in [0, 1], got {rate}"
        )
    return TaxRateDef(
        code=str(data["code"]),
        rate=rate,
        description=data.get("description"),
    )


def _require_unique(values: list[str], what: str) -> None:
    seen: set[str] = set()
    for value in values:
        if value in seen:
            raise ValueError(f"Duplicate {what}: {value!r}")
        seen.add(value)


def parse_configuration(data: dict[str, Any]) -> LedgerConfiguration:
    """Parse and validate a whole configuration document."""
    chart = tuple(parse_chart_account(item) for item in data.get("chart", []))
    tax_rates = tuple(parse_tax_rate(item) for item in data.get("tax_rates", []))

    _require_unique([c.purpose for c in chart], "chart purpose")
    _require_unique([c.code for c in chart], "chart account code")
    _require_unique([t.code for t in tax_rates], "tax code")

    return LedgerConfiguration(
        config_id=data["config_id"],
        version=int(data["version"]),
        posting=parse_posting(data.get("posting", {})),
        chart=chart,
        tax_rates=tax_rates,
        checksum=compute_checksum(data),
    )


def load_configuration(path: Path) -> LedgerConfiguration:
    return parse_configuration(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
