"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration.  Sits above ``ledger_kernel`` and beside
    ``ledger_modules``.  The kernel MUST NEVER import from
    ``ledger_config``; ``ledger_config.bridges`` translates the loaded
    configuration into kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration file is missing.
    - ``ValueError`` / ``KeyError`` -- schema validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``ledger_config_loaded`` log entry with the config id, version and
    checksum, tying postings to the configuration that governed them.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from ledger_config.loader import load_configuration
from ledger_config.schema import LedgerConfiguration

_logger = logging.getLogger("ledger_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

CONFIG_PATH_ENV = "LEDGER_CONFIG_PATH"


def get_active_config(config_path: Path | str | None = None) -> LedgerConfiguration:
    """The ONLY public configuration entrypoint.

    Resolution order: ``config_path``, then the ``LEDGER_CONFIG_PATH``
    environment variable, then the bundled ``sets/default.yaml``.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
        ValueError: If configuration validation fails.
    """
    if config_path is None:
        config_path = os.environ.get(CONFIG_PATH_ENV) or _DEFAULT_CONFIG_PATH
    path = Path(config_path)

    config = load_configuration(path)

    _logger.info(
        "ledger_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_path": str(path),
            "chart_size": len(config.chart),
            "tax_rate_count": len(config.tax_rates),
        },
    )
    return config


__all__ = ["LedgerConfiguration", "get_active_config"]
