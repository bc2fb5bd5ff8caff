"""
Accounts Receivable Module.

Handles customer invoices: creation, posting and voiding.
"""

from ledger_modules.ar.models import (
    InvoiceLineInput,
    InvoicePostingResult,
    InvoiceStatus,
    InvoiceVoidResult,
)
from ledger_modules.ar.service import InvoicePostingService
from ledger_modules.ar.tax import StaticTaxRateResolver, TaxRateResolver

__all__ = [
    "InvoiceLineInput",
    "InvoicePostingResult",
    "InvoicePostingService",
    "InvoiceStatus",
    "InvoiceVoidResult",
    "StaticTaxRateResolver",
    "TaxRateResolver",
]
