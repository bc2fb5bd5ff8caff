"""
Ledger Modules.

Business workflows that reduce their documents to PostingRequests and hand
them to the ledger kernel.  Each module contains:
- Domain models (frozen dataclasses and enums)
- ORM models for the module's own document tables
- Pure helpers (line math, depreciation formulas)
- A service that owns the transaction and calls the kernel engines

Modules:
- AR: Customer invoices, invoice voids, activity history
- Assets: Fixed asset acquisition, depreciation runs, disposal
- Payroll: Payroll run postings

No module posts to the ledger directly; every journal entry goes through
PostingEngine or ReversalService.
"""

from ledger_modules import ar, assets, payroll

__all__ = ["ar", "assets", "payroll"]
