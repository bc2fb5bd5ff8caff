"""Services for the ledger kernel (write side)."""

from ledger_kernel.services.account_service import (
    AccountResolver,
    AccountService,
    SqlAccountResolver,
)
from ledger_kernel.services.auditor_service import AuditorService, AuditTrace
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.inventory_ledger import InventoryLedger, IssuePlan
from ledger_kernel.services.journal_writer import JournalWriter, ResolvedLine
from ledger_kernel.services.posting_engine import PostingEngine
from ledger_kernel.services.reversal_service import ReversalService, void_reference

__all__ = [
    "AccountResolver",
    "AccountService",
    "AuditTrace",
    "AuditorService",
    "BaseService",
    "InventoryLedger",
    "IssuePlan",
    "JournalWriter",
    "PostingEngine",
    "ResolvedLine",
    "ReversalService",
    "SqlAccountResolver",
    "void_reference",
]
