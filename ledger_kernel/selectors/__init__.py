"""Read-only selectors returning DTOs."""

from ledger_kernel.selectors.journal_selector import (
    JournalEntryDTO,
    JournalLineDTO,
    JournalSelector,
)
from ledger_kernel.selectors.ledger_selector import (
    AccountBalance,
    LedgerSelector,
    TrialBalance,
    TrialBalanceRow,
)
from ledger_kernel.selectors.subledger_selector import (
    InventoryMovementDTO,
    SubledgerSelector,
    SubledgerTransactionDTO,
)

__all__ = [
    "JournalEntryDTO",
    "JournalLineDTO",
    "JournalSelector",
    "AccountBalance",
    "LedgerSelector",
    "TrialBalance",
    "TrialBalanceRow",
    "InventoryMovementDTO",
    "SubledgerSelector",
    "SubledgerTransactionDTO",
]
