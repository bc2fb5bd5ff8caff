"""Domain models for the ledger kernel."""

from ledger_kernel.models.account import (
    Account,
    AccountMapping,
    AccountPurpose,
    AccountType,
)
from ledger_kernel.models.audit_event import AuditAction, AuditEvent
from ledger_kernel.models.inventory import (
    InventoryMovement,
    MovementType,
    Product,
    ProductType,
)
from ledger_kernel.models.journal import (
    VALID_STATUS_TRANSITIONS,
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
)
from ledger_kernel.models.subledger import (
    SubledgerTransaction,
    SubledgerTransactionStatus,
)


def import_all_models() -> None:
    """Ensure every kernel table is registered on Base.metadata.

    The imports above already do this; the function exists so callers such
    as create_tables() have an explicit hook that survives refactoring.
    """
    return None


__all__ = [
    "Account",
    "AccountMapping",
    "AccountPurpose",
    "AccountType",
    "AuditAction",
    "AuditEvent",
    "InventoryMovement",
    "MovementType",
    "Product",
    "ProductType",
    "JournalEntry",
    "JournalEntryStatus",
    "JournalLine",
    "VALID_STATUS_TRANSITIONS",
    "SubledgerTransaction",
    "SubledgerTransactionStatus",
    "import_all_models",
]
