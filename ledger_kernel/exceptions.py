"""
Typed exception hierarchy for the ledger kernel.

Every error raised by the posting core is a subclass of ``LedgerError`` and
carries a machine-readable ``code`` class attribute plus structured
attributes describing the failure.  Callers catch by type and report by
code; they never parse messages.

Hierarchy::

    LedgerError
    |
    +-- ValidationError                  validation_error
    |   +-- UnbalancedEntryError         unbalanced_entry
    |   +-- ZeroValueDocumentError       zero_value_document
    |   +-- InsufficientStockError       insufficient_stock
    |   +-- UnsupportedDepreciationMethodError
    |
    +-- ConfigurationError               configuration_error
    |   +-- MissingAccountsError         missing_accounts
    |   +-- AccountNotFoundError         account_not_found
    |   +-- TaxRateNotFoundError         tax_rate_not_found
    |
    +-- StateError                       state_error
    |   +-- AlreadyPostedError           already_posted
    |   +-- AlreadyVoidedError           already_voided
    |   +-- DocumentNotPostedError       document_not_posted
    |   +-- InvalidStatusTransitionError invalid_status_transition
    |   +-- AssetDisposedError           asset_disposed
    |   +-- DuplicateDepreciationPeriodError
    |   +-- ImmutabilityViolationError   immutability_violation
    |   +-- AuditChainBrokenError        audit_chain_broken
    |
    +-- PersistenceError                 persistence_error (retryable)
        +-- ConcurrencyError             optimistic_lock_conflict

Handling pattern::

    try:
        result = engine.post(request)
    except AlreadyPostedError as e:
        return {"error": e.code, "journal_entry_id": e.journal_entry_id}
    except PersistenceError as e:
        # Nothing was written; safe to retry because post() is guarded
        # by the already-posted check.
        schedule_retry(e)

Nothing in the kernel retries on its own.
"""

from __future__ import annotations

from decimal import Decimal


class LedgerError(Exception):
    """Base exception for all ledger kernel errors."""

    code: str = "ledger_error"
    retryable: bool = False


# Validation errors (caller's fault, raised before any write)


class ValidationError(LedgerError):
    """A posting request is malformed."""

    code: str = "validation_error"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class UnbalancedEntryError(ValidationError):
    """Total debits do not equal total credits."""

    code: str = "unbalanced_entry"

    def __init__(self, debits: Decimal, credits: Decimal, currency: str):
        self.debits = str(debits)
        self.credits = str(credits)
        self.currency = currency
        LedgerError.__init__(
            self,
            f"Unbalanced entry in {currency}: debits={debits}, credits={credits}",
        )


class ZeroValueDocumentError(ValidationError):
    """Every leg of the document is zero."""

    code: str = "zero_value_document"

    def __init__(self, source_ref: str):
        self.source_ref = source_ref
        LedgerError.__init__(
            self, f"Document {source_ref} has no non-zero amounts to post"
        )


class InsufficientStockError(ValidationError):
    """An outflow would drive committed stock below zero."""

    code: str = "insufficient_stock"

    def __init__(self, product_id: str, on_hand: Decimal, requested: Decimal):
        self.product_id = product_id
        self.on_hand = str(on_hand)
        self.requested = str(requested)
        LedgerError.__init__(
            self,
            f"Product {product_id} has {on_hand} on hand, cannot issue {requested}",
        )


class UnsupportedDepreciationMethodError(ValidationError):
    """Depreciation method is not one the calculator knows."""

    code: str = "unsupported_depreciation_method"

    def __init__(self, method: str):
        self.method = method
        LedgerError.__init__(self, f"Unsupported depreciation method: {method}")


# Configuration errors


class ConfigurationError(LedgerError):
    """Reference data needed for posting is missing or inconsistent."""

    code: str = "configuration_error"


class MissingAccountsError(ConfigurationError):
    """One or more account purposes have no usable mapping."""

    code: str = "missing_accounts"

    def __init__(self, tenant_id: str, company_id: str, purposes: list[str]):
        self.tenant_id = tenant_id
        self.company_id = company_id
        self.purposes = sorted(purposes)
        super().__init__(
            f"Missing account mappings for company {company_id}: "
            f"{', '.join(self.purposes)}"
        )


class AccountNotFoundError(ConfigurationError):
    """An explicit account id does not exist in the posting scope."""

    code: str = "account_not_found"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class TaxRateNotFoundError(ConfigurationError):
    """The tax-rate resolver has no rate for a code."""

    code: str = "tax_rate_not_found"

    def __init__(self, tax_code: str):
        self.tax_code = tax_code
        super().__init__(f"No tax rate configured for code {tax_code!r}")


# State errors


class StateError(LedgerError):
    """The operation is not allowed in the document's current state."""

    code: str = "state_error"


class AlreadyPostedError(StateError):
    """The source document already has a posted journal entry."""

    code: str = "already_posted"

    def __init__(self, source_ref: str, journal_entry_id: str):
        self.source_ref = source_ref
        self.journal_entry_id = journal_entry_id
        super().__init__(
            f"Document {source_ref} already posted as journal entry {journal_entry_id}"
        )


class AlreadyVoidedError(StateError):
    """The source document has already been voided."""

    code: str = "already_voided"

    def __init__(self, source_ref: str):
        self.source_ref = source_ref
        super().__init__(f"Document {source_ref} is already voided")


class DocumentNotPostedError(StateError):
    """Void requested for a document that has no posted entry."""

    code: str = "document_not_posted"

    def __init__(self, source_ref: str):
        self.source_ref = source_ref
        super().__init__(f"Document {source_ref} has no posted journal entry")


class InvalidStatusTransitionError(StateError):
    """Journal entry status may only move DRAFT -> POSTED -> VOIDED."""

    code: str = "invalid_status_transition"

    def __init__(self, journal_entry_id: str, from_status: str, to_status: str):
        self.journal_entry_id = journal_entry_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Journal entry {journal_entry_id} cannot move "
            f"from {from_status} to {to_status}"
        )


class AssetDisposedError(StateError):
    """The fixed asset has been disposed of."""

    code: str = "asset_disposed"

    def __init__(self, asset_id: str):
        self.asset_id = asset_id
        super().__init__(f"Asset {asset_id} has been disposed")


class DuplicateDepreciationPeriodError(StateError):
    """A depreciation record already exists for the asset and period."""

    code: str = "duplicate_depreciation_period"

    def __init__(self, asset_id: str, period: str):
        self.asset_id = asset_id
        self.period = period
        super().__init__(
            f"Asset {asset_id} already has a depreciation record for {period}"
        )


class ImmutabilityViolationError(StateError):
    """Attempted to modify or delete a record that is append-only."""

    code: str = "immutability_violation"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


class AuditChainBrokenError(StateError):
    """Audit hash chain validation failed."""

    code: str = "audit_chain_broken"

    def __init__(self, audit_event_id: str, expected_hash: str, actual_hash: str):
        self.audit_event_id = audit_event_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_event_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )


# Persistence errors


class PersistenceError(LedgerError):
    """
    The store failed mid-operation and the whole unit was rolled back.

    The operation had no effect.  Retrying is safe because posting and
    voiding are guarded by the already-posted / already-voided checks.
    """

    code: str = "persistence_error"
    retryable: bool = True

    def __init__(self, operation: str, source_ref: str, detail: str):
        self.operation = operation
        self.source_ref = source_ref
        self.detail = detail
        super().__init__(
            f"{operation} of {source_ref} did not take effect: {detail}"
        )


class ConcurrencyError(PersistenceError):
    """A concurrent writer changed a row this operation read."""

    code: str = "optimistic_lock_conflict"
