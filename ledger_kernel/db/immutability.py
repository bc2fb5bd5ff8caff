"""
ORM-level immutability enforcement.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners registered here inspect attribute history and
raise ImmutabilityViolationError when a write would alter financial
history::

    session.flush()
         |
         v
    [before_update] --> _check_*_update() --> ImmutabilityViolationError
    [before_delete] --> _check_*_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Protected entities:

Entity               | Rule
---------------------|--------------------------------------------------------
JournalEntry         | DRAFT mutable; POSTED may only move to VOIDED (status,
                     | void_reason, voided_at); VOIDED frozen; never deleted
                     | once posted
JournalLine          | Frozen once the parent entry is not DRAFT
InventoryMovement    | Append-only
SubledgerTransaction | Only status may change; never deleted
AuditEvent           | Append-only
Account              | Never deleted; type frozen once referenced by a line
Module tables        | Append-only when registered with mark_append_only()

updated_at and updated_by_id are audit metadata and may always change.

Usage::

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

    # tests that need to tamper on purpose
    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect, text
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})

_VOID_FIELDS = frozenset({"status", "void_reason", "voided_at"}) | _AUDIT_FIELDS

# Module-owned tables that are append-only (depreciation records, ...)
_append_only_models: list[tuple[type, str]] = []


def mark_append_only(model: type, entity_type: str | None = None) -> type:
    """Register a module-owned model as append-only.

    Takes effect on the next register_immutability_listeners() call.
    Usable as a class decorator.
    """
    entry = (model, entity_type or model.__name__)
    if entry not in _append_only_models:
        _append_only_models.append(entry)
    return model


def _block(entity_type: str, target, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _changed_fields(target) -> list[str]:
    insp = inspect(target)
    return [
        prop.key
        for prop in insp.mapper.column_attrs
        if prop.key not in _AUDIT_FIELDS and insp.attrs[prop.key].history.has_changes()
    ]


def _previous_status(target) -> str | None:
    """Status as it was in the database before this flush."""
    history = get_history(target, "status")
    if history.deleted:
        return history.deleted[0]
    if history.added:
        return None
    return target.status


def _check_journal_entry_update(mapper, connection, target):
    """
    DRAFT -> POSTED is the posting itself and is always allowed.
    POSTED -> VOIDED may touch only the void fields.  Anything else on a
    POSTED or VOIDED entry is a violation.
    """
    from ledger_kernel.models.journal import JournalEntryStatus

    before = _previous_status(target)
    if before is None or before == JournalEntryStatus.DRAFT:
        return

    changed = _changed_fields(target)
    if not changed:
        return

    if before == JournalEntryStatus.VOIDED:
        _block(
            "JournalEntry",
            target,
            "UPDATE",
            "Voided journal entries are frozen",
            field=changed[0],
        )

    if target.status != JournalEntryStatus.VOIDED:
        _block(
            "JournalEntry",
            target,
            "UPDATE",
            f"Cannot modify field '{changed[0]}' on posted journal entry",
            field=changed[0],
        )

    for key in changed:
        if key not in _VOID_FIELDS:
            _block(
                "JournalEntry",
                target,
                "UPDATE",
                f"Voiding may not modify field '{key}'",
                field=key,
            )


def _check_journal_entry_delete(mapper, connection, target):
    from ledger_kernel.models.journal import JournalEntryStatus

    if target.status != JournalEntryStatus.DRAFT:
        _block(
            "JournalEntry",
            target,
            "DELETE",
            "Posted journal entries cannot be deleted",
        )


def _check_journal_line_update(mapper, connection, target):
    from ledger_kernel.models.journal import JournalEntryStatus

    if target.entry is not None and target.entry.status != JournalEntryStatus.DRAFT:
        _block(
            "JournalLine",
            target,
            "UPDATE",
            "Journal lines cannot be modified after the entry is posted",
        )


def _check_journal_line_delete(mapper, connection, target):
    from ledger_kernel.models.journal import JournalEntryStatus

    if target.entry is not None and target.entry.status != JournalEntryStatus.DRAFT:
        _block(
            "JournalLine",
            target,
            "DELETE",
            "Journal lines cannot be deleted after the entry is posted",
        )


def _check_subledger_transaction_update(mapper, connection, target):
    for key in _changed_fields(target):
        if key != "status":
            _block(
                "SubledgerTransaction",
                target,
                "UPDATE",
                f"Cannot modify field '{key}' on a sub-ledger transaction",
                field=key,
            )


def _account_has_lines(connection, account_id) -> bool:
    result = connection.execute(
        text("SELECT 1 FROM journal_lines WHERE account_id = :account_id LIMIT 1"),
        {"account_id": str(account_id)},
    )
    return result.first() is not None


def _check_account_update(mapper, connection, target):
    """Code and type are structural once any journal line uses the account."""
    changed = [k for k in _changed_fields(target) if k in ("code", "account_type")]
    if changed and _account_has_lines(connection, target.id):
        _block(
            "Account",
            target,
            "UPDATE",
            f"Cannot change '{changed[0]}' of an account referenced by journal lines",
            field=changed[0],
        )


def _append_only_update(entity_type: str):
    def _check(mapper, connection, target):
        if _changed_fields(target):
            _block(entity_type, target, "UPDATE", f"{entity_type} records are append-only")

    return _check


def _never_delete(entity_type: str):
    def _check(mapper, connection, target):
        _block(entity_type, target, "DELETE", f"{entity_type} records cannot be deleted")

    return _check


_registered: list[tuple[type, str, object]] = []


def _listen(target: type, event_name: str, fn) -> None:
    event.listen(target, event_name, fn)
    _registered.append((target, event_name, fn))


def register_immutability_listeners() -> None:
    """
    Register all immutability listeners.

    Idempotent: calling twice does not double-register.
    """
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.audit_event import AuditEvent
    from ledger_kernel.models.inventory import InventoryMovement
    from ledger_kernel.models.journal import JournalEntry, JournalLine
    from ledger_kernel.models.subledger import SubledgerTransaction

    if _registered:
        return

    _listen(JournalEntry, "before_update", _check_journal_entry_update)
    _listen(JournalEntry, "before_delete", _check_journal_entry_delete)

    _listen(JournalLine, "before_update", _check_journal_line_update)
    _listen(JournalLine, "before_delete", _check_journal_line_delete)

    _listen(InventoryMovement, "before_update", _append_only_update("InventoryMovement"))
    _listen(InventoryMovement, "before_delete", _never_delete("InventoryMovement"))

    _listen(SubledgerTransaction, "before_update", _check_subledger_transaction_update)
    _listen(SubledgerTransaction, "before_delete", _never_delete("SubledgerTransaction"))

    _listen(AuditEvent, "before_update", _append_only_update("AuditEvent"))
    _listen(AuditEvent, "before_delete", _never_delete("AuditEvent"))

    _listen(Account, "before_update", _check_account_update)
    _listen(Account, "before_delete", _never_delete("Account"))

    for model, entity_type in _append_only_models:
        _listen(model, "before_update", _append_only_update(entity_type))
        _listen(model, "before_delete", _never_delete(entity_type))

    logger.debug(
        "immutability_listeners_registered",
        extra={"listener_count": len(_registered)},
    )


def unregister_immutability_listeners() -> None:
    """
    Remove every listener installed by register_immutability_listeners().

    WARNING: tests only.
    """
    while _registered:
        target, event_name, fn = _registered.pop()
        if event.contains(target, event_name, fn):
            event.remove(target, event_name, fn)
