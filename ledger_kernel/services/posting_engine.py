"""
PostingEngine -- turns a PostingRequest into one balanced, posted journal
entry plus its sub-ledger side effects, as a single all-or-nothing unit.

Responsibility:
    Idempotency guard, account resolution, rounding, COGS and stock
    movements, sub-ledger transaction, audit event, DRAFT -> POSTED.

Architecture position:
    Kernel > Services -- the entry point module services call.  Depends on
    the AccountResolver protocol, JournalWriter, InventoryLedger and
    AuditorService.  Receives PostingSettings; never reads configuration.

Invariants enforced:
    - At most one original (non-mirror) entry per (tenant, company,
      source_type, source_ref); a second post raises AlreadyPostedError
      and changes nothing.  The partial unique index settles races.
    - Every purpose is resolved before the first write; all missing
      purposes are reported together.
    - Each leg is rounded to the currency's minor unit before the exact
      balance check.
    - Entry, lines, movements, sub-ledger transaction and audit event share
      one correlation id and commit together or not at all.
    - DRAFT -> POSTED is the last step of the unit.

Failure modes:
    - AlreadyPostedError / AlreadyVoidedError (state).
    - ValidationError, ZeroValueDocumentError, UnbalancedEntryError,
      InsufficientStockError (validation).
    - MissingAccountsError, AccountNotFoundError (configuration).
    - ConcurrencyError, PersistenceError (store; nothing was written).

Audit relevance:
    posting_started / posting_completed / posting_rejected are logged with
    the correlation id bound, and every successful post appends a
    JOURNAL_POSTED audit event to the hash chain.
"""

import time
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain.accounts import AccountPurpose
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.currency import CurrencyRegistry, round_money
from ledger_kernel.domain.posting import LineSide, PostedResult, PostingRequest
from ledger_kernel.domain.settings import PostingSettings
from ledger_kernel.exceptions import (
    AlreadyPostedError,
    AlreadyVoidedError,
    LedgerError,
    PersistenceError,
    ValidationError,
    ZeroValueDocumentError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus
from ledger_kernel.models.subledger import (
    SubledgerTransaction,
    SubledgerTransactionStatus,
)
from ledger_kernel.services.account_service import AccountResolver, AccountService
from ledger_kernel.services.auditor_service import AuditorService
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.inventory_ledger import InventoryLedger, IssuePlan
from ledger_kernel.services.journal_writer import JournalWriter, ResolvedLine

logger = get_logger("services.posting_engine")


def find_original_entries(
    session: Session,
    tenant_id: str,
    company_id: str,
    source_type: str,
    source_ref: str,
    lock: bool = False,
) -> list[JournalEntry]:
    """Non-mirror entries written for one source document."""
    query = (
        select(JournalEntry)
        .where(
            JournalEntry.tenant_id == tenant_id,
            JournalEntry.company_id == company_id,
            JournalEntry.source_type == source_type,
            JournalEntry.source_ref == source_ref,
            JournalEntry.reversal_of_id.is_(None),
        )
        .order_by(JournalEntry.created_at, JournalEntry.id)
    )
    if lock:
        query = query.with_for_update()
    return list(session.execute(query).scalars().all())


def resolve_currency(requested: str | None, settings: PostingSettings) -> str:
    code = requested or settings.default_currency
    try:
        return CurrencyRegistry.validate(code)
    except ValueError as exc:
        raise ValidationError("currency", str(exc)) from None


class PostingEngine(BaseService):
    """
    Posts business documents to the general ledger.

    Usage:
        engine = PostingEngine(session, settings=settings, clock=clock)
        result = engine.post(request)

    With ``auto_commit=False`` the engine only releases its savepoint; the
    caller commits (module services use this to mark their own document
    row in the same transaction).
    """

    def __init__(
        self,
        session: Session,
        resolver: AccountResolver | None = None,
        settings: PostingSettings | None = None,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, auto_commit=auto_commit)
        self._settings = settings or PostingSettings()
        self._clock = clock or SystemClock()
        self._auditor = AuditorService(session, self._clock)
        self._accounts = AccountService(
            session, self._clock, self._settings, self._auditor
        )
        self._resolver = resolver or self._accounts.resolver
        self._writer = JournalWriter(session, self._clock)
        self._inventory = InventoryLedger(session, self._settings)

    @property
    def settings(self) -> PostingSettings:
        return self._settings

    @property
    def clock(self) -> Clock:
        return self._clock

    def post(self, request: PostingRequest) -> PostedResult:
        """
        Post ``request`` as one balanced journal entry.

        Postconditions:
            - On success the entry is POSTED and, with auto_commit, committed.
            - On failure nothing written by this call remains.
        """
        correlation_id = uuid4()
        with LogContext.bind(
            tenant_id=request.tenant_id,
            company_id=request.company_id,
            correlation_id=correlation_id,
            actor_id=request.actor_id,
        ):
            logger.info(
                "posting_started",
                extra={
                    "source_type": request.source_type,
                    "source_ref": request.source_ref,
                    "leg_count": len(request.legs),
                    "inventory_count": len(request.inventory),
                },
            )
            t0 = time.monotonic()

            try:
                with self._atomic("post", request.source_ref):
                    result = self._do_post(request, correlation_id)
            except PersistenceError as exc:
                if isinstance(exc.__cause__, IntegrityError):
                    existing = self._posted_entry(request)
                    if existing is not None:
                        logger.warning(
                            "posting_rejected",
                            extra={
                                "error_code": AlreadyPostedError.code,
                                "source_ref": request.source_ref,
                                "concurrent": True,
                            },
                        )
                        raise AlreadyPostedError(
                            request.source_ref, str(existing.id)
                        ) from exc
                raise
            except LedgerError as exc:
                logger.warning(
                    "posting_rejected",
                    extra={
                        "error_code": exc.code,
                        "source_ref": request.source_ref,
                        "detail": str(exc),
                    },
                )
                raise

            logger.info(
                "posting_completed",
                extra={
                    "entry_id": str(result.journal_entry_id),
                    "line_count": result.line_count,
                    "total": str(result.total_debits),
                    "movement_count": result.inventory_movement_count,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return result

    def _posted_entry(self, request: PostingRequest) -> JournalEntry | None:
        for entry in find_original_entries(
            self.session,
            request.tenant_id,
            request.company_id,
            request.source_type,
            request.source_ref,
        ):
            if JournalEntryStatus(entry.status) != JournalEntryStatus.DRAFT:
                return entry
        return None

    def _guard_not_posted(self, request: PostingRequest) -> None:
        existing = find_original_entries(
            self.session,
            request.tenant_id,
            request.company_id,
            request.source_type,
            request.source_ref,
            lock=True,
        )
        for entry in existing:
            if JournalEntryStatus(entry.status) == JournalEntryStatus.POSTED:
                raise AlreadyPostedError(request.source_ref, str(entry.id))
        if existing and all(
            JournalEntryStatus(e.status) == JournalEntryStatus.VOIDED for e in existing
        ):
            raise AlreadyVoidedError(request.source_ref)

    def _do_post(self, request: PostingRequest, correlation_id: UUID) -> PostedResult:
        self._guard_not_posted(request)

        currency = resolve_currency(request.currency, self._settings)
        amounts = [
            round_money(leg.amount, currency, self._settings.rounding)
            for leg in request.legs
        ]
        if not request.inventory and all(amount == 0 for amount in amounts):
            raise ZeroValueDocumentError(request.source_ref)

        plan = IssuePlan()
        if request.inventory:
            plan = self._inventory.plan_issue(
                request.tenant_id, request.company_id, request.inventory, currency
            )

        # Zero legs write no line and need no account
        purposes: list[AccountPurpose] = [
            leg.purpose
            for leg, amount in zip(request.legs, amounts)
            if leg.purpose is not None and amount != 0
        ]
        if plan.cogs_total > 0:
            purposes.extend([AccountPurpose.COGS, AccountPurpose.INVENTORY])

        accounts, provisioned = self._accounts.require_accounts(
            request.tenant_id,
            request.company_id,
            purposes,
            request.actor_id,
            resolver=self._resolver,
        )

        lines: list[ResolvedLine] = []
        for leg, amount in zip(request.legs, amounts):
            if amount == 0:
                continue
            if leg.purpose is not None:
                account_id = accounts[leg.purpose].id
            else:
                account_id = self._accounts.get_account(
                    request.tenant_id, request.company_id, leg.account_id
                ).id
            lines.append(ResolvedLine(account_id, leg.side, amount, leg.memo))

        if plan.cogs_total > 0:
            lines.append(
                ResolvedLine(
                    accounts[AccountPurpose.COGS].id,
                    LineSide.DEBIT,
                    plan.cogs_total,
                    "Cost of goods sold",
                )
            )
            lines.append(
                ResolvedLine(
                    accounts[AccountPurpose.INVENTORY].id,
                    LineSide.CREDIT,
                    plan.cogs_total,
                    "Inventory issued",
                )
            )

        entry = self._writer.create_draft(
            tenant_id=request.tenant_id,
            company_id=request.company_id,
            entry_date=request.entry_date,
            source_type=request.source_type,
            source_ref=request.source_ref,
            correlation_id=correlation_id,
            currency=currency,
            lines=lines,
            actor_id=request.actor_id,
            memo=request.memo,
        )

        movements = self._inventory.apply_issue(
            plan,
            request.source_ref,
            correlation_id,
            request.entry_date,
            request.actor_id,
        )

        subledger_id = None
        if request.subledger is not None:
            subledger_id = self._write_subledger(
                request, entry.id, correlation_id, currency
            ).id

        self._auditor.record_posting(entry, request.actor_id, len(entry.lines))
        self._writer.post(entry)

        return PostedResult(
            journal_entry_id=entry.id,
            correlation_id=correlation_id,
            source_type=request.source_type,
            source_ref=request.source_ref,
            line_count=len(entry.lines),
            total_debits=entry.total_debits,
            inventory_movement_count=len(movements),
            cogs_total=plan.cogs_total,
            subledger_transaction_id=subledger_id,
            provisioned_purposes=tuple(p.value for p in provisioned),
        )

    def _write_subledger(
        self,
        request: PostingRequest,
        entry_id: UUID,
        correlation_id: UUID,
        currency: str,
    ) -> SubledgerTransaction:
        instruction = request.subledger
        txn = SubledgerTransaction(
            tenant_id=request.tenant_id,
            company_id=request.company_id,
            transaction_type=instruction.transaction_type,
            amount=round_money(instruction.amount, currency, self._settings.rounding),
            currency=currency,
            transaction_date=request.entry_date,
            status=SubledgerTransactionStatus.POSTED,
            description=instruction.description,
            party_ref=instruction.party_ref,
            source_ref=request.source_ref,
            correlation_id=correlation_id,
            journal_entry_id=entry_id,
            created_by_id=request.actor_id,
        )
        self.session.add(txn)
        self.session.flush()
        return txn
