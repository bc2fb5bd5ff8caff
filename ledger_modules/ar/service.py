"""
Accounts Receivable Module Service (``ledger_modules.ar.service``).

Responsibility
--------------
Creates customer invoices, posts them to the general ledger and voids
them.  Line amounts are computed by ``ledger_modules.ar.helpers``; journal
persistence is delegated to the kernel ``PostingEngine`` and
``ReversalService``.

Architecture position
---------------------
**Modules layer** -- thin ERP glue.  ``InvoicePostingService`` is the sole
public entry point for invoice postings.

Invariants enforced
-------------------
* Each public method owns the transaction boundary; the kernel engines
  run with ``auto_commit=False`` so the invoice row, its activity record
  and every ledger write commit together or not at all.
* The invoice number is the source reference: an invoice is posted at
  most once and voided at most once.
* Legs are sums of per-line rounded amounts:
      Dr AR                total
      Dr DISCOUNT          line discounts
      Cr REVENUE           gross line amounts (+ shipping)
      Cr TAX_PAYABLE       line taxes
  plus a COGS / INVENTORY pair for physical product lines.

Failure modes
-------------
* ``AlreadyPostedError`` / ``AlreadyVoidedError`` / ``DocumentNotPostedError``.
* ``TaxRateNotFoundError`` from the tax-rate resolver at creation.
* Anything the kernel engines raise; the invoice keeps its prior status.

Audit relevance
---------------
Every status change writes an ``InvoiceActivity`` row with the acting user
and, for voids, the reason.  The kernel adds JOURNAL_POSTED /
JOURNAL_VOIDED events to the audit chain.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.accounts import AccountPurpose
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.posting import (
    InventoryInstruction,
    PostingLeg,
    PostingRequest,
    SubledgerInstruction,
)
from ledger_kernel.domain.settings import PostingSettings
from ledger_kernel.exceptions import (
    AlreadyPostedError,
    AlreadyVoidedError,
    DocumentNotPostedError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.account_service import AccountResolver
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.posting_engine import PostingEngine, resolve_currency
from ledger_kernel.services.reversal_service import ReversalService
from ledger_modules.ar.helpers import compute_line, compute_totals
from ledger_modules.ar.models import (
    InvoiceActivityType,
    InvoiceLineInput,
    InvoicePostingResult,
    InvoiceStatus,
    InvoiceVoidResult,
)
from ledger_modules.ar.orm import Invoice, InvoiceActivity, InvoiceLine
from ledger_modules.ar.tax import TaxRateResolver

logger = get_logger("modules.ar.service")

SOURCE_TYPE_INVOICE = "invoice"
SUBLEDGER_TYPE_INVOICE = "invoice"

_ZERO = Decimal("0")


def _dec(value) -> Decimal:
    return Decimal(str(value)) if value is not None else _ZERO


class InvoicePostingService(BaseService):
    """
    Posts and voids customer invoices.

    Usage::

        service = InvoicePostingService(
            session, StaticTaxRateResolver(build_tax_rates(config)),
            settings=settings, clock=clock,
        )
        invoice = service.create_invoice(tenant_id, company_id, "INV-1001", ...)
        posted = service.post_invoice(invoice.id, actor_id)
        service.void_invoice(invoice.id, "Billed twice", actor_id)
    """

    def __init__(
        self,
        session: Session,
        tax_rates: TaxRateResolver,
        settings: PostingSettings | None = None,
        clock: Clock | None = None,
        resolver: AccountResolver | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, auto_commit=auto_commit)
        self._tax_rates = tax_rates
        self._settings = settings or PostingSettings()
        self._clock = clock or SystemClock()

        # Kernel engines (auto_commit=False -- we own the boundary)
        self._poster = PostingEngine(
            session,
            resolver=resolver,
            settings=self._settings,
            clock=self._clock,
            auto_commit=False,
        )
        self._reversal = ReversalService(
            session, settings=self._settings, clock=self._clock, auto_commit=False
        )

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_invoice(self, invoice_id: UUID, lock: bool = False) -> Invoice:
        query = select(Invoice).where(Invoice.id == invoice_id)
        if lock:
            query = query.with_for_update()
        invoice = self.session.execute(query).scalar_one_or_none()
        if invoice is None:
            raise ValidationError("invoice_id", f"unknown invoice {invoice_id}")
        return invoice

    def _number_taken(self, tenant_id: str, company_id: str, invoice_number: str) -> bool:
        return self.session.execute(
            select(Invoice.id).where(
                Invoice.tenant_id == tenant_id,
                Invoice.company_id == company_id,
                Invoice.invoice_number == invoice_number,
            )
        ).first() is not None

    def _record_activity(
        self,
        invoice: Invoice,
        activity_type: InvoiceActivityType,
        description: str,
        actor_id: UUID,
    ) -> None:
        self.session.add(
            InvoiceActivity(
                invoice_id=invoice.id,
                activity_type=activity_type.value,
                description=description,
                performed_by=actor_id,
                occurred_at=self._clock.now(),
                created_by_id=actor_id,
            )
        )

    # =========================================================================
    # Creation
    # =========================================================================

    def create_invoice(
        self,
        tenant_id: str,
        company_id: str,
        invoice_number: str,
        customer_ref: str,
        issue_date: date,
        lines: Sequence[InvoiceLineInput],
        actor_id: UUID,
        currency: str | None = None,
        due_date: date | None = None,
        shipping: Decimal = Decimal("0"),
        memo: str | None = None,
    ) -> Invoice:
        """
        Record a DRAFT invoice with its computed line amounts.

        Raises:
            ValidationError: No lines, negative shipping or a duplicate number.
            TaxRateNotFoundError: A line names an unknown tax code.
        """
        if not lines:
            raise ValidationError("lines", "an invoice needs at least one line")
        if shipping < 0:
            raise ValidationError("shipping", "must be non-negative")
        currency = resolve_currency(currency, self._settings)
        rounding = self._settings.rounding

        amounts = []
        for line in lines:
            rate = (
                self._tax_rates.rate_for(tenant_id, company_id, line.tax_code)
                if line.tax_code
                else _ZERO
            )
            amounts.append(
                compute_line(
                    line.quantity, line.unit_price, line.discount, rate, currency, rounding
                )
            )
        totals = compute_totals(amounts, shipping, currency, rounding)

        with self._atomic("create_invoice", invoice_number):
            if self._number_taken(tenant_id, company_id, invoice_number):
                raise ValidationError(
                    "invoice_number", f"{invoice_number} already exists"
                )
            invoice = Invoice(
                tenant_id=tenant_id,
                company_id=company_id,
                invoice_number=invoice_number,
                customer_ref=customer_ref,
                issue_date=issue_date,
                due_date=due_date,
                currency=currency,
                status=InvoiceStatus.DRAFT.value,
                subtotal=totals.subtotal,
                discount_total=totals.discount_total,
                tax_total=totals.tax_total,
                shipping=totals.shipping,
                total=totals.total,
                memo=memo,
                created_by_id=actor_id,
            )
            self.session.add(invoice)
            self.session.flush()

            for line_no, (line, computed) in enumerate(zip(lines, amounts), start=1):
                self.session.add(
                    InvoiceLine(
                        invoice_id=invoice.id,
                        line_no=line_no,
                        description=line.description,
                        product_id=line.product_id,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        discount=computed.discount,
                        tax_code=line.tax_code,
                        tax_rate=computed.tax_rate,
                        net_amount=computed.net,
                        tax_amount=computed.tax,
                        created_by_id=actor_id,
                    )
                )
            self._record_activity(
                invoice,
                InvoiceActivityType.CREATED,
                f"Invoice {invoice_number} created",
                actor_id,
            )
            self.session.flush()
            self.session.refresh(invoice)

        logger.info("invoice_created", extra={
            "invoice_id": str(invoice.id),
            "invoice_number": invoice_number,
            "line_count": len(lines),
            "total": str(totals.total),
        })
        return invoice

    # =========================================================================
    # Posting
    # =========================================================================

    def _build_request(
        self,
        invoice: Invoice,
        actor_id: UUID,
        entry_date: date,
        create_transaction: bool,
    ) -> PostingRequest:
        gross = _ZERO
        discount = _ZERO
        tax = _ZERO
        inventory: list[InventoryInstruction] = []
        for line in invoice.lines:
            net = _dec(line.net_amount)
            line_discount = _dec(line.discount)
            gross += net + line_discount
            discount += line_discount
            tax += _dec(line.tax_amount)
            if line.product_id is not None:
                inventory.append(
                    InventoryInstruction(
                        product_id=line.product_id,
                        quantity=_dec(line.quantity),
                        memo=line.description,
                    )
                )
        shipping = _dec(invoice.shipping)
        total = gross - discount + tax + shipping

        subledger = None
        if create_transaction:
            subledger = SubledgerInstruction(
                transaction_type=SUBLEDGER_TYPE_INVOICE,
                amount=total,
                description=f"Invoice {invoice.invoice_number}",
                party_ref=invoice.customer_ref,
            )

        return PostingRequest(
            tenant_id=invoice.tenant_id,
            company_id=invoice.company_id,
            entry_date=entry_date,
            source_type=SOURCE_TYPE_INVOICE,
            source_ref=invoice.invoice_number,
            actor_id=actor_id,
            currency=invoice.currency,
            memo=invoice.memo or f"Invoice {invoice.invoice_number}",
            legs=(
                PostingLeg.debit(AccountPurpose.AR, total, invoice.customer_ref),
                PostingLeg.debit(AccountPurpose.DISCOUNT, discount, "Discounts"),
                PostingLeg.credit(AccountPurpose.REVENUE, gross, "Sales"),
                PostingLeg.credit(AccountPurpose.REVENUE, shipping, "Shipping"),
                PostingLeg.credit(AccountPurpose.TAX_PAYABLE, tax, "Sales tax"),
            ),
            inventory=tuple(inventory),
            subledger=subledger,
        )

    def post_invoice(
        self,
        invoice_id: UUID,
        actor_id: UUID,
        create_transaction: bool = True,
        entry_date: date | None = None,
    ) -> InvoicePostingResult:
        """
        Post a DRAFT invoice and mark it POSTED in the same transaction.

        Args:
            create_transaction: Write the AR sub-ledger transaction too.
            entry_date: Defaults to the invoice's issue date.
        """
        with self._atomic("post_invoice", str(invoice_id)):
            invoice = self.get_invoice(invoice_id, lock=True)
            status = InvoiceStatus(invoice.status)
            if status == InvoiceStatus.POSTED:
                raise AlreadyPostedError(
                    invoice.invoice_number, str(invoice.journal_entry_id)
                )
            if status == InvoiceStatus.VOIDED:
                raise AlreadyVoidedError(invoice.invoice_number)

            logger.info("invoice_posting_started", extra={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "line_count": len(invoice.lines),
            })

            posted = self._poster.post(
                self._build_request(
                    invoice, actor_id, entry_date or invoice.issue_date, create_transaction
                )
            )

            invoice.status = InvoiceStatus.POSTED.value
            invoice.journal_entry_id = posted.journal_entry_id
            invoice.posted_at = self._clock.now()
            invoice.updated_by_id = actor_id
            self._record_activity(
                invoice,
                InvoiceActivityType.POSTED,
                f"Invoice posted as journal entry {posted.journal_entry_id}",
                actor_id,
            )
            self.session.flush()

        logger.info("invoice_posted", extra={
            "invoice_id": str(invoice.id),
            "entry_id": str(posted.journal_entry_id),
            "movement_count": posted.inventory_movement_count,
        })
        return InvoicePostingResult(
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            journal_entry_id=posted.journal_entry_id,
            correlation_id=posted.correlation_id,
            total=_dec(invoice.total),
            inventory_movement_count=posted.inventory_movement_count,
            cogs_total=posted.cogs_total,
            subledger_transaction_id=posted.subledger_transaction_id,
        )

    # =========================================================================
    # Voiding
    # =========================================================================

    def void_invoice(
        self,
        invoice_id: UUID,
        reason: str,
        actor_id: UUID,
        void_date: date | None = None,
    ) -> InvoiceVoidResult:
        """
        Void a POSTED invoice: mirror entries, stock restored, sub-ledger
        transaction voided, invoice marked VOIDED with an activity record.
        """
        if not reason or not reason.strip():
            raise ValidationError("reason", "a void reason is required")
        reason = reason.strip()
        void_date = void_date or self._clock.today()

        with self._atomic("void_invoice", str(invoice_id)):
            invoice = self.get_invoice(invoice_id, lock=True)
            status = InvoiceStatus(invoice.status)
            if status == InvoiceStatus.VOIDED:
                raise AlreadyVoidedError(invoice.invoice_number)
            if status == InvoiceStatus.DRAFT:
                raise DocumentNotPostedError(invoice.invoice_number)

            result = self._reversal.void(
                tenant_id=invoice.tenant_id,
                company_id=invoice.company_id,
                source_type=SOURCE_TYPE_INVOICE,
                source_ref=invoice.invoice_number,
                reason=reason,
                actor_id=actor_id,
                void_date=void_date,
            )

            invoice.status = InvoiceStatus.VOIDED.value
            invoice.voided_at = self._clock.now()
            invoice.void_reason = reason
            invoice.updated_by_id = actor_id
            self._record_activity(
                invoice,
                InvoiceActivityType.VOIDED,
                f"Invoice voided: {reason}",
                actor_id,
            )
            self.session.flush()

        logger.info("invoice_voided", extra={
            "invoice_id": str(invoice.id),
            "reversed_entry_count": result.reversed_entry_count,
            "reversed_movement_count": result.reversed_movement_count,
        })
        return InvoiceVoidResult(
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            voided_on=void_date,
            void=result,
        )
