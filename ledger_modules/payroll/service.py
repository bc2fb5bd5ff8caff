"""
Payroll Module Service (``ledger_modules.payroll.service``).

Responsibility
--------------
Posts payroll runs to the general ledger and voids them.  The run is
reduced to legs here; persistence is delegated to the kernel
``PostingEngine`` and ``ReversalService``.

Entry shape::

    Dr SALARY_EXPENSE        gross pay
    Dr PAYROLL_TAX_EXPENSE   employer taxes
    Cr PAYROLL_LIABILITY     each withholding
    Cr PAYROLL_LIABILITY     each deduction
    Cr PAYROLL_LIABILITY     employer taxes
    Cr SALARIES_PAYABLE      net pay

Architecture position
---------------------
**Modules layer** -- thin ERP glue.  Owns the transaction boundary; the
kernel engines run with ``auto_commit=False``.

Failure modes
-------------
* ``ValidationError`` from ``PayrollRun`` construction.
* ``AlreadyPostedError`` when ``run_ref`` was posted before.
* Anything the kernel engines raise; nothing is left behind.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.accounts import AccountPurpose
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.posting import (
    PostingLeg,
    PostingRequest,
    SubledgerInstruction,
    VoidResult,
)
from ledger_kernel.domain.settings import PostingSettings
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.account_service import AccountResolver
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.posting_engine import PostingEngine, resolve_currency
from ledger_kernel.services.reversal_service import ReversalService
from ledger_modules.payroll.models import PayrollPostingResult, PayrollRun

logger = get_logger("modules.payroll.service")

SOURCE_TYPE_PAYROLL = "payroll_run"
SUBLEDGER_TYPE_PAYROLL = "payroll"


def payroll_legs(run: PayrollRun) -> tuple[PostingLeg, ...]:
    """
    Balanced legs for ``run``; zero components produce zero legs.

    Pass a run already rounded with ``PayrollRun.rounded`` so that net pay
    is the difference of rounded amounts.
    """
    legs = [
        PostingLeg.debit(AccountPurpose.SALARY_EXPENSE, run.gross_pay, "Gross pay"),
        PostingLeg.debit(
            AccountPurpose.PAYROLL_TAX_EXPENSE, run.employer_taxes, "Employer taxes"
        ),
    ]
    for component in run.withholdings + run.deductions:
        legs.append(
            PostingLeg.credit(
                AccountPurpose.PAYROLL_LIABILITY, component.amount, component.name
            )
        )
    legs.append(
        PostingLeg.credit(
            AccountPurpose.PAYROLL_LIABILITY, run.employer_taxes, "Employer taxes payable"
        )
    )
    legs.append(PostingLeg.credit(AccountPurpose.SALARIES_PAYABLE, run.net_pay, "Net pay"))
    return tuple(legs)


class PayrollPostingService(BaseService):
    """Posts and voids payroll runs."""

    def __init__(
        self,
        session: Session,
        settings: PostingSettings | None = None,
        clock: Clock | None = None,
        resolver: AccountResolver | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, auto_commit=auto_commit)
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

    def post_payroll_run(
        self,
        tenant_id: str,
        company_id: str,
        run: PayrollRun,
        actor_id: UUID,
        create_transaction: bool = True,
    ) -> PayrollPostingResult:
        """
        Post one payroll run dated ``run.pay_date``.

        Every amount is rounded to the currency's minor unit before net pay
        is derived, so sub-cent inputs still produce a balanced entry.  With
        ``create_transaction`` a ``payroll`` sub-ledger transaction for the
        net pay is written alongside the entry.
        """
        currency = resolve_currency(run.currency, self._settings)
        run = run.rounded(currency, self._settings.rounding)

        logger.info("payroll_run_started", extra={
            "run_ref": run.run_ref,
            "gross_pay": str(run.gross_pay),
            "employer_taxes": str(run.employer_taxes),
            "withholding_count": len(run.withholdings),
            "deduction_count": len(run.deductions),
        })

        subledger = None
        if create_transaction:
            subledger = SubledgerInstruction(
                transaction_type=SUBLEDGER_TYPE_PAYROLL,
                amount=run.net_pay,
                description=f"Payroll {run.run_ref}",
            )

        with self._atomic("post_payroll_run", run.run_ref):
            posted = self._poster.post(
                PostingRequest(
                    tenant_id=tenant_id,
                    company_id=company_id,
                    entry_date=run.pay_date,
                    source_type=SOURCE_TYPE_PAYROLL,
                    source_ref=run.run_ref,
                    actor_id=actor_id,
                    currency=currency,
                    memo=run.memo or f"Payroll {run.run_ref}",
                    legs=payroll_legs(run),
                    subledger=subledger,
                )
            )

        logger.info("payroll_run_posted", extra={
            "run_ref": run.run_ref,
            "entry_id": str(posted.journal_entry_id),
            "net_pay": str(run.net_pay),
        })
        return PayrollPostingResult(
            run_ref=run.run_ref,
            journal_entry_id=posted.journal_entry_id,
            correlation_id=posted.correlation_id,
            gross_pay=run.gross_pay,
            employer_taxes=run.employer_taxes,
            net_pay=run.net_pay,
            line_count=posted.line_count,
        )

    def void_payroll_run(
        self,
        tenant_id: str,
        company_id: str,
        run_ref: str,
        reason: str,
        actor_id: UUID,
        void_date: date | None = None,
    ) -> VoidResult:
        with self._atomic("void_payroll_run", run_ref):
            result = self._reversal.void(
                tenant_id=tenant_id,
                company_id=company_id,
                source_type=SOURCE_TYPE_PAYROLL,
                source_ref=run_ref,
                reason=reason,
                actor_id=actor_id,
                void_date=void_date,
            )
        logger.info("payroll_run_voided", extra={
            "run_ref": run_ref,
            "reversed_entry_count": result.reversed_entry_count,
        })
        return result
