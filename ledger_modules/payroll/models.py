"""
Payroll Domain Models (``ledger_modules.payroll.models``).

Responsibility
--------------
Frozen dataclass value objects for a payroll run as the ledger sees it:
gross pay, employer taxes, employee withholdings and deductions, and the
resulting net pay.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by
``PayrollPostingService``.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* Withholdings plus deductions never exceed gross pay, so net pay is
  non-negative.
* Net pay is derived from the components, so a run rounded with
  ``PayrollRun.rounded`` balances to the cent.

Audit relevance
---------------
* Withholding breakdowns stay traceable: each one becomes its own
  journal line carrying the component name as memo.
"""

from dataclasses import dataclass, replace
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from ledger_kernel.domain.currency import round_money
from ledger_kernel.exceptions import ValidationError


@dataclass(frozen=True)
class PayrollComponent:
    """A named withholding or deduction (``"Federal income tax"``, ``"401k"``)."""
    name: str
    amount: Decimal

    def __post_init__(self) -> None:
        if not self.name:
            raise ValidationError("name", "is required")
        if self.amount < 0:
            raise ValidationError("amount", f"{self.name}: must be non-negative")


@dataclass(frozen=True)
class PayrollRun:
    """
    One pay run, already aggregated over employees.

    ``run_ref`` is the source reference of the run's journal entry.
    """
    run_ref: str
    pay_date: date
    gross_pay: Decimal
    employer_taxes: Decimal = Decimal("0")
    withholdings: tuple[PayrollComponent, ...] = ()
    deductions: tuple[PayrollComponent, ...] = ()
    currency: str | None = None
    memo: str | None = None

    def __post_init__(self) -> None:
        if not self.run_ref:
            raise ValidationError("run_ref", "is required")
        if self.gross_pay < 0:
            raise ValidationError("gross_pay", "must be non-negative")
        if self.employer_taxes < 0:
            raise ValidationError("employer_taxes", "must be non-negative")
        object.__setattr__(self, "withholdings", tuple(self.withholdings))
        object.__setattr__(self, "deductions", tuple(self.deductions))
        if self.net_pay < 0:
            raise ValidationError(
                "withholdings", "withholdings and deductions exceed gross pay"
            )

    @property
    def total_withholdings(self) -> Decimal:
        return sum((w.amount for w in self.withholdings), Decimal("0"))

    @property
    def total_deductions(self) -> Decimal:
        return sum((d.amount for d in self.deductions), Decimal("0"))

    @property
    def net_pay(self) -> Decimal:
        return self.gross_pay - self.total_withholdings - self.total_deductions

    def rounded(self, currency: str, rounding: str = ROUND_HALF_UP) -> "PayrollRun":
        """Copy of the run with every amount rounded to the minor unit of ``currency``."""

        def _round(amount: Decimal) -> Decimal:
            return round_money(amount, currency, rounding)

        return replace(
            self,
            gross_pay=_round(self.gross_pay),
            employer_taxes=_round(self.employer_taxes),
            withholdings=tuple(
                PayrollComponent(w.name, _round(w.amount)) for w in self.withholdings
            ),
            deductions=tuple(
                PayrollComponent(d.name, _round(d.amount)) for d in self.deductions
            ),
        )


@dataclass(frozen=True)
class PayrollPostingResult:
    run_ref: str
    journal_entry_id: UUID
    correlation_id: UUID
    gross_pay: Decimal
    employer_taxes: Decimal
    net_pay: Decimal
    line_count: int
