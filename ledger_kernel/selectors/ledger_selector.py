"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries: trial balance and account balances
    derived from journal lines at query time.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.

Invariants enforced:
    - No stored balances.  Every figure is summed from JournalLine rows.
    - POSTED and VOIDED entries both count.  A voided entry keeps its lines
      and its POSTED mirror cancels them, so voided documents net to zero.
    - Trial balance debits equal credits for any consistent ledger.

Audit relevance:
    This is the read path auditors use to confirm that voids neutralized
    their originals instead of deleting them.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.accounts import AccountType
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from ledger_kernel.selectors.base import BaseSelector

_LEDGER_STATUSES = (JournalEntryStatus.POSTED, JournalEntryStatus.VOIDED)


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True)
class TrialBalanceRow:
    """A single row in a trial balance report."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    debit_total: Decimal
    credit_total: Decimal

    @property
    def balance(self) -> Decimal:
        """Net balance (debits - credits)."""
        return self.debit_total - self.credit_total

    @property
    def normal_balance(self) -> Decimal:
        """Balance signed by the account type's normal side."""
        if self.account_type.is_debit_normal:
            return self.balance
        return -self.balance


@dataclass(frozen=True)
class AccountBalance:
    """Balance for a single account."""

    account_id: UUID
    debit_total: Decimal
    credit_total: Decimal
    line_count: int

    @property
    def balance(self) -> Decimal:
        """Net balance (debits - credits)."""
        return self.debit_total - self.credit_total


@dataclass(frozen=True)
class TrialBalance:
    as_of_date: date | None
    rows: tuple[TrialBalanceRow, ...]

    @property
    def total_debits(self) -> Decimal:
        return sum((row.debit_total for row in self.rows), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((row.credit_total for row in self.rows), Decimal("0"))

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits

    def row_for(self, account_code: str) -> TrialBalanceRow | None:
        for row in self.rows:
            if row.account_code == account_code:
                return row
        return None


class LedgerSelector(BaseSelector[JournalLine]):
    """
    Balance queries over journal lines.

    Non-goals:
        - No currency conversion; amounts are summed as recorded.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def trial_balance(
        self,
        tenant_id: str,
        company_id: str,
        as_of_date: date | None = None,
    ) -> TrialBalance:
        """One row per account with activity, ordered by account code."""
        debit_sum = func.coalesce(func.sum(JournalLine.debit), 0).label("debit_total")
        credit_sum = func.coalesce(func.sum(JournalLine.credit), 0).label("credit_total")

        query = (
            select(
                Account.id,
                Account.code,
                Account.name,
                Account.account_type,
                debit_sum,
                credit_sum,
            )
            .select_from(JournalLine)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .join(Account, JournalLine.account_id == Account.id)
            .where(
                JournalEntry.tenant_id == tenant_id,
                JournalEntry.company_id == company_id,
                JournalEntry.status.in_(_LEDGER_STATUSES),
            )
            .group_by(Account.id, Account.code, Account.name, Account.account_type)
            .order_by(Account.code)
        )

        if as_of_date is not None:
            query = query.where(JournalEntry.entry_date <= as_of_date)

        rows = tuple(
            TrialBalanceRow(
                account_id=row.id,
                account_code=row.code,
                account_name=row.name,
                account_type=AccountType(row.account_type),
                debit_total=_as_decimal(row.debit_total),
                credit_total=_as_decimal(row.credit_total),
            )
            for row in self.session.execute(query).all()
        )
        return TrialBalance(as_of_date=as_of_date, rows=rows)

    def account_balance(
        self,
        account_id: UUID,
        as_of_date: date | None = None,
    ) -> AccountBalance:
        """Debit and credit totals for one account (zeros if no activity)."""
        query = (
            select(
                func.coalesce(func.sum(JournalLine.debit), 0),
                func.coalesce(func.sum(JournalLine.credit), 0),
                func.count(JournalLine.id),
            )
            .select_from(JournalLine)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(
                JournalLine.account_id == account_id,
                JournalEntry.status.in_(_LEDGER_STATUSES),
            )
        )

        if as_of_date is not None:
            query = query.where(JournalEntry.entry_date <= as_of_date)

        debit_total, credit_total, line_count = self.session.execute(query).one()
        return AccountBalance(
            account_id=account_id,
            debit_total=_as_decimal(debit_total),
            credit_total=_as_decimal(credit_total),
            line_count=line_count,
        )

    def balance_by_code(
        self,
        tenant_id: str,
        company_id: str,
        account_code: str,
        as_of_date: date | None = None,
    ) -> Decimal:
        """Net (debits - credits) for an account looked up by code."""
        account_id = self.session.execute(
            select(Account.id).where(
                Account.tenant_id == tenant_id,
                Account.company_id == company_id,
                Account.code == account_code,
            )
        ).scalar_one_or_none()
        if account_id is None:
            return Decimal("0")
        return self.account_balance(account_id, as_of_date).balance
