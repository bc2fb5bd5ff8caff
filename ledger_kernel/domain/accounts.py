"""
Account classification enums shared by the domain and the ORM layer.

Kept free of SQLAlchemy so posting requests can name purposes without
importing models.
"""

from enum import Enum


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"

    @property
    def is_debit_normal(self) -> bool:
        return self in (AccountType.ASSET, AccountType.EXPENSE)


class AccountPurpose(str, Enum):
    """Closed set of business-process roles an account can be mapped to.

    Account codes are company-specific; purposes are process-generic.  An
    unknown purpose string is rejected by ``AccountPurpose(value)`` rather
    than falling back to some default account.
    """

    AR = "AR"
    AP = "AP"
    CASH = "CASH"
    REVENUE = "REVENUE"
    DISCOUNT = "DISCOUNT"
    TAX_PAYABLE = "TAX_PAYABLE"
    INVENTORY = "INVENTORY"
    COGS = "COGS"
    FIXED_ASSET = "FIXED_ASSET"
    ACCUMULATED_DEPRECIATION = "ACCUMULATED_DEPRECIATION"
    DEPRECIATION_EXPENSE = "DEPRECIATION_EXPENSE"
    GAIN_ON_DISPOSAL = "GAIN_ON_DISPOSAL"
    LOSS_ON_DISPOSAL = "LOSS_ON_DISPOSAL"
    SALARY_EXPENSE = "SALARY_EXPENSE"
    PAYROLL_TAX_EXPENSE = "PAYROLL_TAX_EXPENSE"
    PAYROLL_LIABILITY = "PAYROLL_LIABILITY"
    SALARIES_PAYABLE = "SALARIES_PAYABLE"
