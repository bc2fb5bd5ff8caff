"""
Payroll Module (``ledger_modules.payroll``).

Posts aggregated payroll runs: salary expense and employer taxes against
withholding liabilities and net salaries payable.  Payroll has no tables
of its own; the journal entry is the record.
"""

from ledger_modules.payroll.models import PayrollComponent, PayrollPostingResult, PayrollRun
from ledger_modules.payroll.service import PayrollPostingService

__all__ = [
    "PayrollComponent",
    "PayrollPostingResult",
    "PayrollPostingService",
    "PayrollRun",
]
