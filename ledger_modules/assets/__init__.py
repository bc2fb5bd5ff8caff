"""
Fixed Assets Module.

Handles asset acquisition, monthly depreciation and disposal.

Depreciation methods:
- Straight-line
- Double-declining balance
- Sum-of-years'-digits
- Units-of-production
"""

from ledger_modules.assets.models import (
    AcquisitionResult,
    AssetStatus,
    DepreciationMethod,
    DepreciationRunResult,
    DepreciationSummary,
    DepreciationTerms,
    DisposalMethod,
    DisposalRequest,
    DisposalResult,
    PaymentMethod,
    ScheduleRow,
)
from ledger_modules.assets.service import FixedAssetService

__all__ = [
    "AcquisitionResult",
    "AssetStatus",
    "DepreciationMethod",
    "DepreciationRunResult",
    "DepreciationSummary",
    "DepreciationTerms",
    "DisposalMethod",
    "DisposalRequest",
    "DisposalResult",
    "FixedAssetService",
    "PaymentMethod",
    "ScheduleRow",
]
