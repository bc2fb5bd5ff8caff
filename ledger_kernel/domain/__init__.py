"""Pure domain layer: enums, DTOs, money rounding and the clock."""

from ledger_kernel.domain.accounts import AccountPurpose, AccountType
from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.currency import CurrencyRegistry, round_money
from ledger_kernel.domain.posting import (
    InventoryInstruction,
    LineSide,
    PostedResult,
    PostingLeg,
    PostingRequest,
    SubledgerInstruction,
    VoidResult,
)

__all__ = [
    "AccountPurpose",
    "AccountType",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "CurrencyRegistry",
    "round_money",
    "InventoryInstruction",
    "LineSide",
    "PostedResult",
    "PostingLeg",
    "PostingRequest",
    "SubledgerInstruction",
    "VoidResult",
]
