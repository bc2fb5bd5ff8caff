"""
Ledger Kernel

The double-entry posting and reversal core of a multi-tenant accounting
back end:
- Purpose-based account resolution
- Balanced, atomic posting of business documents
- Inventory movements and sub-ledger transactions committed with the entry
- Voiding by mirror entries; nothing is ever deleted
"""

__version__ = "0.1.0"
