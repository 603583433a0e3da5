"""
Waqf Kernel

Money, ledger and fiscal-period core for endowment distributions:
- Integer minor-unit money with largest-remainder allocation
- Balanced double-entry journal persistence
- Period-scoped execution locking
- Append-only audit trail
"""

__version__ = "0.1.0"
