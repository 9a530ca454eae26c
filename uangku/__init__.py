"""
Uangku - Source Package

A personal finance ledger: accounts, income/expense transactions and
transfers between accounts, with balances and monthly statements
derived on demand.

DESIGN PRINCIPLES:
1. Balances are never stored, only computed
2. The ledger computations are pure and never validate
3. Forms validate → storage saves → audit records
4. Every change must be auditable
5. Storage layer is swappable
"""

__version__ = "0.1.0"
__author__ = "Uangku Team"
