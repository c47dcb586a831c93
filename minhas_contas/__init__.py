"""
Minhas Contas - Source Package

A personal-finance tracker for monthly expenses and incomes,
kept per user in a hosted document store.

DESIGN PRINCIPLES:
1. Every operation runs on behalf of an explicit, signed-in user
2. Fail early, fail visibly
3. No silent corrections
4. Every write is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Minhas Contas Team"
