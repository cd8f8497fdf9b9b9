"""
Household Ledger - shared household budget bookkeeping

Sessions shared between household members, bank accounts, planned incomes
and expenses, and monthly budgets that collect dated transactions. Every
month can be summarized as planned vs actual vs cleared balances, in
exact two-decimal arithmetic.

Fun fact: "budget" comes from the old French "bougette", a small leather
purse. Ours just happens to live in SQLite.
"""

from household_ledger.ledger import Ledger

__version__ = "0.1.0"
__all__ = ["Ledger", "__version__"]
