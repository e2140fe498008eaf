"""
AtaBank Console Banking Simulator

A single-user console bank with Decimal-precise balances, an append-only
transaction ledger backed by SQLite, and foreign currency purchases against
a cached exchange rate feed.
"""

__version__ = "1.0.0"
