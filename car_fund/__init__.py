"""
Car Fund Tracker - Source Package

A personal budgeting tracker for one person saving towards a car.
Money lives in three buckets (cash, buffer, car fund); every change
is recorded in a ledger and mirrored to the cloud when signed in.

DESIGN PRINCIPLES:
1. Balances and ledger entries change together or not at all
2. Local storage is always the source of truth
3. Remote failures never touch local state
4. Sync is whole-document, last writer wins
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Car Fund Tracker Team"
