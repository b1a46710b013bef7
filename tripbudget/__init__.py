"""
Trip Budget - Source Package

A multi-currency travel expense engine: trips, expenses, categories and
budgets held in memory, mirrored to a remote store, and summarized into
totals, burn rate, category breakdowns and spending trends.

DESIGN PRINCIPLES:
1. Mutations build new snapshots, never edit old ones
2. Invariants are checked before anything changes
3. Local state first, remote save in the background
4. Network failures are reported, never thrown at the caller
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Trip Budget Team"
