"""
Household Ledger - Source Package

A local-first personal finance tracker for a two-person household.

DESIGN PRINCIPLES:
1. The remote store is the source of truth, the local cache is the fallback
2. Never discard user data, not even malformed data
3. Stale data with a visible "not connected" state beats an empty screen
4. Analytics are pure functions over the current view
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Household Ledger Team"
