"""
Household Ledger - Source Package

A family expense tracker: purchases, recurring bills, a shared shopping
list and spend analytics, mirrored to a hosted table-per-entity backend.

DESIGN PRINCIPLES:
1. Local state is the source of truth for the session
2. Remote writes are best-effort and never block the user
3. Every view is derived from one state tree
4. AI helps, but the app works without it
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Household Ledger Team"
