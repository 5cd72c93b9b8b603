"""
Splitbook - Source Package

Shared-expense tracking: log expenses, split them among participants,
and keep pairwise net balances that settlements bring back to zero.

DESIGN PRINCIPLES:
1. The expense list is the single source of truth
2. Balances are always derived, never stored
3. Settlements are ordinary expenses with a fixed shape
4. Fail early, fail visibly; nothing is retried behind the caller's back
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Splitbook Team"
