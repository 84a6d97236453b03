"""
Ledger Engine - Source Package

The derivation and reconciliation core of a personal-finance tracker:
point-in-time balances, trend series, a scored health view, and safe
merging of bank-feed data into a user's hand-kept ledger.

DESIGN PRINCIPLES:
1. Derived figures are always recomputable from the store plus a date
2. Anchor balances belong to the user; reconciliation never overwrites them
3. Imported data before the cutoff is invisible and gets pruned
4. Scenario projections never touch stored data
5. Storage and bank-feed providers are swappable
"""

__version__ = "0.1.0"
__author__ = "Ledger Engine Team"
