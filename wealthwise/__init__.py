"""
WealthWise Ledger Intake - Source Package

Turns free text, spoken-style descriptions and CSV rows into confirmed
ledger transactions against a small directory of accounts.

DESIGN PRINCIPLES:
1. AI suggests → Human edits → Committer applies
2. Nothing touches a balance until the user confirms the batch
3. A commit is all-or-nothing
4. Every step is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "WealthWise Team"
