"""
Kakeibo - Source Package

A household budgeting assistant: record expenses and incomes,
review monthly totals against budgets, and ask Gemini for help.

DESIGN PRINCIPLES:
1. Memory is authoritative, storage is best-effort
2. Derived numbers are recomputed, never stored
3. AI suggests, the user decides what gets saved
4. A single failed operation never ends the session
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Kakeibo Team"
