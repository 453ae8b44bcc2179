"""
Expense Tracker - Source Package

A local-first personal and shared expense tracker core.
Expenses live in a durable on-disk store, every change is snapshotted
into a bounded backup log, and data moves in and out as JSON or CSV.

DESIGN PRINCIPLES:
1. The user's edit always lands, even when the backup step hiccups
2. Every mutation is undoable through a backup
3. Imports are tolerant, exports are exact
4. One store handle per process, passed explicitly
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
