"""Service module exports."""

from . import export_csv, jars, ledger, money, reports, users

__all__ = ["export_csv", "jars", "ledger", "money", "reports", "users"]
