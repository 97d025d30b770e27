"""Diff, change review and version ledger services."""
