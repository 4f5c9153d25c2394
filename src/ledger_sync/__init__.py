"""Sync Tally receivable/payable ledgers and age their outstanding balances."""
