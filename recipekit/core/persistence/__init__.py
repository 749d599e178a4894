"""Persistence — the recipe ledger file."""
