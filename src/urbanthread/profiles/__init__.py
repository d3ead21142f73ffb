"""User-facing views over the reputation ledger."""
