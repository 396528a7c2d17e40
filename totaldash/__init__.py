"""TotalDash subscription lifecycle and billing-sync engine."""
