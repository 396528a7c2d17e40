"""Subscription lifecycle and billing-sync services."""
