"""Inventory health alerting for pharmacy stock levels."""
