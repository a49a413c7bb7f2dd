"""Rent-roll spreadsheet importer (tenants + leases)."""

__version__ = "0.1.0"
