"""Relational persistence for compositions, catalog and price settings."""
