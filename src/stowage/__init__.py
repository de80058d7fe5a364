"""Stowage: pluggable batch allocation of ship cargo into warehouses."""

__version__ = "0.1.0"
