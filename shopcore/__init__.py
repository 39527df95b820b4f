"""Inventory-consistent checkout and bundle pricing."""

__version__ = "0.1.0"
