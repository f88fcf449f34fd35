"""Cellar Commerce: catalog, cart, checkout and inventory backend."""

__version__ = "1.0.0"
