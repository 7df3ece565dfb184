"""Concrete adapters for the interfaces in :mod:`docrag.interfaces`."""
