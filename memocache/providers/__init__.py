"""Concrete adapters for the interfaces in :mod:`memocache.interfaces`."""
