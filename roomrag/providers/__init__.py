"""Concrete adapters for the interfaces in ``roomrag.interfaces``."""
