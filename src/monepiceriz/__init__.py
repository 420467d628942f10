"""Store selection, cart pricing and phone utilities for MonEpice&Riz."""

__version__ = "0.1.0"
