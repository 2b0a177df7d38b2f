"""Identity reconciliation over a contact graph."""

__version__ = "0.1.0"
