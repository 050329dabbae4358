"""Dock Tally - cargo manifest ingestion and master-list reconciliation"""

__version__ = "1.0.0"
