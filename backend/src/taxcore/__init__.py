"""
taxcore - Tax compliance core for small-business bookkeeping.

VAT decomposition, webhook invoice ingestion and Dutch tax deadline tracking.
"""

__version__ = "0.1.0"
