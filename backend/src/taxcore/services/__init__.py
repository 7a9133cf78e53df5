"""
Services package - Business logic and external integrations.

Includes webhook invoice ingestion, invoice number allocation, owner
lookup and tax deadline tracking.
"""

from .allocator import InvoiceNumberAllocator, SqlInvoiceNumberAllocator
from .deadlines import TaxDeadlineService
from .directory import OwnerDirectory, SqlOwnerDirectory
from .ingestion import InvoiceIngestionService, parse_payload
from .normalize import FieldNormalizer

__all__ = [
    "FieldNormalizer",
    "InvoiceIngestionService",
    "InvoiceNumberAllocator",
    "OwnerDirectory",
    "SqlInvoiceNumberAllocator",
    "SqlOwnerDirectory",
    "TaxDeadlineService",
    "parse_payload",
]
