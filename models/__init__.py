"""
Data models for the quotation artifact server.

This module contains:
- Quotation / Inquiry: SQLAlchemy records (the authoritative state)
- InquiryRef: tagged reference from a quotation to its inquiry
- PricingRow / PricingView: flattened builder input
- BuiltDocument / ServedArtifact: builder output and request result

Value objects are frozen dataclasses, safe to share across threads.
"""

from .base import Base, utcnow, is_identifier
from .inquiry import Inquiry, InquiryRef, InquiryRefKind
from .quotation import Quotation, QuotationStatus, DEFAULT_TERMS
from .artifact import ArtifactSource, PricingRow, PricingView, BuiltDocument, ServedArtifact

__all__ = [
    # ORM
    "Base",
    "Inquiry",
    "Quotation",
    "QuotationStatus",
    "DEFAULT_TERMS",
    # References
    "InquiryRef",
    "InquiryRefKind",
    # Value objects
    "ArtifactSource",
    "PricingRow",
    "PricingView",
    "BuiltDocument",
    "ServedArtifact",
    # Helpers
    "utcnow",
    "is_identifier",
]
