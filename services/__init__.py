"""
Services layer for the quotation artifact server.

- RecordLocator: filename -> quotation, via an ordered matcher cascade
- DocumentBuilder: quotation + inquiry -> PDF bytes and canonical filename
- RegenerationService: serve-or-rebuild with one rebuild per quotation

Thread Model:
    Request threads (WSGI)
    └── RegenerationService.fetch() - bounded waits only

    Rebuild threads (one per in-flight quotation)
    └── own Session, own builder call, publish to a RebuildHandle
"""

from .record_locator import RecordLocator, LocatorMatch, resolve_inquiry
from .document_builder import DocumentBuilder, shape_pricing
from .regeneration_service import RegenerationService, RebuildRegistry, RebuildHandle

__all__ = [
    "RecordLocator",
    "LocatorMatch",
    "resolve_inquiry",
    "DocumentBuilder",
    "shape_pricing",
    "RegenerationService",
    "RebuildRegistry",
    "RebuildHandle",
]
