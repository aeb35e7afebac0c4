"""
Core module for the quotation artifact server.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy
- database: Engine/session lifecycle and readiness signal
- artifact_store: Filename-keyed PDF store with atomic writes
"""

from .exceptions import (
    QuotationArtifactError,
    DatabaseUnavailableError,
    DependencyNotReadyError,
    RebuildTimeoutError,
    ArtifactNotFoundError,
    BuildFailureError,
    PersistFailureError,
)
from .database import DatabaseManager
from .artifact_store import ArtifactStore

__all__ = [
    "QuotationArtifactError",
    "DatabaseUnavailableError",
    "DependencyNotReadyError",
    "RebuildTimeoutError",
    "ArtifactNotFoundError",
    "BuildFailureError",
    "PersistFailureError",
    "DatabaseManager",
    "ArtifactStore",
]
