"""
Custom exceptions for the quotation artifact server.

Exception Hierarchy:
    QuotationArtifactError (base)
    ├── DatabaseUnavailableError - Persistence layer could not be opened (startup, retried)
    ├── DependencyNotReadyError  - Persistence layer not ready at request time (503)
    │   └── RebuildTimeoutError  - Waited too long on an in-flight rebuild (503)
    ├── ArtifactNotFoundError    - Nothing resolves for a filename (404)
    ├── BuildFailureError        - Document builder could not produce bytes (500)
    └── PersistFailureError      - Artifact write or pointer update failed (500, retryable)

Usage:
    Everything raised below the HTTP layer is one of these classes.
    Routes map each class to a status code and a JSON error body built
    from ``message`` and ``details``.
"""

from typing import Optional, Dict, Any


class QuotationArtifactError(Exception):
    """
    Base exception for all quotation artifact errors.

    All custom exceptions inherit from this class, allowing callers to catch
    all application-specific errors with a single except clause if needed.
    """

    http_status = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """JSON error body for the HTTP layer."""
        body = {"success": False, "message": self.message}
        body.update(self.details)
        return body


# =============================================================================
# STARTUP ERRORS
# =============================================================================

class DatabaseUnavailableError(QuotationArtifactError):
    """
    The database could not be opened or its schema could not be created.

    Raised by DatabaseManager.initialize(). The background connector logs it
    and retries; requests arriving meanwhile see DependencyNotReadyError.
    """

    http_status = 503

    def __init__(self, database_url: str, cause: str):
        message = f"Database is not available: {cause}"
        details = {
            "database": database_url,
            "resolution": "Check DATABASE_URL and that the database server is reachable",
        }
        super().__init__(message, details)
        self.database_url = database_url


# =============================================================================
# RUNTIME ERRORS
# =============================================================================

class DependencyNotReadyError(QuotationArtifactError):
    """
    A dependency of the slow path is not ready yet.

    The persistence layer has not finished connecting, or a query failed at
    the database layer. Surfaced as 503 after a bounded wait, never dropped.
    """

    http_status = 503

    def __init__(
        self,
        message: str = "Persistence layer is not ready",
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = {"resolution": "Retry the request shortly"}
        error_details.update(details or {})
        super().__init__(message, error_details)


class RebuildTimeoutError(DependencyNotReadyError):
    """
    A request gave up waiting on an in-flight rebuild.

    The rebuild itself keeps running; the next request for the same
    artifact will most likely be served from the store.
    """

    def __init__(self, quotation_id: str, timeout_seconds: float):
        message = f"Artifact rebuild did not finish within {timeout_seconds:.1f}s"
        details = {
            "quotationId": quotation_id,
            "timeout_seconds": timeout_seconds,
        }
        super().__init__(message, details)
        self.quotation_id = quotation_id
        self.timeout_seconds = timeout_seconds


class ArtifactNotFoundError(QuotationArtifactError):
    """
    The requested artifact is absent and no record could rebuild it.

    Terminal answer, never retried automatically.
    """

    http_status = 404

    def __init__(
        self,
        filename: str,
        message: str = "Quotation PDF not found and cannot be regenerated",
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = {"filename": filename}
        error_details.update(details or {})
        super().__init__(message, error_details)
        self.filename = filename


class BuildFailureError(QuotationArtifactError):
    """
    The document builder could not produce a PDF for a quotation.

    Not retried automatically; a later request starts a fresh rebuild.
    """

    def __init__(self, quotation_id: str, cause: str):
        message = "Failed to regenerate quotation PDF"
        details = {"quotationId": quotation_id, "error": cause}
        super().__init__(message, details)
        self.quotation_id = quotation_id
        self.cause = cause


class PersistFailureError(QuotationArtifactError):
    """
    Writing the artifact or advancing the record pointer failed.

    The pointer is left unchanged, so the failure is safe to retry.
    """

    def __init__(self, filename: str, cause: str, quotation_id: Optional[str] = None):
        message = "Failed to store regenerated quotation PDF"
        details = {"filename": filename, "error": cause}
        if quotation_id:
            details["quotationId"] = quotation_id
        super().__init__(message, details)
        self.filename = filename
        self.cause = cause
        self.quotation_id = quotation_id
