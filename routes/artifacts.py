"""
Quotation PDF route.

Serves quotation PDFs by filename and rebuilds missing ones through the
RegenerationService. Every failure is mapped to a JSON body:

    404  nothing resolves for the filename
    500  build or store failure (with the underlying cause)
    503  database not ready, or rebuild still running after the bounded wait

The legacy /uploads and /api/uploads paths are kept so links embedded in
old emails keep working.
"""

from flask import (
    Blueprint,
    Response,
    current_app,
    request,
)

from core.exceptions import (
    DependencyNotReadyError,
    QuotationArtifactError,
)
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

artifacts_bp = Blueprint("artifacts", __name__)

# Constants
TRUTHY_VALUES = {"true", "1"}
PDF_MIMETYPE = "application/pdf"
RETRY_AFTER_SECONDS = "5"


@artifacts_bp.after_request
def _add_cors_headers(response: Response) -> Response:
    """PDFs are embedded by the frontend from another origin."""
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = "GET, OPTIONS"
    return response


def _wants_download() -> bool:
    return request.args.get("download", "").strip().lower() in TRUTHY_VALUES


def _error_response(error: QuotationArtifactError, filename: str):
    """JSON body + status for a classified error."""
    body = error.to_dict()
    body.setdefault("filename", filename)
    status = error.http_status

    headers = {}
    if status == 503:
        headers["Retry-After"] = RETRY_AFTER_SECONDS
    return body, status, headers


@artifacts_bp.route("/artifacts/quotations/<filename>", methods=["GET"])
@artifacts_bp.route("/api/uploads/quotations/<filename>", methods=["GET"])
@artifacts_bp.route("/uploads/quotations/<filename>", methods=["GET"])
def quotation_pdf(filename: str):
    """
    Serve a quotation PDF, regenerating it from the database if needed.

    Query params:
        download: "true" or "1" for an attachment, otherwise inline
    """
    service = current_app.config.get("REGENERATION_SERVICE")
    if service is None:
        return _error_response(
            DependencyNotReadyError("Regeneration service unavailable"), filename
        )

    logger.info(f"PDF request: {filename}")

    try:
        served = service.fetch(filename)
    except QuotationArtifactError as e:
        if e.http_status >= 500:
            logger.error(f"PDF request for {filename} failed: {e}")
        else:
            logger.info(f"PDF request for {filename} not served: {e.message}")
        return _error_response(e, filename)
    except Exception as e:
        logger.error(f"PDF route error for {filename}: {e}", exc_info=True)
        return {
            "success": False,
            "message": "Server error",
            "error": str(e),
            "filename": filename,
        }, 500

    disposition = "attachment" if _wants_download() else "inline"
    response = Response(served.content, mimetype=PDF_MIMETYPE)
    response.headers["Content-Disposition"] = f'{disposition}; filename="{served.filename}"'
    response.headers["X-Artifact-Source"] = served.source.value

    logger.info(
        f"Sent {served.source.value} PDF {served.filename} ({served.size} bytes) "
        f"for request {filename}"
    )
    return response
