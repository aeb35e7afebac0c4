"""
API routes.

Handles:
- /api/health - Health check with dependency readiness
"""

from flask import Blueprint, current_app

from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

api_bp = Blueprint("api", __name__)


@api_bp.route("/api/health", methods=["GET"])
def health():
    """Health check endpoint with service status."""
    health_status = {
        "status": "ok",
        "environment": current_app.config.get("ENVIRONMENT", "unknown"),
        "checks": {}
    }

    # Database readiness
    database = current_app.config.get("DATABASE")
    if database and database.is_ready:
        health_status["checks"]["database"] = "ready"
    else:
        health_status["checks"]["database"] = "not_ready"
        health_status["status"] = "degraded"

    # Artifact store
    service = current_app.config.get("REGENERATION_SERVICE")
    if service and service.store.root.is_dir():
        health_status["checks"]["artifact_store"] = "ok"
        health_status["checks"]["rebuilds_in_flight"] = len(service.registry)
    else:
        health_status["checks"]["artifact_store"] = "not_available"
        health_status["status"] = "degraded"

    status_code = 200 if health_status["status"] == "ok" else 503
    return health_status, status_code
