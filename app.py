"""
Quotation artifact server - Flask Application Entry Point.

This is a slim app factory that:
1. Loads configuration and sets up logging
2. Opens the database (in the background unless configured eager)
3. Creates the artifact store, document builder and regeneration service
4. Registers route blueprints and JSON error handlers

ARCHITECTURE:
    Main Thread
    ├── Flask request handling (threaded WSGI)
    └── Cleanup on shutdown

    DBConnect Thread (background, until the database is ready)
    └── retries DatabaseManager.initialize()

    Rebuild Threads (one per in-flight quotation)
    └── each with its OWN Session

Routes are live before the database is. Requests that need it wait on
the readiness signal for a bounded time and answer 503 otherwise; PDFs
already in the store are served regardless.
"""

from __future__ import annotations

import atexit
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from flask import Flask

from logging_config import setup_logging, get_logger
from core.artifact_store import ArtifactStore
from core.database import DatabaseManager
from core.exceptions import DatabaseUnavailableError
from services.document_builder import DocumentBuilder
from services.regeneration_service import RegenerationService
from routes import register_blueprints


# Module logger (configured after setup_logging)
logger = get_logger(__name__)


def _get_base_path() -> Path:
    """Directory containing the executable (frozen) or this file."""
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    else:
        return Path(__file__).parent


def create_app(
    config_object: str | object = "config.Config",
    config_overrides: Optional[Dict[str, Any]] = None,
) -> Flask:
    """
    Application factory - creates and configures Flask app.

    Args:
        config_object: Import path or class passed to app.config.from_object()
        config_overrides: Values applied after the config object (tests)

    Returns:
        Configured Flask application

    Raises:
        DatabaseUnavailableError: Only when DATABASE_CONNECT_EAGER is set
            and the database cannot be opened
    """
    env_file = _get_base_path() / '.env'
    if env_file.exists():
        load_dotenv(env_file, override=True)
    else:
        load_dotenv(override=True)

    app = Flask(__name__)
    app.config.from_object(config_object)
    if config_overrides:
        app.config.update(config_overrides)

    # Configure logging
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    enable_file_logging = app.config.get("ENVIRONMENT") == "production"

    root_logger = setup_logging(
        log_level=log_level,
        enable_file_logging=enable_file_logging
    )
    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)

    logger.info(f"Starting quotation artifact server in {app.config.get('ENVIRONMENT')} mode")

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    database = DatabaseManager(app.config["DATABASE_URL"])
    if app.config.get("DATABASE_CONNECT_EAGER"):
        try:
            database.initialize()
        except DatabaseUnavailableError as e:
            logger.error(f"FATAL: Cannot start application - {e}")
            raise
    else:
        database.start_background_connect(
            retry_interval_seconds=app.config.get("DATABASE_CONNECT_RETRY_SECONDS", 2.0)
        )
    app.config["DATABASE"] = database

    # =========================================================================
    # SERVICES INITIALIZATION
    # =========================================================================

    store = ArtifactStore(app.config["ARTIFACT_DIR"])
    builder = DocumentBuilder(company_name=app.config.get("COMPANY_NAME", ""))

    regeneration_service = RegenerationService(
        database=database,
        store=store,
        builder=builder,
        dependency_wait_seconds=app.config.get("DEPENDENCY_WAIT_SECONDS", 5.0),
        rebuild_wait_seconds=app.config.get("REBUILD_WAIT_SECONDS", 30.0),
        validity_days=app.config.get("QUOTATION_VALIDITY_DAYS", 30),
        default_terms=app.config.get("DEFAULT_TERMS"),
        default_currency=app.config.get("DEFAULT_CURRENCY", "USD"),
    )
    app.config["ARTIFACT_STORE"] = store
    app.config["REGENERATION_SERVICE"] = regeneration_service
    logger.info(f"Regeneration service ready, artifacts in {store.root}")

    # =========================================================================
    # CLEANUP REGISTRATION
    # =========================================================================

    def cleanup():
        """Cleanup on application shutdown."""
        logger.info("Shutting down...")
        regeneration_service.shutdown()
        database.cleanup()
        logger.info("Shutdown complete")

    if not app.config.get("TESTING"):
        atexit.register(cleanup)
    app.extensions["quotation_artifacts_cleanup"] = cleanup

    # =========================================================================
    # REGISTER BLUEPRINTS
    # =========================================================================

    register_blueprints(app)

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.errorhandler(404)
    def handle_not_found(e):
        return {"success": False, "message": "Route not found"}, 404

    @app.errorhandler(500)
    def handle_server_error(e):
        logger.error(f"500 error: {e}", exc_info=True)
        return {"success": False, "message": "Server error", "error": str(e)}, 500

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(
        host="0.0.0.0",
        port=int(os.environ.get("PORT", "5000")),
        debug=debug_mode,
        threaded=True,
        use_reloader=False,
    )
