"""
Configuration for the quotation artifact server.

Values come from the environment (and a .env file next to the app).
ARTIFACT_DIR may point at ephemeral storage; the server rebuilds any
quotation PDF that has gone missing.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file early so environment variables are available for Config class
load_dotenv(override=True)

# Base directory (where this file lives)
BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Default configuration for the Flask application."""

    # Flask settings
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"
    TESTING = False

    # Storage
    ARTIFACT_DIR = os.environ.get(
        "ARTIFACT_DIR", str(BASE_DIR / "uploads" / "quotations")
    )
    DATABASE_URL = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'quotations.db'}"
    )
    DATABASE_CONNECT_RETRY_SECONDS = float(
        os.environ.get("DATABASE_CONNECT_RETRY_SECONDS", "2")
    )
    # Connect synchronously in create_app() instead of in a background thread
    DATABASE_CONNECT_EAGER = os.environ.get("DATABASE_CONNECT_EAGER", "0") == "1"

    # ==========================================================================
    # Request bounds
    # ==========================================================================
    # DEPENDENCY_WAIT_SECONDS: how long a request waits for the database to
    #   become ready before answering 503.
    # REBUILD_WAIT_SECONDS: how long a request waits on an in-flight rebuild
    #   before answering 503. The rebuild keeps running either way.
    # ==========================================================================
    DEPENDENCY_WAIT_SECONDS = float(os.environ.get("DEPENDENCY_WAIT_SECONDS", "5"))
    REBUILD_WAIT_SECONDS = float(os.environ.get("REBUILD_WAIT_SECONDS", "30"))

    # Document defaults
    QUOTATION_VALIDITY_DAYS = int(os.environ.get("QUOTATION_VALIDITY_DAYS", "30"))
    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "USD")
    DEFAULT_TERMS = os.environ.get(
        "DEFAULT_TERMS",
        "Standard manufacturing terms apply. Payment required before production begins."
    )
    COMPANY_NAME = os.environ.get("COMPANY_NAME", "Cutbend Manufacturing")


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    DATABASE_URL = "sqlite://"
    DATABASE_CONNECT_EAGER = True
    DEPENDENCY_WAIT_SECONDS = 1.0
    REBUILD_WAIT_SECONDS = 10.0
