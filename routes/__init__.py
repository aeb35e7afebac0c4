"""
Flask route blueprints for the quotation artifact server.

- artifacts: quotation PDF serving and regeneration
- api: health check

Each blueprint is registered with the Flask app in create_app().
"""

from .artifacts import artifacts_bp
from .api import api_bp

__all__ = [
    "artifacts_bp",
    "api_bp",
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(artifacts_bp)
    app.register_blueprint(api_bp)
