"""
HTTP tests for the artifact and health routes, using the Flask test client.
"""

import pytest
from datetime import datetime
from unittest.mock import Mock

from app import create_app
from models import Inquiry, Quotation


OLD_NAME = "quotation-1700000000000-7421.pdf"


# Fixtures

def _make_app(tmp_path, **overrides):
    config = {
        "ARTIFACT_DIR": str(tmp_path / "artifacts"),
        "DATABASE_URL": f"sqlite:///{tmp_path / 'app.db'}",
    }
    config.update(overrides)
    return create_app("config.TestingConfig", config_overrides=config)


@pytest.fixture
def app(tmp_path):
    app = _make_app(tmp_path)
    yield app
    app.extensions["quotation_artifacts_cleanup"]()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return app.config["ARTIFACT_STORE"]


@pytest.fixture
def stale_quotation(app):
    """Inquiry plus a quotation whose PDF is gone from the store."""
    with app.config["DATABASE"].session() as session:
        session.add(Inquiry(
            inquiry_number="INQ251019001",
            customer_name="Dana Smith",
            parts=[{"material": "Aluminum", "thickness": "5mm", "quantity": 25}],
        ))
        quotation = Quotation(
            quotation_number="QUO251019001",
            inquiry_ref="INQ251019001",
            artifact_pointer=OLD_NAME,
            created_at=datetime(2023, 11, 14, 22, 13, 20),
            status="sent",
        )
        session.add(quotation)
        session.commit()
    return quotation


# Tests

class TestServeExisting:
    """Tests for files already in the store."""

    def test_inline_by_default(self, client, store):
        store.write("q.pdf", b"%PDF-1.4 stored")

        response = client.get("/artifacts/quotations/q.pdf")

        assert response.status_code == 200
        assert response.mimetype == "application/pdf"
        assert response.data == b"%PDF-1.4 stored"
        assert response.headers["Content-Disposition"] == 'inline; filename="q.pdf"'
        assert response.headers["X-Artifact-Source"] == "existing"
        assert response.headers["Access-Control-Allow-Origin"] == "*"

    @pytest.mark.parametrize("flag", ["true", "1", "TRUE"])
    def test_download_flag(self, client, store, flag):
        store.write("q.pdf", b"%PDF-1.4 stored")

        response = client.get(f"/artifacts/quotations/q.pdf?download={flag}")

        assert response.headers["Content-Disposition"] == 'attachment; filename="q.pdf"'

    def test_other_download_values_are_inline(self, client, store):
        store.write("q.pdf", b"%PDF-1.4 stored")

        response = client.get("/artifacts/quotations/q.pdf?download=yes")

        assert response.headers["Content-Disposition"].startswith("inline")

    @pytest.mark.parametrize("prefix", ["/api/uploads/quotations", "/uploads/quotations"])
    def test_legacy_paths(self, client, store, prefix):
        store.write("q.pdf", b"%PDF-1.4 stored")

        response = client.get(f"{prefix}/q.pdf")

        assert response.status_code == 200
        assert response.data == b"%PDF-1.4 stored"


class TestRegenerate:
    """Tests for rebuilding through the route."""

    def test_missing_file_is_rebuilt(self, app, client, store, stale_quotation):
        response = client.get(f"/artifacts/quotations/{OLD_NAME}")

        assert response.status_code == 200
        assert response.data.startswith(b"%PDF")
        assert response.headers["X-Artifact-Source"] == "regenerated"

        disposition = response.headers["Content-Disposition"]
        served_name = disposition.split('filename="')[1].rstrip('"')
        assert served_name.startswith("quotation_INQ251019001_")
        assert store.read(served_name) == response.data

        with app.config["DATABASE"].session() as session:
            assert session.get(Quotation, stale_quotation.id).artifact_pointer == served_name

    def test_unknown_file_is_404(self, client):
        response = client.get("/artifacts/quotations/quotation-1500000000000-1.pdf")

        assert response.status_code == 404
        body = response.get_json()
        assert body["success"] is False
        assert body["message"] == "Quotation PDF not found and cannot be regenerated"
        assert body["filename"] == "quotation-1500000000000-1.pdf"

    def test_unexpected_error_is_500(self, app, client):
        service = Mock()
        service.fetch.side_effect = RuntimeError("boom")
        app.config["REGENERATION_SERVICE"] = service

        response = client.get(f"/artifacts/quotations/{OLD_NAME}")

        assert response.status_code == 500
        body = response.get_json()
        assert body["message"] == "Server error"
        assert body["error"] == "boom"


class TestDatabaseNotReady:
    """Tests with a database that never becomes reachable."""

    @pytest.fixture
    def unready_app(self, tmp_path):
        app = _make_app(
            tmp_path,
            DATABASE_URL=f"sqlite:///{tmp_path / 'missing' / 'dir' / 'app.db'}",
            DATABASE_CONNECT_EAGER=False,
            DATABASE_CONNECT_RETRY_SECONDS=0.05,
            DEPENDENCY_WAIT_SECONDS=0.05,
        )
        yield app
        app.extensions["quotation_artifacts_cleanup"]()

    def test_missing_file_is_503(self, unready_app):
        response = unready_app.test_client().get(f"/artifacts/quotations/{OLD_NAME}")

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "5"
        assert response.get_json()["filename"] == OLD_NAME

    def test_existing_file_still_served(self, unready_app):
        unready_app.config["ARTIFACT_STORE"].write("q.pdf", b"%PDF-1.4 stored")

        response = unready_app.test_client().get("/artifacts/quotations/q.pdf")

        assert response.status_code == 200

    def test_health_reports_degraded(self, unready_app):
        response = unready_app.test_client().get("/api/health")

        assert response.status_code == 503
        assert response.get_json()["checks"]["database"] == "not_ready"


class TestHealth:
    """Tests for the health endpoint."""

    def test_healthy(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        body = response.get_json()
        assert body["status"] == "ok"
        assert body["checks"]["database"] == "ready"
        assert body["checks"]["rebuilds_in_flight"] == 0

    def test_unknown_route_is_json_404(self, client):
        response = client.get("/nope")

        assert response.status_code == 404
        assert response.get_json()["message"] == "Route not found"
