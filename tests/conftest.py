"""
Shared fixtures: a file-backed SQLite database, a temporary artifact store,
and factories for inquiry and quotation records.
"""

import itertools
from datetime import datetime

import pytest

from core.artifact_store import ArtifactStore
from core.database import DatabaseManager
from models import Inquiry, Quotation


# Fixtures

@pytest.fixture
def database(tmp_path):
    """Initialized database in a temporary file."""
    db = DatabaseManager(f"sqlite:///{tmp_path / 'quotations.db'}")
    db.initialize()
    yield db
    db.cleanup()


@pytest.fixture
def store(tmp_path):
    """Empty artifact store."""
    return ArtifactStore(tmp_path / "artifacts")


@pytest.fixture
def make_inquiry(database):
    """Factory: persist an inquiry and return it."""

    def _make(inquiry_number="INQ251019001", parts=None, **fields):
        inquiry = Inquiry(
            inquiry_number=inquiry_number,
            customer_name=fields.pop("customer_name", "Test Customer"),
            parts=parts if parts is not None else [
                {"partRef": "P1", "material": "Steel", "thickness": "2mm", "quantity": 5}
            ],
            **fields
        )
        with database.session() as session:
            session.add(inquiry)
            session.commit()
        return inquiry

    return _make


@pytest.fixture
def make_quotation(database):
    """Factory: persist a quotation and return it."""
    numbers = itertools.count(1)

    def _make(inquiry_ref, created_at=None, artifact_pointer=None, items=None, **fields):
        quotation = Quotation(
            inquiry_ref=inquiry_ref,
            artifact_pointer=artifact_pointer,
            items=items if items is not None else [],
            created_at=created_at or datetime(2023, 11, 14, 22, 13, 20),
            quotation_number=fields.pop("quotation_number", f"QUO231114{next(numbers):03d}"),
            **fields
        )
        with database.session() as session:
            session.add(quotation)
            session.commit()
        return quotation

    return _make


@pytest.fixture
def reload_quotation(database):
    """Read a quotation back in a fresh session."""

    def _reload(quotation_id):
        with database.session() as session:
            return session.get(Quotation, quotation_id)

    return _reload
