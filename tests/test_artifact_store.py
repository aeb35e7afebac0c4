"""
Unit tests for the ArtifactStore.
"""

import pytest
from unittest.mock import patch

from core.artifact_store import ArtifactStore
from core.exceptions import ArtifactNotFoundError, PersistFailureError


class TestArtifactNames:
    """Tests for name validation."""

    @pytest.mark.parametrize("name", [
        "quotation-1700000000000-7421.pdf",
        "quotation_INQ251019001_1700000000000.pdf",
    ])
    def test_plain_names_are_valid(self, name):
        assert ArtifactStore.is_valid_name(name)

    @pytest.mark.parametrize("name", ["", "../secrets.pdf", "a/b.pdf", "with space.pdf"])
    def test_unsafe_names_are_rejected(self, name):
        assert not ArtifactStore.is_valid_name(name)

    def test_unsafe_name_never_exists(self, store):
        assert store.exists("../quotations.db") is False


class TestReadWrite:
    """Tests for reading and writing artifacts."""

    def test_creates_root_directory(self, tmp_path):
        root = tmp_path / "nested" / "quotations"
        ArtifactStore(root)
        assert root.is_dir()

    def test_write_then_read(self, store):
        path = store.write("q.pdf", b"%PDF-1.4 test")

        assert path == store.root / "q.pdf"
        assert store.exists("q.pdf")
        assert store.read("q.pdf") == b"%PDF-1.4 test"

    def test_write_replaces_existing(self, store):
        store.write("q.pdf", b"old")
        store.write("q.pdf", b"new")
        assert store.read("q.pdf") == b"new"

    def test_write_leaves_no_temp_files(self, store):
        store.write("q.pdf", b"data")
        assert [p.name for p in store.root.iterdir()] == ["q.pdf"]

    def test_exclusive_write_refuses_taken_name(self, store):
        store.write("q.pdf", b"first")

        with pytest.raises(FileExistsError):
            store.write("q.pdf", b"second", exclusive=True)

        assert store.read("q.pdf") == b"first"
        assert [p.name for p in store.root.iterdir()] == ["q.pdf"]

    def test_exclusive_write_to_free_name(self, store):
        store.write("q.pdf", b"data", exclusive=True)
        assert store.read("q.pdf") == b"data"
        assert [p.name for p in store.root.iterdir()] == ["q.pdf"]

    def test_read_missing_raises_not_found(self, store):
        with pytest.raises(ArtifactNotFoundError) as exc_info:
            store.read("missing.pdf")
        assert exc_info.value.http_status == 404
        assert exc_info.value.details["filename"] == "missing.pdf"

    def test_write_invalid_name_raises(self, store):
        with pytest.raises(PersistFailureError):
            store.write("../escape.pdf", b"data")

    def test_os_error_becomes_persist_failure(self, store):
        with patch("core.artifact_store.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(PersistFailureError) as exc_info:
                store.write("q.pdf", b"data")

        assert "disk full" in exc_info.value.details["error"]
        assert not store.exists("q.pdf")
        assert list(store.root.iterdir()) == []
