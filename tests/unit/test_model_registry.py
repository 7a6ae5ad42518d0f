"""Unit tests for the local model registry."""
import pytest

from nb2prod.registry.model_registry import APPROVED, PENDING, REJECTED, LocalModelRegistry
from nb2prod.utils.utilities import file_sha256


@pytest.fixture
def model_file(tmp_path):
    path = tmp_path / "model.joblib"
    path.write_bytes(b"fake model bytes")
    return path


class TestLocalModelRegistry:

    def test_register_copies_and_versions(self, tmp_path, model_file):
        registry = LocalModelRegistry(tmp_path / "registry")

        first = registry.register(model_file, metrics={"r2": 0.9})
        second = registry.register(model_file)

        assert (first.version, second.version) == (1, 2)
        assert first.status == PENDING
        assert first.sha256 == file_sha256(model_file)
        assert (tmp_path / "registry" / "v2" / "model.joblib").exists()
        assert [v.version for v in registry.list_versions()] == [1, 2]

    def test_index_survives_new_instance(self, tmp_path, model_file):
        LocalModelRegistry(tmp_path / "registry").register(model_file, metrics={"r2": 0.7})

        reopened = LocalModelRegistry(tmp_path / "registry")

        assert reopened.get(1).metrics == {"r2": 0.7}

    def test_latest_approved(self, tmp_path, model_file):
        registry = LocalModelRegistry(tmp_path / "registry")
        registry.register(model_file, status=APPROVED)
        registry.register(model_file, status=APPROVED)
        registry.register(model_file)

        assert registry.latest().version == 2
        assert registry.latest(status=None).version == 3

    def test_latest_none_when_nothing_approved(self, tmp_path, model_file):
        registry = LocalModelRegistry(tmp_path / "registry")
        assert registry.latest() is None
        registry.register(model_file)
        assert registry.latest() is None

    def test_set_status(self, tmp_path, model_file):
        registry = LocalModelRegistry(tmp_path / "registry")
        registry.register(model_file)

        updated = registry.set_status(1, REJECTED)

        assert updated.status == REJECTED
        assert registry.get(1).status == REJECTED

    def test_unknown_version(self, tmp_path):
        registry = LocalModelRegistry(tmp_path / "registry")
        with pytest.raises(KeyError, match="version 7"):
            registry.get(7)
        with pytest.raises(KeyError):
            registry.set_status(7, APPROVED)

    def test_invalid_status(self, tmp_path, model_file):
        registry = LocalModelRegistry(tmp_path / "registry")
        with pytest.raises(ValueError, match="Unknown status"):
            registry.register(model_file, status="Deployed")

    def test_missing_model_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            LocalModelRegistry(tmp_path / "registry").register(tmp_path / "missing.joblib")
