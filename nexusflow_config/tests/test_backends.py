"""Tests for the durable key-value backends."""

import pytest

from nexusflow_config.errors import BackendError
from nexusflow_config.storage.backends import FileBackend, MemoryBackend, SQLBackend


@pytest.fixture(params=["memory", "file", "sql"])
def any_backend(request, tmp_path):
    """Each backend implementation."""
    if request.param == "memory":
        backend = MemoryBackend()
    elif request.param == "file":
        backend = FileBackend(tmp_path / "slots")
    else:
        backend = SQLBackend("sqlite:///:memory:")
    yield backend
    backend.close()


class TestBackendContract:
    """Behavior shared by every backend."""

    def test_absent_slot_is_none(self, any_backend):
        assert any_backend.get("missing") is None

    def test_set_get_overwrite(self, any_backend):
        any_backend.set("nexusflow-config", '{"a": 1}')
        assert any_backend.get("nexusflow-config") == '{"a": 1}'

        any_backend.set("nexusflow-config", '{"a": 2}')
        assert any_backend.get("nexusflow-config") == '{"a": 2}'

    def test_delete(self, any_backend):
        any_backend.set("slot", "value")
        any_backend.delete("slot")
        assert any_backend.get("slot") is None

        # Deleting an absent slot is not an error
        any_backend.delete("slot")

    def test_set_many_writes_and_deletes(self, any_backend):
        any_backend.set("old", "x")
        any_backend.set_many({"a": "1", "b": "2", "old": None})

        assert any_backend.get("a") == "1"
        assert any_backend.get("b") == "2"
        assert any_backend.get("old") is None

    def test_unicode_values(self, any_backend):
        any_backend.set("slot", '{"name": "Профиль ✓"}')
        assert any_backend.get("slot") == '{"name": "Профиль ✓"}'

    def test_invalid_key_rejected(self, any_backend):
        with pytest.raises(BackendError):
            any_backend.set("../escape", "value")


class TestMemoryBackend:
    """Tests for MemoryBackend."""

    def test_capacity_exceeded(self):
        backend = MemoryBackend(capacity=10)
        with pytest.raises(BackendError, match="quota exceeded"):
            backend.set("key", "a much too long value")
        assert backend.get("key") is None

    def test_set_many_is_all_or_nothing(self):
        backend = MemoryBackend(capacity=20)
        backend.set("a", "small")

        with pytest.raises(BackendError):
            backend.set_many({"a": "changed", "b": "x" * 50})

        assert backend.get("a") == "small"
        assert backend.get("b") is None

    def test_keys_and_clear(self):
        backend = MemoryBackend()
        backend.set("a", "1")
        backend.set("b", "2")
        assert sorted(backend.keys()) == ["a", "b"]

        backend.clear()
        assert backend.keys() == []


class TestFileBackend:
    """Tests for FileBackend."""

    def test_creates_directory(self, tmp_path):
        target = tmp_path / "nested" / "dir"
        FileBackend(target)
        assert target.is_dir()

    def test_unusable_directory_raises_backend_error(self, tmp_path):
        occupied = tmp_path / "occupied"
        occupied.write_text("not a directory", encoding="utf-8")

        with pytest.raises(BackendError, match="Failed to create directory"):
            FileBackend(occupied / "slots")

    def test_one_file_per_slot(self, tmp_path):
        backend = FileBackend(tmp_path)
        backend.set("nexusflow-profiles", "[]")

        assert (tmp_path / "nexusflow-profiles.json").read_text(encoding="utf-8") == "[]"

    def test_no_temp_files_left(self, tmp_path):
        backend = FileBackend(tmp_path)
        backend.set("slot", "value")
        backend.set("slot", "value2")

        leftovers = [p.name for p in tmp_path.iterdir() if p.name.endswith(".tmp")]
        assert leftovers == []

    def test_persists_across_instances(self, tmp_path):
        FileBackend(tmp_path).set("slot", "value")
        assert FileBackend(tmp_path).get("slot") == "value"

    def test_set_many_rolls_back_partial_write(self, tmp_path, monkeypatch):
        backend = FileBackend(tmp_path)
        backend.set("a", "old-a")

        original = FileBackend._atomic_write
        calls = []

        def flaky_write(self, file_path, content):
            calls.append(file_path)
            if len(calls) == 2:
                raise BackendError("disk full")
            return original(self, file_path, content)

        monkeypatch.setattr(FileBackend, "_atomic_write", flaky_write)

        with pytest.raises(BackendError, match="disk full"):
            backend.set_many({"a": "new-a", "b": "new-b"})

        monkeypatch.undo()
        assert backend.get("a") == "old-a"
        assert backend.get("b") is None

    def test_write_failure_raises_backend_error(self, tmp_path):
        backend = FileBackend(tmp_path)
        (tmp_path / "slot.json").mkdir()

        with pytest.raises(BackendError, match="Atomic write failed"):
            backend.set("slot", "value")


class TestSQLBackend:
    """Tests for SQLBackend."""

    def test_persists_in_sqlite_file(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'slots.db'}"
        first = SQLBackend(url)
        first.set("slot", "value")
        first.close()

        second = SQLBackend(url)
        assert second.get("slot") == "value"
        second.close()

    def test_invalid_key_writes_nothing(self):
        backend = SQLBackend()
        with pytest.raises(BackendError):
            backend.set_many({"good": "1", "bad key": "2"})
        assert backend.get("good") is None
