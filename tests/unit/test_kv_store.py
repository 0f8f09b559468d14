"""Tests for the key-value stores."""

import json

import pytest

from journeytrack.repositories.kv_store import (
    FallbackStore,
    JsonFileStore,
    MemoryStore,
    build_device_store,
)
from journeytrack.utils.exceptions import StorageAccessError


class TestMemoryStore:
    """Tests for MemoryStore."""

    def test_get_set_remove(self):
        store = MemoryStore("tab", initial={"a": "1"})

        assert store.get("a") == "1"
        store.set("b", "2")
        store.remove("a")
        store.remove("missing")

        assert store.snapshot() == {"b": "2"}

    def test_clear(self):
        store = MemoryStore(initial={"a": "1"})
        store.clear()
        assert store.get("a") is None


class TestJsonFileStore:
    """Tests for JsonFileStore."""

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "device.json"
        JsonFileStore(path).set("jt_visitor_id", "visitor-1")

        assert JsonFileStore(path).get("jt_visitor_id") == "visitor-1"
        assert json.loads(path.read_text()) == {"jt_visitor_id": "visitor-1"}

    def test_remove_writes_through(self, tmp_path):
        path = tmp_path / "device.json"
        store = JsonFileStore(path)
        store.set("a", "1")
        store.remove("a")

        assert json.loads(path.read_text()) == {}

    def test_missing_file_is_empty(self, tmp_path):
        assert JsonFileStore(tmp_path / "nope.json").get("a") is None

    def test_corrupt_file_raises(self, tmp_path):
        path = tmp_path / "device.json"
        path.write_text("[1, 2, 3]")

        with pytest.raises(StorageAccessError) as exc_info:
            JsonFileStore(path).get("a")

        assert exc_info.value.error_code == "STORAGE_ACCESS_ERROR"

    def test_unwritable_path_raises(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = JsonFileStore(blocker / "device.json")

        with pytest.raises(StorageAccessError):
            store.set("a", "1")


class TestFallbackStore:
    """Tests for the degrade-once policy."""

    def test_uses_primary_while_healthy(self):
        primary = MemoryStore("device")
        store = FallbackStore(primary)

        store.set("a", "1")

        assert primary.get("a") == "1"
        assert store.degraded is False
        assert store.active is primary

    def test_degrades_on_first_failure(self, tmp_path):
        path = tmp_path / "device.json"
        path.write_text("not json")
        store = FallbackStore(JsonFileStore(path))

        assert store.get("a") is None
        store.set("a", "1")

        assert store.degraded is True
        assert store.get("a") == "1"
        assert path.read_text() == "not json"

    def test_build_device_store(self, tmp_path):
        assert isinstance(build_device_store(None).primary, MemoryStore)
        assert isinstance(build_device_store(str(tmp_path / "d.json")).primary, JsonFileStore)
