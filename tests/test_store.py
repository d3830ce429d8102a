"""Tests for ctltree.store."""

from __future__ import annotations

import json

import pytest

from ctltree.models import ControllerRecord
from ctltree.store import (
    CONFIG_ENVVAR,
    CONFIG_KEY,
    JsonControllerStore,
    PersistenceError,
    default_config_path,
)


class TestJsonControllerStore:
    def test_missing_file_loads_empty(self, tmp_path):
        store = JsonControllerStore(tmp_path / "controllers.json")
        assert store.load() == []

    def test_save_then_load(self, tmp_path):
        store = JsonControllerStore(tmp_path / "controllers.json")
        records = [
            ControllerRecord("https://c1", "admin", "pw"),
            ControllerRecord("https://c2", "ops"),
        ]
        store.save(records)
        assert store.load() == records

    def test_document_layout(self, tmp_path):
        path = tmp_path / "controllers.json"
        JsonControllerStore(path).save([
            ControllerRecord("https://c1", "admin", "pw"),
            ControllerRecord("https://c2", "ops"),
        ])
        data = json.loads(path.read_text())
        assert data == {
            CONFIG_KEY: [
                {"url": "https://c1", "username": "admin", "password": "pw"},
                {"url": "https://c2", "username": "ops"},
            ]
        }

    def test_save_replaces_whole_list(self, tmp_path):
        store = JsonControllerStore(tmp_path / "controllers.json")
        store.save([ControllerRecord("https://c1", "admin")])
        store.save([ControllerRecord("https://c2", "admin")])
        assert [r.url for r in store.load()] == ["https://c2"]

    def test_save_keeps_other_keys(self, tmp_path):
        path = tmp_path / "controllers.json"
        path.write_text(json.dumps({"theme": "dark", CONFIG_KEY: []}))
        JsonControllerStore(path).save([ControllerRecord("https://c1", "admin")])
        assert json.loads(path.read_text())["theme"] == "dark"

    def test_save_creates_parent_directories(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "controllers.json"
        JsonControllerStore(path).save([])
        assert path.exists()

    def test_malformed_json_raises(self, tmp_path):
        path = tmp_path / "controllers.json"
        path.write_text("{not json")
        with pytest.raises(PersistenceError, match="Failed to read"):
            JsonControllerStore(path).load()

    def test_non_list_key_raises(self, tmp_path):
        path = tmp_path / "controllers.json"
        path.write_text(json.dumps({CONFIG_KEY: {"url": "https://c1"}}))
        with pytest.raises(PersistenceError, match="must be a list"):
            JsonControllerStore(path).load()

    @pytest.mark.parametrize("document", [[], [{"url": "https://c1", "username": "a"}], "controllers", None])
    def test_non_object_document_raises(self, tmp_path, document):
        path = tmp_path / "controllers.json"
        path.write_text(json.dumps(document))
        with pytest.raises(PersistenceError, match="expected a JSON object"):
            JsonControllerStore(path).load()

    def test_skips_incomplete_entries(self, tmp_path):
        path = tmp_path / "controllers.json"
        path.write_text(json.dumps({CONFIG_KEY: [{"url": "https://c1"}, {"url": "https://c2", "username": "a"}]}))
        assert JsonControllerStore(path).load() == [ControllerRecord("https://c2", "a")]

    def test_write_failure_raises(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = JsonControllerStore(blocker / "controllers.json")
        with pytest.raises(PersistenceError, match="Failed to write"):
            store.save([])


class TestDefaultConfigPath:
    def test_envvar_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv(CONFIG_ENVVAR, str(tmp_path / "custom.json"))
        assert default_config_path() == tmp_path / "custom.json"

    def test_home_default(self, tmp_path, monkeypatch):
        monkeypatch.delenv(CONFIG_ENVVAR, raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert default_config_path() == tmp_path / ".config" / "ctltree" / "controllers.json"
