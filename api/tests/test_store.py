# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for persistent store backends.
"""

import json
import os
import pytest
import redis
from unittest.mock import MagicMock, patch

from services.redis_store import RedisStore
from services.store import (
    FileStore,
    MemoryStore,
    StoreConfig,
    create_store
)


class TestMemoryStore:
    """Test load/save semantics on the in-memory backend."""
    
    def test_missing_table_returns_default(self, memory_store):
        assert memory_store.load("users", ["seed"]) == ["seed"]
    
    def test_save_and_load(self, memory_store):
        assert memory_store.save("users", [{"id": "u1"}]) is True
        assert memory_store.load("users", []) == [{"id": "u1"}]
        assert memory_store.data["cbc:users"] == json.dumps([{"id": "u1"}])
    
    def test_corrupt_data_returns_default(self):
        store = MemoryStore(data={"cbc:users": "{not json"})
        
        assert store.load("users", "fallback") == "fallback"
        assert store.data["cbc:users:corrupt"] == "{not json"
        assert store.data["cbc:users"] == "{not json"
    
    def test_preserve_failure_reported(self):
        store = MemoryStore()
        
        with patch.object(store, "_write", side_effect=OSError("read-only")):
            assert store.preserve("users", "garbage") is False
    
    def test_delete(self, memory_store):
        memory_store.save("session", "u1")
        
        assert memory_store.delete("session") is True
        assert memory_store.load("session", None) is None
        # Absent keys are not an error
        assert memory_store.delete("session") is True
    
    def test_unserializable_value(self, memory_store):
        assert memory_store.save("users", {"bad": object()}) is False
    
    def test_key_prefix(self):
        store = MemoryStore(key_prefix="test")
        store.save("history", [])
        assert "test:history" in store.data


class TestWriteRetries:
    """Writes are retried with bounded attempts and never raise."""
    
    def test_transient_failure_recovers(self):
        store = MemoryStore(max_retries=2, retry_delay=0)
        original_write = store._write
        calls = []
        
        def flaky_write(key, data):
            calls.append(key)
            if len(calls) == 1:
                raise OSError("temporarily unavailable")
            original_write(key, data)
        
        with patch.object(store, "_write", side_effect=flaky_write):
            assert store.save("users", []) is True
        
        assert len(calls) == 2
        assert store.load("users", None) == []
    
    def test_persistent_failure_reports_false(self):
        store = MemoryStore(max_retries=2, retry_delay=0)
        
        with patch.object(store, "_write", side_effect=OSError("disk full")) as mock_write:
            assert store.save("users", []) is False
        
        assert mock_write.call_count == 3
    
    def test_backoff_delays(self):
        store = MemoryStore(max_retries=2, retry_delay=0.1)
        
        with patch.object(store, "_write", side_effect=OSError("down")), \
             patch("services.store.time.sleep") as mock_sleep:
            store.save("users", [])
        
        assert [c.args[0] for c in mock_sleep.call_args_list] == [0.1, 0.2]


class TestFileStore:
    """Test the JSON file backend."""
    
    def test_round_trip(self, tmp_path):
        store = FileStore(str(tmp_path))
        
        assert store.save("requests", [{"id": "r1"}]) is True
        assert store.load("requests", []) == [{"id": "r1"}]
        assert os.path.exists(tmp_path / "cbc_requests.json")
    
    def test_survives_new_instance(self, tmp_path):
        FileStore(str(tmp_path)).save("session", "u1")
        
        assert FileStore(str(tmp_path)).load("session", None) == "u1"
    
    def test_corrupt_file_returns_default(self, tmp_path):
        (tmp_path / "cbc_users.json").write_text("]]garbage", encoding="utf-8")
        
        assert FileStore(str(tmp_path)).load("users", []) == []
        assert (tmp_path / "cbc_users_corrupt.json").read_text(encoding="utf-8") == "]]garbage"
    
    def test_no_temp_files_left(self, tmp_path):
        store = FileStore(str(tmp_path))
        store.save("users", [])
        store.save("users", [{"id": "u1"}])
        
        assert sorted(os.listdir(tmp_path)) == ["cbc_users.json"]
    
    def test_delete(self, tmp_path):
        store = FileStore(str(tmp_path))
        store.save("session", "u1")
        
        assert store.delete("session") is True
        assert store.load("session", None) is None
    
    def test_is_available(self, tmp_path):
        assert FileStore(str(tmp_path)).is_available() is True


class TestRedisStore:
    """Test the Redis backend with a mocked client."""
    
    def test_load_and_save(self):
        client = MagicMock()
        client.get.return_value = json.dumps([{"id": "u1"}])
        client.set.return_value = True
        store = RedisStore(client=client, retry_delay=0)
        
        assert store.load("users", []) == [{"id": "u1"}]
        client.get.assert_called_with("cbc:users")
        
        assert store.save("users", []) is True
        client.set.assert_called_with("cbc:users", "[]")
    
    def test_missing_key(self):
        client = MagicMock()
        client.get.return_value = None
        
        assert RedisStore(client=client).load("users", "default") == "default"
    
    def test_connection_errors_are_contained(self):
        client = MagicMock()
        client.get.side_effect = redis.ConnectionError("down")
        client.set.side_effect = redis.ConnectionError("down")
        store = RedisStore(client=client, max_retries=1, retry_delay=0)
        
        assert store.load("users", []) == []
        assert store.save("users", []) is False
        assert client.set.call_count == 2
    
    def test_unreachable_server_at_startup(self):
        client = MagicMock()
        client.ping.side_effect = redis.ConnectionError("refused")
        
        with patch("services.redis_store.redis.from_url", return_value=client):
            store = RedisStore("redis://localhost:6399", retry_delay=0, max_retries=0)
        
        assert store.client is None
        assert store.is_available() is False
        assert store.load("users", ["seed"]) == ["seed"]
        assert store.save("users", []) is False
    
    def test_delete(self):
        client = MagicMock()
        store = RedisStore(client=client)
        
        assert store.delete("session") is True
        client.delete.assert_called_once_with("cbc:session")


class TestCreateStore:
    """Test the store factory."""
    
    def test_memory_backend(self):
        assert isinstance(create_store(StoreConfig(backend="memory")), MemoryStore)
    
    def test_file_backend(self, tmp_path):
        store = create_store(StoreConfig(backend="file", data_dir=str(tmp_path / "data")))
        
        assert isinstance(store, FileStore)
        assert os.path.isdir(tmp_path / "data")
    
    def test_environment_configuration(self, monkeypatch):
        monkeypatch.setenv("CBC_STORE_BACKEND", "memory")
        monkeypatch.setenv("CBC_KEY_PREFIX", "envtest")
        monkeypatch.setenv("CBC_STORE_MAX_RETRIES", "5")
        
        store = create_store()
        
        assert isinstance(store, MemoryStore)
        assert store.key("users") == "envtest:users"
        assert store.max_retries == 5
    
    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_store(StoreConfig(backend="floppy"))
