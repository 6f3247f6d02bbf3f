"""
Tests for the key-value store adapters.
"""

from medflow_nav.runtime.storage import (
    DuckDBKeyValueStore,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
)


class TestInMemoryStore:
    def test_save_and_load(self):
        store = InMemoryKeyValueStore()
        assert store.load("k") is None
        store.save("k", b"v1")
        store.save("k", b"v2")
        assert store.load("k") == b"v2"


class TestJsonFileStore:
    """Tests for the file-per-key store."""

    def test_save_and_load(self, tmp_path):
        store = JsonFileKeyValueStore(tmp_path / "state")
        assert store.load("medflow_navigation_state") is None

        store.save("medflow_navigation_state", b'{"a": 1}')

        assert (tmp_path / "state" / "medflow_navigation_state.json").exists()
        assert store.load("medflow_navigation_state") == b'{"a": 1}'

    def test_overwrite_leaves_no_temp_files(self, tmp_path):
        store = JsonFileKeyValueStore(tmp_path)
        store.save("key", b"1")
        store.save("key", b"2")

        assert store.load("key") == b"2"
        assert list(tmp_path.glob("*.tmp")) == []

    def test_unsafe_key_characters_replaced(self, tmp_path):
        store = JsonFileKeyValueStore(tmp_path)
        store.save("../user:42", b"x")

        assert (tmp_path / ".._user_42.json").exists()
        assert store.load("../user:42") == b"x"


class TestDuckDBStore:
    """Tests for the DuckDB-backed store."""

    def test_in_memory(self):
        store = DuckDBKeyValueStore()
        assert store.load("k") is None
        store.save("k", b"\x00\x01binary")
        assert store.load("k") == b"\x00\x01binary"
        store.close()

    def test_upsert(self, tmp_path):
        store = DuckDBKeyValueStore(tmp_path / "nav.duckdb")
        store.save("k", b"first")
        store.save("k", b"second")

        assert store.load("k") == b"second"
        count = store.connection.execute("SELECT COUNT(*) FROM kv_store").fetchone()[0]
        assert count == 1
        store.close()

    def test_survives_reopen(self, tmp_path):
        db_path = tmp_path / "nested" / "nav.duckdb"
        store = DuckDBKeyValueStore(db_path)
        store.save("medflow_navigation_state", b'{"history": []}')
        store.close()

        reopened = DuckDBKeyValueStore(db_path)
        assert reopened.load("medflow_navigation_state") == b'{"history": []}'
        reopened.close()

    def test_close_is_idempotent(self, tmp_path):
        store = DuckDBKeyValueStore(tmp_path / "nav.duckdb")
        store.close()
        store.close()
