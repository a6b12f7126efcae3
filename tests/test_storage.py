"""
Unit tests for storage layer.

Tests the key-value stores, change notification and the footprint repository.
"""

import os
import sqlite3
import tempfile
from datetime import datetime

import pytest

from ecoprompt.core.modality import Modality
from ecoprompt.core.modes import Settings
from ecoprompt.core.totals import HISTORY_LIMIT, new_history
from ecoprompt.storage.db import get_connection
from ecoprompt.storage.models import DayTotals, ImpactRecord
from ecoprompt.storage.repository import (
    HISTORY_KEY,
    SETTINGS_KEY,
    TOTALS_KEY,
    FootprintRepository,
    SettingsProvider,
)
from ecoprompt.storage.store import InMemoryStore, SqliteStore, Store, StoreReadFailure, StoreWriteFailure


def make_record(index=0, date="2024-01-01", manual=False):
    return ImpactRecord(
        timestamp=datetime(2024, 1, 1, 12, 0, index % 60),
        date=date,
        modality=Modality.IMAGE,
        units=2,
        tokens=0,
        energy_wh=0.6,
        co2_g=0.24,
        water_ml=1.08,
        manual=manual,
    )


class TestSqliteStore:
    """Test the SQLite-backed store."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "test.db")

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_schema_creation(self):
        """Verify the key-value table is created."""
        SqliteStore(self.db_path).initialize_schema()

        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("PRAGMA table_info(kv_store)")
            column_names = [col[1] for col in cursor.fetchall()]
            assert column_names == ["key", "value", "updated_at"]
        finally:
            conn.close()

    def test_set_and_get(self):
        """Verify JSON values round-trip and overwrite."""
        store = SqliteStore(self.db_path)
        store.initialize_schema()

        store.set("k", {"a": [1, 2, 3]})
        assert store.get("k") == {"a": [1, 2, 3]}

        store.set("k", {"a": []})
        assert store.get("k") == {"a": []}
        assert store.get("missing") is None

    def test_get_before_init_is_empty(self):
        """Verify an uninitialized store reads as empty."""
        assert SqliteStore(self.db_path).get("k") is None

    def test_set_before_init_fails(self):
        """Verify write failures are wrapped."""
        store = SqliteStore(self.db_path)
        with pytest.raises(StoreWriteFailure) as excinfo:
            store.set("k", 1)
        assert excinfo.value.key == "k"

    def test_unserializable_value_fails(self):
        """Verify values that are not JSON are rejected."""
        store = SqliteStore(self.db_path)
        store.initialize_schema()
        with pytest.raises(StoreWriteFailure, match="not JSON-serializable"):
            store.set("k", object())

    def test_locked_read_fails(self):
        """Verify a locked database is reported as a read failure."""
        store = SqliteStore(self.db_path, timeout=0.05)
        store.initialize_schema()
        lock = sqlite3.connect(self.db_path, isolation_level=None)
        lock.execute("BEGIN EXCLUSIVE")
        try:
            with pytest.raises(StoreReadFailure) as excinfo:
                store.get("k")
        finally:
            lock.execute("COMMIT")
            lock.close()
        assert excinfo.value.key == "k"

    def test_locked_write_with_listener_fails(self):
        """Verify the pre-write read is wrapped as a write failure."""
        store = SqliteStore(self.db_path, timeout=0.05)
        store.initialize_schema()
        store.subscribe(lambda key, old, new: None)
        lock = sqlite3.connect(self.db_path, isolation_level=None)
        lock.execute("BEGIN EXCLUSIVE")
        try:
            with pytest.raises(StoreWriteFailure):
                store.set("k", 1)
        finally:
            lock.execute("COMMIT")
            lock.close()

    def test_corrupt_value_fails(self):
        """Verify a stored value that is not JSON is reported as a read failure."""
        store = SqliteStore(self.db_path)
        store.initialize_schema()
        conn = get_connection(self.db_path)
        try:
            conn.execute("INSERT INTO kv_store (key, value) VALUES (?, ?)", ("k", "{not json"))
            conn.commit()
        finally:
            conn.close()
        with pytest.raises(StoreReadFailure, match="not valid JSON"):
            store.get("k")

    def test_change_notification(self):
        """Verify listeners see old and new values."""
        store = SqliteStore(self.db_path)
        store.initialize_schema()
        seen = []
        store.subscribe(lambda key, old, new: seen.append((key, old, new)))

        store.set("k", 1)
        store.set("k", 2)
        assert seen == [("k", None, 1), ("k", 1, 2)]


class TestInMemoryStore:
    """Test the in-memory store."""

    def test_base_store_is_abstract(self):
        """Verify the Store interface cannot be instantiated."""
        with pytest.raises(TypeError):
            Store()

    def test_values_are_copied(self):
        """Verify callers cannot mutate stored values in place."""
        store = InMemoryStore()
        value = {"a": [1]}
        store.set("k", value)
        value["a"].append(2)
        store.get("k")["a"].append(3)
        assert store.get("k") == {"a": [1]}

    def test_unsubscribe(self):
        """Verify unsubscribed listeners are not called."""
        store = InMemoryStore()
        seen = []
        unsubscribe = store.subscribe(lambda key, old, new: seen.append(key))
        store.set("a", 1)
        unsubscribe()
        store.set("b", 2)
        assert seen == ["a"]


class TestFootprintRepository:
    """Test typed access to stored records."""

    def test_initialize_defaults(self):
        """Verify missing records are seeded once."""
        store = InMemoryStore({TOTALS_KEY: {"2024-01-01": {"tokens": 5}}})
        repository = FootprintRepository(store, Settings(mode="small"))
        repository.initialize_defaults()

        assert store.get(SETTINGS_KEY) == {"mode": "small", "theme": "sage", "gridIntensity": None}
        assert store.get(TOTALS_KEY) == {"2024-01-01": {"tokens": 5}}
        assert store.get(HISTORY_KEY) == []

    def test_save_and_load(self):
        """Verify totals and history round-trip through the store."""
        repository = FootprintRepository(InMemoryStore())
        totals = {"2024-01-01": DayTotals(tokens=10, energy_wh=0.6, co2_g=0.24, water_ml=1.08)}
        history = new_history([make_record(0), make_record(1, manual=True)])

        repository.save(totals, history)

        assert repository.load_totals() == totals
        loaded = list(repository.load_history())
        assert loaded == list(history)
        assert loaded[1].manual is True

    def test_stored_record_shape(self):
        """Verify history entries use the stored field names."""
        store = InMemoryStore()
        FootprintRepository(store).save({}, new_history([make_record()]))
        entry = store.get(HISTORY_KEY)[0]
        assert set(entry) == {
            "timestamp", "date", "modality", "units", "tokens",
            "energyWh", "co2g", "waterMl", "manual",
        }
        assert entry["modality"] == "image"

    def test_load_oversized_history(self):
        """Verify stored history beyond the limit is trimmed oldest first."""
        store = InMemoryStore()
        records = [make_record(i) for i in range(HISTORY_LIMIT + 3)]
        store.set(HISTORY_KEY, [r.to_dict() for r in records])

        history = FootprintRepository(store).load_history()
        assert len(history) == HISTORY_LIMIT
        assert history[0] == records[3]

    def test_malformed_history_entry_skipped(self):
        """Verify a corrupt history entry does not break loading."""
        store = InMemoryStore({HISTORY_KEY: [{"date": "2024-01-01"}, make_record().to_dict()]})
        assert len(FootprintRepository(store).load_history()) == 1

    def test_settings_merge_defaults(self):
        """Verify stored settings are merged over configured defaults."""
        store = InMemoryStore({SETTINGS_KEY: {"gridIntensity": 120}})
        provider = SettingsProvider(FootprintRepository(store, Settings(mode="large")))
        assert provider.get() == Settings(mode="large", theme="sage", grid_intensity=120.0)

    def test_settings_subscription(self):
        """Verify settings listeners receive typed snapshots."""
        store = InMemoryStore()
        repository = FootprintRepository(store)
        seen = []
        SettingsProvider(repository).subscribe(lambda previous, current: seen.append((previous, current)))

        repository.save_settings(Settings(mode="small"))
        store.set(TOTALS_KEY, {})

        assert seen == [(Settings(), Settings(mode="small"))]
