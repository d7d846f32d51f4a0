"""Tests for the key/value storage backends."""

import pytest

from kakeibo.services.storage import (
    STORAGE_KEYS,
    InMemoryStorage,
    JsonFileStorage,
    StorageReadError,
    StorageWriteError,
)


class TestJsonFileStorage:
    """Tests for JsonFileStorage."""

    def test_missing_key_reads_none(self, tmp_path):
        storage = JsonFileStorage(tmp_path / "books")
        assert storage.read("expenses") is None
        assert storage.keys() == []

    def test_write_then_read(self, tmp_path):
        storage = JsonFileStorage(tmp_path / "books")
        storage.write("expenses", '[{"amount": 1000}]')

        assert storage.read("expenses") == '[{"amount": 1000}]'
        assert (tmp_path / "books" / "expenses.json").exists()
        assert storage.keys() == ["expenses"]

    def test_write_replaces_value(self, tmp_path):
        storage = JsonFileStorage(tmp_path)
        storage.write("budgets", '{"overall": 1}')
        storage.write("budgets", '{"overall": 2}')
        assert storage.read("budgets") == '{"overall": 2}'
        assert not list(tmp_path.glob("*.tmp"))

    def test_values_survive_a_new_instance(self, tmp_path):
        JsonFileStorage(tmp_path).write("incomes", "[]")
        assert JsonFileStorage(tmp_path).read("incomes") == "[]"

    def test_unicode_round_trip(self, tmp_path):
        storage = JsonFileStorage(tmp_path)
        storage.write("expenses", '[{"description": "スーパー"}]')
        assert "スーパー" in storage.read("expenses")

    def test_delete(self, tmp_path):
        storage = JsonFileStorage(tmp_path)
        storage.write("expenses", "[]")
        assert storage.delete("expenses") is True
        assert storage.delete("expenses") is False
        assert storage.read("expenses") is None

    def test_invalid_key_rejected(self, tmp_path):
        storage = JsonFileStorage(tmp_path)
        with pytest.raises(ValueError, match="Invalid storage key"):
            storage.read("../secrets")

    def test_unreadable_file_raises_read_error(self, tmp_path):
        (tmp_path / "expenses.json").mkdir()
        with pytest.raises(StorageReadError):
            JsonFileStorage(tmp_path).read("expenses")

    def test_unwritable_directory_raises_write_error(self, tmp_path):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("x")
        with pytest.raises(StorageWriteError):
            JsonFileStorage(blocker).write("expenses", "[]")

    def test_all_store_keys_are_valid(self, tmp_path):
        storage = JsonFileStorage(tmp_path)
        for key in STORAGE_KEYS:
            storage.write(key, "{}")
        assert storage.keys() == sorted(STORAGE_KEYS)


class TestInMemoryStorage:
    """Tests for InMemoryStorage."""

    def test_initial_values(self):
        storage = InMemoryStorage({"budgets": "{}"})
        assert storage.read("budgets") == "{}"
        assert storage.read("expenses") is None

    def test_delete(self):
        storage = InMemoryStorage()
        storage.write("incomes", "[]")
        assert storage.keys() == ["incomes"]
        assert storage.delete("incomes") is True
        assert storage.delete("incomes") is False
