"""Tests for configuration."""

from pathlib import Path

import pytest

from kakeibo.config import (
    AppSettings,
    GeminiSettings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate from the developer's environment and .env file."""
    for name in ("GEMINI_API_KEY", "GEMINI_MAX_ATTEMPTS", "KAKEIBO_STORAGE_BACKEND",
                 "KAKEIBO_STORAGE_DATA_DIR", "MAX_UPLOAD_SIZE_MB", "DEBUG_MODE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestGeminiSettings:
    """Tests for GeminiSettings."""

    def test_defaults(self):
        settings = GeminiSettings()
        assert settings.api_key is None
        assert settings.is_configured is False
        assert settings.max_attempts == 3

    def test_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "  secret  ")
        settings = GeminiSettings()
        assert settings.api_key == "secret"
        assert settings.is_configured is True

    def test_blank_key_is_not_configured(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "   ")
        assert GeminiSettings().is_configured is False

    def test_attempts_are_bounded(self):
        with pytest.raises(ValueError):
            GeminiSettings(max_attempts=0)

    def test_key_from_env_file(self, tmp_path):
        (tmp_path / ".env").write_text("GEMINI_API_KEY=from-file\n", encoding="utf-8")
        assert GeminiSettings().api_key == "from-file"


class TestStorageSettings:
    """Tests for StorageSettings."""

    def test_defaults(self):
        settings = StorageSettings()
        assert settings.backend == "json"
        assert settings.data_dir == Path.home() / ".kakeibo"

    def test_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("KAKEIBO_STORAGE_BACKEND", "memory")
        monkeypatch.setenv("KAKEIBO_STORAGE_DATA_DIR", str(tmp_path / "books"))
        settings = StorageSettings()
        assert settings.backend == "memory"
        assert settings.data_dir == tmp_path / "books"

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            StorageSettings(backend="sqlite")


class TestAppSettings:
    """Tests for AppSettings."""

    def test_derived_values(self):
        settings = AppSettings(max_upload_size_mb=2, supported_image_formats="JPG, png")
        assert settings.max_upload_size_bytes == 2 * 1024 * 1024
        assert settings.supported_formats_list == ["jpg", "png"]

    def test_debug_mode_from_environment(self, monkeypatch):
        assert AppSettings().debug_mode is False
        monkeypatch.setenv("DEBUG_MODE", "true")
        assert AppSettings().debug_mode is True


class TestSettingsAccess:
    """Tests for get_settings and validate_all_settings."""

    def test_cached(self):
        assert get_settings() is get_settings()

    def test_validate_without_key(self):
        status = validate_all_settings()
        assert status["gemini"] is False
        assert "gemini_error" not in status
        assert status["storage"] is True
        assert status["app"] is True

    def test_validate_reports_bad_storage(self, monkeypatch):
        monkeypatch.setenv("KAKEIBO_STORAGE_BACKEND", "sqlite")
        status = validate_all_settings()
        assert status["storage"] is False
        assert "storage_error" in status

    def test_create_storage_uses_backend(self, monkeypatch):
        from kakeibo.orchestrator import create_storage
        from kakeibo.services.storage import InMemoryStorage, JsonFileStorage

        monkeypatch.setenv("KAKEIBO_STORAGE_BACKEND", "memory")
        assert isinstance(create_storage(), InMemoryStorage)

        monkeypatch.setenv("KAKEIBO_STORAGE_BACKEND", "json")
        assert isinstance(create_storage(), JsonFileStorage)
