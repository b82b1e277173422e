import pytest

from betpromo.utils.settings import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_FILE_SIZE,
    get_import_settings,
    refresh_import_settings,
)

_ENV_VARS = ("UPLOAD_PATH", "MAX_FILE_SIZE", "IMPORT_BATCH_SIZE", "IMPORT_KEEP_FILES", "IMPORT_PURGE_STAGING")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    refresh_import_settings()
    yield
    refresh_import_settings()


def test_defaults():
    settings = get_import_settings()
    assert settings.upload_path == "uploads"
    assert settings.max_file_size == DEFAULT_MAX_FILE_SIZE == 100 * 1024 * 1024
    assert settings.batch_size == DEFAULT_BATCH_SIZE
    assert settings.keep_files is False
    assert settings.purge_staging is False


def test_values_from_env(monkeypatch):
    monkeypatch.setenv("UPLOAD_PATH", "/srv/uploads")
    monkeypatch.setenv("MAX_FILE_SIZE", "2048")
    monkeypatch.setenv("IMPORT_BATCH_SIZE", " 250 ")
    monkeypatch.setenv("IMPORT_KEEP_FILES", "yes")
    monkeypatch.setenv("IMPORT_PURGE_STAGING", "ON")
    refresh_import_settings()

    settings = get_import_settings()
    assert settings.upload_path == "/srv/uploads"
    assert settings.max_file_size == 2048
    assert settings.batch_size == 250
    assert settings.keep_files is True
    assert settings.purge_staging is True


@pytest.mark.parametrize("raw_value", ["abc", "0", "-5", ""])
def test_invalid_sizes_fall_back_to_default(monkeypatch, raw_value):
    monkeypatch.setenv("IMPORT_BATCH_SIZE", raw_value)
    refresh_import_settings()

    assert get_import_settings().batch_size == DEFAULT_BATCH_SIZE


@pytest.mark.parametrize("raw_value", ["maybe", "2", "   "])
def test_unrecognized_booleans_are_false(monkeypatch, raw_value):
    monkeypatch.setenv("IMPORT_KEEP_FILES", raw_value)
    refresh_import_settings()

    assert get_import_settings().keep_files is False


def test_settings_are_cached_until_refresh(monkeypatch):
    first = get_import_settings()
    monkeypatch.setenv("IMPORT_BATCH_SIZE", "10")
    assert get_import_settings() is first

    refresh_import_settings()
    assert get_import_settings().batch_size == 10
