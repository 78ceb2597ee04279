"""Tests for ``crudspine.settings``.

Covers:
- CrudSettings defaults
- CRUDSPINE_ environment overrides
- Field validation
"""

import pytest
from pydantic import ValidationError

from crudspine.settings import CrudSettings, get_settings


class TestCrudSettingsDefaults:
    def test_defaults(self):
        s = CrudSettings(_env_file=None)
        assert s.database_url == "memory"
        assert s.log_level == "INFO"
        assert s.json_logs is None
        assert s.echo_sql is False
        assert s.cache_enabled is False
        assert s.cache_max_size == 1000
        assert s.cache_ttl_seconds is None
        assert s.catalog_memoize is True


class TestCrudSettingsEnvOverride:
    def test_database_url_from_env(self, monkeypatch):
        monkeypatch.setenv("CRUDSPINE_DATABASE_URL", "sqlite:///orders.db")
        assert CrudSettings(_env_file=None).database_url == "sqlite:///orders.db"

    def test_cache_from_env(self, monkeypatch):
        monkeypatch.setenv("CRUDSPINE_CACHE_ENABLED", "true")
        monkeypatch.setenv("CRUDSPINE_CACHE_TTL_SECONDS", "30")
        s = CrudSettings(_env_file=None)
        assert s.cache_enabled is True
        assert s.cache_ttl_seconds == 30

    def test_log_level_normalized(self, monkeypatch):
        monkeypatch.setenv("CRUDSPINE_LOG_LEVEL", "debug")
        assert CrudSettings(_env_file=None).log_level == "DEBUG"

    def test_extra_fields_ignored(self, monkeypatch):
        monkeypatch.setenv("CRUDSPINE_NOT_A_SETTING", "x")
        CrudSettings(_env_file=None)

    def test_get_settings_is_cached(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("CRUDSPINE_DATABASE_URL", "other.db")
        assert get_settings() is first
        get_settings.cache_clear()
        assert get_settings().database_url == "other.db"


class TestCrudSettingsValidation:
    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            CrudSettings(_env_file=None, log_level="chatty")

    def test_cache_size_positive(self):
        with pytest.raises(ValidationError):
            CrudSettings(_env_file=None, cache_max_size=0)

    def test_ttl_positive(self):
        with pytest.raises(ValidationError):
            CrudSettings(_env_file=None, cache_ttl_seconds=0)
