"""
Tests for entity configuration and process settings.
"""

import pytest
from pydantic import ValidationError

from unidata.config import EntityConfig, OperationCacheConfig, Settings, load_settings, parse_duration


class TestParseDuration:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, None),
            (30, 30.0),
            (1.5, 1.5),
            ("45", 45.0),
            ("500ms", 0.5),
            ("30s", 30.0),
            ("5m", 300.0),
            ("2h", 7200.0),
            ("1d", 86400.0),
        ],
    )
    def test_valid(self, value, expected):
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", ["soon", "5 weeks", -1, True, [1]])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_duration(value)


class TestEntityConfig:
    """Tests for EntityConfig."""

    def test_defaults(self):
        config = EntityConfig()
        assert config.default_source is None
        assert config.exclude == []
        assert config.cache == {}
        assert config.permission_rules("read", "crud") == []

    def test_cache_shorthand(self):
        config = EntityConfig(cache={"findMany": "30s", "findOne": True, "create": False})
        assert config.cache_for("findMany").ttl == 30.0
        assert config.cache_for("findOne").ttl is None
        assert config.cache_for("create") is None
        assert config.cache_for("update") is None

    def test_cache_full_form(self):
        config = EntityConfig(cache={"findMany": {"ttl": "1m", "enabled": True}})
        assert config.cache_for("findMany") == OperationCacheConfig(ttl=60.0)

    def test_invalid_cache_ttl(self):
        with pytest.raises(ValidationError):
            EntityConfig(cache={"findMany": "forever"})

    def test_permission_rules_order(self):
        check = lambda user: True  # noqa: E731
        config = EntityConfig(allow_api_update="editor", allow_api_crud=check)
        assert config.permission_rules("update", "create", "crud") == ["editor", check]

    def test_extra_settings_allowed(self):
        config = EntityConfig(default_source="db", audit=True)
        assert config.audit is True


class TestSettings:
    """Tests for Settings and load_settings."""

    def test_defaults(self):
        settings = Settings()
        assert settings.service_name == "unidata"
        assert settings.cache_ttl == 300.0
        assert settings.remote_timeout == 5.0

    def test_validation(self):
        settings = Settings(cache_ttl="5m", log_level="debug")
        assert settings.cache_ttl == 300.0
        assert settings.log_level == "DEBUG"
        with pytest.raises(ValidationError):
            Settings(cache_max_entries=0)
        with pytest.raises(ValidationError):
            Settings(remote_timeout=0)

    def test_load_from_environment(self, monkeypatch):
        monkeypatch.setenv("UNIDATA_SERVICE_NAME", "catalog")
        monkeypatch.setenv("UNIDATA_DEBUG", "true")
        monkeypatch.setenv("UNIDATA_CACHE_TTL", "10s")
        monkeypatch.setenv("UNIDATA_CACHE_MAX_ENTRIES", "50")
        load_settings.cache_clear()
        try:
            settings = load_settings()
            assert settings.service_name == "catalog"
            assert settings.debug is True
            assert settings.cache_ttl == 10.0
            assert settings.cache_max_entries == 50
            assert load_settings() is settings
        finally:
            load_settings.cache_clear()
