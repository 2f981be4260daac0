"""Tests for application settings."""

import pytest

from solardesk.config import Settings


class TestSettingsDefaults:
    """Test default values."""

    def test_partner_service_defaults(self):
        s = Settings()
        assert s.inverter_api_url == "http://localhost:5002/api"
        assert s.meter_api_url == "http://localhost:3000/meter"
        assert s.upstream_timeout_seconds == 30.0

    def test_fetch_limits(self):
        s = Settings()
        assert s.inverter_record_limit == 1000
        assert s.weather_record_limit == 5000
        assert s.meter_record_limit == 1000
        assert s.sync_record_limit == 5000

    def test_recalculate_batch_size_default(self):
        assert Settings().recalculate_batch_size == 10

    def test_server_bind_defaults(self):
        s = Settings()
        assert s.host == "0.0.0.0"
        assert s.port == 8000

    def test_satellite_url_defaults_to_primary(self):
        s = Settings(database_url="postgresql+asyncpg://a/b")
        assert s.satellite_database_url is None
        assert s.effective_satellite_url == "postgresql+asyncpg://a/b"

    def test_satellite_url_override(self):
        s = Settings(
            database_url="postgresql+asyncpg://a/b",
            satellite_database_url="postgresql+asyncpg://c/energy",
        )
        assert s.effective_satellite_url == "postgresql+asyncpg://c/energy"


class TestSettingsValidation:
    """Test validators."""

    def test_trailing_slash_stripped(self):
        s = Settings(inverter_api_url="https://inverter.example.com/api/")
        assert s.inverter_api_url == "https://inverter.example.com/api"

    def test_url_requires_scheme(self):
        with pytest.raises(Exception, match="http:// or https://"):
            Settings(meter_api_url="meter.example.com/meter")

    def test_batch_size_bounds(self):
        with pytest.raises(Exception):
            Settings(recalculate_batch_size=0)
        with pytest.raises(Exception):
            Settings(recalculate_batch_size=101)

    def test_cors_origins_comma_separated(self):
        s = Settings(cors_origins="http://a.example, http://b.example,")
        assert s.cors_origins == ["http://a.example", "http://b.example"]

    def test_env_vars(self, monkeypatch):
        monkeypatch.setenv("METER_API_TOKEN", "meter-secret")
        monkeypatch.setenv("SYNC_RECORD_LIMIT", "200")
        s = Settings()
        assert s.meter_api_token == "meter-secret"
        assert s.sync_record_limit == 200
