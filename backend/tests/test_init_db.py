"""Tests for init_db() migration logic."""

from unittest.mock import patch

import pytest


@pytest.mark.asyncio
async def test_init_db_upgrades_to_head():
    """init_db runs Alembic upgrade to head with our migrations directory."""
    with patch("alembic.command.upgrade") as mock_upgrade:
        from solardesk.database import init_db

        await init_db()

        mock_upgrade.assert_called_once()
        config, target = mock_upgrade.call_args[0]
        assert target == "head"
        assert config.get_main_option("script_location").endswith("migrations")


@pytest.mark.asyncio
async def test_init_db_missing_config_raises():
    """A missing alembic.ini is reported rather than silently skipped."""
    with (
        patch("alembic.command.upgrade") as mock_upgrade,
        patch("pathlib.Path.exists", return_value=False),
    ):
        from solardesk.database import init_db

        with pytest.raises(FileNotFoundError):
            await init_db()

        mock_upgrade.assert_not_called()


@pytest.mark.asyncio
async def test_init_db_migration_failure_raises():
    """Migration failure should log and re-raise the exception."""
    with patch("alembic.command.upgrade", side_effect=RuntimeError("migration failed")):
        from solardesk.database import init_db

        with pytest.raises(RuntimeError, match="migration failed"):
            await init_db()


def test_satellite_engine_shared_without_separate_url():
    """With no satellite URL configured the satellite sessions use the main engine."""
    from solardesk import database

    assert database.settings.effective_satellite_url == database.settings.database_url
    assert database.satellite_engine is database.engine
    assert database.satellite_session_maker.kw["bind"] is database.engine
