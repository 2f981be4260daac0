"""Shared fixtures for the SolarDesk test suite."""

from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from sqlalchemy.sql.dml import Update

from solardesk.models import Submission, SubmissionStatus


class FakeSatelliteSession:
    """Async session stand-in that records UPDATE statements per table."""

    def __init__(self, store: "FakeSatelliteStore"):
        self.store = store

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def execute(self, statement):
        if isinstance(statement, Update):
            table = statement.table.name
            if table in self.store.failing:
                raise RuntimeError(f"{table} unavailable")
            params = statement.compile().params
            self.store.updates.append((table, params))
            return SimpleNamespace(rowcount=self.store.rowcounts.get(table, 1))

        if self.store.site_lookup_error:
            raise RuntimeError("sites unavailable")
        result = MagicMock()
        result.scalar.return_value = self.store.site_id
        return result

    async def commit(self):
        self.store.commits += 1


class FakeSatelliteStore:
    """Satellite collections behind a session factory, with injectable failures."""

    def __init__(self, site_id: str | None = "site-1"):
        self.site_id = site_id
        self.site_lookup_error = False
        self.failing: set[str] = set()
        self.rowcounts: dict[str, int] = {}
        self.updates: list[tuple[str, dict]] = []
        self.commits = 0

    def __call__(self):
        return FakeSatelliteSession(self)

    def tables_updated(self) -> list[str]:
        return [table for table, _ in self.updates]


@pytest.fixture
def satellite_store():
    """Session factory over fake satellite collections."""
    return FakeSatelliteStore()


@pytest.fixture
def make_submission():
    """Factory for detached Submission objects."""

    def _make(**overrides) -> Submission:
        fields = {
            "id": "sub-1",
            "site": "Alpha",
            "date": datetime(2025, 6, 1, tzinfo=UTC),
            "inv_gen": 0.0,
            "abt_export": 0.0,
            "poa": 0.0,
            "status": SubmissionStatus.DRAFT,
            "previous_status": None,
            "submitted_by": None,
            "revision": 1,
        }
        fields.update(overrides)
        return Submission(**fields)

    return _make
