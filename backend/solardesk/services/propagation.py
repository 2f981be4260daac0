"""Mirror a submission's status onto the satellite collections.

Satellite rows are correlated with a submission only by site name and calendar
day, in whichever representation each store keys by. Every update runs in its
own transaction and is attempted regardless of the others; a failure is
recorded in the report and logged, never raised. Running the same propagation
again sets the same values on the same rows.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from solardesk.database import utc_now
from solardesk.dates import DayKey
from solardesk.instrumentation import propagation_updates_total
from solardesk.models import (
    BuildGeneration,
    DailyGeneration,
    InverterRecord,
    MeterRecord,
    MonthlyGeneration,
    Site,
    SubmissionStatus,
    WeatherRecord,
)

logger = logging.getLogger(__name__)

AGGREGATE_COLLECTIONS = ("daily_generations", "monthly_generations", "build_generations")


@dataclass
class SyncOutcome:
    """Result of one satellite update."""

    collection: str
    matched: int = 0
    error: str | None = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class PropagationReport:
    """Per-collection outcomes of one propagation."""

    site: str
    day: str
    status: str
    outcomes: list[SyncOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes)

    @property
    def failed(self) -> list[SyncOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    @property
    def total_matched(self) -> int:
        return sum(outcome.matched for outcome in self.outcomes)


class StatusPropagator:
    """Applies a status to every satellite row for a site and day."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _update(self, collection: str, statement) -> SyncOutcome:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    statement.execution_options(synchronize_session=False)
                )
                await db.commit()
            outcome = SyncOutcome(collection, matched=result.rowcount or 0)
        except Exception as e:
            logger.error(f"Status sync to {collection} failed: {e}")
            outcome = SyncOutcome(collection, error=str(e) or type(e).__name__)

        propagation_updates_total.labels(
            collection=collection, result="ok" if outcome.ok else "error"
        ).inc()
        if outcome.matched:
            logger.debug(f"Updated {outcome.matched} {collection} row(s)")
        return outcome

    async def _site_id(self, site: str) -> str | None:
        async with self._session_factory() as db:
            result = await db.execute(select(Site.id).where(Site.site_name == site).limit(1))
            return result.scalar()

    async def propagate(
        self, site: str, date: datetime, status: SubmissionStatus | str
    ) -> PropagationReport:
        """Set ``status`` on all satellite rows for ``site`` on ``date``."""
        key = DayKey.of(date)
        status_value = SubmissionStatus(status).value
        values = {"status": status_value, "updated_at": utc_now()}
        report = PropagationReport(site=site, day=key.iso, status=status_value)

        logger.info(f"Syncing status {status_value!r} for {site} on {key.ddmmyyyy}")

        report.outcomes.append(
            await self._update(
                "inverter_records",
                update(InverterRecord)
                .where(
                    InverterRecord.site_name == site,
                    InverterRecord.date.between(key.start, key.end),
                )
                .values(**values),
            )
        )
        report.outcomes.append(
            await self._update(
                "weather_records",
                update(WeatherRecord)
                .where(WeatherRecord.site_name == site, WeatherRecord.date == key.ddmmyyyy)
                .values(**values),
            )
        )
        # Meter readings are plant-wide: no site filter
        report.outcomes.append(
            await self._update(
                "meter_records",
                update(MeterRecord).where(MeterRecord.date == key.ddmmyyyy).values(**values),
            )
        )

        try:
            site_id = await self._site_id(site)
        except Exception as e:
            logger.error(f"Site lookup for {site!r} failed, skipping aggregates: {e}")
            for collection in AGGREGATE_COLLECTIONS:
                report.outcomes.append(
                    SyncOutcome(collection, error=f"site lookup failed: {e}")
                )
                propagation_updates_total.labels(collection=collection, result="error").inc()
            site_id = None
        else:
            if site_id is None:
                logger.info(f"Site {site!r} not in registry, no aggregates to sync")
                report.outcomes.extend(
                    SyncOutcome(collection, skipped=True) for collection in AGGREGATE_COLLECTIONS
                )

        if site_id is not None:
            report.outcomes.append(
                await self._update(
                    "daily_generations",
                    update(DailyGeneration)
                    .where(
                        DailyGeneration.site_id == site_id,
                        DailyGeneration.date.between(key.start, key.end),
                    )
                    .values(**values),
                )
            )
            report.outcomes.append(
                await self._update(
                    "monthly_generations",
                    update(MonthlyGeneration)
                    .where(
                        MonthlyGeneration.site_id == site_id,
                        MonthlyGeneration.year == key.year,
                        MonthlyGeneration.month == key.month0,
                    )
                    .values(**values),
                )
            )
            report.outcomes.append(
                await self._update(
                    "build_generations",
                    update(BuildGeneration)
                    .where(BuildGeneration.site_id == site_id, BuildGeneration.year == key.year)
                    .values(**values),
                )
            )

        if report.ok:
            logger.info(
                f"Status sync complete for {site} on {key.ddmmyyyy}: "
                f"{report.total_matched} row(s)"
            )
        else:
            failed = ", ".join(outcome.collection for outcome in report.failed)
            logger.warning(f"Status sync for {site} on {key.ddmmyyyy} incomplete; failed: {failed}")
        return report


class PropagationDispatcher:
    """Runs propagations in the background so callers never wait on them.

    Pending tasks are tracked so they finish on shutdown instead of being
    dropped with the event loop.
    """

    def __init__(self, propagator: StatusPropagator, drain_timeout: float = 10.0):
        self.propagator = propagator
        self.drain_timeout = drain_timeout
        self._pending: set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def dispatch(
        self, site: str, date: datetime, status: SubmissionStatus | str
    ) -> asyncio.Task:
        """Schedule a propagation and return immediately."""
        task = asyncio.create_task(self._run(site, date, status))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _run(
        self, site: str, date: datetime, status: SubmissionStatus | str
    ) -> PropagationReport | None:
        try:
            return await self.propagator.propagate(site, date, status)
        except Exception:
            logger.exception(f"Status sync for {site} aborted")
            return None

    async def stop(self) -> None:
        """Wait for pending propagations, up to drain_timeout."""
        if not self._pending:
            return
        logger.info(f"Waiting for {len(self._pending)} pending status sync(s)")
        _, still_running = await asyncio.wait(set(self._pending), timeout=self.drain_timeout)
        if still_running:
            logger.warning(f"Cancelling {len(still_running)} status sync(s) still running")
            for task in still_running:
                task.cancel()
