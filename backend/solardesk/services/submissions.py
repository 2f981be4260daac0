"""Submission lifecycle: creation, workflow transitions, recalculation and sync.

Every write goes through a caller-supplied session. Status changes are
committed before their propagation is dispatched, so satellite stores never
see a status the submission itself does not have.
"""

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, distinct, extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from solardesk.config import Settings, get_settings
from solardesk.database import satellite_session_maker
from solardesk.dates import DayKey, day_bounds, parse_date, to_iso
from solardesk.exceptions import (
    ConflictError,
    NotFoundError,
    TransitionError,
    UpstreamUnavailable,
    ValidationError,
)
from solardesk.instrumentation import transitions_rejected_total, transitions_total
from solardesk.models import Submission, SubmissionStatus, SubmissionTransition
from solardesk.services import workflow
from solardesk.services.metrics import (
    DailyMetrics,
    MetricCalculator,
    inverter_generation_from_records,
)
from solardesk.services.propagation import PropagationDispatcher, StatusPropagator
from solardesk.services.workflow import Action, Actor, Role, visible_statuses
from solardesk.sources import InverterSource, build_sources

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("site", "date", "inv_gen", "abt_export", "poa")


@dataclass
class SubmissionFilters:
    """Dashboard filters. A date range takes priority over year/month."""

    site: str | None = None
    status: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    year: int | None = None
    month: int | None = None

    def date_range(self) -> tuple[datetime, datetime] | None:
        """Inclusive instant range selected by the filters, if any."""
        if self.start_date and self.end_date:
            start, _ = day_bounds(self.start_date)
            _, end = day_bounds(self.end_date)
            return start, end
        if self.year is None and self.month is None:
            return None

        year = self.year if self.year is not None else datetime.now(UTC).year
        if self.month is None:
            start = datetime(year, 1, 1, tzinfo=UTC)
            end = datetime(year + 1, 1, 1, tzinfo=UTC)
        else:
            if not 1 <= self.month <= 12:
                raise ValidationError(f"Invalid month: {self.month}")
            start = datetime(year, self.month, 1, tzinfo=UTC)
            if self.month == 12:
                end = datetime(year + 1, 1, 1, tzinfo=UTC)
            else:
                end = datetime(year, self.month + 1, 1, tzinfo=UTC)
        return start, end - timedelta(microseconds=1)


def _round(value: float) -> float:
    return round(float(value), 2)


def _label(value) -> str:
    return value.value if isinstance(value, (Role, Action)) else str(value)


class SubmissionService:
    """Operations on submissions, wired to the calculator and status propagation."""

    def __init__(
        self,
        calculator: MetricCalculator,
        dispatcher: PropagationDispatcher,
        inverter_source: InverterSource,
        *,
        batch_size: int = 10,
        sync_limit: int = 5000,
    ):
        self.calculator = calculator
        self.dispatcher = dispatcher
        self.inverter_source = inverter_source
        self.batch_size = batch_size
        self.sync_limit = sync_limit

    async def create_submission(
        self,
        db: AsyncSession,
        site: str,
        date,
        *,
        inv_gen: float | None = None,
        abt_export: float | None = None,
        poa: float | None = None,
        status: SubmissionStatus = SubmissionStatus.DRAFT,
        auto_calculate: bool = False,
    ) -> Submission:
        """Create one submission, calculating any measure not supplied.

        With ``auto_calculate`` every measure is recalculated, ignoring the
        supplied values.
        """
        site = (site or "").strip()
        if not site:
            raise ValidationError("Site is required")
        day = parse_date(date)
        if day is None:
            raise ValidationError(f"Invalid date: {date!r}")

        if auto_calculate:
            inv_gen = abt_export = poa = None
        if inv_gen is None or abt_export is None or poa is None:
            metrics = await self.calculator.calculate(site, day, include_poa=poa is None)
            inv_gen = metrics.inv_gen if inv_gen is None else inv_gen
            abt_export = metrics.abt_export if abt_export is None else abt_export
            poa = metrics.poa if poa is None else poa

        submission = Submission(
            site=site,
            date=day,
            inv_gen=_round(inv_gen),
            abt_export=_round(abt_export),
            poa=_round(poa),
            status=SubmissionStatus(status),
        )
        db.add(submission)
        await db.flush()
        await db.refresh(submission)
        logger.info(f"Created submission {submission.id} for {site} on {to_iso(day)}")
        return submission

    async def create_many(self, db: AsyncSession, items: Iterable[dict]) -> int:
        """Bulk import without calculation. Missing measures are stored as 0."""
        submissions = []
        for item in items:
            site = (item.get("site") or "").strip()
            day = parse_date(item.get("date"))
            if not site or day is None:
                raise ValidationError(
                    f"Invalid submission: site={item.get('site')!r} date={item.get('date')!r}"
                )
            submissions.append(
                Submission(
                    site=site,
                    date=day,
                    inv_gen=_round(item.get("inv_gen") or 0),
                    abt_export=_round(item.get("abt_export") or 0),
                    poa=_round(item.get("poa") or 0),
                    status=SubmissionStatus(item.get("status") or SubmissionStatus.DRAFT),
                )
            )
        if not submissions:
            raise ValidationError("No submissions to create")

        db.add_all(submissions)
        await db.flush()
        logger.info(f"Bulk created {len(submissions)} submissions")
        return len(submissions)

    async def get(self, db: AsyncSession, submission_id: str) -> Submission:
        submission = await db.get(Submission, submission_id)
        if submission is None:
            raise NotFoundError("Submission not found")
        return submission

    async def apply_transition(
        self,
        db: AsyncSession,
        submission_id: str,
        actor: Actor,
        action: Action | str | None = None,
        field_edits: dict | None = None,
        expected_revision: int | None = None,
    ) -> Submission:
        """Apply a status action and/or field edits, then propagate the new status.

        Raises:
            NotFoundError: no such submission.
            ConflictError: the record changed since ``expected_revision`` or
                a concurrent writer won the race.
            TransitionError: the action is not allowed, or the record is locked.
            ValidationError: nothing to change.
        """
        field_edits = {k: v for k, v in (field_edits or {}).items() if k in EDITABLE_FIELDS}
        if action is None and not field_edits:
            raise ValidationError("Nothing to update")

        submission = await self.get(db, submission_id)
        if expected_revision is not None and submission.revision != expected_revision:
            raise ConflictError(
                f"Submission was modified (revision {submission.revision}, "
                f"expected {expected_revision})"
            )

        transition = None
        if action is not None:
            try:
                transition = workflow.apply_transition(submission, actor.role, action, actor.id)
            except TransitionError:
                role, action_name = _label(actor.role), _label(action)
                transitions_rejected_total.labels(role=role, action=action_name).inc()
                logger.info(
                    f"Rejected {action_name!r} by {role} "
                    f"on submission {submission_id} ({submission.status.value})"
                )
                raise
            db.add(
                SubmissionTransition(
                    submission_id=submission.id,
                    action=transition.action.value,
                    role=transition.role.value,
                    actor_id=actor.id,
                    from_status=transition.from_status.value,
                    to_status=transition.to_status.value,
                )
            )
        elif submission.is_locked:
            raise TransitionError("HQ Approved records cannot be modified")

        for name, value in field_edits.items():
            if name == "date":
                value = DayKey.of(value).instant
            elif name == "site":
                value = value.strip()
            else:
                value = _round(value)
            setattr(submission, name, value)

        try:
            await db.flush()
            await db.commit()
        except StaleDataError:
            await db.rollback()
            raise ConflictError("Submission was modified by another request") from None

        if transition is not None:
            transitions_total.labels(
                role=transition.role.value, action=transition.action.value
            ).inc()
            logger.info(
                f"Submission {submission.id}: {transition.from_status.value} -> "
                f"{transition.to_status.value} ({transition.action.value} by "
                f"{transition.role.value} {actor.id})"
            )
            self.dispatcher.dispatch(submission.site, submission.date, submission.status)
        return submission

    async def calculate(self, site: str, date) -> DailyMetrics:
        """Preview all measures for a site and day without storing anything."""
        site = (site or "").strip()
        day = parse_date(date)
        if not site or day is None:
            raise ValidationError("Both site and date parameters are required")
        return await self.calculator.calculate(site, day)

    async def recalculate(
        self, db: AsyncSession, submission_ids: list[str]
    ) -> list[dict]:
        """Recompute inverter generation and ABT export for the given submissions.

        POA is left as stored. Returns ``{id, inv_gen, abt_export}`` per
        submission found, in database order.
        """
        if not submission_ids:
            raise ValidationError("submission_ids is required")

        result = await db.execute(select(Submission).where(Submission.id.in_(submission_ids)))
        submissions = list(result.scalars().all())
        if not submissions:
            raise NotFoundError("No submissions found")

        locked = [s.id for s in submissions if s.is_locked]
        if locked:
            logger.info(f"Skipping {len(locked)} HQ Approved submission(s) in recalculation")
            submissions = [s for s in submissions if not s.is_locked]

        metrics = await self.calculator.calculate_many(
            [(s.site, s.date) for s in submissions],
            batch_size=self.batch_size,
            include_poa=False,
        )
        results = []
        for submission, calculated in zip(submissions, metrics, strict=True):
            submission.inv_gen = calculated.inv_gen
            submission.abt_export = calculated.abt_export
            results.append(
                {
                    "id": submission.id,
                    "inv_gen": calculated.inv_gen,
                    "abt_export": calculated.abt_export,
                }
            )

        try:
            await db.flush()
        except StaleDataError:
            raise ConflictError("Submissions were modified during recalculation") from None
        logger.info(f"Recalculated {len(results)} submissions")
        return results

    async def sync_from_source(self, db: AsyncSession, site: str | None = None) -> dict:
        """Create a Draft submission for every new (site, day) in the inverter source.

        Returns ``{"created": n, "total": m}`` where ``total`` counts the
        distinct combinations found in the source.
        """
        records = await self.inverter_source.records(self.sync_limit)

        groups: dict[tuple[str, str], dict] = {}
        for record in records:
            name = record.get("siteName")
            if not isinstance(name, str) or not name:
                continue
            if site and name != site:
                continue
            day = parse_date(record.get("date"))
            if day is None:
                continue
            key = (name, to_iso(day))
            group = groups.setdefault(key, {"site": name, "date": day, "records": []})
            group["records"].append(record)

        if not groups:
            logger.info("No inverter records to sync")
            return {"created": 0, "total": 0}

        existing = await db.execute(select(Submission.site, Submission.date))
        existing_keys = {(row.site, to_iso(row.date)) for row in existing}
        pending = [group for key, group in groups.items() if key not in existing_keys]

        metrics = await self.calculator.calculate_many(
            [(group["site"], group["date"]) for group in pending],
            batch_size=self.batch_size,
            include_inv_gen=False,
        )
        # Inverter generation comes from the records already fetched
        created = [
            Submission(
                site=group["site"],
                date=group["date"],
                inv_gen=_round(inverter_generation_from_records(group["records"])),
                abt_export=calculated.abt_export,
                poa=calculated.poa,
                status=SubmissionStatus.DRAFT,
            )
            for group, calculated in zip(pending, metrics, strict=True)
        ]
        if created:
            db.add_all(created)
            await db.flush()

        logger.info(f"Synced {len(pending)} new submissions from inverter data ({len(groups)} found)")
        return {"created": len(pending), "total": len(groups)}

    async def delete(self, db: AsyncSession, submission_id: str) -> None:
        submission = await self.get(db, submission_id)
        await db.delete(submission)
        await db.flush()
        logger.info(f"Deleted submission {submission_id}")

    async def delete_all(self, db: AsyncSession) -> int:
        result = await db.execute(delete(Submission))
        deleted = result.rowcount or 0
        logger.warning(f"Deleted all submissions ({deleted})")
        return deleted

    def _filtered(self, statement, role: Role, filters: SubmissionFilters):
        statement = statement.where(
            Submission.status.in_(visible_statuses(role, filters.status))
        )
        if filters.site and filters.site != "all":
            statement = statement.where(Submission.site == filters.site)
        date_range = filters.date_range()
        if date_range is not None:
            statement = statement.where(Submission.date.between(*date_range))
        return statement

    async def list_submissions(
        self,
        db: AsyncSession,
        role: Role,
        filters: SubmissionFilters,
        page: int = 1,
        limit: int = 100,
    ) -> dict:
        """Page of submissions visible to ``role``, newest date first."""
        total = await db.scalar(
            self._filtered(select(func.count()).select_from(Submission), role, filters)
        )
        result = await db.execute(
            self._filtered(select(Submission), role, filters)
            .order_by(Submission.date.desc(), Submission.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        total = total or 0
        return {
            "submissions": list(result.scalars().all()),
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit),
        }

    async def stats(self, db: AsyncSession, role: Role, filters: SubmissionFilters) -> dict:
        """Counts per status within what ``role`` can see."""
        result = await db.execute(
            self._filtered(
                select(Submission.status, func.count()).group_by(Submission.status),
                role,
                filters,
            )
        )
        by_status = {status.value: 0 for status in SubmissionStatus}
        for status, count in result.all():
            by_status[SubmissionStatus(status).value] = count
        return {"total": sum(by_status.values()), "by_status": by_status}

    async def list_sites(self, db: AsyncSession) -> list[str]:
        """Sites known from submissions plus those reported by the inverter service."""
        result = await db.execute(select(distinct(Submission.site)))
        sites = {site for site in result.scalars().all() if site}
        try:
            sites.update(await self.inverter_source.sites())
        except UpstreamUnavailable as e:
            logger.info(f"Could not fetch sites from inverter service, using database only: {e}")
        return sorted(sites)

    async def list_years(self, db: AsyncSession) -> list[int]:
        year = extract("year", func.timezone("UTC", Submission.date))
        result = await db.execute(select(distinct(year)).order_by(year.desc()))
        return [int(value) for value in result.scalars().all() if value is not None]


def build_submission_service(settings: Settings) -> SubmissionService:
    """Wire sources, calculator and propagation from settings."""
    inverter, meter, weather = build_sources(settings)
    calculator = MetricCalculator(
        inverter,
        meter,
        weather,
        inverter_limit=settings.inverter_record_limit,
        meter_limit=settings.meter_record_limit,
        weather_limit=settings.weather_record_limit,
        timeout=settings.upstream_timeout_seconds,
    )
    dispatcher = PropagationDispatcher(
        StatusPropagator(satellite_session_maker),
        drain_timeout=settings.propagation_drain_timeout,
    )
    return SubmissionService(
        calculator,
        dispatcher,
        inverter,
        batch_size=settings.recalculate_batch_size,
        sync_limit=settings.sync_record_limit,
    )


# Default instance used by the API
submission_service = build_submission_service(get_settings())
