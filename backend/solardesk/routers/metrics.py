"""Prometheus metrics endpoint."""

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Gauge, generate_latest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from solardesk import instrumentation
from solardesk.database import get_db
from solardesk.models import Submission, SubmissionStatus

router = APIRouter(tags=["metrics"])


async def collect_metrics(db: AsyncSession) -> bytes:
    """Collect workflow metrics and return Prometheus format."""
    registry = CollectorRegistry()

    submissions = Gauge(
        "solardesk_submissions",
        "Submissions by workflow status",
        ["status"],
        registry=registry,
    )

    counts = {status: 0 for status in SubmissionStatus}
    result = await db.execute(
        select(Submission.status, func.count()).group_by(Submission.status)
    )
    for status, count in result.all():
        counts[SubmissionStatus(status)] = count
    for status, count in counts.items():
        submissions.labels(status=status.value).set(count)

    return generate_latest(registry) + generate_latest(instrumentation.registry)


@router.get("/metrics", response_class=PlainTextResponse)
async def prometheus_metrics(db: AsyncSession = Depends(get_db)) -> PlainTextResponse:
    """Prometheus metrics endpoint."""
    metrics_data = await collect_metrics(db)
    return PlainTextResponse(content=metrics_data, media_type=CONTENT_TYPE_LATEST)
