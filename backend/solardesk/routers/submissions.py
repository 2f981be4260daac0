"""Submission workflow endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from solardesk.auth.middleware import require_admin, require_superadmin, require_user
from solardesk.database import get_db
from solardesk.dates import parse_date, to_iso
from solardesk.exceptions import SolarDeskError
from solardesk.schemas.submission import (
    BulkCreateResult,
    CalculationResponse,
    DeleteResult,
    RecalculatedSubmission,
    RecalculateRequest,
    RecalculateResponse,
    SubmissionBulkCreate,
    SubmissionCreate,
    SubmissionListResponse,
    SubmissionResponse,
    SubmissionStats,
    SubmissionUpdate,
    SyncRequest,
    SyncResult,
)
from solardesk.services.submissions import (
    SubmissionFilters,
    SubmissionService,
    submission_service,
)
from solardesk.services.workflow import Actor, Role

router = APIRouter(prefix="/api", tags=["submissions"])


def get_submission_service() -> SubmissionService:
    """Dependency returning the application's submission service."""
    return submission_service


def _http_error(e: SolarDeskError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


def _parse_query_date(value: str | None, name: str):
    if not value:
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {name}: {value!r}",
        )
    return parsed


def get_filters(
    site: str | None = Query(default=None, description="Site name, or 'all'"),
    status_filter: str | None = Query(default=None, alias="status"),
    start_date: str | None = Query(default=None),
    end_date: str | None = Query(default=None),
    year: int | None = Query(default=None, ge=1970, le=2100),
    month: int | None = Query(default=None, ge=1, le=12),
) -> SubmissionFilters:
    """Dashboard filters from the query string."""
    return SubmissionFilters(
        site=site,
        status=status_filter,
        start_date=_parse_query_date(start_date, "start_date"),
        end_date=_parse_query_date(end_date, "end_date"),
        year=year,
        month=month,
    )


@router.get("/calculate", response_model=CalculationResponse)
async def calculate(
    site: str | None = Query(default=None),
    date: str | None = Query(default=None),
    service: SubmissionService = Depends(get_submission_service),
    _actor: Actor = Depends(require_user),
) -> CalculationResponse:
    """Preview the calculated measures for a site and day."""
    try:
        metrics = await service.calculate(site, date)
    except SolarDeskError as e:
        raise _http_error(e) from e
    return CalculationResponse(
        site=metrics.site,
        date=to_iso(metrics.date),
        inv_gen=metrics.inv_gen,
        abt_export=metrics.abt_export,
        poa=metrics.poa,
    )


@router.get("/sites", response_model=list[str])
async def list_sites(
    db: AsyncSession = Depends(get_db),
    service: SubmissionService = Depends(get_submission_service),
    _actor: Actor = Depends(require_user),
) -> list[str]:
    """Site names from stored submissions and the inverter service."""
    return await service.list_sites(db)


@router.get("/years", response_model=list[int])
async def list_years(
    db: AsyncSession = Depends(get_db),
    service: SubmissionService = Depends(get_submission_service),
    _actor: Actor = Depends(require_user),
) -> list[int]:
    return await service.list_years(db)


@router.get("/stats", response_model=SubmissionStats)
async def get_stats(
    filters: SubmissionFilters = Depends(get_filters),
    db: AsyncSession = Depends(get_db),
    service: SubmissionService = Depends(get_submission_service),
    actor: Actor = Depends(require_user),
) -> SubmissionStats:
    """Counts per status, limited to what the caller's role works on."""
    try:
        stats = await service.stats(db, actor.role, filters)
    except SolarDeskError as e:
        raise _http_error(e) from e
    return SubmissionStats(**stats)


@router.get("/submissions", response_model=SubmissionListResponse)
async def list_submissions(
    filters: SubmissionFilters = Depends(get_filters),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    service: SubmissionService = Depends(get_submission_service),
    actor: Actor = Depends(require_user),
) -> SubmissionListResponse:
    """Paged submissions visible to the caller's role, newest first."""
    try:
        result = await service.list_submissions(db, actor.role, filters, page, limit)
    except SolarDeskError as e:
        raise _http_error(e) from e
    return SubmissionListResponse(
        submissions=[SubmissionResponse.model_validate(s) for s in result["submissions"]],
        total=result["total"],
        page=result["page"],
        limit=result["limit"],
        total_pages=result["total_pages"],
    )


@router.post(
    "/submissions", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED
)
async def create_submission(
    data: SubmissionCreate,
    db: AsyncSession = Depends(get_db),
    service: SubmissionService = Depends(get_submission_service),
    _actor: Actor = Depends(require_admin),
) -> SubmissionResponse:
    """Create a submission, calculating measures that were left out."""
    try:
        submission = await service.create_submission(
            db,
            data.site,
            data.date,
            inv_gen=data.inv_gen,
            abt_export=data.abt_export,
            poa=data.poa,
            status=data.status,
            auto_calculate=data.auto_calculate,
        )
    except SolarDeskError as e:
        raise _http_error(e) from e
    return SubmissionResponse.model_validate(submission)


@router.post(
    "/submissions/bulk", response_model=BulkCreateResult, status_code=status.HTTP_201_CREATED
)
async def bulk_create_submissions(
    data: SubmissionBulkCreate,
    db: AsyncSession = Depends(get_db),
    service: SubmissionService = Depends(get_submission_service),
    _actor: Actor = Depends(require_admin),
) -> BulkCreateResult:
    """Import submissions as given, without calculation."""
    try:
        count = await service.create_many(db, [item.model_dump() for item in data.submissions])
    except SolarDeskError as e:
        raise _http_error(e) from e
    return BulkCreateResult(count=count)


@router.put("/submissions/{submission_id}", response_model=SubmissionResponse)
async def update_submission(
    submission_id: str,
    data: SubmissionUpdate,
    db: AsyncSession = Depends(get_db),
    service: SubmissionService = Depends(get_submission_service),
    actor: Actor = Depends(require_user),
) -> SubmissionResponse:
    """Apply a workflow action and/or edit fields.

    Users may only act (submit); editing without an action needs admin.
    """
    edits = data.field_edits()
    if data.action is None and actor.role == Role.USER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Users can only submit Draft records",
        )
    try:
        submission = await service.apply_transition(
            db,
            submission_id,
            actor,
            action=data.action,
            field_edits=edits,
            expected_revision=data.expected_revision,
        )
    except SolarDeskError as e:
        raise _http_error(e) from e
    return SubmissionResponse.model_validate(submission)


# Registered before /submissions/{submission_id} so "cleanup" is not taken as an id
@router.delete("/submissions/cleanup", response_model=DeleteResult)
async def delete_all_submissions(
    db: AsyncSession = Depends(get_db),
    service: SubmissionService = Depends(get_submission_service),
    _actor: Actor = Depends(require_superadmin),
) -> DeleteResult:
    """Delete every submission."""
    deleted = await service.delete_all(db)
    return DeleteResult(deleted_count=deleted)


@router.delete("/submissions/{submission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_submission(
    submission_id: str,
    db: AsyncSession = Depends(get_db),
    service: SubmissionService = Depends(get_submission_service),
    _actor: Actor = Depends(require_superadmin),
) -> None:
    """Delete a submission."""
    try:
        await service.delete(db, submission_id)
    except SolarDeskError as e:
        raise _http_error(e) from e


@router.post("/sync-inverter", response_model=SyncResult)
async def sync_inverter(
    data: SyncRequest | None = None,
    db: AsyncSession = Depends(get_db),
    service: SubmissionService = Depends(get_submission_service),
    _actor: Actor = Depends(require_admin),
) -> SyncResult:
    """Create Draft submissions for site/days found in the inverter service."""
    try:
        result = await service.sync_from_source(db, site=data.site if data else None)
    except SolarDeskError as e:
        raise _http_error(e) from e
    return SyncResult(**result)


@router.post("/recalculate-all", response_model=RecalculateResponse)
async def recalculate_all(
    data: RecalculateRequest,
    db: AsyncSession = Depends(get_db),
    service: SubmissionService = Depends(get_submission_service),
    _actor: Actor = Depends(require_admin),
) -> RecalculateResponse:
    """Recalculate inverter generation and ABT export for the given submissions."""
    try:
        results = await service.recalculate(db, data.submission_ids)
    except SolarDeskError as e:
        raise _http_error(e) from e
    return RecalculateResponse(
        count=len(results),
        results=[RecalculatedSubmission(**item) for item in results],
    )
