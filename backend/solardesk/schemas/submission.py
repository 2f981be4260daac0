"""Schemas for submissions and the workflow endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from solardesk.dates import parse_date
from solardesk.models.submission import SubmissionStatus
from solardesk.services.workflow import Action


def _coerce_day(value):
    """Accept any supported date representation; reject what cannot be parsed."""
    if value is None:
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError(f"Invalid date: {value!r}")
    return parsed


class SubmissionBase(BaseModel):
    """Fields shared by manual entry and bulk import."""

    site: str = Field(..., min_length=1, max_length=255)
    date: datetime
    inv_gen: float | None = Field(default=None, ge=0)
    abt_export: float | None = Field(default=None, ge=0)
    poa: float | None = Field(default=None, ge=0)
    status: SubmissionStatus = SubmissionStatus.DRAFT

    @field_validator("site")
    @classmethod
    def strip_site(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Site is required")
        return v

    @field_validator("date", mode="before")
    @classmethod
    def parse_day(cls, v):
        return _coerce_day(v)


class SubmissionCreate(SubmissionBase):
    """Schema for creating a submission.

    Measures left out are calculated from the partner services; with
    ``auto_calculate`` all of them are recalculated.
    """

    auto_calculate: bool = False


class SubmissionBulkCreate(BaseModel):
    """Bulk import; measures are taken as given (missing means 0)."""

    submissions: list[SubmissionBase] = Field(..., min_length=1)


class SubmissionUpdate(BaseModel):
    """Schema for a status action and/or field edits."""

    action: Action | None = None
    site: str | None = Field(default=None, min_length=1, max_length=255)
    date: datetime | None = None
    inv_gen: float | None = Field(default=None, ge=0)
    abt_export: float | None = Field(default=None, ge=0)
    poa: float | None = Field(default=None, ge=0)
    expected_revision: int | None = Field(
        default=None, ge=1, description="Reject the update if the record has changed since"
    )

    @field_validator("site")
    @classmethod
    def strip_site(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Site cannot be blank")
        return v

    @field_validator("date", mode="before")
    @classmethod
    def parse_day(cls, v):
        return _coerce_day(v)

    def field_edits(self) -> dict:
        """Field changes requested alongside (or instead of) an action."""
        return self.model_dump(
            exclude_unset=True,
            exclude_none=True,
            include={"site", "date", "inv_gen", "abt_export", "poa"},
        )


class SubmissionResponse(BaseModel):
    """Response schema for a submission."""

    id: str
    site: str
    date: datetime
    inv_gen: float
    abt_export: float
    poa: float
    status: SubmissionStatus
    previous_status: SubmissionStatus | None = None
    submitted_by: str | None = None
    revision: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SubmissionListResponse(BaseModel):
    submissions: list[SubmissionResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class SubmissionStats(BaseModel):
    """Record counts per status within the caller's visible set."""

    total: int
    by_status: dict[str, int]


class BulkCreateResult(BaseModel):
    count: int


class DeleteResult(BaseModel):
    deleted_count: int


class RecalculateRequest(BaseModel):
    submission_ids: list[str] = Field(..., min_length=1)


class RecalculatedSubmission(BaseModel):
    id: str
    inv_gen: float
    abt_export: float


class RecalculateResponse(BaseModel):
    count: int
    results: list[RecalculatedSubmission]


class SyncRequest(BaseModel):
    site: str | None = Field(default=None, description="Only sync this site")


class SyncResult(BaseModel):
    created: int
    total: int = Field(description="Distinct site/day combinations found in the source")


class CalculationResponse(BaseModel):
    """Calculated measures, not persisted."""

    site: str
    date: str
    inv_gen: float
    abt_export: float
    poa: float
