"""Submission model: one approval-workflow record per site and calendar day."""

import enum
from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, Enum, Float, Index, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from solardesk.database import Base, utc_now


class SubmissionStatus(str, enum.Enum):
    """Workflow status. Values are the strings stored in every collection."""

    DRAFT = "Draft"
    SITE_PUBLISH = "Site Publish"
    SEND_TO_HQ_APPROVAL = "Send to HQ Approval"
    HQ_APPROVED = "HQ Approved"
    SITE_HOLD = "Site Hold"


def _status_column(**kwargs):
    return mapped_column(
        Enum(
            SubmissionStatus,
            name="submission_status",
            native_enum=False,
            length=32,
            values_callable=lambda members: [m.value for m in members],
        ),
        **kwargs,
    )


class Submission(Base):
    """Daily energy figures for a site and their approval status."""

    __tablename__ = "submissions"
    __table_args__ = (
        Index("ix_submissions_site_date", "site", "date"),
        Index("ix_submissions_status", "status"),
    )

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    site: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Always UTC midnight of the calendar day
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    # kWh, kWh, kWh/m2
    inv_gen: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    abt_export: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    poa: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    status: Mapped[SubmissionStatus] = _status_column(
        nullable=False, default=SubmissionStatus.DRAFT
    )
    previous_status: Mapped[SubmissionStatus | None] = _status_column(nullable=True)
    submitted_by: Mapped[str | None] = mapped_column(String(255))

    # Optimistic concurrency counter, bumped by SQLAlchemy on every UPDATE
    revision: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
    )

    __mapper_args__ = {"version_id_col": revision}

    @property
    def is_locked(self) -> bool:
        """HQ Approved records accept no further changes."""
        return self.status == SubmissionStatus.HQ_APPROVED

    def __repr__(self) -> str:
        return f"<Submission {self.site} {self.date:%Y-%m-%d} {self.status.value}>"
