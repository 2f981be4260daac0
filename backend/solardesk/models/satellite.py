"""Collections owned by the sibling energy services.

SolarDesk only reads site ids from the registry and mirrors the workflow
status onto these rows; the owning services create and migrate them. Columns
not needed for matching or status mirroring are mapped for completeness of
reads only.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from solardesk.database import SatelliteBase, utc_now


def _id_column():
    return mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )


class InverterRecord(SatelliteBase):
    """Daily inverter outputs for a site, keyed by instant."""

    __tablename__ = "inverter_records"
    __table_args__ = (Index("ix_inverter_records_site_date", "site_name", "date"),)

    id: Mapped[str] = _id_column()
    site_name: Mapped[str] = mapped_column(String(255), nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # Channel name -> reading, as uploaded
    inverter_values: Mapped[dict] = mapped_column(JSON, default=dict)
    status: Mapped[str] = mapped_column(String(32), default="Draft")
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class WeatherRecord(SatelliteBase):
    """Weather station sample; date is stored as a DD-MM-YYYY string."""

    __tablename__ = "weather_records"
    __table_args__ = (Index("ix_weather_records_date_time", "date", "time", unique=True),)

    id: Mapped[str] = _id_column()
    site_name: Mapped[str | None] = mapped_column(String(255))
    date: Mapped[str] = mapped_column(String(20), nullable=False)
    time: Mapped[str] = mapped_column(String(10), nullable=False)
    poa: Mapped[float] = mapped_column(Float, nullable=False)
    ghi: Mapped[float | None] = mapped_column(Float)
    module_temp: Mapped[float | None] = mapped_column(Float)
    ambient_temp: Mapped[float | None] = mapped_column(Float)
    status: Mapped[str] = mapped_column(String(32), default="Draft")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class MeterRecord(SatelliteBase):
    """Plant-wide meter sample; no site dimension, date is a DD-MM-YYYY string."""

    __tablename__ = "meter_records"
    __table_args__ = (Index("ix_meter_records_date_time", "date", "time", unique=True),)

    id: Mapped[str] = _id_column()
    date: Mapped[str] = mapped_column(String(20), nullable=False)
    time: Mapped[str] = mapped_column(String(10), nullable=False)
    active_energy_import: Mapped[float] = mapped_column(Float, default=0.0)
    active_energy_export: Mapped[float] = mapped_column(Float, default=0.0)
    status: Mapped[str] = mapped_column(String(32), default="Draft")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class Site(SatelliteBase):
    """Site registry entry; its id keys the generation aggregates."""

    __tablename__ = "sites"

    id: Mapped[str] = _id_column()
    site_name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    capacity_kw: Mapped[float | None] = mapped_column(Float)


class DailyGeneration(SatelliteBase):
    """Generation total for one site and day."""

    __tablename__ = "daily_generations"
    __table_args__ = (Index("ix_daily_generations_site_date", "site_id", "date", unique=True),)

    id: Mapped[str] = _id_column()
    site_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("sites.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    daily_generation: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String(32), default="Draft")
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class MonthlyGeneration(SatelliteBase):
    """Generation total for one site and month (month is zero-based)."""

    __tablename__ = "monthly_generations"
    __table_args__ = (
        Index("ix_monthly_generations_site_period", "site_id", "year", "month", unique=True),
    )

    id: Mapped[str] = _id_column()
    site_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("sites.id", ondelete="CASCADE"), nullable=False
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    monthly_generation: Mapped[float] = mapped_column(Float, default=0.0)
    status: Mapped[str] = mapped_column(String(32), default="Draft")
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class BuildGeneration(SatelliteBase):
    """Annual (build) generation figures for one site."""

    __tablename__ = "build_generations"
    __table_args__ = (Index("ix_build_generations_site_year", "site_id", "year", unique=True),)

    id: Mapped[str] = _id_column()
    site_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("sites.id", ondelete="CASCADE"), nullable=False
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    build_generation: Mapped[float] = mapped_column(Float, default=0.0)
    status: Mapped[str] = mapped_column(String(32), default="Draft")
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
