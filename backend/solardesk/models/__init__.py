"""SQLAlchemy ORM models."""

from solardesk.models.satellite import (
    BuildGeneration,
    DailyGeneration,
    InverterRecord,
    MeterRecord,
    MonthlyGeneration,
    Site,
    WeatherRecord,
)
from solardesk.models.submission import Submission, SubmissionStatus
from solardesk.models.transition import SubmissionTransition

__all__ = [
    "BuildGeneration",
    "DailyGeneration",
    "InverterRecord",
    "MeterRecord",
    "MonthlyGeneration",
    "Site",
    "Submission",
    "SubmissionStatus",
    "SubmissionTransition",
    "WeatherRecord",
]
