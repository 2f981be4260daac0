"""Calendar-day normalization for the date formats used across the energy stores.

Submissions, inverter records and generation aggregates key by instant; weather
and meter records key by a rendered ``DD-MM-YYYY`` string; spreadsheets deliver
serial numbers or ``DD-MMM-YY`` text. Everything is collapsed to UTC midnight of
the calendar day so that equality comparisons work regardless of where a value
came from.
"""

import re
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

from solardesk.exceptions import ValidationError

# Spreadsheet serials count days from 1899-12-30. The open range below covers
# 1970-01-01 through roughly 2064; anything else is not treated as a serial.
SERIAL_EPOCH = datetime(1899, 12, 30, tzinfo=UTC)
SERIAL_MIN = 25569
SERIAL_MAX = 60000

MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
_MONTH_LOOKUP = {abbr.lower(): index + 1 for index, abbr in enumerate(MONTH_ABBREVIATIONS)}

_DMY_PATTERN = re.compile(r"^(\d{1,2})[-/](\d{1,2})[-/](\d{4})$")
_DMMMYY_PATTERN = re.compile(r"^(\d{1,2})-([A-Za-z]{3})-(\d{2})$")
_DDMMYYYY_STRICT = re.compile(r"^(\d{2})-(\d{2})-(\d{4})$")
# ISO text is only accepted in extended form; compact and week dates are not dates here.
_ISO_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")


def is_valid_date(year: int, month: int, day: int) -> bool:
    """Check that year/month (1-12)/day name a real calendar day.

    Catches values such as 31 April that naive arithmetic would roll into
    the following month.
    """
    if not 1 <= month <= 12 or not 1 <= day <= 31:
        return False
    try:
        candidate = date(year, month, day)
    except ValueError:
        return False
    return (candidate.year, candidate.month, candidate.day) == (year, month, day)


def _midnight(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=UTC)


def normalize(value: datetime) -> datetime:
    """Truncate a datetime to UTC midnight. Naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    else:
        value = value.astimezone(UTC)
    return _midnight(value.year, value.month, value.day)


def from_serial(serial: float) -> datetime:
    """Convert a spreadsheet serial day number to UTC midnight (no range check)."""
    return normalize(SERIAL_EPOCH + timedelta(days=int(serial)))


def _as_serial(value) -> float | None:
    """Return value as a serial number if it is one, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if SERIAL_MIN < number < SERIAL_MAX:
        return number
    return None


def parse_date(value) -> datetime | None:
    """Parse any supported date representation to UTC midnight.

    Accepts datetime/date objects, spreadsheet serials, ``D-M-YYYY`` or
    ``D/M/YYYY``, ``D-MMM-YY`` and ISO 8601 strings. Returns None for empty,
    unparseable or impossible dates; never a silently shifted day.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return normalize(value)
    if isinstance(value, date):
        return _midnight(value.year, value.month, value.day)

    serial = _as_serial(value)
    if serial is not None:
        return from_serial(serial)
    if isinstance(value, (int, float)):
        return None

    text = str(value).strip()
    if not text:
        return None

    match = _DMY_PATTERN.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        if is_valid_date(year, month, day):
            return _midnight(year, month, day)
        return None

    match = _DMMMYY_PATTERN.match(text)
    if match:
        day = int(match.group(1))
        month = _MONTH_LOOKUP.get(match.group(2).lower())
        year = 2000 + int(match.group(3))
        if month is not None and is_valid_date(year, month, day):
            return _midnight(year, month, day)
        return None

    if not _ISO_PREFIX.match(text):
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return normalize(parsed)


def to_iso(value) -> str:
    """Render as ``YYYY-MM-DD``; empty string for invalid input."""
    parsed = parse_date(value)
    if parsed is None:
        return ""
    return f"{parsed.year:04d}-{parsed.month:02d}-{parsed.day:02d}"


def to_ddmmyyyy(value) -> str:
    """Render as ``DD-MM-YYYY`` (the weather/meter key format)."""
    parsed = parse_date(value)
    if parsed is None:
        return ""
    return f"{parsed.day:02d}-{parsed.month:02d}-{parsed.year:04d}"


def to_ddmmmyy(value) -> str:
    """Render as ``DD-Mon-YY``, e.g. ``15-Jan-25``."""
    parsed = parse_date(value)
    if parsed is None:
        return ""
    return f"{parsed.day:02d}-{MONTH_ABBREVIATIONS[parsed.month - 1]}-{parsed.year % 100:02d}"


def is_valid_ddmmyyyy(text) -> bool:
    """Check a strict two-digit ``DD-MM-YYYY`` string names a real day."""
    if not isinstance(text, str):
        return False
    match = _DDMMYYYY_STRICT.match(text)
    if not match:
        return False
    day, month, year = (int(part) for part in match.groups())
    return is_valid_date(year, month, day)


def month_name(value) -> str:
    parsed = parse_date(value)
    return MONTH_NAMES[parsed.month - 1] if parsed else ""


def month_number(value) -> int:
    parsed = parse_date(value)
    return parsed.month if parsed else 0


def day_bounds(value: datetime) -> tuple[datetime, datetime]:
    """Inclusive [start, end] instants covering the calendar day of value."""
    start = normalize(value)
    end = start + timedelta(days=1) - timedelta(microseconds=1)
    return start, end


@dataclass(frozen=True)
class DayKey:
    """One calendar day in every representation the satellite stores use."""

    instant: datetime
    iso: str
    ddmmyyyy: str
    ddmmmyy: str
    year: int
    month0: int
    start: datetime
    end: datetime

    @classmethod
    def of(cls, value) -> "DayKey":
        """Build a key from anything parse_date accepts.

        Raises:
            ValidationError: if value is not a valid date.
        """
        instant = parse_date(value)
        if instant is None:
            raise ValidationError(f"Invalid date: {value!r}")
        start, end = day_bounds(instant)
        return cls(
            instant=instant,
            iso=to_iso(instant),
            ddmmyyyy=to_ddmmyyyy(instant),
            ddmmmyy=to_ddmmmyy(instant),
            year=instant.year,
            month0=instant.month - 1,
            start=start,
            end=end,
        )
