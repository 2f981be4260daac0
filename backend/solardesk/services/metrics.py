"""Daily energy measures derived from the partner inverter, meter and weather data.

All three calculations share one failure policy: a failed or slow fetch is
logged and counted, and the measure comes back as 0. Callers (the review UI,
bulk recalculation) must keep going when an upstream service is down; a human
reviews the figures before promoting the submission.
"""

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime

from solardesk.dates import parse_date, to_ddmmyyyy
from solardesk.exceptions import UpstreamUnavailable
from solardesk.instrumentation import calculator_fallbacks_total
from solardesk.sources import InverterSource, MeterSource, WeatherSource

logger = logging.getLogger(__name__)


@dataclass
class DailyMetrics:
    """Calculated measures for one site and day."""

    site: str
    date: datetime
    inv_gen: float = 0.0
    abt_export: float = 0.0
    poa: float = 0.0


@dataclass
class InverterValues:
    """Numeric readings per inverter channel, plus how many entries were unusable."""

    readings: dict[str, float] = field(default_factory=dict)
    skipped: int = 0

    @property
    def total(self) -> float:
        return sum(self.readings.values())


def to_number(value) -> float | None:
    """Coerce a reading to float, or None when it is not a finite number."""
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
    return number if math.isfinite(number) else None


def parse_inverter_values(values) -> InverterValues:
    """Build the channel->reading map for one inverter record."""
    parsed = InverterValues()
    if not isinstance(values, dict):
        return parsed
    for channel, raw in values.items():
        number = to_number(raw)
        if number is None:
            parsed.skipped += 1
            continue
        parsed.readings[str(channel)] = number
    return parsed


async def _zero() -> float:
    return 0.0


def inverter_generation_from_records(records: Iterable[dict]) -> float:
    """Sum every numeric channel across records and convert Wh to kWh."""
    total = 0.0
    skipped = 0
    for record in records:
        values = parse_inverter_values(record.get("inverterValues"))
        total += values.total
        skipped += values.skipped
    if skipped:
        logger.debug(f"Skipped {skipped} non-numeric inverter values")
    return total / 1000


class MetricCalculator:
    """Computes inverter generation, ABT export and POA for a site and day."""

    def __init__(
        self,
        inverter: InverterSource,
        meter: MeterSource,
        weather: WeatherSource,
        *,
        inverter_limit: int = 1000,
        meter_limit: int = 1000,
        weather_limit: int = 5000,
        timeout: float = 30.0,
    ):
        self.inverter = inverter
        self.meter = meter
        self.weather = weather
        self.inverter_limit = inverter_limit
        self.meter_limit = meter_limit
        self.weather_limit = weather_limit
        self.timeout = timeout

    async def _fetch(
        self, metric: str, fetch: Callable[[], Awaitable[list[dict]]]
    ) -> list[dict] | None:
        """Run a source fetch under the overall timeout; None means fall back to 0."""
        try:
            return await asyncio.wait_for(fetch(), timeout=self.timeout)
        except (UpstreamUnavailable, TimeoutError) as e:
            logger.warning(f"Could not fetch data for {metric}, using 0: {str(e) or 'timed out'}")
            calculator_fallbacks_total.labels(metric=metric).inc()
            return None

    async def inverter_generation(self, site: str, day) -> float:
        """kWh generated by all inverters of ``site`` on ``day``.

        Site names must match exactly (case-sensitive).
        """
        target = parse_date(day)
        if target is None:
            logger.info(f"Invalid date for inverter generation: {day!r}")
            return 0.0

        records = await self._fetch(
            "inv_gen", lambda: self.inverter.records(self.inverter_limit)
        )
        if not records:
            return 0.0

        matching = [
            record
            for record in records
            if record.get("siteName") == site and parse_date(record.get("date")) == target
        ]
        if not matching:
            logger.info(f"No inverter records for {site} on {target:%Y-%m-%d}")
            return 0.0

        result = inverter_generation_from_records(matching)
        logger.debug(
            f"Calculated invGen for {site} on {target:%Y-%m-%d}: {result} kWh "
            f"({len(matching)} records)"
        )
        return result

    async def abt_export(self, site: str, day) -> float:
        """kWh exported per the plant meter on ``day``.

        The meter is plant-wide, so ``site`` only appears in log messages.
        """
        target = parse_date(day)
        if target is None:
            logger.info(f"Invalid date for ABT calculation: {day!r}")
            return 0.0
        key = to_ddmmyyyy(target)

        records = await self._fetch(
            "abt_export", lambda: self.meter.records(key, self.meter_limit)
        )
        if not records:
            return 0.0

        total = 0.0
        count = 0
        for record in records:
            if record.get("date") != key:
                continue
            value = to_number(record.get("activeEnergyExport"))
            if value is not None:
                total += value
                count += 1

        logger.debug(f"Calculated abtExport for {site} on {key}: {total} kWh ({count} records)")
        return round(total, 2)

    async def poa(self, site: str, day) -> float:
        """Plane-of-array irradiation (kWh/m2) for ``site`` on ``day``.

        Site match is case-insensitive; each sample's own date is re-parsed since
        weather uploads use several formats.
        """
        target = parse_date(day)
        if target is None:
            return 0.0

        records = await self._fetch("poa", lambda: self.weather.records(self.weather_limit))
        if not records:
            return 0.0

        wanted = site.lower()
        total = 0.0
        count = 0
        for record in records:
            name = record.get("siteName")
            if not isinstance(name, str) or name.lower() != wanted:
                continue
            if parse_date(record.get("date")) != target:
                continue
            value = to_number(record.get("poa"))
            if value is not None:
                total += value
                count += 1

        if not count:
            logger.info(f"No weather records for {site} on {target:%Y-%m-%d}")
            return 0.0
        return round(total / 1000, 2)

    async def calculate(
        self, site: str, day, include_poa: bool = True, include_inv_gen: bool = True
    ) -> DailyMetrics:
        """All measures, fetched concurrently. Measures not wanted are skipped (left 0)."""
        inv_gen, abt_export, poa = await asyncio.gather(
            self.inverter_generation(site, day) if include_inv_gen else _zero(),
            self.abt_export(site, day),
            self.poa(site, day) if include_poa else _zero(),
        )
        return DailyMetrics(
            site=site,
            date=parse_date(day),
            inv_gen=round(inv_gen, 2),
            abt_export=round(abt_export, 2),
            poa=round(poa, 2),
        )

    async def calculate_many(
        self,
        items: list[tuple[str, datetime]],
        batch_size: int = 10,
        include_poa: bool = True,
        include_inv_gen: bool = True,
    ) -> list[DailyMetrics]:
        """Calculate for many (site, day) pairs, ``batch_size`` at a time.

        Results are returned in input order.
        """
        results: list[DailyMetrics] = []
        for start in range(0, len(items), batch_size):
            batch = items[start:start + batch_size]
            results.extend(
                await asyncio.gather(
                    *(
                        self.calculate(site, day, include_poa, include_inv_gen)
                        for site, day in batch
                    )
                )
            )
        return results
