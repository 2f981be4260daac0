"""Meter readings service client."""

from solardesk.sources.base import BaseSource


class MeterSource(BaseSource):
    """Plant-wide meter samples, looked up by a ``DD-MM-YYYY`` date string."""

    name = "meter API"

    async def records(self, date_string: str, limit: int) -> list[dict]:
        data = await self._get_json("", params={"date": date_string, "limit": limit})
        return self._extract_list(data, "data")
