"""Weather station service client (hosted alongside the inverter service)."""

from solardesk.sources.base import BaseSource


class WeatherSource(BaseSource):
    name = "weather API"

    async def records(self, limit: int) -> list[dict]:
        """Fetch up to ``limit`` samples: ``{siteName, date, poa}``.

        Dates arrive in whatever format the station upload used.
        """
        data = await self._get_json("/weather", params={"limit": limit})
        return self._extract_list(data, "records")
