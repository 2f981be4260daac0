"""Inverter details service client."""

from solardesk.sources.base import BaseSource


class InverterSource(BaseSource):
    """Reads raw daily inverter records and the list of known sites."""

    name = "inverter API"

    async def records(self, limit: int) -> list[dict]:
        """Fetch up to ``limit`` records: ``{siteName, date, inverterValues}``."""
        data = await self._get_json("/inverter/records", params={"limit": limit})
        return self._extract_list(data, "records")

    async def sites(self) -> list[str]:
        """Fetch site names; the service answers with a bare list or ``{"sites": [...]}``."""
        data = await self._get_json("/inverter/sites")
        if isinstance(data, dict):
            data = data.get("sites")
        if not isinstance(data, list):
            return []
        return [site for site in data if isinstance(site, str) and site]
