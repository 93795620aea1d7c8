"""Client for the upstream reports data source."""

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict

from .constants import DEFAULT_REPORTS_API_BASE

logger = logging.getLogger(__name__)


class Report(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    status: str = ""
    curator_user_id: str = ""
    space_title: str = ""

    def summary(self) -> dict[str, str]:
        return {"id": self.id, "title": self.space_title}


class ReportsClient:
    """Fetches report listings and paid report content.

    Every method returns None when the upstream request fails.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_REPORTS_API_BASE,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def _get(self, path: str) -> Any | None:
        url = f"{self._base_url}{path}"
        try:
            response = await self._http.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Error making HTTP request to %s: %s", url, e)
            return None

        if "application/json" in response.headers.get("content-type", ""):
            return response.json()
        return response.text

    async def list_reports(self, page: int = 1) -> list[Report] | None:
        data = await self._get(f"/api/reports?page={page}")
        if not isinstance(data, dict):
            return None
        return [Report.model_validate(item) for item in data.get("data", [])]

    async def search_reports(self, query: str, page: int = 1) -> list[Report] | None:
        reports = await self.list_reports(page)
        if reports is None:
            return None
        needle = query.lower()
        return [r for r in reports if needle in r.space_title.lower()]

    async def get_report_content(self, report_id: str) -> Any | None:
        return await self._get(f"/api/report-resource/{report_id}")

    async def aclose(self) -> None:
        await self._http.aclose()
