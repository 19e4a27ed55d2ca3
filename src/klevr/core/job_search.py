from __future__ import annotations

import logging
from typing import Any

import requests

from klevr.config import Settings, get_settings
from klevr.types import JobSearchHit, JobSearchQuery, JobSearchResult

logger = logging.getLogger(__name__)


class JobSearchError(Exception):
    def __init__(self, message: str, *, rate_limited: bool = False):
        super().__init__(message)
        self.rate_limited = rate_limited


class JobSearchClient:
    """Thin client for the Adzuna job search API."""

    def __init__(self, settings: Settings | None = None, session: requests.Session | None = None):
        self.settings = settings or get_settings()
        self.http = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.settings.adzuna_app_id and self.settings.adzuna_app_key)

    def search(self, query: JobSearchQuery) -> JobSearchResult:
        if not self.configured:
            raise JobSearchError("Adzuna credentials are not configured")

        params: dict[str, Any] = {
            "app_id": self.settings.adzuna_app_id,
            "app_key": self.settings.adzuna_app_key,
            "content-type": "application/json",
        }
        params.update(query.model_dump(exclude_none=True, exclude={"page"}))

        url = f"{self.settings.adzuna_base_url.rstrip('/')}/search/{query.page}"
        try:
            response = self.http.get(url, params=params, timeout=self.settings.adzuna_timeout_sec)
            response.raise_for_status()
            payload = response.json()
        except requests.HTTPError as exc:
            rate_limited = exc.response is not None and exc.response.status_code == 429
            raise JobSearchError(f"Adzuna search failed: {exc}", rate_limited=rate_limited) from exc
        except (requests.RequestException, ValueError) as exc:
            raise JobSearchError(f"Adzuna search failed: {exc}") from exc

        hits = [_hit_from_payload(item) for item in payload.get("results", []) if item.get("id")]
        logger.info("Adzuna search what=%r where=%r returned %s hits", query.what, query.where, len(hits))
        return JobSearchResult(count=int(payload.get("count", len(hits))), results=hits)


def _hit_from_payload(item: dict[str, Any]) -> JobSearchHit:
    return JobSearchHit(
        id=str(item["id"]),
        title=str(item.get("title", "")),
        company=str((item.get("company") or {}).get("display_name", "")),
        location=str((item.get("location") or {}).get("display_name", "")),
        description=str(item.get("description", "")),
        redirect_url=str(item.get("redirect_url", "")),
    )
