"""Live FEC API source (tier 2).

Queries schedule A (individual contributions) on api.open.fec.gov for venues
whose donations are not pre-loaded. The public API allows 1000 requests per
hour per key; the limiter is shared by every search using this instance.
"""

import logging
import time
from typing import Any

import httpx

from src.core.schemas import RawMatch, SearchParams
from src.sources.base import SourceAdapter
from src.sources.fec_local import group_by_donor
from src.sources.rate_limit import RateLimiter, RateLimitStatus

logger = logging.getLogger(__name__)

PLACEHOLDER_KEY = "your_key_here"
HOUR_SECONDS = 3600.0


class FECAPISource(SourceAdapter):
    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.open.fec.gov/v1",
        max_requests_per_hour: int = 1000,
        timeout_seconds: float = 5.0,
        client: httpx.AsyncClient | None = None,
        limiter: RateLimiter | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._client = client
        self._limiter = limiter or RateLimiter(max_requests_per_hour, HOUR_SECONDS)

    @property
    def name(self) -> str:
        return "fec_api"

    @property
    def tier(self) -> int:
        return 2

    async def search(self, params: SearchParams) -> list[RawMatch]:
        if not self._limiter.try_acquire():
            logger.warning("FEC API rate limit exceeded, skipping search")
            return []

        started = time.monotonic()
        try:
            response = await self._get_client().get(
                f"{self._base_url}/schedules/schedule_a/",
                params=self._build_query(params),
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
            if response.is_error:
                logger.error(
                    "FEC API error: %d %s", response.status_code, response.reason_phrase,
                )
                return []
            data: Any = response.json()
        except httpx.TimeoutException:
            logger.error("FEC API request timed out after %.1fs", self._timeout)
            return []
        except (httpx.HTTPError, ValueError):
            logger.exception("FEC API search failed")
            return []

        raw_results = data.get("results") if isinstance(data, dict) else None
        results: list[dict[str, Any]] = [
            r for r in raw_results or [] if isinstance(r, dict)
        ]
        elapsed_ms = (time.monotonic() - started) * 1000
        logger.info("FEC API: %d contributions in %.0fms", len(results), elapsed_ms)

        matches = group_by_donor(
            (
                {
                    "full_name": r.get("contributor_name") or "",
                    "first_name": r.get("contributor_first_name"),
                    "last_name": r.get("contributor_last_name"),
                    "city": r.get("contributor_city"),
                    "state": r.get("contributor_state"),
                    "zip_code": r.get("contributor_zip"),
                    "occupation": r.get("contributor_occupation"),
                    "employer": r.get("contributor_employer"),
                    "recipient": r.get("committee_name"),
                    "recipient_id": r.get("committee_id"),
                    "amount": r.get("contribution_receipt_amount") or 0,
                    "date": r.get("contribution_receipt_date"),
                }
                for r in results
            ),
            source_type=self.name,
        )
        logger.info("FEC API: aggregated into %d unique donors", len(matches))
        return matches

    async def is_available(self) -> bool:
        if not self._api_key or self._api_key == PLACEHOLDER_KEY:
            return False
        return self._limiter.can_request()

    def rate_limit_status(self) -> RateLimitStatus:
        return self._limiter.status()

    def _build_query(self, params: SearchParams) -> dict[str, str]:
        query: dict[str, str] = {
            "api_key": self._api_key or "",
            "per_page": "100",
            "sort": "-contribution_receipt_date",
        }
        if params.last_name:
            query["contributor_name"] = params.last_name
        elif params.full_name:
            query["contributor_name"] = params.full_name
        if params.city:
            query["contributor_city"] = params.city
        if params.state:
            query["contributor_state"] = params.state
        if params.zip_code:
            query["contributor_zip"] = params.zip_code[:5]
        if params.occupation:
            query["contributor_occupation"] = params.occupation
        return query

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        """Close HTTP client connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
