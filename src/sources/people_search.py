"""Commercial people-search source (tier 2).

Supports three providers behind one adapter: Pipl, FullContact and
Whitepages Pro. Each returns addresses, phones, emails and employment; the
provider-specific payload is kept in ``raw_data`` as evidence.
"""

import logging
import time
from datetime import datetime
from typing import Any

import httpx

from src.core.config import PeopleSearchProvider
from src.core.schemas import RawMatch, SearchParams
from src.sources.base import SourceAdapter

logger = logging.getLogger(__name__)

PLACEHOLDER_KEY = "your_key_here"
WHITEPAGES_MAX_RESULTS = 10

PIPL_URL = "https://api.pipl.com/search/"
FULLCONTACT_URL = "https://api.fullcontact.com/v3/person.enrich"
WHITEPAGES_URL = "https://proapi.whitepages.com/3.0/person"


class PeopleSearchSource(SourceAdapter):
    def __init__(
        self,
        provider: PeopleSearchProvider,
        api_key: str | None,
        timeout_seconds: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._provider = provider
        self._api_key = api_key
        self._timeout = timeout_seconds
        self._client = client

    @property
    def name(self) -> str:
        return f"people_search_{self._provider}"

    @property
    def tier(self) -> int:
        return 2

    @property
    def provider(self) -> str:
        return self._provider

    async def search(self, params: SearchParams) -> list[RawMatch]:
        started = time.monotonic()
        try:
            if self._provider == "pipl":
                matches = await self._search_pipl(params)
            elif self._provider == "fullcontact":
                matches = await self._search_fullcontact(params)
            else:
                matches = await self._search_whitepages(params)
        except httpx.TimeoutException:
            logger.error("%s request timed out after %.1fs", self._provider, self._timeout)
            return []
        except (httpx.HTTPError, ValueError, TypeError):
            elapsed_ms = (time.monotonic() - started) * 1000
            logger.exception("%s search failed after %.0fms", self._provider, elapsed_ms)
            return []

        elapsed_ms = (time.monotonic() - started) * 1000
        logger.info("%s: %d matches in %.0fms", self._provider, len(matches), elapsed_ms)
        return matches

    async def is_available(self) -> bool:
        return bool(self._api_key) and self._api_key != PLACEHOLDER_KEY

    # --- providers ---

    async def _search_pipl(self, params: SearchParams) -> list[RawMatch]:
        query: dict[str, str] = {"key": self._api_key or ""}
        _put(query, "first_name", params.first_name)
        _put(query, "last_name", params.last_name)
        _put(query, "city", params.city)
        _put(query, "state", params.state)
        _put(query, "zipcode", params.zip_code)
        if params.age:
            query["age"] = str(params.age)

        response = await self._get_client().get(
            PIPL_URL, params=query, headers={"Accept": "application/json"},
            timeout=self._timeout,
        )
        data = self._json_or_none(response)
        person = _obj(data.get("person")) if data else {}
        if not person:
            return []

        name = _first(person.get("names"))
        address = _first(person.get("addresses"))
        job = _first(person.get("jobs"))
        dob = _obj(person.get("dob"))
        emails = [e.get("address") for e in _items(person.get("emails")) if e.get("address")]
        phones = [
            p.get("display_international") or p.get("display")
            for p in _items(person.get("phones"))
            if p.get("display_international") or p.get("display")
        ]
        birth_year = None
        start = _obj(dob.get("date_range")).get("start")
        if isinstance(start, str) and start:
            try:
                birth_year = datetime.fromisoformat(start).year
            except ValueError:
                logger.debug("Unparseable pipl dob start: %r", start)

        full_name = name.get("display") or (
            f"{name.get('first') or ''} {name.get('last') or ''}".strip()
        )
        return [
            RawMatch(
                full_name=full_name,
                first_name=name.get("first") or None,
                last_name=name.get("last") or None,
                age=dob.get("age") or None,
                birth_year=birth_year,
                address=address.get("display") or None,
                city=address.get("city") or None,
                state=address.get("state") or None,
                zip_code=address.get("zip_code") or None,
                occupation=job.get("title") or None,
                employer=job.get("organization") or None,
                email=emails[0] if emails else None,
                phone=phones[0] if phones else None,
                source_type=self.name,
                raw_data={
                    "provider": "pipl",
                    "emails": emails,
                    "phones": phones,
                    "addresses": person.get("addresses") or [],
                    "jobs": person.get("jobs") or [],
                    "education": person.get("educations") or [],
                    "social_profiles": [
                        {"type": u.get("category"), "url": u.get("url")}
                        for u in _items(person.get("urls"))
                    ],
                    "photo_url": _first(person.get("images")).get("url"),
                    "languages": person.get("languages") or [],
                    "gender": person.get("gender"),
                },
            ),
        ]

    async def _search_fullcontact(self, params: SearchParams) -> list[RawMatch]:
        body: dict[str, Any] = {}
        if params.first_name or params.last_name:
            body["name"] = {"given": params.first_name, "family": params.last_name}
        elif params.full_name:
            body["name"] = {"full": params.full_name}
        if params.city or params.state or params.zip_code:
            body["location"] = {
                "city": params.city,
                "region": params.state,
                "postalCode": params.zip_code,
            }

        response = await self._get_client().post(
            FULLCONTACT_URL,
            json=body,
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=self._timeout,
        )
        data = self._json_or_none(response)
        if not data or not isinstance(data.get("fullName"), str) or not data["fullName"]:
            return []

        location = _obj(data.get("location"))
        employment = _first(data.get("employment"))
        name = _obj(data.get("name"))
        age = data.get("age")
        return [
            RawMatch(
                full_name=data["fullName"],
                first_name=name.get("given") or None,
                last_name=name.get("family") or None,
                age=int(age) if age else None,
                city=location.get("city") or None,
                state=location.get("region") or None,
                occupation=employment.get("title") or None,
                employer=employment.get("name") or None,
                email=_first(data.get("emails")).get("address"),
                phone=_first(data.get("phones")).get("number"),
                source_type=self.name,
                raw_data={
                    "provider": "fullcontact",
                    "emails": data.get("emails") or [],
                    "phones": data.get("phones") or [],
                    "social_profiles": data.get("socialProfiles") or [],
                    "employment": data.get("employment") or [],
                    "education": data.get("education") or [],
                    "photo_url": _first(data.get("photos")).get("url"),
                    "bio": data.get("bio"),
                },
            ),
        ]

    async def _search_whitepages(self, params: SearchParams) -> list[RawMatch]:
        query: dict[str, str] = {"api_key": self._api_key or ""}
        _put(query, "first_name", params.first_name)
        _put(query, "last_name", params.last_name)
        _put(query, "city", params.city)
        _put(query, "state", params.state)
        _put(query, "postal_code", params.zip_code)

        response = await self._get_client().get(
            WHITEPAGES_URL, params=query, headers={"Accept": "application/json"},
            timeout=self._timeout,
        )
        data = self._json_or_none(response)
        if not data:
            return []

        matches: list[RawMatch] = []
        for result in _items(data.get("results"))[:WHITEPAGES_MAX_RESULTS]:
            person = _obj(result.get("person"))
            name = _obj(person.get("name"))
            age_range = _obj(person.get("age_range"))
            age = None
            if isinstance(age_range.get("start"), int) and isinstance(age_range.get("end"), int):
                age = (age_range["start"] + age_range["end"]) // 2
            location = _first(person.get("locations"))
            phone = _first(person.get("phones"))
            mobile = phone.get("phone_number") if phone.get("line_type") == "Mobile" else None

            matches.append(
                RawMatch(
                    full_name=name.get("full") or (
                        f"{name.get('first_name') or ''} {name.get('last_name') or ''}".strip()
                    ),
                    first_name=name.get("first_name") or None,
                    last_name=name.get("last_name") or None,
                    age=age,
                    address=location.get("address") or None,
                    city=location.get("city") or None,
                    state=location.get("state_code") or None,
                    zip_code=location.get("postal_code") or None,
                    phone=mobile,
                    source_type=self.name,
                    raw_data={
                        "provider": "whitepages",
                        "age_range": age_range or None,
                        "locations": person.get("locations") or [],
                        "phones": person.get("phones") or [],
                        "associates": person.get("associated_people") or [],
                    },
                ),
            )
        return matches

    def _json_or_none(self, response: httpx.Response) -> dict[str, Any] | None:
        if response.is_error:
            logger.error("%s API error: %d", self._provider, response.status_code)
            return None
        data = response.json()
        return data if isinstance(data, dict) else None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        """Close HTTP client connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _put(query: dict[str, str], key: str, value: str | None) -> None:
    if value:
        query[key] = value


def _obj(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _items(value: Any) -> list[dict[str, Any]]:
    """Dict entries of a list field; anything else in the payload is ignored."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _first(value: Any) -> dict[str, Any]:
    items = _items(value)
    return items[0] if items else {}
