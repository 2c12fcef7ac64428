"""In-memory synthetic identity source for development and demos."""

import asyncio
import logging
import random
from typing import Any

from src.core.schemas import RawMatch, SearchParams
from src.sources.base import SourceAdapter

logger = logging.getLogger(__name__)

MAX_AGE_GAP = 10

_DEFAULT_PEOPLE: list[dict[str, Any]] = [
    {
        "full_name": "JOHN SMITH", "first_name": "JOHN", "last_name": "SMITH",
        "age": 42, "birth_year": 1982, "city": "Los Angeles", "state": "CA",
        "zip_code": "90012", "occupation": "Software Engineer", "employer": "Tech Corp",
        "email": "john.smith@example.com", "phone": "555-0101",
        "raw_data": {"party": "Independent", "voting_history": [2016, 2018, 2020, 2022]},
    },
    {
        "full_name": "JOHN A SMITH", "first_name": "JOHN", "last_name": "SMITH",
        "middle_name": "A", "age": 43, "birth_year": 1981, "city": "Los Angeles",
        "state": "CA", "zip_code": "90013", "occupation": "Teacher", "employer": "LAUSD",
        "raw_data": {"party": "Democrat", "voting_history": [2016, 2020]},
    },
    {
        "full_name": "JON SMITH", "first_name": "JON", "last_name": "SMITH",
        "age": 41, "birth_year": 1983, "city": "Pasadena", "state": "CA",
        "zip_code": "91101", "occupation": "Accountant", "employer": "Smith & Associates",
        "email": "jon@smithcpa.com",
        "raw_data": {"party": "Republican", "voting_history": [2018, 2020, 2022]},
    },
    {
        "full_name": "MARIA GARCIA", "first_name": "MARIA", "last_name": "GARCIA",
        "age": 35, "birth_year": 1989, "city": "Los Angeles", "state": "CA",
        "zip_code": "90012", "occupation": "Nurse", "employer": "LA County Hospital",
        "phone": "555-0201",
        "raw_data": {"party": "Democrat", "voting_history": [2020, 2022]},
    },
    {
        "full_name": "MARIA L GARCIA", "first_name": "MARIA", "last_name": "GARCIA",
        "middle_name": "L", "age": 35, "birth_year": 1989, "city": "Los Angeles",
        "state": "CA", "zip_code": "90015", "occupation": "Registered Nurse",
        "employer": "County Hospital", "email": "mgarcia@example.com",
        "raw_data": {
            "donations": [
                {"recipient": "Biden for President", "amount": 250, "date": "2020-09-15"},
            ],
        },
    },
    {
        "full_name": "ROBERT JOHNSON", "first_name": "ROBERT", "last_name": "JOHNSON",
        "age": 58, "birth_year": 1966, "city": "Long Beach", "state": "CA",
        "zip_code": "90802", "occupation": "Retired", "employer": "US Navy (Retired)",
        "raw_data": {"party": "Republican", "voting_history": [2016, 2018, 2020, 2022]},
    },
    {
        "full_name": "SARAH CHEN", "first_name": "SARAH", "last_name": "CHEN",
        "age": 29, "birth_year": 1995, "city": "Irvine", "state": "CA",
        "zip_code": "92602", "occupation": "Data Scientist", "employer": "Google",
        "email": "s.chen@gmail.com", "phone": "555-0301",
        "raw_data": {"party": "Independent", "voting_history": [2020, 2022]},
    },
    {
        "full_name": "MICHAEL BROWN", "first_name": "MICHAEL", "last_name": "BROWN",
        "age": 45, "birth_year": 1979, "city": "Santa Monica", "state": "CA",
        "zip_code": "90401", "occupation": "Attorney", "employer": "Brown & Partners LLP",
        "email": "mbrown@brownlaw.com", "phone": "555-0401",
        "raw_data": {
            "party": "Democrat",
            "voting_history": [2016, 2018, 2020, 2022],
            "donations": [
                {"recipient": "ACLU", "amount": 500, "date": "2021-03-10"},
                {"recipient": "Warren for President", "amount": 1000, "date": "2019-08-15"},
            ],
        },
    },
    {
        "full_name": "MICHAEL BROWN", "first_name": "MICHAEL", "last_name": "BROWN",
        "age": 26, "birth_year": 2000, "city": "West Hollywood", "state": "CA",
        "zip_code": "90069", "occupation": "Barista", "employer": "Blue Bottle Coffee",
        "email": "mike.brown@gmail.com", "phone": "555-0426",
        "raw_data": {"party": "Independent", "voting_history": [2020, 2022]},
    },
    {
        "full_name": "DAVID LEE", "first_name": "DAVID", "last_name": "LEE",
        "age": 52, "birth_year": 1972, "city": "Glendale", "state": "CA",
        "zip_code": "91201", "occupation": "Business Owner", "employer": "Lee Electronics",
        "phone": "555-0501",
        "raw_data": {
            "party": "Republican",
            "voting_history": [2016, 2018, 2020, 2022],
            "donations": [
                {"recipient": "Trump for President", "amount": 2800, "date": "2020-06-20"},
            ],
        },
    },
]


class MockSource(SourceAdapter):
    """Synthetic people matched by loose name containment.

    Location is deliberately not filtered on; the scorer rewards it instead.
    """

    def __init__(
        self,
        people: list[RawMatch] | None = None,
        latency: tuple[float, float] | None = None,
    ) -> None:
        if people is None:
            people = [
                RawMatch(source_type="mock", **person) for person in _DEFAULT_PEOPLE
            ]
        self._people = list(people)
        self._latency = latency

    @property
    def name(self) -> str:
        return "mock"

    @property
    def tier(self) -> int:
        return 1

    async def search(self, params: SearchParams) -> list[RawMatch]:
        if self._latency is not None:
            await asyncio.sleep(random.uniform(*self._latency))

        results = [p for p in self._people if self._matches(p, params)]
        logger.info("Mock source found %d matches", len(results))
        return results

    async def is_available(self) -> bool:
        return True

    def add_person(self, person: RawMatch) -> None:
        self._people.append(person)

    def clear(self) -> None:
        self._people.clear()

    @staticmethod
    def _matches(person: RawMatch, params: SearchParams) -> bool:
        matched = False
        if params.last_name and _overlaps(params.last_name, person.last_name):
            matched = True
        if params.first_name and _overlaps(params.first_name, person.first_name):
            matched = True
        if params.full_name and not params.first_name and not params.last_name:
            matched = _overlaps(params.full_name, person.full_name)

        if matched and params.age and person.age:
            matched = abs(params.age - person.age) <= MAX_AGE_GAP
        return matched


def _overlaps(query_value: str, person_value: str | None) -> bool:
    """Either string contains the other (case-insensitive, non-empty)."""
    q = query_value.strip().upper()
    p = (person_value or "").strip().upper()
    if not q or not p:
        return False
    return q in p or p in q
