"""Local voter registration source (tier 1, indexed SQLite lookups)."""

import logging
import sqlite3
import time

from src.core.db import count_voter_records, find_voter_records, insert_voter_record
from src.core.schemas import RawMatch, SearchParams, VoterRecord
from src.pipeline.names import name_metaphone_key, phonetic_key
from src.sources.base import SourceAdapter

logger = logging.getLogger(__name__)

MAX_RESULTS = 50


def add_voter_record(conn: sqlite3.Connection, record: VoterRecord) -> int:
    """Store a voter record together with its phonetic name key."""
    key = name_metaphone_key(record.first_name, record.last_name)
    return insert_voter_record(conn, record, key)


class VoterRecordSource(SourceAdapter):
    """Pre-loaded voter rolls, matched phonetically on last name."""

    def __init__(self, conn: sqlite3.Connection, default_state: str | None = None) -> None:
        self._conn = conn
        self._default_state = default_state

    @property
    def name(self) -> str:
        return "voter_record"

    @property
    def tier(self) -> int:
        return 1

    async def search(self, params: SearchParams) -> list[RawMatch]:
        started = time.monotonic()
        try:
            records = find_voter_records(
                self._conn,
                last_name_metaphone=phonetic_key(params.last_name) or None,
                first_name=params.first_name,
                last_name=params.last_name,
                full_name=params.full_name,
                age=params.age,
                city=params.city,
                zip_code=params.zip_code,
                limit=MAX_RESULTS,
            )
        except sqlite3.Error:
            logger.exception("Voter record search failed")
            return []

        elapsed_ms = (time.monotonic() - started) * 1000
        logger.info("Voter records: %d matches in %.0fms", len(records), elapsed_ms)
        return [self._to_match(r) for r in records]

    async def is_available(self) -> bool:
        try:
            return count_voter_records(self._conn) > 0
        except sqlite3.Error:
            logger.warning("Voter record availability check failed", exc_info=True)
            return False

    def stats(self) -> dict[str, int]:
        return {"total_records": count_voter_records(self._conn)}

    def _to_match(self, record: VoterRecord) -> RawMatch:
        return RawMatch(
            full_name=record.full_name,
            first_name=record.first_name,
            last_name=record.last_name,
            middle_name=record.middle_name,
            age=record.age,
            birth_year=record.birth_year,
            address=record.address,
            city=record.city,
            state=record.state or self._default_state,
            zip_code=record.zip_code,
            source_type=self.name,
            raw_data={
                "party": record.party,
                "registration_date": (
                    record.registration_date.isoformat() if record.registration_date else None
                ),
                "voting_history": record.voting_history,
                "address": record.address,
            },
        )
