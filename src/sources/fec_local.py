"""Local FEC contribution source (tier 1, pre-loaded SQLite table).

Contributions are grouped per donor (name + city + state) so each donor
comes back as one match carrying their donation history.
"""

import logging
import sqlite3
import time
from collections.abc import Iterable
from typing import Any

from src.core.db import fec_donation_stats, find_fec_donations, insert_fec_donation
from src.core.schemas import FECDonation, RawMatch, SearchParams
from src.pipeline.names import name_metaphone_key, phonetic_key
from src.sources.base import SourceAdapter

logger = logging.getLogger(__name__)

MAX_DONATIONS = 100
MAX_DONORS = 25


def add_fec_donation(conn: sqlite3.Connection, donation: FECDonation) -> int:
    """Store a contribution together with its phonetic donor-name key."""
    key = name_metaphone_key(donation.donor_first_name, donation.donor_last_name)
    return insert_fec_donation(conn, donation, key)


class FECLocalSource(SourceAdapter):
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @property
    def name(self) -> str:
        return "fec_donation"

    @property
    def tier(self) -> int:
        return 1

    async def search(self, params: SearchParams) -> list[RawMatch]:
        started = time.monotonic()
        try:
            donations = find_fec_donations(
                self._conn,
                last_name_metaphone=phonetic_key(params.last_name) or None,
                first_name=params.first_name,
                last_name=params.last_name,
                full_name=params.full_name,
                city=params.city,
                state=params.state,
                zip_code=params.zip_code,
                limit=MAX_DONATIONS,
            )
        except sqlite3.Error:
            logger.exception("FEC donation search failed")
            return []

        elapsed_ms = (time.monotonic() - started) * 1000
        logger.info("FEC local: %d donations in %.0fms", len(donations), elapsed_ms)

        matches = group_by_donor(
            (
                {
                    "full_name": d.donor_name,
                    "first_name": d.donor_first_name,
                    "last_name": d.donor_last_name,
                    "city": d.donor_city,
                    "state": d.donor_state,
                    "zip_code": d.donor_zip_code,
                    "occupation": d.donor_occupation,
                    "employer": d.donor_employer,
                    "recipient": d.recipient_name,
                    "recipient_party": d.recipient_party,
                    "recipient_office": d.recipient_office,
                    "amount": d.amount,
                    "date": d.transaction_date.isoformat(),
                }
                for d in donations
            ),
            source_type=self.name,
        )
        logger.info("FEC local: aggregated into %d unique donors", len(matches))
        return matches

    async def is_available(self) -> bool:
        try:
            donations, _, _ = fec_donation_stats(self._conn)
        except sqlite3.Error:
            logger.warning("FEC local availability check failed", exc_info=True)
            return False
        return donations > 0

    def stats(self) -> dict[str, Any]:
        donations, donors, total = fec_donation_stats(self._conn)
        return {
            "total_donations": donations,
            "unique_donors": donors,
            "total_amount": total,
        }


def group_by_donor(
    contributions: Iterable[dict[str, Any]],
    source_type: str,
    limit: int = MAX_DONORS,
) -> list[RawMatch]:
    """Fold flat contribution dicts into one match per donor.

    Each contribution needs donor identity keys (``full_name``, ``city``,
    ``state`` ...) and donation keys (``recipient``, ``amount``, ``date`` and
    optionally ``recipient_party``/``recipient_office``/``recipient_id``).
    Donor order follows first appearance.
    """
    donors: dict[str, dict[str, Any]] = {}
    for c in contributions:
        key = f"{c['full_name']}|{c.get('city') or ''}|{c.get('state') or ''}"
        donation = {
            k: v
            for k, v in (
                ("recipient", c.get("recipient")),
                ("recipient_id", c.get("recipient_id")),
                ("recipient_party", c.get("recipient_party")),
                ("recipient_office", c.get("recipient_office")),
                ("amount", c.get("amount") or 0),
                ("date", c.get("date")),
            )
            if v is not None
        }
        donor = donors.get(key)
        if donor is None:
            donors[key] = {
                "identity": {
                    field: c.get(field) or None
                    for field in (
                        "first_name", "last_name", "city", "state",
                        "zip_code", "occupation", "employer",
                    )
                },
                "full_name": c["full_name"] or "",
                "raw_data": {
                    "donations": [donation],
                    "total_donations": donation["amount"],
                    "donation_count": 1,
                    "parties": [c["recipient_party"]] if c.get("recipient_party") else [],
                },
            }
            continue

        raw = donor["raw_data"]
        raw["donations"].append(donation)
        raw["total_donations"] += donation["amount"]
        raw["donation_count"] += 1
        party = c.get("recipient_party")
        if party and party not in raw["parties"]:
            raw["parties"].append(party)

    return [
        RawMatch(
            full_name=d["full_name"],
            **d["identity"],
            source_type=source_type,
            raw_data=d["raw_data"],
        )
        for d in list(donors.values())[:limit]
    ]
