"""SQLite database layer for candidates, search jobs, and local record stores."""

import json
import sqlite3
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from src.core.schemas import (
    Candidate,
    FECDonation,
    ScoreFactors,
    SearchJob,
    SearchJobStatus,
    SearchQuery,
    VoterRecord,
)

_CANDIDATES_TABLE = """
CREATE TABLE IF NOT EXISTS candidates (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    juror_id         TEXT    NOT NULL,
    source_type      TEXT    NOT NULL,
    full_name        TEXT    NOT NULL,
    first_name       TEXT,
    last_name        TEXT,
    middle_name      TEXT,
    age              INTEGER,
    birth_year       INTEGER,
    address          TEXT,
    city             TEXT,
    state            TEXT,
    zip_code         TEXT,
    occupation       TEXT,
    employer         TEXT,
    email            TEXT,
    phone            TEXT,
    confidence_score INTEGER NOT NULL,
    score_factors    TEXT    NOT NULL,
    profile          TEXT    NOT NULL DEFAULT '{}',
    source_count     INTEGER NOT NULL DEFAULT 1,
    is_confirmed     INTEGER NOT NULL DEFAULT 0,
    confirmed_by     TEXT,
    confirmed_at     TEXT,
    is_rejected      INTEGER NOT NULL DEFAULT 0,
    rejected_by      TEXT,
    rejected_at      TEXT,
    created_at       TEXT    NOT NULL
);
"""

_CANDIDATES_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_candidates_juror ON candidates (juror_id)"
)

_SEARCH_JOBS_TABLE = """
CREATE TABLE IF NOT EXISTS search_jobs (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    juror_id         TEXT    NOT NULL,
    status           TEXT    NOT NULL,
    query_json       TEXT    NOT NULL,
    sources_searched TEXT    NOT NULL DEFAULT '[]',
    candidate_count  INTEGER NOT NULL DEFAULT 0,
    error_message    TEXT,
    started_at       TEXT,
    completed_at     TEXT,
    created_at       TEXT    NOT NULL
);
"""

_VOTER_RECORDS_TABLE = """
CREATE TABLE IF NOT EXISTS voter_records (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    venue_id          TEXT,
    full_name         TEXT    NOT NULL,
    first_name        TEXT    NOT NULL,
    last_name         TEXT    NOT NULL,
    middle_name       TEXT,
    name_metaphone    TEXT    NOT NULL DEFAULT '',
    age               INTEGER,
    birth_year        INTEGER,
    address           TEXT,
    city              TEXT,
    state             TEXT,
    zip_code          TEXT,
    party             TEXT,
    registration_date TEXT,
    voting_history    TEXT    NOT NULL DEFAULT '[]'
);
"""

_FEC_DONATIONS_TABLE = """
CREATE TABLE IF NOT EXISTS fec_donations (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    venue_id          TEXT,
    donor_name        TEXT    NOT NULL,
    donor_first_name  TEXT,
    donor_last_name   TEXT,
    name_metaphone    TEXT    NOT NULL DEFAULT '',
    donor_city        TEXT,
    donor_state       TEXT,
    donor_zip_code    TEXT,
    donor_employer    TEXT,
    donor_occupation  TEXT,
    recipient_name    TEXT    NOT NULL,
    recipient_party   TEXT,
    recipient_office  TEXT,
    amount            REAL    NOT NULL,
    transaction_date  TEXT    NOT NULL
);
"""


class CandidateNotFoundError(LookupError):
    """Raised when a confirm/reject targets a candidate id that does not exist."""


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_CANDIDATES_TABLE)
    conn.execute(_CANDIDATES_INDEX)
    conn.execute(_SEARCH_JOBS_TABLE)
    conn.execute(_VOTER_RECORDS_TABLE)
    conn.execute(_FEC_DONATIONS_TABLE)
    conn.commit()
    return conn


# ---------------------------------------------------------------------------
# Candidates
# ---------------------------------------------------------------------------


def replace_candidates(
    conn: sqlite3.Connection,
    juror_id: str,
    candidates: Sequence[Candidate],
) -> list[Candidate]:
    """Delete every candidate stored for a juror and insert the new set.

    Both steps run in one transaction, so a reader never observes a juror
    with its old candidates half-deleted. Returns the stored rows ordered by
    confidence, highest first.
    """
    with conn:
        conn.execute("DELETE FROM candidates WHERE juror_id = ?", (juror_id,))
        for c in candidates:
            conn.execute(
                """
                INSERT INTO candidates
                    (juror_id, source_type, full_name, first_name, last_name,
                     middle_name, age, birth_year, address, city, state,
                     zip_code, occupation, employer, email, phone,
                     confidence_score, score_factors, profile, source_count,
                     created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    juror_id,
                    c.source_type,
                    c.full_name,
                    c.first_name,
                    c.last_name,
                    c.middle_name,
                    c.age,
                    c.birth_year,
                    c.address,
                    c.city,
                    c.state,
                    c.zip_code,
                    c.occupation,
                    c.employer,
                    c.email,
                    c.phone,
                    c.confidence_score,
                    c.score_factors.model_dump_json(),
                    json.dumps(c.profile, default=str),
                    c.source_count,
                    c.created_at.isoformat(),
                ),
            )
    return list_candidates(conn, juror_id)


def list_candidates(conn: sqlite3.Connection, juror_id: str) -> list[Candidate]:
    """Return a juror's candidates, highest confidence first."""
    rows = conn.execute(
        """
        SELECT * FROM candidates
        WHERE juror_id = ?
        ORDER BY confidence_score DESC, id ASC
        """,
        (juror_id,),
    ).fetchall()
    return [_row_to_candidate(row) for row in rows]


def get_candidate(conn: sqlite3.Connection, candidate_id: int) -> Candidate | None:
    row = conn.execute(
        "SELECT * FROM candidates WHERE id = ?", (candidate_id,),
    ).fetchone()
    return _row_to_candidate(row) if row is not None else None


def confirm_candidate(
    conn: sqlite3.Connection,
    candidate_id: int,
    confirmed_by: str,
    confirmed_at: datetime | None = None,
) -> None:
    """Flag a candidate as the confirmed identity of its juror."""
    cursor = conn.execute(
        """
        UPDATE candidates
        SET is_confirmed = 1, confirmed_by = ?, confirmed_at = ?
        WHERE id = ?
        """,
        (confirmed_by, (confirmed_at or datetime.now()).isoformat(), candidate_id),
    )
    conn.commit()
    if cursor.rowcount == 0:
        msg = f"Candidate not found: {candidate_id}"
        raise CandidateNotFoundError(msg)


def reject_candidate(
    conn: sqlite3.Connection,
    candidate_id: int,
    rejected_by: str,
    rejected_at: datetime | None = None,
) -> None:
    """Flag a candidate as not being the juror."""
    cursor = conn.execute(
        """
        UPDATE candidates
        SET is_rejected = 1, rejected_by = ?, rejected_at = ?
        WHERE id = ?
        """,
        (rejected_by, (rejected_at or datetime.now()).isoformat(), candidate_id),
    )
    conn.commit()
    if cursor.rowcount == 0:
        msg = f"Candidate not found: {candidate_id}"
        raise CandidateNotFoundError(msg)


def _row_to_candidate(row: sqlite3.Row) -> Candidate:
    return Candidate(
        id=row["id"],
        juror_id=row["juror_id"],
        source_type=row["source_type"],
        full_name=row["full_name"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        middle_name=row["middle_name"],
        age=row["age"],
        birth_year=row["birth_year"],
        address=row["address"],
        city=row["city"],
        state=row["state"],
        zip_code=row["zip_code"],
        occupation=row["occupation"],
        employer=row["employer"],
        email=row["email"],
        phone=row["phone"],
        confidence_score=row["confidence_score"],
        score_factors=ScoreFactors.model_validate_json(row["score_factors"]),
        profile=json.loads(row["profile"]),
        source_count=row["source_count"],
        is_confirmed=bool(row["is_confirmed"]),
        confirmed_by=row["confirmed_by"],
        confirmed_at=_parse_dt(row["confirmed_at"]),
        is_rejected=bool(row["is_rejected"]),
        rejected_by=row["rejected_by"],
        rejected_at=_parse_dt(row["rejected_at"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


# ---------------------------------------------------------------------------
# Search jobs
# ---------------------------------------------------------------------------


def create_search_job(
    conn: sqlite3.Connection,
    juror_id: str,
    query: SearchQuery,
    status: SearchJobStatus = SearchJobStatus.RUNNING,
    started_at: datetime | None = None,
) -> int:
    """Record the start of a search. Returns the job ID."""
    now = datetime.now()
    if started_at is None and status is SearchJobStatus.RUNNING:
        started_at = now
    cursor = conn.execute(
        """
        INSERT INTO search_jobs (juror_id, status, query_json, started_at, created_at)
        VALUES (?, ?, ?, ?, ?)
        """,
        (
            juror_id,
            status.value,
            query.model_dump_json(),
            started_at.isoformat() if started_at else None,
            now.isoformat(),
        ),
    )
    conn.commit()
    return cursor.lastrowid or 0


def start_search_job(
    conn: sqlite3.Connection,
    job_id: int,
    started_at: datetime | None = None,
) -> None:
    """Move a queued job to running."""
    conn.execute(
        "UPDATE search_jobs SET status = ?, started_at = ? WHERE id = ?",
        (
            SearchJobStatus.RUNNING.value,
            (started_at or datetime.now()).isoformat(),
            job_id,
        ),
    )
    conn.commit()


def complete_search_job(
    conn: sqlite3.Connection,
    job_id: int,
    sources_searched: list[str],
    candidate_count: int,
    completed_at: datetime | None = None,
) -> None:
    conn.execute(
        """
        UPDATE search_jobs
        SET status = ?, sources_searched = ?, candidate_count = ?, completed_at = ?
        WHERE id = ?
        """,
        (
            SearchJobStatus.COMPLETED.value,
            json.dumps(sources_searched),
            candidate_count,
            (completed_at or datetime.now()).isoformat(),
            job_id,
        ),
    )
    conn.commit()


def fail_search_job(
    conn: sqlite3.Connection,
    job_id: int,
    error_message: str,
    completed_at: datetime | None = None,
) -> None:
    conn.execute(
        """
        UPDATE search_jobs
        SET status = ?, error_message = ?, completed_at = ?
        WHERE id = ?
        """,
        (
            SearchJobStatus.FAILED.value,
            error_message,
            (completed_at or datetime.now()).isoformat(),
            job_id,
        ),
    )
    conn.commit()


def get_search_job(conn: sqlite3.Connection, job_id: int) -> SearchJob | None:
    row = conn.execute("SELECT * FROM search_jobs WHERE id = ?", (job_id,)).fetchone()
    return _row_to_search_job(row) if row is not None else None


def list_search_jobs(
    conn: sqlite3.Connection,
    juror_id: str | None = None,
) -> list[SearchJob]:
    """Return search jobs newest first, optionally for one juror."""
    if juror_id is None:
        rows = conn.execute("SELECT * FROM search_jobs ORDER BY id DESC").fetchall()
    else:
        rows = conn.execute(
            "SELECT * FROM search_jobs WHERE juror_id = ? ORDER BY id DESC",
            (juror_id,),
        ).fetchall()
    return [_row_to_search_job(row) for row in rows]


def _row_to_search_job(row: sqlite3.Row) -> SearchJob:
    return SearchJob(
        id=row["id"],
        juror_id=row["juror_id"],
        status=SearchJobStatus(row["status"]),
        query=SearchQuery.model_validate_json(row["query_json"]),
        sources_searched=json.loads(row["sources_searched"]),
        candidate_count=row["candidate_count"],
        error_message=row["error_message"],
        started_at=_parse_dt(row["started_at"]),
        completed_at=_parse_dt(row["completed_at"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


# ---------------------------------------------------------------------------
# Local record stores (voter registrations, FEC contributions)
# ---------------------------------------------------------------------------


def insert_voter_record(
    conn: sqlite3.Connection,
    record: VoterRecord,
    name_metaphone: str,
) -> int:
    """Store a voter record with its precomputed phonetic name key."""
    cursor = conn.execute(
        """
        INSERT INTO voter_records
            (venue_id, full_name, first_name, last_name, middle_name,
             name_metaphone, age, birth_year, address, city, state, zip_code,
             party, registration_date, voting_history)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            record.venue_id,
            record.full_name,
            record.first_name,
            record.last_name,
            record.middle_name,
            name_metaphone,
            record.age,
            record.birth_year,
            record.address,
            record.city,
            record.state,
            record.zip_code,
            record.party,
            record.registration_date.isoformat() if record.registration_date else None,
            json.dumps(record.voting_history),
        ),
    )
    conn.commit()
    return cursor.lastrowid or 0


def insert_fec_donation(
    conn: sqlite3.Connection,
    donation: FECDonation,
    name_metaphone: str,
) -> int:
    """Store one FEC contribution with its precomputed phonetic name key."""
    cursor = conn.execute(
        """
        INSERT INTO fec_donations
            (venue_id, donor_name, donor_first_name, donor_last_name,
             name_metaphone, donor_city, donor_state, donor_zip_code,
             donor_employer, donor_occupation, recipient_name, recipient_party,
             recipient_office, amount, transaction_date)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            donation.venue_id,
            donation.donor_name,
            donation.donor_first_name,
            donation.donor_last_name,
            name_metaphone,
            donation.donor_city,
            donation.donor_state,
            donation.donor_zip_code,
            donation.donor_employer,
            donation.donor_occupation,
            donation.recipient_name,
            donation.recipient_party,
            donation.recipient_office,
            donation.amount,
            donation.transaction_date.isoformat(),
        ),
    )
    conn.commit()
    return cursor.lastrowid or 0


def find_voter_records(
    conn: sqlite3.Connection,
    *,
    last_name_metaphone: str | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
    full_name: str | None = None,
    age: int | None = None,
    city: str | None = None,
    zip_code: str | None = None,
    limit: int = 50,
) -> list[VoterRecord]:
    """Look up voter records by phonetic/partial name plus optional filters.

    Name conditions are OR-ed together; age (±5 years), city and ZIP5
    filters are AND-ed on top.
    """
    name_clauses: list[str] = []
    params: list[Any] = []
    if last_name_metaphone:
        name_clauses.append("name_metaphone LIKE ? ESCAPE '\\'")
        params.append(_contains(last_name_metaphone))
    if first_name and last_name:
        name_clauses.append(
            "(first_name LIKE ? ESCAPE '\\' AND last_name LIKE ? ESCAPE '\\')"
        )
        params.extend([_contains(first_name), _contains(last_name)])
    elif full_name:
        name_clauses.append("full_name LIKE ? ESCAPE '\\'")
        params.append(_contains(full_name))

    where: list[str] = []
    if name_clauses:
        where.append("(" + " OR ".join(name_clauses) + ")")
    if age is not None:
        where.append("age BETWEEN ? AND ?")
        params.extend([age - 5, age + 5])
    if city:
        where.append("city = ? COLLATE NOCASE")
        params.append(city.strip())
    if zip_code:
        where.append("zip_code LIKE ? ESCAPE '\\'")
        params.append(_escape_like(zip_code[:5]) + "%")

    sql = "SELECT * FROM voter_records"
    if where:
        sql += " WHERE " + " AND ".join(where)
    sql += " ORDER BY last_name ASC, first_name ASC LIMIT ?"
    params.append(limit)

    rows = conn.execute(sql, params).fetchall()
    return [
        VoterRecord(
            id=row["id"],
            venue_id=row["venue_id"],
            full_name=row["full_name"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            middle_name=row["middle_name"],
            age=row["age"],
            birth_year=row["birth_year"],
            address=row["address"],
            city=row["city"],
            state=row["state"],
            zip_code=row["zip_code"],
            party=row["party"],
            registration_date=row["registration_date"],
            voting_history=json.loads(row["voting_history"]),
        )
        for row in rows
    ]


def find_fec_donations(
    conn: sqlite3.Connection,
    *,
    last_name_metaphone: str | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
    full_name: str | None = None,
    city: str | None = None,
    state: str | None = None,
    zip_code: str | None = None,
    limit: int = 100,
) -> list[FECDonation]:
    """Look up FEC contributions, newest first within each donor name.

    City (optionally narrowed by state) takes precedence over ZIP5.
    """
    name_clauses: list[str] = []
    params: list[Any] = []
    if last_name_metaphone:
        name_clauses.append("name_metaphone LIKE ? ESCAPE '\\'")
        params.append(_contains(last_name_metaphone))
    if first_name and last_name:
        name_clauses.append(
            "(donor_first_name LIKE ? ESCAPE '\\' AND donor_last_name LIKE ? ESCAPE '\\')"
        )
        params.extend([_contains(first_name), _contains(last_name)])
    elif full_name:
        name_clauses.append("donor_name LIKE ? ESCAPE '\\'")
        params.append(_contains(full_name))

    where: list[str] = []
    if name_clauses:
        where.append("(" + " OR ".join(name_clauses) + ")")
    if city:
        where.append("donor_city = ? COLLATE NOCASE")
        params.append(city.strip())
        if state:
            where.append("donor_state = ? COLLATE NOCASE")
            params.append(state.strip())
    elif zip_code:
        where.append("donor_zip_code LIKE ? ESCAPE '\\'")
        params.append(_escape_like(zip_code[:5]) + "%")

    sql = "SELECT * FROM fec_donations"
    if where:
        sql += " WHERE " + " AND ".join(where)
    sql += (
        " ORDER BY donor_last_name ASC, donor_first_name ASC,"
        " transaction_date DESC LIMIT ?"
    )
    params.append(limit)

    rows = conn.execute(sql, params).fetchall()
    return [
        FECDonation(
            id=row["id"],
            venue_id=row["venue_id"],
            donor_name=row["donor_name"],
            donor_first_name=row["donor_first_name"],
            donor_last_name=row["donor_last_name"],
            donor_city=row["donor_city"],
            donor_state=row["donor_state"],
            donor_zip_code=row["donor_zip_code"],
            donor_employer=row["donor_employer"],
            donor_occupation=row["donor_occupation"],
            recipient_name=row["recipient_name"],
            recipient_party=row["recipient_party"],
            recipient_office=row["recipient_office"],
            amount=row["amount"],
            transaction_date=row["transaction_date"],
        )
        for row in rows
    ]


def count_voter_records(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM voter_records").fetchone()[0]  # type: ignore[no-any-return]


def fec_donation_stats(conn: sqlite3.Connection) -> tuple[int, int, float]:
    """Return (donation count, distinct donors, total amount)."""
    row = conn.execute(
        """
        SELECT COUNT(*) AS donations,
               COUNT(DISTINCT donor_name || '|' || IFNULL(donor_city, '')
                     || '|' || IFNULL(donor_state, '')) AS donors,
               IFNULL(SUM(amount), 0) AS total
        FROM fec_donations
        """,
    ).fetchone()
    return (row["donations"], row["donors"], float(row["total"]))


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _contains(value: str) -> str:
    return f"%{_escape_like(value.strip())}%"


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None
