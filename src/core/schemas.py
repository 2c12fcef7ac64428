"""Core data models for juror identity research."""

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SearchQuery(BaseModel):
    """What is known about the juror being researched.

    Every field is optional; records coming off a jury list are sparse.
    """

    full_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    age: int | None = Field(default=None, ge=0, le=130)
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    occupation: str | None = None

    @property
    def has_name(self) -> bool:
        return any(
            (v or "").strip() for v in (self.full_name, self.first_name, self.last_name)
        )

    @property
    def display_name(self) -> str:
        if self.full_name and self.full_name.strip():
            return self.full_name.strip()
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class SearchParams(BaseModel):
    """Parameters handed to every source adapter."""

    model_config = ConfigDict(frozen=True)

    first_name: str | None = None
    last_name: str | None = None
    full_name: str | None = None
    age: int | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    occupation: str | None = None

    @classmethod
    def from_query(cls, query: SearchQuery) -> "SearchParams":
        return cls.model_validate(query.model_dump())


class RawMatch(BaseModel):
    """A single unscored hit returned by one source adapter.

    Frozen; scoring wraps it in a ScoredCandidate rather than mutating it.
    """

    model_config = ConfigDict(frozen=True)

    full_name: str
    first_name: str | None = None
    last_name: str | None = None
    middle_name: str | None = None
    age: int | None = None
    birth_year: int | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    occupation: str | None = None
    employer: str | None = None
    email: str | None = None
    phone: str | None = None
    source_type: str
    raw_data: dict[str, Any] = Field(default_factory=dict)

    def effective_age(self, current_year: int) -> int | None:
        """Age as reported, else derived from birth year."""
        if self.age:
            return self.age
        if self.birth_year:
            return current_year - self.birth_year
        return None


class ScoreFactors(BaseModel):
    """Itemized confidence breakdown for one match against one query."""

    name_score: int = Field(default=0, ge=0, le=40)
    name_reason: str = ""
    age_score: int = Field(default=0, ge=0, le=20)
    age_reason: str = ""
    location_score: int = Field(default=0, ge=0, le=20)
    location_reason: str = ""
    occupation_score: int = Field(default=0, ge=0, le=10)
    occupation_reason: str = ""
    corroboration_score: int = Field(default=0, ge=0, le=10)
    corroboration_reason: str = ""
    total_score: int = Field(default=0, ge=0, le=100)

    @property
    def subtotal(self) -> int:
        return (
            self.name_score
            + self.age_score
            + self.location_score
            + self.occupation_score
            + self.corroboration_score
        )

    def with_corroboration(self, bonus: int, reason: str, total: int) -> "ScoreFactors":
        return self.model_copy(
            update={
                "corroboration_score": bonus,
                "corroboration_reason": reason,
                "total_score": total,
            },
        )


class ScoredCandidate(BaseModel):
    """Wrapper that pairs a frozen RawMatch with its confidence breakdown."""

    model_config = ConfigDict(frozen=True)

    match: RawMatch
    factors: ScoreFactors
    confidence_score: int = Field(default=0, ge=0, le=100)

    @property
    def source_type(self) -> str:
        return self.match.source_type


class EntityCluster(BaseModel):
    """Scored candidates believed to describe one real person."""

    members: list[ScoredCandidate]
    aggregated_score: int = Field(ge=0, le=100)
    source_count: int = Field(ge=1)

    @property
    def primary(self) -> ScoredCandidate:
        return self.members[0]


class Candidate(BaseModel):
    """A persisted identity candidate for a juror (one per entity cluster)."""

    id: int | None = None
    juror_id: str
    source_type: str
    full_name: str
    first_name: str | None = None
    last_name: str | None = None
    middle_name: str | None = None
    age: int | None = None
    birth_year: int | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    occupation: str | None = None
    employer: str | None = None
    email: str | None = None
    phone: str | None = None
    confidence_score: int = Field(ge=0, le=100)
    score_factors: ScoreFactors
    profile: dict[str, Any] = Field(default_factory=dict)
    source_count: int = 1
    is_confirmed: bool = False
    confirmed_by: str | None = None
    confirmed_at: datetime | None = None
    is_rejected: bool = False
    rejected_by: str | None = None
    rejected_at: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.now)


class SearchJobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SearchJob(BaseModel):
    """Lifecycle record of one orchestrated search."""

    id: int | None = None
    juror_id: str
    status: SearchJobStatus = SearchJobStatus.QUEUED
    query: SearchQuery
    sources_searched: list[str] = Field(default_factory=list)
    candidate_count: int = 0
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.now)


class SearchResult(BaseModel):
    """Summary returned to the caller of a juror search."""

    juror_id: str
    search_job_id: int
    candidates: list[Candidate]
    total_candidates: int
    sources_searched: list[str]
    search_duration_ms: int


class VoterRecord(BaseModel):
    """A row of pre-loaded voter registration data."""

    id: int | None = None
    venue_id: str | None = None
    full_name: str
    first_name: str
    last_name: str
    middle_name: str | None = None
    age: int | None = None
    birth_year: int | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    party: str | None = None
    registration_date: date | None = None
    voting_history: list[int] = Field(default_factory=list)


class FECDonation(BaseModel):
    """A single pre-loaded FEC individual contribution."""

    id: int | None = None
    venue_id: str | None = None
    donor_name: str
    donor_first_name: str | None = None
    donor_last_name: str | None = None
    donor_city: str | None = None
    donor_state: str | None = None
    donor_zip_code: str | None = None
    donor_employer: str | None = None
    donor_occupation: str | None = None
    recipient_name: str
    recipient_party: str | None = None
    recipient_office: str | None = None
    amount: float
    transaction_date: date
