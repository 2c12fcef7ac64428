"""Orchestrator: fans a juror query out to every source and persists candidates.

Data flow:
  1. Search job recorded as running (or a queued job started)
  2. Concurrent source searches (join-all, per-source failure isolation)
  3. Scorer → one ScoredCandidate per raw match
  4. Entity linker → clusters of the same person
  5. Corroboration bonus per cluster, linked-source evidence merged
  6. Sort by confidence, drop anything under the confidence floor
  7. Replace the juror's stored candidates
  8. Search job marked completed (or failed)
"""

import asyncio
import json
import logging
import sqlite3
import time
from datetime import datetime

from src.core.db import (
    complete_search_job,
    confirm_candidate,
    create_search_job,
    fail_search_job,
    get_search_job,
    list_candidates,
    reject_candidate,
    replace_candidates,
    start_search_job,
)
from src.core.schemas import (
    Candidate,
    EntityCluster,
    RawMatch,
    SearchJob,
    SearchJobStatus,
    SearchParams,
    SearchQuery,
    SearchResult,
)
from src.pipeline.linker import cluster_matches
from src.pipeline.scorer import SINGLE_SOURCE_REASON, corroboration_bonus, score_matches
from src.sources.base import SourceAdapter

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_FLOOR = 30
DEFAULT_SOURCE_TIMEOUT_SECONDS = 10.0
SEARCH_CANCELLED = "Search cancelled"


class SearchOrchestrator:
    """Runs juror searches across an injected set of source adapters.

    Searches for the same juror are serialized within one orchestrator;
    searches for different jurors run independently.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        sources: list[SourceAdapter],
        *,
        confidence_floor: int = DEFAULT_CONFIDENCE_FLOOR,
        source_timeout_seconds: float = DEFAULT_SOURCE_TIMEOUT_SECONDS,
        check_availability: bool = True,
    ) -> None:
        self._conn = conn
        self._sources = list(sources)
        self._confidence_floor = confidence_floor
        self._source_timeout = source_timeout_seconds
        self._check_availability = check_availability
        self._juror_locks: dict[str, asyncio.Lock] = {}
        self._lock_holders: dict[str, int] = {}

    @property
    def sources(self) -> list[SourceAdapter]:
        return list(self._sources)

    def queue_search(self, juror_id: str, query: SearchQuery) -> int:
        """Record a search that will run later. Returns the queued job ID."""
        return create_search_job(self._conn, juror_id, query, status=SearchJobStatus.QUEUED)

    def abandon_search(self, job_id: int, reason: str) -> None:
        """Fail a queued job that will never be run."""
        fail_search_job(self._conn, job_id, reason)

    async def search_juror(
        self,
        juror_id: str,
        query: SearchQuery,
        *,
        job_id: int | None = None,
    ) -> SearchResult:
        """Search every source for the juror and replace their stored candidates.

        Pass ``job_id`` to run a job created by ``queue_search``; otherwise a
        new running job is recorded.

        Raises whatever failed outside the per-source fan-out (scoring,
        linking, persistence) after marking the search job failed.
        """
        lock = self._juror_locks.setdefault(juror_id, asyncio.Lock())
        self._lock_holders[juror_id] = self._lock_holders.get(juror_id, 0) + 1
        try:
            async with lock:
                return await self._run_search(juror_id, query, job_id)
        finally:
            self._lock_holders[juror_id] -= 1
            if not self._lock_holders[juror_id]:
                del self._lock_holders[juror_id]
                del self._juror_locks[juror_id]

    async def _run_search(
        self,
        juror_id: str,
        query: SearchQuery,
        job_id: int | None,
    ) -> SearchResult:
        started = time.monotonic()
        if job_id is None:
            job_id = create_search_job(self._conn, juror_id, query, started_at=datetime.now())
        else:
            start_search_job(self._conn, job_id)
        if not query.has_name:
            logger.warning("Searching juror %s without any name field", juror_id)

        try:
            params = SearchParams.from_query(query)
            sources_searched, matches = await self._fan_out(params)
            logger.info(
                "Juror %s: %d raw matches from %d sources",
                juror_id, len(matches), len(sources_searched),
            )

            scored = score_matches(query, matches)
            clusters = cluster_matches(scored)
            candidates = [build_candidate(juror_id, c) for c in clusters]
            candidates.sort(key=lambda c: c.confidence_score, reverse=True)
            kept = [c for c in candidates if c.confidence_score >= self._confidence_floor]
            logger.info(
                "Juror %s: %d clusters, %d at or above floor %d",
                juror_id, len(candidates), len(kept), self._confidence_floor,
            )

            saved = replace_candidates(self._conn, juror_id, kept)
            complete_search_job(self._conn, job_id, sources_searched, len(kept))
        except asyncio.CancelledError:
            logger.warning("Search for juror %s cancelled", juror_id)
            fail_search_job(self._conn, job_id, SEARCH_CANCELLED)
            raise
        except Exception as e:
            logger.exception("Search for juror %s failed", juror_id)
            fail_search_job(self._conn, job_id, str(e) or type(e).__name__)
            raise

        duration_ms = int((time.monotonic() - started) * 1000)
        return SearchResult(
            juror_id=juror_id,
            search_job_id=job_id,
            candidates=saved,
            total_candidates=len(saved),
            sources_searched=sources_searched,
            search_duration_ms=duration_ms,
        )

    async def _fan_out(self, params: SearchParams) -> tuple[list[str], list[RawMatch]]:
        """Query all sources at once and wait for every one to settle."""
        outcomes = await asyncio.gather(
            *(self._search_source(source, params) for source in self._sources),
        )
        sources_searched: list[str] = []
        matches: list[RawMatch] = []
        for source, result in zip(self._sources, outcomes, strict=True):
            if result is None:
                continue
            sources_searched.append(source.name)
            matches.extend(result)
        return sources_searched, matches

    async def _search_source(
        self,
        source: SourceAdapter,
        params: SearchParams,
    ) -> list[RawMatch] | None:
        """One isolated source call. None means the source was skipped."""
        if self._check_availability:
            try:
                available = await asyncio.wait_for(
                    source.is_available(), timeout=self._source_timeout,
                )
            except Exception:
                logger.warning("Availability check failed for %s", source.name, exc_info=True)
                available = False
            if not available:
                logger.info("Source %s unavailable, skipping", source.name)
                return None

        started = time.monotonic()
        try:
            matches = await asyncio.wait_for(source.search(params), timeout=self._source_timeout)
        except TimeoutError:
            logger.error(
                "Source %s timed out after %.1fs", source.name, self._source_timeout,
            )
            return []
        except Exception:
            logger.exception("Error searching %s", source.name)
            return []

        logger.debug(
            "Source %s (tier %d): %d matches in %.0fms",
            source.name, source.tier, len(matches), (time.monotonic() - started) * 1000,
        )
        return matches

    # --- reviewer actions and reads ---

    def confirm_candidate(self, candidate_id: int, confirmed_by: str) -> None:
        confirm_candidate(self._conn, candidate_id, confirmed_by)
        logger.info("Candidate %d confirmed by %s", candidate_id, confirmed_by)

    def reject_candidate(self, candidate_id: int, rejected_by: str) -> None:
        reject_candidate(self._conn, candidate_id, rejected_by)
        logger.info("Candidate %d rejected by %s", candidate_id, rejected_by)

    def get_search_job(self, job_id: int) -> SearchJob | None:
        return get_search_job(self._conn, job_id)

    def list_candidates(self, juror_id: str) -> list[Candidate]:
        return list_candidates(self._conn, juror_id)


def build_candidate(juror_id: str, cluster: EntityCluster) -> Candidate:
    """Turn a cluster into its stored candidate: the primary plus corroboration."""
    primary = cluster.primary
    bonus = corroboration_bonus(cluster.source_count)
    final_score = min(100, cluster.aggregated_score + bonus)
    reason = (
        f"Confirmed by {cluster.source_count} sources"
        if cluster.source_count > 1
        else SINGLE_SOURCE_REASON
    )
    factors = primary.factors.with_corroboration(bonus, reason, final_score)

    match = primary.match
    profile = dict(match.raw_data)
    if cluster.source_count > 1:
        profile["linked_sources"] = [
            {"source_type": m.source_type, "data": m.match.raw_data}
            for m in cluster.members
        ]

    return Candidate(
        juror_id=juror_id,
        source_type=match.source_type,
        full_name=match.full_name,
        first_name=match.first_name,
        last_name=match.last_name,
        middle_name=match.middle_name,
        age=match.age,
        birth_year=match.birth_year,
        address=match.address,
        city=match.city,
        state=match.state,
        zip_code=match.zip_code,
        occupation=match.occupation,
        employer=match.employer,
        email=match.email,
        phone=match.phone,
        confidence_score=final_score,
        score_factors=factors,
        profile=profile,
        source_count=cluster.source_count,
    )


def export_candidates_json(result: SearchResult) -> str:
    """Export a search result's candidates as a JSON string."""
    data = [
        {
            "id": c.id,
            "juror_id": c.juror_id,
            "source_type": c.source_type,
            "full_name": c.full_name,
            "age": c.age,
            "city": c.city,
            "state": c.state,
            "zip_code": c.zip_code,
            "occupation": c.occupation,
            "employer": c.employer,
            "confidence_score": c.confidence_score,
            "source_count": c.source_count,
            "score_factors": c.score_factors.model_dump(),
        }
        for c in result.candidates
    ]
    return json.dumps(data, indent=2)
