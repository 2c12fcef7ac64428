"""Tests for orchestrator pieces that don't need a full pipeline run."""

import asyncio
import json

import pytest

from src.core.db import CandidateNotFoundError, get_search_job, init_db, list_search_jobs
from src.core.schemas import (
    EntityCluster,
    RawMatch,
    ScoredCandidate,
    ScoreFactors,
    SearchJobStatus,
    SearchParams,
    SearchQuery,
    SearchResult,
)
from src.pipeline.orchestrator import SearchOrchestrator, build_candidate, export_candidates_json
from src.sources.base import SourceAdapter


def _scored(source: str, score: int, **kw: object) -> ScoredCandidate:
    match = RawMatch(full_name="JOHN SMITH", source_type=source, **kw)  # type: ignore[arg-type]
    factors = ScoreFactors(name_score=min(score, 40), total_score=score)
    return ScoredCandidate(match=match, factors=factors, confidence_score=score)


@pytest.fixture()
def db(tmp_path):  # type: ignore[no-untyped-def]
    return init_db(tmp_path / "test.db")


class SlowSource(SourceAdapter):
    """Records how many searches overlap in time."""

    def __init__(self, delay: float = 0.01) -> None:
        self.delay = delay
        self.active = 0
        self.max_active = 0

    @property
    def name(self) -> str:
        return "slow"

    @property
    def tier(self) -> int:
        return 1

    async def search(self, params: SearchParams) -> list[RawMatch]:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        await asyncio.sleep(self.delay)
        self.active -= 1
        return []

    async def is_available(self) -> bool:
        return True


class TestBuildCandidate:
    def test_single_source(self) -> None:
        cluster = EntityCluster(
            members=[_scored("voter_record", 55, city="Austin")],
            aggregated_score=55,
            source_count=1,
        )
        c = build_candidate("J1", cluster)
        assert c.confidence_score == 55
        assert c.score_factors.corroboration_score == 0
        assert c.score_factors.corroboration_reason == "Single source"
        assert c.city == "Austin"
        assert "linked_sources" not in c.profile

    def test_bonus_and_linked_sources(self) -> None:
        cluster = EntityCluster(
            members=[
                _scored("voter_record", 80, raw_data={"party": "DEM"}),
                _scored("fec_donation", 70, raw_data={"donation_count": 2}),
                _scored("fec_api", 60),
            ],
            aggregated_score=74,
            source_count=3,
        )
        c = build_candidate("J1", cluster)
        assert c.confidence_score == 80
        assert c.score_factors.corroboration_score == 6
        assert c.score_factors.corroboration_reason == "Confirmed by 3 sources"
        assert c.score_factors.total_score == 80
        assert c.source_type == "voter_record"
        assert c.profile["party"] == "DEM"
        assert [s["source_type"] for s in c.profile["linked_sources"]] == [
            "voter_record", "fec_donation", "fec_api",
        ]

    def test_capped_at_hundred(self) -> None:
        members = [_scored(f"s{i}", 100) for i in range(4)]
        cluster = EntityCluster(members=members, aggregated_score=100, source_count=4)
        assert build_candidate("J1", cluster).confidence_score == 100


class TestConcurrency:
    async def test_same_juror_searches_serialized(self, db) -> None:  # type: ignore[no-untyped-def]
        source = SlowSource()
        orchestrator = SearchOrchestrator(db, [source])
        query = SearchQuery(last_name="Smith")
        await asyncio.gather(
            orchestrator.search_juror("J1", query),
            orchestrator.search_juror("J1", query),
        )
        assert source.max_active == 1

    async def test_different_jurors_overlap(self, db) -> None:  # type: ignore[no-untyped-def]
        source = SlowSource()
        orchestrator = SearchOrchestrator(db, [source])
        query = SearchQuery(last_name="Smith")
        await asyncio.gather(
            orchestrator.search_juror("J1", query),
            orchestrator.search_juror("J2", query),
        )
        assert source.max_active == 2

    async def test_juror_locks_released(self, db) -> None:  # type: ignore[no-untyped-def]
        orchestrator = SearchOrchestrator(db, [SlowSource()])
        query = SearchQuery(last_name="Smith")
        await asyncio.gather(
            orchestrator.search_juror("J1", query),
            orchestrator.search_juror("J1", query),
            orchestrator.search_juror("J2", query),
        )
        assert orchestrator._juror_locks == {}
        assert orchestrator._lock_holders == {}

    async def test_cancelled_search_marks_job_failed(self, db) -> None:  # type: ignore[no-untyped-def]
        orchestrator = SearchOrchestrator(db, [SlowSource(delay=5.0)])
        search = asyncio.create_task(
            orchestrator.search_juror("J1", SearchQuery(last_name="Smith")),
        )
        await asyncio.sleep(0.05)
        search.cancel()
        with pytest.raises(asyncio.CancelledError):
            await search

        (job,) = list_search_jobs(db, "J1")
        assert job.status is SearchJobStatus.FAILED
        assert job.error_message == "Search cancelled"
        assert job.completed_at is not None
        assert orchestrator._juror_locks == {}

    async def test_runs_queued_job(self, db) -> None:  # type: ignore[no-untyped-def]
        orchestrator = SearchOrchestrator(db, [SlowSource()])
        query = SearchQuery(last_name="Smith")
        job_id = orchestrator.queue_search("J1", query)
        result = await orchestrator.search_juror("J1", query, job_id=job_id)

        assert result.search_job_id == job_id
        job = get_search_job(db, job_id)
        assert job is not None
        assert job.status is SearchJobStatus.COMPLETED
        assert job.started_at is not None
        assert len(list_search_jobs(db, "J1")) == 1

    async def test_slow_source_times_out(self, db) -> None:  # type: ignore[no-untyped-def]
        orchestrator = SearchOrchestrator(
            db, [SlowSource(delay=1.0)], source_timeout_seconds=0.01,
        )
        result = await orchestrator.search_juror("J1", SearchQuery(last_name="Smith"))
        assert result.sources_searched == ["slow"]
        assert result.total_candidates == 0
        job = get_search_job(db, result.search_job_id)
        assert job is not None
        assert job.status is SearchJobStatus.COMPLETED


class TestReviewActions:
    def test_unknown_candidate(self, db) -> None:  # type: ignore[no-untyped-def]
        orchestrator = SearchOrchestrator(db, [])
        with pytest.raises(CandidateNotFoundError):
            orchestrator.confirm_candidate(7, "someone")


class TestExport:
    def test_json_shape(self) -> None:
        cluster = EntityCluster(
            members=[_scored("mock", 45)], aggregated_score=45, source_count=1,
        )
        result = SearchResult(
            juror_id="J1",
            search_job_id=1,
            candidates=[build_candidate("J1", cluster)],
            total_candidates=1,
            sources_searched=["mock"],
            search_duration_ms=3,
        )
        data = json.loads(export_candidates_json(result))
        assert data[0]["full_name"] == "JOHN SMITH"
        assert data[0]["confidence_score"] == 45
        assert data[0]["score_factors"]["corroboration_reason"] == "Single source"
