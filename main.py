"""CLI entry point for the juror research engine."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from src.core.config import Settings
from src.core.db import CandidateNotFoundError, init_db, list_search_jobs
from src.core.schemas import SearchQuery
from src.pipeline.orchestrator import SearchOrchestrator, export_candidates_json
from src.sources.registry import build_sources, close_sources

DEFAULT_CONFIG = "config/settings.yaml"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Juror research engine - find and rank public-record identities for jurors",
    )
    parser.add_argument(
        "--config",
        default=None,
        help=f"Path to settings YAML file (default: {DEFAULT_CONFIG} if present)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- search ---
    search_parser = subparsers.add_parser("search", help="Search all sources for a juror")
    search_parser.add_argument("juror_id", help="Juror identifier")
    search_parser.add_argument("--full-name", help="Full name as written on the jury list")
    search_parser.add_argument("--first-name")
    search_parser.add_argument("--last-name")
    search_parser.add_argument("--age", type=int)
    search_parser.add_argument("--city")
    search_parser.add_argument("--state")
    search_parser.add_argument("--zip", dest="zip_code")
    search_parser.add_argument("--occupation")
    search_parser.add_argument(
        "--export",
        choices=["json"],
        help="Export results to format (json)",
    )

    # --- sources ---
    subparsers.add_parser("sources", help="List configured sources and their availability")

    # --- jobs ---
    jobs_parser = subparsers.add_parser("jobs", help="List search jobs")
    jobs_parser.add_argument("juror_id", nargs="?", help="Only jobs for this juror")

    # --- confirm / reject ---
    for name, verb in (("confirm", "Confirm"), ("reject", "Reject")):
        review_parser = subparsers.add_parser(name, help=f"{verb} a candidate")
        review_parser.add_argument("candidate_id", type=int)
        review_parser.add_argument("--by", required=True, help="Reviewer name")

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def load_settings(config: str | None) -> Settings:
    """Explicit --config must exist; the default path is optional."""
    if config is not None:
        return Settings.from_yaml(config)
    if Path(DEFAULT_CONFIG).exists():
        return Settings.from_yaml(DEFAULT_CONFIG)
    return Settings()


def query_from_args(args: argparse.Namespace) -> SearchQuery:
    query = SearchQuery(
        full_name=args.full_name,
        first_name=args.first_name,
        last_name=args.last_name,
        age=args.age,
        city=args.city,
        state=args.state,
        zip_code=args.zip_code,
        occupation=args.occupation,
    )
    if not query.has_name:
        msg = "at least one of --full-name, --first-name or --last-name is required"
        raise ValueError(msg)
    return query


async def run_search(settings: Settings, args: argparse.Namespace) -> None:
    query = query_from_args(args)
    conn = init_db(settings.database.path)
    sources = build_sources(settings, conn)
    try:
        orchestrator = SearchOrchestrator(
            conn,
            sources,
            confidence_floor=settings.search.confidence_floor,
            source_timeout_seconds=settings.search.source_timeout_seconds,
            check_availability=settings.search.check_availability,
        )
        result = await orchestrator.search_juror(args.juror_id, query)
    finally:
        await close_sources(sources)
        conn.close()

    print(f"\nSearch complete for juror {result.juror_id} ({query.display_name}): "
          f"{result.total_candidates} candidates from {len(result.sources_searched)} sources "
          f"in {result.search_duration_ms}ms")
    print(f"  Sources: {', '.join(result.sources_searched) or 'none'}")

    for c in result.candidates:
        location = ", ".join(v for v in (c.city, c.state) if v)
        print(f"  #{c.id} [{c.confidence_score:3d}] {c.full_name}"
              f" ({c.source_type}, {c.source_count} source(s)) {location}")
        f = c.score_factors
        print(f"      name {f.name_score}: {f.name_reason}")
        print(f"      age {f.age_score}: {f.age_reason}")
        print(f"      location {f.location_score}: {f.location_reason}")
        print(f"      occupation {f.occupation_score}: {f.occupation_reason}")
        print(f"      corroboration {f.corroboration_score}: {f.corroboration_reason}")

    if args.export == "json":
        print(f"\n{export_candidates_json(result)}")


async def show_sources(settings: Settings) -> None:
    conn = init_db(settings.database.path)
    sources = build_sources(settings, conn)
    try:
        print(f"{len(sources)} sources configured")
        for source in sources:
            available = await source.is_available()
            status = "available" if available else "unavailable"
            print(f"  {source.name} (tier {source.tier}): {status}")
    finally:
        await close_sources(sources)
        conn.close()


def show_jobs(settings: Settings, juror_id: str | None) -> None:
    conn = init_db(settings.database.path)
    try:
        jobs = list_search_jobs(conn, juror_id)
    finally:
        conn.close()

    print(f"{len(jobs)} search jobs")
    for job in jobs:
        line = (f"  #{job.id} juror {job.juror_id}: {job.status.value}, "
                f"{job.candidate_count} candidates")
        if job.sources_searched:
            line += f" [{', '.join(job.sources_searched)}]"
        if job.error_message:
            line += f" error: {job.error_message}"
        print(line)


def review_candidate(settings: Settings, command: str, candidate_id: int, by: str) -> None:
    conn = init_db(settings.database.path)
    try:
        orchestrator = SearchOrchestrator(conn, [])
        if command == "confirm":
            orchestrator.confirm_candidate(candidate_id, by)
            print(f"Candidate {candidate_id} confirmed by {by}")
        else:
            orchestrator.reject_candidate(candidate_id, by)
            print(f"Candidate {candidate_id} rejected by {by}")
    finally:
        conn.close()


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = load_settings(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.command == "search":
            asyncio.run(run_search(settings, args))
        elif args.command == "sources":
            asyncio.run(show_sources(settings))
        elif args.command == "jobs":
            show_jobs(settings, args.juror_id)
        else:
            review_candidate(settings, args.command, args.candidate_id, args.by)
    except (CandidateNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
