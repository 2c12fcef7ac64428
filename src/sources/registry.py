"""Build the list of source adapters for an orchestrator from settings.

The list is built explicitly and injected; nothing here is process-global.
API keys left empty in the YAML are read from the environment:
FEC_API_KEY, PEOPLE_SEARCH_PROVIDER and PEOPLE_SEARCH_API_KEY.
"""

import logging
import os
import sqlite3
from collections.abc import Mapping
from typing import get_args

from src.core.config import PeopleSearchProvider, Settings
from src.sources.base import SourceAdapter
from src.sources.fec_api import FECAPISource
from src.sources.fec_local import FECLocalSource
from src.sources.mock import MockSource
from src.sources.people_search import PeopleSearchSource
from src.sources.voter_record import VoterRecordSource

logger = logging.getLogger(__name__)

_PROVIDERS: tuple[str, ...] = get_args(PeopleSearchProvider)


def build_sources(
    settings: Settings,
    conn: sqlite3.Connection,
    env: Mapping[str, str] | None = None,
) -> list[SourceAdapter]:
    """Instantiate every enabled and configured source adapter."""
    env = os.environ if env is None else env
    cfg = settings.sources
    sources: list[SourceAdapter] = []

    if cfg.mock.enabled:
        sources.append(MockSource())

    if cfg.voter_record.enabled:
        sources.append(VoterRecordSource(conn, default_state=cfg.voter_record.default_state))

    if cfg.fec_local.enabled:
        sources.append(FECLocalSource(conn))

    if cfg.fec_api.enabled:
        api_key = cfg.fec_api.api_key or env.get("FEC_API_KEY")
        if api_key:
            sources.append(
                FECAPISource(
                    api_key,
                    base_url=cfg.fec_api.base_url,
                    max_requests_per_hour=cfg.fec_api.max_requests_per_hour,
                    timeout_seconds=cfg.fec_api.timeout_seconds,
                ),
            )
        else:
            logger.info("FEC API source skipped: no API key configured")

    if cfg.people_search.enabled:
        provider = cfg.people_search.provider or env.get("PEOPLE_SEARCH_PROVIDER")
        api_key = cfg.people_search.api_key or env.get("PEOPLE_SEARCH_API_KEY")
        if provider and provider not in _PROVIDERS:
            logger.warning(
                "Unknown people search provider '%s' (expected one of %s)",
                provider, ", ".join(_PROVIDERS),
            )
        elif provider and api_key:
            sources.append(
                PeopleSearchSource(
                    provider,  # type: ignore[arg-type]
                    api_key,
                    timeout_seconds=cfg.people_search.timeout_seconds,
                ),
            )
        else:
            logger.info("People search source skipped: provider or API key missing")

    logger.info(
        "Initialized %d sources: %s", len(sources), ", ".join(s.name for s in sources),
    )
    return sources


async def close_sources(sources: list[SourceAdapter]) -> None:
    """Release HTTP clients held by external sources."""
    for source in sources:
        if isinstance(source, (FECAPISource, PeopleSearchSource)):
            await source.close()
